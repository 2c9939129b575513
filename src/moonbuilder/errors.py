"""Failures that abort a single chart render."""


class MoonChartError(Exception):
    """Base class: the chart for this (location, date) cannot be produced."""


class DataUnavailable(MoonChartError):
    """A required day's rise/set record could not be fetched."""


class IncompleteCase(MoonChartError):
    """A neighbouring day's record lacks the rise/set field the case needs."""


class UnclassifiableDay(MoonChartError):
    """The target day has neither a moonrise nor a moonset."""

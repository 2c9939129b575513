"""Simple two-language (en/ko) translation helper for chart text."""

_STRINGS: dict[str, dict[str, str]] = {
    "title": {
        "ko": "{location} 달 시간",
        "en": "Moon Times for {location}",
    },
    "phase_label": {
        "ko": "{phase} - 밝기 {illumination}%",
        "en": "{phase} - {illumination}% illuminated",
    },
    "New Moon": {
        "ko": "삭",
        "en": "New Moon",
    },
    "Waxing Crescent": {
        "ko": "초승달",
        "en": "Waxing Crescent",
    },
    "First Quarter": {
        "ko": "상현달",
        "en": "First Quarter",
    },
    "Waxing Gibbous": {
        "ko": "차오르는 달",
        "en": "Waxing Gibbous",
    },
    "Full Moon": {
        "ko": "보름달",
        "en": "Full Moon",
    },
    "Waning Gibbous": {
        "ko": "기우는 달",
        "en": "Waning Gibbous",
    },
    "Last Quarter": {
        "ko": "하현달",
        "en": "Last Quarter",
    },
    "Waning Crescent": {
        "ko": "그믐달",
        "en": "Waning Crescent",
    },
}


def t(key: str, lang: str, **fields: object) -> str:
    """Return the translated string for key in lang, formatted with ``fields``.

    Falls back to 'en', then to the key itself if not found.
    """
    entry = _STRINGS.get(key)
    if entry is None:
        text = key
    else:
        text = entry.get(lang) or entry.get("en") or key
    return text.format(**fields) if fields else text

"""Runtime settings read from the environment (after ``load_dotenv``)."""

import os
from dataclasses import dataclass, field
from pathlib import Path

from moonbuilder.curve import DEFAULT_AMPLITUDE, CurveCorrections


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e


@dataclass(frozen=True)
class Settings:
    api_key: str | None = None
    cache_path: Path = Path("moon-cache.json")
    image_dir: Path = Path("images")
    icon_dir: Path = Path("moon_images")
    ephemeris_dir: Path = Path("resources")
    amplitude: float = DEFAULT_AMPLITUDE
    corrections: CurveCorrections = field(default_factory=CurveCorrections)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from ``IPGEOLOCATION_API_KEY`` and ``MOON_*`` variables.

        Raises:
            ValueError: A numeric variable is set but not a number.
        """
        defaults = CurveCorrections()
        return cls(
            api_key=os.environ.get("IPGEOLOCATION_API_KEY") or None,
            cache_path=Path(os.environ.get("MOON_CACHE_PATH", "moon-cache.json")),
            image_dir=Path(os.environ.get("MOON_IMAGE_DIR", "images")),
            icon_dir=Path(os.environ.get("MOON_ICON_DIR", "moon_images")),
            ephemeris_dir=Path(os.environ.get("MOON_EPHEMERIS_DIR", "resources")),
            amplitude=_float_env("MOON_CURVE_AMPLITUDE", DEFAULT_AMPLITUDE),
            corrections=CurveCorrections(
                set_then_rise=_float_env(
                    "MOON_CORRECTION_SET_THEN_RISE", defaults.set_then_rise
                ),
                set_only=_float_env("MOON_CORRECTION_SET_ONLY", defaults.set_only),
            ),
        )

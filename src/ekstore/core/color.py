"""Color codec - native channel arrays to and from the CalendarColor triple."""

import math
import re
from typing import Sequence

from .enums import ColorSpace, normalize_color_space
from .errors import ValidationError
from .models import CalendarColor

HEX_FALLBACK = "#00000000"
DEFAULT_PRECISION = 6

_HEX_PATTERN = re.compile(r"#(?:[0-9A-Fa-f]{6}|[0-9A-Fa-f]{8})")


def _to_byte(value: float) -> int:
    value = float(value)
    if not math.isfinite(value):
        return 0
    return round(min(max(value, 0.0), 1.0) * 255)


def format_components(components: Sequence[float], precision: int = DEFAULT_PRECISION) -> str:
    """Comma-join channel values in their original order."""
    return ",".join(f"{float(c):.{precision}f}" for c in components)


def derive_hex(components: Sequence[float]) -> str:
    """
    Approximate an 8-digit ``#RRGGBBAA`` string from raw channels.

    Four or more channels are read as R, G, B, A. One or two channels are
    gray plus optional alpha. Anything else yields HEX_FALLBACK.
    """
    count = len(components)
    if count >= 4:
        r, g, b, a = (_to_byte(c) for c in components[:4])
    elif count in (1, 2):
        r = g = b = _to_byte(components[0])
        a = _to_byte(components[1]) if count == 2 else 255
    else:
        return HEX_FALLBACK
    return f"#{r:02X}{g:02X}{b:02X}{a:02X}"


def encode_color(
    components: Sequence[float] | None,
    space_code,
    precision: int = DEFAULT_PRECISION,
) -> CalendarColor:
    """Build a CalendarColor from a native channel array and color-space code."""
    channels = tuple(components or ())
    return CalendarColor(
        hex=derive_hex(channels),
        components=format_components(channels, precision),
        space=normalize_color_space(space_code),
    )


def unknown_color() -> CalendarColor:
    return CalendarColor(hex=HEX_FALLBACK, components="", space=ColorSpace.UNKNOWN)


def parse_hex(value) -> tuple[float, float, float, float]:
    """
    Parse ``#RRGGBBAA`` or ``#RRGGBB`` into RGBA floats in [0, 1].

    A missing alpha is opaque. Raises ValidationError for anything else.
    """
    if not isinstance(value, str) or not _HEX_PATTERN.fullmatch(value):
        raise ValidationError(
            f"Invalid color hex: {value!r}. Expected #RRGGBBAA or #RRGGBB."
        )
    digits = value[1:]
    if len(digits) == 6:
        digits += "FF"
    r, g, b, a = (int(digits[i : i + 2], 16) / 255 for i in range(0, 8, 2))
    return r, g, b, a

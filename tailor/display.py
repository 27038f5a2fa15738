"""Helpers for presenting hardware data and converting colors for display."""

from __future__ import annotations

import math
from typing import Iterable, Optional

from .color import Color


def comma_list(items: Iterable[str]) -> str:
    """Prefix every item with ``", "`` and strip trailing separators."""
    text = "".join(f", {item}" for item in items)
    while text.endswith(", "):
        text = text[:-2]
    return text


def comma_list_optional(items: Optional[Iterable[str]]) -> str:
    """Like :func:`comma_list`, with a notice when nothing is available."""
    if items is None:
        return "Device not available"
    return comma_list(items)


def _to_channel(value: float) -> int:
    scaled = value * 255.0
    if math.isnan(scaled) or scaled <= 0.0:
        return 0
    if scaled >= 255.0:
        return 255
    return math.floor(scaled + 0.5)


def rgba_to_color(red: float, green: float, blue: float) -> Color:
    """Convert 0.0..1.0 color components to an 8-bit color, rounding half up."""
    return Color(_to_channel(red), _to_channel(green), _to_channel(blue))


def color_to_rgba(color: Color) -> tuple[float, float, float, float]:
    """Convert an 8-bit color to opaque 0.0..1.0 components."""
    return (color.r / 255.0, color.g / 255.0, color.b / 255.0, 1.0)
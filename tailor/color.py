"""Colors, color transitions and LED color profiles."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Mapping, Sequence, Union

from .led import LedControllerMode

_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")
_U32_MAX = 2**32 - 1


def _check_int(value: Any, name: str, upper: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= upper:
        raise ValueError(f"{name} must be an integer in 0..={upper}, got {value!r}")
    return value


def _field(data: Mapping[str, Any], key: str) -> Any:
    try:
        return data[key]
    except (KeyError, TypeError) as exc:
        raise ValueError(f"missing field {key!r}") from exc


def _scale_down(value: int, max_brightness: int) -> int:
    """Scale a 0..255 value into 0..max_brightness, truncating."""
    maximum = float(max_brightness)
    return int(min(max(value / 255.0 * maximum, 0.0), maximum))


def _scale_up(value: int, max_brightness: int) -> int:
    """Scale a 0..max_brightness value into 0..255, truncating."""
    if max_brightness == 0:
        return 255 if value > 0 else 0
    return int(min(max(value / float(max_brightness) * 255.0, 0.0), 255.0))


@dataclass(frozen=True)
class Color:
    """An 8-bit RGB color."""

    r: int
    g: int
    b: int

    def __post_init__(self) -> None:
        for name in ("r", "g", "b"):
            _check_int(getattr(self, name), name, 255)

    def sysfs_rgb_string(self, max_brightness: int) -> str:
        """Return the ``"r g b"`` string written to a sysfs multi-intensity file."""
        if max_brightness == 255:
            return f"{self.r} {self.g} {self.b}"
        return " ".join(
            str(_scale_down(channel, max_brightness)) for channel in (self.r, self.g, self.b)
        )

    def sysfs_monochrome_string(self, max_brightness: int) -> str:
        """Return the averaged brightness string for a monochrome device."""
        average = (self.r + self.g + self.b) // 3
        if max_brightness == 255:
            return str(average)
        return str(_scale_down(average, max_brightness))

    @classmethod
    def from_sysfs_rgb_value(cls, values: Sequence[int], max_brightness: int) -> "Color":
        """Build a color from three raw sysfs intensities."""
        r, g, b = values
        if max_brightness == 255:
            return cls(*(value if 0 <= value <= 255 else 0 for value in (r, g, b)))
        return cls(*(_scale_up(value, max_brightness) for value in (r, g, b)))

    @classmethod
    def parse(cls, text: str) -> "Color":
        """Parse six hexadecimal digits such as ``"00FFac"``."""
        if len(text.encode("utf-8")) != 6:
            raise ValueError("Incorrect length for 3x8-bit hexadecimal value")
        if not set(text) <= _HEX_DIGITS:
            raise ValueError("Incorrect value (not [0-9] or [A-F]) in hexadecimal value")
        return cls(int(text[0:2], 16), int(text[2:4], 16), int(text[4:6], 16))

    def __str__(self) -> str:
        return f"0x{self.r:02X}{self.g:02X}{self.b:02X}"

    def to_dict(self) -> dict[str, int]:
        return {"r": self.r, "g": self.g, "b": self.b}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Color":
        return cls(_field(data, "r"), _field(data, "g"), _field(data, "b"))


class ColorTransition(Enum):
    """How the LEDs move from one color to the next."""

    NONE = "None"
    LINEAR = "Linear"


@dataclass(frozen=True)
class ColorPoint:
    """One color in a color pattern; ``transition_time`` is in milliseconds."""

    color: Color
    transition: ColorTransition
    transition_time: int

    def __post_init__(self) -> None:
        _check_int(self.transition_time, "transition_time", _U32_MAX)

    def to_dict(self) -> dict[str, Any]:
        return {
            "color": self.color.to_dict(),
            "transition": self.transition.value,
            "transition_time": self.transition_time,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ColorPoint":
        return cls(
            color=Color.from_dict(_field(data, "color")),
            transition=ColorTransition(_field(data, "transition")),
            transition_time=_field(data, "transition_time"),
        )


@dataclass(frozen=True)
class ColorProfileNone:
    """LEDs switched off."""


@dataclass(frozen=True)
class ColorProfileSingle:
    """A single static color."""

    color: Color


@dataclass(frozen=True)
class ColorProfileMultiple:
    """A pattern of colors cycled through in order."""

    points: tuple[ColorPoint, ...]

    def __init__(self, points: Iterable[ColorPoint]) -> None:
        object.__setattr__(self, "points", tuple(points))


ColorProfile = Union[ColorProfileNone, ColorProfileSingle, ColorProfileMultiple]


def default_color_profile(mode: LedControllerMode) -> ColorProfile:
    """Return the profile used for a device that has none configured."""
    if mode is LedControllerMode.MONOCHROME:
        return ColorProfileNone()
    return ColorProfileMultiple(
        ColorPoint(color, ColorTransition.LINEAR, 6000)
        for color in (Color(255, 0, 0), Color(0, 255, 0), Color(0, 0, 255))
    )


def _profile_to_value(profile: ColorProfile) -> Any:
    if isinstance(profile, ColorProfileNone):
        return "None"
    if isinstance(profile, ColorProfileSingle):
        return {"Single": profile.color.to_dict()}
    if isinstance(profile, ColorProfileMultiple):
        return {"Multiple": [point.to_dict() for point in profile.points]}
    raise TypeError(f"not a color profile: {profile!r}")


def _profile_from_value(value: Any) -> ColorProfile:
    if value == "None":
        return ColorProfileNone()
    if isinstance(value, dict) and len(value) == 1:
        (tag, content), = value.items()
        if tag == "Single":
            return ColorProfileSingle(Color.from_dict(content))
        if tag == "Multiple":
            if not isinstance(content, list):
                raise ValueError("Multiple color profile must hold a list")
            return ColorProfileMultiple(ColorPoint.from_dict(item) for item in content)
    raise ValueError(f"unknown color profile: {value!r}")


def color_profile_to_json(profile: ColorProfile) -> str:
    """Serialize a color profile to compact JSON text."""
    return json.dumps(_profile_to_value(profile), separators=(",", ":"))


def color_profile_from_json(data: str) -> ColorProfile:
    """Parse a color profile from JSON text; raises ``ValueError`` on bad input."""
    return _profile_from_value(json.loads(data))
"""Fan curve points and global profile descriptions."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

from .led import LedControllerMode


def _field(data: Mapping[str, Any], key: str) -> Any:
    try:
        return data[key]
    except (KeyError, TypeError) as exc:
        raise ValueError(f"missing field {key!r}") from exc


def _text(value: Any, key: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a string, got {value!r}")
    return value


def _byte(value: Any, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 255:
        raise ValueError(f"{key} must be an integer in 0..=255, got {value!r}")
    return value


@dataclass(frozen=True)
class FanProfilePoint:
    """A point on a fan curve: temperature in °C and fan speed in percent."""

    temp: int
    fan: int

    def __post_init__(self) -> None:
        _byte(self.temp, "temp")
        _byte(self.fan, "fan")

    def to_dict(self) -> dict[str, int]:
        return {"temp": self.temp, "fan": self.fan}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FanProfilePoint":
        return cls(_field(data, "temp"), _field(data, "fan"))


@dataclass(frozen=True)
class LedProfile:
    """Assignment of an LED profile to one LED device."""

    device_name: str
    function: str
    profile: str
    mode: LedControllerMode = LedControllerMode.RGB

    def to_dict(self) -> dict[str, Any]:
        return {
            "device_name": self.device_name,
            "function": self.function,
            "profile": self.profile,
            "mode": self.mode.value,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LedProfile":
        mode = data.get("mode") if isinstance(data, Mapping) else None
        return cls(
            device_name=_text(_field(data, "device_name"), "device_name"),
            function=_text(_field(data, "function"), "function"),
            profile=_text(_field(data, "profile"), "profile"),
            mode=LedControllerMode.default() if mode is None else LedControllerMode(mode),
        )


@dataclass
class ProfileInfo:
    """A global profile: fan profile per fan, LED profiles and performance profile."""

    fans: list[str] = field(default_factory=lambda: ["default"])
    leds: list[LedProfile] = field(default_factory=list)
    performance_profile: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "fans": list(self.fans),
            "leds": [led.to_dict() for led in self.leds],
            "performance_profile": self.performance_profile,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ProfileInfo":
        fans = _field(data, "fans")
        leds = _field(data, "leds")
        if not isinstance(fans, list) or not isinstance(leds, list):
            raise ValueError("fields 'fans' and 'leds' must be lists")
        performance = data.get("performance_profile")
        if performance is not None:
            _text(performance, "performance_profile")
        return cls(
            fans=[_text(fan, "fans") for fan in fans],
            leds=[LedProfile.from_dict(led) for led in leds],
            performance_profile=performance,
        )


def fan_profile_to_json(points: Iterable[FanProfilePoint]) -> str:
    """Serialize a fan curve to compact JSON text."""
    return json.dumps([point.to_dict() for point in points], separators=(",", ":"))


def fan_profile_from_json(data: str) -> list[FanProfilePoint]:
    """Parse a fan curve from JSON text; raises ``ValueError`` on bad input."""
    value = json.loads(data)
    if not isinstance(value, list):
        raise ValueError("fan profile must be a JSON list")
    return [FanProfilePoint.from_dict(item) for item in value]
"""LED controller modes and LED device descriptions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping


class LedControllerMode(Enum):
    """How an LED device can be driven."""

    RGB = "Rgb"
    MONOCHROME = "Monochrome"

    @classmethod
    def default(cls) -> "LedControllerMode":
        return cls.RGB


def _text_field(data: Mapping[str, Any], key: str) -> str:
    try:
        value = data[key]
    except (KeyError, TypeError) as exc:
        raise ValueError(f"missing field {key!r}") from exc
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a string, got {value!r}")
    return value


@dataclass(frozen=True)
class LedDeviceInfo:
    """An LED device as reported by the daemon."""

    device_name: str
    function: str
    mode: LedControllerMode

    def device_id(self) -> str:
        """Return the identifier ``<device_name>::<function>``."""
        return f"{self.device_name}::{self.function}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "device_name": self.device_name,
            "function": self.function,
            "mode": self.mode.value,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LedDeviceInfo":
        device_name = _text_field(data, "device_name")
        function = _text_field(data, "function")
        mode = LedControllerMode(_text_field(data, "mode"))
        return cls(device_name=device_name, function=function, mode=mode)
"""High-level client for the tailor daemon."""

from __future__ import annotations

import contextlib
import json
from typing import Any, Callable, Iterable, Iterator, Optional, TypeVar

from .color import Color, ColorProfile, color_profile_from_json, color_profile_to_json
from .dbus import BusConnection, BusError
from .led import LedDeviceInfo
from .profile import (
    FanProfilePoint,
    ProfileInfo,
    fan_profile_from_json,
    fan_profile_to_json,
)
from .proxies import FanProxy, LedProxy, PerformanceProxy, ProfilesProxy

T = TypeVar("T")


class ClientError(Exception):
    """A request to the daemon failed, or its answer could not be decoded."""

    BUS = "bus"
    SERIALIZATION = "serialization"

    def __init__(self, kind: str, cause: BaseException) -> None:
        prefix = "Bus response error" if kind == self.BUS else "Serialization error"
        super().__init__(f"{prefix}: `{cause}`")
        self.kind = kind
        self.cause = cause


@contextlib.contextmanager
def _bus_errors() -> Iterator[None]:
    try:
        yield
    except BusError as exc:
        raise ClientError(ClientError.BUS, exc) from exc


def _decode(parse: Callable[[str], T], text: str) -> T:
    try:
        return parse(text)
    except (ValueError, TypeError) as exc:
        raise ClientError(ClientError.SERIALIZATION, exc) from exc


def _dumps(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"))


def _parse_global_profile(text: str) -> ProfileInfo:
    return ProfileInfo.from_dict(json.loads(text))


def _parse_led_devices(text: str) -> list[LedDeviceInfo]:
    value = json.loads(text)
    if not isinstance(value, list):
        raise ValueError("LED device list must be a JSON list")
    return [LedDeviceInfo.from_dict(item) for item in value]


class TailorConnection:
    """Access to the profiles, LED, fan and performance interfaces of the daemon."""

    def __init__(self, bus: Any, *, owns_bus: bool = False) -> None:
        self.bus = bus
        self._owns_bus = owns_bus
        self._profiles = ProfilesProxy(bus)
        self._led = LedProxy(bus)
        self._fan = FanProxy(bus)
        self._performance = PerformanceProxy(bus)

    @classmethod
    async def connect(cls, bus: Optional[Any] = None) -> "TailorConnection":
        """Use ``bus``, or open the system bus when none is given."""
        if bus is None:
            return cls(await BusConnection.system(), owns_bus=True)
        return cls(bus)

    async def close(self) -> None:
        """Close the bus if this connection opened it."""
        if self._owns_bus:
            await self.bus.close()

    async def __aenter__(self) -> "TailorConnection":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # LED profiles

    async def add_led_profile(self, name: str, profile: ColorProfile) -> None:
        value = _decode(color_profile_to_json, profile)
        with _bus_errors():
            await self._led.add_profile(name, value)

    async def get_led_profile(self, name: str) -> ColorProfile:
        with _bus_errors():
            data = await self._led.get_profile(name)
        return _decode(color_profile_from_json, data)

    async def list_led_profiles(self) -> list[str]:
        with _bus_errors():
            return await self._led.list_profiles()

    async def copy_led_profile(self, source: str, target: str) -> None:
        profile = await self.get_led_profile(source)
        await self.add_led_profile(target, profile)

    async def rename_led_profile(self, source: str, target: str) -> list[str]:
        with _bus_errors():
            return await self._led.rename_profile(source, target)

    async def remove_led_profile(self, name: str) -> None:
        with _bus_errors():
            await self._led.remove_profile(name)

    async def override_led_colors(self, color: Color) -> None:
        value = _dumps(color.to_dict())
        with _bus_errors():
            await self._led.override_color(value)

    # Fan profiles

    async def add_fan_profile(self, name: str, profile: Iterable[FanProfilePoint]) -> None:
        value = _decode(fan_profile_to_json, profile)
        with _bus_errors():
            await self._fan.add_profile(name, value)

    async def get_fan_profile(self, name: str) -> list[FanProfilePoint]:
        with _bus_errors():
            data = await self._fan.get_profile(name)
        return _decode(fan_profile_from_json, data)

    async def list_fan_profiles(self) -> list[str]:
        with _bus_errors():
            return await self._fan.list_profiles()

    async def copy_fan_profile(self, source: str, target: str) -> None:
        profile = await self.get_fan_profile(source)
        await self.add_fan_profile(target, profile)

    async def rename_fan_profile(self, source: str, target: str) -> list[str]:
        with _bus_errors():
            return await self._fan.rename_profile(source, target)

    async def remove_fan_profile(self, name: str) -> None:
        with _bus_errors():
            await self._fan.remove_profile(name)

    async def override_fan_speed(self, fan_idx: int, speed: int) -> None:
        with _bus_errors():
            await self._fan.override_speed(fan_idx, speed)

    # Global profiles

    async def add_global_profile(self, name: str, profile: ProfileInfo) -> None:
        value = _decode(lambda info: _dumps(info.to_dict()), profile)
        with _bus_errors():
            await self._profiles.add_profile(name, value)

    async def get_global_profile(self, name: str) -> ProfileInfo:
        with _bus_errors():
            data = await self._profiles.get_profile(name)
        return _decode(_parse_global_profile, data)

    async def list_global_profiles(self) -> list[str]:
        with _bus_errors():
            return await self._profiles.list_profiles()

    async def copy_global_profile(self, source: str, target: str) -> None:
        profile = await self.get_global_profile(source)
        await self.add_global_profile(target, profile)

    async def rename_global_profile(self, source: str, target: str) -> list[str]:
        with _bus_errors():
            return await self._profiles.rename_profile(source, target)

    async def remove_global_profile(self, name: str) -> None:
        with _bus_errors():
            await self._profiles.remove_profile(name)

    async def get_active_global_profile_name(self) -> str:
        with _bus_errors():
            return await self._profiles.get_active_profile_name()

    async def set_active_global_profile_name(self, name: str) -> None:
        with _bus_errors():
            await self._profiles.set_active_profile_name(name)

    async def get_number_of_fans(self) -> int:
        with _bus_errors():
            return await self._profiles.get_number_of_fans()

    async def get_led_devices(self) -> list[LedDeviceInfo]:
        with _bus_errors():
            data = await self._profiles.get_led_devices()
        return _decode(_parse_led_devices, data)

    async def reload(self) -> None:
        with _bus_errors():
            await self._profiles.reload()

    # Performance profiles

    async def set_performance_profile(self, name: str, value: str) -> None:
        """Temporarily override the performance profile; not kept across restarts."""
        with _bus_errors():
            await self._performance.set_profile(name, value)

    async def get_performance_profile(self, name: str) -> str:
        """Read the current performance profile."""
        with _bus_errors():
            return await self._performance.get_profile(name)

    async def list_performance_profiles(self) -> list[str]:
        """Read the list of supported performance profiles."""
        with _bus_errors():
            return await self._performance.list_profiles()
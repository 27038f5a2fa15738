"""Typed proxies for the interfaces exported by the tailor daemon."""

from __future__ import annotations

from typing import Any, ClassVar

from .dbus import BusConnection, BusError

SERVICE = "com.tux.Tailor"
OBJECT_PATH = "/com/tux/Tailor"


def _single(body: tuple, kind: type) -> Any:
    if len(body) != 1 or not isinstance(body[0], kind) or isinstance(body[0], bool):
        raise BusError(f"unexpected reply {body!r}")
    return body[0]


def _string_list(body: tuple) -> list[str]:
    values = _single(body, list)
    if not all(isinstance(value, str) for value in values):
        raise BusError(f"unexpected reply {body!r}")
    return values


class _Proxy:
    interface: ClassVar[str]

    def __init__(
        self,
        connection: BusConnection,
        destination: str = SERVICE,
        path: str = OBJECT_PATH,
    ) -> None:
        self.connection = connection
        self.destination = destination
        self.path = path

    async def _call(self, member: str, signature: str = "", *args: Any) -> tuple:
        return await self.connection.call(
            self.destination, self.path, self.interface, member, signature, args
        )

    # Calls shared by the interfaces that store named profiles as JSON text.

    async def _add_profile(self, name: str, value: str) -> None:
        await self._call("AddProfile", "ss", name, value)

    async def _get_profile(self, name: str) -> str:
        return _single(await self._call("GetProfile", "s", name), str)

    async def _list_profiles(self) -> list[str]:
        return _string_list(await self._call("ListProfiles"))

    async def _remove_profile(self, name: str) -> None:
        await self._call("RemoveProfile", "s", name)

    async def _rename_profile(self, source: str, target: str) -> list[str]:
        return _string_list(await self._call("RenameProfile", "ss", source, target))


class FanProxy(_Proxy):
    interface = "com.tux.Tailor.Fan"

    async def add_profile(self, name: str, value: str) -> None:
        await self._add_profile(name, value)

    async def get_profile(self, name: str) -> str:
        return await self._get_profile(name)

    async def list_profiles(self) -> list[str]:
        return await self._list_profiles()

    async def remove_profile(self, name: str) -> None:
        await self._remove_profile(name)

    async def rename_profile(self, source: str, target: str) -> list[str]:
        return await self._rename_profile(source, target)

    async def override_speed(self, fan_idx: int, speed: int) -> None:
        await self._call("OverrideSpeed", "yy", fan_idx, speed)


class LedProxy(_Proxy):
    interface = "com.tux.Tailor.Led"

    async def add_profile(self, name: str, value: str) -> None:
        await self._add_profile(name, value)

    async def get_profile(self, name: str) -> str:
        return await self._get_profile(name)

    async def list_profiles(self) -> list[str]:
        return await self._list_profiles()

    async def remove_profile(self, name: str) -> None:
        await self._remove_profile(name)

    async def rename_profile(self, source: str, target: str) -> list[str]:
        return await self._rename_profile(source, target)

    async def override_color(self, color: str) -> None:
        await self._call("OverrideColor", "s", color)


class PerformanceProxy(_Proxy):
    interface = "com.tux.Tailor.Performance"

    async def set_profile(self, name: str, value: str) -> None:
        """Temporarily override the performance profile; not kept across restarts."""
        await self._call("SetProfile", "ss", name, value)

    async def get_profile(self, name: str) -> str:
        """Read the current performance profile."""
        return _single(await self._call("GetProfile", "s", name), str)

    async def list_profiles(self) -> list[str]:
        """Read the list of supported performance profiles."""
        return _string_list(await self._call("ListProfiles"))


class ProfilesProxy(_Proxy):
    interface = "com.tux.Tailor.Profiles"

    async def add_profile(self, name: str, value: str) -> None:
        await self._add_profile(name, value)

    async def get_profile(self, name: str) -> str:
        return await self._get_profile(name)

    async def list_profiles(self) -> list[str]:
        return await self._list_profiles()

    async def remove_profile(self, name: str) -> None:
        await self._remove_profile(name)

    async def rename_profile(self, source: str, target: str) -> list[str]:
        return await self._rename_profile(source, target)

    async def set_active_profile_name(self, name: str) -> None:
        await self._call("SetActiveProfileName", "s", name)

    async def get_active_profile_name(self) -> str:
        return _single(await self._call("GetActiveProfileName"), str)

    async def get_number_of_fans(self) -> int:
        return _single(await self._call("GetNumberOfFans"), int)

    async def get_led_devices(self) -> str:
        return _single(await self._call("GetLedDevices"), str)

    async def reload(self) -> None:
        await self._call("Reload")
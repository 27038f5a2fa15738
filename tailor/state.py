"""Application state for a tailor front end, kept in sync with the daemon."""

from __future__ import annotations

import asyncio
import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Coroutine, Optional, TypeVar

from .client import ClientError
from .color import Color, ColorProfile
from .led import LedDeviceInfo
from .profile import FanProfilePoint, ProfileInfo

_log = logging.getLogger(__name__)

T = TypeVar("T")

_TRACKED = ("active_profile_name", "profiles", "led_profiles", "fan_profiles", "error")


@dataclass
class FullProfileInfo:
    """A global profile together with its name."""

    name: str
    data: ProfileInfo


@dataclass
class HardwareCapabilities:
    """What the daemon reports about the machine it controls."""

    num_of_fans: int
    led_devices: list[LedDeviceInfo]
    performance_profiles: Optional[list[str]]


@dataclass
class TailorState:
    """The loaded state; remembers which fields the last update changed."""

    connection: Any = field(compare=False, repr=False)
    active_profile_name: str
    profiles: list[FullProfileInfo]
    led_profiles: list[str]
    fan_profiles: list[str]
    error: Optional[str] = None
    _changed: set = field(default_factory=set, init=False, compare=False, repr=False)

    def changed(self, name: str) -> bool:
        """Return whether the field ``name`` changed in the last update."""
        if name not in _TRACKED:
            raise ValueError(f"untracked field {name!r}")
        return name in self._changed

    def mark_all_changed(self) -> None:
        self._changed = set(_TRACKED)

    def reset_changed(self) -> None:
        self._changed = set()

    def _mark(self, name: str) -> None:
        self._changed.add(name)


@dataclass
class Load:
    state: TailorState


@dataclass
class SetActiveProfile:
    name: str


@dataclass
class AddProfile:
    name: str
    profile: ProfileInfo


@dataclass
class AddFanProfile:
    name: str
    profile: list[FanProfilePoint]


@dataclass
class AddLedProfile:
    name: str
    profile: ColorProfile


@dataclass
class CopyProfile:
    source: str
    target: str


@dataclass
class CopyFanProfile:
    source: str
    target: str


@dataclass
class CopyLedProfile:
    source: str
    target: str


@dataclass
class RenameProfile:
    source: str
    target: str


@dataclass
class RenameFanProfile:
    source: str
    target: str


@dataclass
class RenameLedProfile:
    source: str
    target: str


@dataclass
class DeleteProfile:
    name: str


@dataclass
class DeleteFanProfile:
    name: str


@dataclass
class DeleteLedProfile:
    name: str


@dataclass
class OverwriteColor:
    color: Color


@dataclass
class OverwriteFanSpeed:
    fan_idx: int
    speed: int


@dataclass
class ErrorMessage:
    error: str


Subscriber = Callable[[Optional[TailorState]], None]


class StateStore:
    """Holds the state, applies messages to it and forwards changes to the daemon.

    Requests to the daemon run as background tasks on the running event loop;
    a failed request is turned into an :class:`ErrorMessage`.
    """

    def __init__(self) -> None:
        self.state: Optional[TailorState] = None
        self._subscribers: list[Subscriber] = []
        self._tasks: set[asyncio.Task] = set()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Call ``callback`` with the state after every notifying update."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def emit(self, message: Any) -> None:
        """Apply ``message`` and notify subscribers if the update asks for it."""
        if self.reduce(message):
            for callback in list(self._subscribers):
                callback(self.state)

    async def wait_idle(self) -> None:
        """Wait until every background request has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            raise
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _checked(self, awaitable: Awaitable[T]) -> Optional[T]:
        try:
            return await awaitable
        except ClientError as exc:
            self.emit(ErrorMessage(str(exc)))
            return None

    def _request(self, *calls: Callable[[], Awaitable[Any]]) -> None:
        async def run() -> None:
            for call in calls:
                await self._checked(call())

        self._spawn(run())

    def reduce(self, message: Any) -> bool:
        """Apply ``message``; returns whether subscribers should be notified."""
        if isinstance(message, Load):
            message.state.mark_all_changed()
            self.state = message.state
            return True

        state = self.state
        if state is not None:
            state.reset_changed()
        conn = state.connection if state is not None else None

        match message:
            case SetActiveProfile(name):
                if state is not None:
                    self._request(
                        lambda: conn.set_active_global_profile_name(name),
                        conn.reload,
                    )
                    state.active_profile_name = name
                    state._mark("active_profile_name")
                return False

            case AddProfile(name, profile):
                if state is not None:
                    sent = copy.deepcopy(profile)

                    async def add_and_reload() -> None:
                        await self._checked(conn.add_global_profile(name, sent))
                        active = await self._checked(conn.get_active_global_profile_name())
                        if active is not None and active == name:
                            await self._checked(conn.reload())

                    self._spawn(add_and_reload())
                    existing = next((p for p in state.profiles if p.name == name), None)
                    if existing is not None:
                        existing.data = profile
                        return False
                    state.profiles.append(FullProfileInfo(name, profile))
                    state._mark("profiles")

            case AddFanProfile(name, profile):
                if state is not None:
                    self._request(lambda: conn.add_fan_profile(name, profile))
                    if name in state.fan_profiles:
                        return False
                    state.fan_profiles.append(name)
                    state._mark("fan_profiles")

            case AddLedProfile(name, profile):
                if state is not None:
                    self._request(lambda: conn.add_led_profile(name, profile))
                    if name in state.led_profiles:
                        return False
                    state.led_profiles.append(name)
                    state._mark("led_profiles")

            case CopyProfile(source, target):
                if state is not None:
                    self._request(lambda: conn.copy_global_profile(source, target))
                    state._mark("profiles")
                    found = next((p for p in state.profiles if p.name == source), None)
                    if found is not None:
                        state.profiles.append(
                            FullProfileInfo(target, copy.deepcopy(found.data))
                        )

            case CopyFanProfile(source, target):
                if state is not None:
                    self._request(lambda: conn.copy_fan_profile(source, target))
                    state.fan_profiles.append(target)
                    state._mark("fan_profiles")

            case CopyLedProfile(source, target):
                if state is not None:
                    self._request(lambda: conn.copy_led_profile(source, target))
                    state.led_profiles.append(target)
                    state._mark("led_profiles")

            case RenameProfile(source, target):
                if state is not None:
                    state._mark("profiles")
                    found = next((p for p in state.profiles if p.name == source), None)
                    if found is not None:
                        self._request(lambda: conn.rename_global_profile(source, target))
                        found.name = target

            case RenameFanProfile(source, target):
                if state is not None:
                    state._mark("fan_profiles")
                    if source in state.fan_profiles:
                        self._request(lambda: conn.rename_fan_profile(source, target))
                        state.fan_profiles[state.fan_profiles.index(source)] = target

            case RenameLedProfile(source, target):
                if state is not None:
                    state._mark("led_profiles")
                    if source in state.led_profiles:
                        self._request(lambda: conn.rename_led_profile(source, target))
                        state.led_profiles[state.led_profiles.index(source)] = target

            case DeleteProfile(name):
                if state is not None:
                    state._mark("profiles")
                    position = next(
                        (i for i, p in enumerate(state.profiles) if p.name == name), None
                    )
                    if position is not None:
                        self._request(lambda: conn.remove_global_profile(name))
                        del state.profiles[position]

            case DeleteFanProfile(name):
                if state is not None:
                    state._mark("fan_profiles")
                    if name in state.fan_profiles:
                        self._request(lambda: conn.remove_fan_profile(name))
                        state.fan_profiles.remove(name)

            case DeleteLedProfile(name):
                if state is not None:
                    state._mark("led_profiles")
                    if name in state.led_profiles:
                        self._request(lambda: conn.remove_led_profile(name))
                        state.led_profiles.remove(name)

            case OverwriteColor(color):
                if state is not None:
                    self._request(lambda: conn.override_led_colors(color))
                return False

            case OverwriteFanSpeed(fan_idx, speed):
                if state is not None:
                    self._request(lambda: conn.override_fan_speed(fan_idx, speed))
                return False

            case ErrorMessage(error):
                if state is not None and state.error != error:
                    state.error = error
                    state._mark("error")

            case _:
                raise TypeError(f"unknown state message {message!r}")
        return True


async def load_capabilities(connection: Any) -> HardwareCapabilities:
    """Query fans, LED devices and, where available, performance profiles."""
    num_of_fans = await connection.get_number_of_fans()
    led_devices = await connection.get_led_devices()
    try:
        performance_profiles: Optional[list[str]] = (
            await connection.list_performance_profiles()
        )
    except ClientError as exc:
        _log.info("No performance handler available: %s", exc)
        performance_profiles = None
    return HardwareCapabilities(num_of_fans, led_devices, performance_profiles)


async def initialize_state(connection: Any, store: StateStore) -> HardwareCapabilities:
    """Read everything from the daemon, load it into ``store`` and return the capabilities.

    Raises :class:`ClientError` if a required request fails and ``RuntimeError``
    if the store was already initialized.
    """
    if store.state is not None:
        raise RuntimeError("App was initialized twice")
    capabilities = await load_capabilities(connection)
    active_profile_name = await connection.get_active_global_profile_name()
    led_profiles = await connection.list_led_profiles()
    fan_profiles = await connection.list_fan_profiles()
    names = await connection.list_global_profiles()

    async def fetch(name: str) -> FullProfileInfo:
        try:
            data = await connection.get_global_profile(name)
        except ClientError:
            data = ProfileInfo()
        return FullProfileInfo(name, data)

    profiles = list(await asyncio.gather(*(fetch(name) for name in names)))
    if store.state is not None:
        raise RuntimeError("App was initialized twice")
    store.emit(
        Load(
            TailorState(
                connection=connection,
                active_profile_name=active_profile_name,
                profiles=profiles,
                led_profiles=list(led_profiles),
                fan_profiles=list(fan_profiles),
            )
        )
    )
    return capabilities
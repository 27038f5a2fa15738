import asyncio
import contextlib
import itertools
import struct

import pytest

from tailor.dbus import BusConnection, BusError, Message, MessageType, decode_message, encode_message
from tailor.proxies import FanProxy, LedProxy, PerformanceProxy, ProfilesProxy

SERVICE = "com.tux.Tailor"
PATH = "/com/tux/Tailor"


class NotFound(Exception):
    pass


class FakeDaemon:
    """An in-memory daemon answering the tailor interfaces over a localhost bus."""

    def __init__(self, broken_replies=False):
        self.broken_replies = broken_replies
        self.stores = {
            "com.tux.Tailor.Fan": {},
            "com.tux.Tailor.Led": {},
            "com.tux.Tailor.Profiles": {},
        }
        self.active = "default"
        self.fan_overrides = []
        self.color_overrides = []
        self.reloads = 0
        self.performance = {}

    def answer(self, message):
        if message.destination != SERVICE or message.path != PATH:
            raise NotFound("unknown object")
        interface, member, sig, args = (
            message.interface,
            message.member,
            message.signature,
            message.body,
        )
        store = self.stores.get(interface)
        if store is not None:
            if (member, sig) == ("AddProfile", "ss"):
                store[args[0]] = args[1]
                return "", ()
            if (member, sig) == ("GetProfile", "s"):
                if args[0] not in store:
                    raise NotFound(args[0])
                return "s", (store[args[0]],)
            if (member, sig) == ("ListProfiles", ""):
                return "as", (sorted(store),)
            if (member, sig) == ("RemoveProfile", "s"):
                if args[0] not in store:
                    raise NotFound(args[0])
                del store[args[0]]
                return "", ()
            if (member, sig) == ("RenameProfile", "ss"):
                if args[0] not in store or args[1] in store:
                    raise NotFound(args[0])
                store[args[1]] = store.pop(args[0])
                return "as", (sorted(store),)
        if interface == "com.tux.Tailor.Fan" and (member, sig) == ("OverrideSpeed", "yy"):
            self.fan_overrides.append(args)
            return "", ()
        if interface == "com.tux.Tailor.Led" and (member, sig) == ("OverrideColor", "s"):
            self.color_overrides.append(args[0])
            return "", ()
        if interface == "com.tux.Tailor.Profiles":
            if (member, sig) == ("SetActiveProfileName", "s"):
                self.active = args[0]
                return "", ()
            if (member, sig) == ("GetActiveProfileName", ""):
                return "s", (self.active,)
            if (member, sig) == ("GetNumberOfFans", ""):
                if self.broken_replies:
                    return "s", ("two",)
                return "y", (2,)
            if (member, sig) == ("GetLedDevices", ""):
                return "s", ("[]",)
            if (member, sig) == ("Reload", ""):
                self.reloads += 1
                return "", ()
        if interface == "com.tux.Tailor.Performance":
            if (member, sig) == ("SetProfile", "ss"):
                self.performance[args[0]] = args[1]
                return "", ()
            if (member, sig) == ("GetProfile", "s"):
                return "s", (self.performance.get(args[0], "balanced"),)
            if (member, sig) == ("ListProfiles", ""):
                if self.broken_replies:
                    return "as", ([],) if False else ("s", ("balanced",))[0:0] or ("ay", (b"x",))
                return "as", (["power_saving", "balanced"],)
        raise NotFound(f"{interface}.{member}({sig})")

    def reply_to(self, message):
        if message.member == "Hello":
            return Message(
                MessageType.METHOD_RETURN,
                reply_serial=message.serial,
                signature="s",
                body=(":1.7",),
            )
        try:
            sig, body = self.answer(message)
        except NotFound as exc:
            return Message(
                MessageType.ERROR,
                error_name="com.tux.Tailor.Error.NotFound",
                reply_serial=message.serial,
                signature="s",
                body=(str(exc),),
            )
        return Message(
            MessageType.METHOD_RETURN, reply_serial=message.serial, signature=sig, body=body
        )

    async def serve(self, reader, writer):
        serials = itertools.count(1)
        try:
            await reader.readexactly(1)
            await reader.readline()
            writer.write(b"OK 00112233445566778899aabbccddeeff\r\n")
            await writer.drain()
            await reader.readline()
            while True:
                head = await reader.readexactly(16)
                (body_length,) = struct.unpack_from("<I", head, 4)
                (fields_length,) = struct.unpack_from("<I", head, 12)
                header_end = 16 + fields_length
                header_end += -header_end % 8
                rest = await reader.readexactly(header_end + body_length - 16)
                reply = self.reply_to(decode_message(head + rest))
                writer.write(encode_message(reply, next(serials)))
                await writer.drain()
        except (asyncio.IncompleteReadError, ConnectionError):
            pass
        finally:
            writer.close()


@contextlib.asynccontextmanager
async def running_daemon(broken_replies=False):
    daemon = FakeDaemon(broken_replies)
    server = await asyncio.start_server(daemon.serve, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    try:
        connection = await BusConnection.open(f"tcp:host=127.0.0.1,port={port}")
        try:
            yield daemon, connection
        finally:
            await connection.close()
    finally:
        server.close()


@pytest.mark.asyncio
@pytest.mark.parametrize("proxy_class", [FanProxy, LedProxy, ProfilesProxy])
async def test_profile_store_round_trip(proxy_class):
    async with running_daemon() as (daemon, connection):
        proxy = proxy_class(connection)
        await proxy.add_profile("first", '{"a":1}')
        await proxy.add_profile("first", '{"a":2}')
        assert await proxy.get_profile("first") == '{"a":2}'
        assert "first" in await proxy.list_profiles()

        names = await proxy.rename_profile("first", "second")
        assert "second" in names and "first" not in names
        assert await proxy.get_profile("second") == '{"a":2}'

        with pytest.raises(BusError):
            await proxy.rename_profile("first", "second")
        with pytest.raises(BusError):
            await proxy.remove_profile("first")

        await proxy.remove_profile("second")
        assert "second" not in await proxy.list_profiles()
        with pytest.raises(BusError) as info:
            await proxy.get_profile("second")
        assert info.value.name == "com.tux.Tailor.Error.NotFound"


@pytest.mark.asyncio
async def test_profile_stores_are_separate_interfaces():
    async with running_daemon() as (daemon, connection):
        await FanProxy(connection).add_profile("quiet", "[]")
        assert await LedProxy(connection).list_profiles() == []
        assert await FanProxy(connection).list_profiles() == ["quiet"]
        assert daemon.stores["com.tux.Tailor.Fan"] == {"quiet": "[]"}


@pytest.mark.asyncio
async def test_fan_override_speed():
    async with running_daemon() as (daemon, connection):
        await FanProxy(connection).override_speed(1, 55)
        assert daemon.fan_overrides == [(1, 55)]


@pytest.mark.asyncio
async def test_fan_override_speed_out_of_range():
    async with running_daemon() as (daemon, connection):
        with pytest.raises(ValueError):
            await FanProxy(connection).override_speed(0, 300)
        assert daemon.fan_overrides == []


@pytest.mark.asyncio
async def test_led_override_color():
    async with running_daemon() as (daemon, connection):
        await LedProxy(connection).override_color('{"r":1,"g":2,"b":3}')
        assert daemon.color_overrides == ['{"r":1,"g":2,"b":3}']


@pytest.mark.asyncio
async def test_profiles_active_name_and_reload():
    async with running_daemon() as (daemon, connection):
        proxy = ProfilesProxy(connection)
        await proxy.set_active_profile_name("gaming")
        assert await proxy.get_active_profile_name() == "gaming"
        await proxy.reload()
        await proxy.reload()
        assert daemon.reloads == 2


@pytest.mark.asyncio
async def test_profiles_hardware_queries():
    async with running_daemon() as (daemon, connection):
        proxy = ProfilesProxy(connection)
        assert await proxy.get_number_of_fans() == 2
        assert await proxy.get_led_devices() == "[]"


@pytest.mark.asyncio
async def test_performance_profiles():
    async with running_daemon() as (daemon, connection):
        proxy = PerformanceProxy(connection)
        assert await proxy.list_profiles() == ["power_saving", "balanced"]
        await proxy.set_profile("cpu", "power_saving")
        assert await proxy.get_profile("cpu") == "power_saving"
        assert daemon.performance == {"cpu": "power_saving"}


@pytest.mark.asyncio
async def test_unexpected_reply_shape_raises():
    async with running_daemon(broken_replies=True) as (daemon, connection):
        with pytest.raises(BusError):
            await ProfilesProxy(connection).get_number_of_fans()
        with pytest.raises(BusError):
            await PerformanceProxy(connection).list_profiles()


@pytest.mark.asyncio
async def test_wrong_object_path_is_rejected_by_daemon():
    async with running_daemon() as (daemon, connection):
        proxy = FanProxy(connection, path="/elsewhere")
        with pytest.raises(BusError) as info:
            await proxy.list_profiles()
        assert info.value.name == "com.tux.Tailor.Error.NotFound"
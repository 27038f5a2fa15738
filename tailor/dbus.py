"""A small asynchronous D-Bus client: wire format, bus addresses and method calls."""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import os
import re
import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Optional, Sequence
from urllib.parse import unquote_to_bytes

SYSTEM_BUS_ADDRESS = "unix:path=/var/run/dbus/system_bus_socket"
BUS_NAME = "org.freedesktop.DBus"
BUS_PATH = "/org/freedesktop/DBus"
PROTOCOL_VERSION = 1

_MAX_ARRAY_LENGTH = 64 * 1024 * 1024
_OBJECT_PATH = re.compile(r"/|(/[A-Za-z0-9_]+)+")

# type code -> (struct format, alignment)
_FIXED = {
    "y": ("B", 1),
    "b": ("I", 4),
    "n": ("h", 2),
    "q": ("H", 2),
    "i": ("i", 4),
    "u": ("I", 4),
    "x": ("q", 8),
    "t": ("Q", 8),
    "d": ("d", 8),
    "h": ("I", 4),
}
_ALIGN = {
    **{code: size for code, (_, size) in _FIXED.items()},
    "s": 4,
    "o": 4,
    "g": 1,
    "a": 4,
    "(": 8,
    "{": 8,
    "v": 1,
}


class BusError(Exception):
    """A failure reported by the bus or the peer, or a lost connection."""

    def __init__(self, message: str, name: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.name = name

    def __str__(self) -> str:
        return f"{self.name}: {self.message}" if self.name else self.message


class MessageType(IntEnum):
    METHOD_CALL = 1
    METHOD_RETURN = 2
    ERROR = 3
    SIGNAL = 4


@dataclass(frozen=True)
class Message:
    """One D-Bus message; ``body`` holds the values described by ``signature``."""

    message_type: MessageType
    path: Optional[str] = None
    interface: Optional[str] = None
    member: Optional[str] = None
    error_name: Optional[str] = None
    reply_serial: Optional[int] = None
    destination: Optional[str] = None
    sender: Optional[str] = None
    signature: str = ""
    body: tuple = ()
    flags: int = 0
    serial: int = 0


# header field code -> (Message attribute, signature)
_HEADER_FIELDS = {
    1: ("path", "o"),
    2: ("interface", "s"),
    3: ("member", "s"),
    4: ("error_name", "s"),
    5: ("reply_serial", "u"),
    6: ("destination", "s"),
    7: ("sender", "s"),
    8: ("signature", "g"),
}

_REQUIRED = {
    MessageType.METHOD_CALL: ("path", "member"),
    MessageType.METHOD_RETURN: ("reply_serial",),
    MessageType.ERROR: ("error_name", "reply_serial"),
    MessageType.SIGNAL: ("path", "interface", "member"),
}


def _check_required(message: Message) -> None:
    for name in _REQUIRED[MessageType(message.message_type)]:
        if getattr(message, name) is None:
            raise ValueError(
                f"{MessageType(message.message_type).name} message needs the {name!r} field"
            )


def _complete_type_end(signature: str, pos: int) -> int:
    if pos >= len(signature):
        raise ValueError(f"incomplete signature {signature!r}")
    code = signature[pos]
    if code in _FIXED or code in "sogv":
        return pos + 1
    if code == "a":
        return _complete_type_end(signature, pos + 1)
    if code in "({":
        close = ")" if code == "(" else "}"
        pos += 1
        count = 0
        while True:
            if pos >= len(signature):
                raise ValueError(f"unterminated container in signature {signature!r}")
            if signature[pos] == close:
                break
            pos = _complete_type_end(signature, pos)
            count += 1
        if count == 0 or (code == "{" and count != 2):
            raise ValueError(f"malformed container in signature {signature!r}")
        return pos + 1
    raise ValueError(f"unknown type code {code!r} in signature {signature!r}")


def _split_signature(signature: str) -> list[str]:
    types = []
    pos = 0
    while pos < len(signature):
        end = _complete_type_end(signature, pos)
        types.append(signature[pos:end])
        pos = end
    return types


class _Writer:
    def __init__(self, order: str = "<") -> None:
        self.order = order
        self.buf = bytearray()

    def align(self, size: int) -> None:
        self.buf.extend(b"\0" * (-len(self.buf) % size))

    def write(self, sig: str, value: Any) -> None:
        code = sig[0]
        if code in _FIXED:
            fmt, size = _FIXED[code]
            self.align(size)
            if code == "b":
                value = 1 if value else 0
            try:
                self.buf.extend(struct.pack(self.order + fmt, value))
            except struct.error as exc:
                raise ValueError(f"cannot encode {value!r} as type {code!r}") from exc
        elif code in "so":
            if not isinstance(value, str):
                raise ValueError(f"expected a string for type {code!r}, got {value!r}")
            if code == "o" and not _OBJECT_PATH.fullmatch(value):
                raise ValueError(f"invalid object path {value!r}")
            data = value.encode("utf-8")
            self.align(4)
            self.buf.extend(struct.pack(self.order + "I", len(data)))
            self.buf.extend(data + b"\0")
        elif code == "g":
            if not isinstance(value, str):
                raise ValueError(f"expected a signature string, got {value!r}")
            _split_signature(value)
            data = value.encode("ascii")
            if len(data) > 255:
                raise ValueError("signature longer than 255 bytes")
            self.buf.extend(bytes([len(data)]) + data + b"\0")
        elif code == "a":
            self._write_array(sig[1:], value)
        elif code in "({":
            self.align(8)
            fields = _split_signature(sig[1:-1])
            try:
                values = tuple(value)
            except TypeError as exc:
                raise ValueError(f"expected a sequence for {sig!r}, got {value!r}") from exc
            if len(values) != len(fields):
                raise ValueError(f"{sig!r} needs {len(fields)} values, got {len(values)}")
            for field_sig, field_value in zip(fields, values):
                self.write(field_sig, field_value)
        elif code == "v":
            try:
                inner_sig, inner = value
            except (TypeError, ValueError) as exc:
                raise ValueError(f"a variant is a (signature, value) pair, got {value!r}") from exc
            if len(_split_signature(inner_sig)) != 1:
                raise ValueError(f"variant signature must be one complete type: {inner_sig!r}")
            self.write("g", inner_sig)
            self.write(inner_sig, inner)
        else:
            raise ValueError(f"unknown type code {code!r}")

    def _write_array(self, element: str, value: Any) -> None:
        if isinstance(value, str):
            raise ValueError(f"expected a sequence for array, got {value!r}")
        self.align(4)
        length_at = len(self.buf)
        self.buf.extend(b"\0\0\0\0")
        self.align(_ALIGN[element[0]])
        start = len(self.buf)
        if element[0] == "{":
            if not hasattr(value, "items"):
                raise ValueError(f"expected a mapping for a{element}, got {value!r}")
            items = value.items()
        else:
            items = value
        try:
            for item in items:
                self.write(element, item)
        except TypeError as exc:
            raise ValueError(f"expected a sequence for array, got {value!r}") from exc
        length = len(self.buf) - start
        if length > _MAX_ARRAY_LENGTH:
            raise ValueError("array too long")
        struct.pack_into(self.order + "I", self.buf, length_at, length)


class _Reader:
    def __init__(self, data: bytes, order: str) -> None:
        self.data = data
        self.order = order
        self.pos = 0

    def align(self, size: int) -> None:
        self.pos += -self.pos % size
        if self.pos > len(self.data):
            raise ValueError("message truncated")

    def take(self, count: int) -> bytes:
        if self.pos + count > len(self.data):
            raise ValueError("message truncated")
        chunk = self.data[self.pos:self.pos + count]
        self.pos += count
        return chunk

    def read(self, sig: str) -> Any:
        code = sig[0]
        if code in _FIXED:
            fmt, size = _FIXED[code]
            self.align(size)
            (value,) = struct.unpack(self.order + fmt, self.take(size))
            if code == "b":
                if value > 1:
                    raise ValueError(f"invalid boolean value {value}")
                return bool(value)
            return value
        if code in "so":
            self.align(4)
            length = self.read("u")
            raw = self.take(length)
            if self.take(1) != b"\0":
                raise ValueError("string is not nul-terminated")
            return raw.decode("utf-8")
        if code == "g":
            length = self.take(1)[0]
            raw = self.take(length)
            if self.take(1) != b"\0":
                raise ValueError("signature is not nul-terminated")
            text = raw.decode("ascii")
            _split_signature(text)
            return text
        if code == "a":
            length = self.read("u")
            if length > _MAX_ARRAY_LENGTH:
                raise ValueError("array too long")
            element = sig[1:]
            self.align(_ALIGN[element[0]])
            end = self.pos + length
            if end > len(self.data):
                raise ValueError("message truncated")
            if element == "y":
                return bytes(self.take(length))
            items = []
            while self.pos < end:
                items.append(self.read(element))
            if self.pos != end:
                raise ValueError("array contents overrun their length")
            return dict(items) if element[0] == "{" else items
        if code in "({":
            self.align(8)
            return tuple(self.read(field) for field in _split_signature(sig[1:-1]))
        if code == "v":
            inner_sig = self.read("g")
            if len(_split_signature(inner_sig)) != 1:
                raise ValueError(f"variant signature must be one complete type: {inner_sig!r}")
            return (inner_sig, self.read(inner_sig))
        raise ValueError(f"unknown type code {code!r}")


def encode_message(message: Message, serial: int) -> bytes:
    """Marshal a message in little-endian byte order with the given serial."""
    _check_required(message)
    if not 0 < serial < 2**32:
        raise ValueError(f"serial must be in 1..2**32-1, got {serial}")
    types = _split_signature(message.signature)
    body = tuple(message.body)
    if len(types) != len(body):
        raise ValueError(
            f"signature {message.signature!r} describes {len(types)} values, got {len(body)}"
        )
    body_writer = _Writer()
    for sig, value in zip(types, body):
        body_writer.write(sig, value)

    fields = []
    for code, (name, sig) in _HEADER_FIELDS.items():
        value = getattr(message, name)
        if value is None or (name == "signature" and not value):
            continue
        fields.append((code, (sig, value)))

    header = _Writer()
    header.write("y", ord("l"))
    header.write("y", int(message.message_type))
    header.write("y", message.flags)
    header.write("y", PROTOCOL_VERSION)
    header.write("u", len(body_writer.buf))
    header.write("u", serial)
    header.write("a(yv)", fields)
    header.align(8)
    return bytes(header.buf + body_writer.buf)


def _byte_order(first: int) -> str:
    if first == ord("l"):
        return "<"
    if first == ord("B"):
        return ">"
    raise ValueError(f"invalid byte order marker {first!r}")


def _frame_length(head: bytes) -> int:
    """Return the full length of a message from its first 16 bytes."""
    order = _byte_order(head[0])
    (body_length,) = struct.unpack_from(order + "I", head, 4)
    (fields_length,) = struct.unpack_from(order + "I", head, 12)
    header_end = 16 + fields_length
    header_end += -header_end % 8
    return header_end + body_length


def decode_message(data: bytes) -> Message:
    """Unmarshal exactly one complete message; raises ``ValueError`` if malformed."""
    data = bytes(data)
    if len(data) < 16:
        raise ValueError("message truncated")
    reader = _Reader(data, _byte_order(data[0]))
    _, raw_type, flags, version = reader.take(4)
    if version != PROTOCOL_VERSION:
        raise ValueError(f"unsupported protocol version {version}")
    try:
        message_type = MessageType(raw_type)
    except ValueError as exc:
        raise ValueError(f"unknown message type {raw_type}") from exc
    body_length = reader.read("u")
    serial = reader.read("u")
    fields = reader.read("a(yv)")
    reader.align(8)

    values: dict[str, Any] = {}
    for code, (sig, value) in fields:
        known = _HEADER_FIELDS.get(code)
        if known is None:
            continue
        name, expected = known
        if sig != expected:
            raise ValueError(f"header field {name!r} has type {sig!r}, expected {expected!r}")
        values[name] = value
    signature = values.pop("signature", "")

    if len(data) != reader.pos + body_length:
        raise ValueError("message length does not match its header")
    body = tuple(reader.read(sig) for sig in _split_signature(signature))
    if reader.pos != len(data):
        raise ValueError("message body does not match its signature")

    message = Message(
        message_type,
        signature=signature,
        body=body,
        flags=flags,
        serial=serial,
        **values,
    )
    _check_required(message)
    return message


def parse_address(address: str) -> list[tuple[str, dict[str, str]]]:
    """Split a bus address into ``(transport, options)`` entries, unescaping values."""
    entries = []
    for part in address.split(";"):
        if not part:
            continue
        transport, sep, rest = part.partition(":")
        if not sep or not transport:
            raise ValueError(f"malformed bus address entry {part!r}")
        options: dict[str, str] = {}
        for pair in filter(None, rest.split(",")):
            key, eq, value = pair.partition("=")
            if not eq or not key:
                raise ValueError(f"malformed bus address option {pair!r}")
            if key in options:
                raise ValueError(f"duplicate bus address option {key!r}")
            options[key] = unquote_to_bytes(value).decode("utf-8")
        entries.append((transport, options))
    if not entries:
        raise ValueError("empty bus address")
    return entries


async def _connect(
    transport: str, options: dict[str, str]
) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    if transport == "unix":
        if "path" in options:
            return await asyncio.open_unix_connection(options["path"])
        if "abstract" in options:
            return await asyncio.open_unix_connection("\0" + options["abstract"])
        raise ValueError("unix address needs 'path' or 'abstract'")
    if transport == "tcp":
        if "port" not in options:
            raise ValueError("tcp address needs 'port'")
        return await asyncio.open_connection(options.get("host", "localhost"), int(options["port"]))
    raise ValueError(f"unsupported transport {transport!r}")


class BusConnection:
    """An authenticated connection to a message bus."""

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._reader = reader
        self._writer = writer
        self._serials = itertools.count(1)
        self._pending: dict[int, asyncio.Future] = {}
        self._task: Optional[asyncio.Task] = None
        self._error: Optional[BusError] = None
        self.unique_name: Optional[str] = None

    @classmethod
    async def open(cls, address: str) -> "BusConnection":
        """Connect to the first reachable entry of ``address`` and register on the bus."""
        failures = []
        for transport, options in parse_address(address):
            try:
                reader, writer = await _connect(transport, options)
            except (OSError, ValueError) as exc:
                failures.append(f"{transport}: {exc}")
                continue
            connection = cls(reader, writer)
            try:
                await connection._authenticate()
                connection._task = asyncio.create_task(connection._receive_loop())
                reply = await connection.call(BUS_NAME, BUS_PATH, BUS_NAME, "Hello", "", ())
                if len(reply) != 1 or not isinstance(reply[0], str):
                    raise BusError(f"unexpected reply to Hello: {reply!r}")
            except BaseException:
                await connection.close()
                raise
            connection.unique_name = reply[0]
            return connection
        raise BusError("could not connect to the bus: " + "; ".join(failures))

    @classmethod
    async def system(cls) -> "BusConnection":
        return await cls.open(os.environ.get("DBUS_SYSTEM_BUS_ADDRESS", SYSTEM_BUS_ADDRESS))

    @classmethod
    async def session(cls) -> "BusConnection":
        address = os.environ.get("DBUS_SESSION_BUS_ADDRESS")
        if not address:
            raise BusError("the session bus address is not set")
        return await cls.open(address)

    async def _authenticate(self) -> None:
        uid = str(os.getuid()).encode("ascii").hex()
        self._writer.write(b"\0AUTH EXTERNAL " + uid.encode("ascii") + b"\r\n")
        await self._writer.drain()
        line = await self._reader.readline()
        if not line.startswith(b"OK "):
            text = line.decode("utf-8", errors="replace").strip()
            raise BusError(f"authentication rejected: {text!r}")
        self._writer.write(b"BEGIN\r\n")
        await self._writer.drain()

    async def _receive_loop(self) -> None:
        try:
            while True:
                head = await self._reader.readexactly(16)
                rest = await self._reader.readexactly(_frame_length(head) - 16)
                message = decode_message(head + rest)
                if message.message_type in (MessageType.METHOD_RETURN, MessageType.ERROR):
                    future = self._pending.pop(message.reply_serial, None)
                    if future is not None and not future.done():
                        future.set_result(message)
        except asyncio.CancelledError:
            self._fail_pending(BusError("connection closed"))
            raise
        except (asyncio.IncompleteReadError, OSError, ValueError) as exc:
            self._fail_pending(BusError(f"connection lost: {exc}"))

    def _fail_pending(self, error: BusError) -> None:
        if self._error is None:
            self._error = error
        for future in self._pending.values():
            if not future.done():
                future.set_exception(error)
        self._pending.clear()

    async def call(
        self,
        destination: Optional[str],
        path: str,
        interface: Optional[str],
        member: str,
        signature: str,
        args: Sequence[Any],
    ) -> tuple:
        """Call a method and return the reply body; an error reply raises ``BusError``."""
        if self._error is not None:
            raise self._error
        serial = next(self._serials)
        data = encode_message(
            Message(
                MessageType.METHOD_CALL,
                path=path,
                interface=interface,
                member=member,
                destination=destination,
                signature=signature,
                body=tuple(args),
            ),
            serial,
        )
        future = asyncio.get_running_loop().create_future()
        self._pending[serial] = future
        try:
            self._writer.write(data)
            await self._writer.drain()
            reply = await future
        except OSError as exc:
            raise BusError(f"connection lost: {exc}") from exc
        finally:
            self._pending.pop(serial, None)
        if reply.message_type is MessageType.ERROR:
            text = reply.body[0] if reply.body and isinstance(reply.body[0], str) else ""
            raise BusError(text, reply.error_name)
        return reply.body

    async def close(self) -> None:
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        self._fail_pending(BusError("connection closed"))
        self._writer.close()
        with contextlib.suppress(OSError):
            await self._writer.wait_closed()

    async def __aenter__(self) -> "BusConnection":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
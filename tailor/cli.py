"""Command line interface for switching tailor profiles."""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from typing import Any, Optional, Sequence, TextIO

from .client import ClientError, TailorConnection
from .dbus import BusConnection, BusError

_VERSION = "0.3.1"
_BOLD_GREEN = "\x1b[1;32m"
_RESET = "\x1b[0m"

NOTIFICATIONS_NAME = "org.freedesktop.Notifications"
NOTIFICATIONS_PATH = "/org/freedesktop/Notifications"


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser for the ``tailor`` command."""
    parser = argparse.ArgumentParser(prog="tailor", description="CLI to interact with tailord")
    parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {_VERSION}")
    commands = parser.add_subparsers(dest="command")

    profile = commands.add_parser("profile", help="Profile commands")
    profile_commands = profile.add_subparsers(dest="profile_cmd", required=True)
    profile_commands.add_parser("list", help="List profile names")
    set_cmd = profile_commands.add_parser("set", help="Set the active profile")
    set_cmd.add_argument("name", help="The name of the profile to set (see: list)")
    cycle = profile_commands.add_parser("cycle", help="Cycle profiles")
    cycle.add_argument(
        "-v", "--verbose", action="store_true", help="Print the new profile to stdout"
    )
    cycle.add_argument(
        "-n",
        "--notify",
        action="store_true",
        help="Send a desktop notification about the new profile",
    )
    return parser


def next_profile(profiles: Sequence[str], active: str) -> Optional[str]:
    """Return the profile listed before ``active``, wrapping around to the last one."""
    chosen = profiles[-1] if profiles else None
    for name in profiles:
        if name == active:
            break
        chosen = name
    return chosen


def _profile_list(profiles: Sequence[str], active: str, styled: bool) -> str:
    head = f"{active} (active)"
    if styled:
        head = f"{_BOLD_GREEN}{head}{_RESET}"
    inactive = [name for name in profiles if name != active]
    return f"{head}\n" + "\n".join(inactive)


def format_profile_list(profiles: Sequence[str], active: str) -> str:
    """Return the active profile highlighted, followed by the other profiles."""
    return _profile_list(profiles, active, styled=True)


def _colors_enabled(stream: TextIO) -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


async def send_notification(summary: str, body: str) -> int:
    """Show a desktop notification over the session bus and return its id."""
    async with await BusConnection.session() as bus:
        reply = await bus.call(
            NOTIFICATIONS_NAME,
            NOTIFICATIONS_PATH,
            NOTIFICATIONS_NAME,
            "Notify",
            "susssasa{sv}i",
            ("tailor", 0, "", summary, body, [], {}, -1),
        )
    return reply[0]


async def handle_profile(connection: Any, args: argparse.Namespace) -> None:
    """Run one ``profile`` subcommand against ``connection``."""
    if args.profile_cmd == "list":
        active = await connection.get_active_global_profile_name()
        profiles = await connection.list_global_profiles()
        print(_profile_list(profiles, active, styled=_colors_enabled(sys.stdout)))
    elif args.profile_cmd == "set":
        await connection.set_active_global_profile_name(args.name)
        await connection.reload()
    elif args.profile_cmd == "cycle":
        active = await connection.get_active_global_profile_name()
        profiles = await connection.list_global_profiles()
        chosen = next_profile(profiles, active)
        if chosen is None:
            return
        message = f"Current profile: {chosen}"
        await connection.set_active_global_profile_name(chosen)
        await connection.reload()
        if args.verbose:
            print(message)
        if args.notify:
            await send_notification("Profile updated", message)
    else:
        raise ValueError(f"unknown profile command {args.profile_cmd!r}")


async def run(argv: Optional[Sequence[str]] = None) -> int:
    """Parse ``argv`` and carry out the command; returns the exit status."""
    args = build_parser().parse_args(argv)
    if args.command == "profile":
        connection = await TailorConnection.connect()
        try:
            await handle_profile(connection, args)
        finally:
            await connection.close()
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point of the ``tailor`` command."""
    try:
        return asyncio.run(run(argv))
    except (ClientError, BusError, OSError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
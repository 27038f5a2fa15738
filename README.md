# tailor

`tailor` is a client for the `tailord` daemon. It talks to the daemon over the
D-Bus system bus and lets you manage global, fan and LED profiles and switch
between them, from the command line or from Python. It has no dependencies
outside the standard library: it includes its own small asynchronous D-Bus
client.

## Installation

```
pip install .
```

For the test suite:

```
pip install ".[test]"
pytest
```

## Command line

List the profiles. The active profile comes first, followed by ` (active)`.
When the output goes to a terminal and `NO_COLOR` is not set, it is shown in
bold green:

```
tailor profile list
```

Make a profile active and have the daemon reload:

```
tailor profile set <name>
```

Switch to the profile listed before the active one. From the first profile it
wraps around to the last. `-v`/`--verbose` prints `Current profile: <name>`.
`-n`/`--notify` sends a desktop notification over the session bus:

```
tailor profile cycle --verbose --notify
```

`tailor --version` prints the version. When a command fails, the error is
printed to standard error and the exit status is 1.

The system bus is found through `DBUS_SYSTEM_BUS_ADDRESS`, or at
`/var/run/dbus/system_bus_socket` when that is not set. Notifications need
`DBUS_SESSION_BUS_ADDRESS`.

## Library

```python
import asyncio

from tailor.client import TailorConnection
from tailor.profile import FanProfilePoint


async def demo():
    async with await TailorConnection.connect() as connection:
        print(await connection.list_global_profiles())
        await connection.add_fan_profile(
            "quiet",
            [FanProfilePoint(temp=30, fan=20), FanProfilePoint(temp=70, fan=100)],
        )
        print(await connection.get_fan_profile("quiet"))


asyncio.run(demo())
```

`TailorConnection.connect()` opens the system bus. If you pass it a
`BusConnection` that is already open, it uses that one, and `close()` leaves
it open. The connection covers global profiles, fan profiles, LED profiles
and performance profiles: add, get, list, copy, rename and remove. It also
covers the active profile, `reload()`, the fan count, the LED devices, and
temporary fan speed and LED color overrides. A failed call raises
`tailor.client.ClientError`. Its `kind` is `"bus"` or `"serialization"`.

### Modules

- `tailor.color`: `Color` (parsed from six hex digits with
  `Color.parse("00FFac")`, printed as `0x00FFAC`, converted to and from sysfs
  brightness strings), `ColorPoint`, `ColorTransition`, and the color
  profiles `ColorProfileNone`, `ColorProfileSingle` and `ColorProfileMultiple`,
  with `color_profile_to_json` / `color_profile_from_json` and
  `default_color_profile(mode)`.
- `tailor.led`: `LedControllerMode` and `LedDeviceInfo`
  (`device_id()` gives `<device_name>::<function>`).
- `tailor.profile`: `FanProfilePoint`, `LedProfile` and `ProfileInfo`, with
  `fan_profile_to_json` / `fan_profile_from_json`. These types produce the
  same JSON that the daemon reads and writes.
- `tailor.dbus`: the bus client. It provides `BusConnection` (unix and tcp
  transports, EXTERNAL authentication), `encode_message` / `decode_message`,
  `parse_address`, and `BusError`.
- `tailor.proxies`: `ProfilesProxy`, `FanProxy`, `LedProxy` and
  `PerformanceProxy` for the daemon's `com.tux.Tailor.*` interfaces.
- `tailor.state`: `StateStore`, an observable store. It keeps a local copy of
  the daemon's profile lists. It applies messages such as `AddProfile` or
  `RenameFanProfile` and forwards them to the daemon as background tasks.
  `initialize_state(connection, store)` loads it and returns the
  `HardwareCapabilities`.
- `tailor.fan_curve`: `FanCurveEditor`, the canvas geometry and editing rules
  for a fan curve. It adds, finds and moves points, stays out of the danger
  zone, and removes duplicates.
- `tailor.display`: `comma_list`, `comma_list_optional`, `rgba_to_color` and
  `color_to_rgba`.

## What it does not do

This package is only a client. It does not include the daemon, and it does not
touch the hardware itself. It has no graphical interface. `tailor.state`,
`tailor.fan_curve` and `tailor.display` provide the logic a front end needs,
but no windows or widgets.
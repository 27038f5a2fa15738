import json

import pytest

from tailor.led import LedControllerMode
from tailor.profile import (
    FanProfilePoint,
    LedProfile,
    ProfileInfo,
    fan_profile_from_json,
    fan_profile_to_json,
)


def test_profile_info_defaults():
    info = ProfileInfo()
    assert info.fans == ["default"]
    assert info.leds == []
    assert info.performance_profile is None


def test_profile_info_defaults_are_not_shared():
    first = ProfileInfo()
    first.fans.append("other")
    assert ProfileInfo().fans == ["default"]


def test_profile_info_round_trip():
    info = ProfileInfo(
        fans=["silent", "default"],
        leds=[LedProfile("rgb", "kbd_backlight", "default", LedControllerMode.RGB)],
        performance_profile="power_save",
    )
    assert ProfileInfo.from_dict(info.to_dict()) == info
    assert ProfileInfo.from_dict(json.loads(json.dumps(info.to_dict()))) == info


def test_missing_performance_profile_is_none():
    info = ProfileInfo.from_dict({"fans": ["a"], "leds": []})
    assert info.performance_profile is None
    assert info.fans == ["a"]


def test_missing_fans_rejected():
    with pytest.raises(ValueError):
        ProfileInfo.from_dict({"leds": []})


def test_led_profile_mode_defaults_to_rgb():
    led = LedProfile.from_dict({"device_name": "d", "function": "f", "profile": "p"})
    assert led.mode is LedControllerMode.RGB


def test_led_profile_round_trip_monochrome():
    led = LedProfile("white", "kbd_backlight", "night", LedControllerMode.MONOCHROME)
    assert led.to_dict()["mode"] == "Monochrome"
    assert LedProfile.from_dict(led.to_dict()) == led


def test_fan_point_dict_round_trip():
    point = FanProfilePoint(temp=30, fan=20)
    assert point.to_dict() == {"temp": 30, "fan": 20}
    assert FanProfilePoint.from_dict(point.to_dict()) == point


def test_fan_point_out_of_range_rejected():
    with pytest.raises(ValueError):
        FanProfilePoint(temp=256, fan=0)


def test_fan_profile_json_text():
    assert fan_profile_to_json([FanProfilePoint(30, 20)]) == '[{"temp":30,"fan":20}]'


def test_fan_profile_json_round_trip():
    profile = [FanProfilePoint(30, 20), FanProfilePoint(70, 100)]
    assert fan_profile_from_json(fan_profile_to_json(profile)) == profile


@pytest.mark.parametrize("text", ['{"temp": 1}', '[{"temp": 1}]', "nope"])
def test_bad_fan_profile_json_rejected(text):
    with pytest.raises(ValueError):
        fan_profile_from_json(text)
import math

import pytest

from tailor.color import Color
from tailor.display import color_to_rgba, comma_list, comma_list_optional, rgba_to_color


def test_comma_list_prefixes_items():
    assert comma_list(["a", "b"]) == ", a, b"


def test_comma_list_empty():
    assert comma_list([]) == ""


def test_comma_list_accepts_generators():
    items = ["x", "y", "z"]
    assert comma_list(item for item in items) == comma_list(items)


def test_comma_list_optional_none():
    assert comma_list_optional(None) == "Device not available"


def test_comma_list_optional_present():
    assert comma_list_optional(["a"]) == comma_list(["a"])


def test_rgba_to_color_rounds_half_up():
    assert rgba_to_color(1.0, 0.0, 0.5) == Color(255, 0, 128)


def test_rgba_to_color_saturates():
    assert rgba_to_color(2.0, -1.0, math.nan) == Color(255, 0, 0)


@pytest.mark.parametrize(
    "color", [Color(0, 0, 0), Color(255, 255, 255), Color(1, 127, 254), Color(17, 99, 200)]
)
def test_color_rgba_round_trip(color):
    red, green, blue, _alpha = color_to_rgba(color)
    assert rgba_to_color(red, green, blue) == color


def test_color_to_rgba_is_opaque_and_in_range():
    components = color_to_rgba(Color(10, 20, 30))
    assert components[3] == 1.0
    assert all(0.0 <= c <= 1.0 for c in components)
import pytest

from tailor.fan_curve import (
    FanCurveEditor,
    fan_to_y,
    temp_to_x,
    x_to_temp,
    y_to_fan,
)
from tailor.profile import FanProfilePoint


def _editor(points, width=300, height=205):
    return FanCurveEditor(
        [FanProfilePoint(temp=t, fan=f) for t, f in points], width, height
    )


@pytest.mark.parametrize("x", [0.0, 12.5, 150.0, 299.0])
def test_x_temp_round_trip(x):
    assert temp_to_x(x_to_temp(x, 75.0, 300.0), 75.0, 300.0) == pytest.approx(x)


@pytest.mark.parametrize("y", [0.0, 40.0, 120.0, 200.0])
def test_y_fan_round_trip(y):
    assert fan_to_y(y_to_fan(y, 200.0), 200.0) == pytest.approx(y)


def test_left_edge_is_min_temp_and_bottom_is_zero_fan():
    assert x_to_temp(0.0, 75.0, 300.0) == 20.0
    assert y_to_fan(200.0, 200.0) == 0.0
    assert temp_to_x(10.0, 75.0, 300.0) == 0.0


def test_temp_range_defaults_without_points():
    assert _editor([]).temp_range() == 85.0


def test_temp_range_follows_last_point():
    editor = _editor([(30, 20), (90, 100)])
    assert editor.temp_range() == 75.0


def test_drawn_points_round_trip_through_nearest_point():
    editor = _editor([(30, 20), (50, 40), (90, 100)])
    for idx, (x, y) in enumerate(editor.drawn_points()):
        assert editor.nearest_point(x, y, 1.0) == idx


def test_nearest_point_far_away_and_empty():
    editor = _editor([(30, 20), (90, 100)])
    assert editor.nearest_point(-1000.0, -1000.0, 15.0) is None
    assert _editor([]).nearest_point(0.0, 0.0, 15.0) is None


def test_add_point_refused_in_danger_zone():
    editor = _editor([(30, 20), (90, 100)])
    assert editor.add_point(300.0, 200.0) is None
    assert len(editor.profile) == 2


def test_add_point_below_first_goes_to_index_one():
    editor = _editor([(30, 20), (90, 100)])
    idx = editor.add_point(0.0, 200.0)
    assert idx == 1
    assert editor.profile[1].temp == 20
    assert len(editor.profile) == 3


def test_add_point_past_last_is_appended():
    editor = _editor([(30, 20), (90, 100)])
    idx = editor.add_point(300.0, 0.0)
    assert idx == len(editor.profile) - 1 == 2
    assert editor.profile[-1].fan == 100


def test_add_point_in_middle_keeps_order():
    editor = _editor([(30, 20), (90, 100)])
    x, _ = editor.drawn_points()[1]
    idx = editor.add_point(x / 2, 0.0)
    assert idx == 1
    temps = [p.temp for p in editor.profile]
    assert temps == sorted(temps)


def test_move_point_into_danger_zone_is_corrected():
    editor = _editor([(30, 20), (90, 100)])
    x, _ = editor.drawn_points()[1]
    point = editor.move_point(1, x, 200.0)
    assert editor.in_danger_zone is True
    assert point.temp == 90
    assert point.fan == 75
    assert editor.profile[1] == point


def test_move_point_steps_off_neighbour_temperature():
    editor = _editor([(30, 20), (50, 40), (70, 100)], width=275)
    x, _ = editor.drawn_points()[2]
    point = editor.move_point(1, x, 120.0)
    assert point.fan == 46
    assert point.temp == editor.profile[2].temp - 1
    assert editor.in_danger_zone is False


def test_move_point_clamped_between_neighbours_then_deduplicated():
    editor = _editor([(30, 20), (50, 40), (90, 100)])
    point = editor.move_point(1, 1000.0, -1000.0)
    assert point == editor.profile[2]
    editor.eliminate_duplicates()
    assert editor.profile == [
        FanProfilePoint(temp=30, fan=20),
        FanProfilePoint(temp=90, fan=100),
    ]


def test_move_first_point_stays_at_min_temp():
    editor = _editor([(30, 20), (90, 100)])
    point = editor.move_point(0, -500.0, 200.0)
    assert point.temp == 20
    assert point.fan == 0


def test_move_point_bad_index():
    editor = _editor([(30, 20)])
    with pytest.raises(IndexError):
        editor.move_point(3, 0.0, 0.0)


def test_eliminate_duplicates_only_consecutive():
    editor = _editor([(30, 20), (30, 20), (50, 40), (30, 20)])
    editor.eliminate_duplicates()
    assert [(p.temp, p.fan) for p in editor.profile] == [(30, 20), (50, 40), (30, 20)]
"""Geometry and editing rules for a fan curve drawn on a canvas.

The curve maps temperatures (20..100 °C) to fan speeds (0..100 %). Points are
kept ordered by temperature, and a point may never sit in the danger zone
where the fan runs too slowly for a high temperature.
"""

from __future__ import annotations

import math
from itertools import groupby
from typing import Iterable, Optional

from .profile import FanProfilePoint

MIN_TEMP = 20
MAX_TEMP = 100
MIN_FAN = 0
MAX_FAN = 100
_DEFAULT_LAST_TEMP = 100.0
_BOTTOM_MARGIN = 5


def x_to_temp(x: float, temp_range: float, width: float) -> float:
    """Convert a horizontal canvas position to a temperature."""
    return x * temp_range / width + 20.0


def temp_to_x(temp: float, temp_range: float, width: float) -> float:
    """Convert a temperature to a horizontal canvas position."""
    return max(temp - 20.0, 0.0) * width / temp_range


def y_to_fan(y: float, height: float) -> float:
    """Convert a vertical canvas position to a fan speed."""
    return (height - y) * 115.0 / height


def fan_to_y(fan: float, height: float) -> float:
    """Convert a fan speed to a vertical canvas position."""
    return height - fan * height / 115.0


def _clamped_int(value: float, low: int, high: int) -> int:
    if math.isnan(value):
        return 0
    return int(min(max(value, float(low)), float(high)))


def _safety_fan_speed(temp: int) -> int:
    """Lowest fan speed allowed at ``temp`` when dragging a point."""
    return min(max(temp - 75, 0) * 5, 255)


class FanCurveEditor:
    """A fan profile being edited on a canvas of ``width`` x ``height`` pixels."""

    def __init__(
        self, profile: Iterable[FanProfilePoint], width: float, height: float
    ) -> None:
        self.profile: list[FanProfilePoint] = list(profile)
        self.width = width
        self.height = height
        self.in_danger_zone = False

    def _dimensions(self) -> tuple[float, float]:
        return float(self.width), float(self.height - _BOTTOM_MARGIN)

    def temp_range(self) -> float:
        """Temperature span shown across the canvas width."""
        last = float(self.profile[-1].temp) if self.profile else _DEFAULT_LAST_TEMP
        return last - 15.0

    def drawn_points(self) -> list[tuple[float, float]]:
        """Canvas positions of the profile points, in order."""
        temp_range = self.temp_range()
        width, height = self._dimensions()
        return [
            (
                temp_to_x(float(point.temp), temp_range, width),
                fan_to_y(float(point.fan), height),
            )
            for point in self.profile
        ]

    def add_point(self, x: float, y: float) -> Optional[int]:
        """Insert a point at a canvas position; returns its index, or None if refused."""
        temp_range = self.temp_range()
        width, height = self._dimensions()
        temp = _clamped_int(x_to_temp(x, temp_range, width), MIN_TEMP, MAX_TEMP)
        fan = _clamped_int(y_to_fan(y, height), MIN_FAN, MAX_FAN)

        if fan < max(temp - 50, 0) * 2:
            return None

        point = FanProfilePoint(temp=temp, fan=fan)
        position = next(
            (idx for idx, existing in enumerate(self.profile) if existing.temp > temp),
            None,
        )
        if position is None:
            self.profile.append(point)
            return len(self.profile) - 1
        position = max(position, 1)
        self.profile.insert(position, point)
        return position

    def nearest_point(self, x: float, y: float, threshold: float) -> Optional[int]:
        """Index of the drawn point closest to ``(x, y)`` if closer than ``threshold``."""
        if not self.profile:
            return None
        best_idx: Optional[int] = None
        best_dist = math.inf
        for idx, (px, py) in enumerate(self.drawn_points()):
            dist = math.hypot(px - x, py - y)
            if dist < best_dist:
                best_dist = dist
                best_idx = idx
        return best_idx if best_dist < threshold else None

    def move_point(self, index: int, x: float, y: float) -> FanProfilePoint:
        """Move the point at ``index`` towards a canvas position, within its limits.

        The point stays between its neighbours and out of the danger zone;
        ``in_danger_zone`` tells whether the move had to be corrected for it.
        """
        self.in_danger_zone = False
        if not 0 <= index < len(self.profile):
            raise IndexError(f"no point at index {index}")
        temp_range = self.temp_range()
        width, height = self._dimensions()

        temp = _clamped_int(x_to_temp(x, temp_range, width), MIN_TEMP, MAX_TEMP)
        fan = _clamped_int(y_to_fan(y, height), MIN_FAN, MAX_FAN)

        prev = self.profile[index - 1] if index > 0 else None
        nxt = self.profile[index + 1] if index < len(self.profile) - 1 else None

        min_fan = prev.fan if prev is not None else MIN_FAN
        max_fan = max(nxt.fan if nxt is not None else MAX_FAN, min_fan)
        fan = min(max(fan, min_fan), max_fan)

        min_temp = prev.temp if prev is not None else MIN_TEMP
        max_temp = nxt.temp if nxt is not None else MAX_TEMP
        if min_temp > max_temp:
            raise ValueError("profile is not ordered by temperature")
        temp = min(max(temp, min_temp), max_temp)

        if prev is not None and prev.fan != fan and prev.temp == temp:
            temp += 1
        if nxt is not None and nxt.fan != fan and nxt.temp == temp:
            temp -= 1

        safety = _safety_fan_speed(temp)
        if fan < safety:
            self.in_danger_zone = True
            fan = safety

        point = FanProfilePoint(temp=temp, fan=fan)
        self.profile[index] = point
        return point

    def eliminate_duplicates(self) -> None:
        """Drop points equal to the point right before them."""
        self.profile = [point for point, _ in groupby(self.profile)]
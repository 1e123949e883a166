"""
Sensor heading filters: raw motion-sensor samples to 2D pointer headings.

Each filter keeps a calibration origin, the raw reading treated as the
sensor's "zero". Subsequent samples are expressed as deltas from that origin,
scaled by a per-sensor gain and passed through a dead-zone that clamps small
deltas to exactly zero so a device held still does not drift the pointer.

Sensor variants:
- Accelerometer (id 1): gain 1, tilt maps straight onto pointer velocity
- Gyroscope (id 2): gain 10, angular-rate deltas are proportionally smaller

Variants differ only in data (gain, display name), so a single class is
configured per sensor type by create_filter() instead of subclassing.

Usage:
    heading_filter = create_filter(SensorType.GYROSCOPE)
    heading_filter.process_sample([0.10, 0.20, 9.8])    # -> None, origin stored
    heading_filter.process_sample([0.35, 0.20, 9.8])    # -> Heading(x=-2.5, y=0.0)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Sequence

import numpy as np

from airmouse.utils.config import Config
from airmouse.utils.config_sections import FilterConfig, load_filter_config

MIN_SAMPLE_ARITY = 2


class FilterError(Exception):
    """Base exception for heading filter errors"""
    pass

class InvalidSample(FilterError):
    """Raw sample does not carry enough values"""
    pass

class UnknownSensorType(FilterError):
    """Sensor type id has no filter"""
    pass


class SensorType(IntEnum):
    """Well-known sensor ids sent by the device."""

    ACCELEROMETER = Config.SENSOR_ACCELEROMETER
    GYROSCOPE = Config.SENSOR_GYROSCOPE


@dataclass(frozen=True)
class Heading:
    """Desired pointer velocity (not an absolute position)."""

    x: float
    y: float

    def is_zero(self) -> bool:
        return self.x == 0 and self.y == 0


class HeadingFilter:
    """Delta-from-origin filter with a gain and a joint dead-zone."""

    def __init__(self, sensor_type: SensorType, name: str, gain: float, dead_zone: float = 1.0) -> None:
        self.sensor_type = sensor_type
        self.name = name
        self.gain = float(gain)
        self.dead_zone = float(dead_zone)
        self.origin: Optional[np.ndarray] = None

    def process_sample(self, values: Sequence[float]) -> Optional[Heading]:
        """
        Turn one raw sample into a heading.

        Args:
            values: x, y and an optional z reading. z is reserved for future
                sensor fusion and currently unused.

        Returns:
            None when the sample became the calibration origin, otherwise the
            heading (x axis inverted so tilting right moves the pointer right).
        """
        if len(values) < MIN_SAMPLE_ARITY:
            raise InvalidSample(
                f"Sensor sample needs at least {MIN_SAMPLE_ARITY} values, got {len(values)}"
            )

        planar = np.asarray(values[:MIN_SAMPLE_ARITY], dtype=float)
        if not np.all(np.isfinite(planar)):
            raise InvalidSample(f"Sensor sample is not finite: {list(values)}")

        if self.origin is None:
            self.origin = planar
            return None

        delta = (planar - self.origin) * self.gain

        # Both axes inside (-dead_zone, dead_zone) -> treat as noise
        if np.all(np.abs(delta) < self.dead_zone):
            delta = np.zeros(2)

        dx, dy = (float(v) for v in delta)
        return Heading(-dx, dy)

    def recalibrate(self) -> None:
        """Forget the origin; the next sample becomes the new zero."""
        self.origin = None

    @property
    def is_calibrated(self) -> bool:
        return self.origin is not None

    def display_name(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"<HeadingFilter {self.name} gain={self.gain:g} calibrated={self.is_calibrated}>"


def create_filter(sensor_type_id: int, config: Optional[FilterConfig] = None) -> HeadingFilter:
    """
    Build the heading filter for a sensor id announced by the device.

    Raises:
        UnknownSensorType: id is neither accelerometer nor gyroscope.
    """
    cfg = config or load_filter_config()

    try:
        sensor_type = SensorType(int(sensor_type_id))
    except ValueError as exc:
        raise UnknownSensorType(f"Unknown sensor type: {sensor_type_id}") from exc

    if sensor_type is SensorType.ACCELEROMETER:
        return HeadingFilter(sensor_type, "Accelerometer", cfg.accelerometer_gain, cfg.dead_zone)
    return HeadingFilter(sensor_type, "Gyroscope", cfg.gyroscope_gain, cfg.dead_zone)

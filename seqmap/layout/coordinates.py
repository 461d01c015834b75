"""
Coordinate mapping

Sequence positions to linear pixels or angles, and back. Angles are in
radians, 0 at twelve o'clock, increasing clockwise.
"""
from __future__ import annotations
from typing import Tuple, Union
import math
import numpy as np

Number = Union[int, float, np.ndarray]


class CoordinateMapper:
    """
    Linear map from the domain [0, sequence_length] onto a range

    Use CoordinateMapper.linear() for pixel offsets and
    CoordinateMapper.circular() for angles. A sequence length of zero or less
    gives a degenerate mapper that sends every position to the range origin.
    """

    def __init__(self, sequence_length: int, range_start: float, range_end: float):
        """
        Initialize mapper

        Args:
            sequence_length: Sequence length (bp)
            range_start: Output value for position 0
            range_end: Output value for position sequence_length
        """
        self.sequence_length = sequence_length
        self.range_start = range_start
        self.range_end = range_end

    @classmethod
    def linear(cls, sequence_length: int, content_width: float, offset: float = 0.0) -> 'CoordinateMapper':
        """Position -> x pixel over [offset, offset + content_width]"""
        return cls(sequence_length, offset, offset + content_width)

    @classmethod
    def circular(cls, sequence_length: int) -> 'CoordinateMapper':
        """Position -> angle over [0, 2*pi]"""
        return cls(sequence_length, 0.0, 2 * math.pi)

    @property
    def is_degenerate(self) -> bool:
        """True when the domain is empty"""
        return self.sequence_length <= 0

    @property
    def units_per_position(self) -> float:
        """Range units covered by one base"""
        if self.is_degenerate:
            return 0.0
        return (self.range_end - self.range_start) / self.sequence_length

    @property
    def period(self) -> float:
        """Range width, i.e. the full circle for circular mappers"""
        return self.range_end - self.range_start

    def scale(self, position: Number) -> Number:
        """Map a position (or array of positions) into the range"""
        if self.is_degenerate:
            if isinstance(position, np.ndarray):
                return np.full_like(position, self.range_start, dtype=float)
            return self.range_start
        return self.range_start + position * self.units_per_position

    def invert(self, value: Number) -> Number:
        """Map a range value back to a sequence position"""
        if self.is_degenerate or self.units_per_position == 0:
            if isinstance(value, np.ndarray):
                return np.zeros_like(value, dtype=float)
            return 0.0
        return (value - self.range_start) / self.units_per_position

    def to_pixel(self, position: Number) -> Number:
        """Sequence position -> x pixel"""
        return self.scale(position)

    def from_pixel(self, x: Number) -> Number:
        """x pixel -> sequence position"""
        return self.invert(x)

    def to_angle(self, position: Number) -> Number:
        """Sequence position -> angle (radians)"""
        return self.scale(position)

    def from_angle(self, angle: Number) -> Number:
        """Angle (radians) -> sequence position"""
        return self.invert(angle)

    def __repr__(self) -> str:
        return (f"CoordinateMapper(sequence_length={self.sequence_length}, "
                f"range=[{self.range_start}, {self.range_end}])")


def polar_to_cartesian(radius: float, angle: float) -> Tuple[float, float]:
    """
    Polar -> cartesian with angle 0 at twelve o'clock, clockwise

    Args:
        radius: Distance from centre (px)
        angle: Angle (radians)

    Returns:
        (x, y) relative to the centre, y growing downwards
    """
    return radius * math.sin(angle), -radius * math.cos(angle)


def tangent(angle: float, reverse: bool = False) -> Tuple[float, float]:
    """Unit vector along increasing angle (decreasing when reverse)"""
    dx, dy = math.cos(angle), math.sin(angle)
    if reverse:
        return -dx, -dy
    return dx, dy


def angle_of(x: float, y: float) -> float:
    """Inverse of polar_to_cartesian for the angle, in [0, 2*pi)"""
    return math.atan2(x, -y) % (2 * math.pi)

"""Vector and quaternion helpers for device orientation and position."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterator


@dataclass(frozen=True)
class Vector3:
    """An immutable three-component vector."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def apply_quaternion(self, q: Quaternion) -> Vector3:
        """Return this vector rotated by the quaternion ``q``."""
        ix = q.w * self.x + q.y * self.z - q.z * self.y
        iy = q.w * self.y + q.z * self.x - q.x * self.z
        iz = q.w * self.z + q.x * self.y - q.y * self.x
        iw = -q.x * self.x - q.y * self.y - q.z * self.z
        return Vector3(
            ix * q.w + iw * -q.x + iy * -q.z - iz * -q.y,
            iy * q.w + iw * -q.y + iz * -q.x - ix * -q.z,
            iz * q.w + iw * -q.z + ix * -q.y - iy * -q.x,
        )

    def scale(self, factor: float) -> Vector3:
        return Vector3(self.x * factor, self.y * factor, self.z * factor)

    def length(self) -> float:
        return math.sqrt(self.x * self.x + self.y * self.y + self.z * self.z)

    def __add__(self, other: object) -> Vector3:
        if not isinstance(other, Vector3):
            return NotImplemented
        return Vector3(self.x + other.x, self.y + other.y, self.z + other.z)

    def __neg__(self) -> Vector3:
        return Vector3(-self.x, -self.y, -self.z)

    def __iter__(self) -> Iterator[float]:
        yield self.x
        yield self.y
        yield self.z


@dataclass(frozen=True)
class Quaternion:
    """An immutable rotation quaternion; the default is the identity."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    w: float = 1.0

    def __mul__(self, other: object) -> Quaternion:
        if not isinstance(other, Quaternion):
            return NotImplemented
        a, b = self, other
        return Quaternion(
            a.x * b.w + a.w * b.x + a.y * b.z - a.z * b.y,
            a.y * b.w + a.w * b.y + a.z * b.x - a.x * b.z,
            a.z * b.w + a.w * b.z + a.x * b.y - a.y * b.x,
            a.w * b.w - a.x * b.x - a.y * b.y - a.z * b.z,
        )

    def length(self) -> float:
        return math.sqrt(self.x**2 + self.y**2 + self.z**2 + self.w**2)

    def to_euler(self) -> Vector3:
        """Euler angles in radians, XYZ order."""
        x, y, z, w = self.x, self.y, self.z, self.w
        m11 = 1 - 2 * (y * y + z * z)
        m12 = 2 * (x * y - w * z)
        m13 = 2 * (x * z + w * y)
        m22 = 1 - 2 * (x * x + z * z)
        m23 = 2 * (y * z - w * x)
        m32 = 2 * (y * z + w * x)
        m33 = 1 - 2 * (x * x + y * y)

        ey = math.asin(max(-1.0, min(1.0, m13)))
        if abs(m13) < 0.99999:
            ex = math.atan2(-m23, m33)
            ez = math.atan2(-m12, m11)
        else:
            ex = math.atan2(m32, m22)
            ez = 0.0
        return Vector3(ex, ey, ez)


def rotate_on_axis(x: float, y: float, z: float, angle: float) -> Quaternion:
    """Quaternion for a rotation of ``angle`` radians about the axis (x, y, z)."""
    factor = math.sin(angle / 2)
    return Quaternion(x * factor, y * factor, z * factor, math.cos(angle / 2))


# Maps the sensor frame onto the scene frame: 90 degrees about X, then about Z.
ROBOT_PROJECTION = rotate_on_axis(1, 0, 0, math.pi / 2) * rotate_on_axis(0, 0, 1, math.pi / 2)
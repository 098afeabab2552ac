"""Z-up trackball-style camera controls for scene and mesh viewers."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np

from arenakit.scene import Camera, angle_axis, quat_multiply, quat_rotate, quat_to_mat3

_PI = 3.1415926
_TWO_PI = 2.0 * _PI
_MIN_RADIUS = 1e-1
_MAX_RADIUS = 1e6
_Z_AXIS = (0.0, 0.0, 1.0)
_X_AXIS = (1.0, 0.0, 0.0)


def _round_half_away(value: float) -> float:
    return math.copysign(math.floor(abs(value) + 0.5), value)


def _wrap_angle(angle: float) -> float:
    """Wrap an angle into [-pi, pi]."""
    turns = angle / _TWO_PI
    turns -= _round_half_away(turns)
    return turns * _TWO_PI


@dataclass
class OrbitCamera:
    """A camera orbiting ``target`` at ``radius``.

    ``azimuth`` is measured counter-clockwise from the -y axis and
    ``elevation`` above the ground plane, both in radians within [-pi, pi].
    """

    radius: float = 2.0
    azimuth: float = 0.3
    elevation: float = 0.2
    target: np.ndarray = field(default_factory=lambda: np.zeros(3))
    flip_x: bool = False

    def __post_init__(self) -> None:
        self.target = np.array(self.target, dtype=float).reshape(3)

    def _rotation(self) -> np.ndarray:
        return quat_multiply(
            angle_axis(self.azimuth, _Z_AXIS),
            angle_axis(0.5 * _PI - self.elevation, _X_AXIS),
        )

    def begin_drag(self) -> None:
        """Start a drag; reverse azimuth motion when the camera is upside-down."""
        self.flip_x = abs(self.elevation) > 0.5 * _PI

    def drag(self, xrel: float, yrel: float, window_size: Sequence[float],
             pan: bool = False, rotation: Optional[Sequence[float]] = None) -> None:
        """Apply a mouse motion of (``xrel``, ``yrel``) window pixels.

        With ``pan`` the target slides in the camera's view plane, whose
        orientation is ``rotation`` (defaulting to the orbit's own);
        otherwise the camera tumbles around the target.
        """
        width, height = (float(v) for v in window_size)
        dx = xrel / width * 2.0
        dx *= height / width
        dy = yrel / height * -2.0

        if pan:
            quat = self._rotation() if rotation is None else np.asarray(rotation, dtype=float)
            frame = quat_to_mat3(quat)
            self.target = self.target - (
                frame[:, 0] * (dx * self.radius) + frame[:, 1] * (dy * self.radius)
            )
        else:
            self.azimuth -= 3.0 * dx * (-1.0 if self.flip_x else 1.0)
            self.elevation -= 3.0 * dy
            self.azimuth = _wrap_angle(self.azimuth)
            self.elevation = _wrap_angle(self.elevation)

    def dolly(self, wheel_y: float) -> None:
        """Move toward or away from the target for a mouse-wheel step."""
        self.radius *= 0.5 ** (0.1 * wheel_y)
        self.radius = min(max(self.radius, _MIN_RADIUS), _MAX_RADIUS)

    def apply(self, camera: Camera, drawable_size: Sequence[float]) -> None:
        """Place ``camera``'s transform on the orbit and set its aspect ratio."""
        rotation = self._rotation()
        transform = camera.transform
        transform.rotation = rotation
        transform.position = self.target + self.radius * quat_rotate(rotation, _Z_AXIS)
        transform.scale = np.ones(3)
        width, height = (float(v) for v in drawable_size)
        camera.aspect = width / height
"""Hierarchical scenes of transforms, drawables, cameras and lights.

Matrices are numpy arrays in row-major form: an affine "4x3" transform is a
``(3, 4)`` array whose last column is the translation, and a projection is a
``(4, 4)`` array. Quaternions are ``(w, x, y, z)`` arrays.
"""

from __future__ import annotations

import dataclasses
import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import BinaryIO, Callable, Dict, List, Optional, Sequence

import numpy as np

from arenakit.chunks import read_chunk, read_records

log = logging.getLogger(__name__)

GL_TRIANGLES = 0x0004
GL_TEXTURE_2D = 0x0DE1
NO_LOCATION = 0xFFFFFFFF
TEXTURE_COUNT = 4

_NO_PARENT = 0xFFFFFFFF
_PI = 3.1415926

_HIERARCHY_FMT = "<3I3f4f3f"
_MESH_FMT = "<3I"
_CAMERA_FMT = "<I4s3f"
_LIGHT_FMT = "<Ic3B3f"


class SceneError(RuntimeError):
    """Raised when a scene file is malformed."""


# ---------------------------------------------------------------- quaternions


def quat_multiply(a, b) -> np.ndarray:
    """Hamilton product ``a * b`` of two ``(w, x, y, z)`` quaternions."""
    aw, ax, ay, az = (float(v) for v in a)
    bw, bx, by, bz = (float(v) for v in b)
    return np.array([
        aw * bw - ax * bx - ay * by - az * bz,
        aw * bx + ax * bw + ay * bz - az * by,
        aw * by - ax * bz + ay * bw + az * bx,
        aw * bz + ax * by - ay * bx + az * bw,
    ])


def quat_inverse(q) -> np.ndarray:
    """Inverse of a quaternion: its conjugate divided by its squared norm."""
    q = np.asarray(q, dtype=float)
    conj = np.array([q[0], -q[1], -q[2], -q[3]])
    return conj / float(np.dot(q, q))


def quat_to_mat3(q) -> np.ndarray:
    """Rotation matrix ``(3, 3)`` of a unit quaternion."""
    w, x, y, z = (float(v) for v in q)
    return np.array([
        [1 - 2 * (y * y + z * z), 2 * (x * y - w * z), 2 * (x * z + w * y)],
        [2 * (x * y + w * z), 1 - 2 * (x * x + z * z), 2 * (y * z - w * x)],
        [2 * (x * z - w * y), 2 * (y * z + w * x), 1 - 2 * (x * x + y * y)],
    ])


def angle_axis(angle: float, axis) -> np.ndarray:
    """Quaternion rotating by ``angle`` radians about the unit vector ``axis``."""
    axis = np.asarray(axis, dtype=float)
    half = 0.5 * angle
    return np.concatenate(([math.cos(half)], axis * math.sin(half)))


def quat_rotate(q, v) -> np.ndarray:
    """Rotate the 3-vector ``v`` by quaternion ``q``."""
    return quat_to_mat3(q) @ np.asarray(v, dtype=float)


def _pad(m: np.ndarray) -> np.ndarray:
    """Extend a ``(3, 4)`` affine matrix to ``(4, 4)`` with a (0, 0, 0, 1) row."""
    return np.vstack([m, [0.0, 0.0, 0.0, 1.0]])


def _vec(values) -> np.ndarray:
    return np.array(values, dtype=float)


# ---------------------------------------------------------------- parts


@dataclass(eq=False)
class Transform:
    """A position, rotation and scale, optionally relative to a parent."""

    name: str = ""
    position: np.ndarray = field(default_factory=lambda: _vec([0.0, 0.0, 0.0]))
    rotation: np.ndarray = field(default_factory=lambda: _vec([1.0, 0.0, 0.0, 0.0]))
    scale: np.ndarray = field(default_factory=lambda: _vec([1.0, 1.0, 1.0]))
    parent: Optional["Transform"] = None

    def __post_init__(self) -> None:
        self.position = _vec(self.position)
        self.rotation = _vec(self.rotation)
        self.scale = _vec(self.scale)

    def make_local_to_parent(self) -> np.ndarray:
        """Translate * rotate * scale, as a ``(3, 4)`` matrix."""
        rot = quat_to_mat3(self.rotation) * self.scale[np.newaxis, :]
        return np.column_stack([rot, self.position])

    def make_parent_to_local(self) -> np.ndarray:
        """Inverse of :meth:`make_local_to_parent`; zero scales give zero rows."""
        inv_scale = np.array([0.0 if s == 0.0 else 1.0 / s for s in self.scale])
        inv_rot = quat_to_mat3(quat_inverse(self.rotation)) * inv_scale[:, np.newaxis]
        return np.column_stack([inv_rot, inv_rot @ -self.position])

    def make_local_to_world(self) -> np.ndarray:
        if self.parent is None:
            return self.make_local_to_parent()
        return self.parent.make_local_to_world() @ _pad(self.make_local_to_parent())

    def make_world_to_local(self) -> np.ndarray:
        if self.parent is None:
            return self.make_parent_to_local()
        return self.make_parent_to_local() @ _pad(self.parent.make_world_to_local())


@dataclass
class TextureInfo:
    texture: int = 0
    target: int = GL_TEXTURE_2D


@dataclass
class Pipeline:
    """Everything needed to draw one object with a shader program."""

    program: int = 0
    vao: int = 0
    type: int = GL_TRIANGLES
    start: int = 0
    count: int = 0
    OBJECT_TO_CLIP_mat4: int = NO_LOCATION
    OBJECT_TO_LIGHT_mat4x3: int = NO_LOCATION
    NORMAL_TO_LIGHT_mat3: int = NO_LOCATION
    set_uniforms: Optional[Callable[[], None]] = None
    textures: List[TextureInfo] = field(
        default_factory=lambda: [TextureInfo() for _ in range(TEXTURE_COUNT)]
    )

    def copy(self) -> "Pipeline":
        return dataclasses.replace(
            self, textures=[dataclasses.replace(t) for t in self.textures]
        )


def _require_transform(transform) -> None:
    if transform is None:
        raise ValueError("a transform is required")


@dataclass(eq=False)
class Drawable:
    transform: Transform
    pipeline: Pipeline = field(default_factory=Pipeline)

    def __post_init__(self) -> None:
        _require_transform(self.transform)


@dataclass(eq=False)
class Camera:
    """Perspective camera looking along its transform's -z axis."""

    transform: Transform
    fovy: float = math.radians(60.0)
    aspect: float = 1.0
    near: float = 0.01

    def __post_init__(self) -> None:
        _require_transform(self.transform)

    def make_projection(self) -> np.ndarray:
        """Infinite perspective projection as a ``(4, 4)`` matrix."""
        tan_half = math.tan(0.5 * self.fovy)
        proj = np.zeros((4, 4))
        proj[0, 0] = 1.0 / (self.aspect * tan_half)
        proj[1, 1] = 1.0 / tan_half
        proj[2, 2] = -1.0
        proj[3, 2] = -1.0
        proj[2, 3] = -2.0 * self.near
        return proj


class LightType(Enum):
    POINT = "p"
    HEMISPHERE = "h"
    SPOT = "s"
    DIRECTIONAL = "d"


@dataclass(eq=False)
class Light:
    transform: Transform
    type: LightType = LightType.POINT
    energy: np.ndarray = field(default_factory=lambda: _vec([1.0, 1.0, 1.0]))
    spot_fov: float = math.radians(45.0)

    def __post_init__(self) -> None:
        _require_transform(self.transform)
        self.energy = _vec(self.energy)


OnDrawable = Callable[["Scene", Transform, str], None]
ExtraLoader = Callable[["Scene", BinaryIO, bytes, Sequence[Transform]], None]


# ---------------------------------------------------------------- scene


@dataclass(eq=False)
class Scene:
    """Transforms plus the drawables, cameras and lights attached to them.

    ``extra_loader``, when set, is called by :meth:`load_extra` to read any
    further chunks that follow the standard ones in a scene file.
    """

    transforms: List[Transform] = field(default_factory=list)
    drawables: List[Drawable] = field(default_factory=list)
    cameras: List[Camera] = field(default_factory=list)
    lights: List[Light] = field(default_factory=list)
    extra_loader: Optional[ExtraLoader] = None

    @classmethod
    def from_file(cls, filename, on_drawable: Optional[OnDrawable] = None) -> "Scene":
        scene = cls()
        scene.load(filename, on_drawable)
        return scene

    def load(self, filename, on_drawable: Optional[OnDrawable] = None) -> None:
        """Add the contents of a scene file; raises on format errors.

        ``on_drawable(scene, transform, mesh_name)`` is called for each mesh
        entry so the caller can attach drawables.
        """
        with open(filename, "rb") as stream:
            names = read_chunk(stream, "str0", 1)
            hierarchy = read_records(stream, "xfh0", _HIERARCHY_FMT)
            meshes = read_records(stream, "msh0", _MESH_FMT)
            cameras = read_records(stream, "cam0", _CAMERA_FMT)
            lights = read_records(stream, "lmp0", _LIGHT_FMT)

            def name_at(begin: int, end: int) -> Optional[str]:
                if begin <= end <= len(names):
                    return names[begin:end].decode("utf-8", errors="replace")
                return None

            loaded: List[Transform] = []
            for entry in hierarchy:
                parent, name_begin, name_end = entry[0:3]
                transform = Transform()
                self.transforms.append(transform)
                if parent != _NO_PARENT:
                    if parent >= len(loaded):
                        raise SceneError(
                            f"scene file '{filename}' did not contain transforms "
                            "in topological-sort order."
                        )
                    transform.parent = loaded[parent]
                name = name_at(name_begin, name_end)
                if name is None:
                    raise SceneError(
                        f"scene file '{filename}' contains hierarchy entry "
                        "with invalid name indices"
                    )
                transform.name = name
                transform.position = _vec(entry[3:6])
                x, y, z, w = entry[6:10]
                transform.rotation = _vec([w, x, y, z])
                transform.scale = _vec(entry[10:13])
                loaded.append(transform)

            for index, name_begin, name_end in meshes:
                if index >= len(loaded):
                    raise SceneError(
                        f"scene file '{filename}' contains mesh entry with "
                        f"invalid transform index ({index})"
                    )
                name = name_at(name_begin, name_end)
                if name is None:
                    raise SceneError(
                        f"scene file '{filename}' contains mesh entry with "
                        "invalid name indices"
                    )
                if on_drawable is not None:
                    on_drawable(self, loaded[index], name)

            for index, kind, data, clip_near, _clip_far in cameras:
                if index >= len(loaded):
                    raise SceneError(
                        f"scene file '{filename}' contains camera entry with "
                        f"invalid transform index ({index})"
                    )
                if kind != b"pers":
                    log.info("Ignoring non-perspective camera (%s) stored in file.",
                             kind.decode("latin-1"))
                    continue
                self.cameras.append(Camera(
                    loaded[index],
                    fovy=data / 180.0 * _PI,
                    near=clip_near,
                ))

            for index, kind, r, g, b, energy, _distance, fov in lights:
                if index >= len(loaded):
                    raise SceneError(
                        f"scene file '{filename}' contains lamp entry with "
                        f"invalid transform index ({index})"
                    )
                try:
                    light_type = LightType(kind.decode("latin-1"))
                except ValueError:
                    log.info("Ignoring unrecognized lamp type (%s) stored in file.",
                             kind.decode("latin-1"))
                    continue
                self.lights.append(Light(
                    loaded[index],
                    type=light_type,
                    energy=_vec([r, g, b]) / 255.0 * energy,
                    spot_fov=fov / 180.0 * _PI,
                ))

            self.load_extra(stream, names, loaded)

            if stream.read(1):
                log.warning("trailing data in scene file '%s'", filename)

    def load_extra(self, stream: BinaryIO, names: bytes,
                   transforms: Sequence[Transform]) -> bool:
        """Read further chunks after the standard ones.

        Delegates to ``extra_loader`` when one is set; subclasses may override.
        Returns whether a loader was run.
        """
        if self.extra_loader is None:
            return False
        self.extra_loader(self, stream, names, transforms)
        return True

    def set(self, other: "Scene") -> Dict[Optional[Transform], Optional[Transform]]:
        """Make this scene a deep copy of ``other``.

        Returns the mapping from ``other``'s transforms to the new ones.
        """
        mapping: Dict[Optional[Transform], Optional[Transform]] = {None: None}
        new_transforms: List[Transform] = []
        for t in other.transforms:
            copy = Transform(
                name=t.name,
                position=t.position.copy(),
                rotation=t.rotation.copy(),
                scale=t.scale.copy(),
                parent=t.parent,
            )
            mapping[t] = copy
            new_transforms.append(copy)
        for t in new_transforms:
            t.parent = mapping[t.parent]

        drawables = [Drawable(mapping[d.transform], d.pipeline.copy())
                     for d in other.drawables]
        cameras = [dataclasses.replace(c, transform=mapping[c.transform])
                   for c in other.cameras]
        lights = [dataclasses.replace(l, transform=mapping[l.transform],
                                      energy=l.energy.copy())
                  for l in other.lights]

        self.transforms = new_transforms
        self.drawables = drawables
        self.cameras = cameras
        self.lights = lights
        return mapping

    def copy(self) -> "Scene":
        scene = type(self)()
        scene.set(self)
        return scene
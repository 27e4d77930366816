"""Geometry model — transforms, sampled poses, meshes and the camera."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence, Union

from raynexport.config import SAMPLE_TIME

Vec3 = tuple[float, float, float]
Vec2 = tuple[float, float]
Triangle = tuple[int, int, int]

_IDENTITY = (
    1.0, 0.0, 0.0, 0.0,
    0.0, 1.0, 0.0, 0.0,
    0.0, 0.0, 1.0, 0.0,
    0.0, 0.0, 0.0, 1.0,
)


@dataclass(frozen=True)
class Transform:
    """Affine transform stored as a row-major 4x4 matrix.

    Equality is exact element-wise comparison with no tolerance, so two
    transforms built by different float paths may compare unequal.
    """

    matrix: tuple[float, ...] = _IDENTITY

    def __post_init__(self) -> None:
        values = tuple(float(v) for v in self.matrix)
        if len(values) != 16:
            raise ValueError(f"Transform needs 16 matrix values, got {len(values)}")
        object.__setattr__(self, "matrix", values)

    @classmethod
    def identity(cls) -> Transform:
        return cls()

    @classmethod
    def translate(cls, dx: float, dy: float, dz: float) -> Transform:
        return cls((
            1, 0, 0, dx,
            0, 1, 0, dy,
            0, 0, 1, dz,
            0, 0, 0, 1,
        ))

    @classmethod
    def scale(cls, sx: float, sy: float, sz: float) -> Transform:
        return cls((
            sx, 0, 0, 0,
            0, sy, 0, 0,
            0, 0, sz, 0,
            0, 0, 0, 1,
        ))

    @classmethod
    def rotate_x(cls, degrees: float) -> Transform:
        s, c = _sin_cos(degrees)
        return cls((
            1, 0, 0, 0,
            0, c, -s, 0,
            0, s, c, 0,
            0, 0, 0, 1,
        ))

    @classmethod
    def rotate_y(cls, degrees: float) -> Transform:
        s, c = _sin_cos(degrees)
        return cls((
            c, 0, s, 0,
            0, 1, 0, 0,
            -s, 0, c, 0,
            0, 0, 0, 1,
        ))

    @classmethod
    def rotate_z(cls, degrees: float) -> Transform:
        s, c = _sin_cos(degrees)
        return cls((
            c, -s, 0, 0,
            s, c, 0, 0,
            0, 0, 1, 0,
            0, 0, 0, 1,
        ))

    def __matmul__(self, other: Transform) -> Transform:
        """Compose: ``(a @ b)`` applies *b* first, then *a*."""
        if not isinstance(other, Transform):
            return NotImplemented
        a, b = self.matrix, other.matrix
        return Transform(tuple(
            sum(a[row * 4 + k] * b[k * 4 + col] for k in range(4))
            for row in range(4)
            for col in range(4)
        ))

    def apply_point(self, point: Sequence[float]) -> Vec3:
        m = self.matrix
        x, y, z = point
        xp = m[0] * x + m[1] * y + m[2] * z + m[3]
        yp = m[4] * x + m[5] * y + m[6] * z + m[7]
        zp = m[8] * x + m[9] * y + m[10] * z + m[11]
        wp = m[12] * x + m[13] * y + m[14] * z + m[15]
        if wp == 1.0 or wp == 0.0:
            return (xp, yp, zp)
        return (xp / wp, yp / wp, zp / wp)

    def apply_vector(self, vector: Sequence[float]) -> Vec3:
        m = self.matrix
        x, y, z = vector
        return (
            m[0] * x + m[1] * y + m[2] * z,
            m[4] * x + m[5] * y + m[6] * z,
            m[8] * x + m[9] * y + m[10] * z,
        )


def _sin_cos(degrees: float) -> tuple[float, float]:
    rad = math.radians(degrees)
    return math.sin(rad), math.cos(rad)


@dataclass(frozen=True)
class AnimatedTransform:
    """A transform moving between two keyframes over ``[start_time, end_time]``.

    Matrices are blended linearly between the keyframes; times outside the
    interval clamp to the nearest keyframe.
    """

    start: Transform
    end: Transform
    start_time: float = 0.0
    end_time: float = 1.0

    def __post_init__(self) -> None:
        if self.end_time < self.start_time:
            raise ValueError("AnimatedTransform end_time precedes start_time")

    @property
    def is_animated(self) -> bool:
        return self.start != self.end

    def interpolate(self, time: float) -> Transform:
        if not self.is_animated or time <= self.start_time:
            return self.start
        if time >= self.end_time:
            return self.end
        dt = (time - self.start_time) / (self.end_time - self.start_time)
        return Transform(tuple(
            (1.0 - dt) * a + dt * b
            for a, b in zip(self.start.matrix, self.end.matrix)
        ))


AnyTransform = Union[Transform, AnimatedTransform]


def sample_transform(transform: AnyTransform, time: float = SAMPLE_TIME) -> Transform:
    """Resolve a possibly animated transform to one static transform."""
    if isinstance(transform, AnimatedTransform):
        return transform.interpolate(time)
    return transform


@dataclass(frozen=True)
class Pose:
    """Position plus forward and up directions of a placed object."""

    position: Vec3
    direction: Vec3
    up: Vec3

    @classmethod
    def from_transform(cls, transform: AnyTransform, time: float = SAMPLE_TIME) -> Pose:
        """Sample *transform* and push the canonical frame through it.

        The origin becomes the position, +Z the direction and +Y the up
        vector.
        """
        t = sample_transform(transform, time)
        return cls(
            position=t.apply_point((0.0, 0.0, 0.0)),
            direction=t.apply_vector((0.0, 0.0, 1.0)),
            up=t.apply_vector((0.0, 1.0, 0.0)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "position": _vec_dict(self.position),
            "direction": _vec_dict(self.direction),
            "up": _vec_dict(self.up),
        }


def _vec_dict(v: Vec3) -> dict[str, float]:
    return {"x": v[0], "y": v[1], "z": v[2]}


@dataclass(frozen=True, eq=False)
class MeshGeometry:
    """Triangle mesh buffers shared by any number of instances.

    Meshes compare and hash by identity: two meshes holding identical
    buffers are still distinct objects.  ``normals`` and ``texcoords`` are
    optional and may be left empty; when present they hold one entry per
    vertex.
    """

    positions: tuple[Vec3, ...]
    faces: tuple[Triangle, ...]
    normals: tuple[Vec3, ...] = ()
    texcoords: tuple[Vec2, ...] = ()
    name: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "positions", _tuples(self.positions, 3, "positions"))
        object.__setattr__(self, "faces", _tuples(self.faces, 3, "faces", int))
        object.__setattr__(self, "normals", _tuples(self.normals, 3, "normals"))
        object.__setattr__(self, "texcoords", _tuples(self.texcoords, 2, "texcoords"))

        n = len(self.positions)
        if self.normals and len(self.normals) != n:
            raise ValueError(f"{len(self.normals)} normals for {n} vertices")
        if self.texcoords and len(self.texcoords) != n:
            raise ValueError(f"{len(self.texcoords)} texcoords for {n} vertices")

    @property
    def vertex_count(self) -> int:
        return len(self.positions)

    @property
    def triangle_count(self) -> int:
        return len(self.faces)

    @property
    def has_normals(self) -> bool:
        return bool(self.normals)

    @property
    def has_texcoords(self) -> bool:
        return bool(self.texcoords)


def _tuples(
    items: Iterable[Sequence[Any]] | None,
    width: int,
    label: str,
    kind: type = float,
) -> tuple[tuple[Any, ...], ...]:
    """Normalise a buffer into a tuple of fixed-width tuples."""
    if items is None:
        return ()
    out = []
    for item in items:
        raw = tuple(item)
        row = tuple(kind(v) for v in raw)
        # int() truncates, so a changed value means a fractional index
        if kind is int and row != raw:
            raise ValueError(f"{label} entries must be integral, got {raw!r}")
        if len(row) != width:
            raise ValueError(f"{label} entries need {width} components, got {len(row)}")
        out.append(row)
    return tuple(out)


@dataclass
class Camera:
    """Pinhole camera placed by a camera-to-world transform."""

    camera_to_world: AnyTransform = field(default_factory=Transform)
    fov: float = 45.0

    def pose(self, time: float = SAMPLE_TIME) -> Pose:
        return Pose.from_transform(self.camera_to_world, time)

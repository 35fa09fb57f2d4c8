"""4x4 transformation matrices for the graphics state.

All matrices are NumPy float64 arrays of shape (4, 4) acting on column
vectors. Directives compose into the current transformation matrix by
right-multiplication (CTM' = CTM @ M), so transforms apply to geometry in
the reverse of the order they are written.

Matrices handed out in scene entities are read-only copies (see `frozen`);
the graphics state never mutates a matrix in place.
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np
import numpy.typing as npt

from src.pbrt.core.errors import InvalidArgumentError

Matrix = npt.NDArray[np.float64]


def identity() -> Matrix:
    """Return a new 4x4 identity matrix."""
    return np.eye(4, dtype=np.float64)


def frozen(m: Matrix) -> Matrix:
    """Return a read-only copy of `m`."""
    out = np.array(m, dtype=np.float64, copy=True)
    out.setflags(write=False)
    return out


def translate(delta: Sequence[float]) -> Matrix:
    """Translation by (dx, dy, dz)."""
    m = identity()
    m[0:3, 3] = delta
    return m


def scale(factors: Sequence[float]) -> Matrix:
    """Non-uniform scale by (sx, sy, sz)."""
    return np.diag([factors[0], factors[1], factors[2], 1.0]).astype(np.float64)


def rotate(theta: float, axis: Sequence[float], line: int | None = None) -> Matrix:
    """Rotation of `theta` degrees about `axis` (right-handed).

    Raises:
        InvalidArgumentError: If the axis has zero length.
    """
    a = np.asarray(axis, dtype=np.float64)
    norm = np.linalg.norm(a)
    if norm == 0.0:
        raise InvalidArgumentError("Rotate axis must be non-zero", line=line)
    x, y, z = a / norm
    sin_t = math.sin(math.radians(theta))
    cos_t = math.cos(math.radians(theta))

    m = identity()
    m[0, 0] = x * x + (1 - x * x) * cos_t
    m[0, 1] = x * y * (1 - cos_t) - z * sin_t
    m[0, 2] = x * z * (1 - cos_t) + y * sin_t
    m[1, 0] = x * y * (1 - cos_t) + z * sin_t
    m[1, 1] = y * y + (1 - y * y) * cos_t
    m[1, 2] = y * z * (1 - cos_t) - x * sin_t
    m[2, 0] = x * z * (1 - cos_t) - y * sin_t
    m[2, 1] = y * z * (1 - cos_t) + x * sin_t
    m[2, 2] = z * z + (1 - z * z) * cos_t
    return m


def look_at(
    eye: Sequence[float],
    look: Sequence[float],
    up: Sequence[float],
    line: int | None = None,
) -> Matrix:
    """Viewing transform placing the camera at `eye` looking at `look`.

    Builds the camera basis from the view parameters and returns the
    camera-from-world matrix (the inverse of the camera's placement).

    Raises:
        InvalidArgumentError: If `eye` equals `look` or `up` is parallel
            to the viewing direction.
    """
    pos = np.asarray(eye, dtype=np.float64)
    target = np.asarray(look, dtype=np.float64)
    vup = np.asarray(up, dtype=np.float64)

    view = target - pos
    view_len = np.linalg.norm(view)
    up_len = np.linalg.norm(vup)
    if view_len == 0.0 or up_len == 0.0:
        raise InvalidArgumentError("LookAt eye and look point must differ", line=line)
    direction = view / view_len

    # right points perpendicular to the view direction and up
    right = np.cross(vup / up_len, direction)
    right_len = np.linalg.norm(right)
    if right_len == 0.0:
        raise InvalidArgumentError(
            "LookAt up vector and viewing direction are parallel", line=line
        )
    right = right / right_len
    new_up = np.cross(direction, right)

    world_from_camera = identity()
    world_from_camera[0:3, 0] = right
    world_from_camera[0:3, 1] = new_up
    world_from_camera[0:3, 2] = direction
    world_from_camera[0:3, 3] = pos
    return np.linalg.inv(world_from_camera)


def from_values(values: Sequence[float]) -> Matrix:
    """Matrix from the 16 numbers of a `Transform`/`ConcatTransform`.

    The file lists the matrix column by column, so the values are
    transposed into row-major form.
    """
    return np.asarray(values, dtype=np.float64).reshape(4, 4).T.copy()


def is_identity(m: Matrix) -> bool:
    return bool(np.array_equal(m, np.eye(4)))

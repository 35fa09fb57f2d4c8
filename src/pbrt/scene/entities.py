"""Immutable scene entities produced by the parser.

Each entity freezes the graphics state it depends on at the moment its
directive is read. Matrices are read-only NumPy arrays, parameter lists are
immutable, and every dataclass is frozen, so nothing a later directive does
can reach back into an entity that has already been emitted.

Entities that hold matrices use identity equality (eq=False) because NumPy
arrays do not define a single truth value for `==`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import numpy as np

from src.pbrt.core.params import EMPTY_PARAMS, ParameterList
from src.pbrt.core.transform import Matrix, frozen, identity


@dataclass(frozen=True)
class SourceLocation:
    """Where a directive appeared.

    Attributes:
        source: File path (or "<string>") of the directive.
        line: 1-based line of the directive keyword.
    """

    source: str
    line: int

    def __str__(self) -> str:
        return f"{self.source}:{self.line}"


@dataclass(frozen=True)
class ParseWarning:
    """A non-fatal diagnostic recorded during parsing."""

    message: str
    location: SourceLocation | None = None

    def __str__(self) -> str:
        if self.location is None:
            return self.message
        return f"{self.location}: {self.message}"


# =============================================================================
# Pre-world Options
# =============================================================================


@dataclass(frozen=True)
class SceneOption:
    """A singleton pre-world declaration (Film, Sampler, Integrator, ...).

    Attributes:
        directive: The directive that produced it, e.g. "Film".
        type: The implementation name, e.g. "rgb" or "halton".
        params: The declaration's parameters.
    """

    directive: str
    type: str
    params: ParameterList = EMPTY_PARAMS
    location: SourceLocation | None = None


@dataclass(frozen=True, eq=False)
class Camera:
    """The scene camera.

    Attributes:
        type: Camera model, e.g. "perspective".
        params: Camera parameters.
        camera_from_world: The transform active when Camera was declared.
        medium: Name of the medium the camera sits in, if any.
    """

    type: str
    params: ParameterList = EMPTY_PARAMS
    camera_from_world: Matrix = field(default_factory=lambda: frozen(identity()))
    medium: str | None = None
    location: SourceLocation | None = None


class RenderCoordinateSystem(Enum):
    """Coordinate system the renderer performs its computations in."""

    CAMERA_WORLD = "cameraworld"
    CAMERA = "camera"
    WORLD = "world"


@dataclass(frozen=True)
class RenderOptions:
    """Global options set with the `Option` directive.

    Absent options keep these defaults.
    """

    disable_pixel_jitter: bool = False
    disable_texture_filtering: bool = False
    disable_wavelength_jitter: bool = False
    displacement_edge_scale: float = 1.0
    mse_reference_image: str | None = None
    mse_reference_out: str | None = None
    render_coord_sys: RenderCoordinateSystem = RenderCoordinateSystem.CAMERA_WORLD
    seed: int = 0
    force_diffuse: bool = False
    pixel_stats: bool = False
    wavefront: bool = False


# =============================================================================
# World Entities
# =============================================================================


@dataclass(frozen=True)
class Material:
    """A material descriptor.

    Attributes:
        type: BSDF model, e.g. "diffuse" or "conductor".
        params: Material parameters.
        name: The name given by MakeNamedMaterial, or None for a material
            set directly with the Material directive.
    """

    type: str
    params: ParameterList = EMPTY_PARAMS
    name: str | None = None
    location: SourceLocation | None = None


# Material in effect before any Material/NamedMaterial directive
DEFAULT_MATERIAL = Material(type="diffuse")


@dataclass(frozen=True)
class AreaLight:
    """Emission descriptor attached to subsequent shapes."""

    type: str
    params: ParameterList = EMPTY_PARAMS
    location: SourceLocation | None = None


@dataclass(frozen=True)
class MediumInterface:
    """Media on either side of a surface.

    Attributes:
        inside: Medium name inside the surface, None for vacuum.
        outside: Medium name outside the surface, None for vacuum.
    """

    inside: str | None = None
    outside: str | None = None


@dataclass(frozen=True, eq=False)
class LightSource:
    """A light declared with LightSource (not attached to geometry)."""

    type: str
    params: ParameterList
    transform: Matrix
    medium: str | None = None
    location: SourceLocation | None = None


@dataclass(frozen=True, eq=False)
class Medium:
    """A participating medium declared with MakeNamedMedium."""

    name: str
    type: str
    params: ParameterList
    transform: Matrix
    location: SourceLocation | None = None


@dataclass(frozen=True, eq=False)
class Texture:
    """A texture declaration.

    Attributes:
        name: Texture name, referenced by "texture" parameters.
        value_type: "float" or "spectrum".
        texture_class: Implementation, e.g. "imagemap" or "checkerboard".
        params: Texture parameters.
        transform: The transform active at declaration.
    """

    name: str
    value_type: str
    texture_class: str
    params: ParameterList
    transform: Matrix
    location: SourceLocation | None = None


@dataclass(frozen=True, eq=False)
class Shape:
    """A shape with all of its inherited graphics state frozen.

    Attributes:
        type: Shape kind, e.g. "sphere" or "trianglemesh".
        params: Shape parameters (Attribute defaults merged in).
        transform: World-from-object matrix at the start of the shutter.
        end_transform: World-from-object matrix at the end of the shutter.
        reverse_orientation: Whether surface normals are flipped.
        material: The resolved material.
        area_light: Emission descriptor, or None for non-emissive shapes.
        medium_interface: Media inside and outside the shape.
    """

    type: str
    params: ParameterList
    transform: Matrix
    end_transform: Matrix
    reverse_orientation: bool = False
    material: Material = DEFAULT_MATERIAL
    area_light: AreaLight | None = None
    medium_interface: MediumInterface = MediumInterface()
    location: SourceLocation | None = None

    @property
    def is_animated(self) -> bool:
        return not np.array_equal(self.transform, self.end_transform)


@dataclass(frozen=True)
class ObjectDefinition:
    """A named group of shapes recorded between ObjectBegin and ObjectEnd."""

    name: str
    shapes: tuple[Shape, ...] = ()
    location: SourceLocation | None = None


@dataclass(frozen=True, eq=False)
class ObjectInstance:
    """A placement of a previously defined object."""

    name: str
    transform: Matrix
    end_transform: Matrix
    location: SourceLocation | None = None


def matrix_to_list(m: Matrix) -> list[list[float]]:
    return [[float(v) for v in row] for row in m]


def entity_to_dict(entity: Any) -> dict[str, Any]:
    """JSON-friendly representation of any entity in this module."""
    out: dict[str, Any] = {}
    for name in entity.__dataclass_fields__:
        if name == "location":
            continue
        value = getattr(entity, name)
        if isinstance(value, ParameterList):
            value = value.to_dict()
        elif isinstance(value, np.ndarray):
            value = matrix_to_list(value)
        elif isinstance(value, Enum):
            value = value.value
        elif isinstance(value, tuple):
            value = [entity_to_dict(v) for v in value]
        elif hasattr(value, "__dataclass_fields__"):
            value = entity_to_dict(value)
        out[name] = value
    return out

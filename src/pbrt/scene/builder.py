"""Scene accumulation and the immutable Scene result.

The SceneBuilder collects entities emitted by the statement dispatcher into
ordered per-kind sequences (insertion order = declaration order) and
maintains the name tables for materials, media, coordinate systems, objects
and textures. It is private to a single parse: `build()` freezes everything
into a Scene, which is the only thing callers ever see.

The Scene maintains:
- One ordered tuple per entity kind
- Optional singleton pre-world options (None means renderer defaults)
- Read-only name tables with lookup helpers
- Warnings recorded during the parse

Example:
    >>> from src.pbrt.parser import parse_string
    >>> scene = parse_string('WorldBegin\\nShape "sphere" "float radius" 2')
    >>> scene.shapes[0].params.get_float("radius")
    2.0
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from src.pbrt.core.errors import DuplicateNameError, UndefinedNameError
from src.pbrt.core.transform import Matrix, frozen
from src.pbrt.scene.entities import (
    AreaLight,
    Camera,
    LightSource,
    Material,
    Medium,
    ObjectDefinition,
    ObjectInstance,
    ParseWarning,
    RenderOptions,
    SceneOption,
    Shape,
    SourceLocation,
    Texture,
    entity_to_dict,
    matrix_to_list,
)

logger = logging.getLogger(__name__)

# Singleton directives and the Scene attribute each one fills
SINGLETON_FIELDS: dict[str, str] = {
    "Camera": "camera",
    "Film": "film",
    "Sampler": "sampler",
    "Integrator": "integrator",
    "Accelerator": "accelerator",
    "ColorSpace": "color_space",
    "PixelFilter": "pixel_filter",
}


@dataclass(frozen=True, eq=False)
class Scene:
    """Fully-resolved, immutable scene description.

    Attributes:
        camera: The camera, or None if not declared.
        film, sampler, integrator, accelerator, color_space, pixel_filter:
            Singleton pre-world options, or None if not declared.
        options: Global render options from Option directives.
        transform_start_time: Shutter open time from TransformTimes.
        transform_end_time: Shutter close time from TransformTimes.
        shapes: Top-level shapes (shapes inside objects are not included).
        lights: Lights declared with LightSource.
        area_lights: Area light descriptors, in declaration order.
        materials: Every Material and MakeNamedMaterial declaration.
        textures: Texture declarations.
        media: MakeNamedMedium declarations.
        objects: Completed object definitions.
        instances: ObjectInstance placements.
        named_materials, named_media, named_coordinate_systems,
        named_objects, named_textures: Read-only name tables.
        warnings: Non-fatal diagnostics.
    """

    camera: Camera | None = None
    film: SceneOption | None = None
    sampler: SceneOption | None = None
    integrator: SceneOption | None = None
    accelerator: SceneOption | None = None
    color_space: SceneOption | None = None
    pixel_filter: SceneOption | None = None
    options: RenderOptions = RenderOptions()
    transform_start_time: float = 0.0
    transform_end_time: float = 1.0
    shapes: tuple[Shape, ...] = ()
    lights: tuple[LightSource, ...] = ()
    area_lights: tuple[AreaLight, ...] = ()
    materials: tuple[Material, ...] = ()
    textures: tuple[Texture, ...] = ()
    media: tuple[Medium, ...] = ()
    objects: tuple[ObjectDefinition, ...] = ()
    instances: tuple[ObjectInstance, ...] = ()
    named_materials: Mapping[str, Material] = field(default_factory=lambda: MappingProxyType({}))
    named_media: Mapping[str, Medium] = field(default_factory=lambda: MappingProxyType({}))
    named_coordinate_systems: Mapping[str, Matrix] = field(
        default_factory=lambda: MappingProxyType({})
    )
    named_objects: Mapping[str, ObjectDefinition] = field(
        default_factory=lambda: MappingProxyType({})
    )
    named_textures: Mapping[tuple[str, str], Texture] = field(
        default_factory=lambda: MappingProxyType({})
    )
    warnings: tuple[ParseWarning, ...] = ()

    # =========================================================================
    # Lookups
    # =========================================================================

    def get_material(self, name: str) -> Material | None:
        return self.named_materials.get(name)

    def get_medium(self, name: str) -> Medium | None:
        return self.named_media.get(name)

    def get_object(self, name: str) -> ObjectDefinition | None:
        return self.named_objects.get(name)

    def get_coordinate_system(self, name: str) -> Matrix | None:
        return self.named_coordinate_systems.get(name)

    def get_texture(self, name: str, value_type: str = "spectrum") -> Texture | None:
        return self.named_textures.get((value_type, name))

    def get_primitive_count(self) -> int:
        """Top-level shapes plus shapes placed through object instances."""
        per_object = {obj.name: len(obj.shapes) for obj in self.objects}
        return len(self.shapes) + sum(per_object[inst.name] for inst in self.instances)

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> dict[str, Any]:
        """Export the scene to a dictionary (for JSON serialization)."""
        singletons = {
            attr: entity_to_dict(getattr(self, attr)) if getattr(self, attr) else None
            for attr in SINGLETON_FIELDS.values()
        }
        return {
            **singletons,
            "options": entity_to_dict(self.options),
            "transform_times": [self.transform_start_time, self.transform_end_time],
            "shapes": [entity_to_dict(s) for s in self.shapes],
            "lights": [entity_to_dict(light) for light in self.lights],
            "materials": [entity_to_dict(m) for m in self.materials],
            "textures": [entity_to_dict(t) for t in self.textures],
            "media": [entity_to_dict(m) for m in self.media],
            "objects": [entity_to_dict(o) for o in self.objects],
            "instances": [entity_to_dict(i) for i in self.instances],
            "coordinate_systems": {
                name: matrix_to_list(m) for name, m in self.named_coordinate_systems.items()
            },
            "warnings": [str(w) for w in self.warnings],
        }


class SceneBuilder:
    """Mutable accumulator behind a single parse.

    Name tables are keyed by name and reject redefinition (coordinate
    systems excepted, which may be re-recorded).
    """

    def __init__(self) -> None:
        self.options = RenderOptions()
        self.transform_times = (0.0, 1.0)
        self._singletons: dict[str, Camera | SceneOption] = {}
        self.shapes: list[Shape] = []
        self.lights: list[LightSource] = []
        self.area_lights: list[AreaLight] = []
        self.materials: list[Material] = []
        self.textures: list[Texture] = []
        self.media: list[Medium] = []
        self.objects: list[ObjectDefinition] = []
        self.instances: list[ObjectInstance] = []
        self.warnings: list[ParseWarning] = []
        self._named_materials: dict[str, Material] = {}
        self._named_media: dict[str, Medium] = {}
        self._named_coordinate_systems: dict[str, tuple[Matrix, Matrix]] = {}
        self._named_objects: dict[str, ObjectDefinition] = {}
        self._named_textures: dict[tuple[str, str], Texture] = {}
        self._recording: list[Shape] | None = None

    # =========================================================================
    # Diagnostics
    # =========================================================================

    def warn(self, message: str, location: SourceLocation | None = None) -> None:
        warning = ParseWarning(message, location)
        self.warnings.append(warning)
        logger.warning("%s", warning)

    # =========================================================================
    # Pre-world Options
    # =========================================================================

    def set_singleton(self, directive: str, value: Camera | SceneOption) -> None:
        """Store a singleton option; a repeat overwrites with a warning."""
        previous = self._singletons.get(directive)
        if previous is not None:
            where = f" (previously declared at {previous.location})" if previous.location else ""
            self.warn(f"{directive} redefined, the last declaration wins{where}", value.location)
        self._singletons[directive] = value

    def get_singleton(self, directive: str) -> Camera | SceneOption | None:
        return self._singletons.get(directive)

    # =========================================================================
    # Entity Emission
    # =========================================================================

    def add_shape(self, shape: Shape) -> None:
        """Append to the object being recorded, or to the top-level shapes."""
        if self._recording is not None:
            self._recording.append(shape)
        else:
            self.shapes.append(shape)

    def add_light(self, light: LightSource) -> None:
        self.lights.append(light)

    def add_area_light(self, light: AreaLight) -> None:
        self.area_lights.append(light)

    def add_material(self, material: Material) -> None:
        """Record a material; named materials also enter the name table.

        Raises:
            DuplicateNameError: If the name is already taken.
        """
        if material.name is not None:
            if material.name in self._named_materials:
                raise DuplicateNameError(
                    f'named material "{material.name}" redefined',
                    line=material.location.line if material.location else None,
                )
            self._named_materials[material.name] = material
        self.materials.append(material)

    def add_texture(self, texture: Texture) -> None:
        key = (texture.value_type, texture.name)
        if key in self._named_textures:
            raise DuplicateNameError(
                f'{texture.value_type} texture "{texture.name}" redefined',
                line=texture.location.line if texture.location else None,
            )
        self._named_textures[key] = texture
        self.textures.append(texture)

    def add_medium(self, medium: Medium) -> None:
        if medium.name in self._named_media:
            raise DuplicateNameError(
                f'named medium "{medium.name}" redefined',
                line=medium.location.line if medium.location else None,
            )
        self._named_media[medium.name] = medium
        self.media.append(medium)

    def add_instance(self, instance: ObjectInstance) -> None:
        self.instances.append(instance)

    # =========================================================================
    # Object Recording
    # =========================================================================

    def begin_object(self, name: str, line: int | None = None) -> None:
        if name in self._named_objects:
            raise DuplicateNameError(f'object "{name}" redefined', line=line)
        self._recording = []

    def end_object(self, name: str, location: SourceLocation | None = None) -> None:
        shapes = tuple(self._recording or ())
        self._recording = None
        definition = ObjectDefinition(name=name, shapes=shapes, location=location)
        self._named_objects[name] = definition
        self.objects.append(definition)

    # =========================================================================
    # Name Tables
    # =========================================================================

    def define_coordinate_system(self, name: str, ctm: tuple[Matrix, Matrix]) -> None:
        self._named_coordinate_systems[name] = (frozen(ctm[0]), frozen(ctm[1]))

    def lookup_coordinate_system(self, name: str, line: int | None = None) -> tuple[Matrix, Matrix]:
        try:
            return self._named_coordinate_systems[name]
        except KeyError:
            raise UndefinedNameError(
                f'coordinate system "{name}" is not defined', name=name, line=line
            ) from None

    def lookup_material(self, name: str, line: int | None = None) -> Material:
        try:
            return self._named_materials[name]
        except KeyError:
            raise UndefinedNameError(
                f'named material "{name}" is not defined', name=name, line=line
            ) from None

    def lookup_medium(self, name: str, line: int | None = None) -> Medium:
        try:
            return self._named_media[name]
        except KeyError:
            raise UndefinedNameError(
                f'named medium "{name}" is not defined', name=name, line=line
            ) from None

    def lookup_object(self, name: str, line: int | None = None) -> ObjectDefinition:
        try:
            return self._named_objects[name]
        except KeyError:
            raise UndefinedNameError(
                f'object "{name}" is not defined', name=name, line=line
            ) from None

    # =========================================================================
    # Finalization
    # =========================================================================

    def build(self) -> Scene:
        """Freeze everything accumulated so far into a Scene."""
        singletons = {
            attr: self._singletons.get(directive) for directive, attr in SINGLETON_FIELDS.items()
        }
        return Scene(
            **singletons,  # type: ignore[arg-type]
            options=self.options,
            transform_start_time=self.transform_times[0],
            transform_end_time=self.transform_times[1],
            shapes=tuple(self.shapes),
            lights=tuple(self.lights),
            area_lights=tuple(self.area_lights),
            materials=tuple(self.materials),
            textures=tuple(self.textures),
            media=tuple(self.media),
            objects=tuple(self.objects),
            instances=tuple(self.instances),
            named_materials=MappingProxyType(dict(self._named_materials)),
            named_media=MappingProxyType(dict(self._named_media)),
            named_coordinate_systems=MappingProxyType(
                {name: pair[0] for name, pair in self._named_coordinate_systems.items()}
            ),
            named_objects=MappingProxyType(dict(self._named_objects)),
            named_textures=MappingProxyType(dict(self._named_textures)),
            warnings=tuple(self.warnings),
        )

"""Scene module for entities, graphics state and scene assembly.

Components:
    entities: Frozen entity records (Shape, Material, Camera, ...)
    state: Graphics state and the Begin/End scope stack machine
    builder: SceneBuilder accumulator and the immutable Scene result

Entities freeze the graphics state they inherit at declaration time, so a
Scene never changes after `SceneBuilder.build()` returns it.
"""

from .builder import SINGLETON_FIELDS, Scene, SceneBuilder
from .entities import (
    DEFAULT_MATERIAL,
    AreaLight,
    Camera,
    LightSource,
    Material,
    Medium,
    MediumInterface,
    ObjectDefinition,
    ObjectInstance,
    ParseWarning,
    RenderCoordinateSystem,
    RenderOptions,
    SceneOption,
    Shape,
    SourceLocation,
    Texture,
)
from .state import (
    ATTRIBUTE_TARGETS,
    ActiveTransform,
    GraphicsState,
    GraphicsStateStack,
    ScopeKind,
)

__all__ = [
    # Builder
    "Scene",
    "SceneBuilder",
    "SINGLETON_FIELDS",
    # Entities
    "SourceLocation",
    "ParseWarning",
    "SceneOption",
    "Camera",
    "RenderCoordinateSystem",
    "RenderOptions",
    "Material",
    "DEFAULT_MATERIAL",
    "AreaLight",
    "MediumInterface",
    "LightSource",
    "Medium",
    "Texture",
    "Shape",
    "ObjectDefinition",
    "ObjectInstance",
    # Graphics state
    "GraphicsState",
    "GraphicsStateStack",
    "ActiveTransform",
    "ScopeKind",
    "ATTRIBUTE_TARGETS",
]

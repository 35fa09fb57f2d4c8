"""Statement dispatcher: reads directives and drives the scene state.

The dispatcher consumes one directive at a time from a TokenStream, checks
that it is legal in the current phase, reads its operands and parameter
list, updates the graphics state stack and pushes finished entities into
the SceneBuilder.

A scene file has two phases separated by WorldBegin:

- Options phase: Camera, Film, Sampler, Integrator, Accelerator,
  ColorSpace and PixelFilter (singletons), plus transform directives that
  position the camera.
- World phase: geometry, lights, materials, textures, media, scopes and
  object instancing, until end of input. WorldEnd is accepted as a no-op.

Transform directives, named coordinate systems, Option, TransformTimes,
ActiveTransform, MakeNamedMedium, MediumInterface and Include are legal in
both phases.

Parsing is fail-fast: the first error aborts the parse. The one local
recovery is a repeated singleton, which overwrites the earlier declaration
and records a warning.

Example:
    >>> from src.pbrt.parser.dispatcher import SceneParser
    >>> from src.pbrt.parser.include import TokenStream
    >>> parser = SceneParser(TokenStream.from_string('WorldBegin Shape "disk"'))
    >>> scene = parser.parse()
    >>> scene.shapes[0].type
    'disk'
"""

from __future__ import annotations

import logging
from dataclasses import replace
from enum import Enum
from typing import Any, Callable

from src.pbrt.core import transform
from src.pbrt.core.errors import (
    InvalidArgumentError,
    NestedObjectError,
    SceneParseError,
    UnexpectedTokenError,
    UnknownDirectiveError,
    WrongPhaseError,
)
from src.pbrt.core.params import (
    ParameterList,
    ParamType,
    decode_parameter,
    decode_parameter_list,
)
from src.pbrt.core.tokenizer import Token, TokenKind
from src.pbrt.parser.include import TokenStream
from src.pbrt.scene.builder import Scene, SceneBuilder
from src.pbrt.scene.entities import (
    AreaLight,
    Camera,
    LightSource,
    Material,
    Medium,
    MediumInterface,
    ObjectInstance,
    RenderCoordinateSystem,
    SceneOption,
    Shape,
    SourceLocation,
    Texture,
)
from src.pbrt.scene.state import (
    ATTRIBUTE_TARGETS,
    ActiveTransform,
    GraphicsStateStack,
    ScopeKind,
)

logger = logging.getLogger(__name__)


class Phase(Enum):
    """Parser phase, switched by WorldBegin."""

    OPTIONS = "options"
    WORLD = "world"


# Directives rejected after WorldBegin
OPTIONS_ONLY = frozenset(
    {
        "Camera",
        "Sampler",
        "Film",
        "Integrator",
        "Accelerator",
        "ColorSpace",
        "PixelFilter",
        "WorldBegin",
    }
)

# Directives rejected before WorldBegin
WORLD_ONLY = frozenset(
    {
        "WorldEnd",
        "AttributeBegin",
        "AttributeEnd",
        "TransformBegin",
        "TransformEnd",
        "Attribute",
        "ObjectBegin",
        "ObjectEnd",
        "ObjectInstance",
        "Shape",
        "LightSource",
        "AreaLightSource",
        "Material",
        "MakeNamedMaterial",
        "NamedMaterial",
        "Texture",
        "ReverseOrientation",
        "Import",
    }
)

# Option name -> (RenderOptions field, expected parameter type)
OPTION_FIELDS: dict[str, tuple[str, ParamType]] = {
    "disablepixeljitter": ("disable_pixel_jitter", ParamType.BOOL),
    "disabletexturefiltering": ("disable_texture_filtering", ParamType.BOOL),
    "disablewavelengthjitter": ("disable_wavelength_jitter", ParamType.BOOL),
    "displacementedgescale": ("displacement_edge_scale", ParamType.FLOAT),
    "msereferenceimage": ("mse_reference_image", ParamType.STRING),
    "msereferenceout": ("mse_reference_out", ParamType.STRING),
    "rendercoordsys": ("render_coord_sys", ParamType.STRING),
    "seed": ("seed", ParamType.INTEGER),
    "forcediffuse": ("force_diffuse", ParamType.BOOL),
    "pixelstats": ("pixel_stats", ParamType.BOOL),
    "wavefront": ("wavefront", ParamType.BOOL),
}

TEXTURE_VALUE_TYPES = {"float": "float", "spectrum": "spectrum", "color": "spectrum"}

ACTIVE_TRANSFORM_NAMES = {
    "StartTime": ActiveTransform.START,
    "EndTime": ActiveTransform.END,
    "All": ActiveTransform.ALL,
}


class SceneParser:
    """Parse one scene from a token stream.

    Each parser owns its token stream, graphics state stack and scene
    builder; independent parsers share nothing.

    Attributes:
        stream: Token supply (root input plus any open includes).
        phase: Current phase.
        graphics: Graphics state stack machine.
        builder: Accumulator for the resulting Scene.
    """

    def __init__(self, stream: TokenStream) -> None:
        self.stream = stream
        self.phase = Phase.OPTIONS
        self.graphics = GraphicsStateStack()
        self.builder = SceneBuilder()
        self._finished = False
        self._handlers: dict[str, Callable[[Token], None]] = {
            # Files
            "Include": self._include,
            "Import": self._import,
            # Options phase
            "Option": self._option,
            "Camera": self._camera,
            "Film": self._singleton,
            "Sampler": self._singleton,
            "Integrator": self._singleton,
            "Accelerator": self._singleton,
            "ColorSpace": self._singleton,
            "PixelFilter": self._singleton,
            "WorldBegin": self._world_begin,
            "WorldEnd": self._world_end,
            # Transforms
            "Identity": self._identity,
            "Translate": self._translate,
            "Scale": self._scale,
            "Rotate": self._rotate,
            "LookAt": self._look_at,
            "Transform": self._transform,
            "ConcatTransform": self._concat_transform,
            "CoordinateSystem": self._coordinate_system,
            "CoordSysTransform": self._coord_sys_transform,
            "TransformTimes": self._transform_times,
            "ActiveTransform": self._active_transform,
            "ReverseOrientation": self._reverse_orientation,
            # Scopes
            "AttributeBegin": self._attribute_begin,
            "AttributeEnd": self._attribute_end,
            "TransformBegin": self._transform_begin,
            "TransformEnd": self._transform_end,
            "Attribute": self._attribute,
            "ObjectBegin": self._object_begin,
            "ObjectEnd": self._object_end,
            "ObjectInstance": self._object_instance,
            # World entities
            "Shape": self._shape,
            "LightSource": self._light_source,
            "AreaLightSource": self._area_light_source,
            "Material": self._material,
            "MakeNamedMaterial": self._make_named_material,
            "NamedMaterial": self._named_material,
            "Texture": self._texture,
            "MakeNamedMedium": self._make_named_medium,
            "MediumInterface": self._medium_interface,
        }

    # =========================================================================
    # Main Loop
    # =========================================================================

    def parse(self) -> Scene:
        """Read every directive and return the finished scene.

        Returns:
            The immutable Scene.

        Raises:
            SceneParseError: The first error encountered, with its file,
                line and include chain filled in.
            RuntimeError: If called twice on the same parser.
        """
        if self._finished:
            raise RuntimeError("SceneParser.parse() can only be called once")
        self._finished = True

        try:
            while True:
                token = self.stream.next_directive_token()
                if token is None:
                    break
                self._dispatch(token)
            self.graphics.check_balanced(line=self.stream.last_line)
        except SceneParseError as err:
            err.locate(self.stream.source, self.stream.include_chain)
            raise

        scene = self.builder.build()
        logger.debug(
            "parsed %d shapes, %d lights, %d objects, %d instances",
            len(scene.shapes),
            len(scene.lights),
            len(scene.objects),
            len(scene.instances),
        )
        return scene

    def _dispatch(self, token: Token) -> None:
        if token.kind is not TokenKind.IDENTIFIER:
            raise UnexpectedTokenError(
                f"expected a directive, got {token.describe()}", line=token.line
            )
        handler = self._handlers.get(token.text)
        if handler is None:
            raise UnknownDirectiveError(f'unknown directive "{token.text}"', line=token.line)

        if self.phase is Phase.OPTIONS and token.text in WORLD_ONLY:
            raise WrongPhaseError(f"{token.text} is not allowed before WorldBegin", line=token.line)
        if self.phase is Phase.WORLD and token.text in OPTIONS_ONLY:
            raise WrongPhaseError(f"{token.text} is not allowed after WorldBegin", line=token.line)
        handler(token)

    # =========================================================================
    # Operand Readers
    # =========================================================================

    def _expect(self, directive: Token, kind: TokenKind, what: str) -> Token:
        token = self.stream.take()
        if token is None or token.kind is not kind:
            found = "end of file" if token is None else token.describe()
            line = token.line if token is not None else directive.line
            raise UnexpectedTokenError(
                f"{directive.text}: expected {what}, got {found}", line=line
            )
        return token

    def _read_string(self, directive: Token) -> str:
        return self._expect(directive, TokenKind.STRING, "a quoted string").text

    def _read_floats(self, directive: Token, count: int) -> list[float]:
        return [
            float(self._expect(directive, TokenKind.NUMBER, "a number").text)
            for _ in range(count)
        ]

    def _read_matrix(self, directive: Token) -> list[float]:
        """16 numbers, optionally enclosed in brackets."""
        next_token = self.stream.peek()
        bracketed = next_token is not None and next_token.kind is TokenKind.LEFT_BRACKET
        if bracketed:
            self.stream.take()
        values = self._read_floats(directive, 16)
        if bracketed:
            self._expect(directive, TokenKind.RIGHT_BRACKET, "']' after 16 matrix values")
        return values

    def _read_params(self, target: str | None = None) -> ParameterList:
        """Decode the trailing parameter list, merged over Attribute defaults."""
        params = decode_parameter_list(self.stream)
        if target is None:
            return params
        return params.merged_over(self.graphics.active.attribute_defaults(target))

    def _location(self, token: Token) -> SourceLocation:
        return SourceLocation(self.stream.source, token.line)

    # =========================================================================
    # Files
    # =========================================================================

    def _include(self, token: Token) -> None:
        path = self._read_string(token)
        resolved = self.stream.open(path, line=token.line)
        logger.debug("Include %s", resolved)

    def _import(self, token: Token) -> None:
        path = self._read_string(token)
        mark = self.graphics.checkpoint()

        def discard_state() -> None:
            self.graphics.restore(mark, line=token.line)

        resolved = self.stream.open(path, line=token.line, on_exhausted=discard_state)
        logger.debug("Import %s", resolved)

    # =========================================================================
    # Options Phase
    # =========================================================================

    def _option(self, token: Token) -> None:
        param = decode_parameter(self.stream)
        entry = OPTION_FIELDS.get(param.name)
        if entry is None:
            raise InvalidArgumentError(f'unknown option "{param.name}"', line=token.line)
        field_name, expected = entry
        if param.type is not expected:
            raise InvalidArgumentError(
                f'option "{param.name}" must be of type {expected.value}, '
                f"got {param.type.value}",
                line=token.line,
            )

        value: Any = param.value.first
        if field_name == "render_coord_sys":
            try:
                value = RenderCoordinateSystem(value)
            except ValueError:
                raise InvalidArgumentError(
                    f'unknown render coordinate system "{value}"', line=token.line
                ) from None
        self.builder.options = replace(self.builder.options, **{field_name: value})

    def _camera(self, token: Token) -> None:
        camera_type = self._read_string(token)
        params = self._read_params()
        camera = Camera(
            type=camera_type,
            params=params,
            camera_from_world=transform.frozen(self.graphics.active.ctm[0]),
            medium=self.graphics.active.medium_interface.outside,
            location=self._location(token),
        )
        self.builder.set_singleton("Camera", camera)

    def _singleton(self, token: Token) -> None:
        """Film, Sampler, Integrator, Accelerator, ColorSpace, PixelFilter."""
        option_type = self._read_string(token)
        params = self._read_params()
        option = SceneOption(token.text, option_type, params, self._location(token))
        self.builder.set_singleton(token.text, option)

    def _world_begin(self, token: Token) -> None:
        self.phase = Phase.WORLD
        self.graphics.active.ctm = (transform.identity(), transform.identity())
        self.graphics.active.active_transforms = ActiveTransform.ALL
        self.builder.define_coordinate_system("world", self.graphics.active.ctm)

    def _world_end(self, token: Token) -> None:
        logger.debug("WorldEnd at %s", self._location(token))

    # =========================================================================
    # Transforms
    # =========================================================================

    def _identity(self, token: Token) -> None:
        self.graphics.active.set_transform(transform.identity())

    def _translate(self, token: Token) -> None:
        self.graphics.active.apply(transform.translate(self._read_floats(token, 3)))

    def _scale(self, token: Token) -> None:
        self.graphics.active.apply(transform.scale(self._read_floats(token, 3)))

    def _rotate(self, token: Token) -> None:
        angle, *axis = self._read_floats(token, 4)
        self.graphics.active.apply(transform.rotate(angle, axis, line=token.line))

    def _look_at(self, token: Token) -> None:
        v = self._read_floats(token, 9)
        m = transform.look_at(v[0:3], v[3:6], v[6:9], line=token.line)
        self.graphics.active.apply(m)

    def _transform(self, token: Token) -> None:
        self.graphics.active.set_transform(transform.from_values(self._read_matrix(token)))

    def _concat_transform(self, token: Token) -> None:
        self.graphics.active.apply(transform.from_values(self._read_matrix(token)))

    def _coordinate_system(self, token: Token) -> None:
        name = self._read_string(token)
        self.builder.define_coordinate_system(name, self.graphics.active.ctm)

    def _coord_sys_transform(self, token: Token) -> None:
        name = self._read_string(token)
        saved = self.builder.lookup_coordinate_system(name, line=token.line)
        self.graphics.active.restore_transform(saved)

    def _transform_times(self, token: Token) -> None:
        start, end = self._read_floats(token, 2)
        self.builder.transform_times = (start, end)

    def _active_transform(self, token: Token) -> None:
        arg = self.stream.take()
        if arg is None or arg.kind not in (TokenKind.IDENTIFIER, TokenKind.STRING):
            raise UnexpectedTokenError(
                "ActiveTransform: expected StartTime, EndTime or All", line=token.line
            )
        selected = ACTIVE_TRANSFORM_NAMES.get(arg.text)
        if selected is None:
            raise InvalidArgumentError(
                f'ActiveTransform: unknown argument "{arg.text}"', line=arg.line
            )
        self.graphics.active.active_transforms = selected

    def _reverse_orientation(self, token: Token) -> None:
        state = self.graphics.active
        state.reverse_orientation = not state.reverse_orientation

    # =========================================================================
    # Scopes
    # =========================================================================

    def _attribute_begin(self, token: Token) -> None:
        self.graphics.push(ScopeKind.ATTRIBUTE)

    def _attribute_end(self, token: Token) -> None:
        self.graphics.pop(ScopeKind.ATTRIBUTE, line=token.line)

    def _transform_begin(self, token: Token) -> None:
        self.graphics.push(ScopeKind.TRANSFORM)

    def _transform_end(self, token: Token) -> None:
        self.graphics.pop(ScopeKind.TRANSFORM, line=token.line)

    def _attribute(self, token: Token) -> None:
        target = self._read_string(token)
        if target not in ATTRIBUTE_TARGETS:
            raise InvalidArgumentError(
                f'Attribute: unknown target "{target}", expected one of '
                f"{', '.join(ATTRIBUTE_TARGETS)}",
                line=token.line,
            )
        self.graphics.active.add_attributes(target, self._read_params())

    def _object_begin(self, token: Token) -> None:
        name = self._read_string(token)
        self.graphics.begin_object(name, line=token.line)
        self.builder.begin_object(name, line=token.line)

    def _object_end(self, token: Token) -> None:
        name = self.graphics.end_object(line=token.line)
        self.builder.end_object(name, self._location(token))

    def _object_instance(self, token: Token) -> None:
        name = self._read_string(token)
        if self.graphics.recording:
            raise NestedObjectError(
                f'ObjectInstance "{name}" inside the definition of '
                f'"{self.graphics.object_name}"',
                line=token.line,
            )
        self.builder.lookup_object(name, line=token.line)
        start, end = self.graphics.active.ctm
        self.builder.add_instance(
            ObjectInstance(
                name=name,
                transform=transform.frozen(start),
                end_transform=transform.frozen(end),
                location=self._location(token),
            )
        )

    # =========================================================================
    # World Entities
    # =========================================================================

    def _shape(self, token: Token) -> None:
        shape_type = self._read_string(token)
        params = self._read_params("shape")
        state = self.graphics.active
        start, end = state.ctm
        self.builder.add_shape(
            Shape(
                type=shape_type,
                params=params,
                transform=transform.frozen(start),
                end_transform=transform.frozen(end),
                reverse_orientation=state.reverse_orientation,
                material=state.material,
                area_light=state.area_light,
                medium_interface=state.medium_interface,
                location=self._location(token),
            )
        )

    def _light_source(self, token: Token) -> None:
        light_type = self._read_string(token)
        params = self._read_params("light")
        state = self.graphics.active
        self.builder.add_light(
            LightSource(
                type=light_type,
                params=params,
                transform=transform.frozen(state.ctm[0]),
                medium=state.medium_interface.outside,
                location=self._location(token),
            )
        )

    def _area_light_source(self, token: Token) -> None:
        light_type = self._read_string(token)
        params = self._read_params("light")
        light = AreaLight(light_type, params, self._location(token))
        if self.graphics.recording:
            self.builder.warn(
                f'AreaLightSource inside object "{self.graphics.object_name}": '
                "area lights are not instanced",
                light.location,
            )
        self.graphics.active.area_light = light
        self.builder.add_area_light(light)

    def _material(self, token: Token) -> None:
        material_type = self._read_string(token)
        params = self._read_params("material")
        material = Material(material_type, params, None, self._location(token))
        self.builder.add_material(material)
        self.graphics.active.material = material

    def _make_named_material(self, token: Token) -> None:
        name = self._read_string(token)
        params = self._read_params("material")
        material_type = params.get_string("type")
        if material_type is None:
            raise InvalidArgumentError(
                f'MakeNamedMaterial "{name}": missing "string type" parameter',
                line=token.line,
            )
        self.builder.add_material(Material(material_type, params, name, self._location(token)))

    def _named_material(self, token: Token) -> None:
        name = self._read_string(token)
        self.graphics.active.material = self.builder.lookup_material(name, line=token.line)

    def _texture(self, token: Token) -> None:
        name = self._read_string(token)
        value_type = self._read_string(token)
        texture_class = self._read_string(token)
        params = self._read_params("texture")
        if value_type not in TEXTURE_VALUE_TYPES:
            raise InvalidArgumentError(
                f'Texture "{name}": type must be "float" or "spectrum", got "{value_type}"',
                line=token.line,
            )
        self.builder.add_texture(
            Texture(
                name=name,
                value_type=TEXTURE_VALUE_TYPES[value_type],
                texture_class=texture_class,
                params=params,
                transform=transform.frozen(self.graphics.active.ctm[0]),
                location=self._location(token),
            )
        )

    def _make_named_medium(self, token: Token) -> None:
        name = self._read_string(token)
        params = self._read_params("medium")
        medium_type = params.get_string("type")
        if medium_type is None:
            raise InvalidArgumentError(
                f'MakeNamedMedium "{name}": missing "string type" parameter',
                line=token.line,
            )
        self.builder.add_medium(
            Medium(
                name=name,
                type=medium_type,
                params=params,
                transform=transform.frozen(self.graphics.active.ctm[0]),
                location=self._location(token),
            )
        )

    def _medium_interface(self, token: Token) -> None:
        inside = self._read_string(token)
        next_token = self.stream.peek()
        if next_token is not None and next_token.kind is TokenKind.STRING:
            outside = self._read_string(token)
        else:
            outside = inside

        # The empty string stands for vacuum
        for name in (inside, outside):
            if name:
                self.builder.lookup_medium(name, line=token.line)
        self.graphics.active.medium_interface = MediumInterface(inside or None, outside or None)

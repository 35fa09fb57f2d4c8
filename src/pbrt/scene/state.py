"""Graphics state and the scope stack machine.

The graphics state is the bundle of context inherited by every entity
declared inside the world block: the current transformation matrix (CTM),
the orientation flag, the current material, area light and medium
interface, and per-target Attribute defaults.

Scopes (AttributeBegin/End, TransformBegin/End, ObjectBegin/End, and the
implicit scope around an imported file) are modeled as an explicit stack of
GraphicsState snapshots. Each Begin saves an independent copy of the active
state; the matching End restores it.

The CTM is actually a pair of matrices, one for the start and one for the
end of the camera shutter. ActiveTransform selects which of the two the
transform directives modify.

Example:
    >>> from src.pbrt.scene.state import GraphicsStateStack, ScopeKind
    >>> from src.pbrt.core import transform
    >>> stack = GraphicsStateStack()
    >>> stack.push(ScopeKind.ATTRIBUTE)
    >>> stack.active.apply(transform.translate((0, 1, 0)))
    >>> stack.pop(ScopeKind.ATTRIBUTE)
    >>> transform.is_identity(stack.active.ctm[0])
    True
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum, IntFlag

from src.pbrt.core.errors import NestedObjectError, UnbalancedScopeError
from src.pbrt.core.params import ParameterList
from src.pbrt.core.transform import Matrix, identity
from src.pbrt.scene.entities import (
    DEFAULT_MATERIAL,
    AreaLight,
    Material,
    MediumInterface,
)


class ActiveTransform(IntFlag):
    """Which shutter-time matrices transform directives modify."""

    START = 1
    END = 2
    ALL = START | END


class ScopeKind(Enum):
    """Kind of Begin that opened a scope."""

    ATTRIBUTE = "Attribute"
    TRANSFORM = "Transform"
    OBJECT = "Object"
    IMPORT = "Import"


# Targets accepted by the Attribute directive
ATTRIBUTE_TARGETS = ("shape", "light", "material", "medium", "texture")


@dataclass
class GraphicsState:
    """The context inherited by declarations.

    Attributes:
        ctm: (start, end) world-from-object matrices. Never mutated in place.
        active_transforms: Which entries of `ctm` transform directives change.
        reverse_orientation: Orientation flag, toggled by ReverseOrientation.
        material: The material applied to subsequent shapes.
        area_light: The area light applied to subsequent shapes, if any.
        medium_interface: Inside/outside media of subsequent shapes.
        attributes: Attribute-directive defaults keyed by target.
    """

    ctm: tuple[Matrix, Matrix] = field(default_factory=lambda: (identity(), identity()))
    active_transforms: ActiveTransform = ActiveTransform.ALL
    reverse_orientation: bool = False
    material: Material = DEFAULT_MATERIAL
    area_light: AreaLight | None = None
    medium_interface: MediumInterface = MediumInterface()
    attributes: dict[str, ParameterList] = field(default_factory=dict)

    def copy(self) -> GraphicsState:
        """Independent snapshot (matrices are replaced, never edited)."""
        return replace(self, attributes=dict(self.attributes))

    # -------------------------------------------------------------------------
    # Transform directives
    # -------------------------------------------------------------------------

    def apply(self, m: Matrix) -> None:
        """Compose `m` into the active matrices: CTM' = CTM @ m."""
        start, end = self.ctm
        if self.active_transforms & ActiveTransform.START:
            start = start @ m
        if self.active_transforms & ActiveTransform.END:
            end = end @ m
        self.ctm = (start, end)

    def set_transform(self, m: Matrix) -> None:
        """Replace the active matrices with `m`."""
        start, end = self.ctm
        if self.active_transforms & ActiveTransform.START:
            start = m.copy()
        if self.active_transforms & ActiveTransform.END:
            end = m.copy()
        self.ctm = (start, end)

    def restore_transform(self, saved: tuple[Matrix, Matrix]) -> None:
        """Restore the active matrices from a named coordinate system."""
        start, end = self.ctm
        if self.active_transforms & ActiveTransform.START:
            start = saved[0].copy()
        if self.active_transforms & ActiveTransform.END:
            end = saved[1].copy()
        self.ctm = (start, end)

    def attribute_defaults(self, target: str) -> ParameterList:
        return self.attributes.get(target, ParameterList())

    def add_attributes(self, target: str, params: ParameterList) -> None:
        self.attributes[target] = params.merged_over(self.attribute_defaults(target))


@dataclass(frozen=True)
class Checkpoint:
    """Saved stack position used to discard an imported file's state."""

    depth: int
    floor: int
    recording: str | None


class GraphicsStateStack:
    """The active graphics state plus a stack of saved states.

    Attributes:
        active: The state new declarations inherit from.
    """

    def __init__(self) -> None:
        self.active = GraphicsState()
        self._saved: list[tuple[ScopeKind, GraphicsState]] = []
        self._floor = 0
        self._object_name: str | None = None

    @property
    def depth(self) -> int:
        """Number of open scopes."""
        return len(self._saved)

    @property
    def recording(self) -> bool:
        return self._object_name is not None

    @property
    def object_name(self) -> str | None:
        return self._object_name

    def push(self, scope: ScopeKind) -> None:
        """Save a copy of the active state (AttributeBegin/TransformBegin)."""
        self._saved.append((scope, self.active.copy()))

    def pop(self, scope: ScopeKind, line: int | None = None) -> None:
        """Restore the state saved by the matching Begin.

        Raises:
            UnbalancedScopeError: If no scope is open above the floor, or the
                innermost open scope is of a different kind.
        """
        if len(self._saved) <= self._floor:
            raise UnbalancedScopeError(
                f"{scope.value}End without matching {scope.value}Begin", line=line
            )
        open_scope, saved = self._saved[-1]
        if open_scope is not scope:
            raise UnbalancedScopeError(
                f"{scope.value}End does not match the open {open_scope.value}Begin",
                line=line,
            )
        self._saved.pop()
        self.active = saved

    def begin_object(self, name: str, line: int | None = None) -> None:
        """Start recording shapes into the object `name`.

        Raises:
            NestedObjectError: If an object is already being recorded.
        """
        if self._object_name is not None:
            raise NestedObjectError(
                f'ObjectBegin "{name}" inside the definition of "{self._object_name}"',
                line=line,
            )
        self.push(ScopeKind.OBJECT)
        self._object_name = name

    def end_object(self, line: int | None = None) -> str:
        """Stop recording and return the recorded object's name.

        Raises:
            UnbalancedScopeError: If no object is being recorded.
        """
        if self._object_name is None:
            raise UnbalancedScopeError("ObjectEnd without matching ObjectBegin", line=line)
        self.pop(ScopeKind.OBJECT, line)
        name, self._object_name = self._object_name, None
        return name

    # -------------------------------------------------------------------------
    # Import scopes
    # -------------------------------------------------------------------------

    def checkpoint(self) -> Checkpoint:
        """Open an implicit scope whose state is discarded by `restore`.

        Scopes opened before the checkpoint cannot be closed until it is
        restored.
        """
        mark = Checkpoint(depth=len(self._saved), floor=self._floor, recording=self._object_name)
        self.push(ScopeKind.IMPORT)
        self._floor = len(self._saved)
        return mark

    def restore(self, mark: Checkpoint, line: int | None = None) -> None:
        """Discard every state change made since `mark`.

        Raises:
            UnbalancedScopeError: If an object definition or any other scope
                opened since `mark` was left open.
        """
        if self._object_name != mark.recording:
            raise UnbalancedScopeError(
                f'ObjectBegin "{self._object_name}" is never closed', line=line
            )
        if len(self._saved) != mark.depth + 1:
            scope = self._saved[-1][0]
            raise UnbalancedScopeError(
                f"{scope.value}Begin without matching {scope.value}End", line=line
            )
        _, saved = self._saved.pop()
        self.active = saved
        self._floor = mark.floor

    def check_balanced(self, line: int | None = None) -> None:
        """Fail if any scope is still open at end of input.

        Raises:
            UnbalancedScopeError: If a Begin was never closed.
        """
        if self._object_name is not None:
            raise UnbalancedScopeError(
                f'ObjectBegin "{self._object_name}" is never closed', line=line
            )
        if self._saved:
            scope = self._saved[-1][0]
            raise UnbalancedScopeError(
                f"{scope.value}Begin without matching {scope.value}End", line=line
            )

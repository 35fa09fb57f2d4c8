"""Unit tests for the graphics state stack machine.

Tests cover:
- Copy-on-push scopes and restore on pop
- Scope kind matching and unbalanced ends
- ActiveTransform selection of start/end matrices
- Object recording
- Import checkpoints
"""

import numpy as np
import pytest

from src.pbrt.core import transform
from src.pbrt.core.errors import NestedObjectError, UnbalancedScopeError
from src.pbrt.core.params import Parameter, ParameterList, ParameterValue, ParamType
from src.pbrt.scene.entities import DEFAULT_MATERIAL, Material
from src.pbrt.scene.state import (
    ActiveTransform,
    GraphicsState,
    GraphicsStateStack,
    ScopeKind,
)


@pytest.fixture
def stack():
    """Create a fresh GraphicsStateStack for each test."""
    return GraphicsStateStack()


class TestGraphicsState:
    """Tests for a single GraphicsState."""

    def test_defaults(self):
        """Test the initial state."""
        state = GraphicsState()
        assert transform.is_identity(state.ctm[0])
        assert transform.is_identity(state.ctm[1])
        assert state.active_transforms is ActiveTransform.ALL
        assert state.reverse_orientation is False
        assert state.material is DEFAULT_MATERIAL
        assert state.area_light is None

    def test_apply_composes_on_the_right(self):
        """Test CTM' = CTM @ M."""
        state = GraphicsState()
        state.apply(transform.translate((1, 0, 0)))
        state.apply(transform.scale((2, 2, 2)))
        expected = transform.translate((1, 0, 0)) @ transform.scale((2, 2, 2))
        np.testing.assert_allclose(state.ctm[0], expected)

    def test_apply_does_not_mutate_previous_matrix(self):
        """Test that matrices are replaced rather than edited."""
        state = GraphicsState()
        before = state.ctm[0]
        state.apply(transform.translate((1, 2, 3)))
        assert transform.is_identity(before)

    def test_active_transform_start_only(self):
        """Test that START leaves the end matrix alone."""
        state = GraphicsState()
        state.active_transforms = ActiveTransform.START
        state.apply(transform.translate((1, 0, 0)))
        assert not transform.is_identity(state.ctm[0])
        assert transform.is_identity(state.ctm[1])

    def test_active_transform_end_only(self):
        """Test that END leaves the start matrix alone."""
        state = GraphicsState()
        state.active_transforms = ActiveTransform.END
        state.set_transform(transform.scale((3, 3, 3)))
        assert transform.is_identity(state.ctm[0])
        np.testing.assert_array_equal(state.ctm[1], transform.scale((3, 3, 3)))

    def test_copy_is_independent(self):
        """Test that a copy does not share attribute tables."""
        state = GraphicsState()
        snapshot = state.copy()
        params = ParameterList([Parameter("radius", ParameterValue(ParamType.FLOAT, (2.0,)))])
        state.add_attributes("shape", params)

        assert snapshot.attribute_defaults("shape") == ParameterList()
        assert state.attribute_defaults("shape").get_float("radius") == 2.0


class TestScopes:
    """Tests for push/pop scope handling."""

    def test_pop_restores_state(self, stack):
        """Test AttributeEnd restores everything AttributeBegin saved."""
        stack.push(ScopeKind.ATTRIBUTE)
        stack.active.apply(transform.translate((0, 1, 0)))
        stack.active.reverse_orientation = True
        stack.active.material = Material("conductor")
        stack.pop(ScopeKind.ATTRIBUTE)

        assert transform.is_identity(stack.active.ctm[0])
        assert stack.active.reverse_orientation is False
        assert stack.active.material is DEFAULT_MATERIAL

    def test_nested_scopes(self, stack):
        """Test nested scopes unwind in order."""
        stack.push(ScopeKind.ATTRIBUTE)
        stack.active.apply(transform.translate((1, 0, 0)))
        stack.push(ScopeKind.TRANSFORM)
        stack.active.apply(transform.translate((1, 0, 0)))
        assert stack.depth == 2

        stack.pop(ScopeKind.TRANSFORM)
        np.testing.assert_array_equal(stack.active.ctm[0], transform.translate((1, 0, 0)))
        stack.pop(ScopeKind.ATTRIBUTE)
        assert stack.depth == 0

    def test_pop_empty(self, stack):
        """Test End without Begin."""
        with pytest.raises(UnbalancedScopeError, match="without matching"):
            stack.pop(ScopeKind.ATTRIBUTE, line=3)

    def test_pop_wrong_kind(self, stack):
        """Test TransformEnd closing an AttributeBegin."""
        stack.push(ScopeKind.ATTRIBUTE)
        with pytest.raises(UnbalancedScopeError, match="does not match"):
            stack.pop(ScopeKind.TRANSFORM)

    def test_check_balanced(self, stack):
        """Test that open scopes are reported at end of input."""
        stack.check_balanced()
        stack.push(ScopeKind.ATTRIBUTE)
        with pytest.raises(UnbalancedScopeError):
            stack.check_balanced(line=10)


class TestObjects:
    """Tests for object recording."""

    def test_begin_end(self, stack):
        """Test an object definition round trip."""
        stack.begin_object("ball")
        assert stack.recording
        assert stack.object_name == "ball"
        assert stack.end_object() == "ball"
        assert not stack.recording

    def test_nested_object(self, stack):
        """Test ObjectBegin inside ObjectBegin."""
        stack.begin_object("outer")
        with pytest.raises(NestedObjectError):
            stack.begin_object("inner")

    def test_end_without_begin(self, stack):
        """Test ObjectEnd when nothing is recorded."""
        with pytest.raises(UnbalancedScopeError):
            stack.end_object()

    def test_object_end_with_open_attribute(self, stack):
        """Test ObjectEnd while an attribute scope inside it is open."""
        stack.begin_object("ball")
        stack.push(ScopeKind.ATTRIBUTE)
        with pytest.raises(UnbalancedScopeError):
            stack.end_object()

    def test_unclosed_object(self, stack):
        """Test an object still open at end of input."""
        stack.begin_object("ball")
        with pytest.raises(UnbalancedScopeError, match="never closed"):
            stack.check_balanced()


class TestCheckpoints:
    """Tests for the implicit scope around imported files."""

    def test_restore_discards_changes(self, stack):
        """Test that everything after the checkpoint is undone."""
        stack.active.apply(transform.translate((5, 0, 0)))
        before = stack.active.ctm[0]
        mark = stack.checkpoint()

        stack.active.apply(transform.scale((2, 2, 2)))
        stack.active.reverse_orientation = True
        stack.push(ScopeKind.ATTRIBUTE)
        stack.pop(ScopeKind.ATTRIBUTE)
        stack.restore(mark)

        np.testing.assert_array_equal(stack.active.ctm[0], before)
        assert stack.active.reverse_orientation is False
        assert stack.depth == 0

    def test_cannot_close_scope_opened_outside(self, stack):
        """Test that an imported file cannot pop the importer's scopes."""
        stack.push(ScopeKind.ATTRIBUTE)
        stack.checkpoint()
        with pytest.raises(UnbalancedScopeError):
            stack.pop(ScopeKind.ATTRIBUTE)

    @pytest.mark.parametrize("scope", [ScopeKind.ATTRIBUTE, ScopeKind.TRANSFORM])
    def test_open_scope_at_restore(self, stack, scope):
        """Test a Begin left open by the imported file."""
        mark = stack.checkpoint()
        stack.push(scope)
        with pytest.raises(UnbalancedScopeError, match=f"{scope.value}Begin without matching"):
            stack.restore(mark, line=2)

    def test_open_object_at_restore(self, stack):
        """Test an object left open by the imported file."""
        mark = stack.checkpoint()
        stack.begin_object("ball")
        with pytest.raises(UnbalancedScopeError):
            stack.restore(mark)

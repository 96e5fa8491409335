"""Tests for call-kind classification."""

import itertools

import pytest
from codekg_core.classification import (
    KIND_CONFIDENCE,
    CallClassification,
    classify_call,
    split_confidence,
)
from codekg_core.facts import CallShape
from codekg_core.graph import CallKind


class TestShapes:
    """Tests for classification by expression shape."""

    @pytest.mark.parametrize(
        ("shape", "kind", "confidence"),
        [
            (CallShape.DIRECT, CallKind.DIRECT, 1.0),
            (CallShape.QUALIFIED_THIS, CallKind.DIRECT, 1.0),
            (CallShape.QUALIFIED_SUPER, CallKind.INHERITED, 0.9),
            (CallShape.CONSTRUCTOR, CallKind.CONSTRUCTOR, 1.0),
            (CallShape.LAMBDA, CallKind.LAMBDA, 0.8),
            (CallShape.METHOD_REFERENCE, CallKind.METHOD_REFERENCE, 0.9),
            (CallShape.STATIC, CallKind.STATIC, 1.0),
            (CallShape.INTERFACE_DISPATCH, CallKind.INTERFACE, 0.9),
        ],
    )
    def test_resolved_shapes(self, shape: CallShape, kind: CallKind, confidence: float) -> None:
        """Each shape maps to its kind and fixed confidence."""
        assert classify_call(shape, resolved=True) == CallClassification(kind=kind, confidence=confidence)

    @pytest.mark.parametrize("shape", list(CallShape))
    def test_unresolved_is_unknown(self, shape: CallShape) -> None:
        """Unresolved targets are Unknown with zero confidence, whatever the shape."""
        result = classify_call(shape, resolved=False, target_is_static=True, target_in_interface=True)
        assert result.kind is CallKind.UNKNOWN
        assert result.confidence == 0.0


class TestTargetSignals:
    """Tests for classification by what is known about the target."""

    def test_static_target(self) -> None:
        """A plain call to a static method is Static."""
        assert classify_call(CallShape.DIRECT, True, target_is_static=True).kind is CallKind.STATIC

    def test_interface_target(self) -> None:
        """A plain call to an interface method is Interface."""
        assert classify_call(CallShape.DIRECT, True, target_in_interface=True).kind is CallKind.INTERFACE

    def test_inherited_target(self) -> None:
        """A plain call to a supertype's method is Inherited."""
        result = classify_call(CallShape.QUALIFIED_THIS, True, inherited=True)
        assert result == CallClassification(kind=CallKind.INHERITED, confidence=0.9)

    def test_rule_priority(self) -> None:
        """Earlier rules shadow later ones."""
        assert classify_call(CallShape.CONSTRUCTOR, True, target_is_static=True).kind is CallKind.CONSTRUCTOR
        assert classify_call(CallShape.LAMBDA, True, target_in_interface=True).kind is CallKind.LAMBDA
        assert classify_call(CallShape.METHOD_REFERENCE, True, inherited=True).kind is CallKind.METHOD_REFERENCE
        assert classify_call(CallShape.DIRECT, True, target_is_static=True, target_in_interface=True).kind is (
            CallKind.STATIC
        )
        assert classify_call(CallShape.DIRECT, True, target_in_interface=True, inherited=True).kind is (
            CallKind.INTERFACE
        )


class TestConfidence:
    """Tests for confidence values."""

    def test_every_combination_is_deterministic_and_bounded(self) -> None:
        """All inputs classify to a confidence in [0, 1], identically on repeat."""
        for shape, resolved, static, iface, inherited in itertools.product(
            list(CallShape), [True, False], [True, False], [True, False], [True, False]
        ):
            first = classify_call(
                shape,
                resolved,
                target_is_static=static,
                target_in_interface=iface,
                inherited=inherited,
            )
            again = classify_call(
                shape,
                resolved,
                target_is_static=static,
                target_in_interface=iface,
                inherited=inherited,
            )
            assert first == again
            assert 0.0 <= first.confidence <= 1.0
            assert first.confidence == KIND_CONFIDENCE[first.kind]

    @pytest.mark.parametrize(
        ("count", "expected"),
        [(1, 1.0), (2, 0.5), (4, 0.25), (0, 0.9)],
    )
    def test_split_confidence(self, count: int, expected: float) -> None:
        """Fan-out splits evenly; no implementors keeps the interface confidence."""
        assert split_confidence(count) == pytest.approx(expected)

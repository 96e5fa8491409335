"""Call-kind classification for call sites.

A call site is classified from its expression shape and from what is known
about the resolved target. Rules are evaluated in order, first match wins.
Confidence values are fixed per kind; interface fan-out (1/N across known
implementors) is applied by the graph builder, not here.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from codekg_core.facts import CallShape
from codekg_core.graph.models import CallKind

KIND_CONFIDENCE: dict[CallKind, float] = {
    CallKind.DIRECT: 1.0,
    CallKind.CONSTRUCTOR: 1.0,
    CallKind.STATIC: 1.0,
    CallKind.INTERFACE: 0.9,
    CallKind.INHERITED: 0.9,
    CallKind.METHOD_REFERENCE: 0.9,
    CallKind.LAMBDA: 0.8,
    CallKind.UNKNOWN: 0.0,
}


@dataclass(frozen=True)
class CallSite:
    """What the classifier sees of a call site."""

    shape: CallShape
    resolved: bool
    target_is_static: bool = False
    target_in_interface: bool = False
    inherited: bool = False


@dataclass(frozen=True)
class CallClassification:
    """Call kind with its confidence in [0, 1]."""

    kind: CallKind
    confidence: float


CallRule = Callable[[CallSite], bool]

CALL_RULES: tuple[tuple[CallRule, CallKind], ...] = (
    (lambda site: not site.resolved, CallKind.UNKNOWN),
    (lambda site: site.shape is CallShape.CONSTRUCTOR, CallKind.CONSTRUCTOR),
    (lambda site: site.shape is CallShape.LAMBDA, CallKind.LAMBDA),
    (lambda site: site.shape is CallShape.METHOD_REFERENCE, CallKind.METHOD_REFERENCE),
    (
        lambda site: site.shape is CallShape.STATIC or site.target_is_static,
        CallKind.STATIC,
    ),
    (
        lambda site: site.shape is CallShape.INTERFACE_DISPATCH or site.target_in_interface,
        CallKind.INTERFACE,
    ),
    (
        lambda site: site.shape is CallShape.QUALIFIED_SUPER or site.inherited,
        CallKind.INHERITED,
    ),
)


def classify_call_site(site: CallSite) -> CallClassification:
    """Classify a call site. Never raises; falls through to DIRECT."""
    for matches, kind in CALL_RULES:
        if matches(site):
            return CallClassification(kind=kind, confidence=KIND_CONFIDENCE[kind])
    return CallClassification(kind=CallKind.DIRECT, confidence=KIND_CONFIDENCE[CallKind.DIRECT])


def classify_call(
    shape: CallShape,
    resolved: bool,
    *,
    target_is_static: bool = False,
    target_in_interface: bool = False,
    inherited: bool = False,
) -> CallClassification:
    """Classify a call from its shape and what is known about the target.

    Args:
        shape: Syntactic shape of the call expression
        resolved: Whether the target method was statically determined
        target_is_static: Target method is declared static
        target_in_interface: Target method is owned by an interface
        inherited: Target is owned by a supertype of the caller's class

    Returns:
        CallClassification; unresolved calls are UNKNOWN with confidence 0
    """
    return classify_call_site(
        CallSite(
            shape=shape,
            resolved=resolved,
            target_is_static=target_is_static,
            target_in_interface=target_in_interface,
            inherited=inherited,
        )
    )


def split_confidence(implementor_count: int) -> float:
    """Confidence of each edge when a call fans out to N implementors."""
    if implementor_count <= 0:
        return KIND_CONFIDENCE[CallKind.INTERFACE]
    return 1.0 / implementor_count

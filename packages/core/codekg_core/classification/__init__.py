"""Layer and call-kind classification.

Both classifiers are pure functions over structural facts: they never raise
and always return the same answer for the same input.
"""

from codekg_core.classification.calls import (
    CALL_RULES,
    KIND_CONFIDENCE,
    CallClassification,
    CallSite,
    classify_call,
    classify_call_site,
    split_confidence,
)
from codekg_core.classification.layers import (
    LAYER_RULES,
    LayerDecision,
    classify_layer,
    classify_method_layer,
    explain_layer,
)

__all__ = [
    "CALL_RULES",
    "KIND_CONFIDENCE",
    "LAYER_RULES",
    "CallClassification",
    "CallSite",
    "LayerDecision",
    "classify_call",
    "classify_call_site",
    "classify_layer",
    "classify_method_layer",
    "explain_layer",
    "split_confidence",
]

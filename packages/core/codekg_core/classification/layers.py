"""Architectural layer classification for classes and methods.

Layers are assigned by an ordered cascade of signal passes. Passes are tried
strictly in priority order and the first one that yields a layer wins:

1. marker annotations (declared intent)
2. package-name keywords
3. simple-name suffixes
4. supertype names (direct superclass, then implemented interfaces)
5. Layer.UNKNOWN

There is no scoring across passes: the same facts always yield the same layer.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from codekg_core.facts import ClassFact, MethodFact
from codekg_core.graph.models import Layer
from codekg_core.naming import simple_name

# Fully-qualified marker annotations. Simple names are derived from these and
# only match annotations given without a package.
ANNOTATION_LAYERS: tuple[tuple[str, Layer], ...] = (
    ("org.springframework.stereotype.Controller", Layer.CONTROLLER),
    ("org.springframework.web.bind.annotation.RestController", Layer.CONTROLLER),
    ("org.springframework.web.bind.annotation.ControllerAdvice", Layer.CONTROLLER),
    ("javax.ws.rs.Path", Layer.CONTROLLER),
    ("org.springframework.stereotype.Service", Layer.SERVICE),
    ("javax.ejb.Stateless", Layer.SERVICE),
    ("javax.ejb.Stateful", Layer.SERVICE),
    ("javax.ejb.Singleton", Layer.SERVICE),
    ("org.springframework.stereotype.Repository", Layer.REPOSITORY),
    ("org.springframework.data.repository.Repository", Layer.REPOSITORY),
    ("org.springframework.data.jpa.repository.JpaRepository", Layer.REPOSITORY),
    ("org.springframework.data.mongodb.repository.MongoRepository", Layer.REPOSITORY),
    ("org.apache.ibatis.annotations.Mapper", Layer.MAPPER),
    ("org.mybatis.spring.annotation.MapperScan", Layer.MAPPER),
    ("org.springframework.context.annotation.Configuration", Layer.CONFIG),
    ("org.springframework.boot.context.properties.ConfigurationProperties", Layer.CONFIG),
    ("org.springframework.boot.autoconfigure.SpringBootApplication", Layer.CONFIG),
    ("org.springframework.stereotype.Component", Layer.COMPONENT),
    ("javax.persistence.Entity", Layer.ENTITY),
    ("jakarta.persistence.Entity", Layer.ENTITY),
    ("org.hibernate.annotations.Entity", Layer.ENTITY),
    ("org.springframework.data.mongodb.core.mapping.Document", Layer.ENTITY),
)

# Method-level annotations that override the owner's layer
METHOD_ANNOTATION_LAYERS: tuple[tuple[str, Layer], ...] = (
    ("org.springframework.web.bind.annotation.RequestMapping", Layer.CONTROLLER),
    ("org.springframework.web.bind.annotation.GetMapping", Layer.CONTROLLER),
    ("org.springframework.web.bind.annotation.PostMapping", Layer.CONTROLLER),
    ("org.springframework.web.bind.annotation.PutMapping", Layer.CONTROLLER),
    ("org.springframework.web.bind.annotation.DeleteMapping", Layer.CONTROLLER),
    ("org.springframework.web.bind.annotation.PatchMapping", Layer.CONTROLLER),
    ("org.apache.ibatis.annotations.Select", Layer.MAPPER),
    ("org.apache.ibatis.annotations.Insert", Layer.MAPPER),
    ("org.apache.ibatis.annotations.Update", Layer.MAPPER),
    ("org.apache.ibatis.annotations.Delete", Layer.MAPPER),
    ("org.springframework.data.jpa.repository.Query", Layer.REPOSITORY),
    ("org.springframework.context.annotation.Bean", Layer.CONFIG),
)

# Order matters: earlier keywords win ("service.web" is a controller package)
PACKAGE_KEYWORDS: tuple[tuple[tuple[str, ...], Layer], ...] = (
    (("controller", "web"), Layer.CONTROLLER),
    (("service", "business"), Layer.SERVICE),
    (("mapper", "dao"), Layer.MAPPER),
    (("repository", "repo"), Layer.REPOSITORY),
    (("util", "helper"), Layer.UTIL),
    (("entity", "model", "domain"), Layer.ENTITY),
    (("config",), Layer.CONFIG),
    (("component",), Layer.COMPONENT),
)

# Matched case-insensitively against the simple name
NAME_SUFFIXES: tuple[tuple[tuple[str, ...], Layer], ...] = (
    (("controller",), Layer.CONTROLLER),
    (("service", "serviceimpl"), Layer.SERVICE),
    (("mapper", "dao"), Layer.MAPPER),
    (("repository", "repo"), Layer.REPOSITORY),
    (("util", "utils", "helper"), Layer.UTIL),
    (("entity", "model"), Layer.ENTITY),
    (("config", "configuration"), Layer.CONFIG),
    (("component",), Layer.COMPONENT),
)

# Short data-object suffixes, matched case-sensitively so "Todo" stays unclassified
ENTITY_ACRONYM_SUFFIXES: tuple[str, ...] = ("DO", "DTO", "VO", "PO")

SUPERTYPE_KEYWORDS: tuple[tuple[str, Layer], ...] = (
    ("controller", Layer.CONTROLLER),
    ("service", Layer.SERVICE),
    ("repository", Layer.REPOSITORY),
    ("mapper", Layer.MAPPER),
)


def _annotation_index(table: tuple[tuple[str, Layer], ...]) -> dict[str, Layer]:
    index: dict[str, Layer] = {}
    for qualified, layer in table:
        index.setdefault(qualified, layer)
        index.setdefault(simple_name(qualified), layer)
    return index


_CLASS_ANNOTATIONS = _annotation_index(ANNOTATION_LAYERS)
_METHOD_ANNOTATIONS = _annotation_index(METHOD_ANNOTATION_LAYERS)


def _normalize_annotation(annotation: str) -> str:
    # "@Service", "@Service()" and "Service" are the same marker
    return annotation.strip().lstrip("@").split("(", 1)[0]


def _match_annotations(annotations: list[str], index: dict[str, Layer]) -> Layer | None:
    for annotation in annotations:
        # Qualified names hit only qualified keys, bare names only simple ones
        layer = index.get(_normalize_annotation(annotation))
        if layer is not None:
            return layer
    return None


def by_annotation(fact: ClassFact) -> Layer | None:
    return _match_annotations(fact.annotations, _CLASS_ANNOTATIONS)


def by_package(fact: ClassFact) -> Layer | None:
    package = fact.package.lower()
    for keywords, layer in PACKAGE_KEYWORDS:
        if any(keyword in package for keyword in keywords):
            return layer
    return None


def by_name_suffix(fact: ClassFact) -> Layer | None:
    name = fact.simple_name
    lowered = name.lower()
    for suffixes, layer in NAME_SUFFIXES:
        if lowered.endswith(suffixes):
            return layer
    if name.endswith(ENTITY_ACRONYM_SUFFIXES):
        return Layer.ENTITY
    return None


def by_supertype(fact: ClassFact) -> Layer | None:
    supertypes = [fact.superclass] if fact.superclass else []
    supertypes.extend(fact.interfaces)
    for supertype in supertypes:
        lowered = simple_name(supertype).lower()
        for keyword, layer in SUPERTYPE_KEYWORDS:
            if keyword in lowered:
                return layer
    return None


LayerRule = Callable[[ClassFact], Layer | None]

LAYER_RULES: tuple[tuple[str, LayerRule], ...] = (
    ("annotation", by_annotation),
    ("package", by_package),
    ("name_suffix", by_name_suffix),
    ("supertype", by_supertype),
)


@dataclass(frozen=True)
class LayerDecision:
    """A layer together with the rule that decided it."""

    layer: Layer
    rule: str


def explain_layer(fact: ClassFact) -> LayerDecision:
    """Classify a class and report which rule decided.

    Returns:
        LayerDecision with rule "fallback" when no pass matched
    """
    for name, rule in LAYER_RULES:
        layer = rule(fact)
        if layer is not None:
            return LayerDecision(layer=layer, rule=name)
    return LayerDecision(layer=Layer.UNKNOWN, rule="fallback")


def classify_layer(fact: ClassFact) -> Layer:
    """Classify a class fact into an architectural layer. Never raises."""
    return explain_layer(fact).layer


def classify_method_layer(fact: MethodFact, owner_layer: Layer) -> Layer:
    """Classify a method, inheriting the owner's layer unless annotated."""
    return _match_annotations(fact.annotations, _METHOD_ANNOTATIONS) or owner_layer

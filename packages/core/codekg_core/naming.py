"""Name and signature helpers shared by facts and graph nodes."""

from __future__ import annotations


def simple_name(qualified_name: str) -> str:
    """Return the last dotted segment of a qualified name."""
    return qualified_name.rsplit(".", 1)[-1]


def normalize_signature(signature: str) -> str:
    """Drop whitespace so "find(int, String)" equals "find(int,String)"."""
    return "".join(signature.split())


def parse_signature(signature: str) -> tuple[str, list[str]]:
    """Split "name(T1,T2)" into its name and ordered parameter types."""
    normalized = normalize_signature(signature)
    if "(" not in normalized:
        return normalized, []
    name, _, rest = normalized.partition("(")
    params = rest.rstrip(")")
    if not params:
        return name, []
    return name, _split_params(params)


def _split_params(params: str) -> list[str]:
    # Commas inside generic arguments (Map<K,V>) do not separate parameters
    parts: list[str] = []
    depth = 0
    current = ""
    for char in params:
        if char == "<":
            depth += 1
        elif char == ">":
            depth -= 1
        if char == "," and depth == 0:
            parts.append(current)
            current = ""
        else:
            current += char
    parts.append(current)
    return parts

"""Parser boundary: esprima ESTree trees as plain dictionaries.

Every node handed around the tracer is a ``dict`` with a ``"type"`` key, exactly
as ``esprima`` produces it with ``toDict()``. Helpers here never mutate nodes.
"""
import esprima

from errors import InstrumentationError

_META_KEYS = ("loc", "range", "leadingComments", "trailingComments")


def parse_program(code: str) -> dict:
    """Parse a script and return its ESTree dictionary (with loc and range)."""
    try:
        tree = esprima.parseScript(code, {"loc": True, "range": True})
    except esprima.Error as e:
        raise InstrumentationError(f"SyntaxError: {e}") from e
    except RecursionError as e:
        raise InstrumentationError("SyntaxError: program is nested too deeply") from e
    return tree.toDict()


def is_node(value) -> bool:
    return isinstance(value, dict) and "type" in value


def node_line(node) -> int:
    """1-based start line of a node, or -1 for synthesized nodes."""
    if not is_node(node):
        return -1
    loc = node.get("loc")
    if not loc or not loc.get("start"):
        return -1
    return loc["start"].get("line", -1)


def source_of(node, code):
    """Original text of a node when it still carries its source range."""
    rng = node.get("range") if is_node(node) else None
    if not code or not rng or len(rng) != 2:
        return None
    return code[rng[0]:rng[1]]


def iter_child_nodes(node):
    for key, value in node.items():
        if key in _META_KEYS:
            continue
        if is_node(value):
            yield value
        elif isinstance(value, list):
            for item in value:
                if is_node(item):
                    yield item


def binding_identifiers(pattern) -> list:
    """Names bound by a declaration target or parameter pattern, in source order."""
    if not is_node(pattern):
        return []
    kind = pattern["type"]
    if kind == "Identifier":
        return [pattern["name"]]
    if kind == "AssignmentPattern":
        return binding_identifiers(pattern.get("left"))
    if kind == "RestElement":
        return binding_identifiers(pattern.get("argument"))
    if kind == "ArrayPattern":
        names = []
        for element in pattern.get("elements") or []:
            names.extend(binding_identifiers(element))
        return names
    if kind == "ObjectPattern":
        names = []
        for prop in pattern.get("properties") or []:
            if prop.get("type") == "RestElement":
                names.extend(binding_identifiers(prop))
            else:
                names.extend(binding_identifiers(prop.get("value")))
        return names
    return []

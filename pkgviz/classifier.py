"""
Turn one declared Go type into a graph node.

Only genuinely named types are classified; aliases are skipped.  The node
kind follows the underlying shape of the declaration:

    basic      -> "basic"       (id shared across packages)
    func(...)  -> "signature"   (id shared across packages)
    struct     -> "struct"      one row per field
    interface  -> "interface"   one row per explicit method
    []T, [N]T  -> "slice"
    map[K]V    -> "map"
    chan T     -> "chan"
    *T         -> "pointer"     only with GraphConfig.materialize_pointers

Anything else is skipped with a warning.
"""
from __future__ import annotations

import logging
from typing import Optional

from .graph import GraphConfig, GraphNode, StructField
from .model import TypeDescriptor
from .naming import BUILTIN_PACKAGE, allocate, relative_package, relativize_type_name, strip_pointer

__all__ = ["classify"]

logger = logging.getLogger(__name__)


def classify(
    descriptor: TypeDescriptor,
    root_package: str,
    config: Optional[GraphConfig] = None,
) -> Optional[GraphNode]:
    """Build the node for `descriptor`, or return None when it is not drawn."""
    cfg = config or GraphConfig()
    if descriptor.is_alias:
        logger.debug("skipping alias %s", descriptor.qualified_name)
        return None

    name = descriptor.name
    package = relative_package(descriptor.package, root_package)
    underlying = descriptor.underlying
    kind = descriptor.kind

    def relativize(type_name: str) -> str:
        return relativize_type_name(type_name, root_package)

    if kind in ("basic", "signature"):
        return GraphNode(
            id=allocate(BUILTIN_PACKAGE, name),
            kind=kind,
            name=name,
            package=package,
            underlying=relativize(underlying.display),
            descriptor=descriptor,
        )

    node_id = allocate(package, name)

    if kind == "struct":
        node = GraphNode(id=node_id, kind="struct", name=name, package=package, descriptor=descriptor)
        for f in descriptor.fields:
            # Blank fields are padding and cannot be referenced.
            if f.name == "_":
                continue
            node.fields[f.name] = StructField(
                target_id="",
                type_name=relativize(strip_pointer(f.type.display)),
                type_ref=f.type,
            )
        return node

    if kind == "interface":
        node = GraphNode(id=node_id, kind="interface", name=name, package=package, descriptor=descriptor)
        for m in descriptor.methods:
            node.methods[m.name] = relativize(m.signature)
        return node

    if kind in ("slice", "array", "map", "chan"):
        element = underlying.elem.display if underlying.elem is not None else ""
        return GraphNode(
            id=node_id,
            kind="slice" if kind == "array" else kind,
            name=name,
            package=package,
            underlying=relativize(underlying.display),
            element=relativize(element),
            descriptor=descriptor,
        )

    if kind == "pointer":
        if not cfg.materialize_pointers:
            logger.debug("pointer type %s not materialized", descriptor.qualified_name)
            return None
        return GraphNode(
            id=node_id,
            kind="pointer",
            name=name,
            package=package,
            underlying=relativize(underlying.display),
            descriptor=descriptor,
        )

    logger.warning(
        "skipping %s: unsupported underlying type %s",
        descriptor.qualified_name,
        underlying.display,
    )
    return None

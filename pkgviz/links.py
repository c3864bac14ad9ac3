from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from .graph import Link, PackageTree
from .model import TypeRef
from .naming import BUILTIN_PACKAGE, allocate, is_internal, relative_package, relativize_type_name

__all__ = ["resolve_links", "field_target", "is_suppressed"]

logger = logging.getLogger(__name__)


def is_suppressed(shape: TypeRef) -> bool:
    """
    True when a field of this shape gets no edge.

    Edges are not drawn to basic types, function signatures, interfaces
    without explicit methods, or containers whose element is basic.
    """
    shape = shape.unwrap_pointer()
    if shape.kind in ("basic", "signature") or shape.is_empty_interface:
        return True
    if shape.is_container:
        elem = shape.elem.unwrap_pointer() if shape.elem is not None else None
        return elem is None or elem.kind == "basic"
    return False


def _declared_shape(ref: TypeRef, tree: PackageTree) -> TypeRef:
    """The underlying shape of a named reference when its declaration was walked."""
    if ref.kind != "named" or not is_internal(ref.package, tree.root_package):
        return ref
    declared = tree.lookup(relative_package(ref.package, tree.root_package), ref.name)
    if declared is None or declared.descriptor is None:
        return ref
    return declared.descriptor.underlying


def _target_of(ref: TypeRef, source_package: str, root_package: str) -> Tuple[str, str]:
    if ref.kind == "named" or ref.name:
        if not ref.package:
            return BUILTIN_PACKAGE, ref.name
        if is_internal(ref.package, root_package):
            return relative_package(ref.package, root_package), ref.name
        return ref.package, ref.name
    # Unnamed shapes (literal structs, nested containers) stay with the source.
    return source_package, relativize_type_name(ref.display, root_package)


def field_target(ref: TypeRef, source_package: str, tree: PackageTree) -> Optional[Tuple[str, str]]:
    """
    Return ``(target package, target name)`` for a struct field, or None.

    Pointers are followed to their pointee; containers link to their element
    rather than to themselves.
    """
    ref = ref.unwrap_pointer()
    if is_suppressed(_declared_shape(ref, tree)):
        return None
    if ref.is_container and ref.elem is not None:
        ref = ref.elem.unwrap_pointer()
    return _target_of(ref, source_package, tree.root_package)


def resolve_links(tree: PackageTree) -> List[Link]:
    """Compute the edge list for every struct node in `tree`."""
    for node in tree.iter_nodes():
        if node.kind != "struct":
            continue
        for field_name, row in node.fields.items():
            if row.type_ref is None:
                continue
            target = field_target(row.type_ref, node.package, tree)
            if target is None:
                continue
            package, name = target
            declared = tree.lookup(package, name)
            row.target_id = declared.id if declared is not None else allocate(package, name)
            tree.add_link(
                Link(
                    source_id=node.id,
                    source_field=field_name,
                    target_package=package,
                    target_name=name,
                    target_id=row.target_id,
                )
            )
    logger.info("resolved %d links", len(tree.all_links()))
    return tree.all_links()

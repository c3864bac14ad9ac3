from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Literal, Optional, Tuple

from .model import Diagnostic, TypeDescriptor, TypeRef
from .naming import OUTSIDE_ROOT_MARKER, is_internal, qualified_label, relative_package

__all__ = [
    "NodeKind",
    "StructField",
    "GraphNode",
    "Link",
    "PackageTreeNode",
    "PackageTree",
    "GraphConfig",
    "TypeGraph",
]

logger = logging.getLogger(__name__)

NodeKind = Literal[
    "basic",
    "struct",
    "interface",
    "slice",
    "map",
    "chan",
    "signature",
    "pointer",
    "root",
]

# Kinds whose ids are shared across packages on purpose.
SHARED_KINDS = ("basic", "signature")


@dataclass
class StructField:
    """
    One row of a struct node.

    - target_id : id of the node this field links to ("" when no edge is drawn)
    - type_name : display type, pointer sigils and the root prefix stripped
    - type_ref  : structural shape of the field's type
    """

    target_id: str
    type_name: str
    type_ref: Optional[TypeRef] = field(default=None, repr=False, compare=False)


@dataclass
class GraphNode:
    """
    A vertex of the type graph.

    - id         : token from :func:`pkgviz.naming.allocate`
    - kind       : which template the renderer uses
    - name       : declared type name
    - package    : declaring package, relative to the root package
    - underlying : underlying type string (basic, containers, signatures)
    - element    : element type string of a container (map value for maps)
    - fields     : struct rows by field name, declaration order
    - methods    : interface methods by name, declaration order
    """

    id: str
    kind: NodeKind
    name: str
    package: str = ""
    underlying: str = ""
    element: str = ""
    fields: Dict[str, StructField] = field(default_factory=dict)
    methods: Dict[str, str] = field(default_factory=dict)
    descriptor: Optional[TypeDescriptor] = field(default=None, repr=False, compare=False)

    @property
    def label(self) -> str:
        return qualified_label(self.package, self.name)


@dataclass(frozen=True)
class Link:
    """A struct field edge; `target_package`/`target_name` label placeholders."""

    source_id: str
    source_field: str
    target_package: str
    target_name: str
    target_id: str


@dataclass
class PackageTreeNode:
    """One package path segment below the root package."""

    segment: str
    path: str
    nodes: Dict[str, GraphNode] = field(default_factory=dict)
    children: Dict[str, "PackageTreeNode"] = field(default_factory=dict)

    def child(self, segment: str) -> "PackageTreeNode":
        node = self.children.get(segment)
        if node is None:
            path = f"{self.path}/{segment}" if self.path else segment
            node = PackageTreeNode(segment=segment, path=path)
            self.children[segment] = node
        return node

    def iter_nodes(self) -> Iterator[GraphNode]:
        yield from self.nodes.values()
        for child in self.children.values():
            yield from child.iter_nodes()


class PackageTree:
    """
    Graph nodes grouped by declaring package, mirroring the package paths
    beneath the root.

    Nodes are keyed by id, and every id is owned by exactly one tree node.
    The flat edge list lives here as well so that it stays visible across
    clusters.
    """

    def __init__(self, root_package: str) -> None:
        self.root_package = root_package
        self.root = PackageTreeNode(segment="", path="")
        self.links: List[Link] = []
        self._by_name: Dict[Tuple[str, str], str] = {}
        self._owner: Dict[str, PackageTreeNode] = {}

    def find_package(self, relative_path: str, create: bool = False) -> Optional[PackageTreeNode]:
        current = self.root
        for segment in filter(None, relative_path.split("/")):
            if create:
                current = current.child(segment)
            else:
                found = current.children.get(segment)
                if found is None:
                    return None
                current = found
        return current

    def insert(self, node: GraphNode, package_path: str) -> None:
        """Store `node` under the tree node for `package_path` (an import path)."""
        if is_internal(package_path, self.root_package):
            relative = relative_package(package_path, self.root_package)
        else:
            relative = OUTSIDE_ROOT_MARKER + package_path
        owner = self.find_package(relative, create=True)
        assert owner is not None

        previous = self._owner.get(node.id)
        if previous is not None:
            existing = previous.nodes[node.id]
            if node.kind in SHARED_KINDS and existing.kind == node.kind:
                logger.debug("merging %s node %s (%s, %s)", node.kind, node.id, existing.label, node.label)
            elif existing != node:
                logger.warning("identifier collision on %s: %s replaces %s", node.id, node.label, existing.label)
            if previous is not owner:
                del previous.nodes[node.id]

        owner.nodes[node.id] = node
        self._owner[node.id] = owner
        self._by_name[(node.package, node.name)] = node.id

    def get(self, node_id: str) -> Optional[GraphNode]:
        owner = self._owner.get(node_id)
        return owner.nodes[node_id] if owner is not None else None

    def lookup(self, package: str, name: str) -> Optional[GraphNode]:
        """Find a declared node by relative package and type name."""
        node_id = self._by_name.get((package, name))
        return self.get(node_id) if node_id is not None else None

    def add_link(self, link: Link) -> None:
        self.links.append(link)

    def all_links(self) -> List[Link]:
        return self.links

    def iter_nodes(self) -> Iterator[GraphNode]:
        return self.root.iter_nodes()

    def node_count(self) -> int:
        return len(self._owner)


@dataclass
class GraphConfig:
    """
    Configuration controlling how the type graph is built.

    Parameters
    ----------
    materialize_pointers:
        If True, named pointer types (``type P *T``) become pointer nodes.
        By default they are left out and only their pointees appear.
    follow_imports:
        If False, only the root package is walked.
    """

    materialize_pointers: bool = False
    follow_imports: bool = True


@dataclass
class TypeGraph:
    """The result of one run: the package tree plus what was visited."""

    root_package: str
    root: GraphNode
    tree: PackageTree
    packages: List[str] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)

    @property
    def links(self) -> List[Link]:
        return self.tree.all_links()

    def iter_nodes(self) -> Iterator[GraphNode]:
        return self.tree.iter_nodes()

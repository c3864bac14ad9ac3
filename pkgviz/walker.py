from __future__ import annotations

import logging
from typing import List, Optional, Protocol, Set

from .classifier import classify
from .extractor import GoSourceExtractor
from .graph import GraphConfig, GraphNode, PackageTree, TypeGraph
from .links import resolve_links
from .model import Diagnostic, ExtractedPackage
from .naming import allocate, is_internal
from .resolver import GoListResolver, PackageListing, PackageResolver

__all__ = ["TypeExtractor", "PackageWalker", "build_type_graph"]

logger = logging.getLogger(__name__)


class TypeExtractor(Protocol):
    def extract(self, listing: PackageListing) -> ExtractedPackage:
        ...


class PackageWalker:
    """
    Depth-first walk over the root package and every import beneath it.

    Each package is visited once.  Resolution and parse errors are not
    caught here, so one failing package aborts the whole walk.
    """

    def __init__(
        self,
        resolver: PackageResolver,
        extractor: TypeExtractor,
        tree: PackageTree,
        config: Optional[GraphConfig] = None,
    ) -> None:
        self.resolver = resolver
        self.extractor = extractor
        self.tree = tree
        self.config = config or GraphConfig()
        self.visited: Set[str] = set()
        self.packages: List[str] = []
        self.diagnostics: List[Diagnostic] = []

    @property
    def root_package(self) -> str:
        return self.tree.root_package

    def walk(self, package: str) -> None:
        self.visit(self.resolver.resolve(package))

    def visit(self, listing: PackageListing) -> None:
        if listing.import_path in self.visited:
            return
        self.visited.add(listing.import_path)
        self.packages.append(listing.import_path)
        logger.info("visiting %s", listing.import_path)

        extracted = self.extractor.extract(listing)
        for diagnostic in extracted.diagnostics:
            logger.warning("%s: %s", listing.import_path, diagnostic)
        self.diagnostics.extend(extracted.diagnostics)

        for descriptor in extracted.descriptors:
            node = classify(descriptor, self.root_package, self.config)
            if node is not None:
                self.tree.insert(node, listing.import_path)

        if not self.config.follow_imports:
            return
        for imported in listing.imports:
            if imported in self.visited or not is_internal(imported, self.root_package):
                continue
            self.walk(imported)


def build_type_graph(
    package: str,
    resolver: Optional[PackageResolver] = None,
    extractor: Optional[TypeExtractor] = None,
    config: Optional[GraphConfig] = None,
) -> TypeGraph:
    """
    Build the complete type graph for `package`.

    The package identifier is resolved first so that the root prefix is the
    canonical import path (``./sub`` style arguments work too).
    """
    resolver = resolver or GoListResolver()
    extractor = extractor or GoSourceExtractor()

    root_listing = resolver.resolve(package)
    root_package = root_listing.import_path
    tree = PackageTree(root_package)
    walker = PackageWalker(resolver, extractor, tree, config)
    walker.visit(root_listing)
    resolve_links(tree)

    root = GraphNode(id=allocate("", root_package), kind="root", name=root_package)
    logger.info(
        "built graph for %s: %d packages, %d nodes, %d links",
        root_package,
        len(walker.packages),
        tree.node_count(),
        len(tree.all_links()),
    )
    return TypeGraph(
        root_package=root_package,
        root=root,
        tree=tree,
        packages=walker.packages,
        diagnostics=walker.diagnostics,
    )

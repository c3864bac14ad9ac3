from .errors import PkgvizError, ResolutionError, ParseError, RenderError

from .model import (
    SourceLocation,
    TypeKind,
    TypeRef,
    FieldDescriptor,
    MethodDescriptor,
    TypeDescriptor,
    Diagnostic,
    ExtractedPackage,
)

from .naming import BUILTIN_PACKAGE, allocate

from .resolver import (
    PackageListing,
    PackageResolver,
    ResolverConfig,
    GoListResolver,
    ModuleResolver,
    make_resolver,
)

from .extractor import GoSourceExtractor, extract_from_sources, parse_imports

from .graph import (
    GraphConfig,
    GraphNode,
    StructField,
    Link,
    PackageTreeNode,
    PackageTree,
    TypeGraph,
)

from .classifier import classify
from .links import resolve_links
from .walker import PackageWalker, build_type_graph
from .renderer import RendererConfig, build_dot, write_image

__all__ = [
    "PkgvizError",
    "ResolutionError",
    "ParseError",
    "RenderError",
    "SourceLocation",
    "TypeKind",
    "TypeRef",
    "FieldDescriptor",
    "MethodDescriptor",
    "TypeDescriptor",
    "Diagnostic",
    "ExtractedPackage",
    "BUILTIN_PACKAGE",
    "allocate",
    "PackageListing",
    "PackageResolver",
    "ResolverConfig",
    "GoListResolver",
    "ModuleResolver",
    "make_resolver",
    "GoSourceExtractor",
    "extract_from_sources",
    "parse_imports",
    "GraphConfig",
    "GraphNode",
    "StructField",
    "Link",
    "PackageTreeNode",
    "PackageTree",
    "TypeGraph",
    "classify",
    "resolve_links",
    "PackageWalker",
    "build_type_graph",
    "RendererConfig",
    "build_dot",
    "write_image",
]

__version__ = "0.1.0"

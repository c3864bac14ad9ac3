from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Literal, Optional

__all__ = [
    "TypeKind",
    "CONTAINER_KINDS",
    "SourceLocation",
    "TypeRef",
    "FieldDescriptor",
    "MethodDescriptor",
    "TypeDescriptor",
    "Diagnostic",
    "ExtractedPackage",
]

# "named" marks a reference to a declared name whose shape is not known locally.
TypeKind = Literal[
    "basic",
    "struct",
    "interface",
    "pointer",
    "signature",
    "chan",
    "slice",
    "array",
    "map",
    "named",
]

CONTAINER_KINDS = ("array", "slice", "map", "chan")


@dataclass(frozen=True)
class SourceLocation:
    """A line in a Go source file."""

    file: Path
    lineno: int

    def __str__(self) -> str:
        return f"{self.file}:{self.lineno}"


@dataclass(frozen=True)
class TypeRef:
    """
    The structural shape of one type expression.

    - display      : canonical type string, named types qualified with their
                     full import path (``github.com/x/y.Node``, ``[]string``)
    - kind         : structural kind of the expression itself
    - package      : import path of a named type ("" for predeclared names)
    - name         : bare declared name of a named type
    - elem         : pointee for pointers, element (map value) for containers
    - method_count : number of explicit methods of an interface shape
    """

    display: str
    kind: TypeKind
    package: str = ""
    name: str = ""
    elem: Optional["TypeRef"] = None
    method_count: int = 0

    @property
    def is_container(self) -> bool:
        return self.kind in CONTAINER_KINDS

    @property
    def is_empty_interface(self) -> bool:
        return self.kind == "interface" and self.method_count == 0

    def unwrap_pointer(self) -> "TypeRef":
        """Follow pointer indirections down to the pointee."""
        ref = self
        while ref.kind == "pointer" and ref.elem is not None:
            ref = ref.elem
        return ref


@dataclass(frozen=True)
class FieldDescriptor:
    name: str
    type: TypeRef
    embedded: bool = False


@dataclass(frozen=True)
class MethodDescriptor:
    name: str
    signature: str


@dataclass
class TypeDescriptor:
    """
    One declared type name as reported by the type extractor.

    ``kind`` is the kind of the *underlying* shape; ``underlying`` carries the
    shape itself (its ``display`` is the underlying type string and, for
    containers, its ``elem`` the element type). Struct fields and interface
    methods are kept in declaration order.
    """

    name: str
    package: str
    kind: TypeKind
    underlying: TypeRef
    fields: List[FieldDescriptor] = field(default_factory=list)
    methods: List[MethodDescriptor] = field(default_factory=list)
    is_alias: bool = False
    location: Optional[SourceLocation] = None

    @property
    def qualified_name(self) -> str:
        return f"{self.package}.{self.name}" if self.package else self.name


@dataclass(frozen=True)
class Diagnostic:
    """A non-fatal type-check problem; the run continues with best-effort data."""

    message: str
    location: Optional[SourceLocation] = None

    def __str__(self) -> str:
        if self.location is None:
            return self.message
        return f"{self.location}: {self.message}"


@dataclass
class ExtractedPackage:
    import_path: str
    name: str
    descriptors: List[TypeDescriptor] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)

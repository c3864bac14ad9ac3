"""
Extract declared types from Go source.

Every file is parsed with the tree-sitter Go grammar.  Only the top level of
the syntax tree is read: the package clause, the import declarations and
each ``type`` declaration.  Functions, vars and consts are ignored, and so
are the types declared inside function bodies.

A light type-check pass then resolves each declared name to its underlying
shape within the package and renders type strings the way the Go
type-checker prints them (named types qualified by their import path).
Problems that only make the information incomplete are collected as
:class:`~pkgviz.model.Diagnostic` objects; syntax errors raise
:class:`~pkgviz.errors.ParseError`.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Mapping, Optional, Set, Tuple

from tree_sitter import Node, Parser
from tree_sitter_language_pack import get_language

from .errors import ParseError, ResolutionError
from .model import (
    Diagnostic,
    ExtractedPackage,
    FieldDescriptor,
    MethodDescriptor,
    SourceLocation,
    TypeDescriptor,
    TypeRef,
)

if TYPE_CHECKING:
    from .resolver import PackageListing

__all__ = [
    "BASIC_TYPES",
    "GoSourceExtractor",
    "extract_from_sources",
    "parse_imports",
    "default_package_name",
]

logger = logging.getLogger(__name__)

BASIC_TYPES = frozenset(
    {
        "bool",
        "string",
        "int",
        "int8",
        "int16",
        "int32",
        "int64",
        "uint",
        "uint8",
        "uint16",
        "uint32",
        "uint64",
        "uintptr",
        "byte",
        "rune",
        "float32",
        "float64",
        "complex64",
        "complex128",
    }
)
_PREDECLARED_NAMED = frozenset({"error", "comparable"})
_ERROR_INTERFACE = "interface{Error() string}"

# Syntax nodes an interface may embed as a whole.
_EMBEDDABLE = frozenset({"type_identifier", "qualified_type", "generic_type", "interface_type"})


# ---------------------------------------------------------------------------
# Syntax tree
# ---------------------------------------------------------------------------

@dataclass
class _Param:
    name: Optional[str]
    type: "_TypeExpr"
    variadic: bool = False


@dataclass
class _Field:
    name: str
    type: "_TypeExpr"
    embedded: bool = False


@dataclass
class _TypeExpr:
    """A parsed type expression; which attributes are set depends on ``kind``."""

    kind: str  # name, pointer, slice, array, map, chan, func, struct, interface
    lineno: int = 0
    qualifier: str = ""
    name: str = ""
    args: List["_TypeExpr"] = field(default_factory=list)
    elem: Optional["_TypeExpr"] = None
    key: Optional["_TypeExpr"] = None
    length: str = ""
    direction: str = ""  # "", "send" or "recv"
    params: List[_Param] = field(default_factory=list)
    results: List[_Param] = field(default_factory=list)
    fields: List[_Field] = field(default_factory=list)
    methods: List[Tuple[str, "_TypeExpr"]] = field(default_factory=list)
    embeds: List["_TypeExpr"] = field(default_factory=list)


@dataclass
class _GoFile:
    path: Path
    package: str = ""
    import_paths: List[str] = field(default_factory=list)
    imports: Dict[str, str] = field(default_factory=dict)  # local name -> import path
    dot_imports: List[str] = field(default_factory=list)
    specs: List["_TypeSpec"] = field(default_factory=list)
    generics: List[Tuple[str, int]] = field(default_factory=list)


@dataclass
class _TypeSpec:
    name: str
    type: _TypeExpr
    alias: bool
    lineno: int
    file: _GoFile = field(repr=False, compare=False)


def default_package_name(import_path: str) -> str:
    """
    Guess the package name an import path binds when imported without a name.

    >>> default_package_name("gopkg.in/yaml.v3")
    'yaml'
    >>> default_package_name("github.com/go-chi/chi/v5")
    'chi'
    """
    segments = import_path.split("/")
    name = segments[-1]
    if re.fullmatch(r"v\d+", name) and len(segments) > 1:
        name = segments[-2]
    name = re.sub(r"\.v\d+$", "", name)
    if name.startswith("go-"):
        name = name[3:]
    if name.endswith("-go"):
        name = name[:-3]
    return re.sub(r"[^\w]", "_", name)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

@lru_cache(maxsize=None)
def _go_parser() -> Parser:
    return Parser(get_language("go"))


def _line(node: Node) -> int:
    return node.start_point[0] + 1


def _named(node: Node) -> List[Node]:
    return [child for child in node.named_children if child.type != "comment"]


def _first_error(node: Node) -> Optional[Node]:
    """The first ERROR or missing node in source order."""
    if node.type == "ERROR" or node.is_missing:
        return node
    if not node.has_error:
        return None
    for child in node.children:
        found = _first_error(child)
        if found is not None:
            return found
    return node


class _FileReader:
    """Builds a :class:`_GoFile` from the syntax tree of one source file."""

    def __init__(self, source: bytes, path: Path) -> None:
        self.source = source
        self.path = path

    def text(self, node: Node) -> str:
        return self.source[node.start_byte : node.end_byte].decode("utf-8")

    def error(self, message: str, node: Node) -> ParseError:
        return ParseError(message, self.path, _line(node))

    def read(self) -> _GoFile:
        root = _go_parser().parse(self.source).root_node
        broken = _first_error(root)
        if broken is not None:
            if broken.is_missing:
                raise self.error(f"syntax error: missing {broken.type!r}", broken)
            leaf = broken
            while leaf.children:
                leaf = leaf.children[0]
            raise self.error(f"syntax error near {self.text(leaf) or leaf.type!r}", broken)

        declarations = _named(root)
        if not declarations or declarations[0].type != "package_clause":
            where = _line(declarations[0]) if declarations else 1
            raise ParseError("expected 'package' clause", self.path, where)

        go_file = _GoFile(path=self.path)
        go_file.package = self.text(_named(declarations[0])[0])
        for node in declarations[1:]:
            if node.type == "import_declaration":
                self.read_imports(node, go_file)
            elif node.type == "type_declaration":
                self.read_type_declaration(node, go_file)
        return go_file

    # --- declarations ----------------------------------------------------

    def read_imports(self, node: Node, go_file: _GoFile) -> None:
        specs = _named(node)
        if specs and specs[0].type == "import_spec_list":
            specs = _named(specs[0])
        for spec in specs:
            if spec.type == "import_spec":
                self.read_import_spec(spec, go_file)

    def read_import_spec(self, spec: Node, go_file: _GoFile) -> None:
        import_path = self.text(spec.child_by_field_name("path"))[1:-1]
        if import_path not in go_file.import_paths:
            go_file.import_paths.append(import_path)

        name_node = spec.child_by_field_name("name")
        local = self.text(name_node) if name_node is not None else None
        if local == "_":
            return
        if local == ".":
            go_file.dot_imports.append(import_path)
            return
        go_file.imports[local or default_package_name(import_path)] = import_path

    def read_type_declaration(self, node: Node, go_file: _GoFile) -> None:
        for spec in _named(node):
            if spec.type not in ("type_spec", "type_alias"):
                continue
            name_node = spec.child_by_field_name("name")
            name, lineno = self.text(name_node), _line(name_node)
            if spec.child_by_field_name("type_parameters") is not None:
                # Type parameters; the whole declaration is left out.
                go_file.generics.append((name, lineno))
                continue
            alias = spec.type == "type_alias" or any(child.type == "=" for child in spec.children)
            type_expr = self.type_expr(spec.child_by_field_name("type"))
            go_file.specs.append(_TypeSpec(name, type_expr, alias, lineno, go_file))

    # --- types -----------------------------------------------------------

    def type_expr(self, node: Node) -> _TypeExpr:
        kind = node.type
        lineno = _line(node)
        if kind == "type_identifier":
            return _TypeExpr("name", lineno, name=self.text(node))
        if kind == "qualified_type":
            return _TypeExpr(
                "name",
                lineno,
                qualifier=self.text(node.child_by_field_name("package")),
                name=self.text(node.child_by_field_name("name")),
            )
        if kind == "generic_type":
            expr = self.type_expr(node.child_by_field_name("type"))
            arguments = node.child_by_field_name("type_arguments")
            expr.args = [self.type_expr(self.type_argument(arg)) for arg in _named(arguments)]
            return expr
        if kind == "parenthesized_type":
            return self.type_expr(_named(node)[0])
        if kind == "pointer_type":
            return _TypeExpr("pointer", lineno, elem=self.type_expr(_named(node)[0]))
        if kind == "slice_type":
            return _TypeExpr("slice", lineno, elem=self.type_expr(node.child_by_field_name("element")))
        if kind == "array_type":
            return _TypeExpr(
                "array",
                lineno,
                length=self.text(node.child_by_field_name("length")),
                elem=self.type_expr(node.child_by_field_name("element")),
            )
        if kind == "map_type":
            return _TypeExpr(
                "map",
                lineno,
                key=self.type_expr(node.child_by_field_name("key")),
                elem=self.type_expr(node.child_by_field_name("value")),
            )
        if kind == "channel_type":
            arrows = [child.type for child in node.children[:2]]
            direction = "recv" if arrows[0] == "<-" else "send" if "<-" in arrows else ""
            elem = self.type_expr(node.child_by_field_name("value"))
            return _TypeExpr("chan", lineno, direction=direction, elem=elem)
        if kind == "function_type":
            return self.signature(node, lineno)
        if kind == "struct_type":
            return self.struct(node, lineno)
        if kind == "interface_type":
            return self.interface(node, lineno)
        raise self.error(f"unsupported type syntax {self.text(node)!r}", node)

    def type_argument(self, node: Node) -> Node:
        if node.type != "type_elem":
            return node
        parts = _named(node)
        if len(parts) != 1:
            raise self.error(f"unexpected type set {self.text(node)!r} in type arguments", node)
        return parts[0]

    def signature(self, node: Node, lineno: int) -> _TypeExpr:
        params = self.parameters(node.child_by_field_name("parameters"))
        result = node.child_by_field_name("result")
        results: List[_Param] = []
        if result is not None and result.type == "parameter_list":
            results = self.parameters(result)
        elif result is not None:
            results = [_Param(None, self.type_expr(result))]
        return _TypeExpr("func", lineno, params=params, results=results)

    def parameters(self, node: Node) -> List[_Param]:
        params: List[_Param] = []
        named = unnamed = False
        for decl in _named(node):
            if decl.type not in ("parameter_declaration", "variadic_parameter_declaration"):
                continue
            type_expr = self.type_expr(decl.child_by_field_name("type"))
            variadic = decl.type == "variadic_parameter_declaration"
            names: List[Optional[str]] = [self.text(n) for n in decl.children_by_field_name("name")]
            if names:
                named = True
            else:
                unnamed = True
                names = [None]
            params.extend(_Param(name, type_expr, variadic) for name in names)
        if named and unnamed:
            raise self.error("mixed named and unnamed parameters", node)
        return params

    def struct(self, node: Node, lineno: int) -> _TypeExpr:
        expr = _TypeExpr("struct", lineno)
        for body in _named(node):
            for decl in _named(body):
                if decl.type != "field_declaration":
                    continue
                type_expr = self.type_expr(decl.child_by_field_name("type"))
                names = decl.children_by_field_name("name")
                if names:
                    expr.fields.extend(_Field(self.text(n), type_expr) for n in names)
                    continue
                # Embedded fields are named after their type.
                name = type_expr.name
                if any(child.type == "*" for child in decl.children):
                    type_expr = _TypeExpr("pointer", _line(decl), elem=type_expr)
                expr.fields.append(_Field(name, type_expr, embedded=True))
        return expr

    def interface(self, node: Node, lineno: int) -> _TypeExpr:
        expr = _TypeExpr("interface", lineno)
        for element in _named(node):
            if element.type in ("method_elem", "method_spec"):
                name = self.text(element.child_by_field_name("name"))
                expr.methods.append((name, self.signature(element, _line(element))))
                continue
            parts = _named(element) if element.type in ("type_elem", "constraint_elem") else [element]
            # Type-set elements (~int | string) only constrain type parameters.
            if len(parts) == 1 and parts[0].type in _EMBEDDABLE:
                expr.embeds.append(self.type_expr(parts[0]))
        return expr


def _parse_file(source: str, path: Path) -> _GoFile:
    return _FileReader(source.encode("utf-8"), path).read()


def parse_imports(source: str, filename: str = "<source>") -> List[str]:
    """Import paths declared by one Go source file, in declaration order."""
    return _parse_file(source, Path(filename)).import_paths


# ---------------------------------------------------------------------------
# Type checking
# ---------------------------------------------------------------------------

class _TypeChecker:
    """
    Resolves parsed type expressions within one package.

    Named types are qualified by import path; the underlying shape of a
    declared name is followed through same-package ``type A B`` chains.
    """

    def __init__(self, import_path: str, specs: Dict[str, _TypeSpec], generic_names: Set[str]) -> None:
        self.import_path = import_path
        self.specs = specs
        self.generic_names = generic_names
        self.diagnostics: List[Diagnostic] = []

    def report(self, message: str, go_file: _GoFile, lineno: int) -> None:
        diagnostic = Diagnostic(message, SourceLocation(go_file.path, lineno))
        if diagnostic not in self.diagnostics:
            self.diagnostics.append(diagnostic)

    # --- references ------------------------------------------------------

    def ref(self, expr: _TypeExpr, go_file: _GoFile) -> TypeRef:
        kind = expr.kind
        if kind == "name":
            return self._named_ref(expr, go_file)
        if kind == "func":
            return TypeRef(self.signature(expr, go_file), "signature")
        if kind == "struct":
            return TypeRef(self._struct_display(expr, go_file), "struct")
        if kind == "interface":
            return TypeRef(
                self._interface_display(expr, go_file),
                "interface",
                method_count=len(expr.methods),
            )

        assert expr.elem is not None
        elem = self.ref(expr.elem, go_file)
        if kind == "pointer":
            return TypeRef("*" + elem.display, "pointer", elem=elem)
        if kind == "slice":
            return TypeRef("[]" + elem.display, "slice", elem=elem)
        if kind == "array":
            return TypeRef(f"[{expr.length}]{elem.display}", "array", elem=elem)
        if kind == "map":
            assert expr.key is not None
            key = self.ref(expr.key, go_file)
            return TypeRef(f"map[{key.display}]{elem.display}", "map", elem=elem)
        if kind == "chan":
            prefix = {"send": "chan<- ", "recv": "<-chan "}.get(expr.direction, "chan ")
            return TypeRef(prefix + elem.display, "chan", elem=elem)
        raise ValueError(f"Unsupported type expression: {kind}")

    def _named_ref(self, expr: _TypeExpr, go_file: _GoFile) -> TypeRef:
        args = ""
        if expr.args:
            args = "[" + ", ".join(self.ref(arg, go_file).display for arg in expr.args) + "]"

        if expr.qualifier:
            package = go_file.imports.get(expr.qualifier)
            if package is None:
                self.report(f"undefined package qualifier: {expr.qualifier}", go_file, expr.lineno)
                package = expr.qualifier
            return TypeRef(f"{package}.{expr.name}{args}", "named", package=package, name=expr.name)

        name = expr.name
        if name in self.specs or name in self.generic_names:
            return TypeRef(f"{self.import_path}.{name}{args}", "named", package=self.import_path, name=name)
        if name in BASIC_TYPES:
            return TypeRef(name, "basic", name=name)
        if name == "any":
            return TypeRef(name, "interface", name=name)
        if name in _PREDECLARED_NAMED:
            return TypeRef(name, "named", name=name)
        if len(go_file.dot_imports) == 1:
            package = go_file.dot_imports[0]
            return TypeRef(f"{package}.{name}{args}", "named", package=package, name=name)

        self.report(f"undefined: {name}", go_file, expr.lineno)
        return TypeRef(f"{self.import_path}.{name}{args}", "named", package=self.import_path, name=name)

    def signature(self, expr: _TypeExpr, go_file: _GoFile) -> str:
        text = "func(" + ", ".join(self._param(p, go_file) for p in expr.params) + ")"
        if len(expr.results) == 1 and expr.results[0].name is None:
            text += " " + self._param(expr.results[0], go_file)
        elif expr.results:
            text += " (" + ", ".join(self._param(p, go_file) for p in expr.results) + ")"
        return text

    def _param(self, param: _Param, go_file: _GoFile) -> str:
        text = ("..." if param.variadic else "") + self.ref(param.type, go_file).display
        return f"{param.name} {text}" if param.name else text

    def _struct_display(self, expr: _TypeExpr, go_file: _GoFile) -> str:
        parts = []
        for f in expr.fields:
            display = self.ref(f.type, go_file).display
            parts.append(display if f.embedded else f"{f.name} {display}")
        return "struct{" + "; ".join(parts) + "}"

    def _interface_display(self, expr: _TypeExpr, go_file: _GoFile) -> str:
        parts = [name + self.signature(sig, go_file)[len("func"):] for name, sig in expr.methods]
        parts.extend(self.ref(embed, go_file).display for embed in expr.embeds)
        return "interface{" + "; ".join(parts) + "}"

    # --- declarations ----------------------------------------------------

    def underlying(self, spec: _TypeSpec) -> Tuple[_TypeExpr, _GoFile]:
        seen = {spec.name}
        expr, go_file = spec.type, spec.file
        while expr.kind == "name" and not expr.qualifier and not expr.args and expr.name in self.specs:
            target = self.specs[expr.name]
            if target.name in seen:
                self.report(f"invalid recursive type {spec.name}", spec.file, spec.lineno)
                break
            seen.add(target.name)
            expr, go_file = target.type, target.file
        return expr, go_file

    def describe(self, spec: _TypeSpec) -> TypeDescriptor:
        expr, go_file = self.underlying(spec)
        fields: List[FieldDescriptor] = []
        methods: List[MethodDescriptor] = []

        if expr.kind == "name" and not expr.qualifier and expr.name == "error" and "error" not in self.specs:
            underlying = TypeRef(_ERROR_INTERFACE, "interface", method_count=1)
            methods.append(MethodDescriptor("Error", "func() string"))
        else:
            underlying = self.ref(expr, go_file)
        if underlying.kind == "named":
            self.report(
                f"cannot determine underlying type of {spec.name} ({underlying.display})",
                spec.file,
                spec.lineno,
            )

        if expr.kind == "struct":
            fields = [FieldDescriptor(f.name, self.ref(f.type, go_file), f.embedded) for f in expr.fields]
        elif expr.kind == "interface":
            methods = [MethodDescriptor(name, self.signature(sig, go_file)) for name, sig in expr.methods]

        return TypeDescriptor(
            name=spec.name,
            package=self.import_path,
            kind=underlying.kind,
            underlying=underlying,
            fields=fields,
            methods=methods,
            is_alias=spec.alias,
            location=SourceLocation(spec.file.path, spec.lineno),
        )


def _extract_package(import_path: str, files: List[_GoFile]) -> ExtractedPackage:
    package_name = files[0].package if files else ""
    diagnostics: List[Diagnostic] = []

    for go_file in files[1:]:
        if go_file.package != package_name:
            diagnostics.append(
                Diagnostic(
                    f"package {go_file.package}; expected {package_name}",
                    SourceLocation(go_file.path, 1),
                )
            )

    specs: Dict[str, _TypeSpec] = {}
    generic_names: Set[str] = set()
    for go_file in files:
        for name, lineno in go_file.generics:
            generic_names.add(name)
            diagnostics.append(
                Diagnostic(
                    f"generic type {name} skipped: type parameters are not modeled",
                    SourceLocation(go_file.path, lineno),
                )
            )
        for spec in go_file.specs:
            if spec.name == "_":
                continue
            if spec.name in specs:
                diagnostics.append(
                    Diagnostic(f"{spec.name} redeclared in this package", SourceLocation(go_file.path, spec.lineno))
                )
            specs[spec.name] = spec

    checker = _TypeChecker(import_path, specs, generic_names)
    descriptors = [checker.describe(spec) for spec in specs.values()]
    diagnostics.extend(checker.diagnostics)
    return ExtractedPackage(
        import_path=import_path,
        name=package_name,
        descriptors=descriptors,
        diagnostics=diagnostics,
    )


def extract_from_sources(import_path: str, sources: Mapping[str, str]) -> ExtractedPackage:
    """
    Extract a package from in-memory sources (``{filename: text}``).

    Files are processed in the mapping's iteration order.
    """
    files = [_parse_file(text, Path(name)) for name, text in sources.items()]
    return _extract_package(import_path, files)


class GoSourceExtractor:
    """Type extraction collaborator reading a resolved package from disk."""

    def extract(self, listing: PackageListing) -> ExtractedPackage:
        files = [self._parse(listing.directory / name) for name in listing.source_files]
        extracted = _extract_package(listing.import_path, files)
        logger.debug(
            "extracted %d declarations from %s (%d files)",
            len(extracted.descriptors),
            listing.import_path,
            len(files),
        )
        return extracted

    def _parse(self, path: Path) -> _GoFile:
        try:
            source = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise ParseError("source is not valid UTF-8", path) from exc
        except OSError as exc:
            raise ResolutionError(f"Cannot read source file {path}: {exc}") from exc
        return _parse_file(source, path)

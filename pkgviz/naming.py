"""
Vertex identifiers and display-string helpers.

Every graph vertex is named by :func:`allocate`, a pure function of the
owning package path and the type name (or signature) it stands for.  The
tokens it produces are lower-case and limited to word characters, so they
are safe as DOT identifiers even before quoting.
"""
from __future__ import annotations

import re
from functools import lru_cache
from typing import Pattern

__all__ = [
    "BUILTIN_PACKAGE",
    "OUTSIDE_ROOT_MARKER",
    "allocate",
    "strip_pointer",
    "is_internal",
    "relative_package",
    "relativize_package",
    "relativize_type_name",
    "qualified_label",
]

# Basic and signature nodes are filed under this label whatever package
# declares them, so equally named primitives share one vertex.
BUILTIN_PACKAGE = "builtin"

OUTSIDE_ROOT_MARKER = "../"

_MARKERS = (
    ("/", "_slash_"),
    ("[]", "_ary_"),
    ("{}", "_braces_"),
    (",", "_comma_"),
    ("(", "_lparens_"),
    (")", "_rparens_"),
    (" ", "_"),
)
_UNSAFE = re.compile(r"[^\w.]")


def _sanitize(text: str) -> str:
    text = text.replace("*", "")
    for sequence, marker in _MARKERS:
        text = text.replace(sequence, marker)
    return _UNSAFE.sub("_", text)


def allocate(package_path: str, type_name: str) -> str:
    """
    Map ``(package_path, type_name)`` to a graph vertex token.

    A type name that still contains a dot after sanitizing is already
    qualified by a foreign package, so the current package path is not
    prepended to it.

    >>> allocate("sub/inner", "*Node")
    'sub_slash_inner_node'
    >>> allocate("sub", "time.Duration")
    'time_dot_duration'
    """
    name = _sanitize(type_name)
    if "." in name:
        token = name.replace(".", "_dot_")
    else:
        package = _sanitize(package_path).replace(".", "_dot_")
        token = f"{package}_{name}" if package else name
    return token.lower()


def strip_pointer(type_name: str) -> str:
    return type_name.lstrip("*")


def is_internal(package_path: str, root_package: str) -> bool:
    """True when ``package_path`` is the root package or nested beneath it."""
    return package_path == root_package or package_path.startswith(root_package + "/")


def relative_package(package_path: str, root_package: str) -> str:
    """
    Strip the root prefix from a package path.

    The root package itself becomes ``""``; packages outside the root are
    returned unchanged.
    """
    if package_path == root_package:
        return ""
    if package_path.startswith(root_package + "/"):
        return package_path[len(root_package) + 1 :]
    return package_path


def relativize_package(package_path: str, root_package: str) -> str:
    """Cluster label for a package: relative inside the root, marked outside it."""
    if package_path == root_package:
        return "."
    if is_internal(package_path, root_package):
        return relative_package(package_path, root_package)
    return OUTSIDE_ROOT_MARKER + package_path


@lru_cache(maxsize=None)
def _root_prefix_pattern(root_package: str) -> Pattern[str]:
    return re.compile(r"(?<![\w./-])" + re.escape(root_package) + r"[./]")


def relativize_type_name(type_name: str, root_package: str) -> str:
    """
    Drop the root package prefix from every qualified name in a type string.

    >>> relativize_type_name("map[string]*github.com/a/b/sub.T", "github.com/a/b")
    'map[string]*sub.T'
    """
    if not root_package:
        return type_name
    return _root_prefix_pattern(root_package).sub("", type_name)


def qualified_label(package_path: str, type_name: str) -> str:
    return f"{package_path}.{type_name}" if package_path else type_name

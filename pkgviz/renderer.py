# pkgviz/renderer.py
from __future__ import annotations

import logging
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Set

import graphviz
from pygments.lexers import GoLexer
from pygments.token import Token

from .errors import RenderError
from .graph import GraphNode, PackageTreeNode, TypeGraph
from .naming import allocate, qualified_label

__all__ = ["RendererConfig", "build_dot", "write_image"]

logger = logging.getLogger(__name__)

_TABLE_OPEN = "<table border='2' cellborder='0' cellspacing='0' style='rounded' color='#4BAAD3'>"
_HEADER_BG = "#e0ebf5"
_TYPE_COLOR = "#7f8183"
_CLUSTER_COLOR = "#7f8183"
_RECORD_SPECIAL = re.compile(r'([{}|<>"\\])')

# Colors for Go tokens in highlighted type strings
_TOKEN_COLORS = {
    Token.Keyword: "#0000FF",
    Token.Keyword.Type: "#267F99",
    Token.Name.Builtin: "#267F99",
    Token.String: "#A31515",
    Token.Number: "#098658",
    Token.Operator: "#000000",
    Token.Punctuation: "#000000",
}


@dataclass
class RendererConfig:
    """
    Controls how the type graph is rendered into a DOT graph.

    font:
        Font name for the graph title, nodes and edges.
    syntax_highlight:
        If True, field types and method signatures are colorized with
        Pygments' Go lexer inside the HTML labels.
    """

    font: str = "Arial"
    syntax_highlight: bool = False


def build_dot(graph: TypeGraph, config: Optional[RendererConfig] = None) -> str:
    """
    Build a Graphviz DOT string from a type graph.

    Packages become nested clusters; every edge target that was not rendered
    as a real node gets a gray placeholder, so no edge dangles.  This is a
    pure function: it does not touch the filesystem or run Graphviz.
    """
    cfg = config or RendererConfig()
    emitted: Set[str] = set()
    font = _escape_label(cfg.font)

    lines: List[str] = []
    lines.append("digraph V {")
    lines.append(
        f"  graph [label=< <br/><b>{_escape_html(graph.root_package)}</b> >, "
        f'labelloc=b, fontsize=10, fontname="{font}"];'
    )
    lines.append(f'  node [fontname="{font}"];')
    lines.append(f'  edge [fontname="{font}"];')

    _emit_package(graph.tree.root, lines, emitted, cfg, depth=1)

    for link in graph.links:
        src = _sanitize_id(link.source_id)
        dst = _sanitize_id(link.target_id)
        lines.append(f'  "{src}":"port_{link.source_field}" -> "{dst}";')
        if link.target_id not in emitted:
            label = _escape_record(qualified_label(link.target_package, link.target_name))
            lines.append(f'  "{dst}" [shape=record, label="{label}", color="gray"];')
            emitted.add(link.target_id)

    lines.append("}")
    return "\n".join(lines) + "\n"


def _emit_package(
    package: PackageTreeNode,
    lines: List[str],
    emitted: Set[str],
    cfg: RendererConfig,
    depth: int,
) -> None:
    indent = "  " * depth
    for node in package.nodes.values():
        if node.id in emitted:
            continue
        lines.append(indent + _node_statement(node, cfg))
        emitted.add(node.id)

    for child in package.children.values():
        inner = indent + "  "
        lines.append(f'{indent}subgraph "cluster_{allocate("", child.path)}" {{')
        lines.append(f'{inner}label="{_escape_label(child.path)}";')
        lines.append(f'{inner}graph [style=dotted, color="{_CLUSTER_COLOR}"];')
        _emit_package(child, lines, emitted, cfg, depth + 1)
        lines.append(f"{indent}}}")


# ---------------------------------------------------------------------------
# Node templates
# ---------------------------------------------------------------------------

def _node_statement(node: GraphNode, cfg: RendererConfig) -> str:
    node_id = _sanitize_id(node.id)
    kind = node.kind

    if kind == "struct":
        rows = [_title_row(node.name, colspan=2)]
        for name, row in node.fields.items():
            rows.append(
                f"<tr><td port='port_{name}' align='left'>{_escape_html(name)}</td>"
                f"<td align='left'><font color='{_TYPE_COLOR}'>{_type_html(row.type_name, cfg)}</font></td></tr>"
            )
        return _html_node(node_id, rows)

    if kind == "interface":
        rows = [_title_row(f"{node.name} interface")]
        for name, signature in node.methods.items():
            rows.append(
                f"<tr><td align='left'>{_escape_html(name)} "
                f"<font color='{_TYPE_COLOR}'>{_type_html(signature, cfg)}</font></td></tr>"
            )
        return _html_node(node_id, rows)

    if kind in ("basic", "slice", "map"):
        rows = [
            _title_row(node.name),
            f"<tr><td align='center'>{_type_html(node.underlying, cfg)}</td></tr>",
        ]
        return _html_node(node_id, rows)

    if kind == "signature":
        label = _escape_record(f"{node.name} {node.underlying}")
        return f'"{node_id}" [shape=record, label="{label}", color="blue"];'

    if kind in ("chan", "pointer"):
        label = _escape_record(f"{node.name} {node.underlying}")
        return f'"{node_id}" [shape=record, label="{label}", color="gray"];'

    raise ValueError(f"Unsupported node kind: {kind}")


def _title_row(title: str, colspan: int = 1) -> str:
    return f"<tr><td bgcolor='{_HEADER_BG}' align='center' colspan='{colspan}'>{_escape_html(title)}</td></tr>"


def _html_node(node_id: str, rows: List[str]) -> str:
    return f'"{node_id}" [shape=plaintext, label=<{_TABLE_OPEN}{"".join(rows)}</table>>];'


def _type_html(text: str, cfg: RendererConfig) -> str:
    if not cfg.syntax_highlight:
        return _escape_html(text)

    parts: List[str] = []
    for token_type, value in GoLexer().get_tokens(text):
        value = value.replace("\n", "")
        if not value:
            continue
        color = _get_token_color(token_type)
        if color:
            parts.append(f"<font color='{color}'>{_escape_html(value)}</font>")
        else:
            parts.append(_escape_html(value))
    return "".join(parts)


def _get_token_color(token_type) -> Optional[str]:
    """Get color for a token type, checking parent types if exact match not found."""
    while token_type is not None:
        if token_type in _TOKEN_COLORS:
            return _TOKEN_COLORS[token_type]
        token_type = token_type.parent
    return None


# ---------------------------------------------------------------------------
# Escaping
# ---------------------------------------------------------------------------

def _escape_html(text: str) -> str:
    """Escape HTML special characters for use in Graphviz HTML-like labels."""
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;").replace('"', "&quot;")


def _escape_label(text: str) -> str:
    """Escape a quoted DOT string."""
    return text.replace("\\", "\\\\").replace('"', '\\"')


def _escape_record(text: str) -> str:
    """Escape the field separators and port markers of a record label."""
    return _RECORD_SPECIAL.sub(r"\\\1", text)


def _sanitize_id(s: str) -> str:
    """
    Sanitize an identifier for use in DOT.

    Since we always quote IDs, this only needs to escape quotes.
    """
    return s.replace('"', '\\"')


# ---------------------------------------------------------------------------
# Image output
# ---------------------------------------------------------------------------

def write_image(dot: str, output: Path, fmt: str = "png") -> None:
    """
    Render a DOT string to an image file using the `graphviz` package.

    This requires the Graphviz `dot` binary to be installed on the system.
    Failures are raised as RenderError with the captured stderr.
    """
    command = f"dot -T{fmt}"
    try:
        data = graphviz.Source(dot).pipe(format=fmt)
    except graphviz.ExecutableNotFound as exc:
        raise RenderError("Graphviz executable 'dot' not found on PATH", command=command) from exc
    except subprocess.CalledProcessError as exc:
        stderr = exc.stderr
        if isinstance(stderr, bytes):
            stderr = stderr.decode("utf-8", errors="replace")
        raise RenderError(
            f"'{command}' failed with exit status {exc.returncode}",
            command=command,
            stderr=stderr or "",
        ) from exc

    output.write_bytes(data)
    logger.info("wrote %s (%d bytes)", output, len(data))

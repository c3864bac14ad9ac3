# pkgviz/cli.py
from __future__ import annotations

import argparse
import json
import logging
import sys
from collections import Counter
from pathlib import Path
from typing import Any, Dict

from .errors import RenderError
from .graph import GraphConfig, TypeGraph
from .renderer import RendererConfig, build_dot, write_image
from .resolver import ResolverConfig, make_resolver
from .walker import build_type_graph

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pkgviz",
        description=(
            "Visualize the types of a Go package and every package beneath it "
            "as a Graphviz graph: summary, JSON, DOT, PNG or SVG output."
        ),
    )
    parser.add_argument(
        "package",
        type=str,
        help="Go package to visualize (import path, or ./dir with --module-root).",
    )
    parser.add_argument(
        "--format",
        choices=("summary", "json", "dot", "png", "svg"),
        default="png",
        help=(
            "Output format: 'summary' (human-readable), 'json' (graph model), "
            "'dot' (Graphviz DOT), or 'png'/'svg' (rendered image). Default: png."
        ),
    )
    parser.add_argument(
        "-o",
        "--output",
        type=str,
        help="Output file path. DOT goes to stdout by default, images to out.png/out.svg.",
    )

    # Resolution options
    parser.add_argument(
        "--module-root",
        type=str,
        help="Resolve packages from the go.mod in this directory instead of running `go list`.",
    )
    parser.add_argument(
        "--go-binary",
        type=str,
        default="go",
        help="Go executable used for `go list` (default: go).",
    )

    # Graph options
    parser.add_argument(
        "--materialize-pointers",
        action="store_true",
        help="Draw named pointer types as their own nodes.",
    )
    parser.add_argument(
        "--no-follow",
        action="store_true",
        help="Only visualize the given package, not the packages it imports.",
    )

    # Rendering options
    parser.add_argument(
        "--highlight",
        action="store_true",
        help="Syntax-highlight field types and method signatures.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Log progress to stderr (-v for info, -vv for debug).",
    )
    return parser


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main(argv: Any | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    resolver_cfg = ResolverConfig(
        go_binary=args.go_binary,
        module_root=Path(args.module_root) if args.module_root else None,
    )
    graph_cfg = GraphConfig(
        materialize_pointers=args.materialize_pointers,
        follow_imports=not args.no_follow,
    )
    graph = build_type_graph(args.package, resolver=make_resolver(resolver_cfg), config=graph_cfg)

    if args.format == "summary":
        _print_summary(graph)
        return 0

    if args.format == "json":
        print(json.dumps(_graph_to_jsonable(graph), indent=2, ensure_ascii=False))
        return 0

    dot = build_dot(graph, RendererConfig(syntax_highlight=args.highlight))

    if args.format == "dot":
        if args.output:
            output = Path(args.output)
            output.write_text(dot, encoding="utf-8")
            print(f"Wrote DOT to {output}")
        else:
            sys.stdout.write(dot)
        return 0

    # args.format in ("png", "svg")
    output = Path(args.output) if args.output else Path(f"out.{args.format}")
    try:
        write_image(dot, output, args.format)
    except RenderError as exc:
        print(f"Error running '{exc.command}': {exc}", file=sys.stderr)
        if exc.stderr:
            print(exc.stderr.rstrip(), file=sys.stderr)
        return 1
    print(f"Image written to {output}")
    return 0


def _graph_to_jsonable(graph: TypeGraph) -> Dict[str, Any]:
    return {
        "root_package": graph.root_package,
        "packages": list(graph.packages),
        "nodes": [
            {
                "id": n.id,
                "kind": n.kind,
                "name": n.name,
                "package": n.package,
                "underlying": n.underlying,
                "element": n.element,
                "fields": {
                    name: {"type": row.type_name, "target_id": row.target_id}
                    for name, row in n.fields.items()
                },
                "methods": dict(n.methods),
            }
            for n in graph.iter_nodes()
        ],
        "links": [
            {
                "source_id": link.source_id,
                "source_field": link.source_field,
                "target_package": link.target_package,
                "target_name": link.target_name,
                "target_id": link.target_id,
            }
            for link in graph.links
        ],
        "diagnostics": [str(d) for d in graph.diagnostics],
    }


def _print_summary(graph: TypeGraph) -> None:
    nodes = list(graph.iter_nodes())
    print(f"Root package: {graph.root_package}")
    print(f"  Packages    : {len(graph.packages)}")
    for package in graph.packages:
        print(f"    - {package}")
    print(f"  Nodes       : {len(nodes)}")
    for kind, count in sorted(Counter(n.kind for n in nodes).items()):
        print(f"    {kind:<10}: {count}")
    print(f"  Links       : {len(graph.links)}")
    print(f"  Diagnostics : {len(graph.diagnostics)}")


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())

import logging
import re
import textwrap
from pathlib import Path
from typing import Dict

from pkgviz import ModuleResolver, build_dot, build_type_graph

MODULE = "example.com/demo"

_NODE_DEF = re.compile(r'^\s*"([^"]+)" \[', re.MULTILINE)
_EDGE = re.compile(r'^\s*"([^"]+)":"port_\w+" -> "([^"]+)";$', re.MULTILINE)


def _module(tmp_path: Path, files: Dict[str, str]) -> ModuleResolver:
    (tmp_path / "go.mod").write_text(f"module {MODULE}\n\ngo 1.21\n", encoding="utf-8")
    for rel, source in files.items():
        path = tmp_path / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(source), encoding="utf-8")
    return ModuleResolver(tmp_path)


def _render(tmp_path: Path, files: Dict[str, str]) -> str:
    graph = build_type_graph(MODULE, resolver=_module(tmp_path, files))
    return build_dot(graph)


def test_single_basic_type(tmp_path: Path) -> None:
    dot = _render(tmp_path, {"demo.go": "package demo\n\ntype ID int\n"})

    assert dot.startswith("digraph V {\n")
    assert dot.endswith("}\n")
    assert "<b>example.com/demo</b>" in dot
    assert len(_NODE_DEF.findall(dot)) == 1
    assert '"builtin_id" [shape=plaintext' in dot
    assert "->" not in dot


def test_mutually_referencing_structs(tmp_path: Path) -> None:
    dot = _render(
        tmp_path,
        {
            "demo.go": """\
                package demo

                type A struct {
                    B *B
                }

                type B struct {
                    A *A
                }
                """
        },
    )

    assert '  "a":"port_B" -> "b";' in dot
    assert '  "b":"port_A" -> "a";' in dot
    assert "port_B' align='left'>B</td>" in dot
    # Both targets are real nodes, so no placeholder is needed.
    assert 'color="gray"' not in dot


def test_named_map_of_basic_values(tmp_path: Path) -> None:
    resolver = _module(
        tmp_path,
        {
            "demo.go": """\
                package demo

                type M map[string]int

                type S struct {
                    Counts M
                }
                """
        },
    )
    graph = build_type_graph(MODULE, resolver=resolver)

    m = graph.tree.lookup("", "M")
    assert (m.kind, m.underlying, m.element) == ("map", "map[string]int", "int")
    assert graph.links == []
    assert graph.tree.lookup("", "S").fields["Counts"].target_id == ""

    dot = build_dot(graph)
    assert "->" not in dot
    assert "<td align='center'>map[string]int</td>" in dot


def test_external_type_gets_a_placeholder(tmp_path: Path) -> None:
    dot = _render(
        tmp_path,
        {
            "demo.go": """\
                package demo

                import "example.org/ext"

                type S struct {
                    T ext.Thing
                }
                """
        },
    )

    assert '  "s":"port_T" -> "example_dot_org_slash_ext_thing";' in dot
    placeholder = '  "example_dot_org_slash_ext_thing" [shape=record, label="example.org/ext.Thing", color="gray"];'
    assert dot.count(placeholder) == 1


def _nested_module(tmp_path: Path) -> ModuleResolver:
    return _module(
        tmp_path,
        {
            "app.go": """\
                package demo

                import "example.com/demo/sub"

                type App struct {
                    Svc  *sub.Service
                    Name string
                }
                """,
            "sub/service.go": """\
                package sub

                import "example.com/demo/sub/inner"

                type Service struct {
                    Leaves []inner.Leaf
                    Handler func(int) error
                }
                """,
            "sub/inner/leaf.go": """\
                package inner

                type Leaf struct {
                    Name string
                }
                """,
        },
    )


def test_nested_packages_become_nested_clusters(tmp_path: Path) -> None:
    graph = build_type_graph(MODULE, resolver=_nested_module(tmp_path))
    dot = build_dot(graph)

    assert graph.packages == [MODULE, MODULE + "/sub", MODULE + "/sub/inner"]
    assert '  subgraph "cluster_sub" {' in dot
    assert '    subgraph "cluster_sub_slash_inner" {' in dot
    assert 'label="sub/inner";' in dot
    assert '  "app":"port_Svc" -> "sub_service";' in dot
    assert '  "sub_service":"port_Leaves" -> "sub_slash_inner_leaf";' in dot
    assert dot.index('subgraph "cluster_sub"') < dot.index('"sub_service" [shape=plaintext')
    assert dot.index('subgraph "cluster_sub_slash_inner"') < dot.index('"sub_slash_inner_leaf" [shape=plaintext')
    # Field types are shown relative to the root package.
    assert "[]sub/inner.Leaf" in dot


def test_every_edge_endpoint_is_declared(tmp_path: Path) -> None:
    dot = _render(
        tmp_path,
        {
            "demo.go": """\
                package demo

                import (
                    "io"
                    "time"
                )

                type Job struct {
                    Out     io.Writer
                    Started time.Time
                    Next    *Job
                    Deps    []*Job
                    Err     error
                }
                """
        },
    )
    declared = set(_NODE_DEF.findall(dot))
    edges = _EDGE.findall(dot)

    assert len(edges) == 5
    for source, target in edges:
        assert source in declared
        assert target in declared
    assert len(declared) == len(_NODE_DEF.findall(dot))


def test_output_is_deterministic(tmp_path: Path) -> None:
    resolver = _nested_module(tmp_path)

    first = build_dot(build_type_graph(MODULE, resolver=resolver))
    second = build_dot(build_type_graph(MODULE, resolver=resolver))

    assert first == second


def test_names_differing_only_in_case_collide(tmp_path: Path, caplog) -> None:
    files = {
        "demo.go": """\
            package demo

            type Node struct{ Name string }

            type node struct{ id int }
            """,
    }
    with caplog.at_level(logging.WARNING, logger="pkgviz.graph"):
        dot = _render(tmp_path, files)

    assert "identifier collision on example_dot_com_slash_demo_node" in caplog.text
    assert _NODE_DEF.findall(dot).count("example_dot_com_slash_demo_node") == 1

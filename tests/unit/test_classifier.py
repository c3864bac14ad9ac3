import logging

from pkgviz import (
    FieldDescriptor,
    GraphConfig,
    MethodDescriptor,
    TypeDescriptor,
    TypeRef,
    classify,
)

ROOT = "example.com/demo"
SUB = ROOT + "/sub"


def _named(package: str, name: str) -> TypeRef:
    return TypeRef(f"{package}.{name}", "named", package=package, name=name)


def _pointer(ref: TypeRef) -> TypeRef:
    return TypeRef("*" + ref.display, "pointer", elem=ref)


INT = TypeRef("int", "basic", name="int")
STRING = TypeRef("string", "basic", name="string")


def test_basic_node_uses_shared_identifier() -> None:
    desc = TypeDescriptor(name="ID", package=SUB, kind="basic", underlying=INT)
    node = classify(desc, ROOT)

    assert node is not None
    assert node.kind == "basic"
    assert node.id == "builtin_id"
    assert node.package == "sub"
    assert node.underlying == "int"
    assert node.descriptor is desc


def test_signature_node_uses_shared_identifier() -> None:
    sig = TypeRef(f"func(n {SUB}.Node) error", "signature")
    node = classify(TypeDescriptor("Visit", SUB, "signature", sig), ROOT)

    assert node.kind == "signature"
    assert node.id == "builtin_visit"
    assert node.underlying == "func(n sub.Node) error"


def test_struct_rows_strip_pointers_and_root_prefix() -> None:
    node_ref = _named(ROOT, "Node")
    desc = TypeDescriptor(
        name="Node",
        package=ROOT,
        kind="struct",
        underlying=TypeRef("struct{...}", "struct"),
        fields=[
            FieldDescriptor("Name", STRING),
            FieldDescriptor("Parent", _pointer(node_ref)),
            FieldDescriptor("Leaf", _named(SUB, "Leaf")),
            FieldDescriptor("Created", _named("time", "Time")),
        ],
    )
    node = classify(desc, ROOT)

    assert node.id == "node"
    assert list(node.fields) == ["Name", "Parent", "Leaf", "Created"]
    assert [row.type_name for row in node.fields.values()] == ["string", "Node", "sub.Leaf", "time.Time"]
    assert all(row.target_id == "" for row in node.fields.values())
    assert node.fields["Parent"].type_ref.kind == "pointer"


def test_blank_struct_fields_get_no_row() -> None:
    desc = TypeDescriptor(
        name="Header",
        package=ROOT,
        kind="struct",
        underlying=TypeRef("struct{...}", "struct"),
        fields=[
            FieldDescriptor("_", TypeRef("[4]byte", "array")),
            FieldDescriptor("Size", INT),
            FieldDescriptor("_", _named(SUB, "Leaf")),
        ],
    )
    node = classify(desc, ROOT)

    assert list(node.fields) == ["Size"]


def test_interface_methods_keep_declaration_order() -> None:
    desc = TypeDescriptor(
        name="Store",
        package=SUB,
        kind="interface",
        underlying=TypeRef("interface{...}", "interface", method_count=2),
        methods=[
            MethodDescriptor("Put", f"func(v *{SUB}.Value) error"),
            MethodDescriptor("Close", "func() error"),
        ],
    )
    node = classify(desc, ROOT)

    assert node.id == "sub_store"
    assert node.methods == {"Put": "func(v *sub.Value) error", "Close": "func() error"}
    assert list(node.methods) == ["Put", "Close"]


def test_array_is_classified_as_slice() -> None:
    underlying = TypeRef("[4]int", "array", elem=INT)
    node = classify(TypeDescriptor("Quad", ROOT, "array", underlying), ROOT)

    assert node.kind == "slice"
    assert node.underlying == "[4]int"
    assert node.element == "int"


def test_map_records_element_type() -> None:
    elem = _pointer(_named(ROOT, "Entry"))
    underlying = TypeRef(f"map[string]*{ROOT}.Entry", "map", elem=elem)
    node = classify(TypeDescriptor("Index", ROOT, "map", underlying), ROOT)

    assert node.kind == "map"
    assert node.id == "index"
    assert node.underlying == "map[string]*Entry"
    assert node.element == "*Entry"


def test_chan_node() -> None:
    underlying = TypeRef("<-chan int", "chan", elem=INT)
    node = classify(TypeDescriptor("Ticks", ROOT, "chan", underlying), ROOT)

    assert node.kind == "chan"
    assert node.underlying == "<-chan int"
    assert node.element == "int"


def test_pointer_types_are_not_materialized_by_default() -> None:
    desc = TypeDescriptor("Ref", ROOT, "pointer", _pointer(_named(ROOT, "Node")))
    assert classify(desc, ROOT) is None


def test_pointer_types_materialized_on_request() -> None:
    desc = TypeDescriptor("Ref", ROOT, "pointer", _pointer(_named(ROOT, "Node")))
    node = classify(desc, ROOT, GraphConfig(materialize_pointers=True))

    assert node.kind == "pointer"
    assert node.id == "ref"
    assert node.underlying == "*Node"


def test_aliases_are_skipped() -> None:
    desc = TypeDescriptor("Alias", ROOT, "basic", INT, is_alias=True)
    assert classify(desc, ROOT) is None


def test_unsupported_shape_is_skipped_with_warning(caplog) -> None:
    desc = TypeDescriptor("Duration", ROOT, "named", _named("time", "Duration"))
    with caplog.at_level(logging.WARNING, logger="pkgviz.classifier"):
        assert classify(desc, ROOT) is None
    assert "unsupported underlying type time.Duration" in caplog.text

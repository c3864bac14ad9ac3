import string

from hypothesis import given, settings, strategies as st

from pkgviz import ParseError, extract_from_sources

ROOT = "example.com/fuzz"

BASIC = ["bool", "string", "int", "int64", "uint8", "byte", "rune", "float64", "complex128", "uintptr"]


@st.composite
def struct_source(draw):
    """
    Generate a Go file holding one struct with basic-typed fields.

    Returns (source_text, [(field name, type)]).
    """
    field_name = st.text(alphabet=string.ascii_lowercase, min_size=1, max_size=8).map(str.capitalize)
    names = draw(st.lists(field_name, min_size=0, max_size=8, unique=True))

    fields = []
    lines = ["package fuzz", "", "type Record struct {"]
    for name in names:
        go_type = draw(st.sampled_from(BASIC))
        tagged = draw(st.booleans())
        tag = f' `json:"{name.lower()}"`' if tagged else ""
        lines.append(f"\t{name} {go_type}{tag}")
        fields.append((name, go_type))
    lines.append("}")
    return "\n".join(lines) + "\n", fields


@given(data=struct_source())
@settings(max_examples=100, deadline=None)
def test_struct_fields_survive_extraction(data):
    source, fields = data

    package = extract_from_sources(ROOT, {"record.go": source})

    assert package.diagnostics == []
    (record,) = package.descriptors
    assert record.kind == "struct"
    assert [(f.name, f.type.display) for f in record.fields] == fields
    assert all(f.type.kind == "basic" for f in record.fields)


SOUP = [
    "type", "struct", "interface", "func", "map", "chan", "{", "}", "(", ")",
    "[", "]", "*", ",", ";", ".", "...", "<-", "=", "int", "string", "error",
    "T", "U", "x", "42", "`tag`", "\n",
]


@given(tokens=st.lists(st.sampled_from(SOUP), max_size=40))
@settings(max_examples=200, deadline=None)
def test_token_soup_parses_or_raises_parse_error(tokens):
    source = "package soup\n" + " ".join(tokens) + "\n"
    try:
        package = extract_from_sources(ROOT, {"soup.go": source})
    except ParseError as exc:
        assert exc.file is not None
        assert str(exc).startswith("soup.go:")
    else:
        assert package.name == "soup"

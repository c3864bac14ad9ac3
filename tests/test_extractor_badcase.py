from pathlib import Path

import pytest

from pkgviz import GoSourceExtractor, PackageListing, ParseError, ResolutionError, extract_from_sources

ROOT = "example.com/demo"


def _extract(source: str):
    return extract_from_sources(ROOT, {"bad.go": source})


def test_missing_package_clause() -> None:
    with pytest.raises(ParseError, match="expected 'package'"):
        _extract("type X int\n")


def test_unterminated_struct() -> None:
    with pytest.raises(ParseError) as excinfo:
        _extract("package demo\n\ntype X struct {\n\tA int\n")
    assert excinfo.value.file == Path("bad.go")


def test_unexpected_character_reports_location() -> None:
    with pytest.raises(ParseError) as excinfo:
        _extract("package demo\n\ntype X struct {\n\tA int\n\tB $\n}\n")
    assert excinfo.value.lineno is not None and excinfo.value.lineno >= 3
    assert str(excinfo.value).startswith(f"bad.go:{excinfo.value.lineno}: syntax error")


def test_unterminated_string() -> None:
    with pytest.raises(ParseError):
        _extract('package demo\n\nimport "fmt\n')


def test_value_where_type_expected() -> None:
    with pytest.raises(ParseError, match="syntax error"):
        _extract("package demo\n\ntype X = 42\n")


def test_mixed_named_and_unnamed_parameters() -> None:
    with pytest.raises(ParseError, match="mixed named and unnamed"):
        _extract("package demo\n\ntype F func(a int, b)\n")


def test_unreadable_file_is_a_resolution_error(tmp_path: Path) -> None:
    listing = PackageListing(tmp_path, ROOT, ("gone.go",), ())
    with pytest.raises(ResolutionError, match="gone.go"):
        GoSourceExtractor().extract(listing)


def test_undecodable_file_is_a_parse_error(tmp_path: Path) -> None:
    (tmp_path / "latin1.go").write_bytes(b"package demo\n\n// caf\xe9\n")
    listing = PackageListing(tmp_path, ROOT, ("latin1.go",), ())
    with pytest.raises(ParseError, match="UTF-8"):
        GoSourceExtractor().extract(listing)

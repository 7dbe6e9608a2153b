from __future__ import annotations

import json
import sys
from typing import Any

import pytest

from errmap import IndexedSourceMap, MappedPosition, SourceMap, SourceMapError, parse_source_map
from errmap.sourcemap import _Table


def _raw(mappings: str, sources: list[str | None] | None = None, **extra: Any) -> dict[str, Any]:
    raw: dict[str, Any] = {
        "version": 3,
        "sources": ["app.ts"] if sources is None else sources,
        "names": [],
        "mappings": mappings,
    }
    raw.update(extra)
    return raw


def _map(mappings: str, sources: list[str | None] | None = None, **extra: Any) -> str:
    return json.dumps(_raw(mappings, sources, **extra))


def test_resolve_exact_and_greatest_lower_bound() -> None:
    sm = parse_source_map(_map(";;;;;;;;;IAEA"))
    assert isinstance(sm, SourceMap)
    assert sm.resolve(10, 4) == MappedPosition(source="app.ts", line=3, column=0)
    assert sm.resolve(10, 40) == MappedPosition(source="app.ts", line=3, column=0)
    assert sm.resolve(10, 3) == MappedPosition.unmapped()
    assert sm.resolve(9, 4) == MappedPosition.unmapped()
    assert sm.resolve(11, 0) == MappedPosition.unmapped()


def test_bytes_input_and_bom() -> None:
    sm = parse_source_map(b"\xef\xbb\xbf" + _map("AAAA").encode("utf-8"))
    assert sm.resolve(1, 0).source == "app.ts"


def test_names_are_reported() -> None:
    sm = parse_source_map(_map("AAAAA", names=["getUser"]))
    assert sm.resolve(1, 0) == MappedPosition(source="app.ts", line=1, column=0, name="getUser")


def test_segment_without_source_is_unmapped() -> None:
    sm = parse_source_map(_map("A,EAAA"))
    assert sm.resolve(1, 1) == MappedPosition.unmapped()
    assert sm.resolve(1, 2) == MappedPosition(source="app.ts", line=1, column=0)


def test_first_of_equal_columns_wins() -> None:
    sm = parse_source_map(_map("AAAA,AACA"))
    assert sm.resolve(1, 0).line == 1


def test_relative_fields_carry_across_lines() -> None:
    # line 1 -> b.ts:5:3, line 2 -> a.ts:6:3 (source -1, line +1)
    sm = parse_source_map(_map("ACIG;ADCA", sources=["a.ts", "b.ts"]))
    assert sm.resolve(1, 0) == MappedPosition(source="b.ts", line=5, column=3)
    assert sm.resolve(2, 0) == MappedPosition(source="a.ts", line=6, column=3)
    assert [m.generated_line for m in sm.iter_mappings()] == [1, 2]


def test_source_root_is_prefixed() -> None:
    sm = parse_source_map(
        _map("AAAA", sources=["a.ts", "/abs/b.ts", "webpack:///c.ts"], sourceRoot="src")
    )
    assert sm.sources == ("src/a.ts", "/abs/b.ts", "webpack:///c.ts")


def test_source_root_paths_are_normalized() -> None:
    sm = parse_source_map(_map("AAAA", sources=["./a.ts", "lib/../b.ts"], sourceRoot="src/"))
    assert sm.sources == ("src/a.ts", "src/b.ts")

    sm = parse_source_map(_map("AAAA", sources=["a.ts"], sourceRoot="webpack:///"))
    assert sm.sources == ("webpack:///a.ts",)


def test_null_source_is_unmapped() -> None:
    sm = parse_source_map(_map("AAAA", sources=[None]))
    assert sm.resolve(1, 0) == MappedPosition.unmapped()


@pytest.mark.skipif(
    not hasattr(sys, "get_int_max_str_digits"), reason="no integer string conversion limit"
)
def test_oversized_integer_is_invalid() -> None:
    doc = '{"version": 3, "mappings": "", "x": ' + "1" * (sys.get_int_max_str_digits() + 10) + "}"
    with pytest.raises(SourceMapError) as e:
        parse_source_map(doc, origin="dist/app.js.map")
    assert "source map JSON could not be decoded" in str(e.value)
    assert "dist/app.js.map" in str(e.value)


def test_xssi_prefix_is_stripped() -> None:
    sm = parse_source_map(")]}'\n" + _map("AAAA"))
    assert sm.resolve(1, 0).source == "app.ts"


def test_query_bounds() -> None:
    sm = parse_source_map(_map("AAAA"))
    with pytest.raises(ValueError):
        sm.resolve(0, 0)
    with pytest.raises(ValueError):
        sm.resolve(1, -1)


def test_table_base_is_abstract() -> None:
    with pytest.raises(TypeError):
        _Table()  # type: ignore[abstract]


def test_release_is_scoped_and_idempotent() -> None:
    with parse_source_map(_map("AAAA")) as sm:
        assert sm.resolve(1, 0).source == "app.ts"
    assert sm.released
    sm.release()
    with pytest.raises(RuntimeError) as e:
        sm.resolve(1, 0)
    assert "released" in str(e.value)


@pytest.mark.parametrize(
    ("data", "needle"),
    [
        ("{not json", "invalid source map JSON"),
        (b"\xff{}", "not valid UTF-8"),
        ("[]", "must be a JSON object"),
        (json.dumps({"version": 2, "mappings": ""}), "unsupported source map version"),
        (json.dumps({"version": 3, "sources": []}), '"mappings" must be a string'),
        (json.dumps({"version": 3, "sources": [1], "mappings": ""}), '"sources" must be a list'),
        (json.dumps({"version": 3, "names": "x", "mappings": ""}), '"names" must be a list'),
        ("[" * 200000, "source map JSON could not be decoded"),
    ],
)
def test_invalid_documents(data: str | bytes, needle: str) -> None:
    with pytest.raises(SourceMapError) as e:
        parse_source_map(data, origin="dist/app.js.map")
    assert needle in str(e.value)
    assert "dist/app.js.map" in str(e.value)


@pytest.mark.parametrize(
    ("mappings", "offset", "needle"),
    [
        ("AA", 0, "found a source, but no line and column"),
        ("AAAA,AAA", 5, "found a source and line, but no column"),
        ("AAAAAA", 0, "6 fields"),
        ("ACAA", 0, "source index 1 out of range"),
        ("AAAAC", 0, "name index 1 out of range"),
        ("AADA", 0, "negative original position"),
        ("AAAA;D", 5, "negative generated column"),
    ],
)
def test_invalid_segments_point_at_offset(mappings: str, offset: int, needle: str) -> None:
    with pytest.raises(SourceMapError) as e:
        parse_source_map(_map(mappings))
    assert e.value.offset == offset
    assert needle in str(e.value)


def _indexed(*sections: tuple[int, int, dict[str, Any]]) -> str:
    return json.dumps(
        {
            "version": 3,
            "sections": [{"offset": {"line": ln, "column": col}, "map": m} for ln, col, m in sections],
        }
    )


def test_indexed_map_rebases_queries() -> None:
    sm = parse_source_map(
        _indexed(
            (0, 0, _raw("AAAA;AACA", sources=["a.ts"])),
            (2, 10, _raw("AAAA", sources=["b.ts"])),
        )
    )
    assert isinstance(sm, IndexedSourceMap)
    assert sm.resolve(1, 5) == MappedPosition(source="a.ts", line=1, column=0)
    assert sm.resolve(2, 0) == MappedPosition(source="a.ts", line=2, column=0)
    assert sm.resolve(3, 9) == MappedPosition.unmapped()
    assert sm.resolve(3, 10) == MappedPosition(source="b.ts", line=1, column=0)
    assert sm.resolve(3, 15) == MappedPosition(source="b.ts", line=1, column=0)
    assert sm.resolve(4, 0) == MappedPosition.unmapped()


def test_indexed_release_releases_sections() -> None:
    with parse_source_map(_indexed((0, 0, _raw("AAAA")))) as sm:
        assert isinstance(sm, IndexedSourceMap)
        inner = sm.sections[0].map
    assert sm.released
    assert inner.released


@pytest.mark.parametrize(
    ("doc", "needle"),
    [
        (_indexed((2, 0, _raw("AAAA")), (1, 0, _raw("AAAA"))), "ordered and non-overlapping"),
        (_indexed((0, -1, _raw("AAAA"))), "invalid section offset"),
        (_indexed((0, 0, {"version": 3, "sections": []})), "nested indexed source maps"),
        (json.dumps({"version": 3, "sections": [{"offset": {"line": 0, "column": 0}, "url": "a.map"}]}), "url"),
        (json.dumps({"version": 3, "sections": {}}), '"sections" must be a list'),
    ],
)
def test_invalid_sections(doc: str, needle: str) -> None:
    with pytest.raises(SourceMapError) as e:
        parse_source_map(doc)
    assert needle in str(e.value)

from __future__ import annotations

import json
import logging
import posixpath
import re
from abc import ABC, abstractmethod
from bisect import bisect_left, bisect_right
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

from .errors import SourceMapError
from .positions import MappedPosition
from .vlq import decode_mappings


logger = logging.getLogger(__name__)

_XSSI_PREFIX_RE = re.compile(r"\)\]\}'[^\n]*\n")
_URL_RE = re.compile(r"[A-Za-z][A-Za-z0-9+.-]*:")


@dataclass(frozen=True, slots=True)
class Mapping:
    """One decoded segment.

    Lines are 1-based and columns 0-based, the convention every source map
    consumer exposes.
    """

    generated_line: int
    generated_column: int
    source: int | None = None
    original_line: int | None = None
    original_column: int | None = None
    name: int | None = None


class _Table(ABC):
    origin: str

    @property
    @abstractmethod
    def released(self) -> bool: ...

    @abstractmethod
    def resolve(self, line: int, column: int) -> MappedPosition: ...

    @abstractmethod
    def release(self) -> None: ...

    def _released_error(self) -> RuntimeError:
        return RuntimeError(f"{self.origin}: source map has been released")

    def _check_query(self, line: int, column: int) -> None:
        if line < 1:
            raise ValueError(f"line must be greater than or equal to 1, got {line}")
        if column < 0:
            raise ValueError(f"column must be greater than or equal to 0, got {column}")

    def __enter__(self):
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()


class SourceMap(_Table):
    """A decoded revision 3 source map answering generated -> original queries."""

    def __init__(
        self,
        *,
        sources: tuple[str | None, ...],
        names: tuple[str, ...],
        mappings: list[Mapping],
        origin: str = "<memory>",
        file: str | None = None,
    ) -> None:
        self.origin = origin
        self.file = file
        self.sources = sources
        self.names = names

        by_line: dict[int, list[Mapping]] = {}
        for m in mappings:
            by_line.setdefault(m.generated_line, []).append(m)
        self._lines: dict[int, tuple[list[int], list[Mapping]]] | None = {}
        for line, ms in by_line.items():
            ms.sort(key=lambda m: m.generated_column)
            self._lines[line] = ([m.generated_column for m in ms], ms)

    @property
    def released(self) -> bool:
        return self._lines is None

    def iter_mappings(self) -> Iterator[Mapping]:
        if self._lines is None:
            return
        for line in sorted(self._lines):
            yield from self._lines[line][1]

    def resolve(self, line: int, column: int) -> MappedPosition:
        """Original position for a 1-based line and 0-based column.

        Picks the mapping with the greatest generated column not past `column`
        on the same generated line (the first of several at that column).
        """
        lines = self._lines
        if lines is None:
            raise self._released_error()
        self._check_query(line, column)
        entry = lines.get(line)
        if entry is None:
            return MappedPosition.unmapped()
        cols, ms = entry
        i = bisect_right(cols, column)
        if i == 0:
            return MappedPosition.unmapped()
        m = ms[bisect_left(cols, cols[i - 1])]
        if m.source is None:
            return MappedPosition.unmapped()
        source = self.sources[m.source]
        if source is None:
            return MappedPosition.unmapped()
        return MappedPosition(
            source=source,
            line=m.original_line,
            column=m.original_column,
            name=self.names[m.name] if m.name is not None else None,
        )

    def release(self) -> None:
        if self._lines is not None:
            logger.debug("releasing source map %s", self.origin)
        self._lines = None


@dataclass(frozen=True, slots=True)
class Section:
    line: int  # 0-based offset into the generated file
    column: int
    map: SourceMap


class IndexedSourceMap(_Table):
    """A source map made of `sections`, each an embedded map at an offset."""

    def __init__(self, sections: list[Section], *, origin: str = "<memory>", file: str | None = None) -> None:
        self.origin = origin
        self.file = file
        self._sections: list[Section] | None = list(sections)
        self._offsets = [(s.line, s.column) for s in sections]

    @property
    def released(self) -> bool:
        return self._sections is None

    @property
    def sections(self) -> tuple[Section, ...]:
        return tuple(self._sections or ())

    def resolve(self, line: int, column: int) -> MappedPosition:
        sections = self._sections
        if sections is None:
            raise self._released_error()
        self._check_query(line, column)
        i = bisect_right(self._offsets, (line - 1, column))
        if i == 0:
            return MappedPosition.unmapped()
        sec = sections[i - 1]
        return sec.map.resolve(
            line - sec.line,
            column - sec.column if line - 1 == sec.line else column,
        )

    def release(self) -> None:
        if self._sections is None:
            return
        for s in self._sections:
            s.map.release()
        logger.debug("releasing indexed source map %s", self.origin)
        self._sections = None


def parse_source_map(data: bytes | str, *, origin: str = "<memory>") -> SourceMap | IndexedSourceMap:
    if isinstance(data, bytes):
        try:
            text = data.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise SourceMapError(message=f"source map is not valid UTF-8: {e.reason}", origin=origin) from e
    else:
        text = data

    # Anti-XSSI prefix some servers put in front of the JSON.
    if text.startswith(")]}'"):
        text = _XSSI_PREFIX_RE.sub("", text, count=1)

    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise SourceMapError(
            message=f"invalid source map JSON: {e.msg} (line {e.lineno}, column {e.colno})",
            origin=origin,
        ) from e
    except (ValueError, RecursionError) as e:
        # json refuses some syntactically valid documents: oversized integers,
        # nesting deeper than the interpreter stack.
        raise SourceMapError(message=f"source map JSON could not be decoded: {e}", origin=origin) from e
    return source_map_from_dict(raw, origin=origin)


def source_map_from_dict(raw: Any, *, origin: str = "<memory>") -> SourceMap | IndexedSourceMap:
    if not isinstance(raw, dict):
        raise SourceMapError(message="source map must be a JSON object", origin=origin)
    version = raw.get("version")
    if version not in (3, "3"):
        raise SourceMapError(
            message=f"unsupported source map version: {version!r}",
            origin=origin,
            hint="only revision 3 source maps are supported",
        )
    if "sections" in raw:
        return _build_indexed(raw, origin)
    return _build_basic(raw, origin)


def _build_basic(raw: dict[str, Any], origin: str) -> SourceMap:
    def error(msg: str, offset: int | None = None, hint: str | None = None) -> SourceMapError:
        return SourceMapError(message=msg, origin=origin, offset=offset, hint=hint)

    mappings_src = raw.get("mappings")
    if not isinstance(mappings_src, str):
        raise error('"mappings" must be a string')

    root = raw.get("sourceRoot")
    if root is not None and not isinstance(root, str):
        raise error('"sourceRoot" must be a string')

    sources_raw = raw.get("sources", [])
    if not isinstance(sources_raw, list) or not all(s is None or isinstance(s, str) for s in sources_raw):
        raise error('"sources" must be a list of strings')
    names_raw = raw.get("names", [])
    if not isinstance(names_raw, list) or not all(isinstance(n, str) for n in names_raw):
        raise error('"names" must be a list of strings')

    file = raw.get("file")
    sources = tuple(None if s is None else _join_source_root(root, s) for s in sources_raw)
    names = tuple(names_raw)

    out: list[Mapping] = []
    src_idx = orig_line = orig_col = name_idx = 0
    for gen_line, segments in enumerate(decode_mappings(mappings_src, origin=origin), start=1):
        gen_col = 0
        for offset, fields in segments:
            n = len(fields)
            if n == 2:
                raise error("found a source, but no line and column", offset)
            if n == 3:
                raise error("found a source and line, but no column", offset)
            if n > 5:
                raise error(f"segment has {n} fields, expected 1, 4 or 5", offset)

            gen_col += fields[0]
            if gen_col < 0:
                raise error(f"negative generated column {gen_col}", offset)
            if n == 1:
                out.append(Mapping(generated_line=gen_line, generated_column=gen_col))
                continue

            src_idx += fields[1]
            orig_line += fields[2]
            orig_col += fields[3]
            if not 0 <= src_idx < len(sources):
                raise error(
                    f"source index {src_idx} out of range",
                    offset,
                    hint=f'"sources" has {len(sources)} entries',
                )
            if orig_line < 0 or orig_col < 0:
                raise error(f"negative original position {orig_line + 1}:{orig_col}", offset)

            name: int | None = None
            if n == 5:
                name_idx += fields[4]
                if not 0 <= name_idx < len(names):
                    raise error(
                        f"name index {name_idx} out of range",
                        offset,
                        hint=f'"names" has {len(names)} entries',
                    )
                name = name_idx

            out.append(
                Mapping(
                    generated_line=gen_line,
                    generated_column=gen_col,
                    source=src_idx,
                    original_line=orig_line + 1,
                    original_column=orig_col,
                    name=name,
                )
            )

    logger.debug("decoded %d mappings for %d sources from %s", len(out), len(sources), origin)
    return SourceMap(
        sources=sources,
        names=names,
        mappings=out,
        origin=origin,
        file=file if isinstance(file, str) else None,
    )


def _build_indexed(raw: dict[str, Any], origin: str) -> IndexedSourceMap:
    sections_raw = raw.get("sections")
    if not isinstance(sections_raw, list):
        raise SourceMapError(message='"sections" must be a list', origin=origin)

    sections: list[Section] = []
    last = (-1, -1)
    for i, s in enumerate(sections_raw):
        where = f"{origin}#sections[{i}]"
        if not isinstance(s, dict):
            raise SourceMapError(message="section must be a JSON object", origin=where)
        if "url" in s:
            raise SourceMapError(
                message="sections with a url are not supported",
                origin=where,
                hint='inline the referenced map under "map"',
            )
        off = s.get("offset")
        if not isinstance(off, dict):
            raise SourceMapError(message='section needs an "offset" object', origin=where)
        line, column = off.get("line"), off.get("column")
        if not _is_index(line) or not _is_index(column):
            raise SourceMapError(
                message=f"invalid section offset {off!r}",
                origin=where,
                hint="line and column must be non-negative integers",
            )
        if (line, column) < last:
            raise SourceMapError(message="section offsets must be ordered and non-overlapping", origin=where)
        last = (line, column)

        sub = source_map_from_dict(s.get("map"), origin=where)
        if not isinstance(sub, SourceMap):
            raise SourceMapError(message="nested indexed source maps are not supported", origin=where)
        sections.append(Section(line=line, column=column, map=sub))

    logger.debug("decoded %d sections from %s", len(sections), origin)
    file = raw.get("file")
    return IndexedSourceMap(sections, origin=origin, file=file if isinstance(file, str) else None)


def _is_index(v: object) -> bool:
    return isinstance(v, int) and not isinstance(v, bool) and v >= 0


def _join_source_root(root: str | None, source: str) -> str:
    if not root or source.startswith("/") or _URL_RE.match(source):
        return source
    if not root.endswith("/"):
        root += "/"
    if _URL_RE.match(root):
        return root + source
    return posixpath.normpath(root + source)

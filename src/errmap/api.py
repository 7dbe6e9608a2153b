from __future__ import annotations

import logging
from collections.abc import Awaitable, Iterable
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Protocol

from .config import RemapOptions
from .errors import RemapError, RemapErrorKind, SourceMapError
from .positions import MappedPosition, PositionMatch
from .scanner import find_positions
from .sourcemap import parse_source_map


logger = logging.getLogger(__name__)


class Resolver(Protocol):
    def resolve(self, line: int, column: int) -> MappedPosition: ...


class AsyncResolver(Protocol):
    def resolve(self, line: int, column: int) -> Awaitable[MappedPosition]: ...


def format_mapped_position(match: PositionMatch, mapped: MappedPosition) -> str:
    if mapped.source is None or mapped.line is None:
        return match.text
    col = f":{mapped.column}" if mapped.column is not None else ""
    return f"{mapped.source}:{mapped.line}{col}"


@dataclass(slots=True)
class _Splicer:
    """Rewrites `text` one match at a time, in scan order.

    `offset` is the total length change of every replacement so far; adding it
    to a later match's original offsets gives its place in `result`.
    """

    result: str
    offset: int = 0

    def splice(self, match: PositionMatch, replacement: str) -> None:
        start = match.start + self.offset
        end = match.end + self.offset
        self.result = self.result[:start] + replacement + self.result[end:]
        self.offset += len(replacement) - len(match.text)


# The one place where 1-based columns meet the resolver's 0-based ones.
def _to_query(match: PositionMatch) -> tuple[int, int]:
    return match.line, match.column - 1


def _from_answer(mapped: MappedPosition) -> MappedPosition:
    if mapped.column is None:
        return mapped
    return replace(mapped, column=mapped.column + 1)


def _resolution_failure(match: PositionMatch, e: Exception) -> RemapError:
    return RemapError(
        kind=RemapErrorKind.RESOLUTION_FAILURE,
        detail=f"failed to resolve {match.text}: {e}",
    )


def _replacement(match: PositionMatch, mapped: MappedPosition) -> str:
    out = format_mapped_position(match, mapped)
    if mapped.is_mapped:
        logger.debug("%s -> %s", match.text, out)
    else:
        logger.debug("no mapping for %s", match.text)
    return out


def remap_positions(text: str, matches: Iterable[PositionMatch], resolver: Resolver) -> str:
    """Replace every match in `text` with the position `resolver` maps it to.

    Matches must come in scan order (increasing, non-overlapping offsets).
    Unmapped matches are kept as they are. A resolver failure aborts the whole
    rewrite with a RemapError.
    """
    sp = _Splicer(result=text)
    for m in matches:
        try:
            mapped = _from_answer(resolver.resolve(*_to_query(m)))
        except Exception as e:
            raise _resolution_failure(m, e) from e
        sp.splice(m, _replacement(m, mapped))
    return sp.result


async def remap_positions_async(
    text: str, matches: Iterable[PositionMatch], resolver: AsyncResolver
) -> str:
    # Each lookup is awaited before the next splice; resolving out of order
    # would invalidate the running offset.
    sp = _Splicer(result=text)
    for m in matches:
        try:
            mapped = _from_answer(await resolver.resolve(*_to_query(m)))
        except Exception as e:
            raise _resolution_failure(m, e) from e
        sp.splice(m, _replacement(m, mapped))
    return sp.result


def remap(
    text: str,
    source_map: bytes | str,
    *,
    options: RemapOptions | None = None,
    origin: str = "<memory>",
) -> str:
    opts = options or RemapOptions()
    try:
        table = parse_source_map(source_map, origin=origin)
    except SourceMapError as e:
        raise RemapError(
            kind=RemapErrorKind.MAPPING_TABLE_INVALID,
            detail=f"invalid source map: {e}",
            path=None if origin == "<memory>" else origin,
        ) from e

    with table:
        matches = list(find_positions(text, extensions=opts.extensions))
        if not matches:
            logger.debug("no positions found, leaving message unchanged")
            return text
        logger.debug("remapping %d positions against %s", len(matches), origin)
        return remap_positions(text, matches, table)


def remap_file(text: str, path: str | Path, *, options: RemapOptions | None = None) -> str:
    p = Path(path).expanduser().resolve()
    if not p.is_file():
        raise RemapError(
            kind=RemapErrorKind.MAPPING_TABLE_MISSING,
            detail=f"source map file does not exist: {p}",
            path=str(p),
        )
    try:
        data = p.read_bytes()
    except OSError as e:
        raise RemapError(
            kind=RemapErrorKind.MAPPING_TABLE_MISSING,
            detail=f"cannot read source map file {p}: {e.strerror}",
            path=str(p),
        ) from e
    return remap(text, data, options=options, origin=str(p))


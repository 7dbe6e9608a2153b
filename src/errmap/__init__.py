from __future__ import annotations

from .api import format_mapped_position, remap, remap_file, remap_positions, remap_positions_async
from .config import RemapOptions
from .errors import RemapError, RemapErrorKind, SourceMapError
from .positions import MappedPosition, PositionMatch
from .scanner import find_positions
from .sourcemap import IndexedSourceMap, SourceMap, parse_source_map

__all__ = [
    "IndexedSourceMap",
    "MappedPosition",
    "PositionMatch",
    "RemapError",
    "RemapErrorKind",
    "RemapOptions",
    "SourceMap",
    "SourceMapError",
    "find_positions",
    "format_mapped_position",
    "parse_source_map",
    "remap",
    "remap_file",
    "remap_positions",
    "remap_positions_async",
]

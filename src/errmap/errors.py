from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


@dataclass(slots=True)
class SourceMapError(Exception):
    message: str
    origin: str = "<memory>"
    offset: int | None = None  # into the "mappings" string, when known
    hint: str | None = None

    def __str__(self) -> str:
        where = self.origin if self.offset is None else f"{self.origin}[{self.offset}]"
        base = f"{where}: {self.message}"
        if self.hint:
            return f"{base}\nhint: {self.hint}"
        return base


class RemapErrorKind(str, Enum):
    MAPPING_TABLE_MISSING = "mapping-table-missing"
    MAPPING_TABLE_INVALID = "mapping-table-invalid"
    RESOLUTION_FAILURE = "resolution-failure"


@dataclass(slots=True)
class RemapError(Exception):
    kind: RemapErrorKind
    detail: str
    path: str | None = None

    def __str__(self) -> str:
        return self.detail

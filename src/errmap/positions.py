from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class PositionMatch:
    """A `file:line[:column]` reference found in free text.

    `start`/`end` are 0-based offsets into the unmodified text; line/column are
    1-based as written by the runtime that produced the message.
    """

    text: str
    file: str
    line: int
    column: int
    start: int
    end: int
    has_column: bool = True


@dataclass(frozen=True, slots=True)
class MappedPosition:
    """An original-source position, or no position at all.

    Resolvers report `column` 0-based; remapping turns it 1-based before it is
    formatted.
    """

    source: str | None = None
    line: int | None = None
    column: int | None = None
    name: str | None = None

    def __post_init__(self) -> None:
        if (self.source is None) != (self.line is None):
            raise ValueError(
                f"partial mapping: source={self.source!r} line={self.line!r}"
            )

    @classmethod
    def unmapped(cls) -> MappedPosition:
        return cls()

    @property
    def is_mapped(self) -> bool:
        return self.source is not None and self.line is not None

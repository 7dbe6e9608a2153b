from __future__ import annotations

import re
from collections.abc import Iterator, Sequence
from functools import lru_cache

from .positions import PositionMatch


DEFAULT_EXTENSIONS: tuple[str, ...] = (".js",)

# Positive integers only; leading zeros are tolerated ("010" is line 10).
_POSITIVE = r"0*[1-9][0-9]*"


def compile_pattern(extensions: Sequence[str] = DEFAULT_EXTENSIONS) -> re.Pattern[str]:
    return _compile(tuple(extensions))


@lru_cache(maxsize=32)
def _compile(extensions: tuple[str, ...]) -> re.Pattern[str]:
    if not extensions:
        raise ValueError("at least one extension is required")
    # Longest first so ".mjs" is not cut short by a ".js" alternative.
    alts = "|".join(re.escape(e) for e in sorted(set(extensions), key=len, reverse=True))
    return re.compile(rf"(?P<file>[^\s:()]+(?:{alts})):(?P<line>{_POSITIVE})(?::(?P<column>{_POSITIVE}))?")


def find_positions(
    text: str, *, extensions: Sequence[str] = DEFAULT_EXTENSIONS
) -> Iterator[PositionMatch]:
    """Yield every position reference in `text`, left to right.

    Scanning resumes right after each match, so matches never overlap and
    their offsets strictly increase. The iterator is single-use.
    """
    for m in compile_pattern(extensions).finditer(text):
        col = m.group("column")
        yield PositionMatch(
            text=m.group(0),
            file=m.group("file"),
            line=int(m.group("line")),
            column=int(col) if col is not None else 1,
            start=m.start(),
            end=m.end(),
            has_column=col is not None,
        )

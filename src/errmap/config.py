from __future__ import annotations

import re
from dataclasses import dataclass

from .scanner import DEFAULT_EXTENSIONS


_EXTENSION_RE = re.compile(r"\.[^\s:()]+")


@dataclass(frozen=True, slots=True)
class RemapOptions:
    """Knobs for a remap run.

    `extensions` lists the compiled-file extensions whose positions are
    rewritten (`.js` unless told otherwise).
    """

    extensions: tuple[str, ...] = DEFAULT_EXTENSIONS

    def __post_init__(self) -> None:
        if isinstance(self.extensions, str):
            raise ValueError("extensions must be a sequence of strings, not a string")
        exts: list[str] = []
        for e in self.extensions:
            if not isinstance(e, str):
                raise ValueError(f"invalid extension {e!r}")
            if not e.startswith("."):
                e = "." + e
            if not _EXTENSION_RE.fullmatch(e):
                raise ValueError(f"invalid extension {e!r}: expected something like '.js'")
            exts.append(e)
        if not exts:
            raise ValueError("at least one extension is required")
        object.__setattr__(self, "extensions", tuple(dict.fromkeys(exts)))

from __future__ import annotations

from dataclasses import dataclass

from .errors import SourceMapError


BASE64_CHARS = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
_DIGITS = {ch: i for i, ch in enumerate(BASE64_CHARS)}

_SHIFT = 5
_CONTINUATION = 1 << _SHIFT
_MASK = _CONTINUATION - 1


@dataclass(slots=True)
class _Cursor:
    src: str
    origin: str
    i: int = 0

    def eof(self) -> bool:
        return self.i >= len(self.src)

    def peek(self) -> str:
        if self.eof():
            return ""
        return self.src[self.i]

    def error(self, msg: str, hint: str | None = None) -> SourceMapError:
        return SourceMapError(message=msg, origin=self.origin, offset=self.i, hint=hint)


def encode(value: int) -> str:
    vlq = ((-value) << 1) | 1 if value < 0 else value << 1
    out: list[str] = []
    while True:
        digit = vlq & _MASK
        vlq >>= _SHIFT
        if vlq:
            digit |= _CONTINUATION
        out.append(BASE64_CHARS[digit])
        if not vlq:
            return "".join(out)


def encode_segment(fields: list[int] | tuple[int, ...]) -> str:
    return "".join(encode(v) for v in fields)


def _decode_one(cur: _Cursor) -> int:
    start = cur.i
    value = 0
    shift = 0
    while True:
        ch = cur.peek()
        if ch == "" or ch in ",;":
            cur.i = start
            raise cur.error("truncated VLQ value", hint="a continuation bit was set on the last digit")
        digit = _DIGITS.get(ch)
        if digit is None:
            raise cur.error(f"invalid base64 VLQ character {ch!r}")
        cur.i += 1
        value += (digit & _MASK) << shift
        if not digit & _CONTINUATION:
            break
        shift += _SHIFT
    negative = value & 1
    value >>= 1
    return -value if negative else value


def decode(src: str, *, origin: str = "<memory>") -> list[int]:
    """Decode a run of VLQ values with no separators."""
    cur = _Cursor(src=src, origin=origin)
    out: list[int] = []
    while not cur.eof():
        out.append(_decode_one(cur))
    return out


def decode_mappings(src: str, *, origin: str = "<memory>") -> list[list[tuple[int, list[int]]]]:
    """Split a "mappings" string into generated lines of decoded segments.

    Each segment is returned with its offset into `src` so later validation can
    point at it. Field values are still relative, as encoded.
    """
    lines: list[list[tuple[int, list[int]]]] = [[]]
    cur = _Cursor(src=src, origin=origin)
    while not cur.eof():
        ch = cur.peek()
        if ch == ";":
            lines.append([])
            cur.i += 1
            continue
        if ch == ",":
            cur.i += 1
            continue
        start = cur.i
        fields: list[int] = []
        while cur.peek() not in ("", ",", ";"):
            fields.append(_decode_one(cur))
        lines[-1].append((start, fields))
    return lines

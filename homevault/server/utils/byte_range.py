"""HTTP `Range` header parsing for file streaming."""

from dataclasses import dataclass

from homevault.server.exceptions import RangeNotSatisfiable, ValidationError

__all__ = [
    "ByteRange",
    "parse_range_header",
]


@dataclass(frozen=True)
class ByteRange:
    """An inclusive span of bytes within content of a known size."""

    start: int
    end: int
    total: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    @property
    def content_range(self) -> str:
        """Value for the `Content-Range` response header."""
        return f"bytes {self.start}-{self.end}/{self.total}"


def parse_range_header(header: str | None, total: int) -> ByteRange | None:
    """Parse a `Range` header against content of `total` bytes.

    Supports `bytes=start-end`, `bytes=start-` and `bytes=-suffix`. The end is
    clamped to the last byte. Only the first range of a multi-range header is
    honoured. Returns None when no header is present.
    """
    if header is None or not header.strip():
        return None

    unit, sep, ranges = header.strip().partition("=")
    if not sep or unit.strip().lower() != "bytes":
        raise ValidationError(f"Invalid Range header: {header}")

    first = ranges.split(",")[0].strip()
    start_str, sep, end_str = first.partition("-")
    if not sep:
        raise ValidationError(f"Invalid Range header: {header}")
    start_str, end_str = start_str.strip(), end_str.strip()

    try:
        if not start_str:
            # Suffix range: the last N bytes
            suffix = int(end_str)
            if suffix < 0:
                raise ValueError(end_str)
            if suffix == 0 or total == 0:
                raise RangeNotSatisfiable(f"Range {first} not satisfiable", total)
            start = max(total - suffix, 0)
            end = total - 1
        else:
            start = int(start_str)
            end = int(end_str) if end_str else total - 1
            if start < 0 or end < 0:
                raise ValueError(first)
    except ValueError:
        raise ValidationError(f"Invalid Range header: {header}") from None

    if start >= total:
        raise RangeNotSatisfiable(f"Range {first} not satisfiable", total)
    if end < start:
        raise ValidationError(f"Invalid Range header: {header}")

    return ByteRange(start=start, end=min(end, total - 1), total=total)

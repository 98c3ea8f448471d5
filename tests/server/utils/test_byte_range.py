import pytest

from homevault.server.exceptions import RangeNotSatisfiable, ValidationError
from homevault.server.utils.byte_range import ByteRange, parse_range_header


def test_no_header() -> None:
    assert parse_range_header(None, 100) is None
    assert parse_range_header("", 100) is None


def test_closed_range() -> None:
    byte_range = parse_range_header("bytes=10-19", 100)
    assert byte_range == ByteRange(start=10, end=19, total=100)
    assert byte_range.length == 10
    assert byte_range.content_range == "bytes 10-19/100"


def test_end_is_clamped() -> None:
    byte_range = parse_range_header("bytes=90-200", 100)
    assert byte_range is not None
    assert byte_range.end == 99
    assert byte_range.length == 10


def test_open_range() -> None:
    byte_range = parse_range_header("bytes=50-", 100)
    assert byte_range == ByteRange(start=50, end=99, total=100)


def test_suffix_range() -> None:
    assert parse_range_header("bytes=-10", 100) == ByteRange(90, 99, 100)
    assert parse_range_header("bytes=-500", 100) == ByteRange(0, 99, 100)


def test_only_first_range_is_used() -> None:
    assert parse_range_header("bytes=0-4, 10-20", 100) == ByteRange(0, 4, 100)


@pytest.mark.parametrize(
    "header",
    ["items=0-1", "bytes=abc", "bytes=5", "bytes=a-b", "bytes=20-10", "bytes=--5"],
)
def test_malformed(header: str) -> None:
    with pytest.raises(ValidationError):
        parse_range_header(header, 100)


@pytest.mark.parametrize("header", ["bytes=100-", "bytes=150-200", "bytes=-0"])
def test_unsatisfiable(header: str) -> None:
    with pytest.raises(RangeNotSatisfiable) as exc_info:
        parse_range_header(header, 100)
    assert exc_info.value.total == 100
    response = exc_info.value.to_response()
    assert response.status == 416
    assert response.headers["Content-Range"] == "bytes */100"

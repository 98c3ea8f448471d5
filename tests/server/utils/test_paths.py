import pytest

from homevault.server.exceptions import ValidationError
from homevault.server.utils.paths import (
    join_path,
    normalize_path,
    parent_path,
    path_depth,
    split_path,
    validate_name,
)


@pytest.mark.parametrize("path", [None, "", "/", "//", "  /  "])
def test_root_forms_normalize_to_slash(path: str | None) -> None:
    assert normalize_path(path) == "/"


def test_normalize_collapses_separators() -> None:
    assert normalize_path("/a//b/") == "/a/b"
    assert normalize_path("/docs/work") == "/docs/work"


@pytest.mark.parametrize("path", ["a/b", "/a/../b", "/a/./b", "/a\\b"])
def test_normalize_rejects_invalid_paths(path: str) -> None:
    with pytest.raises(ValidationError):
        normalize_path(path)


@pytest.mark.parametrize(
    "name", ["", "   ", "a/b", "a\\b", ".", "..", None, "a\nb.txt", "x\ry", "del\x7f"]
)
def test_validate_name_rejects(name: str | None) -> None:
    with pytest.raises(ValidationError):
        validate_name(name)


def test_validate_name_strips() -> None:
    assert validate_name("  Photos ") == "Photos"


def test_join_and_parent() -> None:
    assert join_path("/", "a") == "/a"
    assert join_path(None, "a") == "/a"
    assert join_path("/a/b", "c") == "/a/b/c"
    assert parent_path("/a/b/c") == "/a/b"
    assert parent_path("/a") == "/"
    assert parent_path("/") is None


def test_split_and_depth() -> None:
    assert split_path("/") == []
    assert split_path("/a/b") == ["a", "b"]
    assert path_depth("/") == 0
    assert path_depth("/a") == 1
    assert path_depth("/a/b/c") == 3

"""Helpers for virtual folder paths.

Virtual paths are slash delimited and absolute. The root is always `/`;
every other path starts with `/` and never ends with one. `None`, the empty
string and `/` all denote the root and normalize to `/`.
"""

from homevault.server.constants import (
    FORBIDDEN_NAME_CHARS,
    PATH_SEPARATOR,
    RESERVED_NAMES,
    ROOT_PATH,
)
from homevault.server.exceptions import ValidationError

__all__ = [
    "validate_name",
    "normalize_path",
    "is_root",
    "split_path",
    "join_path",
    "parent_path",
    "path_depth",
]


def validate_name(name: str | None, kind: str = "Folder") -> str:
    """Validate a single path segment and return it stripped."""
    if name is None or not name.strip():
        raise ValidationError(f"{kind} name cannot be empty")
    name = name.strip()
    if any(c in name for c in FORBIDDEN_NAME_CHARS):
        raise ValidationError(f"{kind} name cannot contain path separators")
    if any(ord(c) < 0x20 or ord(c) == 0x7F for c in name):
        raise ValidationError(f"{kind} name cannot contain control characters")
    if name in RESERVED_NAMES:
        raise ValidationError(f"{kind} name cannot be '{name}'")
    return name


def normalize_path(path: str | None) -> str:
    """Return the canonical form of a virtual path."""
    if path is None:
        return ROOT_PATH
    path = path.strip()
    if path in ("", ROOT_PATH):
        return ROOT_PATH
    if not path.startswith(PATH_SEPARATOR):
        raise ValidationError(f"Path must start with '/': {path}")
    parts = [p for p in path.split(PATH_SEPARATOR) if p]
    if not parts:
        return ROOT_PATH
    for part in parts:
        if part != part.strip():
            raise ValidationError(f"Invalid path segment '{part}' in {path}")
        validate_name(part)
    return PATH_SEPARATOR + PATH_SEPARATOR.join(parts)


def is_root(path: str | None) -> bool:
    return normalize_path(path) == ROOT_PATH


def split_path(path: str | None) -> list[str]:
    """Split a path into its segments; the root has none."""
    normalized = normalize_path(path)
    if normalized == ROOT_PATH:
        return []
    return normalized[1:].split(PATH_SEPARATOR)


def join_path(parent: str | None, name: str) -> str:
    """Join a parent path and a child name."""
    parent = normalize_path(parent)
    name = validate_name(name)
    if parent == ROOT_PATH:
        return PATH_SEPARATOR + name
    return f"{parent}{PATH_SEPARATOR}{name}"


def parent_path(path: str | None) -> str | None:
    """Return the parent of a path, or None for the root itself."""
    parts = split_path(path)
    if not parts:
        return None
    return PATH_SEPARATOR + PATH_SEPARATOR.join(parts[:-1])


def path_depth(path: str | None) -> int:
    """Number of segments in a path; the root has depth 0."""
    return len(split_path(path))

"""Module for database models."""

from . import file, folder, shared_link  # noqa: F401

__all__ = [
    "file",
    "folder",
    "shared_link",
]

"""
Utility functions for file names and filesystem paths.

This module provides helper functions for:
- Deriving the file kind from an uploaded file name
- Sanitizing user-provided file names before they become object keys
- Ensuring directory creation for the local database
"""

from __future__ import annotations

import re
from pathlib import Path

# Pattern to match characters that are not safe inside an object key
# Allows: alphanumeric characters, dots, underscores, and hyphens
SANITIZE_PATTERN = re.compile(r"[^a-zA-Z0-9._-]+")


def extension_of(file_name: str) -> str:
    """
    Return the lowercase text after the final dot of a file name.

    Args:
        file_name: The uploaded file name

    Returns:
        The extension without its dot, or an empty string when the name has none

    Example:
        >>> extension_of("Bracket.STL")
        "stl"
        >>> extension_of("archive.tar.gz")
        "gz"
    """
    index = file_name.rfind(".")
    if index == -1:
        return ""
    return file_name[index + 1 :].lower()


def dotted_extension_of(file_name: str) -> str:
    """Lowercase extension including its leading dot, empty when there is none."""
    index = file_name.rfind(".")
    return "" if index == -1 else file_name[index:].lower()


def sanitize_filename(file_name: str, fallback: str = "model") -> str:
    """
    Generate an object-key-safe file name from user input.

    The stem is cleaned of unsafe characters; the extension is kept lowercase.

    Example:
        >>> sanitize_filename("My Bracket (v2).STL")
        "My-Bracket-v2.stl"
        >>> sanitize_filename("@#$.obj")
        "model.obj"
    """
    base = Path(file_name).name
    extension = dotted_extension_of(base)
    stem = base[: len(base) - len(extension)] if extension else base
    cleaned = SANITIZE_PATTERN.sub("-", stem.strip()).strip("-_.")
    return f"{cleaned or fallback}{extension}"


def ensure_directory(path: Path) -> Path:
    """
    Create a directory if it doesn't exist, including parent directories.

    Args:
        path: The directory path to create

    Returns:
        The same path object for chaining
    """
    path.mkdir(parents=True, exist_ok=True)
    return path

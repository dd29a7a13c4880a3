"""Utility functions for ssisite.

This module contains the path and string helpers shared by the build,
the asset pipeline, the sitemap and the CLI.

Key functions:
    iter_files: Walk a directory tree, skipping excluded directory names.
    has_suffix: Case-insensitive suffix check.
    ensure_clean_dir: Ensure a directory exists and is empty.
    join_root_url: Join a base URL with a path.
    titleize: Convert filenames to human-readable titles.
"""

from __future__ import annotations

import os
import re
import shutil
from collections.abc import Iterable, Iterator
from pathlib import Path


def iter_files(
    root: Path,
    suffix: str | None = None,
    exclude: Iterable[str] = (),
) -> Iterator[Path]:
    """Yield files under ``root`` in sorted order.

    Directories whose name is in ``exclude`` are not descended into, at any
    depth.

    Args:
        root: Directory to walk.
        suffix: Only yield files ending with this suffix (case-insensitive).
        exclude: Directory names to skip.

    Yields:
        Paths of matching files.
    """
    excluded = set(exclude)
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in excluded)
        for filename in sorted(filenames):
            if suffix is None or has_suffix(filename, suffix):
                yield Path(dirpath) / filename


def has_suffix(name: str, suffix: str) -> bool:
    """Check whether a filename ends with ``suffix``, ignoring case.

    Examples:
        >>> has_suffix("INDEX.SHTML", ".shtml")
        True
    """
    return name.lower().endswith(suffix.lower())


def replace_suffix(path: Path, old: str, new: str) -> Path:
    """Swap a (case-insensitive) filename suffix.

    Examples:
        >>> replace_suffix(Path("docs/a.SHTML"), ".shtml", ".html")
        PosixPath('docs/a.html')
    """
    name = path.name
    if has_suffix(name, old):
        name = name[: len(name) - len(old)]
    return path.with_name(name + new)


def ensure_clean_dir(path: Path) -> None:
    """Ensure a directory exists and is empty.

    If the directory exists, removes all contents. Creates the
    directory if it doesn't exist.

    Args:
        path: Directory path to clean or create.
    """
    if path.exists():
        shutil.rmtree(str(path), ignore_errors=True)
        if path.exists():
            # Fallback for stubborn directories
            for item in path.rglob("*"):
                if item.is_file():
                    item.unlink()
            for item in sorted(
                [p for p in path.rglob("*") if p.is_dir()], reverse=True
            ):
                item.rmdir()
            path.rmdir()
    path.mkdir(parents=True, exist_ok=True)


def join_root_url(root_url: str, path: str) -> str:
    """Safely join a root URL and a path, avoiding double slashes.

    Args:
        root_url: Base URL (e.g., https://example.com/blog).
        path: Path beginning with or without a leading slash.

    Returns:
        Combined URL with proper slash handling.

    Examples:
        >>> join_root_url('https://example.com', '/about')
        'https://example.com/about'

        >>> join_root_url('https://example.com/', 'about')
        'https://example.com/about'
    """
    if not root_url:
        return path
    base = root_url.rstrip("/")
    suffix = path if path.startswith("/") else f"/{path}"
    return f"{base}{suffix}"


def titleize(filename: str) -> str:
    """Convert a filename to a human-readable title.

    Examples:
        >>> titleize("getting-started.shtml")
        'Getting Started'
    """
    base = Path(filename).stem
    words = re.split(r"[\s\-_]+", base)
    return " ".join(word.capitalize() for word in words if word) or "Untitled"

"""Server-side include resolution for ssisite.

This module expands ``<!--#include virtual="..." -->`` directives in page
sources. Includes are resolved depth-first: each included file is itself
resolved against its own directory before being substituted into its parent.

Problems are reported in-band so a single broken include never blocks a build:
- A cycle back to a file that is still being resolved becomes a
  ``<!-- cyclic-include:PATH -->`` marker.
- A file that cannot be read becomes a ``<!-- missing-include:PATH -->`` marker.

Strict mode turns both cases into exceptions instead.

Key classes:
- IncludeResolver: Resolves include directives relative to a project root.
- IncludeMarker: A cyclic or missing marker found in resolved output.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path

INCLUDE_RE = re.compile(r'<!--#include\s+virtual="([^"]+)"\s+-->')
MARKER_RE = re.compile(r"<!-- (cyclic|missing)-include:(.*?) -->", re.DOTALL)

CYCLIC_MARKER = "<!-- cyclic-include:{path} -->"
MISSING_MARKER = "<!-- missing-include:{path} -->"


class IncludeError(Exception):
    """Raised by a strict resolver when an include cannot be expanded.

    Attributes:
        raw_path: The path exactly as written in the directive.
        resolved_path: The normalized absolute path it pointed to.
    """

    kind = "include"

    def __init__(self, raw_path: str, resolved_path: Path):
        self.raw_path = raw_path
        self.resolved_path = resolved_path
        super().__init__(f"{self.kind} include: {raw_path} ({resolved_path})")


class CyclicIncludeError(IncludeError):
    kind = "cyclic"


class MissingIncludeError(IncludeError):
    kind = "missing"


@dataclass(frozen=True)
class IncludeMarker:
    """An unresolved include left in resolved output.

    Attributes:
        kind: Either "cyclic" or "missing".
        path: The include path as originally written.
    """

    kind: str
    path: str


def normalize_path(path: Path) -> Path:
    """Return an absolute path with ``.`` and ``..`` segments collapsed.

    Symlinks are not followed; two spellings of the same location compare equal
    once normalized.
    """
    return Path(os.path.normpath(Path(path).absolute()))


def find_include_markers(text: str) -> list[IncludeMarker]:
    """Find cyclic and missing include markers in resolved text.

    Args:
        text: Output of IncludeResolver.resolve.

    Returns:
        Markers in order of appearance.

    Examples:
        >>> find_include_markers("<p><!-- missing-include:nav.inc --></p>")
        [IncludeMarker(kind='missing', path='nav.inc')]
    """
    return [IncludeMarker(kind, path) for kind, path in MARKER_RE.findall(text)]


class IncludeResolver:
    """Expands include directives for pages of one project.

    The resolver keeps no state between calls. Cycle tracking lives in the
    ``visited`` set passed down the recursion, so separate pages can be
    resolved independently.

    Attributes:
        root: Normalized project root used for paths starting with ``/``.
        strict: Raise IncludeError subclasses instead of writing markers.
    """

    def __init__(self, root: Path, strict: bool = False):
        self.root = normalize_path(root)
        self.strict = strict

    def resolve(
        self,
        content: str,
        base_dir: Path,
        visited: set[Path] | None = None,
    ) -> str:
        """Resolve every include directive in ``content``.

        Args:
            content: Document text.
            base_dir: Directory that relative include paths resolve against.
            visited: Normalized paths on the current ancestor chain. A new
                empty set is used when omitted.

        Returns:
            The document with each directive replaced by the resolved content
            of its target, or by a marker when the target is cyclic or missing.
        """
        if visited is None:
            visited = set()
        return INCLUDE_RE.sub(
            lambda match: self._expand(match.group(1), Path(base_dir), visited),
            content,
        )

    def resolve_file(self, path: Path) -> str:
        """Read and resolve a top-level document.

        The document itself counts as an ancestor, so an include chain leading
        back to it is reported as cyclic.

        Raises:
            OSError: If the document cannot be read.
            UnicodeDecodeError: If the document is not valid UTF-8.
        """
        target = normalize_path(path)
        content = target.read_text(encoding="utf-8")
        return self.resolve(content, target.parent, {target})

    def target_for(self, raw_path: str, base_dir: Path) -> Path:
        """Return the normalized absolute path a directive points to."""
        if raw_path.startswith("/"):
            candidate = self.root / raw_path.lstrip("/")
        else:
            candidate = base_dir / raw_path
        return normalize_path(candidate)

    def _expand(self, raw_path: str, base_dir: Path, visited: set[Path]) -> str:
        target = self.target_for(raw_path, base_dir)
        if target in visited:
            if self.strict:
                raise CyclicIncludeError(raw_path, target)
            return CYCLIC_MARKER.format(path=raw_path)

        try:
            content = target.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            if self.strict:
                raise MissingIncludeError(raw_path, target) from exc
            return MISSING_MARKER.format(path=raw_path)

        visited.add(target)
        try:
            return self.resolve(content, target.parent, visited)
        finally:
            visited.discard(target)

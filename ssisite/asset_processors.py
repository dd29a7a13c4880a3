"""Asset processors for ssisite.

This module contains the processors that write static assets into the
output directory. Each processor handles a single type of asset and the
registry picks the highest-priority processor that accepts a file.

Key classes:
- ImageProcessor: Optimizes image files.
- CSSProcessor: Minifies stylesheets.
- HTMLProcessor: Minifies plain HTML files.
- JSProcessor: Minifies JavaScript files.
- StaticAssetProcessor: Copies static assets without modification.
- AssetProcessorRegistry: Registry for managing asset processors.
"""

from __future__ import annotations

import shutil
from abc import ABC, abstractmethod
from pathlib import Path

from PIL import Image, UnidentifiedImageError
from rjsmin import jsmin

from .minify import minify_css, minify_html


class BaseAssetProcessor(ABC):
    """Base class for asset processors.

    Provides shared utilities:
        - ensure_dest_dir: Creates parent directories for output files.
        - transform_text: Writes a text file through a string transform.
    """

    @property
    @abstractmethod
    def priority(self) -> int:
        """Return processor priority (higher = checked first)."""
        ...

    @abstractmethod
    def can_process(self, path: Path) -> bool:
        """Check if this processor can handle the given asset.

        Args:
            path: Path to the asset file.

        Returns:
            True if this processor can handle the asset.
        """
        ...

    @abstractmethod
    def process(self, source: Path, dest: Path) -> bool:
        """Process an asset file.

        Args:
            source: Source asset path.
            dest: Destination path for processed asset.

        Returns:
            True if processing was successful.
        """
        ...

    def ensure_dest_dir(self, dest: Path) -> None:
        """Ensure the parent directory of the destination exists."""
        dest.parent.mkdir(parents=True, exist_ok=True)

    def transform_text(self, source: Path, dest: Path, transform) -> bool:
        """Read ``source`` as UTF-8, apply ``transform`` and write ``dest``.

        Files that are not valid UTF-8 are copied unchanged.
        """
        self.ensure_dest_dir(dest)
        try:
            text = source.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            shutil.copy2(source, dest)
            return True
        dest.write_text(transform(text), encoding="utf-8")
        return True


class ImageProcessor(BaseAssetProcessor):
    """Optimizes image files using Pillow.

    Supports PNG, JPG, JPEG, and WebP formats. Files Pillow cannot
    decode are copied unchanged.
    """

    SUPPORTED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".webp"}

    @property
    def priority(self) -> int:
        return 100

    def can_process(self, path: Path) -> bool:
        """Check if this is a supported image file."""
        return path.suffix.lower() in self.SUPPORTED_EXTENSIONS

    def process(self, source: Path, dest: Path) -> bool:
        self.ensure_dest_dir(dest)
        try:
            with Image.open(source) as img:
                img.save(dest, optimize=True)
            return True
        except (OSError, UnidentifiedImageError, ValueError):
            pass

        shutil.copy2(source, dest)
        return True


class CSSProcessor(BaseAssetProcessor):
    """Minifies CSS files."""

    @property
    def priority(self) -> int:
        return 90

    def can_process(self, path: Path) -> bool:
        return path.suffix.lower() == ".css"

    def process(self, source: Path, dest: Path) -> bool:
        return self.transform_text(source, dest, minify_css)


class HTMLProcessor(BaseAssetProcessor):
    """Minifies plain HTML files such as 404.html.

    These files are copied as-is apart from minification; include
    directives are only expanded in page sources.
    """

    @property
    def priority(self) -> int:
        return 85

    def can_process(self, path: Path) -> bool:
        return path.suffix.lower() in {".html", ".htm"}

    def process(self, source: Path, dest: Path) -> bool:
        return self.transform_text(source, dest, minify_html)


class JSProcessor(BaseAssetProcessor):
    """Minifies JavaScript files with rjsmin."""

    @property
    def priority(self) -> int:
        return 80

    def can_process(self, path: Path) -> bool:
        return path.suffix.lower() == ".js"

    def process(self, source: Path, dest: Path) -> bool:
        return self.transform_text(source, dest, jsmin)


class StaticAssetProcessor(BaseAssetProcessor):
    """Copies static assets without modification.

    This is the fallback processor for assets that don't need
    special processing (fonts, SVGs, etc.).
    """

    @property
    def priority(self) -> int:
        return 0  # Lowest priority - fallback

    def can_process(self, path: Path) -> bool:
        return True

    def process(self, source: Path, dest: Path) -> bool:
        self.ensure_dest_dir(dest)
        shutil.copy2(source, dest)
        return True


class AssetProcessorRegistry:
    """Registry for managing asset processors.

    New processors can be added without touching existing ones; the
    registry selects the first processor, by priority, that accepts a file.
    """

    def __init__(self):
        self._processors: list[BaseAssetProcessor] = []

    def register(self, processor: BaseAssetProcessor) -> None:
        """Register a new processor.

        Processors are stored sorted by priority (highest first).

        Args:
            processor: Asset processor to register.
        """
        self._processors.append(processor)
        self._processors.sort(key=lambda p: p.priority, reverse=True)

    def get_processor(self, path: Path) -> BaseAssetProcessor | None:
        """Get the appropriate processor for a file.

        Args:
            path: Path to the asset file.

        Returns:
            The first processor that can handle the file, or None.
        """
        for processor in self._processors:
            if processor.can_process(path):
                return processor
        return None

    def process(self, source: Path, dest: Path) -> bool:
        """Process an asset using the appropriate processor.

        Args:
            source: Source asset path.
            dest: Destination path.

        Returns:
            True if processing was successful, False if no processor found.
        """
        processor = self.get_processor(source)
        if processor:
            return processor.process(source, dest)
        return False


def create_default_registry() -> AssetProcessorRegistry:
    """Create a registry with the default processors."""
    registry = AssetProcessorRegistry()
    registry.register(ImageProcessor())
    registry.register(CSSProcessor())
    registry.register(HTMLProcessor())
    registry.register(JSProcessor())
    registry.register(StaticAssetProcessor())
    return registry

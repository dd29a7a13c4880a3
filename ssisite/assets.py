"""Asset pipeline for ssisite.

This module mirrors static asset trees and top-level files into the output
directory. Every file goes through the processor registry so stylesheets,
scripts, HTML and images are minified or optimized on the way.

Key components:
- AssetPipeline: Main class for managing the asset workflow.
- Individual processors in the asset_processors module for each asset type.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from .asset_processors import AssetProcessorRegistry, create_default_registry
from .utils import iter_files


class AssetPipeline:
    """Copies and processes the static assets of a project.

    Attributes:
        project_root (Path): Root directory of the project.
        output_dir (Path): Directory where processed assets are written.
        trees (list[str]): Source directories mirrored under the same name.
        top_assets (list[str]): Root-level files copied to the output root.
        exclude (set[str]): Directory names never descended into.
        processor_registry (AssetProcessorRegistry): Registry of asset processors.
    """

    def __init__(
        self,
        project_root: Path,
        output_dir: Path,
        config: dict[str, Any] | None = None,
        processor_registry: AssetProcessorRegistry | None = None,
    ):
        config = config or {}
        self.project_root = project_root
        self.output_dir = output_dir
        self.trees = [
            str(config.get("static_dir", "static")),
            str(config.get("images_dir", "images")),
        ]
        top_assets = config.get("top_assets")
        if top_assets is None:
            top_assets = ["favicon.svg", "robots.txt", "404.html"]
        self.top_assets = list(top_assets)
        self.exclude = set(config.get("exclude_dirs") or []) | {output_dir.name}
        self.processor_registry = processor_registry or create_default_registry()

    def run(self) -> list[Path]:
        """Execute the asset pipeline.

        Returns:
            Destination paths of every processed asset.
        """
        written: list[Path] = []
        for tree in self.trees:
            written.extend(self.copy_tree(self.project_root / tree, self.output_dir / tree))
        for name in self.top_assets:
            source = self.project_root / name
            if not source.is_file():
                continue
            dest = self.output_dir / name
            if self.processor_registry.process(source, dest):
                written.append(dest)
        return written

    def copy_tree(self, source_dir: Path, dest_dir: Path) -> list[Path]:
        """Mirror ``source_dir`` into ``dest_dir`` through the processors.

        A missing source directory is skipped.
        """
        if not source_dir.is_dir():
            return []
        written = []
        for item in iter_files(source_dir, exclude=self.exclude):
            dest = dest_dir / item.relative_to(source_dir)
            if self.processor_registry.process(item, dest):
                written.append(dest)
        return written

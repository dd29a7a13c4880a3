"""Site building functionality for ssisite.

This module contains the core logic for building a static site from source
files. It loads configuration, expands includes in every page source,
minifies the result, copies assets, and writes the sitemap.

Key functions:
- build_site: Main function to build the entire site.
- load_config: Loads site configuration from ssisite.yaml.
- iter_pages: Lists the page sources of a project.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .assets import AssetPipeline
from .feeds import SitemapGenerator
from .includes import IncludeError, IncludeMarker, IncludeResolver, find_include_markers
from .minify import minify_html
from .utils import ensure_clean_dir, iter_files, replace_suffix

CONFIG_FILENAME = "ssisite.yaml"


class BuildError(Exception):
    """Error during site build with file context.

    Attributes:
        source_path: Path to the source file that caused the error.
        message: Human-readable error message.
        original_error: The original exception that was caught.
    """

    def __init__(
        self,
        source_path: Path,
        message: str,
        original_error: Exception | None = None,
    ):
        self.source_path = source_path
        self.message = message
        self.original_error = original_error
        super().__init__(f"{source_path}: {message}")


DEFAULT_CONFIG = {
    "output_dir": "public",
    "site_url": "",
    "source_suffix": ".shtml",
    "static_dir": "static",
    "images_dir": "images",
    "top_assets": ["favicon.svg", "robots.txt", "404.html"],
    "exclude_dirs": ["node_modules", ".git", "public"],
    "strict": False,
    "port": 4000,
}


@dataclass
class BuildResult:
    """Result of a site build operation.

    Attributes:
        pages: Emitted pages, relative to the output directory.
        output_dir: Directory where the site was built.
        unresolved: Include markers left in each source page's output.
        sitemap: Path of the written sitemap, if any.
    """

    pages: list[Path]
    output_dir: Path
    unresolved: dict[Path, list[IncludeMarker]] = field(default_factory=dict)
    sitemap: Path | None = None


def load_config(project_root: Path) -> dict[str, Any]:
    """Load site configuration from ssisite.yaml.

    Args:
        project_root: Root directory of the project.

    Returns:
        Dictionary containing configuration values, with defaults applied.
    """
    config_path = project_root / CONFIG_FILENAME
    config = DEFAULT_CONFIG.copy()
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
            if isinstance(loaded, dict):
                config.update(loaded)
    return config


def excluded_dirs(config: dict[str, Any], *outputs: Path) -> set[str]:
    """Directory names skipped while walking sources and assets."""
    names = set(config.get("exclude_dirs") or [])
    names.update(path.name for path in outputs)
    return names


def iter_pages(
    project_root: Path, config: dict[str, Any], *outputs: Path
) -> Iterator[Path]:
    """Yield every page source of the project in sorted order."""
    suffix = str(config.get("source_suffix", ".shtml"))
    yield from iter_files(
        project_root, suffix=suffix, exclude=excluded_dirs(config, *outputs)
    )


def build_site(
    project_root: Path,
    site_url: str | None = None,
    strict: bool | None = None,
    clean_output: bool = True,
    output_dir_override: Path | None = None,
) -> BuildResult:
    """Build the entire static site.

    Args:
        project_root: Root directory of the project.
        site_url: Optional override for the sitemap base URL.
        strict: Optional override for strict include resolution.
        clean_output: Whether to wipe the output directory before building.
        output_dir_override: Optional path to write the build output instead of config output_dir.

    Returns:
        BuildResult describing the emitted pages.

    Raises:
        BuildError: If a page cannot be read or, in strict mode, has an
            include that cannot be expanded.
    """
    config = load_config(project_root)
    if site_url is not None:
        config["site_url"] = site_url
    if strict is not None:
        config["strict"] = strict
    configured_output = project_root / config.get("output_dir", "public")
    output_dir = output_dir_override or configured_output
    if clean_output:
        ensure_clean_dir(output_dir)
    else:
        output_dir.mkdir(parents=True, exist_ok=True)

    resolver = IncludeResolver(project_root, strict=bool(config.get("strict")))
    suffix = str(config.get("source_suffix", ".shtml"))
    result = BuildResult(pages=[], output_dir=output_dir)
    asset_config = dict(config)
    asset_config["exclude_dirs"] = sorted(
        excluded_dirs(config, configured_output, output_dir)
    )

    for source in iter_pages(project_root, config, configured_output, output_dir):
        resolved = _resolve_page(resolver, source)
        markers = find_include_markers(resolved)
        if markers:
            result.unresolved[source] = markers
        rel = replace_suffix(source.relative_to(project_root), suffix, ".html")
        _write_page(output_dir / rel, minify_html(resolved))
        result.pages.append(rel)

    AssetPipeline(project_root, output_dir, asset_config).run()
    result.sitemap = SitemapGenerator(config.get("site_url", "")).write(output_dir)
    return result


def _resolve_page(resolver: IncludeResolver, source: Path) -> str:
    """Resolve one page, wrapping failures in BuildError."""
    try:
        return resolver.resolve_file(source)
    except IncludeError as exc:
        raise BuildError(
            source,
            f"Unresolved {exc.kind} include: {exc.raw_path}",
            exc,
        ) from exc
    except UnicodeDecodeError as exc:
        raise BuildError(source, f"Page is not valid UTF-8: {exc.reason}", exc) from exc
    except OSError as exc:
        raise BuildError(source, f"Cannot read page: {exc.strerror or exc}", exc) from exc


def _write_page(target: Path, rendered: str) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "w", encoding="utf-8") as f:
        f.write(rendered)

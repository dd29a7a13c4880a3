"""Command-line interface for ssisite.

This module defines the CLI commands using Click framework.
It provides commands for creating new projects, building sites, and running the development server.

Commands:
- new: Scaffold a new ssisite project.
- build: Build the site into the output directory.
- serve: Run development server with live reload.
- page: Create a new page source interactively.
"""

from __future__ import annotations

import os
import shutil
import subprocess
from pathlib import Path

import click
import questionary

from . import __version__
from .utils import titleize

# Path to the default template directory
_TEMPLATES_DIR = Path(__file__).parent / "templates" / "default"

_PAGE_SKELETON = """\
<!DOCTYPE html>
<html lang="en">
{head}<body>
{header}  <main>
    <h1>{title}</h1>
  </main>
{footer}</body>
</html>
"""


@click.group()
@click.version_option(version=__version__, prog_name="ssisite")
def cli():
    """ssisite static site generator."""


@cli.command()
@click.argument("name")
def new(name: str):
    """Scaffold a new ssisite project."""
    target = Path(name).resolve()
    if target.exists() and any(target.iterdir()):
        raise click.ClickException(
            f"Refusing to initialize into non-empty directory: {target}"
        )
    _scaffold(target)
    click.echo(f"New ssisite project created at {target}")


@cli.command()
@click.option("--strict", is_flag=True, help="Fail on missing or cyclic includes")
@click.option("--site-url", help="Base URL for sitemap.xml (overrides ssisite.yaml)")
@click.option("--verbose", "-v", is_flag=True, help="List every written page")
def build(strict: bool, site_url: str | None, verbose: bool):
    """Build the site into the output directory."""
    project_root = Path.cwd()
    from .build import BuildError, build_site

    try:
        result = build_site(project_root, site_url=site_url, strict=strict or None)
    except BuildError as exc:
        # Display user-friendly error message
        rel_path = _relative(exc.source_path, project_root)
        click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
        click.echo(click.style(f"  File: {rel_path}", fg="yellow"), err=True)
        click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)
        raise SystemExit(1) from None

    if verbose:
        for page in result.pages:
            click.echo(f"Wrote {page.as_posix()}")
    for source, markers in result.unresolved.items():
        rel_path = _relative(source, project_root)
        for marker in markers:
            click.echo(
                click.style(
                    f"Warning: {rel_path}: {marker.kind} include {marker.path}",
                    fg="yellow",
                ),
                err=True,
            )
    if result.sitemap is not None and verbose:
        click.echo(f"Wrote {_relative(result.sitemap, project_root)}")
    click.echo(f"Built {len(result.pages)} pages into {result.output_dir}")


@cli.command()
@click.option(
    "--port",
    type=int,
    required=False,
    help="Port to run the dev server (overrides ssisite.yaml)",
)
@click.option(
    "--ws-port",
    type=int,
    required=False,
    help="Port for the live reload websocket server (overrides ssisite.yaml ws_port)",
)
def serve(port: int | None, ws_port: int | None):
    """Run dev server with live reload."""
    project_root = Path.cwd()
    from .server import DevServer

    server = DevServer(project_root, http_port=port, ws_port=ws_port)
    server.start()


@cli.command()
def page():
    """Create a new page source interactively."""
    project_root = Path.cwd()
    from .build import excluded_dirs, load_config

    if not (project_root / "ssisite.yaml").exists():
        raise click.ClickException(
            "No ssisite.yaml found. Run this command from an ssisite project root."
        )
    config = load_config(project_root)
    suffix = str(config.get("source_suffix", ".shtml"))
    exclude = excluded_dirs(config, project_root / str(config.get("output_dir")))
    folders = _get_page_folders(project_root, exclude | set(_asset_dirs(config)))

    folder = questionary.select(
        "Select folder:",
        choices=folders,
        style=_questionary_style(),
    ).ask()
    if folder is None:
        raise click.Abort()

    name = questionary.text(
        f"Filename (without {suffix} extension):",
        validate=lambda x: len(x.strip()) > 0 or "Filename cannot be empty",
        style=_questionary_style(),
    ).ask()
    if name is None:
        raise click.Abort()
    name = name.strip()

    target_dir = project_root if folder == ". (root)" else project_root / folder
    target_path = target_dir / f"{name}{suffix}"
    if target_path.exists():
        raise click.ClickException(
            f"File already exists: {target_path.relative_to(project_root)}"
        )

    target_dir.mkdir(parents=True, exist_ok=True)
    target_path.write_text(_page_source(project_root, name), encoding="utf-8")
    click.echo(f"Created {target_path.relative_to(project_root)}")


def _asset_dirs(config: dict) -> list[str]:
    return [str(config.get("static_dir", "static")), str(config.get("images_dir", "images"))]


def _get_page_folders(project_root: Path, exclude: set[str]) -> list[str]:
    """Get list of folders a page can be created in.

    Skips excluded, hidden and _ prefixed directories (partials live in _includes).
    """
    folders = []
    for path in project_root.iterdir():
        if not path.is_dir() or path.name in exclude:
            continue
        if path.name.startswith(("_", ".")):
            continue
        folders.append(path.name)
    folders.sort()
    folders.insert(0, ". (root)")
    return folders


def _page_source(project_root: Path, name: str) -> str:
    """Render a new page, including whichever standard partials exist."""
    partials = project_root / "_includes"

    def include(partial: str) -> str:
        if (partials / partial).exists():
            return f'<!--#include virtual="/_includes/{partial}" -->\n'
        return ""

    return _PAGE_SKELETON.format(
        head=include("head.inc"),
        header=include("header.inc"),
        footer=include("footer.inc"),
        title=titleize(name),
    )


def _relative(path: Path, root: Path) -> Path:
    try:
        return path.relative_to(root)
    except ValueError:
        return path


def _questionary_style():
    """Return consistent questionary style."""
    return questionary.Style(
        [
            ("qmark", "fg:cyan bold"),
            ("question", "bold"),
            ("answer", "fg:cyan"),
            ("pointer", "fg:cyan bold"),
            ("highlighted", "fg:cyan bold"),
            ("selected", "fg:cyan"),
        ]
    )


def main():
    """Entry point for the CLI application."""
    cli()


def _scaffold(root: Path) -> None:
    """Create the directory structure and files for a new ssisite project.

    Args:
        root: Root directory for the new project.
    """
    for src_path in _TEMPLATES_DIR.rglob("*"):
        if src_path.is_dir():
            continue
        rel_path = src_path.relative_to(_TEMPLATES_DIR)
        dest_path = root / rel_path
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src_path, dest_path)

    _try_git_init(root)


def _try_git_init(root: Path) -> None:
    """Initialize a git repository if git is available."""
    if os.environ.get("SSISITE_SKIP_GIT_INIT") == "1":
        return
    git_bin = shutil.which("git")
    if not git_bin:
        return
    try:
        subprocess.run(
            [git_bin, "init"],
            cwd=root,
            check=True,
            capture_output=True,
        )
    except (OSError, subprocess.CalledProcessError):
        # Non-fatal: user can run git init manually
        pass

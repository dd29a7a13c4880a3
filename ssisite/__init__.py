"""ssisite static site generator.

This package builds static sites from ``.shtml`` page sources. Server-side
include directives are expanded at build time, pages and stylesheets are
minified, static assets are mirrored into the output directory, and a
sitemap is written for every emitted page.

The main entry point is the CLI module, which provides commands for scaffolding
new projects, building sites, and running the development server.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"

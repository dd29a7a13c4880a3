"""Sitemap generation for ssisite.

The sitemap lists every HTML file in the built output, following the
sitemaps.org protocol. It is rendered from a Jinja2 template with
autoescaping so URLs containing ``&`` remain valid XML.

Classes:
    SitemapGenerator: Generates sitemap.xml files.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path

from jinja2 import Environment

from .utils import iter_files, join_root_url

SITEMAP_TEMPLATE = """\
<?xml version="1.0" encoding="UTF-8"?>
<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
{% for loc in locations %}<url><loc>{{ loc }}</loc><lastmod>{{ lastmod }}</lastmod></url>
{% endfor %}</urlset>
"""

_env = Environment(autoescape=True, keep_trailing_newline=True)


def iso_timestamp(moment: datetime | None = None) -> str:
    """Format a UTC timestamp as ISO-8601 with milliseconds and a Z suffix.

    Examples:
        >>> iso_timestamp(datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc))
        '2024-05-01T12:30:00.000Z'
    """
    moment = moment or datetime.now(timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def page_location(rel_path: str) -> str:
    """Turn an output-relative HTML path into its public URL path.

    Examples:
        >>> page_location("blog/index.html")
        'blog/'
        >>> page_location("about.html")
        'about'
    """
    if rel_path.endswith("index.html"):
        rel_path = rel_path[: -len("index.html")]
    if rel_path.endswith(".html"):
        rel_path = rel_path[: -len(".html")]
    return rel_path


class SitemapGenerator:
    """Generates sitemap.xml for search engine indexing.

    Requires a site URL to generate absolute URLs; without one no sitemap
    is written.

    Attributes:
        site_url: Base URL pages are published under.
    """

    filename = "sitemap.xml"

    def __init__(self, site_url: str):
        self.site_url = str(site_url or "").rstrip("/")

    def collect(self, output_dir: Path) -> list[str]:
        """List every HTML file in ``output_dir`` as a relative POSIX path."""
        return [
            path.relative_to(output_dir).as_posix()
            for path in iter_files(output_dir, suffix=".html")
        ]

    def generate(
        self, paths: Iterable[str], lastmod: str | None = None
    ) -> str | None:
        """Generate sitemap.xml content.

        Args:
            paths: Output-relative HTML paths.
            lastmod: Timestamp used for every entry; defaults to now.

        Returns:
            Sitemap XML content, or None if no site URL is configured.
        """
        if not self.site_url:
            return None
        locations = [
            join_root_url(self.site_url, page_location(path)) for path in paths
        ]
        template = _env.from_string(SITEMAP_TEMPLATE)
        return template.render(locations=locations, lastmod=lastmod or iso_timestamp())

    def write(self, output_dir: Path) -> Path | None:
        """Generate and write the sitemap into ``output_dir``.

        Returns:
            The sitemap path, or None if it was skipped.
        """
        content = self.generate(self.collect(output_dir))
        if content is None:
            return None
        output_path = output_dir / self.filename
        output_path.write_text(content, encoding="utf-8")
        return output_path

"""Minification helpers for ssisite.

This module provides the string transforms applied to built pages and
stylesheets. Both are conservative regex passes: they shrink typical
hand-written markup and CSS but make no attempt at full parsing.

Functions:
    minify_css: Strip comments and redundant whitespace from CSS.
    minify_html: Strip comments and redundant whitespace from HTML.
"""

from __future__ import annotations

import re

_CSS_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)
_CSS_PUNCT_RE = re.compile(r"\s*([:{};,>])\s*")
_WHITESPACE_RE = re.compile(r"\s+")

# Conditional comments and include markers survive minification so that broken
# includes stay visible in the built site.
_HTML_COMMENT_RE = re.compile(
    r"<!--(?!\[if|\s*\[endif|\s*(?:cyclic|missing)-include:).*?-->", re.DOTALL
)
_BETWEEN_TAGS_RE = re.compile(r">\s+<")
_HTML_WHITESPACE_RE = re.compile(r"\s{2,}")


def minify_css(css: str) -> str:
    """Minify a stylesheet.

    Args:
        css: Stylesheet source.

    Returns:
        The stylesheet without comments and with whitespace collapsed.

    Examples:
        >>> minify_css("a {\\n  color : red; /* brand */\\n}")
        'a{color:red;}'
    """
    css = _CSS_COMMENT_RE.sub("", css)
    css = _WHITESPACE_RE.sub(" ", css)
    css = _CSS_PUNCT_RE.sub(r"\1", css)
    return css.strip()


def minify_html(html: str) -> str:
    """Minify an HTML document.

    Removes comments (except conditional comments and include markers),
    whitespace between tags, and repeated whitespace elsewhere.

    Args:
        html: HTML source.

    Returns:
        Minified HTML.

    Examples:
        >>> minify_html("<ul>\\n  <li>One</li>\\n  <!-- todo -->\\n</ul>")
        '<ul><li>One</li></ul>'
    """
    html = _HTML_COMMENT_RE.sub("", html)
    html = _BETWEEN_TAGS_RE.sub("><", html)
    html = _HTML_WHITESPACE_RE.sub(" ", html)
    return html.strip()

"""Body renderers for Quire.

Each renderer converts one kind of document body to HTML. Markdown goes
through mistune with Pygments highlighting for fenced code blocks; HTML
bodies pass through untouched.

Key classes:
- Heading: A heading collected for table-of-contents generation.
- MarkdownRenderer: Renders Markdown to HTML with syntax highlighting.
- HTMLRenderer: Passes through HTML content.
- RendererRegistry: Picks the renderer for a document path.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

import mistune
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from .html_utils import escape_html
from .utils import is_html, is_markdown, strip_html

DEFAULT_PLUGINS = ["strikethrough", "footnotes", "table", "url"]


@dataclass
class Heading:
    """A heading extracted from rendered content.

    Attributes:
        id: Anchor ID for the heading (URL-friendly slug).
        text: The plain text of the heading.
        level: Heading level (1-6).
    """

    id: str
    text: str
    level: int


def generate_heading_id(text: str) -> str:
    """Generate a URL-friendly ID from heading text.

    Examples:
        >>> generate_heading_id("Setting up <code>sass</code>!")
        'setting-up-sass'
    """
    slug = strip_html(text).lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[-\s]+", "-", slug)
    return slug.strip("-")


class _HighlightRenderer(mistune.HTMLRenderer):
    """mistune renderer adding heading anchors and Pygments highlighting.

    Attributes:
        headings: Headings seen so far, in document order.
    """

    def __init__(self):
        super().__init__(escape=False)
        self.headings: list[Heading] = []
        self._taken_ids: set[str] = set()

    def _anchor_for(self, text: str) -> str:
        base = generate_heading_id(text) or "section"
        anchor, suffix = base, 0
        while anchor in self._taken_ids:
            suffix += 1
            anchor = f"{base}-{suffix}"
        self._taken_ids.add(anchor)
        return anchor

    def heading(self, text: str, level: int, **attrs) -> str:
        anchor = self._anchor_for(text)
        self.headings.append(Heading(id=anchor, text=strip_html(text), level=level))
        return f'<h{level} id="{anchor}">{text}</h{level}>\n'

    def block_code(self, code: str, info: str | None = None) -> str:
        """Render a fenced code block, highlighted when the language is known."""
        lang = info.split()[0] if info else ""
        lexer = _lexer_for(lang)
        if lexer is not None:
            return highlight(code, lexer, HtmlFormatter(cssclass="highlight"))
        css_class = f' class="language-{escape_html(lang)}"' if lang else ""
        return f"<pre><code{css_class}>{escape_html(code)}</code></pre>\n"


def _lexer_for(lang: str):
    if not lang:
        return None
    try:
        return get_lexer_by_name(lang, stripall=True)
    except ClassNotFound:
        return None


class MarkdownRenderer:
    """Renders Markdown bodies to HTML.

    Attributes:
        plugins: mistune plugin names to enable.
    """

    source_type = "markdown"

    def __init__(self, plugins: list[str] | None = None):
        self.plugins = list(plugins) if plugins is not None else list(DEFAULT_PLUGINS)

    def can_render(self, path: Path) -> bool:
        return is_markdown(path)

    def render(self, content: str) -> tuple[str, list[Heading]]:
        """Render Markdown content to HTML.

        Args:
            content: Markdown source.

        Returns:
            Tuple of (rendered HTML, list of Heading objects).
        """
        renderer = _HighlightRenderer()
        markdown = mistune.create_markdown(renderer=renderer, plugins=self.plugins)
        return markdown(content), renderer.headings


class HTMLRenderer:
    """Passes HTML bodies through unchanged."""

    source_type = "html"

    def can_render(self, path: Path) -> bool:
        return is_html(path)

    def render(self, content: str) -> tuple[str, list[Heading]]:
        return content, []


class RendererRegistry:
    """Body renderers, checked in order; Markdown first, then HTML.

    Attributes:
        markdown: The Markdown renderer, also used for ``markdownify``.
    """

    def __init__(self, markdown_plugins: list[str] | None = None):
        self.markdown = MarkdownRenderer(markdown_plugins)
        self.renderers: list = [self.markdown, HTMLRenderer()]

    def get_renderer(self, path: Path):
        """Return the first renderer that can handle ``path``, or None."""
        return next((r for r in self.renderers if r.can_render(path)), None)

    def markdownify(self, text: str) -> str:
        """Render a Markdown snippet to HTML (used by filters and excerpts)."""
        return self.markdown.render(text)[0]


def highlight_css(style: str = "default") -> str:
    """Return Pygments CSS rules for the ``.highlight`` class."""
    return HtmlFormatter(style=style).get_style_defs(".highlight")

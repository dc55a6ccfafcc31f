"""Template rendering engine for Quire.

This module uses Jinja2 to render document bodies and wrap them in layouts.
Layouts and includes are looked up in the site first and then in the theme,
so a site can shadow any theme template by name. Layouts may carry their own
front-matter; a ``layout`` key there nests the result in a parent layout.

Key class:
- TemplateEngine: Renders document content and layouts.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from datetime import datetime, timezone
from email.utils import format_datetime
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo

from jinja2 import (
    ChoiceLoader,
    Environment,
    FileSystemLoader,
    PrefixLoader,
    Template,
    TemplateNotFound,
    select_autoescape,
)
from markupsafe import Markup

from .collections import DocumentCollection, TaxonomyCollection
from .content import Document, StaticFile
from .errors import FrontMatterError, LayoutError
from .frontmatter import parse_frontmatter
from .html_utils import absolute_url, escape_html, relative_url
from .renderers import Heading, RendererRegistry, highlight_css
from .theme import Theme
from .utils import build_taxonomy_index, number_of_words, slugify, strip_html

logger = logging.getLogger(__name__)

LAYOUT_SUFFIXES = (".html", ".html.jinja", ".jinja", ".xml", "")
BODY_COMMENT_START = "{##"
BODY_COMMENT_END = "##}"


class FrontMatterLoader(FileSystemLoader):
    """FileSystemLoader that strips front-matter from templates.

    The front-matter of every loaded template is kept in ``front_matters``
    keyed by template name. Stripped lines are replaced with blank lines so
    that Jinja error line numbers still match the file.
    """

    def __init__(self, searchpath: list[Path]):
        super().__init__([str(p) for p in searchpath if p.is_dir()])
        self.front_matters: dict[str, dict[str, Any]] = {}

    def get_source(self, environment, template):
        source, filename, uptodate = super().get_source(environment, template)
        try:
            front_matter, body, present = parse_frontmatter(source)
        except FrontMatterError as exc:
            raise LayoutError(f"{filename}: {exc}") from exc
        if present:
            offset = source[: len(source) - len(body)].count("\n")
            source = "\n" * offset + body
        self.front_matters[template] = front_matter
        return source, filename, uptodate


def render_toc(page: Document) -> Markup:
    """Render a document's headings as nested ``<ul>`` lists."""
    headings = page.toc or []
    lists = []
    index = 0
    while index < len(headings):
        nodes, index = _nest_headings(headings, index)
        lists.append(_toc_list(nodes))
    return Markup("".join(lists))


_TocNode = tuple[Heading, list]


def _nest_headings(headings: list[Heading], index: int) -> tuple[list[_TocNode], int]:
    """Collect the run of headings at or below ``headings[index]``'s level.

    Returns the nodes for that run and the index of the first heading that
    sits above it.
    """
    level = headings[index].level
    nodes: list[_TocNode] = []
    while index < len(headings) and headings[index].level >= level:
        if headings[index].level == level:
            nodes.append((headings[index], []))
            index += 1
        else:
            children, index = _nest_headings(headings, index)
            nodes[-1][1].extend(children)
    return nodes, index


def _toc_list(nodes: list[_TocNode]) -> str:
    items = []
    for heading, children in nodes:
        link = f'<a href="#{escape_html(heading.id)}">{escape_html(heading.text)}</a>'
        items.append(f"<li>{link}{_toc_list(children) if children else ''}</li>")
    return f"<ul>{''.join(items)}</ul>"


class TemplateEngine:
    """Template rendering engine using Jinja2.

    Attributes:
        source_dir: Root directory of the site sources.
        config: Site configuration.
        theme: Optional theme providing fallback layouts and includes.
        data: Contents of ``_data``.
        renderers: Body renderers for Markdown and HTML.
        env: Jinja2 environment.
        site: Template-facing ``site`` mapping.
    """

    def __init__(
        self,
        source_dir: Path,
        config: dict[str, Any],
        theme: Theme | None = None,
        data: dict[str, Any] | None = None,
        renderers: RendererRegistry | None = None,
    ):
        self.source_dir = source_dir
        self.config = config
        self.theme = theme
        self.data = data or {}
        self.renderers = renderers or RendererRegistry(
            (config.get("markdown") or {}).get("plugins")
        )
        self.baseurl = config.get("baseurl", "")
        self.url = config.get("url", "")
        self._tz = ZoneInfo(config["timezone"]) if config.get("timezone") else timezone.utc

        layout_dirs = [source_dir / "_layouts"]
        include_dirs = [source_dir / "_includes"]
        if theme is not None:
            layout_dirs.append(theme.layouts_dir)
            include_dirs.append(theme.includes_dir)
        self.layout_loader = FrontMatterLoader(layout_dirs)
        self.include_loader = FrontMatterLoader(include_dirs)
        self.env = Environment(
            loader=ChoiceLoader(
                [
                    self.include_loader,
                    PrefixLoader({"_layouts": self.layout_loader}, delimiter="/"),
                ]
            ),
            autoescape=select_autoescape(["html", "xml"]),
            enable_async=False,
        )
        self.site: dict[str, Any] = {}
        self._install_filters()
        self._install_globals()
        # Bodies often hold code such as shell `${#arr[@]}`, so `{#` stays literal.
        self.body_env = self.env.overlay(
            comment_start_string=BODY_COMMENT_START,
            comment_end_string=BODY_COMMENT_END,
        )
        self.update_site([], [], [])

    def _install_filters(self) -> None:
        filters = self.env.filters
        filters["relative_url"] = lambda path: relative_url(str(path or ""), self.baseurl)
        filters["absolute_url"] = lambda path: absolute_url(
            str(path or ""), self.url, self.baseurl
        )
        filters["date_to_xmlschema"] = lambda d: self._aware(d).isoformat()
        filters["date_to_rfc822"] = lambda d: format_datetime(self._aware(d))
        filters["date_to_string"] = lambda d: d.strftime("%d %b %Y")
        filters["date_to_long_string"] = lambda d: d.strftime("%d %B %Y")
        filters["xml_escape"] = lambda text: escape_html(str(text or ""))
        filters["markdownify"] = lambda text: Markup(
            self.renderers.markdownify(str(text or ""))
        )
        filters["slugify"] = lambda text: slugify(str(text))
        filters["strip_html"] = lambda text: strip_html(str(text or ""))
        filters["number_of_words"] = lambda text: number_of_words(str(text or ""))
        filters["jsonify"] = lambda value: Markup(json.dumps(value, default=str))
        filters["where"] = _where

    def _install_globals(self) -> None:
        self.env.globals["highlight_css"] = lambda style="default": Markup(highlight_css(style))
        self.env.globals["render_toc"] = render_toc

    def _aware(self, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=self._tz)
        return value

    def update_site(
        self,
        posts: Iterable[Document],
        pages: Iterable[Document],
        static_files: Iterable[StaticFile],
        time: datetime | None = None,
    ) -> None:
        """Rebuild the ``site`` mapping exposed to templates.

        Args:
            posts: All posts that will be written.
            pages: All pages that will be written.
            static_files: All static files that will be written.
            time: Build time (defaults to now).
        """
        posts = DocumentCollection(posts).sorted()
        site = dict(self.config)
        site.update(
            {
                "posts": posts,
                "pages": DocumentCollection(pages),
                "static_files": list(static_files),
                "tags": TaxonomyCollection(build_taxonomy_index(posts, "tags")),
                "categories": TaxonomyCollection(
                    build_taxonomy_index(posts, "categories")
                ),
                "data": self.data,
                "time": time or datetime.now(),
            }
        )
        self.site = site
        self.env.globals["site"] = site

    def _context(self, page: Document, **extra: Any) -> dict[str, Any]:
        context = {"site": self.site, "page": page}
        context.update(extra)
        return context

    def _templates_enabled(self, page: Document) -> bool:
        if not self.config.get("render_templates", True):
            return False
        for key in ("render_templates", "render_with_liquid"):
            if page.front_matter.get(key) is False:
                return False
        return True

    def render_content(self, page: Document) -> None:
        """Render a document's body and excerpt to HTML.

        The body is first rendered as a Jinja template (unless disabled),
        then converted by the renderer for its file type. Results are stored
        on the document.
        """
        body = page.body
        excerpt = page.excerpt_source
        if self._templates_enabled(page):
            context = self._context(page)
            body = self.body_env.from_string(body).render(**context)
            excerpt = self.body_env.from_string(excerpt).render(**context)
        renderer = self.renderers.get_renderer(page.path)
        if renderer is None:
            page.content, page.toc = body, []
            page.excerpt = excerpt
            return
        page.content, page.toc = renderer.render(body)
        page.excerpt = renderer.render(excerpt)[0] if excerpt else ""

    def render_layout(self, page: Document) -> str:
        """Wrap a rendered document in its layout chain.

        Raises:
            LayoutError: When an explicitly named layout is missing or the
                layout chain loops.
        """
        output = page.content
        name = page.layout
        explicit = "layout" in page.front_matter
        if name is not None and not explicit and self._find_layout(name) is None:
            name = "default" if self._find_layout("default") is not None else None
        seen: list[str] = []
        while name:
            if name in seen:
                chain = " -> ".join([*seen, name])
                raise LayoutError(f"Layout cycle detected: {chain}")
            seen.append(name)
            found = self._find_layout(name)
            if found is None:
                raise LayoutError(f"Layout '{name}' not found")
            template, front_matter = found
            output = template.render(
                self._context(page, content=Markup(output), layout=front_matter)
            )
            parent = front_matter.get("layout")
            name = str(parent) if parent else None
        page.output = output
        return output

    def render_page(self, page: Document) -> str:
        """Render content and layouts for a single document."""
        self.render_content(page)
        return self.render_layout(page)

    def _find_layout(self, name: str) -> tuple[Template, dict[str, Any]] | None:
        for suffix in LAYOUT_SUFFIXES:
            candidate = f"{name}{suffix}"
            try:
                template = self.env.get_template(f"_layouts/{candidate}")
            except TemplateNotFound:
                continue
            return template, self.layout_loader.front_matters.get(candidate, {})
        return None

    def render_string(self, template: str, context: dict[str, Any]) -> str:
        """Render a template string.

        Args:
            template: Template string to render.
            context: Variables to make available in the template.

        Returns:
            Rendered string.
        """
        return self.env.from_string(template).render(**context)


def _where(items: Iterable[Any], key: str, value: Any) -> list[Any]:
    """Keep items whose attribute (or key) ``key`` equals ``value``."""
    matched = []
    for item in items:
        if isinstance(item, dict):
            found = item.get(key)
        else:
            found = getattr(item, key, None)
        if found == value or (isinstance(found, list) and value in found):
            matched.append(item)
    return matched

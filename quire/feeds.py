"""Feed generation for Quire.

This module writes the Atom feed and ``sitemap.xml``. Both need an absolute
site URL, so they are skipped when ``url`` is not configured.

Classes:
    FeedGenerator: Base class for feed generators.
    AtomFeedGenerator: Generates the Atom feed of recent posts.
    SitemapGenerator: Generates sitemap.xml.
    FeedRegistry: Registry for managing feed generators.

Functions:
    create_default_feed_registry: Create a registry with default generators.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any
from zoneinfo import ZoneInfo

from .html_utils import escape_html, join_root_url

if TYPE_CHECKING:
    from .content import Document

logger = logging.getLogger(__name__)


def _site_url(config: dict[str, Any]) -> str:
    url = str(config.get("url") or "").rstrip("/")
    if not url:
        return ""
    return join_root_url(url, config.get("baseurl") or "")


def _xmlschema(value: datetime, config: dict[str, Any]) -> str:
    if value.tzinfo is None:
        tz_name = config.get("timezone")
        value = value.replace(tzinfo=ZoneInfo(tz_name) if tz_name else timezone.utc)
    return value.isoformat()


class FeedGenerator(ABC):
    """Base class for feed generators."""

    @abstractmethod
    def filename(self, config: dict[str, Any]) -> str:
        """Return the output path, relative to the destination."""
        ...

    @abstractmethod
    def generate(
        self,
        posts: list[Document],
        pages: list[Document],
        config: dict[str, Any],
    ) -> str | None:
        """Generate feed content.

        Returns:
            Feed content, or None when the feed cannot be generated.
        """
        ...

    def write(
        self,
        destination: Path,
        posts: list[Document],
        pages: list[Document],
        config: dict[str, Any],
    ) -> str | None:
        """Generate and write the feed.

        Returns:
            The relative filename written, or None if skipped.
        """
        content = self.generate(posts, pages, config)
        if content is None:
            return None
        name = self.filename(config)
        output_path = destination / name
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(content, encoding="utf-8")
        return name


class AtomFeedGenerator(FeedGenerator):
    """Generates an Atom 1.0 feed with the newest posts first.

    Uses ``feed.path`` (default ``feed.xml``) and ``feed.limit`` from the
    configuration, plus ``title``, ``description`` and ``author``.
    """

    def filename(self, config: dict[str, Any]) -> str:
        feed = config.get("feed") or {}
        return str(feed.get("path") or "feed.xml").lstrip("/")

    def generate(
        self,
        posts: list[Document],
        pages: list[Document],
        config: dict[str, Any],
    ) -> str | None:
        site_url = _site_url(config)
        if not site_url:
            return None
        limit = int((config.get("feed") or {}).get("limit") or 20)
        recent = sorted(
            (p for p in posts if not p.draft), key=lambda p: p.sort_key, reverse=True
        )[:limit]
        title = escape_html(str(config.get("title") or "Feed"))
        updated = recent[0].date if recent else datetime.now()
        lines = [
            '<?xml version="1.0" encoding="utf-8"?>',
            '<feed xmlns="http://www.w3.org/2005/Atom">',
            f"<title>{title}</title>",
        ]
        if config.get("description"):
            lines.append(f"<subtitle>{escape_html(str(config['description']))}</subtitle>")
        lines.extend(
            [
                f'<link href="{site_url}/{self.filename(config)}" rel="self" '
                'type="application/atom+xml"/>',
                f'<link href="{site_url}/" rel="alternate" type="text/html"/>',
                f"<updated>{_xmlschema(updated, config)}</updated>",
                f"<id>{site_url}/</id>",
            ]
        )
        if config.get("author"):
            author = config["author"]
            name = author.get("name") if isinstance(author, dict) else author
            lines.append(f"<author><name>{escape_html(str(name))}</name></author>")
        for post in recent:
            link = join_root_url(site_url, post.url)
            published = _xmlschema(post.date, config)
            modified = post.front_matter.get("last_modified_at")
            updated_at = published
            if isinstance(modified, datetime):
                updated_at = _xmlschema(modified, config)
            entry = [
                "<entry>",
                f"<title>{escape_html(post.title)}</title>",
                f'<link href="{link}" rel="alternate" type="text/html"/>',
                f"<published>{published}</published>",
                f"<updated>{updated_at}</updated>",
                f"<id>{link}</id>",
                f'<content type="html">{escape_html(post.content)}</content>',
            ]
            if post.excerpt:
                entry.append(f'<summary type="html">{escape_html(post.excerpt)}</summary>')
            for category in [*post.categories, *post.tags]:
                entry.append(f'<category term="{escape_html(category)}"/>')
            entry.append("</entry>")
            lines.append("".join(entry))
        lines.append("</feed>")
        return "\n".join(lines)


class SitemapGenerator(FeedGenerator):
    """Generates sitemap.xml listing posts and pages.

    Documents with ``sitemap: false`` in their front-matter are left out.
    """

    def filename(self, config: dict[str, Any]) -> str:
        return "sitemap.xml"

    def generate(
        self,
        posts: list[Document],
        pages: list[Document],
        config: dict[str, Any],
    ) -> str | None:
        site_url = _site_url(config)
        if not site_url:
            return None
        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
        ]
        for document in [*posts, *pages]:
            if document.front_matter.get("sitemap") is False:
                continue
            loc = escape_html(join_root_url(site_url, document.url))
            lastmod = document.date.strftime("%Y-%m-%d")
            lines.append(f"  <url><loc>{loc}</loc><lastmod>{lastmod}</lastmod></url>")
        lines.append("</urlset>")
        return "\n".join(lines)


class FeedRegistry:
    """Registry of feed generators run at the end of a build."""

    def __init__(self) -> None:
        self._generators: list[FeedGenerator] = []

    def register(self, generator: FeedGenerator) -> None:
        self._generators.append(generator)

    def generate_all(
        self,
        destination: Path,
        posts: Iterable[Document],
        pages: Iterable[Document],
        config: dict[str, Any],
        taken: Iterable[str] = (),
    ) -> list[str]:
        """Run every generator.

        Args:
            destination: Directory to write into.
            posts: Posts to include.
            pages: Pages to include.
            config: Site configuration.
            taken: Output paths already written by the site itself; a
                generator whose file is among them is skipped.

        Returns:
            Relative filenames that were written.
        """
        posts_list = list(posts)
        pages_list = list(pages)
        taken_set = {str(name).lstrip("/") for name in taken}
        generated = []
        for generator in self._generators:
            if generator.filename(config) in taken_set:
                logger.debug("%s is provided by the site", generator.filename(config))
                continue
            name = generator.write(destination, posts_list, pages_list, config)
            if name is not None:
                generated.append(name)
            else:
                logger.debug("Skipped %s: no site url configured", type(generator).__name__)
        return generated


def create_default_feed_registry() -> FeedRegistry:
    registry = FeedRegistry()
    registry.register(AtomFeedGenerator())
    registry.register(SitemapGenerator())
    return registry

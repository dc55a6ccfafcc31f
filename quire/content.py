"""Content loading for Quire.

This module discovers the documents and static files that make up a site.
Posts live in ``_posts`` directories and carry a YYYY-MM-DD filename prefix,
drafts live in ``_drafts``, pages are Markdown or HTML files with
front-matter anywhere else, and every other non-hidden file is static.

Key classes:
- Document: A post or page with its metadata and (later) rendered content.
- StaticFile: A file copied or processed into the destination as-is.
- SiteContents: Everything the reader found.
- SiteReader: Walks the source tree and builds the above.

Functions:
    find_conflicts: Group documents that would write the same output path.
    resolve_conflicts: Keep the newest document of each conflicting group.
    link_posts: Sort posts and wire their previous/next links.
"""

from __future__ import annotations

import fnmatch
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import Any

from .config import resolve_destination
from .errors import BuildError, FrontMatterError
from .frontmatter import CompositeMetadataExtractor, has_frontmatter
from .permalinks import PermalinkBuilder, url_to_output_path
from .renderers import Heading
from .theme import Theme
from .utils import (
    is_document,
    is_sass,
    is_special_name,
    parse_post_filename,
    slugify,
)

logger = logging.getLogger(__name__)


@dataclass
class Document:
    """A post or page.

    Unknown attributes fall back to the document's front-matter, so templates
    can read custom keys as ``page.subtitle`` or ``post.image``.

    Attributes:
        kind: "post" or "page".
        path: Absolute path to the source file.
        relative_path: Path relative to the source directory.
        front_matter: Raw front-matter mapping.
        body: Source text after the front-matter block.
        title: Display title.
        date: Publication date (naive).
        slug: URL slug.
        layout: Layout name, or None to emit the content bare.
        url: Root-relative URL (without baseurl).
        categories: Category names.
        tags: Tag names.
        draft: Whether the document came from ``_drafts``.
        excerpt_source: Source text of the excerpt.
        content: Rendered HTML body (filled in by the build).
        excerpt: Rendered HTML excerpt (filled in by the build).
        output: Final HTML including layouts (filled in by the build).
        toc: Headings found in the rendered body.
    """

    kind: str
    path: Path
    relative_path: PurePosixPath
    front_matter: dict[str, Any]
    body: str
    title: str
    date: datetime
    slug: str
    layout: str | None
    url: str
    categories: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    draft: bool = False
    excerpt_source: str = ""
    content: str = ""
    excerpt: str = ""
    output: str = ""
    toc: list[Heading] = field(default_factory=list)
    previous: Document | None = field(default=None, repr=False, compare=False)
    next: Document | None = field(default=None, repr=False, compare=False)

    def __getattr__(self, name: str) -> Any:
        front_matter = self.__dict__.get("front_matter") or {}
        if name in front_matter:
            return front_matter[name]
        raise AttributeError(name)

    @property
    def output_path(self) -> PurePosixPath:
        return url_to_output_path(self.url)

    @property
    def id(self) -> str:
        return self.url

    @property
    def sort_key(self) -> tuple[datetime, str]:
        return (self.date, self.path.as_posix())


@dataclass
class StaticFile:
    """A file written to the destination without templating.

    Attributes:
        path: Absolute path to the source file.
        relative_path: Path relative to the site (or theme) root; also the
            output path.
        from_theme: Whether the file comes from the theme.
    """

    path: Path
    relative_path: PurePosixPath
    from_theme: bool = False

    @property
    def url(self) -> str:
        return f"/{self.relative_path.as_posix()}"


@dataclass
class SiteContents:
    """Result of reading a source directory."""

    posts: list[Document]
    pages: list[Document]
    static_files: list[StaticFile]
    warnings: list[str] = field(default_factory=list)

    @property
    def documents(self) -> list[Document]:
        return [*self.posts, *self.pages]


class SiteReader:
    """Walks a source directory and builds documents and static files.

    Attributes:
        source_dir: Root directory of the site sources.
        config: Site configuration.
        theme: Optional theme whose assets are merged in.
        destination: Output directory being written. It is skipped when
            nested in the source, as is the configured destination (the
            two differ while the dev server builds into a staging dir).
        warnings: Messages about skipped or conflicting files.
    """

    def __init__(
        self,
        source_dir: Path,
        config: dict[str, Any],
        theme: Theme | None = None,
        destination: Path | None = None,
        metadata_extractor: CompositeMetadataExtractor | None = None,
        permalinks: PermalinkBuilder | None = None,
    ):
        self.source_dir = source_dir
        self.config = config
        self.theme = theme
        self.destination = destination
        self._output_dirs = {
            d.resolve()
            for d in (destination, resolve_destination(source_dir, config))
            if d is not None
        }
        self.metadata_extractor = metadata_extractor or CompositeMetadataExtractor(
            tz_name=config.get("timezone")
        )
        self.permalinks = permalinks or PermalinkBuilder(config.get("permalink"))
        self.include = set(config.get("include") or [])
        self.exclude = list(config.get("exclude") or [])
        self.warnings: list[str] = []

    def read(
        self,
        include_drafts: bool = False,
        future: bool = False,
        now: datetime | None = None,
    ) -> SiteContents:
        """Read posts, pages and static files.

        Args:
            include_drafts: Whether to read ``_drafts`` directories.
            future: Whether to keep posts dated after ``now``.
            now: Reference time for the future check (defaults to now).

        Returns:
            SiteContents with posts sorted oldest first.

        Raises:
            BuildError: If a document cannot be parsed.
        """
        now = now or datetime.now()
        posts: list[Document] = []
        pages: list[Document] = []
        static_files: list[StaticFile] = []

        for kind, path, categories in self._walk(self.source_dir, []):
            if kind == "post":
                post = self._read_post(path, categories, draft=False)
                if post is not None:
                    posts.append(post)
            elif kind == "draft":
                if include_drafts:
                    draft = self._read_post(path, categories, draft=True)
                    if draft is not None:
                        posts.append(draft)
            elif kind == "page":
                page = self._read_page(path)
                if page is not None:
                    pages.append(page)
            else:
                rel = PurePosixPath(path.relative_to(self.source_dir).as_posix())
                static_files.append(StaticFile(path, rel))

        if not future:
            kept = []
            for post in posts:
                if post.date > now:
                    logger.debug("Skipping future post %s", post.relative_path)
                    continue
                kept.append(post)
            posts = kept

        if self.theme is not None:
            for path, rel in self.theme.static_files(self.source_dir):
                if not is_sass(path) or has_frontmatter(path):
                    static_files.append(
                        StaticFile(path, PurePosixPath(rel.as_posix()), from_theme=True)
                    )

        posts = link_posts(posts)
        return SiteContents(
            posts=posts,
            pages=sorted(pages, key=lambda p: p.url),
            static_files=static_files,
            warnings=self.warnings,
        )

    def _walk(self, directory: Path, categories: list[str]):
        """Yield (kind, path, categories) for every candidate file."""
        for path in sorted(directory.iterdir()):
            name = path.name
            rel = path.relative_to(self.source_dir).as_posix()
            if self._is_destination(path) or self._is_excluded(rel, name):
                continue
            if path.is_dir():
                if name == "_posts":
                    for post_path in self._iter_files(path):
                        yield "post", post_path, categories
                elif name == "_drafts":
                    for draft_path in self._iter_files(path):
                        yield "draft", draft_path, categories
                elif not is_special_name(name) or name in self.include:
                    yield from self._walk(path, [*categories, name])
                continue
            if is_special_name(name) and name not in self.include:
                continue
            if is_document(path) and has_frontmatter(path):
                yield "page", path, categories
            elif is_sass(path) and not has_frontmatter(path):
                continue
            else:
                yield "static", path, categories

    def _iter_files(self, directory: Path):
        for path in sorted(directory.rglob("*")):
            if path.is_dir() or is_special_name(path.name):
                continue
            if not is_document(path):
                logger.debug("Ignoring non-document file %s", path)
                continue
            yield path

    def _is_destination(self, path: Path) -> bool:
        try:
            return path.resolve() in self._output_dirs
        except OSError:
            return False

    def _is_excluded(self, rel: str, name: str) -> bool:
        for pattern in self.exclude:
            pattern = str(pattern).rstrip("/")
            if fnmatch.fnmatch(rel, pattern) or fnmatch.fnmatch(name, pattern):
                return True
        return False

    def _extract(self, path: Path) -> dict[str, Any]:
        try:
            raw = path.read_text(encoding="utf-8")
            return self.metadata_extractor.extract(raw, path)
        except FrontMatterError as exc:
            raise BuildError(path, str(exc), exc) from exc
        except UnicodeDecodeError as exc:
            raise BuildError(path, f"File is not valid UTF-8: {exc}", exc) from exc

    def _warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)

    def _read_post(
        self, path: Path, dir_categories: list[str], draft: bool
    ) -> Document | None:
        parsed = parse_post_filename(path.stem)
        if parsed is None and not draft:
            self._warn(
                f"Skipping {self._display(path)}: post filenames must look like "
                "YYYY-MM-DD-title.md"
            )
            return None
        meta = self._extract(path)
        front_matter = meta["front_matter"]
        if front_matter.get("published") is False:
            logger.debug("Skipping unpublished post %s", path)
            return None
        slug = str(front_matter.get("slug") or (parsed[1] if parsed else path.stem))
        slug = slugify(slug)
        categories = _unique([*dir_categories, *meta["categories"]])
        url = self.permalinks.post_url(
            meta["date"],
            slug,
            categories,
            title=meta["title"],
            override=front_matter.get("permalink"),
        )
        return self._document("post", path, meta, slug, url, categories, draft)

    def _read_page(self, path: Path) -> Document | None:
        meta = self._extract(path)
        front_matter = meta["front_matter"]
        if front_matter.get("published") is False:
            return None
        rel = PurePosixPath(path.relative_to(self.source_dir).as_posix())
        url = self.permalinks.page_url(rel, override=front_matter.get("permalink"))
        slug = slugify(path.stem)
        return self._document("page", path, meta, slug, url, meta["categories"], False)

    def _document(
        self,
        kind: str,
        path: Path,
        meta: dict[str, Any],
        slug: str,
        url: str,
        categories: list[str],
        draft: bool,
    ) -> Document:
        front_matter = meta["front_matter"]
        body = meta["body"]
        return Document(
            kind=kind,
            path=path,
            relative_path=PurePosixPath(path.relative_to(self.source_dir).as_posix()),
            front_matter=front_matter,
            body=body,
            title=meta["title"],
            date=meta["date"],
            slug=slug,
            layout=_layout_name(front_matter, kind),
            url=url,
            categories=categories,
            tags=_unique(meta["tags"]),
            draft=draft,
            excerpt_source=self._excerpt_source(front_matter, body),
        )

    def _excerpt_source(self, front_matter: dict[str, Any], body: str) -> str:
        if front_matter.get("excerpt"):
            return str(front_matter["excerpt"])
        separator = front_matter.get("excerpt_separator") or self.config.get(
            "excerpt_separator", "\n\n"
        )
        text = body.strip()
        if separator in text:
            return text.split(separator, 1)[0].strip()
        return text

    def _display(self, path: Path) -> str:
        try:
            return path.relative_to(self.source_dir).as_posix()
        except ValueError:
            return str(path)


DEFAULT_LAYOUTS = {"post": "post", "page": "page"}


def _layout_name(front_matter: dict[str, Any], kind: str) -> str | None:
    if "layout" not in front_matter:
        return DEFAULT_LAYOUTS[kind]
    value = front_matter["layout"]
    if value is None or value is False or str(value).lower() in ("none", "null", ""):
        return None
    return str(value)


def _unique(values: list[str]) -> list[str]:
    seen: list[str] = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen


def find_conflicts(documents: list[Document]) -> dict[PurePosixPath, list[Document]]:
    """Group documents that resolve to the same output path.

    Returns:
        Mapping of output path to the documents writing it, only for paths
        claimed by more than one document.
    """
    by_path: dict[PurePosixPath, list[Document]] = {}
    for document in documents:
        by_path.setdefault(document.output_path, []).append(document)
    return {path: docs for path, docs in by_path.items() if len(docs) > 1}


def resolve_conflicts(documents: list[Document]) -> tuple[list[Document], list[str]]:
    """Drop all but the newest document for each conflicting output path.

    A revised copy of a post usually shares its slug with the original; the
    copy with the latest date (then the last path) is the one published.

    Returns:
        Tuple of (documents to write, warning messages).
    """
    conflicts = find_conflicts(documents)
    if not conflicts:
        return documents, []
    losers: set[int] = set()
    warnings: list[str] = []
    for output_path, docs in conflicts.items():
        winner = max(docs, key=lambda d: d.sort_key)
        sources = ", ".join(d.relative_path.as_posix() for d in docs)
        message = (
            f"Conflict: {sources} all write {output_path}; "
            f"using {winner.relative_path.as_posix()}"
        )
        logger.warning(message)
        warnings.append(message)
        losers.update(id(d) for d in docs if d is not winner)
    return [d for d in documents if id(d) not in losers], warnings


def link_posts(posts: list[Document]) -> list[Document]:
    """Sort posts oldest first and set their previous/next links."""
    ordered = sorted(posts, key=lambda p: p.sort_key)
    for index, post in enumerate(ordered):
        post.previous = ordered[index - 1] if index > 0 else None
        post.next = ordered[index + 1] if index + 1 < len(ordered) else None
    return ordered

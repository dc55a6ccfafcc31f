"""URL derivation for Quire documents.

Posts take their URL from a permalink template filled in with the post's
date, slug and categories. Pages keep the shape of their source path. A
``permalink`` key in front-matter always wins.

Key classes:
- PermalinkBuilder: Derives URLs for posts and pages.

Functions:
    expand_permalink: Fill a permalink template with placeholder values.
    url_to_output_path: Map a URL to a file path under the destination.
"""

from __future__ import annotations

import re
from datetime import datetime
from pathlib import PurePosixPath

from .utils import slugify

PERMALINK_STYLES = {
    "date": "/:categories/:year/:month/:day/:title:output_ext",
    "pretty": "/:categories/:year/:month/:day/:title/",
    "ordinal": "/:categories/:year/:y_day/:title:output_ext",
    "none": "/:categories/:title:output_ext",
}

_PLACEHOLDER_RE = re.compile(r":([a-z_]+)")


def expand_permalink(template: str, values: dict[str, str]) -> str:
    """Fill a permalink template and normalize the resulting URL.

    Unknown placeholders are left as written. Empty segments collapse so
    that a post without categories does not produce ``//``.

    Examples:
        >>> expand_permalink("/:categories/:title/", {"categories": "", "title": "hi"})
        '/hi/'
    """
    expanded = _PLACEHOLDER_RE.sub(
        lambda m: values.get(m.group(1), m.group(0)), template
    )
    url = re.sub(r"/{2,}", "/", f"/{expanded}")
    return url


def url_to_output_path(url: str) -> PurePosixPath:
    """Map a document URL to a relative output path.

    Examples:
        >>> url_to_output_path("/2024/01/20/hello/")
        PurePosixPath('2024/01/20/hello/index.html')

        >>> url_to_output_path("/about.html")
        PurePosixPath('about.html')

        >>> url_to_output_path("/feed")
        PurePosixPath('feed/index.html')
    """
    path = url.split("?", 1)[0].split("#", 1)[0].lstrip("/")
    if not path or path.endswith("/"):
        return PurePosixPath(path) / "index.html"
    pure = PurePosixPath(path)
    if not pure.suffix:
        return pure / "index.html"
    return pure


class PermalinkBuilder:
    """Derives URLs for posts and pages from the configured style.

    Attributes:
        style: Style name or custom template from ``permalink`` config.
        template: Resolved post permalink template.
    """

    def __init__(self, style: str | None = "date"):
        self.style = style or "date"
        self.template = PERMALINK_STYLES.get(self.style, self.style)

    @property
    def pretty(self) -> bool:
        """Whether URLs end in ``/`` rather than ``.html``."""
        return self.template.endswith("/")

    def post_url(
        self,
        date: datetime,
        slug: str,
        categories: list[str],
        title: str = "",
        output_ext: str = ".html",
        override: str | None = None,
    ) -> str:
        """Derive a post URL.

        Args:
            date: Post date.
            slug: Slug from the filename (or front-matter ``slug``).
            categories: Category names, folded into the path.
            title: Post title, available as ``:slugified_title``.
            output_ext: Extension written for non-pretty styles.
            override: Front-matter ``permalink`` value.

        Returns:
            Root-relative URL.
        """
        values = {
            "year": f"{date.year:04d}",
            "short_year": f"{date.year % 100:02d}",
            "month": f"{date.month:02d}",
            "i_month": str(date.month),
            "day": f"{date.day:02d}",
            "i_day": str(date.day),
            "y_day": f"{date.timetuple().tm_yday:03d}",
            "hour": f"{date.hour:02d}",
            "minute": f"{date.minute:02d}",
            "second": f"{date.second:02d}",
            "title": slug,
            "slug": slug,
            "slugified_title": slugify(title) if title else slug,
            "categories": "/".join(slugify(c) for c in categories),
            "output_ext": output_ext,
        }
        return expand_permalink(override or self.template, values)

    def page_url(
        self,
        relative_path: PurePosixPath,
        output_ext: str = ".html",
        override: str | None = None,
    ) -> str:
        """Derive a page URL from its path relative to the source directory.

        ``index`` files map to their directory; other pages keep their name
        with ``output_ext``, or become a directory for pretty styles.
        """
        if override:
            return expand_permalink(override, {"output_ext": output_ext})
        parent = relative_path.parent.as_posix()
        prefix = "" if parent == "." else f"/{parent}"
        stem = relative_path.stem
        if stem == "index":
            return f"{prefix}/"
        if self.pretty and output_ext == ".html":
            return f"{prefix}/{stem}/"
        return f"{prefix}/{stem}{output_ext}"

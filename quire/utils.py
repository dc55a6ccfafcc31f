"""Utility functions for Quire.

This module contains small helpers used throughout the Quire codebase:
string processing, filename parsing, date coercion and file-type checks.

Key functions:
    slugify: Convert titles and filenames to URL slugs.
    titleize: Convert filenames to human-readable titles.
    parse_post_filename: Split a YYYY-MM-DD-slug post filename.
    coerce_date: Turn front-matter date values into naive datetimes.
    build_taxonomy_index: Build index of documents by tag or category.
    ensure_clean_dir: Ensure a directory exists and is empty.
"""

from __future__ import annotations

import re
import shutil
from collections.abc import Iterable
from datetime import date, datetime, timezone
from pathlib import Path
from zoneinfo import ZoneInfo

POST_FILENAME_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})-(.+)$")
HTML_TAG_RE = re.compile(r"<[^>]+>")

MARKDOWN_EXTENSIONS = {".md", ".markdown", ".mkd", ".mkdn"}
SASS_EXTENSIONS = {".scss", ".sass"}

_DATE_FORMATS = (
    "%Y-%m-%d %H:%M:%S %z",
    "%Y-%m-%d %H:%M %z",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d",
)


def slugify(text: str) -> str:
    """Convert text to a lowercase, hyphen-separated slug.

    Args:
        text: Title or filename stem.

    Returns:
        URL-friendly slug, or ``"untitled"`` when nothing survives.

    Examples:
        >>> slugify("Hello, World!")
        'hello-world'
    """
    cleaned = re.sub(r"[^\w\s-]", "", text.lower(), flags=re.UNICODE)
    cleaned = re.sub(r"[\s_-]+", "-", cleaned).strip("-")
    return cleaned or "untitled"


def parse_post_filename(name: str) -> tuple[datetime, str] | None:
    """Split a post filename stem into its date and slug.

    Args:
        name: Filename stem such as ``2024-01-20-hello-world``.

    Returns:
        Tuple of (date, slug), or None when the stem has no valid date prefix.

    Examples:
        >>> parse_post_filename("2024-01-20-hello-world")
        (datetime.datetime(2024, 1, 20, 0, 0), 'hello-world')
    """
    match = POST_FILENAME_RE.match(name)
    if not match:
        return None
    year, month, day, slug = match.groups()
    try:
        return datetime(int(year), int(month), int(day)), slug
    except ValueError:
        return None


def titleize(filename: str) -> str:
    """Convert a filename to a human-readable title.

    Removes date prefixes (YYYY-MM-DD), replaces hyphens and underscores
    with spaces, and capitalizes each word.

    Examples:
        >>> titleize("2024-01-15-hello-world.md")
        'Hello World'
    """
    base = Path(filename).stem
    parsed = parse_post_filename(base)
    if parsed is not None:
        base = parsed[1]
    words = re.split(r"[\s\-_]+", base)
    return " ".join(word.capitalize() for word in words if word) or "Untitled"


def coerce_date(value: object, tz_name: str | None = None) -> datetime:
    """Convert a front-matter date value into a naive datetime.

    Accepts ``datetime``, ``date`` and the string formats commonly written
    by hand (``2024-01-20``, ``2024-01-20 10:00:00 +0000``, ISO 8601).
    Aware values are converted to ``tz_name`` (UTC when unset) and the
    tzinfo is dropped so that all document dates compare with each other.

    Raises:
        ValueError: If the value cannot be interpreted as a date.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        parsed = _parse_date_string(value.strip())
    else:
        raise ValueError(f"Unsupported date value: {value!r}")
    if parsed.tzinfo is not None:
        target = ZoneInfo(tz_name) if tz_name else timezone.utc
        parsed = parsed.astimezone(target).replace(tzinfo=None)
    return parsed


def _parse_date_string(text: str) -> datetime:
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        raise ValueError(f"Invalid date: {text!r}") from None


def as_list(value: object) -> list[str]:
    """Normalize a tags/categories front-matter value to a list of strings.

    Examples:
        >>> as_list("python  web")
        ['python', 'web']

        >>> as_list(["a", 2])
        ['a', '2']
    """
    if value is None:
        return []
    if isinstance(value, str):
        return value.split()
    if isinstance(value, Iterable):
        return [str(item) for item in value if item is not None]
    return [str(value)]


def strip_html(text: str) -> str:
    """Remove HTML tags and collapse whitespace."""
    return " ".join(HTML_TAG_RE.sub(" ", text).split())


def number_of_words(text: str) -> int:
    return len(strip_html(text).split())


def ensure_clean_dir(path: Path) -> None:
    """Ensure a directory exists and is empty.

    Args:
        path: Directory path to clean or create.
    """
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True, exist_ok=True)


def is_markdown(path: Path) -> bool:
    return path.suffix.lower() in MARKDOWN_EXTENSIONS


def is_html(path: Path) -> bool:
    return path.suffix.lower() in {".html", ".htm"}


def is_sass(path: Path) -> bool:
    return path.suffix.lower() in SASS_EXTENSIONS


def is_document(path: Path) -> bool:
    """Check if a path may become a rendered document (Markdown or HTML)."""
    return is_markdown(path) or is_html(path)


def is_special_name(name: str) -> bool:
    """Check if a file or directory name is hidden from the output by default.

    Names starting with ``_``, ``.`` or ``#`` and backup files ending in
    ``~`` are never copied unless the configuration includes them.
    """
    return name.startswith(("_", ".", "#")) or name.endswith("~")


def build_taxonomy_index(documents: Iterable, attribute: str) -> dict[str, list]:
    """Build an index mapping tag or category names to documents.

    Args:
        documents: Iterable of documents.
        attribute: Either ``"tags"`` or ``"categories"``.

    Returns:
        Dictionary mapping names to lists of documents, in input order.
    """
    index: dict[str, list] = {}
    for document in documents:
        for name in getattr(document, attribute):
            index.setdefault(name, []).append(document)
    return index

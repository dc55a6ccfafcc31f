"""Front-matter parsing and metadata extraction for Quire.

A document's front-matter is a YAML mapping between two ``---`` lines at the
very top of the file. The extractors in this module each derive one piece of
metadata (title, date, taxonomy) from a document, and the
composite runs them in order so later extractors can use earlier results.

Key classes:
- FrontmatterExtractor: Splits front-matter from the body.
- TitleExtractor: Title from front-matter, first heading or filename.
- DateExtractor: Date from front-matter, filename prefix or mtime.
- TaxonomyExtractor: Tags and categories.
- CompositeMetadataExtractor: Runs extractors and merges their results.
"""

from __future__ import annotations

import re
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml

from .errors import FrontMatterError
from .utils import as_list, coerce_date, parse_post_filename, titleize

FRONTMATTER_RE = re.compile(
    r"\A---[ \t]*\r?\n(.*?)(?:\r?\n)?^---[ \t]*(?:\r?\n|\Z)",
    re.DOTALL | re.MULTILINE,
)
HEADING_RE = re.compile(r"^#\s+(.+?)\s*#*\s*$")


def parse_frontmatter(text: str) -> tuple[dict[str, Any], str, bool]:
    """Split YAML front-matter from a document.

    Args:
        text: Raw file content.

    Returns:
        Tuple of (front-matter mapping, remaining body, whether a block was present).

    Raises:
        FrontMatterError: If the block is not valid YAML or not a mapping.
    """
    if text.startswith("\ufeff"):
        text = text[1:]
    match = FRONTMATTER_RE.match(text)
    if not match:
        return {}, text, False
    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError as exc:
        raise FrontMatterError(f"Invalid front-matter YAML: {exc}") from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise FrontMatterError(
            f"Front-matter must be a mapping, got {type(data).__name__}"
        )
    return data, text[match.end() :], True


def has_frontmatter(path: Path) -> bool:
    """Check whether a file starts with a front-matter delimiter line."""
    try:
        with open(path, encoding="utf-8") as f:
            first = f.readline()
    except (OSError, UnicodeDecodeError):
        return False
    return first.lstrip("\ufeff").rstrip() == "---"


class FrontmatterExtractor:
    """Extracts YAML front-matter from content."""

    def extract(self, content: str, path: Path, found: dict[str, Any]) -> dict[str, Any]:
        front_matter, body, _ = parse_frontmatter(content)
        return {"front_matter": front_matter, "body": body}


class TitleExtractor:
    """Extracts a title.

    Looks at the ``title`` front-matter key first, then a level-1 heading
    in the body, and finally falls back to titleizing the filename.
    """

    def extract(self, content: str, path: Path, found: dict[str, Any]) -> dict[str, Any]:
        title = found.get("front_matter", {}).get("title")
        if title:
            return {"title": str(title)}
        in_fence = False
        for line in found.get("body", content).splitlines():
            stripped = line.strip()
            if stripped.startswith(("```", "~~~")):
                in_fence = not in_fence
                continue
            if in_fence:
                continue
            match = HEADING_RE.match(stripped)
            if match:
                return {"title": match.group(1)}
        return {"title": titleize(path.name)}


class DateExtractor:
    """Extracts a publication date.

    Uses the ``date`` front-matter key, then the YYYY-MM-DD filename prefix,
    and finally the file modification time.

    Attributes:
        tz_name: Time zone that aware dates are converted into.
    """

    def __init__(self, tz_name: str | None = None):
        self.tz_name = tz_name

    def extract(self, content: str, path: Path, found: dict[str, Any]) -> dict[str, Any]:
        value = found.get("front_matter", {}).get("date")
        if value is not None:
            try:
                return {"date": coerce_date(value, self.tz_name)}
            except ValueError as exc:
                raise FrontMatterError(str(exc)) from exc
        parsed = parse_post_filename(path.stem)
        if parsed is not None:
            return {"date": parsed[0]}
        return {"date": datetime.fromtimestamp(path.stat().st_mtime)}


class TaxonomyExtractor:
    """Extracts tags and categories.

    Both keys accept a list or a whitespace-separated string. The singular
    ``tag``/``category`` keys are accepted as well.
    """

    def extract(self, content: str, path: Path, found: dict[str, Any]) -> dict[str, Any]:
        front_matter = found.get("front_matter", {})
        tags = as_list(front_matter.get("tags")) or as_list(front_matter.get("tag"))
        categories = as_list(front_matter.get("categories")) or as_list(
            front_matter.get("category")
        )
        return {"tags": tags, "categories": categories}


class CompositeMetadataExtractor:
    """Combines multiple metadata extractors.

    Runs every registered extractor on the content, passing the results
    gathered so far, and merges their output. Later extractors override
    earlier ones.
    """

    def __init__(self, extractors: list | None = None, tz_name: str | None = None):
        if extractors is None:
            self._extractors = [
                FrontmatterExtractor(),
                TitleExtractor(),
                DateExtractor(tz_name),
                TaxonomyExtractor(),
            ]
        else:
            self._extractors = list(extractors)

    def add_extractor(self, extractor) -> None:
        self._extractors.append(extractor)

    def extract(self, content: str, path: Path) -> dict[str, Any]:
        """Extract all metadata from content.

        Args:
            content: Source content.
            path: Path to the source file.

        Returns:
            Dictionary with all extracted metadata.

        Raises:
            FrontMatterError: When front-matter or its date is malformed.
        """
        result: dict[str, Any] = {}
        for extractor in self._extractors:
            result.update(extractor.extract(content, path, result))
        return result

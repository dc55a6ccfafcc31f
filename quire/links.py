"""Internal link checking for built sites.

Every root-relative ``href``/``src`` in the written HTML must point at a
file in the destination. Links under ``baseurl`` are resolved after the
prefix is stripped, and directory links resolve to their ``index.html``.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .html_utils import iter_local_links


@dataclass(frozen=True)
class BrokenLink:
    """A link in a built page that does not resolve.

    Attributes:
        page: Output file containing the link, relative to the destination.
        target: The link target as written (path part only).
    """

    page: str
    target: str

    def __str__(self) -> str:
        return f"{self.page}: broken link to {self.target}"


def _resolves(destination: Path, target: str, baseurl: str) -> bool:
    path = target
    if baseurl:
        if path != baseurl and not path.startswith(f"{baseurl}/"):
            return False
        path = path[len(baseurl) :] or "/"
    candidate = destination / path.lstrip("/")
    if path.endswith("/") or candidate.is_dir():
        return (candidate / "index.html").is_file()
    return candidate.is_file() or candidate.with_suffix(".html").is_file()


def check_links(destination: Path, baseurl: str = "") -> list[BrokenLink]:
    """Find root-relative links in built HTML that point at nothing.

    Args:
        destination: Directory containing the built site.
        baseurl: Configured baseurl; links outside it count as broken.

    Returns:
        Broken links, ordered by page then target.
    """
    broken: set[BrokenLink] = set()
    for html_path in sorted(destination.rglob("*.html")):
        page = html_path.relative_to(destination).as_posix()
        html = html_path.read_text(encoding="utf-8", errors="replace")
        for target in iter_local_links(html):
            if not _resolves(destination, target, baseurl):
                broken.add(BrokenLink(page, target))
    return sorted(broken, key=lambda link: (link.page, link.target))

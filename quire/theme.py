"""Theme resolution for Quire.

A theme is a directory laid out like a site: ``_layouts``, ``_includes``,
``_sass`` and ``assets``. The site can shadow any theme file by placing a
file at the same relative path. Themes are looked up under ``_themes/`` in
the site first and then as a filesystem path.
"""

from __future__ import annotations

import logging
from pathlib import Path

from .errors import ThemeNotFoundError

logger = logging.getLogger(__name__)

THEME_DIRS = ("_layouts", "_includes", "_sass", "assets")


class Theme:
    """An external theme providing layouts, includes, Sass partials and assets.

    Attributes:
        name: Name as written in configuration.
        root: Directory containing the theme.
    """

    def __init__(self, name: str, root: Path):
        self.name = name
        self.root = root

    @classmethod
    def resolve(cls, source_dir: Path, name: str | None) -> Theme | None:
        """Locate the theme named in configuration.

        Args:
            source_dir: Root directory of the site sources.
            name: ``theme`` config value, or None.

        Returns:
            Theme instance, or None when no theme is configured.

        Raises:
            ThemeNotFoundError: If no matching directory exists.
        """
        if not name:
            return None
        candidates = [source_dir / "_themes" / name, Path(name).expanduser()]
        if not Path(name).is_absolute():
            candidates.append(source_dir / name)
        for candidate in candidates:
            if candidate.is_dir():
                logger.debug("Using theme %s from %s", name, candidate)
                return cls(name, candidate.resolve())
        raise ThemeNotFoundError(
            f"Theme '{name}' not found (looked in {source_dir / '_themes'})"
        )

    @property
    def layouts_dir(self) -> Path:
        return self.root / "_layouts"

    @property
    def includes_dir(self) -> Path:
        return self.root / "_includes"

    @property
    def sass_dir(self) -> Path:
        return self.root / "_sass"

    @property
    def assets_dir(self) -> Path:
        return self.root / "assets"

    def static_files(self, source_dir: Path) -> list[tuple[Path, Path]]:
        """List theme assets that the site does not shadow.

        Args:
            source_dir: Root directory of the site sources.

        Returns:
            List of (absolute theme path, path relative to the theme root).
        """
        files: list[tuple[Path, Path]] = []
        if not self.assets_dir.is_dir():
            return files
        for path in sorted(self.assets_dir.rglob("*")):
            if path.is_dir() or path.name.startswith((".", "_")):
                continue
            rel = path.relative_to(self.root)
            if (source_dir / rel).exists():
                continue
            files.append((path, rel))
        return files

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"Theme({self.name!r}, {self.root})"

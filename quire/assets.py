"""Static file pipeline for Quire.

This module writes the site's static files into the destination, compiling
Sass style sheets and optimizing images and scripts on the way.

Key components:
- AssetPipeline: Runs every static file through the processor registry.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path, PurePosixPath
from typing import Any

from .asset_processors import AssetProcessorRegistry, create_default_registry
from .content import StaticFile
from .theme import Theme

logger = logging.getLogger(__name__)


class AssetPipeline:
    """Processes static files into the destination directory.

    Attributes:
        source_dir: Root directory of the site sources.
        destination: Directory where processed files are written.
        processor_registry: Registry of asset processors.
    """

    def __init__(
        self,
        source_dir: Path,
        destination: Path,
        config: dict[str, Any],
        theme: Theme | None = None,
        processor_registry: AssetProcessorRegistry | None = None,
    ):
        self.source_dir = source_dir
        self.destination = destination
        if processor_registry is None:
            sass = config.get("sass") or {}
            sass_dir = sass.get("sass_dir", "_sass")
            load_paths = [source_dir / sass_dir]
            if theme is not None:
                load_paths.append(theme.sass_dir)
            processor_registry = create_default_registry(
                source_dir,
                load_paths,
                sass_style=sass.get("style", "expanded"),
                sass_executable=sass.get("executable"),
                optimize_images=config.get("optimize_images", True),
                minify_js=config.get("minify_js", True),
            )
        self.processor_registry = processor_registry

    def run(self, static_files: Iterable[StaticFile]) -> list[PurePosixPath]:
        """Write every static file.

        Args:
            static_files: Files found by the reader (site and theme).

        Returns:
            Output paths, relative to the destination, that were written.

        Raises:
            BuildError: If a style sheet fails to compile.
        """
        written: list[PurePosixPath] = []
        for static in static_files:
            processor = self.processor_registry.get_processor(static.path)
            if processor is None:
                continue
            dest = processor.output_path(self.destination / static.relative_path)
            if processor.process(static.path, dest):
                written.append(PurePosixPath(dest.relative_to(self.destination).as_posix()))
        logger.debug("Wrote %d static files", len(written))
        return written

"""Site building for Quire.

This module ties the pipeline together: it loads configuration, resolves the
theme, reads documents, renders them through their layouts, writes them and
the static files into the destination, generates feeds and finally checks
the result for broken internal links.

Key functions:
- build_site: Build the entire site.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any, Callable

from jinja2 import TemplateSyntaxError

from .assets import AssetPipeline
from .config import CONFIG_FILENAME, load_config, load_data, resolve_destination
from .content import Document, SiteReader, link_posts, resolve_conflicts
from .errors import BuildError, ConfigError, LayoutError
from .feeds import create_default_feed_registry
from .links import BrokenLink, check_links
from .templates import TemplateEngine
from .theme import Theme
from .utils import ensure_clean_dir

__all__ = [
    "BuildError",
    "BuildResult",
    "build_site",
    "check_destination",
    "resolve_destination",
]

logger = logging.getLogger(__name__)


@dataclass
class BuildResult:
    """Result of a site build.

    Attributes:
        documents: Posts and pages that were written.
        static_files: Static output paths, relative to the destination.
        destination: Directory the site was built into.
        config: Effective configuration.
        feeds: Feed files that were generated.
        broken_links: Internal links that do not resolve.
        conflicts: Messages about documents claiming the same output path.
        warnings: Non-fatal problems found during the build.
    """

    documents: list[Document]
    static_files: list[PurePosixPath]
    destination: Path
    config: dict[str, Any]
    feeds: list[str] = field(default_factory=list)
    broken_links: list[BrokenLink] = field(default_factory=list)
    conflicts: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def posts(self) -> list[Document]:
        return [d for d in self.documents if d.kind == "post"]

    @property
    def pages(self) -> list[Document]:
        return [d for d in self.documents if d.kind == "page"]


def build_site(
    source_dir: Path,
    destination: Path | None = None,
    include_drafts: bool | None = None,
    future: bool | None = None,
    clean: bool = True,
    overrides: dict[str, Any] | None = None,
) -> BuildResult:
    """Build the entire static site.

    Args:
        source_dir: Root directory of the site sources.
        destination: Output directory (defaults to the configured one).
        include_drafts: Whether to publish ``_drafts`` (defaults to config).
        future: Whether to publish future-dated posts (defaults to config).
        clean: Whether to wipe the destination before writing.
        overrides: Configuration values that win over ``_config.yml``.

    Returns:
        BuildResult describing what was written.

    Raises:
        BuildError: If a document, layout or style sheet fails to render,
            or a link is broken while ``strict_links`` is set.
        ConfigError: If the destination would overwrite the sources.
        QuireError: For configuration and theme problems.
    """
    if not source_dir.is_dir():
        raise FileNotFoundError(f"Expected site sources at {source_dir}")
    config = load_config(source_dir, overrides)
    if include_drafts is None:
        include_drafts = bool(config.get("show_drafts"))
    if future is None:
        future = bool(config.get("future"))
    destination = destination or resolve_destination(source_dir, config)
    check_destination(source_dir, destination)

    theme = Theme.resolve(source_dir, config.get("theme"))
    data = load_data(source_dir)
    reader = SiteReader(source_dir, config, theme=theme, destination=destination)
    contents = reader.read(include_drafts=include_drafts, future=future)
    warnings = list(contents.warnings)

    documents, conflict_warnings = resolve_conflicts(contents.documents)
    warnings.extend(conflict_warnings)
    posts = link_posts([d for d in documents if d.kind == "post"])
    pages = [d for d in documents if d.kind == "page"]
    documents = [*posts, *pages]

    engine = TemplateEngine(source_dir, config, theme=theme, data=data)
    engine.update_site(posts, pages, contents.static_files)
    for document in documents:
        _render_step(engine.render_content, document)
    for document in documents:
        _render_step(engine.render_layout, document)

    if clean:
        ensure_clean_dir(destination)
    else:
        destination.mkdir(parents=True, exist_ok=True)
    for document in documents:
        _write_document(destination, document)

    pipeline = AssetPipeline(source_dir, destination, config, theme=theme)
    static_written = pipeline.run(contents.static_files)

    taken = [d.output_path.as_posix() for d in documents]
    taken.extend(p.as_posix() for p in static_written)
    feeds = create_default_feed_registry().generate_all(
        destination, posts, pages, config, taken=taken
    )

    broken = check_links(destination, config.get("baseurl", ""))
    if broken:
        by_output = {d.output_path.as_posix(): d.path for d in documents}
        if config.get("strict_links"):
            first = broken[0]
            raise BuildError(
                by_output.get(first.page, destination / first.page),
                f"Broken link to {first.target} ({len(broken)} broken links in total)",
            )
        for link in broken:
            message = str(link)
            logger.warning(message)
            warnings.append(message)

    logger.info(
        "Built %d posts and %d pages into %s", len(posts), len(pages), destination
    )
    return BuildResult(
        documents=documents,
        static_files=static_written,
        destination=destination,
        config=config,
        feeds=feeds,
        broken_links=broken,
        conflicts=conflict_warnings,
        warnings=warnings,
    )


def _render_step(step: Callable[[Document], Any], document: Document) -> None:
    """Run a render step, turning failures into BuildError with file context."""
    try:
        step(document)
    except BuildError:
        raise
    except TemplateSyntaxError as exc:
        where = f" in {exc.name}" if exc.name else ""
        raise BuildError(
            document.path,
            f"Template syntax error{where} on line {exc.lineno}: {exc.message}",
            exc,
        ) from exc
    except LayoutError as exc:
        raise BuildError(document.path, str(exc), exc) from exc
    except Exception as exc:
        raise BuildError(document.path, _format_error_message(exc), exc) from exc


def _format_error_message(exc: Exception) -> str:
    """Format an exception into a user-friendly error message."""
    error_type = type(exc).__name__
    error_msg = str(exc)
    if error_type == "UndefinedError":
        return f"Undefined variable: {error_msg}"
    if error_type == "TemplateNotFound":
        return f"Included template not found: {error_msg}"
    if error_type == "TypeError":
        return f"Type error: {error_msg}"
    if error_type == "AttributeError":
        return f"Attribute error: {error_msg}"
    return f"{error_type}: {error_msg}"


def _write_document(destination: Path, document: Document) -> None:
    target = destination / document.output_path
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "w", encoding="utf-8") as f:
        f.write(document.output)


def check_destination(source_dir: Path, destination: Path) -> None:
    """Refuse destinations that would wipe the site sources when cleaned."""
    source = source_dir.resolve()
    target = destination.resolve()
    if target == source or target in source.parents:
        raise ConfigError(
            source_dir / CONFIG_FILENAME,
            f"Destination {destination} contains the site sources; "
            "choose a separate output directory",
        )

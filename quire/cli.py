"""Command-line interface for Quire.

This module defines the CLI commands using Click framework.
It provides commands for creating new blogs, building sites, writing posts
and running the development server.

Commands:
- new: Scaffold a new Quire blog.
- build: Build the site into the destination directory.
- serve: Run development server with live reload.
- post: Create a new post, prompting for a title when none is given.
- check: Build into a scratch directory and report problems.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import tempfile
from datetime import datetime
from pathlib import Path

import click
import questionary

from . import __version__
from .errors import BuildError, QuireError
from .utils import parse_post_filename, slugify

# Path to the files copied into new blogs
_SCAFFOLD_DIR = Path(__file__).parent / "scaffold"

_LEVEL_COLORS = {
    logging.WARNING: "yellow",
    logging.ERROR: "red",
    logging.CRITICAL: "red",
}


class _ClickHandler(logging.Handler):
    """Logging handler that writes records through ``click.echo``."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
            color = _LEVEL_COLORS.get(record.levelno)
            if color:
                message = click.style(message, fg=color)
            click.echo(message, err=record.levelno >= logging.WARNING)
        except Exception:
            self.handleError(record)


def _configure_logging(verbose: bool, quiet: bool) -> None:
    level = logging.INFO
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    logger = logging.getLogger("quire")
    for handler in list(logger.handlers):
        if isinstance(handler, _ClickHandler):
            logger.removeHandler(handler)
    handler = _ClickHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(level)


@click.group()
@click.version_option(version=__version__, prog_name="quire")
@click.option("-v", "--verbose", is_flag=True, help="Show debug output")
@click.option("-q", "--quiet", is_flag=True, help="Only show warnings and errors")
def cli(verbose: bool, quiet: bool):
    """Quire blog generator."""
    _configure_logging(verbose, quiet)


@cli.command()
@click.argument("path")
def new(path: str):
    """Scaffold a new Quire blog."""
    target = Path(path).resolve()
    if target.exists() and any(target.iterdir()):
        raise click.ClickException(
            f"Refusing to initialize into non-empty directory: {target}"
        )
    _scaffold(target)
    click.echo(f"New Quire blog created at {target}")


@cli.command()
@click.option(
    "--source",
    "-s",
    type=click.Path(file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Site source directory",
)
@click.option(
    "--destination",
    "-d",
    type=click.Path(file_okay=False, path_type=Path),
    help="Output directory (overrides _config.yml destination)",
)
@click.option("--drafts", is_flag=True, help="Publish posts in _drafts")
@click.option("--future", is_flag=True, help="Publish future-dated posts")
@click.option("--baseurl", help="Serve the site from this sub-path")
def build(
    source: Path,
    destination: Path | None,
    drafts: bool,
    future: bool,
    baseurl: str | None,
):
    """Build the site into the destination directory."""
    project_root = source.resolve()
    from .build import build_site

    try:
        result = build_site(
            project_root,
            destination=destination.resolve() if destination else None,
            include_drafts=drafts or None,
            future=future or None,
            overrides={"baseurl": baseurl},
        )
    except BuildError as exc:
        _report_build_error(project_root, exc)
        raise SystemExit(1) from None
    except QuireError as exc:
        raise click.ClickException(str(exc)) from None
    click.echo(
        f"Built {len(result.posts)} posts and {len(result.pages)} pages "
        f"into {result.destination}"
    )


@cli.command()
@click.option("--drafts", is_flag=True, help="Publish posts in _drafts")
@click.option("--future", is_flag=True, help="Publish future-dated posts")
@click.option(
    "--port",
    type=int,
    required=False,
    help="Port to run the dev server (overrides _config.yml port)",
)
@click.option(
    "--ws-port",
    type=int,
    required=False,
    help="Port for the live reload websocket server (overrides _config.yml ws_port)",
)
def serve(drafts: bool, future: bool, port: int | None, ws_port: int | None):
    """Run dev server with live reload."""
    project_root = Path.cwd()
    from .server import DevServer

    try:
        server = DevServer(project_root, http_port=port, ws_port=ws_port)
        server.start(include_drafts=drafts, future=future)
    except BuildError as exc:
        _report_build_error(project_root, exc)
        raise SystemExit(1) from None
    except QuireError as exc:
        raise click.ClickException(str(exc)) from None


@cli.command()
@click.argument("title", required=False)
@click.option("--draft", is_flag=True, help="Create the post in _drafts")
def post(title: str | None, draft: bool):
    """Create a new post, prompting for a title when none is given."""
    project_root = Path.cwd()
    if title is None:
        title = questionary.text(
            "Post title:",
            validate=lambda x: len(x.strip()) > 0 or "Title cannot be empty",
            style=_questionary_style(),
        ).ask()
        if title is None:
            raise click.Abort()
    title = title.strip()
    if not title:
        raise click.ClickException("Title cannot be empty")

    now = datetime.now()
    slug = slugify(title)
    target_dir = project_root / ("_drafts" if draft else "_posts")
    filename = f"{slug}.md" if draft else f"{now:%Y-%m-%d}-{slug}.md"
    target_path = target_dir / filename

    existing_slugs = _get_existing_slugs(target_dir)
    if slug in existing_slugs:
        raise click.ClickException(
            f"A post with slug '{slug}' already exists: {existing_slugs[slug]}"
        )

    target_dir.mkdir(parents=True, exist_ok=True)
    front_matter = [
        "---",
        "layout: post",
        f"title: {_yaml_string(title)}",
    ]
    if not draft:
        front_matter.append(f"date: {now:%Y-%m-%d %H:%M:%S}")
    front_matter.extend(["---", "", ""])
    target_path.write_text("\n".join(front_matter), encoding="utf-8")

    rel_path = target_path.relative_to(project_root)
    click.echo(f"Created {rel_path}")


@cli.command()
@click.option("--drafts", is_flag=True, help="Check posts in _drafts too")
def check(drafts: bool):
    """Build into a scratch directory and report conflicts and broken links."""
    project_root = Path.cwd()
    from .build import build_site

    with tempfile.TemporaryDirectory(prefix="quire-check-") as scratch:
        try:
            result = build_site(
                project_root,
                destination=Path(scratch) / "_site",
                include_drafts=drafts,
                overrides={"strict_links": False},
            )
        except BuildError as exc:
            _report_build_error(project_root, exc)
            raise SystemExit(1) from None
        except QuireError as exc:
            raise click.ClickException(str(exc)) from None

    problems = [*result.conflicts, *(str(link) for link in result.broken_links)]
    if problems:
        click.echo(click.style("Problems found:", fg="red", bold=True), err=True)
        for problem in problems:
            click.echo(f"  {problem}", err=True)
        raise SystemExit(1)
    click.echo(
        f"Checked {len(result.documents)} documents: no conflicts or broken links"
    )


def _report_build_error(project_root: Path, exc: BuildError) -> None:
    """Display a build failure with its source file."""
    try:
        rel_path = exc.source_path.relative_to(project_root)
    except ValueError:
        rel_path = exc.source_path
    click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
    click.echo(click.style(f"  File: {rel_path}", fg="yellow"), err=True)
    click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)


def _get_existing_slugs(folder: Path) -> dict[str, str]:
    """Map slugs of existing posts in a folder to their filenames."""
    slugs: dict[str, str] = {}
    if folder.exists():
        for f in sorted(folder.iterdir()):
            if f.is_file() and not f.name.startswith("."):
                slugs.setdefault(_extract_slug(f.name), f.name)
    return slugs


def _extract_slug(filename: str) -> str:
    """Extract slug from filename, removing date prefix and extension."""
    stem = Path(filename).stem
    parsed = parse_post_filename(stem)
    if parsed:
        return parsed[1].lower()
    return stem.lower()


def _yaml_string(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _questionary_style():
    """Return consistent questionary style."""
    return questionary.Style(
        [
            ("qmark", "fg:cyan bold"),
            ("question", "bold"),
            ("answer", "fg:cyan"),
            ("pointer", "fg:cyan bold"),
            ("highlighted", "fg:cyan bold"),
            ("selected", "fg:cyan"),
        ]
    )


def main():
    """Entry point for the CLI application."""
    cli()


def _scaffold(root: Path) -> None:
    """Create the directory structure and files for a new Quire blog.

    Args:
        root: Root directory for the new blog.
    """
    for src_path in _SCAFFOLD_DIR.rglob("*"):
        if src_path.is_dir() or "__pycache__" in src_path.parts:
            continue
        rel_path = src_path.relative_to(_SCAFFOLD_DIR)
        dest_path = root / rel_path
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src_path, dest_path)

    today = datetime.now()
    welcome = root / "_posts" / f"{today:%Y-%m-%d}-welcome-to-quire.md"
    welcome.parent.mkdir(parents=True, exist_ok=True)
    welcome.write_text(
        "---\n"
        "layout: post\n"
        'title: "Welcome to Quire"\n'
        f"date: {today:%Y-%m-%d %H:%M:%S}\n"
        "tags: [quire]\n"
        "---\n"
        "Posts live in `_posts/` and are named `YYYY-MM-DD-slug.md`.\n\n"
        "Run `quire post \"My next post\"` to start another one, and\n"
        "`quire serve` to preview the blog while you write.\n\n"
        "```python\n"
        'print("hello from quire")\n'
        "```\n",
        encoding="utf-8",
    )
    (root / "_drafts").mkdir(exist_ok=True)
    (root / ".gitignore").write_text("_site/\n_site.staging/\n.sass-cache/\n", encoding="utf-8")

    _try_git_init(root)


def _try_git_init(root: Path) -> None:
    """Initialize a git repository if git is available."""
    if os.environ.get("QUIRE_SKIP_GIT_INIT") == "1":
        return
    git_bin = shutil.which("git")
    if not git_bin:
        return
    try:
        subprocess.run(
            [git_bin, "init"],
            cwd=root,
            check=True,
            capture_output=True,
        )
    except (OSError, subprocess.CalledProcessError):
        # Non-fatal: user can run git init manually
        pass

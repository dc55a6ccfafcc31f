"""Asset processors for Quire.

A processor turns one static source file into one file in the destination.
The registry asks its processors in order and uses the first one that
handles a file; the plain copier at the end handles everything.

Key classes:
- SassProcessor: Compiles Sass/SCSS entry points with the ``sass`` CLI.
- ImageProcessor: Re-encodes images with Pillow when that makes them smaller.
- JSProcessor: Minifies JavaScript with rjsmin.
- StaticAssetProcessor: Copies everything else.
- AssetProcessorRegistry: Ordered lookup of processors.
"""

from __future__ import annotations

import io
import logging
import shutil
import subprocess
from pathlib import Path

from PIL import Image
from rjsmin import jsmin

from .errors import BuildError, FrontMatterError
from .frontmatter import parse_frontmatter
from .utils import is_sass

logger = logging.getLogger(__name__)


def find_executable(name: str, source_dir: Path | None = None) -> str | None:
    """Find an executable in PATH or in the site's ``node_modules/.bin``.

    Examples:
        >>> find_executable('sass', Path('/my/blog'))  # doctest: +SKIP
        '/my/blog/node_modules/.bin/sass'
    """
    on_path = shutil.which(name)
    if on_path or source_dir is None:
        return on_path
    local = source_dir / "node_modules" / ".bin" / name
    return str(local) if local.exists() else None


def _copy(source: Path, dest: Path) -> None:
    dest.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(source, dest)


def _write(dest: Path, data: str | bytes) -> None:
    dest.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(data, bytes):
        dest.write_bytes(data)
    else:
        dest.write_text(data, encoding="utf-8")


class AssetProcessor:
    """Base class for asset processors.

    Subclasses list the suffixes they handle and implement ``process``.
    """

    suffixes: frozenset[str] = frozenset()

    def handles(self, path: Path) -> bool:
        return path.suffix.lower() in self.suffixes

    def output_path(self, dest: Path) -> Path:
        """Map the mirrored destination path to the file actually written."""
        return dest

    def process(self, source: Path, dest: Path) -> bool:
        """Write ``source`` to ``dest``.

        Returns:
            True if a file was written.
        """
        raise NotImplementedError


class SassProcessor(AssetProcessor):
    """Compiles Sass/SCSS style sheets to CSS.

    Entry points carry (possibly empty) front-matter, which is stripped
    before compiling. Imports resolve against the site's Sass directory
    first and the theme's second, so a site override can ``@import`` the
    theme's partials and reuse its variables.

    Attributes:
        source_dir: Root directory of the site sources.
        load_paths: Directories searched by ``@import``/``@use``.
        style: Output style passed to the compiler.
        executable: Explicit compiler path, or None to search for ``sass``.
    """

    def __init__(
        self,
        source_dir: Path,
        load_paths: list[Path],
        style: str = "expanded",
        executable: str | None = None,
    ):
        self.source_dir = source_dir
        self.load_paths = [p for p in load_paths if p.is_dir()]
        self.style = style
        self.executable = executable

    def handles(self, path: Path) -> bool:
        return is_sass(path)

    def output_path(self, dest: Path) -> Path:
        return dest.with_suffix(".css")

    def command(self, sass_bin: str, indented: bool) -> list[str]:
        args = [sass_bin, "--stdin", f"--style={self.style}", "--no-source-map"]
        args += [f"--load-path={path}" for path in self.load_paths]
        if indented:
            args.append("--indented")
        return args

    def process(self, source: Path, dest: Path) -> bool:
        """Compile a style sheet.

        Raises:
            BuildError: If the compiler rejects the style sheet, for example
                when an override uses a variable the theme does not define.
        """
        try:
            _, body, _ = parse_frontmatter(source.read_text(encoding="utf-8"))
        except FrontMatterError as exc:
            raise BuildError(source, str(exc), exc) from exc

        compiler = self.executable or find_executable("sass", self.source_dir)
        if compiler is None:
            logger.warning(
                "Sass compiler not found; skipping %s. Install it with "
                "`npm install -g sass` or `npm install -D sass` in the site.",
                source.name,
            )
            return False

        args = self.command(compiler, indented=source.suffix.lower() == ".sass")
        try:
            proc = subprocess.run(args, input=body, capture_output=True, text=True)
        except OSError as exc:
            raise BuildError(source, f"Could not run {compiler}: {exc}", exc) from exc
        if proc.returncode:
            detail = proc.stderr.strip() or f"sass exited with {proc.returncode}"
            raise BuildError(source, f"Sass compilation failed: {detail}")

        _write(dest, proc.stdout)
        logger.debug("Compiled %s -> %s", source, dest)
        return True


class ImageProcessor(AssetProcessor):
    """Re-encodes PNG, JPEG and WebP images with Pillow's optimizer.

    The original bytes are kept when re-encoding does not shrink the file
    or Pillow cannot read it.
    """

    suffixes = frozenset({".png", ".jpg", ".jpeg", ".webp"})

    def process(self, source: Path, dest: Path) -> bool:
        try:
            with Image.open(source) as img:
                buffer = io.BytesIO()
                img.save(buffer, format=img.format, optimize=True)
        except (OSError, ValueError) as exc:
            logger.debug("Copying %s unoptimized: %s", source, exc)
            _copy(source, dest)
            return True
        optimized = buffer.getvalue()
        if len(optimized) < source.stat().st_size:
            _write(dest, optimized)
        else:
            _copy(source, dest)
        return True


class JSProcessor(AssetProcessor):
    """Minifies JavaScript; files already named ``*.min.js`` are left alone."""

    suffixes = frozenset({".js"})

    def handles(self, path: Path) -> bool:
        return super().handles(path) and not path.name.lower().endswith(".min.js")

    def process(self, source: Path, dest: Path) -> bool:
        _write(dest, jsmin(source.read_text(encoding="utf-8")))
        return True


class StaticAssetProcessor(AssetProcessor):
    """Copies files unchanged. Handles anything, so it belongs last."""

    def handles(self, path: Path) -> bool:
        return True

    def process(self, source: Path, dest: Path) -> bool:
        _copy(source, dest)
        return True


class AssetProcessorRegistry:
    """Processors in lookup order; the first that handles a file wins."""

    def __init__(self, processors: list[AssetProcessor] | None = None):
        self.processors: list[AssetProcessor] = list(processors or [])

    def register(self, processor: AssetProcessor) -> None:
        self.processors.append(processor)

    def get_processor(self, path: Path) -> AssetProcessor | None:
        return next((p for p in self.processors if p.handles(path)), None)


def create_default_registry(
    source_dir: Path,
    sass_load_paths: list[Path],
    sass_style: str = "expanded",
    sass_executable: str | None = None,
    optimize_images: bool = True,
    minify_js: bool = True,
) -> AssetProcessorRegistry:
    """Create a registry with the default processors.

    Args:
        source_dir: Root directory of the site sources.
        sass_load_paths: Directories searched by Sass imports, in order.
        sass_style: Sass output style.
        sass_executable: Explicit path to the Sass compiler.
        optimize_images: Whether to re-encode images.
        minify_js: Whether to minify JavaScript.
    """
    processors: list[AssetProcessor] = [
        SassProcessor(source_dir, sass_load_paths, sass_style, sass_executable)
    ]
    if optimize_images:
        processors.append(ImageProcessor())
    if minify_js:
        processors.append(JSProcessor())
    processors.append(StaticAssetProcessor())
    return AssetProcessorRegistry(processors)

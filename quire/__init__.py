"""Quire blog generator.

Quire builds a static blog from Markdown posts with YAML front-matter,
Jinja2 layouts and an optional external theme whose Sass partials the site
may override.

The main entry point is the CLI module, which provides commands for
scaffolding a blog, writing new posts, building the site, checking it for
broken links and running the development server.
"""

__all__ = ["__version__"]
__version__ = "0.3.0"

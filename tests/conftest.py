from pathlib import Path

import pytest


@pytest.fixture
def write():
    """Write a file below a root, creating parent directories."""

    def _write(root: Path, rel: str, content: str = "") -> Path:
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def site(tmp_path, write):
    """A small site with layouts, two posts, a draft and a page."""
    root = tmp_path / "blog"
    write(root, "_config.yml", "title: Test Blog\nurl: https://example.com\n")
    write(
        root,
        "_layouts/default.html",
        "<html><head><title>{{ page.title }}</title></head>"
        "<body>{{ content }}</body></html>",
    )
    write(root, "_layouts/post.html", "---\nlayout: default\n---\n<article>{{ content }}</article>")
    write(root, "_layouts/page.html", "---\nlayout: default\n---\n<section>{{ content }}</section>")
    write(
        root,
        "_posts/2024-01-10-first-post.md",
        "---\ntitle: First Post\ntags: [python]\n---\nHello **world**.\n\nMore text.\n",
    )
    write(
        root,
        "_posts/2024-02-20-second-post.md",
        "---\ntitle: Second Post\ncategories: [notes]\ntags: [python, web]\n---\n"
        "Second body.\n",
    )
    write(root, "_drafts/unfinished.md", "---\ntitle: Unfinished\n---\nDraft body.\n")
    write(root, "about.md", "---\ntitle: About\n---\nAbout me.\n")
    write(
        root,
        "index.html",
        "---\nlayout: default\ntitle: Home\n---\n"
        "{% for post in site.posts %}<a href=\"{{ post.url | relative_url }}\">"
        "{{ post.title }}</a>{% endfor %}",
    )
    write(root, "assets/app.js", "function  hello ( ) { return 1 ; }\n")
    write(root, "robots.txt", "User-agent: *\n")
    return root

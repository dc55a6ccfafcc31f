from datetime import datetime

import pytest

from quire.config import load_config
from quire.content import SiteReader
from quire.errors import LayoutError
from quire.renderers import Heading
from quire.templates import TemplateEngine, render_toc
from quire.theme import Theme


def _engine_and_docs(root, **config_overrides):
    config = load_config(root, config_overrides)
    theme = Theme.resolve(root, config.get("theme"))
    contents = SiteReader(root, config, theme=theme).read()
    engine = TemplateEngine(root, config, theme=theme)
    engine.update_site(contents.posts, contents.pages, contents.static_files)
    docs = {d.relative_path.as_posix(): d for d in contents.documents}
    return engine, docs


def test_layout_chain_wraps_content(site):
    engine, docs = _engine_and_docs(site)
    post = docs["_posts/2024-01-10-first-post.md"]
    output = engine.render_page(post)
    assert output.startswith("<html><head><title>First Post</title>")
    assert "<article><p>Hello <strong>world</strong>.</p>" in output
    assert post.excerpt.strip() == "<p>Hello <strong>world</strong>.</p>"


def test_site_variables_in_pages(site):
    engine, docs = _engine_and_docs(site)
    output = engine.render_page(docs["index.html"])
    # newest first
    assert output.index("Second Post") < output.index("First Post")
    assert 'href="/2024/01/10/first-post.html"' in output


def test_relative_url_uses_baseurl(site):
    engine, docs = _engine_and_docs(site, baseurl="/blog")
    output = engine.render_page(docs["index.html"])
    assert 'href="/blog/2024/01/10/first-post.html"' in output


def test_implicit_layout_falls_back_to_default(site):
    (site / "_layouts" / "page.html").unlink()
    engine, docs = _engine_and_docs(site)
    output = engine.render_page(docs["about.md"])
    assert output.startswith("<html>")
    assert "<section>" not in output


def test_missing_explicit_layout_raises(site, write):
    write(site, "notes.md", "---\nlayout: fancy\n---\nx\n")
    engine, docs = _engine_and_docs(site)
    with pytest.raises(LayoutError, match="fancy"):
        engine.render_page(docs["notes.md"])


def test_layout_cycle_is_detected(site, write):
    write(site, "_layouts/a.html", "---\nlayout: b\n---\nA{{ content }}")
    write(site, "_layouts/b.html", "---\nlayout: a\n---\nB{{ content }}")
    write(site, "loop.md", "---\nlayout: a\n---\nx\n")
    engine, docs = _engine_and_docs(site)
    with pytest.raises(LayoutError, match="cycle"):
        engine.render_page(docs["loop.md"])


def test_layout_none_emits_bare_content(site, write):
    write(site, "raw.html", "---\nlayout: null\n---\n<p>{{ site.title }}</p>")
    engine, docs = _engine_and_docs(site)
    assert engine.render_page(docs["raw.html"]) == "<p>Test Blog</p>"


def test_render_templates_can_be_disabled(site, write):
    write(site, "literal.md", "---\nlayout: none\nrender_with_liquid: false\n---\n`{{ x }}`\n")
    engine, docs = _engine_and_docs(site)
    assert "{{ x }}" in engine.render_page(docs["literal.md"])


def test_site_layouts_shadow_theme_layouts(site, write):
    theme = site / "_themes" / "basic"
    write(theme, "_layouts/page.html", "---\nlayout: default\n---\n<div class=theme>{{ content }}</div>")
    write(theme, "_layouts/post.html", "THEME POST")
    write(theme, "_includes/footer.html", "theme footer")
    write(site, "_layouts/page.html", "---\nlayout: default\n---\n{{ content }}{% include 'footer.html' %}")
    engine, docs = _engine_and_docs(site, theme="basic")
    about = engine.render_page(docs["about.md"])
    assert "theme footer" in about
    assert "class=theme" not in about
    # the site's post layout wins over the theme's
    assert "THEME POST" not in engine.render_page(docs["_posts/2024-01-10-first-post.md"])


def test_layout_front_matter_is_exposed(site, write):
    write(site, "_layouts/wide.html", "---\nwidth: full\n---\n<div class={{ layout.width }}>{{ content }}</div>")
    write(site, "wide.md", "---\nlayout: wide\n---\nx\n")
    engine, docs = _engine_and_docs(site)
    assert "<div class=full>" in engine.render_page(docs["wide.md"])


def test_filters(site):
    engine, _ = _engine_and_docs(site, baseurl="/blog", timezone="UTC")

    def render(source, **ctx):
        return engine.render_string(source, ctx)

    assert render("{{ '/a/' | absolute_url }}") == "https://example.com/blog/a/"
    when = datetime(2024, 3, 5, 6, 7, 8)
    assert render("{{ d | date_to_xmlschema }}", d=when) == "2024-03-05T06:07:08+00:00"
    assert render("{{ d | date_to_string }}", d=when) == "05 Mar 2024"
    assert render("{{ d | date_to_long_string }}", d=when) == "05 March 2024"
    assert render("{{ d | date_to_rfc822 }}", d=when) == "Tue, 05 Mar 2024 06:07:08 +0000"
    assert render("{{ 'Hello World' | slugify }}") == "hello-world"
    assert render("{{ '<p>a b</p>' | strip_html }}") == "a b"
    assert render("{{ '<p>a b</p>' | number_of_words }}") == "2"
    assert render("{{ '*x*' | markdownify }}").strip() == "<p><em>x</em></p>"
    assert render("{{ {'a': 1} | jsonify }}") == '{"a": 1}'


def test_site_collections(site):
    engine, _ = _engine_and_docs(site)
    assert engine.render_string("{{ site.tags.python | length }}", {}) == "2"
    assert engine.render_string("{{ site.categories | list | join(',') }}", {}) == "notes"
    assert engine.render_string("{{ site.posts | where('title', 'First Post') | length }}", {}) == "1"


def test_render_toc():
    class Page:
        toc = [Heading("a", "A", 2), Heading("b", "B", 3), Heading("c", "C", 2)]

    html = str(render_toc(Page()))
    assert html == (
        '<ul><li><a href="#a">A</a><ul><li><a href="#b">B</a></li></ul>'
        '</li><li><a href="#c">C</a></li></ul>'
    )


def test_hash_braces_in_bodies_stay_literal(site, write):
    write(
        site,
        "_posts/2024-03-01-bash.md",
        "---\ntitle: Bash\n---\n{{ page.title }} tips\n\n"
        "```bash\necho ${#arr[@]}\n```\n\n```\nlen={#x}\n```\n",
    )
    engine, docs = _engine_and_docs(site)
    post = docs["_posts/2024-03-01-bash.md"]
    engine.render_content(post)
    assert "<p>Bash tips</p>" in post.content
    assert "len={#x}" in post.content
    assert engine.render_string("a{# note #}b", {}) == "ab"

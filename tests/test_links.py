from quire.html_utils import absolute_url, iter_local_links, join_root_url, relative_url
from quire.links import BrokenLink, check_links


def test_url_helpers():
    assert join_root_url("https://example.com/", "about") == "https://example.com/about"
    assert relative_url("/a.css", "/blog") == "/blog/a.css"
    assert relative_url("a.css", "") == "/a.css"
    assert relative_url("", "/blog") == "/blog"
    assert relative_url("https://cdn.example.com/x.js", "/blog") == "https://cdn.example.com/x.js"
    assert relative_url("#top", "/blog") == "#top"
    assert absolute_url("/about/", "https://example.com", "/blog") == "https://example.com/blog/about/"
    assert absolute_url("https://other.org/", "https://example.com", "") == "https://other.org/"


def test_iter_local_links():
    html = (
        '<a href="/about/">a</a><img src=\'/img/my%20cat.png?v=2\'>'
        '<a href="https://x.org/">x</a><a href="#top">t</a><a href="relative.html">r</a>'
        '<a href="//cdn.org/a.js">c</a><a href="/post.html#comments">p</a>'
    )
    assert list(iter_local_links(html)) == ["/about/", "/img/my cat.png", "/post.html"]


def _write(root, rel, text="x"):
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def test_check_links_finds_broken_targets(tmp_path):
    _write(tmp_path, "index.html", '<a href="/about/">ok</a><a href="/missing.html">bad</a>'
           '<a href="/notes">ok too</a><link href="/style.css">')
    _write(tmp_path, "about/index.html")
    _write(tmp_path, "notes.html")
    broken = check_links(tmp_path)
    assert broken == [BrokenLink("index.html", "/missing.html"), BrokenLink("index.html", "/style.css")]
    assert str(broken[0]) == "index.html: broken link to /missing.html"


def test_check_links_with_baseurl(tmp_path):
    _write(tmp_path, "index.html", '<a href="/blog/about.html">ok</a><a href="/about.html">bad</a>')
    _write(tmp_path, "about.html")
    assert check_links(tmp_path, "/blog") == [BrokenLink("index.html", "/about.html")]

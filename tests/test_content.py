from datetime import datetime
from pathlib import PurePosixPath

import pytest

from quire.config import load_config
from quire.content import (
    Document,
    SiteReader,
    find_conflicts,
    link_posts,
    resolve_conflicts,
)
from quire.errors import BuildError
from quire.theme import Theme


def _read(root, **kwargs):
    config = load_config(root)
    reader = SiteReader(root, config, destination=root / "_site")
    return reader.read(**kwargs)


def test_reader_finds_posts_pages_and_static_files(site):
    contents = _read(site)
    assert [p.slug for p in contents.posts] == ["first-post", "second-post"]
    assert sorted(p.url for p in contents.pages) == ["/", "/about.html"]
    static = sorted(s.relative_path.as_posix() for s in contents.static_files)
    assert static == ["assets/app.js", "robots.txt"]
    assert contents.warnings == []


def test_post_metadata(site):
    first, second = _read(site).posts
    assert first.kind == "post"
    assert first.title == "First Post"
    assert first.date == datetime(2024, 1, 10)
    assert first.url == "/2024/01/10/first-post.html"
    assert first.layout == "post"
    assert first.excerpt_source == "Hello **world**."
    assert second.categories == ["notes"]
    assert second.url == "/notes/2024/02/20/second-post.html"
    assert first.next is second and second.previous is first


def test_drafts_only_when_requested(site):
    assert all(not p.draft for p in _read(site).posts)
    posts = _read(site, include_drafts=True).posts
    drafts = [p for p in posts if p.draft]
    assert len(drafts) == 1
    assert drafts[0].kind == "post"
    assert drafts[0].slug == "unfinished"


def test_future_posts_are_skipped(site, write):
    write(site, "_posts/2999-01-01-from-the-future.md", "---\ntitle: Later\n---\nSoon.\n")
    assert "from-the-future" not in [p.slug for p in _read(site).posts]
    now = datetime(2024, 6, 1)
    assert "from-the-future" in [p.slug for p in _read(site, future=True, now=now).posts]


def test_unpublished_and_badly_named_posts(site, write):
    write(site, "_posts/2024-03-01-hidden.md", "---\npublished: false\n---\nx\n")
    write(site, "_posts/no-date.md", "---\ntitle: Nope\n---\nx\n")
    contents = _read(site)
    slugs = [p.slug for p in contents.posts]
    assert "hidden" not in slugs
    assert "no-date" not in slugs
    assert any("no-date.md" in w for w in contents.warnings)


def test_categories_from_parent_directories(site, write):
    write(site, "travel/_posts/2024-04-01-rome.md", "---\ntitle: Rome\n---\nCiao.\n")
    rome = next(p for p in _read(site).posts if p.slug == "rome")
    assert rome.categories == ["travel"]
    assert rome.url == "/travel/2024/04/01/rome.html"


def test_front_matter_overrides(site, write):
    write(
        site,
        "_posts/2024-05-01-ignored-name.md",
        "---\nslug: custom\nlayout: none\npermalink: /special/\nsubtitle: Extra\n---\nx\n",
    )
    post = next(p for p in _read(site).posts if p.slug == "custom")
    assert post.url == "/special/"
    assert post.layout is None
    assert post.subtitle == "Extra"
    assert post.output_path == PurePosixPath("special/index.html")
    with pytest.raises(AttributeError):
        post.not_a_key


def test_excluded_and_hidden_files(site, write):
    write(site, "README.md", "---\ntitle: Readme\n---\n")
    write(site, ".hidden/secret.txt", "x")
    write(site, "_notes/todo.md", "---\n---\n")
    write(site, "_site/old.html", "<p>old</p>")
    contents = _read(site)
    paths = [d.relative_path.as_posix() for d in contents.documents]
    paths += [s.relative_path.as_posix() for s in contents.static_files]
    assert "README.md" not in paths
    assert not any(p.startswith((".hidden", "_notes", "_site")) for p in paths)


def test_sass_partials_and_entry_points(site, write):
    write(site, "_sass/_base.scss", "$x: 1;")
    write(site, "css/partial.scss", "$y: 2;")
    write(site, "css/main.scss", "---\n---\n@import 'base';")
    static = [s.relative_path.as_posix() for s in _read(site).static_files]
    assert "css/main.scss" in static
    assert "css/partial.scss" not in static


def test_theme_static_files_are_merged(site, write, tmp_path):
    theme_root = site / "_themes" / "plain"
    write(theme_root, "assets/css/theme.scss", "---\n---\nbody{}")
    write(theme_root, "assets/img/logo.svg", "<svg/>")
    write(theme_root, "assets/js/app.js", "shadowed")
    write(site, "assets/js/app.js", "mine")
    config = load_config(site)
    reader = SiteReader(site, config, theme=Theme.resolve(site, "plain"))
    static = {s.relative_path.as_posix(): s for s in reader.read().static_files}
    assert static["assets/css/theme.scss"].from_theme
    assert static["assets/img/logo.svg"].from_theme
    assert not static["assets/js/app.js"].from_theme


def test_invalid_front_matter_raises_build_error(site, write):
    bad = write(site, "_posts/2024-06-01-bad.md", "---\ntitle: [oops\n---\nx\n")
    with pytest.raises(BuildError) as excinfo:
        _read(site)
    assert excinfo.value.source_path == bad


def _doc(path, date, url="/same.html"):
    return Document(
        kind="post",
        path=path,
        relative_path=PurePosixPath(path.name),
        front_matter={},
        body="",
        title=path.stem,
        date=date,
        slug="same",
        layout=None,
        url=url,
    )


def test_conflicts_keep_newest(tmp_path):
    old = _doc(tmp_path / "2024-01-01-same.md", datetime(2024, 1, 1))
    new = _doc(tmp_path / "2024-03-01-same.md", datetime(2024, 3, 1))
    other = _doc(tmp_path / "other.md", datetime(2024, 2, 1), url="/other.html")
    conflicts = find_conflicts([old, new, other])
    assert list(conflicts) == [PurePosixPath("same.html")]
    kept, warnings = resolve_conflicts([old, new, other])
    assert kept == [new, other]
    assert len(warnings) == 1
    assert "2024-03-01-same.md" in warnings[0]


def test_link_posts_orders_oldest_first(tmp_path):
    a = _doc(tmp_path / "a.md", datetime(2024, 2, 1))
    b = _doc(tmp_path / "b.md", datetime(2024, 1, 1))
    ordered = link_posts([a, b])
    assert ordered == [b, a]
    assert b.previous is None and b.next is a
    assert a.previous is b and a.next is None

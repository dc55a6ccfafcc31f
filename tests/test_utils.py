from datetime import date, datetime
from pathlib import Path

import pytest

from quire import utils


def test_slugify_and_titleize():
    assert utils.slugify("Hello, World!") == "hello-world"
    assert utils.slugify("  spaced_out  title ") == "spaced-out-title"
    assert utils.slugify("!!!") == "untitled"
    assert utils.titleize("2024-01-02-post-title.md") == "Post Title"
    assert utils.titleize("mixed_case-slug.md") == "Mixed Case Slug"


def test_parse_post_filename():
    assert utils.parse_post_filename("2024-01-15-cool") == (datetime(2024, 1, 15), "cool")
    assert utils.parse_post_filename("2024-1-5-short") == (datetime(2024, 1, 5), "short")
    assert utils.parse_post_filename("invalid") is None
    assert utils.parse_post_filename("2024-13-32-post") is None


def test_coerce_date_accepts_common_formats():
    assert utils.coerce_date(date(2024, 3, 1)) == datetime(2024, 3, 1)
    assert utils.coerce_date("2024-03-01") == datetime(2024, 3, 1)
    assert utils.coerce_date("2024-03-01 10:30") == datetime(2024, 3, 1, 10, 30)
    assert utils.coerce_date("2024-03-01 10:30:00 +0200") == datetime(2024, 3, 1, 8, 30)
    assert utils.coerce_date(
        "2024-03-01T10:30:00+00:00", tz_name="America/New_York"
    ) == datetime(2024, 3, 1, 5, 30)


def test_coerce_date_rejects_garbage():
    with pytest.raises(ValueError):
        utils.coerce_date("next tuesday")
    with pytest.raises(ValueError):
        utils.coerce_date(42)


def test_as_list_and_word_helpers():
    assert utils.as_list(None) == []
    assert utils.as_list("python  web") == ["python", "web"]
    assert utils.as_list(["a", 2, None]) == ["a", "2"]
    assert utils.strip_html("<p>Hello <em>there</em></p>") == "Hello there"
    assert utils.number_of_words("<p>one two</p> three") == 3


def test_file_type_checks():
    assert utils.is_markdown(Path("post.markdown"))
    assert utils.is_html(Path("index.HTML"))
    assert utils.is_sass(Path("style.scss"))
    assert utils.is_document(Path("about.md"))
    assert not utils.is_document(Path("logo.png"))
    assert utils.is_special_name("_layouts")
    assert utils.is_special_name(".git")
    assert utils.is_special_name("notes.md~")
    assert not utils.is_special_name("assets")


def test_ensure_clean_dir(tmp_path):
    target = tmp_path / "build"
    target.mkdir()
    (target / "old.txt").write_text("old", encoding="utf-8")
    utils.ensure_clean_dir(target)
    assert list(target.iterdir()) == []

    missing = tmp_path / "missing-dir"
    utils.ensure_clean_dir(missing)
    assert missing.exists()


def test_build_taxonomy_index():
    class Doc:
        def __init__(self, tags):
            self.tags = tags

    a, b = Doc(["python", "web"]), Doc(["python"])
    index = utils.build_taxonomy_index([a, b], "tags")
    assert index == {"python": [a, b], "web": [a]}

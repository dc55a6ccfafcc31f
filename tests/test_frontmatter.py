import os
from datetime import datetime

import pytest

from quire.errors import FrontMatterError
from quire.frontmatter import (
    CompositeMetadataExtractor,
    DateExtractor,
    TaxonomyExtractor,
    TitleExtractor,
    has_frontmatter,
    parse_frontmatter,
)


def test_parse_frontmatter_splits_body():
    data, body, present = parse_frontmatter("---\ntitle: Hi\n---\nBody text\n")
    assert present
    assert data == {"title": "Hi"}
    assert body == "Body text\n"


def test_parse_frontmatter_empty_block_and_bom():
    data, body, present = parse_frontmatter("\ufeff---\n---\nBody")
    assert present
    assert data == {}
    assert body == "Body"


def test_parse_frontmatter_absent():
    data, body, present = parse_frontmatter("# Just markdown\n")
    assert not present
    assert data == {}
    assert body == "# Just markdown\n"


def test_parse_frontmatter_errors():
    with pytest.raises(FrontMatterError):
        parse_frontmatter("---\ntitle: [oops\n---\nbody")
    with pytest.raises(FrontMatterError, match="mapping"):
        parse_frontmatter("---\n- a\n- b\n---\nbody")


def test_has_frontmatter(tmp_path):
    with_fm = tmp_path / "a.md"
    with_fm.write_text("---\ntitle: x\n---\n", encoding="utf-8")
    without = tmp_path / "b.md"
    without.write_text("plain", encoding="utf-8")
    assert has_frontmatter(with_fm)
    assert not has_frontmatter(without)
    assert not has_frontmatter(tmp_path / "missing.md")


def test_title_extractor_fallbacks(tmp_path):
    extractor = TitleExtractor()
    path = tmp_path / "2024-01-01-my-first-post.md"
    assert extractor.extract("", path, {"front_matter": {"title": "Given"}}) == {
        "title": "Given"
    }
    body = "```\n# not a heading\n```\n\n# Real Heading\n"
    assert extractor.extract(body, path, {"front_matter": {}, "body": body}) == {
        "title": "Real Heading"
    }
    assert extractor.extract("text", path, {"front_matter": {}, "body": "text"}) == {
        "title": "My First Post"
    }


def test_date_extractor_order(tmp_path):
    path = tmp_path / "2024-05-06-post.md"
    path.write_text("x", encoding="utf-8")
    extractor = DateExtractor()
    assert extractor.extract("", path, {"front_matter": {"date": "2023-01-02 03:04"}}) == {
        "date": datetime(2023, 1, 2, 3, 4)
    }
    assert extractor.extract("", path, {"front_matter": {}}) == {"date": datetime(2024, 5, 6)}

    page = tmp_path / "about.md"
    page.write_text("x", encoding="utf-8")
    os.utime(page, (1_700_000_000, 1_700_000_000))
    assert extractor.extract("", page, {"front_matter": {}})["date"] == datetime.fromtimestamp(
        1_700_000_000
    )


def test_date_extractor_invalid_date(tmp_path):
    with pytest.raises(FrontMatterError):
        DateExtractor().extract("", tmp_path / "a.md", {"front_matter": {"date": "soon"}})


def test_taxonomy_extractor_accepts_singular_keys(tmp_path):
    extractor = TaxonomyExtractor()
    result = extractor.extract(
        "", tmp_path / "a.md", {"front_matter": {"tag": "python", "categories": "a b"}}
    )
    assert result == {"tags": ["python"], "categories": ["a", "b"]}


def test_composite_extractor(tmp_path):
    path = tmp_path / "2024-02-03-hello.md"
    content = "---\ntags: [x, y]\n---\n# Hello there\n\nBody\n"
    path.write_text(content, encoding="utf-8")
    meta = CompositeMetadataExtractor().extract(content, path)
    assert meta["title"] == "Hello there"
    assert meta["date"] == datetime(2024, 2, 3)
    assert meta["tags"] == ["x", "y"]
    assert meta["body"].startswith("# Hello there")


def test_composite_extractor_add_extractor(tmp_path):
    class WordCount:
        def extract(self, content, path, found):
            return {"words": len(found["body"].split())}

    composite = CompositeMetadataExtractor()
    composite.add_extractor(WordCount())
    path = tmp_path / "2024-02-03-x.md"
    path.write_text("one two three", encoding="utf-8")
    assert composite.extract("one two three", path)["words"] == 3

import datetime as dt
import os
from pathlib import Path

import pytest

from pressgen.config import SiteConfig
from pressgen.content import load_documents, parse_list, slugify, split_front_matter
from pressgen.errors import ParseError

from conftest import write_post


@pytest.mark.parametrize(
    "text, expected",
    [
        ("Hello World", "hello-world"),
        ("Hello, World!", "hello-world"),
        ("  C++ & Rust  ", "c-rust"),
        ("snake_case title", "snake-case-title"),
    ],
)
def test_slugify(text, expected):
    assert slugify(text) == expected


def test_parse_list_accepts_strings_and_lists():
    assert parse_list("a, b ,c") == ("a", "b", "c")
    assert parse_list("[x, 'y']") == ("x", "y")
    assert parse_list(["a", ["b", "c"]]) == ("a", "b", "c")
    assert parse_list(None) == ()


def test_front_matter_yaml_block():
    meta, body = split_front_matter("---\ntitle: Hi\ntags: [a, b]\ndate: 2020-09-26\n---\nBody\n")
    assert meta["title"] == "Hi"
    assert meta["tags"] == ["a", "b"]
    assert meta["date"] == dt.date(2020, 9, 26)
    assert body == "Body"


def test_front_matter_hexo_style_block():
    meta, body = split_front_matter("title: Hi\ndate: 2020-01-01\n---\nBody")
    assert meta["title"] == "Hi"
    assert body == "Body"


def test_no_front_matter():
    meta, body = split_front_matter("# Title\n\nText")
    assert meta == {}
    assert body == "# Title\n\nText"


def test_malformed_front_matter_raises():
    with pytest.raises(ParseError) as info:
        split_front_matter("---\ntitle: [unclosed\n---\nBody", "_posts/bad.md")
    assert info.value.path == "_posts/bad.md"


def test_unclosed_front_matter_raises():
    with pytest.raises(ParseError):
        split_front_matter("---\ntitle: Hi\nBody")


def test_load_documents(site: Path):
    config = SiteConfig.from_mapping({})
    write_post(site, "hello.md", "Hello World", "2020-09-26", tags="[intro, news]")
    (site / "source" / "about.md").write_text("# About us\n\nText", encoding="utf-8")
    (site / "source" / "images").mkdir()
    (site / "source" / "images" / "logo.png").write_bytes(b"png")

    result = load_documents(site / "source", config)

    assert result.errors == []
    by_id = {doc.id: doc for doc in result.documents}
    post = by_id["_posts/hello.md"]
    assert post.kind == "post"
    assert post.title == "Hello World"
    assert post.date == dt.datetime(2020, 9, 26)
    assert post.tags == ("intro", "news")
    assert post.categories == ("uncategorized",)
    assert post.layout == "post"
    page = by_id["about.md"]
    assert page.kind == "page"
    assert page.title == "About us"
    assert page.categories == ()
    assert [asset.source for asset in result.assets] == ["images/logo.png"]


def test_bad_document_is_skipped_with_warning(site: Path, capsys):
    config = SiteConfig.from_mapping({})
    write_post(site, "good.md", "Good", "2020-01-01")
    bad = site / "source" / "_posts" / "bad.md"
    bad.write_text("---\ntitle: [oops\n---\nBody", encoding="utf-8")

    result = load_documents(site / "source", config, workers=4)

    assert [doc.id for doc in result.documents] == ["_posts/good.md"]
    assert [error.path for error in result.errors] == ["_posts/bad.md"]
    assert "WARN skipping _posts/bad.md" in capsys.readouterr().err


def test_exclude_and_hidden_paths(site: Path):
    config = SiteConfig.from_mapping({"exclude": ["v2/examples/vue-20-*/*"]})
    example = site / "source" / "v2" / "examples" / "vue-20-todo" / "index.md"
    example.parent.mkdir(parents=True)
    example.write_text("# Example", encoding="utf-8")
    (site / "source" / "_partials").mkdir()
    (site / "source" / "_partials" / "nav.md").write_text("# Nav", encoding="utf-8")
    (site / "source" / ".hidden.md").write_text("# Hidden", encoding="utf-8")
    write_post(site, "kept.md", "Kept", "2020-01-01")

    result = load_documents(site / "source", config)

    assert [doc.id for doc in result.documents] == ["_posts/kept.md"]


def test_drafts_are_dropped_unless_requested(site: Path):
    config = SiteConfig.from_mapping({})
    write_post(site, "wip.md", "Work in progress", "2020-01-01", draft="true")
    drafts = site / "source" / "_drafts"
    drafts.mkdir()
    (drafts / "idea.md").write_text("---\ntitle: Idea\ndate: 2020-02-02\n---\nText", encoding="utf-8")

    assert load_documents(site / "source", config).documents == []
    with_drafts = load_documents(site / "source", config, include_drafts=True)
    assert sorted(doc.id for doc in with_drafts.documents) == ["_drafts/idea.md", "_posts/wip.md"]
    assert all(doc.draft for doc in with_drafts.documents)


@pytest.mark.parametrize("value", ["2020-13-45", "2020-02-30"])
def test_impossible_date_raises_parse_error(value):
    with pytest.raises(ParseError) as info:
        split_front_matter(f"---\ntitle: Hi\ndate: {value}\n---\nBody", "_posts/bad-date.md")
    assert info.value.path == "_posts/bad-date.md"


def test_impossible_date_in_hexo_block_is_not_front_matter():
    meta, body = split_front_matter("date: 2020-13-45\n---\nBody")
    assert meta == {}
    assert body.startswith("date: 2020-13-45")


def test_impossible_date_is_skipped_with_warning(site: Path, capsys):
    config = SiteConfig.from_mapping({})
    write_post(site, "good.md", "Good", "2020-01-01")
    write_post(site, "later.md", "Later", "2020-13-45")

    result = load_documents(site / "source", config, workers=2)

    assert [doc.id for doc in result.documents] == ["_posts/good.md"]
    assert [error.path for error in result.errors] == ["_posts/later.md"]
    assert "WARN skipping _posts/later.md" in capsys.readouterr().err


def test_mtime_date_is_part_of_content_hash(site: Path):
    config = SiteConfig.from_mapping({})
    undated = site / "source" / "_posts" / "undated.md"
    undated.write_text("---\ntitle: Undated\n---\nBody", encoding="utf-8")
    dated = write_post(site, "dated.md", "Dated", "2020-01-01", updated="2020-01-02")

    before = {doc.id: doc.content_hash for doc in load_documents(site / "source", config).documents}
    os.utime(undated, (1_600_000_000, 1_600_000_000))
    os.utime(dated, (1_600_000_000, 1_600_000_000))
    after = {doc.id: doc.content_hash for doc in load_documents(site / "source", config).documents}

    assert before["_posts/undated.md"] != after["_posts/undated.md"]
    assert before["_posts/dated.md"] == after["_posts/dated.md"]

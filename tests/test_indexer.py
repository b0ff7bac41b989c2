import datetime as dt

import pytest

from pressgen.config import SiteConfig
from pressgen.indexer import build_collections, chronological
from pressgen.pager import paginate

from conftest import make_document


def posts():
    return [
        make_document(source="_posts/a.md", title="A", date=dt.datetime(2020, 1, 5), tags=("python",)),
        make_document(source="_posts/b.md", title="B", date=dt.datetime(2020, 3, 1), tags=("python", "web")),
        make_document(
            source="_posts/c.md", title="C", date=dt.datetime(2021, 3, 1), tags=("web",), categories=("Guides",)
        ),
        make_document(source="about.md", kind="page", title="About", date=dt.datetime(2022, 1, 1), categories=()),
    ]


def by_key(collections):
    return {collection.key: collection for collection in collections}


@pytest.mark.parametrize("per_page", [0, 1, 2, 3, 7])
def test_pages_reassemble_sequence(per_page):
    ids = [f"doc-{i}" for i in range(7)]
    pages = paginate(ids, per_page, "tags/x/", "page")
    joined = [doc_id for page in pages for doc_id in page.doc_ids]
    assert joined == ids
    assert [page.number for page in pages] == list(range(1, len(pages) + 1))
    assert all(page.total == len(pages) for page in pages)
    if per_page > 0:
        assert all(len(page.doc_ids) <= per_page for page in pages)


def test_per_page_zero_is_single_page():
    pages = paginate(["a", "b", "c"], 0, "", "page")
    assert len(pages) == 1
    assert pages[0].doc_ids == ("a", "b", "c")
    assert pages[0].prev_url is None and pages[0].next_url is None


def test_page_urls_and_links():
    pages = paginate(["a", "b", "c"], 2, "archives/", "page")
    assert [page.url for page in pages] == ["archives/", "archives/page/2/"]
    assert pages[0].next_url == "archives/page/2/"
    assert pages[1].prev_url == "archives/"
    assert pages[1].doc_ids == ("c",)


def test_empty_sequence_has_one_page():
    pages = paginate([], 5)
    assert len(pages) == 1 and pages[0].doc_ids == ()


def test_ties_keep_load_order():
    same = dt.datetime(2020, 1, 1)
    docs = [make_document(source=f"_posts/{name}.md", date=same) for name in "xyz"]
    assert [doc.id for doc in chronological(docs)] == ["_posts/x.md", "_posts/y.md", "_posts/z.md"]


def test_collections_group_posts():
    config = SiteConfig.from_mapping({"per_page": 2})
    collections = by_key(build_collections(posts(), config))

    assert collections["index:index"].doc_ids == ("_posts/c.md", "_posts/b.md", "_posts/a.md")
    assert collections["tag:python"].doc_ids == ("_posts/b.md", "_posts/a.md")
    assert collections["tag:web"].base_url == "tags/web/"
    assert collections["category:uncategorized"].doc_ids == ("_posts/b.md", "_posts/a.md")
    assert collections["category:Guides"].base_url == "categories/guides/"
    assert collections["archive:all"].doc_ids == ("_posts/c.md", "_posts/b.md", "_posts/a.md")
    assert collections["archive:2020"].base_url == "archives/2020/"
    assert collections["archive:2020-03"].doc_ids == ("_posts/b.md",)
    assert collections["archive:2021-03"].base_url == "archives/2021/03/"
    assert all("about.md" not in collection.doc_ids for collection in collections.values())


def test_collection_modes():
    config = SiteConfig.from_mapping({"per_page": 1, "tag": 0, "category": 1, "archive": 2})
    collections = by_key(build_collections(posts(), config))

    assert not any(key.startswith("tag:") for key in collections)
    category = collections["category:uncategorized"]
    assert category.paginate is False
    assert len(category.pages("page")) == 1
    assert len(collections["archive:all"].pages("page")) == 3


def test_sticky_posts_lead_the_index():
    config = SiteConfig.from_mapping({})
    docs = posts()
    docs[0] = make_document(
        source="_posts/a.md", title="A", date=dt.datetime(2020, 1, 5), meta={"sticky": 10}
    )
    index = by_key(build_collections(docs, config))["index:index"]
    assert index.doc_ids[0] == "_posts/a.md"


def test_terms_with_the_same_slug_share_a_collection():
    config = SiteConfig.from_mapping({"per_page": 10})
    docs = [
        make_document(source="_posts/a.md", date=dt.datetime(2020, 1, 1), tags=("Python",), categories=("C++",)),
        make_document(source="_posts/b.md", date=dt.datetime(2021, 1, 1), tags=("python",), categories=("C#",)),
        make_document(source="_posts/c.md", date=dt.datetime(2022, 1, 1), tags=("Python", "python")),
    ]

    collections = build_collections(docs, config)
    tags = [collection for collection in collections if collection.kind == "tag"]
    categories = {collection.key: collection for collection in collections if collection.kind == "category"}

    assert len(tags) == 1
    assert tags[0].name == "Python"
    assert tags[0].base_url == "tags/python/"
    assert tags[0].doc_ids == ("_posts/c.md", "_posts/b.md", "_posts/a.md")
    assert categories["category:C#"].base_url == "categories/c/"
    assert categories["category:C#"].doc_ids == ("_posts/b.md", "_posts/a.md")
    assert "category:C++" not in categories

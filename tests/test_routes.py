import datetime as dt

import pytest

from pressgen.config import SiteConfig
from pressgen.errors import RouteConflictError
from pressgen.routes import (
    RouteTable,
    page_url,
    paged_url,
    resolve_permalink,
    resolve_routes,
    tag_url,
    url_to_path,
)

from conftest import make_document


def test_permalink_from_date_and_title():
    config = SiteConfig.from_mapping({"permalink": ":year/:month/:day/:title/"})
    document = make_document(date=dt.datetime(2020, 9, 26), title="Hello World")
    assert resolve_permalink(document, config) == "2020/09/26/hello-world/"


def test_permalink_extra_tokens():
    config = SiteConfig.from_mapping({"permalink": ":category/:i_month/:i_day/:name.html"})
    document = make_document(date=dt.datetime(2021, 3, 4), categories=("Guides",), slug="my-file")
    assert resolve_permalink(document, config) == "guides/3/4/my-file.html"


def test_front_matter_permalink_overrides_template():
    config = SiteConfig.from_mapping({})
    document = make_document(permalink="/custom/path/")
    assert resolve_permalink(document, config) == "custom/path/"


def test_category_map_override():
    config = SiteConfig.from_mapping({"permalink": ":category/:title/", "category_map": {"C#": "csharp"}})
    document = make_document(categories=("C#",))
    assert resolve_permalink(document, config) == "csharp/hello-world/"


@pytest.mark.parametrize(
    "source, expected",
    [
        ("about.md", "about.html"),
        ("about/index.md", "about/"),
        ("index.md", ""),
        ("guide/intro.markdown", "guide/intro.html"),
    ],
)
def test_page_urls(source, expected):
    assert page_url(source) == expected


@pytest.mark.parametrize(
    "url, expected",
    [
        ("", "index.html"),
        ("2020/09/26/hello-world/", "2020/09/26/hello-world/index.html"),
        ("about.html", "about.html"),
        ("/custom/path", "custom/path/index.html"),
        ("atom.xml", "atom.xml"),
    ],
)
def test_url_to_path(url, expected):
    assert url_to_path(url) == expected


def test_paged_url():
    assert paged_url("", 1, "page") == ""
    assert paged_url("", 2, "page") == "page/2/"
    assert paged_url("tags/python/", 3, "page") == "tags/python/page/3/"


def test_tag_url_uses_tag_dir():
    config = SiteConfig.from_mapping({"tag_dir": "labels"})
    assert tag_url("Web API", config) == "labels/web-api/"


def test_duplicate_routes_conflict():
    config = SiteConfig.from_mapping({})
    first = make_document(source="_posts/a.md")
    second = make_document(source="_posts/b.md")
    with pytest.raises(RouteConflictError) as info:
        resolve_routes([first, second], config)
    assert info.value.url == "2020/09/26/hello-world/"
    assert {info.value.first, info.value.second} == {"_posts/a.md", "_posts/b.md"}


def test_conflicts_compare_output_paths():
    table = RouteTable()
    table.add("docs/", "a")
    with pytest.raises(RouteConflictError):
        table.add("docs/index.html", "b")
    with pytest.raises(RouteConflictError):
        table.claim("docs/index.html", "c")
    assert table.owner("docs/index.html") == "a"

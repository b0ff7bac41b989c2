from __future__ import annotations

import datetime as dt
import hashlib
import html
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from types import MappingProxyType
from typing import Callable, Mapping, Sequence

from .config import FULLY_DISABLED, SiteConfig
from .content import Document
from .indexer import Collection
from .pager import Page
from .render import RenderedBody, render_template
from .routes import category_url, tag_url
from .utils import format_moment

LAYOUT_SHELL = "layout"
BUILTIN_LAYOUTS = ("layout", "post", "page", "index", "archive", "tag", "category")
RAW_LAYOUT = "false"
LISTING_LAYOUTS = {"index", "archive", "tag", "category"}


@dataclass(frozen=True)
class ListingEntry:
    id: str
    title: str
    url: str
    date: dt.datetime
    excerpt: str
    tags: tuple[str, ...] = ()
    categories: tuple[str, ...] = ()


def builtin_templates() -> dict[str, str]:
    package = resources.files("pressgen") / "templates"
    return {name: (package / f"{name}.html").read_text(encoding="utf-8") for name in BUILTIN_LAYOUTS}


class Theme:
    """A set of layout templates, with built-in fallbacks for anything missing."""

    def __init__(self, name: str, templates: Mapping[str, str]):
        self.name = name
        self.templates = MappingProxyType(dict(templates))
        digest = hashlib.sha256(name.encode("utf-8"))
        for key in sorted(self.templates):
            digest.update(b"\0" + key.encode("utf-8") + b"\0" + self.templates[key].encode("utf-8"))
        self.fingerprint = digest.hexdigest()

    @classmethod
    def load(cls, project_root: Path, name: str) -> "Theme":
        templates = builtin_templates()
        layout_dir = project_root / "themes" / name / "layout"
        if layout_dir.is_dir():
            for path in sorted(layout_dir.glob("*.html")):
                templates[path.stem] = path.read_text(encoding="utf-8")
        return cls(name, templates)

    def template(self, layout: str, fallback: str) -> str:
        return self.templates.get(layout) or self.templates[fallback]

    def wrap(self, config: SiteConfig, title: str, content: str, extra_head: str = "") -> str:
        return render_template(
            self.templates[LAYOUT_SHELL],
            title=html.escape(title),
            site_title=html.escape(config.title),
            subtitle=html.escape(config.subtitle),
            description=html.escape(config.description),
            author=html.escape(config.author),
            language=html.escape(config.language),
            root=config.root,
            nav=site_nav(config),
            extra_head=extra_head or feed_link(config),
            content=content,
        )


def url_for(config: SiteConfig, url: str) -> str:
    return f"{config.root}{url.lstrip('/')}"


def site_nav(config: SiteConfig) -> str:
    if config.archive == FULLY_DISABLED:
        return ""
    return f'<a href="{url_for(config, config.archive_dir + "/")}">Archives</a>'


def feed_link(config: SiteConfig) -> str:
    if config.feed is None:
        return ""
    mime = "application/atom+xml" if config.feed.type == "atom" else "application/rss+xml"
    return f'<link rel="alternate" type="{mime}" href="{url_for(config, config.feed.path)}" title="{html.escape(config.title)}">'


def display_date(config: SiteConfig, value: dt.datetime) -> str:
    return format_moment(value, config.date_format)


def chips(config: SiteConfig, names: Sequence[str], kind: str) -> str:
    if kind == "tag":
        if config.tag == FULLY_DISABLED:
            return " ".join(f'<span class="chip">{html.escape(name)}</span>' for name in names)
        return " ".join(
            f'<a class="chip" href="{url_for(config, tag_url(name, config))}">{html.escape(name)}</a>' for name in names
        )
    if config.category == FULLY_DISABLED:
        return " ".join(f'<span class="chip">{html.escape(name)}</span>' for name in names)
    return " ".join(
        f'<a class="chip" href="{url_for(config, category_url(name, config))}">{html.escape(name)}</a>'
        for name in names
    )


def build_pagination(config: SiteConfig, page: Page) -> str:
    if page.total <= 1:
        return ""
    items = []
    if page.prev_url is not None:
        items.append(f'<a class="page-link" href="{url_for(config, page.prev_url)}">Previous</a>')
    else:
        items.append('<span class="page-link is-disabled">Previous</span>')
    items.append(f'<span class="page-number is-active">{page.number} / {page.total}</span>')
    if page.next_url is not None:
        items.append(f'<a class="page-link" href="{url_for(config, page.next_url)}">Next</a>')
    else:
        items.append('<span class="page-link is-disabled">Next</span>')
    return f'<nav class="pagination">{"".join(items)}</nav>'


def post_context(config: SiteConfig, document: Document, body: RenderedBody) -> dict[str, str]:
    return {
        "title": html.escape(document.title),
        "date": display_date(config, document.date),
        "datetime": document.date.isoformat(),
        "tags": chips(config, document.tags, "tag"),
        "categories": chips(config, document.categories, "category"),
        "toc": body.toc,
        "content": body.html,
    }


def page_context(config: SiteConfig, document: Document, body: RenderedBody) -> dict[str, str]:
    return {
        "title": html.escape(document.title),
        "date": display_date(config, document.updated),
        "toc": body.toc,
        "content": body.html,
    }


DOCUMENT_CONTEXTS: dict[str, Callable[[SiteConfig, Document, RenderedBody], dict[str, str]]] = {
    "post": post_context,
    "page": page_context,
}


def render_document(theme: Theme, config: SiteConfig, document: Document, body: RenderedBody) -> str:
    if document.layout == RAW_LAYOUT:
        return body.html
    fallback = "post" if document.is_post else "page"
    layout = fallback if document.layout in LISTING_LAYOUTS else document.layout
    context_builder = DOCUMENT_CONTEXTS.get(layout, DOCUMENT_CONTEXTS[fallback])
    inner = render_template(theme.template(layout, fallback), **context_builder(config, document, body))
    return theme.wrap(config, f"{document.title} | {config.title}", inner)


def entry_card(config: SiteConfig, entry: ListingEntry) -> str:
    return (
        '<article class="post-card">'
        '<div class="post-meta">'
        f'<time datetime="{entry.date.isoformat()}">{display_date(config, entry.date)}</time>'
        f'<span class="post-categories">{chips(config, entry.categories, "category")}</span>'
        "</div>"
        f'<h2 class="post-title"><a href="{url_for(config, entry.url)}">{html.escape(entry.title)}</a></h2>'
        f'<div class="post-excerpt">{entry.excerpt}</div>'
        f'<a class="post-more" href="{url_for(config, entry.url)}">Read more</a>'
        "</article>"
    )


def entry_row(config: SiteConfig, entry: ListingEntry) -> str:
    return (
        f'<li><time class="archive-date" datetime="{entry.date.isoformat()}">{display_date(config, entry.date)}</time>'
        f'<a href="{url_for(config, entry.url)}">{html.escape(entry.title)}</a></li>'
    )


def listing_heading(collection: Collection) -> str:
    if collection.kind == "archive":
        return "Archives" if collection.name == "all" else f"Archives: {collection.name}"
    return collection.name


def index_context(config: SiteConfig, collection: Collection, page: Page, entries: Sequence[ListingEntry]) -> dict:
    return {
        "heading": html.escape(config.title),
        "count": str(len(collection.doc_ids)),
        "items": "\n".join(entry_card(config, entry) for entry in entries),
        "pagination": build_pagination(config, page) if collection.paginate else "",
    }


def archive_context(config: SiteConfig, collection: Collection, page: Page, entries: Sequence[ListingEntry]) -> dict:
    return {
        "heading": html.escape(listing_heading(collection)),
        "count": str(len(collection.doc_ids)),
        "items": "\n".join(entry_row(config, entry) for entry in entries),
        "pagination": build_pagination(config, page) if collection.paginate else "",
    }


def term_context(config: SiteConfig, collection: Collection, page: Page, entries: Sequence[ListingEntry]) -> dict:
    context = index_context(config, collection, page, entries)
    context["heading"] = html.escape(listing_heading(collection))
    return context


LISTING_CONTEXTS: dict[str, Callable[[SiteConfig, Collection, Page, Sequence[ListingEntry]], dict]] = {
    "index": index_context,
    "archive": archive_context,
    "tag": term_context,
    "category": term_context,
}


def render_listing(
    theme: Theme, config: SiteConfig, collection: Collection, page: Page, entries: Sequence[ListingEntry]
) -> str:
    context_builder = LISTING_CONTEXTS.get(collection.kind, index_context)
    inner = render_template(theme.template(collection.kind, "index"), **context_builder(config, collection, page, entries))
    if collection.kind == "index":
        title = config.title
    else:
        title = f"{listing_heading(collection)} | {config.title}"
    if page.number > 1:
        title = f"{title} | Page {page.number}"
    return theme.wrap(config, title, inner)


def render_alias(config: SiteConfig, target: str) -> str:
    href = html.escape(url_for(config, target))
    return (
        "<!DOCTYPE html>\n"
        '<html><head><meta charset="utf-8">'
        f'<meta http-equiv="refresh" content="0; url={href}">'
        f'<link rel="canonical" href="{href}">'
        f'<title>Redirecting</title></head><body><a href="{href}">{href}</a></body></html>\n'
    )

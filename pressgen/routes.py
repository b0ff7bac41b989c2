from __future__ import annotations

import posixpath
import re
from typing import Mapping

from .config import SiteConfig
from .content import Document, slugify
from .errors import RouteConflictError

TOKEN_RE = re.compile(r":(i_month|i_day|post_title|year|month|day|hour|minute|second|title|name|category)")


def term_slug(name: str, overrides: Mapping[str, str]) -> str:
    if name in overrides:
        return overrides[name]
    return slugify(name) or "untitled"


def title_slug(document: Document) -> str:
    return slugify(document.title) or document.slug


def permalink_tokens(document: Document, config: SiteConfig) -> dict[str, str]:
    date = document.date
    category = document.categories[0] if document.categories else config.default_category
    return {
        "year": f"{date.year:04d}",
        "month": f"{date.month:02d}",
        "day": f"{date.day:02d}",
        "i_month": str(date.month),
        "i_day": str(date.day),
        "hour": f"{date.hour:02d}",
        "minute": f"{date.minute:02d}",
        "second": f"{date.second:02d}",
        "title": title_slug(document),
        "post_title": title_slug(document),
        "name": document.slug,
        "category": term_slug(category, config.category_map) if category else "",
    }


def expand_permalink(template: str, tokens: Mapping[str, str]) -> str:
    return TOKEN_RE.sub(lambda match: tokens[match.group(1)], template)


def normalize_url(url: str) -> str:
    url = url.strip().lstrip("/")
    url = re.sub(r"/{2,}", "/", url)
    return url


def resolve_permalink(document: Document, config: SiteConfig) -> str:
    """Return the public URL (relative to the site root) for ``document``."""
    if document.permalink:
        template = document.permalink
    elif document.is_post:
        template = config.permalink
    else:
        return page_url(document.source)
    return normalize_url(expand_permalink(template, permalink_tokens(document, config)))


def page_url(source: str) -> str:
    stem, _ = posixpath.splitext(source)
    if posixpath.basename(stem) == "index":
        parent = posixpath.dirname(stem)
        return f"{parent}/" if parent else ""
    return f"{stem}.html"


def url_to_path(url: str) -> str:
    """Map a URL to the output file path it is written to."""
    url = normalize_url(url)
    if not url or url.endswith("/"):
        return f"{url}index.html"
    if not posixpath.splitext(posixpath.basename(url))[1]:
        return f"{url}/index.html"
    return url


def paged_url(base_url: str, number: int, pagination_dir: str) -> str:
    if number <= 1:
        return base_url
    prefix = base_url if not base_url or base_url.endswith("/") else f"{base_url}/"
    return f"{prefix}{pagination_dir}/{number}/"


def tag_url(name: str, config: SiteConfig) -> str:
    return f"{config.tag_dir}/{term_slug(name, config.tag_map)}/"


def category_url(name: str, config: SiteConfig) -> str:
    return f"{config.category_dir}/{term_slug(name, config.category_map)}/"


def archive_url(config: SiteConfig, year: int | None = None, month: int | None = None) -> str:
    if year is None:
        return f"{config.archive_dir}/"
    if month is None:
        return f"{config.archive_dir}/{year:04d}/"
    return f"{config.archive_dir}/{year:04d}/{month:02d}/"


class RouteTable:
    """Maps output paths to the source that produces them."""

    def __init__(self) -> None:
        self._owners: dict[str, str] = {}
        self._urls: dict[str, str] = {}

    def add(self, url: str, source: str) -> str:
        path = self.claim(url_to_path(url), source, url)
        self._urls[source] = url
        return path

    def claim(self, path: str, source: str, url: str | None = None) -> str:
        owner = self._owners.get(path)
        if owner is not None and owner != source:
            raise RouteConflictError(url if url is not None else path, owner, source)
        self._owners[path] = source
        return path

    def url_for(self, source: str) -> str:
        return self._urls[source]

    def owner(self, path: str) -> str | None:
        return self._owners.get(path)

    def paths(self) -> set[str]:
        return set(self._owners)


def resolve_routes(documents: list[Document], config: SiteConfig) -> RouteTable:
    table = RouteTable()
    for document in documents:
        table.add(resolve_permalink(document, config), document.id)
    return table

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable

from .config import FULLY_DISABLED, NO_PAGINATION, SiteConfig
from .content import Document
from .pager import Page, paginate
from .routes import archive_url, category_url, tag_url
from .utils import parse_int


@dataclass(frozen=True)
class Collection:
    kind: str
    name: str
    base_url: str
    doc_ids: tuple[str, ...]
    per_page: int
    paginate: bool

    @property
    def key(self) -> str:
        return f"{self.kind}:{self.name}"

    def pages(self, pagination_dir: str) -> tuple[Page, ...]:
        return paginate(self.doc_ids, self.per_page if self.paginate else 0, self.base_url, pagination_dir)


def chronological(posts: Iterable[Document]) -> list[Document]:
    # sorted() is stable, so equal dates keep load order.
    return sorted(posts, key=lambda doc: doc.date, reverse=True)


def sticky_first(posts: list[Document]) -> list[Document]:
    return sorted(posts, key=lambda doc: -parse_int(doc.meta.get("sticky"), 0))


def _collection(kind: str, name: str, base_url: str, docs: list[Document], mode: int, per_page: int) -> Collection:
    return Collection(
        kind=kind,
        name=name,
        base_url=base_url,
        doc_ids=tuple(doc.id for doc in docs),
        per_page=per_page,
        paginate=mode != NO_PAGINATION and per_page > 0,
    )


def term_buckets(
    posts: list[Document], attribute: str, url_of: Callable[[str], str]
) -> list[tuple[str, list[Document]]]:
    """Group posts by tag or category, merging names that resolve to the same URL.

    The first name seen names the bucket. Posts keep the order of ``posts``.
    """
    buckets: dict[str, tuple[str, list[Document]]] = {}
    for post in posts:
        for term in getattr(post, attribute):
            _, docs = buckets.setdefault(url_of(term), (term, []))
            if not docs or docs[-1] is not post:
                docs.append(post)
    return sorted(buckets.values(), key=lambda bucket: bucket[0].lower())


def build_collections(documents: Iterable[Document], config: SiteConfig) -> tuple[Collection, ...]:
    posts = chronological(doc for doc in documents if doc.is_post)
    collections = [
        Collection(
            kind="index",
            name="index",
            base_url="",
            doc_ids=tuple(doc.id for doc in sticky_first(posts)),
            per_page=config.per_page,
            paginate=config.per_page > 0,
        )
    ]

    if config.tag != FULLY_DISABLED:
        for name, docs in term_buckets(posts, "tags", lambda term: tag_url(term, config)):
            collections.append(_collection("tag", name, tag_url(name, config), docs, config.tag, config.per_page))

    if config.category != FULLY_DISABLED:
        for name, docs in term_buckets(posts, "categories", lambda term: category_url(term, config)):
            collections.append(
                _collection("category", name, category_url(name, config), docs, config.category, config.per_page)
            )

    if config.archive != FULLY_DISABLED:
        years: dict[int, list[Document]] = {}
        months: dict[tuple[int, int], list[Document]] = {}
        for post in posts:
            years.setdefault(post.date.year, []).append(post)
            months.setdefault((post.date.year, post.date.month), []).append(post)
        collections.append(_collection("archive", "all", archive_url(config), posts, config.archive, config.per_page))
        for year in sorted(years, reverse=True):
            collections.append(
                _collection("archive", f"{year:04d}", archive_url(config, year), years[year], config.archive, config.per_page)
            )
        for year, month in sorted(months, reverse=True):
            collections.append(
                _collection(
                    "archive",
                    f"{year:04d}-{month:02d}",
                    archive_url(config, year, month),
                    months[(year, month)],
                    config.archive,
                    config.per_page,
                )
            )
    return tuple(collections)

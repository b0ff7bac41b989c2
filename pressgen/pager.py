from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

from .routes import paged_url


@dataclass(frozen=True)
class Page:
    number: int
    total: int
    doc_ids: tuple[str, ...]
    url: str
    prev_url: str | None = None
    next_url: str | None = None


def paginate(
    doc_ids: Sequence[str], per_page: int, base_url: str = "", pagination_dir: str = "page"
) -> tuple[Page, ...]:
    """Split ``doc_ids`` into contiguous pages of at most ``per_page`` items.

    ``per_page <= 0`` keeps everything on a single page. An empty sequence still
    yields one (empty) page so every collection has a landing URL.
    """
    ids = tuple(doc_ids)
    if per_page <= 0 or not ids:
        return (Page(number=1, total=1, doc_ids=ids, url=base_url),)

    total = math.ceil(len(ids) / per_page)
    urls = [paged_url(base_url, number, pagination_dir) for number in range(1, total + 1)]
    pages = []
    for index in range(total):
        start = index * per_page
        pages.append(
            Page(
                number=index + 1,
                total=total,
                doc_ids=ids[start : start + per_page],
                url=urls[index],
                prev_url=urls[index - 1] if index > 0 else None,
                next_url=urls[index + 1] if index + 1 < total else None,
            )
        )
    return tuple(pages)

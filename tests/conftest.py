from __future__ import annotations

import datetime as dt
from pathlib import Path

import pytest

from pressgen.config import SiteConfig
from pressgen.content import Document


def make_document(**overrides) -> Document:
    values = {
        "source": "_posts/hello-world.md",
        "kind": "post",
        "title": "Hello World",
        "date": dt.datetime(2020, 9, 26),
        "updated": dt.datetime(2020, 9, 26),
        "tags": (),
        "categories": ("uncategorized",),
        "layout": "post",
        "draft": False,
        "slug": "hello-world",
        "body": "Hello.",
        "content_hash": "abc",
    }
    values.update(overrides)
    return Document(**values)


def write_post(root: Path, name: str, title: str, date: str, body: str = "Body text.", **meta) -> Path:
    lines = ["---", f'title: "{title}"', f"date: {date}"]
    for key, value in meta.items():
        lines.append(f"{key}: {value}")
    lines.extend(["---", body, ""])
    path = root / "source" / "_posts" / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines), encoding="utf-8")
    return path


@pytest.fixture
def site(tmp_path: Path) -> Path:
    (tmp_path / "source" / "_posts").mkdir(parents=True)
    return tmp_path


@pytest.fixture
def config() -> SiteConfig:
    return SiteConfig.from_mapping({"title": "Test Site", "per_page": 2, "build_workers": 1})

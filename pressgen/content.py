from __future__ import annotations

import datetime as dt
import fnmatch
import hashlib
import re
import sys
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional

import yaml

from .config import SiteConfig
from .errors import ParseError
from .utils import parse_bool

MARKDOWN_SUFFIXES = {".md", ".markdown"}
POSTS_DIR = "_posts"
DRAFTS_DIR = "_drafts"
FRONT_MATTER_KEY_RE = re.compile(r"^[A-Za-z_][\w-]*\s*:")


@dataclass(frozen=True)
class Document:
    source: str
    kind: str
    title: str
    date: dt.datetime
    updated: dt.datetime
    tags: tuple[str, ...]
    categories: tuple[str, ...]
    layout: str
    draft: bool
    slug: str
    body: str
    content_hash: str
    permalink: str = ""
    excerpt: str = ""
    meta: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def id(self) -> str:
        return self.source

    @property
    def is_post(self) -> bool:
        return self.kind == "post"


@dataclass(frozen=True)
class Asset:
    source: str
    path: Path
    content_hash: str


@dataclass
class LoadResult:
    documents: list[Document] = field(default_factory=list)
    assets: list[Asset] = field(default_factory=list)
    errors: list[ParseError] = field(default_factory=list)


def slugify(text: str) -> str:
    text = text.strip().lower()
    text = re.sub(r"\s+", "-", text)
    text = re.sub(r"[^\w-]+", "", text, flags=re.UNICODE)
    text = re.sub(r"-{2,}", "-", text.replace("_", "-"))
    return text.strip("-")


def parse_list(value: object) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, (list, tuple)):
        items = []
        for item in value:
            # Hexo allows nested category lists; flatten them.
            items.extend(parse_list(item))
        return tuple(items)
    text = str(value).strip()
    if text.startswith("[") and text.endswith("]"):
        text = text[1:-1]
    items = [item.strip().strip("'\"") for item in text.split(",")]
    return tuple(item for item in items if item)


def split_front_matter(text: str, path: str = "<string>") -> tuple[dict, str]:
    clean_text = text.lstrip("\ufeff")
    lines = clean_text.splitlines()
    if not lines:
        return {}, clean_text

    if lines[0].strip() == "---":
        start = 1
    elif FRONT_MATTER_KEY_RE.match(lines[0]):
        # Hexo also accepts a block that is only terminated by '---'.
        start = 0
    else:
        return {}, clean_text

    end = None
    for i in range(1, len(lines)):
        if lines[i].strip() in {"---", "..."}:
            end = i
            break
    if end is None:
        if start == 1:
            raise ParseError(path, "front-matter block is not closed")
        return {}, clean_text

    block = "\n".join(lines[start:end])
    try:
        meta = yaml.safe_load(block) if block.strip() else {}
    except (yaml.YAMLError, ValueError) as exc:
        # The timestamp constructor raises ValueError for dates like 2020-13-45.
        if start == 0:
            return {}, clean_text
        raise ParseError(path, f"invalid front-matter: {exc}") from exc
    if meta is None:
        meta = {}
    if not isinstance(meta, dict):
        if start == 0:
            return {}, clean_text
        raise ParseError(path, "front-matter must be a mapping")
    body = "\n".join(lines[end + 1 :])
    return {str(k).lower(): v for k, v in meta.items()}, body


def extract_title(meta: dict, body: str, fallback: str) -> tuple[str, str]:
    if meta.get("title"):
        return str(meta["title"]), body
    lines = body.splitlines()
    for i, line in enumerate(lines):
        stripped = line.strip()
        if stripped.startswith("# "):
            title = stripped[2:].strip() or fallback
            new_body = "\n".join(lines[i + 1 :]).lstrip()
            return title, new_body
        if stripped:
            break
    return fallback, body


def parse_date(value: object, path: str, default: dt.datetime) -> dt.datetime:
    if value is None or value == "":
        return default
    if isinstance(value, dt.datetime):
        return value.replace(tzinfo=None) if value.tzinfo else value
    if isinstance(value, dt.date):
        return dt.datetime.combine(value, dt.time())
    text = str(value).strip()
    try:
        parsed = dt.datetime.fromisoformat(text)
    except ValueError as exc:
        raise ParseError(path, f"invalid date {text!r}") from exc
    return parsed.replace(tzinfo=None) if parsed.tzinfo else parsed


def hash_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def is_excluded(rel: str, patterns: tuple[str, ...]) -> bool:
    return any(fnmatch.fnmatch(rel, pattern) for pattern in patterns)


def is_hidden(rel: str, include_drafts: bool) -> bool:
    allowed = {POSTS_DIR, DRAFTS_DIR} if include_drafts else {POSTS_DIR}
    for part in rel.split("/"):
        if part.startswith("."):
            return True
        if part.startswith("_") and part not in allowed:
            return True
    return False


def document_kind(rel: str) -> str:
    parts = rel.split("/")
    if POSTS_DIR in parts[:-1] or DRAFTS_DIR in parts[:-1]:
        return "post"
    return "page"


def parse_document(path: Path, rel: str, config: SiteConfig) -> Document:
    raw = path.read_bytes()
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ParseError(rel, f"not valid UTF-8: {exc}") from exc
    meta, body = split_front_matter(text, rel)
    kind = document_kind(rel)
    stem = path.stem
    title, body = extract_title(meta, body, stem.replace("-", " ").strip() or stem)

    mtime = dt.datetime.fromtimestamp(path.stat().st_mtime).replace(microsecond=0)
    date = parse_date(meta.get("date"), rel, mtime)
    updated = parse_date(meta.get("updated"), rel, max(date, mtime))

    categories = parse_list(meta.get("categories") or meta.get("category"))
    if kind == "post" and not categories and config.default_category:
        categories = (config.default_category,)

    explicit_slug = str(meta.get("slug") or "").strip()
    draft = parse_bool(meta.get("draft")) or DRAFTS_DIR in rel.split("/")[:-1]
    default_layout = config.default_layout if kind == "post" else "page"
    layout = meta.get("layout")
    if layout is False:
        layout = "false"
    excerpt = meta.get("excerpt") or meta.get("description") or ""
    fingerprint = raw
    if not meta.get("date") or not meta.get("updated"):
        # Dates taken from the file mtime are part of the rendered page.
        fingerprint += f"\n{date.isoformat()}\n{updated.isoformat()}".encode("utf-8")

    return Document(
        source=rel,
        kind=kind,
        title=title,
        date=date,
        updated=updated,
        tags=parse_list(meta.get("tags")),
        categories=categories,
        layout=str(layout or default_layout),
        draft=draft,
        slug=slugify(explicit_slug or stem) or "post",
        body=body,
        content_hash=hash_bytes(fingerprint),
        permalink=str(meta.get("permalink") or "").strip(),
        excerpt=str(excerpt),
        meta=MappingProxyType(meta),
    )


def discover(source_dir: Path, config: SiteConfig, include_drafts: bool) -> list[tuple[Path, str]]:
    if not source_dir.exists():
        return []
    found = []
    for path in sorted(source_dir.rglob("*"), key=lambda p: p.as_posix()):
        if not path.is_file():
            continue
        rel = path.relative_to(source_dir).as_posix()
        if is_hidden(rel, include_drafts) or is_excluded(rel, config.exclude):
            continue
        found.append((path, rel))
    return found


def load_documents(
    source_dir: Path,
    config: SiteConfig,
    include_drafts: Optional[bool] = None,
    workers: int = 1,
) -> LoadResult:
    if include_drafts is None:
        include_drafts = config.render_drafts
    result = LoadResult()
    markdown_files = []
    for path, rel in discover(source_dir, config, include_drafts):
        if path.suffix.lower() in MARKDOWN_SUFFIXES:
            markdown_files.append((path, rel))
        else:
            result.assets.append(Asset(source=rel, path=path, content_hash=hash_bytes(path.read_bytes())))

    def parse(item: tuple[Path, str]) -> Document | ParseError:
        path, rel = item
        try:
            return parse_document(path, rel, config)
        except ParseError as exc:
            return exc

    if workers > 1 and len(markdown_files) > 1:
        with ThreadPoolExecutor(max_workers=min(workers, len(markdown_files))) as executor:
            parsed = list(executor.map(parse, markdown_files))
    else:
        parsed = [parse(item) for item in markdown_files]

    for item in parsed:
        if isinstance(item, ParseError):
            print(f"WARN skipping {item.path}: {item.message}", file=sys.stderr)
            result.errors.append(item)
            continue
        if item.draft and not include_drafts:
            continue
        result.documents.append(item)
    return result

from __future__ import annotations

import json
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

import yaml

from .errors import ConfigError
from .utils import parse_bool, parse_int

# Collection modes, as documented in Hexo's _config.yml.
FULLY_DISABLED = 0
NO_PAGINATION = 1
PAGINATED = 2

DEFAULT_CONFIG_NAME = "_config.yml"
DEFAULT_CACHE_NAME = ".pressgen-cache.json"

KNOWN_KEYS = {
    "title",
    "subtitle",
    "description",
    "author",
    "language",
    "url",
    "root",
    "permalink",
    "tag_dir",
    "archive_dir",
    "category_dir",
    "source_dir",
    "public_dir",
    "default_layout",
    "render_drafts",
    "new_post_name",
    "default_category",
    "category_map",
    "tag_map",
    "archive",
    "category",
    "tag",
    "per_page",
    "pagination_dir",
    "date_format",
    "time_format",
    "exclude",
    "highlight",
    "markdown",
    "theme",
    "feed",
    "alias",
    "build_workers",
    "cache_file",
    "port",
}


def load_config(path: Path) -> dict:
    if not path.exists():
        return {}
    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    if suffix == ".toml":
        try:
            data = tomllib.loads(text)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"Invalid TOML in config file {path}: {exc}") from exc
    elif suffix in {".yml", ".yaml"}:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in config file {path}: {exc}") from exc
        if data is None:
            return {}
    else:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid JSON in config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config must be a mapping: {path}")
    return data


def _mode(value: object, default: int) -> int:
    mode = parse_int(value, default)
    if mode not in (FULLY_DISABLED, NO_PAGINATION, PAGINATED):
        raise ConfigError(f"Collection mode must be 0, 1 or 2, got {value!r}")
    return mode


def _section(data: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"'{key}' must be a mapping")
    return value


def _str_map(value: object, key: str) -> Mapping[str, str]:
    if not value:
        return MappingProxyType({})
    if not isinstance(value, Mapping):
        raise ConfigError(f"'{key}' must be a mapping")
    return MappingProxyType({str(k): str(v) for k, v in value.items()})


def _str_list(value: object) -> tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(item) for item in value if item)


def _text(value: object, default: str = "") -> str:
    return default if value is None else str(value)


@dataclass(frozen=True)
class MarkdownOptions:
    gfm: bool = True
    pedantic: bool = False
    tables: bool = True
    breaks: bool = True
    smart_lists: bool = True
    smartypants: bool = True
    highlight: bool = True
    line_number: bool = False
    tab_replace: str = ""


@dataclass(frozen=True)
class FeedOptions:
    type: str = "atom"
    path: str = "atom.xml"
    limit: int = 20


@dataclass(frozen=True)
class SiteConfig:
    title: str = "Pressgen"
    subtitle: str = ""
    description: str = ""
    author: str = ""
    language: str = "en"
    url: str = "http://example.com"
    root: str = "/"
    permalink: str = ":year/:month/:day/:title/"
    tag_dir: str = "tags"
    archive_dir: str = "archives"
    category_dir: str = "categories"
    source_dir: str = "source"
    public_dir: str = "public"
    default_layout: str = "post"
    render_drafts: bool = False
    new_post_name: str = ":title.md"
    default_category: str = "uncategorized"
    category_map: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    tag_map: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    archive: int = PAGINATED
    category: int = PAGINATED
    tag: int = PAGINATED
    per_page: int = 10
    pagination_dir: str = "page"
    date_format: str = "MMM D YYYY"
    time_format: str = "H:mm:ss"
    exclude: tuple[str, ...] = ()
    markdown: MarkdownOptions = field(default_factory=MarkdownOptions)
    theme: str = "default"
    feed: FeedOptions | None = None
    alias: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    build_workers: int = 0
    cache_file: str = DEFAULT_CACHE_NAME
    port: int = 4000
    extra: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "SiteConfig":
        defaults = cls()
        md = _section(data, "markdown")
        hl = _section(data, "highlight")
        markdown_options = MarkdownOptions(
            gfm=parse_bool(md.get("gfm", True)),
            pedantic=parse_bool(md.get("pedantic", False)),
            tables=parse_bool(md.get("tables", True)),
            breaks=parse_bool(md.get("breaks", True)),
            smart_lists=parse_bool(md.get("smartLists", True)),
            smartypants=parse_bool(md.get("smartypants", True)),
            highlight=parse_bool(hl.get("enable", True)),
            line_number=parse_bool(hl.get("line_number", False)),
            tab_replace=_text(hl.get("tab_replace")),
        )

        feed = None
        if data.get("feed"):
            feed_data = _section(data, "feed")
            feed_type = _text(feed_data.get("type"), "atom").lower()
            if feed_type not in {"atom", "rss2"}:
                raise ConfigError(f"Unsupported feed type: {feed_type}")
            default_path = "atom.xml" if feed_type == "atom" else "rss2.xml"
            feed = FeedOptions(
                type=feed_type,
                path=_text(feed_data.get("path"), default_path).lstrip("/"),
                limit=max(0, parse_int(feed_data.get("limit"), 20)),
            )

        def text(key: str) -> str:
            value = data.get(key)
            return getattr(defaults, key) if value is None else str(value)

        root = text("root")
        if not root.startswith("/"):
            root = "/" + root
        if not root.endswith("/"):
            root += "/"

        return cls(
            title=text("title"),
            subtitle=text("subtitle"),
            description=text("description"),
            author=text("author"),
            language=text("language") or defaults.language,
            url=text("url").rstrip("/"),
            root=root,
            permalink=text("permalink") or defaults.permalink,
            tag_dir=text("tag_dir").strip("/"),
            archive_dir=text("archive_dir").strip("/"),
            category_dir=text("category_dir").strip("/"),
            source_dir=text("source_dir"),
            public_dir=text("public_dir"),
            default_layout=text("default_layout"),
            render_drafts=parse_bool(data.get("render_drafts", False)),
            new_post_name=text("new_post_name"),
            default_category=text("default_category"),
            category_map=_str_map(data.get("category_map"), "category_map"),
            tag_map=_str_map(data.get("tag_map"), "tag_map"),
            archive=_mode(data.get("archive"), PAGINATED),
            category=_mode(data.get("category"), PAGINATED),
            tag=_mode(data.get("tag"), PAGINATED),
            per_page=max(0, parse_int(data.get("per_page"), defaults.per_page)),
            pagination_dir=text("pagination_dir").strip("/") or defaults.pagination_dir,
            date_format=text("date_format"),
            time_format=text("time_format"),
            exclude=_str_list(data.get("exclude")),
            markdown=markdown_options,
            theme=text("theme") or defaults.theme,
            feed=feed,
            alias=_str_map(data.get("alias"), "alias"),
            build_workers=parse_int(data.get("build_workers"), 0),
            cache_file=text("cache_file"),
            port=parse_int(data.get("port"), defaults.port),
            extra=MappingProxyType({k: v for k, v in data.items() if k not in KNOWN_KEYS}),
        )

    def workers(self, override: int | None = None) -> int:
        workers = override if override is not None else self.build_workers
        if workers <= 0:
            workers = os.cpu_count() or 1
        return max(1, min(workers, 32))


def read_site_config(path: Path) -> SiteConfig:
    return SiteConfig.from_mapping(load_config(path))

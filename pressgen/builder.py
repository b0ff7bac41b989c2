from __future__ import annotations

import html
import shutil
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from .cache import BuildCache, CacheEntry, hash_paths, hash_text, list_files, plan_build
from .config import FeedOptions, SiteConfig
from .content import Asset, load_documents
from .errors import BuildIOError, PressgenError
from .indexer import Collection, build_collections, chronological
from .pager import Page
from .render import RenderedBody, highlight_css, render_documents
from .routes import RouteTable, resolve_routes, url_to_path
from .theme import ListingEntry, Theme, render_alias, render_document, render_listing
from .utils import clean_output_dir, iso_date, join_url, prune_empty_dirs, rfc822_date, write_if_changed, write_text

HIGHLIGHT_CSS_PATH = "css/highlight.css"
GENERATOR_SUFFIXES = {".py", ".html"}


@dataclass
class BuildReport:
    rendered: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    listings_written: int = 0
    warnings: list[PressgenError] = field(default_factory=list)
    elapsed: float = 0.0

    def summary(self) -> str:
        return (
            f"Rendered {len(self.rendered)}, skipped {len(self.skipped)} (cached), "
            f"removed {len(self.removed)}, {len(self.warnings)} warnings in {self.elapsed:.2f}s."
        )


def generator_fingerprint() -> str:
    package_dir = Path(__file__).resolve().parent
    return hash_paths(list_files(package_dir, GENERATOR_SUFFIXES), package_dir)


def config_fingerprint(config: SiteConfig, include_drafts: bool) -> str:
    return hash_text("\n".join([generator_fingerprint(), repr(config), f"drafts={include_drafts}"]))


def build_feed(config: SiteConfig, feed: FeedOptions, entries: list[ListingEntry]) -> str:
    site_url = join_url(config.url, config.root)
    entries = entries[: feed.limit] if feed.limit else entries
    if feed.type == "rss2":
        items = []
        for entry in entries:
            link = join_url(site_url, entry.url)
            items.append(
                "\n".join(
                    [
                        "<item>",
                        f"<title>{html.escape(entry.title)}</title>",
                        f"<link>{link}</link>",
                        f"<guid>{link}</guid>",
                        f"<pubDate>{rfc822_date(entry.date)}</pubDate>",
                        f"<description>{html.escape(entry.excerpt)}</description>",
                        "</item>",
                    ]
                )
            )
        last_build = rfc822_date(entries[0].date) if entries else ""
        return "\n".join(
            [
                '<?xml version="1.0" encoding="UTF-8"?>',
                '<rss version="2.0">',
                "<channel>",
                f"<title>{html.escape(config.title)}</title>",
                f"<link>{site_url}/</link>",
                f"<description>{html.escape(config.description)}</description>",
                f"<lastBuildDate>{last_build}</lastBuildDate>",
                "\n".join(items),
                "</channel>",
                "</rss>",
            ]
        )

    updated = iso_date(entries[0].date) if entries else ""
    atom_entries = []
    for entry in entries:
        link = join_url(site_url, entry.url)
        atom_entries.append(
            "\n".join(
                [
                    "<entry>",
                    f"<title>{html.escape(entry.title)}</title>",
                    f'<link href="{link}" />',
                    f"<id>{link}</id>",
                    f"<updated>{iso_date(entry.date)}</updated>",
                    f"<summary type=\"html\">{html.escape(entry.excerpt)}</summary>",
                    "</entry>",
                ]
            )
        )
    return "\n".join(
        [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<feed xmlns="http://www.w3.org/2005/Atom">',
            f"<title>{html.escape(config.title)}</title>",
            f"<author><name>{html.escape(config.author)}</name></author>",
            f"<id>{site_url}/</id>",
            f"<updated>{updated}</updated>",
            f'<link href="{join_url(site_url, feed.path)}" rel="self" />',
            f'<link href="{site_url}/" />',
            "\n".join(atom_entries),
            "</feed>",
        ]
    )


def remove_output(public_dir: Path, rel: str) -> bool:
    path = public_dir / rel
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    prune_empty_dirs(path.parent, public_dir)
    return True


def build_site(
    config: SiteConfig,
    project_root: Path,
    *,
    incremental: bool = True,
    include_drafts: Optional[bool] = None,
    workers: Optional[int] = None,
    quiet: bool = False,
) -> BuildReport:
    """Run one build pass and return what it did.

    Route conflicts and I/O failures raise before the cache is written, so the next
    run retries the same set of changed documents.
    """
    start = time.perf_counter()
    report = BuildReport()
    source_dir = project_root / config.source_dir
    public_dir = project_root / config.public_dir
    cache_path = project_root / config.cache_file
    if include_drafts is None:
        include_drafts = config.render_drafts
    pool_size = config.workers(workers)

    if not source_dir.exists():
        raise PressgenError(f"Source directory not found: {source_dir}")

    theme = Theme.load(project_root, config.theme)
    config_hash = config_fingerprint(config, include_drafts)

    loaded = load_documents(source_dir, config, include_drafts, pool_size)
    report.warnings.extend(loaded.errors)
    documents = loaded.documents
    by_id = {document.id: document for document in documents}

    routes = resolve_routes(documents, config)
    outputs = {document.id: url_to_path(routes.url_for(document.id)) for document in documents}

    cache = BuildCache.load(cache_path)
    plan = plan_build(documents, outputs, cache, config_hash, theme.fingerprint, public_dir, force=not incremental)
    if not quiet:
        print(f"Loaded {len(documents)} documents, {len(plan.changed)} to render.")

    rendered, render_errors = render_documents([by_id[key] for key in plan.changed], config.markdown, pool_size)
    for error in render_errors:
        print(f"WARN skipping {error.path}: {error.message}", file=sys.stderr)
    report.warnings.extend(render_errors)
    failed = {error.path for error in render_errors}

    # A failed document keeps its previous output only if the route did not move.
    retained = {
        doc_id for doc_id in failed if doc_id in cache.documents and cache.documents[doc_id].output == outputs.get(doc_id)
    }
    published = [document for document in documents if document.id not in failed or document.id in retained]
    excerpts: dict[str, str] = {}
    for document in published:
        if document.id in rendered:
            excerpts[document.id] = rendered[document.id].excerpt
        elif document.id in cache.documents:
            excerpts[document.id] = cache.documents[document.id].excerpt

    def entry_for(doc_id: str) -> ListingEntry:
        document = by_id[doc_id]
        return ListingEntry(
            id=doc_id,
            title=document.title,
            url=routes.url_for(doc_id),
            date=document.date,
            excerpt=excerpts.get(doc_id, ""),
            tags=document.tags,
            categories=document.categories,
        )

    generated = register_generated(routes, config, build_collections(published, config), loaded.assets)

    new_cache = BuildCache(config_hash=config_hash, theme_hash=theme.fingerprint)
    current_path: Optional[Path] = None
    try:
        for document in documents:
            output = outputs[document.id]
            body: Optional[RenderedBody] = rendered.get(document.id)
            if body is not None:
                current_path = public_dir / output
                write_text(current_path, render_document(theme, config, document, body))
                report.rendered.append(document.id)
                new_cache.documents[document.id] = CacheEntry(
                    hash=document.content_hash, output=output, url=routes.url_for(document.id), excerpt=body.excerpt
                )
            elif document.id in plan.unchanged:
                report.skipped.append(document.id)
                new_cache.documents[document.id] = cache.documents[document.id]
            elif document.id in retained:
                # Keep tracking the old output but force a retry next build.
                previous = cache.documents[document.id]
                new_cache.documents[document.id] = CacheEntry(
                    hash="", output=previous.output, url=previous.url, excerpt=previous.excerpt
                )

        for rel, (collection, page) in generated.listings.items():
            current_path = public_dir / rel
            entries = [entry_for(doc_id) for doc_id in page.doc_ids]
            if write_if_changed(current_path, render_listing(theme, config, collection, page, entries)):
                report.listings_written += 1

        if config.feed is not None and generated.feed_path is not None:
            current_path = public_dir / generated.feed_path
            posts = chronological(document for document in published if document.is_post)
            feed_xml = build_feed(config, config.feed, [entry_for(post.id) for post in posts])
            write_if_changed(current_path, feed_xml)

        for rel, target in generated.aliases.items():
            current_path = public_dir / rel
            write_if_changed(current_path, render_alias(config, target))

        current_path = public_dir / HIGHLIGHT_CSS_PATH
        write_if_changed(current_path, highlight_css())

        for asset in loaded.assets:
            current_path = public_dir / asset.source
            if cache.assets.get(asset.source) != asset.content_hash or not current_path.exists():
                current_path.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(asset.path, current_path)
            new_cache.assets[asset.source] = asset.content_hash

        new_cache.outputs = sorted(generated.outputs())
        stale = set(plan.stale_outputs) | set(cache.outputs) | set(cache.assets)
        stale -= routes.paths()
        for rel in sorted(stale):
            current_path = public_dir / rel
            if remove_output(public_dir, rel):
                report.removed.append(rel)

        current_path = cache_path
        new_cache.save(cache_path)
    except OSError as exc:
        raise BuildIOError(current_path, exc) from exc

    report.elapsed = time.perf_counter() - start
    if not quiet:
        print(report.summary())
    return report


@dataclass
class GeneratedOutputs:
    listings: dict[str, tuple[Collection, Page]] = field(default_factory=dict)
    aliases: dict[str, str] = field(default_factory=dict)
    feed_path: Optional[str] = None

    def outputs(self) -> set[str]:
        paths = set(self.listings) | set(self.aliases)
        if self.feed_path is not None:
            paths.add(self.feed_path)
        return paths


def register_generated(
    routes: RouteTable, config: SiteConfig, collections: Iterable[Collection], assets: Iterable[Asset]
) -> GeneratedOutputs:
    """Claim every non-document output in ``routes``; conflicts raise before any write."""
    generated = GeneratedOutputs()
    for collection in collections:
        for page in collection.pages(config.pagination_dir):
            path = routes.add(page.url, f"{collection.key}#{page.number}")
            generated.listings[path] = (collection, page)
    if config.feed is not None:
        generated.feed_path = routes.add(config.feed.path, "feed")
    for source, target in config.alias.items():
        path = routes.add(source, f"alias:{source}")
        generated.aliases[path] = target
    for asset in assets:
        routes.claim(asset.source, f"asset:{asset.source}")
    routes.claim(HIGHLIGHT_CSS_PATH, "highlight-css")
    return generated


def clean_site(config: SiteConfig, project_root: Path) -> None:
    clean_output_dir(project_root / config.public_dir, project_root)
    cache_path = project_root / config.cache_file
    cache_path.unlink(missing_ok=True)

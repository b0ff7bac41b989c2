from __future__ import annotations

import datetime as dt
import hashlib
import json
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping, Optional

from .content import Document

CACHE_VERSION = 1


def list_files(root: Path, suffixes: Optional[set[str]] = None) -> list[Path]:
    if not root.exists():
        return []
    return [
        path for path in root.rglob("*") if path.is_file() and (suffixes is None or path.suffix.lower() in suffixes)
    ]


def hash_text(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def hash_paths(paths: list[Path], base: Optional[Path] = None) -> str:
    digest = hashlib.sha256()
    for path in sorted(paths, key=lambda p: p.as_posix()):
        rel = path
        if base is not None:
            try:
                rel = path.relative_to(base)
            except ValueError:
                rel = path
        digest.update(rel.as_posix().encode("utf-8"))
        digest.update(b"\0")
        digest.update(path.read_bytes())
        digest.update(b"\0")
    return digest.hexdigest()


@dataclass
class CacheEntry:
    hash: str
    output: str
    url: str
    excerpt: str = ""

    def to_dict(self) -> dict:
        return {"hash": self.hash, "output": self.output, "url": self.url, "excerpt": self.excerpt}

    @classmethod
    def from_dict(cls, data: dict) -> "CacheEntry":
        return cls(
            hash=str(data.get("hash", "")),
            output=str(data.get("output", "")),
            url=str(data.get("url", "")),
            excerpt=str(data.get("excerpt", "")),
        )


@dataclass
class BuildCache:
    config_hash: str = ""
    theme_hash: str = ""
    documents: dict[str, CacheEntry] = field(default_factory=dict)
    outputs: list[str] = field(default_factory=list)
    assets: dict[str, str] = field(default_factory=dict)
    built_at: str = ""

    @classmethod
    def load(cls, path: Path) -> "BuildCache":
        if not path.exists():
            return cls()
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError):
            return cls()
        if not isinstance(data, dict) or data.get("version") != CACHE_VERSION:
            return cls()
        documents = data.get("documents") or {}
        return cls(
            config_hash=str(data.get("config_hash", "")),
            theme_hash=str(data.get("theme_hash", "")),
            documents={key: CacheEntry.from_dict(value) for key, value in documents.items() if isinstance(value, dict)},
            outputs=[str(item) for item in data.get("outputs") or []],
            assets={str(k): str(v) for k, v in (data.get("assets") or {}).items()},
            built_at=str(data.get("built_at", "")),
        )

    def to_dict(self) -> dict:
        return {
            "version": CACHE_VERSION,
            "built_at": self.built_at,
            "config_hash": self.config_hash,
            "theme_hash": self.theme_hash,
            "documents": {key: self.documents[key].to_dict() for key in sorted(self.documents)},
            "outputs": sorted(self.outputs),
            "assets": {key: self.assets[key] for key in sorted(self.assets)},
        }

    def save(self, path: Path) -> None:
        """Write the cache atomically: a reader sees the old file or the new one."""
        self.built_at = dt.datetime.now().replace(microsecond=0).isoformat()
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(self.to_dict(), handle, indent=2, ensure_ascii=True)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


@dataclass(frozen=True)
class BuildPlan:
    changed: tuple[str, ...]
    unchanged: tuple[str, ...]
    removed: tuple[str, ...]
    stale_outputs: tuple[str, ...]
    full_rebuild: bool = False


def plan_build(
    documents: Iterable[Document],
    outputs: Mapping[str, str],
    cache: BuildCache,
    config_hash: str,
    theme_hash: str,
    public_dir: Path,
    force: bool = False,
) -> BuildPlan:
    """Split documents into the ones that need rendering and the ones that do not.

    ``outputs`` maps document ids to their resolved output paths. A document is
    unchanged only when its hash and its output path both match the cache and the
    output file still exists. ``stale_outputs`` holds outputs of removed documents
    and outputs a document no longer writes to.
    """
    docs = list(documents)
    full_rebuild = force or cache.config_hash != config_hash or cache.theme_hash != theme_hash
    changed = []
    unchanged = []
    for document in docs:
        entry = cache.documents.get(document.id)
        if (
            full_rebuild
            or entry is None
            or entry.hash != document.content_hash
            or entry.output != outputs.get(document.id)
            or not (public_dir / entry.output).exists()
        ):
            changed.append(document.id)
        else:
            unchanged.append(document.id)
    current_ids = {document.id for document in docs}
    removed = tuple(sorted(key for key in cache.documents if key not in current_ids))
    stale = {cache.documents[key].output for key in removed if cache.documents[key].output}
    for document in docs:
        entry = cache.documents.get(document.id)
        if entry is not None and entry.output and entry.output != outputs.get(document.id):
            stale.add(entry.output)
    # A path another document now owns is not stale.
    stale -= set(outputs.values())
    return BuildPlan(
        changed=tuple(changed),
        unchanged=tuple(unchanged),
        removed=removed,
        stale_outputs=tuple(sorted(stale)),
        full_rebuild=full_rebuild,
    )

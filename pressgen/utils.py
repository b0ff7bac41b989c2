from __future__ import annotations

import datetime as dt
import re
import shutil
from pathlib import Path

from .errors import PressgenError

# moment.js display tokens, longest first so "MMMM" wins over "MM".
MOMENT_TOKENS = [
    ("YYYY", "%Y"),
    ("YY", "%y"),
    ("MMMM", "%B"),
    ("MMM", "%b"),
    ("MM", "%m"),
    ("M", "{month}"),
    ("DD", "%d"),
    ("D", "{day}"),
    ("dddd", "%A"),
    ("ddd", "%a"),
    ("HH", "%H"),
    ("H", "{hour}"),
    ("hh", "%I"),
    ("h", "{hour12}"),
    ("mm", "%M"),
    ("ss", "%S"),
    ("A", "%p"),
]
MOMENT_RE = re.compile("|".join(re.escape(token) for token, _ in MOMENT_TOKENS))


def parse_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "y", "on"}
    return False


def parse_int(value: object, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def join_url(base: str, path: str) -> str:
    base = base.rstrip("/")
    path = path.lstrip("/")
    if not path:
        return base
    return f"{base}/{path}"


def rfc822_date(value: dt.datetime) -> str:
    value = value.replace(tzinfo=dt.timezone.utc)
    return value.strftime("%a, %d %b %Y %H:%M:%S %z")


def iso_date(value: dt.datetime) -> str:
    value = value.replace(tzinfo=dt.timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")


def format_moment(value: dt.datetime, pattern: str) -> str:
    """Format ``value`` with a moment.js style pattern such as ``MMM D YYYY``."""
    unpadded = {
        "month": str(value.month),
        "day": str(value.day),
        "hour": str(value.hour),
        "hour12": str(value.hour % 12 or 12),
    }
    mapping = dict(MOMENT_TOKENS)

    def repl(match: re.Match) -> str:
        fmt = mapping[match.group(0)]
        if fmt.startswith("{"):
            return unpadded[fmt[1:-1]]
        return value.strftime(fmt)

    return MOMENT_RE.sub(repl, pattern)


def write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def write_if_changed(path: Path, text: str) -> bool:
    if path.exists() and path.read_text(encoding="utf-8") == text:
        return False
    write_text(path, text)
    return True


def prune_empty_dirs(start: Path, stop: Path) -> None:
    current = start
    stop = stop.resolve()
    while current.resolve() != stop and stop in current.resolve().parents:
        try:
            current.rmdir()
        except OSError:
            return
        current = current.parent


def clean_output_dir(output_dir: Path, project_root: Path) -> None:
    if not output_dir.exists():
        return
    output_resolved = output_dir.resolve()
    root_resolved = project_root.resolve()
    if output_resolved == root_resolved:
        raise PressgenError("Refusing to clean project root.")
    if not output_resolved.is_relative_to(root_resolved):
        raise PressgenError("Refusing to clean output directory outside project root.")
    shutil.rmtree(output_dir)

from __future__ import annotations

import argparse
import datetime as dt
import sys
from pathlib import Path
from typing import Optional, Sequence

from .builder import build_site, clean_site
from .config import DEFAULT_CONFIG_NAME, SiteConfig, read_site_config
from .content import slugify
from .errors import PressgenError
from .routes import expand_permalink


def resolve_project(args: argparse.Namespace) -> tuple[Path, SiteConfig]:
    project_root = Path(args.cwd).resolve()
    config_path = Path(args.config)
    if not config_path.is_absolute():
        config_path = project_root / config_path
    return project_root, read_site_config(config_path)


def cmd_generate(args: argparse.Namespace) -> int:
    project_root, config = resolve_project(args)
    build_site(
        config,
        project_root,
        incremental=args.incremental,
        include_drafts=True if args.drafts else None,
        workers=args.workers,
        quiet=args.quiet,
    )
    print(f"Site generated in: {project_root / config.public_dir}")
    return 0


def cmd_server(args: argparse.Namespace) -> int:
    from .server import serve

    project_root, config = resolve_project(args)
    if not args.static:
        build_site(config, project_root, include_drafts=True if args.drafts else None, quiet=args.quiet)
    port = args.port if args.port is not None else config.port
    serve(project_root / config.public_dir, args.host, port)
    return 0


def cmd_clean(args: argparse.Namespace) -> int:
    project_root, config = resolve_project(args)
    clean_site(config, project_root)
    print(f"Removed {config.public_dir} and {config.cache_file}.")
    return 0


def cmd_new(args: argparse.Namespace) -> int:
    project_root, config = resolve_project(args)
    title = " ".join(args.title).strip()
    now = dt.datetime.now().replace(microsecond=0)
    slug = slugify(args.slug or title) or "post"
    tokens = {
        "title": slug,
        "post_title": slug,
        "name": slug,
        "year": f"{now.year:04d}",
        "month": f"{now.month:02d}",
        "day": f"{now.day:02d}",
        "i_month": str(now.month),
        "i_day": str(now.day),
        "hour": f"{now.hour:02d}",
        "minute": f"{now.minute:02d}",
        "second": f"{now.second:02d}",
        "category": "",
    }
    folder = "_drafts" if args.draft else "_posts"
    target = project_root / config.source_dir / folder / expand_permalink(config.new_post_name, tokens)
    if target.exists():
        print(f"Refusing to overwrite existing file: {target}", file=sys.stderr)
        return 1
    target.parent.mkdir(parents=True, exist_ok=True)
    escaped_title = title.replace('"', '\\"')
    target.write_text(
        f'---\ntitle: "{escaped_title}"\ndate: {now.isoformat(sep=" ")}\ntags: []\n---\n',
        encoding="utf-8",
    )
    print(f"Created: {target}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pressgen", description="Static site generator for Markdown sources.")
    parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG_NAME,
        help="Path to site config file (YAML/TOML/JSON), relative to --cwd.",
    )
    parser.add_argument("--cwd", default=".", help="Project root directory.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate = subparsers.add_parser("generate", aliases=["g", "build"], help="Build the site into public_dir.")
    generate.add_argument(
        "--workers",
        default=None,
        type=int,
        help="Number of worker threads for parsing/rendering (0 = auto).",
    )
    generate.add_argument("--drafts", action="store_true", help="Render drafts as well.")
    generate.add_argument(
        "--incremental",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Skip documents whose content did not change since the last build.",
    )
    generate.add_argument("--quiet", action="store_true", help="Only print warnings and errors.")
    generate.set_defaults(func=cmd_generate)

    server = subparsers.add_parser("server", aliases=["s"], help="Build, then serve public_dir locally.")
    server.add_argument("--host", default="localhost", help="Interface to bind.")
    server.add_argument("--port", "-p", default=None, type=int, help="Port to listen on (config: port).")
    server.add_argument("--static", action="store_true", help="Serve the existing output without building.")
    server.add_argument("--drafts", action="store_true", help="Render drafts as well.")
    server.add_argument("--quiet", action="store_true", help="Only print warnings and errors.")
    server.set_defaults(func=cmd_server)

    clean = subparsers.add_parser("clean", help="Remove public_dir and the build cache.")
    clean.set_defaults(func=cmd_clean)

    new = subparsers.add_parser("new", aliases=["n"], help="Create a new post.")
    new.add_argument("title", nargs="+", help="Post title.")
    new.add_argument("--slug", default="", help="Filename slug (defaults to the slugified title).")
    new.add_argument("--draft", action="store_true", help="Create the post under _drafts/.")
    new.set_defaults(func=cmd_new)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return args.func(args)
    except PressgenError as exc:
        print(f"ERROR {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

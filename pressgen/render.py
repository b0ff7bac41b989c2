from __future__ import annotations

import html
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterable

import markdown
from pygments.formatters import HtmlFormatter

from .config import MarkdownOptions
from .content import Document
from .errors import RenderError

TAG_RE = re.compile(r"<[^>]+>")
FENCE_RE = re.compile(r"^(?P<indent>[ \t]*)(`{3,}|~{3,})")
MORE_RE = re.compile(r"^\s*<!--\s*more\s*-->\s*$", re.MULTILINE)
SUMMARY_LENGTH = 200
HIGHLIGHT_CSS_CLASS = "highlight"


@dataclass(frozen=True)
class RenderedBody:
    html: str
    excerpt: str
    toc: str


def strip_tags(html_text: str) -> str:
    return TAG_RE.sub("", html_text)


def render_template(template: str, **context: str) -> str:
    output = template
    late_keys = {"content", "sidebar"}
    for key, value in context.items():
        if key in late_keys:
            continue
        output = output.replace(f"{{{{{key}}}}}", value)
    for key in late_keys:
        if key in context:
            output = output.replace(f"{{{{{key}}}}}", context[key])
    return output


def replace_tabs_in_fences(text: str, replacement: str) -> str:
    lines = text.splitlines()
    out: list[str] = []
    in_fence = False
    fence_marker = ""
    for line in lines:
        fence_match = FENCE_RE.match(line)
        if fence_match:
            marker = fence_match.group(2)
            if not in_fence:
                in_fence = True
                fence_marker = marker
            elif marker == fence_marker:
                in_fence = False
                fence_marker = ""
            out.append(line)
            continue
        out.append(line.replace("\t", replacement) if in_fence else line)
    return "\n".join(out)


def markdown_extensions(options: MarkdownOptions) -> tuple[list[str], dict]:
    extensions = ["toc"]
    configs: dict = {}
    if options.pedantic:
        return extensions, configs
    extensions.append("fenced_code")
    if options.gfm or options.smart_lists:
        extensions.append("sane_lists")
    if options.tables:
        extensions.append("tables")
    if options.breaks:
        extensions.append("nl2br")
    if options.smartypants:
        extensions.append("smarty")
    if options.highlight:
        extensions.append("codehilite")
        configs["codehilite"] = {
            "guess_lang": False,
            "linenums": options.line_number,
            "css_class": HIGHLIGHT_CSS_CLASS,
        }
    return extensions, configs


def convert(body: str, options: MarkdownOptions) -> tuple[str, str]:
    extensions, configs = markdown_extensions(options)
    md = markdown.Markdown(extensions=extensions, extension_configs=configs)
    html_content = md.convert(body)
    return html_content, getattr(md, "toc", "")


def summarize(html_text: str, length: int = SUMMARY_LENGTH) -> str:
    summary = html.unescape(strip_tags(html_text)).strip().replace("\n", " ")
    if len(summary) > length:
        summary = summary[:length].rstrip() + "..."
    return html.escape(summary)


def render_markdown(body: str, options: MarkdownOptions, excerpt: str = "") -> RenderedBody:
    """Render a document body to HTML.

    The result depends only on ``body``, ``options`` and ``excerpt`` so it can be
    cached by content hash. Code blocks are highlighted, never evaluated.
    """
    if options.tab_replace:
        body = replace_tabs_in_fences(body, options.tab_replace)
    html_content, toc = convert(body, options)

    parts = MORE_RE.split(body, maxsplit=1)
    if len(parts) == 2:
        excerpt_html, _ = convert(parts[0], options)
    elif excerpt:
        excerpt_html = f"<p>{html.escape(excerpt)}</p>"
    else:
        excerpt_html = f"<p>{summarize(html_content)}</p>" if html_content.strip() else ""
    return RenderedBody(html=html_content, excerpt=excerpt_html, toc=toc)


def render_document(document: Document, options: MarkdownOptions) -> RenderedBody:
    try:
        return render_markdown(document.body, options, document.excerpt)
    except RenderError:
        raise
    except Exception as exc:
        raise RenderError(document.source, f"{type(exc).__name__}: {exc}") from exc


def render_documents(
    documents: Iterable[Document], options: MarkdownOptions, workers: int = 1
) -> tuple[dict[str, RenderedBody], list[RenderError]]:
    docs = list(documents)

    def task(document: Document) -> RenderedBody | RenderError:
        try:
            return render_document(document, options)
        except RenderError as exc:
            return exc

    if workers > 1 and len(docs) > 1:
        with ThreadPoolExecutor(max_workers=min(workers, len(docs))) as executor:
            outcomes = list(executor.map(task, docs))
    else:
        outcomes = [task(document) for document in docs]

    rendered: dict[str, RenderedBody] = {}
    errors: list[RenderError] = []
    for document, outcome in zip(docs, outcomes):
        if isinstance(outcome, RenderError):
            errors.append(outcome)
        else:
            rendered[document.id] = outcome
    return rendered, errors


def highlight_css(style: str = "default") -> str:
    return HtmlFormatter(style=style).get_style_defs(f".{HIGHLIGHT_CSS_CLASS}")

from __future__ import annotations

import datetime as dt
import html
import math
import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Sequence

import markdown

from .content import HTML_EXT, Document, count_words, normalize_list_spacing, parse_front_matter
from .errors import ParseError, RenderError

DATE_FMT = "%Y-%m-%d"
SUMMARY_LENGTH = 200
THEME_DIR = Path(__file__).parent / "theme"
NO_LAYOUT = {"", "none", "null", "false"}
MARKDOWN_EXTENSIONS = ["fenced_code", "tables", "toc", "codehilite"]
MARKDOWN_CONFIGS = {"codehilite": {"guess_lang": False, "css_class": "highlight"}}

PLACEHOLDER_RE = re.compile(
    r"\{\{\s*(?P<name>[A-Za-z_][\w.-]*)\s*(?:\|\s*default:\s*\"(?P<default>[^\"]*)\"\s*)?\}\}"
)
TAG_RE = re.compile(r"<[^>]+>")
_MISSING = object()


class Html(str):
    """Markup that is inserted into templates without escaping."""


def strip_tags(html_text: str) -> str:
    return TAG_RE.sub("", html_text)


def make_summary(html_text: str, limit: int = SUMMARY_LENGTH) -> str:
    summary = " ".join(html.unescape(strip_tags(html_text)).split())
    return summary[:limit] + ("..." if len(summary) > limit else "")


def format_value(value: Any) -> str:
    if isinstance(value, Html):
        return str(value)
    if isinstance(value, dt.datetime):
        text = value.strftime(DATE_FMT)
    elif isinstance(value, bool):
        text = "true" if value else "false"
    elif isinstance(value, (list, tuple)):
        text = ", ".join(str(item) for item in value)
    else:
        text = str(value)
    return html.escape(text)


def lookup(context: dict, name: str) -> Any:
    value: Any = context
    for part in name.split("."):
        if not isinstance(value, dict) or part not in value:
            return _MISSING
        value = value[part]
    return _MISSING if value is None else value


def render_template(template: str, context: dict, source: str = "<template>", where: str = "") -> str:
    def repl(match: re.Match) -> str:
        value = lookup(context, match.group("name"))
        if value is not _MISSING:
            return format_value(value)
        default = match.group("default")
        if default is None:
            location = f" in {where}" if where else ""
            raise RenderError(source, f"unresolved placeholder '{match.group('name')}'{location}")
        return html.escape(default)

    return PLACEHOLDER_RE.sub(repl, template)


def convert_markdown(text: str) -> tuple[str, str]:
    md = markdown.Markdown(extensions=MARKDOWN_EXTENSIONS, extension_configs=MARKDOWN_CONFIGS)
    html_content = md.convert(normalize_list_spacing(text))
    toc_html = getattr(md, "toc", "")
    return html_content, toc_html


@dataclass(frozen=True)
class Layout:
    name: str
    body: str
    parent: Optional[str]
    path: Path


class LayoutStore:
    """Layouts by name; earlier directories override later ones."""

    def __init__(self, directories: Sequence[Path]) -> None:
        self._layouts: dict[str, Layout] = {}
        self._broken: dict[str, str] = {}
        for directory in reversed(list(directories)):
            if not directory.is_dir():
                continue
            for path in sorted(directory.glob("*.html")):
                name = path.stem
                try:
                    meta, body = parse_front_matter(read_template(path), path.name)
                except ParseError as exc:
                    self._layouts.pop(name, None)
                    self._broken[name] = exc.message
                    continue
                self._broken.pop(name, None)
                parent = meta.get("layout")
                self._layouts[name] = Layout(name, body, str(parent) if parent else None, path)

    @classmethod
    def for_site(cls, source: Path) -> "LayoutStore":
        return cls([source / "_layouts", THEME_DIR])

    def __contains__(self, name: str) -> bool:
        return name in self._layouts

    def get(self, name: str, source: str) -> Layout:
        if name in self._broken:
            raise RenderError(source, f"layout '{name}' is invalid: {self._broken[name]}")
        layout = self._layouts.get(name)
        if layout is None:
            raise RenderError(source, f"layout '{name}' not found")
        return layout


def apply_layouts(
    content: str, layout_name: Optional[str], context: dict, layouts: LayoutStore, source: str
) -> str:
    output = Html(content)
    chain: list[str] = []
    name = layout_name
    while name is not None and name.strip().lower() not in NO_LAYOUT:
        if name in chain:
            raise RenderError(source, f"layout cycle: {' -> '.join(chain + [name])}")
        chain.append(name)
        layout = layouts.get(name, source)
        output = Html(render_template(layout.body, {**context, "content": output}, source, f"layout '{name}'"))
        name = layout.parent
    return str(output)


def page_context(doc: Document, content: str, words_per_minute: int) -> dict:
    words = count_words(strip_tags(content))
    page = dict(doc.front_matter.extra)
    page.update(
        {
            "title": doc.title,
            "url": doc.url,
            "date": doc.date,
            "slug": doc.slug,
            "path": doc.relative_path,
            "layout": doc.front_matter.layout,
            "categories": list(doc.categories),
            "tags": list(doc.tags),
            "excerpt": doc.front_matter.excerpt or make_summary(content),
            "words": words,
            "read_time": max(1, math.ceil(words / words_per_minute)),
        }
    )
    return page


def render_document(
    doc: Document, site: dict, layouts: LayoutStore, words_per_minute: int = 200
) -> Document:
    if doc.url is None:
        raise RenderError(doc.relative_path, "document has no resolved permalink")
    source = doc.relative_path
    if doc.extension in HTML_EXT:
        base = {"site": site, "page": page_context(doc, "", words_per_minute)}
        content = render_template(doc.body, base, source, "page body")
        toc = ""
    else:
        content, toc = convert_markdown(doc.body)
    context = {
        "site": site,
        "page": page_context(doc, content, words_per_minute),
        "toc": Html(toc),
    }
    output = apply_layouts(content, doc.front_matter.layout, context, layouts, source)
    return doc.with_html(output, content)


def read_template(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def copy_file(source: Path, dest: Path) -> None:
    dest.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(source, dest)

from __future__ import annotations

import datetime as dt
import fnmatch
import html as html_lib
import logging
import re
from dataclasses import dataclass, field, replace
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Any, Optional

import yaml

from .errors import ParseError
from .utils import parse_bool, to_naive_utc

if TYPE_CHECKING:
    from .config import SiteConfig

logger = logging.getLogger(__name__)

POST_NAME_RE = re.compile(r"^(?P<date>\d{4}-\d{2}-\d{2})-(?P<title>.+)$")
SLUG_RE = re.compile(r"[\W_]+", flags=re.UNICODE)
LIST_MARKER_RE = re.compile(r"^(?P<indent>[ \t]*)(?:[-+*]|\d+[.)])\s+")
FENCE_RE = re.compile(r"^(?P<indent>[ \t]*)(`{3,}|~{3,})")
CJK_RE = re.compile(r"[\u3040-\u30ff\u3400-\u4dbf\u4e00-\u9fff\uac00-\ud7af]")
WORD_RE = re.compile(r"[A-Za-z0-9]+(?:'[A-Za-z0-9]+)?")
DATE_FORMATS = ("%Y-%m-%d %H:%M:%S %z", "%Y-%m-%d %H:%M %z", "%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M")
HTML_EXT = ("html", "htm")
FRONT_MATTER_CLOSE = {"---", "..."}


def slugify(text: str) -> str:
    text = SLUG_RE.sub("-", str(text).lower())
    text = text.strip("-")
    return text or "untitled"


def titleize(slug: str) -> str:
    return " ".join(word.capitalize() for word in slug.split("-") if word)


def parse_list(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, (list, tuple)):
        items = [str(item).strip() for item in value if item is not None]
    else:
        value = str(value).strip()
        if value.startswith("[") and value.endswith("]"):
            value = value[1:-1]
        separator = "," if "," in value else None
        items = [item.strip().strip("'\"") for item in value.split(separator)]
    seen: list[str] = []
    for item in items:
        if item and item not in seen:
            seen.append(item)
    return tuple(seen)


def has_front_matter(text: str) -> bool:
    lines = text.lstrip("\ufeff").splitlines()
    return bool(lines) and lines[0].rstrip() == "---"


def parse_front_matter(text: str, source: str = "<string>") -> tuple[dict, str]:
    clean_text = text.lstrip("\ufeff")
    lines = clean_text.splitlines()
    if not lines or lines[0].rstrip() != "---":
        return {}, clean_text

    end = None
    for i in range(1, len(lines)):
        if lines[i].rstrip() in FRONT_MATTER_CLOSE:
            end = i
            break
    if end is None:
        raise ParseError(source, "unterminated front matter (missing closing '---')")

    try:
        meta = yaml.safe_load("\n".join(lines[1:end]))
    except (yaml.YAMLError, ValueError) as exc:
        raise ParseError(source, f"invalid front matter: {exc}") from exc
    if meta is None:
        meta = {}
    if not isinstance(meta, dict):
        raise ParseError(source, "front matter must be a mapping")
    body = "\n".join(lines[end + 1 :])
    return {str(key): value for key, value in meta.items()}, body


def parse_date(value: Any, source: str) -> dt.datetime:
    if isinstance(value, dt.datetime):
        return to_naive_utc(value)
    if isinstance(value, dt.date):
        return dt.datetime.combine(value, dt.time())
    if isinstance(value, str):
        text = value.strip()
        try:
            return to_naive_utc(dt.datetime.fromisoformat(text))
        except ValueError:
            pass
        for fmt in DATE_FORMATS:
            try:
                return to_naive_utc(dt.datetime.strptime(text, fmt))
            except ValueError:
                continue
    raise ParseError(source, f"invalid date {value!r}")


@dataclass(frozen=True)
class FrontMatter:
    title: Optional[str] = None
    date: Optional[dt.datetime] = None
    categories: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    layout: Optional[str] = None
    permalink: Optional[str] = None
    slug: Optional[str] = None
    excerpt: Optional[str] = None
    published: bool = True
    draft: bool = False
    extra: dict = field(default_factory=dict)

    RECOGNIZED = (
        "title",
        "date",
        "categories",
        "category",
        "tags",
        "layout",
        "permalink",
        "slug",
        "excerpt",
        "published",
        "draft",
    )

    @classmethod
    def from_mapping(cls, meta: dict, source: str = "<string>") -> "FrontMatter":
        def optional_str(key: str) -> Optional[str]:
            value = meta.get(key)
            if value is None:
                return None
            if isinstance(value, (dict, list)):
                raise ParseError(source, f"{key} must be a scalar, got {type(value).__name__}")
            return str(value)

        categories = parse_list(meta.get("category")) + parse_list(meta.get("categories"))
        published = meta.get("published", True)
        return cls(
            title=optional_str("title"),
            date=parse_date(meta["date"], source) if meta.get("date") is not None else None,
            categories=tuple(dict.fromkeys(categories)),
            tags=parse_list(meta.get("tags")),
            layout=optional_str("layout"),
            permalink=optional_str("permalink"),
            slug=optional_str("slug"),
            excerpt=optional_str("excerpt"),
            published=True if published is None else parse_bool(published),
            draft=parse_bool(meta.get("draft")),
            extra={key: value for key, value in meta.items() if key not in cls.RECOGNIZED},
        )


@dataclass(frozen=True)
class Document:
    source: Path
    relative_path: str
    kind: str
    front_matter: FrontMatter
    body: str
    date: Optional[dt.datetime] = None
    slug: str = ""
    categories: tuple[str, ...] = ()
    url: Optional[str] = None
    html: Optional[str] = None
    content: Optional[str] = None

    @property
    def is_post(self) -> bool:
        return self.kind in {"posts", "drafts"}

    @property
    def title(self) -> str:
        return self.front_matter.title or titleize(self.slug)

    @property
    def tags(self) -> tuple[str, ...]:
        return self.front_matter.tags

    @property
    def extension(self) -> str:
        return PurePosixPath(self.relative_path).suffix.lstrip(".").lower()

    def with_url(self, url: str) -> "Document":
        return replace(self, url=url)

    def with_html(self, html: str, content: Optional[str] = None) -> "Document":
        return replace(self, html=html, content=content)


@dataclass(frozen=True)
class StaticFile:
    source: Path
    relative_path: str


@dataclass
class ScanResult:
    documents: list[Document] = field(default_factory=list)
    static_files: list[StaticFile] = field(default_factory=list)
    errors: list[ParseError] = field(default_factory=list)

    @property
    def posts(self) -> list[Document]:
        return [doc for doc in self.documents if doc.is_post]


def _matches(path: str, patterns: tuple[str, ...]) -> bool:
    for pattern in patterns:
        pattern = pattern.strip("/")
        if not pattern:
            continue
        if path == pattern or fnmatch.fnmatchcase(path, pattern):
            return True
    return False


def _special(name: str) -> bool:
    return name.startswith(("_", ".")) or name.endswith(("~", "#"))


def is_excluded(parts: tuple[str, ...], config: SiteConfig) -> bool:
    for i in range(1, len(parts) + 1):
        prefix = "/".join(parts[:i])
        if _matches(prefix, config.include):
            continue
        if _matches(prefix, config.exclude) or _special(parts[i - 1]):
            return True
    return False


def content_extensions(config: SiteConfig) -> set[str]:
    return set(config.markdown_ext) | set(HTML_EXT)


def load_post(
    path: Path, relative_path: str, kind: str, dir_categories: tuple[str, ...], config: SiteConfig
) -> Document:
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise ParseError(relative_path, "not valid UTF-8") from exc
    meta, body = parse_front_matter(text, relative_path)
    values = config.defaults_for(relative_path, kind)
    values.update(meta)
    front_matter = FrontMatter.from_mapping(values, relative_path)

    stem = path.stem
    match = POST_NAME_RE.match(stem)
    if kind == "posts":
        if not match:
            raise ParseError(relative_path, "post file name must look like YYYY-MM-DD-title")
        try:
            file_date = dt.datetime.combine(dt.date.fromisoformat(match.group("date")), dt.time())
        except ValueError as exc:
            raise ParseError(relative_path, f"invalid date in file name: {exc}") from exc
        name_slug = match.group("title")
    else:
        file_date = dt.datetime.fromtimestamp(path.stat().st_mtime)
        name_slug = match.group("title") if match else stem

    categories = tuple(dict.fromkeys(dir_categories + front_matter.categories))
    return Document(
        source=path,
        relative_path=relative_path,
        kind=kind,
        front_matter=front_matter,
        body=body,
        date=front_matter.date or file_date,
        slug=slugify(front_matter.slug or name_slug),
        categories=categories,
    )


def load_page(path: Path, relative_path: str, text: str, config: SiteConfig) -> Document:
    meta, body = parse_front_matter(text, relative_path)
    values = config.defaults_for(relative_path, "pages")
    values.update(meta)
    front_matter = FrontMatter.from_mapping(values, relative_path)
    return Document(
        source=path,
        relative_path=relative_path,
        kind="pages",
        front_matter=front_matter,
        body=body,
        date=front_matter.date,
        slug=slugify(front_matter.slug or path.stem),
        categories=front_matter.categories,
    )


def load_documents(
    config: SiteConfig, source: Path, *, destination: Optional[Path] = None, drafts: bool = False
) -> ScanResult:
    result = ScanResult()
    if not source.is_dir():
        return result
    destination_resolved = destination.resolve() if destination is not None else None
    extensions = content_extensions(config)

    files = [path for path in source.rglob("*") if path.is_file()]
    files.sort(key=lambda p: p.relative_to(source).as_posix())
    for path in files:
        if destination_resolved is not None and path.resolve().is_relative_to(destination_resolved):
            continue
        rel = path.relative_to(source).as_posix()
        parts = PurePosixPath(rel).parts
        collection = next((part for part in parts[:-1] if part in {"_posts", "_drafts"}), None)
        try:
            if collection is not None:
                index = parts.index(collection)
                if is_excluded(parts[:index], config):
                    continue
                if collection == "_drafts" and not drafts:
                    continue
                if path.suffix.lstrip(".").lower() not in extensions:
                    continue
                kind = "posts" if collection == "_posts" else "drafts"
                document = load_post(path, rel, kind, parts[:index], config)
            else:
                if is_excluded(parts, config):
                    continue
                text = None
                if path.suffix.lstrip(".").lower() in extensions:
                    try:
                        text = path.read_text(encoding="utf-8")
                    except UnicodeDecodeError:
                        text = None
                if text is None or not has_front_matter(text):
                    result.static_files.append(StaticFile(path, rel))
                    continue
                document = load_page(path, rel, text, config)
        except ParseError as exc:
            logger.warning("Skipping %s: %s", rel, exc.message)
            result.errors.append(exc)
            continue
        if not document.front_matter.published or document.front_matter.draft:
            logger.info("Skipping unpublished %s", rel)
            continue
        result.documents.append(document)
    logger.debug(
        "Scanned %d documents and %d static files under %s",
        len(result.documents),
        len(result.static_files),
        source,
    )
    return result


def normalize_list_spacing(text: str) -> str:
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
        if in_fence:
            out.append(line)
            continue
        list_match = LIST_MARKER_RE.match(line)
        if list_match and not list_match.group("indent"):
            if out and out[-1].strip() and not LIST_MARKER_RE.match(out[-1]):
                out.append("")
        out.append(line)
    return "\n".join(out)


def count_words(text: str) -> int:
    text = html_lib.unescape(text)
    cjk_count = len(CJK_RE.findall(text))
    text = CJK_RE.sub(" ", text)
    word_count = len(WORD_RE.findall(text))
    return cjk_count + word_count

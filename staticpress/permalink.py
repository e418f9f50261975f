from __future__ import annotations

import posixpath
import re
from pathlib import PurePosixPath

from .content import Document, slugify
from .errors import CollisionError, ParseError

STYLES = {
    "date": "/:categories/:year/:month/:day/:title:output_ext",
    "pretty": "/:categories/:year/:month/:day/:title/",
    "ordinal": "/:categories/:year/:y_day/:title:output_ext",
    "none": "/:categories/:title:output_ext",
}
TOKEN_RE = re.compile(r":([a-z_]+)")
SLASHES_RE = re.compile(r"/+")
OUTPUT_EXT = ".html"

POST_TOKENS = frozenset(
    {
        "categories",
        "title",
        "slug",
        "year",
        "month",
        "i_month",
        "day",
        "i_day",
        "short_year",
        "y_day",
        "hour",
        "minute",
        "second",
        "output_ext",
    }
)
PAGE_TOKENS = frozenset({"path", "basename", "title", "slug", "categories", "output_ext"})


def expand_style(pattern: str) -> str:
    return STYLES.get(pattern, pattern)


def validate_pattern(pattern: str, tokens: frozenset[str]) -> None:
    if not pattern.strip():
        raise ValueError("empty permalink pattern")
    for name in TOKEN_RE.findall(pattern):
        if name not in tokens:
            raise ValueError(f"unknown placeholder ':{name}'")


def normalize_url(url: str) -> str:
    trailing = url.endswith("/")
    url = SLASHES_RE.sub("/", "/" + url)
    url = posixpath.normpath(url)
    if url in {"/", "."}:
        return "/"
    return url + "/" if trailing else url


def output_path(url: str) -> str:
    path = url.lstrip("/")
    if not path or url.endswith("/"):
        return f"{path}index.html"
    if PurePosixPath(path).suffix:
        return path
    return f"{path}{OUTPUT_EXT}"


def _post_values(doc: Document) -> dict[str, str]:
    date = doc.date
    values = {
        "categories": "/".join(slugify(category) for category in doc.categories),
        "title": doc.slug,
        "slug": doc.slug,
        "output_ext": OUTPUT_EXT,
    }
    if date is not None:
        values.update(
            {
                "year": f"{date.year:04d}",
                "month": f"{date.month:02d}",
                "i_month": str(date.month),
                "day": f"{date.day:02d}",
                "i_day": str(date.day),
                "short_year": date.strftime("%y"),
                "y_day": date.strftime("%j"),
                "hour": date.strftime("%H"),
                "minute": date.strftime("%M"),
                "second": date.strftime("%S"),
            }
        )
    return values


def _page_values(doc: Document) -> dict[str, str]:
    rel = PurePosixPath(doc.relative_path)
    parent = rel.parent.as_posix()
    return {
        "path": "" if parent == "." else parent,
        "basename": rel.stem,
        "title": doc.slug,
        "slug": doc.slug,
        "categories": "/".join(slugify(category) for category in doc.categories),
        "output_ext": OUTPUT_EXT,
    }


def page_pattern(doc: Document, site_pattern: str) -> str:
    if PurePosixPath(doc.relative_path).stem == "index":
        return "/:path/"
    if site_pattern.endswith("/"):
        return "/:path/:basename/"
    return "/:path/:basename:output_ext"


def expand_pattern(pattern: str, values: dict[str, str]) -> str:
    def repl(match: re.Match) -> str:
        name = match.group(1)
        if name not in values:
            raise ValueError(f"no value for ':{name}'")
        return values[name]

    return normalize_url(TOKEN_RE.sub(repl, pattern))


def resolve_url(doc: Document, pattern: str) -> str:
    tokens = POST_TOKENS if doc.is_post else PAGE_TOKENS
    values = _post_values(doc) if doc.is_post else _page_values(doc)
    if doc.front_matter.permalink:
        pattern = expand_style(doc.front_matter.permalink)
    elif not doc.is_post:
        pattern = page_pattern(doc, pattern)
    try:
        validate_pattern(pattern, tokens)
        return expand_pattern(pattern, values)
    except ValueError as exc:
        raise ParseError(doc.relative_path, f"invalid permalink {pattern!r}: {exc}") from exc


class PermalinkResolver:
    """Resolves document URLs and guarantees that no two outputs share a path.

    Every output of a build (documents, generated listings, feeds and static
    files) claims its output path here. The first claimant keeps the path;
    a later, different owner raises CollisionError.
    """

    def __init__(self, pattern: str) -> None:
        self.pattern = pattern
        self._claims: dict[str, str] = {}

    def claim(self, url: str, owner: str) -> str:
        return self.claim_path(output_path(url), owner)

    def claim_path(self, path: str, owner: str) -> str:
        existing = self._claims.get(path)
        if existing is not None and existing != owner:
            raise CollisionError(path, existing, owner)
        self._claims[path] = owner
        return path

    def resolve(self, doc: Document) -> Document:
        url = resolve_url(doc, self.pattern)
        self.claim(url, doc.relative_path)
        return doc.with_url(url)

    def claims(self) -> dict[str, str]:
        return dict(self._claims)

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence

from .content import Document
from .errors import ConfigError
from .permalink import normalize_url


@dataclass(frozen=True)
class Page:
    number: int
    posts: tuple[Document, ...]
    total_pages: int
    previous: Optional[int]
    next: Optional[int]
    url: str
    previous_url: Optional[str] = None
    next_url: Optional[str] = None


def page_url(number: int, paginate_path: str = "/page:num/") -> str:
    if ":num" not in paginate_path:
        raise ConfigError(f"paginate_path must contain ':num', got {paginate_path!r}")
    if number == 1:
        return "/"
    return normalize_url(paginate_path.replace(":num", str(number)))


def paginate(posts: Sequence[Document], per_page: int, paginate_path: str = "/page:num/") -> list[Page]:
    if isinstance(per_page, bool) or not isinstance(per_page, int) or per_page <= 0:
        raise ConfigError(f"paginate must be a positive integer, got {per_page!r}")
    total_pages = math.ceil(len(posts) / per_page)
    pages = []
    for number in range(1, total_pages + 1):
        start = (number - 1) * per_page
        previous = number - 1 if number > 1 else None
        following = number + 1 if number < total_pages else None
        pages.append(
            Page(
                number=number,
                posts=tuple(posts[start : start + per_page]),
                total_pages=total_pages,
                previous=previous,
                next=following,
                url=page_url(number, paginate_path),
                previous_url=page_url(previous, paginate_path) if previous else None,
                next_url=page_url(following, paginate_path) if following else None,
            )
        )
    return pages

"""Shared fixtures for staticpress tests."""

from __future__ import annotations

import datetime as dt
from pathlib import Path
from typing import Callable, Optional

import pytest

from staticpress.content import Document, FrontMatter


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def post_text(title: str, **fields: str) -> str:
    lines = ["---", f"title: {title}"]
    lines.extend(f"{key}: {value}" for key, value in fields.items())
    lines.extend(["---", "", f"Body of **{title}**.", ""])
    return "\n".join(lines)


@pytest.fixture
def make_doc() -> Callable[..., Document]:
    def factory(
        relative_path: str = "_posts/2020-01-02-hello-world.md",
        kind: str = "posts",
        date: Optional[dt.datetime] = dt.datetime(2020, 1, 2),
        slug: str = "hello-world",
        categories: tuple[str, ...] = (),
        tags: tuple[str, ...] = (),
        permalink: Optional[str] = None,
        layout: Optional[str] = None,
        title: Optional[str] = None,
        body: str = "",
        url: Optional[str] = None,
    ) -> Document:
        front_matter = FrontMatter(
            title=title,
            categories=categories,
            tags=tags,
            permalink=permalink,
            layout=layout,
        )
        return Document(
            source=Path(relative_path),
            relative_path=relative_path,
            kind=kind,
            front_matter=front_matter,
            body=body,
            date=date,
            slug=slug,
            categories=categories,
            url=url,
        )

    return factory


@pytest.fixture
def site_dir(tmp_path: Path) -> Path:
    """A small site: seven posts, one page, one static asset."""
    source = tmp_path / "site"
    write(
        source / "_config.yml",
        "\n".join(
            [
                "title: Test Blog",
                "description: Notes and tutorials.",
                "permalink: /:categories/:title/",
                "paginate: 5",
                "paginate_path: /page:num/",
                "include:",
                "  - _pages",
                "defaults:",
                "  - scope:",
                "      path: ''",
                "      type: posts",
                "    values:",
                "      layout: single",
                "  - scope:",
                "      path: _pages",
                "      type: pages",
                "    values:",
                "      layout: single",
                "",
            ]
        ),
    )
    for day in range(1, 8):
        write(
            source / "_posts" / f"2021-03-0{day}-post-{day}.md",
            post_text(f"Post {day}", categories="Notes", tags=f"[t{day % 2}, shared]"),
        )
    write(source / "_pages" / "about.md", post_text("About", permalink="/about/"))
    write(source / "assets" / "style.css", "body { color: black; }\n")
    return source

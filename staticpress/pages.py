from __future__ import annotations

import datetime as dt
import html
from dataclasses import dataclass, field
from typing import Optional, Sequence

from .archive import ArchiveEntry
from .config import SiteConfig
from .content import Document, slugify
from .paginator import Page
from .render import DATE_FMT, Html, LayoutStore, apply_layouts, make_summary
from .utils import iso_date, join_url

FEED_LIMIT = 10
HOME_LAYOUT = "home"
ARCHIVE_LAYOUT = "archive"


@dataclass(frozen=True)
class GeneratedPage:
    label: str
    url: str
    title: str
    layout: str
    content: str
    extra: dict = field(default_factory=dict)


def href(config: SiteConfig, url: str) -> str:
    return f"{config.baseurl}{url}"


def build_post_cards(posts: Sequence[Document], config: SiteConfig) -> str:
    cards = []
    for post in posts:
        title = html.escape(post.title)
        url = href(config, post.url or "/")
        summary = html.escape(post.front_matter.excerpt or make_summary(post.content or ""))
        date = post.date.strftime(DATE_FMT) if post.date else ""
        tag_links = " ".join(
            f'<a class="chip" href="{href(config, config.tag_archive_path)}{slugify(tag)}/">{html.escape(tag)}</a>'
            for tag in post.tags
        )
        cards.append(
            '<article class="post-card">'
            '<div class="post-meta">'
            f'<span class="post-date">{date}</span>'
            f'<div class="post-tags">{tag_links}</div></div>'
            f'<h2 class="post-title"><a href="{url}">{title}</a></h2>'
            f'<p class="post-summary">{summary}</p>'
            f'<a class="post-more" href="{url}">Read more</a>'
            "</article>"
        )
    return "\n".join(cards)


def build_pagination(page: Page, config: SiteConfig) -> str:
    if page.total_pages <= 1:
        return ""
    items = []
    if page.previous_url:
        items.append(f'<a class="page-link" href="{href(config, page.previous_url)}">Previous</a>')
    else:
        items.append('<span class="page-link is-disabled">Previous</span>')
    items.append(f'<span class="page-number">Page {page.number} of {page.total_pages}</span>')
    if page.next_url:
        items.append(f'<a class="page-link" href="{href(config, page.next_url)}">Next</a>')
    else:
        items.append('<span class="page-link is-disabled">Next</span>')
    return f'<nav class="pagination">{"".join(items)}</nav>'


def home_pages(
    pages: Sequence[Page], config: SiteConfig, total_posts: int, index: Optional[Document] = None
) -> list[GeneratedPage]:
    """Build the paginated home listing.

    When ``index`` is given, the site's own index document stands in for
    page 1: its rendered body comes before the post cards and its layout,
    title and front matter are used for that page.
    """
    generated = []
    for page in pages:
        content = f'<div class="post-grid">{build_post_cards(page.posts, config)}</div>{build_pagination(page, config)}'
        title = config.title or "Home"
        if page.number > 1:
            title = f"{title} | Page {page.number}"
        label = f"<home page {page.number}>"
        url = page.url
        layout = HOME_LAYOUT
        extra: dict = {}
        if page.number == 1 and index is not None:
            content = (index.content or "") + content
            title = index.front_matter.title or title
            label = index.relative_path
            url = index.url or url
            layout = index.front_matter.layout or HOME_LAYOUT
            extra.update(index.front_matter.extra)
        extra["paginator"] = {
            "page": page.number,
            "total_pages": page.total_pages,
            "total_posts": total_posts,
            "previous_page": page.previous,
            "previous_page_path": page.previous_url,
            "next_page": page.next,
            "next_page_path": page.next_url,
        }
        generated.append(
            GeneratedPage(label=label, url=url, title=title, layout=layout, content=content, extra=extra)
        )
    return generated


def _archive_list(entry: ArchiveEntry, config: SiteConfig) -> str:
    rows = []
    for doc in entry.documents:
        date = doc.date.strftime(DATE_FMT) if doc.date else ""
        rows.append(
            f'<li><span class="archive-date">{date}</span>'
            f'<a href="{href(config, doc.url or "/")}">{html.escape(doc.title)}</a></li>'
        )
    return f'<ul class="archive-list">{"".join(rows)}</ul>'


def archive_pages(
    index: dict[str, ArchiveEntry], base_path: str, heading: str, config: SiteConfig
) -> list[GeneratedPage]:
    sections = []
    generated = []
    for label, entry in index.items():
        label_url = f"{base_path}{entry.slug}/"
        sections.append(
            f'<section class="archive-group" id="{entry.slug}">'
            f'<h2><a href="{href(config, label_url)}">{html.escape(label)}</a>'
            f'<span class="count">{len(entry)}</span></h2>'
            f"{_archive_list(entry, config)}</section>"
        )
        generated.append(
            GeneratedPage(
                label=f"<{heading.lower()} {label}>",
                url=label_url,
                title=f"{heading}: {label}",
                layout=ARCHIVE_LAYOUT,
                content=_archive_list(entry, config),
                extra={"archive": {"label": label, "count": len(entry)}},
            )
        )
    if not sections:
        sections.append(f'<p class="archive-empty">No {heading.lower()} yet.</p>')
    overview = GeneratedPage(
        label=f"<{heading.lower()} archive>",
        url=base_path,
        title=heading,
        layout=ARCHIVE_LAYOUT,
        content="".join(sections),
        extra={"archive": {"label": heading, "count": len(index)}},
    )
    return [overview] + generated


def render_generated(page: GeneratedPage, site: dict, layouts: LayoutStore) -> str:
    page_fields = dict(page.extra)
    page_fields.update({"title": page.title, "url": page.url, "layout": page.layout})
    context = {"site": site, "page": page_fields, "toc": Html("")}
    context.update(page.extra)
    return apply_layouts(page.content, page.layout, context, layouts, page.label)


def build_atom(posts: Sequence[Document], config: SiteConfig, limit: int = FEED_LIMIT) -> Optional[str]:
    if not config.url:
        return None
    site_url = join_url(config.url, config.baseurl)
    updated = iso_date(posts[0].date) if posts and posts[0].date else iso_date(dt.datetime.now(dt.timezone.utc))
    entries = []
    for post in posts[:limit]:
        link = join_url(site_url, post.url or "/")
        summary = post.front_matter.excerpt or make_summary(post.content or "")
        entries.append(
            "\n".join(
                [
                    "<entry>",
                    f"<title>{html.escape(post.title)}</title>",
                    f'<link href="{link}" />',
                    f"<id>{link}</id>",
                    f"<updated>{iso_date(post.date) if post.date else updated}</updated>",
                    *[f'<category term="{html.escape(category)}" />' for category in post.categories],
                    f"<summary>{html.escape(summary)}</summary>",
                    "</entry>",
                ]
            )
        )
    return "\n".join(
        [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<feed xmlns="http://www.w3.org/2005/Atom">',
            f"<title>{html.escape(config.title)}</title>",
            f"<subtitle>{html.escape(config.description)}</subtitle>",
            f"<id>{site_url}</id>",
            f"<updated>{updated}</updated>",
            f'<link href="{join_url(site_url, "feed.xml")}" rel="self" />',
            f'<link href="{site_url}" />',
            "\n".join(entries),
            "</feed>",
        ]
    )


def build_sitemap(
    entries: Sequence[tuple[str, Optional[dt.datetime]]], config: SiteConfig
) -> Optional[str]:
    if not config.url:
        return None
    site_url = join_url(config.url, config.baseurl)
    items = []
    for url, lastmod in entries:
        lines = ["<url>", f"<loc>{html.escape(join_url(site_url, url))}</loc>"]
        if lastmod:
            lines.append(f"<lastmod>{lastmod.date().isoformat()}</lastmod>")
        lines.append("</url>")
        items.append("\n".join(lines))
    return "\n".join(
        [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
            "\n".join(items),
            "</urlset>",
        ]
    )

from __future__ import annotations

import datetime as dt
import enum
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from pathlib import Path
from typing import Optional

from .archive import ArchiveIndex, sort_by_date
from .config import SiteConfig
from .content import Document, ScanResult, StaticFile, load_documents
from .errors import BuildReport, ParseError, RenderError
from .pages import (
    GeneratedPage,
    archive_pages,
    build_atom,
    build_sitemap,
    home_pages,
    render_generated,
)
from .paginator import Page, paginate, page_url
from .permalink import PermalinkResolver, output_path
from .render import LayoutStore, copy_file, render_document, write_text
from .utils import clean_output_dir

logger = logging.getLogger(__name__)

FEED_PLUGIN = "jekyll-feed"
SITEMAP_PLUGIN = "jekyll-sitemap"


class BuildStage(enum.IntEnum):
    SCANNING = 1
    INDEXING = 2
    PAGINATING = 3
    RENDERING = 4
    DONE = 5


class SiteBuilder:
    """Runs one full build of a site.

    Stages run strictly in order: scanning, indexing, paginating, rendering.
    Every output path is claimed before rendering starts, so a permalink
    collision aborts the build before anything is written. Per-document
    parse and render failures are collected in the returned BuildReport.
    """

    def __init__(
        self,
        config: SiteConfig,
        source: Path,
        destination: Optional[Path] = None,
        *,
        clean: bool = True,
        drafts: bool = False,
        workers: Optional[int] = None,
    ) -> None:
        self.config = config
        self.source = source
        self.destination = destination if destination is not None else source / config.destination
        self.clean = clean
        self.drafts = drafts
        workers = config.build_workers if workers is None else workers
        if workers <= 0:
            workers = os.cpu_count() or 1
        self.workers = max(1, min(workers, 32))
        self.stage: Optional[BuildStage] = None
        self.report = BuildReport()
        self.resolver = PermalinkResolver(config.permalink)
        self.scan = ScanResult()
        self.documents: list[Document] = []
        self.posts: list[Document] = []
        self.archives = ArchiveIndex()
        self.pages: list[Page] = []
        self.generated: list[GeneratedPage] = []
        self.home_document: Optional[Document] = None

    def _enter(self, stage: BuildStage) -> None:
        if self.stage is not None and stage != self.stage + 1:
            raise RuntimeError(f"cannot move from {self.stage.name} to {stage.name}")
        if self.stage is None and stage != BuildStage.SCANNING:
            raise RuntimeError(f"a build starts with SCANNING, not {stage.name}")
        logger.debug("Build stage: %s", stage.name)
        self.stage = stage

    def run(self) -> BuildReport:
        self._enter(BuildStage.SCANNING)
        self._scan()
        self._enter(BuildStage.INDEXING)
        self._index()
        self._enter(BuildStage.PAGINATING)
        self._paginate()
        self._enter(BuildStage.RENDERING)
        self._render()
        self._enter(BuildStage.DONE)
        return self.report

    def _scan(self) -> None:
        self.scan = load_documents(self.config, self.source, destination=self.destination, drafts=self.drafts)
        for error in self.scan.errors:
            self.report.add_failure(error.source, error)

    def _index(self) -> None:
        resolved = []
        for doc in self.scan.documents:
            try:
                resolved.append(self.resolver.resolve(doc))
            except ParseError as exc:
                logger.warning("Skipping %s: %s", exc.source, exc.message)
                self.report.add_failure(exc.source, exc)
        self.documents = resolved
        self.posts = sort_by_date(doc for doc in resolved if doc.is_post)
        self.archives = ArchiveIndex.build(self.posts)

    def _paginate(self) -> None:
        per_page = self.config.paginate
        if per_page is None:
            per_page = max(1, len(self.posts))
        self.pages = paginate(self.posts, per_page, self.config.paginate_path)
        if not self.pages:
            self.pages = [Page(1, (), 1, None, None, page_url(1, self.config.paginate_path))]
        owner = self.resolver.claims().get(output_path(self.pages[0].url))
        self.home_document = next((doc for doc in self.documents if doc.relative_path == owner), None)
        if self.home_document is not None:
            logger.debug("Home page 1 is rendered through %s", owner)
        for page in self.pages:
            if page.number == 1 and self.home_document is not None:
                continue
            self.resolver.claim(page.url, f"<home page {page.number}>")
        for base_path, heading, index in (
            (self.config.category_archive_path, "Categories", self.archives.categories),
            (self.config.tag_archive_path, "Tags", self.archives.tags),
        ):
            self.resolver.claim(base_path, f"<{heading.lower()} archive>")
            for label, entry in index.items():
                self.resolver.claim(f"{base_path}{entry.slug}/", f"<{heading.lower()} {label}>")
        if self.config.has_plugin(FEED_PLUGIN):
            self.resolver.claim("/feed.xml", f"<{FEED_PLUGIN}>")
        if self.config.has_plugin(SITEMAP_PLUGIN):
            self.resolver.claim("/sitemap.xml", f"<{SITEMAP_PLUGIN}>")
        for static in self.scan.static_files:
            self.resolver.claim_path(static.relative_path, static.relative_path)

    def _render(self) -> None:
        if self.clean:
            clean_output_dir(self.destination, self.source)
        self.destination.mkdir(parents=True, exist_ok=True)
        layouts = LayoutStore.for_site(self.source)
        site = self.config.as_context()
        site["time"] = dt.datetime.now()

        def render_one(doc: Document) -> tuple[Optional[Document], Optional[RenderError]]:
            try:
                return render_document(doc, site, layouts, self.config.words_per_minute), None
            except RenderError as exc:
                return None, exc

        if self.workers > 1 and len(self.documents) > 1:
            with ThreadPoolExecutor(max_workers=min(self.workers, len(self.documents))) as executor:
                results = list(executor.map(render_one, self.documents))
        else:
            results = [render_one(doc) for doc in self.documents]

        rendered: dict[str, Document] = {}
        for doc, (result, error) in zip(self.documents, results):
            if error is not None:
                logger.warning("Failed to render %s: %s", doc.relative_path, error)
                self.report.add_failure(doc.relative_path, error)
                continue
            rendered[doc.relative_path] = result
            if doc is self.home_document:
                continue
            self._write(result.url or "/", result.html or "")

        posts = [rendered[doc.relative_path] for doc in self.posts if doc.relative_path in rendered]
        pages = [
            replace(page, posts=tuple(rendered[doc.relative_path] for doc in page.posts if doc.relative_path in rendered))
            for page in self.pages
        ]
        archives = ArchiveIndex.build(posts)
        index = None
        if self.home_document is not None:
            index = rendered.get(self.home_document.relative_path)
            if index is None:
                pages = pages[1:]
        self.generated = home_pages(pages, self.config, len(posts), index)
        self.generated += archive_pages(archives.categories, self.config.category_archive_path, "Categories", self.config)
        self.generated += archive_pages(archives.tags, self.config.tag_archive_path, "Tags", self.config)
        for page in self.generated:
            try:
                self._write(page.url, render_generated(page, site, layouts))
            except RenderError as exc:
                logger.warning("Failed to render %s: %s", exc.source, exc.message)
                self.report.add_failure(page.label, exc)

        if self.config.has_plugin(FEED_PLUGIN):
            feed = build_atom(posts, self.config)
            if feed is None:
                logger.warning("Skipping feed.xml: no site url configured")
            else:
                self._write("/feed.xml", feed)
        if self.config.has_plugin(SITEMAP_PLUGIN):
            entries = [(doc.url or "/", doc.date) for doc in rendered.values()]
            seen = {url for url, _ in entries}
            entries += [(page.url, None) for page in self.generated if page.url not in seen]
            sitemap = build_sitemap(entries, self.config)
            if sitemap is None:
                logger.warning("Skipping sitemap.xml: no site url configured")
            else:
                self._write("/sitemap.xml", sitemap)

        for static in self.scan.static_files:
            self._copy(static)
        logger.info(
            "Rendered %d of %d documents, %d generated pages, %d static files",
            len(rendered),
            len(self.documents),
            len(self.generated),
            len(self.scan.static_files),
        )

    def _write(self, url: str, text: str) -> None:
        path = self.destination / output_path(url)
        write_text(path, text)
        self.report.written.append(path)

    def _copy(self, static: StaticFile) -> None:
        path = self.destination / static.relative_path
        copy_file(static.source, path)
        self.report.written.append(path)


def build_site(
    config: SiteConfig,
    source: Path,
    destination: Optional[Path] = None,
    *,
    clean: bool = True,
    drafts: bool = False,
    workers: Optional[int] = None,
) -> BuildReport:
    builder = SiteBuilder(config, source, destination, clean=clean, drafts=drafts, workers=workers)
    return builder.run()

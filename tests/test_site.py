"""End-to-end tests for the site builder."""

from __future__ import annotations

from pathlib import Path

import pytest

from conftest import post_text, write
from staticpress.config import SiteConfig, load_config
from staticpress.errors import CollisionError, ConfigError, ParseError, RenderError
from staticpress.site import BuildStage, SiteBuilder, build_site


def config_for(source: Path, **overrides) -> SiteConfig:
    data = load_config(source / "_config.yml")
    data.update(overrides)
    return SiteConfig.from_mapping(data)


class TestBuildSite:
    """Tests for a complete build."""

    def test_builds_every_output(self, site_dir: Path) -> None:
        report = build_site(config_for(site_dir), site_dir, workers=1)
        out = site_dir / "_site"

        assert report.ok
        for rel in (
            "index.html",
            "page2/index.html",
            "notes/post-1/index.html",
            "notes/post-7/index.html",
            "about/index.html",
            "categories/index.html",
            "categories/notes/index.html",
            "tags/index.html",
            "tags/shared/index.html",
            "tags/t0/index.html",
            "tags/t1/index.html",
            "assets/style.css",
        ):
            assert (out / rel).is_file(), rel
        assert not (out / "_config.yml").exists()
        assert set(report.written) == {path for path in out.rglob("*") if path.is_file()}

    def test_home_pages_list_newest_first(self, site_dir: Path) -> None:
        build_site(config_for(site_dir), site_dir, workers=1)
        out = site_dir / "_site"

        first = (out / "index.html").read_text(encoding="utf-8")
        second = (out / "page2" / "index.html").read_text(encoding="utf-8")

        assert first.index("Post 7") < first.index("Post 3")
        assert "Post 2" not in first
        assert "/notes/post-2/" in second and "/notes/post-1/" in second
        assert 'href="/page2/"' in first
        assert 'href="/"' in second
        assert "Page 2 of 2" in second

    def test_post_output_uses_layouts(self, site_dir: Path) -> None:
        build_site(config_for(site_dir), site_dir, workers=1)
        text = (site_dir / "_site" / "notes" / "post-3" / "index.html").read_text(encoding="utf-8")
        assert "<title>Post 3 | Test Blog</title>" in text
        assert "<strong>Post 3</strong>" in text
        assert "2021-03-03" in text
        assert "t1, shared" in text

    def test_tag_archive_lists_members(self, site_dir: Path) -> None:
        build_site(config_for(site_dir), site_dir, workers=1)
        out = site_dir / "_site" / "tags"
        odd = (out / "t1" / "index.html").read_text(encoding="utf-8")
        overview = (out / "index.html").read_text(encoding="utf-8")

        for day in (1, 3, 5, 7):
            assert f"/notes/post-{day}/" in odd
        assert "/notes/post-2/" not in odd
        assert 'id="shared"' in overview

    def test_no_pagination_means_one_home_page(self, site_dir: Path) -> None:
        config = config_for(site_dir, paginate=None)
        build_site(config, site_dir, workers=1)
        home = (site_dir / "_site" / "index.html").read_text(encoding="utf-8")
        assert all(f"/notes/post-{day}/" in home for day in range(1, 8))
        assert not (site_dir / "_site" / "page2").exists()

    def test_empty_site_still_has_home_page(self, tmp_path: Path) -> None:
        report = build_site(SiteConfig.from_mapping({"title": "Empty", "paginate": 3}), tmp_path, workers=1)
        assert report.ok
        assert (tmp_path / "_site" / "index.html").is_file()
        assert "No categories yet." in (tmp_path / "_site" / "categories" / "index.html").read_text(encoding="utf-8")

    def test_site_index_renders_home_page_one(self, site_dir: Path) -> None:
        write(site_dir / "index.html", '---\nlayout: home\n---\n<p class="intro">Welcome to {{ site.title }}</p>\n')
        config = config_for(site_dir, url="https://example.com", plugins=["jekyll-sitemap"])

        report = build_site(config, site_dir, workers=1)
        out = site_dir / "_site"

        assert report.ok
        home = (out / "index.html").read_text(encoding="utf-8")
        assert home.index("Welcome to Test Blog") < home.index("/notes/post-7/")
        assert 'href="/page2/"' in home
        assert "/notes/post-2/" in (out / "page2" / "index.html").read_text(encoding="utf-8")
        assert (out / "sitemap.xml").read_text(encoding="utf-8").count("<loc>https://example.com/</loc>") == 1

    def test_failed_site_index_leaves_later_pages(self, site_dir: Path) -> None:
        write(site_dir / "index.html", "---\nlayout: nonexistent\n---\n")

        report = build_site(config_for(site_dir), site_dir, workers=1)

        assert report.failed_sources() == ["index.html"]
        assert not (site_dir / "_site" / "index.html").exists()
        assert (site_dir / "_site" / "page2" / "index.html").is_file()

    def test_paginator_counts_every_post(self, site_dir: Path) -> None:
        write(
            site_dir / "_layouts" / "home.html",
            "---\nlayout: default\n---\n<p>{{ paginator.total_posts }} posts</p>{{ content }}",
        )
        build_site(config_for(site_dir), site_dir, workers=1)
        out = site_dir / "_site"
        assert "<p>7 posts</p>" in (out / "index.html").read_text(encoding="utf-8")
        assert "<p>7 posts</p>" in (out / "page2" / "index.html").read_text(encoding="utf-8")

    def test_parallel_render_matches_serial(self, site_dir: Path, tmp_path: Path) -> None:
        config = config_for(site_dir)
        build_site(config, site_dir, tmp_path / "serial", workers=1)
        build_site(config, site_dir, tmp_path / "parallel", workers=4)
        serial = sorted(p.relative_to(tmp_path / "serial") for p in (tmp_path / "serial").rglob("*") if p.is_file())
        parallel = sorted(
            p.relative_to(tmp_path / "parallel") for p in (tmp_path / "parallel").rglob("*") if p.is_file()
        )
        assert serial == parallel
        rel = Path("notes") / "post-4" / "index.html"
        assert (tmp_path / "serial" / rel).read_text(encoding="utf-8") == (tmp_path / "parallel" / rel).read_text(
            encoding="utf-8"
        )

    def test_clean_removes_stale_output(self, site_dir: Path) -> None:
        write(site_dir / "_site" / "stale.html", "old")
        build_site(config_for(site_dir), site_dir, workers=1)
        assert not (site_dir / "_site" / "stale.html").exists()

    def test_no_clean_keeps_stale_output(self, site_dir: Path) -> None:
        write(site_dir / "_site" / "stale.html", "old")
        build_site(config_for(site_dir), site_dir, clean=False, workers=1)
        assert (site_dir / "_site" / "stale.html").exists()

    def test_drafts(self, site_dir: Path) -> None:
        write(site_dir / "_drafts" / "wip.md", post_text("Work in progress"))
        build_site(config_for(site_dir), site_dir, workers=1)
        assert not (site_dir / "_site" / "wip").exists()
        build_site(config_for(site_dir), site_dir, drafts=True, workers=1)
        assert (site_dir / "_site" / "wip" / "index.html").is_file()


class TestFailures:
    """Tests for per-document failures and fatal collisions."""

    def test_collision_aborts_before_writing(self, site_dir: Path) -> None:
        write(site_dir / "_posts" / "2021-01-01-same.md", post_text("First"))
        write(site_dir / "_posts" / "2021-02-01-same.md", post_text("Second"))
        config = config_for(site_dir, permalink="/:title/")

        with pytest.raises(CollisionError) as excinfo:
            build_site(config, site_dir, workers=1)

        assert excinfo.value.path == "same/index.html"
        assert excinfo.value.first == "_posts/2021-01-01-same.md"
        assert excinfo.value.second == "_posts/2021-02-01-same.md"
        assert not (site_dir / "_site").exists()

    def test_page_colliding_with_generated_page(self, site_dir: Path) -> None:
        write(site_dir / "tags.md", post_text("Tags", permalink="/tags/"))
        with pytest.raises(CollisionError) as excinfo:
            build_site(config_for(site_dir), site_dir, workers=1)
        assert excinfo.value.first == "tags.md"

    def test_parse_error_is_reported(self, site_dir: Path) -> None:
        write(site_dir / "_posts" / "2021-04-01-broken.md", "---\ntitle: Broken\n")

        report = build_site(config_for(site_dir), site_dir, workers=1)

        assert report.failed_sources() == ["_posts/2021-04-01-broken.md"]
        assert isinstance(report.failures[0].error, ParseError)
        assert (site_dir / "_site" / "notes" / "post-1" / "index.html").is_file()

    def test_impossible_date_is_a_parse_error(self, site_dir: Path) -> None:
        write(site_dir / "_posts" / "2021-02-28-leap.md", "---\ntitle: Leap\ndate: 2021-02-30\n---\nText\n")

        report = build_site(config_for(site_dir), site_dir, workers=1)

        assert report.failed_sources() == ["_posts/2021-02-28-leap.md"]
        assert isinstance(report.failures[0].error, ParseError)
        assert (site_dir / "_site" / "notes" / "post-1" / "index.html").is_file()

    def test_undecodable_post_is_a_parse_error(self, site_dir: Path) -> None:
        (site_dir / "_posts" / "2021-02-28-binary.md").write_bytes(b"\xff\xfe\x00")

        report = build_site(config_for(site_dir), site_dir, workers=1)

        assert report.failed_sources() == ["_posts/2021-02-28-binary.md"]
        assert (site_dir / "_site" / "index.html").is_file()

    def test_render_error_is_reported(self, site_dir: Path) -> None:
        write(site_dir / "_posts" / "2021-04-01-odd.md", post_text("Odd", layout="nonexistent", tags="[lonely]"))

        report = build_site(config_for(site_dir), site_dir, workers=2)
        out = site_dir / "_site"

        assert report.failed_sources() == ["_posts/2021-04-01-odd.md"]
        assert isinstance(report.failures[0].error, RenderError)
        assert not (out / "odd").exists()
        assert "/odd/" not in (out / "index.html").read_text(encoding="utf-8")
        assert not (out / "tags" / "lonely").exists()
        assert (out / "notes" / "post-7" / "index.html").is_file()

    def test_bad_permalink_is_a_parse_error(self, site_dir: Path) -> None:
        write(site_dir / "_posts" / "2021-04-01-odd.md", post_text("Odd", permalink="/:author/"))
        report = build_site(config_for(site_dir), site_dir, workers=1)
        assert report.failed_sources() == ["_posts/2021-04-01-odd.md"]
        assert isinstance(report.failures[0].error, ParseError)

    def test_refuses_to_clean_source(self, site_dir: Path) -> None:
        with pytest.raises(ConfigError):
            build_site(config_for(site_dir), site_dir, site_dir.parent, workers=1)

    def test_refuses_to_clean_outside_source(self, site_dir: Path, tmp_path: Path) -> None:
        out = tmp_path / "elsewhere"
        write(out / "keep.txt", "unrelated")

        with pytest.raises(ConfigError, match="outside"):
            build_site(config_for(site_dir), site_dir, out, workers=1)
        assert (out / "keep.txt").is_file()

        report = build_site(config_for(site_dir), site_dir, out, clean=False, workers=1)
        assert report.ok
        assert (out / "keep.txt").is_file()
        assert (out / "index.html").is_file()


class TestPlugins:
    """Tests for the feed and sitemap outputs."""

    def test_feed_and_sitemap(self, site_dir: Path) -> None:
        config = config_for(site_dir, url="https://example.com", plugins=["jekyll-feed", "jekyll-sitemap"])
        build_site(config, site_dir, workers=1)
        out = site_dir / "_site"

        feed = (out / "feed.xml").read_text(encoding="utf-8")
        sitemap = (out / "sitemap.xml").read_text(encoding="utf-8")

        assert feed.count("<entry>") == 7
        assert "<title>Post 7</title>" in feed
        assert "https://example.com/notes/post-7/" in feed
        assert "<loc>https://example.com/notes/post-1/</loc>" in sitemap
        assert "<loc>https://example.com/tags/shared/</loc>" in sitemap
        assert "<lastmod>2021-03-01</lastmod>" in sitemap

    def test_feed_needs_site_url(self, site_dir: Path) -> None:
        report = build_site(config_for(site_dir, plugins=["jekyll-feed"]), site_dir, workers=1)
        assert report.ok
        assert not (site_dir / "_site" / "feed.xml").exists()

    def test_without_plugins_no_feed(self, site_dir: Path) -> None:
        build_site(config_for(site_dir, url="https://example.com"), site_dir, workers=1)
        assert not (site_dir / "_site" / "feed.xml").exists()
        assert not (site_dir / "_site" / "sitemap.xml").exists()


class TestBuildStages:
    """Tests for the build stage machine."""

    def test_run_ends_done(self, site_dir: Path) -> None:
        builder = SiteBuilder(config_for(site_dir), site_dir, workers=1)
        assert builder.stage is None
        builder.run()
        assert builder.stage is BuildStage.DONE

    def test_stages_only_move_forward(self, site_dir: Path) -> None:
        builder = SiteBuilder(config_for(site_dir), site_dir, workers=1)
        builder.run()
        with pytest.raises(RuntimeError):
            builder.run()

    def test_cannot_skip_scanning(self, site_dir: Path) -> None:
        builder = SiteBuilder(config_for(site_dir), site_dir, workers=1)
        with pytest.raises(RuntimeError):
            builder._enter(BuildStage.RENDERING)

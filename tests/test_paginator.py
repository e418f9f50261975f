"""Tests for the paginator."""

from __future__ import annotations

import datetime as dt

import pytest

from staticpress.errors import ConfigError
from staticpress.paginator import page_url, paginate


@pytest.fixture
def posts(make_doc):
    def factory(count: int):
        return [
            make_doc(
                relative_path=f"_posts/2020-01-{day:02d}-post-{day}.md",
                slug=f"post-{day}",
                date=dt.datetime(2020, 1, day),
            )
            for day in range(count, 0, -1)
        ]

    return factory


class TestPaginate:
    """Tests for paginate."""

    def test_seven_posts_five_per_page(self, posts) -> None:
        items = posts(7)

        pages = paginate(items, 5)

        assert [len(page.posts) for page in pages] == [5, 2]
        assert pages[0].previous is None
        assert pages[0].next == 2
        assert pages[1].previous == 1
        assert pages[1].next is None
        assert pages[0].url == "/"
        assert pages[1].url == "/page2/"
        assert pages[0].next_url == "/page2/"
        assert pages[1].previous_url == "/"
        assert {page.total_pages for page in pages} == {2}

    @pytest.mark.parametrize("total", [1, 4, 5, 6, 10, 11, 23])
    @pytest.mark.parametrize("per_page", [1, 3, 5, 10])
    def test_pages_partition_posts_in_order(self, posts, total: int, per_page: int) -> None:
        items = posts(total)

        pages = paginate(items, per_page)

        assert [doc for page in pages for doc in page.posts] == items
        assert len(pages) == -(-total // per_page)
        assert all(1 <= len(page.posts) <= per_page for page in pages)
        assert [page.number for page in pages] == list(range(1, len(pages) + 1))

    def test_no_posts_gives_no_pages(self) -> None:
        assert paginate([], 5) == []

    @pytest.mark.parametrize("per_page", [0, -1, True, "5", 2.5, None])
    def test_invalid_page_size(self, posts, per_page) -> None:
        with pytest.raises(ConfigError):
            paginate(posts(3), per_page)

    def test_custom_paginate_path(self, posts) -> None:
        pages = paginate(posts(3), 1, "/blog/page/:num")
        assert [page.url for page in pages] == ["/", "/blog/page/2", "/blog/page/3"]


class TestPageUrl:
    """Tests for page_url."""

    def test_first_page_is_root(self) -> None:
        assert page_url(1, "/page:num/") == "/"

    def test_later_pages(self) -> None:
        assert page_url(3, "/page:num/") == "/page3/"

    def test_requires_num_placeholder(self) -> None:
        with pytest.raises(ConfigError):
            page_url(2, "/pages/")

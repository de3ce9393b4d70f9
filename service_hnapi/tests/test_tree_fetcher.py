"""
Unit tests for the recursive tree fetcher.
"""

import asyncio

import pytest

from shared.errors import NotFoundError, OriginError, ValidationError
from shared.metrics import MetricsCollector
from shared.test_helpers import TestDataFactory as F

from service_hnapi.app.domain.tree_fetcher import TreeFetcher
from fakes import FakeItemSource


NOW = F.BASE_TIME + 3600
TIMEOUT = 0.05


def make_fetcher(source, **kwargs):
    kwargs.setdefault("comment_timeout", TIMEOUT)
    return TreeFetcher(source, **kwargs)


def ids_of(comments):
    return [comment["id"] for comment in comments]


class TestFetchTree:
    """Comment tree resolution."""

    @pytest.mark.asyncio
    async def test_item_without_kids_has_no_comments(self):
        fetcher = make_fetcher(FakeItemSource([F.story(1)]))

        result = await fetcher.fetch_item(1, now=NOW)

        assert result["comments"] == []
        assert result["comments_count"] == 0
        assert result["time_ago"] == "an hour ago"

    @pytest.mark.asyncio
    async def test_absent_root_returns_none(self):
        fetcher = make_fetcher(FakeItemSource())

        assert await fetcher.fetch_tree(404) is None
        assert await fetcher.fetch_item(404) is None

    @pytest.mark.asyncio
    async def test_root_transport_error_becomes_origin_error(self):
        fetcher = make_fetcher(FakeItemSource(failures=[1]))

        with pytest.raises(OriginError) as exc_info:
            await fetcher.fetch_tree(1)

        assert exc_info.value.details == {"item_id": 1}
        assert exc_info.value.message == "origin: connection reset"
        assert exc_info.value.code == "ORIGIN_ERROR"

    @pytest.mark.asyncio
    async def test_comment_order_follows_kids_not_completion(self):
        source = FakeItemSource(
            [
                F.story(1, kids=[2, 3, 4]),
                F.comment(2, 1),
                F.comment(3, 1),
                F.comment(4, 1),
            ],
            delays={2: 0.03, 3: 0.015},
        )
        fetcher = make_fetcher(source, comment_timeout=0.5)

        result = await fetcher.fetch_item(1, now=NOW)

        assert ids_of(result["comments"]) == [2, 3, 4]

    @pytest.mark.asyncio
    async def test_slow_comment_is_dropped(self):
        source = FakeItemSource(
            [F.story(1, kids=[2, 3]), F.comment(2, 1), F.comment(3, 1)],
            hang=[3],
        )
        fetcher = make_fetcher(source)

        result = await fetcher.fetch_item(1, now=NOW)

        assert ids_of(result["comments"]) == [2]
        assert result["comments_count"] == 1
        await fetcher.close()

    @pytest.mark.asyncio
    async def test_slow_comment_drops_its_whole_subtree(self):
        source = FakeItemSource(
            [
                F.story(1, kids=[2, 3], descendants=4),
                F.comment(2, 1, kids=[5]),
                F.comment(3, 1),
                F.comment(5, 2),
            ],
            hang=[2],
        )
        fetcher = make_fetcher(source)

        result = await fetcher.fetch_item(1, now=NOW)

        assert ids_of(result["comments"]) == [3]
        assert result["comments_count"] == 1
        assert 5 not in source.requested
        await fetcher.close()

    @pytest.mark.asyncio
    async def test_deadline_applies_per_comment(self):
        # Each level gets its own deadline, so a deep chain of fast replies
        # survives even though the whole tree takes longer than one timeout.
        source = FakeItemSource(
            [
                F.story(1, kids=[2]),
                F.comment(2, 1, kids=[3]),
                F.comment(3, 2, kids=[4]),
                F.comment(4, 3),
            ],
            delays={2: 0.08, 3: 0.08, 4: 0.08},
        )
        fetcher = make_fetcher(source, comment_timeout=0.2)

        result = await fetcher.fetch_item(1, now=NOW)

        level0 = result["comments"][0]
        level1 = level0["comments"][0]
        level2 = level1["comments"][0]
        assert (level0["id"], level1["id"], level2["id"]) == (2, 3, 4)
        assert (level0["level"], level1["level"], level2["level"]) == (0, 1, 2)
        assert result["comments_count"] == 3

    @pytest.mark.asyncio
    async def test_failing_comment_is_dropped_without_error(self):
        source = FakeItemSource(
            [F.story(1, kids=[2, 3]), F.comment(2, 1), F.comment(3, 1)],
            failures=[2],
        )
        fetcher = make_fetcher(source)

        result = await fetcher.fetch_item(1, now=NOW)

        assert ids_of(result["comments"]) == [3]

    @pytest.mark.asyncio
    async def test_absent_comment_is_dropped(self):
        source = FakeItemSource([F.story(1, kids=[2, 3]), F.comment(3, 1)])
        fetcher = make_fetcher(source)

        result = await fetcher.fetch_item(1, now=NOW)

        assert ids_of(result["comments"]) == [3]

    @pytest.mark.asyncio
    async def test_comments_count_counts_rendered_nodes(self):
        source = FakeItemSource(
            [
                F.story(1, kids=[2], descendants=57),
                F.comment(2, 1, kids=[3]),
                F.comment(3, 2),
            ]
        )
        fetcher = make_fetcher(source)

        result = await fetcher.fetch_item(1, now=NOW)

        assert result["comments_count"] == 2

    @pytest.mark.asyncio
    async def test_deleted_comment_keeps_position(self):
        source = FakeItemSource(
            [
                F.story(1, kids=[2, 3]),
                F.comment(2, 1, deleted=True, text=None, by=None),
                F.comment(3, 1),
            ]
        )
        fetcher = make_fetcher(source)

        result = await fetcher.fetch_item(1, now=NOW)

        first, second = result["comments"]
        assert first["deleted"] is True
        assert first["content"] == "[deleted]"
        assert second["content"] == "<p>Comment 3"

    @pytest.mark.asyncio
    async def test_poll_options_are_rendered_in_order(self):
        source = FakeItemSource(
            [
                F.poll(1, parts=[11, 12]),
                F.pollopt(11, 1, "Yes", 30),
                F.pollopt(12, 1, "No &amp; never", 7),
            ]
        )
        fetcher = make_fetcher(source)

        result = await fetcher.fetch_item(1, now=NOW)

        assert result["type"] == "poll"
        assert result["poll"] == [
            {"item": "Yes", "points": 30},
            {"item": "No & never", "points": 7},
        ]

    @pytest.mark.asyncio
    async def test_poll_part_failure_becomes_origin_error(self):
        source = FakeItemSource(
            [F.poll(1, parts=[11, 12], kids=[2]), F.pollopt(11, 1, "Yes", 1), F.comment(2, 1)],
            failures=[12],
        )
        fetcher = make_fetcher(source)

        with pytest.raises(OriginError):
            await fetcher.fetch_tree(1)

    @pytest.mark.asyncio
    async def test_timeouts_are_counted(self):
        metrics = MetricsCollector("hnapi-test")
        source = FakeItemSource([F.story(1, kids=[2]), F.comment(2, 1)], hang=[2])
        fetcher = make_fetcher(source, metrics=metrics)

        await fetcher.fetch_item(1)

        assert metrics.registry.get_sample_value("comment_timeouts_total") == 1
        await fetcher.close()

    @pytest.mark.asyncio
    async def test_close_cancels_detached_fetches(self):
        source = FakeItemSource([F.story(1, kids=[2]), F.comment(2, 1)], hang=[2])
        fetcher = make_fetcher(source)

        await fetcher.fetch_item(1)
        assert len(fetcher._detached) == 1

        await fetcher.close()
        await asyncio.sleep(0)

        assert fetcher._detached == set()
        assert source.in_flight == 0


class TestFetchList:
    """Story listings."""

    @pytest.fixture
    def source(self):
        stories = [F.story(i, descendants=i) for i in range(1, 71)]
        return FakeItemSource(stories, feeds={"topstories": list(range(1, 71))})

    @pytest.mark.asyncio
    async def test_first_page(self, source):
        fetcher = make_fetcher(source)

        result = await fetcher.fetch_list("news", 1, now=NOW)

        assert [entry["id"] for entry in result] == list(range(1, 31))
        assert result[4]["comments_count"] == 5
        assert result[0]["domain"] == "example.com"

    @pytest.mark.asyncio
    async def test_second_page(self, source):
        fetcher = make_fetcher(source)

        result = await fetcher.fetch_list("news", 2, now=NOW)

        assert [entry["id"] for entry in result] == list(range(31, 61))

    @pytest.mark.asyncio
    async def test_absent_stories_are_filtered(self, source):
        del source.items[3]
        fetcher = make_fetcher(source, list_limit=5)

        result = await fetcher.fetch_list("news", 1, now=NOW)

        assert [entry["id"] for entry in result] == [1, 2, 4, 5]

    @pytest.mark.asyncio
    async def test_page_past_the_end_is_empty(self, source):
        fetcher = make_fetcher(source)

        assert await fetcher.fetch_list("news", 5) == []

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self, source):
        source.delays = {i: 0.005 for i in range(1, 31)}
        fetcher = make_fetcher(source, list_concurrency=4)

        await fetcher.fetch_list("news", 1)

        assert source.max_in_flight <= 4

    @pytest.mark.asyncio
    async def test_unknown_category(self, source):
        fetcher = make_fetcher(source)

        with pytest.raises(ValidationError):
            await fetcher.fetch_list("frontpage", 1)

    @pytest.mark.asyncio
    async def test_invalid_page(self, source):
        fetcher = make_fetcher(source)

        with pytest.raises(ValidationError):
            await fetcher.fetch_list("news", 0)

    @pytest.mark.asyncio
    async def test_feed_failure_becomes_origin_error(self, source):
        source.feed_failure = True
        fetcher = make_fetcher(source)

        with pytest.raises(OriginError):
            await fetcher.fetch_list("news", 1)

    @pytest.mark.asyncio
    async def test_item_failure_becomes_origin_error(self, source):
        source.failures = {7}
        fetcher = make_fetcher(source)

        with pytest.raises(OriginError):
            await fetcher.fetch_list("news", 1)

    @pytest.mark.asyncio
    async def test_ask_and_job_entries(self):
        source = FakeItemSource(
            [
                F.story(1, title="Ask HN: Favourite editor?", url=None),
                F.story(2, type="job", title="Acme is hiring", url=None, score=1),
            ],
            feeds={"askstories": [1], "jobstories": [2]},
        )
        fetcher = make_fetcher(source)

        ask = await fetcher.fetch_list("ask", 1, now=NOW)
        jobs = await fetcher.fetch_list("jobs", 1, now=NOW)

        assert ask[0]["type"] == "ask"
        assert ask[0]["url"] == "item?id=1"
        assert jobs[0]["type"] == "job"
        assert jobs[0]["user"] is None
        assert jobs[0]["points"] is None


class TestUsersAndNewComments:
    """User profiles and the recent comments feed."""

    @pytest.mark.asyncio
    async def test_fetch_user(self):
        source = FakeItemSource(users={"pg": F.user("pg")})
        fetcher = make_fetcher(source)

        result = await fetcher.fetch_user("pg", now=F.BASE_TIME)

        assert result["id"] == "pg"
        assert result["karma"] == 4242
        assert result["created"] == "3 years ago"
        assert result["about"] == "<p>Hacker"
        assert result["avg"] is None

    @pytest.mark.asyncio
    async def test_unknown_user(self):
        fetcher = make_fetcher(FakeItemSource())

        with pytest.raises(NotFoundError):
            await fetcher.fetch_user("nobody")

    @pytest.mark.asyncio
    async def test_new_comments_only_lists_comments(self):
        source = FakeItemSource(
            [F.story(1), F.comment(2, 1), F.comment(3, 2)],
            updates=[3, 1, 2, 99],
        )
        fetcher = make_fetcher(source)

        result = await fetcher.fetch_new_comments(now=NOW)

        assert [entry["id"] for entry in result] == [3, 2]
        assert result[0]["parent"] == 2
        assert "level" not in result[0]

"""Tests for entity fetchers."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from climasync.config import ParentType, ReportStatus, TeamRole
from climasync.errors import NotFoundError, TransientStoreError
from climasync.fetchers import LOOKUP_CHUNK_SIZE, EntityFetcher, validate_rows
from climasync.models import Actor
from climasync.query import Op


class TestValidateRows:
    def test_invalid_rows_skipped(self):
        rows = [{"id": "u1", "username": "ana"}, {"id": "u2"}, {"id": "u3", "username": "cai"}]
        assert [a.id for a in validate_rows(Actor, rows)] == ["u1", "u3"]


class TestPrimaryReads:
    """Tests for primary reads against the seeded store."""

    @pytest.mark.asyncio
    async def test_public_actions_newest_first(self, store):
        actions = await EntityFetcher(store).public_actions()
        assert [a.id for a in actions] == ["a2", "a1"]

    @pytest.mark.asyncio
    async def test_user_actions_include_private(self, store):
        actions = await EntityFetcher(store).user_actions("u3")
        assert [a.id for a in actions] == ["a3"]

    @pytest.mark.asyncio
    async def test_forum_posts_pinned_first(self, store):
        posts = await EntityFetcher(store).forum_posts("f1")
        assert [p.id for p in posts] == ["p2", "p1"]

    @pytest.mark.asyncio
    async def test_comments_oldest_first(self, store):
        comments = await EntityFetcher(store).comments(ParentType.CLIMATE_ACTION, "a1")
        assert [c.id for c in comments] == ["c1", "c2"]

    @pytest.mark.asyncio
    async def test_todays_challenges(self, store):
        challenges = await EntityFetcher(store).challenges()
        assert [c.id for c in challenges] == ["ch1", "ch2"]
        assert await EntityFetcher(store).challenges("2000-01-01") == []

    @pytest.mark.asyncio
    async def test_teams_by_points(self, store):
        teams = await EntityFetcher(store).teams()
        assert [t.id for t in teams] == ["tm1", "tm2"]

    @pytest.mark.asyncio
    async def test_leaderboard_and_stats(self, store):
        fetcher = EntityFetcher(store)
        assert [s.user_id for s in await fetcher.leaderboard()] == ["u2", "u1", "u3"]
        assert (await fetcher.user_stats("u1")).total_points == 50
        assert await fetcher.user_stats("nobody") is None

    @pytest.mark.asyncio
    async def test_reports_by_status(self, store):
        fetcher = EntityFetcher(store)
        assert [r.id for r in await fetcher.reports()] == ["r1"]
        assert await fetcher.reports(ReportStatus.RESOLVED) == []

    @pytest.mark.asyncio
    async def test_missing_parent_reads_empty(self):
        store = MagicMock()
        store.query = AsyncMock(side_effect=NotFoundError("gone"))
        assert await EntityFetcher(store).comments(ParentType.FORUM_POST, "gone") == []

    @pytest.mark.asyncio
    async def test_primary_read_failure_propagates(self):
        store = MagicMock()
        store.query = AsyncMock(side_effect=TransientStoreError("HTTP 503"))
        with pytest.raises(TransientStoreError):
            await EntityFetcher(store).public_actions()


class TestSideChannels:
    """Tests for batched side-channel lookups."""

    @pytest.mark.asyncio
    async def test_profiles(self, store):
        profiles = await EntityFetcher(store).profiles(["u1", "u2", "u1", None])
        assert set(profiles) == {"u1", "u2"}
        assert profiles["u2"].username == "ben"

    @pytest.mark.asyncio
    async def test_comment_counts(self, store):
        counts = await EntityFetcher(store).comment_counts(ParentType.CLIMATE_ACTION, ["a1", "a2"])
        assert counts == {"a1": 2}

    @pytest.mark.asyncio
    async def test_reactions(self, store):
        reactions = await EntityFetcher(store).reactions(ParentType.CLIMATE_ACTION, ["a1"])
        assert len(reactions) == 4

    @pytest.mark.asyncio
    async def test_post_tags(self, store):
        tags = await EntityFetcher(store).post_tags(["p1", "p2"])
        assert [t.name for t in tags["p1"]] == ["science"]
        assert "p2" not in tags

    @pytest.mark.asyncio
    async def test_bookmarks(self, store):
        await store.insert("bookmarks", {"user_id": "u1", "post_id": "p1"})
        assert await EntityFetcher(store).bookmarked_post_ids("u1", ["p1", "p2"]) == {"p1"}

    @pytest.mark.asyncio
    async def test_forum_post_stats(self, store):
        counts, latest = await EntityFetcher(store).forum_post_stats(["f1", "f2"])
        assert counts == {"f1": 2}
        assert latest["f1"].id == "p1"

    @pytest.mark.asyncio
    async def test_member_counts_and_roles(self, store):
        fetcher = EntityFetcher(store)
        assert await fetcher.member_counts(["tm1", "tm2"]) == {"tm1": 1, "tm2": 1}
        assert await fetcher.memberships("u2") == {"tm1": TeamRole.ADMIN}

    @pytest.mark.asyncio
    async def test_empty_key_set_issues_no_query(self):
        store = MagicMock()
        store.query = AsyncMock(return_value=[])
        assert await EntityFetcher(store).profiles([]) == {}
        store.query.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_lookup_chunked(self):
        store = MagicMock()
        store.query = AsyncMock(return_value=[])
        ids = [f"u{i}" for i in range(LOOKUP_CHUNK_SIZE * 2 + 1)]

        await EntityFetcher(store).profiles(ids)

        assert store.query.await_count == 3
        for call in store.query.await_args_list:
            (in_filter,) = call.args[1]
            assert in_filter.op is Op.IN
            assert len(in_filter.value) <= LOOKUP_CHUNK_SIZE

    @pytest.mark.asyncio
    async def test_side_channel_failure_returns_none(self):
        store = MagicMock()
        store.query = AsyncMock(side_effect=TransientStoreError("HTTP 503"))
        fetcher = EntityFetcher(store)
        assert await fetcher.profiles(["u1"]) is None
        assert await fetcher.comment_counts(ParentType.CLIMATE_ACTION, ["a1"]) is None
        assert await fetcher.reactions(ParentType.CLIMATE_ACTION, ["a1"]) is None


class TestRemoteCalls:
    """Tests for procedures and remote functions."""

    @pytest.mark.asyncio
    async def test_search_posts(self, store):
        fetcher = EntityFetcher(store)
        assert [p.id for p in await fetcher.search_posts("  carbon ")] == ["p1"]
        assert await fetcher.search_posts("   ") == []

    @pytest.mark.asyncio
    async def test_record_post_view(self, store):
        await EntityFetcher(store).record_post_view("p2")
        rows = await store.query("forum_posts")
        assert {r["id"]: r["views"] for r in rows} == {"p1": 0, "p2": 1}

    @pytest.mark.asyncio
    async def test_admin_stats(self, store):
        assert (await EntityFetcher(store).admin_stats())["total_users"] == 5

    @pytest.mark.asyncio
    async def test_mapbox_token(self, store):
        fetcher = EntityFetcher(store)
        assert await fetcher.mapbox_token() is None

        store.register_function("get-mapbox-token", lambda payload: {"token": "pk.test"})

        assert await fetcher.mapbox_token() == "pk.test"

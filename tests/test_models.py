"""Unit tests for record validation."""

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from climasync.config import ActionCategory, ParentType, ReactionType, TeamRole
from climasync.models import (
    PARENT_TABLES,
    TABLES,
    Actor,
    Challenge,
    ClimateAction,
    Comment,
    ForumPost,
    Goal,
    Reaction,
    TeamMembership,
    UserStats,
)


class TestRecords:
    """Tests for Pydantic records read from the store."""

    def test_climate_action_parses_timestamp(self):
        action = ClimateAction.model_validate(
            {
                "id": "a1",
                "user_id": "u1",
                "category": "tree_planting",
                "created_at": "2025-01-01T12:00:00Z",
            }
        )
        assert action.category is ActionCategory.TREE_PLANTING
        assert action.created_at == datetime(2025, 1, 1, 12, tzinfo=UTC)

    def test_null_columns_fall_back_to_defaults(self):
        action = ClimateAction.model_validate(
            {"id": "a1", "user_id": "u1", "points_awarded": None, "is_public": None}
        )
        assert action.points_awarded == 0
        assert action.is_public is True

        post = ForumPost.model_validate(
            {"id": "p1", "forum_id": "f1", "user_id": "u1", "title": "t", "is_pinned": None, "views": None}
        )
        assert post.is_pinned is False
        assert post.views == 0

    def test_has_location(self):
        assert ClimateAction(id="a", user_id="u", latitude=1.0, longitude=2.0).has_location
        assert not ClimateAction(id="a", user_id="u", latitude=1.0).has_location

    def test_unknown_columns_ignored(self):
        actor = Actor.model_validate({"id": "u1", "username": "ana", "bio": "hi"})
        assert not hasattr(actor, "bio")

    def test_records_are_frozen(self):
        actor = Actor(id="u1", username="ana")
        with pytest.raises(ValidationError):
            actor.username = "other"  # type: ignore[misc]

    def test_missing_required_field(self):
        with pytest.raises(ValidationError):
            Comment.model_validate({"id": "c1", "parent_type": "comment", "user_id": "u1"})

    def test_invalid_enum_rejected(self):
        with pytest.raises(ValidationError):
            Reaction.model_validate(
                {"user_id": "u1", "parent_type": "comment", "parent_id": "c1", "reaction_type": "angry"}
            )

    def test_reaction_enums(self):
        reaction = Reaction.model_validate(
            {"user_id": "u1", "parent_type": "forum_post", "parent_id": "p1", "reaction_type": "love"}
        )
        assert reaction.parent_type is ParentType.FORUM_POST
        assert reaction.reaction_type is ReactionType.LOVE

    def test_user_stats_null_counts(self):
        stats = UserStats.model_validate({"user_id": "u1", "total_points": None})
        assert stats.total_points == 0

    def test_membership_default_role(self):
        assert TeamMembership(team_id="t", user_id="u").role is TeamRole.MEMBER

    def test_challenge_expiry(self):
        challenge = Challenge.model_validate(
            {"id": "ch", "title": "t", "active_date": "2025-01-01", "expires_at": "2025-01-02T00:00:00Z"}
        )
        assert challenge.points_reward == 10
        assert challenge.expires_at == datetime(2025, 1, 2, tzinfo=UTC)

    def test_goal_percentage(self):
        goal = Goal(id="g", user_id="u", goal_type="weekly_actions", target_value=4, current_value=1)
        assert goal.percentage == 25.0
        assert Goal(id="g", user_id="u", goal_type="x", target_value=4, current_value=9).percentage == 100.0
        assert Goal(id="g", user_id="u", goal_type="x", target_value=0).percentage == 100.0


class TestTables:
    """Tests for the in-process table registry."""

    def test_parent_tables_registered(self):
        for table in PARENT_TABLES.values():
            assert table in TABLES

    def test_every_parent_type_has_a_table(self):
        assert set(PARENT_TABLES) == {p.value for p in ParentType}

"""Optimistic mutations.

Every user write goes through :meth:`OptimisticMutator.run`:

1. Ignore the request if a write for the same (actor, entity) key is in flight
2. Apply an overlay to the view state immediately
3. Perform the remote write, bounded by the request timeout
4. On success, confirm the overlay (optionally swapping in server data)
5. On failure, discard the overlay, restoring the prior value exactly
6. Report: a uniqueness violation is benign ("already done") and is shown
   as information; authorization failures end the session; everything else
   is a short error message

The second half of the module holds the overlay functions (pure snapshot
transforms) and the remote write sequences for each mutation.

Example:
    >>> result = await mutator.run(
    ...     "reaction",
    ...     (viewer_id, "climate_action", action_id),
    ...     remote=lambda: write_reaction(store, viewer_id, ParentType.CLIMATE_ACTION, action_id, target),
    ...     state=feed.state,
    ...     overlay=set_user_reaction(action_id, target),
    ...     action="save reaction",
    ... )
    >>> result.outcome
    <MutationOutcome.APPLIED: 'applied'>
"""

import asyncio
import time
from collections.abc import Awaitable, Callable, Hashable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, TypeVar

from climasync.config import ParentType, ReactionType, ReportStatus, TeamRole, settings
from climasync.errors import ErrorKind, StoreError, classify, user_message
from climasync.interfaces import INotifier, IRemoteStore
from climasync.logging import log_context, logger
from climasync.metrics import mutation_duration_seconds, mutations_total
from climasync.models import Comment
from climasync.query import UNIQUE_KEYS, eq
from climasync.realtime import Refresher
from climasync.telemetry import (
    add_span_attributes,
    get_tracer,
    record_exception_in_span,
    sync_logging_context_to_span,
)
from climasync.utils import new_id, temp_id, utc_now_iso
from climasync.views import (
    ChallengeBoardView,
    CommentView,
    ImpactView,
    PostView,
    TeamView,
    ViewState,
    model_update,
    replace_items,
)

S = TypeVar("S")
T = TypeVar("T")
V = TypeVar("V")

tracer = get_tracer(__name__)

SIGN_IN_MESSAGE = "Please sign in to continue"


# =============================================================================
# Mutator
# =============================================================================


class MutationOutcome(StrEnum):
    APPLIED = "applied"
    ALREADY_DONE = "already_done"
    IGNORED = "ignored"
    SKIPPED = "skipped"
    FAILED = "failed"
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"


@dataclass(frozen=True)
class MutationResult:
    outcome: MutationOutcome
    value: Any = None
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is MutationOutcome.APPLIED


class OptimisticMutator:
    """Runs optimistic writes against view states.

    Args:
        notifier: Surface for user-visible results
        timeout: Upper bound in seconds for the remote write (default from settings)
        on_unauthorized: Called after an authorization failure
    """

    def __init__(
        self,
        notifier: INotifier,
        timeout: float | None = None,
        on_unauthorized: Callable[[], None] | None = None,
    ):
        self._notifier = notifier
        self.timeout = timeout if timeout is not None else settings.request_timeout_seconds
        self.on_unauthorized = on_unauthorized
        self._in_flight: set[Hashable] = set()

    def in_flight(self, key: Hashable) -> bool:
        return key in self._in_flight

    def skip(self, kind: str, message: str, error: bool = False) -> MutationResult:
        """Refuse a mutation before any local or remote change (failed precondition)."""
        if error:
            self._notifier.error(message)
        else:
            self._notifier.info(message)
        mutations_total.labels(kind=kind, outcome=MutationOutcome.SKIPPED.value).inc()
        return MutationResult(MutationOutcome.SKIPPED, message=message)

    def require_sign_in(self, kind: str) -> MutationResult:
        return self.skip(kind, SIGN_IN_MESSAGE, error=True)

    async def run(
        self,
        kind: str,
        key: Hashable,
        remote: Callable[[], Awaitable[T]],
        state: ViewState[S] | None = None,
        overlay: Callable[[S], S] | None = None,
        on_confirm: Callable[[T], Callable[[S], S] | None] | None = None,
        refresher: Refresher[S] | None = None,
        action: str = "save changes",
        success_message: str | None = None,
        already_done_message: str = "Already done",
    ) -> MutationResult:
        """Run one optimistic mutation.

        Args:
            kind: Mutation kind for logs and metrics (e.g. "reaction")
            key: (actor, entity) key; a second call with the same key while
                the first is in flight is ignored
            remote: Coroutine function performing the remote write
            state: View state receiving the overlay
            overlay: Snapshot transform shown until the write is reconciled
            on_confirm: Builds a replacement overlay from the remote result
            refresher: Refetched in the background after success or a
                constraint, not-found or timeout failure
            action: Verb phrase for error messages (e.g. "join team")
            success_message: Shown after success
            already_done_message: Shown when the write hit a uniqueness constraint

        Returns:
            MutationResult describing what happened
        """
        if key in self._in_flight:
            mutations_total.labels(kind=kind, outcome=MutationOutcome.IGNORED.value).inc()
            logger.debug("Ignoring duplicate mutation while one is in flight", kind=kind)
            return MutationResult(MutationOutcome.IGNORED)

        self._in_flight.add(key)
        mutation_id = new_id()
        start = time.perf_counter()
        try:
            if state is not None and overlay is not None:
                state.add_overlay(mutation_id, overlay)

            with log_context(request_id=mutation_id), tracer.start_as_current_span("mutation") as span:
                sync_logging_context_to_span(span)
                add_span_attributes(span, {"mutation.kind": kind})
                try:
                    value = await asyncio.wait_for(remote(), timeout=self.timeout)
                except (StoreError, TimeoutError) as exc:
                    record_exception_in_span(span, exc)
                    if state is not None:
                        state.discard(mutation_id)
                    return self._fail(kind, exc, refresher, action, already_done_message)
                except BaseException:
                    # Cancelled or unexpected: roll back and propagate
                    if state is not None:
                        state.discard(mutation_id)
                    raise
                finally:
                    mutation_duration_seconds.labels(kind=kind).observe(
                        time.perf_counter() - start
                    )

            if state is not None:
                state.confirm(mutation_id, on_confirm(value) if on_confirm else None)
            if success_message:
                self._notifier.success(success_message)
            if refresher is not None:
                refresher.request()
            mutations_total.labels(kind=kind, outcome=MutationOutcome.APPLIED.value).inc()
            logger.info("Mutation applied", kind=kind, mutation_id=mutation_id)
            return MutationResult(MutationOutcome.APPLIED, value=value)
        finally:
            self._in_flight.discard(key)

    def _fail(
        self,
        kind: str,
        exc: BaseException,
        refresher: Refresher[Any] | None,
        action: str,
        already_done_message: str,
    ) -> MutationResult:
        error_kind = classify(exc)

        if error_kind is ErrorKind.CONSTRAINT:
            outcome = MutationOutcome.ALREADY_DONE
            message = already_done_message
            self._notifier.info(message)
        elif error_kind is ErrorKind.AUTHORIZATION:
            outcome = MutationOutcome.UNAUTHORIZED
            message = user_message(error_kind, action)
            self._notifier.error(message)
            if self.on_unauthorized is not None:
                self.on_unauthorized()
        elif error_kind is ErrorKind.NOT_FOUND:
            outcome = MutationOutcome.NOT_FOUND
            message = user_message(error_kind, action)
            self._notifier.error(message)
        else:
            outcome = MutationOutcome.FAILED
            message = user_message(error_kind, action)
            self._notifier.error(message)

        if refresher is not None and error_kind in (
            ErrorKind.CONSTRAINT,
            ErrorKind.NOT_FOUND,
            ErrorKind.TIMEOUT,
        ):
            refresher.request()

        mutations_total.labels(kind=kind, outcome=outcome.value).inc()
        logger.warning(
            "Mutation rolled back",
            kind=kind,
            outcome=outcome.value,
            error_kind=error_kind.value,
            error=str(exc) or type(exc).__name__,
        )
        return MutationResult(outcome, message=message)


# =============================================================================
# Overlays
# =============================================================================


def set_user_reaction(entity_id: str, reaction: ReactionType | None) -> Callable[[list[V]], list[V]]:
    """The viewer's reaction on ``entity_id`` becomes ``reaction`` (None removes it)."""

    def apply(items: list[V]) -> list[V]:
        return replace_items(
            items,
            entity_id,
            lambda item: model_update(item, reactions=item.reactions.with_user_reaction(reaction)),
        )

    return apply


def remove_item(entity_id: str) -> Callable[[list[V]], list[V]]:
    def apply(items: list[V]) -> list[V]:
        return [item for item in items if getattr(item, "id") != entity_id]

    return apply


def append_comment(view: CommentView) -> Callable[[list[CommentView]], list[CommentView]]:
    """Append ``view`` to a thread unless a comment with its id is already there."""

    def apply(items: list[CommentView]) -> list[CommentView]:
        if any(item.id == view.id for item in items):
            return items
        return [*items, view]

    return apply


def mark_challenge_completed(challenge_id: str) -> Callable[[ChallengeBoardView], ChallengeBoardView]:
    """Flag the challenge completed and add its points, unless already completed."""

    def apply(board: ChallengeBoardView) -> ChallengeBoardView:
        current = board.get(challenge_id)
        if current is None or current.completed:
            return board
        return model_update(
            board,
            challenges=replace_items(
                board.challenges, challenge_id, lambda c: model_update(c, completed=True)
            ),
            total_points=board.total_points + current.challenge.points_reward,
        )

    return apply


def set_team_role(team_id: str, role: TeamRole | None) -> Callable[[list[TeamView]], list[TeamView]]:
    """The viewer's role in ``team_id`` becomes ``role``; member count follows membership."""

    def update(view: TeamView) -> TeamView:
        was_member = view.role is not None
        is_member = role is not None
        delta = int(is_member) - int(was_member)
        return model_update(view, role=role, member_count=max(view.member_count + delta, 0))

    def apply(items: list[TeamView]) -> list[TeamView]:
        return replace_items(items, team_id, update)

    return apply


def set_bookmarked(post_id: str, bookmarked: bool) -> Callable[[list[PostView]], list[PostView]]:
    def apply(items: list[PostView]) -> list[PostView]:
        return replace_items(items, post_id, lambda view: model_update(view, bookmarked=bookmarked))

    return apply


def set_goal_progress(goal_id: str, value: int) -> Callable[[ImpactView], ImpactView]:
    def update(goal: Any) -> Any:
        return model_update(goal, current_value=value, completed=value >= goal.target_value)

    def apply(impact: ImpactView) -> ImpactView:
        return model_update(impact, goals=replace_items(impact.goals, goal_id, update))

    return apply


def remove_own_action(action_id: str) -> Callable[[ImpactView], ImpactView]:
    def apply(impact: ImpactView) -> ImpactView:
        return model_update(impact, actions=[a for a in impact.actions if a.id != action_id])

    return apply


# =============================================================================
# Remote Writes
# =============================================================================


async def write_reaction(
    store: IRemoteStore,
    user_id: str,
    parent_type: ParentType,
    parent_id: str,
    reaction: ReactionType | None,
) -> dict[str, Any] | None:
    """Store the viewer's reaction on a parent: upsert on the natural key, or delete it."""
    if reaction is None:
        await store.delete_where(
            "reactions",
            (eq("user_id", user_id), eq("parent_type", parent_type), eq("parent_id", parent_id)),
        )
        return None
    return await store.upsert(
        "reactions",
        {
            "user_id": user_id,
            "parent_type": parent_type,
            "parent_id": parent_id,
            "reaction_type": reaction,
        },
        UNIQUE_KEYS["reactions"],
    )


async def write_challenge_completion(store: IRemoteStore, user_id: str, challenge_id: str) -> int:
    """Complete a challenge through the ``complete_challenge`` procedure.

    The store records the completion and awards the challenge's points in one
    transaction, so a completion is never stored without its points. A repeat
    fails on the uniqueness constraint and awards nothing.

    Returns:
        The new point total
    """
    total = await store.rpc(
        "complete_challenge", {"user_id": user_id, "challenge_id": challenge_id}
    )
    return int(total)


async def write_team(
    store: IRemoteStore, user_id: str, name: str, description: str | None = None
) -> dict[str, Any]:
    """Create a team and make its creator an admin member."""
    team = await store.insert(
        "teams", {"name": name, "description": description or None, "created_by": user_id}
    )
    await store.insert(
        "team_members", {"team_id": team["id"], "user_id": user_id, "role": TeamRole.ADMIN}
    )
    return team


async def write_report_resolution(
    store: IRemoteStore,
    report_id: str,
    moderator_id: str,
    status: ReportStatus,
    notes: str | None = None,
) -> dict[str, Any]:
    return await store.update(
        "reports",
        report_id,
        {
            "status": status,
            "resolved_by": moderator_id,
            "resolved_at": utc_now_iso(),
            "resolution_notes": notes,
        },
    )


def pending_comment(
    parent_type: ParentType, parent_id: str, user_id: str, content: str, author: Any = None
) -> CommentView:
    """Locally created comment shown until the store assigns its id."""
    return CommentView(
        comment=Comment(
            id=temp_id(),
            parent_type=parent_type,
            parent_id=parent_id,
            user_id=user_id,
            content=content,
            created_at=utc_now_iso(),
        ),
        author=author,
        pending=True,
    )


__all__ = [
    "MutationOutcome",
    "MutationResult",
    "OptimisticMutator",
    "SIGN_IN_MESSAGE",
    "set_user_reaction",
    "remove_item",
    "append_comment",
    "mark_challenge_completed",
    "set_team_role",
    "set_bookmarked",
    "set_goal_progress",
    "remove_own_action",
    "write_reaction",
    "write_challenge_completion",
    "write_team",
    "write_report_resolution",
    "pending_comment",
]

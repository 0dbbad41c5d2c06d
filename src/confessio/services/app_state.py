"""Per-client application view-model.

``AppState`` owns the loaded confessions, the client's session and its UI
state. Every mutation is applied locally first, then sent to the store; if
the store reports failure an undo closure captured before the change puts
both the confession and the session back.
"""

from __future__ import annotations

import logging
import random
import secrets
from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass
from threading import RLock
from typing import Final, Protocol

from confessio.db.time import epoch_millis
from confessio.repositories.confession_repo import ConfessionRepository
from confessio.schemas.confession import (
    AnalysisResult,
    Comment,
    Confession,
    ConfessionCreate,
    PollOption,
    ReactionType,
    empty_reactions,
)
from confessio.schemas.session import FeedFilter, Tab, Theme, UserSessionData
from confessio.services.avatar import generate_avatar
from confessio.services.local_store import SESSION_KEY, THEME_KEY, LocalStore
from confessio.services.matchmaker import Matchmaker

logger = logging.getLogger(__name__)

XP_POST: Final[int] = 20
XP_FIRST_REACTION: Final[int] = 2
XP_COMMENT: Final[int] = 5
XP_VOTE: Final[int] = 5
XP_PER_LEVEL: Final[int] = 100
MIN_POLL_OPTIONS: Final[int] = 2
MAX_POLL_OPTIONS: Final[int] = 4
TRENDING_LIMIT: Final[int] = 10
POST_FAILED_MESSAGE: Final[str] = "Failed to post confession. Please try again."


class AppStateError(Exception):
    """Base class for view-model failures surfaced to callers."""


class ConfessionNotFoundError(AppStateError, LookupError):
    """Raised when a confession id is not among the loaded confessions."""


class InvalidInputError(AppStateError, ValueError):
    """Raised when a post, comment or vote fails validation."""


class UnsafeContentError(AppStateError):
    """Raised when analysis flags a draft that the author has not confirmed."""

    def __init__(self, flag_reason: str | None) -> None:
        self.flag_reason = flag_reason
        super().__init__(
            "The AI flagged this content as potentially unsafe "
            f"({flag_reason or 'general safety'})."
        )


class ConfessionPersistError(AppStateError):
    """Raised when a new confession could not be stored."""


class Analyzer(Protocol):
    async def analyze_confession(self, text: str, image: str | None = None) -> AnalysisResult: ...


@dataclass(frozen=True)
class MutationResult:
    """Outcome of an optimistic mutation.

    ``applied`` is False for no-ops (a repeated poll vote); ``synced`` is False
    when the store rejected the change and it was rolled back.
    """

    confession: Confession
    session: UserSessionData
    synced: bool
    applied: bool = True


def level_for(xp: int) -> int:
    return xp // XP_PER_LEVEL + 1


def new_id() -> str:
    return secrets.token_hex(6)


class AppState:
    """View-model for one pseudonymous client."""

    def __init__(
        self,
        repo: ConfessionRepository,
        store: LocalStore,
        analyzer: Analyzer,
        matchmaker: Matchmaker | None = None,
        *,
        clock: Callable[[], int] = epoch_millis,
        rng: random.Random | None = None,
    ) -> None:
        self.repo = repo
        self.store = store
        self.analyzer = analyzer
        self.matchmaker = matchmaker
        self.clock = clock
        self.rng = rng or random.Random()

        self.confessions: list[Confession] = []
        self.session = UserSessionData(avatar=generate_avatar(self.rng))
        self.theme: Theme = "dark"
        self.active_tab: Tab = "home"
        self.feed_filter: FeedFilter = "all"
        self.search_query = ""
        self.loaded = False

        self._lock = RLock()
        self._unsubscribe: Callable[[], None] | None = None

    # --- lifecycle ----------------------------------------------------------------
    def load(self) -> None:
        """Fetch confessions, restore local state and follow new inserts."""
        with self._lock:
            self.confessions = self.repo.fetch_confessions()
        self.session = self._restore_session()
        saved_theme = self.store.get_item(THEME_KEY)
        if saved_theme in ("dark", "light"):
            self.theme = saved_theme
        self._save_session()
        self.store.set_item(THEME_KEY, self.theme)

        if self._unsubscribe is None:
            self._unsubscribe = self.repo.subscribe(self._on_insert)
        self.loaded = True

    def refresh(self) -> list[Confession]:
        confessions = self.repo.fetch_confessions()
        with self._lock:
            self.confessions = confessions
        return list(confessions)

    def close(self) -> None:
        """Stop following inserts and release any held device."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self.matchmaker is not None:
            self.matchmaker.exit()

    def _on_insert(self, confession: Confession) -> None:
        with self._lock:
            if any(existing.id == confession.id for existing in self.confessions):
                return
            self.confessions.insert(0, confession)

    def _restore_session(self) -> UserSessionData:
        saved = self.store.get_item(SESSION_KEY)
        if saved is not None:
            try:
                return UserSessionData.model_validate(saved)
            except ValueError:
                logger.warning("Discarding malformed session for client %s", self.store.client_id)
        return UserSessionData(avatar=generate_avatar(self.rng))

    def _save_session(self) -> None:
        self.store.set_item(SESSION_KEY, self.session.model_dump(by_alias=True))

    # --- lookups ------------------------------------------------------------------
    def get(self, confession_id: str) -> Confession:
        with self._lock:
            for confession in self.confessions:
                if confession.id == confession_id:
                    return confession
        raise ConfessionNotFoundError(confession_id)

    def _replace(self, confession: Confession) -> None:
        with self._lock:
            self.confessions = [
                confession if existing.id == confession.id else existing
                for existing in self.confessions
            ]

    def _with_xp(self, session: UserSessionData, amount: int) -> UserSessionData:
        xp = session.xp + amount
        return session.model_copy(update={"xp": xp, "level": level_for(xp)})

    def add_xp(self, amount: int) -> UserSessionData:
        self.session = self._with_xp(self.session, amount)
        self._save_session()
        return self.session

    # --- optimistic mutations -----------------------------------------------------
    def _apply(
        self,
        updated: Confession,
        session: UserSessionData,
        remote: Callable[[], bool],
    ) -> MutationResult:
        previous_confession = self.get(updated.id)
        previous_session = self.session

        def undo() -> None:
            self._replace(previous_confession)
            self.session = previous_session
            self._save_session()

        self._replace(updated)
        self.session = session
        self._save_session()

        synced = remote()
        if not synced:
            logger.warning("Remote update for confession %s failed; rolling back", updated.id)
            undo()
        return MutationResult(self.get(updated.id), self.session, synced)

    def react(self, confession_id: str, kind: ReactionType) -> MutationResult:
        """Toggle or swap this client's reaction on a confession."""
        confession = self.get(confession_id)
        current = self.session.reacted_posts.get(confession_id)
        reactions = dict(confession.reactions)
        reacted = dict(self.session.reacted_posts)
        session = self.session

        if current == kind:
            reactions[kind] = max(0, reactions.get(kind, 0) - 1)
            del reacted[confession_id]
        else:
            if current is not None:
                reactions[current] = max(0, reactions.get(current, 0) - 1)
            else:
                session = self._with_xp(session, XP_FIRST_REACTION)
            reactions[kind] = reactions.get(kind, 0) + 1
            reacted[confession_id] = kind

        session = session.model_copy(update={"reacted_posts": reacted})
        return self._apply(
            confession.model_copy(update={"reactions": reactions}),
            session,
            lambda: self.repo.update_confession(confession_id, reactions=reactions),
        )

    def comment(self, confession_id: str, text: str) -> MutationResult:
        if not text.strip():
            raise InvalidInputError("Comment text must not be blank")
        confession = self.get(confession_id)
        comment = Comment(
            id=new_id(),
            text=text,
            timestamp=self.clock(),
            author_avatar=self.session.avatar.model_copy(),
        )
        comments = [*confession.comments, comment]
        return self._apply(
            confession.model_copy(update={"comments": comments}),
            self._with_xp(self.session, XP_COMMENT),
            lambda: self.repo.update_confession(confession_id, comments=comments),
        )

    def vote(self, confession_id: str, option_id: str) -> MutationResult:
        """Record this client's first vote on a poll; later votes are no-ops."""
        confession = self.get(confession_id)
        if confession_id in self.session.voted_polls:
            return MutationResult(confession, self.session, synced=True, applied=False)
        if confession.type != "poll" or not confession.poll_options:
            raise InvalidInputError("Only polls can be voted on")
        if not any(option.id == option_id for option in confession.poll_options):
            raise InvalidInputError(f"Unknown poll option: {option_id}")

        options = [
            option.model_copy(update={"votes": option.votes + 1})
            if option.id == option_id
            else option
            for option in confession.poll_options
        ]
        session = self._with_xp(self.session, XP_VOTE).model_copy(
            update={"voted_polls": {**self.session.voted_polls, confession_id: option_id}}
        )
        return self._apply(
            confession.model_copy(update={"poll_options": options}),
            session,
            lambda: self.repo.update_confession(confession_id, poll_options=options),
        )

    async def create_post(self, draft: ConfessionCreate) -> Confession:
        """Analyze, build and store a new confession.

        Raises:
            InvalidInputError: Blank text or a malformed poll.
            UnsafeContentError: Flagged content the author has not confirmed.
            ConfessionPersistError: The store rejected the insert.
        """
        if not draft.text.strip():
            raise InvalidInputError("Confession text must not be blank")
        labels: list[str] = []
        if draft.type == "poll":
            labels = list(draft.poll_options or [])
            if not MIN_POLL_OPTIONS <= len(labels) <= MAX_POLL_OPTIONS:
                raise InvalidInputError(
                    f"Polls need between {MIN_POLL_OPTIONS} and {MAX_POLL_OPTIONS} options"
                )
            if any(not label.strip() for label in labels):
                raise InvalidInputError("Poll options must not be blank")

        image = draft.image if draft.type == "text" else None
        analysis = await self.analyzer.analyze_confession(draft.text, image)
        # The unsafe gate is advisory: a confirmed draft is stored with is_safe=False.
        if not analysis.is_safe and not draft.confirm_unsafe:
            raise UnsafeContentError(analysis.flag_reason)

        now = self.clock()
        confession = Confession(
            id=new_id(),
            type=draft.type,
            text=draft.text,
            image=image,
            audio=draft.audio if draft.type == "text" else None,
            video=draft.video if draft.type == "video" else None,
            poll_options=(
                [
                    PollOption(id=f"opt_{idx}_{now}", text=label, votes=0)
                    for idx, label in enumerate(labels)
                ]
                if draft.type == "poll"
                else None
            ),
            timestamp=now,
            author_avatar=self.session.avatar.model_copy(),
            reactions=empty_reactions(),
            comments=[],
            tags=analysis.tags,
            sentiment=analysis.sentiment,
            emoji=analysis.emoji,
            color_theme=analysis.color_theme,
            is_safe=analysis.is_safe,
            flag_reason=analysis.flag_reason,
        )

        with self._lock:
            self.confessions.insert(0, confession)
        if not self.repo.insert_confession(confession):
            with self._lock:
                self.confessions = [c for c in self.confessions if c.id != confession.id]
            raise ConfessionPersistError(POST_FAILED_MESSAGE)

        self.add_xp(XP_POST)
        self.set_active_tab("home")
        return confession

    # --- UI state -----------------------------------------------------------------
    def set_active_tab(self, tab: Tab) -> None:
        """Switch views; the matchmaker holds the camera only while shown."""
        if tab == self.active_tab:
            return
        if self.active_tab == "matchmaker" and self.matchmaker is not None:
            self.matchmaker.exit()
        self.active_tab = tab
        if tab == "matchmaker" and self.matchmaker is not None:
            self.matchmaker.enter()

    def set_feed_filter(self, feed_filter: FeedFilter) -> None:
        self.feed_filter = feed_filter

    def set_search_query(self, query: str) -> None:
        self.search_query = query

    def toggle_theme(self) -> Theme:
        self.theme = "light" if self.theme == "dark" else "dark"
        self.store.set_item(THEME_KEY, self.theme)
        return self.theme

    # --- derived views ------------------------------------------------------------
    def feed(self, feed_filter: FeedFilter | None = None) -> list[Confession]:
        feed_filter = feed_filter or self.feed_filter
        with self._lock:
            items = list(self.confessions)
        if feed_filter == "polls":
            items = [c for c in items if c.type == "poll"]
        if feed_filter == "popular":
            return sorted(items, key=lambda c: c.total_reactions, reverse=True)
        return sorted(items, key=lambda c: c.timestamp, reverse=True)

    def search_results(self, query: str | None = None) -> list[Confession]:
        """Confessions whose text or any tag contains the query, ignoring case."""
        query = self.search_query if query is None else query
        if not query.strip():
            return []
        needle = query.lower()
        with self._lock:
            items = list(self.confessions)
        return [
            c
            for c in items
            if needle in c.text.lower() or any(needle in tag.lower() for tag in c.tags)
        ]

    def trending_tags(self, limit: int = TRENDING_LIMIT) -> list[str]:
        """Most frequent tags, ties kept in first-seen order."""
        with self._lock:
            counts = Counter(tag for c in self.confessions for tag in c.tags)
        return [tag for tag, _ in counts.most_common(limit)]

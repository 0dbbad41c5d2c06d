"""Tests for the per-client view-model."""

from __future__ import annotations

import httpx
import pytest

from confessio.schemas.confession import ConfessionCreate, PollOption
from confessio.services.app_state import (
    POST_FAILED_MESSAGE,
    XP_COMMENT,
    XP_FIRST_REACTION,
    XP_POST,
    XP_VOTE,
    AppState,
    ConfessionNotFoundError,
    ConfessionPersistError,
    InvalidInputError,
    UnsafeContentError,
    level_for,
)
from confessio.services.gemini import GeminiClient, GeminiConfig
from confessio.services.local_store import SESSION_KEY, THEME_KEY
from tests.conftest import make_confession


def _seed(app_state: AppState, *confessions) -> None:
    for confession in confessions:
        assert app_state.repo.insert_confession(confession)
    app_state.refresh()


def _poll(**overrides):
    return make_confession(
        type="poll",
        text="Best study spot?",
        poll_options=[
            PollOption(id="opt_0_1", text="Library", votes=0),
            PollOption(id="opt_1_1", text="Cafe", votes=2),
        ],
        **overrides,
    )


def test_level_is_quotient_plus_one() -> None:
    assert level_for(0) == 1
    assert level_for(99) == 1
    assert level_for(100) == 2
    assert level_for(259) == 3


def test_load_creates_and_persists_session(app_state: AppState) -> None:
    saved = app_state.store.get_item(SESSION_KEY)
    assert saved is not None
    assert saved["avatar"]["name"] == app_state.session.avatar.name
    assert saved["xp"] == 0 and saved["level"] == 1
    assert app_state.store.get_item(THEME_KEY) == "dark"


def test_load_restores_existing_session(app_state: AppState) -> None:
    app_state.add_xp(140)
    restored = AppState(app_state.repo, app_state.store, app_state.analyzer)
    restored.load()
    try:
        assert restored.session.avatar == app_state.session.avatar
        assert restored.session.xp == 140
        assert restored.session.level == 2
    finally:
        restored.close()


def test_reacting_twice_with_same_kind_clears_reaction(app_state: AppState) -> None:
    confession = make_confession(reactions={"love": 3})
    _seed(app_state, confession)

    first = app_state.react(confession.id, "love")
    assert first.confession.reactions["love"] == 4
    assert app_state.session.reacted_posts[confession.id] == "love"

    second = app_state.react(confession.id, "love")
    assert second.synced
    assert second.confession.reactions["love"] == 3
    assert confession.id not in app_state.session.reacted_posts
    stored = app_state.repo.get_confession(confession.id)
    assert stored is not None and stored.reactions["love"] == 3


def test_clearing_reaction_never_goes_negative(app_state: AppState) -> None:
    confession = make_confession()
    _seed(app_state, confession)
    app_state.session = app_state.session.model_copy(
        update={"reacted_posts": {confession.id: "sad"}}
    )

    result = app_state.react(confession.id, "sad")

    assert result.confession.reactions["sad"] == 0


def test_reaction_swap_keeps_total_and_awards_no_points(app_state: AppState) -> None:
    confession = make_confession(reactions={"funny": 2, "fire": 1})
    _seed(app_state, confession)

    app_state.react(confession.id, "funny")
    xp_after_first = app_state.session.xp
    assert xp_after_first == XP_FIRST_REACTION

    result = app_state.react(confession.id, "fire")

    assert result.confession.reactions["funny"] == 2
    assert result.confession.reactions["fire"] == 2
    assert result.confession.total_reactions == 4
    assert app_state.session.xp == xp_after_first
    assert app_state.session.reacted_posts[confession.id] == "fire"


def test_react_unknown_confession_raises(app_state: AppState) -> None:
    with pytest.raises(ConfessionNotFoundError):
        app_state.react("missing", "love")


def test_failed_remote_update_rolls_back_confession_and_session(
    app_state: AppState, mocker
) -> None:
    confession = make_confession(reactions={"shock": 1})
    _seed(app_state, confession)
    before_session = app_state.session
    mocker.patch.object(app_state.repo, "update_confession", return_value=False)

    result = app_state.react(confession.id, "shock")

    assert result.synced is False
    assert app_state.get(confession.id).reactions["shock"] == 1
    assert app_state.session == before_session
    assert app_state.store.get_item(SESSION_KEY)["xp"] == before_session.xp


def test_comment_appends_and_awards_points(app_state: AppState) -> None:
    confession = make_confession()
    _seed(app_state, confession)

    result = app_state.comment(confession.id, "same here")

    assert result.synced
    assert [c.text for c in result.confession.comments] == ["same here"]
    assert result.confession.comments[0].author_avatar == app_state.session.avatar
    assert app_state.session.xp == XP_COMMENT
    stored = app_state.repo.get_confession(confession.id)
    assert stored is not None and stored.comments[0].text == "same here"


def test_blank_comment_is_rejected(app_state: AppState) -> None:
    confession = make_confession()
    _seed(app_state, confession)

    with pytest.raises(InvalidInputError):
        app_state.comment(confession.id, "   ")
    assert app_state.session.xp == 0


def test_only_first_poll_vote_counts(app_state: AppState) -> None:
    poll = _poll()
    _seed(app_state, poll)

    first = app_state.vote(poll.id, "opt_0_1")
    second = app_state.vote(poll.id, "opt_1_1")

    assert first.applied and first.synced
    assert second.applied is False
    votes = {option.id: option.votes for option in app_state.get(poll.id).poll_options}
    assert votes == {"opt_0_1": 1, "opt_1_1": 2}
    assert app_state.session.voted_polls == {poll.id: "opt_0_1"}
    assert app_state.session.xp == XP_VOTE


def test_vote_rejects_unknown_option_and_non_polls(app_state: AppState) -> None:
    poll = _poll()
    text = make_confession()
    _seed(app_state, poll, text)

    with pytest.raises(InvalidInputError):
        app_state.vote(poll.id, "opt_9_9")
    with pytest.raises(InvalidInputError):
        app_state.vote(text.id, "opt_0_1")
    assert app_state.session.voted_polls == {}


@pytest.mark.asyncio
async def test_create_post_uses_analysis_and_awards_points(app_state: AppState) -> None:
    app_state.set_active_tab("search")

    confession = await app_state.create_post(
        ConfessionCreate(text="I love finals week", image="data:image/jpeg;base64,AAAA")
    )

    assert app_state.analyzer.calls == [("I love finals week", "data:image/jpeg;base64,AAAA")]
    assert confession.tags == ["campus", "exams", "coffee"]
    assert confession.sentiment == "happy"
    assert confession.author_avatar == app_state.session.avatar
    assert app_state.confessions[0].id == confession.id
    assert app_state.session.xp == XP_POST
    assert app_state.active_tab == "home"
    assert app_state.repo.get_confession(confession.id) is not None


@pytest.mark.asyncio
async def test_create_poll_builds_zeroed_options(app_state: AppState) -> None:
    confession = await app_state.create_post(
        ConfessionCreate(type="poll", text="Pizza or tacos?", poll_options=["Pizza", "Tacos"])
    )

    assert confession.poll_options is not None
    assert [o.text for o in confession.poll_options] == ["Pizza", "Tacos"]
    assert all(o.votes == 0 for o in confession.poll_options)
    assert confession.poll_options[0].id == f"opt_0_{confession.timestamp}"
    assert confession.image is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "draft",
    [
        ConfessionCreate(text="   "),
        ConfessionCreate(type="poll", text="One option?", poll_options=["Only"]),
        ConfessionCreate(type="poll", text="Too many?", poll_options=["a", "b", "c", "d", "e"]),
        ConfessionCreate(type="poll", text="Blank?", poll_options=["a", " "]),
    ],
)
async def test_create_post_rejects_invalid_drafts(app_state: AppState, draft) -> None:
    with pytest.raises(InvalidInputError):
        await app_state.create_post(draft)
    assert app_state.confessions == []
    assert app_state.analyzer.calls == []


@pytest.mark.asyncio
async def test_unsafe_post_requires_confirmation(app_state: AppState) -> None:
    app_state.analyzer.result = app_state.analyzer.result.model_copy(
        update={"is_safe": False, "flag_reason": "bullying"}
    )

    with pytest.raises(UnsafeContentError) as excinfo:
        await app_state.create_post(ConfessionCreate(text="mean words"))
    assert excinfo.value.flag_reason == "bullying"
    assert app_state.confessions == []

    confession = await app_state.create_post(
        ConfessionCreate(text="mean words", confirm_unsafe=True)
    )
    assert confession.is_safe is False
    assert confession.flag_reason == "bullying"


@pytest.mark.asyncio
async def test_failed_insert_removes_optimistic_post(app_state: AppState, mocker) -> None:
    mocker.patch.object(app_state.repo, "insert_confession", return_value=False)

    with pytest.raises(ConfessionPersistError, match=POST_FAILED_MESSAGE):
        await app_state.create_post(ConfessionCreate(text="lost in the void"))

    assert app_state.confessions == []
    assert app_state.session.xp == 0


@pytest.mark.asyncio
async def test_hello_post_with_failing_analysis_gets_neutral_fallback(app_state: AppState) -> None:
    def _boom(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("network down", request=request)

    app_state.analyzer = GeminiClient(
        GeminiConfig(
            api_key="test-key",
            base_url="https://gemini.test/v1beta",
            analysis_model="gemini-test",
            image_model="gemini-test-image",
            timeout_seconds=1.0,
        ),
        transport=httpx.MockTransport(_boom),
    )

    confession = await app_state.create_post(ConfessionCreate(text="hello"))
    await app_state.analyzer.close()

    stored = app_state.repo.get_confession(confession.id)
    assert stored is not None
    assert stored.sentiment == "neutral"
    assert stored.emoji == "😶"
    assert stored.tags == ["anonymous", "student"]
    assert stored.color_theme == "#64748b"
    assert stored.is_safe is True
    assert app_state.session.xp == XP_POST


def test_realtime_insert_is_prepended_once(app_state: AppState) -> None:
    older = make_confession()
    _seed(app_state, older)

    newer = make_confession()
    app_state.repo.insert_confession(newer)
    app_state.repo.channel.publish(newer)

    assert [c.id for c in app_state.confessions] == [newer.id, older.id]


def test_close_stops_following_inserts(app_state: AppState) -> None:
    app_state.close()

    app_state.repo.insert_confession(make_confession())

    assert app_state.confessions == []


def test_feed_filters(app_state: AppState) -> None:
    quiet = make_confession(reactions={"love": 1})
    loud = make_confession(reactions={"love": 5, "fire": 2})
    poll = _poll()
    _seed(app_state, quiet, loud, poll)

    assert [c.id for c in app_state.feed("all")] == [poll.id, loud.id, quiet.id]
    assert [c.id for c in app_state.feed("popular")] == [loud.id, quiet.id, poll.id]
    assert [c.id for c in app_state.feed("polls")] == [poll.id]


def test_search_matches_text_and_tags_case_insensitively(app_state: AppState) -> None:
    by_text = make_confession(text="The LIBRARY is haunted", tags=["ghosts"])
    by_tag = make_confession(text="quiet floor", tags=["Library"])
    other = make_confession(text="dining hall", tags=["food"])
    _seed(app_state, by_text, by_tag, other)

    results = {c.id for c in app_state.search_results("library")}

    assert results == {by_text.id, by_tag.id}
    assert app_state.search_results("") == []
    assert app_state.search_results("   ") == []


def test_trending_tags_ordered_by_count_then_first_seen(app_state: AppState) -> None:
    # Oldest first so the feed loads newest first: c, b, a.
    a = make_confession(tags=["late", "zeta"])
    b = make_confession(tags=["alpha", "zeta"])
    c = make_confession(tags=["beta", "zeta", "alpha"])
    extra = [make_confession(tags=[f"tag{i}"]) for i in range(10)]
    _seed(app_state, a, b, c, *extra)

    trending = app_state.trending_tags()

    assert len(trending) == 10
    assert trending[:2] == ["zeta", "alpha"]
    first_seen = [tag for conf in app_state.confessions for tag in conf.tags]
    singles = [tag for tag in dict.fromkeys(first_seen) if tag not in ("zeta", "alpha")]
    assert trending[2:] == singles[:8]


def test_toggle_theme_persists(app_state: AppState) -> None:
    assert app_state.toggle_theme() == "light"
    assert app_state.store.get_item(THEME_KEY) == "light"
    assert app_state.toggle_theme() == "dark"


def test_matchmaker_tab_holds_camera_only_while_open(app_state: AppState) -> None:
    app_state.set_active_tab("matchmaker")
    assert app_state.matchmaker.camera_on

    app_state.set_active_tab("profile")
    assert not app_state.matchmaker.camera_on


def test_close_releases_camera(app_state: AppState) -> None:
    app_state.set_active_tab("matchmaker")

    app_state.close()

    assert not app_state.matchmaker.camera_on

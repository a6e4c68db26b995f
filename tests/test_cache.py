# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/libum

import asyncio

import pytest

from libum.cache import SessionCache
from libum.types import CacheState, Source, UnknownConferenceError, UpstreamRequestError
from tests.fixtures.fake_source import JZ_2023, FakeSessionSource, wrapped_session


@pytest.fixture
def source() -> FakeSessionSource:
    return FakeSessionSource()


@pytest.fixture
def cache(source: FakeSessionSource) -> SessionCache:
    return SessionCache(source)


def test_cache_starts_empty(cache: SessionCache, source: FakeSessionSource) -> None:
    assert cache.state is CacheState.EMPTY
    assert source.conference_calls == 0


@pytest.mark.asyncio
async def test_get_sessions_fetches_once(cache: SessionCache, source: FakeSessionSource) -> None:
    """A second read for the same conference is served from the cache."""
    first = await cache.get_sessions("jz_2023")
    second = await cache.get_sessions("jz_2023")

    assert first == second
    assert source.session_calls.count("jz_2023") == 1
    assert source.conference_calls == 1
    assert cache.state is CacheState.READY


@pytest.mark.asyncio
async def test_initialization_populates_every_conference(cache: SessionCache, source: FakeSessionSource) -> None:
    await cache.get_sessions("jz_2023")

    # One sequential pass, in list order
    assert source.session_calls == ["jz_2023", "jz_2024"]

    await cache.get_sessions("jz_2023")
    await cache.get_sessions("jz_2024")
    assert source.session_calls == ["jz_2023", "jz_2024"]

    sessions = await cache.get_sessions("jz_2024")
    assert [s.title for s in sessions] == ["Observability without tears"]


@pytest.mark.asyncio
async def test_sessions_are_normalized(cache: SessionCache) -> None:
    sessions = await cache.get_sessions("jz_2023")

    assert sessions[0].id == "a1"
    assert sessions[0].tags == ["core", "2023"]
    assert sessions[1].format == "lightning-talk"


@pytest.mark.asyncio
async def test_get_conferences_returns_copy(cache: SessionCache) -> None:
    conferences = await cache.get_conferences()
    conferences.clear()

    assert [c.id for c in await cache.get_conferences()] == ["jz_2023", "jz_2024"]


@pytest.mark.asyncio
async def test_concurrent_first_reads_share_one_initialization(cache: SessionCache, source: FakeSessionSource) -> None:
    results = await asyncio.gather(*(cache.get_sessions("jz_2023") for _ in range(5)), cache.get_conferences())

    assert source.conference_calls == 1
    assert source.session_calls == ["jz_2023", "jz_2024"]
    assert all(r == results[0] for r in results[:5])


@pytest.mark.asyncio
async def test_concurrent_readers_share_failure() -> None:
    source = FakeSessionSource(fail_on="jz_2024")
    cache = SessionCache(source)

    results = await asyncio.gather(
        cache.get_sessions("jz_2023"), cache.get_sessions("jz_2024"), return_exceptions=True
    )

    assert all(isinstance(r, UpstreamRequestError) for r in results)
    assert source.conference_calls == 1


@pytest.mark.asyncio
async def test_failure_mid_pass_discards_everything() -> None:
    """Sessions cached before the failing conference are not served."""
    source = FakeSessionSource(fail_on="jz_2024")
    cache = SessionCache(source)

    with pytest.raises(UpstreamRequestError) as excinfo:
        await cache.get_sessions("jz_2023")

    assert excinfo.value.status == 503
    assert cache.state is CacheState.EMPTY
    assert cache.fallback_entry("jz_2023") is None

    # The next read retries from scratch
    source.fail_on = None
    sessions = await cache.get_sessions("jz_2023")

    assert len(sessions) == 2
    assert source.conference_calls == 2
    assert source.session_calls == ["jz_2023", "jz_2024", "jz_2023", "jz_2024"]


@pytest.mark.asyncio
async def test_cancelled_reader_does_not_abort_initialization() -> None:
    gate = asyncio.Event()
    source = FakeSessionSource(gate=gate)
    cache = SessionCache(source)

    reader = asyncio.ensure_future(cache.get_sessions("jz_2023"))
    for _ in range(10):
        if cache.state is CacheState.INITIALIZING:
            break
        await asyncio.sleep(0)
    assert cache.state is CacheState.INITIALIZING

    reader.cancel()
    with pytest.raises(asyncio.CancelledError):
        await reader

    gate.set()
    sessions = await cache.get_sessions("jz_2023")

    assert len(sessions) == 2
    assert source.conference_calls == 1


@pytest.mark.asyncio
async def test_unknown_conference(cache: SessionCache) -> None:
    with pytest.raises(UnknownConferenceError, match="No cached sessions found for conference ID: jz_1999"):
        await cache.get_sessions("jz_1999")


@pytest.mark.asyncio
async def test_get_session_ignores_suffix(cache: SessionCache) -> None:
    session = await cache.get_session("a1:1")
    assert session is not None
    assert session.id == "a1"

    raw = await cache.get_raw_session("a1")
    assert raw is not None
    assert raw["id"] == "a1:1"


@pytest.mark.asyncio
async def test_get_session_missing(cache: SessionCache) -> None:
    assert await cache.get_session("nope") is None
    assert await cache.get_raw_session("nope") is None


@pytest.mark.asyncio
async def test_reset_and_reinitialize_is_idempotent(cache: SessionCache, source: FakeSessionSource) -> None:
    before = [s.model_dump_json() for s in await cache.get_sessions("jz_2023")]

    cache.reset()
    assert cache.state is CacheState.EMPTY

    after = [s.model_dump_json() for s in await cache.get_sessions("jz_2023")]

    assert before == after
    assert source.conference_calls == 2


@pytest.mark.asyncio
async def test_fallback_entries_are_not_served_as_primary() -> None:
    source = FakeSessionSource(fail_on="jz_2024")
    cache = SessionCache(source)
    entry = cache.store_fallback("jz_2023", [wrapped_session("f1", "Fallback talk")], "2023")

    assert entry.source is Source.FALLBACK
    assert cache.find_fallback_session("f1") is not None

    with pytest.raises(UpstreamRequestError):
        await cache.get_sessions("jz_2023")

    # Survives the failed primary pass
    assert cache.fallback_entry("jz_2023") is entry


@pytest.mark.asyncio
async def test_primary_pass_supersedes_fallback(cache: SessionCache) -> None:
    cache.store_fallback("jz_2023", [wrapped_session("f1", "Fallback talk")], "2023")
    cache.store_fallback_conferences([JZ_2023])

    sessions = await cache.get_sessions("jz_2023")

    assert "f1" not in [s.id for s in sessions]
    assert cache.fallback_entry("jz_2023") is None
    assert cache.fallback_conferences() == []


@pytest.mark.asyncio
async def test_store_fallback_ignored_once_ready(cache: SessionCache) -> None:
    await cache.initialize()
    cache.store_fallback("jz_2023", [wrapped_session("f1", "Late fallback")])

    assert cache.fallback_entry("jz_2023") is None
    assert [s.id for s in await cache.get_sessions("jz_2023")] == ["a1", "a2"]


@pytest.mark.asyncio
async def test_non_object_sessions_are_skipped() -> None:
    source = FakeSessionSource(sessions={"jz_2023": [None, "junk", wrapped_session("a1", "Talk")]})
    cache = SessionCache(source)

    sessions = await cache.get_sessions("jz_2023")

    assert [s.title for s in sessions] == ["Talk"]
    assert await cache.get_raw_sessions("jz_2023") == [wrapped_session("a1", "Talk")]
    assert await cache.get_sessions("jz_2024") == []


def test_store_fallback_skips_non_object_sessions(cache: SessionCache) -> None:
    entry = cache.store_fallback("jz_2023", [None, wrapped_session("f1", "Fallback talk")], "2023")

    assert [s.id for s in entry.sessions] == ["f1"]
    assert len(entry.raw_sessions) == 1


async def _wait_for_state(cache: SessionCache, state: CacheState) -> None:
    for _ in range(10):
        if cache.state is state:
            return
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_reset_during_initialization_discards_stale_pass() -> None:
    gate = asyncio.Event()
    source = FakeSessionSource(gate=gate)
    cache = SessionCache(source)

    reader = asyncio.ensure_future(cache.get_sessions("jz_2023"))
    await _wait_for_state(cache, CacheState.INITIALIZING)
    stale = cache._inflight
    assert stale is not None

    cache.reset()
    reader.cancel()
    with pytest.raises(asyncio.CancelledError):
        await reader

    gate.set()
    await stale

    # The pass started before reset() does not commit
    assert cache.state is CacheState.EMPTY

    await cache.get_sessions("jz_2023")
    assert source.conference_calls == 2
    assert cache.state is CacheState.READY


@pytest.mark.asyncio
async def test_reader_waiting_through_reset_gets_fresh_pass() -> None:
    gate = asyncio.Event()
    source = FakeSessionSource(gate=gate)
    cache = SessionCache(source)

    reader = asyncio.ensure_future(cache.get_sessions("jz_2023"))
    await _wait_for_state(cache, CacheState.INITIALIZING)

    cache.reset()
    gate.set()
    sessions = await reader

    assert [s.id for s in sessions] == ["a1", "a2"]
    assert source.conference_calls == 2
    assert cache.state is CacheState.READY


@pytest.mark.asyncio
async def test_failure_without_waiters_is_retrieved() -> None:
    """A failed pass whose only reader was cancelled leaves no unretrieved exception."""
    gate = asyncio.Event()
    source = FakeSessionSource(fail_on="jz_2023", gate=gate)
    cache = SessionCache(source)

    reader = asyncio.ensure_future(cache.get_sessions("jz_2023"))
    await _wait_for_state(cache, CacheState.INITIALIZING)
    pass_task = cache._inflight
    assert pass_task is not None

    reader.cancel()
    with pytest.raises(asyncio.CancelledError):
        await reader

    gate.set()
    for _ in range(20):
        if pass_task.done():
            break
        await asyncio.sleep(0)
    await asyncio.sleep(0)

    assert pass_task.done()
    assert pass_task._log_traceback is False  # type: ignore[attr-defined]
    assert cache.state is CacheState.EMPTY

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
from typing import Any

from libum.interfaces import SessionSource
from libum.normalizer import clean_id, normalize_sessions
from libum.types import (
    CacheEntry,
    CacheState,
    Conference,
    RawSession,
    Session,
    Source,
    UnknownConferenceError,
)
from libum.utils.logger import logger


def _entry(conference_id: str, raw_sessions: list[Any], year: str, source: Source) -> CacheEntry:
    records = [r for r in raw_sessions if isinstance(r, dict)]
    if len(records) != len(raw_sessions):
        logger.warning(f"Dropped {len(raw_sessions) - len(records)} non-object sessions for {conference_id}")
    return CacheEntry(
        conference_id=conference_id,
        raw_sessions=records,
        sessions=normalize_sessions(records, year),
        source=source,
    )


class SessionCache:
    """
    Process-wide cache of every conference and its sessions.

    The first read populates the whole cache in one sequential pass. Concurrent
    readers arriving during that pass await the same population task and see
    either its complete result or its error. A failed pass leaves nothing
    behind, so the next read starts a fresh one.

    Entries fetched by the fallback path are stored here as well, tagged with
    ``Source.FALLBACK``. They are never returned by the primary accessors and
    are replaced once a primary pass succeeds.
    """

    def __init__(self, source: SessionSource) -> None:
        self.source = source
        self._state = CacheState.EMPTY
        self._conferences: list[Conference] = []
        self._entries: dict[str, CacheEntry] = {}
        self._fallback_conferences: list[Conference] = []
        self._inflight: asyncio.Future[None] | None = None
        self._generation = 0

    @property
    def state(self) -> CacheState:
        return self._state

    async def initialize(self) -> None:
        """Populate the cache unless it is already populated."""
        # A pass superseded by reset() finishes without READY; follow the new one.
        while self._state is not CacheState.READY:
            if self._inflight is None:
                self._inflight = asyncio.ensure_future(self._populate())
                self._inflight.add_done_callback(self._clear_inflight)

            # Shielded so a cancelled reader does not abort the pass for everyone else.
            await asyncio.shield(self._inflight)

    def _clear_inflight(self, task: "asyncio.Future[None]") -> None:
        if self._inflight is task:
            self._inflight = None
        # Every waiter may have been cancelled; mark the error as retrieved.
        if not task.cancelled():
            task.exception()

    async def _populate(self) -> None:
        logger.info("Initializing global sessions cache...")
        generation = self._generation
        self._state = CacheState.INITIALIZING
        self._conferences = []
        self._entries = {key: entry for key, entry in self._entries.items() if entry.source is Source.FALLBACK}

        try:
            conferences = await self.source.fetch_conferences()
            staged: dict[str, CacheEntry] = {}
            for conference in conferences:
                raw_sessions = await self.source.fetch_sessions(conference.id)
                staged[conference.id] = _entry(conference.id, raw_sessions, conference.year, Source.PRIMARY)
                logger.info(f"Cached {len(raw_sessions)} sessions for {conference.name} ({conference.id})")
        except BaseException as e:
            if generation == self._generation:
                self._state = CacheState.EMPTY
            logger.error(f"Error initializing cache: {e}")
            raise

        if generation != self._generation:
            logger.info("Cache was reset during initialization, discarding results")
            return

        self._conferences = list(conferences)
        self._entries = staged
        self._fallback_conferences = []
        self._state = CacheState.READY
        logger.info(f"Initialization complete. Cached {len(self._conferences)} conferences")

    def reset(self) -> None:
        """Drop all cached data, including fallback entries."""
        self._generation += 1
        self._state = CacheState.EMPTY
        self._conferences = []
        self._entries = {}
        self._fallback_conferences = []
        self._inflight = None
        logger.info("Sessions cache cleared")

    async def get_conferences(self) -> list[Conference]:
        await self.initialize()
        return list(self._conferences)

    def _primary_entry(self, conference_id: str) -> CacheEntry:
        entry = self._entries.get(conference_id)
        if entry is None or entry.source is not Source.PRIMARY:
            raise UnknownConferenceError(conference_id)
        return entry

    async def get_sessions(self, conference_id: str) -> list[Session]:
        await self.initialize()
        return list(self._primary_entry(conference_id).sessions)

    async def get_raw_sessions(self, conference_id: str) -> list[RawSession]:
        await self.initialize()
        return list(self._primary_entry(conference_id).raw_sessions)

    def _find(self, session_id: str, source: Source) -> tuple[Session, RawSession] | None:
        wanted = clean_id(session_id)
        for entry in self._entries.values():
            if entry.source is not source:
                continue
            for session in entry.sessions:
                if session.id == wanted:
                    raw = next(
                        (
                            r
                            for r in entry.raw_sessions
                            if isinstance(r, dict) and clean_id(r.get("id") or r.get("sessionId")) == wanted
                        ),
                        {},
                    )
                    return session, raw
        return None

    async def get_session(self, session_id: str) -> Session | None:
        """Search every conference for a session, ignoring a trailing ':1' in the id."""
        await self.initialize()
        found = self._find(session_id, Source.PRIMARY)
        return found[0] if found else None

    async def get_raw_session(self, session_id: str) -> RawSession | None:
        await self.initialize()
        found = self._find(session_id, Source.PRIMARY)
        return found[1] if found else None

    def store_fallback(self, conference_id: str, raw_sessions: list[RawSession], year: str = "") -> CacheEntry:
        """Remember sessions fetched outside a primary pass."""
        entry = _entry(conference_id, raw_sessions, year, Source.FALLBACK)
        if self._state is not CacheState.READY:
            self._entries[conference_id] = entry
        return entry

    def fallback_entry(self, conference_id: str) -> CacheEntry | None:
        entry = self._entries.get(conference_id)
        return entry if entry is not None and entry.source is Source.FALLBACK else None

    def find_fallback_session(self, session_id: str) -> tuple[Session, RawSession] | None:
        return self._find(session_id, Source.FALLBACK)

    def store_fallback_conferences(self, conferences: list[Conference]) -> None:
        if self._state is not CacheState.READY:
            self._fallback_conferences = list(conferences)

    def fallback_conferences(self) -> list[Conference]:
        return list(self._fallback_conferences)

# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/libum

from contextlib import AbstractContextManager
from typing import Any, Awaitable, Callable, TypeVar

from anyio.from_thread import BlockingPortal, start_blocking_portal

from libum import __version__
from libum.cache import SessionCache
from libum.client import MoresleepClient
from libum.config import AppConfig
from libum.interfaces import SecretsProvider
from libum.normalizer import clean_id, normalize_session, normalize_sessions
from libum.secrets import EnvSecretsProvider
from libum.types import (
    CacheEntry,
    Conference,
    ConferenceListing,
    LibumError,
    Session,
    SessionDetail,
    SessionListing,
    Source,
    UnknownConferenceError,
    UpstreamRequestError,
)
from libum.utils.logger import logger

T = TypeVar("T")


class SubmissionsServiceAsync:
    """Read access to conferences and sessions for the web layer."""

    def __init__(
        self,
        config: AppConfig | None = None,
        secrets: SecretsProvider | None = None,
        client: MoresleepClient | None = None,
        name: str = "libum",
        version: str = __version__,
    ) -> None:
        """Initialize the service.

        Args:
            config: Configuration for the application. Defaults to standard AppConfig.
            secrets: Secrets provider for the application. Defaults to EnvSecretsProvider.
            client: Upstream client. Defaults to a MoresleepClient built from config and secrets.
            name: Name of the service. Defaults to "libum".
            version: Version of the service.
        """
        self.name = name
        self.version = version

        self.config = config or AppConfig()
        self.secrets = secrets or EnvSecretsProvider()
        self.client = client or MoresleepClient(self.secrets, self.config.upstream)
        self.cache = SessionCache(self.client)

        logger.info(f"Initialized {name} v{version} against {self.config.upstream.base_url}")

    async def __aenter__(self) -> "SubmissionsServiceAsync":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.client.aclose()

    async def list_conferences(self) -> ConferenceListing:
        """Return all conferences, newest year first."""
        try:
            conferences = await self.cache.get_conferences()
            source = Source.PRIMARY
        except LibumError as e:
            logger.warning(f"Cache unavailable, fetching conferences directly: {e}")
            conferences = self.cache.fallback_conferences()
            if not conferences:
                conferences = await self.client.fetch_conferences()
                self.cache.store_fallback_conferences(conferences)
            source = Source.FALLBACK

        ordered = sorted(conferences, key=lambda c: c.year, reverse=True)
        return ConferenceListing(conferences=ordered, source=source)

    async def list_sessions(self, year: str | None = None, listing: ConferenceListing | None = None) -> SessionListing:
        """
        Return the sessions of the conference held in ``year``.

        Args:
            year: Conference year. Defaults to the newest conference.
            listing: Conferences already fetched for this request. Fetched when omitted.

        Raises:
            UnknownConferenceError: If no conference matches the year.
            LibumError: If both the cache and the direct fetch fail.
        """
        if listing is None:
            listing = await self.list_conferences()
        selected = year or (listing.conferences[0].year if listing.conferences else "")
        conference = next((c for c in listing.conferences if c.year == selected), None)
        if conference is None:
            raise UnknownConferenceError(selected, f"No conference found for year {selected}")

        if listing.source is Source.PRIMARY:
            try:
                sessions = await self.cache.get_sessions(conference.id)
                raw_sessions = await self.cache.get_raw_sessions(conference.id)
                return SessionListing(
                    conference=conference, sessions=sessions, raw_sessions=raw_sessions, source=Source.PRIMARY
                )
            except LibumError as e:
                logger.warning(f"Cache unavailable for {conference.id}, fetching sessions directly: {e}")

        entry = await self._fallback_sessions(conference)
        return SessionListing(
            conference=conference, sessions=entry.sessions, raw_sessions=entry.raw_sessions, source=Source.FALLBACK
        )

    async def _fallback_sessions(self, conference: Conference) -> CacheEntry:
        entry = self.cache.fallback_entry(conference.id)
        if entry is not None:
            logger.info(f"Returning fallback sessions for conference {conference.id}")
            return entry
        raw_sessions = await self.client.fetch_sessions(conference.id)
        return self.cache.store_fallback(conference.id, raw_sessions, conference.year)

    async def get_session_detail(self, session_id: str) -> SessionDetail | None:
        """Return one session with its raw record, or None if it does not exist."""
        try:
            session = await self.cache.get_session(session_id)
            if session is None:
                return None
            raw = await self.cache.get_raw_session(session_id) or {}
            return SessionDetail(session=session, raw=raw, source=Source.PRIMARY)
        except LibumError as e:
            logger.warning(f"Cache unavailable, fetching session {session_id} directly: {e}")

        found = self.cache.find_fallback_session(session_id)
        if found is not None:
            return SessionDetail(session=found[0], raw=found[1], source=Source.FALLBACK)

        try:
            raw = await self.client.fetch_session_detail(clean_id(session_id))
        except UpstreamRequestError as e:
            if e.status == 404:
                return None
            raise
        return SessionDetail(session=normalize_session(raw), raw=raw, source=Source.FALLBACK)

    async def list_public_sessions(self, conference_slug: str) -> list[Session]:
        """Return the published sessions of a conference. Not cached; no credential needed."""
        raw_sessions = await self.client.fetch_public_sessions(conference_slug)
        return normalize_sessions(raw_sessions, Conference.year_from_slug(conference_slug))

    async def probe_upstream(self) -> dict[str, Any]:
        return await self.client.probe()


class SubmissionsService(AbstractContextManager["SubmissionsService"]):
    """
    Blocking facade over SubmissionsServiceAsync.

    Calls run on an event loop owned by a background thread, which is started on
    first use and stopped by ``close()`` or on leaving the ``with`` block.
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        secrets: SecretsProvider | None = None,
        client: MoresleepClient | None = None,
    ) -> None:
        self._async = SubmissionsServiceAsync(config=config, secrets=secrets, client=client)
        self._portal_cm: AbstractContextManager[BlockingPortal] | None = None
        self._portal: BlockingPortal | None = None

    def _run(self, func: Callable[..., Awaitable[T]], *args: Any) -> T:
        if self._portal is None:
            self._portal_cm = start_blocking_portal()
            self._portal = self._portal_cm.__enter__()
        return self._portal.call(func, *args)

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        if self._portal is None or self._portal_cm is None:
            return
        try:
            self._portal.call(self._async.__aexit__, None, None, None)
        finally:
            self._portal_cm.__exit__(None, None, None)
            self._portal = None
            self._portal_cm = None

    def list_conferences(self) -> ConferenceListing:
        return self._run(self._async.list_conferences)

    def list_sessions(self, year: str | None = None, listing: ConferenceListing | None = None) -> SessionListing:
        return self._run(self._async.list_sessions, year, listing)

    def list_public_sessions(self, conference_slug: str) -> list[Session]:
        return self._run(self._async.list_public_sessions, conference_slug)

    def get_session_detail(self, session_id: str) -> SessionDetail | None:
        return self._run(self._async.get_session_detail, session_id)

    def probe_upstream(self) -> dict[str, Any]:
        return self._run(self._async.probe_upstream)

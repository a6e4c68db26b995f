# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/libum

import base64
from typing import Any

import httpx

from libum.config import UpstreamConfig
from libum.interfaces import SecretsProvider, SessionSource
from libum.payload import decode_collection, parse_body
from libum.types import (
    AuthenticationFailedError,
    Conference,
    CredentialsMissingError,
    MalformedResponseError,
    RawSession,
    UpstreamRequestError,
)
from libum.utils.logger import logger


class MoresleepClient(SessionSource):
    """Async client for the moresleep conference API."""

    def __init__(
        self,
        secrets: SecretsProvider,
        config: UpstreamConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            secrets: Provider holding the Basic-Auth credential.
            config: Upstream settings. Defaults to the public JavaZone API.
            transport: Optional httpx transport, used by tests to stub the API.
        """
        self.secrets = secrets
        self.config = config or UpstreamConfig()
        self.client = httpx.AsyncClient(
            timeout=self.config.timeout,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    async def __aenter__(self) -> "MoresleepClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    def has_credential(self) -> bool:
        return bool(self._credential())

    def _credential(self) -> str:
        try:
            return str(self.secrets.get_user_credential(self.config.credential_env) or "")
        except KeyError:
            return ""

    def _auth_headers(self) -> dict[str, str]:
        credential = self._credential()
        if not credential:
            logger.error(f"Missing {self.config.credential_env} environment variable")
            raise CredentialsMissingError()
        token = base64.b64encode(credential.encode("utf-8")).decode("ascii")
        return {"Authorization": f"Basic {token}"}

    async def _request(self, url: str, headers: dict[str, str] | None = None) -> httpx.Response:
        try:
            return await self.client.get(url, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Request to {url} failed: {e}")
            raise UpstreamRequestError(f"Request to {url} failed: {e}") from e

    async def _get_json(self, path: str, what: str, authenticated: bool = True) -> Any:
        if authenticated:
            headers = self._auth_headers()
            url = f"{self.config.base_url}{path}"
        else:
            headers = None
            url = f"{self.config.public_base_url or self.config.base_url}{path}"

        response = await self._request(url, headers)

        if not response.is_success:
            logger.error(f"Failed to fetch {what}: {response.status_code} {response.reason_phrase}")
            if response.status_code == 401:
                raise AuthenticationFailedError()
            raise UpstreamRequestError(
                f"Failed to fetch {what}: {response.status_code} {response.reason_phrase}",
                status=response.status_code,
                status_text=response.reason_phrase,
            )

        return parse_body(response.text)

    async def fetch_conferences(self) -> list[Conference]:
        logger.info("Fetching conferences from API")
        payload = await self._get_json("/data/conference", "conferences")
        raw = decode_collection(payload, "conferences").items

        conferences = []
        for c in raw:
            if not isinstance(c, dict) or not c.get("id") or not c.get("slug"):
                raise MalformedResponseError(f"Conference entry without id or slug: {c!r}")
            conferences.append(
                Conference(
                    id=str(c["id"]),
                    slug=str(c["slug"]),
                    name=str(c.get("name") or ""),
                    slottimes=c.get("slottimes"),
                    year=Conference.year_from_slug(str(c["slug"])),
                )
            )
        return conferences

    async def fetch_sessions(self, conference_id: str) -> list[RawSession]:
        logger.info(f"Fetching sessions for conference {conference_id} from API")
        payload = await self._get_json(f"/data/conference/{conference_id}/session", f"sessions for {conference_id}")
        return decode_collection(payload, "sessions").items

    async def fetch_session_detail(self, slug: str) -> RawSession:
        """Fetch the detailed record of a single session."""
        logger.info(f"Fetching session {slug} from API")
        payload = await self._get_json(f"/data/session/{slug}", f"session {slug}")
        if not isinstance(payload, dict):
            raise MalformedResponseError(f"Expected a session object for {slug}, got {type(payload).__name__}")
        return payload

    async def fetch_public_sessions(self, conference_slug: str) -> list[RawSession]:
        """Fetch the published sessions of a conference; no credential needed."""
        logger.info(f"Fetching public sessions for {conference_slug}")
        payload = await self._get_json(
            f"/public/allSessions/{conference_slug}", f"public sessions for {conference_slug}", authenticated=False
        )
        return decode_collection(payload, "sessions").items

    async def probe(self) -> dict[str, Any]:
        """
        Report credential status and the shape of two authenticated endpoints.

        HTTP and decoding failures are recorded in the result instead of raised.
        """
        results: dict[str, Any] = {"isAuthenticated": self.has_credential(), "endpoints": {}, "error": None}
        if not results["isAuthenticated"]:
            return results

        endpoints = {
            "conference": "/data/conference",
            "session": f"/data/conference/{self.config.probe_conference_id}/session",
        }
        headers = self._auth_headers()
        for name, path in endpoints.items():
            try:
                response = await self._request(f"{self.config.base_url}{path}", headers)
            except UpstreamRequestError as e:
                results["error"] = e.message
                break

            entry: dict[str, Any] = {
                "status": response.status_code,
                "ok": response.is_success,
                "statusText": response.reason_phrase,
            }
            if response.is_success:
                try:
                    entry["data"] = _describe(parse_body(response.text))
                except MalformedResponseError as e:
                    entry["data"] = {"type": "malformed", "error": e.message}
            results["endpoints"][name] = entry

        return results


def _describe(payload: Any) -> dict[str, Any]:
    if isinstance(payload, list):
        return {"type": "array", "length": len(payload)}
    if isinstance(payload, dict):
        return {"type": "object", "keys": sorted(payload.keys())}
    return {"type": type(payload).__name__}

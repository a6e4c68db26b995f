# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/libum

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

RawSession = dict[str, Any]


class Source(str, Enum):
    """Which cache tier produced a result."""

    PRIMARY = "primary"
    FALLBACK = "fallback"


class CacheState(str, Enum):
    EMPTY = "empty"
    INITIALIZING = "initializing"
    READY = "ready"


class Conference(BaseModel):
    """
    One yearly edition of the event.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    slug: str
    name: str = ""
    year: str = ""
    slottimes: Any | None = None

    @staticmethod
    def year_from_slug(slug: str) -> str:
        """Return the part of a slug after the first underscore (javazone_2023 -> 2023)."""
        parts = slug.split("_")
        return parts[1] if len(parts) > 1 else ""


class Speaker(BaseModel):
    name: str


class Session(BaseModel):
    """
    Canonical display record for a submitted talk.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    session_id: str
    title: str
    abstract: str = ""
    format: str
    length: str
    language: str
    room: str = ""
    start_time: str = ""
    end_time: str = ""
    video: str = ""
    speakers: list[Speaker] = Field(default_factory=list)
    status: str = "confirmed"
    tags: list[str] = Field(default_factory=list)


class CacheEntry(BaseModel):
    """
    Sessions stored for one conference, tagged with the tier that fetched them.
    """

    conference_id: str
    raw_sessions: list[RawSession]
    sessions: list[Session]
    source: Source = Source.PRIMARY


class ConferenceListing(BaseModel):
    conferences: list[Conference]
    source: Source


class SessionListing(BaseModel):
    conference: Conference
    sessions: list[Session]
    raw_sessions: list[RawSession]
    source: Source


class SessionDetail(BaseModel):
    session: Session
    raw: RawSession
    source: Source


class LibumError(Exception):
    """
    Base class for failures while reading conference data.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class CredentialsMissingError(LibumError):
    """Raised when no Basic-Auth credential is configured."""

    def __init__(self, message: str = "Authorization credentials missing. Check your .env file.") -> None:
        super().__init__(message)


class AuthenticationFailedError(LibumError):
    """Raised when the upstream API rejects the credential (HTTP 401)."""

    def __init__(self, message: str = "Authorization failed. Check your credentials in .env file.") -> None:
        super().__init__(message)


class UpstreamRequestError(LibumError):
    """
    Raised when the upstream API answers with a non-success status or cannot be reached.

    ``status`` is None for transport failures.
    """

    def __init__(self, message: str, status: int | None = None, status_text: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.status_text = status_text


class MalformedResponseError(LibumError):
    """Raised when a response body is not JSON even after sanitization."""


class UnknownConferenceError(LibumError):
    """Raised when no sessions are known for a conference."""

    def __init__(self, conference_id: str, message: str | None = None) -> None:
        super().__init__(message or f"No cached sessions found for conference ID: {conference_id}")
        self.conference_id = conference_id

# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/libum

"""Mapping of raw moresleep sessions into display records.

Sessions arrive either flat (``{"title": ...}``) or with every field wrapped
as ``{"data": {"title": {"value": ..., "privateData": false}}}``. The wrapped
value wins when both are present.
"""

from typing import Any, Iterable

from libum.types import RawSession, Session, Speaker
from libum.utils.logger import logger

SUFFIX = ":1"

DEFAULTS = {
    "title": "Untitled Session",
    "abstract": "",
    "format": "presentation",
    "length": "45",
    "language": "en",
    "room": "",
    "startTime": "",
    "endTime": "",
    "video": "",
    "status": "confirmed",
}


def clean_id(value: Any) -> str:
    """Strip one trailing ':1' from a session id."""
    if not value:
        return ""
    text = str(value)
    return text[: -len(SUFFIX)] if text.endswith(SUFFIX) else text


def _wrapped(raw: RawSession, name: str) -> Any:
    data = raw.get("data")
    if not isinstance(data, dict):
        return None
    entry = data.get(name)
    if not isinstance(entry, dict):
        return None
    return entry.get("value")


def _field(raw: RawSession, name: str) -> str:
    value = _wrapped(raw, name) or raw.get(name) or DEFAULTS[name]
    return value if isinstance(value, str) else str(value)


def _speakers(raw: RawSession) -> list[Speaker]:
    speakers = raw.get("speakers")
    if not isinstance(speakers, list):
        return []
    names = [s.get("name") if isinstance(s, dict) else None for s in speakers]
    return [Speaker(name=str(name) if name else "Unknown Speaker") for name in names]


def _tags(raw: RawSession) -> list[str]:
    entries = _wrapped(raw, "tagswithauthor")
    if not isinstance(entries, list):
        return []
    return [str(e["tag"]) for e in entries if isinstance(e, dict) and e.get("tag")]


def normalize_session(raw: RawSession) -> Session:
    """Map one raw session into a Session record."""
    return Session(
        id=clean_id(raw.get("id") or raw.get("sessionId")),
        session_id=clean_id(raw.get("sessionId") or raw.get("id")),
        title=_field(raw, "title"),
        abstract=_field(raw, "abstract"),
        format=_field(raw, "format"),
        length=_field(raw, "length"),
        language=_field(raw, "language"),
        room=_field(raw, "room"),
        start_time=_field(raw, "startTime"),
        end_time=_field(raw, "endTime"),
        video=_field(raw, "video"),
        speakers=_speakers(raw),
        status=_field(raw, "status"),
        tags=_tags(raw),
    )


def normalize_sessions(raw_sessions: Iterable[RawSession] | None, year: str = "") -> list[Session]:
    """
    Map raw sessions into Session records.

    Args:
        raw_sessions: Sessions as returned by the API. None or empty yields [].
        year: Conference year the sessions belong to, used for logging.
    """
    if not raw_sessions:
        return []
    sessions = [normalize_session(raw) for raw in raw_sessions if isinstance(raw, dict)]
    logger.debug(f"Normalized {len(sessions)} sessions for {year or 'unknown year'}")
    return sessions

# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/libum

import re
from typing import Iterable

from pydantic import BaseModel

from libum.types import Session

YEAR_TAG = re.compile(r"^\d{4}$")


class ListingFilters(BaseModel):
    """Filters for a session listing. Empty values match everything."""

    title: str = ""
    author: str = ""
    format: str = ""
    tag: str = ""
    status: str = ""


class FacetOptions(BaseModel):
    formats: list[str]
    statuses: list[str]
    tags: list[str]


def matches(session: Session, filters: ListingFilters) -> bool:
    if filters.title and filters.title.lower() not in session.title.lower():
        return False
    if filters.author and not any(filters.author.lower() in s.name.lower() for s in session.speakers):
        return False
    if filters.format and session.format != filters.format:
        return False
    if filters.tag and filters.tag not in session.tags:
        return False
    if filters.status and session.status != filters.status:
        return False
    return True


def apply_filters(sessions: Iterable[Session], filters: ListingFilters) -> list[Session]:
    return [s for s in sessions if matches(s, filters)]


def sort_tags(tags: Iterable[str]) -> list[str]:
    """Sort tags alphabetically, with four-digit year tags last."""
    return sorted(tags, key=lambda t: (bool(YEAR_TAG.match(t)), t))


def _unique(values: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(values))


def facet_options(sessions: list[Session]) -> FacetOptions:
    """Distinct values offered by the listing's filter controls, in first-seen order."""
    return FacetOptions(
        formats=_unique(s.format for s in sessions),
        statuses=_unique(s.status for s in sessions),
        tags=sort_tags(_unique(t for s in sessions for t in s.tags)),
    )

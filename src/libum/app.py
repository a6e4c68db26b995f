# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/libum

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator

from fastapi import Depends, FastAPI, HTTPException, Request

from libum import __version__
from libum.config import load_config
from libum.filters import ListingFilters, apply_filters, facet_options
from libum.service import SubmissionsServiceAsync
from libum.types import LibumError, UnknownConferenceError
from libum.utils.logger import logger


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    config = load_config()
    async with SubmissionsServiceAsync(config=config) as service:
        app.state.config = config
        app.state.service = service
        yield
    logger.info("Service shut down")


app = FastAPI(title="libum", version=__version__, lifespan=lifespan)


def get_service(request: Request) -> SubmissionsServiceAsync:
    service: SubmissionsServiceAsync = request.app.state.service
    return service


@app.get("/health")
async def health(service: SubmissionsServiceAsync = Depends(get_service)) -> dict[str, Any]:
    return {"status": "live", "version": service.version, "cache": service.cache.state.value}


@app.get("/api/conferences")
async def conferences(service: SubmissionsServiceAsync = Depends(get_service)) -> dict[str, Any]:
    """All conferences; the configured static list if the API cannot be reached."""
    try:
        listing = await service.list_conferences()
    except LibumError as e:
        logger.error(f"Error fetching conferences: {e}")
        static = service.config.fallback_conferences
        return {"conferences": [c.model_dump() for c in static], "source": "static"}
    return {"conferences": [c.model_dump() for c in listing.conferences], "source": listing.source.value}


@app.get("/submissions")
async def submissions(
    year: str | None = None,
    filters: ListingFilters = Depends(),
    service: SubmissionsServiceAsync = Depends(get_service),
) -> dict[str, Any]:
    """
    Sessions of one conference, filtered.

    Failures are reported in the ``error`` field so the page can still render.
    """
    result: dict[str, Any] = {
        "sessions": [],
        "selectedYear": year or "",
        "availableConferences": [],
        "isFutureYear": False,
        "options": None,
        "source": None,
        "error": None,
    }

    try:
        listing = await service.list_conferences()
    except LibumError as e:
        logger.error(f"Error fetching conferences: {e}")
        result["error"] = f"Error loading conferences: {e.message}"
        return result

    if not listing.conferences:
        return result

    selected = year or listing.conferences[0].year
    result["selectedYear"] = selected
    result["availableConferences"] = [c.model_dump() for c in listing.conferences]
    result["isFutureYear"] = selected.isdigit() and int(selected) > datetime.now().year

    try:
        sessions = await service.list_sessions(selected, listing)
    except UnknownConferenceError as e:
        result["error"] = e.message
        return result
    except LibumError as e:
        logger.error(f"Error fetching sessions: {e}")
        result["error"] = f"Error loading sessions: {e.message}"
        return result

    logger.info(f"Loaded {len(sessions.sessions)} sessions for {sessions.conference.name}")
    result["sessions"] = [s.model_dump(by_alias=True) for s in apply_filters(sessions.sessions, filters)]
    result["options"] = facet_options(sessions.sessions).model_dump()
    result["source"] = sessions.source.value
    return result


@app.get("/submissions/{session_id}")
async def submission_detail(session_id: str, service: SubmissionsServiceAsync = Depends(get_service)) -> dict[str, Any]:
    try:
        detail = await service.get_session_detail(session_id)
    except LibumError as e:
        logger.error(f"Error fetching session {session_id}: {e}")
        raise HTTPException(status_code=502, detail=e.message) from e
    if detail is None:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")
    return {"session": detail.session.model_dump(by_alias=True), "raw": detail.raw, "source": detail.source.value}


@app.get("/public/sessions/{conference_slug}")
async def public_sessions(
    conference_slug: str, service: SubmissionsServiceAsync = Depends(get_service)
) -> dict[str, Any]:
    """Published sessions straight from the public endpoint."""
    try:
        sessions = await service.list_public_sessions(conference_slug)
    except LibumError as e:
        logger.error(f"Error fetching public sessions for {conference_slug}: {e}")
        raise HTTPException(status_code=502, detail=e.message) from e
    return {"conference": conference_slug, "sessions": [s.model_dump(by_alias=True) for s in sessions]}


@app.get("/debug/env")
async def debug_env(service: SubmissionsServiceAsync = Depends(get_service)) -> dict[str, Any]:
    """Describe the credential without revealing it."""
    name = service.config.upstream.credential_env
    try:
        credential = str(service.secrets.get_user_credential(name) or "")
    except KeyError:
        credential = ""
    return {
        "name": name,
        "isSet": bool(credential),
        "length": len(credential),
        "hasColon": ":" in credential,
    }


@app.get("/debug/api")
async def debug_api(service: SubmissionsServiceAsync = Depends(get_service)) -> dict[str, Any]:
    return await service.probe_upstream()

"""JSON API endpoints for tradd with key authentication."""

import logging
import secrets
from typing import Literal

from fastapi import APIRouter, Depends, File, Form, Header, HTTPException, Query, Request, UploadFile
from pydantic import BaseModel

from ..torrent import TorrentClient, TransmissionError
from ..workflow import (
    AddOptions,
    AddTorrentWorkflow,
    Blobs,
    CollectingNotifier,
    InputSource,
    LocationHistory,
    MagnetOrUrl,
    Priority,
    TorrentBlob,
    WorkflowState,
    build_capabilities,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["api"])


# =============================================================================
# Pydantic Models
# =============================================================================


class NotificationResponse(BaseModel):
    kind: str
    title: str
    message: str


class UnitResponse(BaseModel):
    """Outcome of one add request."""

    name: str
    outcome: str | None = None
    torrent_id: int | None = None
    hash: str = ""
    error: str | None = None


class AddTorrentResponse(BaseModel):
    """Result of an add workflow run."""

    state: str
    torrent_exists: bool = False
    merged: bool = False
    units: list[UnitResponse] = []
    notifications: list[NotificationResponse] = []


class LocationListResponse(BaseModel):
    locations: list[str]


# =============================================================================
# API Key Authentication
# =============================================================================


def get_api_key_from_config(request: Request) -> str:
    """Get API key from app state config."""
    app_state = getattr(request.app, "state", None)
    if app_state and hasattr(app_state, "api_key"):
        return app_state.api_key
    return ""


async def verify_api_key(
    request: Request,
    x_api_key: str | None = Header(default=None),
    api_key: str | None = Query(default=None),
) -> str:
    """Verify API key from header or query param."""
    expected_key = get_api_key_from_config(request)

    if not expected_key:
        # No key configured - allow access
        return ""

    provided_key = x_api_key or api_key

    if not provided_key:
        raise HTTPException(
            status_code=401,
            detail="API key required. Provide via X-API-Key header or api_key query param",
        )

    if not secrets.compare_digest(provided_key, expected_key):
        raise HTTPException(status_code=403, detail="Invalid API key")

    return provided_key


# =============================================================================
# Torrent Endpoints
# =============================================================================


@router.post("/torrents", response_model=AddTorrentResponse)
async def add_torrents(
    request: Request,
    files: list[UploadFile] | None = File(default=None),
    link: str = Form(default=""),
    download_dir: str = Form(default=""),
    labels: list[str] | None = Form(default=None),
    paused: bool = Form(default=False),
    priority: Literal["low", "normal", "high"] = Form(default="normal"),
    _api_key: str = Depends(verify_api_key),
):
    """Add uploaded .torrent files or a magnet link/URL without confirmation."""
    files = files or []
    if files and link:
        raise HTTPException(status_code=400, detail="Send either files or a link, not both")

    source: InputSource
    if files:
        source = Blobs(blobs=[
            TorrentBlob(name=f.filename or "upload.torrent", data=await f.read())
            for f in files
        ])
    elif link.strip():
        source = MagnetOrUrl(text=link)
    else:
        raise HTTPException(status_code=400, detail="No torrent files or link given")

    client: TorrentClient = request.app.state.client
    history: LocationHistory = request.app.state.history

    try:
        live = await client.list_torrents()
    except TransmissionError as e:
        logger.error(f"Failed to list torrents: {e}")
        raise HTTPException(status_code=502, detail=f"Torrent daemon unavailable: {e}")

    notifier = CollectingNotifier()
    capabilities = build_capabilities(client, request.app.state.reader, notifier, live_torrents=live)
    workflow = AddTorrentWorkflow(
        capabilities,
        history,
        delete_added=False,
        options=AddOptions(
            download_dir=download_dir or history.last or "",
            labels=labels or [],
            start=not paused,
            priority=Priority.from_name(priority),
        ),
    )

    state = await workflow.open(source)
    response = AddTorrentResponse(state=state.value, torrent_exists=workflow.torrent_exists)

    if state == WorkflowState.READY:
        if workflow.can_submit:
            report = await workflow.submit()
            response.merged = report.merged
            response.units = [
                UnitResponse(
                    name=unit.name,
                    outcome=unit.result.outcome.value if unit.result else None,
                    torrent_id=unit.result.id if unit.result else None,
                    hash=unit.result.hash if unit.result else "",
                    error=str(unit.error) if unit.error else None,
                )
                for unit in report.units
            ]
        else:
            workflow.close()
        response.state = workflow.state.value

    response.notifications = [NotificationResponse(**n.to_dict()) for n in notifier.notifications]
    return response


@router.get("/locations", response_model=LocationListResponse)
async def list_locations(
    request: Request,
    _api_key: str = Depends(verify_api_key),
):
    """List recently used download directories."""
    history: LocationHistory = request.app.state.history
    return LocationListResponse(locations=history.entries)

"""Session control endpoints for the host application."""

from __future__ import annotations

import base64
import binascii
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from vr_art_guard.api.models import StrokeRequest, ToolChangeRequest, VerifyRequest
from vr_art_guard.services.delivery import VERIFY_LAYER_ID
from vr_art_guard.services.errors import ResponseParseError, TransportError
from vr_art_guard.services.sessions import summarize_outcome

if TYPE_CHECKING:
    from vr_art_guard.containers import AppContainer
    from vr_art_guard.services.pipeline import CycleOutcome
    from vr_art_guard.services.sessions import SessionManager

router = APIRouter(prefix="/sessions", tags=["sessions"])
verify_router = APIRouter(tags=["verify"])


def _get_control_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.control_token


async def require_control(
    x_control_token: str | None = Header(default=None),
    control_token: str = Depends(_get_control_token),
) -> None:
    """Ensure requests include a valid control token."""
    if not x_control_token or x_control_token != control_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


def _manager(request: Request) -> SessionManager:
    container: AppContainer = request.app.state.container
    return container.session_manager


def _require_open_session(manager: SessionManager) -> None:
    if manager.session is None or manager.session.closed:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail="No active session"
        )


def _cycle_response(
    manager: SessionManager, outcome: CycleOutcome | None
) -> dict[str, object]:
    return {
        "state": manager.state.value,
        "cycle": summarize_outcome(outcome) if outcome else None,
    }


@router.post("", dependencies=[Depends(require_control)])
async def start_session(request: Request) -> dict[str, object]:
    """Open a creation session, or return the one already open."""
    manager = _manager(request)
    session = await manager.start_session()
    return {"state": manager.state.value, "session": session.snapshot()}


@router.get("/current", dependencies=[Depends(require_control)])
async def current_session(request: Request) -> dict[str, object]:
    """Return the manager status."""
    return _manager(request).status()


@router.get("/current/events", dependencies=[Depends(require_control)])
async def recent_events(request: Request, limit: int = 20) -> dict[str, object]:
    """Return the most recent lifecycle events."""
    container: AppContainer = request.app.state.container
    events = container.recent_events.events[-limit:] if limit > 0 else []
    return {
        "events": [
            {
                "type": event.type.value,
                "session_id": event.session_id,
                "payload": event.payload,
                "occurred_at": event.occurred_at.isoformat(),
            }
            for event in events
        ]
    }


@router.post("/current/strokes", dependencies=[Depends(require_control)])
async def record_strokes(payload: StrokeRequest, request: Request) -> dict[str, object]:
    """Count strokes, then run any milestone check they triggered."""
    manager = _manager(request)
    _require_open_session(manager)
    total = 0
    for _ in range(payload.count):
        total = manager.record_stroke(payload.position)
    outcome = await manager.tick()
    response = _cycle_response(manager, outcome)
    response["brush_strokes"] = total
    return response


@router.post("/current/tools", dependencies=[Depends(require_control)])
async def change_tool(payload: ToolChangeRequest, request: Request) -> dict[str, object]:
    """Switch the current tool."""
    manager = _manager(request)
    _require_open_session(manager)
    outcome = await manager.change_tool(payload.tool)
    return _cycle_response(manager, outcome)


@router.post("/current/protect", dependencies=[Depends(require_control)])
async def protect(request: Request) -> dict[str, object]:
    """Run a manual protection cycle."""
    manager = _manager(request)
    _require_open_session(manager)
    outcome = await manager.request_protection()
    return _cycle_response(manager, outcome)


@router.post("/current/end", dependencies=[Depends(require_control)])
async def end_session(request: Request) -> dict[str, object]:
    """Run the final cycle and close the session."""
    manager = _manager(request)
    _require_open_session(manager)
    outcome = await manager.end_session()
    return _cycle_response(manager, outcome)


@verify_router.post("/verify", dependencies=[Depends(require_control)])
async def verify(payload: VerifyRequest, request: Request) -> dict[str, object]:
    """Check an image for an embedded watermark."""
    container: AppContainer = request.app.state.container
    try:
        image = base64.b64decode(payload.image, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Image is not valid base64",
        ) from exc
    try:
        report = await container.delivery_client.verify(image, payload.session_id)
    except (TransportError, ResponseParseError) as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)
        ) from exc
    result = report.results[VERIFY_LAYER_ID]
    return {
        "detected": result.protected,
        "confidence": result.bit_accuracy,
        "message": result.error,
    }

"""Control surface endpoints."""

from __future__ import annotations

import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request

from api.schemas import GroupSelectRequest, HistoryScanRequest, StartRequest
from core.errors import TransportNotReadyError
from core.service import TriageService

LOGGER = logging.getLogger(__name__)


def get_service(request: Request) -> TriageService:
    return request.app.state.service


def require_token(request: Request, authorization: Optional[str] = Header(default=None)) -> None:
    expected = request.app.state.api_key
    token = (authorization or "").replace("Bearer ", "", 1).strip()
    if not expected or not hmac.compare_digest(token.encode(), str(expected).encode()):
        raise HTTPException(status_code=401, detail="Unauthorized")


public = APIRouter()
router = APIRouter(dependencies=[Depends(require_token)])


@public.get("/health")
async def health(service: TriageService = Depends(get_service)):
    return service.health()


@router.get("/session/qr")
async def session_qr(service: TriageService = Depends(get_service)):
    qr = service.transport.pairing_qr()
    if qr:
        return {"qr": qr}
    if service.transport.is_ready():
        return {"message": "Already connected"}
    raise HTTPException(status_code=503, detail="QR not ready")


@router.get("/chats")
async def list_chats(service: TriageService = Depends(get_service)):
    if not service.transport.is_ready():
        raise HTTPException(status_code=503, detail="Transport not ready")
    conversations = await service.transport.get_conversations()
    return [
        {"id": item.id, "name": item.name, "isGroup": True, "participants": item.participants}
        for item in conversations
    ]


@router.post("/groups/select")
async def select_groups(body: GroupSelectRequest, service: TriageService = Depends(get_service)):
    selection = service.select_groups(str(item) for item in body.ids)
    return {"ok": True, "selectedGroupIds": sorted(selection.ids)}


@router.post("/bot/start")
async def start_bot(body: StartRequest, service: TriageService = Depends(get_service)):
    try:
        installed = service.start(
            body.settings.overrides(),
            [client.model_dump() for client in body.clients],
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"ok": True, "running": service.controller.running, "settings": installed.as_dict()}


@router.post("/bot/stop")
async def stop_bot(service: TriageService = Depends(get_service)):
    service.stop()
    return {"ok": True, "running": False}


@router.post("/history/scan")
async def scan_history(body: HistoryScanRequest, service: TriageService = Depends(get_service)):
    if body.start_at in (None, ""):
        raise HTTPException(status_code=400, detail="startAt is required")
    groups = [str(item) for item in body.groups] if body.groups else None
    try:
        result = await service.scan_history(body.start_at, limit=body.limit, groups=groups)
    except TransportNotReadyError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return result.as_dict()


@router.post("/queue/flush")
async def flush_queue(service: TriageService = Depends(get_service)):
    return {"ok": True, "cleared": service.flush_queue()}


@router.get("/logs")
async def logs(limit: Optional[int] = None, service: TriageService = Depends(get_service)):
    return [entry.as_dict() for entry in service.activity.recent(limit)]

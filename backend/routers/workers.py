"""
relaybot Workers Router
Status and control of the running workers

Endpoints (mounted under /api):
    GET  /workers                 status of every worker
    GET  /workers/{id}            status of one worker
    GET  /workers/{id}/qr         current QR challenge (json, svg or png)
    POST /workers/{id}/restart    reconnect (Ready) or start a new cycle
    POST /workers/{id}/logout     drop the stored session, stay disconnected
    POST /workers/{id}/messages   send text messages or a file to a number
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from errors import LifecycleError, NotFoundError, handle_async_errors, success_response
from services.qr_render import IMAGE_TYPES, render_image
from worker.orchestrator import Worker, WorkerManager, get_worker_manager

logger = logging.getLogger(__name__)

router = APIRouter()


class SendMessageRequest(BaseModel):
    to: str = Field(..., min_length=1, max_length=32, pattern=r"^\+?[0-9 ()-]+$")
    text: Optional[str] = Field(default=None, min_length=1)
    texts: List[str] = Field(default_factory=list)
    file_path: Optional[str] = None
    caption: Optional[str] = None
    delay_ms: Optional[int] = Field(default=None, ge=0, le=60000)


def get_manager() -> WorkerManager:
    """Dependency: the process-wide worker manager."""
    return get_worker_manager()


def _get_worker(manager: WorkerManager, worker_id: str) -> Worker:
    try:
        return manager.get(worker_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)


def _status_code(error_code: str) -> int:
    if error_code.startswith("NOT_FOUND"):
        return 404
    if error_code.startswith("VALIDATION"):
        return 422
    return 502


@handle_async_errors("send_message")
async def _send(worker: Worker, request: SendMessageRequest) -> dict:
    messenger = worker.messenger
    sent = 0
    if request.text:
        await messenger.send_message(request.to, request.text)
        sent += 1
    if request.texts:
        delay = request.delay_ms / 1000 if request.delay_ms is not None else None
        await messenger.send_messages(request.to, request.texts, delay=delay)
        sent += len(request.texts)
    if request.file_path:
        await messenger.send_file(request.to, request.file_path, caption=request.caption)
        sent += 1
    return success_response(worker_id=worker.worker_id, to=request.to, sent=sent)


@router.get("/workers")
async def list_workers(manager: WorkerManager = Depends(get_manager)):
    """Status of every worker."""
    return {"account_id": manager.account_id, "workers": manager.statuses()}


@router.get("/workers/{worker_id}")
async def get_worker(worker_id: str, manager: WorkerManager = Depends(get_manager)):
    return _get_worker(manager, worker_id).status()


@router.get("/workers/{worker_id}/qr")
async def get_qr(
    worker_id: str,
    format: str = Query("json", pattern="^(json|svg|png)$"),
    manager: WorkerManager = Depends(get_manager),
):
    """Current QR challenge: the raw string, or an image to scan with the phone."""
    worker = _get_worker(manager, worker_id)
    if worker.qr_code is None:
        raise HTTPException(status_code=404, detail="No QR challenge pending")
    if format == "json":
        return {"worker_id": worker.worker_id, "qr": worker.qr_code}
    return Response(content=render_image(worker.qr_code, kind=format), media_type=IMAGE_TYPES[format])


@router.post("/workers/{worker_id}/restart")
async def restart_worker(worker_id: str, manager: WorkerManager = Depends(get_manager)):
    worker = _get_worker(manager, worker_id)
    logger.info(f"Restart requested for {worker.identity.key}")
    await worker.restart()
    return success_response(worker=worker.status())


@router.post("/workers/{worker_id}/logout")
async def logout_worker(worker_id: str, manager: WorkerManager = Depends(get_manager)):
    worker = _get_worker(manager, worker_id)
    try:
        await worker.logout()
    except LifecycleError as e:
        raise HTTPException(status_code=409, detail=e.message)
    return success_response(worker=worker.status())


@router.post("/workers/{worker_id}/messages")
async def send_message(worker_id: str, request: SendMessageRequest, manager: WorkerManager = Depends(get_manager)):
    """Send text messages and/or a file to a phone number through one worker."""
    worker = _get_worker(manager, worker_id)
    if not (request.text or request.texts or request.file_path):
        raise HTTPException(status_code=422, detail="Nothing to send: provide text, texts or file_path")
    if not worker.lifecycle.is_ready:
        raise HTTPException(status_code=409, detail=f"Worker is not ready (state={worker.state.value})")

    result = await _send(worker, request)
    if not result["success"]:
        return JSONResponse(status_code=_status_code(result["error"]["code"]), content=result)
    return result

"""
Settings router - read and adjust runtime tunables.

Changes go through RuntimeConfig.update() (range-checked) and are pushed
to the running workers; account, paths and browser options need a restart.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from routers.workers import get_manager
from worker.orchestrator import WorkerManager

logger = logging.getLogger(__name__)

router = APIRouter()


class ConfigUpdate(BaseModel):
    """Configuration update request."""

    # Credential acquisition
    check_interval_ms: Optional[int] = None
    max_attempts: Optional[int] = None
    restore_timeout_ms: Optional[int] = None
    # Matching
    similarity_threshold: Optional[int] = None
    # Ingestion and outbound pacing
    drain_delay_ms: Optional[int] = None
    read_timeout_ms: Optional[int] = None
    read_attempts: Optional[int] = None
    send_delay_ms: Optional[int] = None
    search_delay_ms: Optional[int] = None


@router.get("/config")
async def get_settings(manager: WorkerManager = Depends(get_manager)) -> Dict[str, Any]:
    """Current runtime configuration."""
    return {"config": manager.config.to_dict()}


@router.put("/config")
async def update_settings(update: ConfigUpdate, manager: WorkerManager = Depends(get_manager)) -> Dict[str, Any]:
    """Update tunables and apply them to the running workers."""
    updates = {k: v for k, v in update.model_dump().items() if v is not None}
    if not updates:
        return {"success": True, "updated": [], "message": "No changes"}

    result = manager.config.update(**updates)
    if result["updated"]:
        manager.apply_config()

    return {
        "success": True,
        "updated": result["updated"],
        "ignored": result["ignored"],
        "update_count": result["update_count"],
    }


@router.post("/config/reset")
async def reset_settings(manager: WorkerManager = Depends(get_manager)) -> Dict[str, Any]:
    """Reset tunables to environment defaults."""
    result = manager.config.reset_to_defaults()
    if result["changes"]:
        manager.apply_config()
    return {"success": True, "changes": result["changes"]}

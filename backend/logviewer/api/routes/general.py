from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict

from fastapi import APIRouter, Depends

from logviewer.services.context import LogStoreContext, get_context

router = APIRouter(tags=["general"])


@router.get("/", response_model=Dict[str, str])
async def read_root(context: LogStoreContext = Depends(get_context)) -> Dict[str, str]:
    settings = context.settings
    return {
        "message": f"{settings.app_title} is running!",
        "version": settings.app_version,
        "docs": "/docs",
    }


@router.get("/health")
async def health_check(context: LogStoreContext = Depends(get_context)) -> Dict[str, str]:
    return {
        "status": "healthy",
        "store": "memory" if context.settings.mock_store_enabled else "firebase",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

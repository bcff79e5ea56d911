from __future__ import annotations

from fastapi import APIRouter

from . import general, logs

router = APIRouter()
router.include_router(general.router)
router.include_router(logs.router)

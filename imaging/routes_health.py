from __future__ import annotations

from fastapi import APIRouter

from imaging.config import get_settings


router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthz() -> dict:
    return {"ok": True}


@router.get("/version")
async def version() -> dict:
    return {"version": get_settings().SERVICE_VERSION}

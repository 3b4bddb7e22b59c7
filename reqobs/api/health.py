from __future__ import annotations

from fastapi import APIRouter, Request


router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request) -> dict[str, str]:
    return {"status": "ok", "service": request.app.state.settings.service_name}


@router.get("/info")
async def info(request: Request) -> dict[str, str]:
    settings = request.app.state.settings
    return {"service": settings.service_name, "version": settings.service_version}

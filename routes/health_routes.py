"""
Health check endpoint.

GET /health reports MongoDB connectivity plus in-process component status.
Rules:
- MongoDB failure → "unhealthy" (503).
- Registration store above 90% capacity → "degraded" (200).
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from dependencies import get_optional_user_id

router = APIRouter(tags=["health"])

_STORE_DEGRADED_PERCENT = 90.0


@router.get("/health")
async def health_check(
    request: Request, user_id: Optional[str] = Depends(get_optional_user_id)
) -> JSONResponse:
    checks: dict[str, str] = {}
    overall = "healthy"

    try:
        db = request.app.state.db
        await db.client.admin.command("ping")
        checks["mongodb"] = "ok"
    except Exception:
        checks["mongodb"] = "error"
        overall = "unhealthy"

    stats = request.app.state.registration_store.stats()
    if stats.usage_percent >= _STORE_DEGRADED_PERCENT:
        checks["registration_store"] = "near_capacity"
        if overall == "healthy":
            overall = "degraded"
    else:
        checks["registration_store"] = "ok"

    cleanup = request.app.state.cleanup_service
    checks["cleanup"] = "running" if cleanup.is_running else "idle"

    status_code = 503 if overall == "unhealthy" else 200
    return JSONResponse(
        status_code=status_code,
        content={
            "status": overall,
            "checks": checks,
            "pending_registrations": stats.valid,
            "authenticated": user_id is not None,
        },
    )

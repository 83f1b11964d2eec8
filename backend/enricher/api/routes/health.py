"""Liveness endpoint. Always 200 so load balancers keep routing."""

from __future__ import annotations

from fastapi import APIRouter

from enricher.config import settings

router = APIRouter(tags=["health"])

VERSION = "0.1.0"


@router.get("/health")
async def health_check() -> dict:
    return {
        "status": "ok",
        "version": VERSION,
        "environment": settings.environment,
    }

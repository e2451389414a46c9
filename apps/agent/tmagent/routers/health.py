"""Health and status endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health():
    return {"status": "healthy", "version": "1.0.0"}


@router.get("/status")
async def status(request: Request):
    """Scheduler, pool and limiter state of the running agent."""
    context = getattr(request.app.state, "context", None)
    if context is None:
        raise HTTPException(status_code=503, detail="Agent not started")
    return context.status()

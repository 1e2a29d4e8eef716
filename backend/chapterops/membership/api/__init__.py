"""FastAPI routers for the membership domain."""

from __future__ import annotations

from fastapi import APIRouter

from chapterops.membership.api import deposits, invites, members

router = APIRouter(prefix="/api/v1")

router.include_router(members.router)
router.include_router(invites.router)
router.include_router(deposits.router)

__all__ = ["router"]

"""Invite endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from chapterops.membership.api._deps import get_principal
from chapterops.membership.api._errors import to_http_error
from chapterops.membership.domain import models
from chapterops.membership.domain.invites_service import InvitesService
from chapterops.membership.schemas import dto

router = APIRouter(tags=["membership:invites"])
_service = InvitesService()


@router.get("/invites", response_model=dto.InviteListResponse)
async def list_invites_endpoint(principal: models.Principal = Depends(get_principal)) -> dto.InviteListResponse:
	try:
		invites = await _service.list_invites(principal)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc
	return dto.InviteListResponse(items=[dto.InviteResponse(**invite.model_dump()) for invite in invites])


@router.post("/invites", response_model=dto.InviteResponse, status_code=201)
async def create_invite_endpoint(
	payload: dto.InviteCreateRequest,
	principal: models.Principal = Depends(get_principal),
) -> dto.InviteResponse:
	try:
		invite = await _service.issue_invite(principal, payload)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc
	return dto.InviteResponse(**invite.model_dump())


__all__ = ["router"]

"""Member administration endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from chapterops.membership.api._deps import get_principal
from chapterops.membership.api._errors import to_http_error
from chapterops.membership.domain import models
from chapterops.membership.domain.members_service import MembersService
from chapterops.membership.schemas import dto

router = APIRouter(tags=["membership:members"])
_service = MembersService()


@router.get("/me/permissions", response_model=dto.PermissionsResponse)
async def my_permissions_endpoint(principal: models.Principal = Depends(get_principal)) -> dto.PermissionsResponse:
	return await _service.permissions_for(principal)


@router.get("/members", response_model=dto.MemberListResponse)
async def list_members_endpoint(principal: models.Principal = Depends(get_principal)) -> dto.MemberListResponse:
	try:
		items = await _service.list_members(principal)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc
	return dto.MemberListResponse(items=items)


@router.get("/members/stats", response_model=models.MemberStats)
async def member_stats_endpoint(principal: models.Principal = Depends(get_principal)) -> models.MemberStats:
	try:
		return await _service.member_stats(principal)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.patch("/members/{member_id}", response_model=dto.MemberResponse)
async def update_member_endpoint(
	member_id: str,
	payload: dto.MemberUpdateRequest,
	principal: models.Principal = Depends(get_principal),
) -> dto.MemberResponse:
	try:
		return await _service.update_member(principal, member_id, payload)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.delete("/members/{member_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_member_endpoint(
	member_id: str,
	principal: models.Principal = Depends(get_principal),
) -> Response:
	try:
		await _service.delete_member(principal, member_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc
	return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/members/{member_id}/promote", response_model=dto.MemberResponse)
async def promote_member_endpoint(
	member_id: str,
	payload: dto.PromoteRequest,
	principal: models.Principal = Depends(get_principal),
) -> dto.MemberResponse:
	try:
		return await _service.add_existing_member(principal, member_id, payload)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


__all__ = ["router"]

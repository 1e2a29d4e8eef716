"""Fund deposit endpoints."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status

from chapterops.membership.api._deps import get_principal
from chapterops.membership.api._errors import to_http_error
from chapterops.membership.domain import models
from chapterops.membership.domain.deposits_service import DepositsService
from chapterops.membership.schemas import dto

router = APIRouter(tags=["membership:deposits"])
_service = DepositsService()


@router.get("/deposits", response_model=dto.DepositListResponse)
async def list_deposits_endpoint(
	status_filter: Optional[str] = Query(default=None, alias="status"),
	principal: models.Principal = Depends(get_principal),
) -> dto.DepositListResponse:
	try:
		deposits = await _service.list_visible(principal, status_filter)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc
	return dto.DepositListResponse(items=[dto.DepositResponse.from_model(deposit) for deposit in deposits])


@router.get("/deposits/stats", response_model=models.DepositStats)
async def deposit_stats_endpoint(principal: models.Principal = Depends(get_principal)) -> models.DepositStats:
	try:
		return await _service.stats(principal)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc


@router.post("/deposits", response_model=dto.DepositResponse, status_code=201)
async def submit_deposit_endpoint(
	payload: dto.DepositDraft,
	principal: models.Principal = Depends(get_principal),
) -> dto.DepositResponse:
	try:
		deposit = await _service.submit(principal, payload)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc
	return dto.DepositResponse.from_model(deposit)


@router.get("/deposits/{deposit_id}", response_model=dto.DepositResponse)
async def get_deposit_endpoint(
	deposit_id: str,
	principal: models.Principal = Depends(get_principal),
) -> dto.DepositResponse:
	try:
		deposit = await _service.get(principal, deposit_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc
	return dto.DepositResponse.from_model(deposit)


@router.post("/deposits/{deposit_id}/verify", response_model=dto.DepositResponse)
async def verify_deposit_endpoint(
	deposit_id: str,
	principal: models.Principal = Depends(get_principal),
) -> dto.DepositResponse:
	try:
		deposit = await _service.verify(principal, deposit_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc
	return dto.DepositResponse.from_model(deposit)


@router.post("/deposits/{deposit_id}/reject", response_model=dto.DepositResponse)
async def reject_deposit_endpoint(
	deposit_id: str,
	payload: dto.RejectRequest,
	principal: models.Principal = Depends(get_principal),
) -> dto.DepositResponse:
	try:
		deposit = await _service.reject(principal, deposit_id, payload.reason)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc
	return dto.DepositResponse.from_model(deposit)


@router.delete("/deposits/{deposit_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_deposit_endpoint(
	deposit_id: str,
	principal: models.Principal = Depends(get_principal),
) -> Response:
	try:
		await _service.remove(principal, deposit_id)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc
	return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/deposits/{deposit_id}/receipts", response_model=dto.DepositResponse)
async def remove_receipt_endpoint(
	deposit_id: str,
	payload: dto.ReceiptRemoveRequest,
	principal: models.Principal = Depends(get_principal),
) -> dto.DepositResponse:
	try:
		deposit = await _service.remove_receipt_file(principal, deposit_id, payload.file_ref)
	except Exception as exc:  # pragma: no cover
		raise to_http_error(exc) from exc
	return dto.DepositResponse.from_model(deposit)


__all__ = ["router"]

"""Fund deposit review workflow.

A deposit is created `pending` and moves exactly once to `verified` or
`rejected`. Every status change and every receipt removal appends one
AuditEntry in the same guarded document update that changes the record, so
a lost race never leaves a half-applied transition behind.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from chapterops.infra.documents import ExpectationFailed
from chapterops.infra.storage import ReceiptStorage, get_receipt_storage
from chapterops.membership.domain import events, models, policies, repo as repo_module
from chapterops.membership.domain.exceptions import InvalidInput, NotFoundError, PreconditionFailed
from chapterops.membership.domain.secondary import attempt, dependency
from chapterops.membership.schemas import dto
from chapterops.obs import metrics as obs_metrics

_LOG = logging.getLogger(__name__)


def _now() -> datetime:
	return datetime.now(timezone.utc)


def _entry(actor: models.Principal, action: str, **fields: Any) -> models.AuditEntry:
	return models.AuditEntry(
		action=action,
		created_by=actor.id,
		created_by_name=actor.display_name,
		timestamp=_now(),
		**fields,
	)


def validate_draft(draft: dto.DepositDraft) -> models.DepositMethod:
	"""Check the submission form and return its tagged deposit method."""
	if not draft.title.strip():
		raise InvalidInput("title_required")
	if not draft.purpose.strip():
		raise InvalidInput("purpose_required")
	if not draft.amount.is_finite() or draft.amount <= 0:
		raise InvalidInput("amount_must_be_positive")
	if len(set(draft.receipt_files)) != len(draft.receipt_files):
		raise InvalidInput("duplicate_receipt_file")
	return models.parse_deposit_method(draft.deposit_method, draft.other_deposit_method)


def calculate_stats(deposits: list[models.Deposit]) -> models.DepositStats:
	counts = {models.PENDING: 0, models.VERIFIED: 0, models.REJECTED: 0}
	verified_total = Decimal("0")
	for deposit in deposits:
		counts[deposit.status] += 1
		if deposit.status == models.VERIFIED:
			verified_total += deposit.amount
	return models.DepositStats(
		total=len(deposits),
		pending=counts[models.PENDING],
		verified=counts[models.VERIFIED],
		rejected=counts[models.REJECTED],
		total_amount=verified_total,
	)


class DepositsService:
	"""Submit, review and clean up fund deposits."""

	def __init__(
		self,
		*,
		repository: repo_module.MembershipRepository | None = None,
		storage: ReceiptStorage | None = None,
		publisher: events.EventPublisher | None = None,
	) -> None:
		self.repo = repository or repo_module.MembershipRepository()
		self._storage = storage
		self.publisher = publisher or events.EventPublisher()

	@property
	def storage(self) -> ReceiptStorage:
		return self._storage or get_receipt_storage()

	async def _require_deposit(self, deposit_id: str) -> models.Deposit:
		deposit = await self.repo.get_deposit(deposit_id)
		if deposit is None:
			raise NotFoundError("deposit_not_found")
		return deposit

	async def _delete_file(self, file_ref: str) -> None:
		async with dependency("receipt_delete"):
			await self.storage.delete(file_ref)

	async def submit(self, actor: models.Principal, draft: dto.DepositDraft) -> models.Deposit:
		method = validate_draft(draft)
		now = _now()
		seed = _entry(actor, "submitted", note="Deposit submitted for review")
		ieee = models.IeeeDeposit(**draft.ieee_deposit.model_dump()) if draft.ieee_deposit else None
		record = {
			"title": draft.title.strip(),
			"amount": str(draft.amount),
			"deposit_date": draft.deposit_date.isoformat(),
			"deposit_method": method.model_dump(mode="json"),
			"purpose": draft.purpose.strip(),
			"description": draft.description,
			"reference_number": draft.reference_number or None,
			"deposited_by": actor.id,
			"deposited_by_name": actor.display_name,
			"deposited_by_email": actor.email,
			"status": models.PENDING,
			"receipt_files": list(draft.receipt_files),
			"audit_log": [seed.model_dump(mode="json")],
			"submitted_at": now.isoformat(),
			"ieee_deposit": ieee.model_dump(mode="json") if ieee else None,
		}
		deposit = await self.repo.create_deposit(record)
		obs_metrics.inc_deposit_transition("submit")
		_LOG.info("deposits.submitted", extra={"deposit_id": deposit.id, "actor_id": actor.id})
		await attempt(self.publisher.publish(events.DEPOSIT_SUBMITTED, deposit))
		return deposit

	async def _transition(
		self,
		action: str,
		deposit_id: str,
		patch: dict[str, Any],
		entry: models.AuditEntry,
	) -> models.Deposit:
		try:
			deposit = await self.repo.append_deposit_entry(
				deposit_id,
				patch,
				entry,
				expect={"status": models.PENDING},
			)
		except ExpectationFailed as exc:
			obs_metrics.inc_deposit_precondition_failure(action)
			current = exc.current.get("status", "unknown")
			raise PreconditionFailed(f"deposit_already_{current}")
		obs_metrics.inc_deposit_transition(action)
		_LOG.info("deposits.transitioned", extra={"deposit_id": deposit_id, "action": action})
		return deposit

	async def verify(self, actor: models.Principal, deposit_id: str) -> models.Deposit:
		policies.ensure_can_review_deposits(actor)
		now = _now()
		entry = _entry(
			actor,
			"verified",
			note="Status changed to verified",
			previous_data={"status": models.PENDING},
			new_data={"status": models.VERIFIED},
		)
		deposit = await self._transition(
			"verify",
			deposit_id,
			{
				"status": models.VERIFIED,
				"verified_at": now.isoformat(),
				"verified_by": actor.id,
				"verified_by_name": actor.display_name,
			},
			entry,
		)
		await attempt(self.publisher.publish(events.DEPOSIT_VERIFIED, deposit))
		return deposit

	async def reject(self, actor: models.Principal, deposit_id: str, reason: str) -> models.Deposit:
		reason = (reason or "").strip()
		if not reason:
			raise InvalidInput("rejection_reason_required")
		policies.ensure_can_review_deposits(actor)
		now = _now()
		entry = _entry(
			actor,
			"rejected",
			note=reason,
			previous_data={"status": models.PENDING},
			new_data={"status": models.REJECTED, "rejection_reason": reason},
		)
		deposit = await self._transition(
			"reject",
			deposit_id,
			{
				"status": models.REJECTED,
				"rejection_reason": reason,
				"rejected_at": now.isoformat(),
				"rejected_by": actor.id,
				"rejected_by_name": actor.display_name,
			},
			entry,
		)
		await attempt(self.publisher.publish(events.DEPOSIT_REJECTED, deposit))
		return deposit

	async def remove(self, actor: models.Principal, deposit_id: str) -> None:
		"""Delete a deposit, then clean up its files and leave a tombstone.

		The submitter's pending-only rule is re-checked inside the delete so a
		review that lands in between wins.
		"""
		deposit = await self._require_deposit(deposit_id)
		policies.ensure_can_remove_deposit(actor, deposit)
		expect: Optional[dict[str, Any]] = None
		if not actor.is_administrator:
			expect = {"status": models.PENDING}
		try:
			removed = await self.repo.delete_deposit(deposit_id, expect=expect)
		except ExpectationFailed as exc:
			current = models.Deposit.model_validate(exc.current)
			policies.ensure_can_remove_deposit(actor, current)
			raise PreconditionFailed("deposit_changed")
		obs_metrics.inc_deposit_transition("remove")
		_LOG.info("deposits.removed", extra={"deposit_id": deposit_id, "actor_id": actor.id})

		for file_ref in removed.stored_files:
			await attempt(self._delete_file(file_ref))
		tombstone = models.DepositTombstone(
			id=removed.id,
			deposit=removed,
			deleted_by=actor.id,
			deleted_by_name=actor.display_name,
			deleted_at=_now(),
		)
		await attempt(self._record_tombstone(tombstone))

	async def _record_tombstone(self, tombstone: models.DepositTombstone) -> None:
		async with dependency("deposit_tombstone"):
			await self.repo.record_deposit_tombstone(tombstone)

	async def remove_receipt_file(self, actor: models.Principal, deposit_id: str, file_ref: str) -> models.Deposit:
		deposit = await self._require_deposit(deposit_id)
		policies.ensure_can_view_deposit(actor, deposit)
		if file_ref not in deposit.receipt_files:
			raise NotFoundError("receipt_not_found")
		before = len(deposit.receipt_files)
		after = before - deposit.receipt_files.count(file_ref)
		entry = _entry(
			actor,
			"receipt_removed",
			note="Receipt file removed",
			previous_data={"receipt_count": before},
			new_data={"receipt_count": after},
		)
		try:
			updated = await self.repo.append_deposit_entry(
				deposit_id,
				{},
				entry,
				expect={"receipt_files": list(deposit.receipt_files)},
				remove={"receipt_files": [file_ref]},
			)
		except ExpectationFailed:
			obs_metrics.inc_deposit_precondition_failure("remove_receipt")
			raise PreconditionFailed("receipts_changed")
		obs_metrics.inc_deposit_transition("remove_receipt")
		await attempt(self._delete_file(file_ref))
		return updated

	async def get(self, actor: models.Principal, deposit_id: str) -> models.Deposit:
		deposit = await self._require_deposit(deposit_id)
		policies.ensure_can_view_deposit(actor, deposit)
		return deposit

	async def list_visible(self, actor: models.Principal, status: Optional[str] = None) -> list[models.Deposit]:
		filters: dict[str, Any] = {}
		if not actor.is_administrator:
			filters["deposited_by"] = actor.id
		if status:
			if status not in (models.PENDING, models.VERIFIED, models.REJECTED):
				raise InvalidInput("invalid_status")
			filters["status"] = status
		deposits = await self.repo.list_deposits(**filters)
		deposits.sort(key=lambda deposit: deposit.submitted_at, reverse=True)
		return deposits

	async def stats(self, actor: models.Principal) -> models.DepositStats:
		return calculate_stats(await self.list_visible(actor))


__all__ = ["DepositsService", "calculate_stats", "validate_draft"]

from __future__ import annotations

import asyncio
import json
from datetime import date
from decimal import Decimal

import pytest

from chapterops.membership.domain import events, models
from chapterops.membership.domain.deposits_service import DepositsService, calculate_stats
from chapterops.membership.domain.exceptions import (
	DependencyFailure,
	InvalidInput,
	NotFoundError,
	PermissionDenied,
	PreconditionFailed,
)
from chapterops.membership.domain.roles import Role
from chapterops.membership.schemas import dto
from chapterops.settings import settings

SUBMITTER = models.Principal(id="m-1", role=Role.MEMBER, name="Maya Member", email="maya@example.edu")
OTHER = models.Principal(id="m-2", role=Role.GENERAL_OFFICER, name="Omar Officer")
ADMIN = models.Principal(id="a-1", role=Role.ADMINISTRATOR, name="Ada Admin")


def _draft(**overrides) -> dto.DepositDraft:
	data = {
		"title": "Bake sale proceeds",
		"amount": Decimal("125.40"),
		"deposit_date": date(2026, 9, 12),
		"deposit_method": "cash",
		"purpose": "Fundraiser",
		"description": "Saturday stand",
		"receipt_files": ["fund_deposits/m-1/receipt-1.pdf", "fund_deposits/m-1/receipt-2.jpg"],
	}
	data.update(overrides)
	return dto.DepositDraft(**data)


class _FailingPublisher:
	def __init__(self) -> None:
		self.calls = 0

	async def publish(self, event, record):
		self.calls += 1
		raise DependencyFailure("publish_event_failed", step="publish_event")


@pytest.mark.asyncio
async def test_submit_creates_pending_deposit_with_seed_entry(fake_redis):
	service = DepositsService()

	deposit = await service.submit(SUBMITTER, _draft())

	assert deposit.status == "pending"
	assert deposit.amount == Decimal("125.40")
	assert deposit.deposited_by == "m-1"
	assert deposit.deposited_by_name == "Maya Member"
	assert deposit.deposit_method == models.CashMethod()
	assert len(deposit.audit_log) == 1
	seed = deposit.audit_log[0]
	assert seed.action == "submitted"
	assert seed.note == "Deposit submitted for review"
	assert seed.created_by == "m-1"

	entries = await fake_redis.xrange(settings.events_stream_key)
	assert len(entries) == 1
	_, payload = entries[0]
	assert payload["event"] == events.DEPOSIT_SUBMITTED
	assert payload["id"] == deposit.id
	assert json.loads(payload["data"])["status"] == "pending"


@pytest.mark.asyncio
async def test_submit_other_method_requires_description():
	service = DepositsService()

	with pytest.raises(InvalidInput) as excinfo:
		await service.submit(SUBMITTER, _draft(deposit_method="other", other_deposit_method="   "))
	assert excinfo.value.detail == "other_deposit_method_required"

	deposit = await service.submit(SUBMITTER, _draft(deposit_method="other", other_deposit_method="Venmo"))
	assert deposit.deposit_method == models.OtherMethod(description="Venmo")
	assert deposit.deposit_method.label == "other: Venmo"

	stored = await service.get(SUBMITTER, deposit.id)
	assert stored.deposit_method.kind == "other"
	assert stored.deposit_method.description == "Venmo"


@pytest.mark.asyncio
async def test_description_is_dropped_for_simple_methods():
	service = DepositsService()
	deposit = await service.submit(SUBMITTER, _draft(deposit_method="check", other_deposit_method="ignored"))
	assert deposit.deposit_method == models.CheckMethod()
	assert not hasattr(deposit.deposit_method, "description")


@pytest.mark.asyncio
@pytest.mark.parametrize(
	("overrides", "reason"),
	[
		({"amount": Decimal("0")}, "amount_must_be_positive"),
		({"amount": Decimal("-5")}, "amount_must_be_positive"),
		({"title": "  "}, "title_required"),
		({"purpose": ""}, "purpose_required"),
		({"deposit_method": "barter"}, "invalid_deposit_method"),
		({"receipt_files": ["a.pdf", "a.pdf", "b.pdf"]}, "duplicate_receipt_file"),
	],
)
async def test_submit_rejects_invalid_drafts(document_store, overrides, reason):
	service = DepositsService()

	with pytest.raises(InvalidInput) as excinfo:
		await service.submit(SUBMITTER, _draft(**overrides))

	assert excinfo.value.detail == reason
	assert await document_store.query("fund_deposits") == []


@pytest.mark.asyncio
async def test_verify_twice_fails_without_touching_the_record():
	service = DepositsService()
	deposit = await service.submit(SUBMITTER, _draft())

	verified = await service.verify(ADMIN, deposit.id)
	assert verified.status == "verified"
	assert verified.verified_by == "a-1"
	assert verified.verified_by_name == "Ada Admin"
	assert len(verified.audit_log) == 2
	entry = verified.audit_log[-1]
	assert entry.action == "verified"
	assert entry.previous_data == {"status": "pending"}
	assert entry.new_data == {"status": "verified"}

	with pytest.raises(PreconditionFailed) as excinfo:
		await service.verify(ADMIN, deposit.id)
	assert excinfo.value.detail == "deposit_already_verified"

	stored = await service.get(ADMIN, deposit.id)
	assert len(stored.audit_log) == 2
	assert stored.verified_at == verified.verified_at


@pytest.mark.asyncio
async def test_only_administrators_review_deposits():
	service = DepositsService()
	deposit = await service.submit(SUBMITTER, _draft())
	executive = models.Principal(id="e-1", role=Role.EXECUTIVE_OFFICER)

	for actor in (SUBMITTER, executive):
		with pytest.raises(PermissionDenied) as excinfo:
			await service.verify(actor, deposit.id)
		assert excinfo.value.detail == "administrator_required"
		with pytest.raises(PermissionDenied):
			await service.reject(actor, deposit.id, "nope")

	stored = await service.get(SUBMITTER, deposit.id)
	assert stored.status == "pending"
	assert len(stored.audit_log) == 1


@pytest.mark.asyncio
async def test_reject_requires_reason():
	service = DepositsService()
	deposit = await service.submit(SUBMITTER, _draft())

	with pytest.raises(InvalidInput) as excinfo:
		await service.reject(ADMIN, deposit.id, "   ")
	assert excinfo.value.detail == "rejection_reason_required"

	stored = await service.get(ADMIN, deposit.id)
	assert stored.status == "pending"
	assert stored.rejection_reason is None
	assert len(stored.audit_log) == 1


@pytest.mark.asyncio
async def test_rejected_deposit_cannot_be_verified_later(fake_redis):
	service = DepositsService()
	deposit = await service.submit(SUBMITTER, _draft())

	rejected = await service.reject(ADMIN, deposit.id, "missing receipt")

	assert rejected.status == "rejected"
	assert rejected.rejection_reason == "missing receipt"
	assert rejected.rejected_by == "a-1"
	assert len(rejected.audit_log) == 2
	assert rejected.audit_log[-1].action == "rejected"
	assert rejected.audit_log[-1].note == "missing receipt"
	assert rejected.audit_log[0] == deposit.audit_log[0]

	with pytest.raises(PreconditionFailed) as excinfo:
		await service.verify(ADMIN, deposit.id)
	assert excinfo.value.detail == "deposit_already_rejected"

	published = [payload["event"] for _, payload in await fake_redis.xrange(settings.events_stream_key)]
	assert published == [events.DEPOSIT_SUBMITTED, events.DEPOSIT_REJECTED]


@pytest.mark.asyncio
async def test_concurrent_reviews_have_exactly_one_winner():
	service = DepositsService()
	deposit = await service.submit(SUBMITTER, _draft())

	results = await asyncio.gather(
		service.verify(ADMIN, deposit.id),
		service.reject(ADMIN, deposit.id, "duplicate"),
		return_exceptions=True,
	)

	winners = [result for result in results if isinstance(result, models.Deposit)]
	losers = [result for result in results if isinstance(result, PreconditionFailed)]
	assert len(winners) == 1
	assert len(losers) == 1
	stored = await service.get(ADMIN, deposit.id)
	assert stored.status == winners[0].status
	assert len(stored.audit_log) == 2


@pytest.mark.asyncio
async def test_submitter_removes_own_pending_deposit(document_store, receipt_storage):
	service = DepositsService()
	deposit = await service.submit(SUBMITTER, _draft())

	await service.remove(SUBMITTER, deposit.id)

	assert await document_store.get("fund_deposits", deposit.id) is None
	assert receipt_storage.deleted == list(deposit.receipt_files)
	tombstone = await service.repo.get_deposit_tombstone(deposit.id)
	assert tombstone is not None
	assert tombstone.deleted_by == "m-1"
	assert tombstone.deposit.title == deposit.title
	with pytest.raises(NotFoundError):
		await service.get(SUBMITTER, deposit.id)


@pytest.mark.asyncio
async def test_verified_deposit_can_only_be_removed_by_administrator(document_store):
	service = DepositsService()
	deposit = await service.submit(SUBMITTER, _draft())
	await service.verify(ADMIN, deposit.id)

	with pytest.raises(PermissionDenied) as excinfo:
		await service.remove(SUBMITTER, deposit.id)
	assert excinfo.value.detail == "deposit_not_pending"
	assert await document_store.get("fund_deposits", deposit.id) is not None

	await service.remove(ADMIN, deposit.id)
	assert await document_store.get("fund_deposits", deposit.id) is None


@pytest.mark.asyncio
async def test_strangers_cannot_see_or_remove_deposits():
	service = DepositsService()
	deposit = await service.submit(SUBMITTER, _draft())

	with pytest.raises(PermissionDenied) as excinfo:
		await service.get(OTHER, deposit.id)
	assert excinfo.value.detail == "not_deposit_owner"
	with pytest.raises(PermissionDenied) as excinfo:
		await service.remove(OTHER, deposit.id)
	assert excinfo.value.detail == "not_deposit_owner"
	assert excinfo.value.kind == "ownership"


@pytest.mark.asyncio
async def test_receipt_cleanup_failure_does_not_undo_removal(document_store, receipt_storage):
	service = DepositsService()
	deposit = await service.submit(SUBMITTER, _draft())
	receipt_storage.fail = True

	await service.remove(SUBMITTER, deposit.id)

	assert await document_store.get("fund_deposits", deposit.id) is None
	assert receipt_storage.deleted == []


@pytest.mark.asyncio
async def test_remove_also_cleans_bank_transfer_files(receipt_storage):
	service = DepositsService()
	draft = _draft(
		ieee_deposit=dto.IeeeDepositDraft(
			source="section",
			needs_bank_transfer=True,
			bank_transfer_files=["fund_deposits/m-1/transfer.pdf"],
		)
	)
	deposit = await service.submit(SUBMITTER, draft)
	assert deposit.ieee_deposit is not None
	assert deposit.ieee_deposit.source == "section"

	await service.remove(ADMIN, deposit.id)

	assert "fund_deposits/m-1/transfer.pdf" in receipt_storage.deleted
	assert len(receipt_storage.deleted) == 3


@pytest.mark.asyncio
async def test_remove_receipt_file_appends_entry_and_deletes_file(receipt_storage):
	service = DepositsService()
	deposit = await service.submit(SUBMITTER, _draft())
	target = deposit.receipt_files[0]

	updated = await service.remove_receipt_file(SUBMITTER, deposit.id, target)

	assert updated.receipt_files == (deposit.receipt_files[1],)
	assert len(updated.audit_log) == 2
	entry = updated.audit_log[-1]
	assert entry.action == "receipt_removed"
	assert entry.previous_data == {"receipt_count": 2}
	assert entry.new_data == {"receipt_count": 1}
	assert receipt_storage.deleted == [target]

	with pytest.raises(NotFoundError) as excinfo:
		await service.remove_receipt_file(SUBMITTER, deposit.id, target)
	assert excinfo.value.detail == "receipt_not_found"

	with pytest.raises(PermissionDenied):
		await service.remove_receipt_file(OTHER, deposit.id, deposit.receipt_files[1])


@pytest.mark.asyncio
async def test_receipt_entry_counts_every_dropped_copy(document_store, receipt_storage):
	service = DepositsService()
	deposit = await service.submit(SUBMITTER, _draft(receipt_files=["a.pdf", "b.pdf"]))
	await document_store.update("fund_deposits", deposit.id, {"receipt_files": ["a.pdf", "a.pdf", "b.pdf"]})

	updated = await service.remove_receipt_file(SUBMITTER, deposit.id, "a.pdf")

	assert updated.receipt_files == ("b.pdf",)
	entry = updated.audit_log[-1]
	assert entry.previous_data == {"receipt_count": 3}
	assert entry.new_data == {"receipt_count": len(updated.receipt_files)}
	assert receipt_storage.deleted == ["a.pdf"]


@pytest.mark.asyncio
async def test_audit_log_grows_by_one_per_mutation():
	service = DepositsService()
	deposit = await service.submit(SUBMITTER, _draft())

	after_receipt = await service.remove_receipt_file(ADMIN, deposit.id, deposit.receipt_files[0])
	after_verify = await service.verify(ADMIN, deposit.id)

	assert len(after_receipt.audit_log) == 2
	assert len(after_verify.audit_log) == 3
	assert after_verify.audit_log[:2] == after_receipt.audit_log
	assert [entry.action for entry in after_verify.audit_log] == ["submitted", "receipt_removed", "verified"]


@pytest.mark.asyncio
async def test_publish_failure_does_not_fail_submission(document_store):
	publisher = _FailingPublisher()
	service = DepositsService(publisher=publisher)

	deposit = await service.submit(SUBMITTER, _draft())

	assert publisher.calls == 1
	assert await document_store.get("fund_deposits", deposit.id) is not None


@pytest.mark.asyncio
async def test_list_visible_and_stats_respect_ownership():
	service = DepositsService()
	mine = await service.submit(SUBMITTER, _draft(amount=Decimal("10")))
	second = await service.submit(SUBMITTER, _draft(amount=Decimal("15.5")))
	theirs = await service.submit(OTHER, _draft(amount=Decimal("100")))
	await service.verify(ADMIN, mine.id)
	await service.verify(ADMIN, theirs.id)
	await service.reject(ADMIN, second.id, "duplicate")

	own = await service.list_visible(SUBMITTER)
	assert {deposit.id for deposit in own} == {mine.id, second.id}
	everything = await service.list_visible(ADMIN)
	assert len(everything) == 3
	verified_only = await service.list_visible(ADMIN, "verified")
	assert {deposit.id for deposit in verified_only} == {mine.id, theirs.id}

	own_stats = await service.stats(SUBMITTER)
	assert own_stats == models.DepositStats(total=2, pending=0, verified=1, rejected=1, total_amount=Decimal("10"))
	admin_stats = await service.stats(ADMIN)
	assert admin_stats.total_amount == Decimal("110")

	with pytest.raises(InvalidInput):
		await service.list_visible(ADMIN, "archived")


def test_calculate_stats_on_empty_list():
	stats = calculate_stats([])
	assert stats.total == 0
	assert stats.total_amount == Decimal("0")

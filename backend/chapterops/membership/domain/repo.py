"""Typed data access for the membership core on top of the document store."""

from __future__ import annotations

from typing import Any, Mapping, Optional

from chapterops.infra.documents import DocumentMissing, DocumentStore, get_document_store
from chapterops.membership.domain import models
from chapterops.membership.domain.exceptions import NotFoundError

USERS = "users"
PUBLIC_PROFILES = "public_profiles"
INVITES = "invites"
DEPOSITS = "fund_deposits"
DEPOSIT_TOMBSTONES = "fund_deposit_tombstones"


class MembershipRepository:
	"""Thin data-access layer around a DocumentStore.

	Missing documents surface as NotFoundError; ExpectationFailed from guarded
	writes is left for services to translate, since only they know which rule
	the guard stood for.
	"""

	def __init__(self, store: DocumentStore | None = None) -> None:
		self._store = store

	@property
	def store(self) -> DocumentStore:
		return self._store or get_document_store()

	# --- Members ------------------------------------------------------------

	async def get_member(self, member_id: str) -> Optional[models.MemberRecord]:
		data = await self.store.get(USERS, member_id)
		return models.MemberRecord.model_validate(data) if data is not None else None

	async def list_members(self) -> list[models.MemberRecord]:
		rows = await self.store.query(USERS)
		return [models.MemberRecord.model_validate(row) for row in rows]

	async def update_member(self, member_id: str, patch: Mapping[str, Any]) -> models.MemberRecord:
		try:
			data = await self.store.update(USERS, member_id, patch)
		except DocumentMissing:
			raise NotFoundError("member_not_found")
		return models.MemberRecord.model_validate(data)

	async def delete_member(self, member_id: str) -> None:
		try:
			await self.store.delete(USERS, member_id)
		except DocumentMissing:
			raise NotFoundError("member_not_found")

	async def sync_public_profile(self, member_id: str, data: Mapping[str, Any]) -> models.PublicProfile:
		stored = await self.store.upsert(PUBLIC_PROFILES, member_id, {**data, "user_id": member_id})
		return models.PublicProfile.model_validate(stored)

	async def get_public_profile(self, member_id: str) -> Optional[models.PublicProfile]:
		data = await self.store.get(PUBLIC_PROFILES, member_id)
		return models.PublicProfile.model_validate(data) if data is not None else None

	async def delete_public_profile(self, member_id: str) -> None:
		try:
			await self.store.delete(PUBLIC_PROFILES, member_id)
		except DocumentMissing:
			return

	# --- Invitations --------------------------------------------------------

	async def create_invite(self, data: Mapping[str, Any]) -> models.Invitation:
		stored = await self.store.create(INVITES, data)
		return models.Invitation.model_validate(stored)

	async def list_invites(self) -> list[models.Invitation]:
		rows = await self.store.query(INVITES)
		return [models.Invitation.model_validate(row) for row in rows]

	# --- Deposits -----------------------------------------------------------

	async def create_deposit(self, data: Mapping[str, Any]) -> models.Deposit:
		stored = await self.store.create(DEPOSITS, data)
		return models.Deposit.model_validate(stored)

	async def get_deposit(self, deposit_id: str) -> Optional[models.Deposit]:
		data = await self.store.get(DEPOSITS, deposit_id)
		return models.Deposit.model_validate(data) if data is not None else None

	async def list_deposits(self, **filters: Any) -> list[models.Deposit]:
		rows = await self.store.query(DEPOSITS, **filters)
		return [models.Deposit.model_validate(row) for row in rows]

	async def append_deposit_entry(
		self,
		deposit_id: str,
		patch: Mapping[str, Any],
		entry: models.AuditEntry,
		*,
		expect: Mapping[str, Any],
		remove: Optional[Mapping[str, list[Any]]] = None,
	) -> models.Deposit:
		"""Apply `patch` and append `entry` in one guarded document update."""
		try:
			data = await self.store.update(
				DEPOSITS,
				deposit_id,
				patch,
				expect=expect,
				append={"audit_log": [entry.model_dump(mode="json")]},
				remove=remove,
			)
		except DocumentMissing:
			raise NotFoundError("deposit_not_found")
		return models.Deposit.model_validate(data)

	async def delete_deposit(self, deposit_id: str, *, expect: Optional[Mapping[str, Any]] = None) -> models.Deposit:
		try:
			data = await self.store.delete(DEPOSITS, deposit_id, expect=expect)
		except DocumentMissing:
			raise NotFoundError("deposit_not_found")
		return models.Deposit.model_validate(data)

	async def record_deposit_tombstone(self, tombstone: models.DepositTombstone) -> None:
		await self.store.create(DEPOSIT_TOMBSTONES, tombstone.model_dump(mode="json"), doc_id=tombstone.id)

	async def get_deposit_tombstone(self, deposit_id: str) -> Optional[models.DepositTombstone]:
		data = await self.store.get(DEPOSIT_TOMBSTONES, deposit_id)
		return models.DepositTombstone.model_validate(data) if data is not None else None

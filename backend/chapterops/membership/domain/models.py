"""Domain models for members, invitations and fund deposits."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from chapterops.membership.domain.exceptions import InvalidInput
from chapterops.membership.domain.roles import Role

MemberStatus = Literal["active", "inactive", "suspended"]
SignInMethod = Literal["email", "google", "microsoft", "github", "facebook", "twitter", "apple", "other"]
DepositStatus = Literal["pending", "verified", "rejected"]
IeeeDepositSource = Literal["upp", "section", "region", "global", "society", "other"]

PENDING = "pending"
VERIFIED = "verified"
REJECTED = "rejected"
TERMINAL_STATES = frozenset({VERIFIED, REJECTED})


@dataclass(frozen=True, slots=True)
class Principal:
	"""The authenticated actor performing an operation."""

	id: str
	role: Role = Role.MEMBER
	name: Optional[str] = None
	email: Optional[str] = None

	@property
	def is_administrator(self) -> bool:
		return self.role is Role.ADMINISTRATOR

	@property
	def display_name(self) -> str:
		return self.name or self.email or "Unknown User"

	def is_self(self, target_id: Optional[str]) -> bool:
		return target_id is not None and target_id == self.id


class MemberRecord(BaseModel):
	"""A member of the organization, keyed by principal id."""

	id: str
	name: str = ""
	email: str = ""
	role: Role = Role.MEMBER
	position: Optional[str] = None
	status: MemberStatus = "active"
	points: int = 0
	pid: Optional[str] = None
	member_id: Optional[str] = None
	major: Optional[str] = None
	graduation_year: Optional[int] = None
	join_date: Optional[datetime] = None
	last_updated: Optional[datetime] = None
	last_updated_by: Optional[str] = None
	sign_in_method: Optional[SignInMethod] = None

	model_config = ConfigDict(from_attributes=True)

	@field_validator("role", mode="before")
	@classmethod
	def _default_role(cls, value: Any) -> Any:
		return Role.parse(value) or Role.MEMBER


class PublicProfile(BaseModel):
	"""Denormalized projection shown on leaderboards."""

	user_id: str
	name: str = ""
	position: Optional[str] = None
	points: int = 0
	last_updated: Optional[datetime] = None


class Invitation(BaseModel):
	id: str
	name: str
	email: str
	role: Role
	position: str = ""
	message: str = ""
	invited_by: str
	status: Literal["pending"] = "pending"
	created_at: datetime
	expires_at: datetime


class CashMethod(BaseModel):
	kind: Literal["cash"] = "cash"

	model_config = ConfigDict(frozen=True)

	@property
	def label(self) -> str:
		return "cash"


class CheckMethod(BaseModel):
	kind: Literal["check"] = "check"

	model_config = ConfigDict(frozen=True)

	@property
	def label(self) -> str:
		return "check"


class BankTransferMethod(BaseModel):
	kind: Literal["bank_transfer"] = "bank_transfer"

	model_config = ConfigDict(frozen=True)

	@property
	def label(self) -> str:
		return "bank_transfer"


class OtherMethod(BaseModel):
	kind: Literal["other"] = "other"
	description: str = Field(..., min_length=1)

	model_config = ConfigDict(frozen=True)

	@property
	def label(self) -> str:
		return f"other: {self.description}"


DepositMethod = Annotated[
	Union[CashMethod, CheckMethod, BankTransferMethod, OtherMethod],
	Field(discriminator="kind"),
]

_SIMPLE_METHODS = {
	"cash": CashMethod,
	"check": CheckMethod,
	"bank_transfer": BankTransferMethod,
}


def parse_deposit_method(method: str, other_description: Optional[str] = None) -> DepositMethod:
	"""Build the tagged method from its form representation.

	The free-text description is only kept for `other`; it is required there.
	"""
	key = (method or "").strip().lower()
	if key == "other":
		description = (other_description or "").strip()
		if not description:
			raise InvalidInput("other_deposit_method_required")
		return OtherMethod(description=description)
	factory = _SIMPLE_METHODS.get(key)
	if factory is None:
		raise InvalidInput("invalid_deposit_method")
	return factory()


class IeeeDeposit(BaseModel):
	"""Funds that arrived from the wider IEEE organization."""

	source: IeeeDepositSource
	needs_bank_transfer: bool = False
	bank_transfer_instructions: Optional[str] = None
	bank_transfer_files: tuple[str, ...] = ()


class AuditEntry(BaseModel):
	"""One immutable line of a deposit's history."""

	action: str
	created_by: str
	created_by_name: str
	timestamp: datetime
	note: Optional[str] = None
	previous_data: Optional[dict[str, Any]] = None
	new_data: Optional[dict[str, Any]] = None

	model_config = ConfigDict(frozen=True)


class Deposit(BaseModel):
	"""A fund deposit and its append-only audit log."""

	id: str
	title: str
	amount: Decimal
	deposit_date: date
	deposit_method: DepositMethod
	purpose: str
	description: str = ""
	reference_number: Optional[str] = None
	deposited_by: str
	deposited_by_name: Optional[str] = None
	deposited_by_email: Optional[str] = None
	status: DepositStatus = PENDING
	rejection_reason: Optional[str] = None
	receipt_files: tuple[str, ...] = ()
	audit_log: tuple[AuditEntry, ...] = ()
	submitted_at: datetime
	verified_at: Optional[datetime] = None
	verified_by: Optional[str] = None
	verified_by_name: Optional[str] = None
	rejected_at: Optional[datetime] = None
	rejected_by: Optional[str] = None
	rejected_by_name: Optional[str] = None
	edited_at: Optional[datetime] = None
	edited_by: Optional[str] = None
	ieee_deposit: Optional[IeeeDeposit] = None

	@model_validator(mode="after")
	def _rejection_reason_matches_status(self) -> "Deposit":
		if self.status == REJECTED and not self.rejection_reason:
			raise ValueError("rejected deposits carry a rejection reason")
		if self.status != REJECTED and self.rejection_reason is not None:
			raise ValueError("rejection reason is only set on rejected deposits")
		return self

	@property
	def is_terminal(self) -> bool:
		return self.status in TERMINAL_STATES

	@property
	def stored_files(self) -> tuple[str, ...]:
		"""Every file reference owned by the deposit."""
		extra = self.ieee_deposit.bank_transfer_files if self.ieee_deposit else ()
		return self.receipt_files + tuple(extra)


class DepositTombstone(BaseModel):
	"""What remains of a deposit after deletion."""

	id: str
	deposit: Deposit
	deleted_by: str
	deleted_by_name: str
	deleted_at: datetime


class MemberStats(BaseModel):
	total_members: int
	active_members: int
	officers: int
	new_this_month: int


class DepositStats(BaseModel):
	total: int
	pending: int
	verified: int
	rejected: int
	total_amount: Decimal

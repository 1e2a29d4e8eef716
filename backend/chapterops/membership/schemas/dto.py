"""Pydantic schemas for the membership API."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from chapterops.membership.domain import models
from chapterops.membership.domain.roles import Role


class MemberCapabilities(BaseModel):
	can_edit_role: bool
	can_edit_position: bool
	can_delete: bool
	is_oauth_user: bool
	available_roles: List[Role]


class MemberResponse(models.MemberRecord):
	capabilities: Optional[MemberCapabilities] = None


class MemberListResponse(BaseModel):
	items: List[MemberResponse]


class MemberUpdateRequest(BaseModel):
	name: Optional[str] = Field(default=None, min_length=1, max_length=120)
	email: Optional[str] = Field(default=None, max_length=320)
	role: Optional[str] = None
	position: Optional[str] = Field(default=None, max_length=120)
	status: Optional[models.MemberStatus] = None
	points: Optional[int] = None
	pid: Optional[str] = None
	member_id: Optional[str] = None
	major: Optional[str] = None
	graduation_year: Optional[int] = Field(default=None, ge=1900, le=2200)


class PromoteRequest(BaseModel):
	role: str
	position: Optional[str] = Field(default=None, max_length=120)


class PermissionsResponse(BaseModel):
	user_id: str
	role: Role
	has_management_access: bool
	is_administrator: bool
	can_review_deposits: bool
	available_roles: List[Role]
	invitable_roles: List[Role]


class InviteCreateRequest(BaseModel):
	name: str = Field(..., min_length=1, max_length=120)
	email: str = Field(..., min_length=3, max_length=320, pattern=r"^[^@\s]+@[^@\s]+$")
	role: str
	position: str = Field(default="", max_length=120)
	message: str = Field(default="", max_length=4000)


class InviteResponse(models.Invitation):
	pass


class InviteListResponse(BaseModel):
	items: List[InviteResponse]


class IeeeDepositDraft(BaseModel):
	source: models.IeeeDepositSource
	needs_bank_transfer: bool = False
	bank_transfer_instructions: Optional[str] = Field(default=None, max_length=4000)
	bank_transfer_files: List[str] = Field(default_factory=list)


class DepositDraft(BaseModel):
	"""Submission form for a deposit.

	Amount, title and purpose are checked by the service so that the failures
	carry domain reason codes instead of schema errors.
	"""

	title: str = ""
	amount: Decimal
	deposit_date: date
	deposit_method: str
	other_deposit_method: Optional[str] = None
	purpose: str = ""
	description: str = Field(default="", max_length=4000)
	reference_number: Optional[str] = Field(default=None, max_length=120)
	receipt_files: List[str] = Field(default_factory=list)
	ieee_deposit: Optional[IeeeDepositDraft] = None


class RejectRequest(BaseModel):
	reason: str = ""


class ReceiptRemoveRequest(BaseModel):
	file_ref: str = Field(..., min_length=1)


class DepositResponse(models.Deposit):
	method_label: str = ""

	@classmethod
	def from_model(cls, deposit: models.Deposit) -> "DepositResponse":
		return cls(**deposit.model_dump(), method_label=deposit.deposit_method.label)


class DepositListResponse(BaseModel):
	items: List[DepositResponse]

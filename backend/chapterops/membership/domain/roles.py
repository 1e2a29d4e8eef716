"""Role model and the static capability rule table.

Privilege is not a linear order, so capabilities are looked up by
(actor role, action, target class) instead of comparing ranks. Every rule
carries the reason code reported when it denies.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class Role(str, Enum):
	MEMBER = "Member"
	GENERAL_OFFICER = "General Officer"
	EXECUTIVE_OFFICER = "Executive Officer"
	MEMBER_AT_LARGE = "Member at Large"
	PAST_OFFICER = "Past Officer"
	SPONSOR = "Sponsor"
	ADMINISTRATOR = "Administrator"

	@classmethod
	def parse(cls, value: Any) -> Optional["Role"]:
		"""Return the matching role, or None for anything unrecognised."""
		if isinstance(value, cls):
			return value
		try:
			return cls(value)
		except ValueError:
			return None


ALL_ROLES: tuple[Role, ...] = tuple(Role)
MANAGEMENT_ROLES = frozenset({Role.EXECUTIVE_OFFICER, Role.ADMINISTRATOR})
OFFICER_ROLES = frozenset({Role.GENERAL_OFFICER, Role.EXECUTIVE_OFFICER})


class Action(str, Enum):
	EDIT_ROLE = "edit_role"
	EDIT_POSITION = "edit_position"
	DELETE_USER = "delete_user"
	INVITE = "invite"


class TargetClass(str, Enum):
	ADMINISTRATOR = "administrator"
	EXECUTIVE = "executive"
	SELF = "self"
	OTHER = "other"


@dataclass(frozen=True, slots=True)
class Rule:
	allowed: bool
	reason: str


ALLOW = Rule(True, "allowed")
MANAGEMENT_REQUIRED = Rule(False, "management_access_required")
ADMINISTRATOR_REQUIRED = Rule(False, "administrator_required")

_A = Role.ADMINISTRATOR
_E = Role.EXECUTIVE_OFFICER

RULES: dict[tuple[Role, Action, TargetClass], Rule] = {
	# Administrators may do everything, to anyone, including themselves.
	**{(_A, action, target): ALLOW for action in Action for target in TargetClass},
	(_E, Action.EDIT_ROLE, TargetClass.ADMINISTRATOR): Rule(False, "cannot_edit_administrator"),
	(_E, Action.EDIT_ROLE, TargetClass.SELF): Rule(False, "cannot_edit_own_role"),
	(_E, Action.EDIT_ROLE, TargetClass.EXECUTIVE): ALLOW,
	(_E, Action.EDIT_ROLE, TargetClass.OTHER): ALLOW,
	(_E, Action.EDIT_POSITION, TargetClass.ADMINISTRATOR): Rule(False, "cannot_edit_administrator_position"),
	(_E, Action.EDIT_POSITION, TargetClass.SELF): Rule(False, "cannot_edit_own_position"),
	(_E, Action.EDIT_POSITION, TargetClass.EXECUTIVE): ALLOW,
	(_E, Action.EDIT_POSITION, TargetClass.OTHER): ALLOW,
	(_E, Action.DELETE_USER, TargetClass.ADMINISTRATOR): ADMINISTRATOR_REQUIRED,
	(_E, Action.DELETE_USER, TargetClass.EXECUTIVE): ADMINISTRATOR_REQUIRED,
	(_E, Action.DELETE_USER, TargetClass.SELF): ADMINISTRATOR_REQUIRED,
	(_E, Action.DELETE_USER, TargetClass.OTHER): ALLOW,
	(_E, Action.INVITE, TargetClass.ADMINISTRATOR): ADMINISTRATOR_REQUIRED,
	(_E, Action.INVITE, TargetClass.EXECUTIVE): ADMINISTRATOR_REQUIRED,
	(_E, Action.INVITE, TargetClass.OTHER): ALLOW,
}


def classify_target(actor_id: Optional[str], target_id: Optional[str], target_role: Any) -> TargetClass:
	"""Bucket a target record; an Administrator target outranks the self check."""
	role = Role.parse(target_role)
	if role is Role.ADMINISTRATOR:
		return TargetClass.ADMINISTRATOR
	if actor_id is not None and target_id == actor_id:
		return TargetClass.SELF
	if role is Role.EXECUTIVE_OFFICER:
		return TargetClass.EXECUTIVE
	return TargetClass.OTHER


def classify_role(role: Any) -> TargetClass:
	parsed = Role.parse(role)
	if parsed is Role.ADMINISTRATOR:
		return TargetClass.ADMINISTRATOR
	if parsed is Role.EXECUTIVE_OFFICER:
		return TargetClass.EXECUTIVE
	return TargetClass.OTHER


def lookup(actor_role: Any, action: Action, target: TargetClass) -> Rule:
	role = Role.parse(actor_role)
	if role is None:
		return MANAGEMENT_REQUIRED
	return RULES.get((role, action, target), MANAGEMENT_REQUIRED)

"""Authorization policies for member administration and fund deposits.

The `can_*` predicates are pure and never raise; unknown roles or malformed
targets simply evaluate to False. The `ensure_*` helpers wrap them for
services and raise PermissionDenied with the reason code of the rule that
denied.
"""

from __future__ import annotations

from typing import Any, Optional

from chapterops.membership.domain import models
from chapterops.membership.domain.exceptions import DenialKind, PermissionDenied
from chapterops.membership.domain.roles import (
	ALL_ROLES,
	MANAGEMENT_ROLES,
	Action,
	Role,
	Rule,
	classify_role,
	classify_target,
	lookup,
)
from chapterops.obs import metrics as obs_metrics


def has_management_access(actor_role: Any) -> bool:
	return Role.parse(actor_role) in MANAGEMENT_ROLES


def _target_rule(action: Action, actor_role: Any, actor_id: Optional[str], target: Any) -> Rule:
	target_id = getattr(target, "id", None)
	target_role = getattr(target, "role", None)
	return lookup(actor_role, action, classify_target(actor_id, target_id, target_role))


def edit_role_rule(actor_role: Any, actor_id: Optional[str], target: Any) -> Rule:
	return _target_rule(Action.EDIT_ROLE, actor_role, actor_id, target)


def edit_position_rule(actor_role: Any, actor_id: Optional[str], target: Any) -> Rule:
	return _target_rule(Action.EDIT_POSITION, actor_role, actor_id, target)


def delete_user_rule(actor_role: Any, target: Any, actor_id: Optional[str] = None) -> Rule:
	return _target_rule(Action.DELETE_USER, actor_role, actor_id, target)


def invite_rule(actor_role: Any, proposed_role: Any) -> Rule:
	if Role.parse(proposed_role) is None:
		return Rule(False, "invalid_role")
	return lookup(actor_role, Action.INVITE, classify_role(proposed_role))


def can_edit_role(actor_role: Any, actor_id: Optional[str], target: Any) -> bool:
	return edit_role_rule(actor_role, actor_id, target).allowed


def can_edit_position(actor_role: Any, actor_id: Optional[str], target: Any) -> bool:
	return has_management_access(actor_role) and edit_position_rule(actor_role, actor_id, target).allowed


def can_delete_user(actor_role: Any, target: Any, actor_id: Optional[str] = None) -> bool:
	return delete_user_rule(actor_role, target, actor_id).allowed


def can_invite_with_role(actor_role: Any, proposed_role: Any) -> bool:
	return invite_rule(actor_role, proposed_role).allowed


def available_roles(actor_role: Any, is_acting_on_self: bool = False) -> tuple[Role, ...]:
	role = Role.parse(actor_role)
	if role is Role.ADMINISTRATOR:
		return ALL_ROLES
	if role is Role.EXECUTIVE_OFFICER:
		if is_acting_on_self:
			return (Role.EXECUTIVE_OFFICER,)
		return tuple(r for r in ALL_ROLES if r is not Role.ADMINISTRATOR)
	return (Role.MEMBER,)


def invitable_roles(actor_role: Any) -> tuple[Role, ...]:
	return tuple(r for r in ALL_ROLES if can_invite_with_role(actor_role, r))


def is_oauth_user(target: Any) -> bool:
	method = getattr(target, "sign_in_method", None)
	return bool(method) and method != "email"


def can_view_deposit(actor: models.Principal, deposit: models.Deposit) -> bool:
	return actor.is_self(deposit.deposited_by) or actor.is_administrator


def can_review_deposits(actor: models.Principal) -> bool:
	return actor.is_administrator


def can_remove_deposit(actor: models.Principal, deposit: models.Deposit) -> bool:
	if actor.is_administrator:
		return True
	return actor.is_self(deposit.deposited_by) and deposit.status == models.PENDING


# --- Raising wrappers used by services -----------------------------------


def _deny(action: str, reason: str, *, kind: DenialKind = "role") -> PermissionDenied:
	obs_metrics.inc_permission_denied(action, reason)
	return PermissionDenied(reason, kind=kind)


def ensure_management_access(actor: models.Principal) -> None:
	if not has_management_access(actor.role):
		raise _deny("manage_members", "management_access_required")


def ensure_can_edit_role(actor: models.Principal, target: models.MemberRecord) -> None:
	rule = edit_role_rule(actor.role, actor.id, target)
	if not rule.allowed:
		raise _deny(Action.EDIT_ROLE.value, rule.reason)


def ensure_can_edit_position(actor: models.Principal, target: models.MemberRecord) -> None:
	if not has_management_access(actor.role):
		raise _deny(Action.EDIT_POSITION.value, "management_access_required")
	rule = edit_position_rule(actor.role, actor.id, target)
	if not rule.allowed:
		raise _deny(Action.EDIT_POSITION.value, rule.reason)


def ensure_role_assignable(actor: models.Principal, target: models.MemberRecord, new_role: Any) -> None:
	role = Role.parse(new_role)
	if role is None:
		raise _deny(Action.EDIT_ROLE.value, "invalid_role")
	if role not in available_roles(actor.role, actor.is_self(target.id)):
		raise _deny(Action.EDIT_ROLE.value, "role_not_assignable")


def ensure_can_delete_user(actor: models.Principal, target: models.MemberRecord) -> None:
	rule = delete_user_rule(actor.role, target, actor.id)
	if not rule.allowed:
		raise _deny(Action.DELETE_USER.value, rule.reason)


def ensure_can_invite(actor: models.Principal, proposed_role: Any) -> None:
	rule = invite_rule(actor.role, proposed_role)
	if not rule.allowed:
		raise _deny(Action.INVITE.value, rule.reason)


def ensure_can_review_deposits(actor: models.Principal) -> None:
	if not can_review_deposits(actor):
		raise _deny("review_deposit", "administrator_required")


def ensure_can_view_deposit(actor: models.Principal, deposit: models.Deposit) -> None:
	if not can_view_deposit(actor, deposit):
		raise _deny("view_deposit", "not_deposit_owner", kind="ownership")


def ensure_can_remove_deposit(actor: models.Principal, deposit: models.Deposit) -> None:
	if can_remove_deposit(actor, deposit):
		return
	if actor.is_self(deposit.deposited_by):
		raise _deny("remove_deposit", "deposit_not_pending", kind="ownership")
	raise _deny("remove_deposit", "not_deposit_owner", kind="ownership")

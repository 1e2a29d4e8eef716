"""Permission-checked administration of member records."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from chapterops.membership.domain import models, policies, repo as repo_module
from chapterops.membership.domain.exceptions import NotFoundError
from chapterops.membership.domain.profiles import ProfileProjection
from chapterops.membership.domain.roles import OFFICER_ROLES, Role
from chapterops.membership.domain.secondary import attempt
from chapterops.membership.schemas import dto
from chapterops.obs import metrics as obs_metrics

_LOG = logging.getLogger(__name__)

# Optional profile fields an explicit null clears; null elsewhere means "unchanged".
_CLEARABLE_FIELDS = frozenset({"position", "pid", "member_id", "major", "graduation_year"})


def _now() -> datetime:
	return datetime.now(timezone.utc)


def calculate_stats(members: Iterable[models.MemberRecord], now: datetime) -> models.MemberStats:
	"""Headline counts for the members page; `now` fixes the current month."""
	month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
	total = active = officers = new_this_month = 0
	for member in members:
		total += 1
		if member.status == "active":
			active += 1
		if member.role in OFFICER_ROLES:
			officers += 1
		joined = member.join_date
		if joined is not None:
			if joined.tzinfo is None:
				joined = joined.replace(tzinfo=timezone.utc)
			if joined >= month_start:
				new_this_month += 1
	return models.MemberStats(
		total_members=total,
		active_members=active,
		officers=officers,
		new_this_month=new_this_month,
	)


def capabilities(actor: models.Principal, target: models.MemberRecord) -> dto.MemberCapabilities:
	return dto.MemberCapabilities(
		can_edit_role=policies.can_edit_role(actor.role, actor.id, target),
		can_edit_position=policies.can_edit_position(actor.role, actor.id, target),
		can_delete=policies.can_delete_user(actor.role, target, actor.id),
		is_oauth_user=policies.is_oauth_user(target),
		available_roles=list(policies.available_roles(actor.role, actor.is_self(target.id))),
	)


class MembersService:
	"""Edits, deletes and promotes member records."""

	def __init__(
		self,
		*,
		repository: repo_module.MembershipRepository | None = None,
		profiles: ProfileProjection | None = None,
	) -> None:
		self.repo = repository or repo_module.MembershipRepository()
		self.profiles = profiles or ProfileProjection(repository=self.repo)

	async def _require_member(self, member_id: str) -> models.MemberRecord:
		member = await self.repo.get_member(member_id)
		if member is None:
			raise NotFoundError("member_not_found")
		return member

	def _respond(self, actor: models.Principal, member: models.MemberRecord) -> dto.MemberResponse:
		return dto.MemberResponse(**member.model_dump(), capabilities=capabilities(actor, member))

	async def list_members(self, actor: models.Principal) -> list[dto.MemberResponse]:
		policies.ensure_management_access(actor)
		members = await self.repo.list_members()
		members.sort(key=lambda member: (member.name.lower(), member.id))
		return [self._respond(actor, member) for member in members]

	async def member_stats(self, actor: models.Principal, *, now: Optional[datetime] = None) -> models.MemberStats:
		policies.ensure_management_access(actor)
		members = await self.repo.list_members()
		return calculate_stats(members, now or _now())

	async def permissions_for(self, actor: models.Principal) -> dto.PermissionsResponse:
		return dto.PermissionsResponse(
			user_id=actor.id,
			role=actor.role,
			has_management_access=policies.has_management_access(actor.role),
			is_administrator=actor.is_administrator,
			can_review_deposits=policies.can_review_deposits(actor),
			available_roles=list(policies.available_roles(actor.role, False)),
			invitable_roles=list(policies.invitable_roles(actor.role)),
		)

	async def update_member(
		self,
		actor: models.Principal,
		member_id: str,
		payload: dto.MemberUpdateRequest,
	) -> dto.MemberResponse:
		target = await self._require_member(member_id)
		policies.ensure_can_edit_role(actor, target)
		policies.ensure_can_edit_position(actor, target)

		changes: dict[str, Any] = {
			key: value
			for key, value in payload.model_dump(exclude_unset=True).items()
			if value is not None or key in _CLEARABLE_FIELDS
		}
		if "role" in changes:
			policies.ensure_role_assignable(actor, target, changes["role"])
			changes["role"] = Role(changes["role"]).value
		if "points" in changes and not actor.is_administrator:
			_LOG.info(
				"membership.points_dropped",
				extra={"member_id": member_id, "actor_id": actor.id},
			)
			changes.pop("points")
		points_accepted = "points" in changes

		changes["last_updated"] = _now().isoformat()
		changes["last_updated_by"] = actor.id
		updated = await self.repo.update_member(member_id, changes)
		obs_metrics.inc_member_mutation("update")

		if points_accepted:
			await attempt(self.profiles.mirror(updated))
		return self._respond(actor, updated)

	async def delete_member(self, actor: models.Principal, member_id: str) -> None:
		policies.ensure_management_access(actor)
		target = await self._require_member(member_id)
		policies.ensure_can_delete_user(actor, target)
		await self.repo.delete_member(member_id)
		obs_metrics.inc_member_mutation("delete")
		await attempt(self.profiles.remove(member_id))

	async def add_existing_member(
		self,
		actor: models.Principal,
		member_id: str,
		payload: dto.PromoteRequest,
	) -> dto.MemberResponse:
		"""Give an existing account a role and position, reactivating it if needed."""
		target = await self._require_member(member_id)
		policies.ensure_can_edit_role(actor, target)
		policies.ensure_can_edit_position(actor, target)
		policies.ensure_role_assignable(actor, target, payload.role)

		changes: dict[str, Any] = {
			"role": Role(payload.role).value,
			"last_updated": _now().isoformat(),
			"last_updated_by": actor.id,
		}
		if payload.position is not None:
			changes["position"] = payload.position
		if target.status == "inactive":
			changes["status"] = "active"
		updated = await self.repo.update_member(member_id, changes)
		obs_metrics.inc_member_mutation("promote")

		await attempt(self.profiles.mirror_position(updated))
		return self._respond(actor, updated)


__all__ = ["MembersService", "calculate_stats", "capabilities"]

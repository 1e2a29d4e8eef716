"""Invitation flows for new members."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from chapterops.membership.domain import events, models, policies, repo as repo_module
from chapterops.membership.domain.roles import Role
from chapterops.membership.domain.secondary import attempt
from chapterops.membership.schemas import dto
from chapterops.obs import metrics as obs_metrics
from chapterops.settings import settings

_LOG = logging.getLogger(__name__)


class InvitesService:
	"""Create and list pending invitations."""

	def __init__(
		self,
		*,
		repository: repo_module.MembershipRepository | None = None,
		publisher: events.EventPublisher | None = None,
		ttl_days: int | None = None,
	) -> None:
		self.repo = repository or repo_module.MembershipRepository()
		self.publisher = publisher or events.EventPublisher()
		self.ttl = timedelta(days=ttl_days if ttl_days is not None else settings.invite_ttl_days)

	async def list_invites(self, actor: models.Principal) -> list[models.Invitation]:
		policies.ensure_management_access(actor)
		invites = await self.repo.list_invites()
		invites.sort(key=lambda invite: invite.created_at, reverse=True)
		return invites

	async def issue_invite(self, actor: models.Principal, payload: dto.InviteCreateRequest) -> models.Invitation:
		policies.ensure_can_invite(actor, payload.role)
		created_at = datetime.now(timezone.utc)
		invite = await self.repo.create_invite(
			{
				"name": payload.name.strip(),
				"email": payload.email.strip().lower(),
				"role": Role(payload.role).value,
				"position": payload.position,
				"message": payload.message,
				"invited_by": actor.id,
				"status": "pending",
				"created_at": created_at.isoformat(),
				"expires_at": (created_at + self.ttl).isoformat(),
			}
		)
		obs_metrics.inc_invite_issued(invite.role.value)
		_LOG.info("invites.issued", extra={"invite_id": invite.id, "role": invite.role.value})
		await attempt(self.publisher.publish(events.INVITE_ISSUED, invite))
		return invite


__all__ = ["InvitesService"]

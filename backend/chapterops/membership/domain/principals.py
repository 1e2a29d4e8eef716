"""Resolve the acting principal from the authenticated user."""

from __future__ import annotations

from chapterops.infra.auth import AuthenticatedUser
from chapterops.membership.domain import models, repo as repo_module
from chapterops.membership.domain.roles import Role


class PrincipalResolver:
	def __init__(self, *, repository: repo_module.MembershipRepository | None = None) -> None:
		self.repo = repository or repo_module.MembershipRepository()

	async def resolve(self, user: AuthenticatedUser) -> models.Principal:
		"""Role comes from the caller's member record; Member when there is none."""
		record = await self.repo.get_member(user.id)
		if record is None:
			return models.Principal(id=user.id, name=user.display_name, email=user.email)
		return models.Principal(
			id=user.id,
			role=Role.parse(record.role) or Role.MEMBER,
			name=record.name or user.display_name,
			email=record.email or user.email,
		)

"""Public profile projection kept alongside member records."""

from __future__ import annotations

from datetime import datetime, timezone

from chapterops.membership.domain import models, repo as repo_module
from chapterops.membership.domain.secondary import dependency


class ProfileProjection:
	"""Mirrors the leaderboard-facing fields of a member.

	The projection is weakly consistent with `users`; every method raises
	DependencyFailure instead of the store's own errors.
	"""

	def __init__(self, *, repository: repo_module.MembershipRepository | None = None) -> None:
		self.repo = repository or repo_module.MembershipRepository()

	async def mirror(self, member: models.MemberRecord) -> None:
		async with dependency("profile_sync"):
			await self.repo.sync_public_profile(
				member.id,
				{
					"name": member.name,
					"position": member.position,
					"points": member.points,
					"last_updated": datetime.now(timezone.utc).isoformat(),
				},
			)

	async def mirror_position(self, member: models.MemberRecord) -> None:
		async with dependency("profile_sync"):
			await self.repo.sync_public_profile(
				member.id,
				{
					"name": member.name,
					"position": member.position,
					"points": member.points,
					"last_updated": datetime.now(timezone.utc).isoformat(),
				},
			)

	async def remove(self, member_id: str) -> None:
		async with dependency("profile_delete"):
			await self.repo.delete_public_profile(member_id)

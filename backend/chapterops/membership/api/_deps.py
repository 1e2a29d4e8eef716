"""Request dependencies shared by the membership routers."""

from __future__ import annotations

from fastapi import Depends

from chapterops.infra.auth import AuthenticatedUser, get_current_user
from chapterops.membership.domain import models
from chapterops.membership.domain.principals import PrincipalResolver

_resolver = PrincipalResolver()


async def get_principal(auth_user: AuthenticatedUser = Depends(get_current_user)) -> models.Principal:
	return await _resolver.resolve(auth_user)

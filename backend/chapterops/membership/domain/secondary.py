"""Best-effort secondary writes.

Collaborators wrap their failures in DependencyFailure through `dependency`;
services run them through `attempt`, which logs and counts the failure and
never lets it reach the caller.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable

from chapterops.membership.domain.exceptions import DependencyFailure
from chapterops.obs import metrics as obs_metrics

_LOG = logging.getLogger(__name__)


@asynccontextmanager
async def dependency(step: str) -> AsyncIterator[None]:
	try:
		yield
	except DependencyFailure:
		raise
	except Exception as exc:
		raise DependencyFailure(f"{step}_failed", step=step) from exc


async def attempt(operation: Awaitable[object]) -> bool:
	"""Await a secondary write; True when it succeeded."""
	try:
		await operation
	except DependencyFailure as exc:
		obs_metrics.inc_secondary_write_failure(exc.step)
		_LOG.warning(
			"membership.secondary_write_failed",
			extra={"step": exc.step, "detail": exc.detail},
			exc_info=True,
		)
		return False
	return True


__all__ = ["attempt", "dependency"]

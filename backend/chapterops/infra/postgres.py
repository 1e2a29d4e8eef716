"""AsyncPG pool management for the document store."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import asyncpg

from chapterops.obs import metrics
from chapterops.settings import settings

_pool: Optional[asyncpg.pool.Pool] = None


async def init_pool() -> asyncpg.pool.Pool:
	global _pool
	if _pool is None:
		try:
			_pool = await asyncpg.create_pool(
				dsn=settings.postgres_url,
				min_size=settings.postgres_min_pool_size,
				max_size=settings.postgres_max_pool_size,
				command_timeout=settings.postgres_command_timeout,
			)
		except (OSError, asyncpg.PostgresError):
			metrics.mark_postgres(False)
			raise
		metrics.mark_postgres(True)
	return _pool


def set_pool(pool: Optional[asyncpg.pool.Pool]) -> None:
	global _pool
	_pool = pool


async def get_pool() -> asyncpg.pool.Pool:
	if _pool is None:
		await init_pool()
	assert _pool is not None
	return _pool


@asynccontextmanager
async def transaction() -> AsyncIterator[asyncpg.Connection]:
	"""Connection with an open transaction; commits on clean exit."""
	pool = await get_pool()
	async with pool.acquire() as conn:
		async with conn.transaction():
			yield conn


async def close_pool() -> None:
	global _pool
	if _pool is not None:
		await _pool.close()
		_pool = None

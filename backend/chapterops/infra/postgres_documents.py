"""PostgreSQL implementation of the document store (JSONB rows)."""

from __future__ import annotations

import json
from typing import Any, Iterable, Mapping, Optional
from uuid import uuid4

from chapterops.infra.documents import (
	Document,
	DocumentExists,
	DocumentMissing,
	ExpectationFailed,
	apply_mutation,
	matches,
)
from chapterops.infra.postgres import get_pool, transaction

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS documents (
	collection TEXT NOT NULL,
	id TEXT NOT NULL,
	data JSONB NOT NULL,
	created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
	updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
	PRIMARY KEY (collection, id)
);
CREATE INDEX IF NOT EXISTS documents_data_gin ON documents USING GIN (data jsonb_path_ops);
"""


def _load(raw: Any) -> Document:
	if isinstance(raw, (bytes, str)):
		return json.loads(raw)
	return dict(raw)


class PostgresDocumentStore:
	"""Stores each document as one JSONB row keyed by (collection, id).

	Conditional writes lock the row with SELECT ... FOR UPDATE, evaluate the
	expectation and write back inside a single transaction.
	"""

	async def ensure_schema(self) -> None:
		pool = await get_pool()
		async with pool.acquire() as conn:
			await conn.execute(SCHEMA_SQL)

	async def get(self, collection: str, doc_id: str) -> Optional[Document]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			raw = await conn.fetchval(
				"SELECT data FROM documents WHERE collection=$1 AND id=$2",
				collection,
				doc_id,
			)
		return _load(raw) if raw is not None else None

	async def query(self, collection: str, **equals: Any) -> list[Document]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT data FROM documents
				WHERE collection=$1 AND data @> $2::jsonb
				ORDER BY created_at, id
				""",
				collection,
				json.dumps(equals),
			)
		return [_load(row["data"]) for row in rows]

	async def create(self, collection: str, data: Mapping[str, Any], *, doc_id: Optional[str] = None) -> Document:
		document = dict(data)
		document["id"] = doc_id or str(uuid4())
		pool = await get_pool()
		async with pool.acquire() as conn:
			inserted = await conn.fetchval(
				"""
				INSERT INTO documents (collection, id, data)
				VALUES ($1, $2, $3::jsonb)
				ON CONFLICT (collection, id) DO NOTHING
				RETURNING id
				""",
				collection,
				document["id"],
				json.dumps(document),
			)
		if inserted is None:
			raise DocumentExists(f"{collection}/{document['id']}")
		return document

	async def update(
		self,
		collection: str,
		doc_id: str,
		patch: Mapping[str, Any],
		*,
		expect: Optional[Mapping[str, Any]] = None,
		append: Optional[Mapping[str, Iterable[Any]]] = None,
		remove: Optional[Mapping[str, Iterable[Any]]] = None,
	) -> Document:
		async with transaction() as conn:
			raw = await conn.fetchval(
				"SELECT data FROM documents WHERE collection=$1 AND id=$2 FOR UPDATE",
				collection,
				doc_id,
			)
			if raw is None:
				raise DocumentMissing(collection, doc_id)
			current = _load(raw)
			if not matches(current, expect):
				raise ExpectationFailed(collection, doc_id, current)
			updated = apply_mutation(current, patch, append=append, remove=remove)
			await conn.execute(
				"""
				UPDATE documents SET data=$3::jsonb, updated_at=NOW()
				WHERE collection=$1 AND id=$2
				""",
				collection,
				doc_id,
				json.dumps(updated),
			)
		return updated

	async def upsert(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> Document:
		document = dict(data)
		document["id"] = doc_id
		pool = await get_pool()
		async with pool.acquire() as conn:
			raw = await conn.fetchval(
				"""
				INSERT INTO documents (collection, id, data)
				VALUES ($1, $2, $3::jsonb)
				ON CONFLICT (collection, id)
				DO UPDATE SET data = documents.data || EXCLUDED.data, updated_at = NOW()
				RETURNING data
				""",
				collection,
				doc_id,
				json.dumps(document),
			)
		return _load(raw)

	async def delete(
		self,
		collection: str,
		doc_id: str,
		*,
		expect: Optional[Mapping[str, Any]] = None,
	) -> Document:
		async with transaction() as conn:
			raw = await conn.fetchval(
				"SELECT data FROM documents WHERE collection=$1 AND id=$2 FOR UPDATE",
				collection,
				doc_id,
			)
			if raw is None:
				raise DocumentMissing(collection, doc_id)
			current = _load(raw)
			if not matches(current, expect):
				raise ExpectationFailed(collection, doc_id, current)
			await conn.execute(
				"DELETE FROM documents WHERE collection=$1 AND id=$2",
				collection,
				doc_id,
			)
		return current

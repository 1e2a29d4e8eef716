"""Document store abstraction used by the membership core.

Documents are JSON-compatible dicts grouped in named collections. Every
mutation is atomic for a single document: the optional `expect` guard is
evaluated against the stored document inside the same critical section that
applies the write, so callers never need a separate read-then-write.
"""

from __future__ import annotations

import asyncio
import copy
from typing import Any, Iterable, Mapping, Optional, Protocol
from uuid import uuid4

from chapterops.settings import settings

Document = dict[str, Any]


class DocumentStoreError(Exception):
	"""Base class for store level failures."""


class DocumentMissing(DocumentStoreError):
	"""Raised when the addressed document does not exist."""

	def __init__(self, collection: str, doc_id: str) -> None:
		super().__init__(f"{collection}/{doc_id}")
		self.collection = collection
		self.doc_id = doc_id


class DocumentExists(DocumentStoreError):
	"""Raised when creating a document under an id that is already taken."""


class ExpectationFailed(DocumentStoreError):
	"""Raised when a conditional write finds the document in another state."""

	def __init__(self, collection: str, doc_id: str, current: Document) -> None:
		super().__init__(f"{collection}/{doc_id}")
		self.collection = collection
		self.doc_id = doc_id
		self.current = current


class DocumentStore(Protocol):
	async def get(self, collection: str, doc_id: str) -> Optional[Document]: ...

	async def query(self, collection: str, **equals: Any) -> list[Document]: ...

	async def create(self, collection: str, data: Mapping[str, Any], *, doc_id: Optional[str] = None) -> Document: ...

	async def update(
		self,
		collection: str,
		doc_id: str,
		patch: Mapping[str, Any],
		*,
		expect: Optional[Mapping[str, Any]] = None,
		append: Optional[Mapping[str, Iterable[Any]]] = None,
		remove: Optional[Mapping[str, Iterable[Any]]] = None,
	) -> Document: ...

	async def upsert(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> Document: ...

	async def delete(
		self,
		collection: str,
		doc_id: str,
		*,
		expect: Optional[Mapping[str, Any]] = None,
	) -> Document: ...


def matches(data: Mapping[str, Any], expect: Optional[Mapping[str, Any]]) -> bool:
	if not expect:
		return True
	return all(data.get(key) == value for key, value in expect.items())


def apply_mutation(
	data: Mapping[str, Any],
	patch: Mapping[str, Any],
	*,
	append: Optional[Mapping[str, Iterable[Any]]] = None,
	remove: Optional[Mapping[str, Iterable[Any]]] = None,
) -> Document:
	"""Return a new document with the patch merged and list fields adjusted.

	`append` extends list fields in order; `remove` drops every occurrence of
	the given values from list fields. The `id` field is never overwritten.
	"""
	updated = copy.deepcopy(dict(data))
	for key, value in patch.items():
		if key == "id":
			continue
		updated[key] = copy.deepcopy(value)
	for field, values in (remove or {}).items():
		dropped = list(values)
		updated[field] = [item for item in updated.get(field) or [] if item not in dropped]
	for field, values in (append or {}).items():
		updated[field] = list(updated.get(field) or []) + copy.deepcopy(list(values))
	return updated


class InMemoryDocumentStore:
	"""Process-local store; one lock serialises every mutation."""

	def __init__(self) -> None:
		self._collections: dict[str, dict[str, Document]] = {}
		self._lock = asyncio.Lock()

	def _bucket(self, collection: str) -> dict[str, Document]:
		return self._collections.setdefault(collection, {})

	async def get(self, collection: str, doc_id: str) -> Optional[Document]:
		data = self._bucket(collection).get(doc_id)
		return copy.deepcopy(data) if data is not None else None

	async def query(self, collection: str, **equals: Any) -> list[Document]:
		return [copy.deepcopy(doc) for doc in self._bucket(collection).values() if matches(doc, equals)]

	async def create(self, collection: str, data: Mapping[str, Any], *, doc_id: Optional[str] = None) -> Document:
		async with self._lock:
			new_id = doc_id or str(uuid4())
			bucket = self._bucket(collection)
			if new_id in bucket:
				raise DocumentExists(f"{collection}/{new_id}")
			document = copy.deepcopy(dict(data))
			document["id"] = new_id
			bucket[new_id] = document
			return copy.deepcopy(document)

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
		async with self._lock:
			bucket = self._bucket(collection)
			current = bucket.get(doc_id)
			if current is None:
				raise DocumentMissing(collection, doc_id)
			if not matches(current, expect):
				raise ExpectationFailed(collection, doc_id, copy.deepcopy(current))
			updated = apply_mutation(current, patch, append=append, remove=remove)
			bucket[doc_id] = updated
			return copy.deepcopy(updated)

	async def upsert(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> Document:
		async with self._lock:
			bucket = self._bucket(collection)
			current = bucket.get(doc_id) or {"id": doc_id}
			updated = apply_mutation(current, data)
			bucket[doc_id] = updated
			return copy.deepcopy(updated)

	async def delete(
		self,
		collection: str,
		doc_id: str,
		*,
		expect: Optional[Mapping[str, Any]] = None,
	) -> Document:
		async with self._lock:
			bucket = self._bucket(collection)
			current = bucket.get(doc_id)
			if current is None:
				raise DocumentMissing(collection, doc_id)
			if not matches(current, expect):
				raise ExpectationFailed(collection, doc_id, copy.deepcopy(current))
			del bucket[doc_id]
			return current


_store: Optional[DocumentStore] = None


def _build_default_store() -> DocumentStore:
	if settings.document_store_backend == "memory":
		return InMemoryDocumentStore()
	from chapterops.infra.postgres_documents import PostgresDocumentStore

	return PostgresDocumentStore()


def get_document_store() -> DocumentStore:
	global _store
	if _store is None:
		_store = _build_default_store()
	return _store


def set_document_store(store: Optional[DocumentStore]) -> None:
	global _store
	_store = store

import sys
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from fakeredis.aioredis import FakeRedis

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from chapterops.infra import postgres
from chapterops.infra.documents import InMemoryDocumentStore, set_document_store
from chapterops.infra.storage import set_receipt_storage
from chapterops.main import app
from chapterops.settings import settings


class RecordingReceiptStorage:
	"""Receipt storage double that remembers deletions and can be told to fail."""

	def __init__(self) -> None:
		self.deleted: list[str] = []
		self.fail = False

	async def delete(self, file_ref: str) -> None:
		if self.fail:
			raise OSError(f"cannot delete {file_ref}")
		self.deleted.append(file_ref)


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	from chapterops.infra.redis import redis_client, set_redis_client
	original = redis_client.client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


@pytest.fixture(autouse=True)
def document_store():
	store = InMemoryDocumentStore()
	set_document_store(store)
	try:
		yield store
	finally:
		set_document_store(None)


@pytest.fixture(autouse=True)
def receipt_storage():
	storage = RecordingReceiptStorage()
	set_receipt_storage(storage)
	try:
		yield storage
	finally:
		set_receipt_storage(None)


@pytest.fixture(autouse=True)
def patch_postgres(monkeypatch):
	async def _noop():
		return None

	monkeypatch.setattr(postgres, "init_pool", _noop)
	monkeypatch.setattr(postgres, "close_pool", _noop)


@pytest.fixture(autouse=True)
def force_test_settings():
	"""API tests authenticate via the X-User-Id header, which is only honoured in dev."""
	original_env = settings.environment
	original_backend = settings.document_store_backend
	settings.environment = "dev"
	settings.document_store_backend = "memory"
	try:
		yield
	finally:
		settings.environment = original_env
		settings.document_store_backend = original_backend


@pytest.fixture()
def seed_member(document_store):
	async def _seed(member_id: str, role: str = "Member", **fields):
		data = {"name": fields.pop("name", member_id.title()), "email": f"{member_id}@example.edu", "role": role}
		data.update(fields)
		return await document_store.create("users", data, doc_id=member_id)

	return _seed


@pytest_asyncio.fixture
async def api_client():
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chapterops import obs
from chapterops.api import ops
from chapterops.api.errors import install_error_handlers
from chapterops.infra import postgres
from chapterops.infra.documents import get_document_store
from chapterops.membership import router as membership_router
from chapterops.settings import settings

_LOG = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
	using_postgres = settings.document_store_backend == "postgres"
	if using_postgres:
		await postgres.init_pool()
		store = get_document_store()
		ensure_schema = getattr(store, "ensure_schema", None)
		if callable(ensure_schema):
			await ensure_schema()
	_LOG.info(
		"chapterops.startup",
		extra={"document_store": settings.document_store_backend, "environment": settings.environment},
	)
	try:
		yield
	finally:
		if using_postgres:
			await postgres.close_pool()


app = FastAPI(title="Chapter Operations API", lifespan=lifespan)
install_error_handlers(app)
obs.init(app)

allow_origins = list(settings.cors_allow_origins)
if not allow_origins:
	allow_origins = ["http://localhost:3000"] if settings.is_dev() else []

# Starlette disallows wildcard '*' with allow_credentials=True.
if "*" in allow_origins:
	allow_origins = ["http://localhost:3000", "http://127.0.0.1:3000"] if settings.is_dev() else []

app.add_middleware(
	CORSMiddleware,
	allow_origins=allow_origins,
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)

app.include_router(ops.router, tags=["ops"])
app.include_router(membership_router)

"""Receipt file storage used for best-effort cleanup of deposit attachments."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional, Protocol

from chapterops.settings import settings


class ReceiptStorage(Protocol):
	async def delete(self, file_ref: str) -> None: ...


class LocalReceiptStorage:
	"""Receipts stored as files below a single root directory.

	File references are paths relative to the root (e.g. `fund_deposits/abc.pdf`).
	"""

	def __init__(self, root: str | Path | None = None) -> None:
		self.root = Path(root or settings.receipts_root).resolve()

	def path_for(self, file_ref: str) -> Path:
		candidate = (self.root / file_ref.lstrip("/")).resolve()
		if candidate != self.root and self.root not in candidate.parents:
			raise ValueError(f"receipt reference escapes storage root: {file_ref}")
		return candidate

	async def delete(self, file_ref: str) -> None:
		path = self.path_for(file_ref)
		await asyncio.to_thread(path.unlink, True)


_storage: Optional[ReceiptStorage] = None


def get_receipt_storage() -> ReceiptStorage:
	global _storage
	if _storage is None:
		_storage = LocalReceiptStorage()
	return _storage


def set_receipt_storage(storage: Optional[ReceiptStorage]) -> None:
	global _storage
	_storage = storage

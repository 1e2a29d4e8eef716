"""Publishes finalized membership records to the events stream."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel

from chapterops.infra.redis import redis_client
from chapterops.membership.domain.exceptions import DependencyFailure
from chapterops.membership.domain.secondary import dependency
from chapterops.obs import metrics as obs_metrics
from chapterops.settings import settings

INVITE_ISSUED = "invite.issued"
DEPOSIT_SUBMITTED = "deposit.submitted"
DEPOSIT_VERIFIED = "deposit.verified"
DEPOSIT_REJECTED = "deposit.rejected"


def _now_iso() -> str:
	return datetime.now(timezone.utc).isoformat()


def build_payload(event: str, record: BaseModel) -> dict[str, str]:
	data: dict[str, Any] = record.model_dump(mode="json")
	return {
		"event": event,
		"ts": _now_iso(),
		"id": str(data.get("id", "")),
		"data": json.dumps(data, separators=(",", ":")),
	}


class EventPublisher:
	"""Writes one entry per event to a capped Redis stream.

	An external notifier consumes the stream; nothing here waits for it.
	"""

	def __init__(self, *, stream_key: str | None = None, maxlen: int | None = None) -> None:
		self.stream_key = stream_key or settings.events_stream_key
		self.maxlen = maxlen or settings.events_stream_maxlen

	async def publish(self, event: str, record: BaseModel) -> None:
		payload = build_payload(event, record)
		try:
			async with dependency("publish_event"):
				await redis_client.xadd(self.stream_key, payload, maxlen=self.maxlen, approximate=True)
		except DependencyFailure:
			obs_metrics.inc_event_published(event, "error")
			raise
		obs_metrics.inc_event_published(event, "ok")


__all__ = [
	"DEPOSIT_REJECTED",
	"DEPOSIT_SUBMITTED",
	"DEPOSIT_VERIFIED",
	"EventPublisher",
	"INVITE_ISSUED",
	"build_payload",
]

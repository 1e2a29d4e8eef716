"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

REQUEST_COUNTER = Counter(
	"chapterops_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"chapterops_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

PERMISSION_DENIALS = Counter(
	"chapterops_permission_denials_total",
	"Operations rejected by the permission evaluator",
	["action", "reason"],
)

DEPOSIT_TRANSITIONS = Counter(
	"chapterops_deposit_transitions_total",
	"Fund deposit workflow transitions",
	["action"],
)

DEPOSIT_PRECONDITION_FAILURES = Counter(
	"chapterops_deposit_precondition_failures_total",
	"Deposit operations rejected by a state guard",
	["action"],
)

MEMBER_MUTATIONS = Counter(
	"chapterops_member_mutations_total",
	"Member record writes",
	["action"],
)

INVITES_ISSUED = Counter(
	"chapterops_invites_issued_total",
	"Invitations created",
	["role"],
)

SECONDARY_WRITE_FAILURES = Counter(
	"chapterops_secondary_write_failures_total",
	"Best-effort secondary writes that failed",
	["step"],
)

EVENTS_PUBLISHED = Counter(
	"chapterops_events_published_total",
	"Domain events published to the notifier stream",
	["event", "result"],
)

POSTGRES_UP = Gauge(
	"chapterops_postgres_up",
	"Postgres readiness (1 ok, 0 failing)",
)

REDIS_UP = Gauge(
	"chapterops_redis_up",
	"Redis readiness (1 ok, 0 failing)",
)


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def inc_permission_denied(action: str, reason: str) -> None:
	PERMISSION_DENIALS.labels(action=action, reason=reason).inc()


def inc_deposit_transition(action: str) -> None:
	DEPOSIT_TRANSITIONS.labels(action=action).inc()


def inc_deposit_precondition_failure(action: str) -> None:
	DEPOSIT_PRECONDITION_FAILURES.labels(action=action).inc()


def inc_member_mutation(action: str) -> None:
	MEMBER_MUTATIONS.labels(action=action).inc()


def inc_invite_issued(role: str) -> None:
	INVITES_ISSUED.labels(role=role).inc()


def inc_secondary_write_failure(step: str) -> None:
	SECONDARY_WRITE_FAILURES.labels(step=step).inc()


def inc_event_published(event: str, result: str) -> None:
	EVENTS_PUBLISHED.labels(event=event, result=result).inc()


def mark_postgres(ok: bool) -> None:
	POSTGRES_UP.set(1 if ok else 0)


def mark_redis(ok: bool) -> None:
	REDIS_UP.set(1 if ok else 0)

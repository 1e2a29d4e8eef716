"""Custom exceptions for membership services."""

from __future__ import annotations

from typing import Literal

from fastapi import status

if hasattr(status, "HTTP_422_UNPROCESSABLE_CONTENT"):
	_HTTP_422 = status.HTTP_422_UNPROCESSABLE_CONTENT
else:  # pragma: no cover - older Starlette builds
	_HTTP_422 = status.HTTP_422_UNPROCESSABLE_ENTITY

DenialKind = Literal["role", "ownership"]


class MembershipError(Exception):
	"""Base class for membership related errors."""

	status_code: int = status.HTTP_400_BAD_REQUEST
	detail: str = "membership_error"

	def __init__(self, detail: str | None = None) -> None:
		super().__init__(detail or self.detail)
		if detail:
			self.detail = detail


class NotFoundError(MembershipError):
	"""Referenced record is absent."""

	status_code = status.HTTP_404_NOT_FOUND
	detail = "not_found"


class PermissionDenied(MembershipError):
	"""Raised when a role or ownership check fails.

	`kind` tells callers whether the actor's role or their relationship to the
	record was the problem, so denials can be worded precisely.
	"""

	status_code = status.HTTP_403_FORBIDDEN
	detail = "forbidden"

	def __init__(self, detail: str | None = None, *, kind: DenialKind = "role") -> None:
		super().__init__(detail)
		self.kind: DenialKind = kind


class InvalidInput(MembershipError):
	"""Missing or malformed field not caught by schema validation."""

	status_code = _HTTP_422
	detail = "invalid_input"


class PreconditionFailed(MembershipError):
	"""A state-machine guard rejected the operation."""

	status_code = status.HTTP_409_CONFLICT
	detail = "precondition_failed"


class DependencyFailure(MembershipError):
	"""A best-effort secondary write failed."""

	status_code = status.HTTP_502_BAD_GATEWAY
	detail = "dependency_failure"

	def __init__(self, detail: str | None = None, *, step: str = "unknown") -> None:
		super().__init__(detail)
		self.step = step

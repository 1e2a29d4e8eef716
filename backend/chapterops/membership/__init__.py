"""Membership administration and fund-deposit review."""

from chapterops.membership.api import router

__all__ = ["router"]

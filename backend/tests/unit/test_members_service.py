from __future__ import annotations

from datetime import datetime, timezone

import pytest
import pytest_asyncio

from chapterops.membership.domain import models
from chapterops.membership.domain.exceptions import DependencyFailure, NotFoundError, PermissionDenied
from chapterops.membership.domain.members_service import MembersService, calculate_stats
from chapterops.membership.domain.roles import Role
from chapterops.membership.schemas import dto

ADMIN = models.Principal(id="admin-1", role=Role.ADMINISTRATOR, name="Ada")
EXEC = models.Principal(id="exec-1", role=Role.EXECUTIVE_OFFICER, name="Eli")
MEMBER = models.Principal(id="member-1", role=Role.MEMBER, name="Mo")


class _FailingProfiles:
	def __init__(self) -> None:
		self.calls: list[str] = []

	async def mirror(self, member):
		self.calls.append(f"mirror:{member.id}")
		raise DependencyFailure("profile_sync_failed", step="profile_sync")

	async def mirror_position(self, member):
		self.calls.append(f"mirror_position:{member.id}")
		raise DependencyFailure("profile_sync_failed", step="profile_sync")

	async def remove(self, member_id):
		self.calls.append(f"remove:{member_id}")
		raise DependencyFailure("profile_delete_failed", step="profile_delete")


@pytest_asyncio.fixture
async def roster(seed_member):
	await seed_member("admin-1", "Administrator", name="Ada")
	await seed_member("exec-1", "Executive Officer", name="Eli", position="Treasurer")
	await seed_member("exec-2", "Executive Officer", name="Eve", position="Secretary")
	await seed_member("member-1", "Member", name="Mo", points=10)
	await seed_member("officer-1", "General Officer", name="Gia", status="inactive")


@pytest.mark.asyncio
async def test_executive_cannot_change_own_role(roster, document_store):
	service = MembersService()

	with pytest.raises(PermissionDenied) as excinfo:
		await service.update_member(EXEC, "exec-1", dto.MemberUpdateRequest(role="Member"))

	assert excinfo.value.detail == "cannot_edit_own_role"
	stored = await document_store.get("users", "exec-1")
	assert stored["role"] == "Executive Officer"
	assert "last_updated_by" not in stored


@pytest.mark.asyncio
async def test_executive_cannot_edit_administrator(roster):
	service = MembersService()

	with pytest.raises(PermissionDenied) as excinfo:
		await service.update_member(EXEC, "admin-1", dto.MemberUpdateRequest(position="Advisor"))

	assert excinfo.value.detail == "cannot_edit_administrator"


@pytest.mark.asyncio
async def test_executive_cannot_promote_to_administrator(roster):
	service = MembersService()

	with pytest.raises(PermissionDenied) as excinfo:
		await service.update_member(EXEC, "member-1", dto.MemberUpdateRequest(role="Administrator"))

	assert excinfo.value.detail == "role_not_assignable"


@pytest.mark.asyncio
async def test_member_cannot_edit_anyone(roster):
	service = MembersService()

	with pytest.raises(PermissionDenied) as excinfo:
		await service.update_member(MEMBER, "member-1", dto.MemberUpdateRequest(name="Momo"))

	assert excinfo.value.detail == "management_access_required"


@pytest.mark.asyncio
async def test_executive_updates_member_but_points_are_dropped(roster, document_store):
	service = MembersService()

	updated = await service.update_member(
		EXEC,
		"member-1",
		dto.MemberUpdateRequest(role="General Officer", position="Webmaster", points=500),
	)

	assert updated.role is Role.GENERAL_OFFICER
	assert updated.position == "Webmaster"
	assert updated.points == 10
	assert updated.last_updated_by == "exec-1"
	assert updated.last_updated is not None
	assert await document_store.get("public_profiles", "member-1") is None


@pytest.mark.asyncio
async def test_administrator_points_update_mirrors_public_profile(roster, document_store):
	service = MembersService()

	updated = await service.update_member(ADMIN, "member-1", dto.MemberUpdateRequest(points=-5))

	assert updated.points == -5
	profile = await document_store.get("public_profiles", "member-1")
	assert profile["points"] == -5
	assert profile["name"] == "Mo"
	assert profile["user_id"] == "member-1"


@pytest.mark.asyncio
async def test_profile_failure_does_not_roll_back_update(roster, document_store):
	profiles = _FailingProfiles()
	service = MembersService(profiles=profiles)

	updated = await service.update_member(ADMIN, "member-1", dto.MemberUpdateRequest(points=42))

	assert updated.points == 42
	assert profiles.calls == ["mirror:member-1"]
	assert (await document_store.get("users", "member-1"))["points"] == 42


@pytest.mark.asyncio
async def test_update_missing_member_is_not_found(roster):
	service = MembersService()

	with pytest.raises(NotFoundError) as excinfo:
		await service.update_member(ADMIN, "ghost", dto.MemberUpdateRequest(name="Ghost"))

	assert excinfo.value.detail == "member_not_found"


@pytest.mark.asyncio
async def test_delete_member_rules(roster, document_store):
	service = MembersService()
	await document_store.upsert("public_profiles", "member-1", {"name": "Mo", "points": 10})

	with pytest.raises(PermissionDenied) as excinfo:
		await service.delete_member(EXEC, "exec-2")
	assert excinfo.value.detail == "administrator_required"

	await service.delete_member(EXEC, "member-1")
	assert await document_store.get("users", "member-1") is None
	assert await document_store.get("public_profiles", "member-1") is None

	await service.delete_member(ADMIN, "exec-2")
	assert await document_store.get("users", "exec-2") is None


@pytest.mark.asyncio
async def test_delete_survives_profile_failure(roster, document_store):
	profiles = _FailingProfiles()
	service = MembersService(profiles=profiles)

	await service.delete_member(ADMIN, "member-1")

	assert await document_store.get("users", "member-1") is None
	assert profiles.calls == ["remove:member-1"]


@pytest.mark.asyncio
async def test_add_existing_member_reactivates_and_sets_position(roster, document_store):
	service = MembersService()

	promoted = await service.add_existing_member(
		EXEC,
		"officer-1",
		dto.PromoteRequest(role="General Officer", position="Outreach Chair"),
	)

	assert promoted.status == "active"
	assert promoted.position == "Outreach Chair"
	assert promoted.capabilities is not None
	profile = await document_store.get("public_profiles", "officer-1")
	assert profile["position"] == "Outreach Chair"


@pytest.mark.asyncio
async def test_list_members_and_stats_require_management(roster):
	service = MembersService()

	with pytest.raises(PermissionDenied):
		await service.list_members(MEMBER)
	with pytest.raises(PermissionDenied):
		await service.member_stats(MEMBER)

	members = await service.list_members(EXEC)
	assert [member.name for member in members] == ["Ada", "Eli", "Eve", "Gia", "Mo"]
	admin_row = members[0]
	assert admin_row.capabilities.can_edit_role is False
	self_row = members[1]
	assert self_row.capabilities.available_roles == [Role.EXECUTIVE_OFFICER]

	stats = await service.member_stats(ADMIN)
	assert stats.total_members == 5
	assert stats.active_members == 4
	assert stats.officers == 3


def test_calculate_stats_counts_new_members_this_month():
	now = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)
	members = [
		models.MemberRecord(id="a", join_date=datetime(2026, 10, 1, tzinfo=timezone.utc)),
		models.MemberRecord(id="b", join_date=datetime(2026, 9, 30, 23, 59, tzinfo=timezone.utc)),
		models.MemberRecord(id="c", join_date=datetime(2026, 10, 16)),
		models.MemberRecord(id="d", status="suspended"),
	]

	stats = calculate_stats(members, now)

	assert stats.total_members == 4
	assert stats.active_members == 3
	assert stats.new_this_month == 2
	assert stats.officers == 0


@pytest.mark.asyncio
async def test_permissions_summary():
	service = MembersService()

	summary = await service.permissions_for(EXEC)

	assert summary.has_management_access is True
	assert summary.is_administrator is False
	assert summary.can_review_deposits is False
	assert Role.ADMINISTRATOR not in summary.available_roles
	assert Role.EXECUTIVE_OFFICER not in summary.invitable_roles



@pytest.mark.asyncio
async def test_promotion_creates_profile_with_current_points(roster, document_store):
	service = MembersService()
	assert await document_store.get("public_profiles", "member-1") is None

	await service.add_existing_member(
		ADMIN,
		"member-1",
		dto.PromoteRequest(role="General Officer", position="Treasurer"),
	)

	profile = await service.repo.get_public_profile("member-1")
	assert profile is not None
	assert profile.position == "Treasurer"
	assert profile.points == 10


@pytest.mark.asyncio
async def test_member_delete_is_denied_before_lookup(roster):
	service = MembersService()

	with pytest.raises(PermissionDenied) as excinfo:
		await service.delete_member(MEMBER, "ghost")

	assert excinfo.value.detail == "management_access_required"


@pytest.mark.asyncio
async def test_explicit_null_clears_optional_fields(roster, document_store):
	service = MembersService()
	await document_store.update("users", "member-1", {"major": "Physics", "graduation_year": 2027})

	updated = await service.update_member(
		EXEC,
		"member-1",
		dto.MemberUpdateRequest(position=None, graduation_year=None, name=None),
	)

	assert updated.graduation_year is None
	assert updated.position is None
	assert updated.major == "Physics"
	assert updated.name == "Mo"
	stored = await document_store.get("users", "member-1")
	assert stored["graduation_year"] is None

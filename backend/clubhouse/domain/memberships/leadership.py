"""Leadership capability lookup for club-scoped authorization."""

from __future__ import annotations

from typing import Protocol
from uuid import UUID

from clubhouse.domain.memberships import repo as repo_module
from clubhouse.domain.memberships.exceptions import ErrorCode, MembershipError


class LeadershipLookup(Protocol):
	async def is_leader(self, user_id: UUID, club_id: UUID) -> bool: ...


class LeadershipDirectory:
	"""Answers "is user X a leader of club Y" from the registrations table.

	Leaders are active members (approved and paid) whose club role is president
	or vice-president.
	"""

	def __init__(self, repository: repo_module.RegistrationsRepository | None = None) -> None:
		self.repo = repository or repo_module.RegistrationsRepository()

	async def is_leader(self, user_id: UUID, club_id: UUID) -> bool:
		return await self.repo.is_leader(user_id, club_id)


async def assert_leader(leadership: LeadershipLookup, user_id: UUID, club_id: UUID) -> None:
	if not await leadership.is_leader(user_id, club_id):
		raise MembershipError(ErrorCode.NOT_CLUB_LEADER)

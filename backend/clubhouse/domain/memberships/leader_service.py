"""Leader review, manual payment confirmation and roster management."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional
from uuid import UUID

from clubhouse.domain.memberships import lifecycle, models, notifications, repo as repo_module
from clubhouse.domain.memberships.exceptions import ErrorCode, MembershipError
from clubhouse.domain.memberships.leadership import LeadershipDirectory, LeadershipLookup, assert_leader
from clubhouse.domain.memberships.schemas import ApproveRequest, ChangeRoleRequest, ConfirmPaymentRequest
from clubhouse.domain.memberships.service import RegistrationsService, actor_id, utc_now
from clubhouse.infra.auth import AuthenticatedUser
from clubhouse.infra.postgres import get_pool
from clubhouse.obs import metrics as obs_metrics

LOGGER = logging.getLogger(__name__)


class LeaderRegistrationsService:
	"""Club-scoped operations available to presidents and vice-presidents."""

	def __init__(
		self,
		*,
		repository: repo_module.RegistrationsRepository | None = None,
		leadership: LeadershipLookup | None = None,
		clock: Callable[[], datetime] | None = None,
	) -> None:
		self.repo = repository or repo_module.RegistrationsRepository()
		self.leadership = leadership or LeadershipDirectory(self.repo)
		self._now = clock or utc_now
		self._members = RegistrationsService(repository=self.repo, leadership=self.leadership, clock=self._now)

	async def list_club(
		self,
		user: AuthenticatedUser,
		club_id: UUID,
		*,
		status: Optional[models.RegistrationStatus] = None,
	) -> list[models.Registration]:
		await assert_leader(self.leadership, actor_id(user), club_id)
		registrations = await self.repo.list_for_club(club_id, status=status, lapsed_before=self._now())
		refreshed = await self._members.refresh_expired(registrations)
		if status is None:
			return refreshed
		return [item for item in refreshed if item.status == status]

	async def review(self, user: AuthenticatedUser, payload: ApproveRequest) -> models.Registration:
		reviewer_id = actor_id(user)
		now = self._now()
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				registration = await self._load_for_leader(conn, reviewer_id, payload.subscription_id)
				reviewed = lifecycle.review(registration, payload.status, reviewer_id, now)
				reviewed = await self.repo.save_registration(conn=conn, registration=reviewed)

		decision = reviewed.status.value
		obs_metrics.inc_registration_reviewed(decision)
		LOGGER.info(
			"registration_reviewed",
			extra={"registration_id": str(reviewed.id), "decision": decision, "reviewer_id": str(reviewer_id)},
		)
		await notifications.publish(f"registration.{decision.lower()}", reviewed, actor_id=user.id)
		return reviewed

	async def confirm_payment(self, user: AuthenticatedUser, payload: ConfirmPaymentRequest) -> models.Registration:
		leader_id = actor_id(user)
		now = self._now()
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				registration = await self._load_for_leader(conn, leader_id, payload.subscription_id)
				package = await self.repo.get_package(registration.package_id, conn=conn)
				if package is None:
					raise MembershipError(ErrorCode.PACKAGE_NOT_FOUND)
				paid = lifecycle.confirm_manual_payment(
					registration,
					package,
					method=payload.payment_method,
					reference=payload.reference,
					now=now,
				)
				paid = await self.repo.save_registration(conn=conn, registration=paid)
				await self.repo.insert_payment_record(conn=conn, registration=paid, amount=package.price)

		obs_metrics.inc_payment_settled(paid.payment_method or lifecycle.DEFAULT_MANUAL_METHOD)
		LOGGER.info(
			"registration_payment_confirmed",
			extra={"registration_id": str(paid.id), "leader_id": str(leader_id), "method": paid.payment_method},
		)
		await notifications.publish("registration.paid", paid, actor_id=user.id)
		return paid

	async def change_role(
		self,
		user: AuthenticatedUser,
		registration_id: UUID,
		payload: ChangeRoleRequest,
	) -> models.Registration:
		leader_id = actor_id(user)
		now = self._now()
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				registration = await self._load_for_leader(conn, leader_id, registration_id)
				registration = lifecycle.expire_if_lapsed(registration, now)
				updated = lifecycle.change_role(registration, payload.club_role, now)
				updated = await self.repo.save_registration(conn=conn, registration=updated)

		obs_metrics.inc_registration_transition("change_role")
		LOGGER.info(
			"registration_role_changed",
			extra={"registration_id": str(updated.id), "club_role": updated.club_role.value},
		)
		return updated

	async def remove_member(self, user: AuthenticatedUser, registration_id: UUID) -> models.Registration:
		leader_id = actor_id(user)
		now = self._now()
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				registration = await self._load_for_leader(conn, leader_id, registration_id)
				removed = lifecycle.remove_member(registration, now)
				removed = await self.repo.save_registration(conn=conn, registration=removed)

		obs_metrics.inc_registration_transition("remove")
		LOGGER.info("registration_removed", extra={"registration_id": str(removed.id), "leader_id": str(leader_id)})
		await notifications.publish("registration.removed", removed, actor_id=user.id)
		return removed

	async def list_club_payments(
		self,
		user: AuthenticatedUser,
		club_id: UUID,
		*,
		limit: int,
		offset: int = 0,
	) -> list[models.PaymentRecord]:
		await assert_leader(self.leadership, actor_id(user), club_id)
		return await self.repo.list_payments(club_id=club_id, limit=limit, offset=offset)

	async def _load_for_leader(self, conn, leader_id: UUID, registration_id: UUID) -> models.Registration:
		registration = await self.repo.get_registration(registration_id, conn=conn, for_update=True)
		if registration is None:
			raise MembershipError(ErrorCode.REGISTER_NOT_FOUND)
		await assert_leader(self.leadership, leader_id, registration.club_id)
		return registration

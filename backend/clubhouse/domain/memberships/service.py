"""Member-facing registration flows and the paid transition."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Iterable
from uuid import UUID

from clubhouse.domain.memberships import lifecycle, models, notifications, repo as repo_module
from clubhouse.domain.memberships.exceptions import ErrorCode, MembershipError
from clubhouse.domain.memberships.leadership import LeadershipDirectory, LeadershipLookup
from clubhouse.domain.memberships.schemas import RegistrationCreateRequest, RenewRequest
from clubhouse.infra.auth import AuthenticatedUser
from clubhouse.infra.postgres import get_pool
from clubhouse.obs import metrics as obs_metrics

LOGGER = logging.getLogger(__name__)


def utc_now() -> datetime:
	return datetime.now(timezone.utc)


def actor_id(user: AuthenticatedUser) -> UUID:
	try:
		return UUID(str(user.id))
	except ValueError as exc:
		raise MembershipError(ErrorCode.UNAUTHENTICATED, "user id is not a valid uuid") from exc


class RegistrationsService:
	"""Create, read, cancel, renew and leave flows for the acting member."""

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

	async def create(self, user: AuthenticatedUser, payload: RegistrationCreateRequest) -> models.Registration:
		user_id = actor_id(user)
		package = await self.repo.get_package(payload.package_id)
		if package is None:
			raise MembershipError(ErrorCode.PACKAGE_NOT_FOUND)
		if not package.is_active:
			raise MembershipError(ErrorCode.PACKAGE_NOT_ACTIVE)
		join_reason = payload.join_reason.strip()
		if not join_reason:
			raise MembershipError(ErrorCode.INVALID_REQUEST, "join reason is required")

		now = self._now()
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				existing = await self.repo.get_by_user_and_club(user_id, package.club_id, conn=conn, for_update=True)
				if existing is not None:
					existing = lifecycle.expire_if_lapsed(existing, now)
				if lifecycle.ensure_can_apply(existing):
					assert existing is not None
					registration = await self.repo.save_registration(
						conn=conn,
						registration=lifecycle.reapply(existing, package, join_reason, now),
					)
					mode = "reapply"
				else:
					registration = await self.repo.insert_registration(
						conn=conn,
						user_id=user_id,
						package=package,
						join_reason=join_reason,
					)
					mode = "new"

		obs_metrics.inc_registration_created(mode)
		LOGGER.info(
			"registration_created",
			extra={"registration_id": str(registration.id), "club_id": str(registration.club_id), "mode": mode},
		)
		await notifications.publish("registration.created", registration, actor_id=user.id)
		return registration

	async def get(self, user: AuthenticatedUser, registration_id: UUID) -> models.Registration:
		user_id = actor_id(user)
		registration = await self.repo.get_registration(registration_id)
		if registration is None:
			raise MembershipError(ErrorCode.REGISTER_NOT_FOUND)
		if registration.user_id != user_id and not await self.leadership.is_leader(user_id, registration.club_id):
			raise MembershipError(ErrorCode.UNAUTHORIZED)
		refreshed = await self.refresh_expired([registration])
		return refreshed[0]

	async def list_mine(self, user: AuthenticatedUser) -> list[models.Registration]:
		registrations = await self.repo.list_for_user(actor_id(user))
		return await self.refresh_expired(registrations)

	async def cancel(self, user: AuthenticatedUser, registration_id: UUID) -> None:
		user_id = actor_id(user)
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				registration = await self.repo.get_registration(registration_id, conn=conn, for_update=True)
				if registration is None:
					raise MembershipError(ErrorCode.REGISTER_NOT_FOUND)
				lifecycle.ensure_cancellable(registration, user_id)
				await self.repo.delete_registration(conn=conn, registration_id=registration_id)
		obs_metrics.inc_registration_transition("cancel")
		LOGGER.info("registration_cancelled", extra={"registration_id": str(registration_id)})

	async def renew(
		self,
		user: AuthenticatedUser,
		registration_id: UUID,
		payload: RenewRequest,
	) -> models.Registration:
		user_id = actor_id(user)
		new_package: models.MembershipPackage | None = None
		if payload.package_id is not None:
			new_package = await self.repo.get_package(payload.package_id)
			if new_package is None:
				raise MembershipError(ErrorCode.PACKAGE_NOT_FOUND)

		now = self._now()
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				registration = await self.repo.get_registration(registration_id, conn=conn, for_update=True)
				if registration is None:
					raise MembershipError(ErrorCode.REGISTER_NOT_FOUND)
				registration = lifecycle.expire_if_lapsed(registration, now)
				renewed = lifecycle.renew(registration, user_id, new_package, now)
				renewed = await self.repo.save_registration(conn=conn, registration=renewed)

		obs_metrics.inc_registration_transition("renew")
		LOGGER.info("registration_renewed", extra={"registration_id": str(registration_id)})
		await notifications.publish("registration.renewed", renewed, actor_id=user.id)
		return renewed

	async def leave(self, user: AuthenticatedUser, club_id: UUID) -> models.Registration:
		user_id = actor_id(user)
		now = self._now()
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				registration = await self.repo.get_by_user_and_club(user_id, club_id, conn=conn, for_update=True)
				if registration is None:
					raise MembershipError(ErrorCode.NOT_CLUB_MEMBER)
				registration = lifecycle.expire_if_lapsed(registration, now)
				left = lifecycle.leave(registration, now)
				left = await self.repo.save_registration(conn=conn, registration=left)

		obs_metrics.inc_registration_transition("leave")
		LOGGER.info("registration_left", extra={"registration_id": str(left.id), "club_id": str(club_id)})
		await notifications.publish("registration.left", left, actor_id=user.id)
		return left

	async def list_my_payments(
		self,
		user: AuthenticatedUser,
		*,
		limit: int,
		offset: int = 0,
	) -> list[models.PaymentRecord]:
		return await self.repo.list_payments(user_id=actor_id(user), limit=limit, offset=offset)

	async def apply_paid_transition(
		self,
		*,
		order_code: int,
		observed_amount: int,
		reference: str | None,
	) -> tuple[models.Registration, bool]:
		"""Settle the registration correlated with ``order_code``.

		Only called after the gateway signature has been verified. Returns the
		registration and whether this call changed it.
		"""
		now = self._now()
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				registration = await self.repo.get_by_order_code(order_code, conn=conn, for_update=True)
				if registration is None:
					raise MembershipError(ErrorCode.PAYMENT_NOT_FOUND, f"no registration for order {order_code}")
				package = await self.repo.get_package(registration.package_id, conn=conn)
				if package is None:
					raise MembershipError(ErrorCode.PACKAGE_NOT_FOUND)
				updated, changed = lifecycle.apply_paid(
					registration,
					package,
					observed_amount=observed_amount,
					reference=reference,
					now=now,
				)
				if changed:
					updated = await self.repo.save_registration(conn=conn, registration=updated)
					await self.repo.insert_payment_record(conn=conn, registration=updated, amount=package.price)

		if changed:
			obs_metrics.inc_payment_settled(lifecycle.GATEWAY_PAYMENT_METHOD)
			LOGGER.info(
				"registration_paid",
				extra={"registration_id": str(updated.id), "order_code": order_code},
			)
			await notifications.publish("registration.paid", updated)
		return updated, changed

	async def refresh_expired(self, registrations: Iterable[models.Registration]) -> list[models.Registration]:
		"""Persist the Expired status for any lapsed memberships in ``registrations``."""
		items = list(registrations)
		now = self._now()
		lapsed = [item for item in items if lifecycle.is_lapsed(item, now)]
		if not lapsed:
			return items
		refreshed: dict[UUID, models.Registration] = {}
		pool = await get_pool()
		async with pool.acquire() as conn:
			for item in lapsed:
				async with conn.transaction():
					current = await self.repo.get_registration(item.id, conn=conn, for_update=True)
					if current is None:
						continue
					expired = lifecycle.expire_if_lapsed(current, now)
					if expired is not current:
						expired = await self.repo.save_registration(conn=conn, registration=expired)
					refreshed[item.id] = expired
		obs_metrics.inc_registrations_expired("read", len(refreshed))
		return [refreshed.get(item.id, item) for item in items]

"""Payment link issuance and return-page status lookups."""

from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Callable, Optional
from uuid import UUID

from clubhouse.domain.memberships import lifecycle, models, repo as repo_module
from clubhouse.domain.memberships.exceptions import ErrorCode, MembershipError
from clubhouse.domain.memberships.service import actor_id, utc_now
from clubhouse.domain.payments import order_codes
from clubhouse.domain.payments.gateway import PayOSClient
from clubhouse.domain.payments.schemas import (
	ConfirmWebhookResponse,
	PaymentItem,
	PaymentLinkResponse,
	PaymentReturnStatus,
)
from clubhouse.infra.auth import AuthenticatedUser
from clubhouse.infra.postgres import get_pool
from clubhouse.obs import metrics as obs_metrics
from clubhouse.settings import settings

LOGGER = logging.getLogger(__name__)

DESCRIPTION_PREFIX = "Phi CLB"


class PaymentLinksService:
	"""Issues PayOS payment links for approved, unpaid registrations.

	The row lock is held only while checking and writing; the outbound gateway
	call runs between two short transactions and the guard is re-checked before
	the link is attached.
	"""

	def __init__(
		self,
		*,
		repository: repo_module.RegistrationsRepository | None = None,
		gateway: PayOSClient | None = None,
		clock: Callable[[], datetime] | None = None,
	) -> None:
		self.repo = repository or repo_module.RegistrationsRepository()
		self.gateway = gateway or PayOSClient()
		self._now = clock or utc_now

	async def create_link(self, user: AuthenticatedUser, registration_id: UUID) -> PaymentLinkResponse:
		user_id = actor_id(user)
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				registration, package, amount = await self._guarded(conn, registration_id, user_id)
		if lifecycle.has_payment_link(registration):
			obs_metrics.inc_payment_link("reused")
			return self._existing_link(registration, amount)

		order_code = await order_codes.allocate_order_code(self.repo.order_code_exists)
		return_url, cancel_url = self._return_urls(registration.id)
		expired_at: Optional[int] = None
		if settings.payos_link_ttl_minutes > 0:
			expired_at = int(time.time()) + settings.payos_link_ttl_minutes * 60
		try:
			link = await self.gateway.create_payment_link(
				order_code=order_code,
				amount=amount,
				description=f"{DESCRIPTION_PREFIX} {package.name}",
				return_url=return_url,
				cancel_url=cancel_url,
				items=[PaymentItem(name=package.name, quantity=1, price=amount)],
				expired_at=expired_at,
			)
		except MembershipError as exc:
			obs_metrics.inc_payment_link("failed")
			LOGGER.error(
				"payment_link_failed",
				extra={"registration_id": str(registration_id), "order_code": order_code, "error": exc.detail},
			)
			raise
		assert link.payment_link_id is not None and link.checkout_url is not None

		async with pool.acquire() as conn:
			async with conn.transaction():
				registration, package, amount = await self._guarded(conn, registration_id, user_id)
				if lifecycle.has_payment_link(registration):
					# A concurrent request attached its link first.
					obs_metrics.inc_payment_link("reused")
					return self._existing_link(registration, amount)
				updated = lifecycle.attach_payment_link(registration, order_code, link.payment_link_id, self._now())
				await self.repo.save_registration(conn=conn, registration=updated)

		obs_metrics.inc_payment_link("created")
		LOGGER.info(
			"payment_link_created",
			extra={"registration_id": str(registration_id), "order_code": order_code, "amount": amount},
		)
		return PaymentLinkResponse(
			registration_id=registration_id,
			checkout_url=link.checkout_url,
			qr_code=link.qr_code,
			order_code=order_code,
			payment_link_id=link.payment_link_id,
			amount=amount,
		)

	async def confirm_webhook(self, url: str) -> ConfirmWebhookResponse:
		data = await self.gateway.confirm_webhook_url(url)
		LOGGER.info("payos_webhook_confirmed", extra={"webhook_url": url})
		return ConfirmWebhookResponse(
			webhook_url=data.get("webhookUrl") or url,
			account_name=data.get("accountName"),
			account_number=data.get("accountNumber"),
			name=data.get("name"),
			short_name=data.get("shortName"),
		)

	async def return_status(
		self,
		*,
		order_code: Optional[int],
		registration_id: Optional[UUID],
		status: Optional[str],
		code: Optional[str],
		cancel: Optional[bool],
	) -> PaymentReturnStatus:
		registration: models.Registration | None = None
		if order_code is not None:
			registration = await self.repo.get_by_order_code(order_code)
		if registration is None and registration_id is not None:
			registration = await self.repo.get_registration(registration_id)
		if registration is None:
			return PaymentReturnStatus(result="not_found", message="Payment information not found")
		if cancel:
			return PaymentReturnStatus(
				result="cancelled",
				message="Payment was cancelled. You can pay again later.",
				registration_id=registration.id,
			)
		if registration.is_paid:
			return PaymentReturnStatus(
				result="paid",
				message="Payment received. Your membership is active.",
				registration_id=registration.id,
			)
		if status in ("PAID", "PENDING", "PROCESSING") or code == "00":
			return PaymentReturnStatus(
				result="pending",
				message="Payment is being processed.",
				registration_id=registration.id,
			)
		return PaymentReturnStatus(
			result="unknown",
			message=f"Payment status: {status or 'unknown'}",
			registration_id=registration.id,
		)

	async def _guarded(
		self,
		conn,
		registration_id: UUID,
		user_id: UUID,
	) -> tuple[models.Registration, models.MembershipPackage, int]:
		registration = await self.repo.get_registration(registration_id, conn=conn, for_update=True)
		if registration is None:
			raise MembershipError(ErrorCode.REGISTER_NOT_FOUND)
		lifecycle.ensure_owner(registration, user_id)
		package = await self.repo.get_package(registration.package_id, conn=conn)
		if package is None:
			raise MembershipError(ErrorCode.PACKAGE_NOT_FOUND)
		amount = lifecycle.guard_payment_link(registration, package)
		return registration, package, amount

	def _existing_link(self, registration: models.Registration, amount: int) -> PaymentLinkResponse:
		assert registration.payos_order_code is not None and registration.payos_payment_link_id
		return PaymentLinkResponse(
			registration_id=registration.id,
			checkout_url=f"{settings.payos_checkout_url.rstrip('/')}/{registration.payos_payment_link_id}",
			qr_code=None,
			order_code=registration.payos_order_code,
			payment_link_id=registration.payos_payment_link_id,
			amount=amount,
		)

	def _return_urls(self, registration_id: UUID) -> tuple[str, str]:
		base = settings.frontend_base_url.rstrip("/")
		return (
			f"{base}/payment/success?subscriptionId={registration_id}",
			f"{base}/payment/cancel?subscriptionId={registration_id}",
		)

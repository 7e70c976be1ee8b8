"""PayOS webhook processing.

Pipeline: parse, verify signature, check the gateway result code, then apply
the paid transition. Every outcome is acknowledged to PayOS; failures are
reported through the returned ``WebhookResult`` rather than an HTTP error so
the gateway does not retry deliveries that can never succeed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from clubhouse.domain.memberships.exceptions import ErrorCode, MembershipError
from clubhouse.domain.memberships.service import RegistrationsService
from clubhouse.domain.payments.gateway import SUCCESS_CODE
from clubhouse.domain.payments.schemas import WebhookPayload
from clubhouse.domain.payments.signature import SignatureCodec
from clubhouse.obs import metrics as obs_metrics
from clubhouse.settings import settings

LOGGER = logging.getLogger(__name__)

# Payments that must never happen: forged amounts or money for an inactive registration.
_SECURITY_ERRORS = frozenset({ErrorCode.INVALID_PAYMENT_SIGNATURE, ErrorCode.INVALID_APPLICATION_STATUS})


class WebhookOutcome(str, Enum):
	PROBE = "probe"
	PROCESSED = "processed"
	DUPLICATE = "duplicate"
	PAYMENT_FAILED = "payment_failed"
	REJECTED = "rejected"


@dataclass(slots=True)
class WebhookResult:
	outcome: WebhookOutcome
	message: str
	error: Optional[ErrorCode] = None

	@property
	def success(self) -> bool:
		return self.error is None


class WebhookHandler:
	def __init__(
		self,
		*,
		registrations: RegistrationsService | None = None,
		codec: SignatureCodec | None = None,
	) -> None:
		self.registrations = registrations or RegistrationsService()
		self.codec = codec or SignatureCodec(settings.payos_checksum_key)

	async def handle(self, body: Any) -> WebhookResult:
		if body is None or (isinstance(body, Mapping) and not body):
			return self._done(WebhookResult(WebhookOutcome.PROBE, "Webhook endpoint is active"))
		try:
			if not isinstance(body, Mapping):
				raise ValueError("webhook body must be a JSON object")
			payload = WebhookPayload.model_validate(body)
		except (ValidationError, ValueError):
			LOGGER.warning("payos_webhook_malformed")
			return self._done(
				WebhookResult(WebhookOutcome.REJECTED, ErrorCode.INVALID_REQUEST.message, ErrorCode.INVALID_REQUEST)
			)
		data = payload.data
		if data is None:
			return self._done(WebhookResult(WebhookOutcome.PROBE, "Webhook endpoint is active"))

		if not self.codec.verify_webhook(
			amount=data.amount,
			description=data.description,
			order_code=data.order_code,
			signature=payload.signature,
		):
			LOGGER.error("payos_webhook_bad_signature", extra={"order_code": data.order_code})
			return self._rejected(ErrorCode.INVALID_PAYMENT_SIGNATURE)

		if payload.code != SUCCESS_CODE:
			LOGGER.info(
				"payos_webhook_payment_failed",
				extra={"order_code": data.order_code, "payos_code": payload.code, "payos_desc": payload.desc},
			)
			return self._done(WebhookResult(WebhookOutcome.PAYMENT_FAILED, "Payment failed"))

		if data.order_code is None or data.amount is None:
			return self._rejected(ErrorCode.INVALID_REQUEST)

		try:
			_, changed = await self.registrations.apply_paid_transition(
				order_code=data.order_code,
				observed_amount=data.amount,
				reference=data.reference,
			)
		except MembershipError as exc:
			level = logging.ERROR if exc.code in _SECURITY_ERRORS else logging.WARNING
			LOGGER.log(
				level,
				"payos_webhook_rejected",
				extra={"order_code": data.order_code, "error_code": exc.code.slug, "error": exc.detail},
			)
			return self._rejected(exc.code)

		if not changed:
			LOGGER.info("payos_webhook_duplicate", extra={"order_code": data.order_code})
			return self._done(WebhookResult(WebhookOutcome.DUPLICATE, "Payment already processed"))
		return self._done(WebhookResult(WebhookOutcome.PROCESSED, "Payment processed successfully"))

	def _rejected(self, code: ErrorCode) -> WebhookResult:
		return self._done(WebhookResult(WebhookOutcome.REJECTED, code.message, code))

	def _done(self, result: WebhookResult) -> WebhookResult:
		label = result.outcome.value if result.error is None else f"{result.outcome.value}:{result.error.slug}"
		obs_metrics.inc_webhook(label)
		return result

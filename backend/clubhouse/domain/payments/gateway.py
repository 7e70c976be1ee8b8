"""PayOS merchant API client."""

from __future__ import annotations

import logging
import time
from typing import Optional, Sequence

import httpx
from pydantic import ValidationError

from clubhouse.domain.memberships.exceptions import ErrorCode, MembershipError
from clubhouse.domain.payments.schemas import (
	ConfirmWebhookEnvelope,
	PaymentItem,
	PaymentLinkData,
	PaymentLinkEnvelope,
	PaymentLinkRequest,
)
from clubhouse.domain.payments.signature import SignatureCodec
from clubhouse.obs import metrics as obs_metrics
from clubhouse.settings import settings

LOGGER = logging.getLogger(__name__)

SUCCESS_CODE = "00"
# PayOS rejects longer descriptions for non-linked bank accounts.
MAX_DESCRIPTION_LENGTH = 25


class PayOSClient:
	"""Creates payment links and registers the webhook URL with PayOS.

	Failures of any kind surface as ``PAYMENT_LINK_CREATION_FAILED``; the
	transport detail is kept on the exception for logs. Nothing is retried.
	"""

	def __init__(
		self,
		*,
		client_id: str | None = None,
		api_key: str | None = None,
		checksum_key: str | None = None,
		base_url: str | None = None,
		timeout: float | None = None,
		transport: httpx.AsyncBaseTransport | None = None,
	) -> None:
		self._client_id = client_id if client_id is not None else settings.payos_client_id
		self._api_key = api_key if api_key is not None else settings.payos_api_key
		self._base_url = (base_url or settings.payos_api_url).rstrip("/")
		self._timeout = timeout if timeout is not None else settings.payos_timeout_seconds
		self._transport = transport
		self.codec = SignatureCodec(checksum_key if checksum_key is not None else settings.payos_checksum_key)

	def _headers(self) -> dict[str, str]:
		return {
			"x-client-id": self._client_id,
			"x-api-key": self._api_key,
			"Content-Type": "application/json",
		}

	async def _post(self, operation: str, path: str, body: dict) -> dict:
		start = time.perf_counter()
		try:
			async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
				resp = await client.post(f"{self._base_url}{path}", headers=self._headers(), json=body)
		except httpx.HTTPError as exc:
			obs_metrics.inc_gateway_failure(operation, "transport")
			LOGGER.error("payos_transport_error", extra={"operation": operation, "error": repr(exc)})
			raise MembershipError(
				ErrorCode.PAYMENT_LINK_CREATION_FAILED,
				f"PayOS unreachable: {type(exc).__name__}: {exc}",
			) from exc
		finally:
			obs_metrics.observe_gateway_latency(operation, time.perf_counter() - start)

		if resp.status_code >= 400:
			kind = "http_4xx" if resp.status_code < 500 else "http_5xx"
			obs_metrics.inc_gateway_failure(operation, kind)
			LOGGER.error(
				"payos_http_error",
				extra={"operation": operation, "status": resp.status_code, "response_text": resp.text[:500]},
			)
			raise MembershipError(
				ErrorCode.PAYMENT_LINK_CREATION_FAILED,
				f"PayOS HTTP {resp.status_code}: {resp.text[:500]}",
			)
		try:
			return resp.json()
		except ValueError as exc:
			obs_metrics.inc_gateway_failure(operation, "decode")
			raise MembershipError(ErrorCode.PAYMENT_LINK_CREATION_FAILED, "PayOS returned a non-JSON body") from exc

	async def create_payment_link(
		self,
		*,
		order_code: int,
		amount: int,
		description: str,
		return_url: str,
		cancel_url: str,
		items: Sequence[PaymentItem] = (),
		expired_at: Optional[int] = None,
	) -> PaymentLinkData:
		if order_code <= 0:
			raise MembershipError(ErrorCode.INVALID_REQUEST, "order code must be positive")
		if amount <= 0:
			raise MembershipError(ErrorCode.INVALID_REQUEST, "amount must be positive")
		description = (description or "").strip()[:MAX_DESCRIPTION_LENGTH].strip()
		if not description:
			raise MembershipError(ErrorCode.INVALID_REQUEST, "description is required")

		signature = self.codec.sign_payment_request(
			amount=amount,
			cancel_url=cancel_url,
			description=description,
			order_code=order_code,
			return_url=return_url,
		)
		request = PaymentLinkRequest(
			order_code=order_code,
			amount=amount,
			description=description,
			cancel_url=cancel_url,
			return_url=return_url,
			signature=signature,
			items=list(items),
			expired_at=expired_at,
		)
		body = await self._post(
			"create_link",
			"/v2/payment-requests",
			request.model_dump(by_alias=True, exclude_none=True),
		)
		try:
			envelope = PaymentLinkEnvelope.model_validate(body)
		except ValidationError as exc:
			obs_metrics.inc_gateway_failure("create_link", "decode")
			raise MembershipError(ErrorCode.PAYMENT_LINK_CREATION_FAILED, "unexpected PayOS response shape") from exc
		if envelope.code != SUCCESS_CODE or envelope.data is None:
			obs_metrics.inc_gateway_failure("create_link", "business")
			LOGGER.warning(
				"payos_create_link_rejected",
				extra={"order_code": order_code, "payos_code": envelope.code, "payos_desc": envelope.desc},
			)
			raise MembershipError(ErrorCode.PAYMENT_LINK_CREATION_FAILED, f"PayOS error: {envelope.desc}")
		if not envelope.data.checkout_url or not envelope.data.payment_link_id:
			obs_metrics.inc_gateway_failure("create_link", "decode")
			raise MembershipError(ErrorCode.PAYMENT_LINK_CREATION_FAILED, "PayOS response is missing the checkout link")
		return envelope.data

	async def confirm_webhook_url(self, url: str) -> dict:
		url = (url or "").strip()
		if not url:
			raise MembershipError(ErrorCode.INVALID_REQUEST, "webhook url is required")
		body = await self._post("confirm_webhook", "/confirm-webhook", {"webhookUrl": url})
		try:
			envelope = ConfirmWebhookEnvelope.model_validate(body)
		except ValidationError as exc:
			obs_metrics.inc_gateway_failure("confirm_webhook", "decode")
			raise MembershipError(ErrorCode.PAYMENT_LINK_CREATION_FAILED, "unexpected PayOS response shape") from exc
		if envelope.code != SUCCESS_CODE:
			obs_metrics.inc_gateway_failure("confirm_webhook", "business")
			raise MembershipError(ErrorCode.PAYMENT_LINK_CREATION_FAILED, f"PayOS error: {envelope.desc}")
		return envelope.data or {}

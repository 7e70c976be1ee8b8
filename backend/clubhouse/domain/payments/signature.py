"""HMAC-SHA256 signatures for the PayOS protocol.

PayOS signs two different field sets: payment-link creation requests and
webhook callbacks. Field order is fixed by the protocol, so each form has its
own canonicaliser.
"""

from __future__ import annotations

import hashlib
import hmac
from typing import Optional

from clubhouse.domain.memberships.exceptions import SignatureConfigError


def payment_request_canonical(
	*,
	amount: int,
	cancel_url: str,
	description: str,
	order_code: int,
	return_url: str,
) -> str:
	return (
		f"amount={amount}&cancelUrl={cancel_url}&description={description}"
		f"&orderCode={order_code}&returnUrl={return_url}"
	)


def webhook_canonical(
	*,
	amount: Optional[int],
	description: Optional[str],
	order_code: Optional[int],
) -> str:
	return f"amount={amount or 0}&description={description or ''}&orderCode={order_code or 0}"


class SignatureCodec:
	"""Signs outbound requests and verifies inbound callbacks with the checksum key."""

	def __init__(self, checksum_key: str | None) -> None:
		self._key = (checksum_key or "").strip()

	def _digest(self, canonical: str) -> str:
		if not self._key:
			raise SignatureConfigError("PAYOS_CHECKSUM_KEY is not configured")
		return hmac.new(self._key.encode("utf-8"), canonical.encode("utf-8"), hashlib.sha256).hexdigest()

	def sign(self, canonical: str) -> str:
		return self._digest(canonical)

	def verify(self, canonical: str, supplied: str | None) -> bool:
		expected = self._digest(canonical)
		if not supplied:
			return False
		return hmac.compare_digest(expected.encode("ascii"), supplied.strip().lower().encode("utf-8"))

	def sign_payment_request(
		self,
		*,
		amount: int,
		cancel_url: str,
		description: str,
		order_code: int,
		return_url: str,
	) -> str:
		return self.sign(
			payment_request_canonical(
				amount=amount,
				cancel_url=cancel_url,
				description=description,
				order_code=order_code,
				return_url=return_url,
			)
		)

	def sign_webhook(self, *, amount: Optional[int], description: Optional[str], order_code: Optional[int]) -> str:
		return self.sign(webhook_canonical(amount=amount, description=description, order_code=order_code))

	def verify_webhook(
		self,
		*,
		amount: Optional[int],
		description: Optional[str],
		order_code: Optional[int],
		signature: str | None,
	) -> bool:
		return self.verify(
			webhook_canonical(amount=amount, description=description, order_code=order_code),
			signature,
		)

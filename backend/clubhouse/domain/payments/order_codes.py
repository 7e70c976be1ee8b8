"""Gateway order code generation.

PayOS order codes are positive integers that must fit a JavaScript safe integer
(2**53 - 1). Codes combine the millisecond clock with random low bits so two
links created in the same millisecond still differ.
"""

from __future__ import annotations

import secrets
import time
from typing import Awaitable, Callable, Optional

from clubhouse.domain.memberships.exceptions import ErrorCode, MembershipError

MAX_ORDER_CODE = 2**53 - 1
_RANDOM_BITS = 10


def generate_order_code(*, now_ms: Optional[int] = None) -> int:
	millis = now_ms if now_ms is not None else time.time_ns() // 1_000_000
	code = (millis << _RANDOM_BITS) | secrets.randbits(_RANDOM_BITS)
	code &= MAX_ORDER_CODE
	return code or 1


async def allocate_order_code(
	exists: Callable[[int], Awaitable[bool]],
	*,
	attempts: int = 5,
	generator: Callable[[], int] = generate_order_code,
) -> int:
	"""Return a code not yet used by any registration.

	The unique index on ``registrations.payos_order_code`` remains the final
	guard against a concurrent allocation of the same code.
	"""
	for _ in range(max(1, attempts)):
		code = generator()
		if not await exists(code):
			return code
	raise MembershipError(ErrorCode.PAYMENT_LINK_CREATION_FAILED, "could not allocate a unique order code")

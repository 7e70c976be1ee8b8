"""Fire-and-forget membership notifications over a Redis stream.

Downstream mailers consume ``memberships:events``. Publishing never fails the
caller: the transition has already committed when these run.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from clubhouse.domain.memberships import models
from clubhouse.infra.redis import redis_client
from clubhouse.obs import metrics as obs_metrics

LOGGER = logging.getLogger(__name__)

STREAM_MEMBERSHIP_EVENTS = "memberships:events"
_STREAM_MAXLEN = 10_000


def _now_ts() -> str:
	return datetime.now(timezone.utc).isoformat()


async def publish(event: str, registration: models.Registration, *, actor_id: str | None = None) -> None:
	payload: dict[str, Any] = {
		"event": event,
		"registration_id": str(registration.id),
		"user_id": str(registration.user_id),
		"club_id": str(registration.club_id),
		"status": registration.status.value,
		"is_paid": "1" if registration.is_paid else "0",
		"ts": _now_ts(),
	}
	if actor_id:
		payload["actor_id"] = actor_id
	try:
		await redis_client.xadd(STREAM_MEMBERSHIP_EVENTS, payload, maxlen=_STREAM_MAXLEN, approximate=True)
	except Exception:
		obs_metrics.inc_notification_failure()
		LOGGER.warning(
			"membership_notification_failed",
			extra={"event_name": event, "registration_id": str(registration.id)},
			exc_info=True,
		)

from __future__ import annotations

import logging
from time import perf_counter

import asyncpg

from clubhouse.domain.memberships.models import RegistrationStatus
from clubhouse.infra.postgres import get_pool
from clubhouse.obs import metrics as obs_metrics
from clubhouse.settings import settings

LOGGER = logging.getLogger(__name__)

JOB_NAME = "membership-expiry"


async def expire_lapsed_memberships(batch: int | None = None) -> int:
    """Move paid memberships whose validity window has ended to Expired.

    Runs in batches until no lapsed rows remain; rows locked by an in-flight
    transaction are skipped and picked up on the next run.
    """
    limit = batch or settings.expiry_sweep_batch
    start = perf_counter()
    total = 0
    pool = await get_pool()
    try:
        async with pool.acquire() as conn:
            while True:
                expired = await _expire_batch(conn, limit)
                total += expired
                if expired < limit:
                    break
    except Exception:
        obs_metrics.record_job_run(JOB_NAME, result="error", duration_seconds=perf_counter() - start)
        LOGGER.exception("membership_expiry_failed")
        raise
    obs_metrics.record_job_run(JOB_NAME, result="ok", duration_seconds=perf_counter() - start)
    obs_metrics.inc_registrations_expired("sweep", total)
    if total:
        LOGGER.info("membership_expiry_swept", extra={"expired": total})
    return total


async def _expire_batch(conn: asyncpg.Connection, limit: int) -> int:
    q = """
    WITH lapsed AS (
      SELECT id FROM registrations
      WHERE status = $1 AND is_paid = TRUE AND end_date < NOW()
      ORDER BY end_date
      LIMIT $3
      FOR UPDATE SKIP LOCKED
    )
    UPDATE registrations r SET status = $2, updated_at = NOW()
    FROM lapsed l WHERE r.id = l.id
    RETURNING r.id;
    """
    rows = await conn.fetch(q, RegistrationStatus.APPROVED.value, RegistrationStatus.EXPIRED.value, limit)
    return len(rows)

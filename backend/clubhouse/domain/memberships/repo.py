"""Data access for registrations, membership packages and payment history."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import asyncpg

from clubhouse.domain.memberships import models
from clubhouse.domain.memberships.exceptions import ErrorCode, MembershipError
from clubhouse.infra.postgres import get_pool

_REGISTRATION_COLUMNS = """
	id, user_id, package_id, club_id, status, club_role, join_reason, approved_by,
	is_paid, payment_date, payment_method, payos_order_code, payos_payment_link_id,
	payos_reference, join_date, start_date, end_date, created_at, updated_at
"""


def _registration(record: asyncpg.Record | None) -> models.Registration | None:
	if record is None:
		return None
	return models.Registration.model_validate(dict(record))


class RegistrationsRepository:
	"""Thin data-access layer around asyncpg."""

	# --- Packages ---------------------------------------------------------

	async def get_package(
		self,
		package_id: UUID,
		*,
		conn: asyncpg.Connection | None = None,
	) -> models.MembershipPackage | None:
		query = "SELECT id, club_id, name, term, price, is_active FROM membership_packages WHERE id=$1"

		async def _fetch(connection: asyncpg.Connection) -> models.MembershipPackage | None:
			record = await connection.fetchrow(query, str(package_id))
			return models.MembershipPackage.model_validate(dict(record)) if record else None

		if conn is not None:
			return await _fetch(conn)
		pool = await get_pool()
		async with pool.acquire() as pooled_conn:
			return await _fetch(pooled_conn)

	# --- Registration lookups ---------------------------------------------

	async def _fetch_one(
		self,
		where: str,
		*args: object,
		conn: asyncpg.Connection | None,
		for_update: bool,
	) -> models.Registration | None:
		query = f"SELECT {_REGISTRATION_COLUMNS} FROM registrations WHERE {where}"
		if for_update:
			query += " FOR UPDATE"
		if conn is not None:
			return _registration(await conn.fetchrow(query, *args))
		pool = await get_pool()
		async with pool.acquire() as pooled_conn:
			return _registration(await pooled_conn.fetchrow(query, *args))

	async def get_registration(
		self,
		registration_id: UUID,
		*,
		conn: asyncpg.Connection | None = None,
		for_update: bool = False,
	) -> models.Registration | None:
		return await self._fetch_one("id=$1", str(registration_id), conn=conn, for_update=for_update)

	async def get_by_order_code(
		self,
		order_code: int,
		*,
		conn: asyncpg.Connection | None = None,
		for_update: bool = False,
	) -> models.Registration | None:
		return await self._fetch_one("payos_order_code=$1", order_code, conn=conn, for_update=for_update)

	async def get_by_user_and_club(
		self,
		user_id: UUID,
		club_id: UUID,
		*,
		conn: asyncpg.Connection | None = None,
		for_update: bool = False,
	) -> models.Registration | None:
		return await self._fetch_one(
			"user_id=$1 AND club_id=$2",
			str(user_id),
			str(club_id),
			conn=conn,
			for_update=for_update,
		)

	async def order_code_exists(self, order_code: int) -> bool:
		pool = await get_pool()
		async with pool.acquire() as conn:
			found = await conn.fetchval("SELECT 1 FROM registrations WHERE payos_order_code=$1", order_code)
		return found is not None

	async def list_for_user(self, user_id: UUID) -> list[models.Registration]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				f"SELECT {_REGISTRATION_COLUMNS} FROM registrations WHERE user_id=$1 ORDER BY created_at DESC",
				str(user_id),
			)
		return [models.Registration.model_validate(dict(row)) for row in rows]

	async def list_for_club(
		self,
		club_id: UUID,
		*,
		status: models.RegistrationStatus | None = None,
		lapsed_before: datetime | None = None,
	) -> list[models.Registration]:
		"""List a club's registrations, newest first.

		With ``status=Expired`` and ``lapsed_before`` set, paid Approved rows whose
		window ended before that instant are included so callers can expire them.
		"""
		params: list[object] = [str(club_id)]
		where = "club_id=$1"
		if status == models.RegistrationStatus.EXPIRED and lapsed_before is not None:
			params.extend([status.value, models.RegistrationStatus.APPROVED.value, lapsed_before])
			where += " AND (status=$2 OR (status=$3 AND is_paid = TRUE AND end_date < $4))"
		elif status is not None:
			params.append(status.value)
			where += " AND status=$2"
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				f"SELECT {_REGISTRATION_COLUMNS} FROM registrations WHERE {where} ORDER BY created_at DESC",
				*params,
			)
		return [models.Registration.model_validate(dict(row)) for row in rows]

	async def is_leader(self, user_id: UUID, club_id: UUID) -> bool:
		pool = await get_pool()
		async with pool.acquire() as conn:
			found = await conn.fetchval(
				"""
				SELECT 1 FROM registrations
				WHERE user_id=$1 AND club_id=$2 AND status=$3 AND is_paid = TRUE
					AND club_role = ANY($4::text[])
					AND (end_date IS NULL OR end_date >= NOW())
				""",
				str(user_id),
				str(club_id),
				models.RegistrationStatus.APPROVED.value,
				[role.value for role in models.LEADER_ROLES],
			)
		return found is not None

	# --- Registration writes ----------------------------------------------

	async def insert_registration(
		self,
		*,
		conn: asyncpg.Connection,
		user_id: UUID,
		package: models.MembershipPackage,
		join_reason: str,
	) -> models.Registration:
		try:
			record = await conn.fetchrow(
				f"""
				INSERT INTO registrations (id, user_id, package_id, club_id, status, club_role, join_reason)
				VALUES ($1, $2, $3, $4, $5, $6, $7)
				RETURNING {_REGISTRATION_COLUMNS}
				""",
				uuid4(),
				str(user_id),
				str(package.id),
				str(package.club_id),
				models.RegistrationStatus.PENDING_REVIEW.value,
				models.ClubRole.MEMBER.value,
				join_reason,
			)
		except asyncpg.UniqueViolationError as exc:  # type: ignore[attr-defined]
			raise MembershipError(ErrorCode.ALREADY_REGISTERED) from exc
		return models.Registration.model_validate(dict(record))

	async def save_registration(
		self,
		*,
		conn: asyncpg.Connection,
		registration: models.Registration,
	) -> models.Registration:
		try:
			record = await conn.fetchrow(
				f"""
				UPDATE registrations SET
					package_id=$2, status=$3, club_role=$4, join_reason=$5, approved_by=$6,
					is_paid=$7, payment_date=$8, payment_method=$9, payos_order_code=$10,
					payos_payment_link_id=$11, payos_reference=$12, join_date=$13,
					start_date=$14, end_date=$15, updated_at=NOW()
				WHERE id=$1
				RETURNING {_REGISTRATION_COLUMNS}
				""",
				str(registration.id),
				str(registration.package_id),
				registration.status.value,
				registration.club_role.value,
				registration.join_reason,
				str(registration.approved_by) if registration.approved_by else None,
				registration.is_paid,
				registration.payment_date,
				registration.payment_method,
				registration.payos_order_code,
				registration.payos_payment_link_id,
				registration.payos_reference,
				registration.join_date,
				registration.start_date,
				registration.end_date,
			)
		except asyncpg.UniqueViolationError as exc:  # type: ignore[attr-defined]
			raise MembershipError(ErrorCode.PAYMENT_LINK_CREATION_FAILED, "order code collision") from exc
		if record is None:
			raise MembershipError(ErrorCode.REGISTER_NOT_FOUND)
		return models.Registration.model_validate(dict(record))

	async def delete_registration(self, *, conn: asyncpg.Connection, registration_id: UUID) -> None:
		await conn.execute("DELETE FROM registrations WHERE id=$1", str(registration_id))

	# --- Payment history --------------------------------------------------

	async def insert_payment_record(
		self,
		*,
		conn: asyncpg.Connection,
		registration: models.Registration,
		amount: Decimal,
	) -> models.PaymentRecord:
		record = await conn.fetchrow(
			"""
			INSERT INTO payment_history (id, registration_id, user_id, club_id, package_id, amount,
				payment_method, payos_order_code, payos_reference, payment_date)
			VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
			RETURNING *
			""",
			uuid4(),
			str(registration.id),
			str(registration.user_id),
			str(registration.club_id),
			str(registration.package_id),
			amount,
			registration.payment_method,
			registration.payos_order_code,
			registration.payos_reference,
			registration.payment_date,
		)
		return models.PaymentRecord.model_validate(dict(record))

	async def list_payments(
		self,
		*,
		user_id: Optional[UUID] = None,
		club_id: Optional[UUID] = None,
		limit: int,
		offset: int = 0,
	) -> list[models.PaymentRecord]:
		conditions: list[str] = []
		params: list[object] = []
		if user_id is not None:
			params.append(str(user_id))
			conditions.append(f"user_id=${len(params)}")
		if club_id is not None:
			params.append(str(club_id))
			conditions.append(f"club_id=${len(params)}")
		where_clause = " AND ".join(conditions) or "TRUE"
		params.extend([limit, offset])
		query = f"""
			SELECT * FROM payment_history
			WHERE {where_clause}
			ORDER BY payment_date DESC, id DESC
			LIMIT ${len(params) - 1} OFFSET ${len(params)}
		"""
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(query, *params)
		return [models.PaymentRecord.model_validate(dict(row)) for row in rows]

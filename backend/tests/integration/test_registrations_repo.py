from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from typing import AsyncIterator, Iterator
from uuid import uuid4

import asyncpg
import pytest
import pytest_asyncio

from clubhouse.domain.memberships import models
from clubhouse.domain.memberships.exceptions import ErrorCode, MembershipError
from clubhouse.domain.memberships.repo import RegistrationsRepository
from clubhouse.infra import postgres
from clubhouse.maintenance.expiry import expire_lapsed_memberships

pytestmark = pytest.mark.asyncio

MIGRATIONS_DIR = Path(__file__).resolve().parents[2] / "migrations"


@pytest.fixture(scope="module")
def postgres_container() -> Iterator["PostgresContainer"]:
    testcontainers = pytest.importorskip(
        "testcontainers.postgres",
        reason="testcontainers.postgres is required for integration tests",
    )
    PostgresContainer = testcontainers.PostgresContainer
    container = PostgresContainer("postgres:16-alpine")
    try:
        container.start()
    except Exception as exc:  # pragma: no cover - environment without docker
        pytest.skip(f"unable to start postgres container: {exc}")
    try:
        yield container
    finally:
        container.stop()


async def _run_migrations(pool: asyncpg.Pool) -> None:
    async with pool.acquire() as conn:
        await conn.execute("DROP SCHEMA IF EXISTS public CASCADE")
        await conn.execute("CREATE SCHEMA public")
        await conn.execute("GRANT ALL ON SCHEMA public TO PUBLIC")
        for path in sorted(MIGRATIONS_DIR.glob("*.sql")):
            await conn.execute(path.read_text(encoding="utf-8"))


@pytest_asyncio.fixture(scope="function")
async def postgres_pool(postgres_container) -> AsyncIterator[asyncpg.Pool]:
    url = postgres_container.get_connection_url().replace("postgresql+psycopg2", "postgresql")
    pool = await asyncpg.create_pool(dsn=url, min_size=1, max_size=4)
    await _run_migrations(pool)
    postgres.set_pool(pool)
    try:
        yield pool
    finally:
        postgres.set_pool(None)
        await pool.close()


async def _seed_package(pool: asyncpg.Pool, *, price: Decimal = Decimal("50000")) -> models.MembershipPackage:
    club_id, package_id = uuid4(), uuid4()
    async with pool.acquire() as conn:
        await conn.execute("INSERT INTO clubs (id, name) VALUES ($1, $2)", club_id, "Photography")
        await conn.execute(
            "INSERT INTO membership_packages (id, club_id, name, term, price) VALUES ($1, $2, $3, $4, $5)",
            package_id,
            club_id,
            "Goi 6 thang",
            "6 months",
            price,
        )
    return models.MembershipPackage(
        id=package_id, club_id=club_id, name="Goi 6 thang", term="6 months", price=price, is_active=True
    )


async def test_one_registration_per_user_and_club(postgres_pool):
    repo = RegistrationsRepository()
    package = await _seed_package(postgres_pool)
    user_id = uuid4()

    async with postgres_pool.acquire() as conn:
        created = await repo.insert_registration(conn=conn, user_id=user_id, package=package, join_reason="hi")
        with pytest.raises(MembershipError) as exc:
            await repo.insert_registration(conn=conn, user_id=user_id, package=package, join_reason="again")
    assert exc.value.code == ErrorCode.ALREADY_REGISTERED

    found = await repo.get_by_user_and_club(user_id, package.club_id)
    assert found is not None and found.id == created.id
    assert found.status == models.RegistrationStatus.PENDING_REVIEW
    assert (await repo.get_package(package.id)).price == Decimal("50000.00")


async def test_order_code_is_unique_and_correlates(postgres_pool):
    repo = RegistrationsRepository()
    package = await _seed_package(postgres_pool)

    async with postgres_pool.acquire() as conn:
        first = await repo.insert_registration(conn=conn, user_id=uuid4(), package=package, join_reason="a")
        second = await repo.insert_registration(conn=conn, user_id=uuid4(), package=package, join_reason="b")
        await repo.save_registration(
            conn=conn,
            registration=first.model_copy(update={"payos_order_code": 123, "payos_payment_link_id": "p1"}),
        )
        with pytest.raises(MembershipError) as exc:
            await repo.save_registration(conn=conn, registration=second.model_copy(update={"payos_order_code": 123}))
    assert exc.value.code == ErrorCode.PAYMENT_LINK_CREATION_FAILED

    assert await repo.order_code_exists(123)
    correlated = await repo.get_by_order_code(123)
    assert correlated is not None and correlated.id == first.id


async def test_leadership_payments_and_expiry_sweep(postgres_pool):
    repo = RegistrationsRepository()
    package = await _seed_package(postgres_pool)
    leader_id = uuid4()
    now = datetime.now(timezone.utc)

    async with postgres_pool.acquire() as conn:
        leader = await repo.insert_registration(conn=conn, user_id=leader_id, package=package, join_reason="founder")
        leader = await repo.save_registration(
            conn=conn,
            registration=leader.model_copy(
                update={
                    "status": models.RegistrationStatus.APPROVED,
                    "club_role": models.ClubRole.PRESIDENT,
                    "is_paid": True,
                    "payment_date": now,
                    "payment_method": "Cash",
                    "start_date": now,
                    "end_date": now + timedelta(days=30),
                }
            ),
        )
        await repo.insert_payment_record(conn=conn, registration=leader, amount=package.price)

        lapsed_leader_id = uuid4()
        lapsed = await repo.insert_registration(conn=conn, user_id=lapsed_leader_id, package=package, join_reason="old")
        await repo.save_registration(
            conn=conn,
            registration=lapsed.model_copy(
                update={
                    "status": models.RegistrationStatus.APPROVED,
                    "club_role": models.ClubRole.VICE_PRESIDENT,
                    "is_paid": True,
                    "payment_date": now - timedelta(days=200),
                    "payment_method": "PayOS",
                    "start_date": now - timedelta(days=200),
                    "end_date": now - timedelta(days=1),
                }
            ),
        )

    assert await repo.is_leader(leader_id, package.club_id)
    assert not await repo.is_leader(uuid4(), package.club_id)
    assert not await repo.is_leader(lapsed_leader_id, package.club_id)

    history = await repo.list_payments(club_id=package.club_id, limit=10)
    assert [row.payment_method for row in history] == ["Cash"]

    before_sweep = await repo.list_for_club(
        package.club_id, status=models.RegistrationStatus.EXPIRED, lapsed_before=now
    )
    assert [row.id for row in before_sweep] == [lapsed.id]
    assert await repo.list_for_club(package.club_id, status=models.RegistrationStatus.EXPIRED) == []

    assert await expire_lapsed_memberships(batch=10) == 1
    expired = await repo.list_for_club(package.club_id, status=models.RegistrationStatus.EXPIRED)
    assert [row.id for row in expired] == [lapsed.id]

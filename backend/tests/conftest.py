import sys
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from fakeredis.aioredis import FakeRedis

# Ensure backend package and shared fakes are importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
TESTS_ROOT = Path(__file__).resolve().parent
for _path in (BACKEND_ROOT, TESTS_ROOT):
	if str(_path) not in sys.path:
		sys.path.insert(0, str(_path))

from clubhouse.infra import postgres
from clubhouse.main import app
from clubhouse.settings import settings
from memberships_fakes import FIXED_NOW, FakeGateway, FakePool, FakeStore


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	from clubhouse.infra.redis import redis_client, set_redis_client
	original = redis_client._client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


@pytest.fixture(autouse=True)
def patch_postgres(monkeypatch):
	async def _noop():
		return None

	monkeypatch.setattr(postgres, "init_pool", _noop)
	monkeypatch.setattr(postgres, "close_pool", _noop)


@pytest.fixture(autouse=True)
def force_test_settings():
	"""Ensure a consistent test environment.

	API tests authenticate via X-User-Id/X-User-Roles headers, which are only
	accepted in dev mode.
	"""
	original_env = settings.environment
	original_checksum = settings.payos_checksum_key
	settings.environment = "dev"
	settings.payos_checksum_key = "test-checksum-key"
	try:
		yield
	finally:
		settings.environment = original_env
		settings.payos_checksum_key = original_checksum


@pytest_asyncio.fixture
async def api_client():
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client


@pytest.fixture
def store():
	return FakeStore()


@pytest.fixture
def fake_gateway():
	return FakeGateway()


@pytest.fixture
def fixed_clock():
	return lambda: FIXED_NOW


@pytest.fixture
def patch_pool(monkeypatch):
	"""Route every service-level get_pool() to an in-memory pool."""
	pool = FakePool()

	async def _get_pool():
		return pool

	for target in (
		"clubhouse.domain.memberships.service.get_pool",
		"clubhouse.domain.memberships.leader_service.get_pool",
		"clubhouse.domain.payments.service.get_pool",
	):
		monkeypatch.setattr(target, _get_pool)
	return pool

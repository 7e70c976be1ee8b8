from __future__ import annotations

from uuid import UUID, uuid4

import pytest

from clubhouse.api import leader as leader_api
from clubhouse.api import payment_history as history_api
from clubhouse.api import payments as payments_api
from clubhouse.api import registrations as registrations_api
from clubhouse.domain.memberships.leader_service import LeaderRegistrationsService
from clubhouse.domain.memberships.leadership import LeadershipDirectory
from clubhouse.domain.memberships.models import RegistrationStatus
from clubhouse.domain.memberships.service import RegistrationsService
from clubhouse.domain.payments.service import PaymentLinksService
from clubhouse.domain.payments.signature import SignatureCodec
from clubhouse.domain.payments.webhook import WebhookHandler
from clubhouse.settings import settings

pytestmark = pytest.mark.usefixtures("patch_pool")


@pytest.fixture(autouse=True)
def wire_services(monkeypatch, store, fake_gateway, fixed_clock):
	leadership = LeadershipDirectory(store)
	members = RegistrationsService(repository=store, leadership=leadership, clock=fixed_clock)
	leaders = LeaderRegistrationsService(repository=store, leadership=leadership, clock=fixed_clock)
	monkeypatch.setattr(registrations_api, "_service", members)
	monkeypatch.setattr(leader_api, "_service", leaders)
	monkeypatch.setattr(history_api, "_members", members)
	monkeypatch.setattr(history_api, "_leaders", leaders)
	monkeypatch.setattr(
		payments_api,
		"_links",
		PaymentLinksService(repository=store, gateway=fake_gateway, clock=fixed_clock),
	)
	monkeypatch.setattr(
		payments_api,
		"_webhooks",
		WebhookHandler(registrations=members, codec=SignatureCodec(settings.payos_checksum_key)),
	)


def _headers(user_id: UUID, roles: str | None = None) -> dict[str, str]:
	headers = {"X-User-Id": str(user_id)}
	if roles:
		headers["X-User-Roles"] = roles
	return headers


@pytest.mark.asyncio
async def test_full_membership_flow(api_client, store, fake_gateway):
	package = store.add_package(price=50000, term="6 months")
	member_id, leader_id = uuid4(), uuid4()
	store.add_leader(user_id=leader_id, package=package)

	resp = await api_client.post(
		"/registers",
		json={"packageId": str(package.id), "joinReason": "Love photography"},
		headers=_headers(member_id),
	)
	assert resp.status_code == 201
	registration_id = resp.json()["id"]
	assert resp.json()["status"] == "PendingReview"

	resp = await api_client.put(
		"/leader/registers/approve",
		json={"subscription_id": registration_id, "status": "Approved"},
		headers=_headers(leader_id),
	)
	assert resp.status_code == 200
	assert resp.json()["status"] == "Approved"

	resp = await api_client.post(
		"/payments/create-link",
		json={"subscriptionId": registration_id},
		headers=_headers(member_id),
	)
	assert resp.status_code == 200
	link = resp.json()
	assert link["amount"] == 50000
	assert link["checkout_url"]

	codec = SignatureCodec(settings.payos_checksum_key)
	data = {"orderCode": link["order_code"], "amount": 50000, "description": "CLB", "reference": "FT1"}
	body = {
		"code": "00",
		"desc": "success",
		"data": data,
		"signature": codec.sign_webhook(amount=50000, description="CLB", order_code=link["order_code"]),
	}
	resp = await api_client.post("/payments/webhook", json=body)
	assert resp.status_code == 200
	assert resp.json() == {"success": True, "code": 1000, "message": "Payment processed successfully"}

	resp = await api_client.get(f"/registers/{registration_id}", headers=_headers(member_id))
	assert resp.json()["is_paid"] is True

	resp = await api_client.get("/payment-history/my-history", headers=_headers(member_id))
	assert resp.status_code == 200
	assert [row["payment_method"] for row in resp.json()] == ["PayOS"]


@pytest.mark.asyncio
async def test_domain_errors_use_the_error_envelope(api_client):
	resp = await api_client.get(
		f"/registers/{uuid4()}",
		headers={**_headers(uuid4()), "X-Request-Id": "req-123"},
	)
	assert resp.status_code == 404
	assert resp.json() == {
		"code": 6001,
		"detail": "register_not_found",
		"message": "Registration not found",
		"request_id": "req-123",
	}
	assert resp.headers["X-Request-Id"] == "req-123"


@pytest.mark.asyncio
async def test_unauthenticated_requests_are_rejected(api_client):
	resp = await api_client.get("/registers/my-registrations")
	assert resp.status_code == 401
	assert resp.json()["detail"] == "invalid_token"
	assert resp.json()["request_id"]


@pytest.mark.asyncio
async def test_dev_headers_are_ignored_outside_dev(api_client):
	settings.environment = "production"
	resp = await api_client.get("/registers/my-registrations", headers=_headers(uuid4()))
	assert resp.status_code == 401


@pytest.mark.asyncio
async def test_validation_errors_carry_request_id(api_client):
	resp = await api_client.post("/registers", json={"join_reason": ""}, headers=_headers(uuid4()))
	assert resp.status_code == 422
	assert resp.json()["detail"] == "validation_error"
	assert resp.json()["request_id"]


@pytest.mark.asyncio
async def test_cancel_approved_registration_is_refused(api_client, store):
	package = store.add_package()
	member_id = uuid4()
	registration = store.add_registration(user_id=member_id, package=package, status=RegistrationStatus.APPROVED)

	resp = await api_client.delete(f"/registers/{registration.id}", headers=_headers(member_id))

	assert resp.status_code == 400
	assert resp.json()["code"] == 6003


@pytest.mark.asyncio
async def test_leader_routes_require_leadership(api_client, store):
	package = store.add_package()
	resp = await api_client.get(f"/leader/registers/clubs/{package.club_id}", headers=_headers(uuid4()))
	assert resp.status_code == 403
	assert resp.json()["detail"] == "not_club_leader"


@pytest.mark.asyncio
async def test_payment_link_creation_is_rate_limited(api_client, store, monkeypatch):
	monkeypatch.setattr(settings, "payment_link_rate_limit", 1)
	package = store.add_package()
	member_id = uuid4()
	registration = store.add_registration(user_id=member_id, package=package, status=RegistrationStatus.APPROVED)

	first = await api_client.post(
		"/payments/create-link", json={"subscription_id": str(registration.id)}, headers=_headers(member_id)
	)
	second = await api_client.post(
		"/payments/create-link", json={"subscription_id": str(registration.id)}, headers=_headers(member_id)
	)

	assert first.status_code == 200
	assert second.status_code == 429


@pytest.mark.asyncio
async def test_gateway_failure_hides_upstream_detail(api_client, store, fake_gateway):
	from clubhouse.domain.memberships.exceptions import ErrorCode, MembershipError

	fake_gateway.error = MembershipError(ErrorCode.PAYMENT_LINK_CREATION_FAILED, "PayOS HTTP 500: stack trace")
	package = store.add_package()
	member_id = uuid4()
	registration = store.add_registration(user_id=member_id, package=package, status=RegistrationStatus.APPROVED)

	resp = await api_client.post(
		"/payments/create-link", json={"subscription_id": str(registration.id)}, headers=_headers(member_id)
	)

	assert resp.status_code == 502
	assert resp.json()["message"] == "Payment link creation failed"


@pytest.mark.asyncio
async def test_webhook_probe_and_bad_signature_are_acknowledged(api_client, store):
	resp = await api_client.post("/payments/webhook", content=b"")
	assert resp.status_code == 200
	assert resp.json()["success"] is True

	body = {"code": "00", "data": {"orderCode": 1, "amount": 10, "description": "x"}, "signature": "f" * 64}
	resp = await api_client.post("/payments/webhook", json=body)
	assert resp.status_code == 200
	assert resp.json() == {"success": False, "code": 8004, "message": "Payment verification failed"}


@pytest.mark.asyncio
async def test_confirm_webhook_requires_admin_role(api_client):
	body = {"webhookUrl": "https://api.example.vn/payments/webhook"}
	resp = await api_client.post("/payments/confirm-webhook", json=body, headers=_headers(uuid4()))
	assert resp.status_code == 403

	resp = await api_client.post("/payments/confirm-webhook", json=body, headers=_headers(uuid4(), "admin"))
	assert resp.status_code == 200
	assert resp.json()["webhook_url"] == body["webhookUrl"]


@pytest.mark.asyncio
async def test_payment_return_pages(api_client, store):
	package = store.add_package()
	registration = store.add_registration(
		user_id=uuid4(), package=package, status=RegistrationStatus.APPROVED, payos_order_code=777
	)

	resp = await api_client.get("/payments/cancel", params={"orderCode": 777})
	assert resp.json()["result"] == "cancelled"
	assert resp.json()["registration_id"] == str(registration.id)

	resp = await api_client.get("/payments/success", params={"orderCode": 777, "status": "PAID", "code": "00"})
	assert resp.json()["result"] == "pending"

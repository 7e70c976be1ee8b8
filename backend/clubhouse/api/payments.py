"""Payment link issuance, PayOS webhook intake and return pages."""

from __future__ import annotations

import json
from typing import Any, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from clubhouse.domain.payments import schemas
from clubhouse.domain.payments.service import PaymentLinksService
from clubhouse.domain.payments.webhook import WebhookHandler
from clubhouse.infra import rate_limit
from clubhouse.infra.auth import AuthenticatedUser, get_current_user, require_roles
from clubhouse.settings import settings


# PayOS treats any non-error acknowledgement as delivered.
ACK_SUCCESS_CODE = 1000

router = APIRouter(prefix="/payments", tags=["payments"])
_links = PaymentLinksService()
_webhooks = WebhookHandler()


@router.post("/create-link", response_model=schemas.PaymentLinkResponse)
async def create_payment_link(
	payload: schemas.CreatePaymentLinkRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
):
	if not await rate_limit.allow("payment_link", auth_user.id, limit=settings.payment_link_rate_limit):
		raise HTTPException(status.HTTP_429_TOO_MANY_REQUESTS, detail="rate_limited")
	return await _links.create_link(auth_user, payload.subscription_id)


@router.post("/confirm-webhook", response_model=schemas.ConfirmWebhookResponse)
async def confirm_webhook_url(
	payload: schemas.ConfirmWebhookRequest,
	_: AuthenticatedUser = Depends(require_roles("admin")),
):
	return await _links.confirm_webhook(payload.webhook_url)


@router.post("/webhook", response_model=schemas.WebhookAck)
async def payos_webhook(request: Request) -> schemas.WebhookAck:
	raw = await request.body()
	body: Any = None
	if raw.strip():
		try:
			body = json.loads(raw)
		except ValueError:
			body = raw
	result = await _webhooks.handle(body)
	return schemas.WebhookAck(
		success=result.success,
		code=result.error.number if result.error else ACK_SUCCESS_CODE,
		message=result.message,
	)


@router.get("/success", response_model=schemas.PaymentReturnStatus)
async def payment_success(
	order_code: Optional[int] = Query(default=None, alias="orderCode"),
	subscription_id: Optional[UUID] = Query(default=None, alias="subscriptionId"),
	payment_status: Optional[str] = Query(default=None, alias="status"),
	code: Optional[str] = Query(default=None),
	cancel: Optional[bool] = Query(default=None),
):
	return await _links.return_status(
		order_code=order_code,
		registration_id=subscription_id,
		status=payment_status,
		code=code,
		cancel=cancel,
	)


@router.get("/cancel", response_model=schemas.PaymentReturnStatus)
async def payment_cancel(
	order_code: Optional[int] = Query(default=None, alias="orderCode"),
	subscription_id: Optional[UUID] = Query(default=None, alias="subscriptionId"),
	payment_status: Optional[str] = Query(default=None, alias="status"),
	code: Optional[str] = Query(default=None),
):
	return await _links.return_status(
		order_code=order_code,
		registration_id=subscription_id,
		status=payment_status,
		code=code,
		cancel=True,
	)

"""PayOS wire models and the payment API DTOs."""

from __future__ import annotations

from typing import Any, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class _PayOSModel(BaseModel):
	"""PayOS speaks camelCase; we keep snake_case attributes."""

	model_config = ConfigDict(populate_by_name=True, extra="ignore")


class PaymentItem(_PayOSModel):
	name: str
	quantity: int = 1
	price: int


class PaymentLinkRequest(_PayOSModel):
	order_code: int = Field(alias="orderCode")
	amount: int
	description: str
	cancel_url: str = Field(alias="cancelUrl")
	return_url: str = Field(alias="returnUrl")
	signature: str
	items: list[PaymentItem] = Field(default_factory=list)
	expired_at: Optional[int] = Field(default=None, alias="expiredAt")


class PaymentLinkData(_PayOSModel):
	bin: Optional[str] = None
	account_number: Optional[str] = Field(default=None, alias="accountNumber")
	account_name: Optional[str] = Field(default=None, alias="accountName")
	amount: Optional[int] = None
	description: Optional[str] = None
	order_code: Optional[int] = Field(default=None, alias="orderCode")
	currency: Optional[str] = None
	payment_link_id: Optional[str] = Field(default=None, alias="paymentLinkId")
	status: Optional[str] = None
	checkout_url: Optional[str] = Field(default=None, alias="checkoutUrl")
	qr_code: Optional[str] = Field(default=None, alias="qrCode")


class PaymentLinkEnvelope(_PayOSModel):
	code: Optional[str] = None
	desc: Optional[str] = None
	data: Optional[PaymentLinkData] = None
	signature: Optional[str] = None


class ConfirmWebhookEnvelope(_PayOSModel):
	code: Optional[str] = None
	desc: Optional[str] = None
	data: Optional[dict[str, Any]] = None


class WebhookData(_PayOSModel):
	order_code: Optional[int] = Field(default=None, alias="orderCode")
	amount: Optional[int] = None
	description: Optional[str] = None
	account_number: Optional[str] = Field(default=None, alias="accountNumber")
	reference: Optional[str] = None
	transaction_date_time: Optional[str] = Field(default=None, alias="transactionDateTime")
	currency: Optional[str] = None
	payment_link_id: Optional[str] = Field(default=None, alias="paymentLinkId")
	code: Optional[str] = None
	desc: Optional[str] = None
	counter_account_bank_id: Optional[str] = Field(default=None, alias="counterAccountBankId")
	counter_account_bank_name: Optional[str] = Field(default=None, alias="counterAccountBankName")
	counter_account_name: Optional[str] = Field(default=None, alias="counterAccountName")
	counter_account_number: Optional[str] = Field(default=None, alias="counterAccountNumber")
	virtual_account_name: Optional[str] = Field(default=None, alias="virtualAccountName")
	virtual_account_number: Optional[str] = Field(default=None, alias="virtualAccountNumber")


class WebhookPayload(_PayOSModel):
	code: Optional[str] = None
	desc: Optional[str] = None
	success: Optional[bool] = None
	data: Optional[WebhookData] = None
	signature: Optional[str] = None


# --- API DTOs -------------------------------------------------------------


class CreatePaymentLinkRequest(BaseModel):
	subscription_id: UUID = Field(validation_alias=AliasChoices("subscription_id", "subscriptionId"))


class PaymentLinkResponse(BaseModel):
	registration_id: UUID
	checkout_url: str
	qr_code: Optional[str] = None
	order_code: int
	payment_link_id: str
	amount: int


class ConfirmWebhookRequest(BaseModel):
	webhook_url: str = Field(min_length=8, validation_alias=AliasChoices("webhook_url", "webhookUrl"))


class ConfirmWebhookResponse(BaseModel):
	webhook_url: str
	account_name: Optional[str] = None
	account_number: Optional[str] = None
	name: Optional[str] = None
	short_name: Optional[str] = None


class WebhookAck(BaseModel):
	success: bool
	code: int
	message: str


class PaymentReturnStatus(BaseModel):
	result: str
	message: str
	registration_id: Optional[UUID] = None

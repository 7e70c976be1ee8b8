"""Request and response DTOs for the membership API."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from clubhouse.domain.memberships.models import ClubRole, RegistrationStatus


def _alias(snake: str, camel: str):
	return AliasChoices(snake, camel)


class RegistrationCreateRequest(BaseModel):
	package_id: UUID = Field(validation_alias=_alias("package_id", "packageId"))
	join_reason: str = Field(min_length=1, max_length=500, validation_alias=_alias("join_reason", "joinReason"))


class RenewRequest(BaseModel):
	package_id: Optional[UUID] = Field(default=None, validation_alias=_alias("package_id", "packageId"))


class ApproveRequest(BaseModel):
	subscription_id: UUID = Field(validation_alias=_alias("subscription_id", "subscriptionId"))
	status: RegistrationStatus


class ConfirmPaymentRequest(BaseModel):
	subscription_id: UUID = Field(validation_alias=_alias("subscription_id", "subscriptionId"))
	payment_method: Optional[str] = Field(
		default=None,
		max_length=50,
		validation_alias=_alias("payment_method", "paymentMethod"),
	)
	reference: Optional[str] = Field(default=None, max_length=100)


class ChangeRoleRequest(BaseModel):
	club_role: ClubRole = Field(validation_alias=_alias("club_role", "clubRole"))


class RegistrationResponse(BaseModel):
	id: UUID
	user_id: UUID
	package_id: UUID
	club_id: UUID
	status: RegistrationStatus
	club_role: ClubRole
	join_reason: str
	approved_by: Optional[UUID] = None
	is_paid: bool
	payment_date: Optional[datetime] = None
	payment_method: Optional[str] = None
	payos_order_code: Optional[int] = None
	join_date: Optional[datetime] = None
	start_date: Optional[datetime] = None
	end_date: Optional[datetime] = None
	created_at: datetime
	updated_at: datetime

	model_config = ConfigDict(from_attributes=True)


class PaymentRecordResponse(BaseModel):
	id: UUID
	registration_id: UUID
	user_id: UUID
	club_id: UUID
	package_id: UUID
	amount: Decimal
	payment_method: str
	payos_order_code: Optional[int] = None
	payos_reference: Optional[str] = None
	payment_date: datetime

	model_config = ConfigDict(from_attributes=True)


class MessageResponse(BaseModel):
	message: str

"""Domain models for club membership registrations."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class RegistrationStatus(str, Enum):
	PENDING_REVIEW = "PendingReview"
	APPROVED = "Approved"
	REJECTED = "Rejected"
	LEFT = "Left"
	EXPIRED = "Expired"


# A new application for the same club may reuse rows in these states.
REAPPLICABLE_STATUSES = frozenset(
	{RegistrationStatus.REJECTED, RegistrationStatus.LEFT, RegistrationStatus.EXPIRED}
)


class ClubRole(str, Enum):
	MEMBER = "Member"
	PRESIDENT = "President"
	VICE_PRESIDENT = "VicePresident"
	SECRETARY = "Secretary"


LEADER_ROLES = frozenset({ClubRole.PRESIDENT, ClubRole.VICE_PRESIDENT})


class MembershipPackage(BaseModel):
	"""A priced membership offer of one club."""

	id: UUID
	club_id: UUID
	name: str
	term: Optional[str] = None
	price: Decimal
	is_active: bool

	model_config = ConfigDict(from_attributes=True)


class Registration(BaseModel):
	"""One user's relationship to one membership package of one club."""

	id: UUID
	user_id: UUID
	package_id: UUID
	club_id: UUID
	status: RegistrationStatus
	club_role: ClubRole = ClubRole.MEMBER
	join_reason: str
	approved_by: Optional[UUID] = None
	is_paid: bool = False
	payment_date: Optional[datetime] = None
	payment_method: Optional[str] = None
	payos_order_code: Optional[int] = None
	payos_payment_link_id: Optional[str] = None
	payos_reference: Optional[str] = None
	join_date: Optional[datetime] = None
	start_date: Optional[datetime] = None
	end_date: Optional[datetime] = None
	created_at: datetime
	updated_at: datetime

	model_config = ConfigDict(from_attributes=True)

	@property
	def is_active_member(self) -> bool:
		return self.status == RegistrationStatus.APPROVED and self.is_paid


class PaymentRecord(BaseModel):
	"""A settled payment written alongside the paid transition."""

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
	created_at: datetime

	model_config = ConfigDict(from_attributes=True)

"""Registration state machine.

Every transition is a pure function over ``models.Registration``: it either
raises ``MembershipError`` or returns the updated copy. Services load rows under
a row lock, call these, and persist the result.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from clubhouse.domain.memberships import models, terms
from clubhouse.domain.memberships.exceptions import ErrorCode, MembershipError
from clubhouse.domain.memberships.models import ClubRole, RegistrationStatus

GATEWAY_PAYMENT_METHOD = "PayOS"
DEFAULT_MANUAL_METHOD = "Cash"

_CLEARED_PAYMENT = {
	"is_paid": False,
	"payment_date": None,
	"payment_method": None,
	"payos_order_code": None,
	"payos_payment_link_id": None,
	"payos_reference": None,
	"start_date": None,
	"end_date": None,
}


def ensure_owner(registration: models.Registration, user_id: UUID) -> None:
	if registration.user_id != user_id:
		raise MembershipError(ErrorCode.UNAUTHORIZED)


def package_amount(package: models.MembershipPackage) -> int:
	"""Return the gateway amount for a package: whole VND, strictly positive."""
	price = Decimal(package.price)
	if price <= 0 or price != price.to_integral_value():
		raise MembershipError(ErrorCode.INVALID_REQUEST, "package price must be a positive whole amount")
	return int(price)


def is_lapsed(registration: models.Registration, now: datetime) -> bool:
	return (
		registration.is_active_member
		and registration.end_date is not None
		and registration.end_date < now
	)


def expire_if_lapsed(registration: models.Registration, now: datetime) -> models.Registration:
	if not is_lapsed(registration, now):
		return registration
	return registration.model_copy(update={"status": RegistrationStatus.EXPIRED, "updated_at": now})


def ensure_can_apply(existing: models.Registration | None) -> bool:
	"""Check an existing row for the same club; True when it can be reused."""
	if existing is None:
		return False
	if existing.status == RegistrationStatus.PENDING_REVIEW:
		raise MembershipError(ErrorCode.ALREADY_REGISTERED)
	if existing.status == RegistrationStatus.APPROVED:
		if existing.is_paid:
			raise MembershipError(ErrorCode.ALREADY_MEMBER)
		raise MembershipError(ErrorCode.ALREADY_REGISTERED, "an approved registration is awaiting payment")
	return existing.status in models.REAPPLICABLE_STATUSES


def reapply(
	existing: models.Registration,
	package: models.MembershipPackage,
	join_reason: str,
	now: datetime,
) -> models.Registration:
	update = dict(_CLEARED_PAYMENT)
	update.update(
		{
			"package_id": package.id,
			"status": RegistrationStatus.PENDING_REVIEW,
			"club_role": ClubRole.MEMBER,
			"join_reason": join_reason,
			"approved_by": None,
			"join_date": None,
			"updated_at": now,
		}
	)
	return existing.model_copy(update=update)


def review(
	registration: models.Registration,
	decision: RegistrationStatus,
	actor_id: UUID,
	now: datetime,
) -> models.Registration:
	if registration.status != RegistrationStatus.PENDING_REVIEW:
		raise MembershipError(ErrorCode.APPLICATION_ALREADY_REVIEWED)
	if decision == RegistrationStatus.APPROVED:
		return registration.model_copy(
			update={
				"status": RegistrationStatus.APPROVED,
				"approved_by": actor_id,
				"join_date": now,
				"updated_at": now,
			}
		)
	if decision == RegistrationStatus.REJECTED:
		return registration.model_copy(
			update={"status": RegistrationStatus.REJECTED, "approved_by": actor_id, "updated_at": now}
		)
	raise MembershipError(ErrorCode.INVALID_APPLICATION_STATUS, "decision must be Approved or Rejected")


def guard_payment_link(registration: models.Registration, package: models.MembershipPackage) -> int:
	"""Validate that a payment link may be issued and return the amount to charge.

	The paid check runs before the status check so a settled registration always
	reports ``PAYMENT_ALREADY_PROCESSED``.
	"""
	if registration.is_paid:
		raise MembershipError(ErrorCode.PAYMENT_ALREADY_PROCESSED)
	if registration.status != RegistrationStatus.APPROVED:
		raise MembershipError(ErrorCode.INVALID_APPLICATION_STATUS)
	return package_amount(package)


def has_payment_link(registration: models.Registration) -> bool:
	return registration.payos_order_code is not None and bool(registration.payos_payment_link_id)


def attach_payment_link(
	registration: models.Registration,
	order_code: int,
	payment_link_id: str,
	now: datetime,
) -> models.Registration:
	return registration.model_copy(
		update={
			"payos_order_code": order_code,
			"payos_payment_link_id": payment_link_id,
			"updated_at": now,
		}
	)


def _mark_paid(
	registration: models.Registration,
	package: models.MembershipPackage,
	*,
	method: str,
	reference: str | None,
	now: datetime,
) -> models.Registration:
	return registration.model_copy(
		update={
			"is_paid": True,
			"payment_date": now,
			"payment_method": method,
			"payos_reference": reference,
			"start_date": now,
			"end_date": terms.compute_end_date(now, package.term),
			"updated_at": now,
		}
	)


def apply_paid(
	registration: models.Registration,
	package: models.MembershipPackage,
	*,
	observed_amount: int,
	reference: str | None,
	now: datetime,
) -> tuple[models.Registration, bool]:
	"""Settle a registration from a verified gateway callback.

	Returns the registration and whether it changed. Replays of an already
	settled registration are a no-op; anything other than an Approved
	registration is refused.
	"""
	if registration.is_paid:
		return registration, False
	if registration.status != RegistrationStatus.APPROVED:
		raise MembershipError(
			ErrorCode.INVALID_APPLICATION_STATUS,
			f"payment for inactive registration {registration.id} ({registration.status.value})",
		)
	if observed_amount != package_amount(package):
		raise MembershipError(
			ErrorCode.INVALID_PAYMENT_SIGNATURE,
			f"amount mismatch for order {registration.payos_order_code}",
		)
	paid = _mark_paid(
		registration,
		package,
		method=GATEWAY_PAYMENT_METHOD,
		reference=reference or str(registration.payos_order_code),
		now=now,
	)
	return paid, True


def confirm_manual_payment(
	registration: models.Registration,
	package: models.MembershipPackage,
	*,
	method: str | None,
	reference: str | None,
	now: datetime,
) -> models.Registration:
	if registration.status != RegistrationStatus.APPROVED:
		raise MembershipError(ErrorCode.INVALID_APPLICATION_STATUS)
	if registration.is_paid:
		raise MembershipError(ErrorCode.PAYMENT_ALREADY_PROCESSED)
	return _mark_paid(
		registration,
		package,
		method=(method or "").strip() or DEFAULT_MANUAL_METHOD,
		reference=reference,
		now=now,
	)


def ensure_cancellable(registration: models.Registration, user_id: UUID) -> None:
	ensure_owner(registration, user_id)
	if registration.status != RegistrationStatus.PENDING_REVIEW:
		raise MembershipError(ErrorCode.INVALID_APPLICATION_STATUS)


def renew(
	registration: models.Registration,
	user_id: UUID,
	new_package: models.MembershipPackage | None,
	now: datetime,
) -> models.Registration:
	ensure_owner(registration, user_id)
	if registration.status != RegistrationStatus.EXPIRED:
		raise MembershipError(ErrorCode.CANNOT_RENEW_SUBSCRIPTION)
	update = dict(_CLEARED_PAYMENT)
	update.update({"status": RegistrationStatus.APPROVED, "updated_at": now})
	if new_package is not None:
		if new_package.club_id != registration.club_id:
			raise MembershipError(ErrorCode.INVALID_REQUEST, "package belongs to a different club")
		if not new_package.is_active:
			raise MembershipError(ErrorCode.PACKAGE_NOT_ACTIVE)
		update["package_id"] = new_package.id
	return registration.model_copy(update=update)


def leave(registration: models.Registration, now: datetime) -> models.Registration:
	if registration.club_role == ClubRole.PRESIDENT:
		raise MembershipError(ErrorCode.PRESIDENT_CANNOT_LEAVE)
	if not registration.is_active_member:
		raise MembershipError(ErrorCode.NOT_ACTIVE_MEMBER)
	return registration.model_copy(update={"status": RegistrationStatus.LEFT, "updated_at": now})


def remove_member(registration: models.Registration, now: datetime) -> models.Registration:
	if registration.status != RegistrationStatus.APPROVED:
		raise MembershipError(ErrorCode.INVALID_APPLICATION_STATUS)
	if registration.club_role == ClubRole.PRESIDENT:
		raise MembershipError(ErrorCode.PRESIDENT_CANNOT_LEAVE)
	update: dict[str, object] = {"status": RegistrationStatus.LEFT, "updated_at": now}
	if not registration.is_paid:
		# An outstanding checkout link must not settle a removed member.
		update.update({"payos_order_code": None, "payos_payment_link_id": None})
	return registration.model_copy(update=update)


def change_role(registration: models.Registration, role: ClubRole, now: datetime) -> models.Registration:
	if not registration.is_active_member:
		raise MembershipError(ErrorCode.INVALID_APPLICATION_STATUS)
	return registration.model_copy(update={"club_role": role, "updated_at": now})

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from clubhouse.domain.memberships import lifecycle
from clubhouse.domain.memberships.exceptions import ErrorCode, MembershipError
from clubhouse.domain.memberships.models import ClubRole, RegistrationStatus
from memberships_fakes import FIXED_NOW

NOW = FIXED_NOW


def _approved(store, user_id, package, **overrides):
	values = {"status": RegistrationStatus.APPROVED, "join_date": NOW}
	values.update(overrides)
	return store.add_registration(user_id=user_id, package=package, **values)


def _paid(store, user_id, package, **overrides):
	values = {
		"is_paid": True,
		"payment_date": NOW,
		"payment_method": "PayOS",
		"start_date": NOW,
		"end_date": NOW + timedelta(days=180),
	}
	values.update(overrides)
	return _approved(store, user_id, package, **values)


@contextmanager
def _raises(code: ErrorCode):
	with pytest.raises(MembershipError) as info:
		yield info
	assert info.value.code == code


def test_package_amount_requires_positive_whole_vnd(store):
	assert lifecycle.package_amount(store.add_package(price=Decimal("50000.00"))) == 50000
	for price in (Decimal("0"), Decimal("499.50")):
		with _raises(ErrorCode.INVALID_REQUEST):
			lifecycle.package_amount(store.add_package(price=price))


def test_ensure_can_apply_blocks_in_flight_and_active_rows(store):
	user_id = uuid4()
	package = store.add_package()
	assert lifecycle.ensure_can_apply(None) is False

	with _raises(ErrorCode.ALREADY_REGISTERED):
		lifecycle.ensure_can_apply(store.add_registration(user_id=user_id, package=package))
	with _raises(ErrorCode.ALREADY_REGISTERED):
		lifecycle.ensure_can_apply(_approved(store, user_id, package))
	with _raises(ErrorCode.ALREADY_MEMBER):
		lifecycle.ensure_can_apply(_paid(store, user_id, package))


@pytest.mark.parametrize(
	"status",
	[RegistrationStatus.REJECTED, RegistrationStatus.LEFT, RegistrationStatus.EXPIRED],
)
def test_terminal_rows_are_reused_on_reapply(store, status):
	user_id = uuid4()
	package = store.add_package()
	existing = store.add_registration(
		user_id=user_id,
		package=package,
		status=status,
		is_paid=status != RegistrationStatus.REJECTED,
		payos_order_code=77,
		club_role=ClubRole.SECRETARY,
	)
	assert lifecycle.ensure_can_apply(existing) is True

	new_package = store.add_package(term="1 year")
	reset = lifecycle.reapply(existing, new_package, "again", NOW)
	assert reset.id == existing.id
	assert reset.status == RegistrationStatus.PENDING_REVIEW
	assert reset.package_id == new_package.id
	assert reset.is_paid is False
	assert reset.payos_order_code is None
	assert reset.club_role == ClubRole.MEMBER


def test_review_approves_and_rejects_pending_only(store):
	package = store.add_package()
	leader_id = uuid4()
	pending = store.add_registration(user_id=uuid4(), package=package)

	approved = lifecycle.review(pending, RegistrationStatus.APPROVED, leader_id, NOW)
	assert approved.status == RegistrationStatus.APPROVED
	assert approved.approved_by == leader_id
	assert approved.join_date == NOW
	assert approved.is_paid is False

	rejected = lifecycle.review(pending, RegistrationStatus.REJECTED, leader_id, NOW)
	assert rejected.status == RegistrationStatus.REJECTED
	assert rejected.join_date is None

	with _raises(ErrorCode.APPLICATION_ALREADY_REVIEWED):
		lifecycle.review(approved, RegistrationStatus.REJECTED, leader_id, NOW)
	with _raises(ErrorCode.INVALID_APPLICATION_STATUS):
		lifecycle.review(pending, RegistrationStatus.LEFT, leader_id, NOW)


def test_payment_link_guard_checks_paid_before_status(store):
	package = store.add_package()
	user_id = uuid4()
	# Paid and (incorrectly) not Approved still reports the paid error first.
	odd = store.add_registration(user_id=user_id, package=package, is_paid=True)
	with _raises(ErrorCode.PAYMENT_ALREADY_PROCESSED):
		lifecycle.guard_payment_link(odd, package)

	pending = store.add_registration(user_id=uuid4(), package=package)
	with _raises(ErrorCode.INVALID_APPLICATION_STATUS):
		lifecycle.guard_payment_link(pending, package)

	assert lifecycle.guard_payment_link(_approved(store, uuid4(), package), package) == 50000


def test_guard_rejects_free_packages(store):
	package = store.add_package(price=0)
	with _raises(ErrorCode.INVALID_REQUEST):
		lifecycle.guard_payment_link(_approved(store, uuid4(), package), package)


def test_apply_paid_sets_window_from_term(store):
	package = store.add_package(term="6 months")
	registration = _approved(store, uuid4(), package, payos_order_code=123, payos_payment_link_id="plink")

	paid, changed = lifecycle.apply_paid(registration, package, observed_amount=50000, reference="FT123", now=NOW)
	assert changed is True
	assert paid.is_paid is True
	assert paid.payment_method == lifecycle.GATEWAY_PAYMENT_METHOD
	assert paid.payos_reference == "FT123"
	assert paid.start_date == NOW
	assert paid.end_date == datetime(2025, 9, 1, 9, 0, tzinfo=timezone.utc)


def test_apply_paid_is_idempotent(store):
	package = store.add_package()
	registration = _paid(store, uuid4(), package, payos_order_code=123)
	same, changed = lifecycle.apply_paid(registration, package, observed_amount=1, reference=None, now=NOW)
	assert changed is False
	assert same is registration


def test_apply_paid_amount_mismatch_is_rejected_without_mutation(store):
	package = store.add_package()
	registration = _approved(store, uuid4(), package, payos_order_code=123)
	with _raises(ErrorCode.INVALID_PAYMENT_SIGNATURE):
		lifecycle.apply_paid(registration, package, observed_amount=40000, reference=None, now=NOW)
	assert registration.is_paid is False


@pytest.mark.parametrize(
	"status",
	[
		RegistrationStatus.PENDING_REVIEW,
		RegistrationStatus.REJECTED,
		RegistrationStatus.LEFT,
		RegistrationStatus.EXPIRED,
	],
)
def test_apply_paid_only_settles_approved_registrations(store, status):
	package = store.add_package()
	registration = store.add_registration(
		user_id=uuid4(), package=package, status=status, payos_order_code=789, payos_payment_link_id="plink"
	)
	with _raises(ErrorCode.INVALID_APPLICATION_STATUS):
		lifecycle.apply_paid(registration, package, observed_amount=50000, reference="FT1", now=NOW)
	assert registration.is_paid is False


def test_reference_defaults_to_order_code(store):
	package = store.add_package()
	registration = _approved(store, uuid4(), package, payos_order_code=456)
	paid, _ = lifecycle.apply_paid(registration, package, observed_amount=50000, reference=None, now=NOW)
	assert paid.payos_reference == "456"


def test_manual_confirmation(store):
	package = store.add_package()
	registration = _approved(store, uuid4(), package)
	paid = lifecycle.confirm_manual_payment(registration, package, method=None, reference=None, now=NOW)
	assert paid.is_paid is True
	assert paid.payment_method == lifecycle.DEFAULT_MANUAL_METHOD

	with _raises(ErrorCode.PAYMENT_ALREADY_PROCESSED):
		lifecycle.confirm_manual_payment(paid, package, method="Cash", reference=None, now=NOW)
	with _raises(ErrorCode.INVALID_APPLICATION_STATUS):
		lifecycle.confirm_manual_payment(
			store.add_registration(user_id=uuid4(), package=package), package, method="Cash", reference=None, now=NOW
		)


def test_cancel_only_pending_and_only_owner(store):
	package = store.add_package()
	user_id = uuid4()
	pending = store.add_registration(user_id=user_id, package=package)
	lifecycle.ensure_cancellable(pending, user_id)

	with _raises(ErrorCode.UNAUTHORIZED):
		lifecycle.ensure_cancellable(pending, uuid4())
	with _raises(ErrorCode.INVALID_APPLICATION_STATUS):
		lifecycle.ensure_cancellable(_approved(store, user_id, package), user_id)


def test_expire_if_lapsed(store):
	package = store.add_package()
	lapsed = _paid(store, uuid4(), package, end_date=NOW - timedelta(seconds=1))
	current = _paid(store, uuid4(), package)
	assert lifecycle.expire_if_lapsed(lapsed, NOW).status == RegistrationStatus.EXPIRED
	assert lifecycle.expire_if_lapsed(current, NOW) is current


def test_renew_only_expired_and_clears_payment(store):
	package = store.add_package()
	user_id = uuid4()
	expired = _paid(store, user_id, package, status=RegistrationStatus.EXPIRED, payos_order_code=9)

	renewed = lifecycle.renew(expired, user_id, None, NOW)
	assert renewed.status == RegistrationStatus.APPROVED
	assert renewed.is_paid is False
	assert renewed.payos_order_code is None
	assert renewed.end_date is None

	with _raises(ErrorCode.CANNOT_RENEW_SUBSCRIPTION):
		lifecycle.renew(_paid(store, user_id, package), user_id, None, NOW)
	with _raises(ErrorCode.UNAUTHORIZED):
		lifecycle.renew(expired, uuid4(), None, NOW)


def test_renew_can_switch_to_package_of_same_club(store):
	package = store.add_package()
	user_id = uuid4()
	expired = _paid(store, user_id, package, status=RegistrationStatus.EXPIRED)

	yearly = store.add_package(term="1 year")
	assert lifecycle.renew(expired, user_id, yearly, NOW).package_id == yearly.id

	with _raises(ErrorCode.INVALID_REQUEST):
		lifecycle.renew(expired, user_id, store.add_package(club_id=uuid4()), NOW)
	with _raises(ErrorCode.PACKAGE_NOT_ACTIVE):
		lifecycle.renew(expired, user_id, store.add_package(is_active=False), NOW)


def test_leave_rules(store):
	package = store.add_package()
	member = _paid(store, uuid4(), package)
	assert lifecycle.leave(member, NOW).status == RegistrationStatus.LEFT

	with _raises(ErrorCode.PRESIDENT_CANNOT_LEAVE):
		lifecycle.leave(_paid(store, uuid4(), package, club_role=ClubRole.PRESIDENT), NOW)
	with _raises(ErrorCode.NOT_ACTIVE_MEMBER):
		lifecycle.leave(_approved(store, uuid4(), package), NOW)


def test_remove_member_and_change_role(store):
	package = store.add_package()
	member = _paid(store, uuid4(), package)

	promoted = lifecycle.change_role(member, ClubRole.VICE_PRESIDENT, NOW)
	assert promoted.club_role == ClubRole.VICE_PRESIDENT
	assert lifecycle.remove_member(member, NOW).status == RegistrationStatus.LEFT

	with _raises(ErrorCode.PRESIDENT_CANNOT_LEAVE):
		lifecycle.remove_member(_paid(store, uuid4(), package, club_role=ClubRole.PRESIDENT), NOW)
	with _raises(ErrorCode.INVALID_APPLICATION_STATUS):
		lifecycle.change_role(_approved(store, uuid4(), package), ClubRole.SECRETARY, NOW)


def test_removing_unpaid_member_drops_outstanding_payment_link(store):
	package = store.add_package()
	unpaid = _approved(store, uuid4(), package, payos_order_code=321, payos_payment_link_id="plink-321")

	removed = lifecycle.remove_member(unpaid, NOW)

	assert removed.status == RegistrationStatus.LEFT
	assert removed.payos_order_code is None
	assert removed.payos_payment_link_id is None
	with _raises(ErrorCode.INVALID_APPLICATION_STATUS):
		lifecycle.apply_paid(removed, package, observed_amount=50000, reference="FT1", now=NOW)


def test_removing_paid_member_keeps_payment_correlation(store):
	package = store.add_package()
	paid = _paid(store, uuid4(), package, payos_order_code=654, payos_payment_link_id="plink-654")

	removed = lifecycle.remove_member(paid, NOW)

	assert removed.is_paid is True
	assert removed.payos_order_code == 654
	replay, changed = lifecycle.apply_paid(removed, package, observed_amount=50000, reference=None, now=NOW)
	assert changed is False
	assert replay is removed

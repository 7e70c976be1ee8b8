"""Error codes and the domain exception for memberships and payments."""

from __future__ import annotations

from enum import Enum

from fastapi import status


class ErrorCode(Enum):
	"""Machine-readable failure kinds with their public message and HTTP status."""

	UNCATEGORIZED = (9999, "uncategorized", "Unexpected error", status.HTTP_500_INTERNAL_SERVER_ERROR)
	INVALID_REQUEST = (7001, "invalid_request", "Invalid request", status.HTTP_400_BAD_REQUEST)
	UNAUTHENTICATED = (3001, "unauthenticated", "Authentication required", status.HTTP_401_UNAUTHORIZED)
	UNAUTHORIZED = (3002, "unauthorized", "You do not have permission", status.HTTP_403_FORBIDDEN)
	CLUB_NOT_FOUND = (4001, "club_not_found", "Club not found", status.HTTP_404_NOT_FOUND)
	PACKAGE_NOT_FOUND = (4101, "package_not_found", "Membership package not found", status.HTTP_404_NOT_FOUND)
	PACKAGE_NOT_ACTIVE = (4102, "package_not_active", "Membership package is not active", status.HTTP_400_BAD_REQUEST)
	ALREADY_MEMBER = (5002, "already_member", "User is already a member of this club", status.HTTP_400_BAD_REQUEST)
	NOT_CLUB_MEMBER = (5003, "not_club_member", "User is not a member of this club", status.HTTP_403_FORBIDDEN)
	ALREADY_REGISTERED = (5004, "already_registered", "A registration for this club is already in progress", status.HTTP_400_BAD_REQUEST)
	NOT_ACTIVE_MEMBER = (5005, "not_active_member", "Membership is not active", status.HTTP_400_BAD_REQUEST)
	PRESIDENT_CANNOT_LEAVE = (5006, "president_cannot_leave", "The club president cannot leave the club", status.HTTP_400_BAD_REQUEST)
	REGISTER_NOT_FOUND = (6001, "register_not_found", "Registration not found", status.HTTP_404_NOT_FOUND)
	INVALID_APPLICATION_STATUS = (6003, "invalid_application_status", "Registration status does not allow this action", status.HTTP_400_BAD_REQUEST)
	APPLICATION_ALREADY_REVIEWED = (6004, "application_already_reviewed", "Registration has already been reviewed", status.HTTP_400_BAD_REQUEST)
	NOT_CLUB_LEADER = (6005, "not_club_leader", "Only club leaders can perform this action", status.HTTP_403_FORBIDDEN)
	CANNOT_RENEW_SUBSCRIPTION = (6006, "cannot_renew_subscription", "Only expired memberships can be renewed", status.HTTP_400_BAD_REQUEST)
	PAYMENT_NOT_FOUND = (8001, "payment_not_found", "Payment not found", status.HTTP_404_NOT_FOUND)
	PAYMENT_ALREADY_PROCESSED = (8002, "payment_already_processed", "Payment has already been processed", status.HTTP_400_BAD_REQUEST)
	PAYMENT_LINK_CREATION_FAILED = (8003, "payment_link_creation_failed", "Payment link creation failed", status.HTTP_502_BAD_GATEWAY)
	INVALID_PAYMENT_SIGNATURE = (8004, "invalid_payment_signature", "Payment verification failed", status.HTTP_400_BAD_REQUEST)

	def __init__(self, number: int, slug: str, message: str, http_status: int) -> None:
		self.number = number
		self.slug = slug
		self.message = message
		self.http_status = http_status


# Codes whose detail is never shown to clients.
SECURITY_CODES = frozenset({ErrorCode.INVALID_PAYMENT_SIGNATURE, ErrorCode.PAYMENT_LINK_CREATION_FAILED})


class MembershipError(Exception):
	"""Single typed failure raised by the membership and payment domain.

	``detail`` is diagnostic text for logs; clients only see the code's message
	unless the code is safe to elaborate on.
	"""

	def __init__(self, code: ErrorCode, detail: str | None = None) -> None:
		super().__init__(detail or code.message)
		self.code = code
		self.detail = detail

	@property
	def status_code(self) -> int:
		return self.code.http_status

	@property
	def public_message(self) -> str:
		if self.detail and self.code not in SECURITY_CODES:
			return self.detail
		return self.code.message


class SignatureConfigError(RuntimeError):
	"""Raised when the PayOS checksum key is not configured."""

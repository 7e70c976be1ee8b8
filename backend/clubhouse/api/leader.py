"""Leader-only routes for reviewing and managing a club's registrations."""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from clubhouse.domain.memberships import schemas
from clubhouse.domain.memberships.leader_service import LeaderRegistrationsService
from clubhouse.domain.memberships.models import RegistrationStatus
from clubhouse.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/leader/registers", tags=["leader"])
_service = LeaderRegistrationsService()


@router.get("/clubs/{club_id}", response_model=List[schemas.RegistrationResponse])
async def list_club_registrations(
	club_id: UUID,
	status: Optional[RegistrationStatus] = Query(default=None),
	auth_user: AuthenticatedUser = Depends(get_current_user),
):
	return await _service.list_club(auth_user, club_id, status=status)


@router.put("/approve", response_model=schemas.RegistrationResponse)
async def review_registration(
	payload: schemas.ApproveRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
):
	return await _service.review(auth_user, payload)


@router.put("/confirm-payment", response_model=schemas.RegistrationResponse)
async def confirm_payment(
	payload: schemas.ConfirmPaymentRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
):
	return await _service.confirm_payment(auth_user, payload)


@router.put("/{registration_id}/role", response_model=schemas.RegistrationResponse)
async def change_club_role(
	registration_id: UUID,
	payload: schemas.ChangeRoleRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
):
	return await _service.change_role(auth_user, registration_id, payload)


@router.delete("/{registration_id}", response_model=schemas.RegistrationResponse)
async def remove_member(
	registration_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
):
	return await _service.remove_member(auth_user, registration_id)

"""Member-facing registration routes."""

from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status

from clubhouse.domain.memberships import schemas
from clubhouse.domain.memberships.service import RegistrationsService
from clubhouse.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/registers", tags=["registrations"])
_service = RegistrationsService()


@router.post("", response_model=schemas.RegistrationResponse, status_code=status.HTTP_201_CREATED)
async def create_registration(
	payload: schemas.RegistrationCreateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
):
	return await _service.create(auth_user, payload)


@router.get("/my-registrations", response_model=List[schemas.RegistrationResponse])
async def list_my_registrations(auth_user: AuthenticatedUser = Depends(get_current_user)):
	return await _service.list_mine(auth_user)


@router.get("/{registration_id}", response_model=schemas.RegistrationResponse)
async def get_registration(
	registration_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
):
	return await _service.get(auth_user, registration_id)


@router.delete("/{registration_id}", response_model=schemas.MessageResponse)
async def cancel_registration(
	registration_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
):
	await _service.cancel(auth_user, registration_id)
	return schemas.MessageResponse(message="Registration cancelled")


@router.put("/{registration_id}/renew", response_model=schemas.RegistrationResponse)
async def renew_registration(
	registration_id: UUID,
	payload: schemas.RenewRequest | None = None,
	auth_user: AuthenticatedUser = Depends(get_current_user),
):
	return await _service.renew(auth_user, registration_id, payload or schemas.RenewRequest())


@router.post("/clubs/{club_id}/leave", response_model=schemas.RegistrationResponse)
async def leave_club(
	club_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
):
	return await _service.leave(auth_user, club_id)

"""Payment history listings for members and club leaders."""

from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from clubhouse.domain.memberships import schemas
from clubhouse.domain.memberships.leader_service import LeaderRegistrationsService
from clubhouse.domain.memberships.service import RegistrationsService
from clubhouse.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/payment-history", tags=["payment-history"])
_members = RegistrationsService()
_leaders = LeaderRegistrationsService()


@router.get("/my-history", response_model=List[schemas.PaymentRecordResponse])
async def my_payment_history(
	limit: int = Query(default=50, ge=1, le=200),
	offset: int = Query(default=0, ge=0),
	auth_user: AuthenticatedUser = Depends(get_current_user),
):
	return await _members.list_my_payments(auth_user, limit=limit, offset=offset)


@router.get("/clubs/{club_id}", response_model=List[schemas.PaymentRecordResponse])
async def club_payment_history(
	club_id: UUID,
	limit: int = Query(default=50, ge=1, le=200),
	offset: int = Query(default=0, ge=0),
	auth_user: AuthenticatedUser = Depends(get_current_user),
):
	return await _leaders.list_club_payments(auth_user, club_id, limit=limit, offset=offset)

"""Member-facing report endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from nightvibe.domain.moderation import reports as report_service
from nightvibe.domain.moderation.schemas import ReportCreate, ReportOut
from nightvibe.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/reports", tags=["reports"])


@router.post("", response_model=ReportOut, status_code=status.HTTP_201_CREATED)
async def file_report_endpoint(
	payload: ReportCreate,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> ReportOut:
	return await report_service.file_report(auth_user, payload)

"""Registration, login and logout endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from nightvibe.domain.identity import schemas
from nightvibe.domain.identity import service as identity_service
from nightvibe.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=schemas.RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register_endpoint(payload: schemas.RegisterRequest) -> schemas.RegisterResponse:
	return await identity_service.register(payload)


@router.post("/login", response_model=schemas.LoginResponse)
async def login_endpoint(payload: schemas.LoginRequest) -> schemas.LoginResponse:
	return await identity_service.login(payload)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout_endpoint(auth_user: AuthenticatedUser = Depends(get_current_user)) -> Response:
	await identity_service.logout(auth_user)
	return Response(status_code=status.HTTP_204_NO_CONTENT)

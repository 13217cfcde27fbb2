"""Self-service account endpoints: profile, preferences, password and data rights."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import JSONResponse

from nightvibe.domain.identity import profile_service, schemas
from nightvibe.domain.identity import service as identity_service
from nightvibe.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/me", tags=["me"])


@router.get("", response_model=schemas.ProfileOut)
async def get_profile_endpoint(auth_user: AuthenticatedUser = Depends(get_current_user)) -> schemas.ProfileOut:
	return await profile_service.get_profile(auth_user)


@router.patch("", response_model=schemas.ProfileOut)
async def update_profile_endpoint(
	payload: schemas.ProfileUpdateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.ProfileOut:
	return await profile_service.update_profile(auth_user, payload)


@router.put("/preferences", response_model=schemas.Preferences)
async def set_preference_endpoint(
	payload: schemas.PreferenceUpdateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.Preferences:
	return await profile_service.set_preference(auth_user, payload)


@router.post("/password", status_code=status.HTTP_204_NO_CONTENT)
async def change_password_endpoint(
	payload: schemas.ChangePasswordRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> Response:
	await identity_service.change_password(auth_user, payload)
	return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/export")
async def download_data_endpoint(auth_user: AuthenticatedUser = Depends(get_current_user)) -> Response:
	export, filename = await identity_service.download_data(auth_user)
	return JSONResponse(
		content=export.model_dump(mode="json"),
		headers={"Content-Disposition": f'attachment; filename="{filename}"'},
	)


@router.delete("")
async def delete_account_endpoint(
	payload: schemas.DeleteAccountRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dict[str, object]:
	result = await identity_service.delete_account(auth_user, payload)
	return {"status": "deleted", "messages_deleted": result.messages_deleted, "next": "/"}

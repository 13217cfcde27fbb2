"""Admin console endpoints. Every route requires an admin user record."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.responses import JSONResponse

from nightvibe.domain.moderation import console, schemas
from nightvibe.domain.moderation import messages as message_admin
from nightvibe.domain.moderation import reports as report_service
from nightvibe.domain.moderation import users as user_admin
from nightvibe.domain.moderation.pagination import USERS_PER_PAGE
from nightvibe.infra.auth import AuthenticatedUser, get_admin_user

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/users", response_model=schemas.AdminUserListResponse)
async def list_users_endpoint(
	search: str = Query(default=""),
	filter_name: schemas.UserFilter = Query(default="all", alias="filter"),
	page: int = Query(default=1, ge=1),
	per_page: int = Query(default=USERS_PER_PAGE, ge=1, le=100),
	_: AuthenticatedUser = Depends(get_admin_user),
) -> schemas.AdminUserListResponse:
	return await user_admin.list_users(search=search, filter_name=filter_name, page=page, per_page=per_page)


@router.post("/users", response_model=schemas.AdminUserOut, status_code=status.HTTP_201_CREATED)
async def create_user_endpoint(
	payload: schemas.CreateUserRequest,
	admin: AuthenticatedUser = Depends(get_admin_user),
) -> schemas.AdminUserOut:
	return await user_admin.create_user(admin, payload)


@router.get("/users/{user_id}", response_model=schemas.AdminUserDetail)
async def user_detail_endpoint(user_id: str, _: AuthenticatedUser = Depends(get_admin_user)) -> schemas.AdminUserDetail:
	return await user_admin.user_detail(user_id)


@router.patch("/users/{user_id}/username", response_model=schemas.AdminUserOut)
async def edit_username_endpoint(
	user_id: str,
	payload: schemas.EditUsernameRequest,
	admin: AuthenticatedUser = Depends(get_admin_user),
) -> schemas.AdminUserOut:
	return await user_admin.edit_username(admin, user_id, payload.username)


@router.post("/users/{user_id}/block", response_model=schemas.AdminUserOut)
async def block_user_endpoint(user_id: str, admin: AuthenticatedUser = Depends(get_admin_user)) -> schemas.AdminUserOut:
	return await user_admin.block_user(admin, user_id)


@router.post("/users/{user_id}/unblock", response_model=schemas.AdminUserOut)
async def unblock_user_endpoint(user_id: str, admin: AuthenticatedUser = Depends(get_admin_user)) -> schemas.AdminUserOut:
	return await user_admin.unblock_user(admin, user_id)


@router.post("/users/{user_id}/promote", response_model=schemas.AdminUserOut)
async def make_admin_endpoint(user_id: str, admin: AuthenticatedUser = Depends(get_admin_user)) -> schemas.AdminUserOut:
	return await user_admin.make_admin(admin, user_id)


@router.post("/users/{user_id}/ban", response_model=schemas.AdminUserOut)
async def ban_user_endpoint(
	user_id: str,
	payload: schemas.BanRequest,
	admin: AuthenticatedUser = Depends(get_admin_user),
) -> schemas.AdminUserOut:
	return await user_admin.ban_user(admin, user_id, payload)


@router.delete("/users/{user_id}/ban", response_model=schemas.AdminUserOut)
async def lift_ban_endpoint(user_id: str, admin: AuthenticatedUser = Depends(get_admin_user)) -> schemas.AdminUserOut:
	return await user_admin.lift_ban(admin, user_id)


@router.post("/users/{user_id}/warn", response_model=schemas.AdminUserOut)
async def warn_user_endpoint(
	user_id: str,
	payload: schemas.WarnRequest,
	admin: AuthenticatedUser = Depends(get_admin_user),
) -> schemas.AdminUserOut:
	return await user_admin.warn_user(admin, user_id, payload)


@router.delete("/users/{user_id}")
async def delete_user_endpoint(
	user_id: str,
	payload: schemas.ConfirmRequest,
	admin: AuthenticatedUser = Depends(get_admin_user),
) -> Dict[str, Any]:
	result = await user_admin.delete_user(admin, user_id, payload)
	return {"status": "deleted", "user_id": result.user_id, "messages_deleted": result.messages_deleted}


@router.get("/messages", response_model=schemas.AdminMessageListResponse)
async def list_messages_endpoint(
	search: str = Query(default=""),
	filter_name: schemas.MessageFilter = Query(default="all", alias="filter"),
	_: AuthenticatedUser = Depends(get_admin_user),
) -> schemas.AdminMessageListResponse:
	return await message_admin.list_messages(search=search, filter_name=filter_name)


@router.get("/messages/{message_id}", response_model=schemas.AdminMessageDetail)
async def message_detail_endpoint(
	message_id: str,
	_: AuthenticatedUser = Depends(get_admin_user),
) -> schemas.AdminMessageDetail:
	return await message_admin.message_detail(message_id)


@router.delete("/messages/{message_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_message_endpoint(message_id: str, admin: AuthenticatedUser = Depends(get_admin_user)) -> Response:
	await message_admin.delete_message(admin, message_id)
	return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/messages/delete-all", response_model=schemas.BulkDeleteResponse)
async def delete_all_messages_endpoint(
	payload: schemas.ConfirmRequest,
	admin: AuthenticatedUser = Depends(get_admin_user),
) -> schemas.BulkDeleteResponse:
	return await message_admin.delete_all_messages(admin, payload)


@router.post("/clear-data", response_model=schemas.BulkDeleteResponse)
async def clear_data_endpoint(
	payload: schemas.ConfirmRequest,
	admin: AuthenticatedUser = Depends(get_admin_user),
) -> schemas.BulkDeleteResponse:
	"""Settings-page variant of delete-all; same confirmation phrase."""
	return await message_admin.delete_all_messages(admin, payload)


@router.get("/reports", response_model=List[schemas.ReportOut])
async def list_reports_endpoint(
	status_filter: Optional[schemas.ReportStatus] = Query(default=None, alias="status"),
	_: AuthenticatedUser = Depends(get_admin_user),
) -> List[schemas.ReportOut]:
	return await report_service.list_reports(status_filter)


@router.post("/reports/{report_id}/resolve", response_model=schemas.ReportOut)
async def resolve_report_endpoint(
	report_id: str,
	payload: schemas.ReportDecision,
	admin: AuthenticatedUser = Depends(get_admin_user),
) -> schemas.ReportOut:
	return await report_service.resolve_report(admin, report_id, payload)


@router.post("/reports/{report_id}/dismiss", response_model=schemas.ReportOut)
async def dismiss_report_endpoint(
	report_id: str,
	payload: schemas.ReportDecision,
	admin: AuthenticatedUser = Depends(get_admin_user),
) -> schemas.ReportOut:
	return await report_service.dismiss_report(admin, report_id, payload)


@router.get("/stats", response_model=schemas.StatsOut)
async def stats_endpoint(_: AuthenticatedUser = Depends(get_admin_user)) -> schemas.StatsOut:
	return await console.stats()


@router.get("/export")
async def export_endpoint(admin: AuthenticatedUser = Depends(get_admin_user)) -> Response:
	payload, filename = await console.export_data(admin)
	return JSONResponse(content=payload, headers={"Content-Disposition": f'attachment; filename="{filename}"'})


@router.get("/settings")
async def get_settings_endpoint(_: AuthenticatedUser = Depends(get_admin_user)) -> Dict[str, Any]:
	return await console.get_settings()


@router.put("/settings")
async def save_settings_endpoint(
	payload: schemas.SettingsUpdate,
	admin: AuthenticatedUser = Depends(get_admin_user),
) -> Dict[str, Any]:
	return await console.save_settings(admin, payload.values)

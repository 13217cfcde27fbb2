"""User reports and their review workflow.

A report is ``pending`` until an admin resolves or dismisses it; only pending
reports can change state. The check and the write are separate store calls,
so two admins acting on the same report race and the last write wins.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from nightvibe.domain.chat.models import EPOCH
from nightvibe.domain.exceptions import Conflict, NotFound, ValidationFailed
from nightvibe.domain.identity.users import get_user
from nightvibe.infra.auth import AuthenticatedUser
from nightvibe.infra.store import MESSAGES, REPORTS, SERVER_TIMESTAMP, USERS, Increment, store
from nightvibe.obs import metrics as obs_metrics
from nightvibe.obs.logging import get_logger

from . import schemas

log = get_logger("nightvibe.moderation.reports")

PENDING = "pending"
RESOLVED = "resolved"
DISMISSED = "dismissed"


async def file_report(reporter: AuthenticatedUser, payload: schemas.ReportCreate) -> schemas.ReportOut:
	reasons = [reason.strip() for reason in payload.reasons if reason and reason.strip()]
	if not reasons:
		raise ValidationFailed("Please choose at least one reason", reason="reasons_required")
	if payload.reported_user_id == reporter.id:
		raise ValidationFailed("You cannot report yourself", reason="self_report")
	if await get_user(payload.reported_user_id) is None:
		raise NotFound("User not found", reason="user_not_found")
	data: Dict[str, Any] = {
		"reporterId": reporter.id,
		"reportedUserId": payload.reported_user_id,
		"reasons": reasons,
		"details": payload.details.strip(),
		"status": PENDING,
		"timestamp": SERVER_TIMESTAMP,
	}
	if payload.message_id:
		message = await store.get(MESSAGES, payload.message_id)
		if message is None:
			raise NotFound("Message not found", reason="message_not_found")
		data["messageId"] = payload.message_id
		await store.update(MESSAGES, payload.message_id, {"reported": True})
	report_id = await store.create(REPORTS, data)
	await store.update(USERS, payload.reported_user_id, {"reportedCount": Increment(1)})
	obs_metrics.inc_report_filed()
	log.info("report_filed", extra={"report_id": report_id, "reasons": reasons})
	stored = await store.get(REPORTS, report_id)
	return schemas.ReportOut.from_record(report_id, stored.data if stored else data)


async def list_reports(status: Optional[str] = None) -> List[schemas.ReportOut]:
	documents = await store.list(REPORTS)
	reports = [schemas.ReportOut.from_record(document.id, document.data) for document in documents]
	if status:
		reports = [report for report in reports if report.status == status]
	reports.sort(key=lambda report: report.timestamp or EPOCH, reverse=True)
	return reports


async def _transition(admin: AuthenticatedUser, report_id: str, status: str, resolution: str) -> schemas.ReportOut:
	document = await store.get(REPORTS, report_id)
	if document is None:
		raise NotFound("Report not found", reason="report_not_found")
	current = document.data.get("status") or PENDING
	if current != PENDING:
		raise Conflict(f"Report already {current}", reason="report_closed")
	stamp_field = "resolvedAt" if status == RESOLVED else "dismissedAt"
	actor_field = "resolvedBy" if status == RESOLVED else "dismissedBy"
	await store.update(
		REPORTS,
		report_id,
		{"status": status, "resolution": resolution.strip(), stamp_field: SERVER_TIMESTAMP, actor_field: admin.id},
	)
	obs_metrics.inc_moderation_action(f"report_{status}")
	log.info("report_transition", extra={"report_id": report_id, "status": status, "admin_id": admin.id})
	updated = await store.get(REPORTS, report_id)
	return schemas.ReportOut.from_record(report_id, updated.data if updated else document.data)


async def resolve_report(admin: AuthenticatedUser, report_id: str, payload: schemas.ReportDecision) -> schemas.ReportOut:
	return await _transition(admin, report_id, RESOLVED, payload.resolution)


async def dismiss_report(admin: AuthenticatedUser, report_id: str, payload: schemas.ReportDecision) -> schemas.ReportOut:
	return await _transition(admin, report_id, DISMISSED, payload.resolution)

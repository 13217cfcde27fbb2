"""Hard deletion of a user record and every message that references it.

The store has no multi-collection transaction, so the sweep runs as: delete the
user record, then query and batch-delete messages by each sender spelling and
then each receiver spelling. A failure after the user record is gone leaves
orphaned messages behind; it is raised as ``CascadeDeleteError`` so the caller
can retry, which re-runs only the message sweeps.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Set

from nightvibe.domain.chat.normalize import RECEIVER_FIELDS, SENDER_FIELDS
from nightvibe.domain.exceptions import ServiceUnavailable
from nightvibe.infra.store import MESSAGES, USERS, StoreUnavailable, WriteOp, commit_in_batches, store
from nightvibe.obs.logging import get_logger

log = get_logger("nightvibe.identity.deletion")


class CascadeDeleteError(ServiceUnavailable):
	reason = "cascade_incomplete"
	default_message = "The account was deleted but some messages could not be removed. Please retry."


@dataclass(slots=True)
class CascadeResult:
	user_id: str
	user_existed: bool
	messages_deleted: int = 0
	batches: int = 0


async def delete_user_cascade(user_id: str) -> CascadeResult:
	existing = await store.get(USERS, user_id)
	await store.delete(USERS, user_id)
	result = CascadeResult(user_id=user_id, user_existed=existing is not None)
	seen: Set[str] = set()
	try:
		for field in (*SENDER_FIELDS, *RECEIVER_FIELDS):
			documents = await store.where(MESSAGES, field, user_id)
			ops: List[WriteOp] = []
			for document in documents:
				if document.id in seen:
					continue
				seen.add(document.id)
				ops.append(WriteOp.delete(MESSAGES, document.id))
			if ops:
				result.batches += await commit_in_batches(ops)
				result.messages_deleted += len(ops)
	except StoreUnavailable as exc:
		log.error(
			"cascade_delete_incomplete",
			extra={"target_user_id": user_id, "deleted": result.messages_deleted, "operation": exc.operation},
		)
		raise CascadeDeleteError() from exc
	log.info(
		"user_deleted",
		extra={"target_user_id": user_id, "messages_deleted": result.messages_deleted, "batches": result.batches},
	)
	return result

"""Firestore-backed document store."""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, List, Optional, Sequence

from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from nightvibe.infra.store import (
	ArrayUnion,
	ChangeCallback,
	ChangeEvent,
	Document,
	DocumentNotFound,
	Filter,
	Increment,
	SERVER_TIMESTAMP,
	Unsubscribe,
	WriteOp,
	deliver_change,
)
from nightvibe.obs.logging import get_logger

log = get_logger("nightvibe.store.firestore")

_CHANGE_KINDS = {"ADDED": "added", "MODIFIED": "modified", "REMOVED": "removed"}


def _encode(value: Any) -> Any:
	if value is SERVER_TIMESTAMP:
		return firestore.SERVER_TIMESTAMP
	if isinstance(value, ArrayUnion):
		return firestore.ArrayUnion(list(value.values))
	if isinstance(value, Increment):
		return firestore.Increment(value.amount)
	if isinstance(value, dict):
		return {key: _encode(nested) for key, nested in value.items()}
	if isinstance(value, (list, tuple)):
		return [_encode(item) for item in value]
	return value


def _is_not_found(exc: Exception) -> bool:
	return type(exc).__name__ == "NotFound"


class FirestoreDocumentStore:
	"""Adapter over ``google.cloud.firestore.AsyncClient``.

	Snapshot listeners are only offered by the synchronous client; they fire on a
	background thread and are handed back to the event loop that subscribed.
	"""

	def __init__(self, project: Optional[str] = None, database: Optional[str] = None) -> None:
		kwargs: dict[str, Any] = {}
		if project:
			kwargs["project"] = project
		if database:
			kwargs["database"] = database
		self._kwargs = kwargs
		self._client = firestore.AsyncClient(**kwargs)
		self._sync_client: firestore.Client | None = None

	def _query(self, client, collection: str, filters: Sequence[Filter]):
		query = client.collection(collection)
		for flt in filters:
			query = query.where(filter=FieldFilter(flt.field, flt.op, flt.value))
		return query

	async def get(self, collection: str, doc_id: str) -> Optional[Document]:
		snapshot = await self._client.collection(collection).document(doc_id).get()
		if not snapshot.exists:
			return None
		return Document(id=snapshot.id, data=snapshot.to_dict() or {})

	async def list(self, collection: str) -> List[Document]:
		return [
			Document(id=snapshot.id, data=snapshot.to_dict() or {})
			async for snapshot in self._client.collection(collection).stream()
		]

	async def query(
		self, collection: str, filters: Sequence[Filter], *, limit: Optional[int] = None
	) -> List[Document]:
		query = self._query(self._client, collection, filters)
		if limit is not None:
			query = query.limit(limit)
		return [Document(id=snapshot.id, data=snapshot.to_dict() or {}) async for snapshot in query.stream()]

	async def create(self, collection: str, data: dict[str, Any]) -> str:
		_, ref = await self._client.collection(collection).add(_encode(data))
		return ref.id

	async def set(self, collection: str, doc_id: str, data: dict[str, Any], *, merge: bool = False) -> None:
		await self._client.collection(collection).document(doc_id).set(_encode(data), merge=merge)

	async def update(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
		try:
			await self._client.collection(collection).document(doc_id).update(_encode(data))
		except Exception as exc:
			if _is_not_found(exc):
				raise DocumentNotFound(collection, doc_id) from exc
			raise

	async def delete(self, collection: str, doc_id: str) -> None:
		await self._client.collection(collection).document(doc_id).delete()

	async def commit(self, ops: Sequence[WriteOp]) -> None:
		batch = self._client.batch()
		for op in ops:
			ref = self._client.collection(op.collection).document(op.doc_id)
			if op.kind == "delete":
				batch.delete(ref)
			elif op.kind == "update":
				batch.update(ref, _encode(op.data))
			elif op.kind == "set":
				batch.set(ref, _encode(op.data), merge=op.merge)
			else:
				raise ValueError(f"unknown write kind: {op.kind}")
		try:
			await batch.commit()
		except Exception as exc:
			if _is_not_found(exc):
				raise DocumentNotFound(ops[0].collection, "batch") from exc
			raise

	def subscribe(self, collection: str, filters: Sequence[Filter], callback: ChangeCallback) -> Unsubscribe:
		loop = asyncio.get_running_loop()
		if self._sync_client is None:
			self._sync_client = firestore.Client(**self._kwargs)
		first = {"pending": True}

		def _on_snapshot(_docs, changes, _read_time) -> None:
			# The first snapshot replays current state; only later changes are forwarded.
			if first["pending"]:
				first["pending"] = False
				return
			for change in changes:
				kind = _CHANGE_KINDS.get(change.type.name)
				if kind is None:
					continue
				document = Document(id=change.document.id, data=change.document.to_dict() or {})
				loop.call_soon_threadsafe(deliver_change, loop, callback, ChangeEvent(kind, document))

		watch = self._query(self._sync_client, collection, filters).on_snapshot(_on_snapshot)
		log.info("store_listener_opened", extra={"collection": collection})

		def unsubscribe() -> None:
			watch.unsubscribe()
			log.info("store_listener_closed", extra={"collection": collection})

		return unsubscribe

	async def close(self) -> None:
		result = self._client.close()
		if inspect.isawaitable(result):
			await result
		if self._sync_client is not None:
			self._sync_client.close()


__all__ = ["FirestoreDocumentStore"]

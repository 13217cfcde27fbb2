"""In-process document store used for tests and local development."""

from __future__ import annotations

import asyncio
import copy
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import ulid

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


def _now() -> datetime:
	return datetime.now(timezone.utc)


def _lookup(data: dict[str, Any], path: str) -> tuple[bool, Any]:
	current: Any = data
	for part in path.split("."):
		if not isinstance(current, dict) or part not in current:
			return False, None
		current = current[part]
	return True, current


def _resolve(value: Any, existing: Any, present: bool) -> Any:
	if value is SERVER_TIMESTAMP:
		return _now()
	if isinstance(value, ArrayUnion):
		items = list(existing) if present and isinstance(existing, list) else []
		for item in value.values:
			if item not in items:
				items.append(copy.deepcopy(item))
		return items
	if isinstance(value, Increment):
		base = existing if present and isinstance(existing, (int, float)) else 0
		return base + value.amount
	if isinstance(value, dict):
		return {key: _resolve(nested, None, False) for key, nested in value.items()}
	return copy.deepcopy(value)


def _assign(data: dict[str, Any], path: str, value: Any) -> None:
	parts = path.split(".")
	target = data
	for part in parts[:-1]:
		nested = target.get(part)
		if not isinstance(nested, dict):
			nested = {}
			target[part] = nested
		target = nested
	present = parts[-1] in target
	target[parts[-1]] = _resolve(value, target.get(parts[-1]), present)


def _merge(existing: dict[str, Any], incoming: dict[str, Any]) -> None:
	for key, value in incoming.items():
		if isinstance(value, dict) and isinstance(existing.get(key), dict):
			_merge(existing[key], value)
		else:
			existing[key] = _resolve(value, existing.get(key), key in existing)


def _matches(data: dict[str, Any], flt: Filter) -> bool:
	present, value = _lookup(data, flt.field)
	if not present:
		return False
	if flt.op == "==":
		return value == flt.value
	if flt.op == "array_contains":
		return isinstance(value, list) and flt.value in value
	try:
		if flt.op == ">=":
			return value >= flt.value
		return value <= flt.value
	except TypeError:
		return False


def _matches_all(data: dict[str, Any], filters: Sequence[Filter]) -> bool:
	return all(_matches(data, flt) for flt in filters)


class _Subscription:
	__slots__ = ("collection", "filters", "callback", "active")

	def __init__(self, collection: str, filters: Sequence[Filter], callback: ChangeCallback) -> None:
		self.collection = collection
		self.filters = list(filters)
		self.callback = callback
		self.active = True


class InMemoryDocumentStore:
	"""Dictionary-backed store honouring the subset of Firestore semantics we use."""

	def __init__(self) -> None:
		self._lock = asyncio.Lock()
		self._collections: Dict[str, Dict[str, dict[str, Any]]] = {}
		self._subscriptions: List[_Subscription] = []
		self.commits: List[int] = []

	def _collection(self, name: str) -> Dict[str, dict[str, Any]]:
		return self._collections.setdefault(name, {})

	async def get(self, collection: str, doc_id: str) -> Optional[Document]:
		data = self._collection(collection).get(doc_id)
		if data is None:
			return None
		return Document(id=doc_id, data=copy.deepcopy(data))

	async def list(self, collection: str) -> List[Document]:
		return [Document(id=doc_id, data=copy.deepcopy(data)) for doc_id, data in self._collection(collection).items()]

	async def query(
		self, collection: str, filters: Sequence[Filter], *, limit: Optional[int] = None
	) -> List[Document]:
		results: List[Document] = []
		for doc_id, data in self._collection(collection).items():
			if _matches_all(data, filters):
				results.append(Document(id=doc_id, data=copy.deepcopy(data)))
				if limit is not None and len(results) >= limit:
					break
		return results

	async def create(self, collection: str, data: dict[str, Any]) -> str:
		doc_id = ulid.new().str
		await self.set(collection, doc_id, data)
		return doc_id

	async def set(self, collection: str, doc_id: str, data: dict[str, Any], *, merge: bool = False) -> None:
		async with self._lock:
			self._apply(WriteOp("set", collection, doc_id, data, merge))

	async def update(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
		async with self._lock:
			self._apply(WriteOp.update(collection, doc_id, data))

	async def delete(self, collection: str, doc_id: str) -> None:
		async with self._lock:
			self._apply(WriteOp.delete(collection, doc_id))

	async def commit(self, ops: Sequence[WriteOp]) -> None:
		async with self._lock:
			for op in ops:
				if op.kind == "update" and op.doc_id not in self._collection(op.collection):
					raise DocumentNotFound(op.collection, op.doc_id)
			for op in ops:
				self._apply(op)
			self.commits.append(len(ops))

	def _apply(self, op: WriteOp) -> None:
		docs = self._collection(op.collection)
		before = copy.deepcopy(docs.get(op.doc_id))
		if op.kind == "delete":
			docs.pop(op.doc_id, None)
		elif op.kind == "update":
			if op.doc_id not in docs:
				raise DocumentNotFound(op.collection, op.doc_id)
			for path, value in op.data.items():
				_assign(docs[op.doc_id], path, value)
		elif op.kind == "set":
			if op.merge and op.doc_id in docs:
				_merge(docs[op.doc_id], op.data)
			else:
				docs[op.doc_id] = {key: _resolve(value, None, False) for key, value in op.data.items()}
		else:
			raise ValueError(f"unknown write kind: {op.kind}")
		self._notify(op.collection, op.doc_id, before, docs.get(op.doc_id))

	def subscribe(self, collection: str, filters: Sequence[Filter], callback: ChangeCallback) -> Unsubscribe:
		subscription = _Subscription(collection, filters, callback)
		self._subscriptions.append(subscription)

		def unsubscribe() -> None:
			subscription.active = False
			if subscription in self._subscriptions:
				self._subscriptions.remove(subscription)

		return unsubscribe

	@property
	def listener_count(self) -> int:
		return len(self._subscriptions)

	def _notify(self, collection: str, doc_id: str, before: Optional[dict], after: Optional[dict]) -> None:
		for subscription in list(self._subscriptions):
			if subscription.collection != collection:
				continue
			was = before is not None and _matches_all(before, subscription.filters)
			now = after is not None and _matches_all(after, subscription.filters)
			if now:
				kind = "modified" if was else "added"
				event = ChangeEvent(kind, Document(doc_id, copy.deepcopy(after)))
			elif was:
				event = ChangeEvent("removed", Document(doc_id, copy.deepcopy(before)))
			else:
				continue
			self._dispatch(subscription, event)

	@staticmethod
	def _dispatch(subscription: _Subscription, event: ChangeEvent) -> None:
		loop = asyncio.get_running_loop()

		def _run() -> None:
			if not subscription.active:
				return
			deliver_change(loop, subscription.callback, event)

		loop.call_soon(_run)

	async def close(self) -> None:
		self._subscriptions.clear()

	def clear(self) -> None:
		self._collections.clear()
		self._subscriptions.clear()
		self.commits.clear()


__all__ = ["InMemoryDocumentStore"]

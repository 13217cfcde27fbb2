"""Document store access.

Every domain service talks to the external document store through the proxy
exported here. The concrete backend (Firestore or the in-memory store) is chosen
at start-up and can be swapped at runtime, e.g. in tests, without breaking
references that were imported earlier.

Each proxied call is bounded by ``settings.store_timeout_seconds``; timeouts and
backend failures surface as :class:`StoreUnavailable`.
"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Protocol, Sequence

from nightvibe.obs import metrics as obs_metrics
from nightvibe.obs.logging import get_logger
from nightvibe.settings import settings

log = get_logger("nightvibe.store")

USERS = "users"
MESSAGES = "messages"
REPORTS = "reports"
ADMIN = "admin"
SETTINGS_DOC = "settings"

BATCH_LIMIT = 500

FILTER_OPS = ("==", "array_contains", ">=", "<=")


class StoreError(Exception):
	"""Base class for document store failures."""


class StoreUnavailable(StoreError):
	"""The store could not be reached or did not answer in time."""

	def __init__(self, operation: str, detail: str = "") -> None:
		super().__init__(f"{operation}: {detail}" if detail else operation)
		self.operation = operation


class DocumentNotFound(StoreError):
	def __init__(self, collection: str, doc_id: str) -> None:
		super().__init__(f"{collection}/{doc_id}")
		self.collection = collection
		self.doc_id = doc_id


class _ServerTimestamp:
	def __repr__(self) -> str:
		return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


@dataclass(frozen=True, slots=True)
class ArrayUnion:
	values: tuple


@dataclass(frozen=True, slots=True)
class Increment:
	amount: int = 1


def array_union(*values: Any) -> ArrayUnion:
	return ArrayUnion(values=tuple(values))


@dataclass(slots=True)
class Document:
	id: str
	data: dict[str, Any]

	def get(self, key: str, default: Any = None) -> Any:
		return self.data.get(key, default)


@dataclass(frozen=True, slots=True)
class Filter:
	field: str
	op: str
	value: Any

	def __post_init__(self) -> None:
		if self.op not in FILTER_OPS:
			raise ValueError(f"unsupported filter op: {self.op}")


@dataclass(slots=True)
class WriteOp:
	kind: str  # set | update | delete
	collection: str
	doc_id: str
	data: dict[str, Any] = field(default_factory=dict)
	merge: bool = False

	@classmethod
	def update(cls, collection: str, doc_id: str, data: dict[str, Any]) -> "WriteOp":
		return cls("update", collection, doc_id, data)

	@classmethod
	def delete(cls, collection: str, doc_id: str) -> "WriteOp":
		return cls("delete", collection, doc_id)


@dataclass(slots=True)
class ChangeEvent:
	kind: str  # added | modified | removed
	document: Document


ChangeCallback = Callable[[ChangeEvent], Any]
Unsubscribe = Callable[[], None]

# Strong references to in-flight listener coroutines until they finish.
_pending_callbacks: set[asyncio.Future] = set()


def _callback_finished(task: asyncio.Future) -> None:
	_pending_callbacks.discard(task)
	if task.cancelled():
		return
	exc = task.exception()
	if exc is not None:
		log.error("store_listener_callback_failed", exc_info=exc)


def deliver_change(loop: asyncio.AbstractEventLoop, callback: ChangeCallback, event: ChangeEvent) -> None:
	"""Run a listener callback on ``loop``; coroutine results are tracked and their errors logged."""
	try:
		result = callback(event)
	except Exception:
		log.exception("store_listener_callback_failed")
		return
	if inspect.isawaitable(result):
		task = asyncio.ensure_future(result, loop=loop)
		_pending_callbacks.add(task)
		task.add_done_callback(_callback_finished)


class DocumentStore(Protocol):
	async def get(self, collection: str, doc_id: str) -> Optional[Document]: ...

	async def list(self, collection: str) -> List[Document]: ...

	async def query(
		self, collection: str, filters: Sequence[Filter], *, limit: Optional[int] = None
	) -> List[Document]: ...

	async def create(self, collection: str, data: dict[str, Any]) -> str: ...

	async def set(self, collection: str, doc_id: str, data: dict[str, Any], *, merge: bool = False) -> None: ...

	async def update(self, collection: str, doc_id: str, data: dict[str, Any]) -> None: ...

	async def delete(self, collection: str, doc_id: str) -> None: ...

	async def commit(self, ops: Sequence[WriteOp]) -> None: ...

	def subscribe(self, collection: str, filters: Sequence[Filter], callback: ChangeCallback) -> Unsubscribe: ...

	async def close(self) -> None: ...


class StoreProxy:
	"""Forward calls to the active backend with a timeout and uniform failures."""

	def __init__(self, backend: DocumentStore | None = None) -> None:
		self._backend = backend

	def set_backend(self, backend: DocumentStore | None) -> None:
		self._backend = backend

	@property
	def configured(self) -> bool:
		return self._backend is not None

	@property
	def backend(self) -> DocumentStore:
		if self._backend is None:
			raise StoreUnavailable("backend", "document store not configured")
		return self._backend

	async def _call(self, operation: str, factory: Callable[[], Awaitable[Any]]) -> Any:
		try:
			return await asyncio.wait_for(factory(), timeout=settings.store_timeout_seconds)
		except (DocumentNotFound, ValueError):
			raise
		except StoreUnavailable:
			log.warning("store_unavailable", extra={"operation": operation})
			raise
		except asyncio.TimeoutError:
			log.error("store_timeout", extra={"operation": operation})
			raise StoreUnavailable(operation, "timed out") from None
		except Exception as exc:
			log.exception("store_failure", extra={"operation": operation})
			raise StoreUnavailable(operation, str(exc)) from exc

	async def get(self, collection: str, doc_id: str) -> Optional[Document]:
		return await self._call(f"get:{collection}", lambda: self.backend.get(collection, doc_id))

	async def list(self, collection: str) -> List[Document]:
		return await self._call(f"list:{collection}", lambda: self.backend.list(collection))

	async def query(
		self, collection: str, filters: Sequence[Filter], *, limit: Optional[int] = None
	) -> List[Document]:
		return await self._call(
			f"query:{collection}", lambda: self.backend.query(collection, list(filters), limit=limit)
		)

	async def where(self, collection: str, field_name: str, value: Any) -> List[Document]:
		return await self.query(collection, [Filter(field_name, "==", value)])

	async def create(self, collection: str, data: dict[str, Any]) -> str:
		return await self._call(f"create:{collection}", lambda: self.backend.create(collection, data))

	async def set(self, collection: str, doc_id: str, data: dict[str, Any], *, merge: bool = False) -> None:
		await self._call(f"set:{collection}", lambda: self.backend.set(collection, doc_id, data, merge=merge))

	async def update(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
		await self._call(f"update:{collection}", lambda: self.backend.update(collection, doc_id, data))

	async def delete(self, collection: str, doc_id: str) -> None:
		await self._call(f"delete:{collection}", lambda: self.backend.delete(collection, doc_id))

	async def commit(self, ops: Sequence[WriteOp]) -> None:
		if len(ops) > BATCH_LIMIT:
			raise ValueError(f"batch exceeds {BATCH_LIMIT} operations")
		if not ops:
			return
		await self._call("commit", lambda: self.backend.commit(list(ops)))

	def subscribe(self, collection: str, filters: Sequence[Filter], callback: ChangeCallback) -> Unsubscribe:
		return self.backend.subscribe(collection, list(filters), callback)

	async def close(self) -> None:
		if self._backend is not None:
			await self._backend.close()


store = StoreProxy()


def set_store(backend: DocumentStore | None) -> None:
	store.set_backend(backend)


def chunked(ops: Sequence[WriteOp], size: int = BATCH_LIMIT) -> Iterable[Sequence[WriteOp]]:
	for start in range(0, len(ops), size):
		yield ops[start : start + size]


async def commit_in_batches(ops: Sequence[WriteOp]) -> int:
	"""Commit ``ops`` in sequential batches of at most BATCH_LIMIT operations.

	Returns the number of batches committed. A failure stops the sweep; batches
	already committed stay committed.
	"""
	batches = 0
	for chunk in chunked(list(ops)):
		await store.commit(chunk)
		batches += 1
		obs_metrics.inc_batch_commit(len(chunk))
	return batches


def build_store() -> DocumentStore:
	"""Instantiate the backend named by ``settings.store_backend``."""
	if settings.store_backend == "memory":
		from nightvibe.infra.memory_store import InMemoryDocumentStore

		return InMemoryDocumentStore()
	from nightvibe.infra.firestore_store import FirestoreDocumentStore

	return FirestoreDocumentStore(project=settings.firestore_project, database=settings.firestore_database)


__all__ = [
	"ADMIN",
	"ArrayUnion",
	"BATCH_LIMIT",
	"ChangeEvent",
	"Document",
	"DocumentNotFound",
	"DocumentStore",
	"Filter",
	"Increment",
	"MESSAGES",
	"REPORTS",
	"SERVER_TIMESTAMP",
	"SETTINGS_DOC",
	"StoreError",
	"StoreUnavailable",
	"USERS",
	"WriteOp",
	"array_union",
	"build_store",
	"commit_in_batches",
	"deliver_change",
	"set_store",
	"store",
]

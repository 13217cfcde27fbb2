"""Socket.IO namespace pushing live message changes to connected users."""

from __future__ import annotations

from typing import Callable, Dict, List, Optional

import socketio

from nightvibe.domain.exceptions import AuthFailed
from nightvibe.infra.auth import AuthenticatedUser, resolve_token
from nightvibe.infra.store import MESSAGES, ChangeEvent, Filter, store
from nightvibe.obs import metrics as obs_metrics
from nightvibe.obs.logging import get_logger
from nightvibe.settings import settings

from . import service as chat_service
from .normalize import RECEIVER_FIELDS, SENDER_FIELDS, normalize_document
from .schemas import MessageOut

log = get_logger("nightvibe.chat.sockets")

_namespace: "MessagesNamespace" | None = None

EVENT_BY_KIND = {
	"added": "message:new",
	"modified": "message:updated",
	"removed": "message:removed",
}


def _header(scope: dict, name: str) -> Optional[str]:
	target = name.encode().lower()
	for key, value in scope.get("headers", []):
		if key.lower() == target:
			return value.decode()
	return None


class MessagesNamespace(socketio.AsyncNamespace):
	"""Per-user rooms fed by store listeners on the user's messages."""

	def __init__(self) -> None:
		super().__init__("/messages")
		self._sessions: Dict[str, AuthenticatedUser] = {}
		self._listeners: Dict[str, List[Callable[[], None]]] = {}

	async def _authenticate(self, environ: dict, auth: Optional[dict]) -> AuthenticatedUser:
		scope = environ.get("asgi.scope", environ)
		payload = auth or environ.get("auth") or {}
		token = payload.get("token")
		if not token:
			header = _header(scope, "authorization") or ""
			if header.lower().startswith("bearer "):
				token = header[7:].strip()
		if token:
			return await resolve_token(token)
		user_id = payload.get("userId") or _header(scope, "x-user-id")
		if settings.is_dev() and user_id:
			return AuthenticatedUser(id=user_id)
		raise AuthFailed(reason="invalid_token")

	async def on_connect(self, sid: str, environ: dict, auth: Optional[dict] = None) -> None:
		try:
			user = await self._authenticate(environ, auth)
		except AuthFailed:
			raise ConnectionRefusedError("unauthenticated") from None
		obs_metrics.socket_connected(self.namespace)
		self._sessions[sid] = user
		await self.enter_room(sid, self.user_room(user.id))
		self._listeners[sid] = self._listen(user.id)
		await self.emit("messages:ack", {"ok": True}, room=sid)

	def _listen(self, user_id: str) -> List[Callable[[], None]]:
		"""One listener per participant field spelling; each pushes to the user's room."""

		async def forward(event: ChangeEvent) -> None:
			message = normalize_document(event.document)
			if user_id not in (message.sender_id, message.receiver_id):
				return
			name = EVENT_BY_KIND.get(event.kind, "message:updated")
			handle = None
			if message.sender_id == user_id:
				handle = await chat_service.counterpart_handle(user_id, message.receiver_id)
			obs_metrics.socket_event(self.namespace, name)
			await self.emit(
				name,
				MessageOut.from_model(message, user_id, counterpart_handle=handle).model_dump(mode="json"),
				room=self.user_room(user_id),
			)

		unsubscribers = []
		for field in (*RECEIVER_FIELDS, SENDER_FIELDS[0]):
			unsubscribers.append(store.subscribe(MESSAGES, [Filter(field, "==", user_id)], forward))
			obs_metrics.listener_opened()
		return unsubscribers

	async def on_disconnect(self, sid: str, reason: Optional[str] = None) -> None:
		user = self._sessions.pop(sid, None)
		for unsubscribe in self._listeners.pop(sid, []):
			try:
				unsubscribe()
			except Exception:  # pragma: no cover - backend teardown
				log.warning("listener_unsubscribe_failed", exc_info=True)
			obs_metrics.listener_closed()
		if user:
			obs_metrics.socket_disconnected(self.namespace)
			await self.leave_room(sid, self.user_room(user.id))

	def active_listeners(self, sid: str) -> int:
		return len(self._listeners.get(sid, []))

	@staticmethod
	def user_room(user_id: str) -> str:
		return f"user:{user_id}"


def set_namespace(namespace: MessagesNamespace | None) -> None:
	global _namespace
	_namespace = namespace


async def emit_upload_progress(user_id: str, payload: dict) -> None:
	if _namespace is None:
		return
	obs_metrics.socket_event(_namespace.namespace, "upload:progress")
	await _namespace.emit("upload:progress", payload, room=MessagesNamespace.user_room(user_id))

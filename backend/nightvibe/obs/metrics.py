"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram


REQUEST_COUNTER = Counter(
	"nightvibe_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"nightvibe_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

SOCKET_CLIENTS = Gauge(
	"nightvibe_socketio_clients",
	"Active Socket.IO clients per namespace",
	["namespace"],
)

SOCKET_EVENTS = Counter(
	"nightvibe_socketio_events_total",
	"Socket.IO events emitted per namespace",
	["namespace", "event"],
)

STORE_LISTENERS = Gauge(
	"nightvibe_store_listeners",
	"Open document store listeners",
)

BATCH_COMMITS = Counter(
	"nightvibe_store_batch_commits_total",
	"Batched write commits issued",
)

BATCH_OPERATIONS = Histogram(
	"nightvibe_store_batch_operations",
	"Operations per batched write",
	buckets=(1, 10, 50, 100, 250, 500),
)

MESSAGES_SENT = Counter(
	"nightvibe_messages_sent_total",
	"Messages written",
	["anonymous"],
)

MESSAGES_MARKED_READ = Counter(
	"nightvibe_messages_marked_read_total",
	"Messages transitioned to read",
)

CONVERSATION_LOADS = Counter(
	"nightvibe_conversation_loads_total",
	"Conversation list assemblies",
	["result"],
)

AUTH_EVENTS = Counter(
	"nightvibe_auth_events_total",
	"Registration, login and logout outcomes",
	["event", "result"],
)

PHOTO_UPLOADS = Counter(
	"nightvibe_photo_uploads_total",
	"Photo uploads to the image host",
	["result"],
)

PROFILE_VIEWS = Counter(
	"nightvibe_profile_views_total",
	"Profile detail views",
)

MODERATION_ACTIONS = Counter(
	"nightvibe_moderation_actions_total",
	"Admin moderation actions",
	["action"],
)

REPORTS_FILED = Counter(
	"nightvibe_reports_filed_total",
	"User reports filed",
)

BACKGROUND_RUNS = Counter(
	"nightvibe_background_job_runs_total",
	"Background job executions",
	["name", "result"],
)

BACKGROUND_DURATION = Histogram(
	"nightvibe_background_job_duration_seconds",
	"Background job duration",
	["name"],
)


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def socket_connected(namespace: str) -> None:
	SOCKET_CLIENTS.labels(namespace=namespace).inc()


def socket_disconnected(namespace: str) -> None:
	SOCKET_CLIENTS.labels(namespace=namespace).dec()


def socket_event(namespace: str, event: str) -> None:
	SOCKET_EVENTS.labels(namespace=namespace, event=event).inc()


def listener_opened() -> None:
	STORE_LISTENERS.inc()


def listener_closed() -> None:
	STORE_LISTENERS.dec()


def inc_batch_commit(size: int) -> None:
	BATCH_COMMITS.inc()
	BATCH_OPERATIONS.observe(size)


def inc_message_sent(anonymous: bool) -> None:
	MESSAGES_SENT.labels(anonymous="true" if anonymous else "false").inc()


def inc_marked_read(count: int) -> None:
	if count > 0:
		MESSAGES_MARKED_READ.inc(count)


def inc_conversation_load(result: str) -> None:
	CONVERSATION_LOADS.labels(result=result).inc()


def inc_auth_event(event: str, result: str) -> None:
	AUTH_EVENTS.labels(event=event, result=result).inc()


def inc_photo_upload(result: str) -> None:
	PHOTO_UPLOADS.labels(result=result).inc()


def inc_profile_view() -> None:
	PROFILE_VIEWS.inc()


def inc_moderation_action(action: str) -> None:
	MODERATION_ACTIONS.labels(action=action).inc()


def inc_report_filed() -> None:
	REPORTS_FILED.inc()


def record_job_run(name: str, *, result: str, duration_seconds: float | None = None) -> None:
	BACKGROUND_RUNS.labels(name=name, result=result).inc()
	if duration_seconds is not None:
		BACKGROUND_DURATION.labels(name=name).observe(duration_seconds)

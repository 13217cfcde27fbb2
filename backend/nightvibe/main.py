"""ASGI entrypoint: FastAPI app plus the Socket.IO server wrapping it."""

from __future__ import annotations

from contextlib import asynccontextmanager

import socketio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from nightvibe.api import admin, auth, me, messages, ops, photos, profiles, reports
from nightvibe.api.errors import install_error_handlers
from nightvibe.domain.chat.sockets import MessagesNamespace, set_namespace as set_messages_namespace
from nightvibe.domain.moderation import jobs as moderation_jobs
from nightvibe.infra.redis import redis_client
from nightvibe.infra.scheduler import JobScheduler
from nightvibe.infra.store import build_store, set_store, store
from nightvibe.obs import init as obs_init
from nightvibe.obs.logging import get_logger
from nightvibe.settings import settings

log = get_logger("nightvibe.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
	if not store.configured:
		set_store(build_store())
	scheduler: JobScheduler | None = None
	if settings.workers_enabled:
		scheduler = JobScheduler()
		scheduler.start()
		moderation_jobs.install(scheduler)
		app.state.scheduler = scheduler
	log.info("startup", extra={"store": settings.store_backend, "workers": settings.workers_enabled})
	try:
		yield
	finally:
		if scheduler is not None:
			scheduler.shutdown()
		await store.close()
		await redis_client.close()


app = FastAPI(title="NightVibe API", lifespan=lifespan)
install_error_handlers(app)

allow_origins = list(settings.cors_allow_origins)
if not allow_origins:
	allow_origins = ["http://localhost:3000", "http://localhost:5173"] if settings.is_dev() else []

# Starlette disallows wildcard '*' with allow_credentials=True.
if "*" in allow_origins:
	allow_origins = ["http://localhost:3000", "http://localhost:5173"] if settings.is_dev() else []

app.add_middleware(
	CORSMiddleware,
	allow_origins=allow_origins,
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)

sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins=allow_origins)
messages_namespace = MessagesNamespace()
sio.register_namespace(messages_namespace)
set_messages_namespace(messages_namespace)
socket_app = socketio.ASGIApp(sio, other_asgi_app=app)
obs_init(app)

app.include_router(auth.router)
app.include_router(me.router)
app.include_router(photos.router)
app.include_router(profiles.router)
app.include_router(messages.router)
app.include_router(reports.router)
app.include_router(admin.router)
app.include_router(ops.router)

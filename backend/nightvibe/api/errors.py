"""Global error handlers; every JSON error carries the request id."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from nightvibe.api.request_id import get_request_id
from nightvibe.domain.exceptions import AuthFailed, DomainError
from nightvibe.infra.store import DocumentNotFound, StoreUnavailable
from nightvibe.obs.logging import get_logger

log = get_logger("nightvibe.errors")

LOGIN_REDIRECT = "/"
STORE_UNAVAILABLE_MESSAGE = "Service temporarily unavailable. Please try again."
DOCUMENT_GONE_MESSAGE = "This item no longer exists. Please refresh and try again."


def _body(request: Request, detail: str, message: str) -> dict:
	return {"detail": detail, "message": message, "request_id": get_request_id(request)}


def install_error_handlers(app: FastAPI) -> None:
	@app.exception_handler(DomainError)
	async def domain_exc_handler(request: Request, exc: DomainError):  # type: ignore[override]
		payload = _body(request, exc.reason, exc.message)
		if isinstance(exc, AuthFailed):
			payload["redirect"] = LOGIN_REDIRECT
		level = log.warning if exc.status_code >= 500 else log.info
		level("domain_error", extra={"reason": exc.reason, "status": exc.status_code})
		return JSONResponse(status_code=exc.status_code, content=payload)

	@app.exception_handler(StoreUnavailable)
	async def store_exc_handler(request: Request, exc: StoreUnavailable):  # type: ignore[override]
		log.error("store_unavailable", extra={"operation": exc.operation})
		return JSONResponse(status_code=503, content=_body(request, "store_unavailable", STORE_UNAVAILABLE_MESSAGE))

	@app.exception_handler(DocumentNotFound)
	async def not_found_exc_handler(request: Request, exc: DocumentNotFound):  # type: ignore[override]
		log.info("document_not_found", extra={"collection": exc.collection, "doc_id": exc.doc_id})
		return JSONResponse(status_code=404, content=_body(request, "not_found", DOCUMENT_GONE_MESSAGE))

	@app.exception_handler(StarletteHTTPException)
	async def http_exc_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
		payload = {"detail": exc.detail, "request_id": get_request_id(request)}
		return JSONResponse(status_code=exc.status_code, content=payload, headers=getattr(exc, "headers", None))

	@app.exception_handler(RequestValidationError)
	async def validation_exc_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
		payload = {
			"detail": "validation_error",
			"message": "Please check the form and try again.",
			"errors": exc.errors(),
			"request_id": get_request_id(request),
		}
		return JSONResponse(status_code=422, content=jsonable_encoder(payload))

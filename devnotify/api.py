from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from http import HTTPStatus
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from devnotify.lib.broker import Broker, DispatchError
from devnotify.lib.config import app_config
from devnotify.lib.schemas import HealthResponse, MessageAccepted, MessagePayload
from devnotify.lib.setup import build_broker


PROJECT_ROOT = Path(__file__).resolve().parent.parent
_config_override = os.getenv("DEVNOTIFY_CONFIG")
CONFIG_PATH = Path(_config_override) if _config_override else PROJECT_ROOT / "config.yaml"

logger = logging.getLogger("devnotify.api")


_ERROR_CODE_MAP = {
    status.HTTP_400_BAD_REQUEST: "bad_request",
    status.HTTP_404_NOT_FOUND: "not_found",
    status.HTTP_405_METHOD_NOT_ALLOWED: "method_not_allowed",
    status.HTTP_500_INTERNAL_SERVER_ERROR: "server_error",
    status.HTTP_503_SERVICE_UNAVAILABLE: "unavailable",
}


def _status_to_error_code(status_code: int) -> str:
    return _ERROR_CODE_MAP.get(status_code, f"http_{status_code}")


def _build_error_payload(status_code: int, detail: Any) -> Dict[str, Any]:
    code = _status_to_error_code(status_code)
    message: Optional[str] = None
    extra: Optional[Any] = None

    if isinstance(detail, dict):
        code = str(detail.get("code") or code)
        message = detail.get("message") or detail.get("detail")
        remaining = {k: v for k, v in detail.items() if k not in {"code", "message", "detail"}}
        if remaining:
            extra = remaining
    elif isinstance(detail, list):
        extra = detail
    elif detail:
        message = str(detail)

    if message is None:
        try:
            message = HTTPStatus(status_code).phrase
        except ValueError:
            message = "Request failed"

    payload: Dict[str, Any] = {
        "error": {
            "code": code,
            "message": message,
        }
    }
    if extra is not None:
        payload["error"]["details"] = extra
    return payload


def _load_broker() -> Broker:
    config_path = CONFIG_PATH if CONFIG_PATH.exists() else None
    if config_path is None:
        logger.warning("No config file at %s; using environment only", CONFIG_PATH)
    return build_broker(app_config(config_path))


def create_app(broker: Optional[Broker] = None) -> FastAPI:
    """
    Build the ingress app.

    Without an explicit ``broker`` one is built from the config file on
    startup and its receivers are closed on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owned = broker is None
        app.state.broker = _load_broker() if owned else broker
        logger.info("Notification API started")
        try:
            yield
        finally:
            logger.info("Notification API shutting down")
            if owned:
                app.state.broker.receivers.close()

    app = FastAPI(title="devnotify", version="1.0.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(HTTPException)
    async def _http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        payload = _build_error_payload(exc.status_code, exc.detail)
        return JSONResponse(status_code=exc.status_code, content=payload)

    @app.exception_handler(RequestValidationError)
    async def _validation_exception_handler(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        detail = {
            "code": "bad_request",
            "message": "Unable to decode message",
            "fields": jsonable_encoder(exc.errors()),
        }
        payload = _build_error_payload(status.HTTP_400_BAD_REQUEST, detail)
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=payload)

    @app.exception_handler(DispatchError)
    async def _dispatch_exception_handler(request: Request, exc: DispatchError) -> JSONResponse:
        detail = {
            "code": "dispatch_failed",
            "message": str(exc),
            "failures": [
                {"subscription": key, "error": str(error)}
                for key, error in exc.errors
            ],
        }
        payload = _build_error_payload(status.HTTP_500_INTERNAL_SERVER_ERROR, detail)
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=payload)

    @app.post("/messages", response_model=MessageAccepted)
    def post_message(request: Request, payload: MessagePayload) -> MessageAccepted:
        current = _ensure_broker(request)
        current.dispatch(payload.to_message())
        return MessageAccepted()

    @app.get(
        "/health",
        response_model=HealthResponse,
        summary="Simple readiness probe.",
    )
    def health_check(request: Request) -> HealthResponse:
        current = _ensure_broker(request)
        return HealthResponse(
            status="ok",
            receivers=current.receivers.names(),
            subscriptions=len(current.subscriptions),
        )

    return app


def _ensure_broker(request: Request) -> Broker:
    broker: Optional[Broker] = getattr(request.app.state, "broker", None)
    if broker is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Application not initialized",
        )
    return broker


app = create_app()

"""N.E.S.T. FastAPI application."""

from __future__ import annotations

import asyncio
import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from nest import models  # noqa: F401 - registers every mapper before first use
from nest.api import ai, auth, emergency, health, notifications, predictions, reports, ws
from nest.core.config import settings
from nest.core.errors import NestError
from nest.db.session import SessionLocal
from nest.services.notification_service import purge_expired_notifications

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


async def _sweep_expired_notifications(interval: int) -> None:
    while True:
        await asyncio.sleep(interval)
        db = SessionLocal()
        try:
            purge_expired_notifications(db)
        except Exception:  # noqa: BLE001 - retry on the next tick
            logger.exception("Notification sweep failed")
        finally:
            db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    sweep = None
    if settings.notification_sweep_interval_seconds > 0:
        sweep = asyncio.create_task(_sweep_expired_notifications(settings.notification_sweep_interval_seconds))
    yield
    if sweep is not None:
        sweep.cancel()


app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_response(status_code: int, message: str, exc: BaseException) -> JSONResponse:
    error: dict = {"message": message}
    if not settings.is_production:
        error["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


@app.exception_handler(NestError)
async def nest_error_handler(request: Request, exc: NestError):
    return _error_response(exc.status_code, exc.message, exc)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return _error_response(exc.status_code, str(exc.detail), exc)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    messages = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        messages.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    return _error_response(400, "; ".join(messages) or "Invalid request", exc)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(500, "Internal Server Error", exc)


app.include_router(health.router)
app.include_router(auth.router)
app.include_router(reports.router)
app.include_router(notifications.router)
app.include_router(predictions.router)
app.include_router(emergency.router)
app.include_router(ai.router)
app.include_router(ws.router)

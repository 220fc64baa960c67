from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware
import asyncio

from app.api.routes import activity_schedule, attendance, recognition_webhook, websocket, config
from dotenv import load_dotenv

from app.core.config import settings
from app.core.logging_config import setup_logging
from app.core.logging_middleware import LoggingMiddleware
from app.db.init_db import init_db
from app.services.exceptions import ErrorKind, RequestInProgressError, ScheduleConflictError, ServiceError
from app.services.idempotency_service import start_sweep_task
from app.services.recognition_webhook import get_recognition_processor

load_dotenv()

app = FastAPI(title="Camp Attendance API")

STATUS_BY_KIND = {
    ErrorKind.not_found: 404,
    ErrorKind.validation: 400,
    ErrorKind.conflict: 409,
    ErrorKind.in_progress: 409,
    ErrorKind.upstream: 502,
}


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    content = {"detail": exc.message, "kind": exc.kind.value}
    headers = None
    if isinstance(exc, ScheduleConflictError):
        content["conflicts"] = exc.conflicts
    if isinstance(exc, RequestInProgressError):
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(status_code=STATUS_BY_KIND[exc.kind], content=content, headers=headers)


@app.on_event("startup")
async def startup_event():
    setup_logging()
    init_db()
    # Purge expired webhook idempotency entries in the background
    asyncio.create_task(start_sweep_task(get_recognition_processor().store))


app.add_middleware(LoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "Retry-After"]
)


@app.get("/")
async def root():
    return {"message": "Welcome to the Camp Attendance API"}

app.include_router(activity_schedule.router, prefix="/activity-schedules", tags=["Activity Schedules"])
app.include_router(attendance.router, prefix="/attendance-logs", tags=["Attendance"])
app.include_router(recognition_webhook.router, prefix="/api/attendance", tags=["Recognition Webhook"])
app.include_router(websocket.router, prefix="/attendance", tags=["WebSocket"])
app.include_router(config.router, prefix="/config", tags=["Config"])

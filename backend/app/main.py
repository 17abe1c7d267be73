"""
Reservation Engine application entry point
Room and function hall reservations for a hotel / convention center
"""
import logging
import uuid
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from app.config import settings
from app.database import init_db
from app.models.ontology import (
    ResourceKind, ResourceStatus, SlotType, ReservationStatus, PaymentStatus,
    PaymentMode, Channel, OccupantType, IdProofType, HistoryAction
)
from app.models.schemas import ErrorBody, ErrorResponse
from app.routers import reservations, public, resources, history
from app.services.errors import ErrorCode, ReservationError
from app.services.notification_service import register_notification_handlers

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: create tables, wire notification handlers"""
    init_db()
    register_notification_handlers()
    yield


# Create the application
app = FastAPI(
    title=settings.APP_NAME,
    description="Conflict-free reservations of rooms and function halls",
    version="1.0.0",
    lifespan=lifespan
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def error_response(status_code: int, code: str, message: str, context: dict) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorBody(code=code, message=message, context=context)).model_dump(mode="json"),
    )


@app.exception_handler(ReservationError)
async def reservation_error_handler(request: Request, exc: ReservationError):
    """Domain failures: stable code, actionable message"""
    logger.warning(f"{request.method} {request.url.path} -> {exc.code.value}: {exc.message}")
    return error_response(exc.http_status, exc.code.value, exc.message, exc.context)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"loc": [str(part) for part in e.get("loc", ())], "msg": e.get("msg", ""), "type": e.get("type", "")}
        for e in exc.errors()
    ]
    logger.warning(f"{request.method} {request.url.path} -> invalid request: {errors}")
    return error_response(422, ErrorCode.VALIDATION_ERROR.value, "Request validation failed", {"errors": errors})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    """Anything else: generic message, details only in the server log"""
    correlation_id = uuid.uuid4().hex
    logger.exception(f"Unhandled error [{correlation_id}] on {request.method} {request.url.path}")
    return error_response(
        500,
        ErrorCode.INTERNAL_ERROR.value,
        "An internal error occurred",
        {"correlation_id": correlation_id},
    )


# Routers
app.include_router(reservations.router)
app.include_router(public.router)
app.include_router(resources.router)
app.include_router(history.router)


@app.get("/")
def root():
    return {
        "name": settings.APP_NAME,
        "version": "1.0.0",
    }


@app.get("/enums")
def get_enums():
    """Allowed values of every enumerated field"""
    enums = [
        ResourceKind, ResourceStatus, SlotType, ReservationStatus, PaymentStatus,
        PaymentMode, Channel, OccupantType, IdProofType, HistoryAction,
    ]
    return {enum.__name__: [member.value for member in enum] for enum in enums}


@app.get("/health")
def health_check():
    """Health check"""
    return {"status": "healthy"}

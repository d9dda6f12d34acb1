from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
import secrets
import uvicorn
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

# Import routers
from roomcheck.api.routes import attendance, check_in, health, qr
from roomcheck.core.config import get_settings
from roomcheck.core.exceptions import AttendanceError, ConfigurationError, DeliveryFailed
from roomcheck.core.logging import setup_logging
from roomcheck.db.session import SessionLocal, engine
from roomcheck.db.base import Base
from roomcheck.schemas import ErrorResponse
import roomcheck.models  # noqa: F401  registers tables on Base.metadata

settings = get_settings()

# Setup logging
setup_logging(settings.LOG_LEVEL, settings.LOG_FILE)
logger = logging.getLogger(__name__)


def check_entropy_source():
    """Attendance codes and salts need a working OS randomness source"""
    try:
        secrets.token_bytes(16)
    except (NotImplementedError, OSError) as e:
        raise ConfigurationError(f"Secure random source unavailable: {e}") from e


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan events for startup and shutdown"""
    # Startup
    logger.info(f"🚀 Starting {settings.PROJECT_NAME} ({settings.ENVIRONMENT})...")

    check_entropy_source()

    logger.info("📦 Creating database tables...")
    Base.metadata.create_all(bind=engine)

    try:
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
        finally:
            db.close()
        logger.info("✅ Database connection successful")
    except SQLAlchemyError as e:
        logger.error(f"❌ Database connection failed: {e}")
        raise

    yield

    # Shutdown
    logger.info("👋 Shutting down...")


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Meeting attendance verification with single-use codes and QR attendance view",
    version=settings.VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.APP_BASE_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AttendanceError)
async def attendance_error_handler(request: Request, exc: AttendanceError):
    body = ErrorResponse(
        error=exc.error_code,
        message=exc.message,
        send_count=exc.send_count if isinstance(exc, DeliveryFailed) else None,
    )
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(exclude_none=True))


# Include routers
app.include_router(health.router, prefix=settings.API_PREFIX, tags=["Health"])
app.include_router(attendance.router, prefix=settings.API_PREFIX, tags=["Attendance"])
app.include_router(qr.router, prefix=settings.API_PREFIX, tags=["QR Code"])
app.include_router(check_in.router, prefix=settings.API_PREFIX, tags=["Organizer"])


@app.get("/")
async def root():
    """Root endpoint with API information"""
    prefix = settings.API_PREFIX
    return {
        "service": settings.PROJECT_NAME,
        "version": settings.VERSION,
        "status": "operational",
        "docs": "/docs",
        "endpoints": {
            "health": f"{prefix}/health",
            "send_code": f"{prefix}/meetings/{{booking_id}}/attendance/send-code",
            "verify": f"{prefix}/meetings/{{booking_id}}/attendance/verify",
            "context": f"{prefix}/meetings/{{booking_id}}/attendance/context",
            "attendees": f"{prefix}/meetings/{{booking_id}}/attendance/attendees",
            "qr": f"{prefix}/meetings/{{booking_id}}/qr",
            "check_in": f"{prefix}/meetings/{{booking_id}}/check-in"
        },
        "privacy_note": "Attendance codes are stored only as salted hashes"
    }


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000, reload=False)

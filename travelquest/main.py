"""
Main FastAPI application entry point.
"""
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from starlette.exceptions import HTTPException as StarletteHTTPException
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from prometheus_fastapi_instrumentator import Instrumentator

from travelquest.core.config import settings
from travelquest.core.database import AsyncSessionLocal, init_db, close_db
from travelquest.core.events import create_event_publisher, close_event_publisher
from travelquest.core.exceptions import TravelQuestError
from travelquest.api.auth import router as auth_router
from travelquest.api.quizzes import router as quizzes_router
from travelquest.api.gamification import router as gamification_router
from travelquest.seed import seed_badges

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Initialize Sentry if configured
if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENVIRONMENT,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    """
    logger.info(f"Starting {settings.APP_NAME} API...")

    await init_db()

    if settings.SEED_DEFAULT_BADGES:
        async with AsyncSessionLocal() as session:
            async with session.begin():
                await seed_badges(session)

    app.state.event_publisher = await create_event_publisher()

    yield

    logger.info(f"Shutting down {settings.APP_NAME} API...")
    await close_event_publisher(app.state.event_publisher)
    await close_db()
    logger.info("Shutdown complete")


def _error_body(message, error_type: str, status_code: int, **extra) -> dict:
    return {"error": {"message": message, "type": error_type, "status_code": status_code, **extra}}


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        description=settings.APP_DESCRIPTION,
        version=settings.APP_VERSION,
        docs_url="/docs" if not settings.is_production() else None,
        redoc_url=None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
        allow_methods=settings.CORS_ALLOW_METHODS,
        allow_headers=settings.CORS_ALLOW_HEADERS,
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    if settings.PROMETHEUS_ENABLED:
        Instrumentator().instrument(app).expose(app, endpoint="/metrics")

    @app.exception_handler(TravelQuestError)
    async def domain_exception_handler(request: Request, exc: TravelQuestError):
        """Handle errors raised by services."""
        if exc.status_code >= 500:
            logger.error(f"{exc.error_type}: {exc.message}", exc_info=exc.__cause__)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.message, exc.error_type, exc.status_code, **({"details": exc.details} if exc.details else {})),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions."""
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.detail, "http_error", exc.status_code),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle validation errors."""
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=_error_body(
                "Validation error", "validation_error", status.HTTP_422_UNPROCESSABLE_ENTITY,
                details=jsonable_encoder(exc.errors()),
            ),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle general exceptions."""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        message = "An internal error occurred" if settings.is_production() else str(exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body(message, "internal_error", status.HTTP_500_INTERNAL_SERVER_ERROR),
        )

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Basic health check endpoint."""
        return {
            "status": "healthy",
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
        }

    app.include_router(auth_router, prefix=f"{settings.API_V1_PREFIX}/auth", tags=["auth"])
    app.include_router(quizzes_router, prefix=f"{settings.API_V1_PREFIX}/quizzes", tags=["quizzes"])
    app.include_router(gamification_router, prefix=f"{settings.API_V1_PREFIX}/gamification", tags=["gamification"])
    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "travelquest.main:app",
        host="0.0.0.0",
        port=8000,
        log_level=settings.LOG_LEVEL.lower(),
    )

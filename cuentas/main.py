"""
FastAPI application factory
"""
import logging

from fastapi import FastAPI, Depends, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.sessions import SessionMiddleware

from cuentas.api.deps import get_db
from cuentas.api.v1 import groups, invitations, obligations, payments, months, sync, categories
from cuentas.config import get_settings
from cuentas.domain.errors import AppError, Unavailable
from cuentas.infrastructure.db.session import check_db_connection

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class ErrorLoggingMiddleware(BaseHTTPMiddleware):
    """Catches everything the exception handlers did not, including sync routes."""

    async def dispatch(self, request, call_next):
        try:
            return await call_next(request)
        except Exception:
            logger.exception("Unhandled error on %s %s", request.method, request.url.path)
            return JSONResponse(
                status_code=500,
                content={"error": {"code": AppError.code, "message": "Internal Server Error"}},
            )


def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    else:
        logger.info("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})


def operational_error_handler(request: Request, exc: OperationalError) -> JSONResponse:
    logger.exception("Database unavailable on %s %s", request.method, request.url.path)
    error = Unavailable("База данных недоступна")
    return JSONResponse(status_code=error.status_code, content={"error": error.to_dict()})


def create_app() -> FastAPI:
    """
    Application factory - создаёт и настраивает FastAPI приложение

    Returns:
        Настроенный FastAPI app
    """
    settings = get_settings()

    app = FastAPI(
        title="Mis Cuentas",
        debug=settings.DEBUG,
    )

    app.add_middleware(ErrorLoggingMiddleware)

    # Middleware
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.SECRET_KEY
    )

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(OperationalError, operational_error_handler)

    # Routers
    app.include_router(groups.router)
    app.include_router(invitations.router)
    app.include_router(obligations.router)
    app.include_router(payments.router)
    app.include_router(months.router)
    app.include_router(sync.router)
    app.include_router(categories.router)

    # Health checks
    @app.get("/health", response_class=PlainTextResponse, tags=["system"])
    def health():
        """Health check endpoint"""
        return "ok"

    @app.get("/ready", response_class=PlainTextResponse, tags=["system"])
    def ready(db: Session = Depends(get_db)):
        """Readiness check endpoint (проверяет доступность БД)"""
        check_db_connection(db)
        return "ok"

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "cuentas.main:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
    )

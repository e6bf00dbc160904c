import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from sqlalchemy import text
from sqlalchemy.exc import ProgrammingError

from leadcms.config import settings
from leadcms.db.base import engine
from leadcms.routers import modules, page_drafts

logger = logging.getLogger(__name__)


def _is_schema_mismatch_programming_error(exc: ProgrammingError) -> bool:
    orig = getattr(exc, "orig", None)
    if getattr(orig, "pgcode", None) in ("42703", "42P01"):
        return True
    message = str(orig or exc).lower()
    return any(
        marker in message
        for marker in (
            "undefined column",
            "does not exist",
            "no such column",
            "no such table",
        )
    )


def _configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app() -> FastAPI:
    _configure_logging()
    logger.info("Creating LeadCMS API app", extra={"environment": settings.ENVIRONMENT})
    app = FastAPI(title="LeadCMS API", default_response_class=ORJSONResponse)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=sorted(set(settings.BACKEND_CORS_ORIGINS)),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ProgrammingError)
    async def programming_error_handler(_request: Request, exc: ProgrammingError) -> ORJSONResponse:
        logger.exception("Database programming error", exc_info=exc)
        if _is_schema_mismatch_programming_error(exc):
            return ORJSONResponse(
                status_code=503,
                content={
                    "detail": "Database schema is out of date. Run `alembic upgrade head` and redeploy."
                },
            )
        return ORJSONResponse(status_code=500, content={"detail": "Database query failed."})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(_request: Request, exc: Exception) -> ORJSONResponse:
        logger.exception("Unhandled server exception", exc_info=exc)
        return ORJSONResponse(status_code=500, content={"detail": "Internal server error."})

    @app.get("/health")
    async def health() -> dict[str, bool]:
        return {"ok": True}

    @app.get("/health/db")
    def health_db() -> dict[str, str]:
        try:
            with engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            return {"db": "ok"}
        except Exception as exc:  # pragma: no cover - simple runtime check
            return {"db": f"error: {exc}"}

    app.include_router(page_drafts.router)
    app.include_router(modules.router)

    return app


app = create_app()

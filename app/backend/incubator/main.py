"""FastAPI application entrypoint."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session, sessionmaker

from incubator.api.router import api_router
from incubator.core.config import get_settings
from incubator.core.errors import IntegrityViolationError, InterchangeValidationError, RecordNotFoundError
from incubator.core.logging import configure_logging
from incubator.db.base import Base
from incubator.db.session import SessionLocal
from incubator.services.entity_store import EntityStore


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(RecordNotFoundError)
    async def _not_found(request: Request, exc: RecordNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})

    @app.exception_handler(IntegrityViolationError)
    async def _integrity(request: Request, exc: IntegrityViolationError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "detail": {
                    "message": str(exc),
                    "references": [ref.describe() for ref in exc.references],
                }
            },
        )

    @app.exception_handler(InterchangeValidationError)
    async def _interchange(request: Request, exc: InterchangeValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": {"message": str(exc), "fields": exc.fields}},
        )


def create_app(session_factory: sessionmaker[Session] | None = None) -> FastAPI:
    """Create and configure FastAPI application.

    ``session_factory`` selects the durable local store; the configured
    database is used when omitted.
    """

    settings = get_settings()
    configure_logging(settings.log_level, json_output=settings.log_json)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        factory = session_factory or SessionLocal
        Base.metadata.create_all(bind=factory.kw["bind"])
        store = EntityStore(factory)
        store.load()
        app.state.entity_store = store
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        openapi_url=f"{settings.api_prefix}/openapi.json",
        docs_url=f"{settings.api_prefix}/docs",
        redoc_url=f"{settings.api_prefix}/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_error_handlers(app)
    app.include_router(api_router, prefix=settings.api_prefix)

    @app.get("/", tags=["system"])
    def root() -> dict[str, str]:
        return {"service": settings.app_name, "status": "running"}

    return app


app = create_app()

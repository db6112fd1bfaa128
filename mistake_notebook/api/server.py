"""
FastAPI application for Mistake Notebook.

Startup (lifespan) brings the database up to date before any request is
served. A migration failure at startup propagates out of the lifespan, so
the server never starts on a half-migrated schema. With auto_migrate off,
pending migrations abort startup the same way.

Error responses always have the shape {"error": "<message>"}:
- QuestionNotFoundError -> 404
- BackupError -> 400
- DatabaseMigrationError -> 500 (plus "version")
- DatabaseError -> 500
- Request validation -> 422 (plus "details")
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from .. import __version__
from ..analysis.mock_analyzer import MockQuestionAnalyzer
from ..config.schema import AppConfig
from ..exceptions import (
    BackupError,
    DatabaseError,
    DatabaseMigrationError,
    QuestionNotFoundError,
)
from ..storage.db import init_db_if_needed, require_current_schema
from .routes_backup import router as backup_router
from .routes_config import router as config_router
from .routes_migrations import router as migrations_router
from .routes_questions import router as questions_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: create tables, apply or require migrations, seed the AI config."""
    database = app.state.config.database

    if database.auto_migrate:
        applied = init_db_if_needed(database.path, database.busy_timeout_seconds)
        logger.info(
            f"[startup] database ready at {database.path} "
            f"({len(applied)} migration(s) applied)"
        )
    else:
        status = require_current_schema(database.path, database.busy_timeout_seconds)
        logger.info(f"[startup] database schema is current at v{status.current}")

    yield


# ============================================================================
# Exception handlers
# ============================================================================


async def _question_not_found(request: Request, exc: QuestionNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": str(exc)})


async def _backup_error(request: Request, exc: BackupError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": str(exc)})


async def _migration_error(request: Request, exc: DatabaseMigrationError) -> JSONResponse:
    return JSONResponse(
        status_code=500, content={"error": str(exc), "version": exc.version}
    )


async def _database_error(request: Request, exc: DatabaseError) -> JSONResponse:
    logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=500, content={"error": str(exc)})


async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={
            "error": "Invalid request",
            "details": jsonable_encoder(exc.errors()),
        },
    )


def _mount_frontend(app: FastAPI, static_dir: str | None) -> None:
    """
    Serve the built frontend if its directory exists, else a health endpoint.

    Unknown GET paths fall back to index.html so client-side routes work.
    """
    static_path = Path(static_dir) if static_dir else None

    if static_path is None or not static_path.is_dir():

        @app.get("/")
        def health() -> dict:
            return {"message": "Mistake Notebook API", "status": "running"}

        return

    app.mount("/static", StaticFiles(directory=static_path), name="static")
    index_file = static_path / "index.html"

    @app.get("/{full_path:path}", include_in_schema=False)
    def frontend(full_path: str) -> FileResponse:
        if full_path.startswith("api/") or not index_file.is_file():
            raise HTTPException(status_code=404, detail="Not found")
        return FileResponse(index_file)


def create_app(config: AppConfig | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: Application config; defaults to AppConfig()

    Returns:
        FastAPI: Application ready for uvicorn or TestClient
    """
    config = config or AppConfig()

    app = FastAPI(
        title="Mistake Notebook API",
        description="Question notebook with trash, search and schema migrations",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.analyzer = MockQuestionAnalyzer()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(QuestionNotFoundError, _question_not_found)
    app.add_exception_handler(BackupError, _backup_error)
    app.add_exception_handler(DatabaseMigrationError, _migration_error)
    app.add_exception_handler(DatabaseError, _database_error)
    app.add_exception_handler(StarletteHTTPException, _http_error)
    app.add_exception_handler(RequestValidationError, _validation_error)

    app.include_router(questions_router)
    app.include_router(config_router)
    app.include_router(backup_router)
    app.include_router(migrations_router)

    _mount_frontend(app, config.server.static_dir)

    return app

from __future__ import annotations

import logging
import sqlite3

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class InvalidInputError(ValueError):
    """Request data failed validation before reaching the database."""


class NotFoundError(LookupError):
    """A referenced template, connection or visualization does not exist."""

    def __str__(self) -> str:
        # LookupError.__str__ would repr() a single argument
        return str(self.args[0]) if self.args else ""


class QueryExecutionError(RuntimeError):
    """SQLite rejected or aborted a validated statement."""


class StoredRecordError(RuntimeError):
    """A row in the application database can no longer be read back."""


def register_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers that map service errors to HTTP responses."""

    @app.exception_handler(NotFoundError)
    async def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(ValueError)
    async def _value_error(request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(QueryExecutionError)
    async def _query_error(request: Request, exc: QueryExecutionError) -> JSONResponse:
        logger.error("Query failed on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    @app.exception_handler(StoredRecordError)
    async def _stored_record_error(
        request: Request, exc: StoredRecordError
    ) -> JSONResponse:
        logger.error("Unreadable record on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    @app.exception_handler(sqlite3.Error)
    async def _sqlite_error(request: Request, exc: sqlite3.Error) -> JSONResponse:
        logger.error("SQLite error on %s: %s", request.url.path, exc)
        return JSONResponse(
            status_code=500, content={"detail": f"Database error: {exc}"}
        )

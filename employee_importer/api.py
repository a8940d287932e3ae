"""
FastAPI application for the Employee CSV Importer.

Exposes ingest, hierarchical listing and export as independent HTTP operations.
All importer errors are turned into `{"message": ..., "errors": [...]}`
responses by a single exception handler.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Type

from fastapi import FastAPI, File, Query, Request, UploadFile
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from employee_importer import __version__
from employee_importer.config import Settings, get_settings
from employee_importer.csvio.reader import decode_lines, is_delimited_text
from employee_importer.domain.models import EmployeeNode, EmployeeWithChildren, ImportReport
from employee_importer.errors import (
    ConcurrentImportError,
    CsvParseError,
    ImporterError,
    ImportValidationError,
    QueryValidationError,
    RecordNotFoundError,
    StorageError,
    UploadValidationError,
)
from employee_importer.service import ImportService, build_store
from employee_importer.utils.logging import get_logger

log = get_logger(__name__)

# Most specific class first; the first isinstance match wins.
_STATUS_BY_ERROR: List[tuple[Type[ImporterError], int]] = [
    (UploadValidationError, 400),
    (CsvParseError, 422),
    (ImportValidationError, 422),
    (QueryValidationError, 422),
    (RecordNotFoundError, 404),
    (ConcurrentImportError, 409),
    (StorageError, 500),
]


class UploadResponse(BaseModel):
    message: str
    report: ImportReport


def status_for(exc: ImporterError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 500


def create_app(
    service: Optional[ImportService] = None, settings: Optional[Settings] = None
) -> FastAPI:
    """
    Build the application.

    When `service` is omitted one is created from settings on startup, using
    the configured `STORE_BACKEND`.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        active = service or ImportService(build_store(settings=settings), settings=settings)
        await active.start()
        app.state.service = active
        try:
            yield
        finally:
            await active.stop()

    app = FastAPI(
        title="Employee CSV Importer",
        description="Import, list and export employees with their reporting lines.",
        version=__version__,
        lifespan=lifespan,
    )

    @app.exception_handler(ImporterError)
    async def importer_error_handler(request: Request, exc: ImporterError) -> JSONResponse:
        status = status_for(exc)
        if status >= 500:
            log.error(
                f"Request failed: {exc.message}",
                exc_info=exc,
                extra={"path": request.url.path},
            )
        body: Dict[str, Any] = {
            "message": exc.message,
            "errors": [issue.model_dump() for issue in exc.issues],
        }
        return JSONResponse(status_code=status, content=body)

    def _service(request: Request) -> ImportService:
        return request.app.state.service

    @app.get("/health")
    async def health(request: Request) -> Dict[str, str]:
        return {
            "status": "online",
            "service": "employee-importer",
            "store": _service(request).store.name,
            "version": __version__,
        }

    @app.post("/api/csv/upload", response_model=UploadResponse)
    async def upload_csv(request: Request, file: Optional[UploadFile] = File(None)) -> UploadResponse:
        """
        Import employees from an uploaded CSV file.

        Body: multipart/form-data with a single 'file' field.
        """
        if file is None or not file.filename:
            raise UploadValidationError("Please upload a CSV file!")
        if not is_delimited_text(file.content_type, file.filename):
            raise UploadValidationError(
                f"Please upload only CSV files (got {file.content_type or 'unknown type'})."
            )

        await file.seek(0)
        report = await _service(request).ingest(decode_lines(file.file), filename=file.filename)
        return UploadResponse(
            message=f"Uploaded the file successfully: {file.filename}",
            report=report,
        )

    @app.get("/api/employees", response_model=List[EmployeeWithChildren])
    async def list_employees(
        request: Request,
        with_children_only: bool = Query(
            False, description="Drop employees without direct reports (inner join)."
        ),
    ) -> List[EmployeeWithChildren]:
        return await _service(request).list_hierarchy(require_children=with_children_only)

    @app.get("/api/csv/download")
    async def download_csv(request: Request) -> Response:
        payload = await _service(request).export_csv()
        return Response(
            content=payload.content,
            media_type=payload.media_type,
            headers={"Content-Disposition": f'attachment; filename="{payload.filename}"'},
        )

    @app.get("/api/employees/{employee_id}/tree", response_model=EmployeeNode)
    async def employee_tree(
        request: Request,
        employee_id: int,
        max_depth: Optional[int] = Query(None, ge=0),
    ) -> EmployeeNode:
        return await _service(request).subtree(employee_id, max_depth=max_depth)

    return app


__all__ = ["create_app", "status_for", "UploadResponse"]

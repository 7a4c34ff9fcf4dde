"""File import / export endpoints under ``/api/import-export``."""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import JSONResponse, Response

from app.api.dependencies import app_config, import_export_service
from app.api.responses import respond, unwrap
from app.config import AppConfig
from app.models.enums import DataType, FileFormat
from app.services.import_export_service import ExportFile, ImportExportService

router = APIRouter(prefix="/api/import-export", tags=["Import/Export"])


def _file_response(export: ExportFile) -> Response:
    return Response(
        content=export.content,
        media_type=export.media_type,
        headers={"Content-Disposition": f'attachment; filename="{export.file_name}"'},
    )


@router.get("/config")
def get_config(service: ImportExportService = Depends(import_export_service)) -> JSONResponse:
    return respond(service.get_config())


@router.post("/import")
def import_file(
    file: UploadFile = File(...),
    type_: DataType = Form(DataType.TRANSACTIONS, alias="type"),
    skip_duplicates: bool = Form(True),
    update_existing: bool = Form(False),
    config: AppConfig = Depends(app_config),
    service: ImportExportService = Depends(import_export_service),
) -> JSONResponse:
    # One byte past the limit is enough for the size check to reject it.
    content = file.file.read(config.MAX_FILE_SIZE + 1)
    result = service.import_file(
        file.filename or "upload",
        content,
        type_,
        skip_duplicates=skip_duplicates,
        update_existing=update_existing,
    )
    return respond(result, message="Import completed")


@router.get("/export")
def export_data(
    type_: DataType = Query(DataType.TRANSACTIONS, alias="type"),
    file_format: FileFormat = Query(FileFormat.XLSX, alias="format"),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    service: ImportExportService = Depends(import_export_service),
) -> Response:
    return _file_response(unwrap(service.export_data(type_, file_format, start_date, end_date)))


@router.get("/template/{data_type}")
def get_template(
    data_type: DataType,
    file_format: FileFormat = Query(FileFormat.XLSX, alias="format"),
    service: ImportExportService = Depends(import_export_service),
) -> Response:
    return _file_response(unwrap(service.get_template(data_type, file_format)))

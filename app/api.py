"""
FastAPI routes for statement upload and subscription detection.
Thin API layer: validation here, pipeline in the service layer.
"""
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, File, HTTPException, Query, UploadFile
from fastapi.responses import Response

from core.config import get_settings
from core.exceptions import ExportError, FileProcessingError, ParsingError, ValidationError
from core.exporters import export_to_bytes
from core.logger import setup_logger
from core.schema import DetectionResult
from services.detection_service import SubscriptionDetectionService

logger = setup_logger(__name__)
settings = get_settings()

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

# Initialize FastAPI app
app = FastAPI(
    title="Subscription Detection",
    description="Detect recurring subscriptions in bank statement CSV exports",
    version="1.0.0"
)

# Service instance
detection_service = SubscriptionDetectionService(settings)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "subscription_detection",
        "version": "1.0.0"
    }


@app.get("/profiles")
async def list_profiles():
    """List the bank export profiles the parser knows."""
    return {
        "profiles": [
            {"name": p.name, "layout": p.layout, "delimiter": p.delimiter, "date_format": p.date_format}
            for p in detection_service.profiles
        ]
    }


@app.get("/services")
async def list_services():
    """List the known subscription services."""
    catalog = detection_service.catalog
    return {
        "version": catalog.version,
        "services": [s.model_dump() for s in catalog.services.values()]
    }


def validate_file_extension(filename: Optional[str]) -> None:
    """
    Validate file has correct extension.

    Args:
        filename: Name of file to validate

    Raises:
        HTTPException: If file extension is invalid
    """
    if not filename or not filename.lower().endswith(".csv"):
        raise HTTPException(
            status_code=400,
            detail=f"Invalid file type: {filename}. Please upload a CSV file."
        )


def decode_statement(content: bytes, filename: str) -> str:
    """
    Decode uploaded bytes as UTF-8, dropping a byte-order mark.

    Raises:
        ParsingError: If the content is not valid UTF-8
    """
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ParsingError(
            "Statement is not valid UTF-8 text",
            details={"filename": filename, "position": e.start}
        )


def check_upload_size(content: bytes, filename: str, limit: int) -> None:
    """
    Raises:
        FileProcessingError: If the upload exceeds the configured limit
    """
    if len(content) > limit:
        raise FileProcessingError(
            f"File too large. Maximum size is {limit} bytes.",
            details={"filename": filename, "limit": limit}
        )


async def read_upload(file: UploadFile) -> str:
    """Validate and decode an uploaded statement."""
    validate_file_extension(file.filename)

    content = await file.read(settings.max_upload_bytes + 1)
    try:
        check_upload_size(content, file.filename, settings.max_upload_bytes)
    except FileProcessingError as e:
        logger.warning(f"Rejected upload {file.filename}: {e.message}")
        raise HTTPException(status_code=413, detail=e.message)

    try:
        return decode_statement(content, file.filename)
    except ParsingError as e:
        logger.warning(f"Rejected upload {file.filename}: {e.message}")
        raise HTTPException(status_code=400, detail=e.message)


def run_detection(text: str, filename: str, profile: Optional[str]) -> DetectionResult:
    try:
        return detection_service.analyze(text, filename=filename, profile=profile)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail={"message": e.message, **e.details})


@app.post("/detect", response_model=DetectionResult)
async def detect_subscriptions(
    file: UploadFile = File(...),
    profile: Optional[str] = Query(default=None, description="Force a bank profile by name")
):
    """
    Detect recurring subscriptions in an uploaded statement.

    Args:
        file: Bank statement CSV export
        profile: Optional profile name; layout is detected when omitted

    Returns:
        Detected subscriptions with parsing statistics
    """
    logger.info(f"Received statement: {file.filename}")
    text = await read_upload(file)
    return run_detection(text, file.filename, profile)


@app.post("/detect/export")
async def export_subscriptions(
    file: UploadFile = File(...),
    profile: Optional[str] = Query(default=None, description="Force a bank profile by name")
):
    """
    Detect subscriptions and return them as an Excel report.

    Returns:
        .xlsx attachment
    """
    logger.info(f"Received statement for export: {file.filename}")
    text = await read_upload(file)
    result = run_detection(text, file.filename, profile)

    try:
        payload = export_to_bytes(result.subscriptions)
    except ExportError as e:
        logger.error(f"Export failed for {file.filename}: {e.details}")
        raise HTTPException(status_code=500, detail=e.message)

    report_name = f"{Path(file.filename).stem}_subscriptions.xlsx"
    return Response(
        content=payload,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{report_name}"'}
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port)

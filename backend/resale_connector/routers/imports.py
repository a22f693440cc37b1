from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy.orm import Session

from resale_connector.config import settings
from resale_connector.database import get_db
from resale_connector.models.imports import ImportResponse
from resale_connector.routers.deps import get_current_user_id
from resale_connector.services.spreadsheet_import import import_workbook
from resale_connector.utils.logger import logger

router = APIRouter(prefix="/api", tags=["import"])

ALLOWED_EXTENSIONS = (".xlsx", ".xls")
DIALECTS = ("auto", "simple", "positional")


@router.post("/import", response_model=ImportResponse)
async def import_spreadsheet(
    file: UploadFile = File(...),
    dialect: Optional[str] = Query(None, description="Sales sheet layout: auto, simple or positional"),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    filename = (file.filename or "").lower()
    if not filename.endswith(ALLOWED_EXTENSIONS):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid file type. Please upload an Excel file (.xlsx or .xls)",
        )
    if dialect is not None and dialect not in DIALECTS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown dialect {dialect!r}; expected one of {', '.join(DIALECTS)}",
        )

    file_bytes = await file.read(settings.IMPORT_MAX_FILE_BYTES + 1)
    if len(file_bytes) > settings.IMPORT_MAX_FILE_BYTES:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds the {settings.IMPORT_MAX_FILE_BYTES} byte upload limit",
        )

    logger.info("[import_router] Importing %s (%s bytes) for user_id=%s", file.filename, len(file_bytes), user_id)
    outcome = import_workbook(db, user_id, file_bytes, dialect=dialect)
    return ImportResponse(success=True, **outcome.to_dict())

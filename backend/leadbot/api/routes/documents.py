"""
Documents API routes

The document-store endpoint the conversation uploads to. Bodies are JSON with
the file content base64-encoded (no data URL prefix).
"""
from typing import Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from leadbot.core import logger
from leadbot.core.errors import ValidationError
from leadbot.db import get_db
from leadbot.services.document_storage import store_document

router = APIRouter()


# Request/Response schemas
class DocumentUploadRequest(BaseModel):
    id: Optional[str] = None
    doc_type: Optional[str] = None
    file_b64: Optional[str] = None
    file_ext: Optional[str] = None
    mime: Optional[str] = None


class DocumentUploadResponse(BaseModel):
    ok: bool
    path: str
    checksum: str


@router.post("/upload", response_model=DocumentUploadResponse)
async def upload_document(
    request: DocumentUploadRequest,
    db: Session = Depends(get_db),
):
    """Save a document to disk and upsert its lead_documents row."""
    logger.info("Received document upload request")

    if not (request.id and request.doc_type and request.file_b64 and request.file_ext):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"ok": False, "error": "Missing required fields (id, doc_type, file_b64, file_ext)"},
        )

    try:
        stored = store_document(
            db,
            lead_id=request.id,
            doc_type=request.doc_type,
            file_b64=request.file_b64,
            file_ext=request.file_ext,
            mime=request.mime,
        )
    except ValidationError as exc:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"ok": False, "error": exc.message},
        )
    except OSError as exc:
        db.rollback()
        logger.error(f"Upload error: {exc}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"ok": False, "error": str(exc)},
        )

    return DocumentUploadResponse(ok=True, path=stored.path, checksum=stored.checksum)

"""
Document storage - persists uploaded documents to disk and upserts their rows.

Files land at <DOCS_DIR>/<lead id>/<DOC_TYPE>.<ext> and are served publicly
under /docs. A lead flips to READY once it holds the expected number of
documents.
"""
import base64
import binascii
import hashlib
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from leadbot.core import logger, settings
from leadbot.core.errors import ValidationError
from leadbot.db.models import Lead, LeadDocument, LeadStatus


@dataclass(frozen=True)
class StoredDocument:
    lead_id: str
    doc_type: str
    path: str
    checksum: str
    document_count: int


LEAD_ID_PATTERN = re.compile(r"[A-Za-z0-9_-]+")


def validate_lead_id(lead_id: str) -> str:
    """Lead ids name directories: letters, digits, underscore and hyphen only."""
    lead_id = str(lead_id).strip()
    if not LEAD_ID_PATTERN.fullmatch(lead_id):
        raise ValidationError(f"Invalid lead id '{lead_id}'")
    return lead_id


def sanitize_doc_type(doc_type: str) -> str:
    return re.sub(r"[^A-Z0-9_]", "_", str(doc_type).strip().upper())


def sanitize_extension(file_ext: str) -> str:
    return re.sub(r"[^a-z0-9]", "", str(file_ext).strip().lower()) or "bin"


def ensure_lead(db: Session, lead_id: str) -> Lead:
    """Create the parent lead row if it does not exist yet."""
    lead = db.get(Lead, lead_id)
    if lead is None:
        lead = Lead(id=lead_id, insurer="UNKNOWN", status=LeadStatus.GATHERING_DATA)
        db.add(lead)
        db.flush()
    return lead


def store_document(
    db: Session,
    lead_id: str,
    doc_type: str,
    file_b64: str,
    file_ext: str,
    mime: Optional[str] = None,
    docs_dir: Optional[str] = None,
    public_url: Optional[str] = None,
    expected_count: Optional[int] = None,
) -> StoredDocument:
    """
    Decode, write and record one document.

    Raises:
        ValidationError: if the lead id is unsafe or the base64 body cannot be
            decoded.
    """
    safe_id = validate_lead_id(lead_id)
    safe_type = sanitize_doc_type(doc_type)
    safe_ext = sanitize_extension(file_ext)
    docs_dir = docs_dir or settings.DOCS_DIR
    public_url = (public_url or settings.PUBLIC_URL).rstrip("/")
    expected_count = expected_count or settings.EXPECTED_DOCUMENT_COUNT

    try:
        content = base64.b64decode(file_b64, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValidationError(f"file_b64 is not valid base64: {exc}") from exc

    checksum = hashlib.sha256(content).hexdigest()

    root = Path(docs_dir).resolve()
    directory = (root / safe_id).resolve()
    if root not in directory.parents:
        raise ValidationError(f"Invalid lead id '{safe_id}'")
    directory.mkdir(parents=True, exist_ok=True)
    file_name = f"{safe_type}.{safe_ext}"
    (directory / file_name).write_bytes(content)

    path = f"{public_url}/docs/{safe_id}/{file_name}"
    final_mime = mime or "application/octet-stream"

    lead = ensure_lead(db, safe_id)

    document = db.get(LeadDocument, (safe_id, safe_type))
    if document is None:
        document = LeadDocument(id=safe_id, doc_type=safe_type, path=path, mime=final_mime, checksum=checksum)
        db.add(document)
    else:
        document.path = path
        document.mime = final_mime
        document.checksum = checksum
    db.flush()

    document_count = db.query(func.count(LeadDocument.doc_type)).filter(LeadDocument.id == safe_id).scalar()
    if document_count == expected_count and lead.status == LeadStatus.GATHERING_DATA:
        lead.status = LeadStatus.READY
        logger.info(f"Lead {safe_id} has all {expected_count} documents, marked READY")

    db.commit()
    logger.info(f"Stored {safe_type} for lead {safe_id} ({len(content)} bytes)")

    return StoredDocument(
        lead_id=safe_id,
        doc_type=safe_type,
        path=path,
        checksum=checksum,
        document_count=document_count,
    )

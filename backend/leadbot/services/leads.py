"""
Lead Service - OCR results and quote status for leads.
"""
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from leadbot.core import logger
from leadbot.core.errors import ValidationError
from leadbot.db.models import Lead, LeadStatus
from leadbot.services.document_storage import ensure_lead


def record_ocr_result(db: Session, result: Dict[str, Any]) -> Lead:
    """
    Store the automation webhook's OCR response on its lead.

    The response must carry the lead's tracking id as `id`.
    """
    lead_id = result.get("id")
    if not lead_id:
        raise ValidationError("OCR result has no lead id")

    lead = ensure_lead(db, str(lead_id).strip())
    # Merge so a document result does not erase the fields from earlier ones
    lead.ocr_data = {**(lead.ocr_data or {}), **result}
    db.commit()
    logger.info(f"Recorded OCR result for lead {lead.id}")
    return lead


def register_quote(db: Session, lead_id: str, path: str) -> Lead:
    """Mark a lead's quote as produced; `path` is relative to the artifacts root."""
    if not path:
        raise ValidationError("Quote path is required")

    lead = ensure_lead(db, lead_id)
    lead.quote_path = path
    lead.status = LeadStatus.QUOTED
    db.commit()
    logger.info(f"Quote registered for lead {lead_id}: {path}")
    return lead


def get_quote_status(db: Session, lead_id: str) -> Dict[str, Optional[str]]:
    lead = db.get(Lead, lead_id)
    if lead is None:
        return {"status": "unknown", "path": None}
    if lead.quote_path:
        return {"status": "ready", "path": lead.quote_path}
    return {"status": "pending", "path": None}

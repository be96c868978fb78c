"""
Leads API routes
"""
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException, status
from sqlalchemy.orm import Session

from leadbot.core.errors import ValidationError
from leadbot.db import get_db
from leadbot.services.leads import record_ocr_result

router = APIRouter()


@router.post("/update")
async def update_lead(
    result: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
):
    """Store an OCR result relayed from the automation webhook."""
    try:
        lead = record_ocr_result(db, result)
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=exc.message,
        )
    return {"ok": True, "id": lead.id, "status": lead.status.value}

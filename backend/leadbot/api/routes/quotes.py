"""
Quotes API routes
"""
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from leadbot.core.errors import ValidationError
from leadbot.db import get_db
from leadbot.services.leads import get_quote_status, register_quote

router = APIRouter()


class QuoteRegistration(BaseModel):
    path: str


@router.get("/status/{lead_id}")
async def quote_status(lead_id: str, db: Session = Depends(get_db)):
    """Polled by the conversation until the quote is ready."""
    return get_quote_status(db, lead_id)


@router.post("/{lead_id}")
async def add_quote(
    lead_id: str,
    request: QuoteRegistration,
    db: Session = Depends(get_db),
):
    """Record a produced quote file (relative to the artifacts root)."""
    try:
        lead = register_quote(db, lead_id, request.path)
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=exc.message,
        )
    return {"ok": True, "id": lead.id, "status": lead.status.value, "path": lead.quote_path}

"""
Lead database model
"""
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import Column, String, DateTime, Enum, JSON
from sqlalchemy.orm import relationship

from leadbot.db.base import Base


class LeadStatus(str, PyEnum):
    GATHERING_DATA = "GATHERING_DATA"
    READY = "READY"  # All expected documents stored
    QUOTED = "QUOTED"


class Lead(Base):
    """An applicant, keyed by the conversation's tracking id."""

    __tablename__ = "leads"

    id = Column(String(64), primary_key=True)
    insurer = Column(String(100), nullable=False, default="UNKNOWN")
    status = Column(Enum(LeadStatus), nullable=False, default=LeadStatus.GATHERING_DATA)

    # Latest OCR/automation result relayed from the webhook
    ocr_data = Column(JSON, nullable=True)
    quote_path = Column(String(500), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    documents = relationship("LeadDocument", back_populates="lead", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Lead {self.id} ({self.status.value})>"

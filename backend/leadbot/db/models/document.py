"""
Lead document database model
"""
from datetime import datetime

from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from leadbot.db.base import Base


class LeadDocument(Base):
    """One stored document per (lead, document type)."""

    __tablename__ = "lead_documents"

    id = Column(String(64), ForeignKey("leads.id"), primary_key=True)
    doc_type = Column(String(64), primary_key=True)
    path = Column(String(500), nullable=False)
    mime = Column(String(100), nullable=False, default="application/octet-stream")
    checksum = Column(String(64), nullable=False)

    uploaded_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    lead = relationship("Lead", back_populates="documents")

    def __repr__(self) -> str:
        return f"<LeadDocument {self.id}/{self.doc_type}>"

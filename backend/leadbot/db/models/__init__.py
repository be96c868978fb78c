"""
Database models package
"""
from leadbot.db.models.lead import Lead, LeadStatus
from leadbot.db.models.document import LeadDocument

__all__ = [
    "Lead",
    "LeadStatus",
    "LeadDocument",
]

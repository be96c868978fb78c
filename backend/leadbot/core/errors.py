"""
Error taxonomy for the lead-intake flow.

Only LoadError is fatal (the conversation cannot start without a catalog).
Everything else is recoverable: validation errors are corrected by the user,
submission errors roll the conversation back one stage, and polling errors are
retried silently.
"""
from typing import Optional


class LeadBotError(Exception):
    """Base class for all LeadBot errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class LoadError(LeadBotError):
    """The question catalog could not be loaded."""


class ValidationError(LeadBotError):
    """User input failed a local check. Never reaches the network."""


class DocumentTypeError(ValidationError):
    """A document question has no canonical document-type code."""

    def __init__(self, question_id: str):
        super().__init__(f"No document type is mapped for question '{question_id}'")
        self.question_id = question_id


class SubmissionError(LeadBotError):
    """The webhook or the document store rejected a submission."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PollingError(LeadBotError):
    """A quote status check failed. Retried on the next tick."""


class InvalidTransitionError(LeadBotError):
    """An event arrived in a stage that does not accept it."""

    def __init__(self, event: str, stage: str):
        super().__init__(f"Cannot handle '{event}' while in stage '{stage}'")
        self.event = event
        self.stage = stage


class SessionNotFoundError(LeadBotError):
    """No active conversation exists for a tracking id."""

    def __init__(self, tracking_id: str):
        super().__init__(f"Conversation {tracking_id} not found")
        self.tracking_id = tracking_id

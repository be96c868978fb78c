"""
Conversation orchestration package
"""
from leadbot.orchestration.catalog import Question, QuestionCatalog, load_catalog, load_catalog_file, parse_catalog
from leadbot.orchestration.state import Session, Stage, StageKind, Message, Speaker, PendingUpload
from leadbot.orchestration.machine import ConversationMachine, UploadPolicy, find_next_question
from leadbot.orchestration.poller import QuotePoller
from leadbot.orchestration.coordinator import SubmissionCoordinator

__all__ = [
    "Question",
    "QuestionCatalog",
    "load_catalog",
    "load_catalog_file",
    "parse_catalog",
    "Session",
    "Stage",
    "StageKind",
    "Message",
    "Speaker",
    "PendingUpload",
    "ConversationMachine",
    "UploadPolicy",
    "find_next_question",
    "QuotePoller",
    "SubmissionCoordinator",
]

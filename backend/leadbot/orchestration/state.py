"""
Conversation State Definition

Defines the immutable session that the state machine threads through every
event, plus the events themselves. A Session is never mutated in place: each
event produces a new one via dataclasses.replace, so a conversation can be
replayed deterministically from its event list.
"""
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Optional, Tuple
import time
import uuid


class StageKind(str, Enum):
    """Closed set of conversation stages."""
    COLLECTING_ANSWERS = "collecting_answers"
    ANSWERS_READY_TO_SUBMIT = "answers_ready_to_submit"
    SUBMITTING_ANSWERS = "submitting_answers"
    COLLECTING_DOC = "collecting_doc"
    SUBMITTING_DOC = "submitting_doc"
    COMPLETED = "completed"


DOCUMENT_KINDS = (StageKind.COLLECTING_DOC, StageKind.SUBMITTING_DOC)


@dataclass(frozen=True)
class Stage:
    """
    Tagged stage variant.

    Document stages carry their 1-based document number as data, so the active
    document is read from the stage itself rather than parsed from a name.
    """
    kind: StageKind
    doc_number: Optional[int] = None

    def __post_init__(self):
        if self.kind in DOCUMENT_KINDS:
            if self.doc_number is None or self.doc_number < 1:
                raise ValueError(f"{self.kind.value} needs a document number >= 1")
        elif self.doc_number is not None:
            raise ValueError(f"{self.kind.value} does not take a document number")

    @property
    def name(self) -> str:
        if self.doc_number is not None:
            return f"{self.kind.value}_{self.doc_number}"
        return self.kind.value

    @property
    def doc_index(self) -> Optional[int]:
        """0-based index into the document question list."""
        return self.doc_number - 1 if self.doc_number is not None else None

    @classmethod
    def collecting_answers(cls) -> "Stage":
        return cls(StageKind.COLLECTING_ANSWERS)

    @classmethod
    def answers_ready(cls) -> "Stage":
        return cls(StageKind.ANSWERS_READY_TO_SUBMIT)

    @classmethod
    def submitting_answers(cls) -> "Stage":
        return cls(StageKind.SUBMITTING_ANSWERS)

    @classmethod
    def collecting_doc(cls, number: int) -> "Stage":
        return cls(StageKind.COLLECTING_DOC, number)

    @classmethod
    def submitting_doc(cls, number: int) -> "Stage":
        return cls(StageKind.SUBMITTING_DOC, number)

    @classmethod
    def completed(cls) -> "Stage":
        return cls(StageKind.COMPLETED)

    def __str__(self) -> str:
        return self.name


class Speaker(str, Enum):
    BOT = "bot"
    USER = "user"


@dataclass(frozen=True)
class Message:
    """One entry in the append-only message log."""
    speaker: Speaker
    content: str
    question_id: Optional[str] = None
    link: Optional[str] = None

    def to_dict(self) -> dict:
        data = {"speaker": self.speaker.value, "content": self.content}
        if self.question_id:
            data["question_id"] = self.question_id
        if self.link:
            data["link"] = self.link
        return data


@dataclass(frozen=True)
class PendingUpload:
    """A file chosen by the user but not yet submitted."""
    filename: str
    content_type: str
    data: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class UploadReceipt:
    """Confirmation from the document store for one submitted document."""
    question_id: str
    doc_type: str
    path: str
    checksum: str


@dataclass(frozen=True)
class Session:
    """Immutable snapshot of one conversation."""
    tracking_id: str
    stage: Stage = field(default_factory=Stage.collecting_answers)
    cursor: int = 0
    answers: Dict[str, str] = field(default_factory=dict)
    pending_upload: Optional[PendingUpload] = None
    messages: Tuple[Message, ...] = ()
    error: Optional[str] = None
    typing: bool = False
    quote_url: Optional[str] = None
    submitted_documents: Tuple[UploadReceipt, ...] = ()

    def with_bot_message(self, content: str, question_id: Optional[str] = None,
                         link: Optional[str] = None) -> "Session":
        message = Message(Speaker.BOT, content, question_id=question_id, link=link)
        return replace(self, messages=self.messages + (message,))

    def with_user_message(self, content: str) -> "Session":
        return replace(self, messages=self.messages + (Message(Speaker.USER, content),))


def generate_tracking_id() -> str:
    """Correlation key for every external call made on behalf of a session."""
    return f"TRACK-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


# ============================================================================
# Events
# ============================================================================

@dataclass(frozen=True)
class TextAnswered:
    value: str


@dataclass(frozen=True)
class OptionSelected:
    option: str


@dataclass(frozen=True)
class FileChosen:
    upload: PendingUpload


@dataclass(frozen=True)
class AnswerSubmissionStarted:
    pass


@dataclass(frozen=True)
class AnswerSubmissionSucceeded:
    pass


@dataclass(frozen=True)
class AnswerSubmissionFailed:
    reason: str


@dataclass(frozen=True)
class DocumentSubmissionStarted:
    pass


@dataclass(frozen=True)
class DocumentSubmissionSucceeded:
    receipt: UploadReceipt


@dataclass(frozen=True)
class DocumentSubmissionFailed:
    reason: str


@dataclass(frozen=True)
class QuoteReady:
    url: str

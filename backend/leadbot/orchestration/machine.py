"""
Conversation State Machine

Reducer-style state machine for the lead-intake conversation. Every event
produces a new Session; nothing is mutated in place and nothing here touches
the network. Side-effecting steps live in the SubmissionCoordinator, which
feeds their outcomes back in as events.

Stage path:
    collecting_answers -> answers_ready_to_submit -> submitting_answers
    -> collecting_doc_1 -> submitting_doc_1 -> ... -> submitting_doc_D
    -> completed

The only edges that revisit a stage are the retry edges taken when a
submission fails.
"""
import re
from dataclasses import dataclass, replace
from typing import Callable, Dict, Iterable, Optional, Sequence, Tuple

from leadbot.core.config import settings
from leadbot.core.errors import InvalidTransitionError, ValidationError
from leadbot.core.logging import logger
from leadbot.orchestration.catalog import Question, QuestionCatalog
from leadbot.orchestration.document_types import resolve_document_type
from leadbot.orchestration.state import (
    AnswerSubmissionFailed,
    AnswerSubmissionStarted,
    AnswerSubmissionSucceeded,
    DocumentSubmissionFailed,
    DocumentSubmissionStarted,
    DocumentSubmissionSucceeded,
    FileChosen,
    OptionSelected,
    PendingUpload,
    QuoteReady,
    Session,
    Stage,
    StageKind,
    TextAnswered,
    generate_tracking_id,
)


GETTING_STARTED_MESSAGE = "Let's get started with a few questions."
ANSWERS_COMPLETE_MESSAGE = "Great, I have all your details. Please review and click submit."


@dataclass(frozen=True)
class UploadPolicy:
    """Local, synchronous checks applied to a chosen file."""
    max_bytes: int
    allowed_types: Tuple[str, ...]

    @classmethod
    def from_settings(cls) -> "UploadPolicy":
        return cls(settings.MAX_FILE_SIZE, tuple(settings.ALLOWED_FILE_TYPES))

    def check(self, upload: PendingUpload) -> None:
        if upload.size > self.max_bytes:
            raise ValidationError(f"File exceeds {self.max_bytes / 1024 / 1024:g}MB limit")
        if upload.content_type not in self.allowed_types:
            raise ValidationError("Unsupported file format")


def find_next_question(
    questions: Sequence[Question],
    start: int,
    answers: Dict[str, str],
) -> Tuple[int, Optional[Question]]:
    """
    Scan forward from `start` for the first eligible question.

    A question with a dependency is eligible only when the parent answer is
    present and one of the accepted values. Ineligible questions are passed
    over and never looked at again.

    Returns:
        (index, question) for the first eligible question, or
        (len(questions), None) when none remain.
    """
    index = start
    while index < len(questions):
        question = questions[index]
        if question.depends_on is None or question.depends_on.is_satisfied_by(answers):
            return index, question
        index += 1
    return len(questions), None


class ConversationMachine:
    """
    Lead-intake state machine.

    Wraps a question catalog and turns (session, event) pairs into new
    sessions.
    """

    def __init__(
        self,
        catalog: QuestionCatalog,
        upload_policy: Optional[UploadPolicy] = None,
        welcome_message: Optional[str] = None,
    ):
        self.catalog = catalog
        self.upload_policy = upload_policy or UploadPolicy.from_settings()
        self.welcome_message = welcome_message or settings.WELCOME_MESSAGE

        self.handlers: Dict[type, Callable[[Session, object], Session]] = {
            TextAnswered: self._on_text_answered,
            OptionSelected: self._on_option_selected,
            FileChosen: self._on_file_chosen,
            AnswerSubmissionStarted: self._on_answer_submission_started,
            AnswerSubmissionSucceeded: self._on_answer_submission_succeeded,
            AnswerSubmissionFailed: self._on_answer_submission_failed,
            DocumentSubmissionStarted: self._on_document_submission_started,
            DocumentSubmissionSucceeded: self._on_document_submission_succeeded,
            DocumentSubmissionFailed: self._on_document_submission_failed,
            QuoteReady: self._on_quote_ready,
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def create_session(self, tracking_id: Optional[str] = None) -> Session:
        """Start a conversation and present the first eligible question."""
        session = Session(tracking_id=tracking_id or generate_tracking_id())
        session = session.with_bot_message(self.welcome_message)
        session = session.with_bot_message(GETTING_STARTED_MESSAGE)
        logger.info(f"Conversation started: {session.tracking_id}")
        return self._advance_from(session, 0)

    def reduce(self, session: Session, event: object) -> Session:
        """Apply one event and return the resulting session."""
        handler = self.handlers.get(type(event))
        if handler is None:
            raise TypeError(f"Unknown event {event!r}")
        return handler(session, event)

    def replay(self, session: Session, events: Iterable[object]) -> Session:
        for event in events:
            session = self.reduce(session, event)
        return session

    def reject(self, session: Session, error: ValidationError) -> Session:
        """Record a user-correctable error without changing stage."""
        return replace(session, error=error.message)

    def current_question(self, session: Session) -> Optional[Question]:
        stage = session.stage
        if stage.kind == StageKind.COLLECTING_ANSWERS:
            if session.cursor < len(self.catalog.text_questions):
                return self.catalog.text_questions[session.cursor]
            return None
        if stage.kind in (StageKind.COLLECTING_DOC, StageKind.SUBMITTING_DOC):
            return self.catalog.doc_questions[stage.doc_index]
        return None

    # ------------------------------------------------------------------
    # Text questions
    # ------------------------------------------------------------------

    def _on_text_answered(self, session: Session, event: TextAnswered) -> Session:
        question = self._require_text_question(session, event)
        if question.type == "select":
            raise ValidationError("Please choose one of the options")

        value = event.value
        if not value.strip():
            raise ValidationError("Please enter an answer")

        if question.validation and question.validation.pattern:
            if not re.search(question.validation.pattern, value):
                raise ValidationError(question.validation.error_message or "Invalid format")

        return self._record_answer(session, question, value)

    def _on_option_selected(self, session: Session, event: OptionSelected) -> Session:
        question = self._require_text_question(session, event)
        if question.type != "select":
            raise ValidationError("This question expects a typed answer")
        if event.option not in question.options:
            raise ValidationError(f"'{event.option}' is not one of the options")
        return self._record_answer(session, question, event.option)

    def _require_text_question(self, session: Session, event: object) -> Question:
        self._require_stage(session, event, StageKind.COLLECTING_ANSWERS)
        question = self.current_question(session)
        if question is None:
            raise InvalidTransitionError(type(event).__name__, session.stage.name)
        return question

    def _record_answer(self, session: Session, question: Question, value: str) -> Session:
        session = session.with_user_message(value)
        session = replace(session, answers={**session.answers, question.id: value}, error=None)
        logger.debug(f"[{session.tracking_id}] answered {question.id}")
        # Always scan forward from the question after the one just answered
        return self._advance_from(session, session.cursor + 1)

    def _advance_from(self, session: Session, start: int) -> Session:
        index, question = find_next_question(self.catalog.text_questions, start, session.answers)
        session = replace(session, cursor=index)
        if question is not None:
            return session.with_bot_message(question.question, question_id=question.id)

        session = session.with_bot_message(ANSWERS_COMPLETE_MESSAGE)
        return self._set_stage(session, Stage.answers_ready(), "no more eligible questions")

    # ------------------------------------------------------------------
    # Answer submission
    # ------------------------------------------------------------------

    def _on_answer_submission_started(self, session: Session, event) -> Session:
        self._require_stage(session, event, StageKind.ANSWERS_READY_TO_SUBMIT)
        session = replace(session, typing=True, error=None)
        session = session.with_bot_message("🔄 Submitting your answers...")
        return self._set_stage(session, Stage.submitting_answers(), "answers submission started")

    def _on_answer_submission_succeeded(self, session: Session, event) -> Session:
        self._require_stage(session, event, StageKind.SUBMITTING_ANSWERS)
        session = replace(session, typing=False)
        if not self.catalog.doc_questions:
            session = session.with_bot_message("✅ Your answers have been submitted.")
            return self._complete(session)

        session = session.with_bot_message(
            "✅ Your answers have been submitted. Now, let's upload your documents one by one."
        )
        return self._present_document(session, 1)

    def _on_answer_submission_failed(self, session: Session, event: AnswerSubmissionFailed) -> Session:
        self._require_stage(session, event, StageKind.SUBMITTING_ANSWERS)
        session = replace(session, typing=False, error=event.reason)
        session = session.with_bot_message(f"❌ Submission failed: {event.reason}. Please try again.")
        return self._set_stage(session, Stage.answers_ready(), "answers submission failed")

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def _on_file_chosen(self, session: Session, event: FileChosen) -> Session:
        self._require_stage(session, event, StageKind.COLLECTING_DOC)
        self.upload_policy.check(event.upload)
        return replace(session, pending_upload=event.upload, error=None)

    def _on_document_submission_started(self, session: Session, event) -> Session:
        self._require_stage(session, event, StageKind.COLLECTING_DOC)
        if session.pending_upload is None:
            raise ValidationError("Please choose a file to upload.")
        self.upload_policy.check(session.pending_upload)

        question = self.current_question(session)
        resolve_document_type(question.id)

        number = session.stage.doc_number
        session = replace(session, typing=True, error=None)
        session = session.with_bot_message(f"🔄 Submitting {question.label}...")
        return self._set_stage(session, Stage.submitting_doc(number), "document submission started")

    def _on_document_submission_succeeded(self, session: Session, event: DocumentSubmissionSucceeded) -> Session:
        self._require_stage(session, event, StageKind.SUBMITTING_DOC)
        question = self.current_question(session)
        number = session.stage.doc_number

        session = replace(
            session,
            typing=False,
            pending_upload=None,
            submitted_documents=session.submitted_documents + (event.receipt,),
        )
        session = session.with_bot_message(f"✅ {question.label} submitted & saved.")

        if number >= self.catalog.document_count:
            return self._complete(session)
        return self._present_document(session, number + 1)

    def _on_document_submission_failed(self, session: Session, event: DocumentSubmissionFailed) -> Session:
        self._require_stage(session, event, StageKind.SUBMITTING_DOC)
        question = self.current_question(session)
        number = session.stage.doc_number

        # The chosen file stays selected so the user can retry without reselecting it
        session = replace(session, typing=False, error=event.reason)
        session = session.with_bot_message(
            f"❌ {question.label} submission failed: {event.reason}. Please try again."
        )
        return self._set_stage(session, Stage.collecting_doc(number), "document submission failed")

    def _present_document(self, session: Session, number: int) -> Session:
        session = self._set_stage(session, Stage.collecting_doc(number), f"present document {number}")
        question = self.catalog.doc_questions[number - 1]
        return session.with_bot_message(question.question, question_id=question.id)

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    def _complete(self, session: Session) -> Session:
        session = self._set_stage(session, Stage.completed(), "all documents submitted")
        session = session.with_bot_message("✅ All documents have been submitted successfully!")
        session = session.with_bot_message(
            "Thank you! We have everything we need. "
            f"Your reference ID for this entire submission is: #{session.tracking_id}"
        )
        return session.with_bot_message("🔄 We are now generating your quote. This may take a moment...")

    def _on_quote_ready(self, session: Session, event: QuoteReady) -> Session:
        self._require_stage(session, event, StageKind.COMPLETED)
        if session.quote_url is not None:
            return session
        session = replace(session, quote_url=event.url)
        logger.info(f"[{session.tracking_id}] quote ready: {event.url}")
        return session.with_bot_message("✅ Your quote is ready! Click here to view it.", link=event.url)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_stage(self, session: Session, event: object, kind: StageKind) -> None:
        if session.stage.kind != kind:
            raise InvalidTransitionError(type(event).__name__, session.stage.name)

    def _set_stage(self, session: Session, stage: Stage, reason: str) -> Session:
        logger.debug(f"[{session.tracking_id}] Stage change -> {stage.name} ({reason})")
        return replace(session, stage=stage)

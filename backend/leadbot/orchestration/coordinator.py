"""
Submission Coordinator

Owns one conversation: applies presentation-layer intents to the state
machine, performs the side-effecting calls (webhook, document store), and feeds
their outcomes back in as events. Stage moves to a submitting_* stage before
the first await, so a second submission arriving mid-flight is rejected by the
machine's stage guard.
"""
import base64
import time
from typing import Any, Dict, Optional

from leadbot.core import logger, settings
from leadbot.core.errors import SubmissionError, ValidationError
from leadbot.orchestration.document_types import file_extension, resolve_document_type
from leadbot.orchestration.machine import ConversationMachine
from leadbot.orchestration.poller import QuotePoller
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
    StageKind,
    TextAnswered,
    UploadReceipt,
)
from leadbot.services.document_store import DocumentStoreClient
from leadbot.services.webhook import WebhookClient


def build_document_payloads(session: Session, question_id: str, doc_number: int) -> tuple:
    """
    Build the webhook and document-store payloads for the pending upload.

    Returns:
        (webhook_payload, upload_payload)
    """
    upload = session.pending_upload
    doc_type = resolve_document_type(question_id)
    encoded = base64.b64encode(upload.data).decode("ascii")
    extension = file_extension(upload.content_type)

    webhook_payload = {
        "id": session.tracking_id,
        "session_Id": f"AIBLCBD-{int(time.time() * 1000)}-{doc_number}",
        "document_type": doc_type,
        "file": encoded,
        "fileType": extension,
    }
    upload_payload = {
        "id": session.tracking_id,
        "doc_type": doc_type,
        "file_b64": encoded,
        "file_ext": extension,
        "mime": upload.content_type or "application/octet-stream",
    }
    return webhook_payload, upload_payload


class SubmissionCoordinator:
    """Drives one conversation against the external services."""

    def __init__(
        self,
        machine: ConversationMachine,
        webhook: WebhookClient,
        document_store: DocumentStoreClient,
        poller: Optional[QuotePoller] = None,
        session: Optional[Session] = None,
    ):
        self.machine = machine
        self.webhook = webhook
        self.document_store = document_store
        self.poller = poller or QuotePoller(document_store)
        self.session = session or machine.create_session()

    @property
    def tracking_id(self) -> str:
        return self.session.tracking_id

    def _apply(self, event: object) -> Session:
        self.session = self.machine.reduce(self.session, event)
        return self.session

    def _apply_checked(self, event: object) -> Session:
        """Apply an event, recording validation failures on the session."""
        try:
            return self._apply(event)
        except ValidationError as exc:
            self.session = self.machine.reject(self.session, exc)
            raise

    # ------------------------------------------------------------------
    # Intents
    # ------------------------------------------------------------------

    def answer_text(self, value: str) -> Session:
        return self._apply_checked(TextAnswered(value))

    def select_option(self, option: str) -> Session:
        return self._apply_checked(OptionSelected(option))

    def choose_file(self, filename: str, content_type: str, data: bytes) -> Session:
        upload = PendingUpload(filename=filename, content_type=content_type, data=data)
        return self._apply_checked(FileChosen(upload))

    async def submit_answers(self) -> Session:
        """Send the full answer map. On failure the answers are kept for a retry."""
        self._apply(AnswerSubmissionStarted())
        payload = {"id": self.tracking_id, **self.session.answers}

        try:
            await self.webhook.submit(payload)
        except SubmissionError as exc:
            logger.warning(f"[{self.tracking_id}] answer submission failed: {exc.message}")
            return self._apply(AnswerSubmissionFailed(exc.message))

        self._apply(AnswerSubmissionSucceeded())
        self._start_polling_if_completed()
        return self.session

    async def submit_document(self) -> Session:
        """
        Submit the pending file for the current document question.

        Local checks (file present, size, MIME type, document type) run before
        any network call and leave the stage untouched. The webhook and the
        document store must both accept the file; otherwise the stage returns
        to the same collecting_doc_n with the file still selected.
        """
        self._apply_checked(DocumentSubmissionStarted())

        question = self.machine.current_question(self.session)
        doc_number = self.session.stage.doc_number
        webhook_payload, upload_payload = build_document_payloads(self.session, question.id, doc_number)

        try:
            await self.webhook.submit(webhook_payload)
            stored = await self.document_store.upload(upload_payload)
        except SubmissionError as exc:
            logger.warning(f"[{self.tracking_id}] {question.label} submission failed: {exc.message}")
            return self._apply(DocumentSubmissionFailed(exc.message))

        receipt = UploadReceipt(
            question_id=question.id,
            doc_type=upload_payload["doc_type"],
            path=stored.path,
            checksum=stored.checksum,
        )
        logger.info(f"[{self.tracking_id}] stored {receipt.doc_type} at {receipt.path}")
        self._apply(DocumentSubmissionSucceeded(receipt))
        self._start_polling_if_completed()
        return self.session

    async def close(self) -> None:
        """Tear down the conversation: cancel any active poll."""
        await self.poller.stop()
        logger.info(f"[{self.tracking_id}] conversation closed")

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def _start_polling_if_completed(self) -> None:
        if self.session.stage.kind == StageKind.COMPLETED:
            self.poller.start(self.tracking_id, self._on_quote_ready)

    def _on_quote_ready(self, url: str) -> None:
        self._apply(QuoteReady(url))

    # ------------------------------------------------------------------
    # View
    # ------------------------------------------------------------------

    def view(self) -> Dict[str, Any]:
        """Read-only snapshot for the presentation layer."""
        session = self.session
        question = self.machine.current_question(session)
        catalog = self.machine.catalog
        return {
            "tracking_id": session.tracking_id,
            "stage": session.stage.name,
            "current_question": question.to_dict() if question else None,
            "messages": [message.to_dict() for message in session.messages],
            "error": session.error,
            "typing": session.typing,
            "typing_delay_ms": settings.TYPING_DELAY_MS,
            "has_pending_upload": session.pending_upload is not None,
            "pending_upload_name": session.pending_upload.filename if session.pending_upload else None,
            "quote_url": session.quote_url,
            "progress": {
                "answers": len(session.answers),
                "documents_submitted": len(session.submitted_documents),
                "documents_total": catalog.document_count,
            },
        }

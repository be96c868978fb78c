"""
Chat API routes

The presentation layer creates a conversation, reads its view, and sends
discrete intents back. Every response carries the full view so the UI can
re-render from it alone.
"""
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from pydantic import BaseModel

from leadbot.api.deps import ServiceClients, get_clients, get_machine, get_store
from leadbot.core import logger
from leadbot.core.errors import InvalidTransitionError, ValidationError
from leadbot.orchestration.coordinator import SubmissionCoordinator
from leadbot.orchestration.machine import ConversationMachine
from leadbot.services.session_store import InMemorySessionStore

router = APIRouter()


# Request/Response schemas
class AnswerRequest(BaseModel):
    value: str


class OptionRequest(BaseModel):
    option: str


class ConversationView(BaseModel):
    tracking_id: str
    stage: str
    current_question: Optional[Dict[str, Any]] = None
    messages: List[Dict[str, Any]] = []
    error: Optional[str] = None
    typing: bool = False
    typing_delay_ms: int = 0
    has_pending_upload: bool = False
    pending_upload_name: Optional[str] = None
    quote_url: Optional[str] = None
    progress: Dict[str, Any] = {}


@contextmanager
def _rejections(coordinator: SubmissionCoordinator) -> Iterator[None]:
    """Turn local rejections into HTTP errors that still carry the view."""
    try:
        yield
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": exc.message, "view": coordinator.view()},
        )
    except InvalidTransitionError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": exc.message, "view": coordinator.view()},
        )


@router.get("/questions")
async def get_questions(machine: ConversationMachine = Depends(get_machine)):
    """The loaded question catalog."""
    return machine.catalog.to_dict()


@router.post("/session", response_model=ConversationView)
async def create_conversation(
    machine: ConversationMachine = Depends(get_machine),
    clients: ServiceClients = Depends(get_clients),
    store: InMemorySessionStore = Depends(get_store),
):
    """Start a new conversation and return its first question."""
    coordinator = SubmissionCoordinator(
        machine=machine,
        webhook=clients.webhook,
        document_store=clients.document_store,
    )
    await store.add(coordinator)
    logger.info(f"Chat session created: {coordinator.tracking_id}")
    return coordinator.view()


@router.get("/session/{tracking_id}", response_model=ConversationView)
async def get_conversation(tracking_id: str, store: InMemorySessionStore = Depends(get_store)):
    coordinator = await store.require(tracking_id)
    return coordinator.view()


@router.post("/session/{tracking_id}/answer", response_model=ConversationView)
async def answer_text(
    tracking_id: str,
    request: AnswerRequest,
    store: InMemorySessionStore = Depends(get_store),
):
    """Answer the current free-text question."""
    coordinator = await store.require(tracking_id)
    with _rejections(coordinator):
        coordinator.answer_text(request.value)
    return coordinator.view()


@router.post("/session/{tracking_id}/option", response_model=ConversationView)
async def select_option(
    tracking_id: str,
    request: OptionRequest,
    store: InMemorySessionStore = Depends(get_store),
):
    """Answer the current select question."""
    coordinator = await store.require(tracking_id)
    with _rejections(coordinator):
        coordinator.select_option(request.option)
    return coordinator.view()


@router.post("/session/{tracking_id}/file", response_model=ConversationView)
async def choose_file(
    tracking_id: str,
    file: UploadFile = File(...),
    store: InMemorySessionStore = Depends(get_store),
):
    """Select the file for the current document question."""
    coordinator = await store.require(tracking_id)
    # Read at most one byte past the size limit
    content = await file.read(coordinator.machine.upload_policy.max_bytes + 1)
    with _rejections(coordinator):
        coordinator.choose_file(
            filename=file.filename or "upload",
            content_type=file.content_type or "application/octet-stream",
            data=content,
        )
    return coordinator.view()


@router.post("/session/{tracking_id}/submit-answers", response_model=ConversationView)
async def submit_answers(tracking_id: str, store: InMemorySessionStore = Depends(get_store)):
    """
    Submit all collected answers.

    A webhook failure is not an HTTP error here: the conversation rolls back
    to answers_ready_to_submit and the view explains the failure.
    """
    coordinator = await store.require(tracking_id)
    with _rejections(coordinator):
        await coordinator.submit_answers()
    return coordinator.view()


@router.post("/session/{tracking_id}/submit-document", response_model=ConversationView)
async def submit_document(tracking_id: str, store: InMemorySessionStore = Depends(get_store)):
    """Submit the selected file for the current document question."""
    coordinator = await store.require(tracking_id)
    with _rejections(coordinator):
        await coordinator.submit_document()
    return coordinator.view()


@router.delete("/session/{tracking_id}")
async def end_conversation(tracking_id: str, store: InMemorySessionStore = Depends(get_store)):
    """End a conversation and cancel its quote polling."""
    if not await store.remove(tracking_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found",
        )
    return {"message": "Session ended", "tracking_id": tracking_id}

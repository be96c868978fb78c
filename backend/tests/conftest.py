"""
Test configuration and fixtures for LeadBot backend tests.
"""
import os
import tempfile

# Settings are read at import time, so point storage somewhere disposable first
_TEST_ROOT = tempfile.mkdtemp(prefix="leadbot-tests-")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DOCS_DIR", os.path.join(_TEST_ROOT, "docs"))
os.environ.setdefault("ARTIFACTS_DIR", os.path.join(_TEST_ROOT, "artifacts"))
os.environ.setdefault("PUBLIC_URL", "http://docs.test")

import pytest
import httpx
from typing import Callable, Dict, Generator, List
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from main import app
from leadbot.api.deps import ServiceClients, get_clients
from leadbot.db.base import Base
from leadbot.db.session import get_db
from leadbot.orchestration.catalog import parse_catalog
from leadbot.orchestration.machine import ConversationMachine, UploadPolicy
from leadbot.services.document_store import DocumentStoreClient
from leadbot.services.webhook import WebhookClient


WEBHOOK_URL = "http://automation.test/webhook/lead-intake"
DOCUMENT_SERVER_URL = "http://docs.test"

# Use in-memory SQLite for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# ============================================================================
# Catalogs
# ============================================================================

SCENARIO_QUESTIONS = {
    "questions": [
        {"id": "name", "type": "text", "question": "What is your name?"},
        {"id": "hasCar", "type": "select", "question": "Do you own a car?", "options": ["yes", "no"]},
        {
            "id": "carModel",
            "type": "text",
            "question": "Which model?",
            "dependsOn": {"id": "hasCar", "value": ["yes"]},
        },
        {
            "id": "Eid_front",
            "type": "file_upload",
            "question": "Upload the front of your Emirates ID.",
            "acceptedDocs": ["Emirates ID (Front)"],
        },
        {
            "id": "Eid_back",
            "type": "file_upload",
            "question": "Upload the back of your Emirates ID.",
            "acceptedDocs": ["Emirates ID (Back)"],
        },
    ]
}

TEST_UPLOAD_POLICY = UploadPolicy(
    max_bytes=1024,
    allowed_types=("image/jpeg", "image/jpg", "image/png", "application/pdf"),
)

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


@pytest.fixture
def scenario_catalog():
    return parse_catalog(SCENARIO_QUESTIONS)


@pytest.fixture
def machine(scenario_catalog) -> ConversationMachine:
    return ConversationMachine(
        scenario_catalog,
        upload_policy=TEST_UPLOAD_POLICY,
        welcome_message="Welcome!",
    )


# ============================================================================
# Fake external services
# ============================================================================

Responder = Callable[[httpx.Request], httpx.Response]


def network_error(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("Connection refused", request=request)


def respond(status_code: int, json=None, text: str = None) -> Responder:
    def _responder(request: httpx.Request) -> httpx.Response:
        if json is not None:
            return httpx.Response(status_code, json=json)
        return httpx.Response(status_code, text=text or "")
    return _responder


class FakeServices:
    """
    Stands in for the webhook, document store and quote status endpoints.

    Each endpoint answers from a queue of responders; once the queue is empty
    it answers with its default (success, or "pending" for quote status).
    """

    DEFAULTS: Dict[str, Responder] = {
        "webhook": respond(200, json={"received": True}),
        "upload": respond(200, json={"ok": True, "path": "http://docs.test/docs/doc.png", "checksum": "c0ffee"}),
        "leads": respond(200, json={"ok": True}),
        "quote": respond(200, json={"status": "pending"}),
    }

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.queues: Dict[str, List[Responder]] = {name: [] for name in self.DEFAULTS}

    def queue(self, endpoint: str, *responders: Responder) -> None:
        self.queues[endpoint].extend(responders)

    def calls(self, endpoint: str) -> List[httpx.Request]:
        return [r for r in self.requests if self._endpoint(r) == endpoint]

    @staticmethod
    def _endpoint(request: httpx.Request) -> str:
        if request.url.host == "automation.test":
            return "webhook"
        path = request.url.path
        if path == "/documents/upload":
            return "upload"
        if path == "/leads/update":
            return "leads"
        if path.startswith("/quotes/status/"):
            return "quote"
        raise AssertionError(f"Unexpected request to {request.url}")

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        endpoint = self._endpoint(request)
        queue = self.queues[endpoint]
        responder = queue.pop(0) if queue else self.DEFAULTS[endpoint]
        return responder(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def clients(self, forward: bool = False) -> ServiceClients:
        return ServiceClients(
            webhook=WebhookClient(
                url=WEBHOOK_URL,
                forward_url=f"{DOCUMENT_SERVER_URL}/leads/update" if forward else None,
                transport=self.transport,
            ),
            document_store=DocumentStoreClient(base_url=DOCUMENT_SERVER_URL, transport=self.transport),
        )


@pytest.fixture
def services() -> FakeServices:
    return FakeServices()


# ============================================================================
# Database / API
# ============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db: Session, machine: ConversationMachine, services: FakeServices) -> Generator[TestClient, None, None]:
    """Create a test client with database, catalog and service overrides."""
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_clients] = lambda: services.clients()
    with TestClient(app) as c:
        app.state.machine = machine
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def docs_dir() -> str:
    return os.environ["DOCS_DIR"]

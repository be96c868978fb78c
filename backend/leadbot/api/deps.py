"""
API dependencies
"""
from dataclasses import dataclass

from fastapi import Request

from leadbot.core.errors import LoadError
from leadbot.db import get_db
from leadbot.orchestration.machine import ConversationMachine
from leadbot.services.document_store import DocumentStoreClient
from leadbot.services.session_store import InMemorySessionStore, get_session_store
from leadbot.services.webhook import WebhookClient


@dataclass
class ServiceClients:
    webhook: WebhookClient
    document_store: DocumentStoreClient


def get_machine(request: Request) -> ConversationMachine:
    """State machine over the catalog loaded at startup."""
    machine = getattr(request.app.state, "machine", None)
    if machine is None:
        raise LoadError("Question catalog is not loaded")
    return machine


def get_clients() -> ServiceClients:
    return ServiceClients(
        webhook=WebhookClient.from_settings(),
        document_store=DocumentStoreClient(),
    )


def get_store() -> InMemorySessionStore:
    return get_session_store()


__all__ = [
    "ServiceClients",
    "get_db",
    "get_machine",
    "get_clients",
    "get_store",
]

"""
LeadBot Backend - Main Application Entry Point
"""
import asyncio
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from leadbot.core import logger, settings
from leadbot.core.errors import LoadError, SessionNotFoundError
from leadbot.db import Base, engine
from leadbot.orchestration.catalog import load_catalog
from leadbot.orchestration.machine import ConversationMachine
from leadbot.services.session_store import get_session_store
from leadbot.api.routes import chat, documents, leads, quotes

BASE_DIR = Path(__file__).parent


def resolve_questions_source(source: str) -> str:
    """Relative catalog paths are resolved against the backend directory."""
    if source.startswith(("http://", "https://")) or Path(source).is_absolute():
        return source
    return str(BASE_DIR / source)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle management."""
    # Startup
    logger.info(f"Starting {settings.APP_NAME} in {settings.APP_ENV} mode")
    Base.metadata.create_all(bind=engine)

    # A catalog that fails to load aborts startup: no partial conversations
    catalog = await load_catalog(resolve_questions_source(settings.QUESTIONS_SOURCE))
    app.state.machine = ConversationMachine(catalog)

    store = get_session_store()
    sweeper = asyncio.create_task(store.sweep(settings.SESSION_SWEEP_SECONDS))

    yield

    # Shutdown
    logger.info("Shutting down...")
    sweeper.cancel()
    try:
        await sweeper
    except asyncio.CancelledError:
        pass
    await store.close_all()


app = FastAPI(
    title=settings.APP_NAME,
    description="Lead-intake chatbot with document OCR and quote generation",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/api-docs",  # /docs serves stored documents
)

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API Routers
app.include_router(chat.router, prefix="/chat", tags=["Chat"])
app.include_router(documents.router, prefix="/documents", tags=["Documents"])
app.include_router(leads.router, prefix="/leads", tags=["Leads"])
app.include_router(quotes.router, prefix="/quotes", tags=["Quotes"])

# Stored documents and produced quotes are served publicly
for mount, directory in (("/docs", settings.DOCS_DIR), ("/artifacts", settings.ARTIFACTS_DIR)):
    Path(directory).mkdir(parents=True, exist_ok=True)
    app.mount(mount, StaticFiles(directory=directory), name=mount.strip("/"))


@app.exception_handler(LoadError)
async def load_error_handler(request: Request, exc: LoadError):
    return JSONResponse(status_code=503, content={"detail": exc.message})


@app.exception_handler(SessionNotFoundError)
async def session_not_found_handler(request: Request, exc: SessionNotFoundError):
    return JSONResponse(status_code=404, content={"detail": exc.message})


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "env": settings.APP_ENV,
        "conversations": await get_session_store().count(),
    }

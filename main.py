import inspect
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles
from openai import AsyncOpenAI

from dal.transcript_dal import TranscriptDAL
from routes.conversation_ws import router as conversation_ws_router
from routes.figure_route import router as figure_router
from routes.transcript_route import router as transcript_router
from routes.voice_route import router as voice_router
from services.catalog import FIGURES
from services.credentials import CredentialIssuer
from services.elevenlabs.client import ElevenLabsClient
from services.transports.factory import build_transport
from utils.database_init import AsyncDatabaseInitializer
from utils.rate_limit import RateLimitMiddleware, SlidingWindowRateLimiter
from utils.request_guards import SecurityHeadersMiddleware
from utils.settings import (
    ConfigurationError,
    Settings,
    TRANSPORT_OPENAI,
    get_settings,
    load_agent_keys,
)

BASE_DIR = Path(__file__).resolve().parent
PUBLIC_DIR = BASE_DIR / "public"

logging.basicConfig(level=logging.INFO, format="[%(asctime)s] %(levelname)s %(name)s - %(message)s")
logger = logging.getLogger("historai")


async def _close_quietly(resource) -> None:
    """Close a client exposing aclose/close, ignoring shutdown errors."""
    aclose = getattr(resource, "aclose", None) or getattr(resource, "close", None)
    if aclose is None:
        return
    try:
        if inspect.iscoroutinefunction(aclose):
            await aclose()
        else:
            result = aclose()
            if inspect.isawaitable(result):
                await result
    except Exception as exc:
        # Ignore shutdown errors to avoid masking more important issues.
        logger.warning("Error while closing %s: %s", type(resource).__name__, exc)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan manager to initialize:
      - the SQLite transcript database (kept across restarts)
      - the figure -> agent key map, validated for completeness
      - the ElevenLabs and OpenAI clients, when configured
      - the session transport used by websocket conversations
    and attach them to `app.state`.
    """
    settings: Settings = app.state.settings

    db_initializer = AsyncDatabaseInitializer(settings.database_dir)
    await db_initializer.ensure_database()
    app.state.db_initializer = db_initializer
    app.state.transcript_dal = TranscriptDAL(db_initializer)

    # Fail fast: no figure may silently share another figure's credential.
    agent_keys = load_agent_keys(FIGURES, required=settings.requires_agent_keys())
    app.state.credential_issuer = CredentialIssuer(agent_keys, ttl_seconds=settings.credential_ttl_seconds)

    elevenlabs_client: Optional[ElevenLabsClient] = None
    if settings.elevenlabs_api_key:
        elevenlabs_client = ElevenLabsClient(settings.elevenlabs_api_key, base_url=settings.elevenlabs_base_url)
    app.state.elevenlabs_client = elevenlabs_client

    openai_client: Optional[AsyncOpenAI] = None
    if settings.resolved_transport() == TRANSPORT_OPENAI:
        if not settings.openai_api_key:
            raise ConfigurationError("OPENAI_API_KEY environment variable is not set")
        try:
            openai_client = AsyncOpenAI(api_key=settings.openai_api_key)
        except Exception as exc:
            raise RuntimeError("Failed to initialize OpenAI Async client") from exc
    app.state.openai_client = openai_client

    transport = build_transport(
        settings,
        agent_keys=agent_keys,
        elevenlabs_client=elevenlabs_client,
        openai_client=openai_client,
    )
    app.state.transport = transport
    logger.info("Conversation transport: %s", transport.name)

    try:
        yield
    finally:
        await _close_quietly(transport)
        for client in (elevenlabs_client, openai_client):
            if client is not None:
                await _close_quietly(client)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application instance.
    """
    settings = settings or get_settings()
    app = FastAPI(title="HistorAI Voice", lifespan=lifespan)
    app.state.settings = settings

    limiter = SlidingWindowRateLimiter(
        limit=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.state.rate_limiter = limiter
    app.add_middleware(RateLimitMiddleware, limiter=limiter)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS", "PUT", "DELETE"],
        allow_headers=["Origin", "X-Requested-With", "Content-Type", "Accept", "Authorization"],
    )

    # Serve static assets from the public directory, if it exists.
    if PUBLIC_DIR.exists():
        app.mount("/public", StaticFiles(directory=PUBLIC_DIR), name="public")

    @app.get("/", include_in_schema=False)
    async def serve_index():
        """
        Serve the frontend index page from the public directory.
        """
        index_path = PUBLIC_DIR / "index.html"
        if not index_path.exists():
            raise HTTPException(status_code=404, detail="Frontend not found")
        return FileResponse(index_path)

    @app.get("/health")
    async def health(request: Request):
        """
        Simple health check reporting which collaborators are configured.
        """
        state = request.app.state
        transport = getattr(state, "transport", None)
        return {
            "ok": True,
            "db_initialized": hasattr(state, "db_initializer"),
            "elevenlabs_available": getattr(state, "elevenlabs_client", None) is not None,
            "openai_available": getattr(state, "openai_client", None) is not None,
            "transport": transport.name if transport is not None else None,
        }

    # Register application routers
    app.include_router(figure_router)
    app.include_router(voice_router)
    app.include_router(transcript_router)
    app.include_router(conversation_ws_router)

    return app


app = create_app()

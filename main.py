import asyncio
import inspect
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from openai import AsyncOpenAI

from config.settings import Settings, get_settings
from dal.memory_store import InMemoryKeyedStore
from dal.session_state_dal import SessionStateDAL
from routes.chat_route import router as chat_router
from services.openai.chat_gateway import ChatCompletionGateway
from services.session.engine import SessionEngine
from utils.database_cleaner import DatabaseCleaner
from utils.database_init import AsyncDatabaseInitializer

BASE_DIR = Path(__file__).resolve().parent
PUBLIC_DIR = BASE_DIR / "public"

LOGGER = logging.getLogger(__name__)


async def _close_client(client) -> None:
    aclose = getattr(client, "aclose", None) or getattr(client, "close", None)
    if aclose is None:
        return
    try:
        if inspect.iscoroutinefunction(aclose):
            await aclose()
        else:
            result = aclose()
            if inspect.isawaitable(result):
                await result
    except Exception:
        LOGGER.warning("Error while closing the OpenAI client", exc_info=True)


async def _build_store(app: FastAPI, settings: Settings):
    """Create the keyed store selected by STORE_BACKEND."""
    if settings.store_backend == "memory":
        return InMemoryKeyedStore()

    db_initializer = AsyncDatabaseInitializer(settings.database_dir, reset=settings.database_reset)
    await db_initializer.ensure_database()
    app.state.db_initializer = db_initializer
    return SessionStateDAL(db_initializer)


def _start_cleanup(app: FastAPI, settings: Settings) -> Optional[asyncio.Task]:
    """Schedule retention pruning when a SQLite store and a retention window are configured."""
    db_initializer = getattr(app.state, "db_initializer", None)
    if db_initializer is None or not settings.session_retention_seconds:
        return None
    cleaner = DatabaseCleaner(db_initializer, retention_seconds=settings.session_retention_seconds)
    return asyncio.create_task(cleaner.run_periodic_cleanup())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan manager to initialize:
      - the keyed store (SQLite at DATABASE_DIR/app.db, or in-memory)
      - the OpenAI async client and chat gateway
      - the session engine
    and attach them to `app.state`. An engine passed to `create_app` is used as is.
    """
    if getattr(app.state, "session_engine", None) is not None:
        yield
        return

    settings = get_settings()
    if not settings.openai_api_key:
        raise RuntimeError("OPENAI_API_KEY environment variable is not set")

    store = await _build_store(app, settings)

    try:
        openai_client = AsyncOpenAI(api_key=settings.openai_api_key, timeout=settings.chat_timeout_seconds)
    except Exception as exc:
        raise RuntimeError("Failed to initialize OpenAI Async client") from exc
    app.state.openai_client = openai_client

    gateway = ChatCompletionGateway(
        openai_client,
        model=settings.chat_model,
        max_tokens=settings.chat_max_tokens,
        temperature=settings.chat_temperature,
    )
    app.state.session_engine = SessionEngine(store, gateway)
    app.state.cleanup_task = _start_cleanup(app, settings)

    try:
        yield
    finally:
        cleanup_task = app.state.cleanup_task
        if cleanup_task is not None:
            cleanup_task.cancel()
            await asyncio.gather(cleanup_task, return_exceptions=True)
        await _close_client(openai_client)


def create_app(session_engine: Optional[SessionEngine] = None) -> FastAPI:
    """
    Create and configure the FastAPI application instance.
    """
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="[%(asctime)s] %(levelname)s %(name)s - %(message)s",
    )

    app = FastAPI(title="Task Assistant", lifespan=lifespan)
    app.state.session_engine = session_engine

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.exception_handler(405)
    async def method_not_allowed_as_not_found(request: Request, exc: Exception):
        """
        Only the documented method is served on each path; anything else is an unknown route.
        """
        return JSONResponse(status_code=404, content={"detail": "Not Found"})

    @app.get("/", include_in_schema=False)
    @app.get("/index.html", include_in_schema=False)
    async def serve_index():
        """
        Serve the chat page from the public directory.
        """
        index_path = PUBLIC_DIR / "index.html"
        if not index_path.exists():
            raise HTTPException(status_code=404, detail="Frontend not found")
        return FileResponse(index_path)

    @app.get("/health")
    async def health(request: Request):
        """
        Simple health check that reports whether the session engine and its collaborators are wired.
        """
        engine = getattr(request.app.state, "session_engine", None)
        return {
            "ok": True,
            "engine_ready": engine is not None,
            "store": type(engine.store).__name__ if engine is not None else None,
            "openai_available": getattr(request.app.state, "openai_client", None) is not None,
        }

    app.include_router(chat_router)

    return app


app = create_app()

from contextlib import asynccontextmanager
from typing import Optional
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import structlog

from taskpilot.application.api.route import chat, conversations, tasks
from taskpilot.domain.context.session_manager import ConversationSessionManager
from taskpilot.domain.errors import ConversationNotFoundError, GuardViolation, TaskNotFoundError
from taskpilot.domain.orchestration.core.task_assistant import ChatCompleter, TaskAssistant
from taskpilot.infrastructure.config import Settings
from taskpilot.infrastructure.llm.chat_client import ChatBackendClient
from taskpilot.infrastructure.observability.logging import setup_logging
from taskpilot.infrastructure.storage.key_value_store import JsonFileStore, KeyValueStore

logger = structlog.get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    storage: Optional[KeyValueStore] = None,
    chat_client: Optional[ChatCompleter] = None,
) -> FastAPI:
    """Build the task assistant HTTP app.

    Args:
        settings: Runtime settings; read from the environment when omitted
        storage: Durable record store; a JSON file at ``settings.storage_path`` by default
        chat_client: Chat backend; an httpx client for ``settings.backend_url`` by default
    """

    settings = settings or Settings.from_env()
    storage = storage or JsonFileStore(settings.storage_path)
    chat_client = chat_client or ChatBackendClient(settings.backend_url, timeout=settings.request_timeout)

    session = ConversationSessionManager(storage, storage_key=settings.storage_key)
    session.load()
    assistant = TaskAssistant(session, chat_client)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Task assistant started", conversations=len(session.conversations))
        yield
        close = getattr(chat_client, "close", None)
        if close is not None:
            await close()
        logger.info("Task assistant shutdown")

    app = FastAPI(title="Task Assistant", lifespan=lifespan)
    app.state.settings = settings
    app.state.session = session
    app.state.assistant = assistant

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(GuardViolation)
    async def guard_violation_handler(request: Request, exc: GuardViolation):
        return JSONResponse(status_code=400, content={"detail": exc.notice})

    @app.exception_handler(ConversationNotFoundError)
    async def conversation_not_found_handler(request: Request, exc: ConversationNotFoundError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(TaskNotFoundError)
    async def task_not_found_handler(request: Request, exc: TaskNotFoundError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "conversations": len(session.conversations),
            "active_conversation": session.active_id,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

    app.include_router(conversations.router)
    app.include_router(tasks.router)
    app.include_router(chat.router)

    return app


def main() -> None:
    import uvicorn

    settings = Settings.from_env()
    setup_logging(settings.log_level, settings.log_format, settings.service_name)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()

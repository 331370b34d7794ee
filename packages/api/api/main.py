"""FastAPI application entry point."""

from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import router
from chatbot.config import Settings, configure_logging
from chatbot.llm_client import LLMClient, create_llm_client
from chatbot.sessions import SessionStore


def create_app(
    settings: Settings | None = None,
    llm_factory: Callable[[], LLMClient] | None = None,
) -> FastAPI:
    """Build the application.

    Args:
        settings: Configuration; read from the environment when omitted.
        llm_factory: Builds the LLM client for each newly scanned session.
            Defaults to a client configured from ``settings``.
    """
    settings = settings or Settings.from_env()

    if llm_factory is None:
        def llm_factory() -> LLMClient:
            return create_llm_client(
                settings.llm_api_url,
                settings.llm_api_key,
                settings.llm_model,
                timeout=settings.llm_timeout_seconds,
            )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
        """Set up and tear down application-wide resources."""
        app.state.settings = settings
        app.state.sessions = SessionStore(read_only_default=settings.read_only_mode)
        app.state.llm_factory = llm_factory

        yield

        app.state.sessions.close_all()

    app = FastAPI(
        title="SQL Chat Assistant API",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)
    return app


def serve() -> None:
    """Start the uvicorn server using environment configuration."""
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    uvicorn.run(create_app(settings), host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    serve()

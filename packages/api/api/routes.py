"""API route definitions.

Every endpoint is scoped to the session named by the ``X-Session-Id`` header
(``default`` when absent). Blocking work runs in FastAPI's threadpool because
the handlers are plain ``def`` functions.
"""

import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from api.schemas import (
    ChatReply,
    ChatRequest,
    ConnectRequest,
    QueryRequest,
    ReadOnlyRequest,
    ReadOnlyStatus,
    ScanRequest,
    StatusResponse,
)
from chatbot.errors import LLMTransportError, MaxIterationsExceeded
from chatbot.sessions import DEFAULT_SESSION_ID, Session, SessionStore
from database.DatabaseProvider import DatabaseProvider, ProviderError
from database.factory import create_provider
from database.metadata import ConnectionConfig
from database.SchemaScanner import SchemaScanner
from database.semantic import generate_schema_summary
from database.SQLValidator import SQLValidator

logger = logging.getLogger(__name__)

router = APIRouter()

_validator = SQLValidator()


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------


@router.get("/health")
def health_check():
    """Basic liveness probe."""
    return {"status": "ok"}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _store_dependency(request: Request) -> SessionStore:
    """Retrieve the session store from app state."""
    return request.app.state.sessions


def _session_dependency(
    x_session_id: str | None = Header(default=None),
    store: SessionStore = Depends(_store_dependency),
) -> Session:
    """Resolve the caller's session, creating it on first reference."""
    return store.get_or_create(x_session_id or DEFAULT_SESSION_ID)


def _require_provider(session: Session) -> DatabaseProvider:
    if session.provider is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Not connected to database",
        )
    return session.provider


def _bad_request(error: Exception) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))


# ---------------------------------------------------------------------------
# Connection
# ---------------------------------------------------------------------------


@router.post("/api/connect", response_model=StatusResponse)
def connect(body: ConnectRequest, session: Session = Depends(_session_dependency)):
    """Connect the session to a database."""
    config = ConnectionConfig(**body.model_dump())
    try:
        provider = create_provider(config.type)
        provider.connect(config)
        if not provider.test_connection():
            raise ProviderError("Connection test failed")
    except ProviderError as e:
        logger.warning("Connect failed for session %s: %s", session.id, e)
        raise _bad_request(e) from e

    session.attach_provider(provider)
    return StatusResponse(message="Connected to database successfully")


@router.post("/api/disconnect", response_model=StatusResponse)
def disconnect(
    x_session_id: str | None = Header(default=None),
    store: SessionStore = Depends(_store_dependency),
):
    """Close the session's connection and forget the session."""
    store.remove(x_session_id or DEFAULT_SESSION_ID)
    return StatusResponse(message="Disconnected successfully")


@router.get("/api/databases")
def list_databases(session: Session = Depends(_session_dependency)):
    provider = _require_provider(session)
    try:
        return {"success": True, "databases": provider.list_databases()}
    except ProviderError as e:
        raise _bad_request(e) from e


@router.get("/api/schemas")
def list_schemas(session: Session = Depends(_session_dependency)):
    provider = _require_provider(session)
    try:
        return {"success": True, "schemas": provider.list_schemas()}
    except ProviderError as e:
        raise _bad_request(e) from e


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------


@router.post("/api/scan")
def scan(
    request: Request,
    body: ScanRequest | None = None,
    session: Session = Depends(_session_dependency),
):
    """Scan the schema and start a conversation grounded in it."""
    provider = _require_provider(session)
    body = body or ScanRequest()

    try:
        metadata = SchemaScanner(provider).scan_database(body.database, body.schema_name)
    except ProviderError as e:
        raise _bad_request(e) from e

    session.attach_metadata(metadata, request.app.state.llm_factory())

    return {
        "success": True,
        "metadata": metadata.to_dict(),
        "summary": generate_schema_summary(metadata),
    }


@router.get("/api/schema")
def get_schema(session: Session = Depends(_session_dependency)):
    """Return the metadata of the last scan."""
    if session.metadata is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Schema not scanned",
        )
    return {"success": True, "metadata": session.metadata.to_dict()}


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


@router.post("/api/chat", response_model=ChatReply)
def chat(body: ChatRequest, session: Session = Depends(_session_dependency)):
    """Send a message and receive the assistant's structured reply."""
    if session.orchestrator is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Schema not scanned. Please scan the database first.",
        )

    try:
        response = session.orchestrator.chat(body.message)
    except LLMTransportError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e
    except MaxIterationsExceeded as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e)
        ) from e

    return ChatReply(response=response.to_dict())


@router.post("/api/chat/clear", response_model=StatusResponse)
def clear_chat(session: Session = Depends(_session_dependency)):
    """Reset the conversation to its system prompt."""
    if session.orchestrator is not None:
        session.orchestrator.clear_history()
    return StatusResponse(message="Conversation cleared")


@router.post("/api/read-only", response_model=ReadOnlyStatus)
def set_read_only(body: ReadOnlyRequest, session: Session = Depends(_session_dependency)):
    """Allow or forbid write statements for this session."""
    session.set_read_only(body.read_only)
    return ReadOnlyStatus(read_only=session.read_only)


# ---------------------------------------------------------------------------
# Direct query
# ---------------------------------------------------------------------------


@router.post("/api/query")
def run_query(body: QueryRequest, session: Session = Depends(_session_dependency)):
    """Execute SQL directly, through the same safety gate the tools use."""
    provider = _require_provider(session)

    check = _validator.validate_safe(body.sql, session.read_only)
    if not check.safe:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"SQL validation failed: {check.reason}",
        )

    try:
        result = provider.run_query(body.sql)
    except ProviderError as e:
        raise _bad_request(e) from e

    return {
        "success": True,
        "result": {
            "rows": result.rows,
            "row_count": result.row_count,
            "fields": result.fields,
        },
    }

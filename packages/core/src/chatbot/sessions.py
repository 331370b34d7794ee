"""Per-client session state.

A session owns its provider, scanned metadata, tool registry and
orchestrator. Nothing here is shared between sessions, so two clients never
see each other's history or read-only setting.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime

from chatbot.ChatOrchestrator import ChatOrchestrator
from chatbot.llm_client import LLMClient
from chatbot.tools import ToolRegistry
from database.DatabaseProvider import DatabaseProvider
from database.metadata import DatabaseMetadata

logger = logging.getLogger(__name__)

DEFAULT_SESSION_ID = "default"


@dataclass
class Session:
    """One client's connection and conversation.

    Attributes:
        id: Session identifier supplied by the client.
        provider: Connected provider, or None before connect.
        metadata: Result of the last schema scan.
        tool_registry: Tools bound to ``provider``; set by the scan.
        orchestrator: Conversation bound to ``tool_registry``; set by the scan.
        read_only: Read-only setting applied to every registry of this session.
        created_at: When the session was first referenced.
    """

    id: str
    provider: DatabaseProvider | None = None
    metadata: DatabaseMetadata | None = None
    tool_registry: ToolRegistry | None = None
    orchestrator: ChatOrchestrator | None = None
    read_only: bool = True
    created_at: datetime = field(default_factory=datetime.now)

    def attach_provider(self, provider: DatabaseProvider) -> None:
        """Swap in a new connection, closing the previous one."""
        if self.provider is not None and self.provider is not provider:
            self.provider.disconnect()
        self.provider = provider
        self.metadata = None
        self.tool_registry = None
        self.orchestrator = None

    def attach_metadata(self, metadata: DatabaseMetadata, llm_client: LLMClient) -> ChatOrchestrator:
        """Bind fresh tools and a fresh conversation to a newly scanned schema.

        Raises:
            ValueError: If no provider is attached.
        """
        if self.provider is None:
            raise ValueError("Not connected to database")
        self.metadata = metadata
        self.tool_registry = ToolRegistry(self.provider, metadata, read_only_mode=self.read_only)
        self.orchestrator = ChatOrchestrator(self.tool_registry, llm_client, metadata)
        return self.orchestrator

    def set_read_only(self, read_only: bool) -> None:
        self.read_only = read_only
        if self.tool_registry is not None:
            self.tool_registry.set_read_only_mode(read_only)

    def close(self) -> None:
        if self.provider is not None:
            self.provider.disconnect()
            self.provider = None


class SessionStore:
    """Sessions keyed by id; created on first reference, destroyed on disconnect."""

    def __init__(self, read_only_default: bool = True) -> None:
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()
        self._read_only_default = read_only_default

    def get_or_create(self, session_id: str | None = None) -> Session:
        session_id = session_id or DEFAULT_SESSION_ID
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                session = Session(id=session_id, read_only=self._read_only_default)
                self._sessions[session_id] = session
                logger.info("Created session %s", session_id)
            return session

    def get(self, session_id: str | None = None) -> Session | None:
        with self._lock:
            return self._sessions.get(session_id or DEFAULT_SESSION_ID)

    def remove(self, session_id: str | None = None) -> bool:
        """Close and forget a session. Returns False if it did not exist."""
        with self._lock:
            session = self._sessions.pop(session_id or DEFAULT_SESSION_ID, None)
        if session is None:
            return False
        session.close()
        logger.info("Removed session %s", session.id)
        return True

    def close_all(self) -> None:
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.close()

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

"""Core chat module that runs the LLM tool-calling loop over the database tools."""

import json
import logging
import re
import threading
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError

from chatbot.errors import ErrorKind, MaxIterationsExceeded
from chatbot.llm_client import LLMClient
from chatbot.models import ChatResponse, Message, ToolCall
from chatbot.prompts import get_system_prompt
from chatbot.tools import ToolOutcome, ToolRegistry
from database.metadata import DatabaseMetadata
from database.semantic import generate_compact_schema

logger = logging.getLogger(__name__)

# Model round-trips allowed per chat() call.
MAX_ITERATIONS = 5

_FENCED_BLOCK = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)

ToolCallback = Callable[[str, dict[str, Any]], None]


class ChatOrchestrator:
    """Conversational assistant that answers questions through database tools.

    One instance owns one conversation. The history always starts with a
    single system message that embeds the current schema; it is rebuilt
    whenever the schema changes or the history is cleared.
    """

    def __init__(
        self,
        tool_registry: ToolRegistry,
        llm_client: LLMClient,
        metadata: DatabaseMetadata | None = None,
        max_iterations: int = MAX_ITERATIONS,
    ) -> None:
        """Initialize the orchestrator and seed the conversation.

        Args:
            tool_registry: Tools the model may call.
            llm_client: Client used for every model round-trip.
            metadata: Scanned schema to embed in the system prompt.
            max_iterations: Bound on model round-trips per chat() call.
        """
        self._registry = tool_registry
        self._llm = llm_client
        self._metadata = metadata
        self._max_iterations = max_iterations
        self._system_prompt = ""
        self._messages: list[Message] = []
        # Serializes turns so one conversation has at most one model call in flight.
        self._lock = threading.Lock()

        if metadata is not None:
            self._registry.set_metadata(metadata)
        self._initialize_system_prompt()

    @property
    def metadata(self) -> DatabaseMetadata | None:
        return self._metadata

    @property
    def system_prompt(self) -> str:
        return self._system_prompt

    @property
    def tool_registry(self) -> ToolRegistry:
        return self._registry

    def set_metadata(self, metadata: DatabaseMetadata) -> None:
        """Replace the schema and start a fresh conversation around it."""
        with self._lock:
            self._metadata = metadata
            self._registry.set_metadata(metadata)
            self._initialize_system_prompt()

    def clear_history(self) -> None:
        """Drop every message except a freshly built system message."""
        with self._lock:
            self._initialize_system_prompt()

    def get_history(self) -> list[Message]:
        with self._lock:
            return list(self._messages)

    def chat(self, user_message: str, on_tool_call: ToolCallback | None = None) -> ChatResponse:
        """Send a user message and return the assistant's final answer.

        Tool calls requested by the model are executed in order and their
        results appended to the history before the model is asked again.
        A failing tool becomes an error tool message; it does not end the turn.

        Args:
            user_message: The message from the user.
            on_tool_call: Optional callback invoked with the tool name and
                decoded arguments before each tool runs.

        Returns:
            The parsed final answer.

        Raises:
            LLMTransportError: If the model endpoint fails.
            MaxIterationsExceeded: If the model is still calling tools after
                the allowed number of round-trips.
        """
        with self._lock:
            return self._run_turn(user_message, on_tool_call)

    def _run_turn(self, user_message: str, on_tool_call: ToolCallback | None) -> ChatResponse:
        self._messages.append(Message(role="user", content=user_message))

        for iteration in range(1, self._max_iterations + 1):
            reply = self._llm.chat(list(self._messages), self._registry.get_tools())
            self._messages.append(reply)

            if not reply.tool_calls:
                logger.info("Final answer after %d model round-trip(s)", iteration)
                return self.parse_response(reply.content)

            logger.debug(
                "Round %d: model requested %d tool call(s)", iteration, len(reply.tool_calls)
            )
            # Sequential on purpose: tool messages must follow the call order.
            for tool_call in reply.tool_calls:
                self._dispatch(tool_call, on_tool_call)

        logger.warning("No final answer after %d model round-trips", self._max_iterations)
        raise MaxIterationsExceeded(self._max_iterations)

    @staticmethod
    def parse_response(content: str | None) -> ChatResponse:
        """Turn the model's final text into a ChatResponse.

        A JSON object (optionally inside a Markdown code fence) carrying a
        valid ``response_type`` and a ``description`` is returned as-is;
        anything else is wrapped as a text response.
        """
        content = content or ""
        candidate = content.strip()
        fenced = _FENCED_BLOCK.match(candidate)
        if fenced:
            candidate = fenced.group(1)

        try:
            payload = json.loads(candidate)
        except json.JSONDecodeError:
            payload = None

        if isinstance(payload, dict) and payload.get("response_type") and payload.get("description"):
            try:
                return ChatResponse.model_validate(payload)
            except ValidationError as e:
                logger.debug("Structured answer rejected, falling back to text: %s", e)

        return ChatResponse(response_type="text", description=content, raw_response=content)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _initialize_system_prompt(self) -> None:
        schema_context = (
            generate_compact_schema(self._metadata) if self._metadata is not None else None
        )
        self._system_prompt = get_system_prompt(schema_context, self._registry.get_tools())
        self._messages = [Message(role="system", content=self._system_prompt)]

    def _dispatch(self, tool_call: ToolCall, on_tool_call: ToolCallback | None) -> None:
        """Execute one tool call and append its tool message."""
        try:
            params = json.loads(tool_call.arguments or "{}")
        except json.JSONDecodeError as e:
            outcome = ToolOutcome.failure(
                tool_call.name, ErrorKind.PARSE_ERROR, f"Invalid tool arguments: {e}"
            )
        else:
            if on_tool_call is not None and isinstance(params, dict):
                on_tool_call(tool_call.name, params)
            outcome = self._registry.execute_tool(tool_call.name, params)

        self._messages.append(
            Message(
                role="tool",
                content=outcome.to_content(),
                name=tool_call.name,
                tool_call_id=tool_call.id,
            )
        )

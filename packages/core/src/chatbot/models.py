"""Data models for conversation messages, tool calls and final answers."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

Role = Literal["system", "user", "assistant", "tool"]


@dataclass
class ToolCall:
    """A tool invocation requested by the model.

    Attributes:
        id: Identifier the matching ``tool`` message must echo back.
        name: Name of the requested tool.
        arguments: JSON text encoding the parameter object.
    """

    id: str
    name: str
    arguments: str = "{}"

    def to_api_dict(self) -> dict:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass
class Message:
    """A single message within a conversation.

    Attributes:
        role: One of "system", "user", "assistant", or "tool".
        content: The text content of the message (empty for assistant
            messages that only contain tool calls).
        name: Tool name, set on tool-role messages.
        tool_calls: Tool invocations requested by an assistant message.
        tool_call_id: The id of the ToolCall a tool-role message answers.
        timestamp: When the message was created.
    """

    role: Role
    content: str = ""
    name: str | None = None
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_api_dict(self) -> dict:
        """Serialize this message into the dict format expected by the OpenAI API.

        Returns:
            A dictionary suitable for inclusion in the ``messages`` list of a
            chat completion request.
        """
        if self.role == "tool":
            return {
                "role": "tool",
                "tool_call_id": self.tool_call_id,
                "content": self.content,
            }

        result: dict = {"role": self.role, "content": self.content}

        if self.tool_calls:
            result["tool_calls"] = [tc.to_api_dict() for tc in self.tool_calls]
            # Tool-call-only replies carry null content on the wire.
            if not self.content:
                result["content"] = None

        return result


class ChatResponse(BaseModel):
    """Structured final answer of one chat turn.

    Keys a model adds beyond the documented ones are kept.
    """

    model_config = ConfigDict(extra="allow")

    response_type: Literal["text", "table", "chart"]
    description: str
    data: Any = None
    sql: str | None = None
    raw_response: str | None = None

    def to_dict(self) -> dict:
        """Wire form with unset optional keys omitted."""
        return self.model_dump(exclude_none=True)

"""LLM clients speaking the OpenAI chat-completions function-calling protocol."""

import json
import logging
import re
from collections.abc import Sequence
from typing import Any, Protocol

import tiktoken  # type: ignore
from openai import APIConnectionError, APIStatusError, BadRequestError, OpenAI  # type: ignore

from chatbot.errors import LLMTransportError
from chatbot.models import Message, ToolCall

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"
GROQ_API_URL = "https://api.groq.com/openai/v1"

# Reserve space for tools and model response. gpt-4o-mini context is 128k.
MAX_CONTEXT_TOKENS = 128_000
MAX_REQUEST_TOKENS = MAX_CONTEXT_TOKENS - 5_000
FALLBACK_REQUEST_TOKENS = 12_000

_CONTEXT_LENGTH_MSG = "Conversation is too long. Please start a new conversation."
_TRUNCATED_MARKER = " ...[truncated]"

_SCRIPT_STYLE = re.compile(r"<(script|style)\b.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
_HTML_HINT = re.compile(r"<\s*(html|body|head|!doctype|h1|p|div|title)\b", re.IGNORECASE)
_TAG = re.compile(r"<[^>]+>")
_WHITESPACE = re.compile(r"\s+")
_MAX_ERROR_CHARS = 500


class LLMClient(Protocol):
    """Anything that can answer a conversation with an assistant message."""

    def chat(self, messages: Sequence[Message], tools: Sequence[dict]) -> Message:
        ...


def scrub_markup(text: str) -> str:
    """Reduce an HTML error page to its visible text.

    Plain-text and JSON error bodies are returned unchanged apart from
    truncation.
    """
    if _HTML_HINT.search(text):
        text = _SCRIPT_STYLE.sub(" ", text)
        text = _TAG.sub(" ", text)
        text = _WHITESPACE.sub(" ", text).strip()
    if len(text) > _MAX_ERROR_CHARS:
        text = text[:_MAX_ERROR_CHARS] + "..."
    return text


def _count_tokens_for_messages(encoding: Any, messages: list[dict]) -> int:
    """Return estimated token count for a list of API-style message dicts."""
    # Per cookbook: 3 tokens per message overhead, plus content.
    tokens_per_message = 3
    num_tokens = 0
    for msg in messages:
        num_tokens += tokens_per_message
        for key, value in msg.items():
            if value is None:
                continue
            if isinstance(value, str):
                num_tokens += len(encoding.encode(value))
            elif key == "tool_calls" and isinstance(value, list):
                num_tokens += len(encoding.encode(json.dumps(value)))
            else:
                num_tokens += len(encoding.encode(str(value)))
    num_tokens += 3  # every reply primed with <|start|>assistant<|message|>
    return num_tokens


def _shrink_turn(encoding: Any, system_msg: dict, turn: list[Message], max_tokens: int) -> list[dict]:
    """Truncate the tool results of one turn, largest first, until it fits ``max_tokens``.

    Raises:
        LLMTransportError: If the turn does not fit even with empty tool results.
    """
    msgs = [m.to_api_dict() for m in turn]
    tool_msgs = sorted(
        (msg for msg in msgs if msg["role"] == "tool"),
        key=lambda msg: len(msg["content"] or ""),
        reverse=True,
    )
    marker_tokens = len(encoding.encode(_TRUNCATED_MARKER))

    for msg in tool_msgs:
        overflow = _count_tokens_for_messages(encoding, [system_msg] + msgs) - max_tokens
        if overflow <= 0:
            break
        tokens = encoding.encode(msg["content"] or "")
        # One spare token for the merge at the cut point.
        keep = max(0, len(tokens) - overflow - marker_tokens - 1)
        msg["content"] = encoding.decode(tokens[:keep]) + _TRUNCATED_MARKER

    if _count_tokens_for_messages(encoding, [system_msg] + msgs) > max_tokens:
        raise LLMTransportError(_CONTEXT_LENGTH_MSG)

    logger.info("Truncated %d tool result(s) to fit the context window", len(tool_msgs))
    return msgs


class OpenAIClient:
    """Chat-completions client for OpenAI and OpenAI-compatible endpoints.

    The conversation passed to :meth:`chat` is never modified. When it no
    longer fits the context window, the oldest whole turns are left out of
    the request; the system message and the latest user message are always
    sent, with the latest turn's tool results truncated if needed.
    """

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        base_url: str | None = None,
        timeout: float = 60.0,
        temperature: float | None = None,
        max_tokens: int | None = None,
        max_request_tokens: int | None = MAX_REQUEST_TOKENS,
        client: OpenAI | None = None,
    ) -> None:
        """Create a client.

        Args:
            api_key: API key used to authenticate completion requests.
            model: Model name.
            base_url: Endpoint root; the OpenAI default when omitted.
            timeout: Per-request timeout in seconds.
            temperature: Sampling temperature, provider default when omitted.
            max_tokens: Completion token cap, provider default when omitted.
            max_request_tokens: Token budget for the request messages; None
                disables budgeting.
            client: Preconfigured SDK client, mainly for tests.
        """
        self._client = client or OpenAI(api_key=api_key, base_url=base_url, timeout=timeout)
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._max_request_tokens = max_request_tokens
        self._encoding = None

    @property
    def model(self) -> str:
        return self._model

    def chat(self, messages: Sequence[Message], tools: Sequence[dict]) -> Message:
        """Send the conversation and return the assistant's reply.

        Raises:
            LLMTransportError: On a non-success status, a connection failure,
                or a response without choices.
        """
        formatted_tools = [{"type": "function", "function": dict(tool)} for tool in tools]

        try:
            response = self._complete(messages, formatted_tools, self._max_request_tokens)
        except BadRequestError as e:
            if "context_length_exceeded" not in str(e):
                raise _transport_error(e) from e
            logger.warning("Context length exceeded; retrying with a reduced history")
            try:
                response = self._complete(messages, formatted_tools, FALLBACK_REQUEST_TOKENS)
            except BadRequestError as e2:
                if "context_length_exceeded" in str(e2):
                    raise LLMTransportError(_CONTEXT_LENGTH_MSG, e2.status_code) from e2
                raise _transport_error(e2) from e2
            except APIStatusError as e2:
                raise _transport_error(e2) from e2
            except APIConnectionError as e2:
                raise LLMTransportError(f"LLM API unreachable: {e2}") from e2
        except APIStatusError as e:
            raise _transport_error(e) from e
        except APIConnectionError as e:
            logger.error("LLM endpoint unreachable: %s", e)
            raise LLMTransportError(f"LLM API unreachable: {e}") from e

        return self._to_message(response)

    def _complete(
        self,
        messages: Sequence[Message],
        tools: list[dict],
        max_request_tokens: int | None,
    ):
        kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": self._build_api_messages(messages, max_request_tokens),
        }
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"
        if self._temperature is not None:
            kwargs["temperature"] = self._temperature
        if self._max_tokens is not None:
            kwargs["max_tokens"] = self._max_tokens

        return self._client.chat.completions.create(**kwargs)

    def _build_api_messages(
        self, messages: Sequence[Message], max_tokens: int | None
    ) -> list[dict]:
        """Build the API message list with system first and as many recent turns as fit.

        Truncates by dropping oldest turns so tool-call chains stay valid.
        """
        if max_tokens is None or not messages:
            return [m.to_api_dict() for m in messages]

        encoding = self._get_encoding()
        system_msg = messages[0].to_api_dict()

        # Split non-system messages into turns: each turn = user + following assistant/tool
        turns: list[list[Message]] = []
        current_turn: list[Message] = []
        for m in messages[1:]:
            if m.role == "user":
                if current_turn:
                    turns.append(current_turn)
                current_turn = [m]
            else:
                current_turn.append(m)
        if current_turn:
            turns.append(current_turn)

        # Include as many full turns from the end as fit
        tail: list[Message] = []
        for turn in reversed(turns):
            candidate = list(turn) + tail
            msgs = [system_msg] + [x.to_api_dict() for x in candidate]
            if _count_tokens_for_messages(encoding, msgs) <= max_tokens:
                tail = candidate
            else:
                break

        if not tail and turns:
            # The latest turn alone is too large; keep it and shorten its tool results.
            return [system_msg] + _shrink_turn(encoding, system_msg, turns[-1], max_tokens)

        if len(tail) < len(messages) - 1:
            logger.info("Sending %d of %d messages to fit the context window", len(tail) + 1, len(messages))
        return [system_msg] + [m.to_api_dict() for m in tail]

    def _get_encoding(self):
        if self._encoding is None:
            try:
                self._encoding = tiktoken.encoding_for_model(self._model)
            except KeyError:
                self._encoding = tiktoken.get_encoding("o200k_base")
        return self._encoding

    @staticmethod
    def _to_message(response) -> Message:
        choices = getattr(response, "choices", None)
        if not choices:
            raise LLMTransportError("LLM API returned no choices")

        message = choices[0].message
        tool_calls = [
            ToolCall(
                id=tc.id,
                name=tc.function.name,
                arguments=tc.function.arguments or "{}",
            )
            for tc in (message.tool_calls or [])
            if tc.type == "function" and tc.function
        ]
        return Message(
            role="assistant",
            content=message.content or "",
            tool_calls=tool_calls or None,
        )


class GroqClient(OpenAIClient):
    """Groq's OpenAI-compatible inference API."""

    def __init__(
        self,
        api_key: str,
        model: str = "llama-3.3-70b-versatile",
        timeout: float = 60.0,
        **kwargs: Any,
    ) -> None:
        kwargs.setdefault("temperature", 0.7)
        kwargs.setdefault("max_tokens", 2048)
        super().__init__(api_key, model=model, base_url=GROQ_API_URL, timeout=timeout, **kwargs)


def create_llm_client(api_url: str, api_key: str, model: str, timeout: float = 60.0) -> OpenAIClient:
    """Pick the client for ``api_url``: Groq for groq.com, OpenAI-compatible otherwise."""
    if "groq.com" in api_url:
        logger.info("Using Groq LLM: %s", model)
        return GroqClient(api_key, model=model, timeout=timeout)
    logger.info("Using OpenAI-compatible LLM: %s", model)
    return OpenAIClient(api_key, model=model, base_url=api_url, timeout=timeout)


def _transport_error(error: APIStatusError) -> LLMTransportError:
    body = error.response.text if error.response is not None else ""
    detail = scrub_markup(body or str(error))
    logger.error("LLM API error %s: %s", error.status_code, detail)
    return LLMTransportError(f"LLM API error: {error.status_code} - {detail}", error.status_code)

"""LLM client — HTTP connections to chat-completion backends.

The pipeline is written against one protocol:

    class LLM(Protocol):
        supports_structured_outcomes: bool
        async def complete(self, messages, system, tools=None,
                           require_tool=False) -> Completion: ...

`messages` is the ordered user/assistant transcript, `system` the
instruction channel kept separate from the conversational turns, and
`tools` an optional list of function schemas. With `require_tool=True`
the backend is forced to answer through one of the tools.

Three adapters are provided:

    AnthropicLLM — Anthropic Messages API, native tool use.
    OpenAILLM    — OpenAI chat completions (and compatible servers),
                   native function calling.
    KoboldLLM    — KoboldCpp text completion. No tool support, so the
                   forecast stage falls back to text-marker parsing.

`supports_structured_outcomes` is the capability flag the forecast stage
reads to pick between the tool-call path and the text-marker path. It can
be forced off per adapter (e.g. for an OpenAI-compatible local server that
ignores `tools`).

Production code builds an adapter with build_llm(settings). Tests use the
ScriptedLLM defined in the root conftest.py instead.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Literal, Protocol

import httpx
from pydantic import BaseModel, ValidationError

from wargame.models import ScenarioMessage

if TYPE_CHECKING:
    from wargame.config import Settings

logger = logging.getLogger(__name__)

ToolSpec = dict[str, Any]  # {"name": ..., "description": ..., "parameters": <JSON schema>}

ProviderName = Literal["anthropic", "openai", "koboldcpp"]


# ---------------------------------------------------------------------------
# Response types
# ---------------------------------------------------------------------------

class ToolCall(BaseModel):
    name: str
    arguments: dict[str, Any]


class Completion(BaseModel):
    text: str = ""
    tool_call: ToolCall | None = None


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------

class LLM(Protocol):
    supports_structured_outcomes: bool

    async def complete(
        self,
        messages: Sequence[ScenarioMessage],
        system: str,
        tools: list[ToolSpec] | None = None,
        require_tool: bool = False,
    ) -> Completion: ...


# ---------------------------------------------------------------------------
# Shared HTTP plumbing
# ---------------------------------------------------------------------------

class HttpLLM:
    """Base class for the HTTP adapters.

    Subclasses provide the wire format through _headers(), _build_request()
    and _parse_response(); this class owns the connection, logging and error
    mapping.

    Args:
        base_url:    Base URL of the backend.
        api_key:     Credential, or empty string if not required.
        model:       Model identifier.
        temperature: Sampling temperature. 0 keeps test runs reproducible.
        seed:        Fixed sampling seed, forwarded where the vendor has one.
        max_tokens:  Response token cap.
        timeout:     HTTP timeout in seconds.
        structured_outcomes: Override the adapter's tool-call capability.
    """

    provider: str = ""
    default_base_url: str = ""
    default_model: str = ""
    native_tools: bool = False

    def __init__(
        self,
        base_url: str = "",
        api_key: str = "",
        model: str = "",
        temperature: float = 0.0,
        seed: int | None = None,
        max_tokens: int = 4000,
        timeout: float = 120.0,
        structured_outcomes: bool | None = None,
    ) -> None:
        self._base_url = (base_url or self.default_base_url).rstrip("/")
        self._api_key = api_key
        self._model = model or self.default_model
        self._temperature = temperature
        self._seed = seed
        self._max_tokens = max_tokens
        self._timeout = timeout
        if structured_outcomes is None:
            structured_outcomes = self.native_tools
        self.supports_structured_outcomes = structured_outcomes and self.native_tools

    @property
    def model(self) -> str:
        return self._model

    def _headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json"}

    def _build_request(
        self,
        messages: Sequence[ScenarioMessage],
        system: str,
        tools: list[ToolSpec] | None,
        require_tool: bool,
    ) -> tuple[str, dict]:
        raise NotImplementedError

    def _parse_response(self, data: dict) -> Completion:
        raise NotImplementedError

    async def complete(
        self,
        messages: Sequence[ScenarioMessage],
        system: str,
        tools: list[ToolSpec] | None = None,
        require_tool: bool = False,
    ) -> Completion:
        if not self.supports_structured_outcomes:
            tools, require_tool = None, False
        url, body = self._build_request(messages, system, tools, require_tool)
        logger.debug(
            "llm call provider=%s url=%s messages=%d tools=%d",
            self.provider, url, len(messages), len(tools or []),
        )

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise BackendError(f"Cannot connect to LLM backend at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise BackendError(
                f"LLM backend returned HTTP {e.response.status_code}"
            ) from e
        except httpx.TimeoutException as e:
            raise BackendError(f"LLM backend timed out after {self._timeout}s") from e
        except httpx.HTTPError as e:
            raise BackendError(f"LLM backend request failed: {e!r}") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise BackendError(f"{self.provider} backend returned a non-JSON body") from e

        if not isinstance(data, dict):
            raise BackendError(f"Unexpected response format from {self.provider} backend")
        try:
            completion = self._parse_response(data)
        except (KeyError, IndexError, TypeError, AttributeError, ValidationError) as e:
            raise BackendError(f"Unexpected response format from {self.provider} backend") from e
        logger.debug(
            "llm response provider=%s len=%d tool_call=%s",
            self.provider, len(completion.text),
            completion.tool_call.name if completion.tool_call else None,
        )
        return completion


# ---------------------------------------------------------------------------
# Anthropic
# ---------------------------------------------------------------------------

class AnthropicLLM(HttpLLM):
    """Anthropic Messages API.

    POST /v1/messages {"model", "system", "messages", "tools"?, "tool_choice"?}
    Response: {"content": [{"type": "text", "text": ...},
                           {"type": "tool_use", "name": ..., "input": {...}}]}

    The Messages API has no sampling seed; `seed` is ignored.
    """

    provider = "anthropic"
    default_base_url = "https://api.anthropic.com"
    default_model = "claude-3-7-sonnet-20250219"
    native_tools = True
    api_version = "2023-06-01"

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        headers["anthropic-version"] = self.api_version
        if self._api_key:
            headers["x-api-key"] = self._api_key
        return headers

    def _build_request(self, messages, system, tools, require_tool):
        body: dict[str, Any] = {
            "model": self._model,
            "max_tokens": self._max_tokens,
            "temperature": self._temperature,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
        }
        if system:
            body["system"] = system
        if tools:
            body["tools"] = [
                {
                    "name": t["name"],
                    "description": t.get("description", ""),
                    "input_schema": t["parameters"],
                }
                for t in tools
            ]
            if require_tool:
                body["tool_choice"] = {"type": "any"}
        return f"{self._base_url}/v1/messages", body

    def _parse_response(self, data: dict) -> Completion:
        blocks = data.get("content")
        if not isinstance(blocks, list):
            raise BackendError("Unexpected response format from Anthropic backend")
        text_parts: list[str] = []
        tool_call: ToolCall | None = None
        for block in blocks:
            if not isinstance(block, dict):
                raise BackendError("Unexpected content block from Anthropic backend")
            if block.get("type") == "text":
                text_parts.append(str(block.get("text") or ""))
            elif block.get("type") == "tool_use" and tool_call is None:
                tool_call = _tool_call(block.get("name"), block.get("input"))
        return Completion(text="".join(text_parts), tool_call=tool_call)


# ---------------------------------------------------------------------------
# OpenAI
# ---------------------------------------------------------------------------

class OpenAILLM(HttpLLM):
    """OpenAI chat completions, or any server speaking the same format.

    POST /v1/chat/completions {"model", "messages", "tools"?, "tool_choice"?, "seed"?}
    Response: {"choices": [{"message": {"content": ..., "tool_calls": [...]}}]}

    The system prompt travels as a leading "developer" message. When
    `reasoning_effort` is set (o-series models) temperature is not sent.
    """

    provider = "openai"
    default_base_url = "https://api.openai.com"
    default_model = "gpt-4o"
    native_tools = True

    def __init__(self, *args: Any, reasoning_effort: str | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._reasoning_effort = reasoning_effort

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_request(self, messages, system, tools, require_tool):
        api_messages: list[dict[str, str]] = []
        if system:
            api_messages.append({"role": "developer", "content": system})
        api_messages.extend({"role": m.role, "content": m.content} for m in messages)

        body: dict[str, Any] = {
            "model": self._model,
            "messages": api_messages,
            "max_completion_tokens": self._max_tokens,
        }
        if self._reasoning_effort:
            body["reasoning_effort"] = self._reasoning_effort
        else:
            body["temperature"] = self._temperature
        if self._seed is not None:
            body["seed"] = self._seed
        if tools:
            body["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": t["name"],
                        "description": t.get("description", ""),
                        "parameters": t["parameters"],
                    },
                }
                for t in tools
            ]
            if require_tool:
                body["tool_choice"] = "required"
        return f"{self._base_url}/v1/chat/completions", body

    def _parse_response(self, data: dict) -> Completion:
        choices = data.get("choices")
        if not choices or "message" not in choices[0]:
            raise BackendError("Unexpected response format from OpenAI-compatible backend")
        message = choices[0]["message"]
        if not isinstance(message, dict):
            raise BackendError("Unexpected response format from OpenAI-compatible backend")
        tool_call: ToolCall | None = None
        calls = message.get("tool_calls") or []
        if isinstance(calls, list) and calls and isinstance(calls[0], dict):
            function = calls[0].get("function") or {}
            if isinstance(function, dict):
                raw = function.get("arguments") or "{}"
                try:
                    arguments = json.loads(raw) if isinstance(raw, str) else raw
                except json.JSONDecodeError:
                    logger.warning("Tool call arguments are not valid JSON: %r", raw)
                    arguments = None
                tool_call = _tool_call(function.get("name"), arguments)
        return Completion(text=str(message.get("content") or ""), tool_call=tool_call)


# ---------------------------------------------------------------------------
# Shared parsing
# ---------------------------------------------------------------------------

def _tool_call(name: Any, arguments: Any) -> ToolCall | None:
    """A ToolCall, or None when the vendor sent a name or arguments of the wrong shape."""
    if not isinstance(name, str) or not name or not isinstance(arguments, dict):
        logger.warning("Ignoring malformed tool call name=%r arguments=%r", name, arguments)
        return None
    return ToolCall(name=name, arguments=arguments)


# ---------------------------------------------------------------------------
# KoboldCpp
# ---------------------------------------------------------------------------

class KoboldLLM(HttpLLM):
    """KoboldCpp text completion.

    POST /api/v1/generate {"prompt": ...}
    Response: {"results": [{"text": "..."}]}

    The transcript is flattened into a single prompt. Tools are never sent.
    """

    provider = "koboldcpp"
    default_base_url = "http://localhost:5001"
    native_tools = False

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_request(self, messages, system, tools, require_tool):
        parts = [system] if system else []
        for m in messages:
            speaker = "User" if m.role == "user" else "Assistant"
            parts.append(f"### {speaker}:\n{m.content}")
        parts.append("### Assistant:\n")
        body: dict[str, Any] = {
            "prompt": "\n\n".join(parts),
            "max_length": self._max_tokens,
            "temperature": self._temperature,
        }
        if self._seed is not None:
            body["sampler_seed"] = self._seed
        return f"{self._base_url}/api/v1/generate", body

    def _parse_response(self, data: dict) -> Completion:
        results = data.get("results")
        if not results or "text" not in results[0]:
            raise BackendError("Unexpected response format from KoboldCpp backend")
        return Completion(text=results[0]["text"])


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

_ADAPTERS: dict[str, type[HttpLLM]] = {
    "anthropic": AnthropicLLM,
    "openai": OpenAILLM,
    "koboldcpp": KoboldLLM,
}


def build_llm(settings: Settings) -> HttpLLM:
    """Construct the adapter selected by LLM_PROVIDER."""
    cls = _ADAPTERS[settings.llm_provider]
    kwargs: dict[str, Any] = dict(
        base_url=settings.llm_base_url,
        api_key=settings.resolved_api_key(),
        model=settings.llm_model,
        temperature=settings.llm_temperature,
        seed=settings.llm_seed,
        max_tokens=settings.llm_max_tokens,
        timeout=settings.llm_timeout,
        structured_outcomes=settings.llm_structured_outcomes,
    )
    if cls is OpenAILLM:
        kwargs["reasoning_effort"] = settings.llm_reasoning_effort
    llm = cls(**kwargs)
    logger.info(
        "LLM backend provider=%s model=%s structured_outcomes=%s",
        llm.provider, llm.model, llm.supports_structured_outcomes,
    )
    return llm


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class BackendError(RuntimeError):
    """Raised when the LLM backend cannot be reached or returns an error."""

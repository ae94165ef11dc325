"""Model client over OpenAI-compatible ``/chat/completions`` endpoints.

``ModelFacade`` is the only thing the loop, compressor and agent depend on:
``respond(messages, kind, mode, use_reasoning)`` returning a ``ModelResponse``.
``ModelClient`` implements it with ``httpx.AsyncClient``; tests substitute a
scripted fake.
"""

from __future__ import annotations

import json
import sys
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

import httpx

from toolloop.api.retry import with_retry
from toolloop.config.models import ModelEndpoint, RuntimeConfig
from toolloop.llm.router import Mode, ModelKind, ModelRouter


class LLMError(Exception):
    """LLM API error."""

    def __init__(self, message: str, code: str = "unknown", status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code


class ContextWindowExceeded(LLMError):
    """Raised when the request exceeds the model's context window."""

    def __init__(self, message: str):
        super().__init__(message, code="context_window_exceeded")


@dataclass
class FunctionCall:
    """A structured tool call returned by the endpoint.

    ``arguments`` is kept as the raw text the model produced so malformed
    JSON can be repaired or reported downstream.
    """

    id: str
    name: str
    arguments: str

    @classmethod
    def from_openai(cls, call: Dict[str, Any]) -> "FunctionCall":
        func = call.get("function") or {}
        args = func.get("arguments", "{}")
        if not isinstance(args, str):
            args = json.dumps(args)
        return cls(id=call.get("id", "") or "", name=func.get("name", "") or "", arguments=args)


@dataclass
class ModelResponse:
    """Response from a model round-trip."""

    text: str = ""
    function_calls: List[FunctionCall] = field(default_factory=list)
    tokens: Optional[Dict[str, int]] = None
    model: str = ""
    finish_reason: str = ""

    @property
    def is_empty(self) -> bool:
        return not (self.text and self.text.strip()) and not self.function_calls


class ModelFacade(Protocol):
    async def respond(
        self,
        messages: List[Dict[str, Any]],
        kind: ModelKind = ModelKind.REGULAR,
        mode: Mode = Mode.CHAT,
        use_reasoning: bool = False,
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> ModelResponse: ...


def _log_client(msg: str) -> None:
    """Log to stderr from client module."""
    timestamp = time.strftime("%H:%M:%S")
    print(f"[{timestamp}] [llm] {msg}", file=sys.stderr, flush=True)


_CONTEXT_KEYWORDS = (
    "context_length_exceeded",
    "context window",
    "maximum context length",
    "token limit",
    "context length",
    "too many tokens",
    "input is too long",
)


class ModelClient:
    """Async client for the primary and worker endpoints."""

    def __init__(
        self,
        config: Optional[RuntimeConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or RuntimeConfig()
        self.router = ModelRouter(self.config)
        self._client = httpx.AsyncClient(transport=transport)
        self._request_count = 0
        self._total_tokens = 0

    @staticmethod
    def _is_context_window_error(status_code: int, error_msg: str) -> bool:
        lowered = error_msg.lower()
        return status_code == 400 and any(kw in lowered for kw in _CONTEXT_KEYWORDS)

    def _raise_http_error(self, status_code: int, error_msg: str) -> None:
        """Map HTTP status to the appropriate LLMError and raise."""
        if self._is_context_window_error(status_code, error_msg):
            raise ContextWindowExceeded(error_msg)
        if status_code == 401:
            raise LLMError(error_msg, code="authentication_error", status_code=status_code)
        elif status_code == 429:
            raise LLMError(error_msg, code="rate_limit", status_code=status_code)
        elif status_code >= 500:
            raise LLMError(error_msg, code="server_error", status_code=status_code)
        else:
            raise LLMError(f"HTTP {status_code}: {error_msg}", code="api_error", status_code=status_code)

    def _build_payload(
        self,
        endpoint: ModelEndpoint,
        messages: List[Dict[str, Any]],
        use_reasoning: bool,
        tools: Optional[List[Dict[str, Any]]],
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": endpoint.model,
            "messages": messages,
            "max_tokens": endpoint.max_tokens,
            "temperature": endpoint.temperature,
        }
        if tools:
            payload["tools"] = tools
            payload["tool_choice"] = "auto"
        if use_reasoning:
            payload["reasoning_effort"] = "medium"
        return payload

    async def _post(self, endpoint: ModelEndpoint, payload: Dict[str, Any]) -> Dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        api_key = endpoint.get_api_key()
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        try:
            response = await self._client.post(
                f"{endpoint.base_url}/chat/completions",
                json=payload,
                headers=headers,
                timeout=endpoint.timeout,
            )
            self._request_count += 1
            if response.status_code != 200:
                error_body = response.text
                try:
                    error_msg = response.json().get("error", {}).get("message", error_body)
                except (json.JSONDecodeError, AttributeError):
                    error_msg = error_body
                self._raise_http_error(response.status_code, error_msg)
            return response.json()
        except LLMError:
            raise
        except httpx.TimeoutException as e:
            raise LLMError(f"Request timed out: {e}", code="timeout")
        except httpx.ConnectError as e:
            raise LLMError(f"Connection error: {e}", code="connection_error")
        except httpx.HTTPError as e:
            raise LLMError(f"HTTP error: {e}", code="api_error")
        except json.JSONDecodeError as e:
            raise LLMError(f"Invalid JSON in response: {e}", code="api_error")

    def _parse(self, data: Dict[str, Any], endpoint: ModelEndpoint) -> ModelResponse:
        result = ModelResponse(model=data.get("model", endpoint.model))

        usage = data.get("usage") or {}
        if usage:
            input_tokens = usage.get("prompt_tokens", 0) or 0
            output_tokens = usage.get("completion_tokens", 0) or 0
            self._total_tokens += input_tokens + output_tokens
            result.tokens = {"input": input_tokens, "output": output_tokens}

        choices = data.get("choices") or []
        if choices:
            choice = choices[0]
            message = choice.get("message") or {}
            result.finish_reason = choice.get("finish_reason", "") or ""
            result.text = message.get("content", "") or ""
            for call in message.get("tool_calls") or []:
                result.function_calls.append(FunctionCall.from_openai(call))
        return result

    async def _respond_once(
        self,
        endpoint: ModelEndpoint,
        payload: Dict[str, Any],
    ) -> ModelResponse:
        result = self._parse(await self._post(endpoint, payload), endpoint)
        if result.is_empty:
            _log_client(
                f"Empty response from model {endpoint.model} (finish_reason={result.finish_reason!r})"
            )
            raise LLMError(
                f"Empty response: model '{endpoint.model}' produced no text and no tool calls",
                code="empty_response",
            )
        return result

    async def respond(
        self,
        messages: List[Dict[str, Any]],
        kind: ModelKind = ModelKind.REGULAR,
        mode: Mode = Mode.CHAT,
        use_reasoning: bool = False,
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> ModelResponse:
        """Send one round-trip to the endpoint for ``kind``.

        Tool schemas are only sent in agent modes.
        """
        endpoint = self.router.select(kind)
        payload = self._build_payload(
            endpoint, messages, use_reasoning, tools if mode is not Mode.CHAT else None
        )
        return await with_retry(
            self.config.retry,
            self._respond_once,
            endpoint,
            payload,
            on_retry=lambda s: _log_client(
                f"Retrying {endpoint.model} (attempt {s.attempt}): {s.last_error}"
            ),
        )

    def get_stats(self) -> Dict[str, Any]:
        return {"request_count": self._request_count, "total_tokens": self._total_tokens}

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ModelClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        await self.aclose()
        return False

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from ash import config
from ash.errors import ModelUnavailableError

logger = logging.getLogger(__name__)


@dataclass
class ToolCall:
    name: str
    arguments: Dict[str, Any]
    id: Optional[str] = None
    # True when the call was recovered from a plain-text JSON reply
    from_text: bool = False
    arguments_error: Optional[str] = None


@dataclass
class ModelReply:
    text: str
    tool_calls: List[ToolCall] = field(default_factory=list)
    message: Dict[str, Any] = field(default_factory=dict)


def maybe_parse_tool_call(text: str) -> ToolCall | None:
    """Recognise a reply of the form {"tool": name, "args": {...}} as a tool call."""
    text = (text or "").strip()
    if not text.startswith("{"):
        return None
    try:
        obj = json.loads(text)
    except json.JSONDecodeError:
        return None
    if isinstance(obj, dict) and "tool" in obj and isinstance(obj.get("args", {}), dict):
        return ToolCall(name=str(obj["tool"]), arguments=obj.get("args") or {}, from_text=True)
    return None


def tool_call(name: str, raw: Any, call_id: Optional[str] = None) -> ToolCall:
    """
    Build a native tool call. Arguments that are not a JSON object are kept
    as arguments_error so only this call fails at dispatch.
    """
    if raw is None or raw == "":
        return ToolCall(name=name, arguments={}, id=call_id)
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            return ToolCall(name=name, arguments={}, id=call_id,
                            arguments_error=f"Model sent unparseable arguments for {name}: {e}")
    if not isinstance(raw, dict):
        return ToolCall(name=name, arguments={}, id=call_id,
                        arguments_error=f"Model sent non-object arguments for {name}")
    return ToolCall(name=name, arguments=raw, id=call_id)


class ChatModelClient:
    """
    Minimal chat-completion client with function calling.
    Subclasses describe the provider's wire format; transport errors and
    malformed responses surface as ModelUnavailableError.
    """

    provider = "base"

    def __init__(self, model: str, timeout: float, temperature: float = 0.7,
                 max_tokens: int = 1000, transport: httpx.AsyncBaseTransport | None = None):
        self.model = model
        self.timeout = timeout
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._transport = transport

    # provider hooks
    def _url(self) -> str:
        raise NotImplementedError

    def _headers(self) -> Dict[str, str]:
        return {}

    def _payload(self, messages: List[Dict[str, Any]], tools: List[Dict[str, Any]] | None) -> Dict[str, Any]:
        raise NotImplementedError

    def _parse(self, data: Dict[str, Any]) -> ModelReply:
        raise NotImplementedError

    def _ping_url(self) -> str:
        raise NotImplementedError

    def _client(self, timeout: httpx.Timeout) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    async def complete(self, messages: List[Dict[str, Any]],
                       tools: List[Dict[str, Any]] | None = None) -> ModelReply:
        payload = self._payload(messages, tools)
        timeout = httpx.Timeout(self.timeout, read=self.timeout, connect=10.0)
        try:
            async with self._client(timeout) as client:
                r = await client.post(self._url(), json=payload, headers=self._headers())
                r.raise_for_status()
                data = r.json()
        except httpx.TimeoutException as e:
            raise ModelUnavailableError(
                f"{self.provider} timed out after {int(self.timeout)}s"
            ) from e
        except httpx.HTTPStatusError as e:
            raise ModelUnavailableError(
                f"{self.provider} returned HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise ModelUnavailableError(f"{self.provider} request failed: {e}") from e
        except ValueError as e:
            raise ModelUnavailableError(f"{self.provider} sent a non-JSON response") from e

        if not isinstance(data, dict):
            raise ModelUnavailableError(f"{self.provider} sent an unexpected response shape")
        try:
            reply = self._parse(data)
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise ModelUnavailableError(f"{self.provider} response was malformed: {e!r}") from e

        if not reply.tool_calls:
            fallback = maybe_parse_tool_call(reply.text)
            if fallback:
                reply.tool_calls = [fallback]
                reply.text = ""
        return reply

    async def ping(self) -> bool:
        try:
            async with self._client(httpx.Timeout(5.0, connect=3.0)) as client:
                rr = await client.get(self._ping_url(), headers=self._headers())
                rr.raise_for_status()
                return True
        except httpx.HTTPError:
            return False

    def assistant_message(self, reply: ModelReply) -> Dict[str, Any]:
        """The model's tool-calling message, echoed back before the tool results."""
        return reply.message or {"role": "assistant", "content": reply.text}

    def tool_message(self, call: ToolCall, result: Dict[str, Any]) -> Dict[str, Any]:
        # Calls recovered from text have no native id to answer to
        return {
            "role": "assistant",
            "content": json.dumps({"tool_result": {"name": call.name, "result": result}}, default=str),
        }


class OllamaClient(ChatModelClient):
    provider = "ollama"

    def __init__(self, host: str = config.OLLAMA_HOST, model: str = config.OLLAMA_MODEL,
                 timeout: float = config.OLLAMA_TIMEOUT, **kwargs):
        super().__init__(model, timeout, **kwargs)
        self.host = host.rstrip("/")

    def _url(self) -> str:
        return f"{self.host}/api/chat"

    def _ping_url(self) -> str:
        return f"{self.host}/api/tags"

    def _payload(self, messages, tools):
        payload = {
            "model": self.model,
            "messages": messages,
            "stream": False,
            "options": {"temperature": self.temperature, "num_predict": self.max_tokens},
        }
        if tools:
            payload["tools"] = tools
        return payload

    def _parse(self, data):
        message = data.get("message") or {}
        calls = []
        for tc in message.get("tool_calls") or []:
            fn = tc["function"]
            calls.append(tool_call(fn["name"], fn.get("arguments")))
        return ModelReply(text=message.get("content") or "", tool_calls=calls, message=message)

    def tool_message(self, call, result):
        if call.from_text:
            return super().tool_message(call, result)
        return {"role": "tool", "tool_name": call.name, "content": json.dumps(result, default=str)}


class OpenAIClient(ChatModelClient):
    provider = "openai"

    def __init__(self, api_key: str | None = config.OPENAI_API_KEY, model: str = config.OPENAI_MODEL,
                 base_url: str = config.OPENAI_BASE_URL, timeout: float = config.OPENAI_TIMEOUT, **kwargs):
        super().__init__(model, timeout, **kwargs)
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")

    def _url(self) -> str:
        return f"{self.base_url}/chat/completions"

    def _ping_url(self) -> str:
        return f"{self.base_url}/models"

    def _headers(self):
        if not self.api_key:
            return {}
        return {"Authorization": f"Bearer {self.api_key}"}

    def _payload(self, messages, tools):
        payload = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if tools:
            payload["tools"] = tools
            payload["tool_choice"] = "auto"
        return payload

    def _parse(self, data):
        message = data["choices"][0]["message"]
        calls = []
        for tc in message.get("tool_calls") or []:
            fn = tc["function"]
            calls.append(tool_call(fn["name"], fn.get("arguments"), tc.get("id")))
        return ModelReply(text=message.get("content") or "", tool_calls=calls, message=message)

    def tool_message(self, call, result):
        if call.from_text or not call.id:
            return super().tool_message(call, result)
        return {"role": "tool", "tool_call_id": call.id, "content": json.dumps(result, default=str)}


def build_llm_client(provider: str = config.LLM_PROVIDER) -> ChatModelClient:
    common = {"temperature": config.LLM_TEMPERATURE, "max_tokens": config.LLM_MAX_TOKENS}
    if provider == "openai":
        return OpenAIClient(**common)
    if provider == "ollama":
        return OllamaClient(**common)
    raise ValueError(f"Unsupported LLM_PROVIDER: {provider}")

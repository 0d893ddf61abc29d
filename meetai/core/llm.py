"""
MeetAI Assistant — LLM Provider Abstraction.

Single public function `complete_with_tools()` that routes to the configured
provider and normalizes its answer into text plus tool calls.
Provider is selected at startup via the LLM_PROVIDER env var.
Supports: gemini (default), anthropic, openai, cohere.

Messages use a neutral shape: [{"role": "user" | "assistant", "content": str}].
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


@dataclass
class ToolSpec:
    """A tool the model may call. ``parameters`` is a JSON-schema object."""

    name: str
    description: str
    parameters: dict


@dataclass
class ToolCall:
    name: str
    arguments: dict = field(default_factory=dict)


@dataclass
class LLMReply:
    text: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)


# Type alias for provider implementations
_ProviderFn = Callable[[str, str, str, list[dict], list[ToolSpec], int], Awaitable[LLMReply]]


def _parse_arguments(raw: Any) -> dict:
    """Tool arguments arrive as a JSON string or a mapping depending on the SDK."""
    if raw is None or raw == "":
        return {}
    if isinstance(raw, dict):
        return raw
    try:
        parsed = json.loads(raw)
    except (TypeError, json.JSONDecodeError):
        logger.warning("Tool arguments are not valid JSON: %r", raw)
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _to_builtin(value: Any) -> Any:
    """Convert protobuf map/list wrappers (Gemini) into dicts and lists."""
    if hasattr(value, "items"):
        return {k: _to_builtin(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)) or (
        hasattr(value, "__iter__") and not isinstance(value, (str, bytes))
    ):
        return [_to_builtin(v) for v in value]
    return value


# ---------------------------------------------------------------------------
# Provider implementations
# ---------------------------------------------------------------------------


async def _complete_gemini(
    api_key: str, model: str, system: str, messages: list[dict], tools: list[ToolSpec], max_tokens: int,
) -> LLMReply:
    import google.generativeai as genai

    genai.configure(api_key=api_key)
    declarations = []
    for tool in tools:
        declaration = {"name": tool.name, "description": tool.description}
        # Gemini rejects OBJECT schemas without properties
        if tool.parameters.get("properties"):
            declaration["parameters"] = tool.parameters
        declarations.append(declaration)

    gm = genai.GenerativeModel(
        model_name=model,
        system_instruction=system,
        tools=[{"function_declarations": declarations}] if declarations else None,
    )
    contents = [
        {"role": "model" if m["role"] == "assistant" else "user", "parts": [m["content"]]}
        for m in messages
    ]
    response = await gm.generate_content_async(
        contents,
        generation_config=genai.types.GenerationConfig(max_output_tokens=max_tokens),
    )

    reply = LLMReply()
    if not response.candidates:
        return reply
    texts = []
    for part in response.candidates[0].content.parts:
        call = getattr(part, "function_call", None)
        if call is not None and call.name:
            reply.tool_calls.append(ToolCall(call.name, _to_builtin(call.args or {})))
        elif getattr(part, "text", ""):
            texts.append(part.text)
    reply.text = "".join(texts)
    return reply


async def _complete_anthropic(
    api_key: str, model: str, system: str, messages: list[dict], tools: list[ToolSpec], max_tokens: int,
) -> LLMReply:
    import anthropic

    client = anthropic.AsyncAnthropic(api_key=api_key)
    kwargs: dict[str, Any] = {}
    if tools:
        kwargs["tools"] = [
            {"name": t.name, "description": t.description, "input_schema": t.parameters}
            for t in tools
        ]
    response = await client.messages.create(
        model=model,
        max_tokens=max_tokens,
        system=system,
        messages=messages,
        **kwargs,
    )

    reply = LLMReply()
    texts = []
    for block in response.content:
        if block.type == "tool_use":
            reply.tool_calls.append(ToolCall(block.name, dict(block.input or {})))
        elif block.type == "text":
            texts.append(block.text)
    reply.text = "".join(texts)
    return reply


def _function_tools(tools: list[ToolSpec]) -> list[dict]:
    """OpenAI-style tool list (also accepted by Cohere v2)."""
    return [
        {
            "type": "function",
            "function": {
                "name": t.name,
                "description": t.description,
                "parameters": t.parameters,
            },
        }
        for t in tools
    ]


async def _complete_openai(
    api_key: str, model: str, system: str, messages: list[dict], tools: list[ToolSpec], max_tokens: int,
) -> LLMReply:
    from openai import AsyncOpenAI

    client = AsyncOpenAI(api_key=api_key)
    kwargs: dict[str, Any] = {}
    if tools:
        kwargs["tools"] = _function_tools(tools)
    response = await client.chat.completions.create(
        model=model,
        max_tokens=max_tokens,
        messages=[{"role": "system", "content": system}, *messages],
        **kwargs,
    )

    message = response.choices[0].message
    return LLMReply(
        text=message.content or "",
        tool_calls=[
            ToolCall(tc.function.name, _parse_arguments(tc.function.arguments))
            for tc in message.tool_calls or []
        ],
    )


async def _complete_cohere(
    api_key: str, model: str, system: str, messages: list[dict], tools: list[ToolSpec], max_tokens: int,
) -> LLMReply:
    import cohere

    client = cohere.AsyncClientV2(api_key=api_key)
    kwargs: dict[str, Any] = {}
    if tools:
        kwargs["tools"] = _function_tools(tools)
    response = await client.chat(
        model=model,
        max_tokens=max_tokens,
        messages=[{"role": "system", "content": system}, *messages],
        **kwargs,
    )

    message = response.message
    texts = [c.text for c in message.content or [] if getattr(c, "text", None)]
    return LLMReply(
        text="".join(texts),
        tool_calls=[
            ToolCall(tc.function.name, _parse_arguments(tc.function.arguments))
            for tc in message.tool_calls or []
        ],
    )


# ---------------------------------------------------------------------------
# Provider selection (runs once at first call)
# ---------------------------------------------------------------------------

_PROVIDERS: dict[str, tuple[_ProviderFn, str]] = {
    "gemini":    (_complete_gemini,    "gemini-2.0-flash"),
    "anthropic": (_complete_anthropic, "claude-haiku-4-5-20251001"),
    "openai":    (_complete_openai,    "gpt-4o-mini"),
    "cohere":    (_complete_cohere,    "command-a-03-2025"),
}


def _select_provider() -> tuple[_ProviderFn, str, str]:
    """Read env vars and return (provider_fn, model, api_key)."""
    from meetai.config import settings

    provider_name = settings.LLM_PROVIDER.lower()
    if provider_name not in _PROVIDERS:
        raise ValueError(
            f"Unknown LLM_PROVIDER={provider_name!r}. "
            f"Supported: {', '.join(_PROVIDERS)}"
        )

    fn, default_model = _PROVIDERS[provider_name]
    model = settings.LLM_MODEL or default_model
    api_key = settings.LLM_API_KEY

    logger.info("LLM provider: %s, model: %s", provider_name, model)
    return fn, model, api_key


# Lazy singleton, populated on first call to complete_with_tools()
_provider_fn: _ProviderFn | None = None
_model: str = ""
_api_key: str = ""


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def complete_with_tools(
    system: str,
    messages: list[dict],
    tools: list[ToolSpec] | None = None,
    max_tokens: int = 1024,
) -> LLMReply:
    """Send a conversation to the configured LLM provider.

    Returns the reply text and any tool calls the model asked for.
    Raises on API errors — callers should handle exceptions.
    """
    global _provider_fn, _model, _api_key

    if _provider_fn is None:
        _provider_fn, _model, _api_key = _select_provider()

    return await _provider_fn(_api_key, _model, system, messages, tools or [], max_tokens)

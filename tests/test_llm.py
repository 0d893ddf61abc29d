"""Tests for meetai.core.llm — provider routing and reply normalization.

Provider SDKs are never called: clients are replaced with mocks.
"""

import sys
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from meetai.core import llm
from meetai.core.llm import LLMReply, ToolCall, ToolSpec

_TOOLS = [
    ToolSpec(
        name="viewMeetings",
        description="List meetings",
        parameters={"type": "object", "properties": {"timeframe": {"type": "string"}}},
    ),
    ToolSpec(name="logoutUser", description="Log out", parameters={"type": "object", "properties": {}}),
]
_MESSAGES = [{"role": "user", "content": "show my meetings"}]


@pytest.fixture(autouse=True)
def reset_provider():
    """Each test selects the provider afresh."""
    llm._provider_fn = None
    yield
    llm._provider_fn = None


class TestParseArguments:
    def test_json_string(self):
        assert llm._parse_arguments('{"timeframe": "future"}') == {"timeframe": "future"}

    def test_dict_passthrough(self):
        assert llm._parse_arguments({"a": 1}) == {"a": 1}

    def test_empty(self):
        assert llm._parse_arguments("") == {}
        assert llm._parse_arguments(None) == {}

    def test_invalid_json(self):
        assert llm._parse_arguments("{oops") == {}

    def test_non_object_json(self):
        assert llm._parse_arguments("[1, 2]") == {}


class TestSelectProvider:
    def test_default_model_for_provider(self):
        with patch("meetai.config.settings.LLM_PROVIDER", "openai"), \
             patch("meetai.config.settings.LLM_MODEL", ""):
            fn, model, api_key = llm._select_provider()
        assert fn is llm._complete_openai
        assert model == "gpt-4o-mini"
        assert api_key == "fake-llm-key-for-tests"

    def test_model_override(self):
        with patch("meetai.config.settings.LLM_PROVIDER", "anthropic"), \
             patch("meetai.config.settings.LLM_MODEL", "claude-custom"):
            _, model, _ = llm._select_provider()
        assert model == "claude-custom"

    def test_unknown_provider(self):
        with patch("meetai.config.settings.LLM_PROVIDER", "nope"):
            with pytest.raises(ValueError, match="Unknown LLM_PROVIDER"):
                llm._select_provider()


class TestCompleteWithTools:
    @pytest.mark.asyncio
    async def test_routes_to_selected_provider(self):
        fake = AsyncMock(return_value=LLMReply(text="hi"))
        with patch.object(llm, "_select_provider", return_value=(fake, "m", "k")):
            reply = await llm.complete_with_tools("sys", _MESSAGES, _TOOLS, max_tokens=99)
        assert reply.text == "hi"
        fake.assert_awaited_once_with("k", "m", "sys", _MESSAGES, _TOOLS, 99)

    @pytest.mark.asyncio
    async def test_provider_selected_once(self):
        fake = AsyncMock(return_value=LLMReply())
        with patch.object(llm, "_select_provider", return_value=(fake, "m", "k")) as select:
            await llm.complete_with_tools("sys", _MESSAGES)
            await llm.complete_with_tools("sys", _MESSAGES)
        select.assert_called_once()

    @pytest.mark.asyncio
    async def test_errors_propagate(self):
        fake = AsyncMock(side_effect=RuntimeError("quota"))
        with patch.object(llm, "_select_provider", return_value=(fake, "m", "k")):
            with pytest.raises(RuntimeError):
                await llm.complete_with_tools("sys", _MESSAGES)


class TestOpenAI:
    @pytest.mark.asyncio
    async def test_tool_calls_are_normalized(self):
        message = SimpleNamespace(
            content=None,
            tool_calls=[
                SimpleNamespace(function=SimpleNamespace(name="viewMeetings", arguments='{"timeframe": "future"}')),
            ],
        )
        client = MagicMock()
        client.chat.completions.create = AsyncMock(
            return_value=SimpleNamespace(choices=[SimpleNamespace(message=message)]),
        )
        fake_module = SimpleNamespace(AsyncOpenAI=MagicMock(return_value=client))

        with patch.dict(sys.modules, {"openai": fake_module}):
            reply = await llm._complete_openai("k", "gpt", "sys", _MESSAGES, _TOOLS, 100)

        assert reply == LLMReply(text="", tool_calls=[ToolCall("viewMeetings", {"timeframe": "future"})])
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["messages"][0] == {"role": "system", "content": "sys"}
        assert kwargs["tools"][0]["function"]["name"] == "viewMeetings"

    @pytest.mark.asyncio
    async def test_no_tools_omits_tools_argument(self):
        message = SimpleNamespace(content="Hello!", tool_calls=None)
        client = MagicMock()
        client.chat.completions.create = AsyncMock(
            return_value=SimpleNamespace(choices=[SimpleNamespace(message=message)]),
        )
        fake_module = SimpleNamespace(AsyncOpenAI=MagicMock(return_value=client))

        with patch.dict(sys.modules, {"openai": fake_module}):
            reply = await llm._complete_openai("k", "gpt", "sys", _MESSAGES, [], 100)

        assert reply.text == "Hello!"
        assert "tools" not in client.chat.completions.create.call_args.kwargs


class TestAnthropic:
    @pytest.mark.asyncio
    async def test_text_and_tool_use_blocks(self):
        response = SimpleNamespace(content=[
            SimpleNamespace(type="text", text="Let me check. "),
            SimpleNamespace(type="tool_use", name="viewMeetings", input={"timeframe": "past"}),
        ])
        client = MagicMock()
        client.messages.create = AsyncMock(return_value=response)
        fake_module = SimpleNamespace(AsyncAnthropic=MagicMock(return_value=client))

        with patch.dict(sys.modules, {"anthropic": fake_module}):
            reply = await llm._complete_anthropic("k", "claude", "sys", _MESSAGES, _TOOLS, 100)

        assert reply.text == "Let me check. "
        assert reply.tool_calls == [ToolCall("viewMeetings", {"timeframe": "past"})]
        kwargs = client.messages.create.call_args.kwargs
        assert kwargs["system"] == "sys"
        assert kwargs["tools"][1] == {
            "name": "logoutUser",
            "description": "Log out",
            "input_schema": {"type": "object", "properties": {}},
        }


class TestCohere:
    @pytest.mark.asyncio
    async def test_text_reply(self):
        message = SimpleNamespace(content=[SimpleNamespace(text="Done.")], tool_calls=None)
        client = MagicMock()
        client.chat = AsyncMock(return_value=SimpleNamespace(message=message))
        fake_module = SimpleNamespace(AsyncClientV2=MagicMock(return_value=client))

        with patch.dict(sys.modules, {"cohere": fake_module}):
            reply = await llm._complete_cohere("k", "command", "sys", _MESSAGES, _TOOLS, 100)

        assert reply == LLMReply(text="Done.", tool_calls=[])


class TestGemini:
    @pytest.mark.asyncio
    async def test_function_call_parts(self):
        parts = [
            SimpleNamespace(function_call=SimpleNamespace(name="", args=None), text="Sure. "),
            SimpleNamespace(function_call=SimpleNamespace(name="viewMeetings", args={"timeframe": "future"}), text=""),
        ]
        response = SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=parts))])
        model = MagicMock()
        model.generate_content_async = AsyncMock(return_value=response)
        genai = MagicMock()
        genai.GenerativeModel.return_value = model
        google_pkg = SimpleNamespace(generativeai=genai)

        with patch.dict(sys.modules, {"google": google_pkg, "google.generativeai": genai}):
            reply = await llm._complete_gemini("k", "gemini", "sys", _MESSAGES, _TOOLS, 100)

        assert reply.text == "Sure. "
        assert reply.tool_calls == [ToolCall("viewMeetings", {"timeframe": "future"})]
        declarations = genai.GenerativeModel.call_args.kwargs["tools"][0]["function_declarations"]
        assert "parameters" in declarations[0]
        assert "parameters" not in declarations[1]

    @pytest.mark.asyncio
    async def test_no_candidates(self):
        model = MagicMock()
        model.generate_content_async = AsyncMock(return_value=SimpleNamespace(candidates=[]))
        genai = MagicMock()
        genai.GenerativeModel.return_value = model
        google_pkg = SimpleNamespace(generativeai=genai)

        with patch.dict(sys.modules, {"google": google_pkg, "google.generativeai": genai}):
            reply = await llm._complete_gemini("k", "gemini", "sys", _MESSAGES, [], 100)

        assert reply == LLMReply()

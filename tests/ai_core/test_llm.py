"""
Tests for the LLM client and chat model factory.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel
from langchain_core.messages import AIMessage, HumanMessage

from topicgen.ai_core.llm import LLMClient, MOCK_RESPONSES, create_chat_model, retry_options_from_settings
from topicgen.config import Settings
from topicgen.utils.retry import RetryError, RetryOptions

NO_WAIT = RetryOptions(max_retries=3, delay=0.0)


def test_mock_provider_uses_fake_model():
    llm = create_chat_model(Settings(llm_provider="mock"))

    assert isinstance(llm, FakeListChatModel)
    assert llm.responses == MOCK_RESPONSES


@patch("gen_ai_hub.proxy.core.proxy_clients.get_proxy_client")
@patch("gen_ai_hub.proxy.langchain.openai.ChatOpenAI")
def test_gen_ai_hub_provider(mock_chat_openai, mock_get_proxy_client):
    settings = Settings(llm_provider="gen-ai-hub", llm_model="gpt-4.1", temperature=0.2)

    llm = create_chat_model(settings)

    mock_get_proxy_client.assert_called_once_with("gen-ai-hub")
    mock_chat_openai.assert_called_once_with(
        proxy_model_name="gpt-4.1",
        proxy_client=mock_get_proxy_client.return_value,
        temperature=0.2,
    )
    assert llm is mock_chat_openai.return_value


def test_retry_options_from_settings():
    options = retry_options_from_settings(
        Settings(ai_max_retries=5, ai_retry_delay=2.0, ai_backoff_multiplier=2.0, ai_max_retry_delay=9.0)
    )

    assert options == RetryOptions(max_retries=5, delay=2.0, backoff_multiplier=2.0, max_delay=9.0)


@pytest.mark.asyncio
async def test_generate_content_returns_stripped_text():
    client = LLMClient(llm=FakeListChatModel(responses=["  answer \n"]), retry_options=NO_WAIT)

    assert await client.generate_content("question") == "answer"


@pytest.mark.asyncio
async def test_generate_content_sends_single_human_message():
    llm = MagicMock()
    llm.ainvoke = AsyncMock(return_value=AIMessage(content="ok"))
    client = LLMClient(llm=llm, retry_options=NO_WAIT)

    await client.generate_content("the prompt")

    (messages,), _ = llm.ainvoke.call_args
    assert messages == [HumanMessage(content="the prompt")]


@pytest.mark.asyncio
async def test_generate_content_joins_content_parts():
    llm = MagicMock()
    llm.ainvoke = AsyncMock(
        return_value=AIMessage(content=[{"type": "text", "text": "part one, "}, "part two"])
    )
    client = LLMClient(llm=llm, retry_options=NO_WAIT)

    assert await client.generate_content("p") == "part one, part two"


@pytest.mark.asyncio
async def test_generate_content_retries_transient_failures():
    llm = MagicMock()
    llm.ainvoke = AsyncMock(side_effect=[RuntimeError("rate limited"), AIMessage(content="ok")])
    client = LLMClient(llm=llm, retry_options=NO_WAIT)

    assert await client.generate_content("p") == "ok"
    assert llm.ainvoke.await_count == 2


@pytest.mark.asyncio
async def test_generate_content_gives_up():
    llm = MagicMock()
    llm.ainvoke = AsyncMock(side_effect=RuntimeError("down"))
    client = LLMClient(llm=llm, retry_options=NO_WAIT)

    with pytest.raises(RetryError):
        await client.generate_content("p")
    assert llm.ainvoke.await_count == 3

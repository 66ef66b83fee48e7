"""
LLM Client

Builds the chat model from settings and wraps calls in the retry policy.
"""

import logging
from typing import Optional

from langchain_core.language_models import BaseChatModel
from langchain_core.language_models.fake_chat_models import FakeListChatModel
from langchain_core.messages import HumanMessage

from topicgen.config import Settings, get_settings
from topicgen.utils.retry import RetryOptions, with_retry

logger = logging.getLogger(__name__)

# Canned responses for offline runs: analysis, topic JSON, then document body
MOCK_RESPONSES = [
    "Mock analysis: all messages discuss a single mock topic.",
    '{"topics": [{"title": "Mock Topic", '
    '"description": "This is a mock topic generated for testing", '
    '"message_ids": [1, 2, 3]}]}',
    "# Mock Topic\n\nThis is a mock document generated for testing.",
]


def create_chat_model(settings: Settings) -> BaseChatModel:
    """
    Create the chat model for the configured provider.

    "gen-ai-hub" uses the SAP generative AI hub proxy; "mock" returns a
    langchain fake model cycling through MOCK_RESPONSES.
    """
    if settings.llm_provider == "mock":
        logger.info("Using mock chat model")
        return FakeListChatModel(responses=MOCK_RESPONSES)

    from gen_ai_hub.proxy.langchain.openai import ChatOpenAI
    from gen_ai_hub.proxy.core.proxy_clients import get_proxy_client

    proxy_client = get_proxy_client("gen-ai-hub")
    llm = ChatOpenAI(
        proxy_model_name=settings.llm_model,
        proxy_client=proxy_client,
        temperature=settings.temperature,
    )
    logger.info(f"Using gen-ai-hub chat model: {settings.llm_model}")
    return llm


def retry_options_from_settings(settings: Settings) -> RetryOptions:
    return RetryOptions(
        max_retries=settings.ai_max_retries,
        delay=settings.ai_retry_delay,
        backoff_multiplier=settings.ai_backoff_multiplier,
        max_delay=settings.ai_max_retry_delay,
    )


class LLMClient:
    """Text-in, text-out access to the chat model with bounded retries."""

    def __init__(
        self,
        llm: Optional[BaseChatModel] = None,
        retry_options: Optional[RetryOptions] = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        self.llm = llm if llm is not None else create_chat_model(settings)
        self.retry_options = retry_options or retry_options_from_settings(settings)

    async def generate_content(self, prompt: str) -> str:
        """
        Send a single user prompt and return the response text.

        Raises:
            RetryError: If every attempt fails
        """

        async def _invoke() -> str:
            response = await self.llm.ainvoke([HumanMessage(content=prompt)])
            content = response.content
            if isinstance(content, list):
                content = "".join(
                    part if isinstance(part, str) else part.get("text", "") for part in content
                )
            return content.strip()

        return await with_retry(_invoke, self.retry_options)

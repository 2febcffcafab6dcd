from typing import Any, Callable, List, Optional

from langchain_anthropic import ChatAnthropic
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from loguru import logger

from threadvault.assistants.models.abstracts import (
    AbstractLLMProvider,
    CompletionParams,
    CompletionResponse,
    ModelsEnum,
)
from threadvault.core.errors import ProviderConfigurationError
from threadvault.core.models import TokenUsage


class AnthropicModelsEnum(ModelsEnum):
    """
    An enumeration class for Anthropic language models.
    """

    # Claude Haiku models
    claude_35_haiku = 0, "claude-3-5-haiku-20241022"

    # Claude Sonnet models
    claude_37_sonnet = 1, "claude-3-7-sonnet-20250219"
    claude_sonnet_4 = 2, "claude-sonnet-4-20250514"

    # Claude Opus models
    claude_opus_4 = 3, "claude-opus-4-20250514"
    claude_opus_41 = 4, "claude-opus-4-1-20250805"


def _text_content(message: AIMessage) -> str:
    """Join the text blocks of a chat model reply."""
    if isinstance(message.content, str):
        return message.content
    texts = []
    for block in message.content:
        if isinstance(block, str):
            texts.append(block)
        elif block.get("type") == "text":
            texts.append(block.get("text", ""))
    return "\n".join(texts)


class AnthropicProvider(AbstractLLMProvider):
    """
    Completion provider backed by Anthropic chat models through LangChain.
    """

    name = "anthropic"

    def __init__(
        self,
        api_key: str,
        chat_model_factory: Optional[Callable[..., Any]] = None,
    ):
        """
        Initialize the provider.

        Args:
            api_key (str): Anthropic API key.
            chat_model_factory (Callable): Builds the chat model for a request
                (default: ``ChatAnthropic``).
        """
        if not api_key:
            raise ProviderConfigurationError(
                "ANTHROPIC_API_KEY environment variable is required"
            )
        self._api_key = api_key
        self._chat_model_factory = chat_model_factory or ChatAnthropic

    def _get_chat_model(self, params: CompletionParams):
        """
        Get the chat model configured for one request.

        Returns:
            ChatAnthropic: The chat model.
        """
        return self._chat_model_factory(
            model=params.model,
            max_tokens=params.max_tokens,
            temperature=params.temperature,
            api_key=self._api_key,
            max_retries=0,
        )

    @staticmethod
    def _to_messages(params: CompletionParams) -> List[BaseMessage]:
        messages: List[BaseMessage] = []
        if params.system:
            messages.append(SystemMessage(content=params.system))
        for message in params.messages:
            if message.role == "user":
                messages.append(HumanMessage(content=message.content))
            else:
                messages.append(AIMessage(content=message.content))
        return messages

    async def complete(self, params: CompletionParams) -> CompletionResponse:
        chat_model = self._get_chat_model(params)
        logger.debug(
            f"Requesting completion from {params.model} "
            f"({len(params.messages)} messages, max_tokens={params.max_tokens})"
        )
        reply = await chat_model.ainvoke(self._to_messages(params))

        usage = reply.usage_metadata or {}
        metadata = reply.response_metadata or {}
        return CompletionResponse(
            content=_text_content(reply),
            usage=TokenUsage(
                input_tokens=usage.get("input_tokens", 0),
                output_tokens=usage.get("output_tokens", 0),
            ),
            stop_reason=metadata.get("stop_reason") or "unknown",
        )

from meetinglog.services.llm.base import (
    BaseLLMProvider,
    LLMProvider,
    LLMProviderError,
    SummaryContext,
)
from meetinglog.services.llm.ollama_provider import OllamaProvider
from meetinglog.services.llm.openai_provider import OpenAIProvider
from meetinglog.services.llm.anthropic_provider import AnthropicProvider
from meetinglog.services.llm.gemini_provider import GeminiProvider

__all__ = [
    "BaseLLMProvider",
    "LLMProvider",
    "LLMProviderError",
    "SummaryContext",
    "OllamaProvider",
    "OpenAIProvider",
    "AnthropicProvider",
    "GeminiProvider",
]

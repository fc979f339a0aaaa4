from __future__ import annotations

import json
import logging
import math
import os
from dataclasses import dataclass, field
from typing import Callable, Generic, Optional, TypeVar

from pydantic import ValidationError as PydanticValidationError

from meetinglog.errors import ParsingError
from meetinglog.models import ExtractedActionItem, SuggestedTag
from meetinglog.services.llm import (
    AnthropicProvider,
    GeminiProvider,
    LLMProvider,
    LLMProviderError,
    OllamaProvider,
    OpenAIProvider,
    SummaryContext,
)

DEFAULT_TIMEOUT_SECONDS = 120
MAX_SUGGESTED_TAGS = 5

T = TypeVar("T")


@dataclass
class StepResult(Generic[T]):
    """Outcome of a best-effort enrichment step.

    ``ok`` is False only when the generation service failed; an empty
    ``items`` list with ``ok`` True means there was legitimately nothing.
    """

    step: str
    ok: bool
    items: list[T] = field(default_factory=list)
    error: Optional[str] = None


def best_effort(step: str, fn: Callable[[], list[T]], logger: logging.Logger) -> StepResult[T]:
    """Run ``fn`` and degrade to an empty, failed StepResult if it raises.

    Provider and parsing errors are expected and logged briefly; anything
    else is logged with its traceback. Neither reaches the caller.
    """
    try:
        items = fn()
    except (LLMProviderError, ParsingError) as exc:
        logger.warning("Best-effort step %s failed, continuing without it: %s", step, exc)
        return StepResult(step=step, ok=False, error=str(exc))
    except Exception as exc:
        logger.exception("Best-effort step %s failed unexpectedly, continuing without it", step)
        return StepResult(step=step, ok=False, error=f"{type(exc).__name__}: {exc}")
    return StepResult(step=step, ok=True, items=list(items))


class GenerationService:
    """Text generation using the user's selected model.

    Reads model selection from config.json on every call:
    - models.selected_model: format "provider:model_id" (e.g., "openai:gpt-4o")
    - providers.<provider>: contains api_key and base_url for each provider
    - generation.timeout_seconds: per-request timeout
    - guidelines.{summary,focus,action_items}: appended to prompts

    A fixed ``provider`` may be injected instead, which bypasses config.
    """

    def __init__(self, config_path: str, provider: Optional[LLMProvider] = None) -> None:
        self._config_path = config_path
        self._provider = provider
        self._logger = logging.getLogger("meetinglog.generation")

    def _read_config(self) -> dict:
        """Read config from file, returning empty dict if not found."""
        if not os.path.exists(self._config_path):
            return {}
        with open(self._config_path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _get_selected_model(self) -> tuple[str, str]:
        """Return (provider_name, model_id) from config.

        Raises:
            LLMProviderError if no model is selected
        """
        selected = self._read_config().get("models", {}).get("selected_model", "")
        if not selected:
            raise LLMProviderError(
                "No AI model selected. Set models.selected_model in config.json."
            )
        if ":" not in selected:
            raise LLMProviderError(
                f"Invalid model format '{selected}'. Expected 'provider:model_id'."
            )
        provider, model_id = selected.split(":", 1)
        return provider.lower(), model_id

    def _get_timeout(self) -> float:
        """Per-request timeout in seconds; fractional values are kept as given."""
        value = self._read_config().get("generation", {}).get("timeout_seconds")
        if isinstance(value, bool):
            return DEFAULT_TIMEOUT_SECONDS
        try:
            timeout = float(value)
        except (TypeError, ValueError):
            return DEFAULT_TIMEOUT_SECONDS
        if not math.isfinite(timeout) or timeout <= 0:
            self._logger.warning("Ignoring generation.timeout_seconds=%r", value)
            return DEFAULT_TIMEOUT_SECONDS
        return timeout

    def get_guidelines(self) -> dict:
        guidelines = self._read_config().get("guidelines", {})
        return guidelines if isinstance(guidelines, dict) else {}

    def _get_provider(self) -> LLMProvider:
        if self._provider is not None:
            return self._provider

        provider_name, model_id = self._get_selected_model()
        provider_config = self._read_config().get("providers", {}).get(provider_name, {})
        api_key = provider_config.get("api_key", "")
        base_url = provider_config.get("base_url", "")
        timeout = self._get_timeout()

        if provider_name == "ollama":
            return OllamaProvider(
                base_url=base_url or "http://127.0.0.1:11434", model=model_id, timeout=timeout
            )

        if provider_name == "lmstudio":
            return OpenAIProvider(
                api_key="lmstudio",
                model=model_id,
                base_url=base_url or "http://127.0.0.1:1234",
                timeout=timeout,
            )

        if not api_key:
            raise LLMProviderError(f"Missing API key for provider '{provider_name}'.")

        if provider_name == "openai":
            return OpenAIProvider(
                api_key=api_key,
                model=model_id,
                base_url=base_url or "https://api.openai.com",
                timeout=timeout,
            )
        if provider_name == "anthropic":
            return AnthropicProvider(
                api_key=api_key,
                model=model_id,
                base_url=base_url or "https://api.anthropic.com",
                timeout=timeout,
            )
        if provider_name == "gemini":
            return GeminiProvider(api_key=api_key, model=model_id, timeout=timeout)

        raise LLMProviderError(f"Unknown provider: {provider_name}")

    def summarize(self, context: SummaryContext) -> str:
        if not context.content.strip():
            raise LLMProviderError("Content is empty")
        provider = self._get_provider()
        if not context.guidelines:
            context.guidelines = self.get_guidelines()
        self._logger.info("Summarization using provider=%s", provider.__class__.__name__)
        narrative = provider.summarize(context)
        if not narrative or not narrative.strip():
            raise ParsingError("Summary response was empty")
        return narrative.strip()

    def extract_action_items(self, content: str) -> list[ExtractedActionItem]:
        provider = self._get_provider()
        self._logger.info("Action item extraction using provider=%s", provider.__class__.__name__)
        raw_items = provider.extract_action_items(content, self.get_guidelines())
        if not isinstance(raw_items, list):
            raise ParsingError(f"Expected a list of action items, got {type(raw_items).__name__}")
        items: list[ExtractedActionItem] = []
        for raw in raw_items:
            if not isinstance(raw, dict):
                self._logger.debug("Skipping non-object action item: %r", raw)
                continue
            if "dueDate" in raw and "due_date" not in raw:
                raw = {**raw, "due_date": raw["dueDate"]}
            try:
                items.append(ExtractedActionItem.model_validate(raw))
            except PydanticValidationError as exc:
                self._logger.debug("Skipping malformed action item %r: %s", raw, exc)
        return items

    def suggest_tags(self, content: str, existing_tags: list[str]) -> list[SuggestedTag]:
        provider = self._get_provider()
        self._logger.info("Tag suggestion using provider=%s", provider.__class__.__name__)
        raw_tags = provider.suggest_tags(content, existing_tags)
        if not isinstance(raw_tags, list):
            raise ParsingError(f"Expected a list of tags, got {type(raw_tags).__name__}")
        tags: list[SuggestedTag] = []
        seen: set[str] = set()
        for raw in raw_tags:
            if isinstance(raw, str):
                raw = {"name": raw}
            if not isinstance(raw, dict):
                continue
            try:
                tag = SuggestedTag.model_validate(raw)
            except PydanticValidationError as exc:
                self._logger.debug("Skipping malformed tag %r: %s", raw, exc)
                continue
            if tag.name in seen:
                continue
            seen.add(tag.name)
            tags.append(tag)
            if len(tags) >= MAX_SUGGESTED_TAGS:
                break
        return tags

    def answer_question(self, question: str, corpus: str) -> str:
        if not question.strip():
            raise LLMProviderError("Question is empty")
        provider = self._get_provider()
        self._logger.info("Question answering using provider=%s", provider.__class__.__name__)
        return provider.answer_question(question, corpus)

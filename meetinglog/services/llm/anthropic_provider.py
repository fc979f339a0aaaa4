from __future__ import annotations

import requests

from meetinglog.services.llm.base import BaseLLMProvider, LLMProviderError


class AnthropicProvider(BaseLLMProvider):
    """LLM provider for the Anthropic Messages API."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str = "https://api.anthropic.com",
        timeout: float = 120,
        max_tokens: int = 4096,
    ) -> None:
        super().__init__(logger_name="meetinglog.llm.anthropic", timeout=timeout)
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._max_tokens = max_tokens

    def _call_api(
        self,
        prompt: str,
        temperature: float = 0.2,
        timeout: float = 120,
        system_prompt: str | None = None,
        json_mode: bool = False,
    ) -> str:
        # No native JSON mode; the prompts already ask for JSON only.
        request_body = {
            "model": self._model,
            "max_tokens": self._max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_prompt:
            request_body["system"] = system_prompt

        try:
            response = requests.post(
                f"{self._base_url}/v1/messages",
                headers={
                    "x-api-key": self._api_key,
                    "anthropic-version": "2023-06-01",
                    "content-type": "application/json",
                },
                json=request_body,
                timeout=timeout,
            )
        except requests.Timeout as exc:
            raise LLMProviderError(f"Anthropic request timed out after {timeout}s") from exc
        except requests.RequestException as exc:
            raise LLMProviderError("Failed to reach Anthropic") from exc

        if response.status_code != 200:
            self._logger.error("Anthropic error: %s - %s", response.status_code, response.text[:500])
            raise LLMProviderError(f"Anthropic error: {response.status_code}")

        try:
            data = response.json()
        except ValueError as exc:
            raise LLMProviderError("Anthropic returned a non-JSON body") from exc
        content_blocks = data.get("content") if isinstance(data, dict) else None
        if not isinstance(content_blocks, list) or not content_blocks:
            raise LLMProviderError("Anthropic response missing content")
        text = "".join(
            str(block.get("text") or "")
            for block in content_blocks
            if isinstance(block, dict) and block.get("type", "text") == "text"
        )
        return text.strip()

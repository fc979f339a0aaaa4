from __future__ import annotations

import requests

from meetinglog.services.llm.base import BaseLLMProvider, LLMProviderError


class OllamaProvider(BaseLLMProvider):
    """LLM provider for local Ollama models."""

    def __init__(self, base_url: str, model: str, timeout: float = 120) -> None:
        super().__init__(logger_name="meetinglog.llm.ollama", timeout=timeout)
        self._base_url = base_url.rstrip("/")
        self._model = model

    def _call_api(
        self,
        prompt: str,
        temperature: float = 0.2,
        timeout: float = 120,
        system_prompt: str | None = None,
        json_mode: bool = False,
    ) -> str:
        """Make a call to the Ollama generate endpoint and return the response text."""
        request_body = {
            "model": self._model,
            "prompt": prompt,
            "stream": False,
            "options": {"temperature": temperature},
        }
        if system_prompt:
            request_body["system"] = system_prompt
        if json_mode:
            request_body["format"] = "json"

        try:
            response = requests.post(
                f"{self._base_url}/api/generate",
                json=request_body,
                timeout=timeout,
            )
        except requests.Timeout as exc:
            raise LLMProviderError(f"Ollama request timed out after {timeout}s") from exc
        except requests.RequestException as exc:
            raise LLMProviderError("Failed to reach Ollama") from exc

        if response.status_code != 200:
            raise LLMProviderError(f"Ollama error: {response.status_code}")

        try:
            data = response.json()
        except ValueError as exc:
            raise LLMProviderError("Ollama returned a non-JSON body") from exc
        if not isinstance(data, dict):
            raise LLMProviderError("Ollama response is not an object")
        return str(data.get("response") or "").strip()

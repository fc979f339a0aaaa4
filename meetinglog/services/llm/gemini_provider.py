"""Gemini LLM provider using Google's Generative Language API."""
from __future__ import annotations

import requests

from meetinglog.services.llm.base import BaseLLMProvider, LLMProviderError


class GeminiProvider(BaseLLMProvider):
    """LLM provider for Google Gemini models."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str = "https://generativelanguage.googleapis.com",
        timeout: float = 120,
    ) -> None:
        super().__init__(logger_name="meetinglog.llm.gemini", timeout=timeout)
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")

    def _call_api(
        self,
        prompt: str,
        temperature: float = 0.2,
        timeout: float = 120,
        system_prompt: str | None = None,
        json_mode: bool = False,
    ) -> str:
        model_name = self._model
        if not model_name.startswith("models/"):
            model_name = f"models/{model_name}"

        generation_config = {"temperature": temperature}
        if json_mode:
            generation_config["responseMimeType"] = "application/json"
        request_body = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": generation_config,
        }
        if system_prompt:
            request_body["systemInstruction"] = {"parts": [{"text": system_prompt}]}

        try:
            response = requests.post(
                f"{self._base_url}/v1beta/{model_name}:generateContent",
                params={"key": self._api_key},
                headers={"Content-Type": "application/json"},
                json=request_body,
                timeout=timeout,
            )
        except requests.Timeout as exc:
            raise LLMProviderError(f"Gemini request timed out after {timeout}s") from exc
        except requests.RequestException as exc:
            raise LLMProviderError("Failed to reach Gemini API") from exc

        if response.status_code != 200:
            self._logger.error("Gemini error: %s - %s", response.status_code, response.text[:500])
            raise LLMProviderError(f"Gemini error: {response.status_code}")

        try:
            data = response.json()
        except ValueError as exc:
            raise LLMProviderError("Gemini returned a non-JSON body") from exc
        candidates = data.get("candidates") if isinstance(data, dict) else None
        if not isinstance(candidates, list) or not candidates:
            raise LLMProviderError("Gemini response missing candidates")

        content = candidates[0].get("content") if isinstance(candidates[0], dict) else None
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list) or not parts:
            raise LLMProviderError("Gemini response missing parts")
        return "".join(
            str(part.get("text") or "") for part in parts if isinstance(part, dict)
        ).strip()

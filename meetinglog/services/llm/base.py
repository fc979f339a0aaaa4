from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

from meetinglog.errors import ParsingError


class LLMProviderError(RuntimeError):
    pass


@dataclass
class SummaryContext:
    title: str
    date: str
    content: str
    participants: list[str] = field(default_factory=list)
    template: Optional[str] = None
    guidelines: dict = field(default_factory=dict)


class LLMProvider(ABC):
    @abstractmethod
    def summarize(self, context: SummaryContext) -> str:
        """Return the markdown narrative with the five numbered sections."""
        raise NotImplementedError

    @abstractmethod
    def extract_action_items(self, content: str, guidelines: Optional[dict] = None) -> list[dict]:
        raise NotImplementedError

    @abstractmethod
    def suggest_tags(self, content: str, existing_tags: list[str]) -> list[dict]:
        raise NotImplementedError

    @abstractmethod
    def answer_question(self, question: str, corpus: str) -> str:
        raise NotImplementedError


class BaseLLMProvider(LLMProvider):
    """Base implementation with shared prompts, JSON parsing, and response handling.

    Subclasses only need to implement _call_api() for their specific API client.
    """

    PROMPTS = {
        "summarize_system": (
            "You are an expert meeting minutes writer. You turn raw meeting notes "
            "into structured, readable minutes and follow the configured guidelines."
        ),
        "summarize": (
            "Organize the following meeting into structured markdown.\n\n"
            "Title: {title}\n"
            "Date: {date}\n"
            "Participants: {participants}\n\n"
            "Content:\n{content}\n\n"
            "{template}"
            "Use exactly these headings, in this order:\n"
            "## 1. Meeting Overview\n"
            "(purpose of the meeting and its main content)\n"
            "## 2. Key Discussion Points\n"
            "(bullet points)\n"
            "## 3. Decisions\n"
            "(concrete decisions made)\n"
            "## 4. Action Items\n"
            "(include the owner, formatted as \"- **Owner:** [name]: [action item]\")\n"
            "## 5. Next Meeting Agenda\n"
            "(if any)\n\n"
            "Be professional and clear, and keep every important detail of the original."
            "{guidelines}"
        ),
        "extract_action_items_system": (
            "You extract action items from meeting notes. Return only valid JSON."
        ),
        "extract_action_items": (
            "Extract only the action items from the following meeting content.\n\n"
            "Meeting content:\n{content}\n\n"
            "Return a JSON object of the form:\n"
            "{{\"action_items\": [{{\"description\": \"what has to be done\", "
            "\"assignee\": \"owner name or null\", \"priority\": \"high|medium|low\", "
            "\"due_date\": \"YYYY-MM-DD or null\"}}]}}\n\n"
            "If there are no action items return {{\"action_items\": []}}."
            "{guidelines}"
        ),
        "suggest_tags_system": (
            "You classify and tag documents. Return only valid JSON."
        ),
        "suggest_tags": (
            "Analyze the following meeting content and suggest suitable tags.\n\n"
            "Meeting content:\n{content}\n\n"
            "{existing}"
            "Return a JSON object of the form:\n"
            "{{\"tags\": [{{\"name\": \"tag name\", \"confidence\": 0.95}}]}}\n"
            "where confidence is between 0 and 1.\n\n"
            "Suggest at most {max_tags} tags. Prefer existing tags and only propose "
            "new ones when needed."
        ),
        "answer_question_system": (
            "You search and analyze stored meeting minutes and answer questions "
            "about them accurately and in detail."
        ),
        "answer_question": (
            "These are the stored meeting minutes:\n\n{corpus}\n\n"
            "Question: {question}\n\n"
            "Answer the question using the minutes above. Mention the date and title "
            "of the relevant meetings and quote the specific content. If nothing "
            "relevant is found, say so plainly."
        ),
    }

    MAX_TAGS = 5

    def __init__(self, logger_name: str = "meetinglog.llm", timeout: float = 120) -> None:
        self._logger = logging.getLogger(logger_name)
        self._timeout = timeout

    @abstractmethod
    def _call_api(
        self,
        prompt: str,
        temperature: float = 0.2,
        timeout: float = 120,
        system_prompt: str | None = None,
        json_mode: bool = False,
    ) -> str:
        """Make an API call and return the raw response text.

        Args:
            prompt: The user prompt to send
            temperature: Sampling temperature (0.0-1.0)
            timeout: Request timeout in seconds
            system_prompt: Optional system prompt
            json_mode: Request JSON-formatted response if supported

        Returns:
            The response text content
        """
        raise NotImplementedError

    @staticmethod
    def _strip_markdown_code_blocks(text: str) -> str:
        """Remove markdown code block wrappers from text."""
        text = text.strip()
        if not text.startswith("```"):
            return text

        lines = text.split("\n")
        json_lines = []
        in_block = False
        for line in lines:
            if line.startswith("```"):
                in_block = not in_block
                continue
            json_lines.append(line)
        return "\n".join(json_lines).strip()

    @staticmethod
    def _unwrap_json_list(parsed: dict | list, keys: tuple[str, ...]) -> list:
        """Extract a list from a JSON response that may be wrapped in a dict.

        JSON modes usually return {"key": [...]} instead of a raw array.

        Raises:
            ParsingError: If no list can be found
        """
        if isinstance(parsed, list):
            return parsed

        if isinstance(parsed, dict):
            for key in keys:
                if key in parsed:
                    value = parsed[key]
                    if value is None:
                        return []
                    if isinstance(value, list):
                        return value
                    raise ParsingError(
                        f"Expected list under '{key}', got {type(value).__name__}"
                    )

            if len(parsed) == 1:
                value = list(parsed.values())[0]
                if isinstance(value, list):
                    return value

            raise ParsingError(
                f"Unable to extract list from JSON. Got dict with keys: {list(parsed.keys())}"
            )

        raise ParsingError(f"Expected list or dict, got {type(parsed).__name__}")

    def _parse_json_list(self, content: str, keys: tuple[str, ...]) -> list:
        text = self._strip_markdown_code_blocks(content)
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError as exc:
            self._logger.warning("Non-JSON response: %s", text[:300])
            raise ParsingError(f"Non-JSON response: {text[:200]}") from exc
        return self._unwrap_json_list(parsed, keys)

    @staticmethod
    def _guidelines_block(guidelines: Optional[dict], *keys: str) -> str:
        if not guidelines:
            return ""
        labels = {
            "summary": "Summary guidelines",
            "focus": "Focus",
            "action_items": "Action item guidelines",
        }
        parts = []
        for key in keys:
            value = str(guidelines.get(key) or "").strip()
            if value:
                parts.append(f"[{labels.get(key, key)}]\n{value}")
        if not parts:
            return ""
        return "\n\n=== Guidelines ===\n" + "\n\n".join(parts)

    def summarize(self, context: SummaryContext) -> str:
        template = ""
        if context.template:
            template = f"Use the following template as a reference:\n{context.template}\n\n"
        prompt = self.PROMPTS["summarize"].format(
            title=context.title,
            date=context.date,
            participants=", ".join(context.participants) or "not recorded",
            content=context.content,
            template=template,
            guidelines=self._guidelines_block(context.guidelines, "summary", "focus"),
        )
        content = self._call_api(
            prompt,
            temperature=0.7,
            timeout=self._timeout,
            system_prompt=self.PROMPTS["summarize_system"],
        )
        content = self._strip_markdown_code_blocks(content)
        if not content:
            raise LLMProviderError("Empty summary response")
        return content

    def extract_action_items(self, content: str, guidelines: Optional[dict] = None) -> list[dict]:
        prompt = self.PROMPTS["extract_action_items"].format(
            content=content,
            guidelines=self._guidelines_block(guidelines, "action_items"),
        )
        response = self._call_api(
            prompt,
            temperature=0.3,
            timeout=self._timeout,
            system_prompt=self.PROMPTS["extract_action_items_system"],
            json_mode=True,
        )
        return self._parse_json_list(response, ("action_items", "actionItems", "items"))

    def suggest_tags(self, content: str, existing_tags: list[str]) -> list[dict]:
        existing = ""
        if existing_tags:
            existing = f"Existing tags: {', '.join(existing_tags)}\n\n"
        prompt = self.PROMPTS["suggest_tags"].format(
            content=content, existing=existing, max_tags=self.MAX_TAGS
        )
        response = self._call_api(
            prompt,
            temperature=0.4,
            timeout=self._timeout,
            system_prompt=self.PROMPTS["suggest_tags_system"],
            json_mode=True,
        )
        return self._parse_json_list(response, ("tags", "suggestions"))

    def answer_question(self, question: str, corpus: str) -> str:
        prompt = self.PROMPTS["answer_question"].format(corpus=corpus, question=question)
        content = self._call_api(
            prompt,
            temperature=0.5,
            timeout=self._timeout,
            system_prompt=self.PROMPTS["answer_question_system"],
        )
        return content.strip()

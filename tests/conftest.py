from datetime import date
from typing import Optional

import pytest

from meetinglog.services.action_items import ActionItemService
from meetinglog.services.entity_resolver import EntityResolver
from meetinglog.services.generation import GenerationService
from meetinglog.services.llm import LLMProvider, SummaryContext
from meetinglog.services.meeting_service import MeetingService
from meetinglog.services.search_service import SearchService
from meetinglog.services.tag_service import TagService
from meetinglog.services.template_service import TemplateService
from meetinglog.services.version_store import VersionStore
from meetinglog.store import Database

NARRATIVE = """## 1. Meeting Overview
Quarterly budget planning for the platform team.

## 2. Key Discussion Points
- Hosting costs went up
- Hiring plan for Q3

## 3. Decisions
- Approve the revised budget

## 4. Action Items
- **Owner:** Kim: Prepare budget

## 5. Next Meeting Agenda
- Review hiring pipeline
"""

TODAY = date(2024, 6, 1)


class FakeProvider(LLMProvider):
    """Scripted provider. Set ``failures[method]`` to an exception to make a call raise."""

    def __init__(self) -> None:
        self.narrative = NARRATIVE
        self.action_items: list = [
            {"description": "Prepare budget", "assignee": "Kim", "priority": "high", "due_date": "2024-06-10"}
        ]
        self.tags: list = [{"name": "budget", "confidence": 0.9}, {"name": "planning", "confidence": 0.7}]
        self.answer = "The budget was approved in the planning meeting."
        self.failures: dict[str, Exception] = {}
        self.calls: list[str] = []
        self.last_context: Optional[SummaryContext] = None

    def _record(self, name: str) -> None:
        self.calls.append(name)
        if name in self.failures:
            raise self.failures[name]

    def summarize(self, context: SummaryContext) -> str:
        self.last_context = context
        self._record("summarize")
        return self.narrative

    def extract_action_items(self, content: str, guidelines: Optional[dict] = None) -> list[dict]:
        self._record("extract_action_items")
        return self.action_items

    def suggest_tags(self, content: str, existing_tags: list[str]) -> list[dict]:
        self._record("suggest_tags")
        return self.tags

    def answer_question(self, question: str, corpus: str) -> str:
        self._record("answer_question")
        return self.answer


@pytest.fixture
def db(tmp_path):
    database = Database(f"sqlite:///{tmp_path / 'meetinglog.sqlite3'}")
    database.open()
    yield database
    database.close()


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def generation(tmp_path, provider):
    return GenerationService(str(tmp_path / "config.json"), provider=provider)


@pytest.fixture
def resolver(db):
    return EntityResolver(db)


@pytest.fixture
def versions(db):
    return VersionStore(db)


@pytest.fixture
def templates(db):
    return TemplateService(db)


@pytest.fixture
def tag_service(db, generation):
    return TagService(db, generation)


@pytest.fixture
def meeting_service(db, generation, resolver, versions, templates, tag_service):
    return MeetingService(db, generation, resolver, versions, templates, tag_service)


@pytest.fixture
def action_item_service(db, resolver):
    return ActionItemService(db, resolver, today=lambda: TODAY)


@pytest.fixture
def search_service(db, generation):
    return SearchService(db, generation)

from datetime import date

import pytest

from meetinglog.errors import GenerationError, NotFoundError, ValidationError
from meetinglog.models import AdvancedSearchFilters, MeetingCreate, SavedSearchCreate
from meetinglog.services.llm import LLMProviderError


@pytest.fixture
def seeded(meeting_service):
    meeting_service.create_meeting(
        MeetingCreate(title="Budget review", date=date(2024, 5, 1), content="We discussed hosting costs.")
    )
    meeting_service.create_meeting(
        MeetingCreate(title="Design sync", date=date(2024, 5, 8), content="Button colours.")
    )


def test_search_returns_answer_and_related(seeded, provider, search_service):
    result = search_service.search("Budget review outcome?")

    assert result["answer"] == provider.answer
    titles = [m["title"] for m in result["related_meetings"]]
    assert titles[0] == "Budget review"


def test_title_hits_rank_first(seeded, search_service):
    # both summaries mention budget; only one title does
    related = search_service.search("budget")["related_meetings"]
    assert [m["title"] for m in related] == ["Budget review", "Design sync"]
    assert related[0]["score"] > related[1]["score"]


def test_empty_question_rejected(search_service):
    with pytest.raises(ValidationError):
        search_service.search("   ")


def test_provider_failure_is_generation_error(seeded, provider, search_service):
    provider.failures["answer_question"] = LLMProviderError("Failed to reach Ollama")
    with pytest.raises(GenerationError):
        search_service.search("budget")


def test_advanced_search_matches_text_without_generation(seeded, provider, search_service):
    provider.calls.clear()

    # both summaries share the generated narrative; only one raw text mentions colours
    results = search_service.advanced_search("colours")

    assert [m["title"] for m in results] == ["Design sync"]
    assert provider.calls == []


def test_advanced_search_filters(meeting_service, search_service):
    meeting_service.create_meeting(
        MeetingCreate(title="Old sync", date=date(2024, 1, 5), content="notes", participants=["Lee"])
    )
    recent = meeting_service.create_meeting(
        MeetingCreate(title="New sync", date=date(2024, 5, 5), content="notes", participants=["Park Ji"])
    )
    budget_tag = next(t["id"] for t in recent["tags"] if t["name"] == "budget")

    everything = search_service.advanced_search("")
    assert [m["title"] for m in everything] == ["New sync", "Old sync"]

    ranged = search_service.advanced_search("", AdvancedSearchFilters(date_from=date(2024, 3, 1)))
    assert [m["title"] for m in ranged] == ["New sync"]

    by_person = search_service.advanced_search("sync", AdvancedSearchFilters(participants="park"))
    assert [m["title"] for m in by_person] == ["New sync"]
    assert by_person[0]["participants"] == ["Park Ji"]

    by_tag = search_service.advanced_search(
        "", AdvancedSearchFilters(tag_id=budget_tag, date_to=date(2024, 2, 1))
    )
    assert [m["title"] for m in by_tag] == ["Old sync"]


def test_saved_searches_lifecycle(seeded, search_service):
    first = search_service.save_search(
        SavedSearchCreate(
            name="Colours", query="colours", filters=AdvancedSearchFilters(date_from=date(2024, 4, 1))
        )
    )
    second = search_service.save_search(SavedSearchCreate(name="Everything"))

    assert first["filters"]["date_from"] == "2024-04-01"
    assert {s["id"] for s in search_service.get_saved_searches()} == {first["id"], second["id"]}

    ran = search_service.run_saved_search(first["id"])
    assert [m["title"] for m in ran["meetings"]] == ["Design sync"]
    assert ran["search"]["name"] == "Colours"

    assert search_service.delete_saved_search(second["id"]) is True
    assert search_service.delete_saved_search(second["id"]) is False
    assert [s["name"] for s in search_service.get_saved_searches()] == ["Colours"]


def test_saved_search_validation(search_service):
    with pytest.raises(ValidationError):
        search_service.save_search(SavedSearchCreate(name="   "))
    with pytest.raises(NotFoundError):
        search_service.run_saved_search(77)

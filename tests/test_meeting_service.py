from datetime import date

import pytest
from sqlalchemy import func, select

from meetinglog.errors import GenerationError, NotFoundError, ParsingError, ValidationError
from meetinglog.models import (
    MeetingCreate,
    MeetingFilters,
    MeetingUpdate,
    TagCreate,
    TemplateCreate,
    TemplateMeetingCreate,
)
from meetinglog.services.llm import LLMProviderError
from meetinglog.store.schema import meetings, participants, tags


def _payload(**overrides):
    values = {
        "title": "Budget review",
        "date": date(2024, 5, 20),
        "content": "- **담당자:** Kim: Prepare budget\nLee presented the hosting costs.",
        "participants": ["Lee", "Park"],
    }
    values.update(overrides)
    return MeetingCreate(**values)


def _meeting_count(db):
    with db.transaction() as conn:
        return conn.execute(select(func.count()).select_from(meetings)).scalar_one()


def test_create_meeting_stores_summary_and_sections(meeting_service):
    meeting = meeting_service.create_meeting(_payload())

    assert meeting["title"] == "Budget review"
    assert meeting["status"] == "completed"
    assert meeting["summary"].startswith("## 1. Meeting Overview")
    assert meeting["overview"] == "Quarterly budget planning for the platform team."
    assert meeting["decisions"] == "- Approve the revised budget"
    assert meeting["next_steps"] == "- Review hiring pipeline"
    assert [p["name"] for p in meeting["participants"]] == ["Lee", "Park"]
    assert {t["name"] for t in meeting["tags"]} == {"budget", "planning"}
    assert meeting["enrichment"]["action_items"] == {"ok": True, "count": 1, "error": None}


def test_extracted_assignee_becomes_participant(db, meeting_service):
    meeting = meeting_service.create_meeting(_payload())

    [item] = meeting["action_items"]
    assert item["description"] == "Prepare budget"
    assert item["assignee_name"] == "Kim"
    assert item["priority"] == "high"
    assert item["status"] == "pending"
    assert item["due_date"] == date(2024, 6, 10)
    with db.transaction() as conn:
        kim = conn.execute(select(participants.c.id).where(participants.c.name == "Kim")).scalar_one()
    assert item["assignee_id"] == kim


def test_same_participant_across_meetings_is_one_row(db, meeting_service):
    first = meeting_service.create_meeting(_payload(participants=["Lee"]))
    second = meeting_service.create_meeting(_payload(title="Follow-up", participants=["Lee", "Lee"]))

    with db.transaction() as conn:
        lee_rows = conn.execute(select(participants).where(participants.c.name == "Lee")).all()
    assert len(lee_rows) == 1
    assert first["participants"][0]["id"] == second["participants"][0]["id"] == lee_rows[0].id
    assert len(second["participants"]) == 1


def test_missing_fields_rejected_before_generation(db, provider, meeting_service):
    with pytest.raises(ValidationError) as exc_info:
        meeting_service.create_meeting(MeetingCreate(title=" ", content=""))
    assert "title" in str(exc_info.value)
    assert "date" in str(exc_info.value)
    assert "content" in str(exc_info.value)
    assert provider.calls == []
    assert _meeting_count(db) == 0


def test_summarize_failure_persists_nothing(db, provider, meeting_service):
    provider.failures["summarize"] = LLMProviderError("Request timed out after 120s")

    with pytest.raises(GenerationError):
        meeting_service.create_meeting(_payload())
    assert _meeting_count(db) == 0
    assert provider.calls == ["summarize"]


def test_action_item_failure_keeps_meeting(db, provider, meeting_service):
    provider.failures["extract_action_items"] = ParsingError("Non-JSON response")

    meeting = meeting_service.create_meeting(_payload())

    assert _meeting_count(db) == 1
    assert meeting["action_items"] == []
    assert meeting["enrichment"]["action_items"]["ok"] is False
    assert meeting["enrichment"]["tags"]["ok"] is True
    assert len(meeting["tags"]) == 2


def test_tag_failure_keeps_meeting(provider, meeting_service):
    provider.failures["suggest_tags"] = LLMProviderError("OpenAI error: 500")

    meeting = meeting_service.create_meeting(_payload())

    assert meeting["tags"] == []
    assert meeting["enrichment"]["tags"]["ok"] is False
    assert len(meeting["action_items"]) == 1


def test_malformed_action_items_are_skipped(provider, meeting_service):
    provider.action_items = [
        {"description": "Send minutes", "priority": "urgent", "dueDate": "next week"},
        {"assignee": "Kim"},
        "not an object",
    ]

    meeting = meeting_service.create_meeting(_payload())

    [item] = meeting["action_items"]
    assert item["description"] == "Send minutes"
    assert item["priority"] == "medium"
    assert item["due_date"] is None
    assert item["assignee_id"] is None


def test_template_content_reaches_summarizer(provider, templates, meeting_service):
    template = templates.create_template(
        TemplateCreate(name="Retro", template_content="What went well / what did not")
    )

    meeting_service.create_meeting(_payload(template_id=template["id"]))

    assert provider.last_context.template == "What went well / what did not"
    assert provider.last_context.participants == ["Lee", "Park"]


def test_unknown_template_rejected(provider, meeting_service):
    with pytest.raises(NotFoundError):
        meeting_service.create_meeting(_payload(template_id=42))
    assert provider.calls == []


def test_list_meetings_filters_and_paginates(meeting_service):
    meeting_service.create_meeting(_payload(title="Alpha", date=date(2024, 1, 10)))
    meeting_service.create_meeting(_payload(title="Beta", date=date(2024, 2, 10)))
    meeting_service.create_meeting(_payload(title="Gamma", date=date(2024, 3, 10)))

    page = meeting_service.list_meetings(MeetingFilters(limit=2))
    assert [m["title"] for m in page["meetings"]] == ["Gamma", "Beta"]
    assert page["pagination"] == {"page": 1, "limit": 2, "total": 3, "total_pages": 2}
    assert page["meetings"][0]["participant_count"] == 2
    assert page["meetings"][0]["action_item_count"] == 1

    ranged = meeting_service.list_meetings(
        MeetingFilters(start_date=date(2024, 2, 1), end_date=date(2024, 2, 28))
    )
    assert [m["title"] for m in ranged["meetings"]] == ["Beta"]

    searched = meeting_service.list_meetings(MeetingFilters(search="Alph"))
    assert [m["title"] for m in searched["meetings"]] == ["Alpha"]


def test_list_meetings_by_participant(meeting_service):
    meeting_service.create_meeting(_payload(title="With Choi", participants=["Choi"]))
    solo = meeting_service.create_meeting(_payload(title="Without", participants=["Jung"]))
    jung_id = solo["participants"][0]["id"]

    result = meeting_service.list_meetings(MeetingFilters(participant_id=jung_id))
    assert [m["title"] for m in result["meetings"]] == ["Without"]


def test_summary_edit_recomputes_sections(meeting_service):
    meeting = meeting_service.create_meeting(_payload())

    updated = meeting_service.update_meeting(
        meeting["id"],
        MeetingUpdate(summary="## 1. Overview\nShort\n## 3. Decisions\nShip it\n"),
    )

    assert updated["overview"] == "Short"
    assert updated["discussion"] == ""
    assert updated["decisions"] == "Ship it"
    assert updated["next_steps"] == ""


def test_update_rejects_empty_title(meeting_service):
    meeting = meeting_service.create_meeting(_payload())
    with pytest.raises(ValidationError):
        meeting_service.update_meeting(meeting["id"], MeetingUpdate(title="  "))


def test_delete_meeting_cascades(db, meeting_service):
    meeting = meeting_service.create_meeting(_payload())

    assert meeting_service.delete_meeting(meeting["id"]) is True
    assert meeting_service.get_meeting(meeting["id"]) is None
    assert meeting_service.delete_meeting(meeting["id"]) is False


def test_tag_usage_counts_once_per_meeting(db, resolver, meeting_service):
    first = meeting_service.create_meeting(_payload())
    meeting_service.create_meeting(_payload(title="Follow-up"))

    relinked = resolver.resolve_and_link_tag(first["id"], "budget")

    assert relinked["usage_count"] == 2
    with db.transaction() as conn:
        budget = conn.execute(select(tags).where(tags.c.name == "budget")).one()
    assert budget.usage_count == 2
    assert budget.is_ai_suggested is True


def test_existing_tag_names_are_offered_to_the_generator(provider, tag_service, meeting_service):
    seen = {}
    original = provider.suggest_tags

    def recording(content, existing_tags):
        seen["existing"] = list(existing_tags)
        return original(content, existing_tags)

    provider.suggest_tags = recording
    tag_service.create_tag(TagCreate(name="roadmap"))

    meeting_service.create_meeting(_payload())

    assert seen["existing"] == ["roadmap"]


def test_draft_from_template_uses_template_body(provider, templates, meeting_service):
    template = templates.create_template(
        TemplateCreate(name="Retro", template_content="### Keep\n-", meeting_type="retrospective")
    )

    draft = meeting_service.create_meeting_from_template(
        template["id"], TemplateMeetingCreate(title=" Sprint 12 retro ", date=date(2024, 5, 3))
    )

    assert draft["title"] == "Sprint 12 retro"
    assert draft["status"] == "draft"
    assert draft["meeting_type"] == "retrospective"
    assert draft["template_id"] == template["id"]
    assert draft["raw_content"] == "### Keep\n-"
    assert draft["summary"] == ""
    assert draft["overview"] == ""
    assert provider.calls == []


def test_draft_from_template_keeps_given_content(templates, meeting_service):
    template = templates.create_template(TemplateCreate(name="Retro", template_content="### Keep\n-"))

    draft = meeting_service.create_meeting_from_template(
        template["id"],
        TemplateMeetingCreate(title="Retro", date=date(2024, 5, 3), content="Already filled in"),
    )

    assert draft["raw_content"] == "Already filled in"
    assert draft["meeting_type"] is None


def test_draft_from_template_validation(templates, meeting_service):
    template = templates.create_template(TemplateCreate(name="Retro", template_content="body"))

    with pytest.raises(ValidationError) as exc_info:
        meeting_service.create_meeting_from_template(template["id"], TemplateMeetingCreate(title=" "))
    assert "title" in str(exc_info.value)
    assert "date" in str(exc_info.value)

    with pytest.raises(NotFoundError):
        meeting_service.create_meeting_from_template(
            999, TemplateMeetingCreate(title="Retro", date=date(2024, 5, 3))
        )

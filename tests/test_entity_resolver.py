import threading
from datetime import date

import pytest
from sqlalchemy import func, select

from meetinglog.errors import NotFoundError, ValidationError
from meetinglog.store.schema import meeting_tags, meetings, participants, tags


def _insert_meeting(db, title="Standup"):
    with db.transaction() as conn:
        result = conn.execute(
            meetings.insert().values(title=title, date=date(2024, 5, 1), raw_content="notes", summary="s")
        )
        return result.inserted_primary_key[0]


def _count(db, table):
    with db.transaction() as conn:
        return conn.execute(select(func.count()).select_from(table)).scalar_one()


def test_resolve_participant_is_idempotent(db, resolver):
    first = resolver.resolve_participant("Lee")
    second = resolver.resolve_participant("  Lee ")
    assert first == second
    assert _count(db, participants) == 1


def test_names_are_case_sensitive(db, resolver):
    assert resolver.resolve_participant("lee") != resolver.resolve_participant("Lee")


def test_blank_name_rejected(resolver):
    with pytest.raises(ValidationError):
        resolver.resolve_participant("   ")


def test_concurrent_resolution_creates_one_row(db, resolver):
    results = []
    errors = []

    def worker():
        try:
            results.append(resolver.resolve_participant("Park"))
        except Exception as exc:  # surfaced by the assertion below
            errors.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert len(set(results)) == 1
    assert _count(db, participants) == 1


def test_link_tag_counts_usage_once(db, resolver):
    meeting_id = _insert_meeting(db)
    tag_id = resolver.resolve_tag("budget")

    assert resolver.link_tag(meeting_id, tag_id, 0.8) is True
    assert resolver.link_tag(meeting_id, tag_id, 0.8) is False

    with db.transaction() as conn:
        usage = conn.execute(select(tags.c.usage_count).where(tags.c.id == tag_id)).scalar_one()
        confidence = conn.execute(select(meeting_tags.c.confidence)).scalar_one()
    assert usage == 1
    assert confidence == pytest.approx(0.8)


def test_link_tag_clamps_confidence(db, resolver):
    meeting_id = _insert_meeting(db)
    tag_id = resolver.resolve_tag("ops")
    resolver.link_tag(meeting_id, tag_id, 3.0)
    with db.transaction() as conn:
        assert conn.execute(select(meeting_tags.c.confidence)).scalar_one() == 1.0


def test_resolve_and_link_participant(db, resolver):
    meeting_id = _insert_meeting(db)
    participant = resolver.resolve_and_link_participant(meeting_id, "Kim")
    again = resolver.resolve_and_link_participant(meeting_id, "Kim")
    assert participant["name"] == "Kim"
    assert again["id"] == participant["id"]


def test_resolve_and_link_requires_meeting(resolver):
    with pytest.raises(NotFoundError):
        resolver.resolve_and_link_participant(999, "Kim")
    with pytest.raises(NotFoundError):
        resolver.resolve_and_link_tag(999, "budget")


def test_user_tag_is_not_ai_suggested(db, resolver):
    meeting_id = _insert_meeting(db)
    tag = resolver.resolve_and_link_tag(meeting_id, "roadmap")
    assert tag["is_ai_suggested"] is False
    assert tag["usage_count"] == 1

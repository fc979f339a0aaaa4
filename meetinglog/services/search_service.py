"""Question answering over stored meetings, with keyword-ranked related meetings."""
from __future__ import annotations

import logging
import re

from sqlalchemy import delete, func, or_, select, update

from meetinglog.errors import GenerationError, NotFoundError, ParsingError, ValidationError
from meetinglog.models import AdvancedSearchFilters, SavedSearchCreate
from meetinglog.services.generation import GenerationService
from meetinglog.services.llm import LLMProviderError
from meetinglog.store import Database, row_to_dict
from meetinglog.store.schema import (
    meeting_participants,
    meeting_tags,
    meetings,
    participants,
    saved_searches,
)

MAX_RELATED = 5
MAX_ADVANCED_RESULTS = 50


class SearchService:
    def __init__(self, db: Database, generation: GenerationService) -> None:
        self._db = db
        self._generation = generation
        self._logger = logging.getLogger("meetinglog.search")

    @staticmethod
    def _keywords(text: str) -> set[str]:
        """Lowercase word tokens longer than one character."""
        return {w for w in re.findall(r"\w+", text.lower()) if len(w) > 1}

    def _load_meetings(self) -> list[dict]:
        with self._db.transaction() as conn:
            rows = conn.execute(
                select(
                    meetings.c.id,
                    meetings.c.title,
                    meetings.c.date,
                    meetings.c.summary,
                    meetings.c.raw_content,
                    meetings.c.overview,
                    meetings.c.discussion,
                    meetings.c.decisions,
                ).order_by(meetings.c.date.desc(), meetings.c.id.desc())
            ).all()
            names = conn.execute(
                select(meeting_participants.c.meeting_id, participants.c.name)
                .join(participants, participants.c.id == meeting_participants.c.participant_id)
                .order_by(participants.c.name)
            ).all()
        by_meeting: dict[int, list[str]] = {}
        for meeting_id, name in names:
            by_meeting.setdefault(meeting_id, []).append(name)
        result = []
        for row in rows:
            meeting = dict(row._mapping)
            meeting["participants"] = by_meeting.get(meeting["id"], [])
            result.append(meeting)
        return result

    @staticmethod
    def _corpus(all_meetings: list[dict]) -> str:
        return "\n\n---\n\n".join(
            f"[{m['title']} - {m['date']}]\n{m['summary'] or m['raw_content']}" for m in all_meetings
        )

    def _score(self, keywords: set[str], meeting: dict) -> float:
        """Keyword hits; a hit in the title counts twice."""
        title = (meeting["title"] or "").lower()
        body = " ".join(
            (meeting.get(key) or "")
            for key in ("summary", "raw_content", "overview", "discussion", "decisions")
        ).lower()
        score = 0.0
        for keyword in keywords:
            if keyword in title:
                score += 2.0
            elif keyword in body:
                score += 1.0
        return score

    def related_meetings(self, question: str, all_meetings: list[dict]) -> list[dict]:
        keywords = self._keywords(question)
        if not keywords:
            return []
        scored = [(self._score(keywords, m), index, m) for index, m in enumerate(all_meetings)]
        # all_meetings is newest first; index keeps that order among equal scores
        ranked = sorted((s for s in scored if s[0] > 0), key=lambda s: (-s[0], s[1]))
        return [
            {
                "id": m["id"],
                "title": m["title"],
                "date": m["date"],
                "summary": m["summary"],
                "participants": m["participants"],
                "score": score,
            }
            for score, _index, m in ranked[:MAX_RELATED]
        ]

    def search(self, question: str) -> dict:
        question = (question or "").strip()
        if not question:
            raise ValidationError("question is required")
        all_meetings = self._load_meetings()
        try:
            answer = self._generation.answer_question(question, self._corpus(all_meetings))
        except (LLMProviderError, ParsingError) as exc:
            self._logger.error("Question answering failed: %s", exc)
            raise GenerationError(f"Search failed: {exc}") from exc
        return {
            "answer": answer,
            "related_meetings": self.related_meetings(question, all_meetings),
        }

    # ---- Advanced search ----

    @staticmethod
    def _advanced_conditions(query: str, filters: AdvancedSearchFilters) -> list:
        conditions = []
        if query.strip():
            pattern = f"%{query.strip()}%"
            conditions.append(
                or_(
                    *(
                        column.ilike(pattern)
                        for column in (
                            meetings.c.title,
                            meetings.c.raw_content,
                            meetings.c.summary,
                            meetings.c.overview,
                            meetings.c.discussion,
                            meetings.c.decisions,
                        )
                    )
                )
            )
        if filters.date_from:
            conditions.append(meetings.c.date >= filters.date_from)
        if filters.date_to:
            conditions.append(meetings.c.date <= filters.date_to)
        if filters.participants and filters.participants.strip():
            conditions.append(
                meetings.c.id.in_(
                    select(meeting_participants.c.meeting_id)
                    .join(participants, participants.c.id == meeting_participants.c.participant_id)
                    .where(participants.c.name.ilike(f"%{filters.participants.strip()}%"))
                )
            )
        if filters.tag_id is not None:
            conditions.append(
                meetings.c.id.in_(
                    select(meeting_tags.c.meeting_id).where(meeting_tags.c.tag_id == filters.tag_id)
                )
            )
        return conditions

    def advanced_search(self, query: str = "", filters: AdvancedSearchFilters | None = None) -> list[dict]:
        """Substring search over meeting text with optional date, participant and tag filters.

        No generation call is made. Results are newest first, at most 50.
        """
        filters = filters or AdvancedSearchFilters()
        conditions = self._advanced_conditions(query or "", filters)
        with self._db.transaction() as conn:
            rows = conn.execute(
                select(meetings)
                .where(*conditions)
                .order_by(meetings.c.date.desc(), meetings.c.id.desc())
                .limit(MAX_ADVANCED_RESULTS)
            ).all()
            ids = [row.id for row in rows]
            names = conn.execute(
                select(meeting_participants.c.meeting_id, participants.c.name)
                .join(participants, participants.c.id == meeting_participants.c.participant_id)
                .where(meeting_participants.c.meeting_id.in_(ids))
                .order_by(participants.c.name)
            ).all()
        by_meeting: dict[int, list[str]] = {}
        for meeting_id, name in names:
            by_meeting.setdefault(meeting_id, []).append(name)
        result = []
        for row in rows:
            meeting = row_to_dict(row)
            meeting["participants"] = by_meeting.get(meeting["id"], [])
            result.append(meeting)
        return result

    # ---- Saved searches ----

    def get_saved_searches(self) -> list[dict]:
        with self._db.transaction() as conn:
            rows = conn.execute(
                select(saved_searches).order_by(
                    saved_searches.c.last_used.desc(), saved_searches.c.id.desc()
                )
            ).all()
        return [row_to_dict(row) for row in rows]

    def get_saved_search(self, search_id: int) -> dict | None:
        with self._db.transaction() as conn:
            row = conn.execute(select(saved_searches).where(saved_searches.c.id == search_id)).first()
        return row_to_dict(row)

    def save_search(self, payload: SavedSearchCreate) -> dict:
        name = payload.name.strip()
        if not name:
            raise ValidationError("name is required")
        with self._db.transaction() as conn:
            result = conn.execute(
                saved_searches.insert().values(
                    name=name,
                    query=payload.query,
                    filters=payload.filters.model_dump(mode="json"),
                )
            )
            search_id = result.inserted_primary_key[0]
        self._logger.info("Saved search id=%s name=%r", search_id, name)
        return self.get_saved_search(search_id)

    def run_saved_search(self, search_id: int) -> dict:
        """Run a saved search and mark it as most recently used."""
        with self._db.transaction() as conn:
            result = conn.execute(
                update(saved_searches)
                .where(saved_searches.c.id == search_id)
                .values(last_used=func.current_timestamp())
            )
            if result.rowcount == 0:
                raise NotFoundError("Saved search", search_id)
        saved = self.get_saved_search(search_id)
        filters = AdvancedSearchFilters.model_validate(saved["filters"] or {})
        return {"search": saved, "meetings": self.advanced_search(saved["query"], filters)}

    def delete_saved_search(self, search_id: int) -> bool:
        with self._db.transaction() as conn:
            result = conn.execute(delete(saved_searches).where(saved_searches.c.id == search_id))
        return result.rowcount > 0

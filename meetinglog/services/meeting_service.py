from __future__ import annotations

import logging
import math
from typing import Optional

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import SQLAlchemyError

from meetinglog.errors import (
    GenerationError,
    MeetingLogError,
    NotFoundError,
    ParsingError,
    ValidationError,
)
from meetinglog.models import (
    MeetingCreate,
    MeetingFilters,
    MeetingUpdate,
    SuggestedTag,
    TemplateMeetingCreate,
)
from meetinglog.services.entity_resolver import EntityResolver
from meetinglog.services.generation import GenerationService, StepResult, best_effort
from meetinglog.services.llm import LLMProviderError, SummaryContext
from meetinglog.services.section_parser import stored_sections
from meetinglog.services.tag_service import TagService
from meetinglog.services.template_service import TemplateService
from meetinglog.services.version_store import VersionStore
from meetinglog.store import Database, row_to_dict
from meetinglog.store.schema import (
    action_items,
    meeting_participants,
    meeting_tags,
    meetings,
    participants,
    tags,
)

_NULLABLE_MEETING_FIELDS = {"start_time", "end_time", "location", "meeting_type"}


class MeetingService:
    """Meeting ingestion, queries and versioned edits.

    ``create_meeting`` runs one fixed sequence per request: summarize (fatal),
    parse sections, persist, link participants, then the best-effort
    enrichment steps. Enrichment failures never undo the persisted meeting.
    """

    def __init__(
        self,
        db: Database,
        generation: GenerationService,
        resolver: EntityResolver,
        versions: VersionStore,
        templates: TemplateService,
        tag_service: TagService,
    ) -> None:
        self._db = db
        self._generation = generation
        self._resolver = resolver
        self._versions = versions
        self._templates = templates
        self._tags = tag_service
        self._logger = logging.getLogger("meetinglog.meetings")

    # ---- Ingestion ----

    @staticmethod
    def _validate_create(payload: MeetingCreate) -> None:
        missing = []
        if not payload.title.strip():
            missing.append("title")
        if payload.date is None:
            missing.append("date")
        if not payload.content.strip():
            missing.append("content")
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    def create_meeting(self, payload: MeetingCreate) -> dict:
        self._validate_create(payload)
        title = payload.title.strip()
        content = payload.content
        names = list(dict.fromkeys(n.strip() for n in payload.participants if n and n.strip()))

        template = None
        if payload.template_id is not None:
            template = self._templates.get_template_content(payload.template_id)

        try:
            narrative = self._generation.summarize(
                SummaryContext(
                    title=title,
                    date=payload.date.isoformat(),
                    content=content,
                    participants=names,
                    template=template,
                )
            )
        except (LLMProviderError, ParsingError) as exc:
            self._logger.error("Summarization failed, meeting not created: %s", exc)
            raise GenerationError(f"Summarization failed: {exc}") from exc

        sections = stored_sections(narrative)
        with self._db.transaction() as conn:
            result = conn.execute(
                meetings.insert().values(
                    title=title,
                    date=payload.date,
                    start_time=payload.start_time,
                    end_time=payload.end_time,
                    location=payload.location,
                    meeting_type=payload.meeting_type,
                    template_id=payload.template_id,
                    raw_content=content,
                    summary=narrative,
                    status="completed",
                    **sections,
                )
            )
            meeting_id = result.inserted_primary_key[0]
        self._logger.info("Meeting created id=%s title=%r", meeting_id, title)

        linked = self._link_participants(meeting_id, names)

        extracted = best_effort(
            "extract_action_items",
            lambda: self._generation.extract_action_items(content),
            self._logger,
        )
        created_items = self._store_action_items(meeting_id, extracted)

        suggested = best_effort(
            "suggest_tags",
            lambda: self._generation.suggest_tags(content, self._tags.list_tag_names()),
            self._logger,
        )
        linked_tags = self._store_tags(meeting_id, suggested.items)

        meeting = self.get_meeting(meeting_id)
        meeting["enrichment"] = {
            "participants": {
                "ok": linked == len(names),
                "count": linked,
                "error": None if linked == len(names) else f"{len(names) - linked} not linked",
            },
            "action_items": self._step_summary(extracted, created_items),
            "tags": self._step_summary(suggested, linked_tags),
        }
        return meeting

    def create_meeting_from_template(self, template_id: int, payload: TemplateMeetingCreate) -> dict:
        """Start a draft meeting from a template without calling the generation service.

        The draft takes the template's meeting type, and its raw content is
        ``payload.content`` or the template body. Summary and sections stay
        empty until the meeting is edited.
        """
        missing = []
        if not payload.title.strip():
            missing.append("title")
        if payload.date is None:
            missing.append("date")
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        template = self._templates.get_template(template_id)
        if template is None:
            raise NotFoundError("Template", template_id)

        raw_content = payload.content if payload.content and payload.content.strip() else None
        with self._db.transaction() as conn:
            result = conn.execute(
                meetings.insert().values(
                    title=payload.title.strip(),
                    date=payload.date,
                    start_time=payload.start_time,
                    end_time=payload.end_time,
                    location=payload.location,
                    meeting_type=template["meeting_type"],
                    template_id=template_id,
                    raw_content=raw_content or template["template_content"],
                    status="draft",
                )
            )
            meeting_id = result.inserted_primary_key[0]
        self._logger.info("Draft meeting id=%s created from template %s", meeting_id, template_id)
        return self.get_meeting(meeting_id)

    @staticmethod
    def _step_summary(result: StepResult, stored: int) -> dict:
        return {"ok": result.ok, "count": stored, "error": result.error}

    def _link_participants(self, meeting_id: int, names: list[str]) -> int:
        linked = 0
        for name in names:
            try:
                with self._db.transaction() as conn:
                    participant_id = self._resolver.resolve_participant(name, conn=conn)
                    self._resolver.link_participant(meeting_id, participant_id, conn=conn)
                linked += 1
            except (MeetingLogError, SQLAlchemyError) as exc:
                self._logger.warning(
                    "Could not link participant %r to meeting %s: %s", name, meeting_id, exc
                )
        return linked

    def _store_action_items(self, meeting_id: int, extracted: StepResult) -> int:
        stored = 0
        for item in extracted.items:
            try:
                with self._db.transaction() as conn:
                    assignee_id = None
                    if item.assignee:
                        assignee_id = self._resolver.resolve_participant(item.assignee, conn=conn)
                    conn.execute(
                        action_items.insert().values(
                            meeting_id=meeting_id,
                            description=item.description,
                            assignee_id=assignee_id,
                            priority=item.priority.value,
                            status="pending",
                            due_date=item.due_date,
                        )
                    )
                stored += 1
            except (MeetingLogError, SQLAlchemyError) as exc:
                self._logger.warning(
                    "Could not store action item %r for meeting %s: %s",
                    item.description,
                    meeting_id,
                    exc,
                )
        return stored

    def _store_tags(self, meeting_id: int, suggested: list[SuggestedTag]) -> int:
        linked = 0
        for tag in suggested:
            try:
                with self._db.transaction() as conn:
                    tag_id = self._resolver.resolve_tag(tag.name, conn=conn, ai_suggested=True)
                    if self._resolver.link_tag(meeting_id, tag_id, tag.confidence, conn=conn):
                        linked += 1
            except (MeetingLogError, SQLAlchemyError) as exc:
                self._logger.warning(
                    "Could not tag meeting %s with %r: %s", meeting_id, tag.name, exc
                )
        return linked

    # ---- Queries ----

    def get_meeting(self, meeting_id: int) -> Optional[dict]:
        with self._db.transaction() as conn:
            row = conn.execute(select(meetings).where(meetings.c.id == meeting_id)).first()
            if row is None:
                return None
            meeting = row_to_dict(row)
            meeting["participants"] = [
                row_to_dict(r)
                for r in conn.execute(
                    select(participants)
                    .join(meeting_participants, meeting_participants.c.participant_id == participants.c.id)
                    .where(meeting_participants.c.meeting_id == meeting_id)
                    .order_by(participants.c.name)
                )
            ]
            meeting["action_items"] = [
                row_to_dict(r)
                for r in conn.execute(
                    select(action_items, participants.c.name.label("assignee_name"))
                    .outerjoin(participants, action_items.c.assignee_id == participants.c.id)
                    .where(action_items.c.meeting_id == meeting_id)
                    .order_by(action_items.c.id)
                )
            ]
            meeting["tags"] = [
                row_to_dict(r)
                for r in conn.execute(
                    select(tags, meeting_tags.c.confidence)
                    .join(meeting_tags, meeting_tags.c.tag_id == tags.c.id)
                    .where(meeting_tags.c.meeting_id == meeting_id)
                    .order_by(tags.c.name)
                )
            ]
        return meeting

    @staticmethod
    def _filter_conditions(filters: MeetingFilters) -> list:
        conditions = []
        if filters.search:
            pattern = f"%{filters.search}%"
            conditions.append(
                or_(
                    meetings.c.title.like(pattern),
                    meetings.c.raw_content.like(pattern),
                    meetings.c.summary.like(pattern),
                )
            )
        if filters.start_date:
            conditions.append(meetings.c.date >= filters.start_date)
        if filters.end_date:
            conditions.append(meetings.c.date <= filters.end_date)
        if filters.status:
            conditions.append(meetings.c.status == filters.status)
        if filters.participant_id is not None:
            conditions.append(
                meetings.c.id.in_(
                    select(meeting_participants.c.meeting_id).where(
                        meeting_participants.c.participant_id == filters.participant_id
                    )
                )
            )
        if filters.tag_id is not None:
            conditions.append(
                meetings.c.id.in_(
                    select(meeting_tags.c.meeting_id).where(meeting_tags.c.tag_id == filters.tag_id)
                )
            )
        return conditions

    def list_meetings(self, filters: Optional[MeetingFilters] = None) -> dict:
        filters = filters or MeetingFilters()
        conditions = self._filter_conditions(filters)

        def _count(table):
            return (
                select(func.count())
                .select_from(table)
                .where(table.c.meeting_id == meetings.c.id)
                .scalar_subquery()
            )

        query = (
            select(
                meetings,
                _count(meeting_participants).label("participant_count"),
                _count(action_items).label("action_item_count"),
                _count(meeting_tags).label("tag_count"),
            )
            .where(*conditions)
            .order_by(meetings.c.date.desc(), meetings.c.created_at.desc(), meetings.c.id.desc())
            .limit(filters.limit)
            .offset((filters.page - 1) * filters.limit)
        )
        total_query = select(func.count()).select_from(meetings).where(*conditions)

        with self._db.transaction() as conn:
            rows = conn.execute(query).all()
            total = conn.execute(total_query).scalar_one()

        return {
            "meetings": [row_to_dict(row) for row in rows],
            "pagination": {
                "page": filters.page,
                "limit": filters.limit,
                "total": total,
                "total_pages": math.ceil(total / filters.limit) if total else 0,
            },
        }

    # ---- Edits ----

    @staticmethod
    def _changes_from(payload: MeetingUpdate) -> dict:
        changes = payload.model_dump(exclude_unset=True, exclude={"change_summary"})
        for name, value in list(changes.items()):
            if value is None and name not in _NULLABLE_MEETING_FIELDS:
                raise ValidationError(f"{name} cannot be null")
        for name in ("title", "raw_content", "status"):
            if name in changes:
                if not changes[name].strip():
                    raise ValidationError(f"{name} cannot be empty")
        if "title" in changes:
            changes["title"] = changes["title"].strip()
        if "summary" in changes:
            changes.update(stored_sections(changes["summary"]))
        return changes

    def update_meeting(self, meeting_id: int, payload: MeetingUpdate) -> dict:
        changes = self._changes_from(payload)
        self._versions.apply_update(
            meeting_id, changes, (payload.change_summary or "").strip() or "Updated"
        )
        return self.get_meeting(meeting_id)

    def get_version_history(self, meeting_id: int) -> list[dict]:
        return self._versions.get_version_history(meeting_id)

    def restore_version(self, meeting_id: int, version_number: int) -> dict:
        self._versions.restore(meeting_id, version_number)
        return self.get_meeting(meeting_id)

    def delete_meeting(self, meeting_id: int) -> bool:
        with self._db.transaction() as conn:
            result = conn.execute(delete(meetings).where(meetings.c.id == meeting_id))
        if result.rowcount:
            self._logger.info("Meeting deleted id=%s", meeting_id)
        return result.rowcount > 0

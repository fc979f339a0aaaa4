"""Action item CRUD, status transitions and the dashboard summary."""
from __future__ import annotations

import logging
from datetime import date
from typing import Callable, Optional

from sqlalchemy import case, delete, func, select, update
from sqlalchemy.engine import Connection

from meetinglog.errors import NotFoundError, ValidationError
from meetinglog.models import (
    ActionItemCreate,
    ActionItemFilters,
    ActionItemStatus,
    ActionItemUpdate,
)
from meetinglog.services.entity_resolver import EntityResolver
from meetinglog.store import Database, row_to_dict
from meetinglog.store.schema import action_items, meetings, participants

ORPHAN_ATTACH = "attach"
ORPHAN_REJECT = "reject"

PLACEHOLDER_TITLE = "General action items"
PLACEHOLDER_CONTENT = "Action items that are not linked to a meeting."
PLACEHOLDER_STATUS = "placeholder"

_COMPLETED = ActionItemStatus.COMPLETED.value

_priority_order = case(
    (action_items.c.priority == "high", 0),
    (action_items.c.priority == "medium", 1),
    else_=2,
)


class ActionItemService:
    def __init__(
        self,
        db: Database,
        resolver: EntityResolver,
        orphan_policy: str = ORPHAN_ATTACH,
        today: Callable[[], date] = date.today,
    ) -> None:
        if orphan_policy not in (ORPHAN_ATTACH, ORPHAN_REJECT):
            raise ValueError(f"Unknown orphan policy: {orphan_policy}")
        self._db = db
        self._resolver = resolver
        self._orphan_policy = orphan_policy
        self._today = today
        self._logger = logging.getLogger("meetinglog.action_items")

    def _base_query(self):
        return (
            select(
                action_items,
                participants.c.name.label("assignee_name"),
                meetings.c.title.label("meeting_title"),
                meetings.c.date.label("meeting_date"),
            )
            .outerjoin(participants, action_items.c.assignee_id == participants.c.id)
            .outerjoin(meetings, action_items.c.meeting_id == meetings.c.id)
        )

    def _overdue_condition(self):
        return (action_items.c.due_date < self._today()) & (action_items.c.status != _COMPLETED)

    def get_action_item(self, item_id: int, conn: Optional[Connection] = None) -> Optional[dict]:
        query = self._base_query().where(action_items.c.id == item_id)
        if conn is not None:
            return row_to_dict(conn.execute(query).first())
        with self._db.transaction() as own:
            return row_to_dict(own.execute(query).first())

    def list_action_items(self, filters: Optional[ActionItemFilters] = None) -> list[dict]:
        filters = filters or ActionItemFilters()
        query = self._base_query()
        if filters.status is not None:
            query = query.where(action_items.c.status == filters.status.value)
        if filters.assignee_id is not None:
            query = query.where(action_items.c.assignee_id == filters.assignee_id)
        if filters.priority is not None:
            query = query.where(action_items.c.priority == filters.priority.value)
        if filters.meeting_id is not None:
            query = query.where(action_items.c.meeting_id == filters.meeting_id)
        if filters.overdue:
            query = query.where(self._overdue_condition())
        query = query.order_by(
            action_items.c.due_date.is_(None),
            action_items.c.due_date.asc(),
            _priority_order,
            action_items.c.id,
        )
        with self._db.transaction() as conn:
            return [row_to_dict(row) for row in conn.execute(query)]

    def _fallback_meeting_id(self, conn: Connection) -> int:
        """Owner meeting for an action item created without one.

        The most recently dated meeting, or a placeholder meeting when the
        store has none. Policy ``reject`` refuses instead.
        """
        if self._orphan_policy == ORPHAN_REJECT:
            raise ValidationError("meeting_id is required")
        recent = conn.execute(
            select(meetings.c.id)
            .order_by(meetings.c.date.desc(), meetings.c.created_at.desc(), meetings.c.id.desc())
            .limit(1)
        ).scalar()
        if recent is not None:
            self._logger.warning("Action item without meeting attached to meeting id=%s", recent)
            return recent
        result = conn.execute(
            meetings.insert().values(
                title=PLACEHOLDER_TITLE,
                date=self._today(),
                raw_content=PLACEHOLDER_CONTENT,
                summary=PLACEHOLDER_CONTENT,
                status=PLACEHOLDER_STATUS,
            )
        )
        meeting_id = result.inserted_primary_key[0]
        self._logger.warning("Created placeholder meeting id=%s for orphan action item", meeting_id)
        return meeting_id

    def _assignee_id(self, conn: Connection, assignee_id: Optional[int], assignee: Optional[str]) -> Optional[int]:
        if assignee_id is not None:
            found = conn.execute(
                select(participants.c.id).where(participants.c.id == assignee_id)
            ).scalar()
            if found is None:
                raise NotFoundError("Participant", assignee_id)
            return assignee_id
        if assignee and assignee.strip():
            return self._resolver.resolve_participant(assignee, conn=conn)
        return None

    def create_action_item(self, payload: ActionItemCreate) -> dict:
        description = payload.description.strip()
        if not description:
            raise ValidationError("description is required")

        with self._db.transaction() as conn:
            if payload.meeting_id is not None:
                found = conn.execute(
                    select(meetings.c.id).where(meetings.c.id == payload.meeting_id)
                ).scalar()
                if found is None:
                    raise NotFoundError("Meeting", payload.meeting_id)
                meeting_id = payload.meeting_id
            else:
                meeting_id = self._fallback_meeting_id(conn)

            values = {
                "meeting_id": meeting_id,
                "description": description,
                "assignee_id": self._assignee_id(conn, payload.assignee_id, payload.assignee),
                "priority": payload.priority.value,
                "status": payload.status.value,
                "due_date": payload.due_date,
                "notes": payload.notes,
            }
            if payload.status.value == _COMPLETED:
                values["completion_date"] = func.current_timestamp()
            result = conn.execute(action_items.insert().values(**values))
            item_id = result.inserted_primary_key[0]
            item = self.get_action_item(item_id, conn=conn)
        self._logger.info("Action item created id=%s meeting_id=%s", item_id, meeting_id)
        return item

    def update_action_item(self, item_id: int, payload: ActionItemUpdate) -> dict:
        fields = payload.model_dump(exclude_unset=True)
        with self._db.transaction() as conn:
            current = conn.execute(select(action_items).where(action_items.c.id == item_id)).first()
            if current is None:
                raise NotFoundError("Action item", item_id)

            changes: dict = {}
            if "description" in fields:
                description = (fields["description"] or "").strip()
                if not description:
                    raise ValidationError("description cannot be empty")
                changes["description"] = description
            if "assignee_id" in fields or "assignee" in fields:
                changes["assignee_id"] = self._assignee_id(
                    conn, fields.get("assignee_id"), fields.get("assignee")
                )
            if "due_date" in fields:
                changes["due_date"] = fields["due_date"]
            if "notes" in fields:
                changes["notes"] = fields["notes"]
            if fields.get("priority") is not None:
                changes["priority"] = fields["priority"].value
            if fields.get("status") is not None:
                status = fields["status"].value
                changes["status"] = status
                if status == _COMPLETED and current.status != _COMPLETED:
                    changes["completion_date"] = func.current_timestamp()

            if changes:
                conn.execute(
                    update(action_items)
                    .where(action_items.c.id == item_id)
                    .values(**changes, updated_at=func.current_timestamp())
                )
            item = self.get_action_item(item_id, conn=conn)
        return item

    def delete_action_item(self, item_id: int) -> bool:
        with self._db.transaction() as conn:
            result = conn.execute(delete(action_items).where(action_items.c.id == item_id))
        return result.rowcount > 0

    def get_summary(self) -> dict:
        def _status_count(status: str):
            return func.coalesce(func.sum(case((action_items.c.status == status, 1), else_=0)), 0)

        query = select(
            func.count().label("total"),
            _status_count(ActionItemStatus.PENDING.value).label("pending"),
            _status_count(ActionItemStatus.IN_PROGRESS.value).label("in_progress"),
            _status_count(ActionItemStatus.COMPLETED.value).label("completed"),
            _status_count(ActionItemStatus.CANCELLED.value).label("cancelled"),
            func.coalesce(
                func.sum(case((self._overdue_condition(), 1), else_=0)), 0
            ).label("overdue"),
        ).select_from(action_items)
        with self._db.transaction() as conn:
            row = conn.execute(query).one()
        return {key: int(value) for key, value in row._mapping.items()}

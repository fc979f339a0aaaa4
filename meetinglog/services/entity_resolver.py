"""Find-or-create for participants and tags, and their links to meetings."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import select, update
from sqlalchemy.engine import Connection

from meetinglog.errors import ConflictError, NotFoundError, ValidationError
from meetinglog.store import Database, insert_ignore, row_to_dict
from meetinglog.store.schema import meeting_participants, meeting_tags, meetings, participants, tags

_RESOLVE_ATTEMPTS = 3


class EntityResolver:
    """Idempotent resolution of named entities.

    Names are matched exactly (case-sensitive, after trimming surrounding
    whitespace). Creation goes through INSERT ... ON CONFLICT DO NOTHING on
    the unique name column, so concurrent resolutions of the same new name
    converge on one row.

    Every method takes an optional ``conn`` to join a caller's transaction;
    without one it runs in its own.
    """

    def __init__(self, db: Database) -> None:
        self._db = db
        self._logger = logging.getLogger("meetinglog.entities")

    @contextmanager
    def _scope(self, conn: Optional[Connection]) -> Iterator[Connection]:
        if conn is not None:
            yield conn
            return
        with self._db.transaction() as own:
            yield own

    @staticmethod
    def _clean_name(name: Optional[str], kind: str) -> str:
        cleaned = (name or "").strip()
        if not cleaned:
            raise ValidationError(f"{kind} name is required")
        return cleaned

    def _find_or_create(self, conn: Connection, table, name: str, defaults: dict) -> int:
        for _attempt in range(_RESOLVE_ATTEMPTS):
            existing = conn.execute(select(table.c.id).where(table.c.name == name)).scalar()
            if existing is not None:
                return existing
            if insert_ignore(conn, table, {"name": name, **defaults}, ["name"]):
                self._logger.info("Created %s name=%r", table.name, name)
        raise ConflictError(f"Could not resolve {table.name} name {name!r}")

    def resolve_participant(self, name: str, conn: Optional[Connection] = None) -> int:
        name = self._clean_name(name, "Participant")
        with self._scope(conn) as c:
            return self._find_or_create(c, participants, name, {})

    def resolve_tag(
        self, name: str, conn: Optional[Connection] = None, ai_suggested: bool = True
    ) -> int:
        name = self._clean_name(name, "Tag")
        with self._scope(conn) as c:
            return self._find_or_create(
                c, tags, name, {"usage_count": 0, "is_ai_suggested": ai_suggested}
            )

    def link_participant(
        self, meeting_id: int, participant_id: int, conn: Optional[Connection] = None
    ) -> bool:
        """Attach a participant to a meeting. Returns False if it was already attached."""
        with self._scope(conn) as c:
            inserted = insert_ignore(
                c,
                meeting_participants,
                {"meeting_id": meeting_id, "participant_id": participant_id},
                ["meeting_id", "participant_id"],
            )
        return bool(inserted)

    def link_tag(
        self,
        meeting_id: int,
        tag_id: int,
        confidence: float = 1.0,
        conn: Optional[Connection] = None,
    ) -> bool:
        """Attach a tag to a meeting and count the use. Duplicate links change nothing."""
        confidence = min(max(float(confidence), 0.0), 1.0)
        with self._scope(conn) as c:
            inserted = insert_ignore(
                c,
                meeting_tags,
                {"meeting_id": meeting_id, "tag_id": tag_id, "confidence": confidence},
                ["meeting_id", "tag_id"],
            )
            if inserted:
                c.execute(
                    update(tags)
                    .where(tags.c.id == tag_id)
                    .values(usage_count=tags.c.usage_count + 1)
                )
        return bool(inserted)

    def _require_meeting(self, conn: Connection, meeting_id: int) -> None:
        found = conn.execute(select(meetings.c.id).where(meetings.c.id == meeting_id)).scalar()
        if found is None:
            raise NotFoundError("Meeting", meeting_id)

    def resolve_and_link_participant(self, meeting_id: int, name: str) -> dict:
        with self._db.transaction() as conn:
            self._require_meeting(conn, meeting_id)
            participant_id = self.resolve_participant(name, conn=conn)
            self.link_participant(meeting_id, participant_id, conn=conn)
            row = conn.execute(select(participants).where(participants.c.id == participant_id)).first()
        return row_to_dict(row)

    def resolve_and_link_tag(
        self, meeting_id: int, name: str, confidence: float = 1.0, ai_suggested: bool = False
    ) -> dict:
        with self._db.transaction() as conn:
            self._require_meeting(conn, meeting_id)
            tag_id = self.resolve_tag(name, conn=conn, ai_suggested=ai_suggested)
            self.link_tag(meeting_id, tag_id, confidence, conn=conn)
            row = conn.execute(select(tags).where(tags.c.id == tag_id)).first()
        return row_to_dict(row)

"""Append-only edit history for meetings."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import func, select, update
from sqlalchemy.engine import Connection
from sqlalchemy.exc import IntegrityError

from meetinglog.errors import ConflictError, NotFoundError
from meetinglog.services.section_parser import stored_sections
from meetinglog.store import Database, row_to_dict
from meetinglog.store.schema import meeting_versions, meetings

SNAPSHOT_FIELDS = (
    "title",
    "raw_content",
    "summary",
    "overview",
    "discussion",
    "decisions",
    "next_steps",
)

UPDATABLE_FIELDS = SNAPSHOT_FIELDS + (
    "date",
    "start_time",
    "end_time",
    "location",
    "meeting_type",
    "status",
)


class VersionStore:
    """Records a version of a meeting's current state before every update.

    Version numbers per meeting start at 1 and have no gaps. The number is
    allocated inside the same transaction that inserts the version and
    applies the update; a unique (meeting_id, version_number) constraint
    plus retry covers backends where two transactions can read the same
    maximum.
    """

    def __init__(self, db: Database, max_attempts: int = 5) -> None:
        self._db = db
        self._max_attempts = max_attempts
        self._logger = logging.getLogger("meetinglog.versions")

    @contextmanager
    def _scope(self, conn: Optional[Connection]) -> Iterator[Connection]:
        if conn is not None:
            yield conn
            return
        with self._db.transaction() as own:
            yield own

    def record_version(
        self, meeting_id: int, snapshot: dict, change_summary: str, conn: Connection
    ) -> int:
        """Insert an immutable version holding ``snapshot``. Returns its number."""
        values = {name: snapshot.get(name) or "" for name in SNAPSHOT_FIELDS}
        for attempt in range(1, self._max_attempts + 1):
            current_max = conn.execute(
                select(func.coalesce(func.max(meeting_versions.c.version_number), 0)).where(
                    meeting_versions.c.meeting_id == meeting_id
                )
            ).scalar()
            next_version = int(current_max) + 1
            savepoint = conn.begin_nested()
            try:
                conn.execute(
                    meeting_versions.insert().values(
                        meeting_id=meeting_id,
                        version_number=next_version,
                        change_summary=change_summary,
                        **values,
                    )
                )
            except IntegrityError:
                savepoint.rollback()
                self._logger.info(
                    "Version number collision meeting_id=%s version=%s attempt=%s",
                    meeting_id,
                    next_version,
                    attempt,
                )
                continue
            savepoint.commit()
            return next_version
        raise ConflictError(f"Could not allocate a version number for meeting {meeting_id}")

    def apply_update(
        self,
        meeting_id: int,
        changes: dict,
        change_summary: str,
        conn: Optional[Connection] = None,
    ) -> Optional[int]:
        """Snapshot the meeting, then write ``changes`` to it.

        Returns the new version number, or None when ``changes`` is empty.
        """
        unknown = set(changes) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Fields cannot be updated: {sorted(unknown)}")

        with self._scope(conn) as c:
            current = c.execute(
                select(meetings).where(meetings.c.id == meeting_id).with_for_update()
            ).first()
            if current is None:
                raise NotFoundError("Meeting", meeting_id)
            if not changes:
                return None

            version_number = self.record_version(
                meeting_id, dict(current._mapping), change_summary, c
            )
            c.execute(
                update(meetings)
                .where(meetings.c.id == meeting_id)
                .values(**changes, updated_at=func.current_timestamp())
            )
        self._logger.info(
            "Meeting updated id=%s version=%s fields=%s",
            meeting_id,
            version_number,
            sorted(changes),
        )
        return version_number

    def get_version_history(self, meeting_id: int) -> list[dict]:
        """All versions of a meeting, newest first."""
        with self._db.transaction() as conn:
            exists = conn.execute(select(meetings.c.id).where(meetings.c.id == meeting_id)).scalar()
            if exists is None:
                raise NotFoundError("Meeting", meeting_id)
            rows = conn.execute(
                select(meeting_versions)
                .where(meeting_versions.c.meeting_id == meeting_id)
                .order_by(meeting_versions.c.version_number.desc())
            ).all()
        return [row_to_dict(row) for row in rows]

    def get_version(self, meeting_id: int, version_number: int, conn: Optional[Connection] = None) -> dict:
        with self._scope(conn) as c:
            row = c.execute(
                select(meeting_versions).where(
                    meeting_versions.c.meeting_id == meeting_id,
                    meeting_versions.c.version_number == version_number,
                )
            ).first()
        if row is None:
            raise NotFoundError("Version", f"{meeting_id}/{version_number}")
        return row_to_dict(row)

    def restore(self, meeting_id: int, version_number: int) -> int:
        """Re-apply a version's content as a new edit. Returns the new version number.

        Title, raw content and summary come from the version; the four
        section fields are re-derived from that summary. Participant, tag
        and action item links are not touched.
        """
        with self._db.transaction() as conn:
            version = self.get_version(meeting_id, version_number, conn=conn)
            changes = {
                "title": version["title"],
                "raw_content": version["raw_content"],
                "summary": version["summary"],
                **stored_sections(version["summary"]),
            }
            new_version = self.apply_update(
                meeting_id, changes, f"Restored from version {version_number}", conn=conn
            )
        self._logger.info(
            "Meeting restored id=%s from_version=%s new_version=%s",
            meeting_id,
            version_number,
            new_version,
        )
        return new_version

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError

from meetinglog.errors import ConflictError, GenerationError, NotFoundError, ParsingError, ValidationError
from meetinglog.models import TagCreate, TagUpdate
from meetinglog.services.generation import GenerationService
from meetinglog.services.llm import LLMProviderError
from meetinglog.store import Database, insert_ignore, row_to_dict
from meetinglog.store.schema import meeting_tags, tags


class TagService:
    """User-facing tag management.

    Tags proposed during ingestion are created by the EntityResolver; tags
    created here are user tags (``is_ai_suggested`` False).
    """

    def __init__(self, db: Database, generation: Optional[GenerationService] = None) -> None:
        self._db = db
        self._generation = generation
        self._logger = logging.getLogger("meetinglog.tags")

    def list_tags(self) -> list[dict]:
        with self._db.transaction() as conn:
            rows = conn.execute(
                select(tags).order_by(tags.c.usage_count.desc(), tags.c.name.asc())
            ).all()
        return [row_to_dict(row) for row in rows]

    def get_tag(self, tag_id: int) -> Optional[dict]:
        with self._db.transaction() as conn:
            row = conn.execute(select(tags).where(tags.c.id == tag_id)).first()
        return row_to_dict(row)

    def list_tag_names(self) -> list[str]:
        with self._db.transaction() as conn:
            return list(conn.execute(select(tags.c.name).order_by(tags.c.name)).scalars())

    def create_tag(self, payload: TagCreate) -> dict:
        name = payload.name.strip()
        with self._db.transaction() as conn:
            inserted = insert_ignore(
                conn,
                tags,
                {
                    "name": name,
                    "color": payload.color,
                    "description": payload.description,
                    "usage_count": 0,
                    "is_ai_suggested": False,
                },
                ["name"],
            )
            if not inserted:
                raise ConflictError(f"Tag already exists: {name}")
            tag_id = conn.execute(select(tags.c.id).where(tags.c.name == name)).scalar_one()
        self._logger.info("Tag created id=%s name=%r", tag_id, name)
        return self.get_tag(tag_id)

    def update_tag(self, tag_id: int, payload: TagUpdate) -> dict:
        changes = payload.model_dump(exclude_unset=True)
        if "name" in changes:
            if changes["name"] is None:
                del changes["name"]
            else:
                changes["name"] = changes["name"].strip()
        if changes:
            try:
                with self._db.transaction() as conn:
                    result = conn.execute(update(tags).where(tags.c.id == tag_id).values(**changes))
                    if result.rowcount == 0:
                        raise NotFoundError("Tag", tag_id)
            except IntegrityError as exc:
                raise ConflictError(f"Tag already exists: {changes.get('name')}") from exc
        tag = self.get_tag(tag_id)
        if tag is None:
            raise NotFoundError("Tag", tag_id)
        return tag

    def delete_tag(self, tag_id: int) -> bool:
        with self._db.transaction() as conn:
            result = conn.execute(delete(tags).where(tags.c.id == tag_id))
        return result.rowcount > 0

    def get_tags_for_meeting(self, meeting_id: int) -> list[dict]:
        with self._db.transaction() as conn:
            rows = conn.execute(
                select(tags, meeting_tags.c.confidence)
                .join(meeting_tags, meeting_tags.c.tag_id == tags.c.id)
                .where(meeting_tags.c.meeting_id == meeting_id)
                .order_by(tags.c.name)
            ).all()
        return [row_to_dict(row) for row in rows]

    def suggest_tags(self, content: str) -> list[dict]:
        """Ask the generation service for tags, preferring names that already exist.

        Nothing is stored; callers link the tags they accept.
        """
        if not (content or "").strip():
            raise ValidationError("content is required")
        if self._generation is None:
            raise GenerationError("Tag suggestion is not configured")
        try:
            suggested = self._generation.suggest_tags(content, self.list_tag_names())
        except (LLMProviderError, ParsingError) as exc:
            self._logger.error("Tag suggestion failed: %s", exc)
            raise GenerationError(f"Tag suggestion failed: {exc}") from exc
        return [tag.model_dump() for tag in suggested]

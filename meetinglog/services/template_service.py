from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import delete, func, select, update

from meetinglog.errors import NotFoundError, ValidationError
from meetinglog.models import TemplateCreate, TemplateUpdate
from meetinglog.store import Database, row_to_dict
from meetinglog.store.schema import meeting_templates

# Columns that are NOT NULL; an explicit null in an update leaves them unchanged.
_REQUIRED_TEMPLATE_FIELDS = ("name", "template_content", "is_default")

DEFAULT_TEMPLATES = (
    TemplateCreate(
        name="Daily Standup",
        description="Short daily sync on team progress",
        meeting_type="standup",
        is_default=True,
        template_content=(
            "# Daily Standup\n\n"
            "## Date: [date]\n"
            "## Attendees: [names]\n\n"
            "### Done yesterday\n-\n\n"
            "### Plan for today\n-\n\n"
            "### Blockers\n-\n\n"
            "### Other updates\n-\n"
        ),
    ),
    TemplateCreate(
        name="Weekly Retrospective",
        description="Look back on the week and agree on improvements",
        meeting_type="retrospective",
        is_default=True,
        template_content=(
            "# Weekly Retrospective\n\n"
            "## Date: [date]\n"
            "## Attendees: [names]\n\n"
            "### Keep\n-\n\n"
            "### Problem\n-\n\n"
            "### Try\n-\n\n"
            "### Action items\n- [ ]\n- [ ]\n\n"
            "### Topics for next retro\n-\n"
        ),
    ),
    TemplateCreate(
        name="1:1",
        description="One-on-one between a manager and a report",
        meeting_type="one_on_one",
        is_default=True,
        template_content=(
            "# 1:1\n\n"
            "## Date: [date]\n"
            "## Attendees: [manager], [report]\n\n"
            "### Recent work\n-\n\n"
            "### Progress on goals\n-\n\n"
            "### Where help is needed\n-\n\n"
            "### Career and growth\n-\n\n"
            "### Feedback\n-\n\n"
            "### Action items before next 1:1\n- [ ]\n- [ ]\n"
        ),
    ),
    TemplateCreate(
        name="Project Kickoff",
        description="Kickoff for a new project",
        meeting_type="kickoff",
        is_default=True,
        template_content=(
            "# Project Kickoff\n\n"
            "## Project: [name]\n"
            "## Date: [date]\n"
            "## Attendees: [names]\n\n"
            "### Overview\n- Goal:\n- Scope:\n- Key objectives:\n\n"
            "### Timeline\n- Start:\n- Milestones:\n- Target completion:\n\n"
            "### Roles and responsibilities\n-\n\n"
            "### Requirements\n-\n\n"
            "### Risks and dependencies\n-\n\n"
            "### Next steps\n- [ ]\n- [ ]\n"
        ),
    ),
    TemplateCreate(
        name="Brainstorming",
        description="Generate and discuss ideas",
        meeting_type="brainstorming",
        is_default=True,
        template_content=(
            "# Brainstorming Session\n\n"
            "## Topic: [topic]\n"
            "## Date: [date]\n"
            "## Attendees: [names]\n\n"
            "### Goal\n-\n\n"
            "### Ideas\n1.\n2.\n3.\n\n"
            "### Discussion\n-\n\n"
            "### Selected ideas\n-\n\n"
            "### Next steps\n- [ ]\n- [ ]\n"
        ),
    ),
    TemplateCreate(
        name="Sprint Planning",
        description="Plan the work for the next sprint",
        meeting_type="sprint_planning",
        is_default=True,
        template_content=(
            "# Sprint Planning\n\n"
            "## Sprint: [number]\n"
            "## Period: [start] - [end]\n"
            "## Attendees: [names]\n\n"
            "### Sprint goal\n-\n\n"
            "### Stories to complete\n- [ ]\n- [ ]\n\n"
            "### Estimated points: [total]\n\n"
            "### Milestones\n-\n\n"
            "### Risks\n-\n\n"
            "### Dependencies\n-\n"
        ),
    ),
)


class TemplateService:
    """Meeting templates used as extra context for summarization."""

    def __init__(self, db: Database) -> None:
        self._db = db
        self._logger = logging.getLogger("meetinglog.templates")

    def list_templates(self) -> list[dict]:
        with self._db.transaction() as conn:
            rows = conn.execute(
                select(meeting_templates).order_by(
                    meeting_templates.c.is_default.desc(), meeting_templates.c.name.asc()
                )
            ).all()
        return [row_to_dict(row) for row in rows]

    def list_default_templates(self) -> list[dict]:
        with self._db.transaction() as conn:
            rows = conn.execute(
                select(meeting_templates)
                .where(meeting_templates.c.is_default.is_(True))
                .order_by(meeting_templates.c.name.asc())
            ).all()
        return [row_to_dict(row) for row in rows]

    def get_template(self, template_id: int) -> Optional[dict]:
        with self._db.transaction() as conn:
            row = conn.execute(
                select(meeting_templates).where(meeting_templates.c.id == template_id)
            ).first()
        return row_to_dict(row)

    def get_template_content(self, template_id: int) -> str:
        template = self.get_template(template_id)
        if template is None:
            raise NotFoundError("Template", template_id)
        return template["template_content"]

    def create_template(self, payload: TemplateCreate) -> dict:
        with self._db.transaction() as conn:
            result = conn.execute(meeting_templates.insert().values(**payload.model_dump()))
            template_id = result.inserted_primary_key[0]
        self._logger.info("Template created id=%s name=%r", template_id, payload.name)
        return self.get_template(template_id)

    def initialize_default_templates(self) -> list[dict]:
        """Insert the built-in templates whose names are not taken yet.

        Safe to call repeatedly; returns only the templates it created.
        """
        created = []
        with self._db.transaction() as conn:
            existing = set(conn.execute(select(meeting_templates.c.name)).scalars())
            for template in DEFAULT_TEMPLATES:
                if template.name in existing:
                    continue
                result = conn.execute(meeting_templates.insert().values(**template.model_dump()))
                created.append(result.inserted_primary_key[0])
        self._logger.info("Default templates initialized: %d created", len(created))
        return [self.get_template(template_id) for template_id in created]

    def update_template(self, template_id: int, payload: TemplateUpdate) -> dict:
        changes = payload.model_dump(exclude_unset=True)
        for name in _REQUIRED_TEMPLATE_FIELDS:
            if name in changes and changes[name] is None:
                del changes[name]
        if "name" in changes and not changes["name"].strip():
            raise ValidationError("name cannot be empty")
        with self._db.transaction() as conn:
            result = conn.execute(
                update(meeting_templates)
                .where(meeting_templates.c.id == template_id)
                .values(**changes, updated_at=func.current_timestamp())
            )
            if result.rowcount == 0:
                raise NotFoundError("Template", template_id)
        return self.get_template(template_id)

    def delete_template(self, template_id: int) -> bool:
        with self._db.transaction() as conn:
            result = conn.execute(
                delete(meeting_templates).where(meeting_templates.c.id == template_id)
            )
        return result.rowcount > 0

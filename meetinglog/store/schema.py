from __future__ import annotations

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    JSON,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    func,
)

metadata = MetaData()

meeting_templates = Table(
    "meeting_templates",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(200), nullable=False),
    Column("description", Text),
    Column("meeting_type", String(100)),
    Column("template_content", Text, nullable=False),
    Column("is_default", Boolean, nullable=False, default=False),
    Column("created_at", DateTime, nullable=False, server_default=func.current_timestamp()),
    Column("updated_at", DateTime, nullable=False, server_default=func.current_timestamp()),
)

meetings = Table(
    "meetings",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("title", String(500), nullable=False),
    Column("date", Date, nullable=False, index=True),
    Column("start_time", String(20)),
    Column("end_time", String(20)),
    Column("location", String(500)),
    Column("meeting_type", String(100)),
    Column("template_id", Integer, ForeignKey("meeting_templates.id", ondelete="SET NULL")),
    Column("raw_content", Text, nullable=False),
    Column("summary", Text, nullable=False, default=""),
    Column("overview", Text, nullable=False, default=""),
    Column("discussion", Text, nullable=False, default=""),
    Column("decisions", Text, nullable=False, default=""),
    Column("next_steps", Text, nullable=False, default=""),
    Column("status", String(30), nullable=False, default="completed"),
    Column("created_at", DateTime, nullable=False, server_default=func.current_timestamp()),
    Column("updated_at", DateTime, nullable=False, server_default=func.current_timestamp()),
)

meeting_versions = Table(
    "meeting_versions",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("meeting_id", Integer, ForeignKey("meetings.id", ondelete="CASCADE"), nullable=False),
    Column("version_number", Integer, nullable=False),
    Column("title", String(500), nullable=False),
    Column("raw_content", Text, nullable=False),
    Column("summary", Text, nullable=False, default=""),
    Column("overview", Text, nullable=False, default=""),
    Column("discussion", Text, nullable=False, default=""),
    Column("decisions", Text, nullable=False, default=""),
    Column("next_steps", Text, nullable=False, default=""),
    Column("change_summary", Text, nullable=False, default=""),
    Column("created_at", DateTime, nullable=False, server_default=func.current_timestamp()),
    UniqueConstraint("meeting_id", "version_number", name="uq_meeting_versions_number"),
)

participants = Table(
    "participants",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(200), nullable=False, unique=True),
    Column("created_at", DateTime, nullable=False, server_default=func.current_timestamp()),
)

tags = Table(
    "tags",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(100), nullable=False, unique=True),
    Column("color", String(20)),
    Column("description", Text),
    Column("usage_count", Integer, nullable=False, default=0),
    Column("is_ai_suggested", Boolean, nullable=False, default=False),
    Column("created_at", DateTime, nullable=False, server_default=func.current_timestamp()),
)

action_items = Table(
    "action_items",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("meeting_id", Integer, ForeignKey("meetings.id", ondelete="CASCADE"), nullable=False),
    Column("description", Text, nullable=False),
    Column("assignee_id", Integer, ForeignKey("participants.id", ondelete="SET NULL")),
    Column("priority", String(10), nullable=False, default="medium"),
    Column("status", String(20), nullable=False, default="pending"),
    Column("due_date", Date),
    Column("completion_date", DateTime),
    Column("notes", Text),
    Column("created_at", DateTime, nullable=False, server_default=func.current_timestamp()),
    Column("updated_at", DateTime, nullable=False, server_default=func.current_timestamp()),
)

meeting_participants = Table(
    "meeting_participants",
    metadata,
    Column("meeting_id", Integer, ForeignKey("meetings.id", ondelete="CASCADE"), nullable=False),
    Column("participant_id", Integer, ForeignKey("participants.id", ondelete="CASCADE"), nullable=False),
    UniqueConstraint("meeting_id", "participant_id", name="uq_meeting_participants"),
)

meeting_tags = Table(
    "meeting_tags",
    metadata,
    Column("meeting_id", Integer, ForeignKey("meetings.id", ondelete="CASCADE"), nullable=False),
    Column("tag_id", Integer, ForeignKey("tags.id", ondelete="CASCADE"), nullable=False),
    Column("confidence", Float, nullable=False, default=1.0),
    UniqueConstraint("meeting_id", "tag_id", name="uq_meeting_tags"),
)

saved_searches = Table(
    "saved_searches",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(200), nullable=False),
    Column("query", Text, nullable=False, default=""),
    Column("filters", JSON, nullable=False),
    Column("created_at", DateTime, nullable=False, server_default=func.current_timestamp()),
    Column("last_used", DateTime, nullable=False, server_default=func.current_timestamp()),
)

"""Canonical input models for the meeting pipeline.

Each operation takes exactly one of these; routers bind request bodies to
them directly and services never look at alternate field spellings.
"""
from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ActionItemStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


PRIORITY_RANK = {Priority.HIGH.value: 0, Priority.MEDIUM.value: 1, Priority.LOW.value: 2}


class MeetingCreate(BaseModel):
    title: str = ""
    date: Optional[dt.date] = None
    content: str = ""
    participants: list[str] = Field(default_factory=list)
    template_id: Optional[int] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    location: Optional[str] = None
    meeting_type: Optional[str] = None


class MeetingUpdate(BaseModel):
    title: Optional[str] = None
    date: Optional[dt.date] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    location: Optional[str] = None
    meeting_type: Optional[str] = None
    status: Optional[str] = None
    raw_content: Optional[str] = None
    # Editing the summary re-derives all four sections from it.
    summary: Optional[str] = None
    change_summary: Optional[str] = None


class MeetingFilters(BaseModel):
    search: Optional[str] = None
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    participant_id: Optional[int] = None
    tag_id: Optional[int] = None
    status: Optional[str] = None
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=200)


class ActionItemCreate(BaseModel):
    description: str = ""
    meeting_id: Optional[int] = None
    assignee: Optional[str] = None
    assignee_id: Optional[int] = None
    priority: Priority = Priority.MEDIUM
    status: ActionItemStatus = ActionItemStatus.PENDING
    due_date: Optional[dt.date] = None
    notes: Optional[str] = None


class ActionItemUpdate(BaseModel):
    description: Optional[str] = None
    assignee: Optional[str] = None
    assignee_id: Optional[int] = None
    priority: Optional[Priority] = None
    status: Optional[ActionItemStatus] = None
    due_date: Optional[dt.date] = None
    notes: Optional[str] = None


class ActionItemFilters(BaseModel):
    status: Optional[ActionItemStatus] = None
    assignee_id: Optional[int] = None
    priority: Optional[Priority] = None
    meeting_id: Optional[int] = None
    overdue: bool = False


class TagCreate(BaseModel):
    name: str = Field(..., min_length=1)
    color: Optional[str] = None
    description: Optional[str] = None


class TagUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    color: Optional[str] = None
    description: Optional[str] = None


class TemplateCreate(BaseModel):
    name: str = Field(..., min_length=1)
    template_content: str = Field(..., min_length=1)
    description: Optional[str] = None
    meeting_type: Optional[str] = None
    is_default: bool = False


class TemplateUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    template_content: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    meeting_type: Optional[str] = None
    is_default: Optional[bool] = None


class ExtractedActionItem(BaseModel):
    """One action item as reported by the generation service."""

    description: str = Field(..., min_length=1)
    assignee: Optional[str] = None
    priority: Priority = Priority.MEDIUM
    due_date: Optional[dt.date] = None

    @field_validator("description", mode="before")
    @classmethod
    def _strip_description(cls, value):
        return str(value).strip() if value is not None else value

    @field_validator("assignee", mode="before")
    @classmethod
    def _blank_assignee(cls, value):
        if value is None:
            return None
        value = str(value).strip()
        if not value or value.lower() in ("null", "none", "n/a"):
            return None
        return value

    @field_validator("priority", mode="before")
    @classmethod
    def _default_priority(cls, value):
        value = str(getattr(value, "value", value) or "").strip().lower()
        return value if value in PRIORITY_RANK else Priority.MEDIUM.value

    @field_validator("due_date", mode="before")
    @classmethod
    def _lenient_due_date(cls, value):
        if not value:
            return None
        try:
            return dt.date.fromisoformat(str(value).strip()[:10])
        except ValueError:
            return None


class SuggestedTag(BaseModel):
    """One tag proposed by the generation service."""

    name: str = Field(..., min_length=1)
    confidence: float = 1.0

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value):
        return str(value).strip().lstrip("#").strip() if value is not None else value

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value):
        if value is None:
            return 1.0
        try:
            value = float(value)
        except (TypeError, ValueError):
            return 1.0
        return min(max(value, 0.0), 1.0)


class TemplateMeetingCreate(BaseModel):
    """A draft meeting started from a template; ``content`` defaults to the template body."""

    title: str = ""
    date: Optional[dt.date] = None
    content: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    location: Optional[str] = None


class AdvancedSearchFilters(BaseModel):
    date_from: Optional[dt.date] = None
    date_to: Optional[dt.date] = None
    # Substring of a participant name.
    participants: Optional[str] = None
    tag_id: Optional[int] = None


class SavedSearchCreate(BaseModel):
    name: str = Field(..., min_length=1)
    query: str = ""
    filters: AdvancedSearchFilters = Field(default_factory=AdvancedSearchFilters)

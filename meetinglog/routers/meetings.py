from typing import Optional

import datetime as dt
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from meetinglog.errors import MeetingLogError
from meetinglog.models import MeetingCreate, MeetingFilters, MeetingUpdate, TemplateMeetingCreate
from meetinglog.routers.http_errors import to_http_exception
from meetinglog.services.entity_resolver import EntityResolver
from meetinglog.services.meeting_service import MeetingService


class LinkParticipantRequest(BaseModel):
    name: str = Field(..., min_length=1)


class LinkTagRequest(BaseModel):
    name: str = Field(..., min_length=1)
    confidence: float = Field(1.0, ge=0.0, le=1.0)


def _meeting_filters(
    search: Optional[str] = None,
    start_date: Optional[dt.date] = None,
    end_date: Optional[dt.date] = None,
    participant_id: Optional[int] = None,
    tag_id: Optional[int] = None,
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
) -> MeetingFilters:
    return MeetingFilters(
        search=search,
        start_date=start_date,
        end_date=end_date,
        participant_id=participant_id,
        tag_id=tag_id,
        status=status,
        page=page,
        limit=limit,
    )


def create_meetings_router(meeting_service: MeetingService, resolver: EntityResolver) -> APIRouter:
    router = APIRouter(tags=["meetings"])
    logger = logging.getLogger("meetinglog.api.meetings")

    @router.get("/api/meetings")
    def list_meetings(filters: MeetingFilters = Depends(_meeting_filters)) -> dict:
        return meeting_service.list_meetings(filters)

    @router.post("/api/meetings", status_code=201)
    def create_meeting(payload: MeetingCreate) -> dict:
        logger.info("Meeting create: title=%r participants=%d", payload.title, len(payload.participants))
        try:
            return meeting_service.create_meeting(payload)
        except MeetingLogError as exc:
            raise to_http_exception(exc, logger) from exc

    @router.post("/api/templates/{template_id}/meetings", status_code=201)
    def create_meeting_from_template(template_id: int, payload: TemplateMeetingCreate) -> dict:
        logger.info("Meeting create from template: template_id=%s title=%r", template_id, payload.title)
        try:
            return meeting_service.create_meeting_from_template(template_id, payload)
        except MeetingLogError as exc:
            raise to_http_exception(exc, logger) from exc

    @router.get("/api/meetings/{meeting_id}")
    def get_meeting(meeting_id: int) -> dict:
        meeting = meeting_service.get_meeting(meeting_id)
        if not meeting:
            raise HTTPException(status_code=404, detail="Meeting not found")
        return meeting

    @router.patch("/api/meetings/{meeting_id}")
    def update_meeting(meeting_id: int, payload: MeetingUpdate) -> dict:
        logger.info("Meeting update: id=%s fields=%s", meeting_id, sorted(payload.model_fields_set))
        try:
            return meeting_service.update_meeting(meeting_id, payload)
        except MeetingLogError as exc:
            raise to_http_exception(exc, logger) from exc

    @router.delete("/api/meetings/{meeting_id}")
    def delete_meeting(meeting_id: int) -> dict:
        if not meeting_service.delete_meeting(meeting_id):
            raise HTTPException(status_code=404, detail="Meeting not found")
        return {"deleted": True, "id": meeting_id}

    @router.get("/api/meetings/{meeting_id}/versions")
    def get_version_history(meeting_id: int) -> list[dict]:
        try:
            return meeting_service.get_version_history(meeting_id)
        except MeetingLogError as exc:
            raise to_http_exception(exc, logger) from exc

    @router.post("/api/meetings/{meeting_id}/versions/{version_number}/restore")
    def restore_version(meeting_id: int, version_number: int) -> dict:
        logger.info("Meeting restore: id=%s version=%s", meeting_id, version_number)
        try:
            return meeting_service.restore_version(meeting_id, version_number)
        except MeetingLogError as exc:
            raise to_http_exception(exc, logger) from exc

    @router.post("/api/meetings/{meeting_id}/participants")
    def link_participant(meeting_id: int, payload: LinkParticipantRequest) -> dict:
        try:
            return resolver.resolve_and_link_participant(meeting_id, payload.name)
        except MeetingLogError as exc:
            raise to_http_exception(exc, logger) from exc

    @router.post("/api/meetings/{meeting_id}/tags")
    def link_tag(meeting_id: int, payload: LinkTagRequest) -> dict:
        try:
            return resolver.resolve_and_link_tag(meeting_id, payload.name, confidence=payload.confidence)
        except MeetingLogError as exc:
            raise to_http_exception(exc, logger) from exc

    return router

import logging

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from meetinglog.errors import MeetingLogError
from meetinglog.models import TagCreate, TagUpdate
from meetinglog.routers.http_errors import to_http_exception
from meetinglog.services.tag_service import TagService


class TagSuggestRequest(BaseModel):
    content: str = ""


def create_tags_router(tag_service: TagService) -> APIRouter:
    router = APIRouter(tags=["tags"])
    logger = logging.getLogger("meetinglog.api.tags")

    @router.get("/api/tags")
    def list_tags() -> list[dict]:
        return tag_service.list_tags()

    @router.post("/api/tags", status_code=201)
    def create_tag(payload: TagCreate) -> dict:
        try:
            return tag_service.create_tag(payload)
        except MeetingLogError as exc:
            raise to_http_exception(exc, logger) from exc

    @router.post("/api/tags/suggest")
    def suggest_tags(payload: TagSuggestRequest) -> dict:
        try:
            return {"tags": tag_service.suggest_tags(payload.content)}
        except MeetingLogError as exc:
            raise to_http_exception(exc, logger) from exc

    @router.get("/api/tags/{tag_id}")
    def get_tag(tag_id: int) -> dict:
        tag = tag_service.get_tag(tag_id)
        if not tag:
            raise HTTPException(status_code=404, detail="Tag not found")
        return tag

    @router.patch("/api/tags/{tag_id}")
    def update_tag(tag_id: int, payload: TagUpdate) -> dict:
        try:
            return tag_service.update_tag(tag_id, payload)
        except MeetingLogError as exc:
            raise to_http_exception(exc, logger) from exc

    @router.delete("/api/tags/{tag_id}")
    def delete_tag(tag_id: int) -> dict:
        if not tag_service.delete_tag(tag_id):
            raise HTTPException(status_code=404, detail="Tag not found")
        return {"deleted": True, "id": tag_id}

    @router.get("/api/meetings/{meeting_id}/tags")
    def get_meeting_tags(meeting_id: int) -> list[dict]:
        return tag_service.get_tags_for_meeting(meeting_id)

    return router

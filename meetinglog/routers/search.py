"""Search router: answer questions over stored meetings, plus advanced and saved searches."""

import logging

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field

from meetinglog.errors import MeetingLogError
from meetinglog.models import AdvancedSearchFilters, SavedSearchCreate
from meetinglog.routers.http_errors import to_http_exception
from meetinglog.services.search_service import SearchService


class SearchRequest(BaseModel):
    question: str = ""


class AdvancedSearchRequest(BaseModel):
    query: str = ""
    filters: AdvancedSearchFilters = Field(default_factory=AdvancedSearchFilters)


def create_search_router(search_service: SearchService) -> APIRouter:
    router = APIRouter(tags=["search"])
    logger = logging.getLogger("meetinglog.api.search")

    def _search(question: str) -> dict:
        try:
            return search_service.search(question)
        except MeetingLogError as exc:
            raise to_http_exception(exc, logger) from exc

    @router.post("/api/search")
    def search_post(payload: SearchRequest) -> dict:
        return _search(payload.question)

    @router.get("/api/search")
    def search_get(q: str = Query("", description="Question about past meetings")) -> dict:
        """Answer a question and list the most related meetings."""
        return _search(q)

    @router.post("/api/search/advanced")
    def advanced_search(payload: AdvancedSearchRequest) -> dict:
        return {"meetings": search_service.advanced_search(payload.query, payload.filters)}

    @router.get("/api/search/saved")
    def list_saved_searches() -> list[dict]:
        return search_service.get_saved_searches()

    @router.post("/api/search/saved", status_code=201)
    def save_search(payload: SavedSearchCreate) -> dict:
        logger.info("Saved search create: name=%r", payload.name)
        try:
            return search_service.save_search(payload)
        except MeetingLogError as exc:
            raise to_http_exception(exc, logger) from exc

    @router.post("/api/search/saved/{search_id}/run")
    def run_saved_search(search_id: int) -> dict:
        try:
            return search_service.run_saved_search(search_id)
        except MeetingLogError as exc:
            raise to_http_exception(exc, logger) from exc

    @router.delete("/api/search/saved/{search_id}")
    def delete_saved_search(search_id: int) -> dict:
        if not search_service.delete_saved_search(search_id):
            raise HTTPException(status_code=404, detail="Saved search not found")
        return {"deleted": True, "id": search_id}

    return router

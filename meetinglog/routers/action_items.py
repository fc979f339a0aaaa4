from typing import Optional

import logging

from fastapi import APIRouter, Depends, HTTPException

from meetinglog.errors import MeetingLogError
from meetinglog.models import (
    ActionItemCreate,
    ActionItemFilters,
    ActionItemStatus,
    ActionItemUpdate,
    Priority,
)
from meetinglog.routers.http_errors import to_http_exception
from meetinglog.services.action_items import ActionItemService


def _action_item_filters(
    status: Optional[ActionItemStatus] = None,
    assignee_id: Optional[int] = None,
    priority: Optional[Priority] = None,
    meeting_id: Optional[int] = None,
    overdue: bool = False,
) -> ActionItemFilters:
    return ActionItemFilters(
        status=status,
        assignee_id=assignee_id,
        priority=priority,
        meeting_id=meeting_id,
        overdue=overdue,
    )


def create_action_items_router(action_item_service: ActionItemService) -> APIRouter:
    router = APIRouter(tags=["action-items"])
    logger = logging.getLogger("meetinglog.api.action_items")

    @router.get("/api/action-items")
    def list_action_items(filters: ActionItemFilters = Depends(_action_item_filters)) -> list[dict]:
        return action_item_service.list_action_items(filters)

    @router.get("/api/action-items/summary")
    def action_item_summary() -> dict:
        return action_item_service.get_summary()

    @router.post("/api/action-items", status_code=201)
    def create_action_item(payload: ActionItemCreate) -> dict:
        try:
            return action_item_service.create_action_item(payload)
        except MeetingLogError as exc:
            raise to_http_exception(exc, logger) from exc

    @router.get("/api/action-items/{item_id}")
    def get_action_item(item_id: int) -> dict:
        item = action_item_service.get_action_item(item_id)
        if not item:
            raise HTTPException(status_code=404, detail="Action item not found")
        return item

    @router.patch("/api/action-items/{item_id}")
    def update_action_item(item_id: int, payload: ActionItemUpdate) -> dict:
        try:
            return action_item_service.update_action_item(item_id, payload)
        except MeetingLogError as exc:
            raise to_http_exception(exc, logger) from exc

    @router.delete("/api/action-items/{item_id}")
    def delete_action_item(item_id: int) -> dict:
        if not action_item_service.delete_action_item(item_id):
            raise HTTPException(status_code=404, detail="Action item not found")
        return {"deleted": True, "id": item_id}

    return router

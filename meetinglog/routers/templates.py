import logging

from fastapi import APIRouter, HTTPException

from meetinglog.errors import MeetingLogError
from meetinglog.models import TemplateCreate, TemplateUpdate
from meetinglog.routers.http_errors import to_http_exception
from meetinglog.services.template_service import TemplateService


def create_templates_router(template_service: TemplateService) -> APIRouter:
    router = APIRouter(tags=["templates"])
    logger = logging.getLogger("meetinglog.api.templates")

    @router.get("/api/templates")
    def list_templates() -> list[dict]:
        return template_service.list_templates()

    @router.post("/api/templates", status_code=201)
    def create_template(payload: TemplateCreate) -> dict:
        logger.info("Template create: name=%r", payload.name)
        return template_service.create_template(payload)

    @router.get("/api/templates/defaults")
    def list_default_templates() -> list[dict]:
        return template_service.list_default_templates()

    @router.post("/api/templates/initialize-defaults")
    def initialize_default_templates() -> dict:
        created = template_service.initialize_default_templates()
        return {"created": len(created), "templates": created}

    @router.get("/api/templates/{template_id}")
    def get_template(template_id: int) -> dict:
        template = template_service.get_template(template_id)
        if not template:
            raise HTTPException(status_code=404, detail="Template not found")
        return template

    @router.patch("/api/templates/{template_id}")
    def update_template(template_id: int, payload: TemplateUpdate) -> dict:
        try:
            return template_service.update_template(template_id, payload)
        except MeetingLogError as exc:
            raise to_http_exception(exc, logger) from exc

    @router.delete("/api/templates/{template_id}")
    def delete_template(template_id: int) -> dict:
        if not template_service.delete_template(template_id):
            raise HTTPException(status_code=404, detail="Template not found")
        return {"deleted": True, "id": template_id}

    return router

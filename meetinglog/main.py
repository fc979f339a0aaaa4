import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from meetinglog.context import AppContext
from meetinglog.routers.action_items import create_action_items_router
from meetinglog.routers.meetings import create_meetings_router
from meetinglog.routers.search import create_search_router
from meetinglog.routers.tags import create_tags_router
from meetinglog.routers.templates import create_templates_router
from meetinglog.services.action_items import ActionItemService
from meetinglog.services.crash_logging import disable_crash_logging, enable_crash_logging
from meetinglog.services.entity_resolver import EntityResolver
from meetinglog.services.generation import GenerationService
from meetinglog.services.llm import LLMProvider
from meetinglog.services.logging_setup import configure_logging
from meetinglog.services.meeting_service import MeetingService
from meetinglog.services.search_service import SearchService
from meetinglog.services.tag_service import TagService
from meetinglog.services.template_service import TemplateService
from meetinglog.services.version_store import VersionStore
from meetinglog.store import Database


def _read_version() -> str:
    version_path = os.path.join(os.path.dirname(os.path.dirname(__file__)), "VERSION.txt")
    version = "v0.0.0"
    if os.path.exists(version_path):
        with open(version_path, "r", encoding="utf-8") as version_file:
            version = version_file.read().strip() or version
    return version


def create_app(
    ctx: Optional[AppContext] = None,
    provider: Optional[LLMProvider] = None,
    setup_logging: bool = True,
) -> FastAPI:
    ctx = ctx or AppContext.from_environment()
    ctx.ensure_dirs()
    if setup_logging:
        configure_logging(ctx.logs_dir)
        enable_crash_logging(ctx.logs_dir)
    logger = logging.getLogger("meetinglog.boot")
    logger.info("Boot: starting create_app data_dir=%s", ctx.data_dir)

    db = Database(ctx.database_url)
    db.open()
    logger.info("Boot: database ready")

    resolver = EntityResolver(db)
    versions = VersionStore(db)
    templates = TemplateService(db)
    generation = GenerationService(ctx.config_path, provider=provider)
    tag_service = TagService(db, generation)
    meeting_service = MeetingService(db, generation, resolver, versions, templates, tag_service)
    action_item_service = ActionItemService(db, resolver, orphan_policy=ctx.orphan_policy)
    search_service = SearchService(db, generation)
    logger.info("Boot: services ready orphan_policy=%s", ctx.orphan_policy)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        logger.info("Shutdown: closing database")
        db.close()
        if setup_logging:
            disable_crash_logging()

    app = FastAPI(title="Meetinglog", version="0.1.0", lifespan=lifespan)
    app.state.version = _read_version()
    app.state.ctx = ctx
    app.state.db = db

    app.include_router(create_meetings_router(meeting_service, resolver))
    app.include_router(create_action_items_router(action_item_service))
    app.include_router(create_tags_router(tag_service))
    app.include_router(create_templates_router(templates))
    app.include_router(create_search_router(search_service))
    logger.info("Boot: routers mounted")

    @app.get("/api/health")
    def health() -> dict:
        return {"status": "ok", "version": app.state.version}

    logger.info("Boot: create_app complete")
    return app

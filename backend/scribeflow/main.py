# scribeflow/main.py
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from scribeflow.config import settings
from scribeflow.core.db import init_db, close_db
from scribeflow.core.bootstrap import ensure_default_super_admin, build_workflow_services
from scribeflow.core.pubsub import channel

from scribeflow.api.v1.routers import (
    analytics,
    auth,
    batches,
    export,
    guidelines,
    review,
    segments,
    users,
)
from scribeflow.api.v1.routers.ws_status import router as ws_status_router

logger = logging.getLogger("uvicorn.error")

app = FastAPI(title=settings.APP_NAME)

# CORS (with Cookie)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

def _publish_draft_status(status) -> None:
    channel.publish_nowait(status.segment_id, {"type": "draft-status", **status.to_dict()})

def install_workflow(target: FastAPI, services) -> None:
    """Attach workflow services to the app and forward draft status to WebSocket subscribers."""
    services.autosave.subscribe(_publish_draft_status)
    target.state.workflow = services

@app.on_event("startup")
async def on_startup():
    await init_db()
    # Ensure there's a super-admin account on first run
    await ensure_default_super_admin(settings)
    # Tests install their own services before the app starts
    if getattr(app.state, "workflow", None) is None:
        install_workflow(app, build_workflow_services(settings))
    logger.info("[startup] %s ready (env=%s)", settings.APP_NAME, settings.env)

@app.on_event("shutdown")
async def on_shutdown():
    services = getattr(app.state, "workflow", None)
    if services is not None:
        # Pending drafts are dropped, in-flight saves finish
        await services.autosave.aclose()
    await close_db()

# REST
app.include_router(auth.router, prefix="/api/v1")
app.include_router(segments.router, prefix="/api/v1")
app.include_router(review.router, prefix="/api/v1")
app.include_router(batches.router, prefix="/api/v1")
app.include_router(export.router, prefix="/api/v1")
app.include_router(users.router, prefix="/api/v1")
app.include_router(analytics.router, prefix="/api/v1")
app.include_router(guidelines.router, prefix="/api/v1")

# WebSocket
app.include_router(ws_status_router)

@app.get("/healthz")
def healthz():
    return {"ok": True}

# scribeflow/core/bootstrap.py
"""
Bootstrap module for application initialization.
Creates the default super-admin on first startup and builds the workflow
services the routers share.
"""
import logging

from scribeflow.config import Settings
from scribeflow.core.security import hash_password
from scribeflow.models.user import User
from scribeflow.services.factory import WorkflowServices, build_services
from scribeflow.services.identity import TortoiseIdentityProvider
from scribeflow.services.persistence import MemorySegmentSink, TortoiseSegmentSink

logger = logging.getLogger("uvicorn.error")

async def ensure_default_super_admin(settings: Settings) -> None:
    """
    If no super-admin exists, create one from the environment.
    Only takes effect when:
      - there is currently no user with role="super-admin"
      - and SUPERADMIN_PASSWORD is set (no default weak password)
    """
    if await User.filter(role="super-admin").exists():
        return

    if not settings.superadmin_password:
        logger.warning("[bootstrap] No super-admin present, but SUPERADMIN_PASSWORD not set -> skip creating one.")
        return

    email = settings.superadmin_email.strip().lower()
    if await User.filter(email=email).exists():
        # Email taken by a lower role; roles are immutable, so don't touch it
        logger.warning("[bootstrap] SUPERADMIN_EMAIL=%s already belongs to another user -> skip.",
                       email)
        return

    u = await User.create(
        name=settings.superadmin_name,
        email=email,
        password_hash=hash_password(settings.superadmin_password),
        role="super-admin",
    )
    logger.warning("[bootstrap] Created default super-admin -> email=%s id=%s", u.email, u.id)

def build_workflow_services(settings: Settings) -> WorkflowServices:
    """Wire the workflow services against the users table and the configured sink."""
    if settings.segment_sink == "memory":
        sink = MemorySegmentSink()
    else:
        sink = TortoiseSegmentSink()
    logger.info("[bootstrap] segment sink=%s autosave delay=%sms", type(sink).__name__, settings.autosave_delay_ms)
    return build_services(
        identity=TortoiseIdentityProvider(),
        sink=sink,
        delay_ms=settings.autosave_delay_ms,
    )

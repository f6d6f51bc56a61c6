"""
ARQ background task: move pending invites past their expiry to expired.

Runs hourly for both team and project invites. Only ever touches rows
still pending, so it is safe to run alongside request traffic.
"""

from __future__ import annotations

import structlog
from arq import cron
from arq.connections import RedisSettings

from app.core.config import get_settings
from app.core.database import get_session_context
from app.core.logging_config import configure_logging
from app.services.invites import project_invites, team_invites

log = structlog.get_logger()


async def expire_stale_invites(ctx: dict) -> int:
    """Expire stale invites of both kinds.

    Returns the number of invites expired.
    """
    async with get_session_context() as session:
        count = await team_invites.expire_old(session)
        count += await project_invites.expire_old(session)

    if count:
        log.info("invite_expiry.batch_expired", count=count)
    return count


async def startup(ctx: dict) -> None:
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)
    log.info("worker.started")


# ARQ worker settings
class WorkerSettings:
    """ARQ worker configuration."""

    functions = [expire_stale_invites]
    cron_jobs = [
        # Every hour, on the hour
        cron(expire_stale_invites, minute=0),
    ]
    on_startup = startup
    redis_settings = RedisSettings.from_dsn(get_settings().redis_url)

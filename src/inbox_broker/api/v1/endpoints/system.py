"""System and health endpoints for the Inbox Broker API."""

from __future__ import annotations

import time

from fastapi import APIRouter
from starlette.concurrency import run_in_threadpool

from ..dependencies import BrokerDep

router = APIRouter(prefix="/system", tags=["system"])


@router.get("/config")
async def get_public_config(broker: BrokerDep) -> dict[str, object]:
    """Return a sanitized snapshot of public runtime configuration.

    Excludes connection strings; suitable for dashboards and tooling.
    """
    config = broker.config
    return {
        "app": {
            "name": config.app_name,
            "version": config.app_version,
            "debug": config.debug,
        },
        "limits": {
            "query_default": config.query_default_limit,
            "view_default": config.view_default_limit,
            "query_max": config.query_max_limit,
            "list_inboxes": config.list_inboxes_limit,
        },
        "subscriptions": {
            "heartbeat_seconds": config.subscribe_heartbeat_seconds,
            "queue_size": config.subscriber_queue_size,
        },
    }


@router.get("/health")
async def get_system_health(broker: BrokerDep) -> dict[str, object]:
    """Health check covering the database and the fan-out hub.

    Returns:
        Dictionary with overall status, component health and version info
    """
    db_healthy = await run_in_threadpool(broker.ping)
    return {
        "status": "healthy" if db_healthy else "unhealthy",
        "timestamp": int(time.time()),
        "components": {
            "database": "healthy" if db_healthy else "unhealthy",
            "fanout": {"subscribers": broker.hub.subscriber_count()},
        },
        "version": broker.config.app_version,
    }

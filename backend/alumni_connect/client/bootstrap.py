"""
Process start-up for the client core.

Builds the data service client and the session store from settings and
restores any previous session before UI surfaces render role-gated content.

    async with session_lifespan() as store:
        if await guard_page(store, "admin"):
            ...
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx

from alumni_connect.client.authorization import can_view_page
from alumni_connect.client.data_service import DataServiceClient
from alumni_connect.client.session_store import SessionStore
from alumni_connect.core.config import Settings, settings as default_settings
from alumni_connect.core.logging_config import configure_logging

logger = logging.getLogger(__name__)


def create_session_store(
    settings: Optional[Settings] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> SessionStore:
    """Build a store around a client configured from ``settings``."""
    client = DataServiceClient.from_settings(settings or default_settings, transport=transport)
    return SessionStore(client)


async def bootstrap_session(
    settings: Optional[Settings] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> SessionStore:
    """Create the process-wide store and run restore_session() to completion."""
    store = create_session_store(settings, transport=transport)
    snapshot = await store.restore_session()
    logger.info("Session ready: %s", snapshot.state.value)
    return store


@asynccontextmanager
async def session_lifespan(
    settings: Optional[Settings] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AsyncIterator[SessionStore]:
    """Restore the session on entry; detach the store and close the client on exit."""
    configure_logging((settings or default_settings).LOG_LEVEL)
    store = await bootstrap_session(settings, transport=transport)
    try:
        yield store
    finally:
        await store.close()
        await store.client.close()


async def guard_page(store: SessionStore, page: str) -> bool:
    """Wait for the session to settle, then decide whether ``page`` may render."""
    snapshot = await store.wait_until_ready()
    return can_view_page(page, snapshot)

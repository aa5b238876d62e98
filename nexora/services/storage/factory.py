"""
Backend selection.

The API base URL is read once, here. Everything downstream receives an
already-chosen FinanceGateway.
"""

from typing import Optional

import structlog

from nexora.config import Settings, get_settings
from nexora.services.storage.interface import FinanceGateway
from nexora.services.storage.key_value import JsonFileStore, KeyValueStore
from nexora.services.storage.local import LocalFinanceGateway
from nexora.services.storage.remote import ApiClient, RemoteFinanceGateway
from nexora.services.storage.session import SessionStore

logger = structlog.get_logger(__name__)


def create_gateway(
    settings: Optional[Settings] = None,
    store: Optional[KeyValueStore] = None,
) -> FinanceGateway:
    """
    Build the gateway for the current configuration.

    Args:
        settings: Defaults to get_settings()
        store: Key-value store for the session (both modes) and the data
               (demo mode). Defaults to the JSON file from settings.
    """
    settings = settings or get_settings()
    if store is None:
        store = JsonFileStore(settings.local_storage.resolved_path)

    session = SessionStore(store)
    api = settings.api

    if api.is_configured:
        logger.info("gateway_selected", mode="remote", base_url=api.base_url)
        return RemoteFinanceGateway(ApiClient(api.base_url, session), session)

    logger.info("gateway_selected", mode="demo")
    return LocalFinanceGateway(store, session)

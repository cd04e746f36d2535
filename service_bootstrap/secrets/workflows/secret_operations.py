"""Workflow for resolving startup secrets into process configuration."""
import asyncio
import logging
import traceback
from typing import Any, Callable, Dict, List, Optional, Sequence

from ...errors import ConfigError, HostedWithoutSecretStoreError
from ...log import log_context
from ..domains.config_store import ConfigStore
from ..domains.gcp_client import CredentialsProvider, GCPSecretStore
from ..domains.models import (
    GCP_PROJECT_KEY,
    HOSTING_MARKER_KEY,
    SECRET_KEYS,
    SECRET_MANAGER_URL_KEY,
    FetchOutcome,
    to_secret_name,
)

logger = logging.getLogger(__name__)

# (url, credentials_provider, project_override) -> store with async get_secret/close
StoreFactory = Callable[[str, Optional[CredentialsProvider], Optional[str]], Any]

NOT_SET = "!!!NOT SET!!!"


def describe_error(error: BaseException) -> str:
    """Traceback text for an exception, falling back to its message."""
    text = "".join(traceback.format_exception(type(error), error, error.__traceback__)).rstrip()
    return text or str(error)


def error_context(error: BaseException) -> Dict[str, str]:
    return {
        "name": type(error).__name__,
        "message": str(error),
        "stack": describe_error(error),
    }


async def _fetch_key(store: Any, config: ConfigStore, key: str) -> FetchOutcome:
    secret_name = to_secret_name(key)
    try:
        value = await store.get_secret(secret_name)
    except Exception as e:
        return FetchOutcome.failed(key, describe_error(e))

    config.set(key, value)
    return FetchOutcome.resolved(key)


async def _close_store(store: Any) -> None:
    try:
        await store.close()
    except Exception as e:
        logger.warning(f"Failed to close secret store client: {e}")


async def resolve_secrets(
    config: ConfigStore,
    keys: Sequence[str] = SECRET_KEYS,
    store_factory: Optional[StoreFactory] = None,
    credentials_provider: Optional[CredentialsProvider] = None,
) -> List[FetchOutcome]:
    """
    Fetch every key from the secret store and write the values into config.

    Args:
        config: Process configuration; resolved values are written into it
        keys: Configuration keys to fetch, in reporting order
        store_factory: Builds the store client (GCPSecretStore.from_url by default)
        credentials_provider: Ambient credential discovery passed to the factory

    Returns:
        One FetchOutcome per key, in ``keys`` order. Empty when no secret store
        is configured on a local machine, or when the fan-in itself fails.

    Raises:
        HostedWithoutSecretStoreError: If no store is configured on managed hosting
        ConfigError: If the store URL is malformed

    Behavior:
        - All fetches are issued at once and awaited together
        - A failed fetch leaves its key untouched and never stops the others
        - No retries and no timeouts
    """
    url = config.get(SECRET_MANAGER_URL_KEY)
    if not url:
        log_context(
            logger,
            logging.WARNING,
            f"No value set for {SECRET_MANAGER_URL_KEY}, must therefore be running on a local dev machine.",
            {SECRET_MANAGER_URL_KEY: NOT_SET},
        )
        if HOSTING_MARKER_KEY in config:
            raise HostedWithoutSecretStoreError(SECRET_MANAGER_URL_KEY, HOSTING_MARKER_KEY)
        return []

    factory = store_factory or GCPSecretStore.from_url
    store = factory(url, credentials_provider, config.get(GCP_PROJECT_KEY))

    try:
        outcomes = list(await asyncio.gather(*(_fetch_key(store, config, key) for key in keys)))
    except Exception as e:
        # Per-key failures are already captured; this is the collaborator misbehaving.
        log_context(logger, logging.ERROR, "Failed to fetch secret(s).", {"error": error_context(e)})
        return []
    finally:
        await _close_store(store)

    log_context(logger, logging.DEBUG, "Set env vars", {"result": [str(o) for o in outcomes]})
    return outcomes


async def fetch_secret(
    config: ConfigStore,
    key: str,
    store_factory: Optional[StoreFactory] = None,
    credentials_provider: Optional[CredentialsProvider] = None,
) -> str:
    """
    Fetch a single configuration key from the secret store without touching config.

    Raises:
        ConfigError: If no secret store URL is configured
    """
    url = config.get(SECRET_MANAGER_URL_KEY)
    if not url:
        raise ConfigError(f"{SECRET_MANAGER_URL_KEY} is not set")

    factory = store_factory or GCPSecretStore.from_url
    store = factory(url, credentials_provider, config.get(GCP_PROJECT_KEY))
    try:
        return await store.get_secret(to_secret_name(key))
    finally:
        await _close_store(store)

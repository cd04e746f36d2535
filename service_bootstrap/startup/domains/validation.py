"""Presence checks for mandatory configuration."""
import logging
from typing import Dict, List, Sequence, Tuple

from ...errors import MissingRequiredConfigurationError
from ...log import log_context
from ...secrets.domains.config_store import ConfigStore
from ...secrets.domains.models import SECRET_MANAGER_URL_KEY, FetchOutcome

logger = logging.getLogger(__name__)

REQUIRED_KEYS: Tuple[str, ...] = ("DB_PASSWORD",)

# Values never written to logs.
SENSITIVE_KEYS = frozenset({"DB_PASSWORD"})

NOT_SET = "!!!!NOT SET!!!!"
MASKED = "********"


def find_missing(config: ConfigStore, required: Sequence[str] = REQUIRED_KEYS) -> List[str]:
    """Required keys absent from config. An empty string counts as present."""
    return [key for key in required if key not in config]


def validate_required(
    config: ConfigStore,
    outcomes: Sequence[FetchOutcome],
    required: Sequence[str] = REQUIRED_KEYS,
) -> None:
    """
    Check mandatory configuration after secret resolution.

    Args:
        config: Process configuration after resolution
        outcomes: Resolver output, attached to the error for diagnostics
        required: Keys that must be present

    Raises:
        MissingRequiredConfigurationError: If any required key is absent
    """
    missing = find_missing(config, required)
    if missing:
        raise MissingRequiredConfigurationError(missing, outcomes)

    resolved = [outcome.key for outcome in outcomes if outcome.ok]
    log_context(
        logger,
        logging.DEBUG,
        context={
            "keysFetched": [str(outcome) for outcome in outcomes],
            "env": _diagnostic_view(config, [*required, *resolved, SECRET_MANAGER_URL_KEY]),
        },
    )


def _diagnostic_view(config: ConfigStore, keys: Sequence[str]) -> Dict[str, str]:
    view = {}
    for key in keys:
        if key not in config:
            view[key] = NOT_SET
        elif key in SENSITIVE_KEYS:
            view[key] = MASKED
        else:
            view[key] = config[key]
    return view

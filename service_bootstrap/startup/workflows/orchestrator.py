"""Startup sequence: resolve secrets, validate, connect to MySQL, smoke test.

Phases run strictly in order and exactly once:

    START -> RESOLVING -> VALIDATING -> CONNECTING_DB -> QUERYING -> READY

Any phase may end in FAILED. ``main`` wraps the sequence in the single
top-level handler that logs one diagnostic record and returns exit status 1.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.engine import Engine

from ...errors import MissingRequiredConfigurationError
from ...log import log_context
from ...secrets.domains.config_store import ConfigStore
from ...secrets.domains.gcp_client import CredentialsProvider
from ...secrets.domains.models import SECRET_MANAGER_URL_KEY, FetchOutcome
from ...secrets.workflows.secret_operations import StoreFactory, error_context, resolve_secrets
from ..domains.database import (
    SMOKE_QUERY,
    DatabaseSettings,
    build_database_settings,
    create_database_engine,
    run_smoke_query,
)
from ..domains.validation import validate_required

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_STARTUP_FAILED = 1


class StartupPhase(Enum):
    START = "start"
    RESOLVING = "resolving"
    VALIDATING = "validating"
    CONNECTING_DB = "connecting_db"
    QUERYING = "querying"
    READY = "ready"
    FAILED = "failed"


_PHASE_ORDER = [
    StartupPhase.START,
    StartupPhase.RESOLVING,
    StartupPhase.VALIDATING,
    StartupPhase.CONNECTING_DB,
    StartupPhase.QUERYING,
    StartupPhase.READY,
]


@dataclass
class StartupResult:
    outcomes: List[FetchOutcome]
    settings: DatabaseSettings
    engine: Engine
    rows: List[Dict[str, Any]] = field(default_factory=list)


def _log_startup_environment(config: ConfigStore) -> None:
    log_context(
        logger,
        logging.DEBUG,
        "STARTUP: Env vars and other details",
        {
            "env": {
                SECRET_MANAGER_URL_KEY: config.get(SECRET_MANAGER_URL_KEY, "!!!NOT SET!!!"),
                "APP_ENV": config.get("APP_ENV", "!!!NOT SET!!!"),
            }
        },
    )


class StartupSequence:
    """Runs the startup phases once against one configuration store."""

    def __init__(
        self,
        config: ConfigStore,
        store_factory: Optional[StoreFactory] = None,
        credentials_provider: Optional[CredentialsProvider] = None,
        engine_factory: Callable[[DatabaseSettings], Engine] = create_database_engine,
        smoke_query: str = SMOKE_QUERY,
    ):
        self.config = config
        self.phase = StartupPhase.START
        self._store_factory = store_factory
        self._credentials_provider = credentials_provider
        self._engine_factory = engine_factory
        self._smoke_query = smoke_query

    def _advance(self, phase: StartupPhase) -> None:
        if _PHASE_ORDER.index(phase) != _PHASE_ORDER.index(self.phase) + 1:
            raise RuntimeError(f"Invalid startup transition {self.phase.value} -> {phase.value}")
        logger.debug(f"Startup phase: {self.phase.value} -> {phase.value}")
        self.phase = phase

    def resolve_and_validate(self) -> List[FetchOutcome]:
        """
        Run the RESOLVING and VALIDATING phases.

        Configuration is frozen once resolution completes.

        Raises:
            HostedWithoutSecretStoreError: On managed hosting with no secret store
            MissingRequiredConfigurationError: If mandatory keys are absent
        """
        self._advance(StartupPhase.RESOLVING)
        outcomes = asyncio.run(
            resolve_secrets(
                self.config,
                store_factory=self._store_factory,
                credentials_provider=self._credentials_provider,
            )
        )
        self.config.freeze()

        self._advance(StartupPhase.VALIDATING)
        validate_required(self.config, outcomes)
        return outcomes

    def run(self) -> StartupResult:
        """
        Run every phase through READY.

        Raises:
            RuntimeError: If the sequence has already been run
            Exception: Whatever the failing phase raised; phase is left at FAILED
        """
        if self.phase is not StartupPhase.START:
            raise RuntimeError("Startup sequence has already run")

        _log_startup_environment(self.config)
        engine = None
        try:
            outcomes = self.resolve_and_validate()

            self._advance(StartupPhase.CONNECTING_DB)
            settings = build_database_settings(self.config)
            log_context(logger, logging.DEBUG, context={"databaseSettings": settings.describe()})
            engine = self._engine_factory(settings)

            self._advance(StartupPhase.QUERYING)
            rows = run_smoke_query(engine, self._smoke_query)
            log_context(logger, logging.DEBUG, context={"mysqlData": rows})

            self._advance(StartupPhase.READY)
        except Exception:
            self.phase = StartupPhase.FAILED
            if engine is not None:
                engine.dispose()
            raise

        logger.info("Startup complete")
        return StartupResult(outcomes=outcomes, settings=settings, engine=engine, rows=rows)


def report_missing_configuration(error: MissingRequiredConfigurationError) -> None:
    log_context(
        logger,
        logging.ERROR,
        "Error starting up.",
        {
            "message": str(error),
            "envVarsMissing": error.missing,
            "keysFetched": [str(outcome) for outcome in error.outcomes],
        },
    )


def report_startup_error(error: Exception) -> None:
    log_context(logger, logging.ERROR, "Error starting up.", error_context(error))


def main(config: Optional[ConfigStore] = None, **sequence_options) -> int:
    """
    Run the startup sequence once under the top-level failure handler.

    Every failure produces exactly one diagnostic record.

    Args:
        config: Configuration store (seeded from os.environ if not provided)
        **sequence_options: Passed through to StartupSequence

    Returns:
        0 once the service is ready, 1 if any phase failed
    """
    if config is None:
        config = ConfigStore.from_environ()

    try:
        StartupSequence(config, **sequence_options).run()
    except MissingRequiredConfigurationError as e:
        report_missing_configuration(e)
        return EXIT_STARTUP_FAILED
    except Exception as e:
        report_startup_error(e)
        return EXIT_STARTUP_FAILED
    return EXIT_OK

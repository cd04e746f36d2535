"""Shared fixtures: fake secret store, isolated home directory, SQLite engine."""
import asyncio
import logging
from pathlib import Path

import pytest
from google.api_core.exceptions import NotFound
from sqlalchemy import create_engine, event

from service_bootstrap import log
from service_bootstrap.secrets.domains import preferences
from service_bootstrap.startup.domains.database import attach_sql_logging


class FakeSecretStore:
    """In-memory stand-in for GCPSecretStore."""

    def __init__(self, secrets=None, failures=None, delays=None):
        self.secrets = dict(secrets or {})
        self.failures = dict(failures or {})
        self.delays = dict(delays or {})
        self.requested = []
        self.completed = []
        self.closed = False

    async def get_secret(self, secret_name):
        self.requested.append(secret_name)
        await asyncio.sleep(self.delays.get(secret_name, 0))
        self.completed.append(secret_name)
        if secret_name in self.failures:
            raise self.failures[secret_name]
        if secret_name not in self.secrets:
            raise NotFound(f"Secret [{secret_name}] not found or has no versions.")
        return self.secrets[secret_name]

    async def close(self):
        self.closed = True


class RecordingFactory:
    """Store factory that hands out one store and records how it was called."""

    def __init__(self, store):
        self.store = store
        self.calls = []

    def __call__(self, url, credentials_provider, project_override):
        self.calls.append((url, credentials_provider, project_override))
        return self.store


@pytest.fixture
def fake_store():
    return FakeSecretStore(
        secrets={
            "DB-HOSTNAME": "db.internal",
            "DB-NAME": "orders",
            "DB-PASSWORD": "s3cret",
            "DB-PORT": "3307",
            "DB-USERNAME": "svc",
        }
    )


@pytest.fixture
def store_factory(fake_store):
    return RecordingFactory(fake_store)


@pytest.fixture
def temp_home(tmp_path, monkeypatch):
    """Temporary home directory so preferences and default config never touch the real one."""
    fake_home = tmp_path / "home"
    fake_home.mkdir()
    monkeypatch.setenv("HOME", str(fake_home))
    monkeypatch.setattr(Path, "home", lambda: fake_home)

    fake_config_dir = fake_home / ".config" / "service-bootstrap"
    monkeypatch.setattr(preferences, "PREFERENCES_DIR", fake_config_dir)
    monkeypatch.setattr(preferences, "PREFERENCES_FILE", fake_config_dir / "preferences.json")

    return fake_home


@pytest.fixture
def sqlite_engine_factory():
    """Engine factory backed by in-memory SQLite with a MySQL-like version() function."""
    created = []

    def factory(settings):
        engine = create_engine("sqlite://")

        @event.listens_for(engine, "connect")
        def _register_version(dbapi_connection, connection_record):
            dbapi_connection.create_function("version", 0, lambda: "8.0.36-test")

        if settings.sql_logging:
            attach_sql_logging(engine)
        created.append(engine)
        return engine

    factory.created = created
    return factory


@pytest.fixture
def make_store():
    """Build a FakeSecretStore and its recording factory."""

    def _make(secrets=None, failures=None, delays=None):
        store = FakeSecretStore(secrets, failures, delays)
        return store, RecordingFactory(store)

    return _make


@pytest.fixture(autouse=True)
def reset_package_logging():
    """Drop handlers installed by configure_logging so they never outlive a test's captured streams."""
    yield
    logger = logging.getLogger(log.ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    log._handler = None

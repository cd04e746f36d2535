"""Tests for secret name mapping, fetch outcomes and resolve_secrets."""
import asyncio
import logging

import pytest

from service_bootstrap.errors import ConfigError, HostedWithoutSecretStoreError
from service_bootstrap.secrets.domains.config_store import ConfigStore
from service_bootstrap.secrets.domains.models import SECRET_KEYS, FetchOutcome, to_secret_name
from service_bootstrap.secrets.workflows.secret_operations import fetch_secret, resolve_secrets

STORE_URL = "https://secretmanager.googleapis.com/projects/test-project"


class TestSecretNameMapping:
    """Test suite for to_secret_name."""

    def test_underscores_become_dashes(self):
        assert to_secret_name("DB_PASSWORD") == "DB-PASSWORD"

    def test_every_key_maps_to_a_distinct_name(self):
        names = [to_secret_name(key) for key in SECRET_KEYS]
        assert len(set(names)) == len(SECRET_KEYS)

    def test_names_without_underscores_unchanged(self):
        assert to_secret_name("DBPASSWORD") == "DBPASSWORD"
        assert to_secret_name("db-password") == "db-password"

    def test_mapping_is_idempotent(self):
        for key in SECRET_KEYS:
            once = to_secret_name(key)
            assert to_secret_name(once) == once

    def test_surrounding_whitespace_is_stripped(self):
        assert to_secret_name("  DB_NAME ") == "DB-NAME"


class TestFetchOutcome:
    """Test suite for FetchOutcome display strings."""

    def test_resolved_display(self):
        outcome = FetchOutcome.resolved("DB_NAME")
        assert outcome.ok
        assert str(outcome) == "+ Set key DB_NAME"

    def test_failed_display(self):
        outcome = FetchOutcome.failed("DB_NAME", "boom")
        assert not outcome.ok
        assert str(outcome) == "- Key not defined: DB_NAME. boom"

    def test_failed_without_reason_still_failed(self):
        assert not FetchOutcome.failed("DB_NAME", "").ok


class TestResolveSecretsWithoutStore:
    """resolve_secrets when no secret store URL is configured."""

    def test_local_returns_empty_without_network(self, store_factory):
        config = ConfigStore({})

        outcomes = asyncio.run(resolve_secrets(config, store_factory=store_factory))

        assert outcomes == []
        assert store_factory.calls == []

    def test_local_logs_warning(self, store_factory, caplog):
        caplog.set_level(logging.DEBUG, logger="service_bootstrap")

        asyncio.run(resolve_secrets(ConfigStore({}), store_factory=store_factory))

        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert warnings[0].context == {"SECRET_MANAGER_URL": "!!!NOT SET!!!"}

    def test_blank_url_treated_as_unset(self, store_factory):
        outcomes = asyncio.run(
            resolve_secrets(ConfigStore({"SECRET_MANAGER_URL": ""}), store_factory=store_factory)
        )
        assert outcomes == []
        assert store_factory.calls == []

    def test_hosted_without_store_is_fatal(self, store_factory):
        config = ConfigStore({"K_SERVICE": "orders-api"})

        with pytest.raises(HostedWithoutSecretStoreError) as exc_info:
            asyncio.run(resolve_secrets(config, store_factory=store_factory))

        assert "SECRET_MANAGER_URL" in str(exc_info.value)
        assert store_factory.calls == []


class TestResolveSecretsWithStore:
    """resolve_secrets against a fake store."""

    def test_all_keys_resolved(self, fake_store, store_factory):
        config = ConfigStore({"SECRET_MANAGER_URL": STORE_URL})

        outcomes = asyncio.run(resolve_secrets(config, store_factory=store_factory))

        assert [str(o) for o in outcomes] == [f"+ Set key {key}" for key in SECRET_KEYS]
        assert config["DB_PASSWORD"] == "s3cret"
        assert config["DB_HOSTNAME"] == "db.internal"
        assert fake_store.closed

    def test_mixed_outcomes_in_declared_order(self, make_store):
        store, factory = make_store(
            secrets={"DB-HOSTNAME": "db.internal", "DB-PASSWORD": "s3cret", "DB-USERNAME": "svc"},
            delays={"DB-HOSTNAME": 0.03, "DB-PASSWORD": 0.01},
        )
        config = ConfigStore({"SECRET_MANAGER_URL": STORE_URL})

        outcomes = asyncio.run(resolve_secrets(config, store_factory=factory))

        assert [o.key for o in outcomes] == list(SECRET_KEYS)
        assert [o.ok for o in outcomes] == [True, False, True, False, True]
        assert "not found" in outcomes[1].reason
        # Completion order differs from the reported order
        assert store.completed != store.requested

        resolved = {key for key in SECRET_KEYS if key in config}
        assert resolved == {"DB_HOSTNAME", "DB_PASSWORD", "DB_USERNAME"}

    def test_all_fetches_issued_before_any_completes(self, make_store):
        store, factory = make_store(
            secrets={to_secret_name(k): "x" for k in SECRET_KEYS},
            delays={to_secret_name(k): 0.01 for k in SECRET_KEYS},
        )
        config = ConfigStore({"SECRET_MANAGER_URL": STORE_URL})

        asyncio.run(resolve_secrets(config, store_factory=factory))

        assert store.requested == [to_secret_name(k) for k in SECRET_KEYS]

    def test_one_failure_does_not_stop_others(self, make_store):
        store, factory = make_store(
            secrets={to_secret_name(k): f"value-{k}" for k in SECRET_KEYS},
            failures={"DB-NAME": RuntimeError("permission denied")},
        )
        config = ConfigStore({"SECRET_MANAGER_URL": STORE_URL})

        outcomes = asyncio.run(resolve_secrets(config, store_factory=factory))

        assert len(outcomes) == len(SECRET_KEYS)
        failed = [o for o in outcomes if not o.ok]
        assert [o.key for o in failed] == ["DB_NAME"]
        assert "permission denied" in failed[0].reason
        assert "DB_NAME" not in config
        assert sum(1 for k in SECRET_KEYS if k in config) == len(SECRET_KEYS) - 1

    def test_failed_key_keeps_existing_value(self, make_store):
        store, factory = make_store(secrets={})
        config = ConfigStore({"SECRET_MANAGER_URL": STORE_URL, "DB_PASSWORD": "from-env"})

        asyncio.run(resolve_secrets(config, store_factory=factory))

        assert config["DB_PASSWORD"] == "from-env"

    def test_factory_receives_url_credentials_and_project(self, store_factory):
        provider = object()
        config = ConfigStore({"SECRET_MANAGER_URL": STORE_URL, "GCP_PROJECT": "override"})

        asyncio.run(
            resolve_secrets(config, store_factory=store_factory, credentials_provider=provider)
        )

        assert store_factory.calls == [(STORE_URL, provider, "override")]

    def test_outcomes_logged_at_debug(self, store_factory, caplog):
        caplog.set_level(logging.DEBUG, logger="service_bootstrap")
        config = ConfigStore({"SECRET_MANAGER_URL": STORE_URL})

        asyncio.run(resolve_secrets(config, store_factory=store_factory))

        records = [r for r in caplog.records if r.getMessage() == "Set env vars"]
        assert records[0].context["result"][0] == "+ Set key DB_HOSTNAME"

    def test_systemic_failure_returns_empty(self, fake_store, store_factory, caplog):
        caplog.set_level(logging.DEBUG, logger="service_bootstrap")
        config = ConfigStore({"SECRET_MANAGER_URL": STORE_URL})
        config.freeze()

        outcomes = asyncio.run(resolve_secrets(config, store_factory=store_factory))

        assert outcomes == []
        errors = [r for r in caplog.records if r.levelno == logging.ERROR]
        assert errors[0].getMessage() == "Failed to fetch secret(s)."
        assert errors[0].context["error"]["name"] == "ConfigFrozenError"
        assert fake_store.closed


class TestFetchSecret:
    """Test suite for the single-key fetch used by the CLI."""

    def test_fetches_mapped_name(self, fake_store, store_factory):
        config = ConfigStore({"SECRET_MANAGER_URL": STORE_URL})

        value = asyncio.run(fetch_secret(config, "DB_PASSWORD", store_factory=store_factory))

        assert value == "s3cret"
        assert fake_store.requested == ["DB-PASSWORD"]
        assert "DB_PASSWORD" not in config
        assert fake_store.closed

    def test_requires_store_url(self, store_factory):
        with pytest.raises(ConfigError):
            asyncio.run(fetch_secret(ConfigStore({}), "DB_PASSWORD", store_factory=store_factory))

"""Tests for mandatory configuration checks."""
import logging

import pytest

from service_bootstrap.errors import MissingRequiredConfigurationError
from service_bootstrap.secrets.domains.config_store import ConfigStore
from service_bootstrap.secrets.domains.models import FetchOutcome
from service_bootstrap.startup.domains.validation import find_missing, validate_required


@pytest.fixture
def outcomes():
    return [
        FetchOutcome.resolved("DB_HOSTNAME"),
        FetchOutcome.failed("DB_PASSWORD", "404 Secret [DB-PASSWORD] not found"),
    ]


class TestValidateRequired:

    def test_missing_password_raises_with_context(self, outcomes):
        config = ConfigStore({"DB_HOSTNAME": "db.internal"})

        with pytest.raises(MissingRequiredConfigurationError) as exc_info:
            validate_required(config, outcomes)

        error = exc_info.value
        assert error.missing == ["DB_PASSWORD"]
        assert error.outcomes == outcomes
        assert str(error) == "Required environment variable DB_PASSWORD is blank or not set."

    def test_empty_string_counts_as_present(self):
        validate_required(ConfigStore({"DB_PASSWORD": ""}), [])

    def test_collects_every_missing_key(self):
        missing = find_missing(ConfigStore({"B": "1"}), ["A", "B", "C"])
        assert missing == ["A", "C"]

    def test_message_for_several_keys(self):
        error = MissingRequiredConfigurationError(["A", "C"], [])
        assert str(error) == "Required environment variables A, C are blank or not set."

    def test_success_logs_masked_view(self, outcomes, caplog):
        caplog.set_level(logging.DEBUG, logger="service_bootstrap")
        config = ConfigStore({"DB_PASSWORD": "s3cret", "DB_HOSTNAME": "db.internal"})

        validate_required(config, outcomes)

        record = caplog.records[-1]
        assert record.getMessage() == ""
        assert record.context["env"] == {
            "DB_PASSWORD": "********",
            "DB_HOSTNAME": "db.internal",
            "SECRET_MANAGER_URL": "!!!!NOT SET!!!!",
        }
        assert record.context["keysFetched"] == [str(o) for o in outcomes]
        assert "s3cret" not in caplog.text

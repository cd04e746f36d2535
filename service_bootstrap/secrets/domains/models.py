"""Domain models for secret resolution."""
from dataclasses import dataclass
from typing import Optional, Tuple

# Logical configuration names fetched from the secret store, in reporting order.
SECRET_KEYS: Tuple[str, ...] = (
    "DB_HOSTNAME",
    "DB_NAME",
    "DB_PASSWORD",
    "DB_PORT",
    "DB_USERNAME",
)

SECRET_MANAGER_URL_KEY = "SECRET_MANAGER_URL"
GCP_PROJECT_KEY = "GCP_PROJECT"
# Set automatically by Cloud Run for every revision.
HOSTING_MARKER_KEY = "K_SERVICE"


def to_secret_name(key: str) -> str:
    """Map a configuration key to its secret name (Secret Manager ids use dashes)."""
    return key.strip().replace("_", "-")


@dataclass(frozen=True)
class FetchOutcome:
    """Result of fetching one configuration key from the secret store."""
    key: str
    reason: Optional[str] = None

    @classmethod
    def resolved(cls, key: str) -> "FetchOutcome":
        return cls(key=key)

    @classmethod
    def failed(cls, key: str, reason: str) -> "FetchOutcome":
        return cls(key=key, reason=reason or "unknown error")

    @property
    def ok(self) -> bool:
        return self.reason is None

    def __str__(self) -> str:
        if self.ok:
            return f"+ Set key {self.key}"
        return f"- Key not defined: {self.key}. {self.reason}"

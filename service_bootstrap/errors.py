"""Exception types raised during service startup."""
from typing import List, Optional, Sequence


class BootstrapError(Exception):
    """Base class for startup failures."""
    pass


class ConfigError(BootstrapError):
    """Configuration error exception."""
    pass


class ConfigFrozenError(ConfigError):
    """Raised when configuration is written after secret resolution finished."""
    pass


class HostedWithoutSecretStoreError(BootstrapError):
    """Running inside managed hosting but no secret store URL is configured."""

    def __init__(self, endpoint_key: str, marker_key: str):
        super().__init__(
            f"Attempting to start on managed hosting ({marker_key} is set) without {endpoint_key}"
        )
        self.endpoint_key = endpoint_key
        self.marker_key = marker_key


class MissingRequiredConfigurationError(BootstrapError):
    """
    Mandatory configuration keys are absent after secret resolution.

    Carries the missing key names and every fetch outcome from resolution so the
    top-level handler can report both in a single diagnostic record.
    """

    def __init__(self, missing: Sequence[str], outcomes: Optional[Sequence] = None):
        self.missing: List[str] = list(missing)
        self.outcomes = list(outcomes or [])
        plural = "s" if len(self.missing) > 1 else ""
        verb = "are" if len(self.missing) > 1 else "is"
        super().__init__(
            f"Required environment variable{plural} {', '.join(self.missing)} {verb} blank or not set."
        )

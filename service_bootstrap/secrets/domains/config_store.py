"""Process configuration store seeded from the environment."""
import os
import logging
from typing import Dict, Iterator, Mapping, Optional

from ...errors import ConfigFrozenError

logger = logging.getLogger(__name__)


class ConfigStore(Mapping[str, str]):
    """
    Key-value configuration shared by every startup stage.

    Seeded once at process start. Secret resolution writes into it, after
    which it is frozen and only read. A key that is absent is "not configured";
    an empty string is a configured value.
    """

    def __init__(self, values: Optional[Mapping[str, str]] = None):
        self._values: Dict[str, str] = dict(values or {})
        self._frozen = False

    @classmethod
    def from_environ(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        defaults: Optional[Mapping[str, str]] = None,
    ) -> "ConfigStore":
        """
        Build a store from environment variables layered over optional defaults.

        Args:
            environ: Environment mapping (os.environ if not provided)
            defaults: Values used only where the environment has no entry

        Returns:
            New, writable ConfigStore
        """
        values: Dict[str, str] = dict(defaults or {})
        values.update(os.environ if environ is None else environ)
        return cls(values)

    def __getitem__(self, key: str) -> str:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        state = "frozen" if self._frozen else "writable"
        return f"<ConfigStore {len(self._values)} keys, {state}>"

    @property
    def frozen(self) -> bool:
        return self._frozen

    def set(self, key: str, value: str) -> None:
        if self._frozen:
            raise ConfigFrozenError(f"Configuration is read-only, cannot set {key}")
        self._values[key] = value

    def freeze(self) -> None:
        if not self._frozen:
            logger.debug("Configuration frozen with %d keys", len(self._values))
        self._frozen = True

"""In-memory configuration cache backed by a batched parameter store.

Values are read from the store under ``/<env><name>`` keys and exposed under
their aliases. The cache refreshes at most once per expiry window, fetches
keys in batches of at most ``MAX_BATCH_SIZE`` in parallel, and notifies
listeners when aliases receive their first value (``initialize``) or a new
value (``change``).
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from .errors import (
    ConfigurationError,
    EnvironmentNotSetError,
    MissingKeysError,
    NotYetRefreshedError,
)
from .logging import get_logger

DEFAULT_EXPIRY_MS = 30 * 60 * 1000
MAX_BATCH_SIZE = 10
EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)

Listener = Callable[[List[str]], Any]


@dataclass(frozen=True)
class ConfigItem:
    """A parameter to load: ``name`` in the store, ``alias`` used locally."""

    name: str
    alias: str


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _check_unique(field: str, values: List[str]):
    duplicates = sorted({value for value in values if values.count(value) > 1})
    if duplicates:
        raise ConfigurationError(f"duplicate config item {field}: {', '.join(duplicates)}")


class ConfigCache:
    """Configuration values for one process, refreshed from a parameter store.

    Values are available as ``cache.get_value(alias)``, ``cache[alias]`` or
    ``cache.<alias>``; all of them fail until the first successful refresh.
    """

    def __init__(
        self,
        config_items: Sequence[ConfigItem],
        parameter_store,
        expiry_ms: int = DEFAULT_EXPIRY_MS,
        max_workers: int = 4,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize the cache.

        Args:
            config_items: Parameters to load and the aliases to expose them under
            parameter_store: Object with ``fetch_parameters(names, with_decryption)``
            expiry_ms: Time-to-live of loaded values in milliseconds
            max_workers: Maximum number of batches fetched concurrently
            clock: Returns the current timezone-aware time

        Raises:
            ConfigurationError: If two items share a name or an alias
        """
        _check_unique("name", [item.name for item in config_items])
        _check_unique("alias", [item.alias for item in config_items])

        self._config_items = tuple(config_items)
        self._aliases = tuple(item.alias for item in self._config_items)
        self._parameter_store = parameter_store
        self._expiry_ms = expiry_ms
        self._max_workers = max(1, max_workers)
        self._clock = clock or _utcnow
        self.logger = get_logger("lambda_dynamodb_handler.config_cache")

        self._env: Optional[str] = None
        self._key_map: Dict[str, str] = {}
        self._name_batches: List[List[str]] = []
        self._alias_batches: List[List[str]] = []

        self._expiration = EPOCH
        self._items: Dict[str, Any] = {}
        self._refreshed = False

        self._initialize_listeners: List[Listener] = []
        self._change_listeners: List[Listener] = []
        self._refresh_lock = threading.Lock()

    # Environment

    def get_environment(self) -> Optional[str]:
        """Active environment, or None before ``set_environment``."""
        return self._env

    def set_environment(self, env: str):
        """Select the environment and force a refresh on the next check.

        Loaded values are kept so the next refresh reports changed values as
        ``change`` events instead of ``initialize`` events.

        Raises:
            ConfigurationError: If ``env`` is empty or the expiry is not positive
        """
        if env == self._env:
            return

        if not env:
            raise ConfigurationError("environment must be a non-empty string")
        if self._expiry_ms <= 0:
            raise ConfigurationError(
                "you need to specify an expiry (ms) greater than 0, or leave it undefined"
            )

        key_map = {f"/{env}{item.name}": item.alias for item in self._config_items}
        names = list(key_map)
        name_batches = [
            names[i : i + MAX_BATCH_SIZE] for i in range(0, len(names), MAX_BATCH_SIZE)
        ]

        self._env = env
        self._key_map = key_map
        self._name_batches = name_batches
        self._alias_batches = [[key_map[name] for name in batch] for batch in name_batches]
        self._expiration = EPOCH

    # Introspection

    @property
    def aliases(self) -> Tuple[str, ...]:
        """Configured aliases in item order."""
        return self._aliases

    @property
    def expiration(self) -> datetime:
        """Time after which the cache is stale; the epoch until a full refresh."""
        return self._expiration

    @property
    def key_map(self) -> Mapping[str, str]:
        """Read-only view of fully qualified parameter name to alias."""
        return MappingProxyType(self._key_map)

    @property
    def batches(self) -> List[List[str]]:
        """Fully qualified parameter names, grouped as they are fetched."""
        return [list(batch) for batch in self._name_batches]

    def is_stale(self) -> bool:
        return self._clock() > self._expiration

    # Listeners

    def on_initialize(self, listener: Listener) -> Listener:
        """Register a listener for aliases that receive their first value."""
        self._initialize_listeners.append(listener)
        return listener

    def on_change(self, listener: Listener) -> Listener:
        """Register a listener for aliases whose value changed."""
        self._change_listeners.append(listener)
        return listener

    # Refresh

    def refresh_if_stale(self) -> bool:
        """Refresh the configuration if the expiry window has passed.

        Concurrent callers share one refresh: the staleness check is repeated
        once the refresh lock is held.

        Returns:
            True if a refresh was performed

        Raises:
            EnvironmentNotSetError: If a refresh is due and no environment is set
            MissingKeysError: If the store did not return every requested key
            Exception: Errors from the parameter store, unchanged
        """
        if not self._aliases:
            self.logger.info("Current config key count: 0")
            return False

        if not self.is_stale():
            self.logger.debug(
                "Configuration is current", config_key_count=len(self._aliases)
            )
            return False

        with self._refresh_lock:
            if not self.is_stale():
                return False
            self.refresh()
            return True

    def refresh(self):
        """Reload every batch; advance the expiry only if all batches succeed."""
        if self._env is None:
            raise EnvironmentNotSetError()

        batches = list(zip(self._name_batches, self._alias_batches))
        with self.logger.timer("configuration refresh"):
            results = self._fetch_batches(batches)

        errors = []
        for (names, aliases), (values, error) in zip(batches, results):
            if error is None:
                try:
                    self._commit_batch(names, aliases, values)
                except Exception as e:
                    error = e
            if error is not None:
                self.logger.error(
                    "Failed to load configuration batch",
                    parameters=names,
                    error=str(error),
                )
                errors.append(error)

        if errors:
            raise errors[0]

        self._expiration = self._clock() + timedelta(milliseconds=self._expiry_ms)
        self._refreshed = True
        self.logger.debug(
            "current configuration",
            environment=self._env,
            aliases=list(self._items),
            expiration=self._expiration.isoformat(),
        )

    def _fetch_batches(self, batches):
        """Fetch all batches and wait for every one of them to settle."""
        if not batches:
            return []
        if len(batches) == 1:
            return [self._fetch_batch(batches[0][0])]

        workers = min(self._max_workers, len(batches))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(self._fetch_batch, names) for names, _ in batches]
        return [future.result() for future in futures]

    def _fetch_batch(self, names: List[str]):
        self.logger.verbose("loading configuration", parameters=names)
        try:
            return self._parameter_store.fetch_parameters(names, with_decryption=True), None
        except Exception as e:
            return None, e

    def _commit_batch(self, names: List[str], aliases: List[str], values: Mapping[str, Any]):
        """Merge one batch into the cache and notify listeners."""
        fetched = {}
        initialized = []
        changed = []
        for name in names:
            if name not in values:
                continue
            alias = self._key_map[name]
            value = values[name]
            fetched[alias] = value
            if alias not in self._items:
                initialized.append(alias)
            elif self._items[alias] != value:
                changed.append(alias)

        missing = [alias for alias in aliases if alias not in fetched]
        if missing:
            raise MissingKeysError(missing)

        self._items.update(fetched)
        self.logger.verbose("successfully loaded configuration", parameters=names)

        if initialized:
            self._emit(self._initialize_listeners, initialized)
        if changed:
            self._emit(self._change_listeners, changed)

    @staticmethod
    def _emit(listeners: List[Listener], aliases: List[str]):
        for listener in list(listeners):
            listener(list(aliases))

    # Accessors

    def get_value(self, alias: str) -> Any:
        """Return the cached value for ``alias``.

        Raises:
            EnvironmentNotSetError: If no environment was ever set
            NotYetRefreshedError: If no refresh has completed yet
        """
        if self._env is None:
            raise EnvironmentNotSetError("env must be set before accessing config")
        if not self._refreshed:
            raise NotYetRefreshedError()
        return self._items.get(alias)

    def __getitem__(self, alias: str) -> Any:
        if alias not in self._aliases:
            raise KeyError(alias)
        return self.get_value(alias)

    def __contains__(self, alias: object) -> bool:
        return alias in self._aliases

    def __getattr__(self, name: str) -> Any:
        # Only called for names not found normally, i.e. aliases
        if name in self.__dict__.get("_aliases", ()):
            return self.get_value(name)
        raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}")

    def __setattr__(self, name: str, value: Any):
        if name in self.__dict__.get("_aliases", ()):
            raise AttributeError(f"configuration value {name!r} is read-only")
        super().__setattr__(name, value)

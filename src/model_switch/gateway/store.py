"""Live configuration for the gateway with hot reload.

Readers take ``store.snapshot`` - an immutable ProfileConfig - and keep using
it for the rest of their request. reload() builds the replacement snapshot
off the event loop and only then swaps the reference, so a reader sees
either the old snapshot or the new one, never a mix. A failed reload leaves
the current snapshot in place.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from model_switch.core.config import ConfigError, ProfileConfig

logger = logging.getLogger(__name__)

ConfigLoader = Callable[[], ProfileConfig]


class ConfigStore:
    """Holder of the active ProfileConfig snapshot.

    Example:
        >>> store = ConfigStore.open(ProfileConfig.load)
        >>> store.snapshot.active
        'claude'
        >>> await store.reload()
    """

    def __init__(self, snapshot: ProfileConfig, loader: ConfigLoader):
        self._snapshot = snapshot
        self._loader = loader
        self._write_lock = asyncio.Lock()
        self._generation = 0

    @classmethod
    def open(cls, loader: ConfigLoader) -> ConfigStore:
        """Create a store from the loader's current result.

        Raises:
            ConfigError: If the initial load fails.
        """
        return cls(loader(), loader)

    @property
    def snapshot(self) -> ProfileConfig:
        """Current snapshot. Never blocks."""
        return self._snapshot

    def read(self) -> ProfileConfig:
        return self._snapshot

    @property
    def generation(self) -> int:
        """Number of successful reloads since the store was opened."""
        return self._generation

    async def reload(self) -> ProfileConfig:
        """Re-read the configuration source and swap in the result.

        Concurrent reloads are applied one at a time.

        Returns:
            The snapshot now in effect.

        Raises:
            ConfigError: If loading fails; the previous snapshot stays active.
        """
        async with self._write_lock:
            try:
                new_snapshot = await asyncio.to_thread(self._loader)
            except ConfigError:
                raise
            except Exception as e:
                raise ConfigError(f"Failed to load configuration: {e}") from e

            self._snapshot = new_snapshot
            self._generation += 1

        logger.info(
            "Configuration reloaded (generation %d), active provider: %s",
            self._generation,
            new_snapshot.active,
        )
        return new_snapshot

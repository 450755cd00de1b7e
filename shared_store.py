"""Shared key-value store interface used by the cross-process mailbox."""

import threading
from typing import Dict, Mapping, Optional


class SharedStore:
    """
    String keys to string values, readable and writable by both processes.

    Each process owns a disjoint set of keys; the controller additionally
    removes the inbound action keys when it claims them.
    """

    async def connect(self):
        """Open the underlying resource."""

    async def close(self):
        """Release the underlying resource."""

    async def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    async def set_many(self, values: Mapping[str, str]):
        """Write all values; insertion order is write order."""
        raise NotImplementedError

    async def claim(self, key: str, *companions: str) -> Optional[Dict[str, str]]:
        """
        Atomically remove `key` and its companions if `key` is present.

        Returns the values that were present, or None (and removes
        nothing) when `key` is absent. Only one caller can win a claim.
        """
        raise NotImplementedError


class MemoryStore(SharedStore):
    """In-process store for tests and single-process use."""

    def __init__(self, initial: Optional[Mapping[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    async def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    async def set_many(self, values: Mapping[str, str]):
        with self._lock:
            self._data.update(values)

    async def claim(self, key: str, *companions: str) -> Optional[Dict[str, str]]:
        with self._lock:
            if key not in self._data:
                return None
            claimed = {key: self._data.pop(key)}
            for other in companions:
                if other in self._data:
                    claimed[other] = self._data.pop(other)
            return claimed

    def snapshot(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._data)


def build_store(store_config: Mapping) -> SharedStore:
    """Create the store configured in the 'store' section."""
    backend = store_config.get('backend', 'file')
    if backend == 'file':
        from file_store import FileStore
        return FileStore(store_config.get('path'))
    if backend == 'mqtt':
        from mqtt_store import MqttStore
        return MqttStore(
            host=store_config['host'],
            port=store_config.get('port'),
            prefix=store_config.get('prefix'),
            username=store_config.get('username'),
            password=store_config.get('password'),
        )
    raise ValueError(f"Unknown store backend: {backend}")

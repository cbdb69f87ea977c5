"""
Eventually-consistent cache of webhook configurations.

kopf event handlers feed this cache with every Mutating/Validating webhook
configuration seen in the cluster. The manager only reads it, as a cheap
existence hint before deletes and for the health check. A miss is only
meaningful once a kind has been synced from a full listing; until then the
cache may simply not have seen the object yet. Reads and writes
are guarded by a lock because teardown reads it from several tasks at once.
"""

import threading
from typing import Any

from webhook_manager.constants import KIND_MUTATING, KIND_VALIDATING
from webhook_manager.errors import NotFoundError


class Lister:
    """Read-only, by-name view of one kind."""

    def __init__(self, kind: str, cache: "WebhookConfigurationCache"):
        self.kind = kind
        self._cache = cache

    def get(self, name: str) -> dict[str, Any]:
        """
        Return the cached object.

        Raises:
            NotFoundError: If the object is not in the cache
        """
        obj = self._cache._lookup(self.kind, name)
        if obj is None:
            raise NotFoundError(self.kind, name)
        return obj


class WebhookConfigurationCache:
    """Per-kind name index for the two webhook configuration kinds."""

    KINDS = (KIND_MUTATING, KIND_VALIDATING)

    def __init__(self):
        self._lock = threading.Lock()
        self._objects: dict[str, dict[str, dict[str, Any]]] = {
            kind: {} for kind in self.KINDS
        }
        self._synced: set[str] = set()

    def lister(self, kind: str) -> Lister | None:
        """Return the lister for a kind, or None if the kind is not cached."""
        if kind not in self._objects:
            return None
        return Lister(kind, self)

    def has_synced(self, kind: str) -> bool:
        """Whether the kind has been filled from a full listing."""
        with self._lock:
            return kind in self._synced

    def sync(self, kind: str, objects: list[dict[str, Any]]) -> None:
        """Replace the index of a kind with a full listing and mark it synced."""
        if kind not in self._objects:
            return
        index = {obj["metadata"]["name"]: dict(obj) for obj in objects}
        with self._lock:
            self._objects[kind] = index
            self._synced.add(kind)

    def _lookup(self, kind: str, name: str) -> dict[str, Any] | None:
        with self._lock:
            return self._objects[kind].get(name)

    def upsert(self, kind: str, obj: dict[str, Any]) -> None:
        name = obj["metadata"]["name"]
        with self._lock:
            self._objects[kind][name] = obj

    def discard(self, kind: str, name: str) -> None:
        with self._lock:
            self._objects[kind].pop(name, None)

    def apply_event(self, kind: str, event_type: str | None, body: dict[str, Any]):
        """Apply a kopf watch event to the cache."""
        if kind not in self._objects:
            return
        if event_type == "DELETED":
            self.discard(kind, body["metadata"]["name"])
        else:
            self.upsert(kind, dict(body))

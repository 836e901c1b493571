# src/meal_reco/storage/kv_store.py
from __future__ import annotations

"""
kv_store.py

Purpose:
    Opaque key-value persistence used for:
      - the tag preference model      (key "model")
      - per-tag bandit statistics     (key "tagStats")
      - the macro / evidence caches   (keys "macrosCache", "evidenceCache")

Two backends:
  - InMemoryKeyValueStore: tests and offline demos.
  - SupabaseKeyValueStore: one row per key in a `kv_store` table
    (key text primary key, value jsonb).

Any read/write failure raises PersistenceError. Callers must not swallow it:
once a write is lost, future ranking/learning can no longer be trusted.
"""

import copy
from typing import Any, Dict, Optional, Protocol

from supabase import Client

from meal_reco.logging_utils import get_logger

logger = get_logger("kv_store")


class PersistenceError(RuntimeError):
    """The key-value store could not read or write a record."""


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[Any]:
        ...

    def set(self, key: str, record: Any) -> None:
        ...


class InMemoryKeyValueStore:
    """Dict-backed store. Records are deep-copied in and out like a real backend."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        self._data: Dict[str, Any] = copy.deepcopy(initial or {})
        self.writes = 0

    def get(self, key: str) -> Optional[Any]:
        if key not in self._data:
            return None
        return copy.deepcopy(self._data[key])

    def set(self, key: str, record: Any) -> None:
        self._data[key] = copy.deepcopy(record)
        self.writes += 1


class SupabaseKeyValueStore:
    def __init__(self, client: Client, table: str = "kv_store") -> None:
        self.client = client
        self.table = table

    def get(self, key: str) -> Optional[Any]:
        try:
            res = self.client.table(self.table).select("value").eq("key", key).limit(1).execute()
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "kv read failed for key=%s: %s",
                key,
                exc,
                extra={
                    "invoking_func": "SupabaseKeyValueStore.get",
                    "invoking_purpose": "Load persisted record",
                    "next_step": "Raise PersistenceError to caller",
                    "resolution": "Check SUPABASE_URL / service key and that the kv table exists",
                },
            )
            raise PersistenceError(f"read failed for key {key!r}") from exc

        if not res.data:
            return None
        return res.data[0].get("value")

    def set(self, key: str, record: Any) -> None:
        try:
            self.client.table(self.table).upsert(
                {"key": key, "value": record}, on_conflict="key"
            ).execute()
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "kv write failed for key=%s: %s",
                key,
                exc,
                extra={
                    "invoking_func": "SupabaseKeyValueStore.set",
                    "invoking_purpose": "Persist record after mutation",
                    "next_step": "Raise PersistenceError to caller",
                    "resolution": "Check Supabase availability; state in memory is now ahead of storage",
                },
            )
            raise PersistenceError(f"write failed for key {key!r}") from exc

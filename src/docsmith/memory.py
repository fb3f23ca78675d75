"""Scoped in-memory store shared by the pipeline stages of one run.

Every value is kept in its JSON encoding so that readers always receive a
fresh copy and size accounting reflects what was stored. Nothing here is
persisted; the cache layer owns persistence.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, TypeAdapter, ValidationError

from .errors import MemorySerializationError

logger = logging.getLogger("docsmith.memory")

_ANY = TypeAdapter(Any)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class MemoryMetadata:
    """Usage bookkeeping for a ``MemoryStore``."""
    created_at: datetime = field(default_factory=_now)
    last_updated: datetime = field(default_factory=_now)
    access_counts: dict[tuple[str, str], int] = field(default_factory=dict)
    data_sizes: dict[tuple[str, str], int] = field(default_factory=dict)
    total_size: int = 0


class MemoryStore:
    """Key/value store partitioned by scope.

    Usage::

        memory = MemoryStore()
        memory.store("preprocess", "project_structure", structure)
        structure = memory.get("preprocess", "project_structure", ProjectStructure)
    """

    def __init__(self) -> None:
        self._data: dict[tuple[str, str], str] = {}
        self._meta = MemoryMetadata()
        self._lock = threading.Lock()

    # -- Writes -------------------------------------------------------------

    def store(self, scope: str, key: str, value: Any) -> None:
        """Store *value* under ``(scope, key)``, replacing any prior entry."""
        encoded = self._encode(value)
        size = len(encoded.encode("utf-8"))
        full_key = (scope, key)
        with self._lock:
            old_size = self._meta.data_sizes.get(full_key)
            if old_size is not None:
                self._meta.total_size -= old_size
            self._meta.data_sizes[full_key] = size
            self._meta.total_size += size
            self._meta.last_updated = _now()
            self._data[full_key] = encoded
        logger.debug("Stored %s:%s (%d bytes)", scope, key, size)

    # -- Reads --------------------------------------------------------------

    def get(self, scope: str, key: str, model: Any = None) -> Any:
        """Return the value at ``(scope, key)`` or ``None``.

        When *model* is given (a pydantic model or any type understood by
        ``TypeAdapter``) the stored value is validated into it; a value that
        does not fit is reported as absent.
        """
        full_key = (scope, key)
        with self._lock:
            encoded = self._data.get(full_key)
            if encoded is None:
                return None
            self._meta.access_counts[full_key] = self._meta.access_counts.get(full_key, 0) + 1

        raw = json.loads(encoded)
        if model is None:
            return raw
        try:
            if isinstance(model, type) and issubclass(model, BaseModel):
                return model.model_validate(raw)
            return TypeAdapter(model).validate_python(raw)
        except ValidationError:
            logger.debug("Stored %s:%s does not match %r", scope, key, model)
            return None

    def has(self, scope: str, key: str) -> bool:
        with self._lock:
            return (scope, key) in self._data

    def list_keys(self, scope: str) -> list[str]:
        """All keys stored in *scope*, in insertion order."""
        with self._lock:
            return [k for (s, k) in self._data if s == scope]

    # -- Stats --------------------------------------------------------------

    def usage_stats(self) -> dict[str, int]:
        """Byte totals per scope."""
        stats: dict[str, int] = {}
        with self._lock:
            for (scope, _), size in self._meta.data_sizes.items():
                stats[scope] = stats.get(scope, 0) + size
        return stats

    def access_count(self, scope: str, key: str) -> int:
        with self._lock:
            return self._meta.access_counts.get((scope, key), 0)

    @property
    def total_size(self) -> int:
        with self._lock:
            return self._meta.total_size

    @property
    def last_updated(self) -> datetime:
        return self._meta.last_updated

    # -- Internal -----------------------------------------------------------

    @staticmethod
    def _encode(value: Any) -> str:
        try:
            if isinstance(value, BaseModel):
                jsonable = value.model_dump(mode="json")
            else:
                jsonable = _ANY.dump_python(value, mode="json")
            return json.dumps(jsonable, ensure_ascii=False, separators=(",", ":"))
        # pydantic's serialization errors are ValueErrors
        except (TypeError, ValueError) as exc:
            raise MemorySerializationError(
                f"Cannot serialize value of type {type(value).__name__}: {exc}"
            ) from exc

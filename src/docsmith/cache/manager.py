"""Content-addressed, file-backed cache of model results.

Each entry lives at ``<cache_dir>/<category>/<md5(prompt)>.json`` as
pretty-printed JSON::

    {"data": ..., "timestamp": 1718000000, "prompt_hash": "...",
     "token_usage": {"input_tokens": 100, "output_tokens": 50},
     "model_name": "gpt-4o-mini"}

Failures to read or write are logged, counted and swallowed: a broken
cache costs a model call, never a run.
"""

from __future__ import annotations

import hashlib
import json
import logging
import shutil
import time
from pathlib import Path
from typing import Any, Callable

from pydantic import BaseModel, TypeAdapter, ValidationError

from ..config import CacheConfig
from ..errors import CacheIOError
from ..llm.types import CacheEntry, TokenUsage
from .monitor import CachePerformanceMonitor, CachePerformanceReport

logger = logging.getLogger("docsmith.cache")

COMPRESSION_CATEGORY = "prompt_compression"


def estimate_inference_time(content: str) -> float:
    """Seconds a model would likely have spent producing *content*."""
    return 2.0 + min(len(content) / 1000, 10.0)


class CacheManager:
    """Prompt-keyed result cache with TTL expiry.

    *clock* returns the current UNIX time in seconds; tests replace it.
    """

    def __init__(
        self,
        config: CacheConfig,
        *,
        monitor: CachePerformanceMonitor | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config
        self.monitor = monitor or CachePerformanceMonitor()
        self._clock = clock

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------
    @staticmethod
    def hash_prompt(prompt: str) -> str:
        return hashlib.md5(prompt.encode("utf-8")).hexdigest()

    def cache_path(self, category: str, prompt: str) -> Path:
        """Entry file for *prompt*; raises ``CacheIOError`` outside ``cache_dir``."""
        root = Path(self.config.cache_dir)
        path = root / category / f"{self.hash_prompt(prompt)}.json"
        if not path.resolve().is_relative_to(root.resolve()):
            raise CacheIOError(f"category {category!r} escapes the cache directory")
        return path

    def _is_expired(self, timestamp: int) -> bool:
        return self._clock() - timestamp > self.config.expire_hours * 3600

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get(self, category: str, prompt: str, model: Any = None) -> Any:
        """Return the cached value for *prompt* or ``None``.

        With *model* the stored data is validated into that type. Expiry is
        decided on the envelope alone, so a stale entry is removed even when
        its data no longer fits *model*.
        """
        if not self.config.enabled:
            return None

        try:
            path = self.cache_path(category, prompt)
            if not path.exists():
                self.monitor.record_cache_miss(category)
                return None
            content, entry = self._read_entry(path)
        except CacheIOError as exc:
            logger.warning("Cache read failed for %s: %s", category, exc)
            self.monitor.record_cache_error(category, str(exc))
            return None

        if self._is_expired(entry.timestamp):
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                logger.warning("Could not remove stale cache entry %s: %s", path, exc)
            self.monitor.record_cache_miss(category)
            return None

        if model is not None:
            try:
                entry.data = self._validate(entry.data, model)
            except ValidationError as exc:
                err = CacheIOError(f"entry does not match {model!r}: {exc}")
                logger.warning("Cache read failed for %s: %s", path, err)
                self.monitor.record_cache_error(category, str(err))
                return None

        self.monitor.record_cache_hit(
            category,
            estimate_inference_time(content),
            entry.token_usage,
            entry.model_name or "",
        )
        return entry.data

    @staticmethod
    def _read_entry(path: Path) -> tuple[str, CacheEntry]:
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise CacheIOError(f"failed to read file: {exc}") from exc
        try:
            entry = CacheEntry[Any].model_validate(json.loads(content))
        except (ValueError, ValidationError) as exc:
            raise CacheIOError(f"failed to decode entry: {exc}") from exc
        return content, entry

    @staticmethod
    def _validate(data: Any, model: Any) -> Any:
        if isinstance(model, type) and issubclass(model, BaseModel):
            return model.model_validate(data)
        return TypeAdapter(model).validate_python(data)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def set(self, category: str, prompt: str, value: Any) -> None:
        self._write(category, prompt, value, None, None)

    def set_with_tokens(
        self,
        category: str,
        prompt: str,
        value: Any,
        token_usage: TokenUsage,
        model_name: str | None = None,
    ) -> None:
        self._write(category, prompt, value, token_usage, model_name)

    def _write(
        self,
        category: str,
        prompt: str,
        value: Any,
        token_usage: TokenUsage | None,
        model_name: str | None,
    ) -> None:
        if not self.config.enabled:
            return

        entry = CacheEntry[Any](
            data=value,
            timestamp=int(self._clock()),
            prompt_hash=self.hash_prompt(prompt),
            token_usage=token_usage,
            model_name=model_name,
        )
        try:
            path = self.cache_path(category, prompt)
            payload = entry.model_dump_json(indent=2)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(payload, encoding="utf-8")
        except CacheIOError as err:
            logger.warning("Cache write failed for %s: %s", category, err)
            self.monitor.record_cache_error(category, str(err))
            return
        except (OSError, TypeError, ValueError) as exc:
            err = CacheIOError(f"failed to write entry: {exc}")
            logger.warning("Cache write failed for %s: %s", category, err)
            self.monitor.record_cache_error(category, str(err))
            return
        self.monitor.record_cache_write(category)

    # ------------------------------------------------------------------
    # Prompt compression results
    # ------------------------------------------------------------------
    def get_compression_cache(self, original: str, content_type: str) -> str | None:
        key = f"{content_type}_{self.hash_prompt(original)}"
        return self.get(COMPRESSION_CATEGORY, key, str)

    def set_compression_cache(self, original: str, content_type: str, compressed: str) -> None:
        key = f"{content_type}_{self.hash_prompt(original)}"
        self.set(COMPRESSION_CATEGORY, key, compressed)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------
    def clear(self, category: str | None = None) -> None:
        """Delete one category, or the whole cache directory."""
        target = Path(self.config.cache_dir)
        if category:
            target = target / category
        if target.exists():
            shutil.rmtree(target)
            logger.info("Cleared cache at %s", target)

    def generate_report(self) -> CachePerformanceReport:
        return self.monitor.generate_report()

"""Persistent prompt-result cache."""

from .manager import CacheManager, estimate_inference_time  # noqa: F401
from .monitor import (  # noqa: F401
    CachePerformanceMonitor,
    CachePerformanceReport,
    CategoryPerformanceStats,
)

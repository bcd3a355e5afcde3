from .base import ExecutionStrategy
from .evaluation import MISSING
from .fallback import SyncFallbackStrategy

__all__ = ["MISSING", "ExecutionStrategy", "SyncFallbackStrategy"]

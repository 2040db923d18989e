"""Run state persistence."""

from insight_pipeline.storage.backend import (
    InMemoryKeyValueStore,
    KeyValueStore,
    RedisKeyValueStore,
)
from insight_pipeline.storage.run_store import RunStateStore

__all__ = [
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "RedisKeyValueStore",
    "RunStateStore",
]

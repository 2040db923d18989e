"""
Run State Store - persists run snapshots and final results.

Keyspace (prefix defaults to ``lg:``):
  {prefix}state:{run_id}    latest RunState snapshot   (short TTL, 1 day)
  {prefix}result:{run_id}   PipelineExecutionResult     (long TTL, 7 days)

State is written for inspection only; nothing reads it back to continue
an interrupted run.
"""

import logging

from insight_pipeline.schemas.run import PipelineExecutionResult, RunState
from insight_pipeline.storage.backend import KeyValueStore

logger = logging.getLogger(__name__)

DEFAULT_KEY_PREFIX = "lg:"
DEFAULT_STATE_TTL_SECONDS = 86_400  # 1 day
DEFAULT_RESULT_TTL_SECONDS = 604_800  # 7 days


class RunStateStore:
    """Adapter between RunState/PipelineExecutionResult and a KeyValueStore."""

    def __init__(
        self,
        store: KeyValueStore,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        state_ttl_seconds: int = DEFAULT_STATE_TTL_SECONDS,
        result_ttl_seconds: int = DEFAULT_RESULT_TTL_SECONDS,
    ):
        self.store = store
        self.key_prefix = key_prefix
        self.state_ttl_seconds = state_ttl_seconds
        self.result_ttl_seconds = result_ttl_seconds

    def state_key(self, run_id: str) -> str:
        return f"{self.key_prefix}state:{run_id}"

    def result_key(self, run_id: str) -> str:
        return f"{self.key_prefix}result:{run_id}"

    async def save_run_snapshot(self, run: RunState, ttl_seconds: int | None = None) -> None:
        """Serialise the run as it is right now."""
        ttl = ttl_seconds if ttl_seconds is not None else self.state_ttl_seconds
        payload = run.model_dump_json(by_alias=True, exclude_none=True)
        await self.store.set(self.state_key(run.id), payload, ttl_seconds=ttl)
        logger.debug(f"Saved snapshot for run {run.id} (status={run.status})")

    async def load_run_snapshot(self, run_id: str) -> RunState | None:
        raw = await self.store.get(self.state_key(run_id))
        if raw is None:
            return None
        return RunState.model_validate_json(raw)

    async def save_result(
        self, result: PipelineExecutionResult, ttl_seconds: int | None = None
    ) -> None:
        ttl = ttl_seconds if ttl_seconds is not None else self.result_ttl_seconds
        payload = result.model_dump_json(by_alias=True, exclude_none=True)
        await self.store.set(self.result_key(result.id), payload, ttl_seconds=ttl)
        logger.debug(f"Saved result for run {result.id} (status={result.status})")

    async def load_result(self, result_id: str) -> PipelineExecutionResult | None:
        raw = await self.store.get(self.result_key(result_id))
        if raw is None:
            return None
        return PipelineExecutionResult.model_validate_json(raw)

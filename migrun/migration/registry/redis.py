"""Redis implementation of StatusRegistry.

Shares task status between API workers. Each task's state is one JSON
document; every read-modify-write runs under a Redis lock for the task.

Key structure:
- {prefix}:state:{task_id} - TaskState JSON
- {prefix}:lock:{task_id} - Registry lock
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import redis.asyncio as redis
from pydantic import ValidationError

from migrun.config.models.storage import StatusRegistryConfig
from migrun.migration.exceptions import RegistryUnavailableError
from migrun.migration.models import TaskState
from migrun.migration.registry.store import StatusRegistry
from migrun.observability.logging import get_logger

logger = get_logger(__name__)


class RedisStatusRegistry(StatusRegistry):
    """Redis-backed status registry.

    Locks auto-release after `lock_timeout` seconds so a crashed worker
    cannot wedge a task's registry entry.
    """

    def __init__(
        self,
        client: redis.Redis,
        config: StatusRegistryConfig | None = None,
    ) -> None:
        """Initialize Redis status registry.

        Args:
            client: Redis client instance
            config: Registry configuration (uses defaults if not provided)
        """
        self._client = client
        self._config = config or StatusRegistryConfig(backend="redis")
        self._prefix = self._config.key_prefix

    def _state_key(self, task_id: str) -> str:
        return f"{self._prefix}:state:{task_id}"

    def _lock_key(self, task_id: str) -> str:
        return f"{self._prefix}:lock:{task_id}"

    @asynccontextmanager
    async def _lock(self, task_id: str) -> AsyncGenerator[None, None]:
        lock = self._client.lock(
            self._lock_key(task_id),
            timeout=self._config.lock_timeout,
            blocking_timeout=self._config.blocking_timeout,
        )
        try:
            acquired = await lock.acquire()
        except redis.RedisError as e:
            logger.error("registry_lock_error", task_id=task_id, error=str(e))
            raise RegistryUnavailableError(
                f"Failed to lock status of '{task_id}': {e}", cause=e
            ) from e

        if not acquired:
            logger.error("registry_lock_timeout", task_id=task_id)
            raise RegistryUnavailableError(f"Timed out locking status of '{task_id}'")

        try:
            yield
        finally:
            try:
                await lock.release()
            except redis.RedisError as e:
                # Lock expired before release; the write already happened
                logger.warning("registry_lock_release_failed", task_id=task_id, error=str(e))

    async def _load(self, task_id: str) -> TaskState | None:
        try:
            data = await self._client.get(self._state_key(task_id))
        except redis.RedisError as e:
            logger.error("redis_get_error", task_id=task_id, error=str(e))
            raise RegistryUnavailableError(
                f"Failed to read status of '{task_id}': {e}", cause=e
            ) from e

        if data is None:
            return None
        return self._decode(self._state_key(task_id), data)

    async def _save(self, state: TaskState) -> None:
        try:
            await self._client.set(self._state_key(state.task_id), state.model_dump_json())
        except redis.RedisError as e:
            logger.error("redis_set_error", task_id=state.task_id, error=str(e))
            raise RegistryUnavailableError(
                f"Failed to write status of '{state.task_id}': {e}", cause=e
            ) from e

    async def list_states(self) -> list[TaskState]:
        """List every known task state ordered by task_id."""
        try:
            keys = [key async for key in self._client.scan_iter(match=self._state_key("*"))]
            values = await self._client.mget(keys) if keys else []
        except redis.RedisError as e:
            logger.error("redis_scan_error", error=str(e))
            raise RegistryUnavailableError(f"Failed to list statuses: {e}", cause=e) from e

        states = [
            self._decode(key, value)
            for key, value in zip(keys, values, strict=True)
            if value is not None
        ]
        states.sort(key=lambda s: s.task_id)
        return states

    def _decode(self, key: str, data: str) -> TaskState:
        try:
            return TaskState.model_validate_json(data)
        except ValidationError as e:
            logger.error("redis_state_corrupt", key=key, error=str(e))
            raise RegistryUnavailableError(
                f"Stored status under '{key}' is unreadable", cause=e
            ) from e

"""High-level async facade over the delta store and reconciliation engine."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

import redis.asyncio as aioredis

from pygentrack._redact import redact_url
from pygentrack.config import TrackerConfig
from pygentrack.engine import Deliver, ReconciliationEngine
from pygentrack.exceptions import GenTrackError
from pygentrack.models.changes import PendingChanges, ReconcileResult
from pygentrack.store import RedisDeltaStore

_logger = logging.getLogger(__name__)


class ChangeTracker:
    """Async tracker of per-collector generator changes.

    Usage::

        async with ChangeTracker(TrackerConfig.from_env()) as tracker:
            await tracker.reconcile(generator_id, {"a", "b"}, {"b", "c"})
            changes = await tracker.drain("c")
    """

    def __init__(
        self,
        config: TrackerConfig | None = None,
        *,
        redis: aioredis.Redis | None = None,
    ) -> None:
        self._config = config or TrackerConfig()
        self._external_redis = redis is not None
        self._redis = redis
        self._engine: ReconciliationEngine | None = None

    @property
    def config(self) -> TrackerConfig:
        return self._config

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> ChangeTracker:
        if self._redis is None:
            self._redis = aioredis.from_url(
                self._config.redis_url,
                decode_responses=True,
                socket_timeout=self._config.socket_timeout,
                socket_connect_timeout=self._config.socket_connect_timeout,
            )
            _logger.info("Redis client created for %s", redact_url(self._config.redis_url))
        store = RedisDeltaStore(self._redis, namespace=self._config.namespace)
        self._engine = ReconciliationEngine(store, serialize_per_entity=self._config.serialize_per_entity)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if not self._external_redis and self._redis is not None:
            await self._redis.aclose()
            self._redis = None
            _logger.info("Redis client closed")
        self._engine = None

    def _require_engine(self) -> ReconciliationEngine:
        if self._engine is None:
            raise GenTrackError("Tracker not initialized. Use 'async with ChangeTracker(...) as tracker:'")
        return self._engine

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def reconcile(
        self,
        generator: Any,
        old_collectors: Iterable[str],
        new_collectors: Iterable[str],
    ) -> ReconcileResult:
        """Track a change to *generator*'s collector associations."""
        return await self._require_engine().reconcile(generator, old_collectors, new_collectors)

    async def read_pending(self, collector: str) -> PendingChanges:
        return await self._require_engine().read_pending(collector)

    async def reset_pending(self, collector: str) -> None:
        await self._require_engine().reset_pending(collector)

    async def acknowledge_pending(self, collector: str, observed: PendingChanges) -> None:
        await self._require_engine().acknowledge_pending(collector, observed)

    async def drain(self, collector: str, deliver: Deliver | None = None) -> PendingChanges:
        """Return *collector*'s pending changes and clear them.

        See :meth:`ReconciliationEngine.drain`; the clearing mode follows
        ``config.acknowledge_observed_only``.
        """
        return await self._require_engine().drain(
            collector,
            deliver,
            acknowledge_observed_only=self._config.acknowledge_observed_only,
        )

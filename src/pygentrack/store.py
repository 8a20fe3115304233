"""Redis-backed pending change sets, one set per (consumer, kind)."""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Iterator
from typing import Protocol

from redis.asyncio import Redis
from redis.exceptions import RedisError

from pygentrack._constants import DEFAULT_NAMESPACE, KEY_SEPARATOR
from pygentrack.exceptions import StoreUnavailableError
from pygentrack.models.changes import TRACKED_KINDS, ChangeKind, PendingChanges

_logger = logging.getLogger(__name__)


class DeltaStore(Protocol):
    """Structural store interface used by the reconciliation engine.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`RedisDeltaStore`) concrete.
    """

    async def read_pending(self, consumer: str) -> PendingChanges: ...

    async def add_to_pending(self, consumer: str, kind: ChangeKind | str, entity_id: str) -> None: ...

    async def remove_from_pending(self, consumer: str, kind: ChangeKind | str, entity_id: str) -> None: ...

    async def apply_change(
        self, consumer: str, undo: ChangeKind | str, final: ChangeKind | str, entity_id: str
    ) -> None: ...

    async def reset_pending(self, consumer: str) -> None: ...

    async def acknowledge_pending(self, consumer: str, observed: PendingChanges) -> None: ...


def _tracked_kind(kind: ChangeKind | str | None) -> ChangeKind | None:
    """Return *kind* as a tracked enum member, or None for anything else."""
    if kind is None:
        return None
    try:
        resolved = ChangeKind(kind)
    except ValueError:
        _logger.debug("Ignoring unknown change kind %r", kind)
        return None
    return resolved if resolved.is_tracked else None


@contextlib.contextmanager
def _store_errors(operation: str, key: str = "") -> Iterator[None]:
    try:
        yield
    except RedisError as exc:
        raise StoreUnavailableError(
            f"{operation} failed for {key or 'pending sets'}: {exc}",
            operation=operation,
            key=key,
        ) from exc


class RedisDeltaStore:
    """Pending change sets stored as Redis sets.

    Keys have the form ``<namespace>::<consumer>::<kind>``.
    """

    def __init__(self, redis: Redis, *, namespace: str = DEFAULT_NAMESPACE) -> None:
        self._redis = redis
        self._namespace = namespace

    @property
    def namespace(self) -> str:
        return self._namespace

    def key(self, consumer: str, kind: ChangeKind) -> str:
        return KEY_SEPARATOR.join((self._namespace, consumer, kind.value))

    def _keys(self, consumer: str) -> list[str]:
        return [self.key(consumer, kind) for kind in TRACKED_KINDS]

    async def read_pending(self, consumer: str) -> PendingChanges:
        """Snapshot all three sets for *consumer* in one MULTI/EXEC."""
        keys = self._keys(consumer)
        with _store_errors("read_pending", consumer):
            async with self._redis.pipeline(transaction=True) as pipe:
                for key in keys:
                    pipe.smembers(key)
                replies = await pipe.execute()
        return PendingChanges.from_mapping(dict(zip(TRACKED_KINDS, replies, strict=True)))

    async def add_to_pending(self, consumer: str, kind: ChangeKind | str, entity_id: str) -> None:
        tracked = _tracked_kind(kind)
        if tracked is None:
            return
        key = self.key(consumer, tracked)
        _logger.debug("SADD %s %s", key, entity_id)
        with _store_errors("add_to_pending", key):
            await self._redis.sadd(key, entity_id)

    async def remove_from_pending(self, consumer: str, kind: ChangeKind | str, entity_id: str) -> None:
        tracked = _tracked_kind(kind)
        if tracked is None:
            return
        key = self.key(consumer, tracked)
        _logger.debug("SREM %s %s", key, entity_id)
        with _store_errors("remove_from_pending", key):
            await self._redis.srem(key, entity_id)

    async def apply_change(
        self,
        consumer: str,
        undo: ChangeKind | str,
        final: ChangeKind | str,
        entity_id: str,
    ) -> None:
        """Move *entity_id* out of the *undo* set and into the *final* set.

        Both commands run in one MULTI/EXEC, so a failure commits neither.
        Untracked kinds are skipped; if both are untracked nothing is sent.
        """
        undo_kind = _tracked_kind(undo)
        final_kind = _tracked_kind(final)
        if undo_kind is None and final_kind is None:
            return
        _logger.debug("Collector %s, generator %s: remove %s, add %s", consumer, entity_id, undo_kind, final_kind)
        with _store_errors("apply_change", consumer):
            async with self._redis.pipeline(transaction=True) as pipe:
                if undo_kind is not None:
                    pipe.srem(self.key(consumer, undo_kind), entity_id)
                if final_kind is not None:
                    pipe.sadd(self.key(consumer, final_kind), entity_id)
                await pipe.execute()

    async def reset_pending(self, consumer: str) -> None:
        """Delete all three sets for *consumer* with a single DEL."""
        _logger.debug("DEL pending sets for %s", consumer)
        with _store_errors("reset_pending", consumer):
            await self._redis.delete(*self._keys(consumer))

    async def acknowledge_pending(self, consumer: str, observed: PendingChanges) -> None:
        """Remove exactly the ids in *observed*, keeping anything newer."""
        removals = [(self.key(consumer, kind), sorted(observed.members(kind))) for kind in TRACKED_KINDS]
        removals = [(key, members) for key, members in removals if members]
        if not removals:
            return
        _logger.debug("Acknowledging %d pending set(s) for %s", len(removals), consumer)
        with _store_errors("acknowledge_pending", consumer):
            async with self._redis.pipeline(transaction=True) as pipe:
                for key, members in removals:
                    pipe.srem(key, *members)
                await pipe.execute()

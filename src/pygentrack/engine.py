"""Reconciliation of generator/collector association changes.

Given the collectors a generator was associated with before and after an
update, work out what each collector should see on its next heartbeat and
write that into the delta store.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from dataclasses import dataclass, field, replace
from typing import Any

from pygentrack.compaction import compact, raw_transition
from pygentrack.exceptions import StoreUnavailableError
from pygentrack.models.changes import ChangeKind, ConsumerOutcome, PendingChanges, ReconcileResult, resolve_entity_id
from pygentrack.store import DeltaStore

_logger = logging.getLogger(__name__)

Deliver = Callable[[PendingChanges], Awaitable[None]]


def _consumer_set(consumers: Iterable[str], name: str) -> frozenset[str]:
    if isinstance(consumers, (str, bytes)):
        raise TypeError(f"{name} must be a collection of collector names, not {type(consumers).__name__}")
    return frozenset(consumers)


@dataclass(slots=True)
class _EntityLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    holders: int = 0


class _EntityLocks:
    """Per-entity asyncio locks, dropped once nobody holds or awaits them."""

    def __init__(self) -> None:
        self._locks: dict[str, _EntityLock] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @contextlib.asynccontextmanager
    async def hold(self, entity_id: str) -> AsyncIterator[None]:
        entry = self._locks.get(entity_id)
        if entry is None:
            entry = _EntityLock()
            self._locks[entity_id] = entry
        entry.holders += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.holders -= 1
            if entry.holders == 0:
                self._locks.pop(entity_id, None)


class ReconciliationEngine:
    """Apply association changes to per-collector pending change sets.

    Parameters
    ----------
    store : DeltaStore
        Backing store for the pending sets.
    serialize_per_entity : bool
        Queue concurrent :meth:`reconcile` calls for the same entity id
        behind an in-process lock.  Calls from other processes are not
        covered and must be serialised upstream.
    """

    def __init__(self, store: DeltaStore, *, serialize_per_entity: bool = False) -> None:
        self._store = store
        self._entity_locks: _EntityLocks | None = _EntityLocks() if serialize_per_entity else None

    @property
    def store(self) -> DeltaStore:
        return self._store

    async def reconcile(
        self,
        entity: Any,
        old_consumers: Iterable[str],
        new_consumers: Iterable[str],
    ) -> ReconcileResult:
        """Record the net change of *entity* for every affected consumer.

        Each consumer is handled independently.  A store failure for one
        consumer is reported in its :class:`ConsumerOutcome` and does not
        stop the others; call :meth:`ReconcileResult.raise_for_failures`
        to turn failures into an exception.
        """
        entity_id = resolve_entity_id(entity)
        old = _consumer_set(old_consumers, "old_consumers")
        new = _consumer_set(new_consumers, "new_consumers")
        if not old | new:
            return ReconcileResult(entity_id=entity_id)

        if self._entity_locks is None:
            return await self._reconcile(entity_id, old, new)
        async with self._entity_locks.hold(entity_id):
            return await self._reconcile(entity_id, old, new)

    async def _reconcile(self, entity_id: str, old: frozenset[str], new: frozenset[str]) -> ReconcileResult:
        affected = sorted(old | new)
        outcomes = await asyncio.gather(
            *(
                self._reconcile_consumer(
                    consumer,
                    entity_id,
                    raw_transition(in_old=consumer in old, in_new=consumer in new),
                )
                for consumer in affected
            )
        )
        result = ReconcileResult(entity_id=entity_id, outcomes={o.consumer: o for o in outcomes})
        for outcome in result.failed:
            _logger.warning(
                "Pending change for %s on collector %s not recorded: %s",
                entity_id,
                outcome.consumer,
                outcome.error,
            )
        return result

    async def _reconcile_consumer(self, consumer: str, entity_id: str, transition: ChangeKind) -> ConsumerOutcome:
        try:
            pending = await self._store.read_pending(consumer)
        except StoreUnavailableError as exc:
            return ConsumerOutcome(consumer=consumer, transition=transition, error=exc)

        existing = pending.kind_of(entity_id)
        final, undo = compact(existing, transition)
        _logger.debug(
            "Collector %s, generator %s: %s + %s -> %s (undo %s)",
            consumer,
            entity_id,
            existing,
            transition,
            final,
            undo,
        )
        outcome = ConsumerOutcome(consumer=consumer, transition=transition, existing=existing, final=final, undo=undo)
        try:
            await self._store.apply_change(consumer, undo, final, entity_id)
        except StoreUnavailableError as exc:
            return replace(outcome, error=exc)
        return outcome

    # ------------------------------------------------------------------
    # Consumer read path
    # ------------------------------------------------------------------

    async def read_pending(self, consumer: str) -> PendingChanges:
        return await self._store.read_pending(consumer)

    async def reset_pending(self, consumer: str) -> None:
        await self._store.reset_pending(consumer)

    async def acknowledge_pending(self, consumer: str, observed: PendingChanges) -> None:
        await self._store.acknowledge_pending(consumer, observed)

    async def drain(
        self,
        consumer: str,
        deliver: Deliver | None = None,
        *,
        acknowledge_observed_only: bool = False,
    ) -> PendingChanges:
        """Read *consumer*'s pending changes and clear them once delivered.

        If *deliver* raises, nothing is cleared and the exception
        propagates, so the same changes are returned by the next drain.
        With ``acknowledge_observed_only`` only the ids in the returned
        snapshot are removed; changes recorded after the read survive.
        """
        pending = await self._store.read_pending(consumer)
        if deliver is not None:
            await deliver(pending)
        if acknowledge_observed_only:
            await self._store.acknowledge_pending(consumer, pending)
        else:
            await self._store.reset_pending(consumer)
        return pending

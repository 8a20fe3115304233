"""Change kinds, pending snapshots and reconcile results."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pygentrack.exceptions import ReconcileError, StoreUnavailableError


class ChangeKind(StrEnum):
    """Net change of one entity as seen by one consumer.

    The string values double as the Redis key suffixes.  ``NONE`` is the
    no-op signal and never has a set of its own.
    """

    NONE = "none"
    ADDED = "added"
    DELETED = "deleted"
    UPDATED = "updated"

    @property
    def is_tracked(self) -> bool:
        """Whether this kind is materialised as a pending set."""
        return self is not ChangeKind.NONE


#: Kinds that own a pending set, in lookup precedence order.
TRACKED_KINDS: tuple[ChangeKind, ...] = (ChangeKind.ADDED, ChangeKind.DELETED, ChangeKind.UPDATED)


def resolve_entity_id(entity: Any) -> str:
    """Return the id for *entity*, which may be an id or a record with ``.id``.

    Ids are opaque: the value is only converted with ``str()``, never trimmed.
    """
    value = entity if isinstance(entity, (str, int)) else getattr(entity, "id", entity)
    if value is None or isinstance(value, bool):
        raise ValueError(f"cannot derive an entity id from {entity!r}")
    entity_id = str(value)
    if not entity_id:
        raise ValueError("entity id must be non-empty")
    return entity_id


class PendingChanges(BaseModel):
    """Snapshot of one consumer's pending sets.

    Parameters
    ----------
    added : frozenset[str]
        Entity ids that appeared since the last drain.
    deleted : frozenset[str]
        Entity ids that went away since the last drain.
    updated : frozenset[str]
        Entity ids that stayed associated but changed.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    added: frozenset[str] = Field(default_factory=frozenset)
    deleted: frozenset[str] = Field(default_factory=frozenset)
    updated: frozenset[str] = Field(default_factory=frozenset)

    @field_validator("added", "deleted", "updated", mode="before")
    @classmethod
    def _decode_members(cls, value: Any) -> Any:
        if value is None:
            return frozenset()
        if isinstance(value, (set, frozenset, list, tuple)):
            return frozenset(m.decode("utf-8") if isinstance(m, bytes) else str(m) for m in value)
        return value

    @classmethod
    def from_mapping(cls, sets: Mapping[ChangeKind, Iterable[Any]]) -> PendingChanges:
        return cls(**{kind.value: frozenset(sets.get(kind, ())) for kind in TRACKED_KINDS})

    def members(self, kind: ChangeKind) -> frozenset[str]:
        if kind is ChangeKind.ADDED:
            return self.added
        if kind is ChangeKind.DELETED:
            return self.deleted
        if kind is ChangeKind.UPDATED:
            return self.updated
        return frozenset()

    def kind_of(self, entity_id: str) -> ChangeKind:
        """Return the pending kind for *entity_id*, or ``NONE``.

        If a race left the id in several sets, the first of added, deleted,
        updated wins.
        """
        for kind in TRACKED_KINDS:
            if entity_id in self.members(kind):
                return kind
        return ChangeKind.NONE

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.deleted or self.updated)

    def overlapping(self) -> frozenset[str]:
        """Ids present in more than one set (should always be empty)."""
        return (self.added & self.deleted) | (self.added & self.updated) | (self.deleted & self.updated)

    def as_heartbeat(self) -> dict[str, list[str]]:
        """Sorted lists keyed by kind, as sent in a heartbeat response."""
        return {kind.value: sorted(self.members(kind)) for kind in TRACKED_KINDS}


@dataclass(frozen=True, slots=True)
class ConsumerOutcome:
    """What reconcile decided, and did, for one consumer."""

    consumer: str
    transition: ChangeKind
    existing: ChangeKind = ChangeKind.NONE
    final: ChangeKind = ChangeKind.NONE
    undo: ChangeKind = ChangeKind.NONE
    error: StoreUnavailableError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def mutated(self) -> bool:
        return self.ok and (self.final.is_tracked or self.undo.is_tracked)


@dataclass(slots=True)
class ReconcileResult:
    """Per-consumer outcomes of a single reconcile call."""

    entity_id: str
    outcomes: dict[str, ConsumerOutcome] = field(default_factory=dict)

    @property
    def failed(self) -> list[ConsumerOutcome]:
        return [outcome for outcome in self.outcomes.values() if not outcome.ok]

    @property
    def ok(self) -> bool:
        return not self.failed

    def raise_for_failures(self) -> None:
        """Raise :class:`ReconcileError` if any consumer failed."""
        failures = self.failed
        if not failures:
            return
        names = ", ".join(sorted(outcome.consumer for outcome in failures))
        raise ReconcileError(
            f"reconcile of {self.entity_id} failed for consumer(s): {names}",
            entity_id=self.entity_id,
            failures=failures,
        )

from __future__ import annotations

import uuid
from types import SimpleNamespace

import pytest

from pygentrack.exceptions import ReconcileError, StoreUnavailableError
from pygentrack.models.changes import (
    ChangeKind,
    ConsumerOutcome,
    PendingChanges,
    ReconcileResult,
    resolve_entity_id,
)


def test_pending_changes_kind_lookup() -> None:
    pending = PendingChanges(added={"g1"}, deleted=["g2"], updated=("g3",))

    assert pending.kind_of("g1") is ChangeKind.ADDED
    assert pending.kind_of("g2") is ChangeKind.DELETED
    assert pending.kind_of("g3") is ChangeKind.UPDATED
    assert pending.kind_of("g4") is ChangeKind.NONE
    assert pending.members(ChangeKind.NONE) == frozenset()
    assert not pending.is_empty


def test_pending_changes_is_frozen() -> None:
    pending = PendingChanges()

    with pytest.raises(ValueError):
        pending.added = frozenset({"g1"})  # type: ignore[misc]


def test_overlap_reported_and_added_wins_lookup() -> None:
    pending = PendingChanges(added={"g1"}, updated={"g1", "g2"})

    assert pending.overlapping() == {"g1"}
    assert pending.kind_of("g1") is ChangeKind.ADDED


def test_as_heartbeat_sorts_ids() -> None:
    pending = PendingChanges(added={"b", "a"}, updated={"c"})

    assert pending.as_heartbeat() == {"added": ["a", "b"], "deleted": [], "updated": ["c"]}


def test_resolve_entity_id() -> None:
    assert resolve_entity_id("g1") == "g1"
    assert resolve_entity_id(42) == "42"
    assert resolve_entity_id(SimpleNamespace(id="abc")) == "abc"
    assert resolve_entity_id("  g1 ") == "  g1 "
    assert resolve_entity_id(uuid.UUID(int=1)) == "00000000-0000-0000-0000-000000000001"
    for invalid in (None, "", True, SimpleNamespace(id=None)):
        with pytest.raises(ValueError):
            resolve_entity_id(invalid)


def test_reconcile_result_raise_for_failures() -> None:
    error = StoreUnavailableError("down", operation="read_pending", key="B")
    result = ReconcileResult(
        entity_id="g1",
        outcomes={
            "A": ConsumerOutcome(consumer="A", transition=ChangeKind.ADDED, final=ChangeKind.ADDED),
            "B": ConsumerOutcome(consumer="B", transition=ChangeKind.DELETED, error=error),
        },
    )

    assert not result.ok
    assert result.outcomes["A"].mutated
    assert not result.outcomes["B"].mutated
    with pytest.raises(ReconcileError, match="B") as exc_info:
        result.raise_for_failures()
    assert exc_info.value.failures[0].error is error


def test_successful_result_does_not_raise() -> None:
    ReconcileResult(entity_id="g1").raise_for_failures()

"""Data models for tracked generator changes."""

from pygentrack.models.changes import (
    TRACKED_KINDS,
    ChangeKind,
    ConsumerOutcome,
    PendingChanges,
    ReconcileResult,
    resolve_entity_id,
)

__all__ = [
    "TRACKED_KINDS",
    "ChangeKind",
    "ConsumerOutcome",
    "PendingChanges",
    "ReconcileResult",
    "resolve_entity_id",
]

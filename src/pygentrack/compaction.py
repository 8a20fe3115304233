"""Compaction rules for pending generator changes.

This module intentionally contains *no* store access.  The engine reads the
pending snapshot, asks this module what to do, and issues the mutations.
"""

from __future__ import annotations

from typing import NamedTuple

from pygentrack.models.changes import ChangeKind


class Compaction(NamedTuple):
    """Result of folding a raw transition into an existing pending record."""

    final: ChangeKind
    undo: ChangeKind


def raw_transition(*, in_old: bool, in_new: bool) -> ChangeKind:
    """Classify a consumer's association change for one entity."""
    if in_old and in_new:
        return ChangeKind.UPDATED
    if in_old:
        return ChangeKind.DELETED
    if in_new:
        return ChangeKind.ADDED
    return ChangeKind.NONE


def compact(existing: ChangeKind, transition: ChangeKind) -> Compaction:
    """Fold *transition* into the *existing* pending kind.

    Policy:
    - nothing pending: record the transition as-is.
    - added then deleted: never existed for the consumer, cancel.
    - deleted then added: it persisted, net update.
    - updated then deleted: deletion dominates.
    - anything else: the existing record already holds the net state.
    """
    match existing, transition:
        case _, ChangeKind.NONE:
            return Compaction(ChangeKind.NONE, ChangeKind.NONE)
        case ChangeKind.NONE, _:
            return Compaction(transition, ChangeKind.NONE)
        case ChangeKind.ADDED, ChangeKind.DELETED:
            return Compaction(ChangeKind.NONE, ChangeKind.ADDED)
        case ChangeKind.DELETED, ChangeKind.ADDED:
            return Compaction(ChangeKind.UPDATED, ChangeKind.DELETED)
        case ChangeKind.UPDATED, ChangeKind.DELETED:
            return Compaction(ChangeKind.DELETED, ChangeKind.UPDATED)
        case (ChangeKind.ADDED | ChangeKind.DELETED | ChangeKind.UPDATED), _:
            return Compaction(ChangeKind.NONE, ChangeKind.NONE)
    raise AssertionError(f"unhandled compaction {existing!r} x {transition!r}")

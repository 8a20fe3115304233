"""Custom exception hierarchy for pygentrack."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pygentrack.models.changes import ConsumerOutcome


class GenTrackError(Exception):
    """Base exception for all pygentrack errors."""


class GenTrackConfigError(GenTrackError):
    """Invalid or missing configuration."""


class StoreUnavailableError(GenTrackError):
    """The backing store failed to complete an operation.

    Retryable: no partial local state is assumed committed for the
    operation that raised.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str = "",
        key: str = "",
    ) -> None:
        self.operation = operation
        self.key = key
        super().__init__(message)


class ReconcileError(GenTrackError):
    """One or more consumers failed during a reconcile call.

    Consumers not listed in ``failures`` were committed.  Retrying the
    call with the same inputs is safe for the failed consumers as long as
    nothing else touched the same entity in between.
    """

    def __init__(
        self,
        message: str,
        *,
        entity_id: str,
        failures: Sequence[ConsumerOutcome] = (),
    ) -> None:
        self.entity_id = entity_id
        self.failures = tuple(failures)
        super().__init__(message)

    @property
    def consumers(self) -> list[str]:
        return [outcome.consumer for outcome in self.failures]

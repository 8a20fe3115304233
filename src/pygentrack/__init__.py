"""pygentrack - Net generator change tracking per collector, backed by Redis."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pygentrack")
except PackageNotFoundError:
    __version__ = "0+local"
from pygentrack.compaction import Compaction, compact, raw_transition
from pygentrack.config import TrackerConfig
from pygentrack.engine import ReconciliationEngine
from pygentrack.exceptions import (
    GenTrackConfigError,
    GenTrackError,
    ReconcileError,
    StoreUnavailableError,
)
from pygentrack.models import ChangeKind, ConsumerOutcome, PendingChanges, ReconcileResult
from pygentrack.store import DeltaStore, RedisDeltaStore
from pygentrack.tracker import ChangeTracker

__all__ = [
    "__version__",
    "ChangeKind",
    "ChangeTracker",
    "Compaction",
    "ConsumerOutcome",
    "DeltaStore",
    "GenTrackConfigError",
    "GenTrackError",
    "PendingChanges",
    "ReconcileError",
    "ReconcileResult",
    "ReconciliationEngine",
    "RedisDeltaStore",
    "StoreUnavailableError",
    "TrackerConfig",
    "compact",
    "raw_transition",
]

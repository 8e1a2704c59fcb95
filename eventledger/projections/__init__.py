"""Projections: materialized views folded from event streams."""

from eventledger.projections.base import (
    EmptyEventsError,
    ExtensionPointNotImplementedError,
    ProjectionBase,
    UnpersistedEventsError,
)
from eventledger.projections.multi_stream import MultiStreamProjectionBase
from eventledger.projections.store import ProjectionStore

__all__ = [
    "EmptyEventsError",
    "ExtensionPointNotImplementedError",
    "MultiStreamProjectionBase",
    "ProjectionBase",
    "ProjectionStore",
    "UnpersistedEventsError",
]

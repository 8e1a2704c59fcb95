"""Event sourcing: append-only event store with optimistic concurrency."""

from eventledger.events.store import ConcurrencyConflictError, EventStore, WriteError

__all__ = ["ConcurrencyConflictError", "EventStore", "WriteError"]

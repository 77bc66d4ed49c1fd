"""
Event log infrastructure.

Append-only progression events, written in the same unit of work as the
state change they describe.
"""

from readiness_engine.kernel.events.event_store import EventStore

__all__ = ["EventStore"]

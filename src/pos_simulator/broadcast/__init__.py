"""Event stream fan-out to connected observers."""

from pos_simulator.broadcast.broadcaster import EventBroadcaster, Subscriber

__all__ = ["EventBroadcaster", "Subscriber"]

"""In-memory state for the simulator."""

from pos_simulator.store.memory_store import PosStore
from pos_simulator.store.seed import seed_catalog

__all__ = ["PosStore", "seed_catalog"]

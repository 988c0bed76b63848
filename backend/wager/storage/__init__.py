"""Storage layer for Wager - file-based persistence.

This package provides:
- State management (load/save engine snapshots in data/state.yaml)
- Event journal (append-only audit trail in data/events.jsonl)

All operations use Pydantic models for type safety and atomic writes to prevent corruption.
"""

# State management
from .state import (
    EngineSnapshot,
    capture_snapshot,
    create_default_snapshot,
    get_data_dir,
    load_snapshot,
    restore_engine,
    save_snapshot,
)

# Event journal
from .journal import (
    log_events,
    read_events,
)

__all__ = [
    # State management
    "EngineSnapshot",
    "capture_snapshot",
    "create_default_snapshot",
    "get_data_dir",
    "load_snapshot",
    "restore_engine",
    "save_snapshot",
    # Event journal
    "log_events",
    "read_events",
]

"""Logical clock used as the engine's notion of "now"."""

from typing import Protocol


class Clock(Protocol):
    """Source of a monotonically increasing height."""

    @property
    def height(self) -> int:
        ...


class ManualClock:
    """Clock advanced explicitly by the caller (tests, CLI)."""

    def __init__(self, height: int = 0):
        if height < 0:
            raise ValueError(f"Height must be non-negative, got {height}")
        self._height = height

    @property
    def height(self) -> int:
        return self._height

    def advance(self, blocks: int = 1) -> int:
        """Move the clock forward by ``blocks``. Returns the new height."""
        if blocks < 0:
            raise ValueError("Clock cannot move backwards")
        self._height += blocks
        return self._height

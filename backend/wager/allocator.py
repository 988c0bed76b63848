"""Bet identifier allocation."""

from wager.models import EngineState


class IdAllocator:
    """Issues bet ids 1, 2, 3, ... and never reuses one."""

    def __init__(self, state: EngineState):
        self._state = state

    def peek(self) -> int:
        return self._state.next_bet_id

    def next(self) -> int:
        bet_id = self._state.next_bet_id
        self._state.next_bet_id = bet_id + 1
        return bet_id

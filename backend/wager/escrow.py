"""Escrow store: amount held by the engine on behalf of each bet."""

import logging

from wager.models import EngineState

logger = logging.getLogger(__name__)


class EscrowStore:
    """Bet id -> held amount.

    No validation of its own: the engine only writes values that match the
    funds it actually moved.
    """

    def __init__(self, state: EngineState):
        self._state = state

    def get(self, bet_id: int) -> int | None:
        return self._state.escrow.get(bet_id)

    def set(self, bet_id: int, amount: int) -> None:
        self._state.escrow[bet_id] = amount
        logger.debug(f"Escrow for bet {bet_id} set to {amount}")

    def delete(self, bet_id: int) -> int | None:
        """Remove the entry. Returns the removed amount, or None if absent."""
        return self._state.escrow.pop(bet_id, None)

    def total(self) -> int:
        return sum(self._state.escrow.values())

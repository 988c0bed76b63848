"""Per-account participation and winnings counters."""

import logging

from wager.models import EngineState, UserStats

logger = logging.getLogger(__name__)


class StatsAggregator:
    def __init__(self, state: EngineState):
        self._state = state

    def get(self, account: str) -> UserStats | None:
        """Return the account's counters, or None if it never took part."""
        return self._state.stats.get(account)

    def record(self, account: str, wagered: int = 0, won: int = 0, winnings: int = 0) -> UserStats:
        """Add one participation or one win to ``account``.

        ``total_bets`` only moves when ``wagered`` is positive, so recording a
        win does not count the bet a second time.
        """
        current = self._state.stats.get(account) or UserStats(account=account)
        updated = current.model_copy(
            update={
                "total_bets": current.total_bets + (1 if wagered > 0 else 0),
                "bets_won": current.bets_won + won,
                "total_wagered": current.total_wagered + wagered,
                "total_won": current.total_won + winnings,
            }
        )
        self._state.stats[account] = updated
        logger.debug(
            f"Stats for {account}: bets={updated.total_bets} won={updated.bets_won} "
            f"wagered={updated.total_wagered} winnings={updated.total_won}"
        )
        return updated

"""Platform fee accounting.

Fees are charged on the pot of a resolved bet and expressed in basis points
out of 10000. The fee is the floor of ``pot * rate / 10000``, so any
truncation remainder stays with the fee side and ``payout + fee == pot``
always holds.
"""

import logging

from wager.exceptions import InsufficientBalance, InvalidAmount, NotOwner
from wager.ledger import Ledger
from wager.models import BPS_DENOMINATOR, EngineState

logger = logging.getLogger(__name__)

DEFAULT_MAX_FEE_RATE_BPS = 1000  # 10%


def split_pot(pot: int, rate_bps: int) -> tuple[int, int]:
    """Split ``pot`` into ``(payout, fee)`` at ``rate_bps``."""
    fee = pot * rate_bps // BPS_DENOMINATOR
    return pot - fee, fee


class FeeLedger:
    """Fee rate and accrued, owner-withdrawable fee balance."""

    def __init__(
        self,
        state: EngineState,
        ledger: Ledger,
        owner: str,
        engine_account: str,
        max_rate_bps: int = DEFAULT_MAX_FEE_RATE_BPS,
    ):
        self._state = state
        self._ledger = ledger
        self._owner = owner
        self._engine_account = engine_account
        self._max_rate_bps = max_rate_bps

    @property
    def rate_bps(self) -> int:
        return self._state.fee_rate_bps

    @property
    def balance(self) -> int:
        return self._state.fee_balance

    def split(self, pot: int) -> tuple[int, int]:
        return split_pot(pot, self.rate_bps)

    def set_rate(self, rate_bps: int, caller: str) -> None:
        if caller != self._owner:
            raise NotOwner(f"{caller} cannot change the fee rate")
        if not 0 <= rate_bps <= self._max_rate_bps:
            raise InvalidAmount(
                f"Fee rate {rate_bps} bps outside 0..{self._max_rate_bps} bps"
            )
        previous = self._state.fee_rate_bps
        self._state.fee_rate_bps = rate_bps
        logger.info(f"Fee rate changed from {previous} to {rate_bps} bps")

    def accrue(self, amount: int) -> None:
        if amount < 0:
            raise InvalidAmount(f"Cannot accrue negative fee {amount}")
        self._state.fee_balance += amount

    def withdraw(self, amount: int, caller: str) -> None:
        """Pay ``amount`` of accrued fees from the engine account to the owner."""
        if caller != self._owner:
            raise NotOwner(f"{caller} cannot withdraw fees")
        if amount <= 0:
            raise InvalidAmount(f"Withdrawal amount must be positive, got {amount}")
        if amount > self._state.fee_balance:
            raise InsufficientBalance(
                f"Requested {amount} but only {self._state.fee_balance} in accrued fees"
            )

        self._ledger.transfer(amount, self._engine_account, self._owner)
        self._state.fee_balance -= amount
        logger.info(f"Withdrew {amount} in fees to {self._owner}")

"""Bet registry and lifecycle state machine.

``WagerEngine`` is the only entry point that mutates engine state. Each
public operation:

1. Takes the engine-wide lock.
2. Checkpoints ``EngineState`` and starts a fresh event buffer.
3. Validates preconditions, moves funds through the ledger, then updates
   escrow, fees and statistics.
4. On success, appends the buffered events to the history. On any exception,
   restores the checkpoint, drops the buffer and reverses every transfer made
   so far, then re-raises.

Lifecycle::

    OPEN --accept--> ACCEPTED --resolve--> RESOLVED
      |
      +--cancel / cancel_expired--> CANCELLED
"""

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from wager.allocator import IdAllocator
from wager.clock import Clock
from wager.config import EngineConfig
from wager.escrow import EscrowStore
from wager.exceptions import (
    AlreadyAccepted,
    Expired,
    InsufficientBalance,
    InvalidAmount,
    InvalidDescription,
    NotAccepted,
    NotAuthorized,
    NotExpired,
    NotFound,
    SelfBet,
    WagerError,
)
from wager.fees import FeeLedger
from wager.ledger import JournaledLedger, Ledger
from wager.models import Bet, BetEvent, BetEventKind, BetStatus, EngineState, UserStats
from wager.stats import StatsAggregator

logger = logging.getLogger(__name__)


class WagerEngine:
    """Peer-to-peer betting escrow engine."""

    def __init__(
        self,
        ledger: Ledger,
        clock: Clock,
        config: EngineConfig | None = None,
        state: EngineState | None = None,
    ):
        self.config = config or EngineConfig()
        self._clock = clock
        self._ledger = JournaledLedger(ledger)
        if state is None:
            state = EngineState(fee_rate_bps=self.config.fee_rate_bps)
        self._state = state
        self._lock = threading.RLock()
        self._pending_events: list[BetEvent] = []

        self.escrow = EscrowStore(self._state)
        self.stats = StatsAggregator(self._state)
        self.ids = IdAllocator(self._state)
        self.fees = FeeLedger(
            self._state,
            self._ledger,
            owner=self.config.owner,
            engine_account=self.config.engine_account,
            max_rate_bps=self.config.max_fee_rate_bps,
        )

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def height(self) -> int:
        return self._clock.height

    # ========================================================================
    # Transactions
    # ========================================================================

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[None]:
        with self._lock:
            checkpoint = self._state.checkpoint()
            self._pending_events = []
            try:
                yield
            except Exception as e:
                self._state.restore(checkpoint)
                self._pending_events = []
                self._ledger.rollback()
                if isinstance(e, WagerError):
                    logger.warning(f"{operation} rejected: {e} (code {e.code})")
                else:
                    logger.error(f"{operation} failed, state rolled back: {e}")
                raise
            else:
                self._ledger.commit()
                self._state.events.extend(self._pending_events)
                self._pending_events = []

    def _emit(
        self,
        kind: BetEventKind,
        actor: str,
        bet_id: int | None = None,
        amount: int = 0,
        counterparty: str | None = None,
    ) -> None:
        self._pending_events.append(
            BetEvent(
                kind=kind,
                bet_id=bet_id,
                actor=actor,
                amount=amount,
                counterparty=counterparty,
                height=self.height,
            )
        )

    def _require_bet(self, bet_id: int) -> Bet:
        bet = self._state.bets.get(bet_id)
        if bet is None:
            raise NotFound(f"Bet {bet_id} not found")
        return bet

    def _require_open(self, bet: Bet) -> None:
        if bet.status is not BetStatus.OPEN:
            raise AlreadyAccepted(f"Bet {bet.id} is {bet.status.value}, not open")

    def _require_bettor(self, caller: str) -> None:
        if caller == self.config.engine_account:
            raise NotAuthorized(f"{caller} holds escrow and cannot take part in bets")

    def _require_funds(self, account: str, amount: int) -> None:
        available = self._ledger.balance(account)
        if available < amount:
            raise InsufficientBalance(f"{account} has {available}, needs {amount}")

    # ========================================================================
    # Operations
    # ========================================================================

    def create(
        self,
        description: str,
        stake: int,
        creator_side: bool,
        duration: int,
        caller: str,
    ) -> int:
        """Open a new bet and escrow the creator's stake. Returns the bet id."""
        with self._transaction("create"):
            self._require_bettor(caller)
            if stake <= 0:
                raise InvalidAmount(f"Stake must be positive, got {stake}")
            if duration <= 0:
                raise InvalidAmount(f"Duration must be positive, got {duration}")
            if not description or not description.strip():
                raise InvalidDescription("Description must not be empty")
            if len(description) > self.config.max_description_length:
                raise InvalidDescription(
                    f"Description is {len(description)} characters, "
                    f"limit is {self.config.max_description_length}"
                )
            self._require_funds(caller, stake)

            self._ledger.transfer(stake, caller, self.config.engine_account)

            bet_id = self.ids.peek()
            now = self.height
            self._state.bets[bet_id] = Bet(
                id=bet_id,
                creator=caller,
                description=description,
                stake=stake,
                creator_side=creator_side,
                created_at=now,
                expires_at=now + duration,
            )
            self.escrow.set(bet_id, stake)
            self.stats.record(caller, wagered=stake)
            self._emit("created", caller, bet_id=bet_id, amount=stake)
            self.ids.next()

        logger.info(f"Bet {bet_id} created by {caller}: stake={stake} expires_at={now + duration}")
        return bet_id

    def accept(self, bet_id: int, caller: str) -> bool:
        """Take the other side of an open bet by matching its stake."""
        with self._transaction("accept"):
            self._require_bettor(caller)
            bet = self._require_bet(bet_id)
            self._require_open(bet)
            if caller == bet.creator:
                raise SelfBet(f"{caller} cannot accept their own bet {bet_id}")
            if bet.is_expired(self.height):
                raise Expired(f"Bet {bet_id} expired at height {bet.expires_at}")
            self._require_funds(caller, bet.stake)

            self._ledger.transfer(bet.stake, caller, self.config.engine_account)

            self._state.bets[bet_id] = bet.transition(BetStatus.ACCEPTED, opponent=caller)
            self.escrow.set(bet_id, bet.pot)
            self.stats.record(caller, wagered=bet.stake)
            self._emit("accepted", caller, bet_id=bet_id, amount=bet.stake, counterparty=bet.creator)

        logger.info(f"Bet {bet_id} accepted by {caller}")
        return True

    def resolve(self, bet_id: int, outcome: bool, caller: str) -> str:
        """Declare the outcome of an accepted bet and pay the winner.

        Returns:
            The winning account.
        """
        with self._transaction("resolve"):
            if caller != self.config.resolver_account:
                raise NotAuthorized(f"{caller} is not the resolver")
            bet = self._require_bet(bet_id)
            if bet.status is not BetStatus.ACCEPTED:
                raise NotAccepted(f"Bet {bet_id} is {bet.status.value}, not accepted")

            payout, fee = self.fees.split(bet.pot)
            winner = bet.creator if bet.creator_side == outcome else bet.opponent

            self._ledger.transfer(payout, self.config.engine_account, winner)
            self.fees.accrue(fee)

            self._state.bets[bet_id] = bet.transition(
                BetStatus.RESOLVED,
                outcome=outcome,
                winner=winner,
                resolved_at=self.height,
            )
            self.escrow.delete(bet_id)
            self.stats.record(winner, won=1, winnings=payout)
            self._emit("resolved", caller, bet_id=bet_id, amount=payout, counterparty=winner)

        logger.info(f"Bet {bet_id} resolved: outcome={outcome} winner={winner} payout={payout} fee={fee}")
        return winner

    def cancel(self, bet_id: int, caller: str) -> bool:
        """Withdraw an unmatched bet. Only the creator may do this."""
        with self._transaction("cancel"):
            bet = self._require_bet(bet_id)
            if caller != bet.creator:
                raise NotAuthorized(f"{caller} is not the creator of bet {bet_id}")
            self._require_open(bet)
            self._refund(bet)
            self._emit("cancelled", caller, bet_id=bet_id, amount=bet.stake, counterparty=bet.creator)

        logger.info(f"Bet {bet_id} cancelled by creator")
        return True

    def cancel_expired(self, bet_id: int, caller: str) -> bool:
        """Refund an unmatched bet past its expiry height. Anyone may call."""
        with self._transaction("cancel_expired"):
            bet = self._require_bet(bet_id)
            self._require_open(bet)
            if not bet.is_expired(self.height):
                raise NotExpired(
                    f"Bet {bet_id} expires at height {bet.expires_at}, now {self.height}"
                )
            self._refund(bet)
            self._emit("expired", caller, bet_id=bet_id, amount=bet.stake, counterparty=bet.creator)

        logger.info(f"Expired bet {bet_id} cancelled by {caller}, refunded {bet.creator}")
        return True

    def _refund(self, bet: Bet) -> None:
        self._ledger.transfer(bet.stake, self.config.engine_account, bet.creator)
        self._state.bets[bet.id] = bet.transition(BetStatus.CANCELLED)
        self.escrow.delete(bet.id)

    def set_fee_rate(self, rate_bps: int, caller: str) -> bool:
        with self._transaction("set_fee_rate"):
            self.fees.set_rate(rate_bps, caller)
            self._emit("fee_rate_set", caller, amount=rate_bps)
        return True

    def withdraw_fees(self, amount: int, caller: str) -> bool:
        with self._transaction("withdraw_fees"):
            self.fees.withdraw(amount, caller)
            self._emit("fees_withdrawn", caller, amount=amount)
        return True

    # ========================================================================
    # Read accessors
    # ========================================================================

    def get_bet(self, bet_id: int) -> Bet | None:
        return self._state.bets.get(bet_id)

    def get_bet_status(self, bet_id: int) -> BetStatus | None:
        bet = self._state.bets.get(bet_id)
        return bet.status if bet else None

    def get_user_stats(self, account: str) -> UserStats | None:
        return self.stats.get(account)

    def get_escrow(self, bet_id: int) -> int | None:
        return self.escrow.get(bet_id)

    def get_fee_rate(self) -> int:
        return self.fees.rate_bps

    def get_total_fees(self) -> int:
        return self.fees.balance

    def get_next_bet_id(self) -> int:
        return self.ids.peek()

    def get_contract_balance(self) -> int:
        return self._ledger.balance(self.config.engine_account)

    def get_bet_history(self, bet_id: int) -> list[BetEvent]:
        return [event for event in self._state.events if event.bet_id == bet_id]

    def events_since(self, index: int) -> list[BetEvent]:
        return list(self._state.events[index:])

    def audit(self) -> bool:
        """Check that the engine account holds exactly escrow plus fees."""
        with self._lock:
            held = self.escrow.total()
            fees = self.fees.balance
            balance = self.get_contract_balance()
        if balance != held + fees:
            logger.warning(
                f"Conservation mismatch: contract balance {balance} != escrow {held} + fees {fees}"
            )
            return False
        logger.debug(f"Audit ok: balance={balance} escrow={held} fees={fees}")
        return True

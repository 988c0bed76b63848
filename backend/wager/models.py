"""Pydantic models for bets, statistics and engine state."""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

BPS_DENOMINATOR = 10_000


class BetStatus(str, Enum):
    """Bet lifecycle status."""

    OPEN = "open"
    ACCEPTED = "accepted"
    RESOLVED = "resolved"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (BetStatus.RESOLVED, BetStatus.CANCELLED)


VALID_BET_TRANSITIONS: dict[BetStatus, set[BetStatus]] = {
    BetStatus.OPEN: {BetStatus.ACCEPTED, BetStatus.CANCELLED},
    BetStatus.ACCEPTED: {BetStatus.RESOLVED},
    BetStatus.RESOLVED: set(),
    BetStatus.CANCELLED: set(),
}


# ============================================================================
# Bet
# ============================================================================


class Bet(BaseModel):
    """A two-party wager on a binary proposition with equal stakes.

    Fields that only make sense later in the lifecycle (``opponent``,
    ``outcome``, ``winner``, ``resolved_at``) are ``None`` until the bet
    reaches the status that sets them. The model validator rejects any
    combination that breaks that rule, so a record loaded from disk is
    checked the same way as one built by the engine.
    """

    model_config = ConfigDict(frozen=True)

    id: int = Field(ge=1)
    creator: str = Field(min_length=1)
    opponent: str | None = None
    description: str
    stake: int = Field(gt=0)
    creator_side: bool
    status: BetStatus = BetStatus.OPEN
    outcome: bool | None = None
    winner: str | None = None
    created_at: int = Field(ge=0)
    expires_at: int
    resolved_at: int | None = None

    @model_validator(mode="after")
    def check_lifecycle_fields(self) -> Bet:
        matched = self.status in (BetStatus.ACCEPTED, BetStatus.RESOLVED)
        if (self.opponent is not None) != matched:
            raise ValueError(f"opponent must be set iff bet is matched (status={self.status.value})")

        resolved = self.status is BetStatus.RESOLVED
        for name in ("outcome", "winner", "resolved_at"):
            if (getattr(self, name) is not None) != resolved:
                raise ValueError(f"{name} must be set iff bet is resolved (status={self.status.value})")

        if self.opponent is not None and self.opponent == self.creator:
            raise ValueError("creator and opponent must be distinct accounts")
        if self.winner is not None and self.winner not in (self.creator, self.opponent):
            raise ValueError(f"winner {self.winner} is not a participant")
        if self.expires_at <= self.created_at:
            raise ValueError("expires_at must be after created_at")
        return self

    @property
    def pot(self) -> int:
        """Total stake held once both sides have paid in."""
        return self.stake * 2

    def is_expired(self, height: int) -> bool:
        return height >= self.expires_at

    def transition(self, status: BetStatus, **changes: Any) -> Bet:
        """Return a validated copy of this bet moved to ``status``.

        Raises:
            ValueError: If the transition is not allowed, or the resulting
                record breaks a lifecycle invariant.
        """
        if status not in VALID_BET_TRANSITIONS[self.status]:
            raise ValueError(f"Illegal bet transition: {self.status.value} -> {status.value}")
        if "stake" in changes:
            raise ValueError("stake is immutable")
        data = self.model_dump()
        data.update(changes)
        data["status"] = status
        return Bet.model_validate(data)


# ============================================================================
# Statistics and history
# ============================================================================


class UserStats(BaseModel):
    """Cumulative per-account counters. Never decrease, never deleted."""

    model_config = ConfigDict(frozen=True)

    account: str
    total_bets: int = Field(default=0, ge=0)
    bets_won: int = Field(default=0, ge=0)
    total_wagered: int = Field(default=0, ge=0)
    total_won: int = Field(default=0, ge=0)


BetEventKind = Literal[
    "created",
    "accepted",
    "resolved",
    "cancelled",
    "expired",
    "fee_rate_set",
    "fees_withdrawn",
]


class BetEvent(BaseModel):
    """One successful engine operation, in the order it was applied."""

    kind: BetEventKind
    bet_id: int | None = None
    actor: str
    amount: int = 0
    counterparty: str | None = None
    height: int


# ============================================================================
# Engine state
# ============================================================================


class EngineState(BaseModel):
    """All mutable engine state.

    One instance is owned by each engine; the bookkeeping components are
    views over it. ``Bet`` and ``UserStats`` records are frozen and replaced
    rather than mutated, so copying the containers is enough to roll back.

    ``events`` is the in-process history. It is left out of dumps because
    the JSONL journal is the durable record of events.
    """

    bets: dict[int, Bet] = Field(default_factory=dict)
    escrow: dict[int, int] = Field(default_factory=dict)
    stats: dict[str, UserStats] = Field(default_factory=dict)
    fee_rate_bps: int = Field(default=250, ge=0, le=BPS_DENOMINATOR)
    fee_balance: int = Field(default=0, ge=0)
    next_bet_id: int = Field(default=1, ge=1)
    events: list[BetEvent] = Field(default_factory=list, exclude=True)

    def checkpoint(self) -> EngineState:
        """Copy of the bookkeeping fields, sharing the frozen records."""
        return self.model_copy(
            update={
                "bets": dict(self.bets),
                "escrow": dict(self.escrow),
                "stats": dict(self.stats),
                "events": [],
            }
        )

    def restore(self, checkpoint: EngineState) -> None:
        """Overwrite the bookkeeping fields in place from ``checkpoint``."""
        for name in type(self).model_fields:
            if name != "events":
                setattr(self, name, getattr(checkpoint, name))

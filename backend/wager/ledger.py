"""Ledger collaborator contract and reference implementations.

The engine never keeps account balances itself. It talks to a ``Ledger``
that exposes a balance check and an atomic transfer primitive.
"""

import logging
from typing import Protocol

from wager.exceptions import InsufficientFunds

logger = logging.getLogger(__name__)


class Ledger(Protocol):
    """Protocol for account-balance backends."""

    def balance(self, account: str) -> int:
        """Return the non-negative balance of ``account``."""
        ...

    def transfer(self, amount: int, sender: str, recipient: str) -> None:
        """Move ``amount`` from ``sender`` to ``recipient``.

        Raises:
            InsufficientFunds: If ``sender`` cannot cover ``amount``. Nothing
                is moved in that case.
        """
        ...


class InMemoryLedger:
    """In-memory ledger for tests, the CLI and local development."""

    def __init__(self, balances: dict[str, int] | None = None):
        self._balances: dict[str, int] = {}
        for account, amount in (balances or {}).items():
            if amount < 0:
                raise ValueError(f"Negative opening balance for {account}: {amount}")
            self._balances[account] = amount

    def balance(self, account: str) -> int:
        return self._balances.get(account, 0)

    def transfer(self, amount: int, sender: str, recipient: str) -> None:
        if amount <= 0:
            raise ValueError(f"Transfer amount must be positive, got {amount}")

        available = self.balance(sender)
        if available < amount:
            raise InsufficientFunds(
                f"{sender} has {available}, cannot transfer {amount} to {recipient}"
            )

        self._balances[sender] = available - amount
        self._balances[recipient] = self.balance(recipient) + amount
        logger.debug(f"Transferred {amount} from {sender} to {recipient}")

    def deposit(self, account: str, amount: int) -> int:
        """Credit ``account`` from outside the system. Returns the new balance."""
        if amount <= 0:
            raise ValueError(f"Deposit amount must be positive, got {amount}")
        self._balances[account] = self.balance(account) + amount
        logger.info(f"Deposited {amount} to {account}")
        return self._balances[account]

    def balances(self) -> dict[str, int]:
        """Return a copy of all non-zero balances."""
        return {account: amount for account, amount in self._balances.items() if amount}


class JournaledLedger:
    """Wraps a ledger and records transfers so they can be reversed.

    The engine routes every transfer of one operation through this wrapper,
    then either commits (forgets the journal) or rolls back (replays the
    journal backwards) when the operation fails after moving funds.
    """

    def __init__(self, inner: Ledger):
        self._inner = inner
        self._journal: list[tuple[int, str, str]] = []

    @property
    def pending(self) -> int:
        return len(self._journal)

    def balance(self, account: str) -> int:
        return self._inner.balance(account)

    def transfer(self, amount: int, sender: str, recipient: str) -> None:
        self._inner.transfer(amount, sender, recipient)
        self._journal.append((amount, sender, recipient))

    def commit(self) -> None:
        self._journal.clear()

    def rollback(self) -> None:
        while self._journal:
            amount, sender, recipient = self._journal.pop()
            logger.warning(f"Reversing transfer of {amount} from {sender} to {recipient}")
            self._inner.transfer(amount, recipient, sender)

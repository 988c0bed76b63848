"""Wager engine exceptions.

Every engine error carries a stable numeric ``code`` so callers (and the CLI)
can report failures without matching on message text.
"""


class WagerError(Exception):
    """Base exception for wager engine errors."""

    code: int = 0

    def __init__(self, message: str, code: int | None = None):
        super().__init__(message)
        if code is not None:
            self.code = code


class NotOwner(WagerError):
    """Caller is not the engine owner."""

    code = 100


class NotAuthorized(WagerError):
    """Caller lacks the capability required by the operation."""

    code = 101


class InvalidAmount(WagerError):
    """Stake, duration, withdrawal or fee rate out of range."""

    code = 102


class NotFound(WagerError):
    """Unknown bet id."""

    code = 103


class AlreadyAccepted(WagerError):
    """Operation requires an OPEN bet."""

    code = 104


class NotAccepted(WagerError):
    """Operation requires an ACCEPTED bet."""

    code = 105


class SelfBet(WagerError):
    """Acceptor is the bet creator."""

    code = 106


class InsufficientBalance(WagerError):
    """Caller or fee balance cannot cover the amount."""

    code = 107


class InsufficientFunds(InsufficientBalance):
    """Ledger transfer failed for lack of funds."""

    pass


class Expired(WagerError):
    """Bet can no longer be accepted."""

    code = 108


class NotExpired(WagerError):
    """Bet has not reached its expiry height yet."""

    code = 109


class InvalidDescription(WagerError):
    """Description is empty or too long."""

    code = 110

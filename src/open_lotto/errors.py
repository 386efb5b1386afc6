"""
Named failure conditions of the lottery program.

Codes 6000-6006 keep the numbering of the deployed program so that errors
returned by a cluster can be mapped back with `error_from_code`. Everything
from 6007 on was added later and continues the sequence.
"""

from __future__ import annotations

from typing import Dict, Optional, Type


class LottoError(RuntimeError):
    """Base class for every error the program reports."""

    code: int = -1
    msg: str = "Lottery program error"

    def __init__(self, detail: Optional[str] = None) -> None:
        self.detail = detail
        text = f"{self.msg} ({detail})" if detail else self.msg
        super().__init__(text)


class TimingError(LottoError):
    pass


class DuplicationError(LottoError):
    pass


class AuthorizationError(LottoError):
    pass


class ResourceError(LottoError):
    pass


class CodecError(LottoError):
    pass


# --- deployed program codes -------------------------------------------------


class EndTimestampPassed(TimingError):
    code = 6000
    msg = "End timestamp has passed"


class PotClosed(TimingError):
    code = 6001
    msg = "The pot is already closed"


class RandomnessAlreadyRevealed(DuplicationError):
    code = 6002
    msg = "The randomness has already been revealed"


class NotEnoughFundsToPlay(ResourceError):
    code = 6003
    msg = "Not enough funds to play"


class InvalidRandomnessAccount(AuthorizationError):
    code = 6004
    msg = "Invalid randomness account"


class RandomnessNotResolved(TimingError):
    code = 6005
    msg = "Randomness not resolved"


class TicketAccountNotWinning(AuthorizationError):
    code = 6006
    msg = "Ticket account is not winning"


# --- later additions --------------------------------------------------------


class ManagerNameTooLong(ResourceError):
    code = 6007
    msg = "Manager name exceeds 32 bytes"


class RoundStillActive(TimingError):
    code = 6008
    msg = "The current round has not ended yet"


class PotNotClosed(TimingError):
    code = 6009
    msg = "The pot is not closed"


class RandomnessAlreadyRequested(DuplicationError):
    code = 6010
    msg = "Randomness has already been requested for this pot"


class WinnerAlreadySelected(DuplicationError):
    code = 6011
    msg = "The winning index has already been set"


class PotNotSettled(TimingError):
    code = 6012
    msg = "The pot is not settled"


class TicketOwnerMismatch(AuthorizationError):
    code = 6013
    msg = "Ticket does not belong to the claimant"


class PrizeAlreadyClaimed(DuplicationError):
    code = 6014
    msg = "The prize has already been claimed"


class StaleTicketIndex(TimingError):
    code = 6015
    msg = "Ticket address does not match the pot's next index"


class RandomnessNotCommitted(TimingError):
    code = 6016
    msg = "Randomness has not been committed"


class InvalidPotDuration(ResourceError):
    code = 6017
    msg = "Pot duration must be positive"


class InvalidPayment(ResourceError):
    code = 6018
    msg = "Payment is below the ticket price"


class PotNotDrawing(TimingError):
    code = 6019
    msg = "The pot is not waiting on a draw"


class InsufficientEscrow(ResourceError):
    code = 6020
    msg = "Escrow cannot cover the prize"


class PotNotOpen(TimingError):
    code = 6021
    msg = "The pot is not open for entry yet"


# --- host ledger / account codec -------------------------------------------


class AccountAlreadyInUse(DuplicationError):
    code = -1  # host-side; the system program reports this as Custom 0
    msg = "Account address already in use"


class AccountDiscriminatorMismatch(CodecError):
    code = 3002
    msg = "Account discriminator did not match what was expected"


class AccountDidNotDeserialize(CodecError):
    code = 3003
    msg = "Failed to deserialize the account"


class AccountOwnedByWrongProgram(CodecError):
    code = 3007
    msg = "The given account is owned by a different program than expected"


class AccountNotInitialized(CodecError):
    code = 3012
    msg = "The program expected this account to be already initialized"


def _all_errors() -> Dict[int, Type[LottoError]]:
    out: Dict[int, Type[LottoError]] = {}
    stack = list(LottoError.__subclasses__())
    while stack:
        cls = stack.pop()
        stack.extend(cls.__subclasses__())
        if cls.code >= 0:
            out[cls.code] = cls
    return out


ERRORS_BY_CODE = _all_errors()


def error_from_code(code: int) -> Optional[Type[LottoError]]:
    return ERRORS_BY_CODE.get(int(code))

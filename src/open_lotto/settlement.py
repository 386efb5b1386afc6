from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Tuple

from solders.pubkey import Pubkey

from .codec import derive_escrow, derive_treasury
from .errors import InsufficientEscrow
from .ledger import Ledger
from .project_constants import BPS_DENOMINATOR, FEE_BPS

log = logging.getLogger(__name__)


def split_payment(payment: int, fee_bps: int = FEE_BPS) -> Tuple[int, int]:
    """
    Split an entry payment into (pooled share, fee share).

    The fee is floored so rounding always favours the prize pool;
    pooled + fee == payment for every input.
    """
    if payment < 0:
        raise ValueError("payment must be non-negative")
    if not 0 <= fee_bps <= BPS_DENOMINATOR:
        raise ValueError(f"fee_bps out of range: {fee_bps}")
    fee = payment * fee_bps // BPS_DENOMINATOR
    return payment - fee, fee


@dataclass(frozen=True)
class Custody:
    """The two singleton custody accounts of a deployment."""

    escrow: Pubkey
    treasury: Pubkey

    @staticmethod
    def for_program(program_id: Pubkey) -> "Custody":
        escrow, _ = derive_escrow(program_id)
        treasury, _ = derive_treasury(program_id)
        return Custody(escrow=escrow, treasury=treasury)

    def ensure(self, ledger: Ledger, program_id: Pubkey) -> None:
        for address in (self.escrow, self.treasury):
            if not ledger.exists(address):
                ledger.create_account(address, owner=program_id)

    def collect(self, ledger: Ledger, payer: Pubkey, pooled: int, fee: int) -> None:
        ledger.transfer(payer, self.escrow, pooled)
        ledger.transfer(payer, self.treasury, fee)

    def pay_out(self, ledger: Ledger, winner: Pubkey, amount: int) -> None:
        have = ledger.balance(self.escrow)
        if have < amount:
            raise InsufficientEscrow(f"need {amount}, escrow holds {have}")
        ledger.transfer(self.escrow, winner, amount)
        log.info("Paid %d lamports from escrow to %s", amount, winner)

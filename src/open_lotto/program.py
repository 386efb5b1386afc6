"""
Instruction handlers of the lottery program.

Each handler runs as one ledger transaction: every precondition is checked
against the ledger clock when the instruction lands, and any failure leaves
every account exactly as it was.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Optional

from solders.pubkey import Pubkey

from .codec import (
    U64_MAX,
    decode_pot,
    decode_pot_manager,
    decode_ticket,
    derive_pot,
    derive_pot_manager,
    derive_ticket,
    encode_pot,
    encode_pot_manager,
    encode_ticket,
)
from .draw import compute_winning_index
from .errors import (
    AccountNotInitialized,
    AccountOwnedByWrongProgram,
    EndTimestampPassed,
    InvalidPayment,
    InvalidPotDuration,
    InvalidRandomnessAccount,
    ManagerNameTooLong,
    NotEnoughFundsToPlay,
    PotClosed,
    PotNotClosed,
    PotNotDrawing,
    PotNotOpen,
    PotNotSettled,
    PrizeAlreadyClaimed,
    RandomnessAlreadyRequested,
    RandomnessAlreadyRevealed,
    RandomnessNotCommitted,
    RandomnessNotResolved,
    RoundStillActive,
    StaleTicketIndex,
    TicketAccountNotWinning,
    TicketOwnerMismatch,
    WinnerAlreadySelected,
)
from .ledger import Ledger
from .models import Pot, PotManager, PotStatus, Ticket, pot_status
from .project_constants import (
    FEE_BPS,
    MAX_MANAGER_NAME_LEN,
    NATIVE_MINT,
    PROGRAM_ID,
    SB_ON_DEMAND_DEVNET,
    TICKET_PRICE,
)
from .randomness import RandomnessStatus, parse_randomness
from .settlement import Custody, split_payment

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class InitResult:
    pot_manager: Pubkey
    treasury: Pubkey
    escrow: Pubkey
    first_pot: Pubkey
    next_pot: Pubkey


class LottoProgram:
    def __init__(
        self,
        ledger: Ledger,
        program_id: Optional[Pubkey] = None,
        fee_bps: int = FEE_BPS,
        min_entry: int = TICKET_PRICE,
        oracle_program_id: Optional[Pubkey] = None,
    ) -> None:
        self.ledger = ledger
        self.program_id = program_id or Pubkey.from_string(PROGRAM_ID)
        self.fee_bps = fee_bps
        self.min_entry = min_entry
        self.oracle_program_id = oracle_program_id or Pubkey.from_string(SB_ON_DEMAND_DEVNET)
        self.custody = Custody.for_program(self.program_id)

    # --- account loading ----------------------------------------------------

    def _load(self, address: Pubkey) -> bytes:
        acct = self.ledger.get(address)
        if acct is None:
            raise AccountNotInitialized(str(address))
        if acct.owner != self.program_id:
            raise AccountOwnedByWrongProgram(str(address))
        return acct.data

    def load_pot_manager(self, address: Pubkey) -> PotManager:
        return decode_pot_manager(self._load(address))

    def load_pot(self, address: Pubkey) -> Pot:
        return decode_pot(self._load(address))

    def load_ticket(self, address: Pubkey) -> Ticket:
        return decode_ticket(self._load(address))

    def _create_pot(self, manager: Pubkey, start: int, end: int) -> Pubkey:
        address, _ = derive_pot(manager, end, self.program_id)
        pot = Pot(
            pot_manager=manager,
            total_participants=0,
            start_timestamp=start,
            end_timestamp=end,
        )
        self.ledger.create_account(address, owner=self.program_id, data=encode_pot(pot))
        return address

    # --- keeper instructions ------------------------------------------------

    def init_pot_manager(
        self,
        authority: Pubkey,
        end_ts: int,
        pot_duration: int,
        manager_name: str,
        token_mint: Optional[Pubkey] = None,
    ) -> InitResult:
        with self.ledger.transaction() as ledger:
            now = ledger.clock.unix_timestamp
            if end_ts <= now:
                raise EndTimestampPassed(f"end_ts={end_ts} now={now}")
            if pot_duration <= 0:
                raise InvalidPotDuration(str(pot_duration))
            if len(manager_name.encode("utf-8")) > MAX_MANAGER_NAME_LEN:
                raise ManagerNameTooLong(manager_name)

            manager_address, bump = derive_pot_manager(authority, manager_name, self.program_id)
            self.custody.ensure(ledger, self.program_id)

            next_end = end_ts + pot_duration
            manager = PotManager(
                authority=authority,
                treasury=self.custody.treasury,
                token_mint=token_mint or Pubkey.from_string(NATIVE_MINT),
                pot_duration=pot_duration,
                timestamps=(end_ts, next_end),
                bump=bump,
                name=manager_name,
            )
            ledger.create_account(
                manager_address, owner=self.program_id, data=encode_pot_manager(manager)
            )
            first_pot = self._create_pot(manager_address, now, end_ts)
            next_pot = self._create_pot(manager_address, end_ts, next_end)

        log.info(
            "Initialized manager %r (%s): pots end at %d and %d",
            manager_name,
            manager_address,
            end_ts,
            next_end,
        )
        return InitResult(
            pot_manager=manager_address,
            treasury=self.custody.treasury,
            escrow=self.custody.escrow,
            first_pot=first_pot,
            next_pot=next_pot,
        )

    def advance_round(self, manager_address: Pubkey) -> Pubkey:
        """Roll the window forward once the current round has ended; returns the new pot."""
        with self.ledger.transaction() as ledger:
            manager = self.load_pot_manager(manager_address)
            now = ledger.clock.unix_timestamp
            current_end, next_end = manager.timestamps
            if now < current_end:
                raise RoundStillActive(f"current round ends at {current_end}, now={now}")

            new_end = next_end + manager.pot_duration
            new_pot = self._create_pot(manager_address, next_end, new_end)
            ledger.write_data(
                manager_address,
                encode_pot_manager(replace(manager, timestamps=(next_end, new_end))),
            )

        log.info(
            "Advanced %s: current round ends at %d, created pot %s ending at %d",
            manager_address,
            next_end,
            new_pot,
            new_end,
        )
        return new_pot

    def draw_lottery(self, pot_address: Pubkey, randomness_account: Pubkey) -> None:
        with self.ledger.transaction() as ledger:
            pot = self.load_pot(pot_address)
            status = pot_status(pot, ledger.clock.unix_timestamp)
            if pot.randomness_account is not None:
                raise RandomnessAlreadyRequested(str(pot.randomness_account))
            if status != PotStatus.CLOSED:
                raise PotNotClosed(status.value)

            acct = ledger.get(randomness_account)
            if acct is None or acct.owner != self.oracle_program_id:
                raise InvalidRandomnessAccount(str(randomness_account))
            record = parse_randomness(acct.data)
            if record.status == RandomnessStatus.REVEALED:
                raise RandomnessAlreadyRevealed(str(randomness_account))
            if record.status != RandomnessStatus.COMMITTED:
                raise RandomnessNotCommitted(str(randomness_account))

            ledger.write_data(
                pot_address, encode_pot(replace(pot, randomness_account=randomness_account))
            )

        log.info("Pot %s is drawing with randomness %s", pot_address, randomness_account)

    def settle_lottery(self, pot_address: Pubkey, randomness_account: Pubkey) -> Optional[int]:
        """Fix the winning index from the revealed value; returns it (None for an empty pot)."""
        with self.ledger.transaction() as ledger:
            pot = self.load_pot(pot_address)
            if pot.settled:
                raise WinnerAlreadySelected(str(pot.winning_index))
            status = pot_status(pot, ledger.clock.unix_timestamp)
            if status != PotStatus.DRAWING:
                raise PotNotDrawing(status.value)
            if randomness_account != pot.randomness_account:
                raise InvalidRandomnessAccount(str(randomness_account))

            data = ledger.get_account_data(randomness_account)
            if data is None:
                raise InvalidRandomnessAccount(str(randomness_account))
            value = parse_randomness(data).revealed_value
            if value is None:
                raise RandomnessNotResolved(str(randomness_account))

            winner = compute_winning_index(value, pot.total_participants)
            ledger.write_data(
                pot_address, encode_pot(replace(pot, winning_index=winner, settled=True))
            )

        log.info(
            "Settled pot %s: value=%d participants=%d winning index=%s",
            pot_address,
            value,
            pot.total_participants,
            winner,
        )
        return winner

    # --- participant instructions -------------------------------------------

    def enter_ticket(
        self,
        user: Pubkey,
        pot_address: Pubkey,
        ticket_address: Pubkey,
        payment: Optional[int] = None,
    ) -> Ticket:
        """
        Buy the next ticket of an open pot.

        `ticket_address` is the address the caller derived from the participant
        count it observed. If another entry landed first the address is stale and
        the entry fails; callers refetch the pot and retry.
        """
        amount = self.min_entry if payment is None else payment
        with self.ledger.transaction() as ledger:
            pot = self.load_pot(pot_address)
            now = ledger.clock.unix_timestamp
            if now >= pot.end_timestamp:
                raise PotClosed(f"ended at {pot.end_timestamp}")
            if now < pot.start_timestamp:
                raise PotNotOpen(f"opens at {pot.start_timestamp}")
            if amount < self.min_entry:
                raise InvalidPayment(f"{amount} < {self.min_entry}")
            if amount > U64_MAX:
                raise InvalidPayment(f"{amount} does not fit in a u64")

            index = pot.total_participants
            expected, _ = derive_ticket(pot_address, index, self.program_id)
            if ticket_address != expected:
                raise StaleTicketIndex(f"next index is {index}")
            if ledger.balance(user) < amount:
                raise NotEnoughFundsToPlay(f"need {amount}, have {ledger.balance(user)}")

            pooled, fee = split_payment(amount, self.fee_bps)
            if pot.prize_pool + pooled > U64_MAX:
                raise InvalidPayment("prize pool would overflow")
            self.custody.collect(ledger, user, pooled, fee)
            ticket = Ticket(participant=user, index=index)
            ledger.create_account(ticket_address, owner=self.program_id, data=encode_ticket(ticket))
            ledger.write_data(pot_address, encode_pot(pot.with_entry(pooled)))

        log.info("Ticket %d issued in pot %s to %s", index, pot_address, user)
        return ticket

    def claim_prize(self, winner: Pubkey, ticket_address: Pubkey, pot_address: Pubkey) -> int:
        with self.ledger.transaction() as ledger:
            pot = self.load_pot(pot_address)
            status = pot_status(pot, ledger.clock.unix_timestamp)
            if status != PotStatus.SETTLED:
                raise PotNotSettled(status.value)
            ticket = self.load_ticket(ticket_address)
            expected, _ = derive_ticket(pot_address, ticket.index, self.program_id)
            if ticket_address != expected or ticket.index != pot.winning_index:
                raise TicketAccountNotWinning(f"ticket index {ticket.index}")
            if ticket.participant != winner:
                raise TicketOwnerMismatch(str(winner))
            if pot.claimed:
                raise PrizeAlreadyClaimed(str(pot_address))

            self.custody.pay_out(ledger, winner, pot.prize_pool)
            ledger.write_data(pot_address, encode_pot(replace(pot, claimed=True)))

        log.info("Prize of %d lamports from pot %s claimed by %s", pot.prize_pool, pot_address, winner)
        return pot.prize_pool

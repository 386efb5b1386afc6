"""
Read-side client for lottery records.

Works over any account source: the in-memory ledger or a cluster reached
through `RpcClient`. Records are located by address derivation, so reading a
round or its tickets never needs a scan; scans are only used to list.

Entry retry policy for participants: `Enter` against a pot that has closed,
or with a stale ticket address, fails without side effects. Refetch the
manager with `open_pot()` / `next_ticket_address()` and submit again.
"""

from __future__ import annotations

from typing import Callable, List, Optional, Tuple

from solders.pubkey import Pubkey

from .codec import (
    POT_DISCRIMINATOR,
    TICKET_DISCRIMINATOR,
    decode_pot,
    decode_pot_manager,
    decode_ticket,
    derive_pot,
    derive_pot_manager,
    derive_ticket,
)
from .errors import AccountNotInitialized
from .ledger import Ledger
from .models import Pot, PotManager, PotStatus, Ticket, pot_status
from .rpc import RpcClient

Fetch = Callable[[Pubkey], Optional[bytes]]
Scan = Callable[[bytes, List[Tuple[int, bytes]]], List[Tuple[Pubkey, bytes]]]


class LottoReader:
    def __init__(self, fetch: Fetch, scan: Scan, program_id: Pubkey) -> None:
        self._fetch = fetch
        self._scan = scan
        self.program_id = program_id

    @staticmethod
    def from_ledger(ledger: Ledger, program_id: Pubkey) -> "LottoReader":
        def scan(prefix: bytes, memcmp: List[Tuple[int, bytes]]) -> List[Tuple[Pubkey, bytes]]:
            out = []
            for address, data in ledger.program_accounts(program_id, prefix=prefix):
                if all(data[off : off + len(raw)] == raw for off, raw in memcmp):
                    out.append((address, data))
            return out

        return LottoReader(ledger.get_account_data, scan, program_id)

    @staticmethod
    def from_rpc(rpc: RpcClient, program_id: Pubkey) -> "LottoReader":
        def fetch(address: Pubkey) -> Optional[bytes]:
            return rpc.get_account_data(str(address))

        def scan(prefix: bytes, memcmp: List[Tuple[int, bytes]]) -> List[Tuple[Pubkey, bytes]]:
            return [
                (Pubkey.from_string(address), data)
                for address, data in rpc.get_program_accounts(
                    str(program_id), prefix=prefix, memcmp=memcmp
                )
            ]

        return LottoReader(fetch, scan, program_id)

    def _require(self, address: Pubkey) -> bytes:
        data = self._fetch(address)
        if data is None:
            raise AccountNotInitialized(str(address))
        return data

    # --- single records -----------------------------------------------------

    def pot_manager(self, address: Pubkey) -> PotManager:
        return decode_pot_manager(self._require(address))

    def pot(self, address: Pubkey) -> Pot:
        return decode_pot(self._require(address))

    def ticket(self, address: Pubkey) -> Ticket:
        return decode_ticket(self._require(address))

    def manager_address(self, authority: Pubkey, name: str) -> Pubkey:
        return derive_pot_manager(authority, name, self.program_id)[0]

    def pot_status(self, address: Pubkey, now: int) -> PotStatus:
        return pot_status(self.pot(address), now)

    # --- round navigation ---------------------------------------------------

    def current_pot(self, manager_address: Pubkey) -> Tuple[Pubkey, Pot]:
        manager = self.pot_manager(manager_address)
        address, _ = derive_pot(manager_address, manager.current_end, self.program_id)
        return address, self.pot(address)

    def next_pot(self, manager_address: Pubkey) -> Tuple[Pubkey, Pot]:
        manager = self.pot_manager(manager_address)
        address, _ = derive_pot(manager_address, manager.next_end, self.program_id)
        return address, self.pot(address)

    def open_pot(self, manager_address: Pubkey, now: int) -> Optional[Tuple[Pubkey, Pot]]:
        """The pot accepting entries at `now`, or None while the round awaits advancing."""
        for address, pot in (self.current_pot(manager_address), self.next_pot(manager_address)):
            if pot.start_timestamp <= now < pot.end_timestamp:
                return address, pot
        return None

    def pots_for_manager(self, manager_address: Pubkey) -> List[Tuple[Pubkey, Pot]]:
        found = self._scan(POT_DISCRIMINATOR, [(8, bytes(manager_address))])
        pots = [(address, decode_pot(data)) for address, data in found]
        pots.sort(key=lambda item: item[1].end_timestamp)
        return pots

    # --- tickets ------------------------------------------------------------

    def next_ticket_address(self, pot_address: Pubkey) -> Pubkey:
        pot = self.pot(pot_address)
        return derive_ticket(pot_address, pot.total_participants, self.program_id)[0]

    def tickets_for_pot(self, pot_address: Pubkey) -> List[Tuple[Pubkey, Ticket]]:
        pot = self.pot(pot_address)
        out = []
        for index in range(pot.total_participants):
            address, _ = derive_ticket(pot_address, index, self.program_id)
            out.append((address, self.ticket(address)))
        return out

    def tickets_for_participant(self, participant: Pubkey) -> List[Tuple[Pubkey, Ticket]]:
        found = self._scan(TICKET_DISCRIMINATOR, [(8, bytes(participant))])
        return [(address, decode_ticket(data)) for address, data in found]

    def winning_ticket(self, pot_address: Pubkey) -> Optional[Tuple[Pubkey, Ticket]]:
        pot = self.pot(pot_address)
        if pot.winning_index is None:
            return None
        address, _ = derive_ticket(pot_address, pot.winning_index, self.program_id)
        return address, self.ticket(address)

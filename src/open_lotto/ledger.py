"""
In-memory host ledger.

Holds durable, independently addressable accounts and executes one
instruction at a time. `transaction()` serializes instructions and rolls
every account back if the instruction raises, so multi-effect operations
either land completely or not at all.
"""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Dict, Iterator, List, Optional, Tuple

from solders.pubkey import Pubkey

from .errors import AccountAlreadyInUse, AccountNotInitialized, NotEnoughFundsToPlay

log = logging.getLogger(__name__)

SYSTEM_PROGRAM_ID = Pubkey.default()


@dataclass(frozen=True)
class Clock:
    unix_timestamp: int
    slot: int = 0

    @staticmethod
    def now(slot: int = 0) -> "Clock":
        return Clock(unix_timestamp=int(time.time()), slot=slot)


@dataclass
class Account:
    owner: Pubkey
    lamports: int = 0
    data: bytes = b""


class Ledger:
    def __init__(self, clock: Optional[Clock] = None) -> None:
        self.clock = clock or Clock.now()
        self._accounts: Dict[Pubkey, Account] = {}
        self._lock = threading.RLock()

    def warp(self, unix_timestamp: int, slot: Optional[int] = None) -> None:
        with self._lock:
            self.clock = Clock(
                unix_timestamp=unix_timestamp,
                slot=self.clock.slot if slot is None else slot,
            )

    @contextmanager
    def transaction(self) -> Iterator["Ledger"]:
        with self._lock:
            snapshot = {k: replace(v) for k, v in self._accounts.items()}
            try:
                yield self
            except BaseException:
                self._accounts = snapshot
                raise

    # --- reads --------------------------------------------------------------

    def get(self, address: Pubkey) -> Optional[Account]:
        with self._lock:
            acct = self._accounts.get(address)
            return replace(acct) if acct is not None else None

    def exists(self, address: Pubkey) -> bool:
        with self._lock:
            return address in self._accounts

    def get_account_data(self, address: Pubkey) -> Optional[bytes]:
        with self._lock:
            acct = self._accounts.get(address)
            return acct.data if acct is not None else None

    def balance(self, address: Pubkey) -> int:
        with self._lock:
            acct = self._accounts.get(address)
            return acct.lamports if acct is not None else 0

    def program_accounts(
        self, owner: Pubkey, prefix: Optional[bytes] = None
    ) -> List[Tuple[Pubkey, bytes]]:
        with self._lock:
            accounts = [(k, v.owner, v.data) for k, v in self._accounts.items()]
        out: List[Tuple[Pubkey, bytes]] = []
        for address, acct_owner, data in accounts:
            if acct_owner != owner:
                continue
            if prefix is not None and not data.startswith(prefix):
                continue
            out.append((address, data))
        return out

    # --- writes -------------------------------------------------------------

    def create_account(
        self, address: Pubkey, owner: Pubkey, data: bytes = b"", lamports: int = 0
    ) -> None:
        with self._lock:
            if address in self._accounts:
                raise AccountAlreadyInUse(str(address))
            self._accounts[address] = Account(owner=owner, lamports=lamports, data=bytes(data))
            log.debug("Created account %s (%d bytes)", address, len(data))

    def write_data(self, address: Pubkey, data: bytes) -> None:
        with self._lock:
            acct = self._accounts.get(address)
            if acct is None:
                raise AccountNotInitialized(str(address))
            acct.data = bytes(data)

    def fund(self, address: Pubkey, lamports: int) -> None:
        """Airdrop lamports, creating a system-owned wallet when needed."""
        with self._lock:
            acct = self._accounts.get(address)
            if acct is None:
                acct = Account(owner=SYSTEM_PROGRAM_ID)
                self._accounts[address] = acct
            acct.lamports += lamports

    def transfer(self, source: Pubkey, dest: Pubkey, amount: int) -> None:
        if amount < 0:
            raise ValueError("transfer amount must be non-negative")
        with self._lock:
            src = self._accounts.get(source)
            have = src.lamports if src is not None else 0
            if src is None or have < amount:
                log.debug("Need %d lamports, but only have %d", amount, have)
                raise NotEnoughFundsToPlay(f"{source}: need {amount}, have {have}")
            dst = self._accounts.get(dest)
            if dst is None:
                dst = Account(owner=SYSTEM_PROGRAM_ID)
                self._accounts[dest] = dst
            src.lamports -= amount
            dst.lamports += amount

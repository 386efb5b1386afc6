"""
Bridge to the external randomness oracle.

The oracle's request record is opaque to the lottery except for two slots
and the value they guard (Switchboard on-demand `RandomnessAccountData`):

    disc(8) | authority(32) | queue(32) | seed_slothash(32)
    | seed_slot u64 @104 | oracle(32) | reveal_slot u64 @144 | value(32) @152

A non-zero seed_slot means the request is committed, a non-zero reveal_slot
means the value is revealed. The random number used for a draw is the
little-endian u64 in the first 8 bytes of `value`.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

from solders.pubkey import Pubkey

from .ledger import Ledger
from .project_constants import SB_ON_DEMAND_DEVNET
from .rpc import RpcClient

log = logging.getLogger(__name__)

RANDOMNESS_DISCRIMINATOR = bytes([10, 66, 229, 135, 220, 239, 217, 114])
SEED_SLOT_OFFSET = 104
REVEAL_SLOT_OFFSET = 144
VALUE_OFFSET = 152
RANDOMNESS_ACCOUNT_LEN = VALUE_OFFSET + 32


class RandomnessStatus(str, Enum):
    NOT_FOUND = "not_found"
    INITIALIZED = "initialized"
    COMMITTED = "committed"
    REVEALED = "revealed"


@dataclass(frozen=True)
class RandomnessRecord:
    seed_slot: int
    reveal_slot: int
    value: bytes

    @property
    def status(self) -> RandomnessStatus:
        if self.reveal_slot:
            return RandomnessStatus.REVEALED
        if self.seed_slot:
            return RandomnessStatus.COMMITTED
        return RandomnessStatus.INITIALIZED

    @property
    def revealed_value(self) -> Optional[int]:
        if not self.reveal_slot:
            return None
        return struct.unpack_from("<Q", self.value, 0)[0]


def parse_randomness(data: bytes) -> RandomnessRecord:
    """Read the committed/revealed slots; short records count as uncommitted."""
    if len(data) < REVEAL_SLOT_OFFSET + 8:
        return RandomnessRecord(seed_slot=0, reveal_slot=0, value=bytes(32))
    (seed_slot,) = struct.unpack_from("<Q", data, SEED_SLOT_OFFSET)
    (reveal_slot,) = struct.unpack_from("<Q", data, REVEAL_SLOT_OFFSET)
    value = data[VALUE_OFFSET : VALUE_OFFSET + 32]
    if len(value) < 32:
        # Revealed without a value is not usable.
        return RandomnessRecord(seed_slot=seed_slot, reveal_slot=0, value=bytes(32))
    return RandomnessRecord(seed_slot=seed_slot, reveal_slot=reveal_slot, value=value)


def randomness_status(data: Optional[bytes]) -> RandomnessStatus:
    if data is None:
        return RandomnessStatus.NOT_FOUND
    return parse_randomness(data).status


class RandomnessSource(Protocol):
    def status(self, address: Pubkey) -> RandomnessStatus:
        ...

    def revealed_value(self, address: Pubkey) -> Optional[int]:
        ...


class RandomnessOracle(RandomnessSource, Protocol):
    def request(self) -> Pubkey:
        ...


class LocalOracle:
    """
    An oracle service running against the in-memory ledger.

    `request()` creates a fresh record; `commit()` and `reveal()` play the
    oracle network's part of the handshake.
    """

    def __init__(self, ledger: Ledger, program_id: Optional[Pubkey] = None) -> None:
        self.ledger = ledger
        self.program_id = program_id or Pubkey.from_string(SB_ON_DEMAND_DEVNET)

    def request(self, commit: bool = True) -> Pubkey:
        """Create a request record and, like a network oracle, commit it right away."""
        address = Pubkey.new_unique()
        data = bytearray(RANDOMNESS_ACCOUNT_LEN)
        data[:8] = RANDOMNESS_DISCRIMINATOR
        self.ledger.create_account(address, owner=self.program_id, data=bytes(data))
        log.info("Created randomness request %s", address)
        if commit:
            self.commit(address, max(self.ledger.clock.slot, 1))
        return address

    def commit(self, address: Pubkey, seed_slot: Optional[int] = None) -> None:
        slot = self.ledger.clock.slot if seed_slot is None else seed_slot
        if slot <= 0:
            raise ValueError("seed slot must be positive")
        self._patch(address, SEED_SLOT_OFFSET, struct.pack("<Q", slot))
        log.info("Committed randomness %s at slot %d", address, slot)

    def reveal(self, address: Pubkey, value: int, reveal_slot: Optional[int] = None) -> None:
        slot = self.ledger.clock.slot if reveal_slot is None else reveal_slot
        if slot <= 0:
            raise ValueError("reveal slot must be positive")
        self._patch(address, VALUE_OFFSET, value.to_bytes(32, "little"))
        self._patch(address, REVEAL_SLOT_OFFSET, struct.pack("<Q", slot))
        log.info("Revealed randomness %s at slot %d", address, slot)

    def status(self, address: Pubkey) -> RandomnessStatus:
        return randomness_status(self.ledger.get_account_data(address))

    def revealed_value(self, address: Pubkey) -> Optional[int]:
        data = self.ledger.get_account_data(address)
        if data is None:
            return None
        return parse_randomness(data).revealed_value

    def _patch(self, address: Pubkey, offset: int, raw: bytes) -> None:
        data = self.ledger.get_account_data(address)
        if data is None:
            raise KeyError(f"randomness account {address} not found")
        buf = bytearray(data)
        buf[offset : offset + len(raw)] = raw
        self.ledger.write_data(address, bytes(buf))


class SwitchboardSource:
    """Reads Switchboard on-demand request records over JSON-RPC."""

    def __init__(self, rpc: RpcClient) -> None:
        self.rpc = rpc

    def status(self, address: Pubkey) -> RandomnessStatus:
        return randomness_status(self.rpc.get_account_data(str(address)))

    def revealed_value(self, address: Pubkey) -> Optional[int]:
        data = self.rpc.get_account_data(str(address))
        if data is None:
            return None
        return parse_randomness(data).revealed_value

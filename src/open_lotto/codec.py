"""
Binary layout and address derivation for every lottery record.

Every record starts with an 8-byte discriminator, sha256("account:<Type>")[:8],
followed by its fields little-endian. Readers check the discriminator and a
minimum length only, so records that grow trailing fields stay readable.

    PotManager: disc | authority(32) | treasury(32) | token_mint(32)
                | pot_duration u64 | current_end u64 | next_end u64 | bump u8
                | name (u32 len + utf-8)
    Pot:        disc | pot_manager(32) | total_participants u64 | start u64
                | end u64 | winning_slot u64 | randomness_account(32)
                | prize_pool u64 | flags u8            (trailer optional)
    Ticket:     disc | participant(32) | index u64
"""

from __future__ import annotations

import hashlib
import struct
from typing import Optional, Tuple

from solders.pubkey import Pubkey

from .errors import AccountDidNotDeserialize, AccountDiscriminatorMismatch, ManagerNameTooLong
from .models import Pot, PotManager, Ticket
from .project_constants import (
    ESCROW_SEED,
    MANAGER_SEED,
    MAX_MANAGER_NAME_LEN,
    POT_SEED,
    TICKET_SEED,
    TREASURY_SEED,
)

DISCRIMINATOR_LEN = 8

POT_FLAG_SETTLED = 0x01
POT_FLAG_CLAIMED = 0x02

MANAGER_FIXED_LEN = DISCRIMINATOR_LEN + 32 * 3 + 8 * 3 + 1 + 4
POT_BASE_LEN = DISCRIMINATOR_LEN + 32 + 8 * 4 + 32
POT_LEN = POT_BASE_LEN + 8 + 1
TICKET_LEN = DISCRIMINATOR_LEN + 32 + 8
U64_MAX = 2**64 - 1

_DEFAULT_KEY = bytes(32)


def account_discriminator(type_name: str) -> bytes:
    return hashlib.sha256(f"account:{type_name}".encode("utf-8")).digest()[:8]


def instruction_discriminator(name: str) -> bytes:
    return hashlib.sha256(f"global:{name}".encode("utf-8")).digest()[:8]


POT_MANAGER_DISCRIMINATOR = account_discriminator("PotManager")
POT_DISCRIMINATOR = account_discriminator("Pot")
TICKET_DISCRIMINATOR = account_discriminator("Ticket")


def u64(value: int) -> bytes:
    return struct.pack("<Q", value)


def encode_string(value: str) -> bytes:
    raw = value.encode("utf-8")
    return struct.pack("<I", len(raw)) + raw


def _check(data: bytes, discriminator: bytes, min_len: int, type_name: str) -> None:
    if len(data) < DISCRIMINATOR_LEN or data[:DISCRIMINATOR_LEN] != discriminator:
        raise AccountDiscriminatorMismatch(type_name)
    if len(data) < min_len:
        raise AccountDidNotDeserialize(f"{type_name}: {len(data)} < {min_len} bytes")


def _key(raw: bytes) -> Pubkey:
    return Pubkey.from_bytes(raw)


def _optional_key(raw: bytes) -> Optional[Pubkey]:
    if raw == _DEFAULT_KEY:
        return None
    return Pubkey.from_bytes(raw)


# --- PotManager -------------------------------------------------------------


def encode_pot_manager(m: PotManager) -> bytes:
    name = m.name.encode("utf-8")
    if len(name) > MAX_MANAGER_NAME_LEN:
        raise ManagerNameTooLong(f"{len(name)} bytes")
    return b"".join(
        [
            POT_MANAGER_DISCRIMINATOR,
            bytes(m.authority),
            bytes(m.treasury),
            bytes(m.token_mint),
            struct.pack("<QQQB", m.pot_duration, m.timestamps[0], m.timestamps[1], m.bump),
            encode_string(m.name),
        ]
    )


def decode_pot_manager(data: bytes) -> PotManager:
    _check(data, POT_MANAGER_DISCRIMINATOR, MANAGER_FIXED_LEN, "PotManager")
    off = DISCRIMINATOR_LEN
    authority = _key(data[off : off + 32])
    treasury = _key(data[off + 32 : off + 64])
    token_mint = _key(data[off + 64 : off + 96])
    off += 96
    duration, current_end, next_end, bump = struct.unpack_from("<QQQB", data, off)
    off += 25
    (name_len,) = struct.unpack_from("<I", data, off)
    off += 4
    if name_len > MAX_MANAGER_NAME_LEN or len(data) < off + name_len:
        raise AccountDidNotDeserialize(f"PotManager: bad name length {name_len}")
    try:
        name = data[off : off + name_len].decode("utf-8")
    except UnicodeDecodeError as e:
        raise AccountDidNotDeserialize(f"PotManager: name is not utf-8: {e}")
    return PotManager(
        authority=authority,
        treasury=treasury,
        token_mint=token_mint,
        pot_duration=duration,
        timestamps=(current_end, next_end),
        bump=bump,
        name=name,
    )


# --- Pot --------------------------------------------------------------------


def encode_pot(p: Pot) -> bytes:
    flags = 0
    if p.settled:
        flags |= POT_FLAG_SETTLED
    if p.claimed:
        flags |= POT_FLAG_CLAIMED
    randomness = bytes(p.randomness_account) if p.randomness_account else _DEFAULT_KEY
    return b"".join(
        [
            POT_DISCRIMINATOR,
            bytes(p.pot_manager),
            struct.pack(
                "<QQQQ",
                p.total_participants,
                p.start_timestamp,
                p.end_timestamp,
                p.winning_index or 0,
            ),
            randomness,
            struct.pack("<QB", p.prize_pool, flags),
        ]
    )


def decode_pot(data: bytes) -> Pot:
    _check(data, POT_DISCRIMINATOR, POT_BASE_LEN, "Pot")
    off = DISCRIMINATOR_LEN
    manager = _key(data[off : off + 32])
    off += 32
    participants, start, end, winning_slot = struct.unpack_from("<QQQQ", data, off)
    off += 32
    randomness = _optional_key(data[off : off + 32])
    off += 32

    if len(data) >= POT_LEN:
        prize_pool, flags = struct.unpack_from("<QB", data, off)
        settled = bool(flags & POT_FLAG_SETTLED)
        claimed = bool(flags & POT_FLAG_CLAIMED)
    else:
        # Records written before the trailer existed: non-zero slot means settled.
        prize_pool, settled, claimed = 0, winning_slot > 0, False

    winning_index = winning_slot if settled and participants > 0 else None
    return Pot(
        pot_manager=manager,
        total_participants=participants,
        start_timestamp=start,
        end_timestamp=end,
        winning_index=winning_index,
        randomness_account=randomness,
        prize_pool=prize_pool,
        settled=settled,
        claimed=claimed,
    )


# --- Ticket -----------------------------------------------------------------


def encode_ticket(t: Ticket) -> bytes:
    return TICKET_DISCRIMINATOR + bytes(t.participant) + u64(t.index)


def decode_ticket(data: bytes) -> Ticket:
    _check(data, TICKET_DISCRIMINATOR, TICKET_LEN, "Ticket")
    participant = _key(data[8:40])
    (index,) = struct.unpack_from("<Q", data, 40)
    return Ticket(participant=participant, index=index)


# --- Addresses --------------------------------------------------------------


def derive_pot_manager(authority: Pubkey, name: str, program_id: Pubkey) -> Tuple[Pubkey, int]:
    raw = name.encode("utf-8")
    if len(raw) > MAX_MANAGER_NAME_LEN:
        raise ManagerNameTooLong(f"{len(raw)} bytes")
    return Pubkey.find_program_address([MANAGER_SEED, bytes(authority), raw], program_id)


def derive_pot(manager: Pubkey, end_timestamp: int, program_id: Pubkey) -> Tuple[Pubkey, int]:
    return Pubkey.find_program_address([POT_SEED, bytes(manager), u64(end_timestamp)], program_id)


def derive_ticket(pot: Pubkey, index: int, program_id: Pubkey) -> Tuple[Pubkey, int]:
    return Pubkey.find_program_address([TICKET_SEED, bytes(pot), u64(index)], program_id)


def derive_escrow(program_id: Pubkey) -> Tuple[Pubkey, int]:
    return Pubkey.find_program_address([ESCROW_SEED], program_id)


def derive_treasury(program_id: Pubkey) -> Tuple[Pubkey, int]:
    return Pubkey.find_program_address([TREASURY_SEED], program_id)


# --- Instruction payloads ---------------------------------------------------


def encode_init_pot_manager(end_ts: int, pot_duration: int, manager_name: str) -> bytes:
    return (
        instruction_discriminator("init_pot_manager")
        + u64(end_ts)
        + u64(pot_duration)
        + encode_string(manager_name)
    )


def encode_draw_lottery(randomness_account: Pubkey) -> bytes:
    return instruction_discriminator("draw_lottery") + bytes(randomness_account)


def encode_enter_ticket(payment: int) -> bytes:
    return instruction_discriminator("enter_ticket") + u64(payment)


def encode_advance_round() -> bytes:
    return instruction_discriminator("advance_round")


def encode_settle_lottery() -> bytes:
    return instruction_discriminator("settle_lottery")


def encode_claim_prize() -> bytes:
    return instruction_discriminator("claim_prize")

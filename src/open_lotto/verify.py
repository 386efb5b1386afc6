from __future__ import annotations

import json
from typing import Any, Dict

from solders.pubkey import Pubkey

from .client import LottoReader
from .draw import compute_winning_index
from .randomness import RandomnessSource


def verify_settlement(
    reader: LottoReader, source: RandomnessSource, pot_address: Pubkey
) -> Dict[str, Any]:
    """Recompute a settled pot's winner from its randomness record."""
    pot = reader.pot(pot_address)
    if not pot.settled:
        raise RuntimeError(f"Pot {pot_address} is not settled")
    if pot.randomness_account is None:
        raise RuntimeError(f"Pot {pot_address} has no randomness account")

    value = source.revealed_value(pot.randomness_account)
    if value is None:
        raise RuntimeError(f"Randomness {pot.randomness_account} is not revealed")

    expected = compute_winning_index(value, pot.total_participants)
    if expected != pot.winning_index:
        raise RuntimeError(
            f"Winning index mismatch: pot={pot.winning_index} recomputed={expected}"
        )

    winner = reader.winning_ticket(pot_address)
    return {
        "ok": True,
        "pot": str(pot_address),
        "randomness_account": str(pot.randomness_account),
        "revealed_value": str(value),  # u64; store as string for safety
        "total_participants": pot.total_participants,
        "winning_index": expected,
        "winner": str(winner[1].participant) if winner else None,
        "winning_ticket": str(winner[0]) if winner else None,
        "prize_pool": pot.prize_pool,
        "claimed": pot.claimed,
    }


def write_audit(audit: Dict[str, Any], path: str) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(audit, f, indent=2)

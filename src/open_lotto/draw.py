from __future__ import annotations

from typing import Optional

from .project_constants import LAMPORTS_PER_SOL


def compute_winning_index(revealed_value: int, total_participants: int) -> Optional[int]:
    if total_participants < 0:
        raise ValueError("participant count cannot be negative")
    if total_participants == 0:
        return None
    return revealed_value % total_participants


def to_sol(lamports: int) -> float:
    return round(lamports / LAMPORTS_PER_SOL, 4)

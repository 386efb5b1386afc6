from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Optional, Tuple

from solders.pubkey import Pubkey


@dataclass(frozen=True)
class PotManager:
    authority: Pubkey
    treasury: Pubkey
    token_mint: Pubkey
    pot_duration: int
    timestamps: Tuple[int, int]  # (current round end, next round end)
    bump: int
    name: str

    @property
    def current_end(self) -> int:
        return self.timestamps[0]

    @property
    def next_end(self) -> int:
        return self.timestamps[1]


@dataclass(frozen=True)
class Pot:
    pot_manager: Pubkey
    total_participants: int
    start_timestamp: int
    end_timestamp: int
    winning_index: Optional[int] = None
    randomness_account: Optional[Pubkey] = None
    prize_pool: int = 0
    # An empty round settles with winning_index left as None.
    settled: bool = False
    claimed: bool = False

    def with_entry(self, pooled: int) -> "Pot":
        return replace(
            self,
            total_participants=self.total_participants + 1,
            prize_pool=self.prize_pool + pooled,
        )


@dataclass(frozen=True)
class Ticket:
    participant: Pubkey
    index: int


class PotStatus(str, Enum):
    ACTIVE = "active"
    DRAWING = "drawing"
    SETTLED = "settled"
    CLOSED = "closed"


def pot_status(pot: Pot, now: int) -> PotStatus:
    """Status is never stored; it follows from the clock and two optional fields."""
    if now < pot.end_timestamp:
        return PotStatus.ACTIVE
    if pot.settled:
        return PotStatus.SETTLED
    if pot.randomness_account is not None:
        return PotStatus.DRAWING
    return PotStatus.CLOSED


def time_remaining(end_timestamp: int, now: int) -> Dict[str, int]:
    total = max(0, end_timestamp - now)
    return {
        "days": total // 86400,
        "hours": (total % 86400) // 3600,
        "minutes": (total % 3600) // 60,
        "seconds": total % 60,
        "total": total,
    }


def format_time_remaining(seconds: int) -> str:
    if seconds <= 0:
        return "Ended"
    days, rem = divmod(seconds, 86400)
    hours, rem = divmod(rem, 3600)
    minutes, secs = divmod(rem, 60)
    if days > 0:
        return f"{days}d {hours}h {minutes}m"
    if hours > 0:
        return f"{hours}h {minutes}m {secs}s"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"

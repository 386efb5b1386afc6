from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional

from solders.pubkey import Pubkey

from .codec import POT_DISCRIMINATOR, decode_pot
from .errors import LottoError
from .models import PotStatus, pot_status
from .program import LottoProgram
from .randomness import RandomnessOracle, RandomnessStatus

log = logging.getLogger(__name__)


@dataclass
class TickReport:
    advanced: List[Pubkey] = field(default_factory=list)
    drawn: List[Pubkey] = field(default_factory=list)
    settled: List[Pubkey] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


class Keeper:
    """
    Drives the time-based instructions of one pot manager.

    Every step is safe to retry blindly: a stale precondition surfaces as a
    LottoError, which is logged and skipped until the next tick.
    """

    def __init__(self, program: LottoProgram, oracle: RandomnessOracle, manager: Pubkey) -> None:
        self.program = program
        self.oracle = oracle
        self.manager = manager

    def _pots(self) -> List[tuple]:
        out = []
        for address, data in self.program.ledger.program_accounts(
            self.program.program_id, prefix=POT_DISCRIMINATOR
        ):
            pot = decode_pot(data)
            if pot.pot_manager == self.manager:
                out.append((address, pot))
        out.sort(key=lambda item: item[1].end_timestamp)
        return out

    def advance(self, report: TickReport) -> None:
        # Catch up one round at a time until the current round is open again.
        while True:
            manager = self.program.load_pot_manager(self.manager)
            if self.program.ledger.clock.unix_timestamp < manager.current_end:
                return
            try:
                report.advanced.append(self.program.advance_round(self.manager))
            except LottoError as e:
                log.warning("advance_round failed: %s", e)
                report.skipped.append(f"advance: {e}")
                return

    def draw_and_settle(self, report: TickReport) -> None:
        now = self.program.ledger.clock.unix_timestamp
        for address, pot in self._pots():
            status = pot_status(pot, now)
            try:
                if status == PotStatus.CLOSED and pot.total_participants > 0:
                    # The request record only survives if the draw lands.
                    with self.program.ledger.transaction():
                        request = self.oracle.request()
                        self.program.draw_lottery(address, request)
                    report.drawn.append(address)
                elif status == PotStatus.DRAWING:
                    if self.oracle.status(pot.randomness_account) != RandomnessStatus.REVEALED:
                        log.debug("Pot %s still waiting on reveal", address)
                        continue
                    self.program.settle_lottery(address, pot.randomness_account)
                    report.settled.append(address)
            except LottoError as e:
                log.warning("Pot %s: %s", address, e)
                report.skipped.append(f"{address}: {e}")

    def run_once(self) -> TickReport:
        report = TickReport()
        self.advance(report)
        self.draw_and_settle(report)
        return report

    def run_forever(self, interval_s: float = 10.0, max_ticks: Optional[int] = None) -> None:
        ticks = 0
        while max_ticks is None or ticks < max_ticks:
            report = self.run_once()
            if report.advanced or report.drawn or report.settled:
                log.info(
                    "Tick: advanced=%d drawn=%d settled=%d",
                    len(report.advanced),
                    len(report.drawn),
                    len(report.settled),
                )
            ticks += 1
            if max_ticks is None or ticks < max_ticks:
                time.sleep(interval_s)

import pytest
from solders.pubkey import Pubkey

from open_lotto.client import LottoReader
from open_lotto.ledger import Clock, Ledger
from open_lotto.program import LottoProgram
from open_lotto.randomness import LocalOracle

START = 1_700_000_000
DURATION = 3600


@pytest.fixture
def ledger():
    return Ledger(Clock(unix_timestamp=START, slot=100))


@pytest.fixture
def program(ledger):
    return LottoProgram(ledger)


@pytest.fixture
def oracle(ledger, program):
    return LocalOracle(ledger, program.oracle_program_id)


@pytest.fixture
def reader(ledger, program):
    return LottoReader.from_ledger(ledger, program.program_id)


@pytest.fixture
def authority():
    return Pubkey.new_unique()


@pytest.fixture
def manager(program, authority):
    """Manager whose first round ends 300s from START."""
    return program.init_pot_manager(authority, START + 300, DURATION, "daily")


@pytest.fixture
def players(ledger, program):
    out = [Pubkey.new_unique() for _ in range(6)]
    for p in out:
        ledger.fund(p, program.min_entry * 10)
    return out


def enter(program, reader, player, pot, payment=None):
    return program.enter_ticket(player, pot, reader.next_ticket_address(pot), payment)


def close_and_draw(ledger, program, oracle, pot):
    """Move past the pot's end and attach a committed randomness request."""
    end = program.load_pot(pot).end_timestamp
    ledger.warp(end, ledger.clock.slot + 5)
    request = oracle.request()
    program.draw_lottery(pot, request)
    return request

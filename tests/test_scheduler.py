import pytest
from solders.pubkey import Pubkey

from conftest import DURATION, START
from open_lotto.codec import derive_pot, derive_pot_manager
from open_lotto.errors import (
    AccountAlreadyInUse,
    EndTimestampPassed,
    InvalidPotDuration,
    ManagerNameTooLong,
    RoundStillActive,
)
from open_lotto.models import PotStatus


def _open_pots(reader, manager, now):
    return [
        address
        for address, pot in reader.pots_for_manager(manager)
        if pot.start_timestamp <= now < pot.end_timestamp
    ]


def test_init_creates_two_pots(program, reader, authority, manager):
    m = reader.pot_manager(manager.pot_manager)
    assert m.timestamps == (START + 300, START + 300 + DURATION)
    assert m.authority == authority
    assert m.name == "daily"
    assert m.treasury == manager.treasury

    first = reader.pot(manager.first_pot)
    second = reader.pot(manager.next_pot)
    assert (first.end_timestamp, second.end_timestamp) == (START + 300, START + 3900)
    assert first.total_participants == second.total_participants == 0
    assert first.start_timestamp == START
    assert second.start_timestamp == first.end_timestamp

    assert manager.pot_manager == derive_pot_manager(authority, "daily", program.program_id)[0]
    assert manager.first_pot == derive_pot(manager.pot_manager, START + 300, program.program_id)[0]
    assert reader.pot_status(manager.first_pot, START) == PotStatus.ACTIVE


def test_init_rejects_past_or_present_end(program, authority):
    with pytest.raises(EndTimestampPassed):
        program.init_pot_manager(authority, START, DURATION, "daily")
    with pytest.raises(EndTimestampPassed):
        program.init_pot_manager(authority, START - 1, DURATION, "daily")


def test_init_rejects_long_name_and_zero_duration(program, authority, ledger):
    with pytest.raises(ManagerNameTooLong):
        program.init_pot_manager(authority, START + 300, DURATION, "n" * 33)
    with pytest.raises(InvalidPotDuration):
        program.init_pot_manager(authority, START + 300, 0, "daily")
    assert ledger.program_accounts(program.program_id) == []


def test_init_is_single_shot_per_authority_and_name(program, authority, manager):
    with pytest.raises(AccountAlreadyInUse):
        program.init_pot_manager(authority, START + 600, DURATION, "daily")
    # A different name (or authority) is a separate lottery sharing custody.
    other = program.init_pot_manager(authority, START + 600, DURATION, "hourly")
    assert other.pot_manager != manager.pot_manager
    assert other.escrow == manager.escrow


def test_failed_init_leaves_no_records(program, reader, authority, manager):
    accounts_before = len(program.ledger.program_accounts(program.program_id))
    with pytest.raises(AccountAlreadyInUse):
        program.init_pot_manager(authority, START + 600, DURATION, "daily")
    assert len(program.ledger.program_accounts(program.program_id)) == accounts_before


def test_advance_requires_current_round_to_end(program, ledger, manager):
    with pytest.raises(RoundStillActive):
        program.advance_round(manager.pot_manager)
    ledger.warp(START + 299)
    with pytest.raises(RoundStillActive):
        program.advance_round(manager.pot_manager)


def test_advance_rolls_window(program, reader, ledger, manager):
    ledger.warp(START + 300)
    new_pot = program.advance_round(manager.pot_manager)

    m = reader.pot_manager(manager.pot_manager)
    assert m.timestamps == (START + 3900, START + 7500)
    assert new_pot == derive_pot(manager.pot_manager, START + 7500, program.program_id)[0]
    assert reader.current_pot(manager.pot_manager)[0] == manager.next_pot
    assert reader.next_pot(manager.pot_manager)[0] == new_pot
    assert reader.pot(new_pot).start_timestamp == START + 3900


def test_redundant_advance_only_first_succeeds(program, ledger, manager):
    ledger.warp(START + 300)
    program.advance_round(manager.pot_manager)
    with pytest.raises(RoundStillActive):
        program.advance_round(manager.pot_manager)


def test_exactly_one_open_pot_after_every_advance(program, reader, ledger, manager):
    assert _open_pots(reader, manager.pot_manager, START) == [manager.first_pot]
    for _ in range(5):
        end = reader.pot_manager(manager.pot_manager).current_end
        ledger.warp(end)
        program.advance_round(manager.pot_manager)
        now = ledger.clock.unix_timestamp
        opened = _open_pots(reader, manager.pot_manager, now)
        assert opened == [reader.current_pot(manager.pot_manager)[0]]
        assert reader.open_pot(manager.pot_manager, now)[0] == opened[0]


def test_empty_round_advances_and_stays_closed(program, reader, ledger, manager):
    ledger.warp(START + 300)
    program.advance_round(manager.pot_manager)
    ledger.warp(START + 100_000)
    first = reader.pot(manager.first_pot)
    assert first.total_participants == 0
    assert reader.pot_status(manager.first_pot, ledger.clock.unix_timestamp) == PotStatus.CLOSED
    assert first.winning_index is None


def test_managers_for_different_authorities_are_independent(program, reader):
    a, b = Pubkey.new_unique(), Pubkey.new_unique()
    ma = program.init_pot_manager(a, START + 10, 60, "same")
    mb = program.init_pot_manager(b, START + 10, 60, "same")
    assert ma.pot_manager != mb.pot_manager
    assert ma.first_pot != mb.first_pot
    assert len(reader.pots_for_manager(ma.pot_manager)) == 2

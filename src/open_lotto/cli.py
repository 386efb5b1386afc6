from __future__ import annotations

import argparse
import logging
import random
import time

from solders.pubkey import Pubkey

from .client import LottoReader
from .codec import derive_escrow, derive_pot, derive_pot_manager, derive_ticket, derive_treasury
from .config import Settings
from .draw import to_sol
from .ledger import Clock, Ledger
from .models import format_time_remaining, pot_status
from .keeper import Keeper
from .program import LottoProgram
from .randomness import LocalOracle, SwitchboardSource
from .rpc import RpcClient
from .verify import verify_settlement, write_audit


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def _reader(settings: Settings, rpc: RpcClient) -> LottoReader:
    return LottoReader.from_rpc(rpc, Pubkey.from_string(settings.program_id))


def cmd_derive(args: argparse.Namespace) -> int:
    settings = Settings.from_env(rpc_url_override=args.rpc_url)
    program_id = Pubkey.from_string(settings.program_id)
    manager, _ = derive_pot_manager(Pubkey.from_string(args.authority), args.name, program_id)
    print(f"Program       : {program_id}")
    print(f"Manager       : {manager}")
    print(f"Escrow        : {derive_escrow(program_id)[0]}")
    print(f"Treasury      : {derive_treasury(program_id)[0]}")
    if args.end_ts is not None:
        pot, _ = derive_pot(manager, args.end_ts, program_id)
        print(f"Pot @ {args.end_ts}: {pot}")
        if args.index is not None:
            print(f"Ticket #{args.index}    : {derive_ticket(pot, args.index, program_id)[0]}")
    return 0


def cmd_manager(args: argparse.Namespace) -> int:
    settings = Settings.from_env(rpc_url_override=args.rpc_url)
    rpc = RpcClient(settings.rpc_url, timeout_s=args.timeout)
    try:
        reader = _reader(settings, rpc)
        address = Pubkey.from_string(args.address)
        m = reader.pot_manager(address)
        now = rpc.cluster_time()
        print(f"Manager       : {address} ({m.name})")
        print(f"Authority     : {m.authority}")
        print(f"Treasury      : {m.treasury}")
        print(f"Duration      : {m.pot_duration}s")
        print(f"Current ends  : {m.current_end} ({format_time_remaining(m.current_end - now)})")
        print(f"Next ends     : {m.next_end}")
        opened = reader.open_pot(address, now)
        print(f"Open pot      : {opened[0] if opened else '(waiting for advance_round)'}")
    finally:
        rpc.close()
    return 0


def cmd_pot(args: argparse.Namespace) -> int:
    settings = Settings.from_env(rpc_url_override=args.rpc_url)
    rpc = RpcClient(settings.rpc_url, timeout_s=args.timeout)
    try:
        reader = _reader(settings, rpc)
        address = Pubkey.from_string(args.address)
        pot = reader.pot(address)
        now = rpc.cluster_time()
        print(f"Pot           : {address}")
        print(f"Status        : {pot_status(pot, now).value}")
        print(f"Participants  : {pot.total_participants}")
        print(f"Window        : {pot.start_timestamp} .. {pot.end_timestamp}")
        print(f"Prize pool    : {to_sol(pot.prize_pool)} SOL")
        print(f"Randomness    : {pot.randomness_account or '-'}")
        print(f"Winning index : {pot.winning_index if pot.winning_index is not None else '-'}")
        print(f"Claimed       : {pot.claimed}")
    finally:
        rpc.close()
    return 0


def cmd_tickets(args: argparse.Namespace) -> int:
    settings = Settings.from_env(rpc_url_override=args.rpc_url)
    rpc = RpcClient(settings.rpc_url, timeout_s=args.timeout)
    try:
        reader = _reader(settings, rpc)
        if args.pot:
            tickets = reader.tickets_for_pot(Pubkey.from_string(args.pot))
        else:
            tickets = reader.tickets_for_participant(Pubkey.from_string(args.owner))
        for address, t in tickets:
            print(f"#{t.index:<6} {t.participant}  {address}")
        print(f"{len(tickets)} ticket(s)")
    finally:
        rpc.close()
    return 0


def cmd_check_randomness(args: argparse.Namespace) -> int:
    settings = Settings.from_env(rpc_url_override=args.rpc_url)
    rpc = RpcClient(settings.rpc_url, timeout_s=args.timeout)
    try:
        source = SwitchboardSource(rpc)
        account = Pubkey.from_string(args.account)
        print(f"Randomness account: {account}")
        print(f"Status: {source.status(account).value}")
        value = source.revealed_value(account)
        if value is not None:
            print(f"Revealed value: {value}")
    finally:
        rpc.close()
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    settings = Settings.from_env(rpc_url_override=args.rpc_url)
    rpc = RpcClient(settings.rpc_url, timeout_s=args.timeout)
    try:
        audit = verify_settlement(
            _reader(settings, rpc), SwitchboardSource(rpc), Pubkey.from_string(args.pot)
        )
    finally:
        rpc.close()
    if args.out:
        write_audit(audit, args.out)
    print("✅ SETTLEMENT VERIFIED")
    print(f"Revealed value: {audit['revealed_value']}")
    print(f"Participants  : {audit['total_participants']}")
    print(f"Winning index : {audit['winning_index']}")
    print(f"Winner        : {audit['winner']}")
    return 0


def cmd_simulate(args: argparse.Namespace) -> int:
    """Run a few rounds against the in-memory ledger."""
    log = logging.getLogger("simulate")
    rng = random.Random(args.seed)
    start = int(time.time())
    ledger = Ledger(Clock(unix_timestamp=start, slot=1))
    program = LottoProgram(ledger)
    oracle = LocalOracle(ledger, program.oracle_program_id)
    reader = LottoReader.from_ledger(ledger, program.program_id)

    authority = Pubkey.new_unique()
    init = program.init_pot_manager(authority, start + args.duration, args.duration, args.name)
    keeper = Keeper(program, oracle, init.pot_manager)
    players = [Pubkey.new_unique() for _ in range(args.players)]
    for p in players:
        ledger.fund(p, program.min_entry * 100)

    for round_no in range(args.rounds):
        pot_address, _ = reader.open_pot(init.pot_manager, ledger.clock.unix_timestamp)
        for _ in range(rng.randint(0, args.players)):
            player = rng.choice(players)
            program.enter_ticket(player, pot_address, reader.next_ticket_address(pot_address))

        pot = reader.pot(pot_address)
        ledger.warp(pot.end_timestamp, ledger.clock.slot + 10)
        keeper.run_forever(interval_s=0, max_ticks=1)
        pot = reader.pot(pot_address)
        if pot.randomness_account is not None:
            oracle.reveal(pot.randomness_account, rng.getrandbits(64), ledger.clock.slot + 1)
            keeper.run_forever(interval_s=0, max_ticks=1)
        winner = reader.winning_ticket(pot_address)
        if winner is not None:
            paid = program.claim_prize(winner[1].participant, winner[0], pot_address)
            log.info("Round %d: winner %s took %s SOL", round_no, winner[1].participant, to_sol(paid))
        else:
            log.info("Round %d: no entrants", round_no)

    print(f"Treasury      : {to_sol(ledger.balance(program.custody.treasury))} SOL")
    print(f"Escrow        : {to_sol(ledger.balance(program.custody.escrow))} SOL")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="open-lotto",
        description="Read and verify Open Lotto rounds.",
    )
    p.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    p.add_argument("--rpc-url", default=None, help="Override RPC URL (else use env).")
    p.add_argument("--timeout", type=float, default=60.0, help="RPC timeout seconds.")

    sub = p.add_subparsers(dest="cmd", required=True)

    d = sub.add_parser("derive", help="Print the addresses of a manager's records.")
    d.add_argument("--authority", required=True, help="Manager authority public key.")
    d.add_argument("--name", default="default", help="Manager name.")
    d.add_argument("--end-ts", type=int, default=None, help="Pot end timestamp.")
    d.add_argument("--index", type=int, default=None, help="Ticket index (needs --end-ts).")
    d.set_defaults(func=cmd_derive)

    m = sub.add_parser("manager", help="Show a pot manager and its open pot.")
    m.add_argument("--address", required=True, help="Pot manager address.")
    m.set_defaults(func=cmd_manager)

    pt = sub.add_parser("pot", help="Show one pot.")
    pt.add_argument("--address", required=True, help="Pot address.")
    pt.set_defaults(func=cmd_pot)

    t = sub.add_parser("tickets", help="List tickets of a pot or of a participant.")
    group = t.add_mutually_exclusive_group(required=True)
    group.add_argument("--pot", default=None, help="Pot address.")
    group.add_argument("--owner", default=None, help="Participant public key.")
    t.set_defaults(func=cmd_tickets)

    r = sub.add_parser("check-randomness", help="Check a randomness request record.")
    r.add_argument("--account", required=True, help="Randomness account public key.")
    r.set_defaults(func=cmd_check_randomness)

    v = sub.add_parser("verify", help="Recompute a settled pot's winner.")
    v.add_argument("--pot", required=True, help="Pot address.")
    v.add_argument("--out", default=None, help="Write the audit JSON here.")
    v.set_defaults(func=cmd_verify)

    s = sub.add_parser("simulate", help="Run rounds against an in-memory ledger.")
    s.add_argument("--rounds", type=int, default=3)
    s.add_argument("--players", type=int, default=5)
    s.add_argument("--duration", type=int, default=3600, help="Round duration seconds.")
    s.add_argument("--name", default="sim")
    s.add_argument("--seed", type=int, default=None, help="Seed for the simulated entries.")
    s.set_defaults(func=cmd_simulate)

    return p


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    setup_logging(args.verbose)
    raise SystemExit(args.func(args))

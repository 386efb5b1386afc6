import base64
import json

import base58
import httpx
import pytest
from solders.pubkey import Pubkey

from conftest import START, close_and_draw, enter
from open_lotto.client import LottoReader
from open_lotto.codec import POT_DISCRIMINATOR
from open_lotto.errors import AccountNotInitialized, PotClosed
from open_lotto.models import PotStatus
from open_lotto.randomness import RandomnessStatus, SwitchboardSource
from open_lotto.rpc import RpcClient, program_error_from_rpc


def _ledger_transport(ledger, calls=None):
    """Serve JSON-RPC account reads out of an in-memory ledger."""

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        if calls is not None:
            calls.append(body)
        method, params = body["method"], body["params"]
        if method == "getAccountInfo":
            acct = ledger.get(Pubkey.from_string(params[0]))
            value = None
            if acct is not None:
                value = {
                    "owner": str(acct.owner),
                    "lamports": acct.lamports,
                    "data": [base64.b64encode(acct.data).decode(), "base64"],
                }
            result = {"context": {"slot": 1}, "value": value}
        elif method == "getProgramAccounts":
            owner = Pubkey.from_string(params[0])
            matches = [
                (f["memcmp"]["offset"], base58.b58decode(f["memcmp"]["bytes"]))
                for f in params[1].get("filters", [])
            ]
            result = []
            for address, data in ledger.program_accounts(owner):
                if all(data[off : off + len(raw)] == raw for off, raw in matches):
                    result.append(
                        {
                            "pubkey": str(address),
                            "account": {"data": [base64.b64encode(data).decode(), "base64"]},
                        }
                    )
        elif method == "getSlot":
            result = ledger.clock.slot
        elif method == "getBlockTime":
            result = ledger.clock.unix_timestamp if params[0] <= ledger.clock.slot else None
        else:
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32601, "message": "nope"}})
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": result})

    return httpx.MockTransport(handler)


def test_reader_over_rpc_matches_ledger(program, reader, ledger, manager, players):
    enter(program, reader, players[0], manager.first_pot)
    enter(program, reader, players[1], manager.first_pot)

    rpc = RpcClient("http://rpc.test", transport=_ledger_transport(ledger))
    try:
        remote = LottoReader.from_rpc(rpc, program.program_id)
        assert remote.pot_manager(manager.pot_manager) == reader.pot_manager(manager.pot_manager)
        assert remote.pot(manager.first_pot) == reader.pot(manager.first_pot)
        assert remote.tickets_for_pot(manager.first_pot) == reader.tickets_for_pot(manager.first_pot)
        assert [a for a, _ in remote.pots_for_manager(manager.pot_manager)] == [
            manager.first_pot,
            manager.next_pot,
        ]
        assert [t.index for _, t in remote.tickets_for_participant(players[1])] == [1]
        assert remote.pot_status(manager.first_pot, START) == PotStatus.ACTIVE
        assert rpc.get_slot() == 100
    finally:
        rpc.close()


def test_program_accounts_filter_encodes_discriminator_in_base58(program, ledger, manager):
    calls = []
    with RpcClient("http://rpc.test", transport=_ledger_transport(ledger, calls)) as rpc:
        rpc.get_program_accounts(str(program.program_id), prefix=POT_DISCRIMINATOR)
    filters = calls[0]["params"][1]["filters"]
    assert filters == [
        {"memcmp": {"offset": 0, "bytes": base58.b58encode(POT_DISCRIMINATOR).decode("ascii")}}
    ]


def test_missing_account(program, ledger):
    with RpcClient("http://rpc.test", transport=_ledger_transport(ledger)) as rpc:
        assert rpc.get_account_data(str(Pubkey.new_unique())) is None
        with pytest.raises(AccountNotInitialized):
            LottoReader.from_rpc(rpc, program.program_id).pot(Pubkey.new_unique())


def test_switchboard_source_reads_status(program, reader, ledger, oracle, manager, players):
    enter(program, reader, players[0], manager.first_pot)
    request = close_and_draw(ledger, program, oracle, manager.first_pot)
    with RpcClient("http://rpc.test", transport=_ledger_transport(ledger)) as rpc:
        source = SwitchboardSource(rpc)
        assert source.status(request) == RandomnessStatus.COMMITTED
        assert source.revealed_value(request) is None
        oracle.reveal(request, 77)
        assert source.status(request) == RandomnessStatus.REVEALED
        assert source.revealed_value(request) == 77
        assert source.status(Pubkey.new_unique()) == RandomnessStatus.NOT_FOUND


def test_program_error_codes_are_mapped():
    error = {
        "code": -32002,
        "message": "Transaction simulation failed",
        "data": {"err": {"InstructionError": [0, {"Custom": 6001}]}},
    }
    assert isinstance(program_error_from_rpc(error), PotClosed)
    assert program_error_from_rpc({"code": -1, "message": "x"}) is None
    assert program_error_from_rpc({"data": {"err": {"InstructionError": [0, {"Custom": 1}]}}}) is None
    # Custom 0 comes from the system program, not from the lottery.
    assert program_error_from_rpc({"data": {"err": {"InstructionError": [0, {"Custom": 0}]}}}) is None


def test_rpc_error_raises():
    def handler(request):
        return httpx.Response(
            200,
            json={
                "jsonrpc": "2.0",
                "id": 1,
                "error": {"code": -32002, "data": {"err": {"InstructionError": [0, {"Custom": 6001}]}}},
            },
        )

    with RpcClient("http://rpc.test", transport=httpx.MockTransport(handler)) as rpc:
        with pytest.raises(PotClosed):
            rpc.get_slot()

    def plain(request):
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": -1, "message": "boom"}})

    with RpcClient("http://rpc.test", transport=httpx.MockTransport(plain)) as rpc:
        with pytest.raises(RuntimeError, match="RPC error"):
            rpc.get_slot()


def test_cluster_time_follows_latest_slot(ledger):
    rpc = RpcClient("http://rpc.test", transport=_ledger_transport(ledger))
    try:
        assert rpc.cluster_time() == START
        ledger.warp(START + 300, 150)
        assert rpc.cluster_time() == START + 300
        with pytest.raises(RuntimeError, match="Timestamp not available"):
            rpc.get_block_time(10_000)
    finally:
        rpc.close()

import pytest

from open_lotto.config import Settings
from open_lotto.project_constants import PROGRAM_ID, SB_ON_DEMAND_MAINNET


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("RPC_URL", "HELIUS_API_KEY", "OPEN_LOTTO_NETWORK", "OPEN_LOTTO_PROGRAM_ID"):
        monkeypatch.delenv(name, raising=False)


def test_override_wins(monkeypatch):
    monkeypatch.setenv("RPC_URL", "http://env")
    assert Settings.from_env("http://cli").rpc_url == "http://cli"


def test_rpc_url_then_helius_then_public(monkeypatch):
    assert Settings.from_env().rpc_url == "https://api.devnet.solana.com"
    monkeypatch.setenv("HELIUS_API_KEY", "k")
    assert Settings.from_env().rpc_url == "https://devnet.helius-rpc.com/?api-key=k"
    monkeypatch.setenv("RPC_URL", "http://env")
    assert Settings.from_env().rpc_url == "http://env"


def test_network_and_program(monkeypatch):
    s = Settings.from_env()
    assert s.program_id == PROGRAM_ID
    monkeypatch.setenv("OPEN_LOTTO_NETWORK", "mainnet-beta")
    monkeypatch.setenv("OPEN_LOTTO_PROGRAM_ID", "11111111111111111111111111111111")
    s = Settings.from_env()
    assert s.switchboard_program_id == SB_ON_DEMAND_MAINNET
    assert s.program_id == "11111111111111111111111111111111"


def test_unknown_network(monkeypatch):
    monkeypatch.setenv("OPEN_LOTTO_NETWORK", "moon")
    with pytest.raises(RuntimeError):
        Settings.from_env()

from __future__ import annotations

import os
from dataclasses import dataclass
from dotenv import load_dotenv

from .project_constants import PROGRAM_ID, SB_ON_DEMAND_DEVNET, SB_ON_DEMAND_MAINNET

_PUBLIC_RPC = {
    "devnet": "https://api.devnet.solana.com",
    "mainnet-beta": "https://api.mainnet-beta.solana.com",
}


@dataclass(frozen=True)
class Settings:
    rpc_url: str
    program_id: str = PROGRAM_ID
    network: str = "devnet"

    @property
    def switchboard_program_id(self) -> str:
        if self.network == "mainnet-beta":
            return SB_ON_DEMAND_MAINNET
        return SB_ON_DEMAND_DEVNET

    @staticmethod
    def from_env(rpc_url_override: str | None = None) -> "Settings":
        load_dotenv()

        network = os.getenv("OPEN_LOTTO_NETWORK", "devnet").strip() or "devnet"
        if network not in _PUBLIC_RPC:
            raise RuntimeError(
                f"OPEN_LOTTO_NETWORK must be one of {sorted(_PUBLIC_RPC)}, got {network!r}"
            )
        program_id = os.getenv("OPEN_LOTTO_PROGRAM_ID", "").strip() or PROGRAM_ID

        # If user provides --rpc-url, trust it.
        if rpc_url_override:
            return Settings(rpc_url=rpc_url_override, program_id=program_id, network=network)

        # Otherwise RPC_URL, then a Helius url built from the key, then the public endpoint.
        env_rpc = os.getenv("RPC_URL", "").strip()
        if env_rpc:
            return Settings(rpc_url=env_rpc, program_id=program_id, network=network)

        helius_key = os.getenv("HELIUS_API_KEY", "").strip()
        if helius_key:
            host = "mainnet" if network == "mainnet-beta" else "devnet"
            return Settings(
                rpc_url=f"https://{host}.helius-rpc.com/?api-key={helius_key}",
                program_id=program_id,
                network=network,
            )

        return Settings(rpc_url=_PUBLIC_RPC[network], program_id=program_id, network=network)

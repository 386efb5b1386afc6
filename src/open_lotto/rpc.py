from __future__ import annotations

import base64
from typing import Any, Dict, List, Optional, Tuple

import base58
import httpx

from .errors import LottoError, error_from_code


def program_error_from_rpc(error: Dict[str, Any]) -> Optional[LottoError]:
    """
    Map a failed-transaction RPC error back to a named program error.

    Solana reports program errors as
    {"data": {"err": {"InstructionError": [ix_index, {"Custom": code}]}}}.
    """
    err = (error.get("data") or {}).get("err")
    if not isinstance(err, dict):
        return None
    ix = err.get("InstructionError")
    if not isinstance(ix, list) or len(ix) != 2 or not isinstance(ix[1], dict):
        return None
    code = ix[1].get("Custom")
    if code is None:
        return None
    cls = error_from_code(int(code))
    if cls is None:
        return None
    return cls(error.get("message"))


class RpcClient:
    def __init__(
        self,
        rpc_url: str,
        timeout_s: float = 60.0,
        commitment: str = "confirmed",
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.commitment = commitment
        self.client = httpx.Client(timeout=timeout_s, transport=transport)

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "RpcClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def _post(self, method: str, params: List[Any]) -> Dict[str, Any]:
        payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}
        resp = self.client.post(self.rpc_url, json=payload)
        resp.raise_for_status()
        data = resp.json()
        if "error" in data:
            program_error = program_error_from_rpc(data["error"])
            if program_error is not None:
                raise program_error
            raise RuntimeError(f"RPC error: {data['error']}")
        return data

    def get_slot(self) -> int:
        """Returns the current slot."""
        data = self._post("getSlot", [{"commitment": self.commitment}])
        return int(data["result"])

    def get_block_time(self, slot: int) -> int:
        """Returns the Unix timestamp for a given slot."""
        data = self._post("getBlockTime", [slot])
        if data.get("result") is None:
            raise RuntimeError(f"Timestamp not available for slot {slot}")
        return int(data["result"])

    def cluster_time(self) -> int:
        """Unix time of the latest slot, the clock the program judges rounds by."""
        return self.get_block_time(self.get_slot())

    def get_account_info(self, address: str) -> Optional[Tuple[str, bytes]]:
        """Returns (owner, raw data) or None when the account does not exist."""
        data = self._post(
            "getAccountInfo",
            [address, {"encoding": "base64", "commitment": self.commitment}],
        )
        value = (data.get("result") or {}).get("value")
        if value is None:
            return None
        # value['data'] is [base64_str, "base64"]
        return value["owner"], base64.b64decode(value["data"][0])

    def get_account_data(self, address: str) -> Optional[bytes]:
        info = self.get_account_info(address)
        return info[1] if info is not None else None

    def get_program_accounts(
        self,
        program_id: str,
        prefix: Optional[bytes] = None,
        memcmp: Optional[List[Tuple[int, bytes]]] = None,
    ) -> List[Tuple[str, bytes]]:
        """
        Returns (address, raw data) for every account owned by `program_id`.
        `prefix` is matched at offset 0 (the account discriminator); extra
        `memcmp` pairs are (offset, bytes).
        """
        filters: List[Dict[str, Any]] = []
        matches = list(memcmp or [])
        if prefix is not None:
            matches.insert(0, (0, prefix))
        for offset, raw in matches:
            filters.append(
                {"memcmp": {"offset": offset, "bytes": base58.b58encode(raw).decode("ascii")}}
            )

        params: Dict[str, Any] = {"encoding": "base64", "commitment": self.commitment}
        if filters:
            params["filters"] = filters
        data = self._post("getProgramAccounts", [program_id, params])
        out: List[Tuple[str, bytes]] = []
        for item in data.get("result", []):
            out.append((item["pubkey"], base64.b64decode(item["account"]["data"][0])))
        return out

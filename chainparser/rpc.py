"""
Minimal JSON-RPC client for Bitcoin Core, used to build, sign and broadcast
raw transactions. Raw transaction hex crossing this boundary is always the
legacy serialization (no witness data).
"""
import json
import time
from typing import Any, Dict, List, Optional, Union

import requests

from . import config
from .errors import ProtocolError
from .transaction import Transaction


class RpcClient:
    def __init__(self, url: str, user: str, password: str, timeout: float = 30):
        self.url = url
        self.user = user
        self.password = password
        self.timeout = timeout

    @classmethod
    def from_config(cls) -> "RpcClient":
        return cls(config.RPC_URL, config.RPC_USER, config.RPC_PASSWORD, timeout=config.RPC_TIMEOUT)

    def call(self, method: str, *params) -> Any:
        """
        Send a single JSON-RPC request and return its result.
        Raises ProtocolError on transport failure or when the node returns an error object.
        """
        payload = json.dumps({
            "jsonrpc": "1.0",
            "id": f"chainparser-{int(time.time())}",
            "method": method,
            "params": list(params),
        })
        try:
            resp = requests.post(self.url, auth=(self.user, self.password),
                                 headers={"content-type": "text/plain"},
                                 data=payload,
                                 timeout=self.timeout)
        except requests.exceptions.ConnectionError as e:
            raise ProtocolError(f"Cannot connect to Bitcoin RPC at {self.url}. "
                                f"Is Bitcoin Core running? Error: {e}") from e
        except requests.exceptions.Timeout as e:
            raise ProtocolError(f"RPC request to {self.url} timed out. Error: {e}") from e
        except requests.exceptions.RequestException as e:
            raise ProtocolError(f"RPC request to {self.url} failed: {e}") from e

        # Core reports RPC errors with HTTP 500 and a JSON body, so parse before checking status
        try:
            r = resp.json()
        except ValueError:
            r = None
        if isinstance(r, dict) and r.get("error"):
            err = r["error"]
            if isinstance(err, dict):
                raise ProtocolError(err.get("message", str(err)), err.get("code"))
            raise ProtocolError(str(err))
        try:
            resp.raise_for_status()
        except requests.exceptions.HTTPError as e:
            if resp.status_code == 401:
                raise ProtocolError("Authentication failed. Check RPC_USER and RPC_PASSWORD.") from e
            raise ProtocolError(f"HTTP error: {e}") from e
        if not isinstance(r, dict) or "result" not in r:
            raise ProtocolError(f"Can't find result field in {method} response")
        return r["result"]

    def check(self) -> bool:
        self.call("getblockchaininfo")
        return True

    def list_unspent(self) -> List[Dict[str, Any]]:
        return self.call("listunspent")

    def get_raw_mempool(self) -> List[str]:
        return self.call("getrawmempool")

    def create_raw_transaction(self, inputs: List[Dict[str, Any]], outputs: Dict[str, float]) -> Transaction:
        """
        inputs: [{"txid": ..., "vout": n}, ...]; outputs: {address: amount_btc}.
        Returns the unsigned transaction decoded from the node's hex.
        """
        raw_hex = self.call("createrawtransaction", inputs, outputs)
        return Transaction.from_hex(raw_hex)

    def sign_raw_transaction(self, tx: Transaction,
                             prev_txs: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
        """Returns the node's {"hex": ..., "complete": True} result."""
        params = [tx.to_hex()]
        if prev_txs:
            params.append(prev_txs)
        result = self.call("signrawtransaction", *params)
        errors = result.get("errors") or []
        if errors:
            raise ProtocolError(errors[0].get("error", str(errors[0])))
        if not result.get("complete"):
            raise ProtocolError(f"Unknown error occurred: {json.dumps(result)}")
        return result

    def send_raw_transaction(self, raw_tx: Union[str, Transaction]) -> str:
        raw_hex = raw_tx.to_hex() if isinstance(raw_tx, Transaction) else raw_tx
        txid = self.call("sendrawtransaction", raw_hex)
        if not isinstance(txid, str) or len(txid) != 64:
            raise ProtocolError("Can't send transaction")
        return txid

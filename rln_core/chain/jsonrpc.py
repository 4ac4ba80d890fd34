# rln_core/chain/jsonrpc.py
import itertools, time
import requests
from typing import Any, Optional

from rln_core.chain.interfaces import WalletSigner, TokenContract, TransactionHandle
from rln_core.errors import ChainInteractionError, TransactionFailed
from rln_core.logger import get_logger

log = get_logger("RLN.Chain.JsonRpc")

# ERC-20 function selectors
SEL_BALANCE_OF = "70a08231"
SEL_ALLOWANCE = "dd62ed3e"
SEL_APPROVE = "095ea7b3"


def _word(value: int) -> str:
    return format(value, "064x")

def _address_word(address: str) -> str:
    return address.lower().removeprefix("0x").rjust(64, "0")

def _to_int(value: Optional[str]) -> int:
    if not value or value == "0x":
        return 0
    return int(value, 16)


class JsonRpcClient:
    """
    Minimal Ethereum JSON-RPC client for a wallet endpoint (e.g. a signer
    bridge exposing eth_accounts/personal_sign).
    """
    def __init__(self, url: str, timeout: float = 30):
        self.url = url
        self.timeout = timeout
        self._ids = itertools.count(1)

    def call(self, method: str, params: Optional[list] = None) -> Any:
        body = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params or []}
        log.debug(f"[RPC] → {method}")
        try:
            res = requests.post(self.url, json=body, timeout=self.timeout)
            res.raise_for_status()
            payload = res.json()
        except requests.RequestException as e:
            raise ChainInteractionError(f"{method} failed: {e}") from e
        except ValueError as e:
            raise ChainInteractionError(f"{method} returned invalid JSON") from e

        if not isinstance(payload, dict):
            raise ChainInteractionError(f"{method} returned a malformed response")
        if payload.get("error"):
            err = payload["error"]
            msg = err.get("message") if isinstance(err, dict) else str(err)
            raise ChainInteractionError(f"{method} failed: {msg}")
        return payload.get("result")


class JsonRpcTransaction(TransactionHandle):
    def __init__(self, client: JsonRpcClient, tx_hash: str, poll_interval: float = 2.0):
        self.client = client
        self.hash = tx_hash
        self.poll_interval = poll_interval

    def wait(self, confirmations: int = 1) -> dict:
        # no overall deadline; the wallet/chain decides when this completes
        while True:
            receipt = self.client.call("eth_getTransactionReceipt", [self.hash])
            if receipt:
                if _to_int(receipt.get("status")) == 0:
                    raise TransactionFailed(f"Transaction {self.hash} reverted")
                if confirmations <= 1:
                    return receipt
                head = _to_int(self.client.call("eth_blockNumber"))
                if head - _to_int(receipt.get("blockNumber")) + 1 >= confirmations:
                    return receipt
            time.sleep(self.poll_interval)


class JsonRpcToken(TokenContract):
    def __init__(self, wallet: "JsonRpcWallet", address: str):
        self.wallet = wallet
        self.address = address

    def _eth_call(self, data: str) -> int:
        result = self.wallet.client.call("eth_call", [{"to": self.address, "data": data}, "latest"])
        return _to_int(result)

    def balance_of(self, owner: str) -> int:
        return self._eth_call("0x" + SEL_BALANCE_OF + _address_word(owner))

    def allowance(self, owner: str, spender: str) -> int:
        return self._eth_call("0x" + SEL_ALLOWANCE + _address_word(owner) + _address_word(spender))

    def approve(self, spender: str, amount: int) -> JsonRpcTransaction:
        data = "0x" + SEL_APPROVE + _address_word(spender) + _word(amount)
        tx = {"from": self.wallet.get_address(), "to": self.address, "data": data}
        tx_hash = self.wallet.client.call("eth_sendTransaction", [tx])
        log.info(f"[RPC] approve submitted {tx_hash}")
        return JsonRpcTransaction(self.wallet.client, tx_hash, self.wallet.poll_interval)


class JsonRpcWallet(WalletSigner):
    def __init__(self, url: str, timeout: float = 30, poll_interval: float = 2.0):
        self.client = JsonRpcClient(url, timeout=timeout)
        self.poll_interval = poll_interval
        self._address: Optional[str] = None

    def is_connected(self) -> bool:
        try:
            return bool(self.client.call("eth_accounts"))
        except ChainInteractionError as e:
            log.warning(f"[RPC] wallet not reachable: {e}")
            return False

    def get_address(self) -> str:
        if self._address is None:
            accounts = self.client.call("eth_accounts")
            if not accounts:
                raise ChainInteractionError("Wallet has no accounts")
            self._address = accounts[0]
        return self._address

    def get_chain_id(self) -> int:
        return _to_int(self.client.call("eth_chainId"))

    def sign_message(self, text: str) -> str:
        data = "0x" + text.encode("utf-8").hex()
        return self.client.call("personal_sign", [data, self.get_address()])

    def switch_chain(self, chain_id: int) -> None:
        self.client.call("wallet_switchEthereumChain", [{"chainId": hex(chain_id)}])

    def token_contract(self, address: str) -> JsonRpcToken:
        return JsonRpcToken(self, address)

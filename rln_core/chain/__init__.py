# rln_core/chain/__init__.py
import os

from rln_core.chain.interfaces import (
    TransactionHandle,
    TokenContract,
    WalletSigner,
    MembershipContract,
    RLNService,
)
from rln_core.chain.network import ensure_network
from rln_core.chain.jsonrpc import JsonRpcWallet


def wallet_factory(url=None):
    """JSON-RPC wallet for RLN_WALLET_RPC_URL, or None when no endpoint is configured."""
    url = url or os.getenv("RLN_WALLET_RPC_URL")
    if not url:
        return None
    return JsonRpcWallet(url)


__all__ = [
    "TransactionHandle",
    "TokenContract",
    "WalletSigner",
    "MembershipContract",
    "RLNService",
    "ensure_network",
    "JsonRpcWallet",
    "wallet_factory",
]

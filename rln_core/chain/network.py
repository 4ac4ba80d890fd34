# rln_core/chain/network.py
from __future__ import annotations
from typing import Optional

from rln_core.config import NetworkConfig, LINEA_SEPOLIA
from rln_core.logger import get_logger
from rln_core.chain.interfaces import WalletSigner

log = get_logger("RLN.Network")


def ensure_network(wallet: Optional[WalletSigner], network: NetworkConfig = LINEA_SEPOLIA) -> bool:
    """
    Make sure the wallet is on the configured chain, asking it to switch if not.

    Returns False instead of raising when the check or the switch fails;
    callers proceed best-effort.
    """
    if wallet is None:
        log.warning("[NETWORK] no wallet available")
        return False

    try:
        current = wallet.get_chain_id()
        if current == network.chain_id:
            log.debug(f"[NETWORK] already on chain {network.chain_id}")
            return True

        log.info(f"[NETWORK] on chain {current}, switching to {network.chain_id} ({network.name})")
        try:
            wallet.switch_chain(network.chain_id)
        except Exception as e:
            log.error(f"[NETWORK] switch failed: {e}")
            return False

        log.info(f"[NETWORK] switched to {network.name or network.chain_id}")
        return True
    except Exception as e:
        log.error(f"[NETWORK] error checking or switching network: {e}")
        return False

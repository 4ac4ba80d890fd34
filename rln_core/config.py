"""
rln_core.config
---------------
Network and runtime settings. Every knob can be overridden through an
RLN_* environment variable; unset variables fall back to the Linea Sepolia
deployment and a local SQLite keystore.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional, Dict, Any
import os


@dataclass(frozen=True)
class NetworkConfig:
    chain_id: int
    token_address: str
    name: str = ""

    @property
    def chain_id_hex(self) -> str:
        return hex(self.chain_id)


LINEA_SEPOLIA = NetworkConfig(
    chain_id=59141,
    token_address="0x185A0015aC462a0aECb81beCc0497b649a64B9ea",
    name="Linea Sepolia",
)


@dataclass(frozen=True)
class KdfParams:
    """scrypt cost parameters. n=2**15, r=8 costs about 32 MiB per derivation."""
    n: int = 2**15
    r: int = 8
    p: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {"n": self.n, "r": self.r, "p": self.p}


@dataclass
class Settings:
    storage_provider: str = "sqlite"
    db_path: str = "db/rln_keystore.db"
    network: NetworkConfig = LINEA_SEPOLIA
    wallet_rpc_url: Optional[str] = None
    log_level: str = "INFO"
    kdf_params: KdfParams = field(default_factory=KdfParams)

    def storage_config(self) -> Dict[str, Any]:
        return {"provider": self.storage_provider, "sqlite_path": self.db_path}


def load_settings(env: Optional[Dict[str, str]] = None) -> Settings:
    env = os.environ if env is None else env

    network = LINEA_SEPOLIA
    if env.get("RLN_CHAIN_ID") or env.get("RLN_TOKEN_ADDRESS"):
        network = NetworkConfig(
            chain_id=int(env.get("RLN_CHAIN_ID") or LINEA_SEPOLIA.chain_id),
            token_address=env.get("RLN_TOKEN_ADDRESS") or LINEA_SEPOLIA.token_address,
            name=env.get("RLN_NETWORK_NAME", ""),
        )

    defaults = KdfParams()
    kdf = KdfParams(
        n=int(env.get("RLN_KDF_N", defaults.n)),
        r=int(env.get("RLN_KDF_R", defaults.r)),
        p=int(env.get("RLN_KDF_P", defaults.p)),
    )

    return Settings(
        storage_provider=env.get("RLN_STORAGE_PROVIDER", "sqlite").lower(),
        db_path=env.get("RLN_DB_PATH", "db/rln_keystore.db"),
        network=network,
        wallet_rpc_url=env.get("RLN_WALLET_RPC_URL") or None,
        log_level=env.get("RLN_LOG_LEVEL", "INFO").upper(),
        kdf_params=kdf,
    )

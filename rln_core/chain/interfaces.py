from __future__ import annotations
from typing import Any, Optional

from rln_core.models import Credential, Identity, MembershipRecord


class TransactionHandle:
    """A submitted transaction. wait() blocks until it has the requested confirmations."""
    hash: str = ""

    def wait(self, confirmations: int = 1) -> Any:
        raise NotImplementedError


class TokenContract:
    """ERC-20 surface used for the membership deposit."""
    address: str = ""

    def balance_of(self, owner: str) -> int:
        raise NotImplementedError

    def allowance(self, owner: str, spender: str) -> int:
        raise NotImplementedError

    def approve(self, spender: str, amount: int) -> TransactionHandle:
        raise NotImplementedError


class WalletSigner:
    """The connected wallet: account, chain, message signing, network switch."""

    def is_connected(self) -> bool:
        raise NotImplementedError

    def get_address(self) -> str:
        raise NotImplementedError

    def get_chain_id(self) -> int:
        raise NotImplementedError

    def sign_message(self, text: str) -> str:
        raise NotImplementedError

    def switch_chain(self, chain_id: int) -> None:
        raise NotImplementedError

    def token_contract(self, address: str) -> TokenContract:
        raise NotImplementedError


class MembershipContract:
    """RLN membership registry contract."""
    address: str = ""

    def get_min_rate_limit(self) -> int:
        raise NotImplementedError

    def get_max_rate_limit(self) -> int:
        raise NotImplementedError

    def get_rate_limit(self) -> int:
        raise NotImplementedError

    def set_rate_limit(self, rate_limit: int) -> None:
        raise NotImplementedError

    def get_membership_info(self, id_commitment_bigint: int) -> Optional[MembershipRecord]:
        raise NotImplementedError

    def extend_membership(self, id_commitment_bigint: int) -> TransactionHandle:
        raise NotImplementedError

    def erase_membership(self, id_commitment_bigint: int) -> TransactionHandle:
        raise NotImplementedError

    def withdraw(self, token_address: str, holder: str) -> TransactionHandle:
        raise NotImplementedError


class RLNService:
    """
    Identity/proof collaborator. Owns the contract binding once started.

    generate_identity() derives an Identity from a wallet signature;
    register_membership() submits the registration transaction and returns
    the resulting Credential after it is confirmed.
    """
    contract: Optional[MembershipContract] = None

    def start(self, wallet: WalletSigner) -> None:
        raise NotImplementedError

    def generate_identity(self, signature: str) -> Identity:
        raise NotImplementedError

    def register_membership(self, identity: Identity) -> Optional[Credential]:
        raise NotImplementedError

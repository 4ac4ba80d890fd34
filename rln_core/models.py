# rln_core/models.py
from __future__ import annotations
from dataclasses import dataclass, field, asdict, replace
from enum import Enum
from typing import Any, Dict, Optional

from .utils import hex_encode, hex_decode


class MembershipState(str, Enum):
    """On-chain membership state as reported by the RLN contract."""
    UNREGISTERED = "Unregistered"
    ACTIVE = "Active"
    GRACE_PERIOD = "GracePeriod"
    EXPIRED = "Expired"
    ERASED_AWAITS_WITHDRAWAL = "ErasedAwaitsWithdrawal"


@dataclass(frozen=True)
class Identity:
    """
    RLN identity credential.

    id_commitment is the public group element; id_commitment_bigint is the
    same value as an integer, which is what contract calls take. The secret
    fields are kept out of repr() so an Identity can be logged safely.
    """
    id_commitment: bytes
    id_commitment_bigint: int
    id_nullifier: bytes = field(repr=False)
    id_trapdoor: bytes = field(default=b"", repr=False)
    id_secret_hash: bytes = field(default=b"", repr=False)

    @property
    def id_commitment_hex(self) -> str:
        return hex_encode(self.id_commitment)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "idCommitment": hex_encode(self.id_commitment),
            "idCommitmentBigInt": str(self.id_commitment_bigint),
            "idNullifier": hex_encode(self.id_nullifier),
            "idTrapdoor": hex_encode(self.id_trapdoor),
            "idSecretHash": hex_encode(self.id_secret_hash),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Identity":
        return cls(
            id_commitment=hex_decode(data["idCommitment"]),
            id_commitment_bigint=int(data["idCommitmentBigInt"]),
            id_nullifier=hex_decode(data["idNullifier"]),
            id_trapdoor=hex_decode(data.get("idTrapdoor", "")),
            id_secret_hash=hex_decode(data.get("idSecretHash", "")),
        )


@dataclass
class MembershipRecord:
    """
    View of one on-chain membership slot.

    Only contract_address, chain_id, tree_index and rate_limit are known at
    registration time; the rest is filled in by a contract query.
    """
    contract_address: str
    chain_id: int
    tree_index: int
    rate_limit: int
    start_block: int = 0
    end_block: int = 0
    deposit_amount: int = 0
    active_duration: int = 0
    grace_period_duration: int = 0
    holder: str = ""
    token: str = ""
    state: Optional[MembershipState] = None

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["deposit_amount"] = str(self.deposit_amount)  # may exceed 2**53
        d["state"] = self.state.value if self.state else None
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MembershipRecord":
        state = data.get("state")
        return cls(
            contract_address=data["contract_address"],
            chain_id=int(data["chain_id"]),
            tree_index=int(data["tree_index"]),
            rate_limit=int(data["rate_limit"]),
            start_block=int(data.get("start_block", 0)),
            end_block=int(data.get("end_block", 0)),
            deposit_amount=int(data.get("deposit_amount", 0)),
            active_duration=int(data.get("active_duration", 0)),
            grace_period_duration=int(data.get("grace_period_duration", 0)),
            holder=data.get("holder", ""),
            token=data.get("token", ""),
            state=MembershipState(state) if state else None,
        )


@dataclass
class Credential:
    identity: Identity
    membership: MembershipRecord

    def to_dict(self) -> Dict[str, Any]:
        return {"identity": self.identity.to_dict(), "membership": self.membership.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Credential":
        return cls(
            identity=Identity.from_dict(data["identity"]),
            membership=MembershipRecord.from_dict(data["membership"]),
        )


@dataclass
class MembershipInfo:
    """MembershipRecord plus the read-only fields the UI shows next to it."""
    record: MembershipRecord
    id_commitment: str
    address: str
    chain_id: str
    tree_index: int
    rate_limit: int

    @property
    def state(self) -> Optional[MembershipState]:
        return self.record.state

    @classmethod
    def from_record(cls, record: MembershipRecord, identity: Identity,
                    address: str, chain_id: int) -> "MembershipInfo":
        return cls(
            record=replace(record),
            id_commitment=identity.id_commitment_hex,
            address=address,
            chain_id=str(chain_id),
            tree_index=int(record.tree_index),
            rate_limit=int(record.rate_limit),
        )

"""
rln_core.results
----------------
Tagged result variants returned by MembershipCoordinator.

Every variant exposes `success` so callers can branch without isinstance();
Failure additionally carries an ErrorKind.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from .models import Credential


class ErrorKind(str, Enum):
    PRECONDITION_NOT_MET = "precondition_not_met"
    VALIDATION = "validation"
    DECRYPTION_FAILED = "decryption_failed"
    CHAIN_INTERACTION_FAILED = "chain_interaction_failed"
    INVALID_TRANSITION = "invalid_transition"
    IN_FLIGHT = "in_flight"


@dataclass(frozen=True)
class Failure:
    error: str
    kind: ErrorKind = ErrorKind.CHAIN_INTERACTION_FAILED
    success: bool = False


@dataclass(frozen=True)
class OperationSuccess:
    tx_hash: Optional[str] = None
    success: bool = True


@dataclass(frozen=True)
class RegistrationSuccess:
    credentials: Credential
    keystore_hash: Optional[str] = None
    success: bool = True


@dataclass(frozen=True)
class RateLimitBounds:
    rate_min_limit: int
    rate_max_limit: int
    success: bool = True

    def contains(self, rate_limit: int) -> bool:
        return self.rate_min_limit <= rate_limit <= self.rate_max_limit


OperationResult = Union[OperationSuccess, Failure]
RegistrationResult = Union[RegistrationSuccess, Failure]
BoundsResult = Union[RateLimitBounds, Failure]

"""
rln_core.coordinator
--------------------
MembershipCoordinator drives a credential through its on-chain lifecycle:

    Unregistered --register--> Active --(endBlock passes)--> GracePeriod
    GracePeriod --extend--> Active
    Active | GracePeriod --erase--> ErasedAwaitsWithdrawal
    ErasedAwaitsWithdrawal --withdraw--> (deposit returned)

State is always read from the contract before a transition is submitted;
transitions outside the table are refused without sending a transaction.

Public operations return result objects (rln_core.results) and do not raise,
except get_membership_info(), which raises like a plain query. Nothing is
retried automatically.
"""

from __future__ import annotations
from typing import Callable, Dict, FrozenSet, Optional
import threading

from .chain.interfaces import MembershipContract, RLNService, TransactionHandle, WalletSigner
from .chain.network import ensure_network
from .config import NetworkConfig, LINEA_SEPOLIA
from .constants import MAX_UINT256, SIGNATURE_MESSAGE
from .errors import (
    ChainInteractionError,
    DecryptionFailed,
    InvalidTransition,
    NotInitialized,
    PreconditionNotMet,
)
from .inflight import InFlightRegistry
from .logger import get_logger
from .models import Credential, MembershipInfo, MembershipState
from .results import (
    BoundsResult,
    ErrorKind,
    Failure,
    OperationResult,
    OperationSuccess,
    RateLimitBounds,
    RegistrationResult,
    RegistrationSuccess,
)
from .utils import now_ms, short_hash
from .vault import CredentialVault

log = get_logger("RLN.Coordinator")

ACTION_EXTEND = "extend"
ACTION_ERASE = "erase"
ACTION_WITHDRAW = "withdraw"

ALLOWED_TRANSITIONS: Dict[str, FrozenSet[MembershipState]] = {
    ACTION_EXTEND: frozenset({MembershipState.GRACE_PERIOD}),
    ACTION_ERASE: frozenset({MembershipState.ACTIVE, MembershipState.GRACE_PERIOD}),
    ACTION_WITHDRAW: frozenset({MembershipState.ERASED_AWAITS_WITHDRAWAL}),
}

NOT_STARTED = "RLN not initialized or not started"


class MembershipCoordinator:
    def __init__(
        self,
        vault: CredentialVault,
        wallet: Optional[WalletSigner],
        rln_factory: Callable[[], RLNService],
        network: NetworkConfig = LINEA_SEPOLIA,
    ):
        self.vault = vault
        self.wallet = wallet
        self.rln_factory = rln_factory
        self.network = network

        self.rln: Optional[RLNService] = None
        self.is_initialized = False
        self.is_started = False
        self.error: Optional[str] = None
        self.rate_min_limit = 0
        self.rate_max_limit = 0
        self.rate_limits: Optional[RateLimitBounds] = None

        self.inflight = InFlightRegistry()
        self._init_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------
    def initialize(self) -> OperationResult:
        """Create and start the RLN service. A no-op once started."""
        with self._init_lock:
            if self.is_started:
                log.debug("[COORD] already started")
                return OperationSuccess()

            if self.wallet is None or not self.wallet.is_connected():
                self.error = "Wallet not connected. Please connect your wallet."
                log.warning("[COORD] cannot initialize: wallet not connected")
                return Failure(self.error, ErrorKind.PRECONDITION_NOT_MET)

            self.error = None
            if self.rln is None:
                try:
                    self.rln = self.rln_factory()
                    self.is_initialized = True
                    log.info("[COORD] RLN instance created")
                except Exception as e:
                    log.exception("[COORD] error creating RLN instance")
                    self.error = str(e) or "Failed to create RLN instance"
                    return Failure(self.error, ErrorKind.CHAIN_INTERACTION_FAILED)

            try:
                self.rln.start(self.wallet)
            except Exception as e:
                log.exception("[COORD] error starting RLN")
                self.error = str(e) or "Failed to start RLN"
                return Failure(self.error, ErrorKind.CHAIN_INTERACTION_FAILED)

            self.is_started = True
            log.info("[COORD] RLN started")

        bounds = self.get_rate_limits_bounds()
        if not bounds.success:
            log.warning(f"[COORD] could not fetch rate limits after start: {bounds.error}")
        return OperationSuccess()

    def get_rate_limits_bounds(self) -> BoundsResult:
        if self.rln is None or not self.is_started:
            return Failure(NOT_STARTED, ErrorKind.PRECONDITION_NOT_MET)
        try:
            contract = self._require_contract()
            min_limit = contract.get_min_rate_limit()
            max_limit = contract.get_max_rate_limit()
            if min_limit is None or max_limit is None:
                raise ChainInteractionError("Rate limits not available")
        except PreconditionNotMet as e:
            return Failure(str(e), ErrorKind.PRECONDITION_NOT_MET)
        except Exception as e:
            return Failure(str(e) or "Failed to get rate limits", ErrorKind.CHAIN_INTERACTION_FAILED)

        self.rate_min_limit = int(min_limit)
        self.rate_max_limit = int(max_limit)
        self.rate_limits = RateLimitBounds(self.rate_min_limit, self.rate_max_limit)
        log.info(f"[COORD] rate limits min={self.rate_min_limit} max={self.rate_max_limit}")
        return self.rate_limits

    def get_current_rate_limit(self) -> Optional[int]:
        if self.rln is None or self.rln.contract is None or not self.is_started:
            log.info("[COORD] cannot get rate limit: RLN not initialized or started")
            return None
        try:
            return int(self.rln.contract.get_rate_limit())
        except Exception as e:
            log.error(f"[COORD] error getting current rate limit: {e}")
            return None

    def is_loading(self, credential_hash: str, action: str) -> bool:
        return self.inflight.is_loading(credential_hash, action)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------
    def register_membership(self, rate_limit: int, password: Optional[str] = None) -> RegistrationResult:
        """
        Register a new membership with the given rate limit.

        If password is given the new credential is saved to the vault. A save
        failure is logged and the result is still a success (with no
        keystore_hash): the membership already exists on chain.
        """
        log.info(f"[COORD] register_membership rate_limit={rate_limit}")

        if self.rln is None or not self.is_started:
            return Failure(NOT_STARTED, ErrorKind.PRECONDITION_NOT_MET)
        if self.wallet is None:
            return Failure("No signer available", ErrorKind.PRECONDITION_NOT_MET)
        if self.rate_limits is None:
            return Failure("Rate limits not available. Please try again.", ErrorKind.PRECONDITION_NOT_MET)
        if not self.rate_limits.contains(rate_limit):
            return Failure(
                f"Rate limit must be between {self.rate_min_limit} and {self.rate_max_limit}",
                ErrorKind.VALIDATION,
            )

        try:
            contract = self.rln.contract
            if contract is not None:
                contract.set_rate_limit(rate_limit)

            if not ensure_network(self.wallet, self.network):
                log.warning("[COORD] could not switch to the configured network; registration may fail")

            if contract is None or not contract.address:
                return Failure(
                    "RLN contract address not available. Cannot proceed with registration.",
                    ErrorKind.PRECONDITION_NOT_MET,
                )

            user_address = self.wallet.get_address()
            token = self.wallet.token_contract(self.network.token_address)

            if token.balance_of(user_address) == 0:
                return Failure(
                    "You need tokens to register a membership. Your token balance is zero.",
                    ErrorKind.PRECONDITION_NOT_MET,
                )

            if token.allowance(user_address, contract.address) == 0:
                log.info("[COORD] requesting token approval")
                try:
                    approve_tx = token.approve(contract.address, MAX_UINT256)
                    log.info(f"[COORD] approval submitted {approve_tx.hash}")
                    approve_tx.wait(1)
                    log.info("[COORD] token approval confirmed")
                except Exception as e:
                    log.error(f"[COORD] error during token approval: {e}")
                    return Failure(f"Failed to approve token: {e}", ErrorKind.CHAIN_INTERACTION_FAILED)
            else:
                log.info("[COORD] token allowance already sufficient")

            # timestamped so a signature is never reused across registrations
            message = f"{SIGNATURE_MESSAGE} {now_ms()}"
            signature = self.wallet.sign_message(message)

            identity = self.rln.generate_identity(signature)
            log.info("[COORD] registering membership")
            credentials = self.rln.register_membership(identity)
            _check_registered(credentials)
        except Exception as e:
            log.error(f"[COORD] error registering membership: {e}")
            return Failure(str(e) or "Failed to register membership", ErrorKind.CHAIN_INTERACTION_FAILED)

        keystore_hash = None
        if password:
            try:
                keystore_hash = self.save_credentials_to_keystore(credentials, password)
                log.info(f"[COORD] credentials saved to keystore {short_hash(keystore_hash)}")
            except Exception as e:
                log.error(f"[COORD] error saving credentials to keystore: {e}")

        return RegistrationSuccess(credentials=credentials, keystore_hash=keystore_hash)

    def save_credentials_to_keystore(self, credentials: Credential, password: str) -> str:
        return self.vault.save_credentials(credentials, password)

    # ------------------------------------------------------------------
    # Lifecycle transitions
    # ------------------------------------------------------------------
    def extend_membership(self, credential_hash: str, password: str) -> OperationResult:
        return self._transition(
            ACTION_EXTEND, credential_hash, password,
            lambda contract, cred: contract.extend_membership(cred.identity.id_commitment_bigint),
        )

    def erase_membership(self, credential_hash: str, password: str) -> OperationResult:
        return self._transition(
            ACTION_ERASE, credential_hash, password,
            lambda contract, cred: contract.erase_membership(cred.identity.id_commitment_bigint),
        )

    def withdraw_deposit(self, credential_hash: str, password: str) -> OperationResult:
        def submit(contract: MembershipContract, cred: Credential) -> TransactionHandle:
            if self.wallet is None:
                raise PreconditionNotMet("No signer available")
            holder = self.wallet.get_address()
            return contract.withdraw(self.network.token_address, holder)

        return self._transition(ACTION_WITHDRAW, credential_hash, password, submit)

    def get_membership_info(self, credential_hash: str, password: str) -> MembershipInfo:
        """Current on-chain record for a stored credential. Raises on any failure."""
        contract = self._require_contract()
        credential = self.vault.get_decrypted_credential(credential_hash, password)
        try:
            record = contract.get_membership_info(credential.identity.id_commitment_bigint)
        except ChainInteractionError:
            raise
        except Exception as e:
            raise ChainInteractionError(str(e) or "Could not fetch membership info") from e
        if record is None:
            raise ChainInteractionError("Could not fetch membership info")
        return MembershipInfo.from_record(record, credential.identity, contract.address, self.network.chain_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _require_contract(self) -> MembershipContract:
        if self.rln is None or self.rln.contract is None:
            raise PreconditionNotMet("RLN not initialized or contract not available")
        return self.rln.contract

    def _transition(
        self,
        action: str,
        credential_hash: str,
        password: str,
        submit: Callable[[MembershipContract, Credential], TransactionHandle],
    ) -> OperationResult:
        with self.inflight.claim(credential_hash, action) as claimed:
            if not claimed:
                return Failure(f"{action.capitalize()} already in progress for this credential", ErrorKind.IN_FLIGHT)

            try:
                contract = self._require_contract()
                credential = self.vault.get_decrypted_credential(credential_hash, password)
            except DecryptionFailed as e:
                log.warning(f"[COORD] {action}: could not decrypt {short_hash(credential_hash)}")
                return Failure(str(e), ErrorKind.DECRYPTION_FAILED)
            except (PreconditionNotMet, NotInitialized) as e:
                return Failure(str(e), ErrorKind.PRECONDITION_NOT_MET)

            try:
                record = contract.get_membership_info(credential.identity.id_commitment_bigint)
                state = record.state if record and record.state else MembershipState.UNREGISTERED
                _check_transition(action, state)

                tx = submit(contract, credential)
                log.info(f"[COORD] {action} submitted {tx.hash} for {short_hash(credential_hash)}")
                tx.wait(1)
                log.info(f"[COORD] {action} confirmed for {short_hash(credential_hash)}")
                return OperationSuccess(tx_hash=tx.hash)
            except InvalidTransition as e:
                log.warning(f"[COORD] {action} refused for {short_hash(credential_hash)}: {e}")
                return Failure(str(e), ErrorKind.INVALID_TRANSITION)
            except PreconditionNotMet as e:
                return Failure(str(e), ErrorKind.PRECONDITION_NOT_MET)
            except Exception as e:
                log.error(f"[COORD] error during {action}: {e}")
                return Failure(str(e) or f"Failed to {action} membership", ErrorKind.CHAIN_INTERACTION_FAILED)


def _check_transition(action: str, state: MembershipState) -> None:
    if state not in ALLOWED_TRANSITIONS[action]:
        raise InvalidTransition(f"Cannot {action} membership in state {state.value}")


def _check_registered(credentials: Optional[Credential]) -> None:
    if not credentials:
        raise ChainInteractionError("Failed to register membership: No credentials returned")
    if not credentials.identity:
        raise ChainInteractionError("Failed to register membership: Missing identity information")
    if not credentials.membership:
        raise ChainInteractionError("Failed to register membership: Missing membership information")

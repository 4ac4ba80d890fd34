# tests/test_coordinator.py

import pytest

from rln_core.constants import MAX_UINT256, SIGNATURE_MESSAGE
from rln_core.coordinator import MembershipCoordinator
from rln_core.errors import ChainInteractionError, CredentialNotFound, PreconditionNotMet
from rln_core.keystore import Keystore
from rln_core.models import MembershipState
from rln_core.results import ErrorKind, Failure, RateLimitBounds
from rln_core.storage import InMemoryStorage
from rln_core.vault import CredentialVault
from fakes import (
    CONTRACT_ADDRESS,
    FAST_KDF,
    USER_ADDRESS,
    FakeContract,
    FakeRLN,
    FakeToken,
    FakeWallet,
    make_credential,
)

PASSWORD = "pw1234567"


def make_coordinator(wallet=None, rln=None, load=True):
    vault = CredentialVault(InMemoryStorage(), kdf_params=FAST_KDF)
    if load:
        vault.load()
    rln = rln or FakeRLN()
    wallet = wallet if wallet is not None else FakeWallet()
    return MembershipCoordinator(vault, wallet, lambda: rln), rln


def started_coordinator(**kwargs):
    coord, rln = make_coordinator(**kwargs)
    assert coord.initialize().success
    return coord, rln


def stored_membership(coord, rln, state, seed="alice"):
    """Save a credential in the vault and register it on the fake contract in `state`."""
    cred = make_credential(seed, rate_limit=100)
    h = coord.vault.save_credentials(cred, PASSWORD)
    rln.contract.add_member(cred, state=state)
    return h, cred


# ----------------------------------------------------------------------
# Session
# ----------------------------------------------------------------------
def test_initialize_is_idempotent():
    created = []
    rln = FakeRLN()

    def factory():
        created.append(rln)
        return rln

    vault = CredentialVault(InMemoryStorage(), kdf_params=FAST_KDF)
    coord = MembershipCoordinator(vault, FakeWallet(), factory)

    assert coord.initialize().success
    assert coord.initialize().success
    assert len(created) == 1
    assert coord.is_started
    assert (coord.rate_min_limit, coord.rate_max_limit) == (20, 600)


def test_initialize_requires_connected_wallet():
    coord, rln = make_coordinator(wallet=FakeWallet(connected=False))

    result = coord.initialize()

    assert isinstance(result, Failure)
    assert result.kind == ErrorKind.PRECONDITION_NOT_MET
    assert not coord.is_started
    assert rln.started_with is None


def test_start_failure_leaves_session_unstarted_and_retry_works():
    rln = FakeRLN(start_error=RuntimeError("boom"))
    coord, _ = make_coordinator(rln=rln)

    result = coord.initialize()
    assert not result.success
    assert result.kind == ErrorKind.CHAIN_INTERACTION_FAILED
    assert coord.error == "boom"
    assert not coord.is_started

    rln.start_error = None
    assert coord.initialize().success
    assert coord.is_started
    assert coord.error is None


def test_bounds_before_start_is_precondition_failure():
    coord, _ = make_coordinator()
    result = coord.get_rate_limits_bounds()
    assert result.kind == ErrorKind.PRECONDITION_NOT_MET
    assert coord.get_current_rate_limit() is None


def test_bounds_after_start():
    coord, _ = started_coordinator()
    bounds = coord.get_rate_limits_bounds()
    assert bounds == RateLimitBounds(20, 600)
    assert bounds.contains(20) and bounds.contains(600)
    assert not bounds.contains(601)


def test_bounds_contract_failure():
    coord, rln = started_coordinator()
    rln.contract.min_rate = None
    result = coord.get_rate_limits_bounds()
    assert result.kind == ErrorKind.CHAIN_INTERACTION_FAILED


# ----------------------------------------------------------------------
# Registration
# ----------------------------------------------------------------------
def test_register_before_start_fails():
    coord, _ = make_coordinator()
    result = coord.register_membership(100)
    assert result.kind == ErrorKind.PRECONDITION_NOT_MET


@pytest.mark.parametrize("rate_limit", [19, 601, 0])
def test_register_out_of_range_makes_no_calls(rate_limit):
    wallet = FakeWallet()
    coord, rln = started_coordinator(wallet=wallet)
    wallet.calls.clear()

    result = coord.register_membership(rate_limit)

    assert result.kind == ErrorKind.VALIDATION
    assert "between 20 and 600" in result.error
    assert rln.contract.calls == []
    assert wallet.calls == []
    assert wallet.token.calls == []


def test_register_requests_approval_when_allowance_is_zero():
    token = FakeToken(allowance=0)
    coord, rln = started_coordinator(wallet=FakeWallet(token=token))

    result = coord.register_membership(100)

    assert result.success
    assert ("approve", CONTRACT_ADDRESS, MAX_UINT256) in token.calls
    assert token.approve_txs[0].waited == [1]
    assert rln.contract.calls[0] == ("set_rate_limit", 100)
    assert result.credentials.membership.rate_limit == 100
    assert result.keystore_hash is None


def test_register_skips_approval_with_existing_allowance():
    token = FakeToken(allowance=5)
    coord, _ = started_coordinator(wallet=FakeWallet(token=token))

    assert coord.register_membership(100).success
    assert not [c for c in token.calls if c[0] == "approve"]


def test_register_with_zero_balance_fails_before_signing():
    wallet = FakeWallet(token=FakeToken(balance=0))
    coord, rln = started_coordinator(wallet=wallet)

    result = coord.register_membership(100)

    assert result.kind == ErrorKind.PRECONDITION_NOT_MET
    assert "balance is zero" in result.error
    assert wallet.signed == []
    assert rln.generated == []


def test_register_approval_failure():
    token = FakeToken(approve_error=RuntimeError("user rejected"))
    coord, rln = started_coordinator(wallet=FakeWallet(token=token))

    result = coord.register_membership(100)

    assert result.kind == ErrorKind.CHAIN_INTERACTION_FAILED
    assert "user rejected" in result.error
    assert rln.generated == []


def test_register_signs_timestamped_message():
    wallet = FakeWallet()
    coord, _ = started_coordinator(wallet=wallet)

    coord.register_membership(100)

    assert len(wallet.signed) == 1
    prefix, stamp = wallet.signed[0].rsplit(" ", 1)
    assert prefix == SIGNATURE_MESSAGE
    assert stamp.isdigit()


def test_register_without_credentials_returned_fails():
    coord, rln = started_coordinator()
    rln.register_result = None

    result = coord.register_membership(100)

    assert result.kind == ErrorKind.CHAIN_INTERACTION_FAILED
    assert "No credentials returned" in result.error


def test_register_saves_when_password_given():
    coord, _ = started_coordinator()

    result = coord.register_membership(100, password=PASSWORD)

    assert result.success
    assert result.keystore_hash in coord.vault.stored_hashes
    assert coord.vault.get_decrypted_credential(result.keystore_hash, PASSWORD) == result.credentials


def test_register_succeeds_even_if_save_fails(caplog):
    coord, _ = make_coordinator(load=False)
    assert coord.initialize().success

    result = coord.register_membership(100, password=PASSWORD)

    assert result.success
    assert result.keystore_hash is None
    assert "error saving credentials" in caplog.text


def test_register_switches_network_when_needed():
    wallet = FakeWallet(chain_id=1)
    coord, _ = started_coordinator(wallet=wallet)

    assert coord.register_membership(100).success
    assert "switch_chain" in wallet.calls
    assert wallet.chain_id == 59141


def test_register_continues_when_network_switch_fails():
    wallet = FakeWallet(chain_id=1, switch_error=RuntimeError("rejected"))
    coord, _ = started_coordinator(wallet=wallet)

    assert coord.register_membership(100).success
    assert wallet.chain_id == 1


def test_current_rate_limit_after_register():
    coord, _ = started_coordinator()
    coord.register_membership(250)
    assert coord.get_current_rate_limit() == 250


# ----------------------------------------------------------------------
# Lifecycle transitions
# ----------------------------------------------------------------------
def test_extend_from_grace_period_makes_membership_active():
    coord, rln = started_coordinator()
    h, cred = stored_membership(coord, rln, MembershipState.GRACE_PERIOD)

    result = coord.extend_membership(h, PASSWORD)

    assert result.success
    assert result.tx_hash == "0xextend"
    info = coord.get_membership_info(h, PASSWORD)
    assert info.state == MembershipState.ACTIVE
    assert info.id_commitment == cred.identity.id_commitment_hex
    assert info.address == CONTRACT_ADDRESS
    assert info.chain_id == "59141"


def test_extend_active_membership_is_refused():
    coord, rln = started_coordinator()
    h, cred = stored_membership(coord, rln, MembershipState.ACTIVE)

    result = coord.extend_membership(h, PASSWORD)

    assert result.kind == ErrorKind.INVALID_TRANSITION
    assert ("extend_membership", cred.identity.id_commitment_bigint) not in rln.contract.calls


@pytest.mark.parametrize("state", [MembershipState.ACTIVE, MembershipState.GRACE_PERIOD])
def test_erase_moves_to_awaiting_withdrawal(state):
    coord, rln = started_coordinator()
    h, _ = stored_membership(coord, rln, state)

    result = coord.erase_membership(h, PASSWORD)

    assert result.success
    assert coord.get_membership_info(h, PASSWORD).state == MembershipState.ERASED_AWAITS_WITHDRAWAL


@pytest.mark.parametrize("state", [MembershipState.EXPIRED, MembershipState.ERASED_AWAITS_WITHDRAWAL])
def test_erase_refused_outside_active_or_grace(state):
    coord, rln = started_coordinator()
    h, _ = stored_membership(coord, rln, state)

    result = coord.erase_membership(h, PASSWORD)

    assert result.kind == ErrorKind.INVALID_TRANSITION
    assert not [c for c in rln.contract.calls if c[0] == "erase_membership"]


def test_withdraw_active_membership_is_refused():
    coord, rln = started_coordinator()
    h, _ = stored_membership(coord, rln, MembershipState.ACTIVE)

    result = coord.withdraw_deposit(h, PASSWORD)

    assert result.kind == ErrorKind.INVALID_TRANSITION
    assert not [c for c in rln.contract.calls if c[0] == "withdraw"]


def test_withdraw_after_erase():
    coord, rln = started_coordinator()
    h, _ = stored_membership(coord, rln, MembershipState.ERASED_AWAITS_WITHDRAWAL)

    result = coord.withdraw_deposit(h, PASSWORD)

    assert result.success
    assert result.tx_hash == "0xwithdraw"
    assert ("withdraw", "0x185A0015aC462a0aECb81beCc0497b649a64B9ea", USER_ADDRESS) in rln.contract.calls


def test_unregistered_membership_cannot_transition():
    coord, rln = started_coordinator()
    h = coord.vault.save_credentials(make_credential("carol"), PASSWORD)

    for op in (coord.extend_membership, coord.erase_membership, coord.withdraw_deposit):
        assert op(h, PASSWORD).kind == ErrorKind.INVALID_TRANSITION


def test_wrong_password_is_decryption_failure_without_chain_calls():
    coord, rln = started_coordinator()
    h, _ = stored_membership(coord, rln, MembershipState.GRACE_PERIOD)
    rln.contract.calls.clear()

    result = coord.extend_membership(h, "wrong")

    assert result.kind == ErrorKind.DECRYPTION_FAILED
    assert rln.contract.calls == []


def test_transition_before_start_is_precondition_failure():
    coord, _ = make_coordinator()
    result = coord.erase_membership("ab" * 32, PASSWORD)
    assert result.kind == ErrorKind.PRECONDITION_NOT_MET


def test_chain_query_failure_is_reported():
    coord, rln = started_coordinator()
    h, _ = stored_membership(coord, rln, MembershipState.GRACE_PERIOD)
    rln.contract.fail_with = ChainInteractionError("rpc down")

    result = coord.extend_membership(h, PASSWORD)

    assert result.kind == ErrorKind.CHAIN_INTERACTION_FAILED
    assert "rpc down" in result.error


def test_concurrent_action_on_same_credential_is_rejected():
    coord, rln = started_coordinator()
    h, _ = stored_membership(coord, rln, MembershipState.GRACE_PERIOD)

    assert coord.inflight.try_claim(h, "extend")
    assert coord.is_loading(h, "extend")

    result = coord.extend_membership(h, PASSWORD)
    assert result.kind == ErrorKind.IN_FLIGHT

    # a different action on the same credential is not blocked
    assert coord.erase_membership(h, PASSWORD).success

    coord.inflight.release(h, "extend")
    assert not coord.is_loading(h, "extend")


def test_in_flight_flag_set_while_transaction_confirms():
    coord, rln = started_coordinator()
    h, _ = stored_membership(coord, rln, MembershipState.GRACE_PERIOD)
    seen = []

    original = rln.contract.extend_membership

    def extend(id_commitment_bigint):
        tx = original(id_commitment_bigint)
        confirm = tx.on_confirm
        tx.on_confirm = lambda: (seen.append(coord.is_loading(h, "extend")), confirm())
        return tx

    rln.contract.extend_membership = extend

    assert coord.extend_membership(h, PASSWORD).success
    assert seen == [True]
    assert not coord.is_loading(h, "extend")


# ----------------------------------------------------------------------
# Queries
# ----------------------------------------------------------------------
def test_membership_info_requires_started_session():
    coord, _ = make_coordinator()
    with pytest.raises(PreconditionNotMet):
        coord.get_membership_info("ab" * 32, PASSWORD)


def test_membership_info_unknown_hash():
    coord, _ = started_coordinator()
    with pytest.raises(CredentialNotFound):
        coord.get_membership_info("ab" * 32, PASSWORD)


def test_membership_info_missing_on_chain():
    coord, _ = started_coordinator()
    h = coord.vault.save_credentials(make_credential("dave"), PASSWORD)
    with pytest.raises(ChainInteractionError):
        coord.get_membership_info(h, PASSWORD)


def test_register_refused_when_bounds_were_never_fetched():
    wallet = FakeWallet()
    rln = FakeRLN(contract=FakeContract(min_rate=None))
    coord, _ = started_coordinator(wallet=wallet, rln=rln)
    assert coord.rate_limits is None
    wallet.calls.clear()

    for rate_limit in (0, 100):
        result = coord.register_membership(rate_limit)
        assert result.kind == ErrorKind.PRECONDITION_NOT_MET

    assert rln.contract.calls == []
    assert wallet.calls == []
    assert wallet.token.calls == []


def test_register_allowed_once_bounds_are_fetched_later():
    rln = FakeRLN(contract=FakeContract(min_rate=None))
    coord, _ = started_coordinator(rln=rln)

    rln.contract.min_rate = 20
    assert coord.get_rate_limits_bounds().success
    assert coord.register_membership(100).success


def test_entry_under_non_hex_key_fails_as_decryption_failure():
    coord, rln = started_coordinator()
    h, _ = stored_membership(coord, rln, MembershipState.GRACE_PERIOD)
    entry = coord.vault.keystore.to_dict()["credentials"][h]
    odd_key = "é" + h
    assert coord.vault.import_keystore(Keystore(entries={odd_key: entry}, kdf_params=FAST_KDF))

    for op in (coord.extend_membership, coord.erase_membership, coord.withdraw_deposit):
        assert op(odd_key, PASSWORD).kind == ErrorKind.DECRYPTION_FAILED

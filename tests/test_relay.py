from __future__ import annotations

import pytest
from eth_abi import encode

from dao_services.adapters.eth_rpc import RpcResponseError, RpcTransportError
from dao_services.errors import ApiError, Misconfiguration
from dao_services.metrics import Metrics
from dao_services.services.relay import MetaTxRelay

from .fakes import (FORWARDER, OTHER_KEY, VOTER, FakeLedger, make_proposal,
                    signed_vote)

OTHER_FORWARDER = "0x9fE46736679d2D9a65F0992F2272dE9f3c7fa6e0"


@pytest.fixture
def relay(ledger: FakeLedger) -> MetaTxRelay:
    return MetaTxRelay(ledger, trusted_forwarder=FORWARDER)


@pytest.mark.asyncio
async def test_valid_vote_is_relayed(relay: MetaTxRelay, ledger: FakeLedger):
    request, signature = signed_vote(nonce=0)
    tx_hash = await relay.relay(FORWARDER, request, signature)

    assert tx_hash == f"0x{1:064x}"
    assert ledger.forwarded == [request]
    assert ledger.nonces[VOTER] == 1
    assert ledger.calls[:2] == ["verify_forward", "execute_forward"]


@pytest.mark.asyncio
async def test_replayed_request_is_rejected_as_already_used(relay: MetaTxRelay, ledger: FakeLedger):
    request, signature = signed_vote(nonce=0)
    await relay.relay(FORWARDER, request, signature)

    with pytest.raises(ApiError) as ei:
        await relay.relay(FORWARDER, request, signature)

    assert ei.value.status_code == 409
    assert ei.value.code == "nonce_already_used"
    assert ei.value.details == {"expected_nonce": 1, "nonce": 0}
    assert ledger.calls.count("execute_forward") == 1


@pytest.mark.asyncio
async def test_nonce_ahead_of_forwarder_is_out_of_order(relay: MetaTxRelay, ledger: FakeLedger):
    request, signature = signed_vote(nonce=3)

    with pytest.raises(ApiError) as ei:
        await relay.relay(FORWARDER, request, signature)

    assert ei.value.status_code == 409
    assert ei.value.code == "nonce_out_of_order"
    assert "execute_forward" not in ledger.calls


@pytest.mark.asyncio
async def test_signature_by_someone_else_is_invalid(relay: MetaTxRelay, ledger: FakeLedger):
    # signed by OTHER_KEY but claims to come from VOTER
    request, signature = signed_vote(nonce=0, key=OTHER_KEY, sender=VOTER)

    with pytest.raises(ApiError) as ei:
        await relay.relay(FORWARDER, request, signature)

    assert ei.value.status_code == 400
    assert ei.value.code == "invalid_signature"
    assert "execute_forward" not in ledger.calls


@pytest.mark.asyncio
async def test_signature_for_another_chain_is_invalid(relay: MetaTxRelay, ledger: FakeLedger):
    request, signature = signed_vote(nonce=0, chain_id=1)

    with pytest.raises(ApiError) as ei:
        await relay.relay(FORWARDER, request, signature)

    assert ei.value.code == "invalid_signature"


@pytest.mark.asyncio
async def test_unknown_forwarder_is_refused_before_any_ledger_call(relay: MetaTxRelay, ledger: FakeLedger):
    request, signature = signed_vote(nonce=0, forwarder=OTHER_FORWARDER)

    with pytest.raises(ApiError) as ei:
        await relay.relay(OTHER_FORWARDER, request, signature)

    assert ei.value.status_code == 400
    assert ei.value.code == "unknown_forwarder"
    assert ledger.calls == []


@pytest.mark.asyncio
async def test_forwarder_address_case_does_not_matter(relay: MetaTxRelay):
    request, signature = signed_vote(nonce=0)
    assert await relay.relay(FORWARDER.lower(), request, signature)


@pytest.mark.asyncio
async def test_disabled_relay_refuses(ledger: FakeLedger):
    relay = MetaTxRelay(ledger, trusted_forwarder=FORWARDER, enabled=False)
    request, signature = signed_vote(nonce=0)

    with pytest.raises(ApiError) as ei:
        await relay.relay(FORWARDER, request, signature)

    assert ei.value.status_code == 503
    assert ei.value.code == "gasless_disabled"
    assert ledger.calls == []


@pytest.mark.asyncio
async def test_relayer_out_of_gas_money(relay: MetaTxRelay, ledger: FakeLedger):
    ledger.fail["execute_forward"] = lambda req: RpcResponseError(
        -32000, "insufficient funds for gas * price + value"
    )
    request, signature = signed_vote(nonce=0)

    with pytest.raises(ApiError) as ei:
        await relay.relay(FORWARDER, request, signature)

    assert ei.value.status_code == 503
    assert ei.value.code == "insufficient_relayer_funds"
    assert ei.value.retryable


@pytest.mark.asyncio
async def test_transport_failure_is_a_network_error(relay: MetaTxRelay, ledger: FakeLedger):
    ledger.fail["verify_forward"] = lambda req: RpcTransportError("verify: timed out after 10s")
    request, signature = signed_vote(nonce=0)

    with pytest.raises(ApiError) as ei:
        await relay.relay(FORWARDER, request, signature)

    assert ei.value.status_code == 503
    assert ei.value.code == "network_error"
    assert "execute_forward" not in ledger.calls


@pytest.mark.asyncio
async def test_target_revert_surfaces_the_reason(relay: MetaTxRelay, ledger: FakeLedger):
    ledger.fail["execute_forward"] = lambda req: RpcResponseError(3, "execution reverted: Voting closed")
    request, signature = signed_vote(nonce=0)

    with pytest.raises(ApiError) as ei:
        await relay.relay(FORWARDER, request, signature)

    assert ei.value.code == "contract_reverted"
    assert ei.value.details["reason"] == "Voting closed"


@pytest.mark.asyncio
async def test_unrecognised_failure_is_relay_failed(relay: MetaTxRelay, ledger: FakeLedger):
    ledger.fail["execute_forward"] = lambda req: RuntimeError("something odd")
    request, signature = signed_vote(nonce=0)

    with pytest.raises(ApiError) as ei:
        await relay.relay(FORWARDER, request, signature)

    assert ei.value.status_code == 500
    assert ei.value.code == "relay_failed"
    assert ei.value.message == "something odd"


@pytest.mark.asyncio
async def test_nonce_lookup_failure_falls_back_to_invalid_signature(relay: MetaTxRelay, ledger: FakeLedger):
    ledger.fail["get_nonce"] = lambda owner: RpcTransportError("down")
    request, signature = signed_vote(nonce=0, key=OTHER_KEY, sender=VOTER)

    with pytest.raises(ApiError) as ei:
        await relay.relay(FORWARDER, request, signature)

    assert ei.value.code == "invalid_signature"


@pytest.mark.asyncio
async def test_unrecoverable_signature_revert_is_invalid_signature(relay: MetaTxRelay, ledger: FakeLedger):
    data = "0x08c379a0" + encode(["string"], ["ECDSA: invalid signature"]).hex()
    ledger.fail["verify_forward"] = lambda req: RpcResponseError(
        3, "execution reverted: ECDSA: invalid signature", data
    )
    request, signature = signed_vote(nonce=0)

    with pytest.raises(ApiError) as ei:
        await relay.relay(FORWARDER, request, signature)

    assert ei.value.status_code == 400
    assert ei.value.code == "invalid_signature"
    assert ei.value.details == {"reason": "ECDSA: invalid signature"}
    assert "execute_forward" not in ledger.calls


@pytest.mark.asyncio
async def test_server_errors_during_nonce_lookup_are_not_masked(relay: MetaTxRelay, ledger: FakeLedger):
    ledger.fail["get_nonce"] = lambda owner: Misconfiguration("chain id differs", code="chain_mismatch")
    request, signature = signed_vote(nonce=0, key=OTHER_KEY, sender=VOTER)

    with pytest.raises(ApiError) as ei:
        await relay.relay(FORWARDER, request, signature)

    assert ei.value.status_code == 500
    assert ei.value.code == "chain_mismatch"
    assert ei.value.code == "invalid_signature"


@pytest.mark.asyncio
async def test_relay_counts_outcomes():
    ledger = FakeLedger([make_proposal()])
    metrics = Metrics()
    relay = MetaTxRelay(ledger, trusted_forwarder=FORWARDER, metrics=metrics)
    request, signature = signed_vote(nonce=0)

    await relay.relay(FORWARDER, request, signature)
    with pytest.raises(ApiError):
        await relay.relay(FORWARDER, request, signature)

    reg = metrics.registry
    assert reg.get_sample_value("dao_relay_requests_total", {"outcome": "submitted"}) == 1.0
    assert reg.get_sample_value("dao_relay_requests_total", {"outcome": "nonce_already_used"}) == 1.0

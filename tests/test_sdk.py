"""
End-to-end tests for UnifiedIdSDK against the in-memory registry node and relayer.
"""

from unittest.mock import AsyncMock

import pytest

from conftest import ADDR_A, ADDR_B
from unifiedid import OperationKind, RelayerResponse, SignedOperation, UnifiedIdSDK, ValidationError
from unifiedid.core.encoding import is_signature_expired, verify_signature_chain_compatibility
from unifiedid.core.signing import ExternalSigner, recover_digest_signer

NOW = 1_700_000_000


class RecordingObserver:
    def __init__(self):
        self.events = []

    def on_operation_started(self, event):
        self.events.append(("started", event))

    def on_operation_completed(self, event):
        self.events.append(("completed", event))

    def on_operation_failed(self, event):
        self.events.append(("failed", event))


@pytest.fixture
def observer():
    return RecordingObserver()


@pytest.fixture
def sdk(sdk_config, rpc, relayer, observer):
    return UnifiedIdSDK(sdk_config, observers=[observer], rpc=rpc, relayer=relayer, clock=lambda: NOW)


@pytest.mark.asyncio
async def test_register_end_to_end(sdk, fake_relayer, observer, signer_a):
    result = await sdk.register_unified_id("alice_01", ADDR_A, master_signer=signer_a)

    assert result.success is True
    assert result.kind is OperationKind.REGISTER
    assert result.data == {"operationId": "relay-1"}
    assert result.operation_id.startswith("op_")

    request = fake_relayer.requests[-1]
    body = fake_relayer.last_json
    assert request.url.path == "/set-unifiedid"
    assert body["action"] == "initiate-register-unifiedid"
    assert body["unifiedId"] == "alice_01"
    assert body["chainId"] == "11155111"
    digest = bytes.fromhex(result.operation.digest[2:])
    assert recover_digest_signer(digest, body["masterSignature"]) == ADDR_A

    assert [name for name, _ in observer.events] == ["started", "completed"]
    assert {e.operation_id for _, e in observer.events} == {result.operation_id}


@pytest.mark.asyncio
async def test_relayer_rejection_is_a_failed_result(sdk, fake_relayer, observer, signer_a, signer_b):
    fake_relayer.status_code = 400
    fake_relayer.body = {"error": "Secondary already bound"}

    result = await sdk.add_secondary_address(
        "alice_01", ADDR_B, primary_signer=signer_a, secondary_signer=signer_b
    )

    assert result.success is False
    assert result.status_code == 400
    assert result.error == {"error": "Secondary already bound"}
    assert result.to_dict()["details"] == {"status": 400, "path": "/add-secondary-address"}
    assert observer.events[-1][0] == "failed"


@pytest.mark.asyncio
async def test_validation_errors_propagate_without_io(sdk, node, fake_relayer, observer):
    with pytest.raises(ValidationError) as exc_info:
        await sdk.add_secondary_address(
            "alice_01", ADDR_B, primary_signature="0x" + "11" * 65, secondary_signature=None
        )

    assert "secondary signature" in str(exc_info.value)
    assert node.calls == []
    assert fake_relayer.requests == []
    assert [name for name, _ in observer.events] == ["started", "failed"]


@pytest.mark.asyncio
async def test_rpc_outage_is_a_failed_result(sdk, node, fake_relayer, signer_a):
    node.fail_transport = True

    result = await sdk.remove_secondary_address("alice_01", ADDR_B, signer=signer_a)

    assert result.success is False
    assert result.details["category"] == "network"
    assert fake_relayer.requests == []


@pytest.mark.asyncio
async def test_relayer_outage_is_a_failed_result(sdk, fake_relayer, signer_a):
    fake_relayer.fail_transport = True

    result = await sdk.update_unified_id("alice_01", "alice_02", signer=signer_a)

    assert result.success is False
    assert result.details["category"] == "network"
    assert result.operation is None


@pytest.mark.asyncio
async def test_signer_rejection_is_a_failed_result(sdk, fake_relayer):
    def reject(_digest):
        raise RuntimeError("User rejected the request")

    result = await sdk.register_unified_id(
        "alice_01", ADDR_A, master_signer=ExternalSigner(ADDR_A, reject)
    )

    assert result.success is False
    assert result.details["category"] == "signature"
    assert fake_relayer.requests == []


@pytest.mark.asyncio
async def test_change_primary_presigned(sdk, fake_relayer):
    signature = "0x" + "22" * 64 + "1c"

    result = await sdk.change_primary_address(
        "alice_01",
        ADDR_B,
        current_primary_address=ADDR_A,
        current_signature=signature,
        new_signature=signature,
    )

    assert result.success is True
    assert fake_relayer.last_json["currentPrimarySignature"] == signature


@pytest.mark.asyncio
async def test_observers_can_be_removed(sdk, observer, signer_a):
    sdk.remove_observer(observer)

    await sdk.remove_secondary_address("alice_01", ADDR_B, signer=signer_a)

    assert observer.events == []


@pytest.mark.asyncio
async def test_reads_delegate_to_reader(sdk, node):
    node.register("alice_01", ADDR_A, secondaries=[ADDR_B], nonce=1)

    profile = await sdk.get_identifier_profile("alice_01")
    role = await sdk.resolve_address_role(ADDR_B)

    assert profile.to_dict()["secondaryAddresses"] == [ADDR_B]
    assert role.is_secondary is True
    assert await sdk.get_nonce("alice_01") == 1
    assert await sdk.get_registration_fee("0x" + "00" * 20, 10) == 10


@pytest.mark.asyncio
async def test_sign_typed_operation(sdk, signer_a):
    result = await sdk.sign_typed_operation(
        OperationKind.REMOVE_SECONDARY, ("alice_01", ADDR_B), signer_a
    )

    assert result["targetChainId"] == 11155111
    assert result["deadline"] == NOW + 3600


@pytest.mark.asyncio
async def test_health_ping_and_close(sdk_config, rpc, relayer, fake_relayer):
    async with UnifiedIdSDK(sdk_config, rpc=rpc, relayer=relayer) as sdk:
        assert (await sdk.get_health()).success is True
        assert (await sdk.ping()).success is True

    assert [r.url.path for r in fake_relayer.requests] == ["/health", "/ping"]


@pytest.mark.asyncio
async def test_submit_hands_built_operation_to_relayer(sdk, signer_a, monkeypatch):
    submit = AsyncMock(return_value=RelayerResponse(success=True, data={"txHash": "0xabc"}, status_code=200))
    monkeypatch.setattr(sdk.relayer, "submit", submit)

    result = await sdk.remove_secondary_address("alice_01", ADDR_B, signer=signer_a)

    submit.assert_awaited_once()
    (operation,) = submit.await_args.args
    assert isinstance(operation, SignedOperation)
    assert operation.endpoint == "/remove-secondary-address"
    assert result.data == {"txHash": "0xabc"}


@pytest.mark.asyncio
async def test_malformed_rpc_data_is_a_failed_result(sdk, node, fake_relayer, observer, signer_a):
    node.malformed_functions = {"nonces", "getNonce"}

    result = await sdk.register_unified_id("alice_01", ADDR_A, master_signer=signer_a)

    assert result.success is False
    assert result.details["category"] == "contract"
    assert result.details["operation"] == "getNonce"
    assert fake_relayer.requests == []
    assert observer.events[-1][0] == "failed"


@pytest.mark.asyncio
async def test_sign_typed_operations(sdk, signer_a):
    results = await sdk.sign_typed_operations(
        [
            (OperationKind.UPDATE_MASTER, ("alice_01", ADDR_B)),
            (OperationKind.REMOVE_SECONDARY, ("alice_01", ADDR_B)),
        ],
        signer_a,
    )

    assert [r["nonce"] for r in results] == [0, 1]
    assert results[0]["typedData"]["primaryType"] == "UpdateMasterAddress"
    assert is_signature_expired(results[0]["deadline"], now=NOW) is False
    assert verify_signature_chain_compatibility(results[1], 11155111) is True

"""
Tests for the relayer HTTP client.
"""

import pytest

from unifiedid.core.encoding import OperationKind
from unifiedid.core.errors import ApiError, NetworkError
from unifiedid.core.models import SignedOperation
from unifiedid.providers.relayer import RelayerConfig, RelayerNetworkError, RelayerProvider


def _operation():
    return SignedOperation(
        kind=OperationKind.REMOVE_SECONDARY,
        action="initiate-remove-secondary-address",
        endpoint="/remove-secondary-address",
        payload={"chainId": "11155111", "unifiedId": "alice_01", "nonce": "0"},
        nonce=0,
        deadline=100,
        options="0x",
        digest="0x00",
    )


@pytest.mark.asyncio
async def test_submit_posts_payload_with_auth(relayer, fake_relayer):
    response = await relayer.submit(_operation())

    request = fake_relayer.requests[-1]
    assert request.method == "POST"
    assert request.url.path == "/remove-secondary-address"
    assert request.headers["Authorization"] == "Bearer test-token"
    assert request.headers["Content-Type"] == "application/json"
    assert fake_relayer.last_json == {
        "action": "initiate-remove-secondary-address",
        "chainId": "11155111",
        "unifiedId": "alice_01",
        "nonce": "0",
    }
    assert response.success is True
    assert response.data == {"operationId": "relay-1"}
    assert response.raise_for_error() is response


@pytest.mark.asyncio
async def test_non_2xx_returns_failure_with_body_verbatim(relayer, fake_relayer):
    fake_relayer.status_code = 400
    fake_relayer.body = {"error": "Nonce mismatch", "expected": 3}

    response = await relayer.submit(_operation())

    assert response.success is False
    assert response.status_code == 400
    assert response.error == {"error": "Nonce mismatch", "expected": 3}
    assert response.details == {"status": 400, "path": "/remove-secondary-address"}
    assert response.to_dict()["error"] == fake_relayer.body


@pytest.mark.asyncio
async def test_raise_for_error_converts_to_api_error(relayer, fake_relayer):
    fake_relayer.status_code = 503
    fake_relayer.body = {"error": "unavailable"}

    response = await relayer.post("/set-unifiedid", {})

    with pytest.raises(ApiError) as exc_info:
        response.raise_for_error()
    assert exc_info.value.status_code == 503
    assert exc_info.value.body == {"error": "unavailable"}
    assert exc_info.value.path == "/set-unifiedid"


@pytest.mark.asyncio
async def test_success_false_body_is_failure(relayer, fake_relayer):
    fake_relayer.body = {"success": False, "error": "already registered"}

    response = await relayer.post("/set-unifiedid", {})

    assert response.success is False
    assert response.error == "already registered"


@pytest.mark.asyncio
async def test_transport_failure_raises_network_error(relayer, fake_relayer):
    fake_relayer.fail_transport = True

    with pytest.raises(RelayerNetworkError) as exc_info:
        await relayer.submit(_operation())

    assert isinstance(exc_info.value, NetworkError)
    assert exc_info.value.url == "https://relayer.test/remove-secondary-address"


@pytest.mark.asyncio
async def test_health_and_ping(relayer, fake_relayer):
    assert (await relayer.health()).success is True
    assert (await relayer.ping()).success is True
    assert await relayer.health_check() == {"status": "healthy"}
    assert [r.url.path for r in fake_relayer.requests] == ["/health", "/ping", "/health"]


@pytest.mark.asyncio
async def test_health_check_reports_unreachable(relayer, fake_relayer):
    fake_relayer.fail_transport = True

    status = await relayer.health_check()

    assert status["status"] == "error"


@pytest.mark.asyncio
async def test_health_check_disabled_without_url():
    relayer = RelayerProvider(RelayerConfig(base_url=""))

    assert await relayer.ready() is False
    assert (await relayer.health_check())["status"] == "disabled"


@pytest.mark.asyncio
async def test_aclose_resets_client(relayer):
    await relayer.ping()
    await relayer.aclose()
    await relayer.aclose()

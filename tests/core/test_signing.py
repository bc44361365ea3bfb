"""
Tests for the signer adapter.
"""

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct

from conftest import ADDR_A, ADDR_B, KEY_A
from unifiedid.core.encoding import EncodingVariant, OperationKind, encode_operation, packed_digest
from unifiedid.core.errors import SignatureError
from unifiedid.core.signing import (
    ExternalSigner,
    KeyMaterialSigner,
    normalize_signature,
    recover_digest_signer,
    recover_typed_data_signer,
)

DIGEST = packed_digest(OperationKind.REGISTER, ("alice_01", ADDR_A), 0)
MOTHER = "0x21068b37d05575B4D7DFa5393c7b140f65dA0355"


def _sign_with_key(digest: bytes) -> bytes:
    return bytes(Account.sign_message(encode_defunct(primitive=digest), private_key=KEY_A).signature)


# =============================================================================
# KeyMaterialSigner
# =============================================================================


def test_key_signer_exposes_checksum_address(signer_a):
    assert signer_a.address == ADDR_A


@pytest.mark.asyncio
async def test_key_signer_signature_recovers_to_signer(signer_a):
    signature = await signer_a.sign_digest(DIGEST)

    assert signature.startswith("0x")
    assert len(bytes.fromhex(signature[2:])) == 65
    assert recover_digest_signer(DIGEST, signature) == ADDR_A


@pytest.mark.asyncio
async def test_repeated_signatures_recover_to_same_address(signer_a):
    first = await signer_a.sign_digest(DIGEST)
    second = await signer_a.sign_digest(DIGEST)

    assert recover_digest_signer(DIGEST, first) == recover_digest_signer(DIGEST, second) == ADDR_A


@pytest.mark.asyncio
async def test_key_signer_typed_data_round_trip(signer_b):
    encoded = encode_operation(
        OperationKind.ADD_SECONDARY,
        ("alice_01", ADDR_B),
        4,
        variant=EncodingVariant.TYPED_ENHANCED,
        deadline=1_700_000_000,
        chain_id=11155111,
        verifying_contract=MOTHER,
    )

    signature = await signer_b.sign_operation(encoded)

    assert recover_typed_data_signer(encoded.typed_data, signature) == ADDR_B


@pytest.mark.asyncio
async def test_sign_operation_uses_digest_for_packed(signer_a):
    encoded = encode_operation(OperationKind.REGISTER, ("alice_01", ADDR_A), 0)

    signature = await signer_a.sign_operation(encoded)

    assert recover_digest_signer(encoded.digest, signature) == ADDR_A


@pytest.mark.parametrize("key", ["", "0x1234", "not-a-key"])
def test_malformed_key_raises_signature_error(key):
    with pytest.raises(SignatureError) as exc_info:
        KeyMaterialSigner(key)
    assert str(exc_info.value) == "Malformed private key"


@pytest.mark.asyncio
async def test_wrong_digest_length_rejected(signer_a):
    with pytest.raises(SignatureError):
        await signer_a.sign_digest(b"\x01" * 31)


# =============================================================================
# ExternalSigner
# =============================================================================


@pytest.mark.asyncio
async def test_external_signer_accepts_sync_callable():
    signer = ExternalSigner(ADDR_A, _sign_with_key)

    signature = await signer.sign_digest(DIGEST)

    assert recover_digest_signer(DIGEST, signature) == ADDR_A


@pytest.mark.asyncio
async def test_external_signer_accepts_async_callable():
    async def sign(digest: bytes) -> str:
        return "0x" + _sign_with_key(digest).hex()

    signer = ExternalSigner(ADDR_A.lower(), sign)

    assert signer.address == ADDR_A
    assert recover_digest_signer(DIGEST, await signer.sign_digest(DIGEST)) == ADDR_A


@pytest.mark.asyncio
async def test_external_signer_rejection_becomes_signature_error():
    def reject(_digest):
        raise RuntimeError("User rejected the request")

    signer = ExternalSigner(ADDR_A, reject)

    with pytest.raises(SignatureError) as exc_info:
        await signer.sign_digest(DIGEST)
    assert "rejected" in str(exc_info.value)
    assert exc_info.value.signer == ADDR_A


@pytest.mark.asyncio
async def test_external_signer_without_typed_capability():
    signer = ExternalSigner(ADDR_A, _sign_with_key)

    with pytest.raises(SignatureError):
        await signer.sign_typed_data({"types": {}, "primaryType": "X", "domain": {}, "message": {}})


@pytest.mark.asyncio
@pytest.mark.parametrize("result", [b"", "0x", b"\x00" * 65, b"\x01" * 64, None])
async def test_external_signer_rejects_unusable_results(result):
    signer = ExternalSigner(ADDR_A, lambda _digest: result)

    with pytest.raises(SignatureError):
        await signer.sign_digest(DIGEST)


def test_external_signer_requires_valid_address():
    with pytest.raises(SignatureError):
        ExternalSigner("0x1234", _sign_with_key)


# =============================================================================
# normalize_signature
# =============================================================================


def test_normalize_lifts_recovery_byte():
    raw = _sign_with_key(DIGEST)
    low_v = raw[:-1] + bytes([raw[-1] - 27])

    assert normalize_signature(low_v) == "0x" + raw.hex()


def test_normalize_accepts_unprefixed_hex():
    raw = _sign_with_key(DIGEST)
    assert normalize_signature(raw.hex()) == "0x" + raw.hex()


def test_normalize_rejects_non_hex():
    with pytest.raises(SignatureError):
        normalize_signature("0xzz" + "00" * 64)

"""
Signer adapter.

Two interchangeable signers produce 65-byte ECDSA signatures:

- ``KeyMaterialSigner`` holds a private key in process (eth_account).
- ``ExternalSigner`` delegates to caller-supplied callables, sync or async,
  such as a hardware wallet or browser bridge.

Every failure surfaces as ``SignatureError``.
"""

from __future__ import annotations

import inspect
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from eth_account import Account
from eth_account.messages import encode_defunct, encode_typed_data

from .encoding import EncodedOperation
from .errors import SignatureError, ValidationError
from .validation import SIGNATURE_LENGTH, require_address

logger = logging.getLogger(__name__)

SignatureLike = Union[str, bytes, bytearray]
MessageCallable = Callable[[bytes], Union[SignatureLike, Awaitable[SignatureLike]]]
TypedDataCallable = Callable[[Dict[str, Any]], Union[SignatureLike, Awaitable[SignatureLike]]]


def normalize_signature(value: Any, signer: Optional[str] = None) -> str:
    """Coerce a signature to 0x-hex, rejecting empty, all-zero or wrongly sized values.

    A recovery byte of 0/1 is lifted to 27/28.
    """
    if value is None or value == "" or value == b"":
        raise SignatureError("Signer returned an empty signature", signer=signer)
    if hasattr(value, "signature"):
        value = value.signature
    if isinstance(value, str):
        text = value[2:] if value.startswith(("0x", "0X")) else value
        try:
            raw = bytes.fromhex(text)
        except ValueError as exc:
            raise SignatureError("Signature is not valid hex", signer=signer) from exc
    elif isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    else:
        raise SignatureError(
            f"Unsupported signature type: {type(value).__name__}", signer=signer
        )

    if len(raw) != SIGNATURE_LENGTH:
        raise SignatureError(
            f"Signature must be {SIGNATURE_LENGTH} bytes, got {len(raw)}", signer=signer
        )
    if not any(raw):
        raise SignatureError("Signature is all zeros", signer=signer)

    if raw[-1] in (0, 1):
        raw = raw[:-1] + bytes([raw[-1] + 27])
    return "0x" + raw.hex()


def recover_digest_signer(digest: bytes, signature: SignatureLike) -> str:
    """Recover the address that personal-signed ``digest``."""

    try:
        return Account.recover_message(encode_defunct(primitive=bytes(digest)), signature=signature)
    except Exception as exc:
        raise SignatureError(f"Could not recover signer: {exc}") from exc


def recover_typed_data_signer(typed_data: Dict[str, Any], signature: SignatureLike) -> str:
    """Recover the address that signed an EIP-712 message."""

    try:
        signable = encode_typed_data(full_message=typed_data)
        return Account.recover_message(signable, signature=signature)
    except Exception as exc:
        raise SignatureError(f"Could not recover typed-data signer: {exc}") from exc


class Signer(ABC):
    """Produces signatures for one address."""

    @property
    @abstractmethod
    def address(self) -> str:
        """Checksummed address of the signing key."""

    @abstractmethod
    async def sign_digest(self, digest: bytes) -> str:
        """EIP-191 personal-sign a 32-byte digest."""

    @abstractmethod
    async def sign_typed_data(self, typed_data: Dict[str, Any]) -> str:
        """Sign a full EIP-712 message."""

    async def sign_operation(self, encoded: EncodedOperation) -> str:
        """Sign an encoded operation according to its variant."""

        if encoded.is_typed:
            return await self.sign_typed_data(encoded.typed_data or {})
        return await self.sign_digest(encoded.digest)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(address={self.address!r})"


class KeyMaterialSigner(Signer):
    """Signer backed by an in-process private key."""

    def __init__(self, private_key: SignatureLike):
        try:
            self._account = Account.from_key(private_key)
        except Exception as exc:
            # Never echo key material.
            raise SignatureError("Malformed private key") from exc

    @property
    def address(self) -> str:
        return self._account.address

    async def sign_digest(self, digest: bytes) -> str:
        if not isinstance(digest, (bytes, bytearray)) or len(digest) != 32:
            raise SignatureError("Digest must be 32 bytes", signer=self.address)
        signed = self._account.sign_message(encode_defunct(primitive=bytes(digest)))
        return normalize_signature(bytes(signed.signature), signer=self.address)

    async def sign_typed_data(self, typed_data: Dict[str, Any]) -> str:
        try:
            signable = encode_typed_data(full_message=typed_data)
        except Exception as exc:
            raise SignatureError(f"Invalid typed data: {exc}", signer=self.address) from exc
        signed = self._account.sign_message(signable)
        return normalize_signature(bytes(signed.signature), signer=self.address)


class ExternalSigner(Signer):
    """Signer that forwards to caller-supplied callables.

    ``sign_message`` receives the 32-byte digest and must personal-sign it.
    ``sign_typed_data`` receives the full EIP-712 message; without it the
    signer cannot produce typed signatures.
    """

    def __init__(
        self,
        address: str,
        sign_message: MessageCallable,
        sign_typed_data: Optional[TypedDataCallable] = None,
    ):
        try:
            self._address = require_address(address, "signer_address")
        except ValidationError as exc:
            raise SignatureError(str(exc)) from exc
        self._sign_message = sign_message
        self._sign_typed_data = sign_typed_data

    @property
    def address(self) -> str:
        return self._address

    async def _invoke(self, func: Callable[[Any], Any], argument: Any) -> str:
        try:
            result = func(argument)
            if inspect.isawaitable(result):
                result = await result
        except SignatureError:
            raise
        except Exception as exc:
            logger.warning("External signer %s failed: %s", self._address, exc)
            raise SignatureError(f"Signer rejected the request: {exc}", signer=self._address) from exc
        return normalize_signature(result, signer=self._address)

    async def sign_digest(self, digest: bytes) -> str:
        if not isinstance(digest, (bytes, bytearray)) or len(digest) != 32:
            raise SignatureError("Digest must be 32 bytes", signer=self._address)
        return await self._invoke(self._sign_message, bytes(digest))

    async def sign_typed_data(self, typed_data: Dict[str, Any]) -> str:
        if self._sign_typed_data is None:
            raise SignatureError(
                "Signer does not support typed-data signing", signer=self._address
            )
        return await self._invoke(self._sign_typed_data, typed_data)


__all__ = [
    "Signer",
    "KeyMaterialSigner",
    "ExternalSigner",
    "normalize_signature",
    "recover_digest_signer",
    "recover_typed_data_signer",
]

"""
Operation builder.

Turns high-level parameters into relayer-ready payloads. Every operation has
two entry points:

- ``prepare_<op>``: the caller already holds the signatures; they are
  shape-checked and serialized.
- ``sign_<op>``: the caller hands over signers; the builder reads the nonce,
  encodes the digest and collects the signatures itself.

All parameter validation happens before the nonce is read or any signer is
invoked. The nonce is always read fresh from the mother registry.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .encoding import (
    DEFAULT_DEADLINE_OFFSET,
    EncodedOperation,
    EncodingVariant,
    OperationKind,
    compute_deadline,
    encode_operation,
    encode_options,
)
from .errors import ValidationError
from .models import (
    AddSecondaryRequest,
    ChangePrimaryRequest,
    OperationRequest,
    RegisterRequest,
    RemoveSecondaryRequest,
    SignedOperation,
    UpdateIdentifierRequest,
)
from .reader import ChainReader
from .signing import Signer
from .validation import require_address, require_chain_id, require_signature, require_unified_id, same_address

logger = logging.getLogger(__name__)

# kind -> (relayer endpoint, action discriminator)
RELAYER_ROUTES: Dict[OperationKind, tuple] = {
    OperationKind.REGISTER: ("/set-unifiedid", "initiate-register-unifiedid"),
    OperationKind.ADD_SECONDARY: ("/add-secondary-address", "initiate-add-secondary-address"),
    OperationKind.REMOVE_SECONDARY: ("/remove-secondary-address", "initiate-remove-secondary-address"),
    OperationKind.CHANGE_PRIMARY: ("/update-primary-address", "initiate-update-primary-address"),
    OperationKind.UPDATE_IDENTIFIER: ("/update-unifiedid", "initiate-update-unifiedid"),
}


def _require_present(value: Any, field: str) -> None:
    if value is None or value == "" or value == b"":
        raise ValidationError(f"{field.replace('_', ' ')} is required", field=field)


def _require_signer(value: Any, field: str) -> Signer:
    _require_present(value, field)
    if not isinstance(value, Signer):
        raise ValidationError(f"{field.replace('_', ' ')} must be a Signer", field=field)
    return value


def _signature(value: Any, field: str) -> str:
    _require_present(value, field)
    return require_signature(value, field)


def _require_distinct_addresses(current: str, new: str) -> None:
    if same_address(current, new):
        raise ValidationError(
            "current and new primary addresses cannot be the same",
            field="new_primary_address",
        )


def _require_matching_signer(signer: Signer, address: str, field: str) -> None:
    if not same_address(signer.address, address):
        raise ValidationError(
            f"{field.replace('_', ' ')} address {signer.address} does not match {address}",
            field=field,
        )


class OperationBuilder:
    """
    Assembles signed payloads for the registry operations.

    Usage:
        builder = OperationBuilder(reader, chain_id=11155111)
        op = await builder.sign_register("alice_01", address, master_signer=signer)
        response = await relayer.submit(op)
    """

    def __init__(
        self,
        reader: ChainReader,
        chain_id: Optional[int] = None,
        deadline_offset: int = DEFAULT_DEADLINE_OFFSET,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._reader = reader
        resolved = chain_id if chain_id is not None else reader.chain_id
        self._chain_id = require_chain_id(resolved)
        if deadline_offset <= 0:
            raise ValidationError("deadline_offset must be positive", field="deadline_offset")
        self._deadline_offset = deadline_offset
        self._clock = clock

    @property
    def chain_id(self) -> int:
        return self._chain_id

    @property
    def reader(self) -> ChainReader:
        return self._reader

    # ------------------------------------------------------------------
    # Shared steps
    # ------------------------------------------------------------------

    async def _encode(
        self,
        kind: OperationKind,
        nonce_identifier: str,
        fields: Sequence[Any],
    ) -> EncodedOperation:
        nonce = await self._reader.get_nonce(nonce_identifier)
        deadline = compute_deadline(self._deadline_offset, self._clock())
        return encode_operation(kind, fields, nonce, deadline=deadline)

    def _serialize(
        self,
        encoded: EncodedOperation,
        body: Dict[str, Any],
    ) -> SignedOperation:
        endpoint, action = RELAYER_ROUTES[encoded.kind]
        options = encode_options(encoded.nonce, encoded.deadline)
        payload = {
            "chainId": str(self._chain_id),
            **body,
            "nonce": str(encoded.nonce),
            "options": options,
        }
        logger.info(
            "Built %s payload (nonce=%s, deadline=%s)",
            encoded.kind.value,
            encoded.nonce,
            encoded.deadline,
        )
        return SignedOperation(
            kind=encoded.kind,
            action=action,
            endpoint=endpoint,
            payload=payload,
            nonce=encoded.nonce,
            deadline=encoded.deadline,
            options=options,
            digest=encoded.digest_hex,
        )

    # ------------------------------------------------------------------
    # register
    # ------------------------------------------------------------------

    async def prepare_register(
        self,
        unified_id: str,
        user_address: str,
        master_signature: Optional[str],
        primary_signature: Optional[str] = None,
    ) -> SignedOperation:
        """Serialize a registration; the primary signature defaults to the master's."""

        unified_id = require_unified_id(unified_id)
        user_address = require_address(user_address, "user_address")
        master_signature = _signature(master_signature, "master_signature")
        primary_signature = (
            _signature(primary_signature, "primary_signature")
            if primary_signature is not None
            else master_signature
        )

        encoded = await self._encode(OperationKind.REGISTER, unified_id, (unified_id, user_address))
        return self._serialize(
            encoded,
            {
                "unifiedId": unified_id,
                "userAddress": user_address,
                "masterSignature": master_signature,
                "primarySignature": primary_signature,
            },
        )

    async def sign_register(
        self,
        unified_id: str,
        user_address: str,
        master_signer: Signer,
        primary_signer: Optional[Signer] = None,
    ) -> SignedOperation:
        unified_id = require_unified_id(unified_id)
        user_address = require_address(user_address, "user_address")
        master_signer = _require_signer(master_signer, "master_signer")
        if primary_signer is not None:
            primary_signer = _require_signer(primary_signer, "primary_signer")

        encoded = await self._encode(OperationKind.REGISTER, unified_id, (unified_id, user_address))
        master_signature = await master_signer.sign_digest(encoded.digest)
        primary_signature = (
            await primary_signer.sign_digest(encoded.digest) if primary_signer else master_signature
        )
        return self._serialize(
            encoded,
            {
                "unifiedId": unified_id,
                "userAddress": user_address,
                "masterSignature": master_signature,
                "primarySignature": primary_signature,
            },
        )

    # ------------------------------------------------------------------
    # add secondary
    # ------------------------------------------------------------------

    async def prepare_add_secondary(
        self,
        unified_id: str,
        secondary_address: str,
        primary_signature: Optional[str],
        secondary_signature: Optional[str],
    ) -> SignedOperation:
        unified_id = require_unified_id(unified_id)
        secondary_address = require_address(secondary_address, "secondary_address")
        primary_signature = _signature(primary_signature, "primary_signature")
        secondary_signature = _signature(secondary_signature, "secondary_signature")

        encoded = await self._encode(
            OperationKind.ADD_SECONDARY, unified_id, (unified_id, secondary_address)
        )
        return self._serialize(
            encoded,
            {
                "unifiedId": unified_id,
                "secondaryAddress": secondary_address,
                "primarySignature": primary_signature,
                "secondarySignature": secondary_signature,
            },
        )

    async def sign_add_secondary(
        self,
        unified_id: str,
        secondary_address: str,
        primary_signer: Signer,
        secondary_signer: Signer,
    ) -> SignedOperation:
        """Both wallets sign the same digest: the primary authorizes, the secondary consents."""

        unified_id = require_unified_id(unified_id)
        secondary_address = require_address(secondary_address, "secondary_address")
        primary_signer = _require_signer(primary_signer, "primary_signer")
        secondary_signer = _require_signer(secondary_signer, "secondary_signer")
        _require_matching_signer(secondary_signer, secondary_address, "secondary_signer")

        encoded = await self._encode(
            OperationKind.ADD_SECONDARY, unified_id, (unified_id, secondary_address)
        )
        primary_signature = await primary_signer.sign_digest(encoded.digest)
        secondary_signature = await secondary_signer.sign_digest(encoded.digest)
        return self._serialize(
            encoded,
            {
                "unifiedId": unified_id,
                "secondaryAddress": secondary_address,
                "primarySignature": primary_signature,
                "secondarySignature": secondary_signature,
            },
        )

    # ------------------------------------------------------------------
    # remove secondary
    # ------------------------------------------------------------------

    async def prepare_remove_secondary(
        self,
        unified_id: str,
        secondary_address: str,
        signature: Optional[str],
    ) -> SignedOperation:
        unified_id = require_unified_id(unified_id)
        secondary_address = require_address(secondary_address, "secondary_address")
        signature = _signature(signature, "signature")

        encoded = await self._encode(
            OperationKind.REMOVE_SECONDARY, unified_id, (unified_id, secondary_address)
        )
        return self._serialize(
            encoded,
            {
                "unifiedId": unified_id,
                "secondaryAddress": secondary_address,
                "signature": signature,
            },
        )

    async def sign_remove_secondary(
        self,
        unified_id: str,
        secondary_address: str,
        signer: Signer,
    ) -> SignedOperation:
        unified_id = require_unified_id(unified_id)
        secondary_address = require_address(secondary_address, "secondary_address")
        signer = _require_signer(signer, "signer")

        encoded = await self._encode(
            OperationKind.REMOVE_SECONDARY, unified_id, (unified_id, secondary_address)
        )
        signature = await signer.sign_digest(encoded.digest)
        return self._serialize(
            encoded,
            {
                "unifiedId": unified_id,
                "secondaryAddress": secondary_address,
                "signature": signature,
            },
        )

    # ------------------------------------------------------------------
    # change primary
    # ------------------------------------------------------------------

    async def prepare_change_primary(
        self,
        unified_id: str,
        current_primary_address: str,
        new_primary_address: str,
        current_signature: Optional[str],
        new_signature: Optional[str],
    ) -> SignedOperation:
        unified_id = require_unified_id(unified_id)
        current_primary_address = require_address(current_primary_address, "current_primary_address")
        new_primary_address = require_address(new_primary_address, "new_primary_address")
        _require_distinct_addresses(current_primary_address, new_primary_address)
        current_signature = _signature(current_signature, "current_signature")
        new_signature = _signature(new_signature, "new_signature")

        encoded = await self._encode(
            OperationKind.CHANGE_PRIMARY, unified_id, (unified_id, new_primary_address)
        )
        return self._serialize(
            encoded,
            {
                "unifiedId": unified_id,
                "newPrimaryAddress": new_primary_address,
                "currentPrimarySignature": current_signature,
                "newPrimarySignature": new_signature,
            },
        )

    async def sign_change_primary(
        self,
        unified_id: str,
        new_primary_address: str,
        current_signer: Signer,
        new_signer: Signer,
        current_primary_address: Optional[str] = None,
    ) -> SignedOperation:
        """Move the primary binding; the current address defaults to the current signer's."""

        unified_id = require_unified_id(unified_id)
        new_primary_address = require_address(new_primary_address, "new_primary_address")
        current_signer = _require_signer(current_signer, "current_signer")
        new_signer = _require_signer(new_signer, "new_signer")
        current = require_address(
            current_primary_address or current_signer.address, "current_primary_address"
        )
        _require_distinct_addresses(current, new_primary_address)
        _require_matching_signer(current_signer, current, "current_signer")
        _require_matching_signer(new_signer, new_primary_address, "new_signer")

        encoded = await self._encode(
            OperationKind.CHANGE_PRIMARY, unified_id, (unified_id, new_primary_address)
        )
        current_signature = await current_signer.sign_digest(encoded.digest)
        new_signature = await new_signer.sign_digest(encoded.digest)
        return self._serialize(
            encoded,
            {
                "unifiedId": unified_id,
                "newPrimaryAddress": new_primary_address,
                "currentPrimarySignature": current_signature,
                "newPrimarySignature": new_signature,
            },
        )

    # ------------------------------------------------------------------
    # update identifier
    # ------------------------------------------------------------------

    def _validate_rename(self, old_unified_id: str, new_unified_id: str) -> None:
        require_unified_id(old_unified_id, "old_unified_id")
        require_unified_id(new_unified_id, "new_unified_id")
        if old_unified_id == new_unified_id:
            raise ValidationError(
                "old and new identifiers cannot be the same", field="new_unified_id"
            )

    async def prepare_update_identifier(
        self,
        old_unified_id: str,
        new_unified_id: str,
        signature: Optional[str],
    ) -> SignedOperation:
        self._validate_rename(old_unified_id, new_unified_id)
        signature = _signature(signature, "signature")

        encoded = await self._encode(
            OperationKind.UPDATE_IDENTIFIER, old_unified_id, (old_unified_id, new_unified_id)
        )
        return self._serialize(
            encoded,
            {
                "previousUnifiedId": old_unified_id,
                "newUnifiedId": new_unified_id,
                "signature": signature,
            },
        )

    async def sign_update_identifier(
        self,
        old_unified_id: str,
        new_unified_id: str,
        signer: Signer,
    ) -> SignedOperation:
        self._validate_rename(old_unified_id, new_unified_id)
        signer = _require_signer(signer, "signer")

        encoded = await self._encode(
            OperationKind.UPDATE_IDENTIFIER, old_unified_id, (old_unified_id, new_unified_id)
        )
        signature = await signer.sign_digest(encoded.digest)
        return self._serialize(
            encoded,
            {
                "previousUnifiedId": old_unified_id,
                "newUnifiedId": new_unified_id,
                "signature": signature,
            },
        )

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def build(self, request: OperationRequest) -> SignedOperation:
        """Build any ``OperationRequest`` variant, pre-signed or auto-signed."""

        if isinstance(request, RegisterRequest):
            if request.is_presigned:
                return await self.prepare_register(
                    request.unified_id,
                    request.user_address,
                    request.master_signature,
                    request.primary_signature,
                )
            return await self.sign_register(
                request.unified_id,
                request.user_address,
                request.master_signer,
                request.primary_signer,
            )

        if isinstance(request, AddSecondaryRequest):
            if request.is_presigned:
                return await self.prepare_add_secondary(
                    request.unified_id,
                    request.secondary_address,
                    request.primary_signature,
                    request.secondary_signature,
                )
            return await self.sign_add_secondary(
                request.unified_id,
                request.secondary_address,
                request.primary_signer,
                request.secondary_signer,
            )

        if isinstance(request, RemoveSecondaryRequest):
            if request.is_presigned:
                return await self.prepare_remove_secondary(
                    request.unified_id, request.secondary_address, request.signature
                )
            return await self.sign_remove_secondary(
                request.unified_id, request.secondary_address, request.signer
            )

        if isinstance(request, ChangePrimaryRequest):
            if request.is_presigned:
                return await self.prepare_change_primary(
                    request.unified_id,
                    request.current_primary_address,
                    request.new_primary_address,
                    request.current_signature,
                    request.new_signature,
                )
            return await self.sign_change_primary(
                request.unified_id,
                request.new_primary_address,
                request.current_signer,
                request.new_signer,
                request.current_primary_address,
            )

        if isinstance(request, UpdateIdentifierRequest):
            if request.is_presigned:
                return await self.prepare_update_identifier(
                    request.old_unified_id, request.new_unified_id, request.signature
                )
            return await self.sign_update_identifier(
                request.old_unified_id, request.new_unified_id, request.signer
            )

        raise ValidationError(
            f"Unsupported operation request: {type(request).__name__}", field="request"
        )

    # ------------------------------------------------------------------
    # Typed data
    # ------------------------------------------------------------------

    def _typed_encoder(
        self,
        variant: EncodingVariant,
        deadline: int,
        target_chain_id: Optional[int],
        allow_cross_chain: bool,
    ) -> Callable[[OperationKind, Sequence[Any], int], EncodedOperation]:
        def encode(kind: OperationKind, fields: Sequence[Any], nonce: int) -> EncodedOperation:
            return encode_operation(
                kind,
                fields,
                nonce,
                variant=variant,
                deadline=deadline,
                chain_id=self._chain_id,
                verifying_contract=self._reader.mother_address,
                target_chain_id=target_chain_id,
                allow_cross_chain=allow_cross_chain,
            )

        return encode

    def _check_typed(
        self, kind: Any, fields: Sequence[Any], variant: EncodingVariant
    ) -> Tuple[OperationKind, str]:
        try:
            kind = OperationKind(kind)
        except ValueError as exc:
            raise ValidationError(f"Unknown operation kind: {kind!r}", field="kind") from exc
        if variant is EncodingVariant.PACKED:
            raise ValidationError("sign_typed needs a typed variant", field="variant")
        if not fields:
            raise ValidationError("fields are required", field="fields")
        return kind, require_unified_id(fields[0])

    @staticmethod
    def _typed_result(encoded: EncodedOperation, signature: str) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "signature": signature,
            "nonce": encoded.nonce,
            "deadline": encoded.deadline,
            "digest": encoded.digest_hex,
            "typedData": encoded.typed_data,
        }
        if encoded.variant is EncodingVariant.TYPED_ENHANCED:
            result["targetChainId"] = encoded.typed_data["message"]["targetChainId"]
        return result

    async def sign_typed(
        self,
        kind: OperationKind,
        fields: Sequence[Any],
        signer: Signer,
        *,
        variant: EncodingVariant = EncodingVariant.TYPED_ENHANCED,
        target_chain_id: Optional[int] = None,
        allow_cross_chain: bool = False,
    ) -> Dict[str, Any]:
        """
        Produce an EIP-712 signature for ``kind`` against the mother registry domain.

        The nonce is read for the first field (the identifier, or the old
        identifier for renames). Returns the signature with the values it
        commits to.
        """
        variant = EncodingVariant(variant)
        signer = _require_signer(signer, "signer")
        kind, nonce_identifier = self._check_typed(kind, fields, variant)
        deadline = compute_deadline(self._deadline_offset, self._clock())
        encode = self._typed_encoder(variant, deadline, target_chain_id, allow_cross_chain)
        # Rejects malformed fields and chain mismatches before the nonce read
        encode(kind, fields, 0)

        nonce = await self._reader.get_nonce(nonce_identifier)
        encoded = encode(kind, fields, nonce)
        signature = await signer.sign_typed_data(encoded.typed_data)
        return self._typed_result(encoded, signature)

    async def sign_typed_batch(
        self,
        operations: Sequence[Tuple[OperationKind, Sequence[Any]]],
        signer: Signer,
        *,
        variant: EncodingVariant = EncodingVariant.TYPED_ENHANCED,
        target_chain_id: Optional[int] = None,
        allow_cross_chain: bool = False,
    ) -> List[Dict[str, Any]]:
        """
        Sign several ``(kind, fields)`` operations with one signer and one deadline.

        Every operation is validated before any I/O. Each identifier's nonce
        is read once; later operations on the same identifier take the
        following nonces, so the signatures stay valid when submitted in
        order. Results come back in input order, each tagged with ``kind``.
        """
        variant = EncodingVariant(variant)
        signer = _require_signer(signer, "signer")
        if not operations:
            raise ValidationError("operations are required", field="operations")
        deadline = compute_deadline(self._deadline_offset, self._clock())
        encode = self._typed_encoder(variant, deadline, target_chain_id, allow_cross_chain)

        checked: List[Tuple[OperationKind, Sequence[Any], str]] = []
        for index, operation in enumerate(operations):
            try:
                kind, fields = operation
            except (TypeError, ValueError) as exc:
                raise ValidationError(
                    f"operations[{index}] must be a (kind, fields) pair", field="operations"
                ) from exc
            kind, nonce_identifier = self._check_typed(kind, fields, variant)
            encode(kind, fields, 0)
            checked.append((kind, fields, nonce_identifier))

        next_nonce: Dict[str, int] = {}
        results: List[Dict[str, Any]] = []
        for kind, fields, nonce_identifier in checked:
            if nonce_identifier not in next_nonce:
                next_nonce[nonce_identifier] = await self._reader.get_nonce(nonce_identifier)
            nonce = next_nonce[nonce_identifier]
            next_nonce[nonce_identifier] = nonce + 1

            encoded = encode(kind, fields, nonce)
            signature = await signer.sign_typed_data(encoded.typed_data)
            results.append({"kind": kind, **self._typed_result(encoded, signature)})
        logger.debug("signed %d typed operations for %d identifiers", len(results), len(next_nonce))
        return results


__all__ = ["OperationBuilder", "RELAYER_ROUTES"]

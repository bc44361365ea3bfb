"""
Canonical encoding of Unified ID operations.

Operations can be rendered in three variants (``TYPED_ONLY_KINDS`` skip the
packed one):

- ``packed``: ``keccak256(abi.encode(fields) || uint256_be(nonce))``, signed
  as an EIP-191 personal message over the 32-byte digest. This is the form
  the relayer and the on-chain ``verifySignature`` check.
- ``typed_legacy``: EIP-712 message with ``nonce`` and ``deadline``.
- ``typed_enhanced``: EIP-712 message that also binds ``targetChainId``.

The encoder is pure: no I/O, no clock reads unless ``compute_deadline`` is
called without ``now``.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from eth_abi import encode
from eth_account.messages import encode_typed_data
from eth_utils import keccak

from .errors import TypedDataError, ValidationError
from .validation import require_address, require_chain_id, require_uint256, require_utf8

DEFAULT_DEADLINE_OFFSET = 3600

DOMAIN_NAME = "UnifiedID"
DOMAIN_VERSION = "1"

EIP712_DOMAIN_TYPE = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]


class OperationKind(str, Enum):
    """State-changing registry operations.

    ``UPDATE_MASTER`` only exists as typed data; the relayer has no route for it.
    """

    REGISTER = "register"
    ADD_SECONDARY = "add_secondary"
    REMOVE_SECONDARY = "remove_secondary"
    CHANGE_PRIMARY = "change_primary"
    UPDATE_IDENTIFIER = "update_identifier"
    UPDATE_MASTER = "update_master"


class EncodingVariant(str, Enum):
    PACKED = "packed"
    TYPED_LEGACY = "typed_legacy"
    TYPED_ENHANCED = "typed_enhanced"


@dataclass(frozen=True)
class OperationSchema:
    """Field layout of one operation.

    ``fields`` lists ``(name, abi_type)`` pairs in encoding order; the names
    are the EIP-712 member names.
    """

    kind: OperationKind
    typed_name: str
    fields: Tuple[Tuple[str, str], ...]

    @property
    def abi_types(self) -> List[str]:
        return [abi_type for _, abi_type in self.fields]

    @property
    def field_names(self) -> List[str]:
        return [name for name, _ in self.fields]


SCHEMAS: Dict[OperationKind, OperationSchema] = {
    OperationKind.REGISTER: OperationSchema(
        OperationKind.REGISTER,
        "RegisterUnifiedId",
        (("unifiedId", "string"), ("primaryAddress", "address")),
    ),
    OperationKind.CHANGE_PRIMARY: OperationSchema(
        OperationKind.CHANGE_PRIMARY,
        "UpdatePrimaryAddress",
        (("unifiedId", "string"), ("newPrimaryAddress", "address")),
    ),
    OperationKind.ADD_SECONDARY: OperationSchema(
        OperationKind.ADD_SECONDARY,
        "AddSecondaryAddress",
        (("unifiedId", "string"), ("secondaryAddress", "address")),
    ),
    OperationKind.REMOVE_SECONDARY: OperationSchema(
        OperationKind.REMOVE_SECONDARY,
        "RemoveSecondaryAddress",
        (("unifiedId", "string"), ("secondaryAddress", "address")),
    ),
    OperationKind.UPDATE_IDENTIFIER: OperationSchema(
        OperationKind.UPDATE_IDENTIFIER,
        "UpdateUnifiedId",
        (("oldUnifiedId", "string"), ("newUnifiedId", "string")),
    ),
    OperationKind.UPDATE_MASTER: OperationSchema(
        OperationKind.UPDATE_MASTER,
        "UpdateMasterAddress",
        (("unifiedId", "string"), ("newMasterAddress", "address")),
    ),
}

# Kinds with an EIP-712 type but no packed (relayer) form
TYPED_ONLY_KINDS = frozenset({OperationKind.UPDATE_MASTER})


@dataclass(frozen=True)
class EncodedOperation:
    """Result of encoding one operation in one variant."""

    kind: OperationKind
    variant: EncodingVariant
    fields: Tuple[Any, ...]
    nonce: int
    deadline: Optional[int]
    digest: bytes
    preimage: Optional[bytes] = None
    typed_data: Optional[Dict[str, Any]] = None

    @property
    def digest_hex(self) -> str:
        return "0x" + self.digest.hex()

    @property
    def is_typed(self) -> bool:
        return self.variant is not EncodingVariant.PACKED


def get_schema(kind: OperationKind) -> OperationSchema:
    try:
        return SCHEMAS[OperationKind(kind)]
    except (KeyError, ValueError) as exc:
        raise ValidationError(f"Unknown operation kind: {kind!r}", field="kind") from exc


def _normalize_fields(schema: OperationSchema, fields: Sequence[Any]) -> List[Any]:
    if len(fields) != len(schema.fields):
        raise ValidationError(
            f"{schema.typed_name} expects {len(schema.fields)} fields, got {len(fields)}",
            field="fields",
        )
    normalized: List[Any] = []
    for (name, abi_type), value in zip(schema.fields, fields):
        if abi_type == "address":
            normalized.append(require_address(value, name))
        elif not isinstance(value, str) or not value:
            raise ValidationError(f"{name} must be a non-empty string", field=name)
        else:
            normalized.append(require_utf8(value, name))
    return normalized


def encode_identity_fields(kind: OperationKind, fields: Sequence[Any]) -> bytes:
    """ABI-encode the identity tuple of an operation (standard, non-packed encoding)."""

    schema = get_schema(kind)
    return encode(schema.abi_types, _normalize_fields(schema, fields))


def packed_preimage(kind: OperationKind, fields: Sequence[Any], nonce: int) -> bytes:
    """Encoded identity tuple followed by the nonce as a 32-byte big-endian word."""

    schema = get_schema(kind)
    if schema.kind in TYPED_ONLY_KINDS:
        raise ValidationError(f"{schema.typed_name} has no packed encoding", field="kind")
    nonce = require_uint256(nonce, "nonce")
    return encode_identity_fields(kind, fields) + nonce.to_bytes(32, "big")


def packed_digest(kind: OperationKind, fields: Sequence[Any], nonce: int) -> bytes:
    return keccak(packed_preimage(kind, fields, nonce))


def encode_options(nonce: int, deadline: int) -> str:
    """ABI-encode ``(uint256 nonce, uint256 deadline)`` as 0x-hex."""

    nonce = require_uint256(nonce, "nonce")
    deadline = require_uint256(deadline, "deadline")
    return "0x" + encode(["uint256", "uint256"], [nonce, deadline]).hex()


def compute_deadline(offset: int = DEFAULT_DEADLINE_OFFSET, now: Optional[float] = None) -> int:
    """Absolute deadline ``offset`` seconds from ``now`` (defaults to the wall clock)."""

    current = time.time() if now is None else now
    return int(current) + int(offset)


def is_signature_expired(deadline: int, now: Optional[float] = None) -> bool:
    """True once ``now`` (defaults to the wall clock) is past ``deadline``."""

    deadline = require_uint256(deadline, "deadline")
    current = time.time() if now is None else now
    return int(current) > deadline


def build_domain(chain_id: int, verifying_contract: str) -> Dict[str, Any]:
    return {
        "name": DOMAIN_NAME,
        "version": DOMAIN_VERSION,
        "chainId": require_chain_id(chain_id),
        "verifyingContract": require_address(verifying_contract, "verifying_contract"),
    }


def build_typed_data(
    kind: OperationKind,
    fields: Sequence[Any],
    nonce: int,
    deadline: int,
    chain_id: int,
    verifying_contract: str,
    *,
    variant: EncodingVariant = EncodingVariant.TYPED_ENHANCED,
    target_chain_id: Optional[int] = None,
    allow_cross_chain: bool = False,
) -> Dict[str, Any]:
    """Build the full EIP-712 message (``types``, ``primaryType``, ``domain``, ``message``).

    The enhanced variant binds ``targetChainId``; it must equal the domain
    chain id unless ``allow_cross_chain`` is set.
    """
    variant = EncodingVariant(variant)
    if variant is EncodingVariant.PACKED:
        raise TypedDataError("Packed variant has no typed-data form", field="variant")

    schema = get_schema(kind)
    values = _normalize_fields(schema, fields)
    domain = build_domain(chain_id, verifying_contract)
    nonce = require_uint256(nonce, "nonce")
    deadline = require_uint256(deadline, "deadline")

    members = [{"name": name, "type": abi_type} for name, abi_type in schema.fields]
    message: Dict[str, Any] = dict(zip(schema.field_names, values))

    if variant is EncodingVariant.TYPED_ENHANCED:
        target = domain["chainId"] if target_chain_id is None else require_chain_id(
            target_chain_id, "target_chain_id"
        )
        if target != domain["chainId"] and not allow_cross_chain:
            raise TypedDataError(
                f"Target chain ID {target} does not match domain chain ID {domain['chainId']}",
                field="target_chain_id",
            )
        members.append({"name": "targetChainId", "type": "uint256"})
        message["targetChainId"] = target

    members.append({"name": "nonce", "type": "uint256"})
    members.append({"name": "deadline", "type": "uint256"})
    message["nonce"] = nonce
    message["deadline"] = deadline

    return {
        "types": {
            "EIP712Domain": list(EIP712_DOMAIN_TYPE),
            schema.typed_name: members,
        },
        "primaryType": schema.typed_name,
        "domain": domain,
        "message": message,
    }


def typed_data_digest(typed_data: Dict[str, Any]) -> bytes:
    """EIP-712 signing hash: ``keccak256(0x19 || 0x01 || domainSeparator || structHash)``."""

    try:
        signable = encode_typed_data(full_message=typed_data)
    except Exception as exc:
        raise TypedDataError(f"Invalid typed data: {exc}") from exc
    return keccak(b"\x19" + signable.version + signable.header + signable.body)


def verify_signature_chain_compatibility(signature_data: Dict[str, Any], expected_chain_id: int) -> bool:
    """Whether an enhanced typed signature targets ``expected_chain_id``.

    Accepts either a signing result carrying ``targetChainId`` or a full
    typed-data message. Legacy data, which binds no target chain, is never
    compatible.
    """
    expected = require_chain_id(expected_chain_id, "expected_chain_id")
    target = signature_data.get("targetChainId")
    if target is None:
        target = (signature_data.get("message") or {}).get("targetChainId")
    if target is None:
        return False
    try:
        return int(target) == expected
    except (TypeError, ValueError):
        return False


def encode_operation(
    kind: OperationKind,
    fields: Sequence[Any],
    nonce: int,
    *,
    variant: EncodingVariant = EncodingVariant.PACKED,
    deadline: Optional[int] = None,
    chain_id: Optional[int] = None,
    verifying_contract: Optional[str] = None,
    target_chain_id: Optional[int] = None,
    allow_cross_chain: bool = False,
) -> EncodedOperation:
    """Encode ``kind`` in the requested variant.

    Typed variants need ``deadline``, ``chain_id`` and ``verifying_contract``;
    the packed variant only carries ``deadline`` along for the options blob.
    """
    kind = OperationKind(kind)
    variant = EncodingVariant(variant)
    normalized = tuple(_normalize_fields(get_schema(kind), fields))

    if variant is EncodingVariant.PACKED:
        preimage = packed_preimage(kind, normalized, nonce)
        return EncodedOperation(
            kind=kind,
            variant=variant,
            fields=normalized,
            nonce=int(nonce),
            deadline=deadline,
            digest=keccak(preimage),
            preimage=preimage,
        )

    if deadline is None:
        raise ValidationError("deadline is required for typed data", field="deadline")
    if chain_id is None:
        raise ValidationError("chain_id is required for typed data", field="chain_id")
    if not verifying_contract:
        raise ValidationError(
            "verifying_contract is required for typed data", field="verifying_contract"
        )

    typed = build_typed_data(
        kind,
        normalized,
        nonce,
        deadline,
        chain_id,
        verifying_contract,
        variant=variant,
        target_chain_id=target_chain_id,
        allow_cross_chain=allow_cross_chain,
    )
    return EncodedOperation(
        kind=kind,
        variant=variant,
        fields=normalized,
        nonce=int(nonce),
        deadline=int(deadline),
        digest=typed_data_digest(typed),
        typed_data=typed,
    )


__all__ = [
    "DEFAULT_DEADLINE_OFFSET",
    "DOMAIN_NAME",
    "DOMAIN_VERSION",
    "OperationKind",
    "EncodingVariant",
    "OperationSchema",
    "SCHEMAS",
    "TYPED_ONLY_KINDS",
    "EncodedOperation",
    "get_schema",
    "encode_identity_fields",
    "packed_preimage",
    "packed_digest",
    "encode_options",
    "compute_deadline",
    "is_signature_expired",
    "build_domain",
    "build_typed_data",
    "typed_data_digest",
    "verify_signature_chain_compatibility",
    "encode_operation",
]

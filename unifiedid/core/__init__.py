"""
Unified ID core

Building blocks behind the SDK facade:
- encoding: canonical packed and EIP-712 encodings of the registry operations
- signing: KeyMaterialSigner / ExternalSigner
- reader: ChainReader over the mother, child and storage-util registries
- builder: OperationBuilder producing relayer-ready payloads

Usage:
    from unifiedid.core import OperationKind, packed_digest

    digest = packed_digest(OperationKind.REGISTER, ("alice_01", address), nonce=0)
"""

from .encoding import (
    EncodedOperation,
    EncodingVariant,
    OperationKind,
    build_typed_data,
    compute_deadline,
    encode_identity_fields,
    encode_operation,
    encode_options,
    is_signature_expired,
    packed_digest,
    packed_preimage,
    verify_signature_chain_compatibility,
)
from .errors import (
    ApiError,
    ConfigurationError,
    ContractCallError,
    ErrorCategory,
    ErrorContext,
    NetworkError,
    SignatureError,
    TypedDataError,
    UnifiedIdError,
    ValidationError,
    classify_error,
)
from .signing import ExternalSigner, KeyMaterialSigner, Signer
from .reader import ChainReader
from .builder import OperationBuilder

__all__ = [
    "EncodedOperation",
    "EncodingVariant",
    "OperationKind",
    "build_typed_data",
    "compute_deadline",
    "encode_identity_fields",
    "encode_operation",
    "encode_options",
    "is_signature_expired",
    "packed_digest",
    "packed_preimage",
    "verify_signature_chain_compatibility",
    "ApiError",
    "ConfigurationError",
    "ContractCallError",
    "ErrorCategory",
    "ErrorContext",
    "NetworkError",
    "SignatureError",
    "TypedDataError",
    "UnifiedIdError",
    "ValidationError",
    "classify_error",
    "ExternalSigner",
    "KeyMaterialSigner",
    "Signer",
    "ChainReader",
    "OperationBuilder",
]

"""
Unified ID SDK

Register and manage Unified IDs: human-readable identifiers bound to a master
address, a per-chain primary address and per-chain secondary addresses.

Usage:
    from unifiedid import KeyMaterialSigner, SDKConfig, UnifiedIdSDK

    config = SDKConfig(base_url="https://relayer.example", auth_token="...")
    signer = KeyMaterialSigner(private_key)

    async with UnifiedIdSDK(config) as sdk:
        result = await sdk.register_unified_id("alice_01", signer.address, master_signer=signer)
"""

from .config import ContractAddresses, EnvSettings, SDKConfig, validate_config
from .core.encoding import EncodingVariant, OperationKind
from .core.errors import (
    ApiError,
    ConfigurationError,
    ContractCallError,
    NetworkError,
    SignatureError,
    TypedDataError,
    UnifiedIdError,
    ValidationError,
)
from .core.models import (
    AddressRole,
    AddSecondaryRequest,
    ChainData,
    ChangePrimaryRequest,
    IdentifierStatus,
    OperationResult,
    RegisterRequest,
    RelayerResponse,
    RemoveSecondaryRequest,
    SignedOperation,
    UnifiedIdentifier,
    UpdateIdentifierRequest,
)
from .core.observers import LoggingObserver, OperationEvent, OperationObserver
from .core.signing import ExternalSigner, KeyMaterialSigner, Signer
from .sdk import UnifiedIdSDK

__version__ = "0.1.0"

__all__ = [
    "ContractAddresses",
    "EnvSettings",
    "SDKConfig",
    "validate_config",
    "EncodingVariant",
    "OperationKind",
    "ApiError",
    "ConfigurationError",
    "ContractCallError",
    "NetworkError",
    "SignatureError",
    "TypedDataError",
    "UnifiedIdError",
    "ValidationError",
    "AddressRole",
    "AddSecondaryRequest",
    "ChainData",
    "ChangePrimaryRequest",
    "IdentifierStatus",
    "OperationResult",
    "RegisterRequest",
    "RelayerResponse",
    "RemoveSecondaryRequest",
    "SignedOperation",
    "UnifiedIdentifier",
    "UpdateIdentifierRequest",
    "LoggingObserver",
    "OperationEvent",
    "OperationObserver",
    "ExternalSigner",
    "KeyMaterialSigner",
    "Signer",
    "UnifiedIdSDK",
]

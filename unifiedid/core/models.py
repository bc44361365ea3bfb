"""
Unified ID data models and types.
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Tuple

from .encoding import OperationKind
from .errors import ApiError
from .signing import Signer
from .validation import ZERO_ADDRESS, is_zero_address


# ---------------------------------------------------------------------------
# Read-side models
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class IdentifierStatus:
    """Mother registry view of an identifier."""
    is_valid: bool
    master_address: str = ZERO_ADDRESS


@dataclass(frozen=True)
class ChainData:
    """Primary and secondary bindings of an identifier on one chain."""
    primary: str = ZERO_ADDRESS
    secondaries: Tuple[str, ...] = ()

    @property
    def is_valid(self) -> bool:
        return not is_zero_address(self.primary)


@dataclass(frozen=True)
class AddressRole:
    """Result of resolving an address against the child registry.

    Both flags come straight from the registry; nothing here assumes they
    are mutually exclusive.
    """
    unified_id: str = ""
    is_primary: bool = False
    is_secondary: bool = False

    @property
    def is_registered(self) -> bool:
        return bool(self.unified_id)

    @classmethod
    def empty(cls) -> "AddressRole":
        return cls()


@dataclass
class UnifiedIdentifier:
    """Aggregated profile of one identifier."""
    unified_id: str
    master_address: str = ZERO_ADDRESS
    primary_address: str = ZERO_ADDRESS
    secondary_addresses: List[str] = field(default_factory=list)
    nonce: int = 0

    @property
    def is_registered(self) -> bool:
        return not is_zero_address(self.master_address)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "unifiedId": self.unified_id,
            "masterAddress": self.master_address,
            "primaryAddress": self.primary_address,
            "secondaryAddresses": list(self.secondary_addresses),
            "nonce": self.nonce,
        }


# ---------------------------------------------------------------------------
# Operation requests
#
# A request carries either the finished signatures (pre-signed) or the
# signers that should produce them (auto-signed).
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class OperationRequest:
    kind: ClassVar[OperationKind]

    @property
    def is_presigned(self) -> bool:
        raise NotImplementedError


@dataclass(frozen=True)
class RegisterRequest(OperationRequest):
    kind: ClassVar[OperationKind] = OperationKind.REGISTER

    unified_id: str
    user_address: str
    master_signature: Optional[str] = None
    primary_signature: Optional[str] = None
    master_signer: Optional[Signer] = None
    primary_signer: Optional[Signer] = None

    @property
    def is_presigned(self) -> bool:
        return self.master_signer is None


@dataclass(frozen=True)
class AddSecondaryRequest(OperationRequest):
    kind: ClassVar[OperationKind] = OperationKind.ADD_SECONDARY

    unified_id: str
    secondary_address: str
    primary_signature: Optional[str] = None
    secondary_signature: Optional[str] = None
    primary_signer: Optional[Signer] = None
    secondary_signer: Optional[Signer] = None

    @property
    def is_presigned(self) -> bool:
        return self.primary_signer is None and self.secondary_signer is None


@dataclass(frozen=True)
class RemoveSecondaryRequest(OperationRequest):
    kind: ClassVar[OperationKind] = OperationKind.REMOVE_SECONDARY

    unified_id: str
    secondary_address: str
    signature: Optional[str] = None
    signer: Optional[Signer] = None

    @property
    def is_presigned(self) -> bool:
        return self.signer is None


@dataclass(frozen=True)
class ChangePrimaryRequest(OperationRequest):
    kind: ClassVar[OperationKind] = OperationKind.CHANGE_PRIMARY

    unified_id: str
    new_primary_address: str
    current_primary_address: Optional[str] = None
    current_signature: Optional[str] = None
    new_signature: Optional[str] = None
    current_signer: Optional[Signer] = None
    new_signer: Optional[Signer] = None

    @property
    def is_presigned(self) -> bool:
        return self.current_signer is None and self.new_signer is None


@dataclass(frozen=True)
class UpdateIdentifierRequest(OperationRequest):
    kind: ClassVar[OperationKind] = OperationKind.UPDATE_IDENTIFIER

    old_unified_id: str
    new_unified_id: str
    signature: Optional[str] = None
    signer: Optional[Signer] = None

    @property
    def is_presigned(self) -> bool:
        return self.signer is None


# ---------------------------------------------------------------------------
# Build / submit results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SignedOperation:
    """A payload ready to POST to the relayer."""
    kind: OperationKind
    action: str
    endpoint: str
    payload: Dict[str, Any]
    nonce: int
    deadline: int
    options: str
    digest: str

    def to_dict(self) -> Dict[str, Any]:
        return {"action": self.action, **self.payload}


@dataclass
class RelayerResponse:
    """Normalized relayer reply."""
    success: bool
    data: Any = None
    error: Any = None
    details: Dict[str, Any] = field(default_factory=dict)
    status_code: Optional[int] = None

    def raise_for_error(self) -> "RelayerResponse":
        if not self.success:
            raise ApiError(
                f"Relayer request failed with status {self.status_code}",
                status_code=self.status_code,
                body=self.error,
                path=self.details.get("path"),
            )
        return self

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"success": self.success}
        if self.success:
            data["data"] = self.data
        else:
            data["error"] = self.error
            data["details"] = self.details
        return data


@dataclass
class OperationResult:
    """Outcome of a high-level write."""
    operation_id: str
    kind: OperationKind
    success: bool
    data: Any = None
    error: Any = None
    details: Dict[str, Any] = field(default_factory=dict)
    status_code: Optional[int] = None
    operation: Optional[SignedOperation] = None

    @classmethod
    def from_response(
        cls,
        operation_id: str,
        operation: SignedOperation,
        response: RelayerResponse,
    ) -> "OperationResult":
        return cls(
            operation_id=operation_id,
            kind=operation.kind,
            success=response.success,
            data=response.data,
            error=response.error,
            details=dict(response.details),
            status_code=response.status_code,
            operation=operation,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "operationId": self.operation_id,
            "kind": self.kind.value,
            "success": self.success,
        }
        if self.success:
            data["data"] = self.data
        else:
            data["error"] = self.error
            data["details"] = self.details
        return data


__all__ = [
    "IdentifierStatus",
    "ChainData",
    "AddressRole",
    "UnifiedIdentifier",
    "OperationRequest",
    "RegisterRequest",
    "AddSecondaryRequest",
    "RemoveSecondaryRequest",
    "ChangePrimaryRequest",
    "UpdateIdentifierRequest",
    "SignedOperation",
    "RelayerResponse",
    "OperationResult",
]

"""
Error Classification

Defines the error types raised by the SDK.
Validation failures are programmer errors and surface immediately; network,
contract, relayer and signature failures carry enough context for callers to
branch on the failure kind.
"""

from dataclasses import dataclass, field as dc_field
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(str, Enum):
    """Categories of SDK errors."""

    VALIDATION = "validation"     # Malformed or missing input
    CONFIGURATION = "configuration"  # Invalid SDK configuration
    NETWORK = "network"           # RPC / HTTP transport failure
    CONTRACT = "contract"         # Contract reverted or returned malformed data
    API = "api"                   # Relayer answered with a non-2xx status
    SIGNATURE = "signature"       # Signer rejected or produced an unusable signature
    UNKNOWN = "unknown"           # Unclassified error


@dataclass
class ErrorContext:
    """Additional context about an error."""

    category: ErrorCategory = ErrorCategory.UNKNOWN
    operation: Optional[str] = None
    field: Optional[str] = None
    status_code: Optional[int] = None
    chain_id: Optional[int] = None
    details: Dict[str, Any] = dc_field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"category": self.category.value}
        if self.operation:
            data["operation"] = self.operation
        if self.field:
            data["field"] = self.field
        if self.status_code is not None:
            data["status_code"] = self.status_code
        if self.chain_id is not None:
            data["chain_id"] = self.chain_id
        if self.details:
            data.update(self.details)
        return data


class UnifiedIdError(Exception):
    """Base class for all SDK errors."""

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(self, message: str, context: Optional[ErrorContext] = None):
        super().__init__(message)
        self.message = message
        self.context = context or ErrorContext(category=self.category)


class ValidationError(UnifiedIdError):
    """Input parameters are missing or malformed. Raised before any I/O."""

    category = ErrorCategory.VALIDATION

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        errors: Optional[list] = None,
    ):
        super().__init__(
            message,
            context=ErrorContext(
                category=self.category,
                field=field,
                details={"errors": list(errors)} if errors else {},
            ),
        )
        self.field = field
        self.errors = list(errors) if errors else [message]


class ConfigurationError(ValidationError):
    """SDK configuration rejected at construction time."""

    category = ErrorCategory.CONFIGURATION

    def __init__(self, errors: list):
        message = "Invalid SDK configuration: " + "; ".join(errors)
        super().__init__(message, errors=errors)


class NetworkError(UnifiedIdError):
    """Transport failure: no response was received from the RPC node or relayer."""

    category = ErrorCategory.NETWORK

    def __init__(
        self,
        message: str = "Network error",
        operation: Optional[str] = None,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(
            message,
            context=ErrorContext(
                category=self.category,
                operation=operation,
                status_code=status_code,
                details={"url": url} if url else {},
            ),
        )
        self.operation = operation
        self.url = url
        self.status_code = status_code


class ContractCallError(UnifiedIdError):
    """The call reached the node but the contract reverted or returned malformed data."""

    category = ErrorCategory.CONTRACT

    def __init__(
        self,
        message: str = "Contract call failed",
        operation: Optional[str] = None,
        contract_address: Optional[str] = None,
        reverted: bool = False,
        error_data: Optional[Any] = None,
    ):
        super().__init__(
            f"{operation}: {message}" if operation else message,
            context=ErrorContext(
                category=self.category,
                operation=operation,
                details={
                    "contract": contract_address,
                    "reverted": reverted,
                    "error_data": error_data,
                },
            ),
        )
        self.reason = message
        self.operation = operation
        self.contract_address = contract_address
        self.reverted = reverted
        self.error_data = error_data


class ApiError(UnifiedIdError):
    """Relayer responded with a non-2xx status."""

    category = ErrorCategory.API

    def __init__(
        self,
        message: str = "Relayer request failed",
        status_code: Optional[int] = None,
        body: Optional[Any] = None,
        path: Optional[str] = None,
    ):
        super().__init__(
            message,
            context=ErrorContext(
                category=self.category,
                operation=path,
                status_code=status_code,
                details={"body": body},
            ),
        )
        self.status_code = status_code
        self.body = body
        self.path = path


class SignatureError(UnifiedIdError):
    """Signature generation failed: signer rejected, key malformed or result unusable."""

    category = ErrorCategory.SIGNATURE

    def __init__(self, message: str = "Signature generation failed", signer: Optional[str] = None):
        super().__init__(
            message,
            context=ErrorContext(
                category=self.category,
                details={"signer": signer} if signer else {},
            ),
        )
        self.signer = signer


class TypedDataError(ValidationError, SignatureError):
    """EIP-712 message could not be constructed (e.g. target chain mismatch)."""

    category = ErrorCategory.SIGNATURE

    def __init__(self, message: str, field: Optional[str] = None):
        UnifiedIdError.__init__(
            self,
            message,
            context=ErrorContext(category=self.category, field=field),
        )
        self.field = field
        self.errors = [message]
        self.signer = None


def classify_error(error: Exception) -> ErrorContext:
    """
    Classify an exception and return its error context.

    SDK errors carry their own context; anything else is classified from
    its type and message.
    """
    if isinstance(error, UnifiedIdError):
        return error.context

    message = str(error).lower()

    network_patterns = [
        "connection",
        "network",
        "unreachable",
        "refused",
        "timeout",
        "timed out",
        "dns",
        "ssl",
    ]
    if any(p in message for p in network_patterns):
        return ErrorContext(category=ErrorCategory.NETWORK, details={"error": str(error)})

    revert_patterns = ["revert", "execution reverted", "invalid opcode"]
    if any(p in message for p in revert_patterns):
        return ErrorContext(category=ErrorCategory.CONTRACT, details={"error": str(error)})

    signature_patterns = ["signature", "user rejected", "user denied"]
    if any(p in message for p in signature_patterns):
        return ErrorContext(category=ErrorCategory.SIGNATURE, details={"error": str(error)})

    return ErrorContext(category=ErrorCategory.UNKNOWN, details={"error": str(error)})


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "UnifiedIdError",
    "ValidationError",
    "ConfigurationError",
    "NetworkError",
    "ContractCallError",
    "ApiError",
    "SignatureError",
    "TypedDataError",
    "classify_error",
]

"""Input validation helpers shared by the encoder, reader and builder."""

from __future__ import annotations

import re
from typing import Any, Optional

from eth_utils import to_checksum_address

from .errors import ValidationError

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

UNIFIED_ID_MIN_LENGTH = 3
UNIFIED_ID_MAX_LENGTH = 20

_UNIFIED_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")
_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
_HEX_RE = re.compile(r"^0x([0-9a-fA-F]{2})*$")

SIGNATURE_LENGTH = 65
MAX_UINT256 = 2**256 - 1


def is_valid_unified_id(value: Any) -> bool:
    """Return ``True`` for 3-20 characters drawn from letters, digits, ``_`` and ``-``."""

    if not isinstance(value, str):
        return False
    if not UNIFIED_ID_MIN_LENGTH <= len(value) <= UNIFIED_ID_MAX_LENGTH:
        return False
    return bool(_UNIFIED_ID_RE.match(value))


def is_valid_address(value: Any) -> bool:
    """Syntactic 20-byte hex check. Checksum case is not enforced."""

    return isinstance(value, str) and bool(_ADDRESS_RE.match(value))


def is_zero_address(value: Optional[str]) -> bool:
    return not value or value.lower() == ZERO_ADDRESS


def same_address(left: str, right: str) -> bool:
    return left.lower() == right.lower()


def normalize_address(value: str) -> str:
    return to_checksum_address(value)


def require_utf8(value: str, field: str) -> str:
    """Reject strings that cannot be UTF-8 encoded (lone surrogates)."""
    try:
        value.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise ValidationError(f"{field} is not valid UTF-8", field=field) from exc
    return value


def require_unified_id(value: Any, field: str = "unified_id", *, strict: bool = True) -> str:
    """Validate an identifier.

    ``strict`` applies the full format rules; lookups only require a
    non-empty string so identifiers registered under older rules stay
    resolvable.
    """
    if value is None or value == "":
        raise ValidationError(f"{field} is required", field=field)
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", field=field)
    require_utf8(value, field)
    if strict and not is_valid_unified_id(value):
        raise ValidationError(
            f"Invalid {field} format: expected {UNIFIED_ID_MIN_LENGTH}-{UNIFIED_ID_MAX_LENGTH} "
            "characters of letters, digits, underscore or hyphen",
            field=field,
        )
    return value


def require_address(value: Any, field: str = "address") -> str:
    """Validate an address and return its checksummed form."""

    if value is None or value == "":
        raise ValidationError(f"{field} is required", field=field)
    if not is_valid_address(value):
        raise ValidationError(f"Invalid {field} format: {value!r}", field=field)
    return normalize_address(value)


def require_chain_id(value: Any, field: str = "chain_id") -> int:
    if value is None or value == "":
        raise ValidationError(f"{field} is required", field=field)
    try:
        chain_id = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{field} must be an integer", field=field) from exc
    if isinstance(value, bool) or chain_id <= 0:
        raise ValidationError(f"{field} must be a positive integer", field=field)
    return chain_id


def require_uint256(value: Any, field: str) -> int:
    if value is None or value == "":
        raise ValidationError(f"{field} is required", field=field)
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", field=field)
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{field} must be an integer", field=field) from exc
    if not 0 <= number <= MAX_UINT256:
        raise ValidationError(f"{field} is out of uint256 range", field=field)
    return number


def require_hex_bytes(value: Any, field: str) -> bytes:
    """Accept raw bytes or an even-length 0x-hex string."""

    if value is None or value == "" or value == b"":
        raise ValidationError(f"{field} is required", field=field)
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str) and _HEX_RE.match(value):
        return bytes.fromhex(value[2:])
    raise ValidationError(f"{field} must be bytes or a 0x-prefixed hex string", field=field)


def require_signature(value: Any, field: str = "signature") -> str:
    """Validate the shape of a 65-byte ECDSA signature and return it as 0x-hex."""

    if value is None or value == "" or value == b"":
        raise ValidationError(f"{field} is required", field=field)
    raw = require_hex_bytes(value, field)
    if len(raw) != SIGNATURE_LENGTH:
        raise ValidationError(
            f"{field} must be {SIGNATURE_LENGTH} bytes, got {len(raw)}",
            field=field,
        )
    return "0x" + raw.hex()


__all__ = [
    "ZERO_ADDRESS",
    "UNIFIED_ID_MIN_LENGTH",
    "UNIFIED_ID_MAX_LENGTH",
    "SIGNATURE_LENGTH",
    "MAX_UINT256",
    "is_valid_unified_id",
    "is_valid_address",
    "is_zero_address",
    "same_address",
    "normalize_address",
    "require_unified_id",
    "require_address",
    "require_chain_id",
    "require_uint256",
    "require_hex_bytes",
    "require_signature",
]

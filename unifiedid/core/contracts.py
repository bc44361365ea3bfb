"""
ABI fragments for the three registries.

Only the read surface the SDK consumes is described. Calls are encoded by
hand with eth_abi rather than through a full web3 contract object.
"""

from dataclasses import dataclass
from typing import Any, Dict, Tuple

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import keccak

from .errors import ContractCallError


@dataclass(frozen=True)
class ContractFunction:
    """A single view function: name, input types and output types."""

    name: str
    inputs: Tuple[str, ...] = ()
    outputs: Tuple[str, ...] = ()

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(self.inputs)})"

    @property
    def selector(self) -> bytes:
        return keccak(text=self.signature)[:4]

    def encode_call(self, *args: Any) -> str:
        """Return 0x-hex calldata: selector followed by ABI-encoded arguments."""

        if len(args) != len(self.inputs):
            raise ValueError(
                f"{self.signature} takes {len(self.inputs)} arguments, got {len(args)}"
            )
        return "0x" + (self.selector + encode(list(self.inputs), list(args))).hex()

    def decode_output(self, data: bytes, contract_address: str = "") -> Tuple[Any, ...]:
        if not data:
            raise ContractCallError(
                "empty return data (is the contract deployed at this address?)",
                operation=self.name,
                contract_address=contract_address,
            )
        try:
            return tuple(decode(list(self.outputs), data))
        except (DecodingError, ValueError, TypeError) as exc:
            raise ContractCallError(
                f"malformed return data: {exc}",
                operation=self.name,
                contract_address=contract_address,
            ) from exc


MOTHER_FUNCTIONS: Dict[str, ContractFunction] = {
    "getMasterAddress": ContractFunction("getMasterAddress", ("string",), ("address",)),
    "nonces": ContractFunction("nonces", ("string",), ("uint256",)),
    "getNonce": ContractFunction("getNonce", ("string",), ("uint256",)),
    "getChainData": ContractFunction(
        "getChainData", ("string", "uint256"), ("address", "address[]")
    ),
    "resolveAddressToUnifiedId": ContractFunction(
        "resolveAddressToUnifiedId", ("address", "uint256"), ("string",)
    ),
}

CHILD_FUNCTIONS: Dict[str, ContractFunction] = {
    "getPrimaryAddress": ContractFunction("getPrimaryAddress", ("string",), ("address",)),
    "getSecondaryAddresses": ContractFunction(
        "getSecondaryAddresses", ("string",), ("address[]",)
    ),
    "resolveAddressToUnifiedId": ContractFunction(
        "resolveAddressToUnifiedId", ("address",), ("string",)
    ),
    "resolveSecondaryAddressToUnifiedId": ContractFunction(
        "resolveSecondaryAddressToUnifiedId", ("address",), ("string",)
    ),
    "resolveAllAddresses": ContractFunction(
        "resolveAllAddresses", ("string",), ("address", "address[]")
    ),
    "resolveAnyAddressToUnifiedId": ContractFunction(
        "resolveAnyAddressToUnifiedId", ("address",), ("string", "bool", "bool")
    ),
}

STORAGE_UTIL_FUNCTIONS: Dict[str, ContractFunction] = {
    "getRequiredTokenAmount": ContractFunction(
        "getRequiredTokenAmount", ("address", "uint256"), ("uint256",)
    ),
    "verifySignature": ContractFunction(
        "verifySignature", ("bytes", "address", "bytes"), ("bool",)
    ),
    "isUnifiedIdValid": ContractFunction("isUnifiedIdValid", ("string",), ("bool",)),
}

REGISTRIES: Dict[str, Dict[str, ContractFunction]] = {
    "mother": MOTHER_FUNCTIONS,
    "child": CHILD_FUNCTIONS,
    "storage_util": STORAGE_UTIL_FUNCTIONS,
}


__all__ = [
    "ContractFunction",
    "MOTHER_FUNCTIONS",
    "CHILD_FUNCTIONS",
    "STORAGE_UTIL_FUNCTIONS",
    "REGISTRIES",
]

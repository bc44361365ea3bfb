"""
Read-only queries against the mother, child and storage-util registries.

"Not found" is never an error: unregistered identifiers and addresses come
back as the zero address, an empty string, an empty list or ``False``.
Malformed input raises ``ValidationError`` before any request is made;
transport and contract failures propagate.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, List, Optional, Tuple, Union

from .contracts import REGISTRIES
from .errors import ConfigurationError, ContractCallError, ValidationError
from .models import AddressRole, ChainData, IdentifierStatus, UnifiedIdentifier
from .validation import (
    ZERO_ADDRESS,
    is_zero_address,
    normalize_address,
    require_address,
    require_chain_id,
    require_hex_bytes,
    require_unified_id,
    same_address,
)
from ..providers.rpc import JsonRpcProvider, RpcConfig

if TYPE_CHECKING:
    from ..config import SDKConfig

logger = logging.getLogger(__name__)


class ChainReader:
    """
    Side-effect free view of the Unified ID registries on one chain.

    Usage:
        reader = ChainReader(rpc, mother_address="0x...", child_address="0x...")
        status = await reader.identifier_exists_on_mother("alice_01")
        nonce = await reader.get_nonce("alice_01")
    """

    def __init__(
        self,
        rpc: JsonRpcProvider,
        mother_address: str,
        child_address: Optional[str] = None,
        storage_util_address: Optional[str] = None,
        chain_id: Optional[int] = None,
    ) -> None:
        self._rpc = rpc
        self._addresses = {
            "mother": require_address(mother_address, "mother_address"),
            "child": require_address(child_address, "child_address") if child_address else None,
            "storage_util": (
                require_address(storage_util_address, "storage_util_address")
                if storage_util_address
                else None
            ),
        }
        self._chain_id = require_chain_id(chain_id) if chain_id is not None else None

    @classmethod
    def from_config(
        cls,
        config: "SDKConfig",
        rpc: Optional[JsonRpcProvider] = None,
    ) -> "ChainReader":
        """Build a reader from an ``SDKConfig``, resolving registry addresses for its chain."""

        addresses = config.resolved_contract_addresses()
        rpc_url = config.resolved_rpc_url()
        if not addresses.get("mother"):
            raise ConfigurationError(
                [f"mother registry address is not configured for chain {config.chain_id}"]
            )
        if rpc is None:
            if not rpc_url:
                raise ConfigurationError([f"no RPC URL configured for chain {config.chain_id}"])
            rpc = JsonRpcProvider(RpcConfig(rpc_url=rpc_url, timeout_s=config.timeout_seconds))
        return cls(
            rpc,
            mother_address=addresses["mother"],
            child_address=addresses.get("child"),
            storage_util_address=addresses.get("storage_util"),
            chain_id=config.chain_id,
        )

    @property
    def chain_id(self) -> Optional[int]:
        return self._chain_id

    @property
    def mother_address(self) -> str:
        return self._addresses["mother"]

    @property
    def rpc(self) -> JsonRpcProvider:
        return self._rpc

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _registry_address(self, registry: str) -> str:
        address = self._addresses.get(registry)
        if not address:
            raise ConfigurationError(
                [f"{registry} registry address is not configured for chain {self._chain_id}"]
            )
        return address

    def _chain(self, chain_id: Optional[int]) -> int:
        if chain_id is None:
            if self._chain_id is None:
                raise ValidationError("chain_id is required", field="chain_id")
            return self._chain_id
        return require_chain_id(chain_id)

    async def _call(self, registry: str, function: str, *args: Any) -> Tuple[Any, ...]:
        address = self._registry_address(registry)
        fn = REGISTRIES[registry][function]
        logger.debug("eth_call %s.%s", registry, fn.signature)
        try:
            raw = await self._rpc.eth_call(address, fn.encode_call(*args))
        except ContractCallError as exc:
            raise ContractCallError(
                exc.reason,
                operation=fn.name,
                contract_address=address,
                reverted=exc.reverted,
                error_data=exc.error_data,
            ) from exc
        return fn.decode_output(raw, address)

    # ------------------------------------------------------------------
    # Mother registry
    # ------------------------------------------------------------------

    async def get_master_wallet(self, unified_id: str) -> str:
        """Master address of ``unified_id``; the zero address when unregistered."""

        unified_id = require_unified_id(unified_id, strict=False)
        (master,) = await self._call("mother", "getMasterAddress", unified_id)
        return normalize_address(master)

    async def identifier_exists_on_mother(self, unified_id: str) -> IdentifierStatus:
        master = await self.get_master_wallet(unified_id)
        return IdentifierStatus(is_valid=not is_zero_address(master), master_address=master)

    async def is_identifier_registered(self, unified_id: str) -> bool:
        return not is_zero_address(await self.get_master_wallet(unified_id))

    async def get_nonce(self, unified_id: str) -> int:
        """
        Current nonce of ``unified_id``.

        Older deployments expose ``getNonce`` instead of ``nonces``; the
        fallback is only tried when the contract call itself fails.
        Transport errors propagate immediately.
        """
        unified_id = require_unified_id(unified_id, strict=False)
        try:
            (nonce,) = await self._call("mother", "nonces", unified_id)
            return int(nonce)
        except ContractCallError as primary_error:
            logger.debug("nonces(%s) failed, trying getNonce: %s", unified_id, primary_error)
            try:
                (nonce,) = await self._call("mother", "getNonce", unified_id)
                return int(nonce)
            except ContractCallError as fallback_error:
                raise ContractCallError(
                    f"nonces: {primary_error.reason}; getNonce: {fallback_error.reason}",
                    operation="getNonce",
                    contract_address=self.mother_address,
                    reverted=primary_error.reverted and fallback_error.reverted,
                ) from fallback_error

    async def validate_chain_data(
        self, unified_id: str, chain_id: Optional[int] = None
    ) -> ChainData:
        unified_id = require_unified_id(unified_id, strict=False)
        chain = self._chain(chain_id)
        primary, secondaries = await self._call("mother", "getChainData", unified_id, chain)
        return ChainData(
            primary=normalize_address(primary),
            secondaries=tuple(normalize_address(a) for a in secondaries),
        )

    async def is_secondary_already_bound_on_mother(
        self,
        unified_id: str,
        chain_id: Optional[int],
        address: str,
    ) -> bool:
        address = require_address(address)
        data = await self.validate_chain_data(unified_id, chain_id)
        return any(same_address(address, bound) for bound in data.secondaries)

    async def get_identifier_by_primary_address(
        self, address: str, chain_id: Optional[int] = None
    ) -> str:
        """Identifier whose primary on ``chain_id`` is ``address``; ``""`` when none."""

        address = require_address(address)
        chain = self._chain(chain_id)
        (unified_id,) = await self._call("mother", "resolveAddressToUnifiedId", address, chain)
        return unified_id

    async def is_primary_already_in_use_on_mother(
        self, chain_id: Optional[int], address: str
    ) -> bool:
        return bool(await self.get_identifier_by_primary_address(address, chain_id))

    # ------------------------------------------------------------------
    # Child registry
    # ------------------------------------------------------------------

    async def _resolve_all_addresses(self, unified_id: str) -> Tuple[str, List[str]]:
        unified_id = require_unified_id(unified_id, strict=False)
        primary, secondaries = await self._call("child", "resolveAllAddresses", unified_id)
        return normalize_address(primary), [normalize_address(a) for a in secondaries]

    async def identifier_exists_on_child(self, unified_id: str) -> bool:
        primary, secondaries = await self._resolve_all_addresses(unified_id)
        return not is_zero_address(primary) or len(secondaries) > 0

    async def address_present_on_child(self, address: str) -> bool:
        address = require_address(address)
        (unified_id,) = await self._call("child", "resolveAddressToUnifiedId", address)
        return unified_id != ""

    async def address_in_use_for_identifier(self, unified_id: str, address: str) -> bool:
        """Whether ``address`` is one of ``unified_id``'s secondaries on this chain."""

        address = require_address(address)
        _, secondaries = await self._resolve_all_addresses(unified_id)
        return any(same_address(address, bound) for bound in secondaries)

    async def resolve_address_role(self, address: str) -> AddressRole:
        """
        Resolve ``address`` to its identifier and role.

        A revert (the registry's way of saying "unknown address") yields the
        empty role; transport errors and malformed responses still raise.
        """
        address = require_address(address)
        try:
            unified_id, is_primary, is_secondary = await self._call(
                "child", "resolveAnyAddressToUnifiedId", address
            )
        except ContractCallError as exc:
            if not exc.reverted:
                raise
            logger.debug("resolveAnyAddressToUnifiedId(%s) reverted: %s", address, exc.reason)
            return AddressRole.empty()
        return AddressRole(
            unified_id=unified_id,
            is_primary=bool(is_primary),
            is_secondary=bool(is_secondary),
        )

    async def is_primary_address_registered(self, address: str) -> bool:
        return (await self.resolve_address_role(address)).is_primary

    async def is_secondary_address_registered(self, address: str) -> bool:
        return (await self.resolve_address_role(address)).is_secondary

    async def get_primary_wallet(self, unified_id: str) -> str:
        unified_id = require_unified_id(unified_id, strict=False)
        (primary,) = await self._call("child", "getPrimaryAddress", unified_id)
        return normalize_address(primary)

    async def get_secondary_wallets(self, unified_id: str) -> List[str]:
        unified_id = require_unified_id(unified_id, strict=False)
        (secondaries,) = await self._call("child", "getSecondaryAddresses", unified_id)
        return [normalize_address(a) for a in secondaries]

    async def resolve_secondary_address(self, address: str) -> str:
        address = require_address(address)
        (unified_id,) = await self._call("child", "resolveSecondaryAddressToUnifiedId", address)
        return unified_id

    # ------------------------------------------------------------------
    # Storage-util registry
    # ------------------------------------------------------------------

    async def get_registration_fee(self, token: str, base_fee_wei: Union[int, str]) -> int:
        """
        Token amount required to cover ``base_fee_wei``.

        ``token`` is the ERC-20 address, or the zero address for the native
        currency. A missing or zero fee is rejected before calling out.
        """
        if token is None or token == "":
            raise ValidationError("token is required", field="token")
        token = require_address(token, "token")
        if base_fee_wei is None or base_fee_wei == "":
            raise ValidationError("base_fee_wei is required", field="base_fee_wei")
        try:
            fee = int(base_fee_wei)
        except (TypeError, ValueError) as exc:
            raise ValidationError("base_fee_wei must be an integer", field="base_fee_wei") from exc
        if fee <= 0:
            raise ValidationError("base_fee_wei must be greater than zero", field="base_fee_wei")

        (amount,) = await self._call("storage_util", "getRequiredTokenAmount", token, fee)
        return int(amount)

    async def verify_signature_on_chain(
        self,
        data: Union[bytes, str],
        expected_signer: str,
        signature: Union[bytes, str],
    ) -> bool:
        """
        Ask the storage-util contract whether ``signature`` over ``data`` was
        produced by ``expected_signer``.

        ``data`` is the packed preimage; the contract hashes it and applies
        the personal-sign prefix itself. A revert during recovery (for
        example an all-zero signature) counts as invalid.
        """
        payload = require_hex_bytes(data, "data")
        expected_signer = require_address(expected_signer, "expected_signer")
        raw_signature = require_hex_bytes(signature, "signature")
        try:
            (valid,) = await self._call(
                "storage_util", "verifySignature", payload, expected_signer, raw_signature
            )
        except ContractCallError as exc:
            if not exc.reverted:
                raise
            logger.debug("verifySignature reverted: %s", exc.reason)
            return False
        return bool(valid)

    async def is_identifier_valid_on_chain(self, unified_id: str) -> bool:
        unified_id = require_unified_id(unified_id, strict=False)
        (valid,) = await self._call("storage_util", "isUnifiedIdValid", unified_id)
        return bool(valid)

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    async def get_identifier_profile(self, unified_id: str) -> UnifiedIdentifier:
        """Master, primary, secondaries and nonce of ``unified_id``, fetched concurrently."""

        unified_id = require_unified_id(unified_id, strict=False)
        master, primary, secondaries, nonce = await asyncio.gather(
            self.get_master_wallet(unified_id),
            self.get_primary_wallet(unified_id),
            self.get_secondary_wallets(unified_id),
            self.get_nonce(unified_id),
        )
        return UnifiedIdentifier(
            unified_id=unified_id,
            master_address=master or ZERO_ADDRESS,
            primary_address=primary or ZERO_ADDRESS,
            secondary_addresses=list(secondaries),
            nonce=nonce,
        )


__all__ = ["ChainReader"]

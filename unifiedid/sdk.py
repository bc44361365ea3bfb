"""
Unified ID SDK facade.

One object wires configuration, the JSON-RPC transport, the chain reader,
the operation builder and the relayer client together.

Usage:
    config = SDKConfig(base_url="https://relayer.example", auth_token="...")
    async with UnifiedIdSDK(config) as sdk:
        profile = await sdk.get_identifier_profile("alice_01")
        result = await sdk.register_unified_id(
            "alice_02", signer.address, master_signer=signer
        )
        if not result.success:
            print(result.error)
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import structlog

from .config import SDKConfig, validate_config
from .core.builder import OperationBuilder
from .core.encoding import EncodingVariant, OperationKind
from .core.errors import ConfigurationError, UnifiedIdError, ValidationError
from .core.models import (
    AddressRole,
    AddSecondaryRequest,
    ChainData,
    ChangePrimaryRequest,
    IdentifierStatus,
    OperationRequest,
    OperationResult,
    RegisterRequest,
    RelayerResponse,
    RemoveSecondaryRequest,
    UnifiedIdentifier,
    UpdateIdentifierRequest,
)
from .core.observers import ObserverGroup, OperationEvent, OperationObserver, new_operation_id
from .core.reader import ChainReader
from .core.signing import Signer
from .providers.relayer import RelayerConfig, RelayerProvider
from .providers.rpc import JsonRpcProvider, RpcConfig

logger = logging.getLogger(__name__)


class UnifiedIdSDK:
    """
    Entry point for Unified ID reads and writes.

    Configuration is validated before anything touches the network; an
    invalid config raises ``ConfigurationError`` listing every problem.

    Write methods return an ``OperationResult`` and do not raise for relayer
    rejections, reverts, signer failures or transport errors. Only
    ``ValidationError`` (bad parameters) propagates.
    """

    def __init__(
        self,
        config: SDKConfig,
        *,
        observers: Iterable[OperationObserver] = (),
        rpc: Optional[JsonRpcProvider] = None,
        relayer: Optional[RelayerProvider] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        errors = validate_config(config)
        if errors:
            raise ConfigurationError(errors)

        self._config = config
        addresses = config.resolved_contract_addresses()

        self._rpc = rpc or JsonRpcProvider(
            RpcConfig(rpc_url=config.resolved_rpc_url(), timeout_s=config.timeout_seconds)
        )
        self._relayer = relayer or RelayerProvider(
            RelayerConfig(
                base_url=config.base_url,
                auth_token=config.auth_token,
                timeout_s=config.timeout_seconds,
            )
        )
        self._reader = ChainReader(
            self._rpc,
            mother_address=addresses["mother"],
            child_address=addresses.get("child"),
            storage_util_address=addresses.get("storage_util"),
            chain_id=config.chain_id,
        )
        self._builder = OperationBuilder(
            self._reader,
            chain_id=config.chain_id,
            deadline_offset=config.deadline_offset_seconds,
            clock=clock,
        )
        self._observers = ObserverGroup(observers)

    # ------------------------------------------------------------------
    # Components
    # ------------------------------------------------------------------

    @property
    def config(self) -> SDKConfig:
        return self._config

    @property
    def reader(self) -> ChainReader:
        return self._reader

    @property
    def builder(self) -> OperationBuilder:
        return self._builder

    @property
    def relayer(self) -> RelayerProvider:
        return self._relayer

    def add_observer(self, observer: OperationObserver) -> None:
        self._observers.add(observer)

    def remove_observer(self, observer: OperationObserver) -> None:
        self._observers.remove(observer)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def identifier_exists_on_mother(self, unified_id: str) -> IdentifierStatus:
        return await self._reader.identifier_exists_on_mother(unified_id)

    async def identifier_exists_on_child(self, unified_id: str) -> bool:
        return await self._reader.identifier_exists_on_child(unified_id)

    async def address_present_on_child(self, address: str) -> bool:
        return await self._reader.address_present_on_child(address)

    async def address_in_use_for_identifier(self, unified_id: str, address: str) -> bool:
        return await self._reader.address_in_use_for_identifier(unified_id, address)

    async def resolve_address_role(self, address: str) -> AddressRole:
        return await self._reader.resolve_address_role(address)

    async def is_primary_address_registered(self, address: str) -> bool:
        return await self._reader.is_primary_address_registered(address)

    async def is_secondary_address_registered(self, address: str) -> bool:
        return await self._reader.is_secondary_address_registered(address)

    async def is_identifier_registered(self, unified_id: str) -> bool:
        return await self._reader.is_identifier_registered(unified_id)

    async def get_master_wallet(self, unified_id: str) -> str:
        return await self._reader.get_master_wallet(unified_id)

    async def get_primary_wallet(self, unified_id: str) -> str:
        return await self._reader.get_primary_wallet(unified_id)

    async def get_secondary_wallets(self, unified_id: str) -> List[str]:
        return await self._reader.get_secondary_wallets(unified_id)

    async def get_identifier_by_primary_address(
        self, address: str, chain_id: Optional[int] = None
    ) -> str:
        return await self._reader.get_identifier_by_primary_address(address, chain_id)

    async def get_registration_fee(self, token: str, base_fee_wei: Union[int, str]) -> int:
        return await self._reader.get_registration_fee(token, base_fee_wei)

    async def validate_chain_data(
        self, unified_id: str, chain_id: Optional[int] = None
    ) -> ChainData:
        return await self._reader.validate_chain_data(unified_id, chain_id)

    async def is_secondary_already_bound_on_mother(
        self, unified_id: str, chain_id: Optional[int], address: str
    ) -> bool:
        return await self._reader.is_secondary_already_bound_on_mother(unified_id, chain_id, address)

    async def is_primary_already_in_use_on_mother(
        self, chain_id: Optional[int], address: str
    ) -> bool:
        return await self._reader.is_primary_already_in_use_on_mother(chain_id, address)

    async def verify_signature_on_chain(
        self,
        data: Union[bytes, str],
        expected_signer: str,
        signature: Union[bytes, str],
    ) -> bool:
        return await self._reader.verify_signature_on_chain(data, expected_signer, signature)

    async def get_nonce(self, unified_id: str) -> int:
        return await self._reader.get_nonce(unified_id)

    async def is_identifier_valid_on_chain(self, unified_id: str) -> bool:
        return await self._reader.is_identifier_valid_on_chain(unified_id)

    async def resolve_secondary_address(self, address: str) -> str:
        return await self._reader.resolve_secondary_address(address)

    async def get_identifier_profile(self, unified_id: str) -> UnifiedIdentifier:
        return await self._reader.get_identifier_profile(unified_id)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def submit(self, request: OperationRequest) -> OperationResult:
        """Build, sign (when signers are given) and submit ``request``."""

        operation_id = new_operation_id()
        kind = request.kind

        with structlog.contextvars.bound_contextvars(operation_id=operation_id):
            self._observers.started(
                OperationEvent(operation_id, kind, data={"presigned": request.is_presigned})
            )
            try:
                operation = await self._builder.build(request)
                response = await self._relayer.submit(operation)
            except ValidationError as e:
                self._observers.failed(
                    OperationEvent(operation_id, kind, data={"error": e.message, "category": e.category.value})
                )
                raise
            except UnifiedIdError as e:
                logger.warning("%s %s failed: %s", kind.value, operation_id, e)
                result = OperationResult(
                    operation_id=operation_id,
                    kind=kind,
                    success=False,
                    error=e.message,
                    details=e.context.to_dict(),
                    status_code=getattr(e, "status_code", None),
                )
                self._observers.failed(
                    OperationEvent(operation_id, kind, data={"error": e.message, "category": e.category.value})
                )
                return result

            result = OperationResult.from_response(operation_id, operation, response)
            event_data: Dict[str, Any] = {"nonce": operation.nonce, "status_code": response.status_code}
            if result.success:
                self._observers.completed(OperationEvent(operation_id, kind, data=event_data))
            else:
                self._observers.failed(
                    OperationEvent(operation_id, kind, data={**event_data, "category": "api"})
                )
            return result

    async def register_unified_id(
        self,
        unified_id: str,
        user_address: str,
        *,
        master_signer: Optional[Signer] = None,
        primary_signer: Optional[Signer] = None,
        master_signature: Optional[str] = None,
        primary_signature: Optional[str] = None,
    ) -> OperationResult:
        return await self.submit(
            RegisterRequest(
                unified_id=unified_id,
                user_address=user_address,
                master_signature=master_signature,
                primary_signature=primary_signature,
                master_signer=master_signer,
                primary_signer=primary_signer,
            )
        )

    async def add_secondary_address(
        self,
        unified_id: str,
        secondary_address: str,
        *,
        primary_signer: Optional[Signer] = None,
        secondary_signer: Optional[Signer] = None,
        primary_signature: Optional[str] = None,
        secondary_signature: Optional[str] = None,
    ) -> OperationResult:
        return await self.submit(
            AddSecondaryRequest(
                unified_id=unified_id,
                secondary_address=secondary_address,
                primary_signature=primary_signature,
                secondary_signature=secondary_signature,
                primary_signer=primary_signer,
                secondary_signer=secondary_signer,
            )
        )

    async def remove_secondary_address(
        self,
        unified_id: str,
        secondary_address: str,
        *,
        signer: Optional[Signer] = None,
        signature: Optional[str] = None,
    ) -> OperationResult:
        return await self.submit(
            RemoveSecondaryRequest(
                unified_id=unified_id,
                secondary_address=secondary_address,
                signature=signature,
                signer=signer,
            )
        )

    async def change_primary_address(
        self,
        unified_id: str,
        new_primary_address: str,
        *,
        current_primary_address: Optional[str] = None,
        current_signer: Optional[Signer] = None,
        new_signer: Optional[Signer] = None,
        current_signature: Optional[str] = None,
        new_signature: Optional[str] = None,
    ) -> OperationResult:
        return await self.submit(
            ChangePrimaryRequest(
                unified_id=unified_id,
                new_primary_address=new_primary_address,
                current_primary_address=current_primary_address,
                current_signature=current_signature,
                new_signature=new_signature,
                current_signer=current_signer,
                new_signer=new_signer,
            )
        )

    async def update_unified_id(
        self,
        old_unified_id: str,
        new_unified_id: str,
        *,
        signer: Optional[Signer] = None,
        signature: Optional[str] = None,
    ) -> OperationResult:
        return await self.submit(
            UpdateIdentifierRequest(
                old_unified_id=old_unified_id,
                new_unified_id=new_unified_id,
                signature=signature,
                signer=signer,
            )
        )

    async def sign_typed_operation(
        self,
        kind: OperationKind,
        fields: Sequence[Any],
        signer: Signer,
        *,
        variant: EncodingVariant = EncodingVariant.TYPED_ENHANCED,
        target_chain_id: Optional[int] = None,
        allow_cross_chain: bool = False,
    ) -> Dict[str, Any]:
        """EIP-712 signature over ``kind`` for flows that verify typed data."""

        return await self._builder.sign_typed(
            kind,
            fields,
            signer,
            variant=variant,
            target_chain_id=target_chain_id,
            allow_cross_chain=allow_cross_chain,
        )

    async def sign_typed_operations(
        self,
        operations: Sequence[Tuple[OperationKind, Sequence[Any]]],
        signer: Signer,
        *,
        variant: EncodingVariant = EncodingVariant.TYPED_ENHANCED,
        target_chain_id: Optional[int] = None,
        allow_cross_chain: bool = False,
    ) -> List[Dict[str, Any]]:
        return await self._builder.sign_typed_batch(
            operations,
            signer,
            variant=variant,
            target_chain_id=target_chain_id,
            allow_cross_chain=allow_cross_chain,
        )

    # ------------------------------------------------------------------
    # Relayer liveness
    # ------------------------------------------------------------------

    async def get_health(self) -> RelayerResponse:
        return await self._relayer.health()

    async def ping(self) -> RelayerResponse:
        return await self._relayer.ping()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        await self._relayer.aclose()
        await self._rpc.aclose()

    async def __aenter__(self) -> "UnifiedIdSDK":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


__all__ = ["UnifiedIdSDK"]

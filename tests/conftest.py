"""
Shared fixtures: an in-memory registry node and relayer served through
httpx.MockTransport, plus well-known test keys.
"""

import json
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest
from eth_abi import decode, encode
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_utils import keccak, to_checksum_address

from unifiedid.config import ContractAddresses, SDKConfig
from unifiedid.core.contracts import REGISTRIES
from unifiedid.core.reader import ChainReader
from unifiedid.core.signing import KeyMaterialSigner
from unifiedid.providers.relayer import RelayerConfig, RelayerProvider
from unifiedid.providers.rpc import JsonRpcProvider, RpcConfig

ZERO = "0x0000000000000000000000000000000000000000"

# Hardhat development accounts #0 and #1
KEY_A = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
ADDR_A = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
KEY_B = "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"
ADDR_B = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"


class RevertError(Exception):
    pass


class FakeRegistryNode:
    """
    JSON-RPC node that answers eth_call for the mother, child and
    storage-util registries from in-memory state.
    """

    CHAIN_ID = 11155111
    MOTHER = "0x1111111111111111111111111111111111111111"
    CHILD = "0x2222222222222222222222222222222222222222"
    STORAGE = "0x3333333333333333333333333333333333333333"

    def __init__(self) -> None:
        self.masters: Dict[str, str] = {}
        self.nonces: Dict[str, int] = {}
        self.primaries: Dict[str, str] = {}
        self.secondaries: Dict[str, List[str]] = {}
        self.fee_multiplier = 2
        self.missing_functions: set = set()
        self.reverting_functions: set = set()
        self.malformed_functions: set = set()
        self.fail_transport = False
        self.calls: List[str] = []
        self._registries = {
            self.MOTHER.lower(): "mother",
            self.CHILD.lower(): "child",
            self.STORAGE.lower(): "storage_util",
        }

    # -- state helpers -------------------------------------------------

    def register(
        self,
        unified_id: str,
        master: str,
        primary: Optional[str] = None,
        secondaries: Optional[List[str]] = None,
        nonce: int = 0,
    ) -> None:
        self.masters[unified_id] = to_checksum_address(master)
        self.nonces[unified_id] = nonce
        self.primaries[unified_id] = to_checksum_address(primary or master)
        self.secondaries[unified_id] = [to_checksum_address(a) for a in (secondaries or [])]

    def _owner_of(self, address: str) -> Tuple[str, bool, bool]:
        for unified_id, primary in self.primaries.items():
            if primary.lower() == address.lower():
                return unified_id, True, False
        for unified_id, secondaries in self.secondaries.items():
            if any(s.lower() == address.lower() for s in secondaries):
                return unified_id, False, True
        return "", False, False

    # -- contract behaviour --------------------------------------------

    def _execute(self, name: str, args: Tuple[Any, ...]) -> List[Any]:
        if name in self.reverting_functions:
            raise RevertError(name)

        if name == "getMasterAddress":
            return [self.masters.get(args[0], ZERO)]
        if name in ("nonces", "getNonce"):
            return [self.nonces.get(args[0], 0)]
        if name == "getChainData":
            unified_id, chain_id = args
            if chain_id != self.CHAIN_ID:
                return [ZERO, []]
            return [self.primaries.get(unified_id, ZERO), self.secondaries.get(unified_id, [])]
        if name == "resolveAddressToUnifiedId" and len(args) == 2:
            address, chain_id = args
            if chain_id != self.CHAIN_ID:
                return [""]
            unified_id, is_primary, _ = self._owner_of(address)
            return [unified_id if is_primary else ""]
        if name == "resolveAddressToUnifiedId":
            return [self._owner_of(args[0])[0]]
        if name == "resolveSecondaryAddressToUnifiedId":
            unified_id, _, is_secondary = self._owner_of(args[0])
            return [unified_id if is_secondary else ""]
        if name == "getPrimaryAddress":
            return [self.primaries.get(args[0], ZERO)]
        if name == "getSecondaryAddresses":
            return [self.secondaries.get(args[0], [])]
        if name == "resolveAllAddresses":
            return [self.primaries.get(args[0], ZERO), self.secondaries.get(args[0], [])]
        if name == "resolveAnyAddressToUnifiedId":
            unified_id, is_primary, is_secondary = self._owner_of(args[0])
            if not unified_id:
                raise RevertError("address not registered")
            return [unified_id, is_primary, is_secondary]
        if name == "getRequiredTokenAmount":
            token, base_fee = args
            return [base_fee if token == ZERO else base_fee * self.fee_multiplier]
        if name == "verifySignature":
            data, expected, signature = args
            digest = keccak(data)
            try:
                recovered = Account.recover_message(
                    encode_defunct(primitive=digest), signature=signature
                )
            except Exception as exc:
                raise RevertError("ECDSA: invalid signature") from exc
            return [recovered.lower() == expected.lower()]
        if name == "isUnifiedIdValid":
            return [args[0] in self.masters]
        raise RevertError(f"unknown function {name}")

    def _eth_call(self, call: Dict[str, str]) -> Dict[str, Any]:
        registry = self._registries.get(call["to"].lower())
        if registry is None:
            return {"result": "0x"}
        data = bytes.fromhex(call["data"][2:])
        selector, body = data[:4], data[4:]
        for fn in REGISTRIES[registry].values():
            if fn.selector == selector:
                break
        else:
            return {"error": {"code": 3, "message": "execution reverted"}}

        self.calls.append(fn.name)
        if fn.name in self.missing_functions:
            return {"error": {"code": 3, "message": "execution reverted"}}
        if fn.name in self.malformed_functions:
            return {"result": "0xabc"}
        args = tuple(decode(list(fn.inputs), body))
        try:
            values = self._execute(fn.name, args)
        except RevertError as exc:
            return {"error": {"code": 3, "message": f"execution reverted: {exc}", "data": "0x"}}
        return {"result": "0x" + encode(list(fn.outputs), values).hex()}

    def handle(self, request: httpx.Request) -> httpx.Response:
        if self.fail_transport:
            raise httpx.ConnectError("connection refused", request=request)

        payload = json.loads(request.content)
        if payload["method"] == "eth_chainId":
            body = {"result": hex(self.CHAIN_ID)}
        elif payload["method"] == "eth_call":
            body = self._eth_call(payload["params"][0])
        else:
            body = {"error": {"code": -32601, "message": "method not found"}}
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": payload["id"], **body})


class FakeRelayer:
    """Records relayer requests and answers with a configurable response."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.status_code = 200
        self.body: Any = {"success": True, "data": {"operationId": "relay-1"}}
        self.fail_transport = False

    @property
    def last_json(self) -> Dict[str, Any]:
        return json.loads(self.requests[-1].content)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_transport:
            raise httpx.ConnectError("connection refused", request=request)
        if request.url.path in ("/health", "/ping"):
            return httpx.Response(200, json={"status": "ok"})
        return httpx.Response(self.status_code, json=self.body)


@pytest.fixture
def node() -> FakeRegistryNode:
    return FakeRegistryNode()


@pytest.fixture
def rpc(node) -> JsonRpcProvider:
    return JsonRpcProvider(
        RpcConfig(rpc_url="https://rpc.test"),
        transport=httpx.MockTransport(node.handle),
    )


@pytest.fixture
def reader(node, rpc) -> ChainReader:
    return ChainReader(
        rpc,
        mother_address=node.MOTHER,
        child_address=node.CHILD,
        storage_util_address=node.STORAGE,
        chain_id=node.CHAIN_ID,
    )


@pytest.fixture
def fake_relayer() -> FakeRelayer:
    return FakeRelayer()


@pytest.fixture
def relayer(fake_relayer) -> RelayerProvider:
    return RelayerProvider(
        RelayerConfig(base_url="https://relayer.test", auth_token="test-token"),
        transport=httpx.MockTransport(fake_relayer.handle),
    )


@pytest.fixture
def sdk_config(node) -> SDKConfig:
    return SDKConfig(
        base_url="https://relayer.test",
        auth_token="test-token",
        chain_id=node.CHAIN_ID,
        environment="testnet",
        rpc_url="https://rpc.test",
        contract_addresses=ContractAddresses(
            mother=node.MOTHER, child=node.CHILD, storage_util=node.STORAGE
        ),
    )


@pytest.fixture
def signer_a() -> KeyMaterialSigner:
    return KeyMaterialSigner(KEY_A)


@pytest.fixture
def signer_b() -> KeyMaterialSigner:
    return KeyMaterialSigner(KEY_B)

from .base import Provider
from .relayer import RelayerConfig, RelayerNetworkError, RelayerProvider
from .rpc import JsonRpcProvider, RpcConfig

__all__ = [
    "Provider",
    "RelayerConfig",
    "RelayerNetworkError",
    "RelayerProvider",
    "JsonRpcProvider",
    "RpcConfig",
]

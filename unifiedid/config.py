from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .core.chains import (
    ENVIRONMENTS,
    TESTNET,
    get_network,
    is_chain_supported,
    resolve_contract_addresses,
    supported_chain_ids,
)
from .core.validation import is_valid_address


class ContractAddresses(BaseModel):
    """Registry address overrides; ``None`` falls back to the built-in deployment."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    mother: Optional[str] = Field(default=None, description="Mother registry address")
    child: Optional[str] = Field(default=None, description="Child registry address")
    storage_util: Optional[str] = Field(default=None, description="Storage-util contract address")


class SDKConfig(BaseModel):
    """Explicit configuration handed to ``UnifiedIdSDK``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    # Relayer
    base_url: str = Field(default="", description="Relayer base URL")
    auth_token: str = Field(default="", repr=False, description="Relayer bearer token")

    # Chain
    chain_id: int = Field(default=11155111, description="Target chain id")
    environment: str = Field(default=TESTNET, description="testnet or mainnet")
    rpc_url: Optional[str] = Field(default=None, description="JSON-RPC endpoint (defaults per chain)")
    contract_addresses: ContractAddresses = Field(default_factory=ContractAddresses)

    # Behaviour
    timeout_seconds: float = Field(default=30.0, description="HTTP timeout for relayer and RPC")
    deadline_offset_seconds: int = Field(default=3600, description="Signature validity window")
    log_level: str = Field(default="INFO", description="Logging level")

    def resolved_rpc_url(self) -> Optional[str]:
        if self.rpc_url:
            return self.rpc_url
        network = get_network(self.chain_id)
        return network.default_rpc_url if network else None

    def resolved_contract_addresses(self) -> Dict[str, Optional[str]]:
        return resolve_contract_addresses(self.chain_id, self.contract_addresses.model_dump())

    @classmethod
    def from_env(cls, **overrides: Any) -> "SDKConfig":
        """Build a config from ``UNIFIEDID_*`` environment variables (and ``.env``)."""

        return EnvSettings().to_sdk_config(**overrides)


class EnvSettings(BaseSettings):
    """``UNIFIEDID_*`` environment variables, plus a ``.env`` file in the current directory.

    The ``.env`` path is relative, so it is resolved each time settings are
    loaded rather than when this module is imported.
    """

    model_config = SettingsConfigDict(
        env_prefix="UNIFIEDID_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    base_url: str = Field(default="", description="Relayer base URL")
    auth_token: str = Field(default="", description="Relayer bearer token")
    chain_id: int = Field(default=11155111, description="Target chain id")
    environment: str = Field(default=TESTNET, description="testnet or mainnet")
    rpc_url: str = Field(default="", description="JSON-RPC endpoint")

    mother_address: str = Field(default="", description="Mother registry override")
    child_address: str = Field(default="", description="Child registry override")
    storage_util_address: str = Field(default="", description="Storage-util override")

    timeout_seconds: float = Field(default=30.0, description="HTTP timeout")
    deadline_offset_seconds: int = Field(default=3600, description="Signature validity window")
    log_level: str = Field(default="INFO", description="Logging level")

    def to_sdk_config(self, **overrides: Any) -> SDKConfig:
        values: Dict[str, Any] = {
            "base_url": self.base_url,
            "auth_token": self.auth_token,
            "chain_id": self.chain_id,
            "environment": self.environment,
            "rpc_url": self.rpc_url or None,
            "contract_addresses": ContractAddresses(
                mother=self.mother_address or None,
                child=self.child_address or None,
                storage_util=self.storage_util_address or None,
            ),
            "timeout_seconds": self.timeout_seconds,
            "deadline_offset_seconds": self.deadline_offset_seconds,
            "log_level": self.log_level,
        }
        values.update(overrides)
        return SDKConfig(**values)


def _is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def validate_config(config: SDKConfig) -> List[str]:
    """Return one message per configuration problem; empty when the config is usable."""

    errors: List[str] = []

    if not config.base_url:
        errors.append("base_url is required")
    elif not _is_http_url(config.base_url):
        errors.append(f"base_url must be an http(s) URL, got {config.base_url!r}")

    if not config.auth_token:
        errors.append("auth_token is required")

    if config.environment not in ENVIRONMENTS:
        errors.append(
            f"environment must be one of {', '.join(ENVIRONMENTS)}, got {config.environment!r}"
        )
    elif not is_chain_supported(config.environment, config.chain_id):
        supported = ", ".join(str(c) for c in supported_chain_ids(config.environment))
        errors.append(
            f"chain_id {config.chain_id} is not supported in {config.environment} "
            f"(supported: {supported})"
        )

    rpc_url = config.resolved_rpc_url()
    if not rpc_url:
        errors.append(f"rpc_url is required for chain {config.chain_id}")
    elif not _is_http_url(rpc_url):
        errors.append(f"rpc_url must be an http(s) URL, got {rpc_url!r}")

    for role, address in config.contract_addresses.model_dump().items():
        if address and not is_valid_address(address):
            errors.append(f"contract_addresses.{role} is not a valid address: {address!r}")

    if not config.resolved_contract_addresses().get("mother"):
        errors.append(f"mother registry address is not configured for chain {config.chain_id}")

    if config.timeout_seconds <= 0:
        errors.append("timeout_seconds must be positive")
    if config.deadline_offset_seconds <= 0:
        errors.append("deadline_offset_seconds must be positive")

    return errors

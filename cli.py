#!/usr/bin/env python3
"""Simple CLI for poking at Unified ID registries and the relayer"""

import argparse
import asyncio
import sys

from unifiedid import SDKConfig, UnifiedIdSDK, UnifiedIdError
from unifiedid.core.encoding import OperationKind, SCHEMAS, TYPED_ONLY_KINDS, encode_operation
from unifiedid.logging_config import setup_logging


def print_profile(profile):
    """Pretty print an identifier profile"""
    status = "registered" if profile.is_registered else "not registered"
    print(f"\n🪪  {profile.unified_id} ({status})")
    print("=" * 50)
    print(f"Master:    {profile.master_address}")
    print(f"Primary:   {profile.primary_address}")
    print(f"Nonce:     {profile.nonce}")
    if profile.secondary_addresses:
        print("Secondaries:")
        for i, address in enumerate(profile.secondary_addresses, 1):
            print(f"  {i:2d}. {address}")
    else:
        print("Secondaries: none")


async def cli_health(sdk: UnifiedIdSDK):
    """Relayer and RPC liveness"""
    relayer = await sdk.relayer.health_check()
    rpc = await sdk.reader.rpc.health_check()
    print(f"Relayer: {relayer.get('status')}")
    print(f"RPC:     {rpc.get('status')} (chain {rpc.get('chain_id', '?')})")


async def cli_resolve(sdk: UnifiedIdSDK, address: str):
    print(f"🔍 Resolving {address}...")
    role = await sdk.resolve_address_role(address)
    if not role.is_registered:
        print("Address is not bound to any Unified ID")
        return
    flags = [name for name, on in (("primary", role.is_primary), ("secondary", role.is_secondary)) if on]
    print(f"{role.unified_id} ({', '.join(flags) or 'no role flags'})")


async def cli_profile(sdk: UnifiedIdSDK, unified_id: str):
    print(f"🔍 Fetching {unified_id}...")
    print_profile(await sdk.get_identifier_profile(unified_id))


def cli_digest(kind: str, fields, nonce: int):
    """Print the packed preimage and digest without touching the network"""
    encoded = encode_operation(OperationKind(kind), fields, nonce)
    print(f"Preimage: 0x{encoded.preimage.hex()}")
    print(f"Digest:   {encoded.digest_hex}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Unified ID CLI")
    parser.add_argument("--log-level", default=None, help="Log level (default: UNIFIEDID_LOG_LEVEL or INFO)")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("health", help="Check relayer and RPC health")

    resolve_parser = subparsers.add_parser("resolve", help="Resolve an address to its Unified ID")
    resolve_parser.add_argument("address", help="Wallet address")

    profile_parser = subparsers.add_parser("profile", help="Show master, primary, secondaries and nonce")
    profile_parser.add_argument("unified_id", help="Unified ID")

    digest_parser = subparsers.add_parser("digest", help="Compute the packed digest of an operation")
    digest_parser.add_argument(
        "kind", choices=[kind.value for kind in SCHEMAS if kind not in TYPED_ONLY_KINDS]
    )
    digest_parser.add_argument("fields", nargs=2, help="The two identity fields, in encoding order")
    digest_parser.add_argument("--nonce", type=int, default=0, help="Nonce (default: 0)")

    return parser


async def main() -> int:
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 0

    config = SDKConfig.from_env()
    setup_logging(args.log_level, config=config)

    try:
        if args.command == "digest":
            cli_digest(args.kind, args.fields, args.nonce)
            return 0

        async with UnifiedIdSDK(config) as sdk:
            if args.command == "health":
                await cli_health(sdk)
            elif args.command == "resolve":
                await cli_resolve(sdk, args.address)
            elif args.command == "profile":
                await cli_profile(sdk, args.unified_id)
    except UnifiedIdError as e:
        print(f"❌ Error: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))

#!/usr/bin/env python3
"""
Command-line interface for Quest Verifier.

Examples:
  - Verification
    quest-verifier verify --contract aerodrome --address 0x...
    quest-verifier verify --contract aerodrome --address 0x... --campaign summer_2024
    quest-verifier verify-range --contract aerodrome --address 0x... --start-date 2024-06-01 --end-date 2024-06-30

  - Configuration
    quest-verifier contracts

  - HTTP API
    quest-verifier serve --port 3001
"""

import argparse
import asyncio
import os
from typing import List, Optional

from quest_verifier.commands.helpers import handle_command_error
from quest_verifier.commands.validation import (
    parse_date_range,
    validate_contract_id,
    validate_eth_address,
)
from quest_verifier.utils.formatters import (
    add_contract_to_table,
    console,
    create_contracts_table,
    format_verdict,
)
from quest_verifier.verification.factory import build_verification_service

DEFAULT_PORT = 3001


def cmd_verify(args: argparse.Namespace) -> None:
    contract_id = validate_contract_id(args.contract)
    address = validate_eth_address(args.address)
    service = build_verification_service(args.config)

    result = asyncio.run(
        service.has_interacted(address, contract_id, args.campaign)
    )
    window = f"campaign {args.campaign}" if args.campaign else "all time"
    console.print(f"{address} on {contract_id} ({window}): {format_verdict(result)}")


def cmd_verify_range(args: argparse.Namespace) -> None:
    contract_id = validate_contract_id(args.contract)
    address = validate_eth_address(args.address)

    start_ts = end_ts = None
    if args.campaign:
        window = f"campaign {args.campaign}"
    elif args.start_date and args.end_date:
        start_ts, end_ts = parse_date_range(args.start_date, args.end_date)
        window = f"{args.start_date} -> {args.end_date}"
    else:
        raise ValueError(
            "Either --campaign or both --start-date and --end-date are required"
        )

    service = build_verification_service(args.config)
    result = asyncio.run(
        service.has_interacted_in_time_range(
            address, contract_id, start_ts, end_ts, campaign_id=args.campaign
        )
    )
    console.print(f"{address} on {contract_id} ({window}): {format_verdict(result)}")


def cmd_contracts(args: argparse.Namespace) -> None:
    service = build_verification_service(args.config)
    contracts = service.get_available_contracts()
    console.print(f"Configured contracts: {len(contracts)}")

    table = create_contracts_table()
    for contract_id, summary in contracts.items():
        add_contract_to_table(table, contract_id, summary)
    console.print(table)


def cmd_serve(args: argparse.Namespace) -> None:
    import uvicorn

    from quest_verifier.api.app import create_app

    app = create_app(config_path=args.config)
    port = args.port or int(os.getenv("QV_PORT", DEFAULT_PORT))
    uvicorn.run(app, host=args.host, port=port)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="quest-verifier",
        description="Verify wallet interactions with configured contracts",
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Path to contracts.json (default: QV_CONFIG_PATH or config/contracts.json)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    # verify
    p_verify = sub.add_parser("verify", help="Check interaction (all time or campaign)")
    p_verify.add_argument("--contract", type=str, required=True)
    p_verify.add_argument("--address", type=str, required=True)
    p_verify.add_argument("--campaign", type=str, help="Campaign ID")
    p_verify.set_defaults(func=cmd_verify)

    # verify-range
    p_range = sub.add_parser(
        "verify-range", help="Check interaction within a campaign or date range"
    )
    p_range.add_argument("--contract", type=str, required=True)
    p_range.add_argument("--address", type=str, required=True)
    p_range.add_argument("--campaign", type=str, help="Campaign ID (overrides dates)")
    p_range.add_argument("--start-date", type=str, help="YYYY-MM-DD or ISO datetime")
    p_range.add_argument("--end-date", type=str, help="YYYY-MM-DD or ISO datetime")
    p_range.set_defaults(func=cmd_verify_range)

    # contracts
    p_contracts = sub.add_parser("contracts", help="List configured contracts")
    p_contracts.set_defaults(func=cmd_contracts)

    # serve
    p_serve = sub.add_parser("serve", help="Run the HTTP API")
    p_serve.add_argument("--host", type=str, default="0.0.0.0")
    p_serve.add_argument("--port", type=int, help="Port (default: QV_PORT or 3001)")
    p_serve.set_defaults(func=cmd_serve)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        args.func(args)
    except Exception as e:
        handle_command_error(e)


if __name__ == "__main__":
    main()

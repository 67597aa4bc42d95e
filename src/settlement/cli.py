"""
Command-line interface for the settlement engine.

Provides commands for settling batches against the SQL ledger and for
inspecting and seeding ledger state.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

import structlog

from settlement import __version__
from settlement.audit.emitter import AuditEmitter
from settlement.audit.store import AuditStore
from settlement.config import SettlementConfig, set_config
from settlement.core.errors import InvalidRequest, LedgerError, SettlementError
from settlement.core.request import request_from_dict
from settlement.core.types import NATIVE_ASSET
from settlement.engine.settlement import SettlementEngine
from settlement.ledger.sql import SqlLedger


def setup_logging(level: str = "INFO", json_format: bool = False) -> None:
    """Configure structured logging."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if json_format
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper()),
        stream=sys.stderr,
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="batch-settlement",
        description="Atomic batch settlement of token and native-currency transfers",
    )
    
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    
    # Options shared by every command
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--database-url",
        help="SQLAlchemy URL of the ledger database (default: from config)",
    )
    common.add_argument(
        "--engine-address",
        help="Ledger address of the engine (default: from config)",
    )
    common.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Logging level (default: WARNING)",
    )
    common.add_argument(
        "--log-json",
        action="store_true",
        help="Output logs in JSON format",
    )
    
    subparsers = parser.add_subparsers(dest="command", help="Command to run")
    
    # Settle command
    settle_parser = subparsers.add_parser(
        "settle", parents=[common], help="Settle a batch request from a JSON file",
    )
    settle_parser.add_argument("request_file", help="Path to the JSON batch request")
    settle_parser.add_argument(
        "--audit-database-url",
        help="Persist audit events to this database",
    )
    
    # Balance command
    balance_parser = subparsers.add_parser(
        "balance", parents=[common], help="Show a balance",
    )
    balance_parser.add_argument("--owner", required=True, help="Account address")
    balance_parser.add_argument(
        "--asset",
        default=NATIVE_ASSET,
        help="Token address or 'native' (default: native)",
    )
    
    # Fund command
    fund_parser = subparsers.add_parser(
        "fund", parents=[common], help="Credit tokens or native currency to an account",
    )
    fund_parser.add_argument("--owner", required=True, help="Account address")
    fund_parser.add_argument("--amount", required=True, help="Amount in base units")
    fund_parser.add_argument(
        "--asset",
        default=NATIVE_ASSET,
        help="Token address or 'native' (default: native)",
    )
    
    # Approve command
    approve_parser = subparsers.add_parser(
        "approve", parents=[common], help="Delegate a token allowance to the engine",
    )
    approve_parser.add_argument("--owner", required=True, help="Account granting the allowance")
    approve_parser.add_argument("--asset", required=True, help="Token address")
    approve_parser.add_argument("--amount", required=True, help="Allowance in base units")
    
    # Events command
    events_parser = subparsers.add_parser(
        "events", parents=[common], help="List persisted audit events",
    )
    events_parser.add_argument("--batch-id", help="Only events of this batch")
    events_parser.add_argument(
        "--audit-database-url",
        help="Audit database (default: from config, else the ledger database)",
    )
    
    return parser


def build_config(args: argparse.Namespace) -> SettlementConfig:
    """Overlay command-line options on the environment configuration."""
    overrides = {}
    if args.database_url:
        overrides["database_url"] = args.database_url
    if args.engine_address:
        overrides["engine_address"] = args.engine_address
    if getattr(args, "audit_database_url", None):
        overrides["audit_database_url"] = args.audit_database_url
    overrides["log_level"] = args.log_level
    overrides["log_json"] = args.log_json
    return SettlementConfig(**overrides)


def open_ledger(config: SettlementConfig) -> SqlLedger:
    ledger = SqlLedger(config.database_url)
    ledger.connect()
    return ledger


def settle_request(args: argparse.Namespace, config: SettlementConfig) -> int:
    """Settle one batch request file."""
    try:
        data = json.loads(Path(args.request_file).read_text())
    except json.JSONDecodeError as e:
        raise InvalidRequest(f"Request file is not valid JSON: {e}") from e
    
    ledger = open_ledger(config)
    emitter = AuditEmitter()
    store = None
    if config.audit_database_url:
        store = AuditStore(config.audit_database_url)
        store.connect()
        emitter.subscribe(store)
    
    engine = SettlementEngine(ledger, emitter=emitter, config=config)
    
    try:
        request = request_from_dict(data)
        outcome = engine.settle(request)
    except SettlementError as e:
        print(json.dumps({"success": False, **e.to_dict()}, indent=2))
        return 1
    finally:
        ledger.disconnect()
        if store:
            store.disconnect()
    
    print(json.dumps(outcome.to_dict(), indent=2))
    return 0


def show_balance(args: argparse.Namespace, config: SettlementConfig) -> int:
    ledger = open_ledger(config)
    try:
        owner = args.owner.lower()
        if args.asset == NATIVE_ASSET:
            balance = ledger.native.balance_of(owner)
        else:
            balance = ledger.token(args.asset).balance_of(owner)
    finally:
        ledger.disconnect()
    
    print(json.dumps({"asset": args.asset.lower(), "owner": owner, "balance": str(balance)}))
    return 0


def fund_account(args: argparse.Namespace, config: SettlementConfig) -> int:
    ledger = open_ledger(config)
    try:
        if args.asset == NATIVE_ASSET:
            ledger.credit_native(args.owner, args.amount)
        else:
            ledger.register_token(args.asset)
            ledger.mint(args.asset, args.owner, args.amount)
    finally:
        ledger.disconnect()
    
    print(f"Credited {args.amount} {args.asset} to {args.owner}")
    return 0


def approve_engine(args: argparse.Namespace, config: SettlementConfig) -> int:
    ledger = open_ledger(config)
    try:
        ledger.approve(args.asset, args.owner, config.engine_address, args.amount)
    finally:
        ledger.disconnect()
    
    print(f"Approved {config.engine_address} to spend {args.amount} of {args.asset} for {args.owner}")
    return 0


def list_events(args: argparse.Namespace, config: SettlementConfig) -> int:
    store = AuditStore(config.audit_database_url or config.database_url)
    store.connect()
    try:
        events = store.list_events(batch_id=args.batch_id)
    finally:
        store.disconnect()
    
    print(json.dumps(events, indent=2))
    return 0


COMMANDS = {
    "settle": settle_request,
    "balance": show_balance,
    "fund": fund_account,
    "approve": approve_engine,
    "events": list_events,
}


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)
    
    if not args.command:
        parser.print_help()
        sys.exit(1)
    
    config = build_config(args)
    set_config(config)
    setup_logging(config.log_level, config.log_json)
    
    try:
        code = COMMANDS[args.command](args, config)
    except (SettlementError, LedgerError) as e:
        print(f"Error: {e}", file=sys.stderr)
        code = 1
    
    sys.exit(code)


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
Run a local settlement demo.

Demonstrates, against an in-memory ledger:
1. Each of the five batch shapes
2. Refund of unspent native value
3. Whole-batch rollback when one transfer fails
"""

import argparse
import json
import sys
from datetime import datetime
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from settlement.audit.emitter import AuditEmitter
from settlement.cli import setup_logging
from settlement.config import SettlementConfig, set_config
from settlement.core.errors import SettlementError
from settlement.engine.settlement import SettlementEngine
from settlement.ledger.memory import InMemoryLedger


ENGINE = "0x" + "0" * 37 + "b47"
ALICE = "0x" + "a1" * 20
BOB = "0x" + "b0" * 20
CAROL = "0x" + "c4" * 20
TOKEN_A = "0x" + "aa" * 20
TOKEN_B = "0x" + "bb" * 20
ZERO = "0x" + "0" * 40


class DemoRunner:
    """Runs the settlement demonstration."""
    
    def __init__(self):
        self.results = {
            "timestamp": datetime.now().isoformat(),
            "steps": [],
        }
        
        self.config = SettlementConfig(engine_address=ENGINE)
        set_config(self.config)
        
        self.ledger = InMemoryLedger()
        for token in (TOKEN_A, TOKEN_B):
            self.ledger.register_token(token)
            self.ledger.mint(token, ALICE, 10_000)
            self.ledger.approve(token, ALICE, ENGINE, 5_000)
        self.ledger.credit_native(ALICE, 1_000)
        
        self.emitter = AuditEmitter()
        self.engine = SettlementEngine(self.ledger, emitter=self.emitter, config=self.config)
    
    def run(self):
        """Run all demo steps."""
        print("\n" + "=" * 70)
        print("BATCH SETTLEMENT - LOCAL DEMO")
        print("=" * 70)
        
        self.step("Single-token batch", lambda: self.engine.simple_batch_transfer_token(
            ALICE, TOKEN_A, [BOB, CAROL], [500, 1500],
        ))
        self.step("Single-token batch, allowance checked", lambda: self.engine.batch_transfer_token(
            ALICE, TOKEN_A, [BOB, CAROL], [4000, 4000],
        ))
        self.step("Multi-token batch", lambda: self.engine.batch_transfer_multi_tokens(
            ALICE, [TOKEN_A, TOKEN_B], [BOB, CAROL], [1000, 1000],
        ))
        self.step("Native batch with refund", lambda: self.engine.batch_transfer(
            ALICE, [BOB, CAROL], [10, 0], value_supplied=25,
        ))
        self.step("Combined batch", lambda: self.engine.batch_transfer_combined(
            ALICE,
            tokens=[TOKEN_B],
            token_recipients=[BOB],
            token_amounts=[250],
            native_recipients=[CAROL],
            native_amounts=[40],
            value_supplied=40,
        ))
        self.step("Native batch with zero-address recipient", lambda: self.engine.batch_transfer(
            ALICE, [BOB, ZERO], [5, 5], value_supplied=10,
        ))
        
        self.print_balances()
        return self.results
    
    def step(self, name: str, settle) -> None:
        print(f"\n> {name}")
        try:
            outcome = settle()
        except SettlementError as e:
            print(f"   aborted: {e.reason.value} ({e.message})")
            self.results["steps"].append({"name": name, "success": False, **e.to_dict()})
            return
        
        print(f"   settled: {outcome.transfer_count} transfers, refund {outcome.refund}")
        self.results["steps"].append({"name": name, **outcome.to_dict()})
    
    def print_balances(self) -> None:
        print("\nFinal balances:")
        for label, owner in (("alice", ALICE), ("bob", BOB), ("carol", CAROL)):
            print(
                f"   {label:<6} "
                f"A={self.ledger.token(TOKEN_A).balance_of(owner):>6} "
                f"B={self.ledger.token(TOKEN_B).balance_of(owner):>6} "
                f"native={self.ledger.native.balance_of(owner):>5}"
            )


def main():
    parser = argparse.ArgumentParser(description="Run the local settlement demo")
    parser.add_argument("--output", help="Write step results as JSON to this file")
    parser.add_argument("--log-level", default="WARNING")
    args = parser.parse_args()
    
    setup_logging(args.log_level)
    results = DemoRunner().run()
    
    if args.output:
        Path(args.output).write_text(json.dumps(results, indent=2))
        print(f"\nResults saved to {args.output}")


if __name__ == "__main__":
    main()

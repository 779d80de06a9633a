#!/usr/bin/env python3
"""
Unified CLI for building smart contracts.

Usage:
    python -m contract_tools <command> [options]
    contract-tools <command> [options]

Commands:
    build       Build a contract (Rust crate, or Solidity sources with --solang)
    check       Check a contract for compilation errors

Examples:
    contract-tools build --release
    contract-tools build --manifest-path contracts/flipper/Cargo.toml --output-json
    contract-tools build --solang --solidity-filename flipper.sol -o build
    contract-tools check --features std
"""

from __future__ import annotations

import sys
from typing import Sequence


def cmd_build(args: list[str]) -> int:
    """Build a contract."""
    from contract_tools import build
    try:
        return build.main(args)
    except SystemExit as e:
        return e.code if isinstance(e.code, int) else 1


def cmd_check(args: list[str]) -> int:
    """Check a contract."""
    from contract_tools import check
    try:
        return check.main(args)
    except SystemExit as e:
        return e.code if isinstance(e.code, int) else 1


COMMANDS = {
    "build": (cmd_build, "Build a contract (Rust crate, or Solidity sources with --solang)"),
    "check": (cmd_check, "Check a contract for compilation errors"),
}


def main(argv: Sequence[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv or argv[0] in ("-h", "--help"):
        print(__doc__)
        print("Available commands:")
        for name, (_, desc) in COMMANDS.items():
            print(f"  {name:12} {desc}")
        print("\nUse '<command> --help' for command-specific options.")
        return 0

    command = argv[0]
    args = argv[1:]

    if command not in COMMANDS:
        print(f"Unknown command: {command}")
        print(f"Available commands: {', '.join(COMMANDS.keys())}")
        return 1

    handler, _ = COMMANDS[command]
    return handler(args)


if __name__ == "__main__":
    sys.exit(main())

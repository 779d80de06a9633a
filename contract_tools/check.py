#!/usr/bin/env python3
"""
Check a smart contract for compilation errors.

Runs `cargo check` for the contract target in debug mode. No artifacts are
produced and no optimization or validation is performed.
"""

from __future__ import annotations

import argparse
import sys
from typing import Sequence

from contract_tools import pipeline
from contract_tools.build import add_common_arguments, run
from contract_tools.shared.types import (
    BuildArtifacts,
    BuildMode,
    ExecuteArgs,
    Features,
    ManifestPath,
    Network,
    OptimizationPasses,
    OutputType,
    Target,
    UnstableFlags,
    VerbosityFlags,
)


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="contract-tools check",
        description=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    add_common_arguments(parser)
    return parser


def parse_args(argv: Sequence[str] | None = None) -> ExecuteArgs:
    """Parse command line arguments into pipeline arguments for a check-only build."""
    ns = create_parser().parse_args(argv)
    return ExecuteArgs(
        manifest_path=ManifestPath.from_option(ns.manifest_path),
        verbosity=VerbosityFlags(quiet=ns.quiet, verbose=ns.verbose).to_verbosity(),
        build_mode=BuildMode.DEBUG,
        features=Features.from_values(ns.features),
        network=Network.ONLINE,
        build_artifact=BuildArtifacts.CHECK_ONLY,
        unstable_flags=UnstableFlags.from_options(ns.unstable_options),
        optimization_passes=OptimizationPasses.ZERO,
        keep_debug_symbols=False,
        lint=False,
        output_type=OutputType.HUMAN_READABLE,
        skip_wasm_validation=False,
        target=ns.target or Target.WASM,
        max_memory_pages=0,
    )


def main(argv: Sequence[str] | None = None) -> int:
    return run(lambda: pipeline.execute(parse_args(argv)))


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""
Build a smart contract.

By default the contract crate at --manifest-path is compiled to a Wasm binary
ready for deployment: `cargo build` for the contract target, followed by
validation and wasm-opt post processing.

With --solang, the Solidity sources given via --solidity-filename are compiled
with the external Solang compiler instead.

Defaults can be set in a contract-build.yaml file in the project root; CLI
arguments always take precedence.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Callable, Sequence

from contract_tools import pipeline, solidity
from contract_tools.shared.config import (
    BuildConfig,
    load_project_config,
    read_manifest_optimization_passes,
)
from contract_tools.shared.errors import ConfigurationError, ContractToolsError
from contract_tools.shared.types import (
    DEFAULT_MAX_MEMORY_PAGES,
    BuildArtifacts,
    BuildMode,
    BuildOptions,
    BuildResult,
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


def _parsed_by(parse: Callable[[str], object]) -> Callable[[str], object]:
    """Adapt a ``parse`` classmethod into an argparse ``type``."""

    def convert(value: str) -> object:
        try:
            return parse(value)
        except ConfigurationError as e:
            raise argparse.ArgumentTypeError(str(e)) from e

    return convert


def _bounded_int(maximum: int) -> Callable[[str], int]:
    def convert(value: str) -> int:
        try:
            number = int(value)
        except ValueError:
            raise argparse.ArgumentTypeError(f"invalid integer '{value}'") from None
        if not 0 <= number <= maximum:
            raise argparse.ArgumentTypeError(f"{number} is out of range 0..{maximum}")
        return number

    return convert


u8 = _bounded_int(0xFF)
u32 = _bounded_int(0xFFFF_FFFF)


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    """Arguments shared by the build and check commands."""
    parser.add_argument(
        "--manifest-path",
        type=Path,
        help="Path to the Cargo.toml of the contract to build",
    )
    verbosity = parser.add_argument_group("verbosity")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="No output printed to stdout")
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Use verbose output")
    parser.add_argument(
        "--features",
        action="append",
        default=[],
        help="Space or comma separated list of features to activate",
    )
    parser.add_argument(
        "-Z",
        "--unstable-options",
        action="append",
        default=[],
        metavar="OPTION",
        help="Unstable options (supported: original-manifest)",
    )
    parser.add_argument(
        "--target",
        type=_parsed_by(Target.parse),
        default=None,
        help="Which bytecode to build the contract into (wasm, riscv; default: wasm)",
    )


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="contract-tools build",
        description=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    add_common_arguments(parser)
    parser.add_argument(
        "--release",
        dest="build_release",
        action="store_true",
        help="Build without debug functionality; production contracts should always use this",
    )
    parser.add_argument("--offline", dest="build_offline", action="store_true", help="Build offline")
    parser.add_argument(
        "--lint",
        action="store_true",
        help="Perform linting checks during the build process",
    )
    parser.add_argument(
        "--generate",
        dest="build_artifact",
        type=_parsed_by(BuildArtifacts.parse),
        default=BuildArtifacts.ALL,
        metavar="{all,code-only,check-only}",
        help="Which build artifacts to generate (default: all)",
    )
    parser.add_argument(
        "--optimization-passes",
        type=_parsed_by(OptimizationPasses.parse),
        default=None,
        metavar="{0,1,2,3,4,s,z}",
        help="Number of optimization passes passed to wasm-opt (default: z)",
    )
    parser.add_argument(
        "--keep-debug-symbols",
        action="store_true",
        help="Do not remove symbols (Wasm name section) when optimizing",
    )
    parser.add_argument(
        "--output-json",
        action="store_true",
        help="Export the build output in JSON format",
    )
    parser.add_argument(
        "--skip-wasm-validation",
        action="store_true",
        help="Don't perform wasm validation checks",
    )
    parser.add_argument(
        "--max-memory-pages",
        type=u32,
        default=None,
        help=f"Maximum number of pages a wasm contract may allocate (default: {DEFAULT_MAX_MEMORY_PAGES})",
    )
    parser.add_argument(
        "--config",
        dest="config_path",
        type=Path,
        default=None,
        help="Project config file (default: contract-build.yaml in the project root)",
    )

    solang = parser.add_argument_group("solang", "Build Solidity sources with Solang")
    solang.add_argument(
        "--solang",
        action="store_true",
        help="Only build the given .sol Solidity files using Solang",
    )
    solang.add_argument(
        "--solidity-filename",
        nargs="+",
        action="extend",
        default=[],
        metavar="FILE",
        help="Solidity source file(s) to compile",
    )
    solang.add_argument("--emit", help="Emit compiler state at early stage")
    solang.add_argument("--contract", help="Only compile the contracts with these names")
    solang.add_argument("--no-constant-folding", action="store_true")
    solang.add_argument("--no-strength-reduce", action="store_true")
    solang.add_argument("-O", "--optimizer-level", help="Solang optimizer level")
    solang.add_argument("--no-dead-storage", action="store_true")
    solang.add_argument("--address-length", type=u8)
    solang.add_argument("--no-vector-to-slice", action="store_true")
    solang.add_argument("--no-cse", action="store_true")
    solang.add_argument("--value-length", type=u8)
    solang.add_argument("--standard-json", action="store_true")
    solang.add_argument("-o", "--output", help="Output directory")
    solang.add_argument("--output-meta", help="Output directory for metadata")
    solang.add_argument(
        "-I",
        "--importpath",
        dest="import_path",
        action="append",
        default=[],
        help="Directory to search for Solidity imports (repeatable)",
    )
    solang.add_argument(
        "-m",
        "--importmap",
        dest="import_map",
        action="append",
        default=[],
        help="Map a Solidity import path, e.g. map=path (repeatable)",
    )
    solang.add_argument("--no-log-api-return-codes", action="store_true")
    solang.add_argument("--no-log-runtime-errors", action="store_true")
    solang.add_argument("--no-print", action="store_true")
    return parser


def project_root_for(manifest_path: Path | None, cwd: Path) -> Path:
    if manifest_path is None:
        return cwd
    parent = manifest_path.parent
    return parent if parent.is_absolute() else cwd / parent


def apply_config(namespace: argparse.Namespace, config: BuildConfig) -> argparse.Namespace:
    """Fill arguments the user left unset from the project config."""
    merged = argparse.Namespace(**vars(namespace))
    if merged.optimization_passes is None:
        merged.optimization_passes = config.build.optimization_passes
    if merged.max_memory_pages is None:
        merged.max_memory_pages = config.build.max_memory_pages
    if merged.target is None:
        merged.target = config.build.target
    if not merged.features:
        merged.features = list(config.build.features)
    if not merged.import_path:
        merged.import_path = list(config.solang.import_path)
    if not merged.import_map:
        merged.import_map = list(config.solang.import_map)
    if merged.optimizer_level is None:
        merged.optimizer_level = config.solang.optimizer_level
    if merged.output is None:
        merged.output = config.solang.output
    merged.solang_binary = config.solang.binary
    return merged


def parse_options(argv: Sequence[str] | None = None, *, cwd: Path | None = None) -> BuildOptions:
    """Parse command line arguments into a BuildOptions record."""
    namespace = create_parser().parse_args(argv)
    cwd = cwd or Path.cwd()
    config = load_project_config(
        project_root_for(namespace.manifest_path, cwd),
        namespace.config_path,
    )
    ns = apply_config(namespace, config)

    return BuildOptions(
        manifest_path=ns.manifest_path,
        build_release=ns.build_release,
        build_offline=ns.build_offline,
        lint=ns.lint,
        build_artifact=ns.build_artifact,
        features=Features.from_values(ns.features),
        verbosity=VerbosityFlags(quiet=ns.quiet, verbose=ns.verbose),
        unstable_options=tuple(ns.unstable_options),
        optimization_passes=ns.optimization_passes,
        keep_debug_symbols=ns.keep_debug_symbols,
        output_json=ns.output_json,
        skip_wasm_validation=ns.skip_wasm_validation,
        target=ns.target or Target.WASM,
        max_memory_pages=(
            ns.max_memory_pages if ns.max_memory_pages is not None else DEFAULT_MAX_MEMORY_PAGES
        ),
        config_path=config.source,
        solang=ns.solang,
        emit=ns.emit,
        contract=ns.contract,
        no_constant_folding=ns.no_constant_folding,
        no_strength_reduce=ns.no_strength_reduce,
        optimizer_level=ns.optimizer_level,
        no_dead_storage=ns.no_dead_storage,
        address_length=ns.address_length,
        no_vector_to_slice=ns.no_vector_to_slice,
        no_cse=ns.no_cse,
        value_length=ns.value_length,
        standard_json=ns.standard_json,
        output=ns.output,
        output_meta=ns.output_meta,
        import_path=tuple(ns.import_path),
        import_map=tuple(ns.import_map),
        no_log_api_return_codes=ns.no_log_api_return_codes,
        no_log_runtime_errors=ns.no_log_runtime_errors,
        no_print=ns.no_print,
        solidity_filename=tuple(ns.solidity_filename),
        solang_binary=ns.solang_binary,
    )


def execute_args(options: BuildOptions) -> ExecuteArgs:
    """Normalize options for the native build pipeline."""
    manifest_path = ManifestPath.from_option(options.manifest_path)
    optimization_passes = options.optimization_passes
    if optimization_passes is None:
        optimization_passes = read_manifest_optimization_passes(manifest_path.path)

    return ExecuteArgs(
        manifest_path=manifest_path,
        verbosity=options.resolved_verbosity(),
        build_mode=BuildMode.from_release_flag(options.build_release),
        features=options.features,
        network=Network.from_offline_flag(options.build_offline),
        build_artifact=options.build_artifact,
        unstable_flags=UnstableFlags.from_options(list(options.unstable_options)),
        optimization_passes=optimization_passes,
        keep_debug_symbols=options.keep_debug_symbols,
        lint=options.lint,
        output_type=options.output_type(),
        skip_wasm_validation=options.skip_wasm_validation,
        target=options.target,
        max_memory_pages=options.max_memory_pages,
    )


def execute(options: BuildOptions, *, project_root: Path | None = None) -> BuildResult:
    """Run exactly one of the Solidity or native builds, selected by ``--solang``."""
    if options.solang:
        if not options.solidity_filename:
            raise ConfigurationError(
                "Unable to find solidity_filename: pass --solidity-filename <file.sol>"
            )
        if options.resolved_verbosity().shows_info():
            print("Processing Solang")
        return solidity.build_solidity_contract(options, project_root)

    return pipeline.execute(execute_args(options))


def print_result(result: BuildResult) -> None:
    if result.output_type is OutputType.JSON:
        print(result.serialize_json())
    elif result.verbosity.shows_info():
        print(result.display())


def run(build: Callable[[], BuildResult]) -> int:
    """Run ``build``, printing its result or rendering its error."""
    try:
        result = build()
    except ContractToolsError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\n\nBuild interrupted.", file=sys.stderr)
        return 130

    print_result(result)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    return run(lambda: execute(parse_options(argv)))


if __name__ == "__main__":
    sys.exit(main())

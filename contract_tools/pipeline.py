"""
Native contract build pipeline.

Drives the Rust toolchain for a contract crate:
1. Optionally lint the crate (cargo clippy)
2. Compile for the contract target (cargo build / cargo check)
3. Validate the produced wasm binary
4. Optimize the binary with wasm-opt when it is available

Metadata generation and bundling are not performed here.
"""

from __future__ import annotations

import os
import shutil
import subprocess
import sys
import tomllib
from pathlib import Path

from contract_tools.shared.errors import BuildError, PathError
from contract_tools.shared.types import (
    BuildArtifacts,
    BuildMode,
    BuildResult,
    ExecuteArgs,
    Network,
    OptimizationPasses,
    OptimizationResult,
    Target,
    Verbosity,
)

WASM_MAGIC = b"\0asm"
WASM_PAGE_SIZE = 64 * 1024
STACK_SIZE = 64 * 1024
DEFAULT_OPTIMIZATION_PASSES = OptimizationPasses.Z


def run_command(
    command: list[str],
    cwd: Path | None = None,
    *,
    check: bool = True,
    capture: bool = False,
    env: dict[str, str] | None = None,
    verbosity: Verbosity = Verbosity.DEFAULT,
) -> subprocess.CompletedProcess:
    """Run a command with proper error handling."""
    if verbosity.shows_info():
        print(f"\n$ {' '.join(str(c) for c in command)}")
    full_env = {**os.environ, **(env or {})}
    try:
        return subprocess.run(
            command,
            cwd=cwd,
            check=check,
            capture_output=capture,
            text=True,
            env=full_env,
        )
    except subprocess.CalledProcessError as e:
        if capture and e.stderr:
            print(e.stderr, file=sys.stderr)
        raise BuildError(f"Command failed: {' '.join(str(c) for c in command)}") from e
    except FileNotFoundError as e:
        raise BuildError(f"Command not found: {e.filename}") from e


def read_crate_name(manifest_path: Path) -> str:
    """Return the library name cargo will give the compiled contract."""
    try:
        with manifest_path.open("rb") as f:
            data = tomllib.load(f)
    except OSError as e:
        raise PathError(f"Failed to read manifest: {e}", str(manifest_path)) from e
    except tomllib.TOMLDecodeError as e:
        raise BuildError(f"Invalid manifest {manifest_path}: {e}") from e

    name = data.get("lib", {}).get("name") or data.get("package", {}).get("name")
    if not name:
        raise BuildError(f"No package name found in {manifest_path}")
    return name.replace("-", "_")


def rustflags(args: ExecuteArgs) -> str:
    """Linker flags for the contract target."""
    if args.target is not Target.WASM:
        return ""
    flags = [
        f"-C link-arg=-zstack-size={STACK_SIZE}",
        "-C link-arg=--import-memory",
    ]
    if args.max_memory_pages:
        flags.append(f"-C link-arg=--max-memory={args.max_memory_pages * WASM_PAGE_SIZE}")
    return " ".join(flags)


def cargo_command(args: ExecuteArgs, target_dir: Path) -> list[str]:
    """Assemble the cargo invocation for the requested artifacts."""
    subcommand = "check" if args.build_artifact is BuildArtifacts.CHECK_ONLY else "build"
    command = [
        "cargo",
        subcommand,
        "--manifest-path",
        str(args.manifest_path.path),
        "--target",
        args.target.llvm_target,
        "--target-dir",
        str(target_dir),
    ]
    command.extend(args.features.cargo_args())
    if args.build_mode is BuildMode.RELEASE:
        command.append("--release")
    if args.network is Network.OFFLINE:
        command.append("--offline")
    if args.verbosity is Verbosity.QUIET:
        command.append("--quiet")
    elif args.verbosity is Verbosity.VERBOSE:
        command.append("--verbose")
    return command


def lint(args: ExecuteArgs, target_dir: Path) -> None:
    """Run clippy over the contract crate, failing on warnings."""
    command = [
        "cargo",
        "clippy",
        "--manifest-path",
        str(args.manifest_path.path),
        "--target",
        args.target.llvm_target,
        "--target-dir",
        str(target_dir),
    ]
    command.extend(args.features.cargo_args())
    command.extend(["--", "-D", "warnings"])
    run_command(command, cwd=args.manifest_path.absolute_directory(), verbosity=args.verbosity)


def validate_wasm(path: Path) -> None:
    """Check that ``path`` holds a wasm module."""
    with path.open("rb") as f:
        magic = f.read(len(WASM_MAGIC))
    if magic != WASM_MAGIC:
        raise BuildError(f"{path} is not a valid wasm module")


def optimize_wasm(
    dest_wasm: Path,
    passes: OptimizationPasses,
    *,
    keep_debug_symbols: bool = False,
    verbosity: Verbosity = Verbosity.DEFAULT,
) -> OptimizationResult | None:
    """Optimize ``dest_wasm`` in place using wasm-opt.

    Returns ``None`` when optimization is disabled or wasm-opt is missing.
    """
    if passes is OptimizationPasses.ZERO:
        return None

    wasm_opt = shutil.which("wasm-opt")
    if wasm_opt is None:
        print(
            "Warning: wasm-opt not found on PATH, skipping optimization",
            file=sys.stderr,
        )
        return None

    original_size = dest_wasm.stat().st_size / 1000.0
    optimized = dest_wasm.with_suffix(".optimized.wasm")
    command = [wasm_opt, str(dest_wasm), passes.to_wasm_opt_flag(), "-o", str(optimized)]
    if keep_debug_symbols:
        command.append("-g")
    run_command(command, verbosity=verbosity)

    optimized.replace(dest_wasm)
    return OptimizationResult(
        dest_wasm=dest_wasm,
        original_size=original_size,
        optimized_size=dest_wasm.stat().st_size / 1000.0,
    )


def execute(args: ExecuteArgs) -> BuildResult:
    """Build the contract described by ``args`` and report the produced artifacts."""
    manifest = args.manifest_path
    if not manifest.path.is_file():
        raise PathError(f"Manifest file '{manifest}' does not exist", str(manifest))

    crate_dir = manifest.absolute_directory()
    target_dir = crate_dir / "target" / "ink"

    if args.lint:
        lint(args, target_dir)

    env = {}
    flags = rustflags(args)
    if flags:
        env["RUSTFLAGS"] = flags
    run_command(
        cargo_command(args, target_dir),
        cwd=crate_dir,
        env=env,
        verbosity=args.verbosity,
    )

    if args.build_artifact is BuildArtifacts.CHECK_ONLY:
        return BuildResult(
            target_directory=target_dir,
            build_mode=args.build_mode,
            build_artifact=args.build_artifact,
            verbosity=args.verbosity,
            output_type=args.output_type,
        )

    crate_name = read_crate_name(manifest.path)
    profile = "release" if args.build_mode is BuildMode.RELEASE else "debug"
    built = target_dir / args.target.llvm_target / profile / f"{crate_name}.wasm"
    if args.target is Target.RISCV:
        built = built.with_suffix("")
    if not built.is_file():
        raise BuildError(f"Expected build output not found: {built}")

    dest_binary = target_dir / f"{crate_name}.{args.target.dest_extension}"
    shutil.copyfile(built, dest_binary)

    optimization_result = None
    if args.target is Target.WASM:
        if not args.skip_wasm_validation:
            validate_wasm(dest_binary)
        optimization_result = optimize_wasm(
            dest_binary,
            args.optimization_passes or DEFAULT_OPTIMIZATION_PASSES,
            keep_debug_symbols=args.keep_debug_symbols,
            verbosity=args.verbosity,
        )

    return BuildResult(
        target_directory=target_dir,
        build_mode=args.build_mode,
        build_artifact=args.build_artifact,
        verbosity=args.verbosity,
        output_type=args.output_type,
        dest_wasm=dest_binary,
        optimization_result=optimization_result,
    )

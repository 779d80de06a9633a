"""
Solidity contract builds through the external Solang compiler.

The compiler is spawned directly with a discrete argument list (no
intermediate shell), from the canonical project root. Its exit status is
checked: a nonzero status is reported as a CompilerError rather than a
successful build.
"""

from __future__ import annotations

import shlex
import shutil
import subprocess
import sys
import time
from pathlib import Path
from typing import Sequence

from contract_tools.shared.errors import (
    CompilerError,
    ConfigurationError,
    PathError,
    SpawnError,
)
from contract_tools.shared.types import (
    SOLIDITY_EXTENSION,
    BuildArtifacts,
    BuildMode,
    BuildOptions,
    BuildResult,
    Verbosity,
)

SOLANG_BINARY = "solang"
SOLANG_SUBCOMMAND = "compile"
# Solang refuses to compile without an explicit target
SOLANG_TARGET = "substrate"
# Filesystem timestamps can lag behind time.time()
MTIME_SLACK = 1.0


def is_solidity_file(filename: str) -> bool:
    return Path(filename).suffix == f".{SOLIDITY_EXTENSION}"


def validate_solidity_files(filenames: Sequence[str], project_root: Path) -> list[Path]:
    """Canonicalize each Solidity source, checking it exists and ends in ``.sol``.

    Relative paths are taken relative to ``project_root``.

    Raises:
        ConfigurationError: If no source file was given.
        PathError: If a source is missing or has the wrong extension.
    """
    if not filenames:
        raise ConfigurationError(
            "Unable to find solidity_filename: pass --solidity-filename <file.sol>"
        )

    canonical: list[Path] = []
    for filename in filenames:
        message = (
            f"Unable to find file '{filename}' with Solidity file extension "
            "in the project root"
        )
        if not is_solidity_file(filename):
            raise PathError(message, filename)

        path = Path(filename)
        if not path.is_absolute():
            path = project_root / path
        try:
            resolved = path.resolve(strict=True)
        except OSError as e:
            raise PathError(message, filename) from e
        if not resolved.is_file():
            raise PathError(message, filename)
        canonical.append(resolved)
    return canonical


def resolve_output_dir(
    output_meta: str | None,
    output: str | None,
    cwd: Path | None = None,
) -> Path:
    """Pick the directory the compiler writes to.

    ``--output-meta`` wins over ``--output``; with neither, the canonical
    current directory is used.
    """
    if output_meta:
        return Path(output_meta)
    if output:
        return Path(output)
    return (cwd or Path.cwd()).resolve()


def probe_compiler(
    binary: str = SOLANG_BINARY,
    *,
    verbosity: Verbosity = Verbosity.DEFAULT,
) -> str | None:
    """Look up ``binary`` on PATH and report whether it was found.

    A missing binary is only a warning here; spawning it later raises SpawnError.
    """
    resolved = shutil.which(binary)
    if resolved is None:
        print(f"Warning: '{binary}' was not found on PATH", file=sys.stderr)
    elif verbosity.shows_info():
        print(f"Found {binary} at {resolved}")
    return resolved


def _flag(tokens: list[str], name: str, enabled: bool) -> None:
    if enabled:
        tokens.append(name)


def _option(tokens: list[str], name: str, value: object | None) -> None:
    if value is not None:
        tokens.extend([name, str(value)])


def assemble_command(options: BuildOptions, binary: str | None = None) -> list[str]:
    """Translate build options into the Solang argument list.

    The order of the arguments is fixed so identical options always give an
    identical command.
    """
    tokens = [binary or options.solang_binary, SOLANG_SUBCOMMAND]
    _option(tokens, "--emit", options.emit)
    _option(tokens, "--contract", options.contract)
    _flag(tokens, "--no-constant-folding", options.no_constant_folding)
    _flag(tokens, "--no-strength-reduce", options.no_strength_reduce)
    _option(tokens, "-O", options.optimizer_level)
    _flag(tokens, "--no-dead-storage", options.no_dead_storage)
    _option(tokens, "--target", SOLANG_TARGET)
    _option(tokens, "--address-length", options.address_length)
    _flag(tokens, "--no-vector-to-slice", options.no_vector_to_slice)
    _flag(tokens, "--no-cse", options.no_cse)
    _option(tokens, "--value-length", options.value_length)
    _flag(tokens, "--standard-json", options.standard_json)
    _flag(tokens, "--verbose", options.resolved_verbosity() is Verbosity.VERBOSE)
    _option(tokens, "--output", options.output)
    _option(tokens, "--output-meta", options.output_meta)
    for import_path in options.import_path:
        _option(tokens, "-I", import_path)
    for import_map in options.import_map:
        _option(tokens, "-m", import_map)
    _flag(tokens, "--no-log-api-return-codes", options.no_log_api_return_codes)
    _flag(tokens, "--no-log-runtime-errors", options.no_log_runtime_errors)
    _flag(tokens, "--no-print", options.no_print)
    _flag(tokens, "--release", options.build_release)
    tokens.extend(options.solidity_filename)
    return tokens


def format_command(command: Sequence[str]) -> str:
    """Render an argument list as a single shell-quoted line."""
    return shlex.join(command)


def find_newest_artifact(output_dir: Path, since: float) -> Path | None:
    """Return the most recently written wasm file in ``output_dir`` since ``since``."""
    if not output_dir.is_dir():
        return None
    candidates = [
        path
        for path in output_dir.glob("*.wasm")
        if path.is_file() and path.stat().st_mtime >= since
    ]
    if not candidates:
        return None
    return max(candidates, key=lambda path: (path.stat().st_mtime, path.name))


def build_solidity_contract(
    options: BuildOptions,
    project_root: Path | None = None,
    binary: str | None = None,
) -> BuildResult:
    """Compile the Solidity sources in ``options`` with Solang.

    ``binary`` overrides the compiler configured in ``options.solang_binary``.

    Raises:
        ConfigurationError: If no source file was given.
        PathError: If a source file is missing or not a ``.sol`` file.
        SpawnError: If the compiler could not be started.
        CompilerError: If the compiler exited with a nonzero status.
    """
    verbosity = options.resolved_verbosity()
    root = (project_root or Path.cwd()).resolve()
    sources = validate_solidity_files(options.solidity_filename, root)
    output_dir = resolve_output_dir(options.output_meta, options.output, root)
    if not output_dir.is_absolute():
        output_dir = root / output_dir
    # Solang writes the wasm to --output; --output-meta only receives metadata
    artifact_dir = root / (options.output or ".")

    binary = binary or options.solang_binary
    probe_compiler(binary, verbosity=verbosity)

    command = assemble_command(options, binary)
    if verbosity.shows_info():
        print(f"Compiling {len(sources)} Solidity file(s) with {binary}")
        print(f"\n$ {format_command(command)}")

    started = time.time() - MTIME_SLACK
    try:
        completed = subprocess.run(
            command,
            cwd=root,
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as e:
        raise SpawnError(binary, e.strerror or str(e)) from e

    # stdout stays empty when quiet, or reserved for the JSON document
    stream = sys.stdout if verbosity.shows_info() else sys.stderr
    if completed.stdout:
        print(completed.stdout, end="", file=stream)

    if completed.returncode != 0:
        raise CompilerError(binary, completed.returncode, completed.stderr or "")

    if completed.stderr and verbosity.shows_info():
        print(completed.stderr, end="", file=sys.stderr)

    return BuildResult(
        target_directory=output_dir,
        build_mode=BuildMode.from_release_flag(options.build_release),
        build_artifact=BuildArtifacts.ALL,
        # JSON output forces quiet, but the JSON document itself is still printed
        verbosity=Verbosity.DEFAULT if options.output_json else verbosity,
        output_type=options.output_type(),
        dest_wasm=find_newest_artifact(artifact_dir, since=started),
    )

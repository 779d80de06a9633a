"""Option and result records shared by the build commands."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from .errors import ConfigurationError, PathError

DEFAULT_MAX_MEMORY_PAGES = 16
MANIFEST_FILE = "Cargo.toml"
SOLIDITY_EXTENSION = "sol"


def _variant_name(member: Enum) -> str:
    """Render an enum member as its PascalCase variant name (``CODE_ONLY`` -> ``CodeOnly``)."""
    return "".join(part.capitalize() for part in member.name.split("_"))


class BuildMode(Enum):
    DEBUG = "debug"
    RELEASE = "release"

    @classmethod
    def from_release_flag(cls, release: bool) -> BuildMode:
        return cls.RELEASE if release else cls.DEBUG


class Network(Enum):
    ONLINE = "online"
    OFFLINE = "offline"

    @classmethod
    def from_offline_flag(cls, offline: bool) -> Network:
        return cls.OFFLINE if offline else cls.ONLINE


class OutputType(Enum):
    HUMAN_READABLE = "human-readable"
    JSON = "json"

    @classmethod
    def from_json_flag(cls, output_json: bool) -> OutputType:
        return cls.JSON if output_json else cls.HUMAN_READABLE


class BuildArtifacts(Enum):
    """Which build artifacts to generate."""

    ALL = "all"
    CODE_ONLY = "code-only"
    CHECK_ONLY = "check-only"

    @classmethod
    def parse(cls, value: str) -> BuildArtifacts:
        try:
            return cls(value)
        except ValueError:
            choices = ", ".join(member.value for member in cls)
            raise ConfigurationError(
                f"Unknown build artifact '{value}' (expected one of: {choices})"
            ) from None


class OptimizationPasses(Enum):
    """Number of optimization passes handed to ``wasm-opt``."""

    ZERO = "0"
    ONE = "1"
    TWO = "2"
    THREE = "3"
    FOUR = "4"
    S = "s"
    Z = "z"

    @classmethod
    def parse(cls, value: str | int) -> OptimizationPasses:
        normalized = str(value).strip().lower()
        try:
            return cls(normalized)
        except ValueError:
            raise ConfigurationError(
                f"Unknown optimization passes '{value}' (expected 0-4, s or z)"
            ) from None

    def to_wasm_opt_flag(self) -> str:
        return f"-O{self.value}"


class Target(Enum):
    """Bytecode format the contract is compiled to."""

    WASM = "wasm"
    RISCV = "riscv"

    @classmethod
    def parse(cls, value: str) -> Target:
        try:
            return cls(value.lower())
        except ValueError:
            choices = ", ".join(member.value for member in cls)
            raise ConfigurationError(
                f"Unknown target '{value}' (expected one of: {choices})"
            ) from None

    @property
    def llvm_target(self) -> str:
        if self is Target.RISCV:
            return "riscv32em-unknown-none-elf"
        return "wasm32-unknown-unknown"

    @property
    def dest_extension(self) -> str:
        if self is Target.RISCV:
            return "polkavm"
        return "wasm"


class Verbosity(Enum):
    DEFAULT = "default"
    QUIET = "quiet"
    VERBOSE = "verbose"

    def shows_info(self) -> bool:
        """Whether informational output should be shown."""
        return self is not Verbosity.QUIET


@dataclass(frozen=True, slots=True)
class VerbosityFlags:
    quiet: bool = False
    verbose: bool = False

    def to_verbosity(self) -> Verbosity:
        if self.quiet and self.verbose:
            raise ConfigurationError("Cannot pass both --quiet and --verbose flags")
        if self.quiet:
            return Verbosity.QUIET
        if self.verbose:
            return Verbosity.VERBOSE
        return Verbosity.DEFAULT


@dataclass(frozen=True, slots=True)
class Features:
    """Cargo features to activate for the contract crate."""

    features: tuple[str, ...] = ()

    @classmethod
    def from_values(cls, values: list[str] | None) -> Features:
        # Each value may itself be a comma- or space-separated list
        collected: list[str] = []
        for value in values or []:
            for item in value.replace(",", " ").split():
                if item not in collected:
                    collected.append(item)
        return cls(tuple(collected))

    def cargo_args(self) -> list[str]:
        if not self.features:
            return []
        return ["--features", ",".join(self.features)]


@dataclass(frozen=True, slots=True)
class UnstableFlags:
    original_manifest: bool = False

    @classmethod
    def from_options(cls, options: list[str] | None) -> UnstableFlags:
        original_manifest = False
        for option in options or []:
            if option == "original-manifest":
                original_manifest = True
            else:
                raise ConfigurationError(f"Unknown unstable-option '{option}'")
        return cls(original_manifest=original_manifest)


@dataclass(frozen=True, slots=True)
class ManifestPath:
    """Path to a contract's ``Cargo.toml``."""

    path: Path

    @classmethod
    def from_option(cls, path: Path | str | None) -> ManifestPath:
        manifest = Path(path) if path is not None else Path(MANIFEST_FILE)
        if manifest.name != MANIFEST_FILE:
            raise PathError(
                f"Manifest file must be a {MANIFEST_FILE}, got '{manifest}'", str(manifest)
            )
        return cls(manifest)

    def directory(self) -> Path:
        return self.path.parent

    def absolute_directory(self) -> Path:
        return self.directory().resolve()

    def __str__(self) -> str:
        return str(self.path)


@dataclass(frozen=True)
class BuildOptions:
    """Every flag recognised by the ``build`` command, as parsed from the CLI."""

    manifest_path: Path | None = None
    build_release: bool = False
    build_offline: bool = False
    lint: bool = False
    build_artifact: BuildArtifacts = BuildArtifacts.ALL
    features: Features = field(default_factory=Features)
    verbosity: VerbosityFlags = field(default_factory=VerbosityFlags)
    unstable_options: tuple[str, ...] = ()
    optimization_passes: OptimizationPasses | None = None
    keep_debug_symbols: bool = False
    output_json: bool = False
    skip_wasm_validation: bool = False
    target: Target = Target.WASM
    max_memory_pages: int = DEFAULT_MAX_MEMORY_PAGES
    config_path: Path | None = None
    # Solang
    solang: bool = False
    emit: str | None = None
    contract: str | None = None
    no_constant_folding: bool = False
    no_strength_reduce: bool = False
    optimizer_level: str | None = None
    no_dead_storage: bool = False
    address_length: int | None = None
    no_vector_to_slice: bool = False
    no_cse: bool = False
    value_length: int | None = None
    standard_json: bool = False
    output: str | None = None
    output_meta: str | None = None
    import_path: tuple[str, ...] = ()
    import_map: tuple[str, ...] = ()
    no_log_api_return_codes: bool = False
    no_log_runtime_errors: bool = False
    no_print: bool = False
    solidity_filename: tuple[str, ...] = ()
    solang_binary: str = "solang"

    def output_type(self) -> OutputType:
        return OutputType.from_json_flag(self.output_json)

    def resolved_verbosity(self) -> Verbosity:
        """Verbosity to use, forced to quiet when JSON output is requested.

        Keeps standard output limited to the structured result.
        """
        verbosity = self.verbosity.to_verbosity()
        if self.output_json:
            return Verbosity.QUIET
        return verbosity


@dataclass(frozen=True, slots=True)
class ExecuteArgs:
    """Normalized arguments for the native build pipeline."""

    manifest_path: ManifestPath
    verbosity: Verbosity = Verbosity.DEFAULT
    build_mode: BuildMode = BuildMode.DEBUG
    features: Features = field(default_factory=Features)
    network: Network = Network.ONLINE
    build_artifact: BuildArtifacts = BuildArtifacts.ALL
    unstable_flags: UnstableFlags = field(default_factory=UnstableFlags)
    optimization_passes: OptimizationPasses | None = None
    keep_debug_symbols: bool = False
    lint: bool = False
    output_type: OutputType = OutputType.HUMAN_READABLE
    skip_wasm_validation: bool = False
    target: Target = Target.WASM
    max_memory_pages: int = DEFAULT_MAX_MEMORY_PAGES


@dataclass(frozen=True, slots=True)
class OptimizationResult:
    dest_wasm: Path
    original_size: float
    optimized_size: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "dest_wasm": str(self.dest_wasm),
            "original_size": self.original_size,
            "optimized_size": self.optimized_size,
        }


@dataclass(frozen=True)
class BuildResult:
    """Outcome of a build, native or Solidity."""

    target_directory: Path
    build_mode: BuildMode
    build_artifact: BuildArtifacts
    verbosity: Verbosity
    output_type: OutputType
    dest_wasm: Path | None = None
    metadata_result: dict[str, Any] | None = None
    optimization_result: OptimizationResult | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "dest_wasm": str(self.dest_wasm) if self.dest_wasm is not None else None,
            "metadata_result": self.metadata_result,
            "target_directory": str(self.target_directory),
            "optimization_result": (
                self.optimization_result.to_dict()
                if self.optimization_result is not None
                else None
            ),
            "build_mode": _variant_name(self.build_mode),
            "build_artifact": _variant_name(self.build_artifact),
            "verbosity": _variant_name(self.verbosity),
        }

    def serialize_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    def display(self) -> str:
        lines: list[str] = []
        if self.optimization_result is not None:
            opt = self.optimization_result
            lines.append(
                f"Original wasm size: {opt.original_size:.1f}K, "
                f"Optimized: {opt.optimized_size:.1f}K"
            )
            lines.append("")

        if self.build_artifact is BuildArtifacts.CHECK_ONLY:
            lines.append("Your contract's code was built successfully.")
            return "\n".join(lines)

        if self.build_mode is BuildMode.DEBUG:
            lines.append(
                "EXPERIMENTAL: debug build. Use --release for a production contract."
            )
            lines.append("")

        lines.append(f"Your contract artifacts are ready. You can find them in:\n{self.target_directory}")
        lines.append("")
        if self.dest_wasm is not None:
            lines.append(f"  - {self.dest_wasm.name} (the contract's code)")
        if self.metadata_result:
            for label, key in (
                ("the contract's code and metadata", "dest_bundle"),
                ("the contract's metadata", "dest_metadata"),
            ):
                if self.metadata_result.get(key):
                    lines.append(f"  - {Path(self.metadata_result[key]).name} ({label})")
        return "\n".join(lines)

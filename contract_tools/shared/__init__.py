"""Shared types, errors and configuration for contract tools."""

from .errors import (
    BuildError,
    CompilerError,
    ConfigFileError,
    ConfigurationError,
    ContractToolsError,
    PathError,
    SpawnError,
)
from .types import (
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
    OptimizationResult,
    OutputType,
    Target,
    UnstableFlags,
    Verbosity,
    VerbosityFlags,
)
from .config import (
    BuildConfig,
    load_config,
    load_project_config,
    read_manifest_optimization_passes,
)

__all__ = [
    # Errors
    "BuildError",
    "CompilerError",
    "ConfigFileError",
    "ConfigurationError",
    "ContractToolsError",
    "PathError",
    "SpawnError",
    # Types
    "DEFAULT_MAX_MEMORY_PAGES",
    "BuildArtifacts",
    "BuildMode",
    "BuildOptions",
    "BuildResult",
    "ExecuteArgs",
    "Features",
    "ManifestPath",
    "Network",
    "OptimizationPasses",
    "OptimizationResult",
    "OutputType",
    "Target",
    "UnstableFlags",
    "Verbosity",
    "VerbosityFlags",
    # Configuration
    "BuildConfig",
    "load_config",
    "load_project_config",
    "read_manifest_optimization_passes",
]

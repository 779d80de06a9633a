"""Project configuration loading.

Two sources feed defaults into the build commands:

1. A project config file, ``contract-build.yaml`` (or ``.contract-build.yaml``)
   next to the contract, or an explicit ``--config`` path.
2. The ``[package.metadata.contract]`` table of the contract's ``Cargo.toml``.

CLI arguments always take precedence over both.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigFileError, ConfigurationError
from .types import OptimizationPasses, Target

CONFIG_FILENAMES = ("contract-build.yaml", ".contract-build.yaml")

KNOWN_KEYS: dict[str, frozenset[str]] = {
    "build": frozenset({"optimization_passes", "max_memory_pages", "target", "features"}),
    "solang": frozenset({"binary", "import_path", "import_map", "optimizer_level", "output"}),
}


@dataclass
class BuildSection:
    """Defaults for native builds."""

    optimization_passes: OptimizationPasses | None = None
    max_memory_pages: int | None = None
    target: Target | None = None
    features: list[str] = field(default_factory=list)


@dataclass
class SolangSection:
    """Defaults for the Solidity compiler."""

    binary: str = "solang"
    import_path: list[str] = field(default_factory=list)
    import_map: list[str] = field(default_factory=list)
    optimizer_level: str | None = None
    output: str | None = None


@dataclass
class BuildConfig:
    build: BuildSection = field(default_factory=BuildSection)
    solang: SolangSection = field(default_factory=SolangSection)
    source: Path | None = None


def find_config_file(project_root: Path) -> Path | None:
    """Return the first config file present in ``project_root``, if any."""
    for name in CONFIG_FILENAMES:
        candidate = project_root / name
        if candidate.is_file():
            return candidate
    return None


def _as_list(value: Any, key: str, config_path: Path) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        return list(value)
    raise ConfigFileError(f"'{key}' must be a string or a list of strings", str(config_path))


def _parse_build_section(data: dict[str, Any], config_path: Path) -> BuildSection:
    section = BuildSection()
    try:
        if data.get("optimization_passes") is not None:
            section.optimization_passes = OptimizationPasses.parse(data["optimization_passes"])
        if data.get("target") is not None:
            section.target = Target.parse(str(data["target"]))
    except ConfigurationError as e:
        raise ConfigFileError(str(e), str(config_path)) from e

    pages = data.get("max_memory_pages")
    if pages is not None:
        if not isinstance(pages, int) or isinstance(pages, bool) or pages < 0:
            raise ConfigFileError(
                "'max_memory_pages' must be a non-negative integer", str(config_path)
            )
        section.max_memory_pages = pages

    section.features = _as_list(data.get("features"), "features", config_path)
    return section


def _parse_solang_section(data: dict[str, Any], config_path: Path) -> SolangSection:
    section = SolangSection()
    if data.get("binary"):
        section.binary = str(data["binary"])
    section.import_path = _as_list(data.get("import_path"), "import_path", config_path)
    section.import_map = _as_list(data.get("import_map"), "import_map", config_path)
    if data.get("optimizer_level") is not None:
        section.optimizer_level = str(data["optimizer_level"])
    if data.get("output") is not None:
        section.output = str(data["output"])
    return section


def load_config(config_path: Path) -> BuildConfig:
    """Load and validate a project config file.

    Args:
        config_path: Path to the YAML config file.

    Returns:
        The parsed configuration.

    Raises:
        ConfigFileError: If the file cannot be read, parsed or validated.
    """
    try:
        content = config_path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigFileError(f"Failed to read config file: {e}", str(config_path)) from e

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigFileError(f"Invalid YAML: {e}", str(config_path)) from e

    if data is None:
        return BuildConfig(source=config_path)
    if not isinstance(data, dict):
        raise ConfigFileError("Config root must be a mapping", str(config_path))

    for section_name, section_data in data.items():
        if section_name not in KNOWN_KEYS:
            raise ConfigFileError(f"Unknown section '{section_name}'", str(config_path))
        if not isinstance(section_data, dict):
            raise ConfigFileError(f"Section '{section_name}' must be a mapping", str(config_path))
        unknown = set(section_data) - KNOWN_KEYS[section_name]
        if unknown:
            keys = ", ".join(sorted(unknown))
            raise ConfigFileError(f"Unknown key(s) in '{section_name}': {keys}", str(config_path))

    return BuildConfig(
        build=_parse_build_section(data.get("build") or {}, config_path),
        solang=_parse_solang_section(data.get("solang") or {}, config_path),
        source=config_path,
    )


def load_project_config(project_root: Path, explicit: Path | None = None) -> BuildConfig:
    """Load the explicit config file, or the one found in ``project_root``.

    Returns an empty configuration when no file is present.
    """
    if explicit is not None:
        if not explicit.is_file():
            raise ConfigFileError("Config file does not exist", str(explicit))
        return load_config(explicit)

    found = find_config_file(project_root)
    if found is None:
        return BuildConfig()
    return load_config(found)


def read_manifest_optimization_passes(manifest_path: Path) -> OptimizationPasses | None:
    """Read ``optimization-passes`` from ``[package.metadata.contract]`` in a Cargo.toml.

    A missing manifest or missing key yields ``None``; the pipeline reports
    missing manifests itself.
    """
    if not manifest_path.is_file():
        return None

    try:
        with manifest_path.open("rb") as f:
            data = tomllib.load(f)
    except OSError as e:
        raise ConfigFileError(f"Failed to read manifest: {e}", str(manifest_path)) from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigFileError(f"Invalid TOML: {e}", str(manifest_path)) from e

    table = data
    for key in ("package", "metadata", "contract"):
        table = table.get(key, {})
        if not isinstance(table, dict):
            raise ConfigFileError(f"'{key}' must be a table", str(manifest_path))
    value = table.get("optimization-passes")
    if value is None:
        return None

    try:
        return OptimizationPasses.parse(value)
    except ConfigurationError as e:
        raise ConfigFileError(str(e), str(manifest_path)) from e

"""Custom exceptions for contract tools."""

from __future__ import annotations


class ContractToolsError(Exception):
    """Base exception for all contract tool errors."""


class ConfigurationError(ContractToolsError):
    """Raised when flags are missing or contradict each other."""


class PathError(ContractToolsError):
    """Raised when a source or manifest path is unusable."""

    def __init__(self, message: str, path: str | None = None) -> None:
        self.path = path
        super().__init__(message)


class ConfigFileError(ContractToolsError):
    """Raised when a project config file cannot be read or is malformed."""

    def __init__(self, message: str, config_path: str | None = None) -> None:
        self.config_path = config_path
        full_message = f"{message}" if not config_path else f"[{config_path}] {message}"
        super().__init__(full_message)


class SpawnError(ContractToolsError):
    """Raised when an external binary cannot be started."""

    def __init__(self, binary: str, reason: str | None = None) -> None:
        self.binary = binary
        message = f"Failed to execute '{binary}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class CompilerError(ContractToolsError):
    """Raised when the external compiler exits with a nonzero status."""

    def __init__(self, binary: str, returncode: int, stderr: str = "") -> None:
        self.binary = binary
        self.returncode = returncode
        self.stderr = stderr
        message = f"'{binary}' exited with status {returncode}"
        detail = stderr.strip()
        if detail:
            message = f"{message}\n{detail}"
        super().__init__(message)


class BuildError(ContractToolsError):
    """Raised when a native build step fails."""

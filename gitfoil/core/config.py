"""
Configuration
=============

Frozen settings for the GitFoil core, with GITFOIL_* environment overrides.

Variables use a double underscore between section and field:

    GITFOIL_LOGGING__LEVEL=DEBUG
    GITFOIL_SECURITY__PBKDF2_ITERATIONS=1000000
    GITFOIL_PATHS__GIT_DIR=/repo/.git

Keys that look like secrets (password, token, salt, ...) are never taken
from the environment, and iteration counts are range-checked on load.
"""

from __future__ import annotations

import hashlib
import os
import warnings
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Final, Mapping, Optional

from gitfoil.security.constants import (
    KDF_ITERATIONS,
    KDF_MAX_ITERATIONS,
    KDF_MIN_ITERATIONS,
    KDF_RECOMMENDED_MIN_ITERATIONS,
    KEY_SUBDIRECTORY,
)

ENV_PREFIX: Final[str] = "GITFOIL"

_SECRET_MARKERS: Final[tuple[str, ...]] = (
    "password", "secret", "token", "private", "credential", "salt",
)

_LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class SecurityWarning(UserWarning):
    """Configuration is valid but weaker than recommended."""


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _as_level(value: str) -> str:
    return value.strip().upper()


@dataclass(frozen=True, slots=True)
class PathConfig:
    """
    Where key material lives.

    git_dir None means "ask git" (see utils.paths.RepositoryLocator).
    """

    git_dir: Optional[Path] = None
    key_subdirectory: str = KEY_SUBDIRECTORY

    def __post_init__(self) -> None:
        name = self.key_subdirectory
        if not name or any(sep in name for sep in ("/", "\\")):
            raise ValueError(f"Invalid key subdirectory: {name!r}")


@dataclass(frozen=True, slots=True)
class SecurityConfig:
    """
    Key derivation settings.

    pbkdf2_iterations applies to newly written master.key.enc files only;
    existing files carry their own count. run_self_test gates the backend
    check in GitFilter.from_config.
    """

    pbkdf2_iterations: int = KDF_ITERATIONS
    run_self_test: bool = True

    def __post_init__(self) -> None:
        count = self.pbkdf2_iterations
        if not KDF_MIN_ITERATIONS <= count <= KDF_MAX_ITERATIONS:
            raise ValueError(
                f"pbkdf2_iterations must be between {KDF_MIN_ITERATIONS} and {KDF_MAX_ITERATIONS}"
            )
        if count < KDF_RECOMMENDED_MIN_ITERATIONS:
            warnings.warn(
                f"pbkdf2_iterations={count} is below {KDF_RECOMMENDED_MIN_ITERATIONS}",
                SecurityWarning,
                stacklevel=3,
            )


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Console output always goes to stderr: stdout carries filter data."""

    level: str = "WARNING"
    format: str = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    date_format: str = "%H:%M:%S"
    enable_console: bool = True
    enable_file: bool = False
    log_file: Optional[Path] = None
    max_file_size_bytes: int = 10 * 1024 * 1024
    backup_count: int = 3

    def __post_init__(self) -> None:
        if self.level.upper() not in _LOG_LEVELS:
            raise ValueError(f"Invalid log level: {self.level}")
        if self.enable_file and self.log_file is None:
            raise ValueError("enable_file requires log_file")


@dataclass(frozen=True, slots=True)
class AppConfig:
    app_name: str = "GitFoil"
    version: str = "0.1.0"


# env key (after the prefix) -> (section, field, parser)
_OVERRIDES: Final[dict[str, tuple[str, str, Callable[[str], Any]]]] = {
    "paths.git_dir": ("paths", "git_dir", Path),
    "paths.key_subdirectory": ("paths", "key_subdirectory", str),
    "security.pbkdf2_iterations": ("security", "pbkdf2_iterations", int),
    "security.run_self_test": ("security", "run_self_test", _as_bool),
    "logging.level": ("logging", "level", _as_level),
    "logging.enable_console": ("logging", "enable_console", _as_bool),
    "logging.log_file": ("logging", "log_file", Path),
}


def env_overrides(prefix: str = ENV_PREFIX, environ: Optional[Mapping[str, str]] = None) -> dict[str, str]:
    """
    Collect "<PREFIX>_SECTION__FIELD" variables as {"section.field": value}.

    Secret-looking keys are dropped.
    """
    environ = os.environ if environ is None else environ
    head = f"{prefix.upper()}_"
    found: dict[str, str] = {}
    for name, value in environ.items():
        if not name.startswith(head):
            continue
        key = name[len(head):].lower().replace("__", ".")
        if any(marker in key for marker in _SECRET_MARKERS):
            continue
        found[key] = value
    return found


@dataclass(frozen=True, slots=True)
class FoilConfig:
    """
    Top-level configuration.

    Usage:
        config = FoilConfig.load()
        store = KeyringStore(git_dir, iterations=config.security.pbkdf2_iterations)
    """

    paths: PathConfig = field(default_factory=PathConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    app: AppConfig = field(default_factory=AppConfig)

    @classmethod
    def load(cls, env_prefix: str = ENV_PREFIX, environ: Optional[Mapping[str, str]] = None) -> FoilConfig:
        """
        Defaults with environment overrides applied.

        Unknown keys are ignored.

        Raises:
            ValueError: An override has an invalid value
        """
        sections: dict[str, dict[str, Any]] = {"paths": {}, "security": {}, "logging": {}}
        for key, raw in env_overrides(env_prefix, environ).items():
            target = _OVERRIDES.get(key)
            if target is None:
                continue
            section, name, parse = target
            sections[section][name] = parse(raw)

        if "log_file" in sections["logging"]:
            sections["logging"]["enable_file"] = True

        base = cls()
        return cls(
            paths=replace(base.paths, **sections["paths"]),
            security=replace(base.security, **sections["security"]),
            logging=replace(base.logging, **sections["logging"]),
        )

    @property
    def config_hash(self) -> str:
        """Short fingerprint of the effective settings, for log lines."""
        text = f"{self.paths}|{self.security}|{self.logging}|{self.app}"
        return hashlib.sha256(text.encode()).hexdigest()[:16]

    def __repr__(self) -> str:
        return f"FoilConfig(hash={self.config_hash}, app={self.app.app_name})"

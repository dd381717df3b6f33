"""Configuration management for template-kit.

Loads configuration from:
1. template-kit.toml (defaults)
2. Environment variables (overrides)

The resulting Config is built once and handed to the engine; nothing
downstream reads the process environment directly.
"""

import os
import shutil
import subprocess
import sys
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()

CONFIG_FILENAME = "template-kit.toml"


@dataclass
class EngineConfig:
    """Core engine configuration."""

    # Only disposables under this directory are ever removed
    temp_root: str = ""
    temp_prefix: str = "template-kit-"
    default_filters: list[str] = field(default_factory=lambda: ["!.git", "!node_modules"])
    meta_filenames: list[str] = field(
        default_factory=lambda: ["meta.py", "meta.yaml", "meta.yml", "meta.json"]
    )

    def resolved_temp_root(self) -> str:
        """Absolute temp root, falling back to the platform temp dir."""
        return os.path.realpath(self.temp_root or tempfile.gettempdir())


@dataclass
class NpmConfig:
    """npm registry and installer configuration."""

    command: str = "npm"
    registry_url: str = "https://registry.npmjs.org"
    global_modules_dir: str = ""  # empty = ask `npm root -g`
    install_args: list[str] = field(
        default_factory=lambda: ["install", "--no-audit", "--no-package-lock", "--production"]
    )


@dataclass
class GitConfig:
    """Git executable configuration."""

    command: str = "git"
    clone_depth: int = 1


@dataclass
class HttpConfig:
    """HTTP client configuration."""

    timeout: float = 60.0
    follow_redirects: bool = True


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"


@dataclass
class Config:
    """Main configuration container."""

    engine: EngineConfig = field(default_factory=EngineConfig)
    npm: NpmConfig = field(default_factory=NpmConfig)
    git: GitConfig = field(default_factory=GitConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Config":
        """Create Config from dictionary."""
        return cls(
            engine=EngineConfig(**data.get("engine", {})),
            npm=NpmConfig(**data.get("npm", {})),
            git=GitConfig(**data.get("git", {})),
            http=HttpConfig(**data.get("http", {})),
            logging=LoggingConfig(**data.get("logging", {})),
        )

    def global_modules_dir(self) -> Path | None:
        """Directory holding globally installed npm packages.

        Discovered with `npm root -g` the first time it is needed when not
        configured; the answer is cached on the config.
        """
        if not self.npm.global_modules_dir:
            self.npm.global_modules_dir = _discover_npm_root(self.npm.command) or ""
        if not self.npm.global_modules_dir:
            return None
        return Path(self.npm.global_modules_dir)


def _discover_npm_root(command: str) -> str | None:
    """Ask npm where global packages live."""
    executable = shutil.which(command)
    if not executable:
        return None
    try:
        result = subprocess.run(
            [executable, "root", "-g"],
            capture_output=True,
            text=True,
            check=True,
            timeout=30,
        )
    except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError):
        return None
    return result.stdout.strip() or None


def find_config_file() -> Path | None:
    """Find template-kit.toml in current or parent directories.

    Returns:
        Path to template-kit.toml or None if not found.
    """
    current = Path.cwd()

    for directory in [current, *current.parents]:
        config_path = directory / CONFIG_FILENAME
        if config_path.exists():
            return config_path

    return None


def load_config(config_path: Path | str | None = None) -> Config:
    """Load configuration from file and environment.

    Args:
        config_path: Optional explicit path to template-kit.toml

    Returns:
        Config object with merged settings.
    """
    # Start with defaults
    config_data: dict[str, Any] = {}

    # Load from file if available
    if config_path is None:
        config_path = find_config_file()

    if config_path is not None:
        path = Path(config_path)
        if path.exists():
            with open(path, "rb") as f:
                config_data = tomllib.load(f)

    # Apply environment variable overrides
    env_overrides = {
        "engine": {
            "temp_root": os.getenv("TEMPLATE_KIT_TEMP_DIR"),
        },
        "npm": {
            "command": os.getenv("TEMPLATE_KIT_NPM"),
            "registry_url": os.getenv("NPM_CONFIG_REGISTRY"),
            "global_modules_dir": os.getenv("GLOBAL_NPM_MODULES_DIR"),
        },
        "git": {
            "command": os.getenv("TEMPLATE_KIT_GIT"),
        },
        "http": {
            "timeout": _float_or_none(os.getenv("TEMPLATE_KIT_HTTP_TIMEOUT")),
        },
        "logging": {
            "level": os.getenv("LOG_LEVEL"),
        },
    }

    # Merge env overrides (only non-None values)
    for section, values in env_overrides.items():
        if section not in config_data:
            config_data[section] = {}
        for key, value in values.items():
            if value is not None:
                config_data[section][key] = value

    return Config.from_dict(config_data)


def _float_or_none(value: str | None) -> float | None:
    """Convert string to float, or return None."""
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


# Global config instance (lazy loaded)
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance.

    Returns:
        Config object (loaded once, cached).
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """Force reload of configuration.

    Returns:
        Fresh Config object.
    """
    global _config
    _config = load_config()
    return _config

"""Configuration for LeadFlow.

Settings come from LEADFLOW_* environment variables, then a .env file in
the working directory, then the defaults on ``Config``.

    LEADFLOW_LOG_PATH        directory for leadflow.log
    LEADFLOW_POLICY_PATH     JSON cadence policy used instead of the built-in one
    LEADFLOW_TEMPLATE_PATH   directory of *.txt.j2 / *.subject.j2 templates
    LEADFLOW_SENDER_NAME     advisor name signed on rendered messages
    LEADFLOW_DEBUG           true/1/yes/on for debug console logging

Usage:
    from leadflow.core.config import get_config, validate_config

    config = get_config()
    for issue in validate_config(config):
        print(f"Config issue: {issue}")
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

ENV_PREFIX = "LEADFLOW_"
DEFAULT_LOG_PATH = Path.home() / ".leadflow" / "logs"
TRUE_VALUES = frozenset({"true", "1", "yes", "on"})


@dataclass
class Config:
    """Runtime settings.

    Attributes:
        log_path: Directory for log files
        policy_path: JSON file holding the default cadence policy, if any
        template_path: Directory of message template overrides, if any
        sender_name: Advisor name used when rendering templates
        debug: Show debug output on the console
    """

    log_path: Path = field(default_factory=lambda: DEFAULT_LOG_PATH)
    policy_path: Optional[Path] = None
    template_path: Optional[Path] = None
    sender_name: Optional[str] = None
    debug: bool = False


def load_env_file(path: Path) -> dict[str, str]:
    """Read KEY=VALUE pairs from a .env file.

    Blank lines, ``#`` comments, lines without ``=`` and an optional
    ``export`` prefix are tolerated. Matching outer quotes are stripped.

    Returns:
        Parsed values, empty if the file does not exist
    """
    values: dict[str, str] = {}
    if not path.is_file():
        return values

    for raw in path.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if line.startswith("export "):
            line = line[len("export ") :].lstrip()
        if not line or line.startswith("#") or "=" not in line:
            continue

        key, _, value = line.partition("=")
        key, value = key.strip(), value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
            value = value[1:-1]
        if key:
            values[key] = value

    return values


class _Settings:
    """Environment-first lookup of LEADFLOW_* names over .env values."""

    def __init__(self, env_file_values: dict[str, str]):
        self._file = env_file_values

    def raw(self, name: str) -> Optional[str]:
        key = ENV_PREFIX + name
        return os.environ.get(key) or self._file.get(key) or None

    def path(self, name: str) -> Optional[Path]:
        value = self.raw(name)
        return Path(value).expanduser().resolve() if value else None

    def flag(self, name: str) -> bool:
        value = self.raw(name)
        return value is not None and value.strip().lower() in TRUE_VALUES


def load_config(env_file: Optional[Path] = None) -> Config:
    """Build a Config from the environment and a .env file.

    Args:
        env_file: .env file to read. Defaults to ./.env

    Returns:
        Loaded configuration
    """
    settings = _Settings(load_env_file(Path(env_file) if env_file else Path.cwd() / ".env"))

    return Config(
        log_path=settings.path("LOG_PATH") or DEFAULT_LOG_PATH,
        policy_path=settings.path("POLICY_PATH"),
        template_path=settings.path("TEMPLATE_PATH"),
        sender_name=settings.raw("SENDER_NAME"),
        debug=settings.flag("DEBUG"),
    )


def validate_config(config: Config) -> list[str]:
    """Check that configured paths are usable.

    The log directory is created if needed. A missing policy file or a
    template path that is not a directory makes commands fail, so those
    issues are prefixed with "CRITICAL:".

    Returns:
        List of issues (empty if valid)
    """
    issues: list[str] = []

    try:
        config.log_path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        issues.append(f"Cannot create log directory {config.log_path}: {e}")
    else:
        if not os.access(config.log_path, os.W_OK):
            issues.append(f"Log directory not writable: {config.log_path}")

    if config.policy_path is not None and not config.policy_path.is_file():
        issues.append(f"CRITICAL: {ENV_PREFIX}POLICY_PATH points to a missing file: {config.policy_path}")

    if config.template_path is not None and not config.template_path.is_dir():
        issues.append(f"CRITICAL: {ENV_PREFIX}TEMPLATE_PATH is not a directory: {config.template_path}")

    if not config.sender_name:
        issues.append(f"{ENV_PREFIX}SENDER_NAME not set. Templates will use a placeholder name.")

    return issues


_config: Optional[Config] = None


def get_config() -> Config:
    """Return the process-wide Config, loading it on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Forget the cached Config so the next get_config() reloads it."""
    global _config
    _config = None

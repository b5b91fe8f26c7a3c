"""branchkeeper configuration. Safe defaults; configs/branchkeeper.toml and env vars override."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore

logger = logging.getLogger("branchkeeper.config")

CONFIG_RELPATH = Path("configs") / "branchkeeper.toml"

DEFAULT_BRANCH_PREFIX = "claude/"
DEFAULT_BOT_NAME = "claude[bot]"
DEFAULT_BOT_EMAIL = "claude[bot]@users.noreply.github.com"
DEFAULT_TOKEN_SOURCE = "env"
DEFAULT_TOKEN_AUDIENCE = "branchkeeper"
DEFAULT_API_URL = "https://api.github.com"
DEFAULT_SERVER_URL = "https://github.com"
DEFAULT_HTTP_TIMEOUT = 30.0

# field name -> environment variable
_ENV_OVERRIDES = {
    "branch_prefix": "BRANCH_PREFIX",
    "bot_name": "BRANCHKEEPER_BOT_NAME",
    "bot_email": "BRANCHKEEPER_BOT_EMAIL",
    "token_source": "BRANCHKEEPER_TOKEN_SOURCE",
    "token_exchange_url": "BRANCHKEEPER_TOKEN_EXCHANGE_URL",
    "token_audience": "BRANCHKEEPER_TOKEN_AUDIENCE",
    "api_url": "GITHUB_API_URL",
    "server_url": "GITHUB_SERVER_URL",
}


@dataclass
class BranchkeeperConfig:
    branch_prefix: str = DEFAULT_BRANCH_PREFIX
    bot_name: str = DEFAULT_BOT_NAME
    bot_email: str = DEFAULT_BOT_EMAIL
    token_source: str = DEFAULT_TOKEN_SOURCE
    token_exchange_url: str = ""
    token_audience: str = DEFAULT_TOKEN_AUDIENCE
    api_url: str = DEFAULT_API_URL
    server_url: str = DEFAULT_SERVER_URL
    http_timeout: float = DEFAULT_HTTP_TIMEOUT


def _apply_toml(config: BranchkeeperConfig, config_path: Path) -> None:
    try:
        data = tomllib.loads(config_path.read_text())
    except (tomllib.TOMLDecodeError, OSError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", config_path, exc)
        return

    section = data.get("branchkeeper", {})
    for name in _ENV_OVERRIDES:
        value = section.get(name)
        if isinstance(value, str):
            setattr(config, name, value)
    if "http_timeout" in section:
        try:
            config.http_timeout = float(section["http_timeout"])
        except (TypeError, ValueError):
            pass


def load_config(repo_path: Path, env: Mapping[str, str] | None = None) -> BranchkeeperConfig:
    """Load config from configs/branchkeeper.toml and env vars. Safe defaults if missing."""
    env = os.environ if env is None else env
    config = BranchkeeperConfig()

    config_path = repo_path / CONFIG_RELPATH
    if config_path.exists():
        _apply_toml(config, config_path)

    # Env overrides. An empty BRANCH_PREFIX is meaningful, the others are not.
    for name, var in _ENV_OVERRIDES.items():
        if var not in env:
            continue
        if env[var] or name == "branch_prefix":
            setattr(config, name, env[var])
    if "BRANCHKEEPER_HTTP_TIMEOUT" in env:
        try:
            config.http_timeout = float(env["BRANCHKEEPER_HTTP_TIMEOUT"])
        except ValueError:
            pass

    config.api_url = config.api_url.rstrip("/")
    config.server_url = config.server_url.rstrip("/")
    return config

"""
hipc Configuration

Builds a single explicit configuration object at startup from, in order of
increasing precedence:
1. Built-in defaults
2. YAML config file (~/.hipc/config.yaml or --config)
3. .env file and environment variables (SUBSTRATE_*, HIPC_SECTION_KEY)
4. Command-line overrides

The object is passed into the identity store and the chain client factory;
nothing below the CLI reads the environment again.
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union
from urllib.parse import urlparse

import yaml
from dotenv import load_dotenv
from scalecodec.utils.ss58 import is_valid_ss58_address

from hipc.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = Path.home() / ".hipc" / "config.yaml"
DEFAULT_NODE_URL = "wss://rpc.hippius.network"
DEFAULT_RPC_URL = "https://rpc.hippius.network"
DEFAULT_SEED_PHRASE = "//Alice"
DEFAULT_KEYSTORE_DIR = "/opt/hippius/data/chains/hippius-mainnet/keystore/"
DEFAULT_HOTKEYS_DIR = str(Path.home() / "hippius" / "keystore" / "hotkeys")
DEFAULT_IPFS_CONFIG = "/zfs/ipfs/data/config"

COMPUTE_POOL_ADDRESS = "5EYCAe5j7t7RXEmC8rYDo9i4Z6tWLWf1SbncYcPTkRreCc58"
STORAGE_POOL_ADDRESS = "5EYCAe5j7t7RXEmC8qLjtLHVtXsw8pj56jCBZEZZM7x5ETVJ"

# Legacy variable names honoured alongside HIPC_* overrides
LEGACY_ENV_VARS = {
    "SUBSTRATE_NODE_URL": ("network", "node_url"),
    "SUBSTRATE_SEED_PHRASE": ("identity", "seed_phrase"),
}

ENV_PREFIX = "HIPC_"


@dataclass
class NetworkConfig:
    """Node endpoint settings"""
    node_url: str = DEFAULT_NODE_URL
    rpc_url: str = DEFAULT_RPC_URL
    ss58_format: int = 42
    timeout: float = 30.0

    def validate(self):
        """Validate network configuration"""
        parsed = urlparse(self.node_url)
        if parsed.scheme not in ("ws", "wss", "http", "https") or not parsed.netloc:
            raise ConfigurationError(f"Invalid node_url: {self.node_url!r}")
        parsed = urlparse(self.rpc_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConfigurationError(f"Invalid rpc_url: {self.rpc_url!r}")
        if not 0 <= self.ss58_format < 16384:
            raise ConfigurationError(f"Invalid ss58_format: {self.ss58_format}")
        if self.timeout <= 0:
            raise ConfigurationError(f"Invalid timeout: {self.timeout}. Must be > 0")


@dataclass
class IdentityConfig:
    """Keystore locations and the fallback signing seed"""
    seed_phrase: Optional[str] = DEFAULT_SEED_PHRASE
    keystore_dir: str = DEFAULT_KEYSTORE_DIR
    hotkeys_dir: str = DEFAULT_HOTKEYS_DIR

    def validate(self):
        """Validate identity configuration"""
        if not self.keystore_dir:
            raise ConfigurationError("keystore_dir cannot be empty")
        if not self.hotkeys_dir:
            raise ConfigurationError("hotkeys_dir cannot be empty")


@dataclass
class RewardsConfig:
    """Reward pool accounts, one per ranked node type"""
    compute_pool_address: str = COMPUTE_POOL_ADDRESS
    storage_pool_address: str = STORAGE_POOL_ADDRESS

    def validate(self):
        """Validate reward pool addresses"""
        for name in ("compute_pool_address", "storage_pool_address"):
            value = getattr(self, name)
            if not is_valid_ss58_address(value):
                raise ConfigurationError(f"Invalid {name}: {value!r}")


@dataclass
class LoggingConfig:
    """Logging configuration settings"""
    level: str = "WARNING"
    log_file: Optional[str] = None
    json: bool = True

    def validate(self):
        """Validate logging configuration"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.level.upper() not in valid_levels:
            raise ConfigurationError(f"Invalid log level: {self.level}. Must be one of {valid_levels}")


@dataclass
class IpfsConfig:
    """Local IPFS daemon settings"""
    config_path: str = DEFAULT_IPFS_CONFIG

    def validate(self):
        if not self.config_path:
            raise ConfigurationError("ipfs config_path cannot be empty")


_SECTIONS = {
    "network": NetworkConfig,
    "identity": IdentityConfig,
    "rewards": RewardsConfig,
    "logging": LoggingConfig,
    "ipfs": IpfsConfig,
}


@dataclass
class HipcConfig:
    """Complete client configuration"""
    network: NetworkConfig = field(default_factory=NetworkConfig)
    identity: IdentityConfig = field(default_factory=IdentityConfig)
    rewards: RewardsConfig = field(default_factory=RewardsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    ipfs: IpfsConfig = field(default_factory=IpfsConfig)

    def validate(self) -> "HipcConfig":
        self.network.validate()
        self.identity.validate()
        self.rewards.validate()
        self.logging.validate()
        self.ipfs.validate()
        return self

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def get_public_config(self) -> Dict[str, Any]:
        """Configuration safe for display (seed phrase redacted)."""
        data = self.to_dict()
        if data["identity"].get("seed_phrase"):
            data["identity"]["seed_phrase"] = "***"
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HipcConfig":
        unknown = set(data) - set(_SECTIONS)
        if unknown:
            raise ConfigurationError(f"Unknown configuration sections: {sorted(unknown)}")
        kwargs = {}
        for name, section_cls in _SECTIONS.items():
            section_data = data.get(name) or {}
            if not isinstance(section_data, dict):
                raise ConfigurationError(f"Configuration section '{name}' must be a mapping")
            try:
                kwargs[name] = section_cls(**section_data)
            except TypeError as exc:
                raise ConfigurationError(f"Invalid keys in section '{name}': {exc}") from exc
        return cls(**kwargs)


def _load_config_file(path: Path) -> Dict[str, Any]:
    """Load a YAML config file; a missing file yields an empty mapping."""
    if not path.exists():
        return {}
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Unable to read config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping.")
    return data


def _merge_configs(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge two configuration dictionaries"""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _merge_configs(result[key], value)
        else:
            result[key] = value
    return result


def _parse_env_value(value: str) -> Union[str, int, float, bool]:
    """Parse environment variable value to appropriate type"""
    if value.lower() in ("true", "yes", "on"):
        return True
    if value.lower() in ("false", "no", "off"):
        return False
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    return value


def _apply_env_variables(config: Dict[str, Any], environ: Dict[str, str]) -> Dict[str, Any]:
    """
    Apply environment variable overrides.

    HIPC_SECTION_KEY=value sets config[section][key]; the legacy
    SUBSTRATE_NODE_URL / SUBSTRATE_SEED_PHRASE names map onto their
    sections and lose to an explicit HIPC_* value.
    """
    result = {key: dict(value) if isinstance(value, dict) else value for key, value in config.items()}

    for env_name, (section, key) in LEGACY_ENV_VARS.items():
        value = environ.get(env_name, "").strip()
        if value:
            result.setdefault(section, {})[key] = value

    for env_name, value in environ.items():
        if not env_name.startswith(ENV_PREFIX):
            continue
        parts = env_name[len(ENV_PREFIX):].lower().split("_", 1)
        if len(parts) < 2 or parts[0] not in _SECTIONS:
            continue
        section, key = parts
        field_types = {name: f.type for name, f in _SECTIONS[section].__dataclass_fields__.items()}
        if key not in field_types:
            logger.debug("Ignoring unknown config override %s", env_name)
            continue
        parsed = value if "str" in str(field_types[key]) else _parse_env_value(value)
        result.setdefault(section, {})[key] = parsed

    return result


def load_config(
    config_file: Optional[Union[str, Path]] = None,
    cli_overrides: Optional[Dict[str, Any]] = None,
    environ: Optional[Dict[str, str]] = None,
    load_env_file: bool = True,
) -> HipcConfig:
    """
    Build and validate the client configuration.

    Args:
        config_file: Explicit YAML file; defaults to ~/.hipc/config.yaml
        cli_overrides: Dot-notation overrides, e.g. {"network.node_url": "..."}
        environ: Environment mapping (defaults to os.environ)
        load_env_file: Whether to load a .env file into the process environment first

    Returns:
        Validated HipcConfig
    """
    if load_env_file:
        load_dotenv()
    env = dict(os.environ if environ is None else environ)

    path = Path(config_file).expanduser() if config_file else DEFAULT_CONFIG_FILE
    if config_file and not path.exists():
        raise ConfigurationError(f"Config file {path} not found")

    merged = _merge_configs(HipcConfig().to_dict(), _load_config_file(path))
    merged = _apply_env_variables(merged, env)

    for key, value in (cli_overrides or {}).items():
        if value is None:
            continue
        section, _, config_key = key.partition(".")
        if not config_key:
            raise ConfigurationError(f"Override '{key}' must use section.key notation")
        merged.setdefault(section, {})[config_key] = value

    config = HipcConfig.from_dict(merged).validate()
    logger.debug(
        "Configuration loaded",
        extra={"event": "config.loaded", "config_file": str(path), "node_url": config.network.node_url},
    )
    return config

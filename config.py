"""
Configuration Management Module

Builds the run configuration once at startup from, in increasing priority:
built-in defaults, an optional YAML file, an optional ``.env`` file and the
process environment. The resulting Config is passed explicitly to the
driver and orchestrator.
"""

import os
from pathlib import Path
from decimal import Decimal, InvalidOperation
from typing import Dict, Any, List, Optional, Union
from dataclasses import dataclass, asdict, field

import yaml
from dotenv import load_dotenv

from utils import UINT256_DIGITS, ConfigurationError, checksum_address, logger


# Environment variable -> Config field
ENV_VARS = {
    "RPC_URL": "rpc_url",
    "PRIVATE_KEYS": "private_keys",
    "ROUTER_ADDRESS": "router_address",
    "ROUTES": "routes",
}

LIST_FIELDS = ("private_keys", "routes")


def split_list(value: Union[str, List[str], None]) -> List[str]:
    """Split a comma-separated string (or pass through a list), dropping blanks."""
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = [str(v) for v in value]
    else:
        raise ConfigurationError(f"Expected a list or comma-separated string, got {type(value).__name__}")
    return [item.strip() for item in items if item.strip()]


@dataclass
class Config:
    """Swap bot configuration settings."""

    # Network
    rpc_url: str = ""
    rpc_timeout_seconds: int = 30

    # Accounts and contracts
    private_keys: List[str] = field(default_factory=list)
    router_address: str = ""
    routes: List[str] = field(default_factory=list)

    # Invocation parameters
    amount: str = "0.003"
    swap_count: int = 2
    delay_ms: int = 3000

    # Transaction settings
    swap_gas_limit: int = 300000
    deadline_seconds: int = 1800
    receipt_timeout_seconds: int = 120

    # Operation
    log_level: str = "INFO"
    log_file: Optional[str] = "./swap_bot.log"
    json_log_file: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (private keys excluded)."""
        data = asdict(self)
        data["private_keys"] = [f"<{len(self.private_keys)} keys>"] if self.private_keys else []
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create Config from dictionary."""
        # Filter only valid fields
        valid_fields = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        for name in LIST_FIELDS:
            if name in valid_fields:
                valid_fields[name] = split_list(valid_fields[name])
        if "amount" in valid_fields and valid_fields["amount"] is not None:
            valid_fields["amount"] = str(valid_fields["amount"])
        return cls(**valid_fields)

    def validate(self):
        """
        Check the configuration for startup errors.

        Raises:
            ConfigurationError: On the first invalid or missing setting
        """
        if not self.rpc_url:
            raise ConfigurationError("RPC_URL is not configured")
        if not self.private_keys:
            raise ConfigurationError("PRIVATE_KEYS is not configured")
        if not self.router_address:
            raise ConfigurationError("ROUTER_ADDRESS is not configured")
        if not self.routes:
            raise ConfigurationError("ROUTES is not configured")

        self.router_address = checksum_address(self.router_address, "router address")

        try:
            amount = Decimal(str(self.amount))
        except InvalidOperation:
            raise ConfigurationError(f"Invalid swap amount: {self.amount!r}")
        if not amount.is_finite() or amount <= 0:
            raise ConfigurationError(f"Swap amount must be positive, got {self.amount!r}")
        if amount.adjusted() >= UINT256_DIGITS:
            raise ConfigurationError(f"Swap amount is too large: {self.amount!r}")

        if not isinstance(self.swap_count, int) or self.swap_count < 1:
            raise ConfigurationError(f"Swap count must be a positive integer, got {self.swap_count!r}")
        if not isinstance(self.delay_ms, int) or self.delay_ms < 0:
            raise ConfigurationError(f"Delay must be a non-negative integer, got {self.delay_ms!r}")
        for name in ("swap_gas_limit", "deadline_seconds", "receipt_timeout_seconds", "rpc_timeout_seconds"):
            value = getattr(self, name)
            if not isinstance(value, int) or value <= 0:
                raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")
        return self


class ConfigManager:
    """Loads configuration from YAML, .env and the environment."""

    def __init__(self, config_path: Optional[Path] = None, env_file: Optional[Path] = None):
        self.config_path = Path(config_path) if config_path else None
        self.env_file = Path(env_file) if env_file else None

    def read_yaml(self) -> Dict[str, Any]:
        """Read the YAML config file, if one was given."""
        if self.config_path is None:
            return {}
        if not self.config_path.exists():
            raise ConfigurationError(f"Config file not found: {self.config_path}")

        try:
            with open(self.config_path, 'r') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {self.config_path}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file must contain a mapping: {self.config_path}")
        return data

    def read_environment(self) -> Dict[str, Any]:
        """Read settings from the .env file and the process environment."""
        if self.env_file is not None:
            if not self.env_file.exists():
                raise ConfigurationError(f"Env file not found: {self.env_file}")
            load_dotenv(self.env_file, override=False)
        else:
            load_dotenv(override=False)

        data = {}
        for env_name, field_name in ENV_VARS.items():
            value = os.environ.get(env_name)
            if value:
                data[field_name] = value
        return data

    def load(self, overrides: Optional[Dict[str, Any]] = None) -> Config:
        """
        Build and validate the run configuration.

        Args:
            overrides: Values that win over every other source (CLI arguments)
        """
        data: Dict[str, Any] = {}
        data.update(self.read_yaml())
        data.update(self.read_environment())
        if overrides:
            data.update({k: v for k, v in overrides.items() if v is not None})

        config = Config.from_dict(data)
        config.validate()

        logger.debug("Configuration loaded: %s", config.to_dict())
        return config


# Example configuration template
DEFAULT_CONFIG = """
# Swap Bot Configuration
# Secrets are better kept in .env (PRIVATE_KEYS=0x...,0x...)

rpc_url: https://rpc.example.org
router_address: "0x0000000000000000000000000000000000000000"

# tokenIn>tokenOut pairs, traversed in order for every account
routes:
  - "0xTokenA>0xTokenB"
  - "0xTokenB>0xTokenA"

# Invocation defaults (overridden by CLI arguments)
amount: "0.003"
swap_count: 2
delay_ms: 3000

# Transaction settings
swap_gas_limit: 300000
deadline_seconds: 1800
receipt_timeout_seconds: 120
rpc_timeout_seconds: 30

# Operation Settings
log_level: INFO
log_file: ./swap_bot.log
json_log_file: null
""".strip()

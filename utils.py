"""
Utility Module

Error taxonomy, logging setup, unit scaling and formatting helpers shared
by the swap bot modules.

Logging goes through a SecureLogger that redacts registered secrets
(private keys) and credentials embedded in URLs before anything reaches the
console or the log file.
"""

import os
import re
import logging
from decimal import Decimal, InvalidOperation
from typing import Optional, Set

from web3 import Web3
from rich.logging import RichHandler
from rich.console import Console

from logging_utils import JSONFormatter


# Global console for Rich output
console = Console()

LOGGER_NAME = "swap_bot"

MAX_UINT256 = 2**256 - 1
MAX_UINT8 = 2**8 - 1

# Decimal digits of the largest uint256 value
UINT256_DIGITS = 78


class SwapBotError(Exception):
    """Base exception for the swap bot."""
    pass


class ConfigurationError(SwapBotError):
    """Malformed route, account, address or parameter input."""
    pass


class RpcError(SwapBotError):
    """Node unreachable, call reverted, timeout or malformed response."""
    pass


class TransactionReverted(SwapBotError):
    """Transaction was mined with a failed status."""

    def __init__(self, message: str, tx_hash: Optional[str] = None, block_number: Optional[int] = None):
        super().__init__(message)
        self.tx_hash = tx_hash
        self.block_number = block_number


class SubmissionError(SwapBotError):
    """Transaction could not be built, signed or broadcast."""
    pass


class SecureLogger:
    """
    Logger that sanitizes sensitive data from log messages.

    Secrets are registered explicitly (see ``register_secret``) and replaced
    verbatim. Transaction hashes share the private key shape, so keys are
    never matched by pattern alone.
    """

    # Patterns to redact from logs
    SENSITIVE_PATTERNS = [
        (r'(https?://)[^\s/@]+@', r'\1[CREDENTIALS_REDACTED]@'),  # user:pass@host
        (r'password["\']?\s*[:=]\s*["\'][^"\']+["\']', 'password=[REDACTED]'),
        (r'api[_-]?key["\']?\s*[:=]\s*["\']?[^"\'\s&]+', 'api_key=[REDACTED]'),
    ]

    def __init__(self, logger: logging.Logger):
        self._logger = logger
        self._secrets: Set[str] = set()

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def register_secret(self, secret: str):
        """Redact ``secret`` (with or without 0x prefix) from all later messages."""
        if not secret:
            return
        clean = secret[2:] if secret.lower().startswith("0x") else secret
        self._secrets.add(clean.lower())

    def _sanitize(self, msg: str) -> str:
        """Remove sensitive data from log message."""
        if not isinstance(msg, str):
            msg = str(msg)

        sanitized = msg
        for secret in self._secrets:
            sanitized = re.sub(r'(0x)?' + re.escape(secret), '[PRIVATE_KEY_REDACTED]',
                               sanitized, flags=re.IGNORECASE)
        for pattern, replacement in self.SENSITIVE_PATTERNS:
            sanitized = re.sub(pattern, replacement, sanitized, flags=re.IGNORECASE)
        return sanitized

    def debug(self, msg: str, *args, **kwargs):
        self._logger.debug(self._sanitize(msg), *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        self._logger.info(self._sanitize(msg), *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        self._logger.warning(self._sanitize(msg), *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        self._logger.error(self._sanitize(msg), *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs):
        self._logger.exception(self._sanitize(msg), *args, **kwargs)

    def critical(self, msg: str, *args, **kwargs):
        self._logger.critical(self._sanitize(msg), *args, **kwargs)


# Shared secure logger. Handlers are attached by setup_logging().
logger = SecureLogger(logging.getLogger(LOGGER_NAME))


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = "./swap_bot.log",
    json_log_file: Optional[str] = None,
) -> SecureLogger:
    """
    Setup logging with Rich console output, a plain log file and an optional
    JSON-lines file.

    Returns the shared SecureLogger.
    """
    level = getattr(logging, log_level.upper(), None)
    if not isinstance(level, int):
        raise ConfigurationError(f"Unknown log level: {log_level}")

    base = logger.logger
    base.setLevel(level)
    base.propagate = False

    # Remove existing handlers
    for handler in list(base.handlers):
        base.removeHandler(handler)
        handler.close()

    rich_handler = RichHandler(
        console=console,
        show_time=True,
        show_path=False,
        rich_tracebacks=True
    )
    rich_handler.setLevel(level)
    rich_handler.setFormatter(logging.Formatter("%(message)s"))
    base.addHandler(rich_handler)

    if log_file:
        log_path = os.path.abspath(log_file)
        os.makedirs(os.path.dirname(log_path) or ".", exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        ))
        base.addHandler(file_handler)

    if json_log_file:
        json_path = os.path.abspath(json_log_file)
        os.makedirs(os.path.dirname(json_path) or ".", exist_ok=True)

        json_handler = logging.FileHandler(json_log_file)
        json_handler.setLevel(logging.DEBUG)
        json_handler.setFormatter(JSONFormatter())
        base.addHandler(json_handler)

    return logger


# Unit conversion

def parse_units(amount: str, decimals: int) -> int:
    """
    Scale a human-readable decimal amount to integer token units.

    The result is ``amount * 10**decimals`` computed exactly; fractional
    digits beyond ``decimals`` are truncated.

    Raises:
        ConfigurationError: If ``amount`` is not a finite non-negative number,
            or its scaled value cannot fit in a uint256
        ValueError: If ``decimals`` is outside the uint8 range
    """
    if isinstance(decimals, bool) or not isinstance(decimals, int) or not 0 <= decimals <= MAX_UINT8:
        raise ValueError(f"decimals must be an integer in 0..{MAX_UINT8}, got {decimals!r}")

    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation:
        raise ConfigurationError(f"Invalid amount: {amount!r}")

    if not value.is_finite() or value < 0:
        raise ConfigurationError(f"Amount must be a finite non-negative number, got {amount!r}")

    if not value:
        return 0
    if value.adjusted() + decimals >= UINT256_DIGITS:
        raise ConfigurationError(f"Amount {amount!r} does not fit in uint256 at {decimals} decimals")

    sign, digits, exponent = value.as_tuple()
    shift = exponent + decimals
    if -shift > len(digits):
        return 0
    units = int("".join(str(d) for d in digits) or "0")
    if shift >= 0:
        return units * 10 ** shift
    return units // 10 ** (-shift)


def format_units(amount: int, decimals: int) -> str:
    """Format integer token units as an exact decimal string."""
    if decimals == 0:
        return str(amount)
    value = Decimal(amount).scaleb(-decimals)
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


# Formatting utilities

def format_duration_ms(milliseconds: int) -> str:
    """Format a millisecond delay for display."""
    if milliseconds < 1000:
        return f"{milliseconds}ms"
    seconds = milliseconds / 1000
    if seconds < 60:
        return f"{seconds:g}s"
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}m {secs}s" if secs > 0 else f"{minutes}m"


def format_address(address: str, length: int = 6) -> str:
    """Format Ethereum address with ellipsis."""
    if len(address) <= length * 2 + 2:
        return address
    return f"{address[:length + 2]}...{address[-length:]}"


# Validation utilities

def validate_private_key(key: str) -> bool:
    """Validate private key format."""
    if not key:
        return False

    key_clean = key[2:] if key.startswith("0x") else key

    if len(key_clean) != 64:
        return False

    try:
        int(key_clean, 16)
        return True
    except ValueError:
        return False


def validate_address(address: str) -> bool:
    """Validate Ethereum address format."""
    if not address:
        return False
    return Web3.is_address(address)


def checksum_address(address: str, what: str = "address") -> str:
    """Return the checksummed form of ``address`` or raise ConfigurationError."""
    if not validate_address(address):
        raise ConfigurationError(f"Invalid {what}: {address!r}")
    return Web3.to_checksum_address(address)


def validate_uint(value, bits: int, what: str) -> int:
    """
    Validate a numeric value returned by the node before arithmetic.

    Raises:
        RpcError: If ``value`` is not an integer within the unsigned range
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise RpcError(f"Malformed {what} in RPC response: {value!r}")
    if not 0 <= value < 2**bits:
        raise RpcError(f"{what} out of uint{bits} range: {value}")
    return value


def sanitize_error_message(error) -> str:
    """
    Sanitize error messages to remove sensitive data.

    RPC URLs often carry API keys in the path, so URLs are dropped entirely.
    """
    if not isinstance(error, str):
        error = str(error)

    patterns = [
        (r'https?://[^\s\'"]+', '[URL]'),
        (r'password["\']?\s*[:=]\s*\S+', 'password=[REDACTED]'),
        (r'api[_-]?key["\']?\s*[:=]\s*\S+', 'api_key=[REDACTED]'),
    ]

    sanitized = error
    for pattern, replacement in patterns:
        sanitized = re.sub(pattern, replacement, sanitized, flags=re.IGNORECASE)

    return sanitized

"""
Route Set
=========
Ordered (tokenIn, tokenOut) pairs traversed for every account.

Routes are written as ``tokenIn>tokenOut``; several routes are separated
by commas or given as a YAML list.
"""

from dataclasses import dataclass
from typing import Iterable, List, Union

from utils import ConfigurationError, checksum_address, format_address


ROUTE_SEPARATOR = ">"


@dataclass(frozen=True)
class Route:
    """A single swap direction."""
    token_in: str
    token_out: str

    @property
    def path(self) -> List[str]:
        return [self.token_in, self.token_out]

    def __str__(self) -> str:
        return f"{format_address(self.token_in)} -> {format_address(self.token_out)}"


def parse_route(entry: str) -> Route:
    """
    Parse one ``tokenIn>tokenOut`` entry.

    Raises:
        ConfigurationError: If the entry does not name exactly two valid addresses
    """
    parts = [part.strip() for part in entry.strip().split(ROUTE_SEPARATOR)]
    if len(parts) != 2 or not all(parts):
        raise ConfigurationError(
            f"Route must be 'tokenIn{ROUTE_SEPARATOR}tokenOut', got {entry!r}"
        )

    token_in = checksum_address(parts[0], "route token")
    token_out = checksum_address(parts[1], "route token")
    return Route(token_in=token_in, token_out=token_out)


def parse_routes(routes: Union[str, Iterable[str]]) -> List[Route]:
    """Parse a comma-separated string or list of route entries, preserving order."""
    entries = routes.split(",") if isinstance(routes, str) else list(routes)
    entries = [entry for entry in entries if entry.strip()]
    if not entries:
        raise ConfigurationError("At least one route is required")
    return [parse_route(entry) for entry in entries]

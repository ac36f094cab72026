"""
Swap Orchestrator
=================
Runs one swap attempt for an (account, route, iteration):

    decimals -> balance gate -> allowance gate (approve MAX_UINT256 once)
             -> submit swapExactTokensForTokens -> wait for confirmation

Reads before the balance gate are trusted setup: their errors propagate and
end the run. Anything failing from the allowance gate onwards is caught at
the attempt boundary, logged and reported as an AttemptResult, so the next
attempt always starts. Failed attempts are never retried.

minAmountOut is always 0: swaps accept any price.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Tuple

from chain_client import ChainClient
from config import Config
from logging_utils import new_correlation_id
from routes import Route
from wallet import SwapAccount
from utils import (
    logger,
    MAX_UINT256,
    ConfigurationError,
    SwapBotError,
    format_units,
    parse_units,
    sanitize_error_message,
)


SWAP_GAS_LIMIT = 300000
SWAP_DEADLINE_SECONDS = 1800
MIN_AMOUNT_OUT = 0


class SwapOutcome(Enum):
    """Terminal result of one attempt."""
    SKIPPED_INSUFFICIENT_BALANCE = "skipped-insufficient-balance"
    CONFIRMED = "submitted-confirmed"
    FAILED = "submitted-failed"
    SUBMISSION_ERROR = "submission-error"


class AttemptState(Enum):
    START = "start"
    DECIMALS_RESOLVED = "decimals-resolved"
    BALANCE_CHECKED = "balance-checked"
    SKIPPED = "skipped"
    ALLOWANCE_CHECKED = "allowance-checked"
    APPROVAL_PENDING = "approval-pending"
    APPROVED = "approved"
    SWAP_SUBMITTED = "swap-submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"


TERMINAL_STATES = (AttemptState.SKIPPED, AttemptState.CONFIRMED, AttemptState.FAILED)


@dataclass(frozen=True)
class SwapRequest:
    """Arguments of one swapExactTokensForTokens call. Built fresh per attempt."""
    amount_in: int
    min_amount_out: int
    path: Tuple[str, ...]
    recipient: str
    deadline: int

    @classmethod
    def build(
        cls,
        amount_in: int,
        route: Route,
        recipient: str,
        now: float,
        deadline_seconds: int = SWAP_DEADLINE_SECONDS
    ) -> "SwapRequest":
        return cls(
            amount_in=amount_in,
            min_amount_out=MIN_AMOUNT_OUT,
            path=tuple(route.path),
            recipient=recipient,
            deadline=int(now) + deadline_seconds,
        )


@dataclass
class AttemptResult:
    """Transient record of one attempt, logged and counted by the driver."""
    outcome: SwapOutcome
    account: str
    route: Route
    iteration: int
    amount_in: int
    tx_hash: Optional[str] = None
    block_number: Optional[int] = None
    approval_tx_hash: Optional[str] = None
    error: Optional[str] = None
    states: List[AttemptState] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.outcome is SwapOutcome.CONFIRMED


class _StateTrail:
    """Forward-only record of the states one attempt passes through."""

    def __init__(self, label: str):
        self.label = label
        self.states: List[AttemptState] = [AttemptState.START]

    @property
    def current(self) -> AttemptState:
        return self.states[-1]

    def advance(self, state: AttemptState):
        if self.current in TERMINAL_STATES or state in self.states:
            raise RuntimeError(f"Illegal transition {self.current.value} -> {state.value}")
        self.states.append(state)
        logger.debug(f"{self.label}: {state.value}")


class SwapOrchestrator:
    """
    Executes single swap attempts against one router.

    Attempts are strictly sequential: every read and every confirmation wait
    blocks, so each account has at most one transaction in flight.
    """

    def __init__(
        self,
        client: ChainClient,
        router_address: str,
        amount: str,
        gas_limit: int = SWAP_GAS_LIMIT,
        deadline_seconds: int = SWAP_DEADLINE_SECONDS,
        clock: Callable[[], float] = time.time
    ):
        self.client = client
        self.router_address = router_address
        self.amount = amount
        self.gas_limit = gas_limit
        self.deadline_seconds = deadline_seconds
        self._clock = clock

    @classmethod
    def from_config(cls, client: ChainClient, config: Config, clock: Callable[[], float] = time.time) -> "SwapOrchestrator":
        return cls(
            client,
            router_address=config.router_address,
            amount=config.amount,
            gas_limit=config.swap_gas_limit,
            deadline_seconds=config.deadline_seconds,
            clock=clock,
        )

    def execute_attempt(self, account: SwapAccount, route: Route, iteration: int = 0) -> AttemptResult:
        """
        Run one attempt of ``route`` for ``account``.

        Returns:
            AttemptResult with the terminal outcome

        Raises:
            RpcError: If decimals or balance cannot be read (fatal to the run)
            ConfigurationError: If the amount scales to zero or overflows at
                the token's decimals
        """
        new_correlation_id("swap-")
        trail = _StateTrail(f"[{account.address}] {route} #{iteration + 1}")
        client = self.client

        decimals = client.get_decimals(route.token_in)
        amount_in = parse_units(self.amount, decimals)
        if amount_in == 0:
            raise ConfigurationError(
                f"Amount {self.amount} is below the smallest unit of a {decimals}-decimal token"
            )
        trail.advance(AttemptState.DECIMALS_RESOLVED)

        balance = client.get_balance(route.token_in, account.address)
        trail.advance(AttemptState.BALANCE_CHECKED)

        result = AttemptResult(
            outcome=SwapOutcome.SKIPPED_INSUFFICIENT_BALANCE,
            account=account.address,
            route=route,
            iteration=iteration,
            amount_in=amount_in,
            states=trail.states,
        )

        if balance < amount_in:
            trail.advance(AttemptState.SKIPPED)
            logger.warning(
                f"⛔ [{account.address}] Insufficient balance "
                f"({format_units(balance, decimals)} < {self.amount})"
            )
            return result

        pending_swap = None
        try:
            allowance = client.get_allowance(route.token_in, account.address, self.router_address)
            trail.advance(AttemptState.ALLOWANCE_CHECKED)

            if allowance < amount_in:
                trail.advance(AttemptState.APPROVAL_PENDING)
                logger.info(f"🔓 [{account.address}] Approving token...")
                approval = client.approve(account, route.token_in, self.router_address, MAX_UINT256)
                result.approval_tx_hash = approval.tx_hash
                client.await_confirmation(approval)
                trail.advance(AttemptState.APPROVED)
                logger.info(f"✅ [{account.address}] Token approved")

            request = SwapRequest.build(
                amount_in, route, account.address, self._clock(), self.deadline_seconds
            )
            pending_swap = client.swap(account, self.router_address, request, self.gas_limit)
            result.tx_hash = pending_swap.tx_hash
            trail.advance(AttemptState.SWAP_SUBMITTED)
            logger.info(f"🔁 [{account.address}] Swap {self.amount} sent: {pending_swap.tx_hash}")

            receipt = client.await_confirmation(pending_swap)
        except SwapBotError as e:
            trail.advance(AttemptState.FAILED)
            result.outcome = SwapOutcome.FAILED if pending_swap else SwapOutcome.SUBMISSION_ERROR
            result.error = sanitize_error_message(e)
            block_number = getattr(e, "block_number", None)
            if pending_swap and block_number is not None:
                result.block_number = block_number
            logger.error(f"❌ [{account.address}] Swap failed: {result.error}")
            return result

        trail.advance(AttemptState.CONFIRMED)
        result.outcome = SwapOutcome.CONFIRMED
        result.block_number = receipt.block_number
        logger.info(f"✅ Swap confirmed in block {receipt.block_number}")
        return result

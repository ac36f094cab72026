#!/usr/bin/env python3
"""
Chain Client Module
===================
Mediates every on-chain read and write of the swap bot.

Contract access goes through two typed capabilities with fixed method
signatures, TokenContract (ERC-20) and RouterContract (Uniswap-V2-style
router). Everything that crosses the RPC boundary is mapped onto the bot's
error taxonomy:

- reads fail with RpcError (node unreachable, revert, malformed value)
- writes fail with SubmissionError (build, sign or broadcast failure)
- confirmation waits fail with TransactionReverted or RpcError
"""

from dataclasses import dataclass
from typing import Dict, List, Optional
from urllib.parse import urlparse

from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted

from wallet import SwapAccount
from utils import (
    logger,
    ConfigurationError,
    RpcError,
    SubmissionError,
    TransactionReverted,
    sanitize_error_message,
    validate_uint,
)


# ERC20 Token ABI (minimal)
ERC20_ABI = [
    {
        "constant": True,
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "payable": False,
        "stateMutability": "view",
        "type": "function"
    },
    {
        "constant": True,
        "inputs": [{"name": "_owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "balance", "type": "uint256"}],
        "payable": False,
        "stateMutability": "view",
        "type": "function"
    },
    {
        "constant": True,
        "inputs": [
            {"name": "_owner", "type": "address"},
            {"name": "_spender", "type": "address"}
        ],
        "name": "allowance",
        "outputs": [{"name": "", "type": "uint256"}],
        "payable": False,
        "stateMutability": "view",
        "type": "function"
    },
    {
        "constant": False,
        "inputs": [
            {"name": "_spender", "type": "address"},
            {"name": "_value", "type": "uint256"}
        ],
        "name": "approve",
        "outputs": [{"name": "", "type": "bool"}],
        "payable": False,
        "stateMutability": "nonpayable",
        "type": "function"
    }
]

# Uniswap V2 Router ABI (token -> token only)
ROUTER_ABI = [
    {
        "inputs": [
            {"internalType": "uint256", "name": "amountIn", "type": "uint256"},
            {"internalType": "uint256", "name": "amountOutMin", "type": "uint256"},
            {"internalType": "address[]", "name": "path", "type": "address[]"},
            {"internalType": "address", "name": "to", "type": "address"},
            {"internalType": "uint256", "name": "deadline", "type": "uint256"}
        ],
        "name": "swapExactTokensForTokens",
        "outputs": [{"internalType": "uint256[]", "name": "amounts", "type": "uint256[]"}],
        "stateMutability": "nonpayable",
        "type": "function"
    }
]


@dataclass(frozen=True)
class PendingTransaction:
    """Handle for a broadcast transaction."""
    tx_hash: str
    action: str


@dataclass(frozen=True)
class TransactionReceipt:
    """Mined transaction summary."""
    tx_hash: str
    block_number: int
    gas_used: int
    status: int


class TokenContract:
    """ERC-20 capability bound to one token address."""

    def __init__(self, web3: Web3, address: str):
        self.address = Web3.to_checksum_address(address)
        self._contract = web3.eth.contract(address=self.address, abi=ERC20_ABI)

    def decimals(self) -> int:
        return self._contract.functions.decimals().call()

    def balance_of(self, owner: str) -> int:
        return self._contract.functions.balanceOf(owner).call()

    def allowance(self, owner: str, spender: str) -> int:
        return self._contract.functions.allowance(owner, spender).call()

    def approve(self, spender: str, amount: int):
        """Unsent ``approve`` call, ready for build_transaction."""
        return self._contract.functions.approve(spender, amount)


class RouterContract:
    """Swap router capability bound to one router address."""

    def __init__(self, web3: Web3, address: str):
        self.address = Web3.to_checksum_address(address)
        self._contract = web3.eth.contract(address=self.address, abi=ROUTER_ABI)

    def swap_exact_tokens_for_tokens(
        self,
        amount_in: int,
        amount_out_min: int,
        path: List[str],
        to: str,
        deadline: int
    ):
        """Unsent ``swapExactTokensForTokens`` call, ready for build_transaction."""
        return self._contract.functions.swapExactTokensForTokens(
            amount_in, amount_out_min, path, to, deadline
        )


class ChainClient:
    """
    Blocking RPC client shared by all accounts.

    The connection is used one call at a time; writes take the signing
    account explicitly so one client serves every account.
    """

    def __init__(self, web3: Web3, receipt_timeout: int = 120):
        self.web3 = web3
        self.receipt_timeout = receipt_timeout
        self._tokens: Dict[str, TokenContract] = {}
        self._routers: Dict[str, RouterContract] = {}

    @classmethod
    def connect(cls, rpc_url: str, timeout: int = 30, receipt_timeout: int = 120) -> "ChainClient":
        """
        Create a client for an HTTP(S) RPC endpoint.

        Raises:
            ConfigurationError: If the URL is not http(s)
        """
        parsed = urlparse(rpc_url)
        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            raise ConfigurationError(f"Invalid RPC URL: {sanitize_error_message(rpc_url)}")

        if parsed.scheme == 'http' and not parsed.netloc.startswith(('localhost', '127.')):
            logger.warning("Non-HTTPS RPC URL in use")

        web3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={'timeout': timeout}))
        return cls(web3, receipt_timeout=receipt_timeout)

    def token(self, address: str) -> TokenContract:
        """Cached TokenContract for ``address``."""
        if address not in self._tokens:
            self._tokens[address] = TokenContract(self.web3, address)
        return self._tokens[address]

    def router(self, address: str) -> RouterContract:
        """Cached RouterContract for ``address``."""
        if address not in self._routers:
            self._routers[address] = RouterContract(self.web3, address)
        return self._routers[address]

    # Reads

    def _read(self, what: str, fn):
        try:
            return fn()
        except ContractLogicError as e:
            raise RpcError(f"{what} reverted: {sanitize_error_message(e)}") from e
        except Exception as e:
            raise RpcError(f"{what} failed: {sanitize_error_message(e)}") from e

    def get_decimals(self, token: str) -> int:
        value = self._read("decimals()", self.token(token).decimals)
        return validate_uint(value, 8, "decimals")

    def get_balance(self, token: str, owner: str) -> int:
        value = self._read("balanceOf()", lambda: self.token(token).balance_of(owner))
        return validate_uint(value, 256, "balance")

    def get_allowance(self, token: str, owner: str, spender: str) -> int:
        value = self._read("allowance()", lambda: self.token(token).allowance(owner, spender))
        return validate_uint(value, 256, "allowance")

    # Writes

    def _send(self, account: SwapAccount, call, action: str, gas_limit: Optional[int] = None) -> PendingTransaction:
        """Build, sign and broadcast ``call`` from ``account``."""
        try:
            tx_params = {
                'from': account.address,
                'nonce': self.web3.eth.get_transaction_count(account.address, 'pending'),
            }
            if gas_limit is not None:
                tx_params['gas'] = gas_limit

            tx = call.build_transaction(tx_params)
            signed = account.sign_transaction(tx)
            tx_hash = self.web3.eth.send_raw_transaction(signed.raw_transaction)
        except Exception as e:
            raise SubmissionError(f"{action} submission failed: {sanitize_error_message(e)}") from e

        pending = PendingTransaction(tx_hash=Web3.to_hex(tx_hash), action=action)
        logger.debug(f"{action} broadcast from {account.address}: {pending.tx_hash}")
        return pending

    def approve(self, account: SwapAccount, token: str, spender: str, amount: int) -> PendingTransaction:
        """Submit ``token.approve(spender, amount)``; gas is estimated by the node."""
        return self._send(account, self.token(token).approve(spender, amount), "approve")

    def swap(self, account: SwapAccount, router: str, request, gas_limit: int) -> PendingTransaction:
        """
        Submit ``swapExactTokensForTokens`` for a ``swapper.SwapRequest`` with
        a fixed gas limit.
        """
        call = self.router(router).swap_exact_tokens_for_tokens(
            request.amount_in,
            request.min_amount_out,
            list(request.path),
            request.recipient,
            request.deadline,
        )
        return self._send(account, call, "swap", gas_limit=gas_limit)

    def await_confirmation(self, pending: PendingTransaction) -> TransactionReceipt:
        """
        Block until ``pending`` is mined.

        Raises:
            TransactionReverted: Mined with status 0
            RpcError: Not mined within the receipt timeout, node failure or
                malformed receipt
        """
        try:
            receipt = self.web3.eth.wait_for_transaction_receipt(
                pending.tx_hash, timeout=self.receipt_timeout
            )
        except TimeExhausted as e:
            raise RpcError(
                f"{pending.action} {pending.tx_hash} not mined within {self.receipt_timeout}s"
            ) from e
        except Exception as e:
            raise RpcError(
                f"Waiting for {pending.action} {pending.tx_hash} failed: {sanitize_error_message(e)}"
            ) from e

        receipt = receipt or {}
        status = receipt.get('status')
        raw_block = receipt.get('blockNumber')
        if status not in (0, 1) or raw_block is None:
            raise RpcError(f"Malformed receipt for {pending.action} {pending.tx_hash}")
        block_number = validate_uint(raw_block, 64, "block number")
        gas_used = receipt.get('gasUsed', 0) or 0

        if status != 1:
            raise TransactionReverted(
                f"{pending.action} {pending.tx_hash} reverted in block {block_number}",
                tx_hash=pending.tx_hash,
                block_number=block_number,
            )

        return TransactionReceipt(
            tx_hash=pending.tx_hash,
            block_number=block_number,
            gas_used=gas_used,
            status=status,
        )

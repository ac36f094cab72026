"""
Wallet Module - Account Set
===========================
Derives signing identities from configured private keys.

Each SwapAccount owns its signing capability. Nonces are not tracked here:
the chain client asks the node for the pending transaction count at
submission time, which is safe because transactions are sent one at a time.
"""

import gc
from typing import Iterable, List, Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount

from utils import ConfigurationError, SecureLogger, logger, validate_private_key


class SwapAccount:
    """
    A signer bound to one address.

    The raw key string is not kept on the object; only the eth_account
    LocalAccount needed for signing is retained.
    """

    def __init__(self, private_key: str, label: Optional[str] = None):
        if not validate_private_key(private_key):
            raise ConfigurationError(f"Invalid private key format for {label or 'account'}")

        # Mutable copy so the key can be wiped once the account is derived
        key_bytes = bytearray(private_key if private_key.startswith("0x") else "0x" + private_key, 'utf-8')
        try:
            self._account: LocalAccount = Account.from_key(bytes(key_bytes).decode())
        except Exception as e:
            raise ConfigurationError(f"Invalid private key for {label or 'account'}: {e}") from e
        finally:
            self._secure_clear(key_bytes)

        self.address: str = self._account.address
        self.label = label or self.address

    @staticmethod
    def _secure_clear(data: bytearray) -> None:
        """Overwrite sensitive bytes before garbage collection."""
        for i in range(len(data)):
            data[i] = 0
        gc.collect()

    def sign_transaction(self, transaction: dict):
        """Sign a transaction dict, returning eth_account's SignedTransaction."""
        return self._account.sign_transaction(transaction)

    def __repr__(self) -> str:
        return f"SwapAccount({self.address})"


def load_accounts(private_keys: Iterable[str], secure_logger: SecureLogger = logger) -> List[SwapAccount]:
    """
    Build one SwapAccount per configured key, preserving order.

    Every key is registered with the secure logger so it can never be
    printed. Duplicate keys are a configuration error.

    Raises:
        ConfigurationError: On an invalid or duplicate key, or an empty key list
    """
    accounts: List[SwapAccount] = []
    seen = set()

    for index, key in enumerate(private_keys, start=1):
        key = key.strip()
        secure_logger.register_secret(key)
        account = SwapAccount(key, label=f"account #{index}")
        if account.address in seen:
            raise ConfigurationError(f"Duplicate private key for {account.address}")
        seen.add(account.address)
        accounts.append(account)

    if not accounts:
        raise ConfigurationError("No accounts configured")

    secure_logger.debug(f"Loaded {len(accounts)} account(s)")
    return accounts

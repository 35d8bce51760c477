from __future__ import annotations

from typing import Any, Dict

from eth_account import Account
from eth_account.signers.local import LocalAccount


class LocalAccountSigner:
    """Signer backed by an in-process `eth_account` key (scripts, tests, bots)."""

    def __init__(self, account: LocalAccount) -> None:
        self._account = account

    @classmethod
    def from_key(cls, private_key: str) -> "LocalAccountSigner":
        return cls(Account.from_key(private_key))

    @property
    def address(self) -> str:
        return self._account.address

    async def sign_typed_data(self, message: Dict[str, Any]) -> str:
        signed = self._account.sign_typed_data(full_message=message)
        return "0x" + bytes(signed.signature).hex()

"""
Collaborator contracts consumed by the client core.

Ledger access, the wallet connection, input encryption and decryption are
external services; the core only talks to them through these protocols.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Protocol, Sequence, Union

from state.models import DecryptionAuthorization, EncryptedInput, TransactionReceipt


ClearResult = Union[bool, int, str]


class Signer(Protocol):
    address: str

    async def sign_typed_data(self, message: Dict[str, Any]) -> str:
        """Sign an EIP-712 typed-data document; returns a 0x-prefixed signature."""
        ...


class ConnectionState(Protocol):
    """Live wallet connection; values change when the user switches account or network."""

    @property
    def chain_id(self) -> Optional[int]: ...

    @property
    def signer(self) -> Optional[Signer]: ...


class PendingTransaction(Protocol):
    hash: str

    async def wait(self) -> TransactionReceipt: ...


class LedgerReader(Protocol):
    async def get_health_scores(self, contract: str, user: str) -> Sequence[str]:
        """Four handles: overall, cardio, activity, sleep."""
        ...

    async def get_anomaly_flag(self, contract: str, user: str) -> str: ...


class LedgerWriter(Protocol):
    async def submit_health_data(
        self,
        contract: str,
        signer: Signer,
        enc_heart_rate: str,
        enc_steps: str,
        enc_sleep: str,
        input_proof: str,
        timestamp: int,
    ) -> PendingTransaction: ...

    async def get_time_series_stats(
        self,
        contract: str,
        signer: Signer,
        user: str,
        start_timestamp: int,
        end_timestamp: int,
    ) -> PendingTransaction: ...


class DecryptionCapability(Protocol):
    async def user_decrypt(
        self,
        pairs: Sequence[Mapping[str, str]],
        private_key: str,
        public_key: str,
        signature: str,
        contract_addresses: Sequence[str],
        user_address: str,
        start_timestamp: int,
        duration_days: int,
    ) -> Mapping[str, ClearResult]: ...


class InputEncryptor(Protocol):
    async def encrypt_inputs(
        self, values: Sequence[int], contract: str, user: str
    ) -> EncryptedInput: ...


class AuthorizationStore(Protocol):
    def get(self, fingerprint: str) -> Optional[DecryptionAuthorization]: ...

    def put(self, fingerprint: str, record: DecryptionAuthorization) -> None: ...

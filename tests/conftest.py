from __future__ import annotations

import asyncio
import os
import sys
from typing import Any, Callable, Dict, List, Optional

import pytest

# Ensure `src/` is importable as top-level for `common.*`, `state.*`, `analyzer.*`
_ROOT = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
_SRC = os.path.join(_ROOT, "src")
if _SRC not in sys.path:
    sys.path.insert(0, _SRC)

from analyzer.config import AnalyzerConfig, DeploymentRegistry  # noqa: E402
from analyzer.record import AnalyzerState  # noqa: E402
from analyzer.session import SessionTracker  # noqa: E402
from state.auth_store import InMemoryAuthorizationStore  # noqa: E402
from state.models import EncryptedInput, EventLog, TransactionReceipt  # noqa: E402


CHAIN_ID = 31337
OTHER_CHAIN_ID = 11155111
CONTRACT = "0x1111111111111111111111111111111111111111"
OTHER_CONTRACT = "0x2222222222222222222222222222222222222222"
USER = "0x00000000000000000000000000000000000000a1"
OTHER_USER = "0x00000000000000000000000000000000000000b2"


def h(byte: str) -> str:
    """Handle made of one repeated byte, e.g. h("aa") -> 0xaaaa...aa."""
    return "0x" + byte * 32


class FakeClock:
    def __init__(self, t: float = 1_700_000_000.0) -> None:
        self.t = t

    def __call__(self) -> float:  # acts like time.time
        return self.t

    def advance(self, dt: float) -> None:
        self.t += dt


class FakeSigner:
    def __init__(self, address: str = USER, *, decline: bool = False) -> None:
        self.address = address
        self.decline = decline
        self.calls: List[Dict[str, Any]] = []
        self.gate: Optional[asyncio.Event] = None

    async def sign_typed_data(self, message: Dict[str, Any]) -> str:
        self.calls.append(message)
        if self.gate is not None:
            await self.gate.wait()
        if self.decline:
            raise RuntimeError("user rejected the request")
        return "0x" + "ab" * 65


class FakeConnection:
    def __init__(self, chain_id: Optional[int] = CHAIN_ID, signer: Optional[FakeSigner] = None) -> None:
        self.chain_id = chain_id
        self.signer = signer


class FakeTx:
    def __init__(self, tx_hash: str, receipt: TransactionReceipt, on_wait: Optional[Callable[[], None]] = None) -> None:
        self.hash = tx_hash
        self._receipt = receipt
        self._on_wait = on_wait
        self.waited = False

    async def wait(self) -> TransactionReceipt:
        self.waited = True
        if self._on_wait is not None:
            self._on_wait()
        return self._receipt


class FakeLedger:
    """Reader and writer in one; hooks simulate context switches mid-await."""

    def __init__(self) -> None:
        self.scores = [h("aa"), h("bb"), h("cc"), h("dd")]
        self.anomaly = h("ee")
        self.score_reads = 0
        self.read_error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None
        self.on_read: Optional[Callable[[], None]] = None
        self.submissions: List[tuple] = []
        self.submit_error: Optional[Exception] = None
        self.on_submit_wait: Optional[Callable[[], None]] = None
        self.stats_calls: List[tuple] = []
        self.stats_logs: List[EventLog] = []
        self.on_stats_wait: Optional[Callable[[], None]] = None

    async def get_health_scores(self, contract: str, user: str):
        self.score_reads += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.read_error is not None:
            raise self.read_error
        if self.on_read is not None:
            self.on_read()
        return list(self.scores)

    async def get_anomaly_flag(self, contract: str, user: str):
        return self.anomaly

    async def submit_health_data(self, contract, signer, enc_heart_rate, enc_steps, enc_sleep, input_proof, timestamp):
        if self.submit_error is not None:
            raise self.submit_error
        self.submissions.append((contract, enc_heart_rate, enc_steps, enc_sleep, input_proof, timestamp))
        receipt = TransactionReceipt(hash="0xsubmit", status=1)
        return FakeTx("0xsubmit", receipt, self.on_submit_wait)

    async def get_time_series_stats(self, contract, signer, user, start_timestamp, end_timestamp):
        self.stats_calls.append((contract, user, start_timestamp, end_timestamp))
        receipt = TransactionReceipt(hash="0xstats", status=1, logs=list(self.stats_logs))
        return FakeTx("0xstats", receipt, self.on_stats_wait)


class FakeDecryptor:
    def __init__(self, results: Optional[Dict[str, Any]] = None) -> None:
        self.results: Dict[str, Any] = dict(results or {})
        self.calls: List[Dict[str, Any]] = []
        self.on_call: Optional[Callable[[], None]] = None
        self.error: Optional[Exception] = None

    async def user_decrypt(self, pairs, private_key, public_key, signature, contract_addresses,
                           user_address, start_timestamp, duration_days):
        self.calls.append(
            {
                "pairs": list(pairs),
                "signature": signature,
                "contract_addresses": list(contract_addresses),
                "user_address": user_address,
                "start_timestamp": start_timestamp,
                "duration_days": duration_days,
            }
        )
        if self.on_call is not None:
            self.on_call()
        if self.error is not None:
            raise self.error
        return dict(self.results)


class FakeEncryptor:
    def __init__(self) -> None:
        self.calls: List[tuple] = []
        self.on_encrypt: Optional[Callable[[], None]] = None

    async def encrypt_inputs(self, values, contract, user):
        self.calls.append((list(values), contract, user))
        if self.on_encrypt is not None:
            self.on_encrypt()
        return EncryptedInput(handles=[h("01"), h("02"), h("03")], input_proof="0xproof")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry() -> DeploymentRegistry:
    return DeploymentRegistry(
        {
            str(CHAIN_ID): {"address": CONTRACT, "chainId": CHAIN_ID, "chainName": "hardhat"},
            str(OTHER_CHAIN_ID): {"address": OTHER_CONTRACT, "chainId": OTHER_CHAIN_ID, "chainName": "sepolia"},
        }
    )


@pytest.fixture
def signer() -> FakeSigner:
    return FakeSigner()


@pytest.fixture
def connection(signer: FakeSigner) -> FakeConnection:
    return FakeConnection(CHAIN_ID, signer)


@pytest.fixture
def tracker(connection: FakeConnection, registry: DeploymentRegistry) -> SessionTracker:
    return SessionTracker(connection, registry)


@pytest.fixture
def record() -> AnalyzerState:
    return AnalyzerState()


@pytest.fixture
def store() -> InMemoryAuthorizationStore:
    return InMemoryAuthorizationStore()


@pytest.fixture
def config() -> AnalyzerConfig:
    return AnalyzerConfig(auth_duration_days=10)


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def decryptor() -> FakeDecryptor:
    return FakeDecryptor()


@pytest.fixture
def encryptor() -> FakeEncryptor:
    return FakeEncryptor()

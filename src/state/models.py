from __future__ import annotations

import re
from typing import Any, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


ZERO_HANDLE = "0x" + "00" * 32
ZERO_ADDRESS = "0x" + "00" * 20
SECONDS_PER_DAY = 86_400

_HANDLE_RE = re.compile(r"^0x[0-9a-f]{64}$")

ClearScalar = Union[bool, int]


def normalize_handle(value: Union[str, bytes]) -> str:
    """Return the canonical form of an encrypted handle: lowercase 0x + 64 hex.

    Accepts raw 32-byte values as returned by some ABI decoders.
    Raises ValueError for anything that is not a 32-byte digest.
    """
    if isinstance(value, (bytes, bytearray)):
        if len(value) != 32:
            raise ValueError(f"handle must be 32 bytes, got {len(value)}")
        return "0x" + bytes(value).hex()
    s = str(value).strip().lower()
    if not s.startswith("0x"):
        s = "0x" + s
    if not _HANDLE_RE.match(s):
        raise ValueError(f"not a 32-byte hex handle: {value!r}")
    return s


def is_zero_handle(handle: Optional[str]) -> bool:
    """True when there is no handle or it is the all-zero 'nothing recorded' sentinel."""
    if not handle:
        return True
    return handle.lower() == ZERO_HANDLE


class DecryptionAuthorization(BaseModel):
    """
    Time-bounded capability to decrypt handles of specific contracts.

    Fields
    - public_key / private_key: ephemeral key pair (hex), generated per signing ceremony.
    - signature: user's signature over the EIP-712 authorization message.
    - contract_addresses: scope; stored sorted and lower-cased.
    - user_address: owner of the signature.
    - start_timestamp: unix seconds when validity starts.
    - duration_days: validity window length in days.

    The record contains key material; stores persisting it off-host should
    encrypt it at rest.
    """

    public_key: str
    private_key: str
    signature: str
    contract_addresses: List[str]
    user_address: str
    start_timestamp: int
    duration_days: int = Field(..., gt=0)

    @field_validator("contract_addresses")
    @classmethod
    def _sorted_lower(cls, v: List[str]) -> List[str]:
        return sorted({a.lower() for a in v})

    @field_validator("user_address")
    @classmethod
    def _lower(cls, v: str) -> str:
        return v.lower()

    @property
    def expires_at(self) -> int:
        return self.start_timestamp + self.duration_days * SECONDS_PER_DAY

    def is_valid_at(self, now: int) -> bool:
        return self.start_timestamp <= now < self.expires_at

    def covers(self, contracts: List[str]) -> bool:
        """True when the scoped set equals the requested contract set."""
        return self.contract_addresses == sorted({c.lower() for c in contracts})


class ClearValue(BaseModel):
    """A decrypted scalar tagged with the handle it was derived from."""

    model_config = ConfigDict(frozen=True)

    handle: str
    value: ClearScalar


class ScoreHandles(BaseModel):
    """Handles of the user's current health scores and anomaly flag."""

    model_config = ConfigDict(frozen=True)

    overall: str
    cardio: str
    activity: str
    sleep: str
    anomaly_flag: str

    @field_validator("*", mode="before")
    @classmethod
    def _canonical(cls, v: Any) -> str:
        return normalize_handle(v)

    def items(self) -> List[Tuple[str, str]]:
        return [(name, getattr(self, name)) for name in SCORE_FIELDS]


class TimeSeriesHandles(BaseModel):
    """
    Bundle of nine aggregate handles produced atomically by one aggregate query.

    Replaced wholesale by the next successful query; never partially updated.
    """

    model_config = ConfigDict(frozen=True)

    avg_heart_rate: str
    avg_steps: str
    avg_sleep: str
    trend_heart_rate: str
    trend_steps: str
    trend_sleep: str
    volatility_heart_rate: str
    volatility_steps: str
    volatility_sleep: str

    @field_validator("*", mode="before")
    @classmethod
    def _canonical(cls, v: Any) -> str:
        return normalize_handle(v)

    @classmethod
    def from_positional(cls, handles: List[Any]) -> "TimeSeriesHandles":
        if len(handles) != len(TIME_SERIES_FIELDS):
            raise ValueError(
                f"expected {len(TIME_SERIES_FIELDS)} handles, got {len(handles)}"
            )
        return cls(**dict(zip(TIME_SERIES_FIELDS, handles)))

    def items(self) -> List[Tuple[str, str]]:
        return [(name, getattr(self, name)) for name in TIME_SERIES_FIELDS]

    def any_recorded(self) -> bool:
        return any(not is_zero_handle(h) for _, h in self.items())


SCORE_FIELDS: Tuple[str, ...] = ("overall", "cardio", "activity", "sleep", "anomaly_flag")

# Positional order of the aggregate-result event (after the user address)
TIME_SERIES_FIELDS: Tuple[str, ...] = (
    "avg_heart_rate",
    "avg_steps",
    "avg_sleep",
    "trend_heart_rate",
    "trend_steps",
    "trend_sleep",
    "volatility_heart_rate",
    "volatility_steps",
    "volatility_sleep",
)

TREND_FIELDS = frozenset({"trend_heart_rate", "trend_steps", "trend_sleep"})
BOOL_FIELDS = frozenset({"anomaly_flag"})


class EncryptedInput(BaseModel):
    """Ciphertext handles plus the validity proof from the input encoder."""

    handles: List[str]
    input_proof: str


class EventLog(BaseModel):
    """A decoded log entry; `args` are positional event arguments."""

    name: str
    args: List[Any] = Field(default_factory=list)


class TransactionReceipt(BaseModel):
    hash: str
    status: Optional[int] = None
    logs: List[EventLog] = Field(default_factory=list)

    def find_event(self, name: str) -> Optional[EventLog]:
        for log in self.logs:
            if log.name == name:
                return log
        return None


class Deployment(BaseModel):
    """One entry of the deployment registry (chain id -> contract address)."""

    model_config = ConfigDict(populate_by_name=True)

    address: Optional[str] = None
    chain_id: Optional[int] = Field(default=None, alias="chainId")
    chain_name: Optional[str] = Field(default=None, alias="chainName")

    def is_deployed(self) -> bool:
        return bool(self.address) and self.address.lower() != ZERO_ADDRESS

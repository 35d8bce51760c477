"""
Data model and persistence for the encrypted-state client.

Handles, clear values and handle bundles live in memory for one session;
decryption authorizations are the only records persisted, through one of
the key-value stores in `auth_store` / `s3_store`.
"""

from .models import (
    ClearValue,
    DecryptionAuthorization,
    ScoreHandles,
    TimeSeriesHandles,
)

__all__ = [
    "ClearValue",
    "DecryptionAuthorization",
    "ScoreHandles",
    "TimeSeriesHandles",
]

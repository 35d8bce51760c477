from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey
from eth_utils import keccak

from state.models import DecryptionAuthorization

from .config import AnalyzerConfig
from .interfaces import AuthorizationStore, Signer


logger = logging.getLogger("analyzer.authorization")

PRIMARY_TYPE = "UserDecryptRequestVerification"


def generate_keypair() -> Tuple[str, str]:
    """Fresh ephemeral (public_key, private_key), both 0x-prefixed hex."""
    priv = X25519PrivateKey.generate()
    priv_raw = priv.private_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PrivateFormat.Raw,
        encryption_algorithm=serialization.NoEncryption(),
    )
    pub_raw = priv.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )
    return "0x" + pub_raw.hex(), "0x" + priv_raw.hex()


def _scope(contracts: Iterable[str]) -> List[str]:
    return sorted({c.lower() for c in contracts})


def authorization_fingerprint(contracts: Iterable[str], user: str) -> str:
    """Cache key over (sorted contract set, user); order and case insensitive."""
    doc = json.dumps({"contracts": _scope(contracts), "user": user.lower()}, separators=(",", ":"))
    return keccak(text=doc).hex()


def build_authorization_message(
    public_key: str,
    contracts: List[str],
    start_timestamp: int,
    duration_days: int,
    *,
    chain_id: int,
    verifying_contract: str,
) -> Dict[str, Any]:
    """EIP-712 document the user signs to let `public_key` decrypt for `contracts`."""
    return {
        "types": {
            "EIP712Domain": [
                {"name": "name", "type": "string"},
                {"name": "version", "type": "string"},
                {"name": "chainId", "type": "uint256"},
                {"name": "verifyingContract", "type": "address"},
            ],
            PRIMARY_TYPE: [
                {"name": "publicKey", "type": "bytes"},
                {"name": "contractAddresses", "type": "address[]"},
                {"name": "startTimestamp", "type": "uint256"},
                {"name": "durationDays", "type": "uint256"},
                {"name": "extraData", "type": "bytes"},
            ],
        },
        "primaryType": PRIMARY_TYPE,
        "domain": {
            "name": "Decryption",
            "version": "1",
            "chainId": chain_id,
            "verifyingContract": verifying_contract,
        },
        "message": {
            "publicKey": public_key,
            "contractAddresses": contracts,
            "startTimestamp": start_timestamp,
            "durationDays": duration_days,
            "extraData": "0x00",
        },
    }


class DecryptionAuthorizationCache:
    """
    Load-or-sign cache of decryption authorizations.

    - A persisted authorization is reused while it is valid and scoped to
      exactly the requested contract set; no signing happens in that window.
    - Otherwise one signing ceremony produces a replacement, which is stored
      under the same fingerprint.
    - Concurrent calls for one fingerprint are serialized by a per-fingerprint
      lock, so racing callers share a single ceremony.
    """

    def __init__(
        self,
        store: AuthorizationStore,
        config: Optional[AnalyzerConfig] = None,
        *,
        clock: Callable[[], float] = time.time,
        keypair_factory: Callable[[], Tuple[str, str]] = generate_keypair,
    ) -> None:
        self._store = store
        self._config = config or AnalyzerConfig()
        self._clock = clock
        self._keypair_factory = keypair_factory
        # Locks live only while a call for the fingerprint is in progress
        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiters: Dict[str, int] = {}

    def _now(self) -> int:
        return int(self._clock())

    def _lookup(self, fingerprint: str, contracts: List[str]) -> Optional[DecryptionAuthorization]:
        try:
            record = self._store.get(fingerprint)
        except Exception as exc:
            # Unreadable record behaves like a missing one: sign again
            logger.warning("Authorization store read failed for %s: %s", fingerprint, exc)
            return None
        if record is None:
            return None
        if not record.covers(contracts):
            logger.info("Cached authorization %s has a different scope", fingerprint)
            return None
        if not record.is_valid_at(self._now()):
            logger.info("Cached authorization %s expired at %d", fingerprint, record.expires_at)
            return None
        return record

    async def load_or_sign(
        self, contracts: Iterable[str], user: str, signer: Signer
    ) -> Optional[DecryptionAuthorization]:
        """
        Return a usable authorization for (`contracts`, `user`), signing if needed.

        Returns None when the user declines or the signature request fails;
        callers treat that as "authorization unavailable".
        """
        scope = _scope(contracts)
        fingerprint = authorization_fingerprint(scope, user)
        lock = self._locks.setdefault(fingerprint, asyncio.Lock())
        self._waiters[fingerprint] = self._waiters.get(fingerprint, 0) + 1
        try:
            async with lock:
                cached = self._lookup(fingerprint, scope)
                if cached is not None:
                    return cached
                return await self._sign(fingerprint, scope, user, signer)
        finally:
            self._waiters[fingerprint] -= 1
            if not self._waiters[fingerprint]:
                del self._waiters[fingerprint]
                del self._locks[fingerprint]

    @property
    def pending(self) -> int:
        """Number of fingerprints with a load_or_sign call in progress."""
        return len(self._locks)

    async def _sign(
        self, fingerprint: str, scope: List[str], user: str, signer: Signer
    ) -> Optional[DecryptionAuthorization]:
        public_key, private_key = self._keypair_factory()
        start = self._now()
        duration = self._config.auth_duration_days
        message = build_authorization_message(
            public_key,
            scope,
            start,
            duration,
            chain_id=self._config.gateway_chain_id,
            verifying_contract=self._config.decryption_verifier,
        )
        try:
            signature = await signer.sign_typed_data(message)
        except Exception as exc:
            # Wallets report a declined prompt as an arbitrary error
            logger.warning("Authorization signing failed for %s: %s", user, exc)
            return None

        record = DecryptionAuthorization(
            public_key=public_key,
            private_key=private_key,
            signature=signature,
            contract_addresses=scope,
            user_address=user,
            start_timestamp=start,
            duration_days=duration,
        )
        try:
            self._store.put(fingerprint, record)
        except Exception as exc:
            logger.warning("Authorization store write failed for %s: %s", fingerprint, exc)
        logger.info("Signed new decryption authorization %s valid for %d days", fingerprint, duration)
        return record


__all__ = [
    "DecryptionAuthorizationCache",
    "authorization_fingerprint",
    "build_authorization_message",
    "generate_keypair",
]

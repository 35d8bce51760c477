from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from common.signed import UINT32_RANGE, normalize_signed32
from state.models import BOOL_FIELDS, TREND_FIELDS, ClearScalar, ClearValue, is_zero_handle

from .authorization import DecryptionAuthorizationCache
from .interfaces import ClearResult, DecryptionCapability, Signer
from .outcome import OperationGuard, Outcome
from .record import AnalyzerState
from .session import SessionContext, SessionTracker


logger = logging.getLogger("analyzer.decryption")

SCORES = "scores"
TIME_SERIES = "time_series"


def coerce_clear_value(field: str, raw: ClearResult) -> ClearScalar:
    """
    Convert one decrypted result into the field's domain value.

    Booleans are only accepted for flag fields; integers may arrive as
    decimal or 0x strings and must fit in uint32. Trend fields are read as
    signed 32-bit.
    Raises ValueError for values that do not fit the field.
    """
    if field in BOOL_FIELDS:
        if isinstance(raw, bool):
            return raw
        return bool(int(raw, 0) if isinstance(raw, str) else int(raw))
    if isinstance(raw, bool):
        raise ValueError(f"boolean result for numeric field {field}")
    if isinstance(raw, str):
        s = raw.strip()
        value = int(s, 16) if s.lower().startswith("0x") else int(s)
    else:
        value = int(raw)
    if not 0 <= value < UINT32_RANGE:
        raise ValueError(f"{field} value {value} is outside the uint32 range")
    if field in TREND_FIELDS:
        return normalize_signed32(value)
    return value


class BatchDecryptionOrchestrator:
    """
    Turns a group of handles into tagged clear values with one batched request.

    Groups ("scores", "time_series") each allow one decryption in flight.
    The staleness predicate is checked after the authorization step and again
    after the decrypt round trip; either may be interrupted by a switch of
    account or network, and a stale result is dropped without touching state.
    """

    def __init__(
        self,
        authorizations: DecryptionAuthorizationCache,
        decryptor: DecryptionCapability,
        tracker: SessionTracker,
        record: AnalyzerState,
    ) -> None:
        self._authorizations = authorizations
        self._decryptor = decryptor
        self._tracker = tracker
        self._record = record
        self._guards = {SCORES: OperationGuard(SCORES), TIME_SERIES: OperationGuard(TIME_SERIES)}

    def busy(self, group: str) -> bool:
        return self._guards[group].busy

    def _target(self, group: str) -> Dict[str, ClearValue]:
        if group == SCORES:
            return self._record.clear_scores
        return self._record.clear_time_series

    async def decrypt(
        self,
        group: str,
        handles: Sequence[Tuple[str, Optional[str]]],
        contract: str,
        signer: Signer,
        ctx: Optional[SessionContext] = None,
    ) -> Outcome:
        guard = self._guards[group]
        if not guard.try_enter():
            return Outcome.BUSY
        try:
            return await self._run(group, handles, contract, signer, ctx)
        except Exception as exc:
            self._record.report(f"Decryption failed! {exc}", level=logging.WARNING)
            return Outcome.FAILED
        finally:
            guard.leave()

    async def _run(
        self,
        group: str,
        handles: Sequence[Tuple[str, Optional[str]]],
        contract: str,
        signer: Signer,
        ctx: Optional[SessionContext],
    ) -> Outcome:
        is_stale = self._tracker.stale_check(ctx or self._tracker.capture())
        target = self._target(group)

        wanted: List[Tuple[str, str]] = [
            (field, handle.lower()) for field, handle in handles if not is_zero_handle(handle)
        ]
        if not wanted:
            for field, _ in handles:
                target.pop(field, None)
            return Outcome.CLEARED

        self._record.report("Start decrypting...")
        auth = await self._authorizations.load_or_sign([contract], signer.address, signer)
        if auth is None:
            self._record.report("Unable to build decryption authorization", level=logging.WARNING)
            return Outcome.UNAVAILABLE

        if is_stale():
            self._record.report("Ignore decryption: context changed")
            return Outcome.STALE

        self._record.report("Call userDecrypt...")
        pairs = [{"handle": handle, "contractAddress": contract} for _, handle in wanted]
        result = await self._decryptor.user_decrypt(
            pairs,
            auth.private_key,
            auth.public_key,
            auth.signature,
            auth.contract_addresses,
            auth.user_address,
            auth.start_timestamp,
            auth.duration_days,
        )

        if is_stale():
            self._record.report("Ignore decryption: context changed")
            return Outcome.STALE

        clear = {str(k).lower(): v for k, v in result.items()}
        for field, handle in wanted:
            if handle not in clear:
                continue
            try:
                value = coerce_clear_value(field, clear[handle])
            except (TypeError, ValueError) as exc:
                logger.warning("Skipping undecodable value for %s: %s", field, exc)
                continue
            target[field] = ClearValue(handle=handle, value=value)

        self._record.report("Decryption completed!")
        return Outcome.APPLIED

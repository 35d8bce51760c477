from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Sequence

from common.signed import UINT32_RANGE

from .interfaces import InputEncryptor, LedgerWriter, Signer
from .outcome import OperationGuard, Outcome
from .record import AnalyzerState
from .session import SessionContext, SessionTracker
from .synchronizer import HandleSynchronizer


logger = logging.getLogger("analyzer.submission")


class MutationSubmissionPipeline:
    """
    Encrypts a (heart rate, steps, sleep hours) record and submits it.

    Once the transaction is sent it is never rolled back; a context change
    after inclusion only suppresses the automatic handle refresh.
    """

    def __init__(
        self,
        encryptor: InputEncryptor,
        writer: LedgerWriter,
        synchronizer: HandleSynchronizer,
        tracker: SessionTracker,
        record: AnalyzerState,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._encryptor = encryptor
        self._writer = writer
        self._synchronizer = synchronizer
        self._tracker = tracker
        self._record = record
        self._clock = clock
        self._guard = OperationGuard("submit")

    @property
    def busy(self) -> bool:
        return self._guard.busy

    async def submit(
        self,
        values: Sequence[int],
        contract: str,
        signer: Signer,
        timestamp: Optional[int] = None,
        ctx: Optional[SessionContext] = None,
    ) -> Outcome:
        if not self._guard.try_enter():
            return Outcome.BUSY
        try:
            ctx = ctx or self._tracker.capture()
            is_stale = self._tracker.stale_check(ctx)
            try:
                if len(values) != 3:
                    raise ValueError(f"expected 3 values, got {len(values)}")
                for v in values:
                    if not 0 <= int(v) < UINT32_RANGE:
                        raise ValueError(f"value out of uint32 range: {v}")

                self._record.report("Starting encryption...")
                enc = await self._encryptor.encrypt_inputs([int(v) for v in values], contract, signer.address)
                if len(enc.handles) != 3:
                    raise ValueError(f"encoder returned {len(enc.handles)} ciphertexts, expected 3")

                if is_stale():
                    self._record.report("Ignore submission: context changed")
                    return Outcome.STALE

                ts = int(timestamp) if timestamp is not None else int(self._clock())
                self._record.report("Submitting health data...")
                tx = await self._writer.submit_health_data(
                    contract, signer, enc.handles[0], enc.handles[1], enc.handles[2], enc.input_proof, ts
                )
                self._record.report(f"Wait for tx:{tx.hash}...")
                receipt = await tx.wait()
                self._record.report(f"Submission completed status={receipt.status}")
            except Exception as exc:
                self._record.report(f"Submission failed! {exc}", level=logging.WARNING)
                return Outcome.FAILED

            if is_stale():
                logger.info("Submission %s included; skipping refresh for changed context", tx.hash)
                return Outcome.STALE
        finally:
            self._guard.leave()

        await self._synchronizer.refresh(contract, signer.address, ctx)
        return Outcome.APPLIED

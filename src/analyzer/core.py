from __future__ import annotations

import logging
import time
from typing import Callable, Dict, Optional

from state.models import (
    SCORE_FIELDS,
    ClearScalar,
    ClearValue,
    ScoreHandles,
    TimeSeriesHandles,
    is_zero_handle,
)

from .aggregate import ALL_RECORDS_HORIZON, AggregateQueryTrigger
from .authorization import DecryptionAuthorizationCache
from .config import AnalyzerConfig, DeploymentRegistry
from .decryption import SCORES, TIME_SERIES, BatchDecryptionOrchestrator
from .interfaces import (
    AuthorizationStore,
    ConnectionState,
    DecryptionCapability,
    InputEncryptor,
    LedgerReader,
    LedgerWriter,
)
from .outcome import Outcome
from .record import AnalyzerState
from .session import SessionTracker
from .submission import MutationSubmissionPipeline
from .synchronizer import HandleSynchronizer


logger = logging.getLogger("analyzer.core")


def _current(values: Dict[str, ClearValue], handles: Dict[str, str]) -> Dict[str, ClearScalar]:
    # Only values decrypted from the latest known handle are authoritative
    return {
        name: cv.value
        for name, cv in values.items()
        if handles.get(name) is not None and handles[name] == cv.handle
    }


class HealthAnalyzer:
    """
    Client-side state of one user's encrypted health metrics.

    Wires the handle synchronizer, decryption orchestrator, submission
    pipeline and aggregate trigger around one state record, and exposes
    read-only views plus readiness flags for a presentation layer.
    Operations never raise; they return an `Outcome` and set `message`.
    """

    def __init__(
        self,
        connection: ConnectionState,
        *,
        reader: Optional[LedgerReader],
        writer: Optional[LedgerWriter],
        decryptor: Optional[DecryptionCapability],
        encryptor: Optional[InputEncryptor],
        store: AuthorizationStore,
        config: Optional[AnalyzerConfig] = None,
        registry: Optional[DeploymentRegistry] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config or AnalyzerConfig()
        self._connection = connection
        self._reader = reader
        self._writer = writer
        self._decryptor = decryptor
        self._encryptor = encryptor
        self._clock = clock
        self._registry = registry if registry is not None else self._config.load_registry()

        self.record = AnalyzerState()
        self.tracker = SessionTracker(connection, self._registry)
        self.authorizations = DecryptionAuthorizationCache(store, self._config, clock=clock)
        self.synchronizer = HandleSynchronizer(reader, self.tracker, self.record)
        self.decryption = BatchDecryptionOrchestrator(
            self.authorizations, decryptor, self.tracker, self.record
        )
        self.submission = MutationSubmissionPipeline(
            encryptor, writer, self.synchronizer, self.tracker, self.record, clock=clock
        )
        self.aggregate = AggregateQueryTrigger(writer, self.tracker, self.record)
        self.check_deployment()

    # --------------- Views ---------------
    @property
    def contract_address(self) -> Optional[str]:
        return self.tracker.current_contract_address()

    @property
    def is_deployed(self) -> bool:
        return self.contract_address is not None

    @property
    def message(self) -> str:
        return self.record.message

    @property
    def score_handles(self) -> Optional[ScoreHandles]:
        return self.record.score_handles

    @property
    def time_series_handles(self) -> Optional[TimeSeriesHandles]:
        return self.record.time_series_handles

    @property
    def clear_scores(self) -> Dict[str, ClearScalar]:
        handles = self.record.score_handles
        return _current(self.record.clear_scores, dict(handles.items()) if handles else {})

    @property
    def clear_time_series(self) -> Dict[str, ClearScalar]:
        handles = self.record.time_series_handles
        return _current(self.record.clear_time_series, dict(handles.items()) if handles else {})

    @property
    def is_decrypted(self) -> bool:
        handles = self.record.score_handles
        if handles is None:
            return False
        cv = self.record.clear_scores.get("overall")
        return cv is not None and cv.handle == handles.overall

    # --------------- Busy / readiness flags ---------------
    @property
    def is_refreshing(self) -> bool:
        return self.synchronizer.busy

    @property
    def is_decrypting(self) -> bool:
        return self.decryption.busy(SCORES)

    @property
    def is_submitting(self) -> bool:
        return self.submission.busy

    @property
    def is_fetching_time_series(self) -> bool:
        return self.aggregate.busy

    @property
    def is_decrypting_time_series(self) -> bool:
        return self.decryption.busy(TIME_SERIES)

    @property
    def can_get_scores(self) -> bool:
        return self.is_deployed and self._reader is not None and not self.is_refreshing

    @property
    def can_decrypt(self) -> bool:
        handles = self.record.score_handles
        if not (self.is_deployed and self._decryptor is not None and self._connection.signer is not None):
            return False
        if self.is_refreshing or self.is_decrypting or handles is None:
            return False
        return not is_zero_handle(handles.overall) and not self.is_decrypted

    @property
    def can_submit(self) -> bool:
        return (
            self.is_deployed
            and self._encryptor is not None
            and self._writer is not None
            and self._connection.signer is not None
            and not self.is_refreshing
            and not self.is_submitting
        )

    @property
    def can_fetch_time_series(self) -> bool:
        return (
            self.is_deployed
            and self._writer is not None
            and self._connection.signer is not None
            and not self.is_fetching_time_series
        )

    @property
    def can_decrypt_time_series(self) -> bool:
        handles = self.record.time_series_handles
        return (
            self.is_deployed
            and self._decryptor is not None
            and self._connection.signer is not None
            and not self.is_decrypting_time_series
            and handles is not None
            and handles.any_recorded()
        )

    # --------------- Operations ---------------
    def check_deployment(self) -> None:
        """Set or clear the 'deployment not found' status for the current chain."""
        chain_id = self._connection.chain_id
        if chain_id is not None and self.contract_address is None:
            self.record.report(
                f"HealthAnalyzer deployment not found for chainId={chain_id}.",
                level=logging.WARNING,
            )
        else:
            self.record.message = ""

    async def on_connection_changed(self) -> Outcome:
        """Re-evaluate the deployment and reload handles after an account/network switch."""
        self.check_deployment()
        return await self.refresh_scores()

    async def refresh_scores(self) -> Outcome:
        contract = self.contract_address
        signer = self._connection.signer
        if contract is None or signer is None or self._reader is None:
            self.record.score_handles = None
            return Outcome.UNAVAILABLE
        return await self.synchronizer.refresh(contract, signer.address)

    async def decrypt_scores(self) -> Outcome:
        contract = self.contract_address
        signer = self._connection.signer
        if contract is None or signer is None or self._decryptor is None:
            return Outcome.UNAVAILABLE
        handles = self.record.score_handles
        pairs = handles.items() if handles is not None else [(f, None) for f in SCORE_FIELDS]
        return await self.decryption.decrypt(SCORES, pairs, contract, signer)

    async def submit_health_data(
        self, heart_rate: int, steps: int, sleep_hours: int, timestamp: Optional[int] = None
    ) -> Outcome:
        contract = self.contract_address
        signer = self._connection.signer
        if contract is None or signer is None or self._encryptor is None or self._writer is None:
            return Outcome.UNAVAILABLE
        return await self.submission.submit((heart_rate, steps, sleep_hours), contract, signer, timestamp)

    async def fetch_time_series_stats(self, start_timestamp: int, end_timestamp: int) -> Outcome:
        contract = self.contract_address
        signer = self._connection.signer
        if contract is None or signer is None or self._writer is None:
            return Outcome.UNAVAILABLE
        return await self.aggregate.fetch(signer.address, start_timestamp, end_timestamp, contract, signer)

    async def fetch_all_time_series_stats(self) -> Outcome:
        """Aggregate over every record: [0, now + ~31 years]."""
        return await self.fetch_time_series_stats(0, int(self._clock()) + ALL_RECORDS_HORIZON)

    async def decrypt_time_series_stats(self) -> Outcome:
        contract = self.contract_address
        signer = self._connection.signer
        handles = self.record.time_series_handles
        if contract is None or signer is None or self._decryptor is None or handles is None:
            return Outcome.UNAVAILABLE
        return await self.decryption.decrypt(TIME_SERIES, handles.items(), contract, signer)

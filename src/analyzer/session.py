from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from .config import DeploymentRegistry
from .interfaces import ConnectionState


@dataclass(frozen=True)
class SessionContext:
    """Connection snapshot taken when an asynchronous operation starts."""

    chain_id: Optional[int]
    signer_address: Optional[str]
    contract_address: Optional[str]


class SessionTracker:
    """
    Pass-through predicates over the live connection.

    Holds no state of its own: every answer is read from `connection` (and the
    deployment registry for the contract address) at call time.
    """

    def __init__(self, connection: ConnectionState, registry: DeploymentRegistry) -> None:
        self._connection = connection
        self._registry = registry

    def chain_still_current(self, chain_id: Optional[int]) -> bool:
        return self._connection.chain_id == chain_id

    def signer_still_current(self, identity: Optional[str]) -> bool:
        signer = self._connection.signer
        if signer is None or identity is None:
            return signer is None and identity is None
        return signer.address.lower() == identity.lower()

    def current_contract_address(self) -> Optional[str]:
        return self._registry.address_for(self._connection.chain_id)

    def capture(self) -> SessionContext:
        signer = self._connection.signer
        return SessionContext(
            chain_id=self._connection.chain_id,
            signer_address=signer.address if signer is not None else None,
            contract_address=self.current_contract_address(),
        )

    def is_stale(self, ctx: SessionContext) -> bool:
        return (
            ctx.contract_address != self.current_contract_address()
            or not self.chain_still_current(ctx.chain_id)
            or not self.signer_still_current(ctx.signer_address)
        )

    def stale_check(self, ctx: SessionContext) -> Callable[[], bool]:
        """Closure re-evaluated at every suspension point of one operation."""
        return lambda: self.is_stale(ctx)

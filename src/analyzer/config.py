from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from pydantic import ValidationError

from state.models import Deployment


logger = logging.getLogger("analyzer.config")

ENV_AUTH_DURATION_DAYS = "ANALYZER_AUTH_DURATION_DAYS"
ENV_GATEWAY_CHAIN_ID = "ANALYZER_GATEWAY_CHAIN_ID"
ENV_DECRYPTION_VERIFIER = "ANALYZER_DECRYPTION_VERIFIER"
ENV_DEPLOYMENTS_FILE = "ANALYZER_DEPLOYMENTS_FILE"

DEFAULT_AUTH_DURATION_DAYS = 365
# Gateway chain and decryption verifier of the local development (mock) network
DEFAULT_GATEWAY_CHAIN_ID = 55815
DEFAULT_DECRYPTION_VERIFIER = "0x5ffdaab0373e62e2ea2944776209aef29e631a64"


def _getenv(name: str, default: Optional[str] = None) -> Optional[str]:
    val = os.environ.get(name)
    return val if val not in (None, "") else default


def _require(v: Optional[str], what: str) -> str:
    if not v:
        raise RuntimeError(f"Missing required configuration: {what}")
    return v


def _int_env(name: str, default: int) -> int:
    raw = _getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"Invalid integer for {name}: {raw!r}") from exc


@dataclass(frozen=True)
class AnalyzerConfig:
    """
    Runtime settings of the client core.

    - auth_duration_days: validity window of newly signed decryption authorizations.
    - gateway_chain_id / decryption_verifier: EIP-712 domain of the authorization message.
    - deployments_file: optional registry JSON (chain id -> contract address).
    """

    auth_duration_days: int = DEFAULT_AUTH_DURATION_DAYS
    gateway_chain_id: int = DEFAULT_GATEWAY_CHAIN_ID
    decryption_verifier: str = DEFAULT_DECRYPTION_VERIFIER
    deployments_file: Optional[str] = None

    def __post_init__(self) -> None:
        if self.auth_duration_days <= 0:
            raise ValueError("auth_duration_days must be > 0")

    @classmethod
    def from_env(cls) -> "AnalyzerConfig":
        return cls(
            auth_duration_days=_int_env(ENV_AUTH_DURATION_DAYS, DEFAULT_AUTH_DURATION_DAYS),
            gateway_chain_id=_int_env(ENV_GATEWAY_CHAIN_ID, DEFAULT_GATEWAY_CHAIN_ID),
            decryption_verifier=_getenv(ENV_DECRYPTION_VERIFIER, DEFAULT_DECRYPTION_VERIFIER),
            deployments_file=_getenv(ENV_DEPLOYMENTS_FILE),
        )

    def load_registry(self) -> "DeploymentRegistry":
        if not self.deployments_file:
            return DeploymentRegistry({})
        return DeploymentRegistry.from_file(_require(self.deployments_file, ENV_DEPLOYMENTS_FILE))


class DeploymentRegistry:
    """
    Chain id -> deployed contract lookup.

    Accepts the generator's JSON shape, keyed by decimal chain id strings:
        {"31337": {"address": "0x...", "chainId": 31337, "chainName": "hardhat"}}
    Entries that fail validation are skipped.
    """

    def __init__(self, entries: Mapping[Any, Any]) -> None:
        self._entries: Dict[int, Deployment] = {}
        for key, raw in entries.items():
            try:
                chain_id = int(key)
                dep = raw if isinstance(raw, Deployment) else Deployment.model_validate(raw)
            except (ValueError, TypeError, ValidationError):
                logger.warning("Skipping invalid deployment entry for chain %r", key)
                continue
            self._entries[chain_id] = dep

    @classmethod
    def from_file(cls, path: os.PathLike[str] | str) -> "DeploymentRegistry":
        p = Path(path)
        try:
            with p.open("r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, ValueError) as exc:
            raise RuntimeError(f"Unable to read deployments file {p}: {exc}") from exc
        if not isinstance(raw, dict):
            raise RuntimeError(f"Deployments file {p} must contain a JSON object")
        return cls(raw)

    def lookup(self, chain_id: Optional[int]) -> Optional[Deployment]:
        """Deployment for `chain_id`, or None when unknown or not deployed."""
        if chain_id is None:
            return None
        dep = self._entries.get(int(chain_id))
        if dep is None or not dep.is_deployed():
            return None
        return dep

    def address_for(self, chain_id: Optional[int]) -> Optional[str]:
        dep = self.lookup(chain_id)
        return dep.address if dep is not None else None


__all__ = ["AnalyzerConfig", "DeploymentRegistry"]

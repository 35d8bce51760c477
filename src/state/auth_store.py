from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Dict, Optional

from pydantic import ValidationError

from .models import DecryptionAuthorization


logger = logging.getLogger("state.auth_store")

DEFAULT_AUTH_DIR_ENV = "ANALYZER_AUTH_DIR"


def _default_store_file() -> Path:
    # Prefer explicit env var, else project-local .cache folder
    base = os.environ.get(DEFAULT_AUTH_DIR_ENV)
    if base:
        return Path(base) / "authorizations.json"
    return Path(".cache") / "authorizations" / "authorizations.json"


class InMemoryAuthorizationStore:
    """Authorization store that lives for one process (no persistence)."""

    def __init__(self) -> None:
        self._data: Dict[str, DecryptionAuthorization] = {}

    def get(self, fingerprint: str) -> Optional[DecryptionAuthorization]:
        return self._data.get(fingerprint)

    def put(self, fingerprint: str, record: DecryptionAuthorization) -> None:
        self._data[fingerprint] = record


class JsonFileAuthorizationStore:
    """
    JSON-file backed authorization store keyed by fingerprint.

    - Backed by a single JSON file: { fingerprint: {authorization fields}, ... }
    - At most one record per fingerprint; `put` replaces.
    - Corrupt files or records are treated as missing; write failures are
      logged and ignored (a lost record only costs one more signing ceremony).
    - The file holds ephemeral private keys; keep it out of shared locations.
    """

    def __init__(self, path: Optional[os.PathLike[str] | str] = None) -> None:
        self._path = Path(path) if path else _default_store_file()
        self._data: Dict[str, dict] = {}
        self._loaded = False

    @property
    def path(self) -> Path:
        return self._path

    def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        self._loaded = True
        try:
            if self._path.exists():
                with self._path.open("r", encoding="utf-8") as f:
                    raw = json.load(f)
                    if isinstance(raw, dict):
                        self._data = {str(k): v for k, v in raw.items() if isinstance(v, dict)}
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable authorization store %s: %s", self._path, exc)
            self._data = {}

    def _save(self) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("w", encoding="utf-8") as f:
                json.dump(self._data, f, indent=2, sort_keys=True)
        except OSError as exc:
            logger.warning("Failed to persist authorization store %s: %s", self._path, exc)

    def get(self, fingerprint: str) -> Optional[DecryptionAuthorization]:
        self._ensure_loaded()
        entry = self._data.get(fingerprint)
        if entry is None:
            return None
        try:
            return DecryptionAuthorization.model_validate(entry)
        except ValidationError:
            logger.warning("Dropping malformed authorization record %s", fingerprint)
            return None

    def put(self, fingerprint: str, record: DecryptionAuthorization) -> None:
        self._ensure_loaded()
        self._data[fingerprint] = record.model_dump()
        self._save()


__all__ = [
    "InMemoryAuthorizationStore",
    "JsonFileAuthorizationStore",
]

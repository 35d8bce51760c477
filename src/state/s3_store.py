from __future__ import annotations

import json
import logging
import os
from typing import Optional

import boto3
from botocore.exceptions import ClientError
from cryptography.fernet import Fernet, InvalidToken

from .models import DecryptionAuthorization


logger = logging.getLogger("state.s3_store")

# Environment variable names for convenience configuration
ENV_BUCKET = "ANALYZER_AUTH_BUCKET"
ENV_PREFIX = "ANALYZER_AUTH_PREFIX"
ENV_FERNET_KEY = "ANALYZER_FERNET_KEY"


def _to_fernet(key: str | bytes) -> Fernet:
    """Construct a Fernet instance from a user-provided key.

    The key must be a URL-safe base64-encoded 32-byte key (str or bytes),
    as returned by `cryptography.fernet.Fernet.generate_key()`.
    """
    if isinstance(key, str):
        key_bytes = key.encode("utf-8")
    else:
        key_bytes = key
    return Fernet(key_bytes)


def _dump_record_json(record: DecryptionAuthorization) -> bytes:
    # Deterministic JSON: stable key order, no extra whitespace
    return json.dumps(
        record.model_dump(), separators=(",", ":"), sort_keys=True
    ).encode("utf-8")


def _load_record_json(data: bytes) -> DecryptionAuthorization:
    raw = json.loads(data.decode("utf-8"))
    return DecryptionAuthorization.model_validate(raw)


class S3AuthorizationStore:
    """
    S3-backed authorization store, one Fernet-encrypted object per fingerprint.

    Usage
    - Provide an S3 bucket, a key prefix and a Fernet key (from env or injected).
    - `get(fingerprint)` returns the stored record or None when the object
      does not exist.
    - `put(fingerprint, record)` overwrites the object for that fingerprint.

    Environment variables (optional)
    - `ANALYZER_AUTH_BUCKET`: S3 bucket holding the records
    - `ANALYZER_AUTH_PREFIX`: key prefix (e.g. "authorizations/")
    - `ANALYZER_FERNET_KEY`:  urlsafe base64-encoded key for Fernet
    """

    def __init__(
        self,
        *,
        s3: Optional[object] = None,
        bucket: str,
        prefix: str = "",
        fernet_key: str | bytes,
        region_name: Optional[str] = None,
    ) -> None:
        self._s3 = s3 or boto3.client("s3", region_name=region_name)
        self._bucket = bucket
        self._prefix = prefix
        self._fernet = _to_fernet(fernet_key)

    # -------- Construction helpers --------
    @classmethod
    def from_env(cls) -> "S3AuthorizationStore":
        bucket = os.environ.get(ENV_BUCKET)
        prefix = os.environ.get(ENV_PREFIX, "authorizations/")
        fkey = os.environ.get(ENV_FERNET_KEY)
        if not bucket or not fkey:
            missing = [name for name, val in [(ENV_BUCKET, bucket), (ENV_FERNET_KEY, fkey)] if not val]
            raise RuntimeError(
                f"Missing required environment variables for S3 authorization store: {', '.join(missing)}"
            )
        return cls(bucket=bucket, prefix=prefix, fernet_key=fkey)

    def object_key(self, fingerprint: str) -> str:
        return f"{self._prefix}{fingerprint}.json"

    # -------- Core operations --------
    def get(self, fingerprint: str) -> Optional[DecryptionAuthorization]:
        """Read and decrypt the record for `fingerprint`.

        Returns None if the object does not exist.
        Raises:
        - ValueError if decryption fails or content is not a valid record.
        - botocore.exceptions.ClientError for other S3 issues.
        """
        key = self.object_key(fingerprint)
        try:
            resp = self._s3.get_object(Bucket=self._bucket, Key=key)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code in ("NoSuchKey", "404"):
                return None
            raise

        body = resp["Body"].read()
        try:
            decrypted = self._fernet.decrypt(body)
        except InvalidToken as ex:
            raise ValueError("Failed to decrypt authorization: invalid Fernet token") from ex

        try:
            return _load_record_json(decrypted)
        except Exception as ex:
            raise ValueError("Failed to parse decrypted authorization JSON") from ex

    def put(self, fingerprint: str, record: DecryptionAuthorization) -> None:
        """Encrypt and write the record, replacing any previous one."""
        ciphertext = self._fernet.encrypt(_dump_record_json(record))
        key = self.object_key(fingerprint)
        self._s3.put_object(
            Bucket=self._bucket,
            Key=key,
            Body=ciphertext,
            ContentType="application/octet-stream",
        )
        logger.debug("Stored authorization s3://%s/%s", self._bucket, key)


__all__ = ["S3AuthorizationStore"]

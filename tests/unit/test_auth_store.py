from __future__ import annotations

import json

from state.auth_store import InMemoryAuthorizationStore, JsonFileAuthorizationStore
from state.models import DecryptionAuthorization


def _record(start: int = 1_000) -> DecryptionAuthorization:
    return DecryptionAuthorization(
        public_key="0xpub",
        private_key="0xpriv",
        signature="0xsig",
        contract_addresses=["0xaaa"],
        user_address="0xuser",
        start_timestamp=start,
        duration_days=7,
    )


def test_in_memory_store_get_put():
    store = InMemoryAuthorizationStore()
    assert store.get("fp") is None
    store.put("fp", _record())
    assert store.get("fp") == _record()


def test_json_store_persists_across_instances(tmp_path):
    path = tmp_path / "auth" / "authorizations.json"
    JsonFileAuthorizationStore(path).put("fp", _record())

    reopened = JsonFileAuthorizationStore(path)
    assert reopened.get("fp") == _record()
    assert reopened.get("other") is None


def test_json_store_put_replaces_previous_record(tmp_path):
    path = tmp_path / "authorizations.json"
    store = JsonFileAuthorizationStore(path)
    store.put("fp", _record(1_000))
    store.put("fp", _record(2_000))

    raw = json.loads(path.read_text(encoding="utf-8"))
    assert list(raw.keys()) == ["fp"]
    assert JsonFileAuthorizationStore(path).get("fp").start_timestamp == 2_000


def test_json_store_treats_corrupt_file_as_empty(tmp_path):
    path = tmp_path / "authorizations.json"
    path.write_text("{not json", encoding="utf-8")
    store = JsonFileAuthorizationStore(path)
    assert store.get("fp") is None
    store.put("fp", _record())
    assert JsonFileAuthorizationStore(path).get("fp") == _record()


def test_json_store_drops_malformed_record(tmp_path):
    path = tmp_path / "authorizations.json"
    path.write_text(json.dumps({"fp": {"public_key": "0xpub"}}), encoding="utf-8")
    assert JsonFileAuthorizationStore(path).get("fp") is None


def test_json_store_default_path_from_env(tmp_path, monkeypatch):
    monkeypatch.setenv("ANALYZER_AUTH_DIR", str(tmp_path))
    store = JsonFileAuthorizationStore()
    assert store.path == tmp_path / "authorizations.json"

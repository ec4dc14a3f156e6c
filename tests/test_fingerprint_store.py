import json
import logging
import os
from unittest.mock import patch

import pytest
from freezegun import freeze_time
from sqlalchemy.pool import StaticPool
from sqlmodel import create_engine

from adsentry.exceptions.fingerprint_store_exception import FingerprintStoreSaveError
from adsentry.fingerprintstore.fingerprintstore import generate_fingerprint_key
from adsentry.fingerprintstore.fingerprintstorefactory import (
    FingerprintStoreFactory,
    FingerprintStoreTypes,
)
from adsentry.fingerprintstore.jsonfingerprintstore import JsonFingerprintStore
from adsentry.fingerprintstore.sqlfingerprintstore import SqlFingerprintStore
from adsentry.models.alert import AlertFingerprint
from adsentry.models.severity import AlertSeverity


def fingerprint(date="2024-01-15", severity=AlertSeverity.CRITICAL, **kwargs):
    return AlertFingerprint(
        tenant_id="acme",
        metric_or_check_id="sessions",
        date=date,
        severity=severity,
        **kwargs,
    )


@pytest.fixture
def store_path(tmp_path):
    return str(tmp_path / "data" / "fingerprints.json")


@pytest.fixture
def sql_store():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    return SqlFingerprintStore(engine=engine)


def test_generate_fingerprint_key():
    assert (
        generate_fingerprint_key("acme", "sessions", "2024-01-15", AlertSeverity.CRITICAL)
        == "acme:sessions:2024-01-15:CRITICAL"
    )
    assert (
        generate_fingerprint_key("acme", "cpa_increase", "2024-01-16", "high")
        == "acme:cpa_increase:2024-01-16:HIGH"
    )


def test_fingerprint_severity_is_stored_by_name():
    assert fingerprint().severity == "CRITICAL"
    assert fingerprint(severity="warning").severity == "WARNING"


class TestJsonFingerprintStore:
    def test_missing_file_starts_empty(self, store_path, caplog):
        with caplog.at_level(logging.WARNING):
            store = JsonFingerprintStore(store_path)
        assert store.count == 0
        assert "Fingerprint store not found, starting empty" in caplog.messages
        assert not store.save()
        assert not os.path.exists(store_path)

    def test_set_save_and_reload(self, store_path):
        store = JsonFingerprintStore(store_path)
        key = "acme:sessions:2024-01-15:CRITICAL"
        store.set(key, fingerprint(task_id="abc123", task_url="https://app.clickup.com/t/abc123"))
        assert store.exists(key)
        assert store.save()

        with open(store_path) as f:
            document = json.load(f)
        assert document["version"] == 1
        assert "lastUpdated" in document
        assert document["fingerprints"][key] == {
            "tenantId": "acme",
            "metricOrCheckId": "sessions",
            "date": "2024-01-15",
            "severity": "CRITICAL",
            "createdAt": document["fingerprints"][key]["createdAt"],
            "taskId": "abc123",
            "taskUrl": "https://app.clickup.com/t/abc123",
        }

        reloaded = JsonFingerprintStore(store_path)
        assert reloaded.count == 1
        assert reloaded.get(key).task_id == "abc123"
        assert reloaded.get("missing") is None

    def test_save_only_when_dirty(self, store_path):
        store = JsonFingerprintStore(store_path)
        store.set("k", fingerprint())
        assert store.save()
        assert not store.save()

    def test_try_reserve_and_release(self, store_path):
        store = JsonFingerprintStore(store_path)
        assert store.try_reserve("k", fingerprint())
        assert not store.try_reserve("k", fingerprint())
        store.release("k")
        assert not store.exists("k")
        assert store.try_reserve("k", fingerprint())

    @pytest.mark.parametrize("content", ["{not json", '{"version": 1, "fingerprints": []}', "[]"])
    def test_corrupt_file_starts_empty(self, tmp_path, content, caplog):
        path = tmp_path / "fingerprints.json"
        path.write_text(content)
        with caplog.at_level(logging.WARNING):
            store = JsonFingerprintStore(str(path))
        assert store.count == 0
        assert "Could not read fingerprint store, starting empty" in caplog.messages

    @freeze_time("2024-02-20")
    def test_cleanup(self, store_path):
        store = JsonFingerprintStore(store_path)
        store.set("old", fingerprint(date="2024-01-20"))
        store.set("cutoff", fingerprint(date="2024-01-21"))
        store.set("recent", fingerprint(date="2024-02-19"))
        store.save()

        assert store.cleanup(30) == 1
        assert not store.exists("old")
        assert store.exists("cutoff")
        assert store.exists("recent")
        assert store.save()
        assert JsonFingerprintStore(store_path).count == 2

    def test_save_failure_raises(self, store_path):
        store = JsonFingerprintStore(store_path)
        store.set("k", fingerprint())
        with patch(
            "adsentry.fingerprintstore.jsonfingerprintstore.os.replace",
            side_effect=OSError("disk full"),
        ):
            with pytest.raises(FingerprintStoreSaveError) as e:
                store.save()
        assert e.value.path == store_path
        assert store.dirty
        assert not os.path.exists(store_path)
        assert os.listdir(os.path.dirname(store_path)) == []

    def test_store_path_from_env(self, monkeypatch, tmp_path):
        path = str(tmp_path / "from-env.json")
        monkeypatch.setattr(
            "adsentry.fingerprintstore.jsonfingerprintstore.config",
            lambda key, default=None: path if key == "STORE_PATH" else default,
        )
        assert JsonFingerprintStore().file_path == path


class TestSqlFingerprintStore:
    def test_set_and_get(self, sql_store):
        key = "acme:sessions:2024-01-15:CRITICAL"
        sql_store.set(key, fingerprint(task_id="abc123"))
        assert sql_store.exists(key)
        assert sql_store.get(key).task_id == "abc123"
        assert sql_store.get(key).severity == "CRITICAL"
        assert sql_store.count == 1

        sql_store.set(key, fingerprint(task_id="def456"))
        assert sql_store.get(key).task_id == "def456"
        assert sql_store.count == 1

    def test_try_reserve_is_insert_if_absent(self, sql_store):
        assert sql_store.try_reserve("k", fingerprint())
        assert not sql_store.try_reserve("k", fingerprint())
        assert sql_store.count == 1

    def test_release(self, sql_store):
        sql_store.try_reserve("k", fingerprint())
        sql_store.release("k")
        sql_store.release("missing")
        assert not sql_store.exists("k")

    @freeze_time("2024-02-20")
    def test_cleanup(self, sql_store):
        sql_store.set("old", fingerprint(date="2024-01-20"))
        sql_store.set("recent", fingerprint(date="2024-02-19"))
        assert sql_store.cleanup(30) == 1
        assert not sql_store.exists("old")
        assert sql_store.exists("recent")

    def test_save_is_a_no_op(self, sql_store):
        sql_store.set("k", fingerprint())
        assert sql_store.save() is False


def test_factory(store_path):
    store = FingerprintStoreFactory.get_store(
        FingerprintStoreTypes.JSON, file_path=store_path
    )
    assert isinstance(store, JsonFingerprintStore)
    assert store.file_path == store_path

    store = FingerprintStoreFactory.get_store(
        FingerprintStoreTypes.SQL, db_url="sqlite://"
    )
    assert isinstance(store, SqlFingerprintStore)

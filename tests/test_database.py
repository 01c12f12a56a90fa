import pytest
from bson import ObjectId
from pymongo.errors import AutoReconnect, OperationFailure

import config
import database
from database import retry_reads, serialize_doc, to_object_id


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr(database.time, "sleep", lambda seconds: None)
    monkeypatch.setattr(config, "STORAGE_READ_RETRIES", 3)


def test_read_is_retried_on_transient_error():
    calls = []

    @retry_reads
    def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise AutoReconnect("primary stepped down")
        return "ok"

    assert flaky() == "ok"
    assert len(calls) == 3


def test_read_gives_up_after_configured_attempts():
    calls = []

    @retry_reads
    def down():
        calls.append(1)
        raise AutoReconnect("no primary")

    with pytest.raises(AutoReconnect):
        down()
    assert len(calls) == 3


def test_non_transient_errors_are_not_retried():
    calls = []

    @retry_reads
    def broken():
        calls.append(1)
        raise OperationFailure("bad query")

    with pytest.raises(OperationFailure):
        broken()
    assert len(calls) == 1


def test_serialize_doc_stringifies_ids():
    oid, ref = ObjectId(), ObjectId()
    doc = serialize_doc({"_id": oid, "ref": ref, "title": "Tee"})
    assert doc == {"id": str(oid), "ref": str(ref), "title": "Tee"}


def test_to_object_id_rejects_malformed_values():
    oid = ObjectId()
    assert to_object_id(str(oid)) == oid
    assert to_object_id("nope") is None
    assert to_object_id(None) is None

import pytest

from attendance_tracker.models import AttendanceRecord
from attendance_tracker.remote import (
    RemoteClient,
    RemoteConnectionError,
    RemoteDataError,
    RemoteNotConfiguredError,
    RemoteResponseError,
    dedupe_records,
)

from fakes import FakeResponse, FakeSession, offline_error

URL = "https://script.example.com/macros/s/abc/exec"


def test_fetch_all_normalizes_dates_ids_and_embedded_json():
    session = FakeSession(
        FakeResponse(
            payload={
                "classes": [{"id": 1, "name": "1º Ano A", "schedule": '{"Segunda": ["Matemática"]}'}],
                "students": [{"id": "s1", "name": "Ana", "classId": 1}],
                "attendance": [
                    {"studentId": "s1", "date": "2026-03-10T00:00:00Z", "lessonIndex": 0, "status": "P"}
                ],
                "bimesters": [{"id": 1, "name": "1º", "start": "2026-02-05T03:00:00.000Z", "end": "2026-04-23"}],
            }
        )
    )
    client = RemoteClient(URL, session=session, timeout=3)

    snapshot = client.fetch_all()

    assert session.gets == [{"url": URL, "params": {"action": "getData"}, "timeout": 3}]
    assert snapshot.has_classes
    assert snapshot.classes[0]["schedule"] == {"Segunda": ["Matemática"]}
    assert snapshot.attendance[0]["date"] == "2026-03-10"
    assert snapshot.bimesters[0]["start"] == "2026-02-05"
    assert snapshot.holidays == []


def test_fetch_all_without_classes():
    client = RemoteClient(URL, session=FakeSession(FakeResponse(payload={"students": []})))
    assert not client.fetch_all().has_classes


def test_fetch_all_error_mapping():
    with pytest.raises(RemoteConnectionError):
        RemoteClient(URL, session=FakeSession(error=offline_error())).fetch_all()
    with pytest.raises(RemoteResponseError) as excinfo:
        RemoteClient(URL, session=FakeSession(FakeResponse(status_code=500, payload={}))).fetch_all()
    assert excinfo.value.status_code == 500
    with pytest.raises(RemoteDataError):
        RemoteClient(URL, session=FakeSession(FakeResponse(payload=None, text="<html>"))).fetch_all()
    with pytest.raises(RemoteDataError):
        RemoteClient(URL, session=FakeSession(FakeResponse(payload={"classes": "oops"}))).fetch_all()


def test_unconfigured_client_raises_before_any_request():
    session = FakeSession()
    client = RemoteClient("  ", session=session)

    assert not client.is_configured
    assert client.ping() is False
    with pytest.raises(RemoteNotConfiguredError):
        client.fetch_all()
    with pytest.raises(RemoteNotConfiguredError):
        client.save_one({"studentId": "1", "date": "2026-03-10", "lessonIndex": 0, "status": "P"})
    assert session.gets == [] and session.posts == []


def test_posts_are_text_plain_json():
    session = FakeSession()
    client = RemoteClient(URL, session=session)
    record = AttendanceRecord(student_id="1", date="2026-03-10", lesson_index=0, status="P")

    client.save_one(record)

    post = session.posts[0]
    assert post["headers"]["Content-Type"].startswith("text/plain")
    assert post["body"] == {"action": "saveAttendance", "record": record.to_dict()}


def test_save_batch_dedupes_and_skips_empty():
    session = FakeSession()
    client = RemoteClient(URL, session=session)

    client.save_batch([])
    client.save_batch(
        [
            AttendanceRecord(student_id="1", date="2026-03-10", lesson_index=0, status="P"),
            {"studentId": 1.0, "date": "2026-03-10T00:00:00Z", "lessonIndex": 0, "status": "F"},
        ]
    )

    assert len(session.posts) == 1
    body = session.posts[0]["body"]
    assert body["action"] == "saveBatchAttendance"
    assert len(body["records"]) == 1
    assert body["records"][0]["status"] == "F"


def test_save_all_sends_only_provided_collections():
    session = FakeSession()
    RemoteClient(URL, session=session).save_all({"classes": [{"id": "1"}], "students": []})

    assert session.posts[0]["body"] == {"action": "saveAll", "classes": [{"id": "1"}], "students": []}


def test_write_transport_failure_raises_connection_error():
    client = RemoteClient(URL, session=FakeSession(error=offline_error()))
    with pytest.raises(RemoteConnectionError):
        client.save_all({"classes": []})


def test_ping_and_close():
    session = FakeSession(FakeResponse(status_code=404, payload={}))
    with RemoteClient(URL, session=session) as client:
        assert client.ping() is True
    assert session.closed
    assert RemoteClient(URL, session=FakeSession(error=offline_error())).ping() is False


def test_dedupe_records_keeps_last_per_key():
    payloads = dedupe_records(
        [
            {"studentId": "1", "date": "2026-03-10", "lessonIndex": 0, "status": "P"},
            {"studentId": "1", "date": "2026-03-10", "lessonIndex": 1, "status": "P"},
            {"studentId": "1", "date": "2026-03-10", "lessonIndex": 0, "status": "J"},
        ]
    )

    assert [(item["lessonIndex"], item["status"]) for item in payloads] == [(0, "J"), (1, "P")]

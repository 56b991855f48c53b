from datetime import datetime, timezone

from models.appointment import Appointment, parse_timestamp


def test_from_record():
    appt = Appointment.from_record({
        "id": 7,
        "user_id": "u1",
        "phone_number": None,
        "message_text": "Lembrete",
        "scheduled_for": "2024-01-02T10:00Z",
        "status": "cancelado",
        "extra": "ignored",
    })
    assert appt.id == 7
    assert appt.phone_number == ""
    assert appt.scheduled_for == datetime(2024, 1, 2, 10, 0, tzinfo=timezone.utc)
    assert appt.is_cancelled and not appt.is_pending
    assert appt.to_dict()["message_text"] == "Lembrete"


def test_parse_timestamp_normalizes_to_utc():
    assert parse_timestamp("2024-01-02T07:00:00-03:00") == datetime(2024, 1, 2, 10, 0, tzinfo=timezone.utc)
    assert parse_timestamp("2024-01-02T10:00:00") == datetime(2024, 1, 2, 10, 0, tzinfo=timezone.utc)
    assert parse_timestamp(None) is None
    assert parse_timestamp("") is None

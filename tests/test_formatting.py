from datetime import datetime, timezone

from backend.formatting import format_scheduled_for


def test_formats_in_configured_timezone():
    dt = datetime(2024, 1, 2, 10, 0, tzinfo=timezone.utc)
    assert format_scheduled_for(dt, "America/Sao_Paulo") == "02/01/2024 07:00:00"
    assert format_scheduled_for(dt, "UTC") == "02/01/2024 10:00:00"


def test_naive_is_utc():
    assert format_scheduled_for(datetime(2024, 1, 2, 10, 0), "America/Sao_Paulo") == "02/01/2024 07:00:00"


def test_missing_timestamp():
    assert format_scheduled_for(None, "UTC") == "-"

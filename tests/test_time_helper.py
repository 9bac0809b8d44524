from zengarden.helpers import TimeHelper


def test_format_duration():
    assert TimeHelper.format_duration(-5) == "0s"
    assert TimeHelper.format_duration(42) == "42s"
    assert TimeHelper.format_duration(150) == "2m 30s"
    assert TimeHelper.format_duration(3900) == "1h 5m"


def test_format_est_datetime():
    # Unix epoch is 7 PM the day before on the US east coast (standard time).
    assert TimeHelper.format_est_datetime(0) == "1969-12-31 19:00 EST"


def test_current_timestamp_is_whole_seconds():
    assert isinstance(TimeHelper.get_current_timestamp(), int)

import time
from datetime import datetime
import pytz


class TimeHelper:
    """Timestamps are whole Unix seconds; wall-clock display uses US Eastern time."""
    EST = pytz.timezone('US/Eastern')

    @staticmethod
    def get_current_timestamp() -> int:
        return int(time.time())

    @staticmethod
    def format_est_datetime(timestamp: float) -> str:
        return datetime.fromtimestamp(timestamp, TimeHelper.EST).strftime('%Y-%m-%d %H:%M %Z')

    @staticmethod
    def format_duration(seconds: float) -> str:
        """Short human form, e.g. '1h 5m', '2m 30s', '0s'."""

        seconds = max(0, int(seconds))
        hours, remainder = divmod(seconds, 3600)
        minutes, secs = divmod(remainder, 60)
        if hours:
            return f"{hours}h {minutes}m"
        if minutes:
            return f"{minutes}m {secs}s"
        return f"{secs}s"

# backend/formatting.py
from datetime import datetime
from typing import Optional

import pytz


def format_scheduled_for(dt: Optional[datetime], tz_name: str) -> str:
    """Data/hora no fuso configurado, no formato dd/mm/aaaa HH:MM:SS."""
    if dt is None:
        return "-"
    if dt.tzinfo is None:
        dt = pytz.utc.localize(dt)
    return dt.astimezone(pytz.timezone(tz_name)).strftime("%d/%m/%Y %H:%M:%S")

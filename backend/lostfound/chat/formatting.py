"""Date and time formatting for chat previews and message views.

All formatting uses the server's local time zone.
"""
from datetime import datetime, timedelta
from typing import Optional


def format_last_message_date(timestamp: float, now: Optional[datetime] = None) -> str:
    """Format the date of a chat's last message for the inbox.

    Args:
        timestamp: Message time in seconds since epoch.
        now: Reference "current" local time (defaults to ``datetime.now()``).

    Returns:
        ``HH:MM`` (24-hour) for today, ``"Yesterday"`` for the previous
        calendar day, ``DD/M/YYYY`` otherwise.

    Examples:
        >>> format_last_message_date(datetime(2024, 3, 2, 9, 0).timestamp(),
        ...                          now=datetime(2024, 3, 5, 12, 0))
        '02/3/2024'
    """
    now = now or datetime.now()
    message_date = datetime.fromtimestamp(timestamp)

    if message_date.date() == now.date():
        return message_date.strftime("%H:%M")
    if message_date.date() == now.date() - timedelta(days=1):
        return "Yesterday"
    return f"{message_date.day:02d}/{message_date.month}/{message_date.year}"


def format_time(timestamp: float) -> str:
    """Format a message's time of day as ``H:MM`` (hour not padded)."""
    message_date = datetime.fromtimestamp(timestamp)
    return f"{message_date.hour}:{message_date.minute:02d}"

"""
Conversion between "H:MM" text and decimal hours.

Time entry on the payroll sheet is free text. Parsing never fails: a
fragment that cannot be read counts as 0 so data entry is never blocked.
Minutes are NOT normalized - "7:90" is 7 + 90/60 = 8.5.
"""

from .numbers import round_half_up, to_number


def parse_time_to_decimal(text) -> float:
    """
    "7:30" → 7.5, "7" → 7.0, "" → 0.0, "abc:20" → 0.333...

    Only the first two colon-separated fragments are read.
    """
    if text is None:
        return 0.0
    if not isinstance(text, str):
        return to_number(text)

    text = text.strip()
    if not text:
        return 0.0
    if ":" not in text:
        return to_number(text)

    parts = text.split(":")
    hours = to_number(parts[0])
    minutes = to_number(parts[1])
    return hours + minutes / 60.0


def format_decimal_to_time(decimal_hours) -> str:
    """7.5 → "7:30". Rounded to the nearest whole minute."""
    hours = to_number(decimal_hours)
    if hours < 0:
        hours = 0.0
    total_minutes = round_half_up(hours * 60)
    whole_hours, minutes = divmod(total_minutes, 60)
    return f"{whole_hours}:{minutes:02d}"

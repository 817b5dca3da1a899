"""
Calendar-date helpers shared by the scheduling engine and the HTTP layer.
"""
from datetime import date, datetime
from typing import Optional, Union


def parse_iso_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    """
    Parse an ISO calendar date (YYYY-MM-DD).
    
    Datetimes are truncated to their date; time and timezone parts of a string
    (e.g. "2025-06-02T00:00:00Z") are dropped, only the calendar date is kept.
    
    Args:
        value: ISO string, date, datetime, or None
        
    Returns:
        date or None if value is None/empty
        
    Raises:
        ValueError: If the string is not a valid ISO date
    """
    if value is None or value == '':
        return None
    
    if isinstance(value, datetime):
        return value.date()
    
    if isinstance(value, date):
        return value
    
    text = str(value).strip()
    if 'T' in text:
        text = text.split('T', 1)[0]
    
    return datetime.strptime(text, '%Y-%m-%d').date()


def format_iso_date(d: Optional[date]) -> Optional[str]:
    """Format a date as YYYY-MM-DD, or None if d is None."""
    if d is None:
        return None
    return d.isoformat()

"""
Business-day arithmetic for task scheduling.

Business days are Monday through Friday. Holidays are not considered.
"""
from datetime import date, datetime, timedelta
from typing import Union

DateLike = Union[date, datetime]


def _as_date(value: DateLike) -> date:
    # Convert to date if it's a datetime
    if isinstance(value, datetime):
        return value.date()
    return value


def is_business_day(d: DateLike) -> bool:
    """Return True if d falls on Monday-Friday."""
    return _as_date(d).weekday() < 5  # Monday=0, Sunday=6


def next_business_day(d: DateLike) -> date:
    """
    Get the next business day after d.
    
    Adds one calendar day, then keeps adding days while the result falls on a
    Saturday or Sunday. A Friday therefore maps to the following Monday.
    
    Args:
        d: The reference date (date or datetime object)
        
    Returns:
        date: The first weekday strictly after d
    """
    next_day = _as_date(d) + timedelta(days=1)
    while not is_business_day(next_day):
        next_day += timedelta(days=1)
    return next_day


def add_business_days(start_date: DateLike, business_days: int) -> date:
    """
    Calculate the date that is a specified number of business days after the start date.
    
    Args:
        start_date: The start date (date or datetime object)
        business_days: Number of business days to add
    
    Returns:
        date: The calculated date that is business_days after start_date
    """
    current_date = _as_date(start_date)
    for _ in range(max(0, business_days)):
        current_date = next_business_day(current_date)
    return current_date


def business_days_between(start_date: DateLike, end_date: DateLike) -> int:
    """
    Count business days after start_date up to and including end_date.
    
    Returns 0 when end_date is not after start_date.
    """
    current = _as_date(start_date)
    end = _as_date(end_date)
    count = 0
    while current < end:
        current += timedelta(days=1)
        if is_business_day(current):
            count += 1
    return count

"""
Storefront Usage Tracking
Owner: Billing
Workstream: Plans & Limits

Counts billing documents per store for limit enforcement. The usage window
is the calendar month containing the reference date, in the store's
reference time zone. It is recomputed on every call and never cached.
"""

import os
from datetime import datetime, timezone
from typing import Dict, Any, Callable, Optional, Tuple
from zoneinfo import ZoneInfo

from subscription.plans import is_limit_exceeded

# Reference time zone for calendar-month boundaries
STORE_TIMEZONE = os.environ.get('STORE_TIMEZONE', 'Asia/Kolkata')


def month_window(reference: datetime, tz: Optional[str] = None) -> Tuple[datetime, datetime]:
    """
    Get the calendar month containing a reference instant.

    Args:
        reference: Any datetime; naive values are taken as UTC
        tz: IANA zone name (defaults to STORE_TIMEZONE)

    Returns:
        Tuple of (start, end) as aware datetimes; start inclusive, end exclusive
    """
    zone = ZoneInfo(tz or STORE_TIMEZONE)
    if reference.tzinfo is None:
        reference = reference.replace(tzinfo=timezone.utc)
    local = reference.astimezone(zone)

    start = datetime(local.year, local.month, 1, tzinfo=zone)
    if local.month == 12:
        end = datetime(local.year + 1, 1, 1, tzinfo=zone)
    else:
        end = datetime(local.year, local.month + 1, 1, tzinfo=zone)
    return start, end


class PostgresUsageAccessor:
    """Counts invoices in the `invoices` table."""

    def __init__(self, get_cursor: Callable, tz: Optional[str] = None):
        self._get_cursor = get_cursor
        self._tz = tz

    def count_billing_documents_in_month(self, store_id: str, reference_date: datetime) -> int:
        """
        Count invoices dated inside the month window around reference_date.

        Args:
            store_id: The store identifier
            reference_date: Instant whose calendar month is counted

        Returns:
            Number of billing documents
        """
        start, end = month_window(reference_date, self._tz)
        cur = self._get_cursor()
        try:
            cur.execute("""
                SELECT COUNT(*) AS cnt FROM invoices
                WHERE store_id = %s
                AND date >= %s AND date < %s
            """, (store_id, start, end))
            row = cur.fetchone()
            return int(row['cnt']) if row else 0
        finally:
            cur.close()


def check_limit(current: int, limit: Optional[int]) -> Tuple[bool, Optional[int]]:
    """
    Check if a limit still has room.

    Args:
        current: Current usage count
        limit: The limit (None means unlimited)

    Returns:
        Tuple of (is_allowed, remaining)
        - is_allowed: True if under limit
        - remaining: How many left (None if unlimited)
    """
    if limit is None:
        return True, None  # unlimited

    remaining = limit - current
    is_allowed = current < limit
    return is_allowed, max(0, remaining)


def get_usage_summary(plan, limits, bills_this_month: int) -> Dict[str, Any]:
    """
    Build the usage block shown on the subscription page.

    Args:
        plan: Current Plan
        limits: PlanLimits for that plan
        bills_this_month: Billing documents in the current window

    Returns:
        Dictionary with usage, limits, percentage and remaining count
    """
    limit = limits.bills_per_month
    _, remaining = check_limit(bills_this_month, limit)

    if limit is None:
        pct = 0  # unlimited
    else:
        pct = min(100, round((bills_this_month / max(limit, 1)) * 100, 1))

    return {
        'plan': {
            'id': plan.value,
            'name': plan.label,
        },
        'usage': {
            'bills_this_month': bills_this_month,
        },
        'limits': limits.to_dict(),
        'percentages': {
            'bills': pct,
        },
        'remaining': {
            'bills': remaining,
        },
        'at_limit': {
            'bills': is_limit_exceeded(bills_this_month, limit),
        },
    }

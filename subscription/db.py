"""
Subscription Database Functions
Owner: Billing
Workstream: Subscription Sync

Reads and writes the plan column of store_profiles. The reconciler is the
only writer; everything else reads.
"""

from typing import Callable

from subscription.errors import SubscriptionError
from subscription.plans import Plan, parse_plan


class StoreNotFoundError(SubscriptionError, LookupError):
    """No store_profiles row for the given id."""


def get_store_plan(cur, store_id: str) -> Plan:
    """
    Get the current plan for a store.

    Args:
        cur: Database cursor
        store_id: Store UUID

    Returns:
        Plan (FREE if the stored value is not a known plan)
    """
    cur.execute('SELECT plan FROM store_profiles WHERE id = %s', (store_id,))
    row = cur.fetchone()
    if not row:
        raise StoreNotFoundError(f"Store {store_id} not found")

    plan = parse_plan(row['plan'])
    if plan is None:
        print(f"[BILLING] Store {store_id} has unknown plan {row['plan']!r}, treating as FREE", flush=True)
        return Plan.FREE
    return plan


def set_store_plan(cur, store_id: str, plan: Plan) -> bool:
    """
    Overwrite the plan for a store. Touches no other column.

    Args:
        cur: Database cursor
        store_id: Store UUID
        plan: New plan

    Returns:
        True if a row was updated
    """
    cur.execute(
        'UPDATE store_profiles SET plan = %s WHERE id = %s RETURNING id',
        (Plan(plan).value, store_id)
    )
    return cur.fetchone() is not None


class PostgresStoreAccessor:
    """Store accessor over a request-scoped psycopg2 connection."""

    def __init__(self, get_db: Callable, get_cursor: Callable):
        self._get_db = get_db
        self._get_cursor = get_cursor

    def get_plan(self, store_id: str) -> Plan:
        cur = self._get_cursor()
        try:
            return get_store_plan(cur, store_id)
        finally:
            cur.close()

    def set_plan(self, store_id: str, plan: Plan) -> None:
        db = self._get_db()
        cur = self._get_cursor()
        try:
            updated = set_store_plan(cur, store_id, plan)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            cur.close()

        if not updated:
            print(f"[BILLING] Store {store_id} not found, plan {plan.value} not written", flush=True)

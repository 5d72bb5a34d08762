"""
Serialized payroll mutations per period.

Every change to a period's payroll (sheet save, deduction add/edit/delete,
category cascade) runs as one command: load the latest stored records,
apply the mutation, recompute, persist. Commands on the same (year, month)
hold that period's lock for the whole cycle, so a second save waits for the
first instead of overwriting it with a stale snapshot.
"""

import logging
import threading
from typing import Callable, Dict, List

from sqlalchemy.orm import Session

from .calculators.payroll_calculator import recompute
from .payroll_store import load_period, persist_period

logger = logging.getLogger(__name__)

Mutation = Callable[[List[Dict]], List[Dict]]


class PeriodCommandQueue:
    """One lock per (year, month); commands on a period run one at a time."""

    def __init__(self):
        self._locks: Dict[tuple, threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, year: int, month: int) -> threading.Lock:
        with self._guard:
            key = (year, month)
            if key not in self._locks:
                self._locks[key] = threading.Lock()
            return self._locks[key]

    def run(self, db: Session, year: int, month: int, mutation: Mutation, label: str = "mutation") -> List[Dict]:
        """
        Apply `mutation` to the period's current records and persist the
        recomputed result. Returns the stored records after commit.
        Storage errors roll back and propagate.
        """
        with self._lock_for(year, month):
            try:
                current = load_period(db, year, month)
                updated = [recompute(r) for r in mutation(current)]
                persist_period(db, year, month, updated)
                db.commit()
            except Exception:
                db.rollback()
                logger.exception("Payroll %s failed for %d/%d - rolled back", label, month, year)
                raise
            db.expire_all()
            records = load_period(db, year, month)
        logger.info("Payroll %s applied to %d/%d (%d records)", label, month, year, len(records))
        return records


# Shared by every payroll writer
period_queue = PeriodCommandQueue()

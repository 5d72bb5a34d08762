"""
Sequential quote document numbers.

Numbers run per calendar month and restart at 1 each new (year, month):
    WYC/001/10/2026, WYC/002/10/2026, ... WYC/001/11/2026
"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from . import models
from .config import settings


def format_quote_number(sequence_number: int, month: int, year: int) -> str:
    return f"{settings.QUOTE_NUMBER_PREFIX}/{sequence_number:03d}/{month:02d}/{year}"


def _sequence(db: Session, year: int, month: int) -> Optional[models.QuoteNumberSequence]:
    return db.query(models.QuoteNumberSequence).filter(
        models.QuoteNumberSequence.year == year,
        models.QuoteNumberSequence.month == month,
    ).first()


def peek_next_quote_number(db: Session, now: Optional[datetime] = None) -> dict:
    """The number the next created quote will get. Does not consume it."""
    now = now or datetime.utcnow()
    seq = _sequence(db, now.year, now.month)
    next_number = (seq.last_number if seq else 0) + 1
    return {
        "next_quote_number": format_quote_number(next_number, now.month, now.year),
        "sequence_number": next_number,
        "month": now.month,
        "year": now.year,
    }


def issue_quote_number(db: Session, now: Optional[datetime] = None) -> str:
    """Consume and return the next number. Caller commits."""
    now = now or datetime.utcnow()
    seq = _sequence(db, now.year, now.month)
    if seq is None:
        seq = models.QuoteNumberSequence(year=now.year, month=now.month, last_number=0)
        db.add(seq)
    seq.last_number = (seq.last_number or 0) + 1
    db.flush()
    return format_quote_number(seq.last_number, now.month, now.year)

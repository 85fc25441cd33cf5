"""
Human-readable number allocation for work orders, maintenance orders and jobs.

    Work order:         WO-{YY}{MM}-{NNNN}
    Maintenance order:  MO-{YY}{MM}-{NNNN}
    Job:                J-{NNNNNN}   (one global sequence, not per work order)

Numbers are derived by reading the greatest existing value for the prefix
and incrementing it. This is a read-then-increment: two sessions that both
read before either flushes will compute the same number. The unique
constraints on work_orders.wo_number and jobs.job_number turn such a
collision into an IntegrityError on commit rather than a silent duplicate;
there is no atomic counter behind these numbers.
"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.logging_config import get_logger
from app.models.job import Job
from app.models.work_order import WorkOrder

logger = get_logger(__name__)

WORK_ORDER_PREFIX = "WO"
MAINTENANCE_ORDER_PREFIX = "MO"
JOB_PREFIX = "J"

ORDER_SEQUENCE_WIDTH = 4
JOB_SEQUENCE_WIDTH = 6


def month_prefix(prefix: str, now: Optional[datetime] = None) -> str:
    """'WO' -> 'WO-2405-' for May 2024"""
    now = now or datetime.now()
    return f"{prefix}-{now:%y%m}-"


def parse_sequence(value: Optional[str]) -> int:
    """Trailing numeric suffix of an issued number, 0 when absent or unparseable."""
    if not value:
        return 0
    try:
        return int(value.rsplit("-", 1)[1])
    except (IndexError, ValueError):
        return 0


def _last_issued(db: Session, column, prefix: str) -> Optional[str]:
    return db.query(func.max(column)).filter(column.like(f"{prefix}%")).scalar()


def next_number(db: Session, column, prefix: str, width: int) -> str:
    """
    Next number for ``prefix`` in ``column``, zero-padded to ``width``.

    A failing lookup degrades to the first number of the sequence instead of
    blocking the caller. The lookup runs in a savepoint, so the failure is
    rolled back there and the caller's transaction stays usable.
    """
    return reserve_numbers(db, column, prefix, width, 1)[0]


def reserve_numbers(db: Session, column, prefix: str, width: int, count: int) -> List[str]:
    """Allocate ``count`` consecutive numbers from a single read of the last issued value."""
    try:
        with db.begin_nested():
            last = _last_issued(db, column, prefix)
    except SQLAlchemyError as e:
        logger.error(f"Sequence lookup failed for prefix {prefix!r}, falling back to 1: {e}")
        last = None

    start = parse_sequence(last) + 1
    return [f"{prefix}{seq:0{width}d}" for seq in range(start, start + count)]


def next_work_order_number(db: Session, now: Optional[datetime] = None) -> str:
    return next_number(
        db, WorkOrder.wo_number, month_prefix(WORK_ORDER_PREFIX, now), ORDER_SEQUENCE_WIDTH
    )


def next_maintenance_order_number(db: Session, now: Optional[datetime] = None) -> str:
    return next_number(
        db, WorkOrder.wo_number, month_prefix(MAINTENANCE_ORDER_PREFIX, now), ORDER_SEQUENCE_WIDTH
    )


def next_job_number(db: Session) -> str:
    return next_number(db, Job.job_number, f"{JOB_PREFIX}-", JOB_SEQUENCE_WIDTH)


def reserve_job_numbers(db: Session, count: int) -> List[str]:
    """Job numbers for a batch of new jobs created in one action."""
    if count <= 0:
        return []
    return reserve_numbers(db, Job.job_number, f"{JOB_PREFIX}-", JOB_SEQUENCE_WIDTH, count)

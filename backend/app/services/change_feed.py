"""
In-process row change notifications.

Subscribers register for a (table, event) pair, where event is one of
insert / update / delete or "*" for all three. Changes are collected from
each session flush and published only once that session commits; a
rollback discards them. Callbacks receive the table and event name and
nothing else: consumers are expected to refetch rather than trust a payload.

Usage:
    from app.services.change_feed import change_feed

    unsubscribe = change_feed.subscribe("jobs", "*", lambda table, event: cache.invalidate())
"""
import threading
from collections import defaultdict
from typing import Callable, Dict, List, Set, Tuple

from sqlalchemy import event
from sqlalchemy.orm import Session

from app.logging_config import get_logger

logger = get_logger(__name__)

ChangeCallback = Callable[[str, str], None]

INSERT = "insert"
UPDATE = "update"
DELETE = "delete"
ANY = "*"
EVENTS = (INSERT, UPDATE, DELETE, ANY)

_PENDING_KEY = "change_feed_pending"


class ChangeFeed:
    """Subscriber registry keyed by (table, event)."""

    def __init__(self):
        self._subscribers: Dict[Tuple[str, str], List[ChangeCallback]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, table: str, event_name: str, callback: ChangeCallback) -> Callable[[], None]:
        """Register ``callback``; returns a function that removes it again."""
        if event_name not in EVENTS:
            raise ValueError(f"Unknown change event {event_name!r}, expected one of {EVENTS}")
        key = (table, event_name)
        with self._lock:
            self._subscribers[key].append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers.get(key, []):
                    self._subscribers[key].remove(callback)

        return unsubscribe

    def publish(self, table: str, event_name: str) -> None:
        with self._lock:
            callbacks = list(self._subscribers.get((table, event_name), []))
            callbacks += self._subscribers.get((table, ANY), [])

        for callback in callbacks:
            try:
                callback(table, event_name)
            except Exception as e:
                logger.error(f"Change subscriber failed for {table}/{event_name}: {e}", exc_info=True)

    def clear(self) -> None:
        with self._lock:
            self._subscribers.clear()


change_feed = ChangeFeed()


def _pending(session: Session) -> Set[Tuple[str, str]]:
    return session.info.setdefault(_PENDING_KEY, set())


def _table_of(obj) -> str:
    return obj.__table__.name


@event.listens_for(Session, "after_flush")
def _collect_changes(session: Session, flush_context) -> None:
    pending = _pending(session)
    for obj in session.new:
        pending.add((_table_of(obj), INSERT))
    for obj in session.dirty:
        if session.is_modified(obj, include_collections=False):
            pending.add((_table_of(obj), UPDATE))
    for obj in session.deleted:
        pending.add((_table_of(obj), DELETE))


@event.listens_for(Session, "after_commit")
def _publish_changes(session: Session) -> None:
    changes = session.info.pop(_PENDING_KEY, set())
    for table, event_name in sorted(changes):
        change_feed.publish(table, event_name)


@event.listens_for(Session, "after_rollback")
def _discard_changes(session: Session) -> None:
    session.info.pop(_PENDING_KEY, None)

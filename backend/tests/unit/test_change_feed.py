"""
Tests for commit-time change notifications and the view cache built on them.
"""
import pytest

from app.services import dashboard as dashboard_module
from app.services.change_feed import ChangeFeed, change_feed
from app.services.dashboard import ViewCache
from tests.factories import create_test_machine


pytestmark = pytest.mark.unit


class TestChangeFeed:

    def test_exact_and_wildcard_subscribers(self):
        feed = ChangeFeed()
        seen = []
        feed.subscribe("jobs", "update", lambda t, e: seen.append(("exact", t, e)))
        feed.subscribe("jobs", "*", lambda t, e: seen.append(("any", t, e)))

        feed.publish("jobs", "update")
        feed.publish("jobs", "insert")
        feed.publish("machines", "update")

        assert seen == [
            ("exact", "jobs", "update"),
            ("any", "jobs", "update"),
            ("any", "jobs", "insert"),
        ]

    def test_unsubscribe(self):
        feed = ChangeFeed()
        seen = []
        unsubscribe = feed.subscribe("jobs", "*", lambda t, e: seen.append(e))
        unsubscribe()
        unsubscribe()

        feed.publish("jobs", "delete")
        assert seen == []

    def test_unknown_event_rejected(self):
        with pytest.raises(ValueError):
            ChangeFeed().subscribe("jobs", "upsert", lambda t, e: None)

    def test_failing_subscriber_does_not_stop_others(self):
        feed = ChangeFeed()
        seen = []

        def broken(table, event_name):
            raise RuntimeError("boom")

        feed.subscribe("jobs", "*", broken)
        feed.subscribe("jobs", "*", lambda t, e: seen.append(e))

        feed.publish("jobs", "insert")
        assert seen == ["insert"]


class TestSessionPublishing:

    @pytest.fixture(autouse=True)
    def listen(self):
        self.events = []
        unsubscribe = change_feed.subscribe("machines", "*", lambda t, e: self.events.append(e))
        yield
        unsubscribe()

    def test_commit_publishes(self, db_session):
        machine = create_test_machine(db_session)
        assert self.events == []

        db_session.commit()
        assert self.events == ["insert"]

        machine.status = "down"
        db_session.commit()
        assert self.events == ["insert", "update"]

    def test_rollback_discards(self, db_session):
        create_test_machine(db_session)
        db_session.rollback()
        db_session.commit()

        assert self.events == []


class TestViewCache:

    def test_builds_once_until_a_watched_table_changes(self):
        feed = ChangeFeed()
        cache = ViewCache("board", ["jobs"], feed=feed)
        builds = []

        def build():
            builds.append(1)
            return len(builds)

        assert cache.get(build) == 1
        assert cache.get(build) == 1

        feed.publish("machines", "update")
        assert cache.get(build) == 1

        feed.publish("jobs", "insert")
        assert not cache.is_valid
        assert cache.get(build) == 2

    def test_change_during_build_is_not_cached(self):
        cache = ViewCache("board", ["jobs"], feed=ChangeFeed())
        builds = []

        def build():
            builds.append(1)
            if len(builds) == 1:
                cache.invalidate()
            return len(builds)

        assert cache.get(build) == 1
        assert cache.get(build) == 2
        assert cache.get(build) == 2

    def test_max_age(self, monkeypatch):
        clock = [100.0]
        monkeypatch.setattr(dashboard_module.time, "monotonic", lambda: clock[0])
        cache = ViewCache("board", ["jobs"], feed=ChangeFeed(), max_age_seconds=60)
        builds = []

        def build():
            builds.append(1)
            return len(builds)

        assert cache.get(build) == 1
        clock[0] += 30
        assert cache.get(build) == 1
        clock[0] += 31
        assert cache.get(build) == 2

    def test_close_stops_invalidation(self):
        feed = ChangeFeed()
        cache = ViewCache("board", ["jobs"], feed=feed)
        cache.get(lambda: "built")
        cache.close()

        feed.publish("jobs", "update")
        assert cache.is_valid

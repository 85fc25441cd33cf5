"""
Unit tests for assembly readiness and the assembly / TCO boards.

Week boundaries: NOW is Wednesday 2024-06-05, so the week started on
Sunday 2024-06-02 00:00.
"""
from datetime import datetime

import pytest

from app.services.readiness import (
    classify_assemblies,
    classify_tco,
    is_assembly_ready,
    load_board_work_orders,
    start_of_week,
)
from tests.factories import (
    create_test_job,
    create_test_part,
    create_test_woa,
    create_test_work_order,
)


pytestmark = pytest.mark.unit

NOW = datetime(2024, 6, 5, 12, 0)


class _Job:
    def __init__(self, status):
        self.status = status


class TestIsAssemblyReady:

    @pytest.mark.parametrize("statuses,expected", [
        (["ready_for_assembly", "ready_for_assembly"], True),
        (["ready_for_assembly", "complete"], True),
        (["in_assembly"], True),
        (["ready_for_assembly", "in_progress"], False),
        (["complete", "complete"], False),
        (["pending_tco", "ready_for_assembly"], False),
        ([], False),
    ])
    def test_readiness_rule(self, statuses, expected):
        assert is_assembly_ready([_Job(s) for s in statuses]) is expected


class TestStartOfWeek:

    def test_midweek(self):
        assert start_of_week(NOW) == datetime(2024, 6, 2, 0, 0)

    def test_sunday_is_its_own_week_start(self):
        assert start_of_week(datetime(2024, 6, 9, 18, 30)) == datetime(2024, 6, 9, 0, 0)


class TestClassifyAssemblies:

    @pytest.fixture(autouse=True)
    def setup(self, db_session):
        self.db = db_session
        self.assembly_part = create_test_part(db_session, part_type="assembly")
        self.component = create_test_part(db_session)

    def _board(self):
        self.db.commit()
        return classify_assemblies(load_board_work_orders(self.db, NOW), NOW)

    def test_ready_assembly_is_queued(self):
        wo = create_test_work_order(self.db)
        woa = create_test_woa(self.db, wo, self.assembly_part)
        create_test_job(self.db, wo, status="ready_for_assembly", woa=woa, component=self.component)
        create_test_job(self.db, wo, status="complete", woa=woa, component=self.component)

        board = self._board()
        assert [e.id for e in board.queued] == [woa.id]
        assert board.in_progress == []

    def test_unfinished_job_keeps_assembly_off_board(self):
        wo = create_test_work_order(self.db)
        woa = create_test_woa(self.db, wo, self.assembly_part)
        create_test_job(self.db, wo, status="ready_for_assembly", woa=woa)
        create_test_job(self.db, wo, status="in_progress", woa=woa)

        board = self._board()
        assert board.queued == [] and board.in_progress == [] and board.completed_this_week == []

    def test_sibling_assemblies_progress_independently(self):
        wo = create_test_work_order(self.db, status="in_progress")
        running = create_test_woa(self.db, wo, self.assembly_part, status="in_progress")
        waiting = create_test_woa(self.db, wo, self.assembly_part, status="pending")
        create_test_job(self.db, wo, status="in_assembly", woa=running)
        create_test_job(self.db, wo, status="ready_for_assembly", woa=waiting)

        board = self._board()
        assert [e.id for e in board.in_progress] == [running.id]
        assert [e.id for e in board.queued] == [waiting.id]

    def test_null_status_reads_as_pending(self):
        wo = create_test_work_order(self.db)
        woa = create_test_woa(self.db, wo, self.assembly_part, status=None)
        create_test_job(self.db, wo, status="ready_for_assembly", woa=woa)

        board = self._board()
        assert [e.status for e in board.queued] == ["pending"]

    def test_finished_goods_are_skipped(self):
        finished = create_test_part(self.db, part_type="finished_good")
        wo = create_test_work_order(self.db)
        woa = create_test_woa(self.db, wo, finished)
        create_test_job(self.db, wo, status="ready_for_assembly", woa=woa)

        assert self._board().queued == []

    def test_work_order_without_rows_gets_virtual_entry(self):
        wo = create_test_work_order(self.db)
        create_test_job(self.db, wo, status="ready_for_assembly")
        create_test_job(self.db, wo, status="ready_for_assembly")

        board = self._board()
        assert len(board.queued) == 1
        entry = board.queued[0]
        assert entry.id == f"wo-{wo.id}"
        assert entry.is_virtual
        assert entry.missing_assembly
        assert entry.assembly is None
        assert entry.quantity == 2
        assert len(entry.jobs) == 2

    def test_maintenance_orders_never_appear(self):
        wo = create_test_work_order(self.db, order_type="maintenance", status="in_progress")
        create_test_job(self.db, wo, status="ready_for_assembly", is_maintenance=True)

        assert self._board().queued == []

    def test_completed_this_week_sorted_newest_first(self):
        wo = create_test_work_order(self.db, status="in_progress")
        older = create_test_woa(
            self.db, wo, self.assembly_part, status="complete",
            assembly_completed_at=datetime(2024, 6, 3, 10, 0),
        )
        newer = create_test_woa(
            self.db, wo, self.assembly_part, status="complete",
            assembly_completed_at=datetime(2024, 6, 4, 15, 0),
        )
        last_week = create_test_woa(
            self.db, wo, self.assembly_part, status="complete",
            assembly_completed_at=datetime(2024, 5, 31, 9, 0),
        )
        for woa in (older, newer, last_week):
            create_test_job(self.db, wo, status="in_assembly", woa=woa)

        board = self._board()
        assert [e.id for e in board.completed_this_week] == [newer.id, older.id]
        assert board.queued == []


class TestClassifyTco:

    def test_partial_tco_is_not_actionable(self, db_session):
        wo = create_test_work_order(db_session, status="in_progress")
        create_test_job(db_session, wo, status="pending_tco")
        create_test_job(db_session, wo, status="in_assembly")
        create_test_job(db_session, wo, status="cancelled")
        db_session.commit()

        board = classify_tco(load_board_work_orders(db_session, NOW), NOW)
        assert len(board.pending) == 1
        entry = board.pending[0]
        assert entry.active_job_count == 2
        assert entry.tco_job_count == 1
        assert entry.all_pending_tco is False

    def test_cancelled_jobs_do_not_block(self, db_session):
        wo = create_test_work_order(db_session, status="in_progress")
        create_test_job(db_session, wo, status="pending_tco")
        create_test_job(db_session, wo, status="cancelled")
        db_session.commit()

        board = classify_tco(load_board_work_orders(db_session, NOW), NOW)
        assert board.pending[0].all_pending_tco is True

    def test_orders_without_tco_jobs_are_left_out(self, db_session):
        wo = create_test_work_order(db_session)
        create_test_job(db_session, wo, status="ready")
        db_session.commit()

        assert classify_tco(load_board_work_orders(db_session, NOW), NOW).pending == []

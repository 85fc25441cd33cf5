"""
Unit tests for the assembly station and TCO cascades.
"""
from datetime import datetime

import pytest

from app.exceptions import BusinessRuleError, InvalidStateError, PermissionDeniedError, ValidationError
from app.services.assembly_service import (
    NOTES_DELIMITER,
    approve_tco,
    complete_assembly,
    start_assembly,
)
from tests.factories import (
    create_test_job,
    create_test_part,
    create_test_user,
    create_test_woa,
    create_test_work_order,
)


pytestmark = pytest.mark.unit

NOW = datetime(2024, 6, 5, 9, 0)


class TestStartAssembly:

    @pytest.fixture(autouse=True)
    def setup(self, db_session):
        self.db = db_session
        self.part = create_test_part(db_session, part_type="assembly")

    def test_start_moves_ready_jobs_into_assembly(self):
        wo = create_test_work_order(self.db)
        woa = create_test_woa(self.db, wo, self.part, quantity=5)
        ready = create_test_job(self.db, wo, status="ready_for_assembly", woa=woa)
        done = create_test_job(self.db, wo, status="complete", woa=woa)
        self.db.commit()

        result = start_assembly(
            self.db, work_order_id=wo.id, assembly_id=woa.id,
            station_number="A2", assembler_number="117", notes="Torque to 12 Nm", user_id=None, now=NOW,
        )
        self.db.commit()

        assert not result.created
        assert [j.id for j in result.jobs_moved] == [ready.id]
        assert woa.status == "in_progress"
        assert woa.station_number == "A2"
        assert woa.assembler_number == "117"
        assert woa.assembly_started_at == NOW
        assert woa.assembly_notes == "Torque to 12 Nm"
        assert ready.status == "in_assembly"
        assert done.status == "complete"
        assert wo.status == "in_progress"

    def test_virtual_entry_creates_assembly_row(self):
        wo = create_test_work_order(self.db)
        first = create_test_job(self.db, wo, status="ready_for_assembly")
        second = create_test_job(self.db, wo, status="ready_for_assembly")
        self.db.commit()

        result = start_assembly(self.db, work_order_id=wo.id, station_number="A1", now=NOW)
        self.db.commit()

        woa = result.assembly
        assert result.created
        assert woa.id is not None
        assert woa.status == "in_progress"
        assert woa.quantity == 2
        assert {first.work_order_assembly_id, second.work_order_assembly_id} == {woa.id}
        assert first.status == "in_assembly" and second.status == "in_assembly"

    def test_virtual_start_refused_when_rows_exist(self):
        wo = create_test_work_order(self.db)
        create_test_woa(self.db, wo, self.part)
        self.db.commit()

        with pytest.raises(ValidationError):
            start_assembly(self.db, work_order_id=wo.id)

    def test_assembly_of_other_work_order_rejected(self):
        wo = create_test_work_order(self.db)
        other = create_test_work_order(self.db)
        foreign = create_test_woa(self.db, other, self.part)
        self.db.commit()

        with pytest.raises(ValidationError):
            start_assembly(self.db, work_order_id=wo.id, assembly_id=foreign.id)

    def test_completed_assembly_cannot_restart(self):
        wo = create_test_work_order(self.db)
        woa = create_test_woa(self.db, wo, self.part, status="complete")
        self.db.commit()

        with pytest.raises(InvalidStateError):
            start_assembly(self.db, work_order_id=wo.id, assembly_id=woa.id)


class TestCompleteAssembly:

    @pytest.fixture(autouse=True)
    def setup(self, db_session):
        self.db = db_session
        self.part = create_test_part(db_session, part_type="assembly")
        self.wo = create_test_work_order(db_session, status="in_progress")
        self.woa = create_test_woa(
            db_session, self.wo, self.part, quantity=4, status="in_progress",
            assembly_notes="Started late",
        )

    def test_completion_moves_work_order_jobs_to_tco(self):
        linked = create_test_job(self.db, self.wo, status="in_assembly", woa=self.woa)
        sibling_ready = create_test_job(self.db, self.wo, status="ready_for_assembly")
        cancelled = create_test_job(self.db, self.wo, status="cancelled", woa=self.woa)
        self.db.commit()

        result = complete_assembly(
            self.db, self.woa.id,
            good_quantity=4, bad_quantity=0,
            completed_at=NOW, notes="All good",
        )
        self.db.commit()

        assert self.woa.status == "complete"
        assert self.woa.assembly_completed_at == NOW
        assert self.woa.good_quantity == 4
        assert self.woa.assembly_notes == f"Started late{NOTES_DELIMITER}Completion: All good"
        assert linked.status == "pending_tco"
        assert sibling_ready.status == "pending_tco"
        assert cancelled.status == "cancelled"
        assert {j.id for j in result.jobs_moved} == {linked.id, sibling_ready.id}
        assert result.warnings == []
        # only TCO approval completes the order
        assert self.wo.status == "in_progress"

    def test_quantity_mismatch_is_a_warning(self):
        create_test_job(self.db, self.wo, status="in_assembly", woa=self.woa)
        self.db.commit()

        result = complete_assembly(self.db, self.woa.id, good_quantity=3, bad_quantity=0, completed_at=NOW)
        assert len(result.warnings) == 1
        assert self.woa.status == "complete"

    def test_jobs_still_in_manufacturing_block_completion(self):
        create_test_job(self.db, self.wo, status="in_assembly", woa=self.woa)
        blocker = create_test_job(self.db, self.wo, status="in_progress", woa=self.woa)
        self.db.commit()

        with pytest.raises(BusinessRuleError) as exc_info:
            complete_assembly(self.db, self.woa.id, good_quantity=4, completed_at=NOW)
        assert exc_info.value.details["jobs"] == [blocker.job_number]

    def test_pending_assembly_cannot_complete(self):
        waiting = create_test_woa(self.db, self.wo, self.part, status="pending")
        self.db.commit()

        with pytest.raises(InvalidStateError):
            complete_assembly(self.db, waiting.id, good_quantity=1)


class TestApproveTco:

    @pytest.fixture(autouse=True)
    def setup(self, db_session):
        self.db = db_session
        self.reviewer = create_test_user(db_session, role="compliance")
        self.part = create_test_part(db_session, part_type="assembly")
        self.wo = create_test_work_order(db_session, status="in_progress")
        self.woa = create_test_woa(db_session, self.wo, self.part, status="in_progress")

    def test_rejected_while_any_active_job_is_not_pending_tco(self):
        create_test_job(self.db, self.wo, status="pending_tco", woa=self.woa)
        create_test_job(self.db, self.wo, status="in_assembly", woa=self.woa)
        self.db.commit()

        with pytest.raises(BusinessRuleError) as exc_info:
            approve_tco(self.db, self.wo.id, self.reviewer, now=NOW)
        assert exc_info.value.details["rule"] == "tco_all_jobs_pending"
        self.db.rollback()
        self.db.refresh(self.wo)
        assert self.wo.status == "in_progress"

    def test_approval_completes_everything(self):
        a = create_test_job(self.db, self.wo, status="pending_tco", woa=self.woa)
        b = create_test_job(self.db, self.wo, status="pending_tco", woa=self.woa)
        dropped = create_test_job(self.db, self.wo, status="cancelled", woa=self.woa)
        self.db.commit()

        approve_tco(self.db, self.wo.id, self.reviewer, now=NOW)
        self.db.commit()

        assert self.wo.status == "complete"
        assert a.status == "complete" and b.status == "complete"
        assert a.actual_end == NOW
        assert dropped.status == "cancelled"
        assert self.woa.status == "complete"
        assert self.woa.assembly_completed_at == NOW
        assert self.woa.assembly_completed_by == self.reviewer.id

    def test_operator_cannot_approve(self):
        operator = create_test_user(self.db, role="operator")
        create_test_job(self.db, self.wo, status="pending_tco", woa=self.woa)
        self.db.commit()

        with pytest.raises(PermissionDeniedError):
            approve_tco(self.db, self.wo.id, operator)

    def test_flagged_user_can_approve(self):
        lead = create_test_user(self.db, role="operator", can_approve_compliance=True)
        create_test_job(self.db, self.wo, status="pending_tco", woa=self.woa)
        self.db.commit()

        approve_tco(self.db, self.wo.id, lead, now=NOW)
        assert self.wo.status == "complete"

    def test_order_with_only_cancelled_jobs_rejected(self):
        create_test_job(self.db, self.wo, status="cancelled")
        self.db.commit()

        with pytest.raises(BusinessRuleError) as exc_info:
            approve_tco(self.db, self.wo.id, self.reviewer)
        assert exc_info.value.details["rule"] == "tco_requires_jobs"

    def test_pending_work_order_completes_directly(self):
        wo = create_test_work_order(self.db, status="pending")
        create_test_job(self.db, wo, status="pending_tco")
        self.db.commit()

        approve_tco(self.db, wo.id, self.reviewer, now=NOW)
        assert wo.status == "complete"

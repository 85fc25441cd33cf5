"""
Tests for work order creation and editing.
"""
from datetime import datetime

import pytest

from app.exceptions import InvalidStateError, NotFoundError, ValidationError
from app.schemas.work_order import (
    AssemblyLineCreate,
    JobLineCreate,
    JobQuantityUpdate,
    AssemblyQuantityUpdate,
    WorkOrderCreate,
    WorkOrderUpdate,
)
from app.services.work_orders import create_work_order, edit_work_order
from tests.factories import (
    create_test_assembly,
    create_test_job,
    create_test_part,
    create_test_user,
    create_test_woa,
    create_test_work_order,
)


pytestmark = pytest.mark.unit

JUNE = datetime(2024, 6, 3, 9, 0)


class TestCreateWorkOrder:

    @pytest.fixture(autouse=True)
    def setup(self, db_session):
        self.db = db_session
        self.user = create_test_user(db_session)
        self.shaft = create_test_part(db_session, part_number="SHAFT")
        self.housing = create_test_part(db_session, part_number="HOUSING")
        self.gearbox = create_test_assembly(db_session, part_number="GEARBOX", components=[self.shaft, self.housing])
        self.widget = create_test_part(db_session, part_number="WIDGET", part_type="finished_good")

    def _create(self, **fields):
        data = WorkOrderCreate(**fields)
        wo = create_work_order(self.db, data, user_id=self.user.id, now=JUNE)
        self.db.commit()
        return wo

    def test_creates_assembly_row_and_jobs(self):
        wo = self._create(
            customer="ACME", po_number="PO-77", priority="high",
            assemblies=[{"assembly_id": self.gearbox.id, "quantity": 3}],
        )

        assert wo.wo_number == "WO-2406-0001"
        assert wo.status == "pending"
        assert wo.created_by == self.user.id
        assert len(wo.assemblies) == 1
        woa = wo.assemblies[0]
        assert woa.assembly_id == self.gearbox.id
        assert woa.quantity == 3
        assert woa.status == "pending"

        assert [j.job_number for j in wo.jobs] == ["J-000001", "J-000002"]
        assert [j.component_id for j in wo.jobs] == [self.shaft.id, self.housing.id]
        for job in wo.jobs:
            assert job.quantity == 3
            assert job.priority == "high"
            assert job.status == "pending_compliance"
            assert job.work_order_assembly_id == woa.id

    def test_finished_good_jobs_are_not_linked(self):
        wo = self._create(assemblies=[{"assembly_id": self.widget.id, "quantity": 2}])

        assert len(wo.assemblies) == 1
        assert len(wo.jobs) == 1
        assert wo.jobs[0].component_id == self.widget.id
        assert wo.jobs[0].work_order_assembly_id is None

    def test_job_overrides_and_removals(self):
        wo = self._create(assemblies=[AssemblyLineCreate(
            assembly_id=self.gearbox.id,
            quantity=2,
            jobs=[JobLineCreate(component_id=self.housing.id, quantity=5)],
        )])

        assert [(j.component_id, j.quantity) for j in wo.jobs] == [(self.housing.id, 5)]

    def test_make_to_stock_drops_customer_fields(self):
        wo = self._create(
            order_type="make_to_stock", customer="ACME", po_number="PO-1",
            assemblies=[{"assembly_id": self.widget.id}],
        )
        assert wo.customer is None
        assert wo.po_number is None

    def test_order_needs_jobs(self):
        with pytest.raises(ValidationError) as exc_info:
            self._create(assemblies=[])
        assert exc_info.value.message == "Please add at least one job"

    def test_maintenance_orders_are_refused(self):
        with pytest.raises(ValidationError):
            self._create(order_type="maintenance", assemblies=[{"assembly_id": self.widget.id}])

    def test_unknown_part(self):
        with pytest.raises(NotFoundError):
            self._create(assemblies=[{"assembly_id": 9999}])

    def test_job_numbers_continue_across_orders(self):
        self._create(assemblies=[{"assembly_id": self.gearbox.id}])
        second = self._create(assemblies=[{"assembly_id": self.widget.id}])

        assert second.wo_number == "WO-2406-0002"
        assert second.jobs[0].job_number == "J-000003"


class TestEditWorkOrder:

    @pytest.fixture(autouse=True)
    def setup(self, db_session):
        self.db = db_session
        self.wo = create_test_work_order(db_session, customer="ACME")

    def test_header_fields(self):
        self.db.commit()
        edit_work_order(self.db, self.wo.id, WorkOrderUpdate(customer="Globex", priority="critical"))
        self.db.commit()

        assert self.wo.customer == "Globex"
        assert self.wo.priority == "critical"

    def test_quantity_change_resets_ready_job(self):
        job = create_test_job(self.db, self.wo, status="ready", quantity=10)
        self.db.commit()

        edit_work_order(self.db, self.wo.id, WorkOrderUpdate(job_quantities=[JobQuantityUpdate(job_id=job.id, quantity=12)]))
        self.db.commit()

        assert job.quantity == 12
        assert job.status == "pending_compliance"

    def test_unchanged_quantity_keeps_status(self):
        job = create_test_job(self.db, self.wo, status="assigned", quantity=10)
        self.db.commit()

        edit_work_order(self.db, self.wo.id, WorkOrderUpdate(job_quantities=[{"job_id": job.id, "quantity": 10}]))
        assert job.status == "assigned"

    def test_scheduled_job_quantity_is_locked(self):
        job = create_test_job(self.db, self.wo, status="assigned", quantity=10)
        self.db.commit()

        with pytest.raises(InvalidStateError):
            edit_work_order(self.db, self.wo.id, WorkOrderUpdate(job_quantities=[{"job_id": job.id, "quantity": 4}]))

    def test_assembly_quantity_and_new_assembly(self):
        part = create_test_part(self.db)
        gearbox = create_test_assembly(self.db, components=[part])
        self.db.commit()

        edit_work_order(self.db, self.wo.id, WorkOrderUpdate(new_assemblies=[{"assembly_id": gearbox.id, "quantity": 2}]))
        self.db.commit()
        woa = self.wo.assemblies[0]

        edit_work_order(self.db, self.wo.id, WorkOrderUpdate(
            assembly_quantities=[AssemblyQuantityUpdate(assembly_id=woa.id, quantity=6)],
        ))
        self.db.commit()

        assert woa.quantity == 6
        assert len(self.wo.jobs) == 1
        assert self.wo.jobs[0].work_order_assembly_id == woa.id

    def test_completed_order_is_locked(self):
        self.wo.status = "complete"
        self.db.commit()
        with pytest.raises(InvalidStateError):
            edit_work_order(self.db, self.wo.id, WorkOrderUpdate(notes="late"))


class TestWorkOrderProperties:

    def test_maintenance_flag(self, db_session):
        assert create_test_work_order(db_session, order_type="maintenance").is_maintenance
        assert not create_test_work_order(db_session).is_maintenance

    def test_cancelled_jobs_are_not_active(self, db_session):
        wo = create_test_work_order(db_session)
        kept = create_test_job(db_session, wo, status="ready")
        create_test_job(db_session, wo, status="cancelled")
        db_session.commit()
        db_session.refresh(wo)

        assert [j.id for j in wo.active_jobs] == [kept.id]

    def test_assembly_line_item_flags(self, db_session):
        wo = create_test_work_order(db_session)
        finished = create_test_part(db_session, part_type="finished_good")
        sub = create_test_part(db_session, part_type="assembly")
        fg_line = create_test_woa(db_session, wo, assembly=finished, status=None)
        sub_line = create_test_woa(db_session, wo, assembly=sub)
        db_session.commit()

        assert fg_line.is_finished_good
        assert fg_line.effective_status == "pending"
        assert not sub_line.is_finished_good

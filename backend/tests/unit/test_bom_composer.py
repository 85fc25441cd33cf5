"""
Tests for composing candidate jobs from assembly BOMs.
"""
from types import SimpleNamespace

import pytest

from app.exceptions import ValidationError
from app.services.bom_composer import compose_candidate_jobs, select_assembly
from tests.factories import create_test_assembly, create_test_part


pytestmark = pytest.mark.unit


class TestComposeCandidateJobs:

    def test_one_job_per_manufactured_component_in_bom_order(self, db_session):
        shaft = create_test_part(db_session, part_number="SHAFT")
        housing = create_test_part(db_session, part_number="HOUSING")
        bolt = create_test_part(db_session, part_number="BOLT", part_type="purchased")
        sub = create_test_part(db_session, part_number="SUB", part_type="assembly")
        assembly = create_test_assembly(db_session, components=[housing, bolt, sub, (shaft, 2)])

        jobs = compose_candidate_jobs(assembly, 5)

        assert [j.component.part_number for j in jobs] == ["HOUSING", "SHAFT"]
        assert all(j.quantity == 5 for j in jobs)
        assert not any(j.quantity_customized for j in jobs)

    def test_repeated_component_yields_one_job(self):
        bracket = SimpleNamespace(id=7, part_type="manufactured")
        assembly = SimpleNamespace(
            part_type="assembly",
            bom_lines=[SimpleNamespace(component=bracket), SimpleNamespace(component=bracket)],
        )

        assert [j.component_id for j in compose_candidate_jobs(assembly, 1)] == [7]

    def test_finished_good_is_its_own_job(self, db_session):
        widget = create_test_part(db_session, part_type="finished_good")

        jobs = compose_candidate_jobs(widget, 3)
        assert [(j.component_id, j.quantity) for j in jobs] == [(widget.id, 3)]

    def test_assembly_without_schedulable_components(self, db_session):
        bolt = create_test_part(db_session, part_type="purchased")
        assembly = create_test_assembly(db_session, components=[bolt])

        assert compose_candidate_jobs(assembly, 1) == []


class TestAssemblySelection:

    @pytest.fixture(autouse=True)
    def setup(self, db_session):
        self.left = create_test_part(db_session)
        self.right = create_test_part(db_session)
        self.assembly = create_test_assembly(db_session, components=[self.left, self.right])

    def test_quantity_change_skips_customized_jobs(self):
        selection = select_assembly(self.assembly, 2)
        selection.override_job_quantity(self.left.id, 7)
        selection.set_quantity(4)

        assert selection.quantity == 4
        assert selection.find_job(self.left.id).quantity == 7
        assert selection.find_job(self.right.id).quantity == 4

    def test_remove_job(self):
        selection = select_assembly(self.assembly)
        selection.remove_job(self.left.id)

        assert [j.component_id for j in selection.jobs] == [self.right.id]
        assert selection.find_job(self.left.id) is None

    def test_override_unknown_component(self, db_session):
        stranger = create_test_part(db_session)
        selection = select_assembly(self.assembly)

        with pytest.raises(ValidationError):
            selection.override_job_quantity(stranger.id, 3)

    @pytest.mark.parametrize("quantity", [0, -2])
    def test_quantities_must_be_positive(self, quantity):
        selection = select_assembly(self.assembly)
        with pytest.raises(ValidationError):
            selection.set_quantity(quantity)
        with pytest.raises(ValidationError):
            selection.override_job_quantity(self.left.id, quantity)

    def test_component_parts_cannot_be_selected(self):
        with pytest.raises(ValidationError) as exc_info:
            select_assembly(self.left)
        assert exc_info.value.details["field"] == "assembly_id"

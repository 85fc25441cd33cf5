"""
Job composition from assembly bills of materials.

An assembly yields one candidate job per manufactured component on its
BOM; purchased parts and sub-assemblies are not scheduled on their own.
A finished good has no BOM and yields a single job for itself.

Candidate quantities follow the assembly quantity until a user overrides
one, after which that job keeps its own quantity.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from app.core.status_config import PartType
from app.exceptions import ValidationError
from app.models.part import Part

NON_SCHEDULED_COMPONENT_TYPES = frozenset({PartType.PURCHASED, PartType.ASSEMBLY})
SELECTABLE_PART_TYPES = frozenset({PartType.ASSEMBLY, PartType.FINISHED_GOOD})


@dataclass
class CandidateJob:
    component: Part
    quantity: int
    quantity_customized: bool = False

    @property
    def component_id(self) -> int:
        return self.component.id


@dataclass
class AssemblySelection:
    """One assembly (or finished good) picked for a work order, with its jobs."""
    part: Part
    quantity: int = 1
    jobs: List[CandidateJob] = field(default_factory=list)

    def set_quantity(self, quantity: int) -> None:
        """Change the assembly quantity; customized job quantities are left alone."""
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1", field="quantity", value=quantity)
        self.quantity = quantity
        for job in self.jobs:
            if not job.quantity_customized:
                job.quantity = quantity

    def override_job_quantity(self, component_id: int, quantity: int) -> CandidateJob:
        if quantity < 1:
            raise ValidationError("Job quantity must be at least 1", field="quantity", value=quantity)
        job = self.find_job(component_id)
        if job is None:
            raise ValidationError(
                f"Component {component_id} is not part of {self.part.part_number}",
                field="component_id",
                value=component_id,
            )
        job.quantity = quantity
        job.quantity_customized = True
        return job

    def remove_job(self, component_id: int) -> None:
        self.jobs = [job for job in self.jobs if job.component_id != component_id]

    def find_job(self, component_id: int) -> Optional[CandidateJob]:
        for job in self.jobs:
            if job.component_id == component_id:
                return job
        return None

    @property
    def is_finished_good(self) -> bool:
        return self.part.part_type == PartType.FINISHED_GOOD


def is_schedulable_component(component: Optional[Part]) -> bool:
    return component is not None and component.part_type not in NON_SCHEDULED_COMPONENT_TYPES


def compose_candidate_jobs(part: Part, quantity: int) -> List[CandidateJob]:
    """Candidate jobs for ``part`` at ``quantity``, in BOM sort order."""
    if part.part_type != PartType.ASSEMBLY:
        return [CandidateJob(component=part, quantity=quantity)]

    jobs: List[CandidateJob] = []
    seen = set()
    for line in part.bom_lines:
        component = line.component
        if not is_schedulable_component(component) or component.id in seen:
            continue
        seen.add(component.id)
        jobs.append(CandidateJob(component=component, quantity=quantity))
    return jobs


def select_assembly(part: Part, quantity: int = 1) -> AssemblySelection:
    """Start a selection for ``part`` with all of its candidate jobs."""
    if part.part_type not in SELECTABLE_PART_TYPES:
        raise ValidationError(
            f"{part.part_number} is a {part.part_type} part; pick an assembly or finished good",
            field="assembly_id",
            value=part.id,
        )
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1", field="quantity", value=quantity)
    return AssemblySelection(part=part, quantity=quantity, jobs=compose_candidate_jobs(part, quantity))

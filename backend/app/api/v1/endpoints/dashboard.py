"""
Dashboard API Endpoint

The built dashboard is cached and rebuilt only after a committed change
to jobs, machines, downtime or work orders.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.schemas.dashboard import DashboardResponse, LocationSection, MachineCard
from app.schemas.job import JobResponse
from app.services.dashboard import DASHBOARD_TABLES, Dashboard, ViewCache, build_dashboard

router = APIRouter()

# maintenance windows open and close with the clock, not with writes
dashboard_cache = ViewCache("dashboard", DASHBOARD_TABLES, max_age_seconds=60)


def _jobs(jobs):
    return [JobResponse.model_validate(job) for job in jobs]


def serialize_dashboard(dashboard: Dashboard) -> DashboardResponse:
    return DashboardResponse(
        generated_at=dashboard.generated_at,
        machines_down=dashboard.machines_down,
        locations=[
            LocationSection(
                name=group.name,
                machines=[
                    MachineCard(
                        id=view.machine.id,
                        name=view.machine.name,
                        code=view.machine.code,
                        status=view.machine.status,
                        is_down=view.is_down,
                        reason=view.reason,
                        current_job=JobResponse.model_validate(view.current_job) if view.current_job else None,
                        queued_jobs=_jobs(view.queued_jobs),
                    )
                    for view in group.machines
                ],
            )
            for group in dashboard.locations
        ],
        pending_compliance=_jobs(dashboard.pending_compliance),
        unassigned=_jobs(dashboard.unassigned),
        incomplete=_jobs(dashboard.incomplete),
        active_job_count=len(dashboard.active_jobs),
    )


@router.get("/", response_model=DashboardResponse)
async def get_dashboard(refresh: bool = False, db: Session = Depends(get_db)):
    if refresh:
        dashboard_cache.invalidate()
    return dashboard_cache.get(lambda: serialize_dashboard(build_dashboard(db)))

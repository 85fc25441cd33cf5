"""
API v1 Router - Shop Floor
"""
from fastapi import APIRouter

from app.api.v1.endpoints import (
    assembly,
    bom_import,
    dashboard,
    jobs,
    machines,
    maintenance,
    work_orders,
)

router = APIRouter()

# Work orders and their jobs
router.include_router(
    work_orders.router,
    prefix="/work-orders",
    tags=["work-orders"]
)

router.include_router(
    jobs.router,
    prefix="/jobs",
    tags=["jobs"]
)

# Assembly station and TCO closeout
router.include_router(
    assembly.router,
    prefix="/assembly",
    tags=["assembly"]
)

router.include_router(
    assembly.tco_router,
    prefix="/tco",
    tags=["tco"]
)

# Machines, downtime and maintenance
router.include_router(
    machines.router,
    prefix="/machines",
    tags=["machines"]
)

router.include_router(
    maintenance.router,
    prefix="/maintenance",
    tags=["maintenance"]
)

# Master data import
router.include_router(
    bom_import.router,
    prefix="/bom-import",
    tags=["bom-import"]
)

router.include_router(
    dashboard.router,
    prefix="/dashboard",
    tags=["dashboard"]
)

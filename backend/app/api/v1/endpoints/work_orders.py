"""
Work Orders API Endpoints

Create, list, view and edit customer and stock work orders. Maintenance
orders are created through /maintenance but are listed here too.
"""
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session, selectinload

from app.api.v1.deps import get_current_user, get_pagination_params
from app.core.status_config import OrderType, WorkOrderStatus
from app.db.session import get_db
from app.logging_config import get_logger
from app.models.user import User
from app.models.work_order import WorkOrder
from app.schemas.common import ListResponse, PaginationMeta, PaginationParams
from app.schemas.work_order import WorkOrderCreate, WorkOrderResponse, WorkOrderUpdate
from app.services.lifecycle_helpers import get_work_order
from app.services.work_orders import create_work_order, edit_work_order

router = APIRouter()
logger = get_logger(__name__)


@router.get("/", response_model=ListResponse[WorkOrderResponse])
async def list_work_orders(
    pagination: Annotated[PaginationParams, Depends(get_pagination_params)],
    status: Optional[WorkOrderStatus] = None,
    order_type: Optional[OrderType] = None,
    search: Optional[str] = Query(None, description="Match WO number, customer or PO"),
    db: Session = Depends(get_db),
):
    query = db.query(WorkOrder)
    if status:
        query = query.filter(WorkOrder.status == status.value)
    if order_type:
        query = query.filter(WorkOrder.order_type == order_type.value)
    if search:
        pattern = f"%{search}%"
        query = query.filter(
            WorkOrder.wo_number.ilike(pattern)
            | WorkOrder.customer.ilike(pattern)
            | WorkOrder.po_number.ilike(pattern)
        )

    total = query.count()
    orders = (
        query.options(selectinload(WorkOrder.assemblies), selectinload(WorkOrder.jobs))
        .order_by(WorkOrder.id.desc())
        .offset(pagination.offset)
        .limit(pagination.limit)
        .all()
    )
    return ListResponse[WorkOrderResponse](
        items=[WorkOrderResponse.model_validate(wo) for wo in orders],
        pagination=PaginationMeta(
            total=total, offset=pagination.offset, limit=pagination.limit, returned=len(orders)
        ),
    )


@router.post("/", response_model=WorkOrderResponse, status_code=201)
async def create_work_order_endpoint(
    request: WorkOrderCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Create a work order with its assembly rows and jobs (all pending compliance)."""
    wo = create_work_order(db, request, user_id=current_user.id)
    db.commit()
    db.refresh(wo)
    return wo


@router.get("/{work_order_id}", response_model=WorkOrderResponse)
async def get_work_order_endpoint(work_order_id: int, db: Session = Depends(get_db)):
    return get_work_order(db, work_order_id)


@router.patch("/{work_order_id}", response_model=WorkOrderResponse)
async def edit_work_order_endpoint(
    work_order_id: int,
    request: WorkOrderUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    wo = edit_work_order(db, work_order_id, request)
    db.commit()
    db.refresh(wo)
    logger.info(f"{wo.wo_number} edited by user {current_user.id}")
    return wo

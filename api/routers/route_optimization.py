import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from api.database import get_db
from api.models import PassengerTransfer, RouteOptimization
from api.schemas import (
    ExecuteTransfersRequest,
    ExecutionResultRead,
    OptimizationOutcomeRead,
    OptimizationPlanRead,
    OptimizationRequest,
    PassengerTransferRead,
    RouteLoadRead,
    RouteOptimizationRead,
)
from services.capacity_tracker import classify_load, load_route_loads
from services.exceptions import InvalidOptimizationRequest, OptimizationNotFound
from services.notifications import NotificationSender, get_notifier
from services.route_optimiser import RouteOptimiser
from services.settings import OptimizationSettings, get_settings
from services.transfer_executor import PlannedTransfer, TransferExecutor

router = APIRouter(
    prefix="/route-optimization",
    tags=["Route Optimization"],
    responses={404: {"description": "Not found"}},
)

logger = logging.getLogger(__name__)


def _failure(message: str, e: Exception) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"message": message, "details": str(e)},
        headers={"X-Content-Type-Options": "nosniff"},
    )


@router.post("/", response_model=OptimizationOutcomeRead)
def run_route_optimization(
    request: OptimizationRequest,
    db: Session = Depends(get_db),
    settings: OptimizationSettings = Depends(get_settings),
):
    logger.info(f"API: Route optimization called for {request.trip_date}")
    try:
        outcome = RouteOptimiser(db, settings).run_optimization(
            request.trip_date, request.admin_id
        )
        return OptimizationOutcomeRead.model_validate(outcome)
    except InvalidOptimizationRequest as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.exception(f"API: Route optimization failed for {request.trip_date}: {e}")
        db.rollback()
        raise _failure("Failed to perform route optimization", e)


@router.post("/reoptimize", response_model=OptimizationPlanRead)
def reoptimize_routes(
    request: OptimizationRequest,
    db: Session = Depends(get_db),
    settings: OptimizationSettings = Depends(get_settings),
):
    logger.info(f"API: Re-optimization called for {request.trip_date}")
    try:
        plan = RouteOptimiser(db, settings).reoptimize(
            request.trip_date, request.admin_id
        )
        return OptimizationPlanRead.model_validate(plan)
    except InvalidOptimizationRequest as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.exception(f"API: Re-optimization failed for {request.trip_date}: {e}")
        db.rollback()
        raise _failure("Failed to perform route re-optimization", e)


@router.post("/execute-transfers", response_model=ExecutionResultRead)
def execute_transfers(
    request: ExecuteTransfersRequest,
    db: Session = Depends(get_db),
    settings: OptimizationSettings = Depends(get_settings),
    notifier: NotificationSender = Depends(get_notifier),
):
    transfers = [PlannedTransfer(**item.model_dump()) for item in request.transfers]
    try:
        result = TransferExecutor(db, notifier, settings).execute(
            request.optimization_id, transfers, request.admin_id, request.trip_date
        )
        return ExecutionResultRead.model_validate(result)
    except InvalidOptimizationRequest as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except OptimizationNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except Exception as e:
        logger.exception(f"API: Transfer execution failed for {request.trip_date}: {e}")
        db.rollback()
        raise _failure("Failed to execute transfers", e)


@router.get("/capacity", response_model=List[RouteLoadRead])
def read_route_capacity(
    trip_date: date,
    db: Session = Depends(get_db),
    settings: OptimizationSettings = Depends(get_settings),
):
    loads = load_route_loads(
        db,
        trip_date,
        default_capacity=settings.default_bus_capacity,
        include_possible_stops=False,
    )
    return [
        RouteLoadRead(
            route_id=load.route_id,
            route_name=load.route_name,
            route_number=load.route_number,
            capacity=load.capacity,
            passenger_count=load.passenger_count,
            remaining_seats=load.remaining_seats,
            load_category=classify_load(
                load.passenger_count, settings.low_load_threshold
            ),
        )
        for load in loads
    ]


@router.get("/runs", response_model=List[RouteOptimizationRead])
def read_optimization_runs(
    optimization_date: Optional[date] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
):
    query = db.query(RouteOptimization)
    if optimization_date is not None:
        query = query.filter(RouteOptimization.optimization_date == optimization_date)
    return (
        query.order_by(RouteOptimization.optimization_id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


@router.get("/runs/{optimization_id}", response_model=RouteOptimizationRead)
def read_optimization_run(optimization_id: int, db: Session = Depends(get_db)):
    db_run = db.get(RouteOptimization, optimization_id)
    if db_run is None:
        raise HTTPException(status_code=404, detail="Optimization run not found")
    return db_run


@router.get("/transfers", response_model=List[PassengerTransferRead])
def read_transfer_log(
    trip_date: Optional[date] = None,
    optimization_id: Optional[int] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
):
    query = db.query(PassengerTransfer)
    if trip_date is not None:
        query = query.filter(PassengerTransfer.trip_date == trip_date)
    if optimization_id is not None:
        query = query.filter(PassengerTransfer.optimization_id == optimization_id)
    return query.order_by(PassengerTransfer.transfer_id).offset(skip).limit(limit).all()

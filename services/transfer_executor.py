import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, aliased

from api.models import Booking, PassengerTransfer, Route, RouteOptimization
from services.capacity_tracker import ACTIVE, CONFIRMED, live_passenger_count
from services.exceptions import InvalidOptimizationRequest, OptimizationNotFound
from services.notifications import LoggingNotificationSender, NotificationSender
from services.route_optimiser import (
    COMPLETED,
    EXECUTED,
    FAILED,
    SUPERSEDED,
    parse_trip_date,
    require_admin,
)
from services.settings import OptimizationSettings

logger = logging.getLogger(__name__)

TRANSFER_REASON = "Route optimization - low passenger count"


@dataclass
class PlannedTransfer:
    student_id: int
    from_route_id: int
    to_route_id: int
    boarding_stop: Optional[str] = None
    student_name: Optional[str] = None
    from_route_name: Optional[str] = None
    to_route_name: Optional[str] = None
    transfer_type: Optional[str] = None


@dataclass
class TransferDetail:
    student_id: int
    student_name: Optional[str]
    from_route: Optional[str]
    to_route: Optional[str]
    boarding_stop: Optional[str]
    status: str
    error: Optional[str] = None


@dataclass
class RouteExecutionDetail:
    route_id: int
    route_name: Optional[str]
    route_number: Optional[str]
    total_transfers: int = 0
    successful_transfers: int = 0
    failed_transfers: int = 0
    remaining_passengers: int = 0
    bus_cancelled: bool = False
    transfers: List[TransferDetail] = field(default_factory=list)


@dataclass
class ExecutionResult:
    optimization_id: Optional[int]
    trip_date: date
    total_transfers: int = 0
    successful_transfers: int = 0
    failed_transfers: int = 0
    cancelled_buses: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    transfer_details: List[RouteExecutionDetail] = field(default_factory=list)


class TransferFailed(Exception):
    """A single transfer could not be applied. Recorded, never fatal."""


def group_by_source_route(
    transfers: Sequence[PlannedTransfer],
) -> Dict[int, List[PlannedTransfer]]:
    groups: Dict[int, List[PlannedTransfer]] = {}
    for transfer in transfers:
        groups.setdefault(transfer.from_route_id, []).append(transfer)
    return groups


def _route_label(route: Optional[Route], fallback: Optional[str], route_id: int) -> str:
    if route is not None:
        return route.route_name
    return fallback or f"Route {route_id}"


class TransferExecutor:
    """Applies an approved transfer list.

    Each transfer is its own unit of work: the booking move and its audit row
    are committed together, and a failed transfer never stops the others.
    """

    def __init__(
        self,
        db: Session,
        notifier: Optional[NotificationSender] = None,
        settings: Optional[OptimizationSettings] = None,
    ):
        self.db = db
        self.notifier = notifier or LoggingNotificationSender()
        self.settings = settings or OptimizationSettings()

    def execute(
        self,
        optimization_id: Optional[int],
        transfers: Optional[Sequence[PlannedTransfer]],
        admin_id,
        trip_date,
    ) -> ExecutionResult:
        trip_date = parse_trip_date(trip_date)
        admin_id = require_admin(admin_id)
        if not transfers:
            raise InvalidOptimizationRequest("Missing required parameter: transfers")

        optimization = self._load_optimization(optimization_id, trip_date)

        result = ExecutionResult(
            optimization_id=optimization_id,
            trip_date=trip_date,
            total_transfers=len(transfers),
        )
        logger.info(
            f"Executing {len(transfers)} transfers for {trip_date} "
            f"(optimization {optimization_id}) by {admin_id}"
        )

        for from_route_id, group in group_by_source_route(transfers).items():
            detail = self._execute_group(
                from_route_id, group, optimization_id, admin_id, trip_date, result
            )
            result.transfer_details.append(detail)

        if optimization is not None and result.successful_transfers > 0:
            optimization.status = EXECUTED
            optimization.updated_at = datetime.now()
            self.db.commit()

        logger.info(
            f"Transfer execution finished: {result.successful_transfers} succeeded, "
            f"{result.failed_transfers} failed, {len(result.cancelled_buses)} buses cancellable"
        )
        return result

    def _load_optimization(
        self, optimization_id: Optional[int], trip_date: date
    ) -> Optional[RouteOptimization]:
        if optimization_id is None:
            logger.warning(
                f"Executing transfers for {trip_date} without an optimization record"
            )
            return None
        optimization = self.db.get(RouteOptimization, optimization_id)
        if optimization is None:
            raise OptimizationNotFound(f"Optimization {optimization_id} not found")
        if optimization.optimization_date != trip_date:
            raise InvalidOptimizationRequest(
                f"Optimization {optimization_id} was planned for "
                f"{optimization.optimization_date}, not {trip_date}"
            )
        if optimization.status == SUPERSEDED:
            raise InvalidOptimizationRequest(
                f"Optimization {optimization_id} has been superseded by a re-optimization"
            )
        return optimization

    def _execute_group(
        self,
        from_route_id: int,
        group: List[PlannedTransfer],
        optimization_id: Optional[int],
        admin_id: str,
        trip_date: date,
        result: ExecutionResult,
    ) -> RouteExecutionDetail:
        source = self.db.get(Route, from_route_id)
        detail = RouteExecutionDetail(
            route_id=from_route_id,
            route_name=_route_label(source, group[0].from_route_name, from_route_id),
            route_number=source.route_number if source else None,
            total_transfers=len(group),
        )

        # Sequential within a group: each move sees the previous one's seat.
        for transfer in group:
            target = self.db.get(Route, transfer.to_route_id)
            from_name = _route_label(source, transfer.from_route_name, from_route_id)
            to_name = _route_label(target, transfer.to_route_name, transfer.to_route_id)
            try:
                if source is None:
                    raise TransferFailed(f"Source route {from_route_id} not found")
                self._move_booking(transfer, trip_date)
            except TransferFailed as e:
                message = str(e)
                self._record(
                    transfer, optimization_id, admin_id, trip_date,
                    from_name, to_name, FAILED, message,
                )
                result.failed_transfers += 1
                detail.failed_transfers += 1
                result.errors.append(
                    f"Transfer failed for student {transfer.student_name or transfer.student_id}: {message}"
                )
                detail.transfers.append(
                    TransferDetail(
                        student_id=transfer.student_id,
                        student_name=transfer.student_name,
                        from_route=from_name,
                        to_route=to_name,
                        boarding_stop=transfer.boarding_stop,
                        status=FAILED,
                        error=message,
                    )
                )
                logger.warning(
                    f"Transfer of student {transfer.student_id} from {from_name} to {to_name} failed: {message}"
                )
                continue

            self._record(
                transfer, optimization_id, admin_id, trip_date,
                from_name, to_name, COMPLETED, None,
            )
            result.successful_transfers += 1
            detail.successful_transfers += 1
            detail.transfers.append(
                TransferDetail(
                    student_id=transfer.student_id,
                    student_name=transfer.student_name,
                    from_route=from_name,
                    to_route=to_name,
                    boarding_stop=transfer.boarding_stop,
                    status=COMPLETED,
                )
            )
            self._notify(transfer, to_name, trip_date)

        if source is not None:
            detail.remaining_passengers = live_passenger_count(
                self.db, from_route_id, trip_date
            )
            if detail.remaining_passengers == 0 and detail.successful_transfers > 0:
                detail.bus_cancelled = True
                result.cancelled_buses.append(
                    f"{source.route_name} ({source.route_number})"
                )
                logger.info(f"Route {source.route_name} has no passengers left on {trip_date}")
        return detail

    def _move_booking(self, transfer: PlannedTransfer, trip_date: date) -> None:
        if transfer.to_route_id == transfer.from_route_id:
            raise TransferFailed("Source and target route are the same")
        # Held until the transfer commits, so moves onto one target run one at a time.
        target = (
            self.db.query(Route)
            .filter(Route.route_id == transfer.to_route_id)
            .with_for_update()
            .populate_existing()
            .one_or_none()
        )
        if target is None:
            raise TransferFailed(f"Target route {transfer.to_route_id} not found")
        if target.status != ACTIVE:
            raise TransferFailed(f"Target route {target.route_name} is not active")

        capacity = target.capacity or self.settings.default_bus_capacity
        if live_passenger_count(self.db, target.route_id, trip_date) >= capacity:
            raise TransferFailed(f"Target route {target.route_name} has no available seats")

        # The UPDATE repeats the capacity check against the rows it can see.
        counted = aliased(Booking)
        target_load = (
            select(func.count(counted.booking_id))
            .where(
                counted.route_id == target.route_id,
                counted.trip_date == trip_date,
                counted.status == CONFIRMED,
            )
            .scalar_subquery()
        )
        stmt = (
            update(Booking)
            .where(
                Booking.student_id == transfer.student_id,
                Booking.route_id == transfer.from_route_id,
                Booking.trip_date == trip_date,
                Booking.status == CONFIRMED,
                target_load < capacity,
            )
            .values(route_id=target.route_id, updated_at=datetime.now())
            .execution_options(synchronize_session=False)
        )
        moved = self.db.execute(stmt).rowcount
        if moved:
            return

        booking = (
            self.db.query(Booking)
            .filter(
                Booking.student_id == transfer.student_id,
                Booking.trip_date == trip_date,
                Booking.status == CONFIRMED,
            )
            .first()
        )
        if booking is None:
            raise TransferFailed(
                f"No confirmed booking for student {transfer.student_id} on {trip_date}"
            )
        if booking.route_id != transfer.from_route_id:
            raise TransferFailed(
                f"Booking is no longer on route {transfer.from_route_id} "
                f"(currently on route {booking.route_id})"
            )
        raise TransferFailed(f"Target route {target.route_name} has no available seats")

    def _record(
        self,
        transfer: PlannedTransfer,
        optimization_id: Optional[int],
        admin_id: str,
        trip_date: date,
        from_name: str,
        to_name: str,
        status: str,
        error: Optional[str],
    ) -> None:
        self.db.add(
            PassengerTransfer(
                optimization_id=optimization_id,
                student_id=transfer.student_id,
                trip_date=trip_date,
                from_route_id=transfer.from_route_id,
                to_route_id=transfer.to_route_id,
                from_route_name=from_name,
                to_route_name=to_name,
                boarding_stop=transfer.boarding_stop,
                transfer_type=transfer.transfer_type,
                transfer_status=status,
                transfer_reason=TRANSFER_REASON,
                error_message=error,
                executed_by=admin_id,
                executed_at=datetime.now(),
            )
        )
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def _notify(self, transfer: PlannedTransfer, to_name: str, trip_date: date) -> None:
        message = (
            f"Your bus for {trip_date.isoformat()} has changed to {to_name}. "
            f"Please board at {transfer.boarding_stop or 'your usual stop'}."
        )
        try:
            self.notifier.notify(transfer.student_id, message)
        except Exception as e:
            logger.warning(
                f"Notification to student {transfer.student_id} failed: {e}"
            )

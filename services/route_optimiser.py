import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional, Union

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from api.models import PassengerTransfer, RouteOptimization, Student
from services.capacity_tracker import load_route_loads, partition_route_loads
from services.exceptions import InvalidOptimizationRequest
from services.settings import OptimizationSettings
from services.stop_matcher import StopMatcher, build_stop_matcher
from services.transfer_planner import (
    FULL_TRANSFER,
    NO_TRANSFER,
    PARTIAL_TRANSFER,
    RouteTransferPlan,
    plan_route_transfers,
)

logger = logging.getLogger(__name__)

PLANNED = "planned"
EXECUTED = "executed"
SUPERSEDED = "superseded"

COMPLETED = "completed"
FAILED = "failed"


@dataclass
class OptimizationSummary:
    total_low_crowd_buses: int = 0
    total_passengers_affected: int = 0
    full_transfers: int = 0
    partial_transfers: int = 0
    no_transfers: int = 0
    no_bookings: int = 0
    normal_routes: int = 0
    potential_savings: int = 0


@dataclass
class OptimizationPlan:
    optimization_date: date
    optimization_id: Optional[int] = None
    routes: List[RouteTransferPlan] = field(default_factory=list)
    summary: OptimizationSummary = field(default_factory=OptimizationSummary)
    summary_persisted: bool = False


@dataclass
class ExistingTransfer:
    student_id: int
    student_name: str
    roll_number: str
    boarding_stop: Optional[str]
    from_route: Optional[str]
    current_route: str
    transferred_at: datetime


@dataclass
class ExistingTransferSummary:
    total_transfers: int
    affected_routes: int
    transfer_date: date
    last_transfer_time: Optional[datetime]


@dataclass
class ExistingTransfers:
    optimization_date: date
    transfers: Dict[str, List[ExistingTransfer]]
    summary: ExistingTransferSummary


@dataclass
class OptimizationOutcome:
    has_existing_transfers: bool
    plan: Optional[OptimizationPlan] = None
    existing: Optional[ExistingTransfers] = None


def parse_trip_date(value: Union[date, str, None]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            raise InvalidOptimizationRequest(f"Invalid date: {value!r}")
    raise InvalidOptimizationRequest("Missing required parameter: date")


def require_admin(admin_id: Optional[str]) -> str:
    if admin_id is None or not str(admin_id).strip():
        raise InvalidOptimizationRequest("Missing required parameter: adminId")
    return str(admin_id).strip()


class RouteOptimiser:
    """Per-date optimization runs.

    A date with completed transfers is not re-planned until ``reoptimize`` is
    called for it; planning itself never touches bookings.
    """

    def __init__(
        self,
        db: Session,
        settings: Optional[OptimizationSettings] = None,
        matcher: Optional[StopMatcher] = None,
    ):
        self.db = db
        self.settings = settings or OptimizationSettings()
        self.matcher = matcher or build_stop_matcher(db, self.settings.stop_aliases_file)

    # ───── Public operations ─────
    def run_optimization(self, trip_date, admin_id) -> OptimizationOutcome:
        trip_date = parse_trip_date(trip_date)
        admin_id = require_admin(admin_id)
        logger.info(f"Route optimization requested for {trip_date} by {admin_id}")

        existing = self.find_existing_transfers(trip_date)
        if existing is not None:
            logger.info(
                f"Found {existing.summary.total_transfers} existing transfers for {trip_date}"
            )
            return OptimizationOutcome(has_existing_transfers=True, existing=existing)

        plan = self._compute_plan(trip_date, admin_id)
        return OptimizationOutcome(has_existing_transfers=False, plan=plan)

    def reoptimize(self, trip_date, admin_id) -> OptimizationPlan:
        trip_date = parse_trip_date(trip_date)
        admin_id = require_admin(admin_id)
        logger.info(f"Re-optimization requested for {trip_date} by {admin_id}")

        watermark = (
            self.db.query(func.max(PassengerTransfer.transfer_id))
            .filter(PassengerTransfer.trip_date == trip_date)
            .scalar()
            or 0
        )
        self._supersede_runs(trip_date)
        plan = self._compute_plan(
            trip_date, admin_id, is_reoptimization=True, watermark=watermark
        )
        if not plan.summary_persisted:
            logger.warning(
                f"Re-optimization for {trip_date} was not recorded; executed "
                f"transfers will still be reported on the next run"
            )
        return plan

    def find_existing_transfers(self, trip_date: date) -> Optional[ExistingTransfers]:
        watermark = (
            self.db.query(func.max(RouteOptimization.transfer_watermark))
            .filter(
                RouteOptimization.optimization_date == trip_date,
                RouteOptimization.is_reoptimization.is_(True),
            )
            .scalar()
            or 0
        )
        rows = (
            self.db.query(PassengerTransfer, Student)
            .outerjoin(Student, Student.student_id == PassengerTransfer.student_id)
            .filter(
                PassengerTransfer.trip_date == trip_date,
                PassengerTransfer.transfer_status == COMPLETED,
                PassengerTransfer.transfer_id > watermark,
            )
            .order_by(
                PassengerTransfer.executed_at.desc(),
                PassengerTransfer.transfer_id.desc(),
            )
            .all()
        )
        if not rows:
            return None

        grouped: Dict[str, List[ExistingTransfer]] = {}
        for transfer, student in rows:
            route_name = transfer.to_route_name or f"Route {transfer.to_route_id}"
            grouped.setdefault(route_name, []).append(
                ExistingTransfer(
                    student_id=transfer.student_id,
                    student_name=student.student_name if student else "Unknown Student",
                    roll_number=student.roll_number if student else "N/A",
                    boarding_stop=transfer.boarding_stop,
                    from_route=transfer.from_route_name,
                    current_route=route_name,
                    transferred_at=transfer.executed_at,
                )
            )

        summary = ExistingTransferSummary(
            total_transfers=len(rows),
            affected_routes=len(grouped),
            transfer_date=trip_date,
            last_transfer_time=rows[0][0].executed_at,
        )
        return ExistingTransfers(
            optimization_date=trip_date, transfers=grouped, summary=summary
        )

    # ───── Internals ─────
    def _compute_plan(
        self,
        trip_date: date,
        admin_id: str,
        is_reoptimization: bool = False,
        watermark: int = 0,
    ) -> OptimizationPlan:
        loads = load_route_loads(
            self.db,
            trip_date,
            default_capacity=self.settings.default_bus_capacity,
            include_possible_stops=self.settings.use_possible_stops,
        )
        low_crowd, no_bookings, normal = partition_route_loads(
            loads, self.settings.low_load_threshold
        )
        logger.info(
            f"Analysis for {trip_date}: {len(loads)} routes, {len(low_crowd)} low-crowd, "
            f"{len(normal)} normal, {len(no_bookings)} without bookings"
        )

        plan = OptimizationPlan(optimization_date=trip_date)

        if not low_crowd and not no_bookings:
            logger.info(f"No routes to optimize for {trip_date}")
            if is_reoptimization:
                plan.optimization_id = self._persist_summary(
                    trip_date, admin_id, plan.summary, is_reoptimization, watermark
                )
                plan.summary_persisted = plan.optimization_id is not None
            return plan

        to_analyze = sorted(no_bookings + low_crowd, key=lambda load: load.route_id)
        reserved_seats: Dict[int, int] = {}
        for source in to_analyze:
            plan.routes.append(
                plan_route_transfers(
                    source, loads, self.matcher, self.settings, reserved_seats
                )
            )
        # An empty bus that receives planned passengers has to run.
        for route_plan in plan.routes:
            if reserved_seats.get(route_plan.route_id):
                route_plan.can_cancel_bus = False

        summary = plan.summary
        summary.total_low_crowd_buses = len(low_crowd)
        summary.total_passengers_affected = sum(l.passenger_count for l in low_crowd)
        summary.full_transfers = sum(
            1 for r in plan.routes if r.transfer_type == FULL_TRANSFER
        )
        summary.partial_transfers = sum(
            1 for r in plan.routes if r.transfer_type == PARTIAL_TRANSFER
        )
        summary.no_transfers = sum(
            1 for r in plan.routes if r.transfer_type == NO_TRANSFER
        )
        summary.no_bookings = len(no_bookings)
        summary.normal_routes = len(normal)
        summary.potential_savings = sum(r.estimated_savings for r in plan.routes)

        plan.optimization_id = self._persist_summary(
            trip_date, admin_id, summary, is_reoptimization, watermark
        )
        plan.summary_persisted = plan.optimization_id is not None
        return plan

    def _persist_summary(
        self,
        trip_date: date,
        admin_id: str,
        summary: OptimizationSummary,
        is_reoptimization: bool,
        watermark: int,
    ) -> Optional[int]:
        """Store the run summary. Failures are logged and yield None."""
        try:
            record = None
            if not is_reoptimization:
                # Re-planning an unexecuted date refreshes its open run.
                record = (
                    self.db.query(RouteOptimization)
                    .filter(
                        RouteOptimization.optimization_date == trip_date,
                        RouteOptimization.status == PLANNED,
                    )
                    .order_by(RouteOptimization.optimization_id.desc())
                    .first()
                )
            if record is None:
                record = RouteOptimization(
                    optimization_date=trip_date,
                    created_by=admin_id,
                    is_reoptimization=is_reoptimization,
                    transfer_watermark=watermark,
                    status=PLANNED,
                )
                self.db.add(record)

            record.total_low_crowd_buses = summary.total_low_crowd_buses
            record.total_passengers_affected = summary.total_passengers_affected
            record.full_transfers = summary.full_transfers
            record.partial_transfers = summary.partial_transfers
            record.no_transfers = summary.no_transfers
            record.no_bookings = summary.no_bookings
            record.normal_routes = summary.normal_routes
            record.potential_savings = summary.potential_savings
            record.updated_at = datetime.now()

            self.db.commit()
            self.db.refresh(record)
            logger.info(f"Saved optimization record {record.optimization_id}")
            return record.optimization_id
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                f"Error creating optimization record for {trip_date}: {e}. "
                f"Returning the plan without a record."
            )
            return None

    def _supersede_runs(self, trip_date: date) -> None:
        """Retire earlier runs. Raises, since a stale run must not stay executable."""
        try:
            updated = (
                self.db.query(RouteOptimization)
                .filter(
                    RouteOptimization.optimization_date == trip_date,
                    RouteOptimization.status != SUPERSEDED,
                )
                .update(
                    {
                        RouteOptimization.status: SUPERSEDED,
                        RouteOptimization.updated_at: datetime.now(),
                    },
                    synchronize_session=False,
                )
            )
            self.db.commit()
            logger.info(f"Superseded {updated} earlier optimization runs for {trip_date}")
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to supersede optimization runs for {trip_date}: {e}")
            raise

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from services.capacity_tracker import NO_BOOKINGS, Passenger, RouteLoad
from services.settings import OptimizationSettings
from services.stop_matcher import StopMatcher

logger = logging.getLogger(__name__)

FULL_TRANSFER = "full_transfer"
PARTIAL_TRANSFER = "partial_transfer"
NO_TRANSFER = "no_transfer"

REGULAR_STOP = "regular"
POSSIBLE_STOP = "possible"

NO_ALTERNATIVE_REASON = (
    "No alternative route covers this boarding stop with available capacity"
)
MISSING_STOP_REASON = "Passenger has no boarding stop recorded"
LOOKUP_FAILED_REASON = "Stop lookup failed for this passenger"


@dataclass
class TargetRoute:
    route_id: int
    route_name: str
    route_number: str
    available_seats: int
    current_passengers: int
    matched_stop: str
    stop_category: str = REGULAR_STOP


@dataclass
class TransferCandidate:
    passenger: Passenger
    target: Optional[TargetRoute] = None
    transfer_feasible: bool = False
    reason: Optional[str] = None


@dataclass
class RouteTransferPlan:
    route_id: int
    route_name: str
    route_number: str
    capacity: int
    current_passengers: int
    available_seats: int
    transfer_type: str
    passengers: List[TransferCandidate] = field(default_factory=list)
    transferable_passengers: int = 0
    can_cancel_bus: bool = False
    estimated_savings: int = 0

    @property
    def total_passengers(self) -> int:
        return self.current_passengers


def transfer_type_for(transferable: int, total: int) -> str:
    if total == 0:
        return NO_BOOKINGS
    if transferable == total:
        return FULL_TRANSFER
    if transferable > 0:
        return PARTIAL_TRANSFER
    return NO_TRANSFER


def estimate_savings(transfer_type: str, settings: OptimizationSettings) -> int:
    """Flat placeholder figures, not an operating cost model."""
    if transfer_type == FULL_TRANSFER:
        return settings.full_transfer_savings
    if transfer_type == PARTIAL_TRANSFER:
        return settings.partial_transfer_savings
    return 0


def choose_target(
    passenger: Passenger,
    source_route_id: int,
    candidates: List[RouteLoad],
    matcher: StopMatcher,
    reserved_seats: Dict[int, int],
) -> Optional[TargetRoute]:
    """Best matching route for one passenger, or None.

    Most remaining seats wins; equal seats go to the lowest route_id.
    Possible stops are only consulted when no regular stop matches.
    """
    best: Optional[TargetRoute] = None
    for route in sorted(candidates, key=lambda r: r.route_id):
        if route.route_id == source_route_id:
            continue
        available = route.remaining_seats - reserved_seats.get(route.route_id, 0)
        if available <= 0:
            continue

        category = REGULAR_STOP
        matched = matcher.find_match(passenger.boarding_stop, route.stop_names)
        if matched is None and route.possible_stop_names:
            matched = matcher.find_match(
                passenger.boarding_stop, route.possible_stop_names
            )
            category = POSSIBLE_STOP
        if matched is None:
            continue

        logger.debug(
            f"Stop '{passenger.boarding_stop}' matched '{matched}' on route "
            f"{route.route_name} ({available} seats available)"
        )
        if best is None or available > best.available_seats:
            best = TargetRoute(
                route_id=route.route_id,
                route_name=route.route_name,
                route_number=route.route_number,
                available_seats=available,
                current_passengers=route.passenger_count
                + reserved_seats.get(route.route_id, 0),
                matched_stop=matched,
                stop_category=category,
            )
    return best


def plan_route_transfers(
    source: RouteLoad,
    candidates: List[RouteLoad],
    matcher: StopMatcher,
    settings: OptimizationSettings,
    reserved_seats: Optional[Dict[int, int]] = None,
) -> RouteTransferPlan:
    """Plan where each passenger on ``source`` could ride instead.

    ``reserved_seats`` carries seats already promised earlier in the same run
    and is updated in place, so consecutive calls never plan more passengers
    onto a route than it has seats for.
    """
    if reserved_seats is None:
        reserved_seats = {}

    plan = RouteTransferPlan(
        route_id=source.route_id,
        route_name=source.route_name,
        route_number=source.route_number,
        capacity=source.capacity,
        current_passengers=source.passenger_count,
        available_seats=source.remaining_seats,
        transfer_type=NO_BOOKINGS,
    )

    if source.passenger_count == 0:
        plan.can_cancel_bus = True
        return plan

    for passenger in source.passengers:
        if not (passenger.boarding_stop or "").strip():
            plan.passengers.append(
                TransferCandidate(passenger=passenger, reason=MISSING_STOP_REASON)
            )
            continue

        try:
            target = choose_target(
                passenger, source.route_id, candidates, matcher, reserved_seats
            )
        except Exception as e:
            logger.warning(
                f"Stop lookup failed for student {passenger.student_id} on route "
                f"{source.route_name}: {e}",
                exc_info=True,
            )
            plan.passengers.append(
                TransferCandidate(passenger=passenger, reason=LOOKUP_FAILED_REASON)
            )
            continue

        if target is None:
            plan.passengers.append(
                TransferCandidate(passenger=passenger, reason=NO_ALTERNATIVE_REASON)
            )
            continue

        reserved_seats[target.route_id] = reserved_seats.get(target.route_id, 0) + 1
        plan.transferable_passengers += 1
        plan.passengers.append(
            TransferCandidate(passenger=passenger, target=target, transfer_feasible=True)
        )

    plan.transfer_type = transfer_type_for(
        plan.transferable_passengers, source.passenger_count
    )
    plan.can_cancel_bus = plan.transfer_type == FULL_TRANSFER
    plan.estimated_savings = estimate_savings(plan.transfer_type, settings)

    logger.info(
        f"Route {source.route_name}: {plan.transferable_passengers}/"
        f"{source.passenger_count} passengers transferable ({plan.transfer_type})"
    )
    return plan

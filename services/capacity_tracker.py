import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from api.models import Booking, Route, RoutePossibleStop, RouteStop

logger = logging.getLogger(__name__)

NO_BOOKINGS = "no_bookings"
LOW_CROWD = "low_crowd"
NORMAL = "normal"

CONFIRMED = "confirmed"
ACTIVE = "active"


@dataclass
class Passenger:
    student_id: int
    booking_id: int
    name: str = "Unknown Student"
    roll_number: str = "N/A"
    email: Optional[str] = None
    mobile: Optional[str] = None
    boarding_stop: Optional[str] = None
    seat_number: Optional[str] = None


@dataclass
class RouteLoad:
    route_id: int
    route_name: str
    route_number: str
    capacity: int
    stop_names: List[str] = field(default_factory=list)
    possible_stop_names: List[str] = field(default_factory=list)
    passengers: List[Passenger] = field(default_factory=list)

    @property
    def passenger_count(self) -> int:
        return len(self.passengers)

    @property
    def remaining_seats(self) -> int:
        return self.capacity - self.passenger_count


def classify_load(passenger_count: int, low_load_threshold: int) -> str:
    if passenger_count == 0:
        return NO_BOOKINGS
    if passenger_count <= low_load_threshold:
        return LOW_CROWD
    return NORMAL


def partition_route_loads(
    loads: List[RouteLoad], low_load_threshold: int
) -> Tuple[List[RouteLoad], List[RouteLoad], List[RouteLoad]]:
    """Split loads into (low_crowd, no_bookings, normal), keeping input order."""
    low_crowd, no_bookings, normal = [], [], []
    for load in loads:
        category = classify_load(load.passenger_count, low_load_threshold)
        if category == NO_BOOKINGS:
            no_bookings.append(load)
        elif category == LOW_CROWD:
            low_crowd.append(load)
        else:
            normal.append(load)
    return low_crowd, no_bookings, normal


def _passenger_from_booking(booking: Booking) -> Passenger:
    student = booking.student
    return Passenger(
        student_id=booking.student_id,
        booking_id=booking.booking_id,
        name=student.student_name if student else "Unknown Student",
        roll_number=student.roll_number if student else "N/A",
        email=student.email if student else None,
        mobile=student.mobile if student else None,
        boarding_stop=booking.boarding_stop,
        seat_number=booking.seat_number,
    )


def load_route_loads(
    db: Session,
    trip_date: date,
    default_capacity: int = 60,
    include_possible_stops: bool = True,
) -> List[RouteLoad]:
    """Every active route with its confirmed passengers for trip_date.

    Routes come back ordered by route_id. Query errors propagate.
    """
    routes = (
        db.query(Route)
        .filter(Route.status == ACTIVE)
        .order_by(Route.route_id)
        .all()
    )
    if not routes:
        return []

    route_ids = [r.route_id for r in routes]

    stops_by_route: Dict[int, List[str]] = {rid: [] for rid in route_ids}
    stops = (
        db.query(RouteStop)
        .filter(RouteStop.route_id.in_(route_ids))
        .order_by(RouteStop.route_id, RouteStop.sequence_order)
        .all()
    )
    for stop in stops:
        stops_by_route[stop.route_id].append(stop.stop_name)

    possible_by_route: Dict[int, List[str]] = {rid: [] for rid in route_ids}
    if include_possible_stops:
        possible = (
            db.query(RoutePossibleStop)
            .filter(RoutePossibleStop.route_id.in_(route_ids))
            .order_by(RoutePossibleStop.route_id, RoutePossibleStop.sequence_order)
            .all()
        )
        for stop in possible:
            possible_by_route[stop.route_id].append(stop.stop_name)

    passengers_by_route: Dict[int, List[Passenger]] = {rid: [] for rid in route_ids}
    bookings = (
        db.query(Booking)
        .options(joinedload(Booking.student))
        .filter(
            Booking.trip_date == trip_date,
            Booking.status == CONFIRMED,
            Booking.route_id.in_(route_ids),
        )
        .order_by(Booking.route_id, Booking.booking_id)
        .all()
    )
    for booking in bookings:
        passengers_by_route[booking.route_id].append(_passenger_from_booking(booking))

    loads = [
        RouteLoad(
            route_id=route.route_id,
            route_name=route.route_name or "Unknown Route",
            route_number=route.route_number or "N/A",
            capacity=route.capacity or default_capacity,
            stop_names=stops_by_route[route.route_id],
            possible_stop_names=possible_by_route[route.route_id],
            passengers=passengers_by_route[route.route_id],
        )
        for route in routes
    ]
    logger.debug(
        f"Loaded {len(loads)} active routes and {len(bookings)} confirmed bookings for {trip_date}"
    )
    return loads


def live_passenger_count(db: Session, route_id: int, trip_date: date) -> int:
    return (
        db.query(func.count(Booking.booking_id))
        .filter(
            Booking.route_id == route_id,
            Booking.trip_date == trip_date,
            Booking.status == CONFIRMED,
        )
        .scalar()
        or 0
    )

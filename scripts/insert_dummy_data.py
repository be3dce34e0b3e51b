import logging
from datetime import date
from sqlalchemy.orm import Session

from api.models import (
    Booking,
    Route,
    RoutePossibleStop,
    RouteStop,
    StopAlias,
    Student,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def insert_data(db: Session, trip_date: date = None):
    trip_date = trip_date or date.today()
    logger.info(f"Inserting dummy data into the database for {trip_date}...")

    # 1. Routes
    route_erode = Route(
        route_name="Erode Express",
        route_number="R01",
        start_location="Erode",
        end_location="Campus",
        capacity=60,
    )
    route_gobi = Route(
        route_name="Gobi Line",
        route_number="R02",
        start_location="Gobichettipalayam",
        end_location="Campus",
        capacity=60,
    )
    route_salem = Route(
        route_name="Salem Shuttle",
        route_number="R03",
        start_location="Salem",
        end_location="Campus",
        capacity=40,
    )
    route_spare = Route(
        route_name="Kolathur Connector",
        route_number="R04",
        start_location="Kolathur",
        end_location="Campus",
        capacity=60,
    )
    db.add_all([route_erode, route_gobi, route_salem, route_spare])
    db.flush()

    # 2. Stops
    stops = [
        RouteStop(route_id=route_erode.route_id, stop_name="Erode Bus Stand", sequence_order=1, stop_time="07:00"),
        RouteStop(route_id=route_erode.route_id, stop_name="Main Road", sequence_order=2, stop_time="07:15"),
        RouteStop(route_id=route_erode.route_id, stop_name="Railway Colony", sequence_order=3, stop_time="07:30"),
        RouteStop(route_id=route_gobi.route_id, stop_name="Gobi Bus Stand", sequence_order=1, stop_time="06:50"),
        RouteStop(route_id=route_gobi.route_id, stop_name="Main Stop", sequence_order=2, stop_time="07:10"),
        RouteStop(route_id=route_gobi.route_id, stop_name="Office Junction", sequence_order=3, stop_time="07:25"),
        RouteStop(route_id=route_salem.route_id, stop_name="Salem New Bus Stand", sequence_order=1, stop_time="06:30"),
        RouteStop(route_id=route_salem.route_id, stop_name="Third Pirivu", sequence_order=2, stop_time="07:00"),
        RouteStop(route_id=route_spare.route_id, stop_name="Kolathur", sequence_order=1, stop_time="06:45"),
    ]
    db.add_all(stops)

    # 3. Possible stops
    db.add(
        RoutePossibleStop(
            route_id=route_erode.route_id,
            stop_name="Third Pirivu",
            source_route_id=route_salem.route_id,
            sequence_order=4,
        )
    )

    # 4. Extra stop aliases on top of the built-in table
    db.add(StopAlias(canonical_name="bus stand", pattern="bus terminus"))
    db.flush()

    # 5. Students and bookings
    # Erode Express runs full enough; the others are candidates for consolidation.
    bookings_per_route = [
        (route_erode, 40, ["Erode Bus Stand", "Main Road", "Railway Colony"]),
        (route_gobi, 12, ["Gobi Bus Stand", "Main Stop", "Secondary Stop"]),
        (route_salem, 5, ["Salem New Bus Stand", "Third Pirivu"]),
    ]
    roll = 1
    for route, count, boarding_stops in bookings_per_route:
        for seat in range(1, count + 1):
            student = Student(
                student_name=f"Student {roll:03d}",
                roll_number=f"RN{roll:04d}",
                email=f"student{roll:03d}@example.edu",
                mobile=f"90000{roll:05d}",
            )
            db.add(student)
            db.flush()
            db.add(
                Booking(
                    student_id=student.student_id,
                    route_id=route.route_id,
                    trip_date=trip_date,
                    boarding_stop=boarding_stops[seat % len(boarding_stops)],
                    seat_number=str(seat),
                    status="confirmed",
                )
            )
            roll += 1

    db.commit()
    logger.info(f"Inserted {roll - 1} students and bookings.")

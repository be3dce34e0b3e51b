from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from api.main import app
from api.database import get_db
from api.models import Base, Booking, Route, RoutePossibleStop, RouteStop, Student
from services.notifications import NotificationSender, get_notifier
from services.settings import OptimizationSettings, get_settings


TEST_DATABASE_URL = "sqlite:///:memory:"

TRIP_DATE = date(2025, 1, 15)


class RecordingNotifier(NotificationSender):
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent = []

    def notify(self, student_id, message):
        if self.fail:
            raise RuntimeError("push service unavailable")
        self.sent.append((student_id, message))


class Factory:
    """Builds routes, stops and bookings for a test database."""

    def __init__(self, db):
        self.db = db
        self._roll = 0

    def route(self, name, number=None, stops=(), capacity=60, status="active", possible_stops=()):
        route = Route(
            route_name=name,
            route_number=number or name,
            capacity=capacity,
            status=status,
        )
        self.db.add(route)
        self.db.flush()
        for i, stop_name in enumerate(stops, start=1):
            self.db.add(RouteStop(route_id=route.route_id, stop_name=stop_name, sequence_order=i))
        for i, stop_name in enumerate(possible_stops, start=1):
            self.db.add(
                RoutePossibleStop(route_id=route.route_id, stop_name=stop_name, sequence_order=i)
            )
        self.db.commit()
        return route

    def student(self, name=None):
        self._roll += 1
        student = Student(
            student_name=name or f"Student {self._roll}",
            roll_number=f"RN{self._roll:04d}",
        )
        self.db.add(student)
        self.db.flush()
        return student

    def booking(self, route, boarding_stop="Depot", trip_date=TRIP_DATE, name=None, status="confirmed"):
        student = self.student(name)
        booking = Booking(
            student_id=student.student_id,
            route_id=route.route_id,
            trip_date=trip_date,
            boarding_stop=boarding_stop,
            seat_number=str(self._roll),
            status=status,
        )
        self.db.add(booking)
        self.db.commit()
        return booking

    def fill(self, route, count, boarding_stop="Depot", trip_date=TRIP_DATE):
        return [self.booking(route, boarding_stop, trip_date) for _ in range(count)]


@pytest.fixture(scope="function")
def db_session():
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)

    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = SessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(scope="function")
def factory(db_session):
    return Factory(db_session)


@pytest.fixture(scope="function")
def settings():
    return OptimizationSettings()


@pytest.fixture(scope="function")
def notifier():
    return RecordingNotifier()


@pytest.fixture(scope="function")
def failing_notifier():
    return RecordingNotifier(fail=True)


@pytest.fixture(scope="function")
def trip_date():
    return TRIP_DATE


@pytest.fixture(scope="function")
def client_with_db(db_session, settings, notifier):

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_notifier] = lambda: notifier
    yield TestClient(app)
    app.dependency_overrides.clear()

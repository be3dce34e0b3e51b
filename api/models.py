# api/models.py
from datetime import date, datetime
from typing import Optional

from sqlalchemy import Date, DateTime, ForeignKey, SmallInteger, String, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


DEFAULT_ROUTE_CAPACITY = 60


class Base(DeclarativeBase):
    pass


class Route(Base):
    __tablename__ = "route"

    route_id: Mapped[int] = mapped_column(primary_key=True)
    route_name: Mapped[str] = mapped_column(String(100))
    route_number: Mapped[str] = mapped_column(String(20), unique=True)
    start_location: Mapped[Optional[str]] = mapped_column(String(100))
    end_location: Mapped[Optional[str]] = mapped_column(String(100))
    status: Mapped[str] = mapped_column(String(20), default="active")
    capacity: Mapped[int] = mapped_column(default=DEFAULT_ROUTE_CAPACITY)

    stops: Mapped[list["RouteStop"]] = relationship(
        back_populates="route", order_by="RouteStop.sequence_order"
    )
    possible_stops: Mapped[list["RoutePossibleStop"]] = relationship(
        back_populates="route",
        foreign_keys="RoutePossibleStop.route_id",
        order_by="RoutePossibleStop.sequence_order",
    )
    bookings: Mapped[list["Booking"]] = relationship(back_populates="route")


class RouteStop(Base):
    __tablename__ = "route_stop"

    stop_id: Mapped[int] = mapped_column(primary_key=True)
    stop_name: Mapped[str] = mapped_column(String(100))
    sequence_order: Mapped[int] = mapped_column(SmallInteger)
    stop_time: Mapped[Optional[str]] = mapped_column(String(10))

    route: Mapped["Route"] = relationship(back_populates="stops")
    route_id: Mapped[int] = mapped_column(ForeignKey("route.route_id"))


class RoutePossibleStop(Base):
    __tablename__ = "route_possible_stop"
    __table_args__ = (UniqueConstraint("route_id", "stop_name"),)

    possible_stop_id: Mapped[int] = mapped_column(primary_key=True)
    stop_name: Mapped[str] = mapped_column(String(100))
    sequence_order: Mapped[int] = mapped_column(SmallInteger, default=0)

    route: Mapped["Route"] = relationship(
        back_populates="possible_stops", foreign_keys="RoutePossibleStop.route_id"
    )
    route_id: Mapped[int] = mapped_column(ForeignKey("route.route_id"))

    source_route: Mapped[Optional["Route"]] = relationship(
        foreign_keys="RoutePossibleStop.source_route_id"
    )
    source_route_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("route.route_id")
    )


class StopAlias(Base):
    __tablename__ = "stop_alias"
    __table_args__ = (UniqueConstraint("canonical_name", "pattern"),)

    alias_id: Mapped[int] = mapped_column(primary_key=True)
    canonical_name: Mapped[str] = mapped_column(String(100))
    pattern: Mapped[str] = mapped_column(String(100))


class Student(Base):
    __tablename__ = "student"

    student_id: Mapped[int] = mapped_column(primary_key=True)
    student_name: Mapped[str] = mapped_column(String(100))
    roll_number: Mapped[str] = mapped_column(String(30), unique=True)
    email: Mapped[Optional[str]] = mapped_column(String(100))
    mobile: Mapped[Optional[str]] = mapped_column(String(20))

    bookings: Mapped[list["Booking"]] = relationship(back_populates="student")


class Booking(Base):
    __tablename__ = "booking"

    booking_id: Mapped[int] = mapped_column(primary_key=True)
    trip_date: Mapped[date] = mapped_column(Date, index=True)
    boarding_stop: Mapped[Optional[str]] = mapped_column(String(100))
    seat_number: Mapped[Optional[str]] = mapped_column(String(10))
    status: Mapped[str] = mapped_column(String(20), default="confirmed")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, onupdate=datetime.now
    )

    student: Mapped["Student"] = relationship(back_populates="bookings")
    student_id: Mapped[int] = mapped_column(ForeignKey("student.student_id"))

    route: Mapped["Route"] = relationship(back_populates="bookings")
    route_id: Mapped[int] = mapped_column(ForeignKey("route.route_id"))


# ──────────────── Optimization ────────────────
class RouteOptimization(Base):
    __tablename__ = "route_optimization"

    optimization_id: Mapped[int] = mapped_column(primary_key=True, index=True)
    optimization_date: Mapped[date] = mapped_column(Date, index=True)
    total_low_crowd_buses: Mapped[int] = mapped_column(default=0)
    total_passengers_affected: Mapped[int] = mapped_column(default=0)
    full_transfers: Mapped[int] = mapped_column(default=0)
    partial_transfers: Mapped[int] = mapped_column(default=0)
    no_transfers: Mapped[int] = mapped_column(default=0)
    no_bookings: Mapped[int] = mapped_column(default=0)
    normal_routes: Mapped[int] = mapped_column(default=0)
    potential_savings: Mapped[int] = mapped_column(default=0)
    status: Mapped[str] = mapped_column(String(20), default="planned")
    is_reoptimization: Mapped[bool] = mapped_column(default=False)
    transfer_watermark: Mapped[int] = mapped_column(default=0)
    created_by: Mapped[str] = mapped_column(String(100))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, onupdate=datetime.now
    )

    transfers: Mapped[list["PassengerTransfer"]] = relationship(
        back_populates="optimization"
    )


class PassengerTransfer(Base):
    __tablename__ = "passenger_transfer"

    transfer_id: Mapped[int] = mapped_column(primary_key=True, index=True)
    student_id: Mapped[int]
    trip_date: Mapped[date] = mapped_column(Date, index=True)
    from_route_id: Mapped[int]
    to_route_id: Mapped[int]
    from_route_name: Mapped[Optional[str]] = mapped_column(String(100))
    to_route_name: Mapped[Optional[str]] = mapped_column(String(100))
    boarding_stop: Mapped[Optional[str]] = mapped_column(String(100))
    transfer_type: Mapped[Optional[str]] = mapped_column(String(30))
    transfer_status: Mapped[str] = mapped_column(String(20))
    transfer_reason: Mapped[Optional[str]] = mapped_column(String(255))
    error_message: Mapped[Optional[str]] = mapped_column(String(500))
    executed_by: Mapped[str] = mapped_column(String(100))
    executed_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)

    optimization: Mapped[Optional["RouteOptimization"]] = relationship(
        back_populates="transfers"
    )
    optimization_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("route_optimization.optimization_id")
    )

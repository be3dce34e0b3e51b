from datetime import date
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import List, Optional

from api.database import get_db
from api.models import Booking, Route, Student
from api.schemas import BookingCreate, BookingRead

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post("/", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
def create_booking(booking: BookingCreate, db: Session = Depends(get_db)):
    """
    Book a seat for a student on a route and date.
    Rejects unknown students or routes, duplicate bookings and full buses.
    """
    db_student = (
        db.query(Student).filter(Student.student_id == booking.student_id).first()
    )
    if not db_student:
        raise HTTPException(status_code=400, detail="Student not found")

    db_route = db.query(Route).filter(Route.route_id == booking.route_id).first()
    if not db_route:
        raise HTTPException(status_code=400, detail="Route not found")

    if booking.status == "confirmed":
        duplicate = (
            db.query(Booking)
            .filter(
                Booking.student_id == booking.student_id,
                Booking.trip_date == booking.trip_date,
                Booking.status == "confirmed",
            )
            .first()
        )
        if duplicate:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Student already has a confirmed booking for this date",
            )

        booked = (
            db.query(func.count(Booking.booking_id))
            .filter(
                Booking.route_id == booking.route_id,
                Booking.trip_date == booking.trip_date,
                Booking.status == "confirmed",
            )
            .scalar()
        )
        if booked >= db_route.capacity:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Route {db_route.route_name} is fully booked",
            )

    db_booking = Booking(**booking.model_dump())
    db.add(db_booking)
    db.commit()
    db.refresh(db_booking)
    return db_booking


@router.get("/", response_model=List[BookingRead])
def read_bookings(
    trip_date: Optional[date] = None,
    route_id: Optional[int] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
):
    query = db.query(Booking)
    if trip_date is not None:
        query = query.filter(Booking.trip_date == trip_date)
    if route_id is not None:
        query = query.filter(Booking.route_id == route_id)
    return query.order_by(Booking.booking_id).offset(skip).limit(limit).all()


@router.get("/{booking_id}", response_model=BookingRead)
def read_booking(booking_id: int, db: Session = Depends(get_db)):
    db_booking = db.query(Booking).filter(Booking.booking_id == booking_id).first()
    if db_booking is None:
        raise HTTPException(status_code=404, detail="Booking not found")
    return db_booking

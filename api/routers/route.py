import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List, Optional

from api.database import get_db
from api.models import Booking, Route, RoutePossibleStop, RouteStop
from api.schemas import (
    PossibleStopRead,
    PossibleStopsCreate,
    RouteCreate,
    RouteRead,
    RouteStopCreate,
    RouteStopRead,
    RouteUpdate,
    StopSearchResult,
)

router = APIRouter(prefix="/routes", tags=["routes"])

logger = logging.getLogger(__name__)


def _get_route_or_404(db: Session, route_id: int) -> Route:
    db_route = db.query(Route).filter(Route.route_id == route_id).first()
    if db_route is None:
        raise HTTPException(status_code=404, detail="Route not found")
    return db_route


@router.post("/", response_model=RouteRead)
def create_route(route: RouteCreate, db: Session = Depends(get_db)):
    db_route = Route(**route.model_dump())
    try:
        db.add(db_route)
        db.commit()
        db.refresh(db_route)
        return db_route
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Route number {route.route_number} already exists",
        )


@router.get("/", response_model=List[RouteRead])
def read_routes(
    skip: int = 0,
    limit: int = 100,
    route_status: Optional[str] = None,
    db: Session = Depends(get_db),
):
    query = db.query(Route)
    if route_status:
        query = query.filter(Route.status == route_status)
    return query.order_by(Route.route_id).offset(skip).limit(limit).all()


@router.get("/stops/search", response_model=List[StopSearchResult])
def search_stops(
    q: str = "",
    exclude_route_id: Optional[int] = None,
    limit: int = 20,
    db: Session = Depends(get_db),
):
    """
    Search regular stops of other routes, e.g. to offer them as possible stops.
    """
    query = db.query(RouteStop, Route).join(Route, Route.route_id == RouteStop.route_id)
    if exclude_route_id is not None:
        query = query.filter(RouteStop.route_id != exclude_route_id)
    if q.strip():
        query = query.filter(RouteStop.stop_name.ilike(f"%{q.strip()}%"))
    rows = query.order_by(RouteStop.stop_name).limit(limit).all()
    return [
        StopSearchResult(
            stop_id=stop.stop_id,
            stop_name=stop.stop_name,
            stop_time=stop.stop_time,
            sequence_order=stop.sequence_order,
            route_id=stop.route_id,
            route_name=route.route_name,
        )
        for stop, route in rows
    ]


@router.get("/{route_id}", response_model=RouteRead)
def read_route(route_id: int, db: Session = Depends(get_db)):
    return _get_route_or_404(db, route_id)


@router.put("/{route_id}", response_model=RouteRead)
def update_route(route_id: int, route: RouteUpdate, db: Session = Depends(get_db)):
    db_route = _get_route_or_404(db, route_id)

    update_data = route.model_dump(exclude_unset=True)
    for key, value in update_data.items():
        setattr(db_route, key, value)

    try:
        db.commit()
        db.refresh(db_route)
        return db_route
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Route number already in use",
        )


@router.delete("/{route_id}")
def delete_route(route_id: int, db: Session = Depends(get_db)):
    db_route = _get_route_or_404(db, route_id)

    has_stops = (
        db.query(RouteStop).filter(RouteStop.route_id == route_id).first() is not None
    )
    has_bookings = (
        db.query(Booking).filter(Booking.route_id == route_id).first() is not None
    )
    referenced = (
        db.query(RoutePossibleStop)
        .filter(
            RoutePossibleStop.source_route_id == route_id,
            RoutePossibleStop.route_id != route_id,
        )
        .first()
        is not None
    )

    if has_stops or has_bookings:
        raise HTTPException(
            status_code=400,
            detail="Cannot delete route with existing stops or bookings",
        )
    if referenced:
        raise HTTPException(
            status_code=400,
            detail="Cannot delete route referenced by possible stops of other routes",
        )

    db.query(RoutePossibleStop).filter(RoutePossibleStop.route_id == route_id).delete()
    db.delete(db_route)
    db.commit()
    return {"message": "Route deleted successfully"}


# ───── Stops ─────
@router.get("/{route_id}/stops", response_model=List[RouteStopRead])
def read_route_stops(route_id: int, db: Session = Depends(get_db)):
    _get_route_or_404(db, route_id)
    return (
        db.query(RouteStop)
        .filter(RouteStop.route_id == route_id)
        .order_by(RouteStop.sequence_order)
        .all()
    )


@router.post(
    "/{route_id}/stops",
    response_model=RouteStopRead,
    status_code=status.HTTP_201_CREATED,
)
def create_route_stop(
    route_id: int, stop: RouteStopCreate, db: Session = Depends(get_db)
):
    _get_route_or_404(db, route_id)
    db_stop = RouteStop(route_id=route_id, **stop.model_dump())
    db.add(db_stop)
    db.commit()
    db.refresh(db_stop)
    return db_stop


@router.delete("/{route_id}/stops/{stop_id}")
def delete_route_stop(route_id: int, stop_id: int, db: Session = Depends(get_db)):
    db_stop = (
        db.query(RouteStop)
        .filter(RouteStop.route_id == route_id, RouteStop.stop_id == stop_id)
        .first()
    )
    if db_stop is None:
        raise HTTPException(status_code=404, detail="Stop not found")
    db.delete(db_stop)
    db.commit()
    return {"message": "Stop deleted successfully"}


# ───── Possible stops ─────
@router.get("/{route_id}/possible-stops", response_model=List[PossibleStopRead])
def read_possible_stops(route_id: int, db: Session = Depends(get_db)):
    _get_route_or_404(db, route_id)
    return (
        db.query(RoutePossibleStop)
        .filter(RoutePossibleStop.route_id == route_id)
        .order_by(RoutePossibleStop.sequence_order)
        .all()
    )


@router.post(
    "/{route_id}/possible-stops",
    response_model=List[PossibleStopRead],
    status_code=status.HTTP_201_CREATED,
)
def add_possible_stops(
    route_id: int, payload: PossibleStopsCreate, db: Session = Depends(get_db)
):
    """
    Add stops this route can also serve. Stops already registered for the
    route are skipped rather than rejected.
    """
    _get_route_or_404(db, route_id)
    if not payload.possible_stops:
        raise HTTPException(
            status_code=400,
            detail="Invalid possible stops data - must be a non-empty array",
        )

    existing = {
        name.lower()
        for (name,) in db.query(RoutePossibleStop.stop_name).filter(
            RoutePossibleStop.route_id == route_id
        )
    }
    added = []
    for stop in payload.possible_stops:
        name = stop.stop_name.strip()
        if not name:
            raise HTTPException(status_code=400, detail="Stop name is required")
        if name.lower() in existing:
            logger.info(f"Possible stop '{name}' already registered for route {route_id}")
            continue
        if stop.source_route_id is not None:
            _get_route_or_404(db, stop.source_route_id)
        db_stop = RoutePossibleStop(
            route_id=route_id,
            stop_name=name,
            source_route_id=stop.source_route_id,
            sequence_order=stop.sequence_order,
        )
        db.add(db_stop)
        added.append(db_stop)
        existing.add(name.lower())

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Possible stop already exists for this route",
        )
    for db_stop in added:
        db.refresh(db_stop)
    return added


@router.delete("/{route_id}/possible-stops/{possible_stop_id}")
def delete_possible_stop(
    route_id: int, possible_stop_id: int, db: Session = Depends(get_db)
):
    db_stop = (
        db.query(RoutePossibleStop)
        .filter(
            RoutePossibleStop.route_id == route_id,
            RoutePossibleStop.possible_stop_id == possible_stop_id,
        )
        .first()
    )
    if db_stop is None:
        raise HTTPException(status_code=404, detail="Possible stop not found")
    db.delete(db_stop)
    db.commit()
    return {"message": "Possible stop deleted successfully"}

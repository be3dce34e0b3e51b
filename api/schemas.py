from datetime import date, datetime
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from typing import Dict, List, Optional


# ───── Route ─────
class RouteBase(BaseModel):
    route_name: str
    route_number: str
    start_location: Optional[str] = None
    end_location: Optional[str] = None
    status: str = "active"
    capacity: int = Field(default=60, gt=0)


class RouteCreate(RouteBase):
    pass


class RouteRead(RouteBase):
    route_id: int
    model_config = ConfigDict(from_attributes=True)


class RouteUpdate(BaseModel):
    route_name: Optional[str] = None
    route_number: Optional[str] = None
    start_location: Optional[str] = None
    end_location: Optional[str] = None
    status: Optional[str] = None
    capacity: Optional[int] = Field(default=None, gt=0)


# ───── RouteStop ─────
class RouteStopBase(BaseModel):
    stop_name: str
    sequence_order: int
    stop_time: Optional[str] = None


class RouteStopCreate(RouteStopBase):
    pass


class RouteStopRead(RouteStopBase):
    stop_id: int
    route_id: int
    model_config = ConfigDict(from_attributes=True)


# ───── RoutePossibleStop ─────
class PossibleStopBase(BaseModel):
    stop_name: str
    source_route_id: Optional[int] = None
    sequence_order: int = 0


class PossibleStopCreate(PossibleStopBase):
    pass


class PossibleStopRead(PossibleStopBase):
    possible_stop_id: int
    route_id: int
    model_config = ConfigDict(from_attributes=True)


class PossibleStopsCreate(BaseModel):
    possible_stops: List[PossibleStopCreate]


class StopSearchResult(BaseModel):
    stop_id: int
    stop_name: str
    stop_time: Optional[str] = None
    sequence_order: int
    route_id: int
    route_name: Optional[str] = None


# ───── StopAlias ─────
class StopAliasBase(BaseModel):
    canonical_name: str
    pattern: str


class StopAliasCreate(StopAliasBase):
    pass


class StopAliasRead(StopAliasBase):
    alias_id: int
    model_config = ConfigDict(from_attributes=True)


# ───── Student ─────
class StudentBase(BaseModel):
    student_name: str
    roll_number: str
    email: Optional[str] = None
    mobile: Optional[str] = None


class StudentCreate(StudentBase):
    pass


class StudentRead(StudentBase):
    student_id: int
    model_config = ConfigDict(from_attributes=True)


# ───── Booking ─────
class BookingBase(BaseModel):
    student_id: int
    route_id: int
    trip_date: date
    boarding_stop: Optional[str] = None
    seat_number: Optional[str] = None
    status: str = "confirmed"


class BookingCreate(BookingBase):
    pass


class BookingRead(BookingBase):
    booking_id: int
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


# ──────────────── Route optimization ────────────────
class OptimizationRequest(BaseModel):
    trip_date: date = Field(validation_alias=AliasChoices("date", "trip_date"))
    admin_id: str = Field(min_length=1)


class RouteLoadRead(BaseModel):
    route_id: int
    route_name: str
    route_number: str
    capacity: int
    passenger_count: int
    remaining_seats: int
    load_category: str


class PassengerRead(BaseModel):
    student_id: int
    booking_id: int
    name: str
    roll_number: str
    email: Optional[str] = None
    mobile: Optional[str] = None
    boarding_stop: Optional[str] = None
    seat_number: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class TargetRouteRead(BaseModel):
    route_id: int
    route_name: str
    route_number: str
    available_seats: int
    current_passengers: int
    matched_stop: str
    stop_category: str
    model_config = ConfigDict(from_attributes=True)


class TransferCandidateRead(BaseModel):
    passenger: PassengerRead
    target: Optional[TargetRouteRead] = None
    transfer_feasible: bool
    reason: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class RouteTransferPlanRead(BaseModel):
    route_id: int
    route_name: str
    route_number: str
    capacity: int
    current_passengers: int
    available_seats: int
    transfer_type: str
    passengers: List[TransferCandidateRead]
    transferable_passengers: int
    total_passengers: int
    can_cancel_bus: bool
    estimated_savings: int
    model_config = ConfigDict(from_attributes=True)


class OptimizationSummaryRead(BaseModel):
    total_low_crowd_buses: int
    total_passengers_affected: int
    full_transfers: int
    partial_transfers: int
    no_transfers: int
    no_bookings: int
    normal_routes: int
    potential_savings: int
    model_config = ConfigDict(from_attributes=True)


class OptimizationPlanRead(BaseModel):
    optimization_id: Optional[int] = None
    optimization_date: date
    routes: List[RouteTransferPlanRead]
    summary: OptimizationSummaryRead
    summary_persisted: bool
    model_config = ConfigDict(from_attributes=True)


class ExistingTransferRead(BaseModel):
    student_id: int
    student_name: str
    roll_number: str
    boarding_stop: Optional[str] = None
    from_route: Optional[str] = None
    current_route: str
    transferred_at: datetime
    model_config = ConfigDict(from_attributes=True)


class ExistingTransferSummaryRead(BaseModel):
    total_transfers: int
    affected_routes: int
    transfer_date: date
    last_transfer_time: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class ExistingTransfersRead(BaseModel):
    optimization_date: date
    transfers: Dict[str, List[ExistingTransferRead]]
    summary: ExistingTransferSummaryRead
    model_config = ConfigDict(from_attributes=True)


class OptimizationOutcomeRead(BaseModel):
    has_existing_transfers: bool
    plan: Optional[OptimizationPlanRead] = None
    existing: Optional[ExistingTransfersRead] = None
    model_config = ConfigDict(from_attributes=True)


class TransferRequestItem(BaseModel):
    student_id: int
    from_route_id: int
    to_route_id: int
    boarding_stop: Optional[str] = None
    student_name: Optional[str] = None
    from_route_name: Optional[str] = None
    to_route_name: Optional[str] = None
    transfer_type: Optional[str] = None


class ExecuteTransfersRequest(BaseModel):
    optimization_id: Optional[int] = None
    transfers: List[TransferRequestItem]
    admin_id: str = Field(min_length=1)
    trip_date: date = Field(validation_alias=AliasChoices("date", "trip_date"))


class TransferDetailRead(BaseModel):
    student_id: int
    student_name: Optional[str] = None
    from_route: Optional[str] = None
    to_route: Optional[str] = None
    boarding_stop: Optional[str] = None
    status: str
    error: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class RouteExecutionDetailRead(BaseModel):
    route_id: int
    route_name: Optional[str] = None
    route_number: Optional[str] = None
    total_transfers: int
    successful_transfers: int
    failed_transfers: int
    remaining_passengers: int
    bus_cancelled: bool
    transfers: List[TransferDetailRead]
    model_config = ConfigDict(from_attributes=True)


class ExecutionResultRead(BaseModel):
    optimization_id: Optional[int] = None
    trip_date: date
    total_transfers: int
    successful_transfers: int
    failed_transfers: int
    cancelled_buses: List[str]
    errors: List[str]
    transfer_details: List[RouteExecutionDetailRead]
    model_config = ConfigDict(from_attributes=True)


class RouteOptimizationRead(BaseModel):
    optimization_id: int
    optimization_date: date
    total_low_crowd_buses: int
    total_passengers_affected: int
    full_transfers: int
    partial_transfers: int
    no_transfers: int
    no_bookings: int
    normal_routes: int
    potential_savings: int
    status: str
    is_reoptimization: bool
    created_by: str
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class PassengerTransferRead(BaseModel):
    transfer_id: int
    optimization_id: Optional[int] = None
    student_id: int
    trip_date: date
    from_route_id: int
    to_route_id: int
    from_route_name: Optional[str] = None
    to_route_name: Optional[str] = None
    boarding_stop: Optional[str] = None
    transfer_type: Optional[str] = None
    transfer_status: str
    transfer_reason: Optional[str] = None
    error_message: Optional[str] = None
    executed_by: str
    executed_at: datetime
    model_config = ConfigDict(from_attributes=True)

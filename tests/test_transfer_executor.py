import pytest

from api.models import Booking, PassengerTransfer, RouteOptimization
from services.capacity_tracker import live_passenger_count
from services.exceptions import InvalidOptimizationRequest, OptimizationNotFound
from services.transfer_executor import (
    PlannedTransfer,
    TransferExecutor,
    group_by_source_route,
)


def _transfers(bookings, to_route):
    return [
        PlannedTransfer(
            student_id=b.student_id,
            from_route_id=b.route_id,
            to_route_id=to_route.route_id,
            boarding_stop=b.boarding_stop,
            student_name=f"Student {b.student_id}",
        )
        for b in bookings
    ]


def test_group_by_source_route_keeps_order():
    transfers = [
        PlannedTransfer(student_id=1, from_route_id=2, to_route_id=9),
        PlannedTransfer(student_id=2, from_route_id=1, to_route_id=9),
        PlannedTransfer(student_id=3, from_route_id=2, to_route_id=9),
    ]
    groups = group_by_source_route(transfers)
    assert list(groups) == [2, 1]
    assert [t.student_id for t in groups[2]] == [1, 3]


def test_successful_transfers_move_bookings_and_log(db_session, factory, trip_date, notifier):
    source = factory.route("Source", number="S1")
    target = factory.route("Target", number="T1")
    bookings = factory.fill(source, 2, "Main")

    result = TransferExecutor(db_session, notifier).execute(
        None, _transfers(bookings, target), "admin-1", trip_date
    )

    assert result.total_transfers == 2
    assert result.successful_transfers == 2
    assert result.failed_transfers == 0
    assert result.errors == []
    assert result.cancelled_buses == ["Source (S1)"]

    detail = result.transfer_details[0]
    assert detail.bus_cancelled is True
    assert detail.remaining_passengers == 0
    assert [t.status for t in detail.transfers] == ["completed", "completed"]

    assert live_passenger_count(db_session, target.route_id, trip_date) == 2
    records = db_session.query(PassengerTransfer).all()
    assert {r.transfer_status for r in records} == {"completed"}
    assert {r.executed_by for r in records} == {"admin-1"}
    assert len(notifier.sent) == 2
    # Route status itself is left alone.
    db_session.refresh(source)
    assert source.status == "active"


def test_partial_failure_when_target_full(db_session, factory, trip_date):
    source = factory.route("Source")
    full = factory.route("Full", capacity=10)
    roomy = factory.route("Roomy")
    factory.fill(full, 10)
    bookings = factory.fill(source, 5, "Main")

    transfers = _transfers(bookings[:3], roomy) + _transfers(bookings[3:], full)
    result = TransferExecutor(db_session).execute(None, transfers, "admin-1", trip_date)

    assert result.successful_transfers == 3
    assert result.failed_transfers == 2
    assert len(result.errors) == 2
    assert all("no available seats" in e for e in result.errors)
    assert result.cancelled_buses == []
    assert result.transfer_details[0].remaining_passengers == 2

    failed = (
        db_session.query(PassengerTransfer)
        .filter(PassengerTransfer.transfer_status == "failed")
        .all()
    )
    assert len(failed) == 2
    assert all(r.error_message for r in failed)


def test_capacity_never_exceeded(db_session, factory, trip_date):
    source = factory.route("Source")
    target = factory.route("Target", capacity=5)
    factory.fill(target, 3)
    bookings = factory.fill(source, 4, "Main")

    result = TransferExecutor(db_session).execute(
        None, _transfers(bookings, target), "admin-1", trip_date
    )

    assert result.successful_transfers == 2
    assert result.failed_transfers == 2
    assert live_passenger_count(db_session, target.route_id, trip_date) == 5


def test_update_refuses_full_target_without_precheck(db_session, factory, trip_date, monkeypatch):
    source = factory.route("Source")
    target = factory.route("Target", capacity=2)
    factory.fill(target, 2)
    bookings = factory.fill(source, 1, "Main")
    monkeypatch.setattr("services.transfer_executor.live_passenger_count", lambda *args: 0)

    result = TransferExecutor(db_session).execute(
        None, _transfers(bookings, target), "admin-1", trip_date
    )

    assert result.successful_transfers == 0
    assert result.failed_transfers == 1
    assert "Target route Target has no available seats" in result.errors[0]
    assert live_passenger_count(db_session, target.route_id, trip_date) == 2
    assert live_passenger_count(db_session, source.route_id, trip_date) == 1


def test_second_execution_of_same_list_fails_gracefully(db_session, factory, trip_date):
    source = factory.route("Source")
    target = factory.route("Target")
    bookings = factory.fill(source, 2, "Main")
    transfers = _transfers(bookings, target)
    executor = TransferExecutor(db_session)

    executor.execute(None, transfers, "admin-1", trip_date)
    second = executor.execute(None, transfers, "admin-1", trip_date)

    assert second.successful_transfers == 0
    assert second.failed_transfers == 2
    assert all("no longer on route" in e for e in second.errors)
    assert second.cancelled_buses == []
    assert live_passenger_count(db_session, target.route_id, trip_date) == 2
    assert db_session.query(Booking).filter(Booking.route_id == target.route_id).count() == 2


def test_missing_or_inactive_target(db_session, factory, trip_date):
    source = factory.route("Source")
    retired = factory.route("Retired", status="inactive")
    bookings = factory.fill(source, 2, "Main")
    transfers = _transfers(bookings[:1], retired)
    transfers.append(
        PlannedTransfer(student_id=bookings[1].student_id, from_route_id=source.route_id, to_route_id=999)
    )

    result = TransferExecutor(db_session).execute(None, transfers, "admin-1", trip_date)

    assert result.failed_transfers == 2
    assert "not active" in result.errors[0]
    assert "not found" in result.errors[1]


def test_unknown_source_route_fails_its_group_only(db_session, factory, trip_date):
    source = factory.route("Source")
    target = factory.route("Target")
    bookings = factory.fill(source, 1, "Main")
    transfers = _transfers(bookings, target) + [
        PlannedTransfer(student_id=12345, from_route_id=777, to_route_id=target.route_id)
    ]

    result = TransferExecutor(db_session).execute(None, transfers, "admin-1", trip_date)

    assert result.successful_transfers == 1
    assert result.failed_transfers == 1
    assert "Source route 777 not found" in result.errors[0]


def test_notification_failure_does_not_fail_transfer(db_session, factory, trip_date, failing_notifier):
    source = factory.route("Source")
    target = factory.route("Target")
    bookings = factory.fill(source, 1, "Main")

    result = TransferExecutor(db_session, failing_notifier).execute(
        None, _transfers(bookings, target), "admin-1", trip_date
    )

    assert result.successful_transfers == 1
    assert result.errors == []


def test_marks_optimization_executed(db_session, factory, trip_date):
    source = factory.route("Source")
    target = factory.route("Target")
    bookings = factory.fill(source, 1, "Main")
    run = RouteOptimization(optimization_date=trip_date, created_by="admin-1")
    db_session.add(run)
    db_session.commit()

    result = TransferExecutor(db_session).execute(
        run.optimization_id, _transfers(bookings, target), "admin-1", trip_date
    )

    assert result.optimization_id == run.optimization_id
    db_session.refresh(run)
    assert run.status == "executed"
    record = db_session.query(PassengerTransfer).one()
    assert record.optimization_id == run.optimization_id


def test_input_validation(db_session, factory, trip_date):
    source = factory.route("Source")
    target = factory.route("Target")
    bookings = factory.fill(source, 1, "Main")
    executor = TransferExecutor(db_session)

    with pytest.raises(InvalidOptimizationRequest):
        executor.execute(None, [], "admin-1", trip_date)
    with pytest.raises(InvalidOptimizationRequest):
        executor.execute(None, _transfers(bookings, target), "", trip_date)
    with pytest.raises(OptimizationNotFound):
        executor.execute(42, _transfers(bookings, target), "admin-1", trip_date)

    assert db_session.query(PassengerTransfer).count() == 0
    assert live_passenger_count(db_session, source.route_id, trip_date) == 1


def test_superseded_optimization_rejected(db_session, factory, trip_date):
    source = factory.route("Source")
    target = factory.route("Target")
    bookings = factory.fill(source, 1, "Main")
    run = RouteOptimization(optimization_date=trip_date, created_by="admin-1", status="superseded")
    db_session.add(run)
    db_session.commit()

    with pytest.raises(InvalidOptimizationRequest):
        TransferExecutor(db_session).execute(
            run.optimization_id, _transfers(bookings, target), "admin-1", trip_date
        )

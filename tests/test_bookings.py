def _student(client, roll="RN1"):
    response = client.post(
        "/students/", json={"student_name": "Asha", "roll_number": roll}
    )
    assert response.status_code == 200
    return response.json()["student_id"]


def _route(client, number="R1", capacity=60):
    response = client.post(
        "/routes/",
        json={"route_name": f"Route {number}", "route_number": number, "capacity": capacity},
    )
    return response.json()["route_id"]


def test_create_and_read_student(client_with_db):
    student_id = _student(client_with_db)
    response = client_with_db.get(f"/students/{student_id}")
    assert response.status_code == 200
    assert response.json()["roll_number"] == "RN1"

    assert client_with_db.get("/students/999").status_code == 404
    duplicate = client_with_db.post(
        "/students/", json={"student_name": "Other", "roll_number": "RN1"}
    )
    assert duplicate.status_code == 409


def test_create_booking(client_with_db, trip_date):
    student_id = _student(client_with_db)
    route_id = _route(client_with_db)

    response = client_with_db.post(
        "/bookings/",
        json={
            "student_id": student_id,
            "route_id": route_id,
            "trip_date": trip_date.isoformat(),
            "boarding_stop": "Main Stop",
            "seat_number": "12",
        },
    )

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "confirmed"
    assert data["boarding_stop"] == "Main Stop"

    listed = client_with_db.get(
        "/bookings/", params={"trip_date": trip_date.isoformat(), "route_id": route_id}
    ).json()
    assert [b["booking_id"] for b in listed] == [data["booking_id"]]
    assert client_with_db.get(f"/bookings/{data['booking_id']}").status_code == 200


def test_booking_rejects_unknown_references(client_with_db, trip_date):
    route_id = _route(client_with_db)
    response = client_with_db.post(
        "/bookings/",
        json={"student_id": 42, "route_id": route_id, "trip_date": trip_date.isoformat()},
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Student not found"


def test_booking_rejects_duplicate_and_full_route(client_with_db, trip_date):
    route_id = _route(client_with_db, capacity=1)
    first = _student(client_with_db, "RN1")
    second = _student(client_with_db, "RN2")
    payload = {"route_id": route_id, "trip_date": trip_date.isoformat()}

    assert client_with_db.post("/bookings/", json={"student_id": first, **payload}).status_code == 201
    assert client_with_db.post("/bookings/", json={"student_id": first, **payload}).status_code == 409

    response = client_with_db.post("/bookings/", json={"student_id": second, **payload})
    assert response.status_code == 409
    assert "fully booked" in response.json()["detail"]

MONDAY = "2030-01-07"


def _booking(consultant_id: int, start: str = "10:00", end: str = "11:00", day: str = MONDAY) -> dict:
    return {"consultant_id": consultant_id, "date": day, "start_time": start, "end_time": end}


def test_booking_create_and_conflict(client, consultant, login_as):
    alice = login_as("alice@example.com")
    bob = login_as("bob@example.com")

    first = client.post("/appointments", headers=alice, json={**_booking(consultant["id"]), "reason": "Resume review"})
    second = client.post("/appointments", headers=bob, json=_booking(consultant["id"]))

    assert first.status_code == 201
    assert first.json()["status"] == "upcoming"
    assert first.json()["reason"] == "Resume review"
    assert second.status_code == 409
    assert second.json()["error"]["code"] == "slot_conflict"
    assert second.json()["detail"] == "Slot no longer available, please choose another"


def test_booked_slot_disappears_from_listing(client, consultant, login_as):
    alice = login_as("listing-alice@example.com")
    client.post("/appointments", headers=alice, json=_booking(consultant["id"]))

    slots = client.get(f"/consultants/{consultant['id']}/slots?date={MONDAY}", headers=alice).json()

    assert [slot["start_time"] for slot in slots] == ["09:00", "11:00", "12:00", "13:00", "14:00", "15:00", "16:00"]


def test_booking_a_slot_that_is_not_offered_conflicts(client, consultant, login_as):
    alice = login_as("offgrid@example.com")

    off_grid = client.post("/appointments", headers=alice, json=_booking(consultant["id"], "10:30", "11:30"))
    weekend = client.post("/appointments", headers=alice, json=_booking(consultant["id"], day="2030-01-12"))

    assert off_grid.status_code == 409
    assert off_grid.json()["detail"] == "Requested slot is not offered by this consultant"
    assert weekend.status_code == 409


def test_consultant_cannot_book_as_client(client, consultant):
    response = client.post("/appointments", headers=consultant["headers"], json=_booking(consultant["id"]))
    assert response.status_code == 403


def test_booking_unknown_consultant_returns_404(client, login_as):
    alice = login_as("ghost-booker@example.com")

    response = client.post("/appointments", headers=alice, json=_booking(999))

    assert response.status_code == 404


def test_booking_create_is_idempotent_with_header(client, consultant, login_as):
    headers = {**login_as("idem-client@example.com"), "Idempotency-Key": "booking-idem-001"}

    first = client.post("/appointments", headers=headers, json=_booking(consultant["id"]))
    second = client.post("/appointments", headers=headers, json=_booking(consultant["id"]))

    assert first.status_code == 201
    assert second.status_code == 201
    assert second.json()["id"] == first.json()["id"]

    mine = client.get("/appointments/me", headers=headers)
    assert mine.status_code == 200
    assert len(mine.json()) == 1


def test_booking_idempotency_key_reuse_with_different_slot_returns_409(client, consultant, login_as):
    headers = {**login_as("idem-reuse@example.com"), "Idempotency-Key": "booking-idem-002"}

    first = client.post("/appointments", headers=headers, json=_booking(consultant["id"], "14:00", "15:00"))
    reused = client.post("/appointments", headers=headers, json=_booking(consultant["id"], "16:00", "17:00"))

    assert first.status_code == 201
    assert reused.status_code == 409
    assert reused.json()["detail"] == "Idempotency key already used with another slot"


def test_overlong_idempotency_key_is_rejected(client, consultant, login_as):
    headers = {**login_as("idem-long@example.com"), "Idempotency-Key": "k" * 129}

    response = client.post("/appointments", headers=headers, json=_booking(consultant["id"]))

    assert response.status_code == 400


def test_consultant_confirms_and_completes(client, consultant, login_as):
    alice = login_as("lifecycle@example.com")
    appointment = client.post("/appointments", headers=alice, json=_booking(consultant["id"])).json()
    url = f"/appointments/{appointment['id']}/status"

    client_confirm = client.patch(url, headers=alice, json={"status": "confirmed"})
    confirmed = client.patch(url, headers=consultant["headers"], json={"status": "confirmed"})
    completed = client.patch(url, headers=consultant["headers"], json={"status": "completed"})
    cancel_after_complete = client.patch(url, headers=alice, json={"status": "cancelled"})

    assert client_confirm.status_code == 403
    assert confirmed.status_code == 200
    assert confirmed.json()["status"] == "confirmed"
    assert completed.json()["status"] == "completed"
    assert cancel_after_complete.status_code == 409
    assert cancel_after_complete.json()["error"]["code"] == "invalid_state"


def test_cancel_frees_slot(client, consultant, login_as):
    alice = login_as("cancel-alice@example.com")
    bob = login_as("cancel-bob@example.com")
    appointment = client.post("/appointments", headers=alice, json=_booking(consultant["id"])).json()

    cancel = client.patch(f"/appointments/{appointment['id']}/status", headers=alice, json={"status": "cancelled"})
    rebook = client.post("/appointments", headers=bob, json=_booking(consultant["id"]))

    assert cancel.status_code == 200
    assert cancel.json()["status"] == "cancelled"
    assert cancel.json()["cancelled_at"] is not None
    assert rebook.status_code == 201


def test_unknown_status_value_is_a_validation_error(client, consultant, login_as):
    alice = login_as("bad-status@example.com")
    appointment = client.post("/appointments", headers=alice, json=_booking(consultant["id"])).json()

    response = client.patch(f"/appointments/{appointment['id']}/status", headers=alice, json={"status": "no_show"})

    assert response.status_code == 422


def test_reschedule_moves_appointment(client, consultant, login_as):
    alice = login_as("move-alice@example.com")
    appointment = client.post("/appointments", headers=alice, json=_booking(consultant["id"])).json()
    client.patch(
        f"/appointments/{appointment['id']}/status",
        headers=consultant["headers"],
        json={"status": "confirmed"},
    )

    moved = client.patch(
        f"/appointments/{appointment['id']}/reschedule",
        headers=alice,
        json={"date": "2030-01-08", "start_time": "15:00", "end_time": "16:00"},
    )

    assert moved.status_code == 200
    data = moved.json()
    assert (data["date"], data["start_time"], data["end_time"]) == ("2030-01-08", "15:00", "16:00")
    assert data["status"] == "upcoming"
    monday = client.get(f"/consultants/{consultant['id']}/slots?date={MONDAY}", headers=alice).json()
    assert "10:00" in [slot["start_time"] for slot in monday]


def test_reschedule_onto_taken_slot_conflicts_and_keeps_original(client, consultant, login_as):
    alice = login_as("move-conflict-alice@example.com")
    bob = login_as("move-conflict-bob@example.com")
    mine = client.post("/appointments", headers=alice, json=_booking(consultant["id"])).json()
    client.post("/appointments", headers=bob, json=_booking(consultant["id"], "12:00", "13:00"))

    response = client.patch(
        f"/appointments/{mine['id']}/reschedule",
        headers=alice,
        json={"date": MONDAY, "start_time": "12:00", "end_time": "13:00"},
    )
    current = client.get(f"/appointments/{mine['id']}", headers=alice).json()

    assert response.status_code == 409
    assert current["start_time"] == "10:00"


def test_reschedule_cancelled_appointment_is_invalid(client, consultant, login_as):
    alice = login_as("move-cancelled@example.com")
    appointment = client.post("/appointments", headers=alice, json=_booking(consultant["id"])).json()
    client.patch(f"/appointments/{appointment['id']}/status", headers=alice, json={"status": "cancelled"})

    response = client.patch(
        f"/appointments/{appointment['id']}/reschedule",
        headers=alice,
        json={"date": MONDAY, "start_time": "11:00", "end_time": "12:00"},
    )

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "invalid_state"


def test_strangers_cannot_see_or_change_appointment(client, consultant, login_as):
    owner = login_as("owner@example.com")
    stranger = login_as("stranger@example.com")
    appointment = client.post("/appointments", headers=owner, json=_booking(consultant["id"])).json()

    read = client.get(f"/appointments/{appointment['id']}", headers=stranger)
    cancel = client.patch(f"/appointments/{appointment['id']}/status", headers=stranger, json={"status": "cancelled"})
    consultant_read = client.get(f"/appointments/{appointment['id']}", headers=consultant["headers"])

    assert read.status_code == 403
    assert read.json()["detail"] == "Not enough permissions"
    assert cancel.status_code == 403
    assert consultant_read.status_code == 200


def test_list_my_appointments_with_filters(client, consultant, login_as):
    alice = login_as("filter-alice@example.com")
    first = client.post("/appointments", headers=alice, json=_booking(consultant["id"])).json()
    client.post("/appointments", headers=alice, json=_booking(consultant["id"], "10:00", "11:00", day="2030-01-09"))
    client.patch(f"/appointments/{first['id']}/status", headers=alice, json={"status": "cancelled"})

    upcoming = client.get("/appointments/me?status=upcoming", headers=alice)
    by_date = client.get("/appointments/me?date_from=2030-01-09&date_to=2030-01-09", headers=alice)
    paged = client.get("/appointments/me?limit=1&offset=1", headers=alice)

    assert upcoming.status_code == 200
    assert [item["date"] for item in upcoming.json()] == ["2030-01-09"]
    assert len(by_date.json()) == 1
    assert by_date.json()[0]["status"] == "upcoming"
    assert [item["date"] for item in paged.json()] == ["2030-01-09"]


def test_consultant_sees_day_schedule_with_client_emails(client, consultant, login_as):
    alice = login_as("schedule-alice@example.com")
    bob = login_as("schedule-bob@example.com")
    client.post("/appointments", headers=bob, json=_booking(consultant["id"], "14:00", "15:00"))
    client.post("/appointments", headers=alice, json=_booking(consultant["id"], "09:00", "10:00"))

    day = client.get(f"/consultants/{consultant['id']}/appointments?date={MONDAY}", headers=consultant["headers"])
    mine = client.get("/appointments/consultants/me", headers=consultant["headers"])
    denied = client.get(f"/consultants/{consultant['id']}/appointments?date={MONDAY}", headers=alice)

    assert day.status_code == 200
    assert [(item["start_time"], item["client_email"]) for item in day.json()] == [
        ("09:00", "schedule-alice@example.com"),
        ("14:00", "schedule-bob@example.com"),
    ]
    assert len(mine.json()) == 2
    assert denied.status_code == 403

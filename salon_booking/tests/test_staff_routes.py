from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from salon_booking import config
from salon_booking.shared.validators import parse_time_of_day
from salon_booking.tests.conftest import MONDAY, SeededSalon, admin_headers


def test_parse_time_of_day() -> None:
    assert parse_time_of_day("09:30") == 570
    assert parse_time_of_day("24:00") == 1440
    assert parse_time_of_day(600) == 600
    assert parse_time_of_day(None) is None
    for bad in ("9.30", "10:75", "25:00", -1):
        with pytest.raises(ValueError):
            parse_time_of_day(bad)


def test_staff_endpoints_require_admin_token(client: TestClient, seeded: SeededSalon) -> None:
    assert client.get(f"/staff/{seeded.anna.id}/working-hours").status_code == 401


def test_staff_endpoints_unavailable_without_configured_token(
    client: TestClient, seeded: SeededSalon, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(config, "ADMIN_API_TOKEN", None)
    response = client.get(f"/staff/{seeded.anna.id}/working-hours", headers=admin_headers())
    assert response.status_code == 503


def test_working_hours_crud(client: TestClient, seeded: SeededSalon) -> None:
    url = f"/staff/{seeded.ben.id}/working-hours"

    created = client.post(
        url,
        json={"day_of_week": 2, "start_time": "10:00", "end_time": "18:00", "break_start": "13:00", "break_end": "13:30"},
        headers=admin_headers(),
    )
    assert created.status_code == 201
    row = created.json()
    assert (row["start_time_minutes"], row["end_time_minutes"]) == (600, 1080)
    assert (row["break_start_minutes"], row["break_end_minutes"]) == (780, 810)

    listed = client.get(url, headers=admin_headers()).json()
    assert [r["day_of_week"] for r in listed] == [1, 2]

    deleted = client.delete(f"{url}/{row['id']}", headers=admin_headers())
    assert deleted.status_code == 200
    assert len(client.get(url, headers=admin_headers()).json()) == 1
    assert client.delete(f"{url}/{row['id']}", headers=admin_headers()).status_code == 404


def test_working_hours_validation(client: TestClient, seeded: SeededSalon) -> None:
    url = f"/staff/{seeded.ben.id}/working-hours"
    bad_payloads = [
        {"day_of_week": 7, "start_time": "10:00", "end_time": "18:00"},
        {"day_of_week": 2, "start_time": "18:00", "end_time": "10:00"},
        {"day_of_week": 2, "start_time": "10:00", "end_time": "18:00", "break_start": "09:00", "break_end": "09:30"},
        {"day_of_week": 2, "start_time": "10:00", "end_time": "18:00", "break_start": "12:00"},
    ]
    for payload in bad_payloads:
        assert client.post(url, json=payload, headers=admin_headers()).status_code == 422, payload


def test_working_hours_for_unknown_staff(client: TestClient, seeded: SeededSalon) -> None:
    response = client.post(
        "/staff/999/working-hours",
        json={"day_of_week": 2, "start_time": 600, "end_time": 1080},
        headers=admin_headers(),
    )
    assert response.status_code == 404
    assert response.json()["context"] == {"staff_id": 999}


def test_absence_blocks_slots(client: TestClient, seeded: SeededSalon) -> None:
    created = client.post(
        f"/staff/{seeded.anna.id}/absences",
        json={"start_date": MONDAY.isoformat(), "end_date": MONDAY.isoformat(), "start_time": "09:00", "end_time": "12:00", "reason": "training"},
        headers=admin_headers(),
    )
    assert created.status_code == 201

    slots = client.get(
        f"/scheduling/salons/{seeded.salon.id}/slots",
        params={"service_ids": [seeded.haircut.id], "staff_id": seeded.anna.id, "start_date": MONDAY.isoformat(), "days": 1},
    ).json()["slots"][MONDAY.isoformat()]
    assert slots[0]["start_time"] == "13:00"

    listed = client.get(f"/staff/{seeded.anna.id}/absences", headers=admin_headers()).json()
    assert [a["reason"] for a in listed] == ["training"]
    assert client.delete(f"/staff/{seeded.anna.id}/absences/{listed[0]['id']}", headers=admin_headers()).status_code == 200


def test_absence_validation(client: TestClient, seeded: SeededSalon) -> None:
    url = f"/staff/{seeded.anna.id}/absences"
    payload = {"start_date": "2030-03-05", "end_date": "2030-03-04"}
    assert client.post(url, json=payload, headers=admin_headers()).status_code == 422
    payload = {"start_date": "2030-03-04", "end_date": "2030-03-04", "reason": "beach"}
    assert client.post(url, json=payload, headers=admin_headers()).status_code == 422


def test_skills(client: TestClient, seeded: SeededSalon) -> None:
    url = f"/staff/{seeded.ben.id}/skills"

    created = client.post(url, json={"service_id": seeded.color.id, "custom_duration_minutes": 40}, headers=admin_headers())
    assert created.status_code == 201
    assert created.json()["custom_duration_minutes"] == 40

    duplicate = client.post(url, json={"service_id": seeded.color.id}, headers=admin_headers())
    assert duplicate.status_code == 409

    assert client.post(url, json={"service_id": 999}, headers=admin_headers()).status_code == 404

    staff = client.get(
        f"/scheduling/salons/{seeded.salon.id}/staff", params={"service_ids": [seeded.color.id]}
    ).json()
    assert [s["display_name"] for s in staff] == ["Anna", "Ben"]

    assert client.delete(f"{url}/{seeded.color.id}", headers=admin_headers()).status_code == 200
    assert [s["service_id"] for s in client.get(url, headers=admin_headers()).json()] == [seeded.haircut.id]

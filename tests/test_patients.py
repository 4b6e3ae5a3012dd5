import re
from datetime import datetime, timedelta

from conftest import add_condition, add_vaccination, auth_header, make_patient


def test_registered_patient_is_listed_and_retrievable(client):
    res = client.post("/api/patients", json={
        "id": "KDH-2025-777777",
        "name": "Asha Oraon",
        "age": "31",
        "gender": "Female",
        "mobile": "+91-9000000001",
        "origin": "Jharkhand",
        "district": "Ernakulam",
        "housing": "Labour Camps",
        "occupants": "6",
        "abhaId": "",
        "consent": True,
    })
    assert res.status_code == 200
    patient = res.json()["data"]["patient"]
    assert patient["patient_id"] == "KDH-2025-777777"
    assert patient["current_location"] == "Ernakulam"
    assert patient["room_occupancy"] == 6
    assert patient["abha_id"] is None
    assert patient["is_active"] is True

    listed = client.get("/api/patients").json()["data"]["patients"]
    assert [p["patient_id"] for p in listed] == ["KDH-2025-777777"]

    by_code = client.get("/api/patients/KDH-2025-777777").json()["data"]
    by_id = client.get(f"/api/patients/{patient['id']}").json()["data"]
    assert by_code["full_name"] == by_id["full_name"] == "Asha Oraon"


def test_registration_generates_identifier(client):
    patient = client.post("/api/patients", json={"name": "No Id"}).json()["data"]["patient"]
    assert re.fullmatch(rf"KDH-{datetime.utcnow().year}-\d{{6}}", patient["patient_id"])


def test_detail_includes_sub_records(client, seeded):
    data = client.get("/api/patients/KDH-2025-001234").json()["data"]
    assert data["full_name"] == "Imran Kumar"
    assert [c["condition_name"] for c in data["health_conditions"]] == ["Asthma"]
    assert len(data["vaccinations"]) == 5
    assert {s["scheme_name"] for s in data["schemes"]} == {"Kerala Awaz Protection", "AB-PMJAY"}
    assert data["visits"][0]["diagnosis"] == "Asthma Exacerbation"
    assert set(data["visits"][0]) == {"id", "visit_date", "diagnosis", "facility"}


def test_detail_unknown_patient(client):
    assert client.get("/api/patients/KDH-0000-000000").status_code == 404
    assert client.get("/api/patients/999").status_code == 404


def test_district_filter_matches_exactly(client, db):
    make_patient(db, "KDH-1", location="Wayanad")
    make_patient(db, "KDH-2", location="Wayanad East")
    make_patient(db, "KDH-3", location="Kollam")

    rows = client.get("/api/patients", params={"location": "Wayanad"}).json()["data"]["patients"]
    assert [p["patient_id"] for p in rows] == ["KDH-1"]

    everything = client.get("/api/patients", params={"location": "All Districts"}).json()["data"]
    assert everything["total"] == 3


def test_search_matches_name_identifier_or_mobile(client, db):
    make_patient(db, "KDH-2025-000001", full_name="Suman Devi", mobile="+91-9111111111")
    make_patient(db, "KDH-2025-000002", full_name="Amit Singh", mobile="+91-9222222222")

    def search(term):
        rows = client.get("/api/patients", params={"search": term}).json()["data"]["patients"]
        return sorted(p["patient_id"] for p in rows)

    assert search("suman") == ["KDH-2025-000001"]
    assert search("000002") == ["KDH-2025-000002"]
    assert search("9111") == ["KDH-2025-000001"]


def test_disease_filter_and_counts(client, db):
    asthmatic = make_patient(db, "KDH-A")
    healthy = make_patient(db, "KDH-B")
    add_condition(db, asthmatic, "Asthma")
    add_condition(db, asthmatic, "Hypertension", is_active=False)
    add_vaccination(db, asthmatic, "Tetanus", status="Completed")
    add_vaccination(db, asthmatic, "MMR")
    add_vaccination(db, healthy, "MMR", status="Completed")

    rows = client.get("/api/patients", params={"disease": "asth"}).json()["data"]["patients"]
    assert len(rows) == 1
    assert rows[0]["patient_id"] == "KDH-A"
    assert rows[0]["conditions_count"] == 1
    assert rows[0]["vaccines_completed"] == 1

    rows = client.get("/api/patients", params={"disease": "All Diseases"}).json()["data"]["patients"]
    assert len(rows) == 2


def test_role_restricts_to_user_location(client, db):
    make_patient(db, "KDH-W", location="Wayanad")
    make_patient(db, "KDH-K", location="Kollam")

    rows = client.get("/api/patients", params={"role": "DISTRICT_ADMIN", "userLocation": "Wayanad"}).json()
    assert [p["patient_id"] for p in rows["data"]["patients"]] == ["KDH-W"]

    rows = client.get("/api/patients", params={"role": "Field Worker", "userLocation": "Kollam"}).json()
    assert [p["patient_id"] for p in rows["data"]["patients"]] == ["KDH-K"]

    rows = client.get("/api/patients", params={"role": "DISTRICT_ADMIN", "userLocation": "All"}).json()
    assert rows["data"]["total"] == 2


def test_bearer_token_applies_user_district(client, db):
    make_patient(db, "KDH-W", location="Wayanad")
    make_patient(db, "KDH-K", location="Kollam")

    scoped = client.get("/api/patients", headers=auth_header("worker")).json()["data"]
    assert [p["patient_id"] for p in scoped["patients"]] == ["KDH-W"]

    admin = client.get("/api/patients", headers=auth_header("admin@kerala.gov")).json()["data"]
    assert admin["total"] == 2


def test_pagination_page_count(client, db):
    now = datetime.utcnow()
    for i in range(7):
        make_patient(db, f"KDH-{i}", registered_at=now - timedelta(days=i))

    first = client.get("/api/patients", params={"page": 1, "limit": 3}).json()["data"]
    assert first["total"] == 7
    assert first["totalPages"] == 3
    # newest registrations first
    assert [p["patient_id"] for p in first["patients"]] == ["KDH-0", "KDH-1", "KDH-2"]

    last = client.get("/api/patients", params={"page": 3, "limit": 3}).json()["data"]
    assert [p["patient_id"] for p in last["patients"]] == ["KDH-6"]
    assert last["page"] == 3


def test_malformed_pagination_falls_back_to_defaults(client, db):
    make_patient(db, "KDH-1")
    res = client.get("/api/patients", params={"page": "abc", "limit": "-4"})
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["page"] == 1
    assert data["totalPages"] == 1


def test_deactivate_requires_admin(client, db):
    patient = make_patient(db, "KDH-1", location="Wayanad")

    assert client.patch(f"/api/patients/{patient.id}/deactivate").status_code == 401
    res = client.patch(f"/api/patients/{patient.id}/deactivate", headers=auth_header("worker"))
    assert res.status_code == 403


def test_district_admin_deactivates_in_own_district(client, db):
    local = make_patient(db, "KDH-1", location="Wayanad")
    remote = make_patient(db, "KDH-2", location="Kollam")
    headers = auth_header("wayanad@kerala.gov")

    assert client.patch(f"/api/patients/{remote.id}/deactivate", headers=headers).status_code == 403
    assert client.patch(f"/api/patients/{local.id}/deactivate", headers=headers).status_code == 200

    listed = client.get("/api/patients").json()["data"]
    assert [p["patient_id"] for p in listed["patients"]] == ["KDH-2"]
    # deactivated rows stay reachable by direct lookup
    assert client.get("/api/patients/KDH-1").json()["data"]["is_active"] is False


def test_non_ascii_digit_reference_is_not_found(client):
    assert client.get("/api/patients/²").status_code == 404

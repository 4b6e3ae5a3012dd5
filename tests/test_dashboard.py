from datetime import date, datetime

import crud
from conftest import add_condition, add_vaccination, make_patient
from models import PatientVisit


def _population(db):
    a = make_patient(db, "KDH-A", location="Wayanad")
    b = make_patient(db, "KDH-B", location="Kollam")
    c = make_patient(db, "KDH-C", location="Kollam", is_active=False)
    for name in ("Tetanus", "MMR", "COVID-19"):
        add_vaccination(db, a, name, status="Completed")
    add_vaccination(db, b, "Tetanus", status="Completed")
    add_vaccination(db, b, "MMR")
    add_condition(db, a, "Asthma")
    add_condition(db, b, "Diabetes Type 2", is_active=False)
    return a, b, c


def test_metrics(client, db):
    _population(db)
    data = client.get("/api/dashboard/metrics").json()["data"]
    assert data == {
        "totalMigrants": 2,
        # 4 completed out of 2 migrants x 3 expected doses
        "vaccinationCoverage": 67,
        "uniqueLocations": 2,
        "activeAlerts": 1,
    }


def test_metrics_on_empty_database(client):
    data = client.get("/api/dashboard/metrics").json()["data"]
    assert data["totalMigrants"] == 0
    assert data["vaccinationCoverage"] == 0


def test_chart_location_and_vaccination_breakdown(client, db):
    _population(db)
    data = client.get("/api/dashboard/charts").json()["data"]
    assert data["locationData"] == [
        {"name": "Kollam", "count": 1, "score": 50},
        {"name": "Wayanad", "count": 1, "score": 100},
    ]
    assert data["vaccinationData"] == [
        {"name": "Fully Vaccinated", "value": 50},
        {"name": "Partial", "value": 50},
        {"name": "Pending", "value": 0},
    ]
    assert len(data["diseaseTrends"]) == 7


def test_disease_trends_bucket_visits_by_month(db):
    patient = make_patient(db, "KDH-A")
    for when in (datetime(2025, 3, 1), datetime(2025, 3, 10), datetime(2025, 1, 5), datetime(2024, 8, 30)):
        db.add(PatientVisit(patient_id=patient.id, visit_date=when))
    db.commit()

    trends = crud.dashboard_charts(db, today=date(2025, 3, 15))["diseaseTrends"]
    assert [t["name"] for t in trends] == ["Sep", "Oct", "Nov", "Dec", "Jan", "Feb", "Mar"]
    assert [t["cases"] for t in trends] == [0, 0, 0, 0, 1, 0, 2]
    assert all(t["month"] == t["name"] for t in trends)


def test_location_data_limited_to_top_five(db):
    for i, district in enumerate(["A", "B", "B", "C", "D", "E", "F", "F", "F"]):
        make_patient(db, f"KDH-{i}", location=district)

    names = [row["name"] for row in crud.dashboard_charts(db)["locationData"]]
    assert names == ["F", "B", "A", "C", "D"]

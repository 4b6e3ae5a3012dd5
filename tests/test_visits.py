import json
import os

from conftest import make_patient
from models import Prescription
from utils import UPLOAD_DIR


def test_add_visit_with_vitals_attachment_and_medications(client, db):
    patient = make_patient(db, "KDH-1")

    res = client.post(
        f"/api/patients/{patient.id}/visits",
        data={
            "visitDate": "2025-01-15T10:30:00.000Z",
            "facility": "PHC Kalpetta",
            "chiefComplaint": "Fever for 3 days",
            "vitals": json.dumps({"temp": "101", "bp": "130/85"}),
            "diagnosis": "Viral fever",
            "treatmentNotes": "Paracetamol, fluids",
            "followUpRequired": "true",
            "followUpDate": "2025-01-22",
            "medications": json.dumps([
                {"name": "Paracetamol", "dosage": "500mg", "frequency": "Twice daily", "duration": "5 days"},
                {"name": "", "dosage": "ignored"},
            ]),
        },
        files=[("attachments", ("report.pdf", b"%PDF-1.4 test", "application/pdf"))],
    )
    assert res.status_code == 200
    visit = res.json()["data"]["visit"]
    assert visit["vitals"] == {"temp": "101", "bp": "130/85"}
    assert visit["follow_up_required"] is True
    assert visit["follow_up_date"] == "2025-01-22"
    assert visit["visit_date"].startswith("2025-01-15T10:30:00")

    [attachment] = visit["attachments"]
    assert attachment["filename"] == "report.pdf"
    assert attachment["file_type"] == "application/pdf"
    assert attachment["file_size"] == len(b"%PDF-1.4 test")
    stored_name = attachment["file_url"].rsplit("/", 1)[1]
    assert stored_name.endswith("-report.pdf")
    assert stored_name.split("-", 1)[0].isdigit()
    assert os.path.exists(os.path.join(UPLOAD_DIR, stored_name))

    prescriptions = db.query(Prescription).filter(Prescription.visit_id == visit["id"]).all()
    assert [p.medicine_name for p in prescriptions] == ["Paracetamol"]

    served = client.get(f"/uploads/{stored_name}")
    assert served.status_code == 200
    assert served.content == b"%PDF-1.4 test"


def test_visit_keeps_unparseable_vitals_as_text(client, db):
    patient = make_patient(db, "KDH-1")
    res = client.post(f"/api/patients/{patient.id}/visits", data={"vitals": "bp 120/80", "followUpRequired": "false"})
    visit = res.json()["data"]["visit"]
    assert visit["vitals"] == "bp 120/80"
    assert visit["follow_up_required"] is False
    assert visit["attachments"] == []


def test_visits_listed_newest_first(client, db):
    patient = make_patient(db, "KDH-1")
    for day in ("2025-01-01", "2025-03-01", "2025-02-01"):
        client.post(f"/api/patients/{patient.id}/visits", data={"visitDate": day, "diagnosis": day})

    visits = client.get(f"/api/patients/{patient.id}/visits").json()["data"]["visits"]
    assert [v["diagnosis"] for v in visits] == ["2025-03-01", "2025-02-01", "2025-01-01"]


def test_visit_for_unknown_patient(client):
    res = client.post("/api/patients/404/visits", data={"diagnosis": "x"})
    assert res.status_code == 404


def test_visit_date_with_offset_is_stored_in_utc(client, db):
    patient = make_patient(db, "KDH-1")
    res = client.post(f"/api/patients/{patient.id}/visits", data={"visitDate": "2025-01-01T10:00:00+05:30"})
    assert res.json()["data"]["visit"]["visit_date"] == "2025-01-01T04:30:00"


def test_naive_visit_date_kept_as_given(client, db):
    patient = make_patient(db, "KDH-1")
    res = client.post(f"/api/patients/{patient.id}/visits", data={"visitDate": "2025-01-01T10:00:00"})
    assert res.json()["data"]["visit"]["visit_date"] == "2025-01-01T10:00:00"

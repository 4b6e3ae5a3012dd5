# migrant-health-be/seed.py
"""Demo data for the migrant health portal.

``python seed.py`` drops and recreates every table, then loads 25 demo
patients. ``--keep-schema`` only wipes rows, for databases whose schema
should stay in place.
"""
import argparse
import logging
import random
from datetime import date, datetime, timedelta

from database import Base, SessionLocal, engine
from models import (
    ConsentRequest, HealthCondition, LabReport, Patient, PatientScheme, PatientVisit, Prescription, Referral,
    Vaccination, VisitAttachment,
)

logger = logging.getLogger("uvicorn.error")

ORIGINS = {
    "Bihar": ["Patna", "Gaya", "Bhagalpur"],
    "Jharkhand": ["Ranchi", "Dhanbad", "Jamshedpur"],
    "West Bengal": ["Kolkata", "Howrah", "Siliguri"],
    "Odisha": ["Bhubaneswar", "Cuttack", "Rourkela"],
    "Assam": ["Guwahati", "Dibrugarh", "Silchar"],
    "Uttar Pradesh": ["Lucknow", "Kanpur", "Varanasi"],
    "Rajasthan": ["Jaipur", "Jodhpur", "Udaipur"],
}

KERALA_DISTRICTS = [
    "Thiruvananthapuram", "Kollam", "Pathanamthitta", "Alappuzha", "Kottayam",
    "Idukki", "Ernakulam", "Thrissur", "Palakkad", "Malappuram",
    "Kozhikode", "Wayanad", "Kannur", "Kasaragod",
]

ACCOMMODATION_TYPES = ["Rented Shared Unit", "Employer Quarters", "Makeshift Shelter", "Labour Camps"]
TOILET_ACCESS = ["Personal", "Shared", "None"]
BLOOD_GROUPS = ["A+", "A-", "B+", "B-", "O+", "O-", "AB+", "AB-"]
VACCINES = ["COVID-19", "Hepatitis B", "Tetanus", "MMR", "Influenza"]
FACILITIES = ["PHC Kalpetta", "District Hospital Ernakulam", "CHC Thrissur", "PHC Munnar", "General Hospital Trivandrum"]

NAMES = [
    "Rajesh Kumar", "Suman Devi", "Amit Singh", "Priya Das", "Manoj Yadav",
    "Anita Murmu", "Subhash Chandra", "Gita Rani", "Vikram Meena", "Pooja Sharma",
    "Ramesh Soren", "Laxmi Kumari", "Sanjay Mahato", "Deepika Roy", "Suresh Ali",
    "Rina Khatun", "Mohammad Azad", "Sunita Bouri", "Arun Tudu", "Kabita Barua",
    "Bikram Singh", "Mousumi Begum", "Suraj Pal", "Nilam Devi",
]

FEATURED_PATIENT_ID = "KDH-2025-001234"

# Tables in child-to-parent order
TABLES = (
    VisitAttachment, LabReport, Prescription, Referral, ConsentRequest,
    PatientVisit, Vaccination, HealthCondition, PatientScheme, Patient,
)


def reset_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)


def clear_data(db):
    for model in TABLES:
        db.query(model).delete()
    db.commit()


def _random_abha(rng):
    return f"{rng.randint(10, 99)}-{rng.randint(1000, 9999)}-{rng.randint(1000, 9999)}-{rng.randint(1000, 9999)}"


def demo_patients(rng, now):
    patients = [dict(
        patient_id=FEATURED_PATIENT_ID,
        full_name="Imran Kumar",
        age=39,
        gender="Female",
        blood_group="AB-",
        origin_state="Jharkhand",
        origin_district="Ranchi",
        current_location="Wayanad",
        accommodation_type="Rented Shared Unit",
        room_occupancy=8,
        has_clean_water=True,
        toilet_access="Shared",
        abha_id="34-8821-4432-4221",
        mobile="+91-9876543210",
        registered_at=now - timedelta(days=20),
    )]

    for i, name in enumerate(NAMES, start=1):
        state = rng.choice(list(ORIGINS))
        patients.append(dict(
            patient_id=f"KDH-2025-00{1234 + i}",
            full_name=name,
            age=rng.randint(18, 58),
            gender="Male" if rng.random() > 0.4 else "Female",
            blood_group=rng.choice(BLOOD_GROUPS),
            origin_state=state,
            origin_district=rng.choice(ORIGINS[state]),
            current_location=KERALA_DISTRICTS[i % len(KERALA_DISTRICTS)],
            accommodation_type=rng.choice(ACCOMMODATION_TYPES),
            room_occupancy=rng.randint(2, 12),
            has_clean_water=rng.random() > 0.3,
            toilet_access=rng.choice(TOILET_ACCESS),
            abha_id=_random_abha(rng) if rng.random() > 0.3 else None,
            mobile=f"+91-{rng.randint(6000000000, 9999999999)}",
            registered_at=now - timedelta(days=rng.randint(0, 59)),
        ))
    return patients


def _seed_featured_records(db, patient, visit):
    db.add_all([
        LabReport(patient_id=patient.id, visit_id=visit.id, test_name="HbA1c", result="6.2%",
                  reference_range="4.0-5.6%", status="ABNORMAL", test_date=date(2024, 12, 10)),
        LabReport(patient_id=patient.id, visit_id=visit.id, test_name="Chest X-Ray", result="Clear lungs",
                  status="NORMAL", test_date=date(2024, 12, 11)),
        Prescription(patient_id=patient.id, visit_id=visit.id, medicine_name="Salbutamol Inhaler", dosage="100mcg",
                     frequency="PRN", duration="30 days", instructions="Inhale during breathlessness",
                     prescribed_date=datetime(2024, 12, 10, 10, 30)),
        Prescription(patient_id=patient.id, visit_id=visit.id, medicine_name="Cetirizine", dosage="10mg",
                     frequency="Once Daily", duration="10 days", prescribed_date=datetime(2024, 12, 11, 9, 0)),
        Referral(patient_id=patient.id, visit_id=visit.id, to_facility="District Hospital Wayanad",
                 reason="Specialist consultation for Asthma", priority="MEDIUM", status="PENDING"),
        ConsentRequest(patient_id=patient.id, requester="District Hospital Wayanad", purpose="Care Management",
                       status="REQUESTED", hi_types=["Prescription", "DiagnosticReport", "OPConsultation"]),
    ])


def seed_demo(db, rng=None, now=None) -> int:
    """Insert the demo cohort and return how many patients were added."""
    rng = rng or random.Random()
    now = now or datetime.utcnow()

    patients = [Patient(**row) for row in demo_patients(rng, now)]
    db.add_all(patients)
    db.flush()

    for p in patients:
        featured = p.patient_id == FEATURED_PATIENT_ID

        if featured:
            db.add(HealthCondition(patient_id=p.id, condition_name="Asthma", icd_code="J45", severity="Moderate",
                                   diagnosed_date=date(2024, 12, 10), notes="Chronic asthma, needs inhaler"))
        else:
            r = rng.random()
            if r < 0.3:
                db.add(HealthCondition(patient_id=p.id, condition_name="Asthma", icd_code="J45", severity="Mild",
                                       diagnosed_date=date(2024, 11, 15), notes="Wheezing"))
            elif r < 0.45:
                db.add(HealthCondition(patient_id=p.id, condition_name="Diabetes Type 2", icd_code="E11",
                                       severity="Moderate", diagnosed_date=date(2024, 10, 20), notes="Diet issues"))
            elif r < 0.55:
                db.add(HealthCondition(patient_id=p.id, condition_name="Hypertension", icd_code="I10",
                                       severity="Mild", diagnosed_date=now.date(), notes="High BP"))

        for name in VACCINES:
            completed = rng.random() < 0.6
            db.add(Vaccination(
                patient_id=p.id,
                vaccine_name=name,
                status="Completed" if completed else "Pending",
                administered_date=(now - timedelta(days=30)).date() if completed else None,
                batch_number="VAC-123" if completed else None,
            ))

        db.add(PatientScheme(patient_id=p.id, scheme_name="Kerala Awaz Protection", enrollment_status="ACTIVE",
                             policy_id="KA-44221", coverage_amount=500000, valid_until=date(2025, 12, 31)))
        if featured:
            db.add(PatientScheme(patient_id=p.id, scheme_name="AB-PMJAY", enrollment_status="PENDING_ASSESSMENT",
                                 policy_id="PMJAY-999", coverage_amount=500000))

        if featured or rng.random() > 0.5:
            visit = PatientVisit(
                patient_id=p.id,
                visit_date=now if featured else now - timedelta(days=rng.randint(0, 180)),
                facility="PHC Wayanad" if featured else rng.choice(FACILITIES),
                chief_complaint="Breathing difficulty" if featured else "Cough",
                diagnosis="Asthma Exacerbation" if featured else "Viral",
                treatment_notes="Nebulisation, review in a week" if featured else "Rest",
                vitals={"temp": 98.6, "bp": "120/80", "spo2": 96},
            )
            db.add(visit)
            db.flush()
            if featured:
                _seed_featured_records(db, p, visit)

    db.commit()
    return len(patients)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Load demo data into the health record database")
    parser.add_argument("--keep-schema", action="store_true", help="delete rows instead of recreating tables")
    parser.add_argument("--seed", type=int, default=None, help="random seed for reproducible data")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)

    if not args.keep_schema:
        reset_schema()
        logger.info("Schema recreated.")

    db = SessionLocal()
    try:
        if args.keep_schema:
            clear_data(db)
            logger.info("Cleared existing data.")
        count = seed_demo(db, random.Random(args.seed))
        logger.info("Seed complete: %d patients.", count)
    finally:
        db.close()


if __name__ == "__main__":
    main()

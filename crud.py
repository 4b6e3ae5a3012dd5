# migrant-health-be/crud.py
import calendar
import math
import random
from datetime import datetime, date
from typing import Optional

from sqlalchemy import case, func, or_, select
from sqlalchemy.orm import Session

from models import HealthCondition, Patient, PatientVisit, Vaccination
from schemas import PatientRegistration
from utils import EXPECTED_VACCINES_PER_PATIENT

ALL_LOCATIONS = ("All Districts", "All Locations")
ALL_DISEASES = "All Diseases"
LOCATION_SCOPED_ROLES = ("DISTRICT_ADMIN", "FIELD_WORKER")

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 20


def normalize_role(role: Optional[str]) -> Optional[str]:
    # accepts both "DISTRICT_ADMIN" and the display form "District Admin"
    if not role:
        return None
    return role.strip().upper().replace(" ", "_")


def coerce_positive_int(value, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def generate_patient_id(rng=random) -> str:
    return f"KDH-{datetime.utcnow().year}-{rng.randint(100000, 999999)}"


# === Patient list ===
def list_patients(
    db: Session,
    search: Optional[str] = None,
    location: Optional[str] = None,
    disease: Optional[str] = None,
    role: Optional[str] = None,
    user_location: Optional[str] = None,
    page: int = DEFAULT_PAGE,
    limit: int = DEFAULT_LIMIT,
):
    """Return ``(rows, total)`` where rows are ``(Patient, conditions_count, vaccines_completed)``."""
    conditions_count = (
        select(func.count(HealthCondition.id))
        .where(HealthCondition.patient_id == Patient.id, HealthCondition.is_active.is_(True))
        .correlate(Patient)
        .scalar_subquery()
        .label("conditions_count")
    )
    vaccines_completed = (
        select(func.count(Vaccination.id))
        .where(Vaccination.patient_id == Patient.id, Vaccination.status == "Completed")
        .correlate(Patient)
        .scalar_subquery()
        .label("vaccines_completed")
    )

    query = db.query(Patient).filter(Patient.is_active.is_(True))

    if search:
        term = f"%{search}%"
        query = query.filter(or_(
            Patient.full_name.like(term),
            Patient.patient_id.like(term),
            Patient.mobile.like(term),
        ))

    if location and location not in ALL_LOCATIONS:
        query = query.filter(Patient.current_location == location)

    if disease and disease != ALL_DISEASES:
        query = query.filter(Patient.conditions.any(HealthCondition.condition_name.like(f"%{disease}%")))

    if normalize_role(role) in LOCATION_SCOPED_ROLES and user_location and user_location != "All":
        query = query.filter(Patient.current_location == user_location)

    total = query.count()
    rows = (
        query.add_columns(conditions_count, vaccines_completed)
        .order_by(Patient.registered_at.desc(), Patient.id.desc())
        .limit(limit)
        .offset((page - 1) * limit)
        .all()
    )
    return rows, total


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0


def get_patient_by_ref(db: Session, ref) -> Optional[Patient]:
    """Look a patient up by internal id, falling back to the KDH identifier."""
    ref = str(ref)
    patient = None
    if ref.isdecimal():
        patient = db.get(Patient, int(ref))
    if patient is None:
        patient = db.query(Patient).filter(Patient.patient_id == ref).first()
    return patient


def register_patient(db: Session, data: PatientRegistration) -> Patient:
    patient = Patient(
        patient_id=data.id or generate_patient_id(),
        full_name=data.name,
        age=data.age,
        gender=data.gender,
        mobile=data.mobile,
        blood_group=data.bloodGroup,
        abha_id=data.abhaId or None,
        origin_state=data.origin,
        origin_district=data.originDistrict,
        current_location=data.district,
        employer=data.employer,
        accommodation_type=data.housing,
        room_occupancy=data.occupants,
        preferred_language=data.language,
    )
    db.add(patient)
    db.commit()
    db.refresh(patient)
    return patient


# === Dashboard ===
def dashboard_metrics(db: Session) -> dict:
    total_migrants = db.query(func.count(Patient.id)).filter(Patient.is_active.is_(True)).scalar() or 0
    vax_completed = db.query(func.count(Vaccination.id)).filter(Vaccination.status == "Completed").scalar() or 0
    expected = total_migrants * EXPECTED_VACCINES_PER_PATIENT
    coverage = round_half_up(vax_completed / expected * 100) if expected > 0 else 0
    unique_locations = db.query(func.count(func.distinct(Patient.current_location))).scalar() or 0
    active_alerts = db.query(func.count(HealthCondition.id)).filter(HealthCondition.is_active.is_(True)).scalar() or 0

    return {
        "totalMigrants": total_migrants,
        "vaccinationCoverage": coverage,
        "uniqueLocations": unique_locations,
        "activeAlerts": active_alerts,
    }


def _location_data(db: Session) -> list:
    completed = func.sum(case((Vaccination.status == "Completed", 1), else_=0))
    vax_by_location = dict(
        (name, (done or 0, count))
        for name, done, count in db.query(Patient.current_location, completed, func.count(Vaccination.id))
        .join(Vaccination, Vaccination.patient_id == Patient.id)
        .filter(Patient.is_active.is_(True))
        .group_by(Patient.current_location)
        .all()
    )

    patient_count = func.count(Patient.id)
    top = (
        db.query(Patient.current_location, patient_count)
        .filter(Patient.is_active.is_(True))
        .group_by(Patient.current_location)
        .order_by(patient_count.desc(), Patient.current_location)
        .limit(5)
        .all()
    )

    data = []
    for name, count in top:
        done, scheduled = vax_by_location.get(name, (0, 0))
        # score: share of scheduled vaccines already given in that district
        score = round_half_up(done / scheduled * 100) if scheduled else 0
        data.append({"name": name, "count": count, "score": score})
    return data


def _vaccination_data(db: Session) -> list:
    completed = func.sum(case((Vaccination.status == "Completed", 1), else_=0))
    per_patient = (
        db.query(Patient.id, func.count(Vaccination.id), completed)
        .outerjoin(Vaccination, Vaccination.patient_id == Patient.id)
        .filter(Patient.is_active.is_(True))
        .group_by(Patient.id)
        .all()
    )

    fully = partial = pending = 0
    for _, scheduled, done in per_patient:
        done = done or 0
        if scheduled and done == scheduled:
            fully += 1
        elif done:
            partial += 1
        else:
            pending += 1

    total = len(per_patient)

    def pct(n):
        return round_half_up(n / total * 100) if total else 0

    return [
        {"name": "Fully Vaccinated", "value": pct(fully)},
        {"name": "Partial", "value": pct(partial)},
        {"name": "Pending", "value": pct(pending)},
    ]


def _last_months(today: date, count: int) -> list:
    year, month = today.year, today.month
    months = []
    for _ in range(count):
        months.append((year, month))
        month -= 1
        if month == 0:
            month = 12
            year -= 1
    return list(reversed(months))


def _disease_trends(db: Session, today: date, months: int = 7) -> list:
    buckets = _last_months(today, months)
    first_year, first_month = buckets[0]
    since = datetime(first_year, first_month, 1)

    counts = dict.fromkeys(buckets, 0)
    for (visit_date,) in db.query(PatientVisit.visit_date).filter(PatientVisit.visit_date >= since).all():
        key = (visit_date.year, visit_date.month)
        if key in counts:
            counts[key] += 1

    trends = []
    for year, month in buckets:
        name = calendar.month_abbr[month]
        trends.append({"name": name, "month": name, "cases": counts[(year, month)]})
    return trends


def dashboard_charts(db: Session, today: Optional[date] = None) -> dict:
    today = today or datetime.utcnow().date()
    return {
        "locationData": _location_data(db),
        "vaccinationData": _vaccination_data(db),
        "diseaseTrends": _disease_trends(db, today),
    }

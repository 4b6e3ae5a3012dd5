# migrant-health-be/graphql_schema.py
import strawberry
from typing import List, Optional
from fastapi import Depends
from strawberry.fastapi import GraphQLRouter
from strawberry.scalars import JSON
from sqlalchemy.orm import Session

import crud
from auth import ADMIN_ROLES, can_manage_patient, get_current_user
from database import get_db
from models import Patient, PatientVisit, Vaccination, HealthCondition
from realtime import notify_data_changed

@strawberry.type
class ConditionType:
    id: int
    condition_name: str
    is_active: bool
    icd_code: Optional[str] = None
    severity: Optional[str] = None

@strawberry.type
class VaccinationType:
    id: int
    vaccine_name: str
    status: str
    administered_date: Optional[str] = None
    batch_number: Optional[str] = None
    next_due_date: Optional[str] = None

@strawberry.type
class VisitType:
    id: int
    visit_date: str
    follow_up_required: bool
    facility: Optional[str] = None
    chief_complaint: Optional[str] = None
    diagnosis: Optional[str] = None
    vitals: Optional[JSON] = None  # free-form vitals blob

@strawberry.type
class PatientType:
    id: int
    patient_id: str  # exposed as patientId
    full_name: str
    is_active: bool
    registered_at: str
    conditions: List[ConditionType]
    vaccinations: List[VaccinationType]
    visits: List[VisitType]
    age: Optional[int] = None
    gender: Optional[str] = None
    mobile: Optional[str] = None
    origin_state: Optional[str] = None
    current_location: Optional[str] = None
    abha_id: Optional[str] = None

@strawberry.type
class PatientPage:
    patients: List[PatientType]
    total: int
    page: int
    total_pages: int

# --- Helper Functions ---
def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None

def to_condition_type(c: HealthCondition) -> ConditionType:
    return ConditionType(
        id=c.id,
        condition_name=c.condition_name,
        icd_code=c.icd_code,
        severity=c.severity,
        is_active=bool(c.is_active),
    )

def to_vaccination_type(v: Vaccination) -> VaccinationType:
    return VaccinationType(
        id=v.id,
        vaccine_name=v.vaccine_name,
        status=v.status,
        administered_date=_iso(v.administered_date),
        batch_number=v.batch_number,
        next_due_date=_iso(v.next_due_date),
    )

def to_visit_type(v: PatientVisit) -> VisitType:
    return VisitType(
        id=v.id,
        visit_date=_iso(v.visit_date) or "",
        facility=v.facility,
        chief_complaint=v.chief_complaint,
        diagnosis=v.diagnosis,
        vitals=v.vitals if isinstance(v.vitals, dict) else None,
        follow_up_required=bool(v.follow_up_required),
    )

def to_patient_type(p: Patient) -> PatientType:
    return PatientType(
        id=p.id,
        patient_id=p.patient_id,
        full_name=p.full_name,
        age=p.age,
        gender=p.gender,
        mobile=p.mobile,
        origin_state=p.origin_state,
        current_location=p.current_location,
        abha_id=p.abha_id,
        is_active=bool(p.is_active),
        registered_at=_iso(p.registered_at) or "",
        conditions=[to_condition_type(c) for c in p.conditions],
        vaccinations=[to_vaccination_type(v) for v in p.vaccinations],
        visits=[to_visit_type(v) for v in sorted(p.visits, key=lambda x: x.visit_date, reverse=True)],
    )

@strawberry.type
class Query:
    @strawberry.field
    def patient(self, info: strawberry.Info, ref: str) -> Optional[PatientType]:
        db: Session = info.context["db"]
        p = crud.get_patient_by_ref(db, ref)
        return to_patient_type(p) if p else None

    @strawberry.field
    def patients(
        self,
        info: strawberry.Info,
        search: Optional[str] = None,
        location: Optional[str] = None,
        disease: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> PatientPage:
        db: Session = info.context["db"]
        page = crud.coerce_positive_int(page, crud.DEFAULT_PAGE)
        limit = crud.coerce_positive_int(limit, crud.DEFAULT_LIMIT)
        rows, total = crud.list_patients(db, search=search, location=location, disease=disease, page=page, limit=limit)
        return PatientPage(
            patients=[to_patient_type(p) for p, _, _ in rows],
            total=total,
            page=page,
            total_pages=crud.total_pages(total, limit),
        )

@strawberry.type
class Mutation:
    @strawberry.mutation
    async def deactivate_patient(self, info: strawberry.Info, patient_id: int) -> str:
        user = info.context["user"]
        if not user or user.get("role") not in ADMIN_ROLES:
            return "Access denied"
        db: Session = info.context["db"]
        patient = db.get(Patient, patient_id)
        if not patient:
            return "Not Found"
        if not can_manage_patient(user, patient):
            return "Access denied"
        patient.is_active = False
        db.commit()
        await notify_data_changed()
        return "Success"

schema = strawberry.Schema(query=Query, mutation=Mutation)

async def get_context(db: Session = Depends(get_db), user: Optional[dict] = Depends(get_current_user)):
    return {"db": db, "user": user}

graphql_app = GraphQLRouter(schema, context_getter=get_context)

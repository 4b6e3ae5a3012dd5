# migrant-health-be/schemas.py
from datetime import date, datetime
from pydantic import BaseModel, ConfigDict, model_validator
from typing import Optional, List, Any

# === Auth ===
class LoginRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None
    provider: Optional[str] = None  # "google" / "facebook" for the mocked social login

class VerifyRequest(BaseModel):
    token: Optional[str] = None

class UserOut(BaseModel):
    id: Any
    username: str
    role: str
    name: Optional[str] = None
    district: str
    loginMethod: Optional[str] = None
    profilePicture: Optional[str] = None

# === Patients ===
class PatientRegistration(BaseModel):
    # Field names follow the registration wizard on the frontend
    id: Optional[str] = None
    name: str
    age: Optional[int] = None
    gender: Optional[str] = None
    mobile: Optional[str] = None
    abhaId: Optional[str] = None
    bloodGroup: Optional[str] = None
    origin: Optional[str] = None
    originDistrict: Optional[str] = None
    district: Optional[str] = None
    employer: Optional[str] = None
    housing: Optional[str] = None
    occupants: Optional[int] = None
    language: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def blank_to_none(cls, values):
        # unfilled wizard inputs arrive as empty strings
        if isinstance(values, dict):
            return {k: (None if v == "" else v) for k, v in values.items()}
        return values

class PatientOut(BaseModel):
    id: int
    patient_id: str
    full_name: str
    age: Optional[int] = None
    gender: Optional[str] = None
    blood_group: Optional[str] = None
    mobile: Optional[str] = None
    origin_state: Optional[str] = None
    origin_district: Optional[str] = None
    current_location: Optional[str] = None
    employer: Optional[str] = None
    accommodation_type: Optional[str] = None
    room_occupancy: Optional[int] = None
    has_clean_water: Optional[bool] = None
    toilet_access: Optional[str] = None
    preferred_language: Optional[str] = None
    abha_id: Optional[str] = None
    abdm_linked: Optional[bool] = None
    abdm_linked_at: Optional[datetime] = None
    is_active: bool
    registered_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class PatientListItem(PatientOut):
    conditions_count: int = 0
    vaccines_completed: int = 0

class HealthConditionOut(BaseModel):
    id: int
    patient_id: int
    condition_name: str
    icd_code: Optional[str] = None
    severity: Optional[str] = None
    diagnosed_date: Optional[date] = None
    notes: Optional[str] = None
    is_active: bool

    model_config = ConfigDict(from_attributes=True)

class SchemeOut(BaseModel):
    id: int
    patient_id: int
    scheme_name: str
    enrollment_status: Optional[str] = None
    policy_id: Optional[str] = None
    coverage_amount: Optional[int] = None
    valid_until: Optional[date] = None

    model_config = ConfigDict(from_attributes=True)

class VisitSummary(BaseModel):
    id: int
    visit_date: Optional[datetime] = None
    diagnosis: Optional[str] = None
    facility: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

class AttachmentOut(BaseModel):
    id: int
    visit_id: int
    filename: str
    file_type: Optional[str] = None
    file_url: str
    file_size: Optional[int] = None
    uploaded_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class VisitOut(BaseModel):
    id: int
    patient_id: int
    visit_date: Optional[datetime] = None
    facility: Optional[str] = None
    chief_complaint: Optional[str] = None
    vitals: Optional[Any] = None
    diagnosis: Optional[str] = None
    treatment_notes: Optional[str] = None
    follow_up_required: Optional[bool] = None
    follow_up_date: Optional[date] = None
    created_at: Optional[datetime] = None
    attachments: List[AttachmentOut] = []

    model_config = ConfigDict(from_attributes=True)

class VaccinationCreate(BaseModel):
    vaccineName: str
    nextDueDate: Optional[date] = None

class VaccinationOut(BaseModel):
    id: int
    patient_id: int
    vaccine_name: str
    status: str
    administered_date: Optional[date] = None
    batch_number: Optional[str] = None
    administrator_name: Optional[str] = None
    next_due_date: Optional[date] = None
    certificate_url: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

class PatientDetail(PatientOut):
    health_conditions: List[HealthConditionOut] = []
    vaccinations: List[VaccinationOut] = []
    schemes: List[SchemeOut] = []
    visits: List[VisitSummary] = []

class LabReportOut(BaseModel):
    id: int
    patient_id: int
    visit_id: Optional[int] = None
    test_name: str
    result: Optional[str] = None
    reference_range: Optional[str] = None
    status: Optional[str] = None
    test_date: Optional[date] = None

    model_config = ConfigDict(from_attributes=True)

class PrescriptionOut(BaseModel):
    id: int
    patient_id: int
    visit_id: Optional[int] = None
    medicine_name: str
    dosage: Optional[str] = None
    frequency: Optional[str] = None
    duration: Optional[str] = None
    instructions: Optional[str] = None
    prescribed_date: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class ReferralOut(BaseModel):
    id: int
    patient_id: int
    visit_id: Optional[int] = None
    to_facility: str
    reason: Optional[str] = None
    priority: Optional[str] = None
    status: Optional[str] = None
    referral_date: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class ConsentOut(BaseModel):
    id: int
    patient_id: int
    requester: Optional[str] = None
    purpose: Optional[str] = None
    status: Optional[str] = None
    hi_types: Optional[List[str]] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

# === ABHA ===
class AbhaLinkRequest(BaseModel):
    abhaId: str

# migrant-health-be/models.py
from sqlalchemy import JSON, Boolean, Column, Date, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
from database import Base

class Patient(Base):
    __tablename__ = "patients"
    __table_args__ = {'extend_existing': True}

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(String(32), index=True, nullable=False)  # "KDH-2025-001234"
    full_name = Column(String(100), nullable=False)
    age = Column(Integer)
    gender = Column(String(20))
    blood_group = Column(String(5))
    mobile = Column(String(20))

    # Origin and current stay in Kerala
    origin_state = Column(String(50))
    origin_district = Column(String(50))
    current_location = Column(String(50), index=True)
    employer = Column(String(150))

    # Housing
    accommodation_type = Column(String(50))
    room_occupancy = Column(Integer)
    has_clean_water = Column(Boolean, default=True)
    toilet_access = Column(String(20))
    preferred_language = Column(String(30))

    # ABHA / ABDM
    abha_id = Column(String(32), nullable=True)
    abdm_linked = Column(Boolean, default=False)
    abdm_linked_at = Column(DateTime, nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    registered_at = Column(DateTime, default=datetime.utcnow)

    conditions = relationship("HealthCondition", back_populates="patient")
    schemes = relationship("PatientScheme", back_populates="patient")
    visits = relationship("PatientVisit", back_populates="patient")
    vaccinations = relationship("Vaccination", back_populates="patient")

class HealthCondition(Base):
    __tablename__ = "health_conditions"
    __table_args__ = {'extend_existing': True}

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False)
    condition_name = Column(String(100), nullable=False)
    icd_code = Column(String(10))
    severity = Column(String(20))
    diagnosed_date = Column(Date, nullable=True)
    notes = Column(Text)
    is_active = Column(Boolean, default=True, nullable=False)

    patient = relationship("Patient", back_populates="conditions")

class PatientScheme(Base):
    __tablename__ = "patient_schemes"
    __table_args__ = {'extend_existing': True}

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False)
    scheme_name = Column(String(100), nullable=False)
    enrollment_status = Column(String(30))
    policy_id = Column(String(50))
    coverage_amount = Column(Integer)
    valid_until = Column(Date, nullable=True)

    patient = relationship("Patient", back_populates="schemes")

class PatientVisit(Base):
    __tablename__ = "patient_visits"
    __table_args__ = {'extend_existing': True}

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False)
    visit_date = Column(DateTime, default=datetime.utcnow)
    facility = Column(String(150))
    chief_complaint = Column(Text)
    vitals = Column(JSON, nullable=True)
    diagnosis = Column(Text)
    treatment_notes = Column(Text)
    follow_up_required = Column(Boolean, default=False)
    follow_up_date = Column(Date, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    patient = relationship("Patient", back_populates="visits")
    attachments = relationship("VisitAttachment", back_populates="visit")

class VisitAttachment(Base):
    __tablename__ = "visit_attachments"
    __table_args__ = {'extend_existing': True}

    id = Column(Integer, primary_key=True, index=True)
    visit_id = Column(Integer, ForeignKey("patient_visits.id"), nullable=False)
    filename = Column(String(255), nullable=False)
    file_type = Column(String(100))
    file_url = Column(String(500), nullable=False)
    file_size = Column(Integer)
    uploaded_at = Column(DateTime, default=datetime.utcnow)

    visit = relationship("PatientVisit", back_populates="attachments")

class Vaccination(Base):
    __tablename__ = "vaccinations"
    __table_args__ = {'extend_existing': True}

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False)
    vaccine_name = Column(String(100), nullable=False)
    status = Column(String(20), default="Pending")  # "Pending" / "Completed"
    administered_date = Column(Date, nullable=True)
    batch_number = Column(String(50), nullable=True)
    administrator_name = Column(String(100), nullable=True)
    next_due_date = Column(Date, nullable=True)
    certificate_url = Column(String(500), nullable=True)

    patient = relationship("Patient", back_populates="vaccinations")

class LabReport(Base):
    __tablename__ = "lab_reports"
    __table_args__ = {'extend_existing': True}

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False)
    visit_id = Column(Integer, ForeignKey("patient_visits.id"), nullable=True)
    test_name = Column(String(100), nullable=False)
    result = Column(Text)
    reference_range = Column(String(50))
    status = Column(String(20))  # NORMAL / ABNORMAL
    test_date = Column(Date, nullable=True)

class Prescription(Base):
    __tablename__ = "prescriptions"
    __table_args__ = {'extend_existing': True}

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False)
    visit_id = Column(Integer, ForeignKey("patient_visits.id"), nullable=True)
    medicine_name = Column(String(100), nullable=False)
    dosage = Column(String(50))
    frequency = Column(String(50))
    duration = Column(String(50))
    instructions = Column(Text)
    prescribed_date = Column(DateTime, default=datetime.utcnow)

class Referral(Base):
    __tablename__ = "referrals"
    __table_args__ = {'extend_existing': True}

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False)
    visit_id = Column(Integer, ForeignKey("patient_visits.id"), nullable=True)
    to_facility = Column(String(150), nullable=False)
    reason = Column(Text)
    priority = Column(String(20))  # LOW / MEDIUM / HIGH
    status = Column(String(20), default="PENDING")
    referral_date = Column(DateTime, default=datetime.utcnow)

class ConsentRequest(Base):
    __tablename__ = "abdm_consent_requests"
    __table_args__ = {'extend_existing': True}

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False)
    requester = Column(String(150))
    purpose = Column(String(100))
    status = Column(String(20), default="REQUESTED")
    hi_types = Column(JSON, nullable=True)  # ["Prescription", "DiagnosticReport", ...]
    created_at = Column(DateTime, default=datetime.utcnow)

import os
import tempfile

# Must be set before the app modules read their configuration
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="migrant-health-uploads-")
os.environ["PUBLIC_BASE_URL"] = "http://testserver"

import base64
import random
from datetime import datetime

import pytest
from fastapi.testclient import TestClient

import main
from database import Base, SessionLocal, engine
from models import HealthCondition, Patient, Vaccination
from realtime import manager


@pytest.fixture(autouse=True)
def fresh_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    manager.active_connections.clear()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(main.app) as c:
        yield c


@pytest.fixture
def seeded(db):
    import seed

    seed.seed_demo(db, random.Random(7))
    return db


def auth_header(login_id):
    token = base64.b64encode(f"{login_id}:{int(datetime.utcnow().timestamp() * 1000)}".encode()).decode()
    return {"Authorization": f"Bearer {token}"}


def make_patient(db, patient_id, full_name="Test Worker", location="Wayanad", registered_at=None, **extra):
    patient = Patient(
        patient_id=patient_id,
        full_name=full_name,
        current_location=location,
        registered_at=registered_at or datetime.utcnow(),
        **extra,
    )
    db.add(patient)
    db.commit()
    db.refresh(patient)
    return patient


def add_condition(db, patient, name, is_active=True):
    db.add(HealthCondition(patient_id=patient.id, condition_name=name, is_active=is_active))
    db.commit()


def add_vaccination(db, patient, name, status="Pending"):
    vaccination = Vaccination(patient_id=patient.id, vaccine_name=name, status=status)
    db.add(vaccination)
    db.commit()
    db.refresh(vaccination)
    return vaccination

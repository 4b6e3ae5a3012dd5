# migrant-health-be/main.py
import base64
import io
import json
import logging
import os
from datetime import date, datetime, timezone
from typing import List, Optional
from urllib.parse import quote

import httpx
import qrcode
from fastapi import FastAPI, Depends, File, Form, HTTPException, UploadFile, WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from pydantic import ValidationError
from sqlalchemy import case
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import crud
from auth import (
    ADMIN_ROLES, USERS, GoogleAuthError, authenticate, can_manage_patient, decode_token, exchange_google_code,
    get_current_user, google_auth_url, google_configured, google_session, issue_token, public_user, require_role,
)
from database import engine, get_db, Base
from graphql_schema import graphql_app
from models import (
    ConsentRequest, LabReport, Patient, PatientVisit, Prescription, Referral, Vaccination, VisitAttachment,
)
from realtime import manager, notify_data_changed
from schemas import (
    AbhaLinkRequest, ConsentOut, HealthConditionOut, LabReportOut, LoginRequest, PatientDetail, PatientListItem,
    PatientOut, PatientRegistration, PrescriptionOut, ReferralOut, SchemeOut, VaccinationCreate, VaccinationOut,
    VerifyRequest, VisitOut, VisitSummary,
)
from storage import save_upload
from utils import CORS_ORIGINS, FRONTEND_URL, GOOGLE_REDIRECT_URI, UPLOAD_DIR

logger = logging.getLogger("uvicorn.error")

Base.metadata.create_all(bind=engine)

app = FastAPI(title="Migrant Health Record API")

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials="*" not in CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

os.makedirs(UPLOAD_DIR, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=UPLOAD_DIR), name="uploads")
app.include_router(graphql_app, prefix="/graphql")


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request, exc):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"success": False, "message": "Database error"})


def _parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return datetime.strptime(value[:10], "%Y-%m-%d").date()
    except ValueError:
        return None


def _parse_datetime(value: Optional[str]) -> datetime:
    if value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return datetime.utcnow()
        # stored naive, in UTC
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        return parsed
    return datetime.utcnow()


def _parse_json(value: Optional[str]):
    # keep the raw text when the client did not send valid JSON
    if not value:
        return None
    try:
        return json.loads(value)
    except ValueError:
        return value


def _get_patient_or_404(db: Session, patient_id: int) -> Patient:
    patient = db.get(Patient, patient_id)
    if not patient:
        raise HTTPException(status_code=404, detail="Patient not found")
    return patient


@app.get("/health")
def health():
    return {"status": "ok"}


# === Auth ===
@app.post("/api/auth/login")
def login(data: LoginRequest):
    if data.provider in ("google", "facebook"):
        # social login is mocked as the state admin
        mock_user = USERS[0]
        return {
            "success": True,
            "token": issue_token(mock_user["loginId"]),
            "user": public_user(mock_user, loginMethod=data.provider),
        }

    user = authenticate(data.username, data.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return {"success": True, "token": issue_token(user["loginId"]), "user": public_user(user)}


@app.post("/api/auth/verify")
def verify(data: VerifyRequest):
    user = decode_token(data.token)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid token")
    return {"success": True, "user": public_user(user)}


@app.get("/api/auth/google")
def google_login():
    if not google_configured():
        raise HTTPException(status_code=503, detail="Google sign-in is not configured")
    return {"success": True, "authUrl": google_auth_url(), "redirectUri": GOOGLE_REDIRECT_URI}


@app.get("/api/auth/callback/google")
async def google_callback(code: Optional[str] = None):
    if not code:
        raise HTTPException(status_code=400, detail="No authorization code provided")
    try:
        profile = await exchange_google_code(code)
    except GoogleAuthError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except (httpx.HTTPError, ValueError):
        logger.exception("Google OAuth error")
        raise HTTPException(status_code=500, detail="OAuth authentication failed")

    token, user = google_session(profile)
    return RedirectResponse(url=f"{FRONTEND_URL}?token={token}&user={quote(json.dumps(user))}")


# === Patients ===
@app.get("/api/patients")
def list_patients(
    search: Optional[str] = None,
    location: Optional[str] = None,
    disease: Optional[str] = None,
    role: Optional[str] = None,
    userLocation: Optional[str] = None,
    page: Optional[str] = None,
    limit: Optional[str] = None,
    db: Session = Depends(get_db),
    user: Optional[dict] = Depends(get_current_user),
):
    # malformed pagination falls back to defaults instead of a 422
    page_number = crud.coerce_positive_int(page, crud.DEFAULT_PAGE)
    page_size = crud.coerce_positive_int(limit, crud.DEFAULT_LIMIT)

    if user:
        role, userLocation = user["role"], user["district"]

    rows, total = crud.list_patients(
        db,
        search=search,
        location=location,
        disease=disease,
        role=role,
        user_location=userLocation,
        page=page_number,
        limit=page_size,
    )
    patients = [
        PatientListItem.model_validate(
            {**PatientOut.model_validate(p).model_dump(), "conditions_count": c, "vaccines_completed": v}
        )
        for p, c, v in rows
    ]
    return {
        "success": True,
        "data": {
            "patients": patients,
            "total": total,
            "page": page_number,
            "totalPages": crud.total_pages(total, page_size),
        },
    }


@app.post("/api/patients")
async def register_patient(data: PatientRegistration, db: Session = Depends(get_db)):
    try:
        patient = crud.register_patient(db, data)
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))

    logger.info("Registered patient %s", patient.patient_id)
    await notify_data_changed()
    return {"success": True, "data": {"patient": PatientOut.model_validate(patient)}}


@app.get("/api/patients/{ref}")
def get_patient(ref: str, db: Session = Depends(get_db)):
    patient = crud.get_patient_by_ref(db, ref)
    if not patient:
        raise HTTPException(status_code=404, detail="Patient not found")

    visits = (
        db.query(PatientVisit)
        .filter(PatientVisit.patient_id == patient.id)
        .order_by(PatientVisit.visit_date.desc())
        .limit(5)
        .all()
    )
    detail = PatientDetail(
        **PatientOut.model_validate(patient).model_dump(),
        health_conditions=[HealthConditionOut.model_validate(c) for c in patient.conditions],
        vaccinations=[VaccinationOut.model_validate(v) for v in patient.vaccinations],
        schemes=[SchemeOut.model_validate(s) for s in patient.schemes],
        visits=[VisitSummary.model_validate(v) for v in visits],
    )
    return {"success": True, "data": detail}


@app.patch("/api/patients/{ref}/deactivate")
async def deactivate_patient(
    ref: str,
    db: Session = Depends(get_db),
    claims: dict = Depends(require_role(ADMIN_ROLES)),
):
    patient = crud.get_patient_by_ref(db, ref)
    if not patient:
        raise HTTPException(status_code=404, detail="Patient not found")
    if not can_manage_patient(claims, patient):
        raise HTTPException(status_code=403, detail="Patient is outside your district")

    patient.is_active = False
    db.commit()
    logger.info("Patient %s deactivated by %s", patient.patient_id, claims["loginId"])
    await notify_data_changed()
    return {"success": True, "message": "Patient deactivated"}


# === Visits ===
@app.get("/api/patients/{patient_id}/visits")
def list_visits(patient_id: int, db: Session = Depends(get_db)):
    visits = (
        db.query(PatientVisit)
        .filter(PatientVisit.patient_id == patient_id)
        .order_by(PatientVisit.visit_date.desc())
        .all()
    )
    return {"success": True, "data": {"visits": [VisitOut.model_validate(v) for v in visits]}}


@app.post("/api/patients/{patient_id}/visits")
async def add_visit(
    patient_id: int,
    visitDate: Optional[str] = Form(None),
    facility: Optional[str] = Form(None),
    chiefComplaint: Optional[str] = Form(None),
    vitals: Optional[str] = Form(None),
    diagnosis: Optional[str] = Form(None),
    treatmentNotes: Optional[str] = Form(None),
    followUpRequired: Optional[str] = Form(None),
    followUpDate: Optional[str] = Form(None),
    medications: Optional[str] = Form(None),
    attachments: Optional[List[UploadFile]] = File(None),
    db: Session = Depends(get_db),
):
    _get_patient_or_404(db, patient_id)

    visit = PatientVisit(
        patient_id=patient_id,
        visit_date=_parse_datetime(visitDate),
        facility=facility,
        chief_complaint=chiefComplaint,
        vitals=_parse_json(vitals),
        diagnosis=diagnosis,
        treatment_notes=treatmentNotes,
        follow_up_required=followUpRequired == "true",
        follow_up_date=_parse_date(followUpDate),
    )
    try:
        db.add(visit)
        db.commit()
        db.refresh(visit)
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))

    # Attachments and prescriptions are written one statement at a time;
    # a failure here leaves the visit in place.
    meds = _parse_json(medications)
    try:
        for upload in attachments or []:
            stored = save_upload(upload)
            db.add(VisitAttachment(
                visit_id=visit.id,
                filename=stored["filename"],
                file_type=stored["file_type"],
                file_url=stored["file_url"],
                file_size=stored["file_size"],
            ))
            db.commit()

        for med in meds if isinstance(meds, list) else []:
            if not isinstance(med, dict) or not med.get("name"):
                continue
            db.add(Prescription(
                patient_id=patient_id,
                visit_id=visit.id,
                medicine_name=med["name"],
                dosage=med.get("dosage"),
                frequency=med.get("frequency"),
                duration=med.get("duration"),
                instructions=med.get("instructions"),
            ))
            db.commit()
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))

    db.refresh(visit)
    new_visit = VisitOut.model_validate(visit)
    await notify_data_changed("visit:added", {"patientId": patient_id, "visit": jsonable_encoder(new_visit)})
    return {"success": True, "data": {"visit": new_visit}}


# === Vaccinations ===
@app.get("/api/patients/{patient_id}/vaccinations")
def list_vaccinations(patient_id: int, db: Session = Depends(get_db)):
    vaccinations = (
        db.query(Vaccination)
        .filter(Vaccination.patient_id == patient_id)
        .order_by(case((Vaccination.status == "Pending", 1), else_=2), Vaccination.vaccine_name)
        .all()
    )
    return {"success": True, "data": {"vaccinations": [VaccinationOut.model_validate(v) for v in vaccinations]}}


@app.post("/api/patients/{patient_id}/vaccinations")
async def schedule_vaccination(patient_id: int, data: VaccinationCreate, db: Session = Depends(get_db)):
    _get_patient_or_404(db, patient_id)
    vaccination = Vaccination(
        patient_id=patient_id,
        vaccine_name=data.vaccineName,
        status="Pending",
        next_due_date=data.nextDueDate,
    )
    try:
        db.add(vaccination)
        db.commit()
        db.refresh(vaccination)
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))

    await notify_data_changed()
    return {"success": True, "data": {"vaccination": VaccinationOut.model_validate(vaccination)}}


@app.post("/api/patients/{patient_id}/vaccinations/{vaccine_id}/complete")
async def complete_vaccination(
    patient_id: int,
    vaccine_id: int,
    administeredDate: Optional[str] = Form(None),
    batchNumber: Optional[str] = Form(None),
    administratorName: Optional[str] = Form(None),
    nextDueDate: Optional[str] = Form(None),
    certificate: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
):
    vaccination = (
        db.query(Vaccination)
        .filter(Vaccination.id == vaccine_id, Vaccination.patient_id == patient_id)
        .first()
    )
    if not vaccination:
        raise HTTPException(status_code=404, detail="Vaccination not found")

    try:
        vaccination.status = "Completed"
        vaccination.administered_date = _parse_date(administeredDate) or datetime.utcnow().date()
        vaccination.batch_number = batchNumber
        vaccination.administrator_name = administratorName
        vaccination.next_due_date = _parse_date(nextDueDate)
        if certificate is not None and certificate.filename:
            vaccination.certificate_url = save_upload(certificate)["file_url"]
        db.commit()
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))

    await notify_data_changed("vaccination:updated", {"patientId": patient_id, "vaccineId": vaccine_id})
    return {"success": True, "message": "Vaccination completed"}


# === ABHA (mocked ABDM integration) ===
@app.get("/api/patients/{patient_id}/abha/qr")
def abha_qr(patient_id: int, db: Session = Depends(get_db)):
    patient = _get_patient_or_404(db, patient_id)
    qr_data = {
        "abhaId": patient.abha_id,
        "name": patient.full_name,
        "gender": patient.gender,
        "mobile": patient.mobile,
        "patientId": patient.patient_id,
    }
    buffer = io.BytesIO()
    qrcode.make(json.dumps(qr_data, separators=(",", ":"))).save(buffer)
    qr_code = "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode()
    return {"success": True, "data": {"qrCode": qr_code, "qrData": qr_data}}


@app.post("/api/patients/{patient_id}/abha/link")
async def abha_link(patient_id: int, data: AbhaLinkRequest, db: Session = Depends(get_db)):
    patient = _get_patient_or_404(db, patient_id)
    try:
        patient.abha_id = data.abhaId
        patient.abdm_linked = True
        patient.abdm_linked_at = datetime.utcnow()
        db.commit()
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))

    # mock SMS gateway
    logger.info("[SMS to %s]: Your record is linked to ABHA ID: %s", patient.mobile, data.abhaId)

    synced = sum(
        db.query(model).filter(model.patient_id == patient_id).count()
        for model in (PatientVisit, LabReport, Prescription)
    )
    await notify_data_changed()
    return {"success": True, "message": "ABHA Linked Successfully", "data": {"recordsSynced": synced}}


# === Clinical sub-records ===
@app.get("/api/patients/{patient_id}/labs")
def list_labs(patient_id: int, db: Session = Depends(get_db)):
    labs = db.query(LabReport).filter(LabReport.patient_id == patient_id).order_by(LabReport.test_date.desc()).all()
    return {"success": True, "data": {"labs": [LabReportOut.model_validate(r) for r in labs]}}


@app.get("/api/patients/{patient_id}/prescriptions")
def list_prescriptions(patient_id: int, db: Session = Depends(get_db)):
    prescriptions = (
        db.query(Prescription)
        .filter(Prescription.patient_id == patient_id)
        .order_by(Prescription.prescribed_date.desc())
        .all()
    )
    return {"success": True, "data": {"prescriptions": [PrescriptionOut.model_validate(p) for p in prescriptions]}}


@app.get("/api/patients/{patient_id}/referrals")
def list_referrals(patient_id: int, db: Session = Depends(get_db)):
    referrals = (
        db.query(Referral)
        .filter(Referral.patient_id == patient_id)
        .order_by(Referral.referral_date.desc())
        .all()
    )
    return {"success": True, "data": {"referrals": [ReferralOut.model_validate(r) for r in referrals]}}


@app.get("/api/patients/{patient_id}/consents")
def list_consents(patient_id: int, db: Session = Depends(get_db)):
    consents = (
        db.query(ConsentRequest)
        .filter(ConsentRequest.patient_id == patient_id)
        .order_by(ConsentRequest.created_at.desc())
        .all()
    )
    return {"success": True, "data": {"consents": [ConsentOut.model_validate(c) for c in consents]}}


# === Dashboard ===
@app.get("/api/dashboard/metrics")
def dashboard_metrics(db: Session = Depends(get_db)):
    return {"success": True, "data": crud.dashboard_metrics(db)}


@app.get("/api/dashboard/charts")
def dashboard_charts(db: Session = Depends(get_db)):
    return {"success": True, "data": crud.dashboard_charts(db)}


# === Real-time channel ===
@app.websocket("/ws")
async def realtime_socket(websocket: WebSocket, db: Session = Depends(get_db)):
    await manager.connect(websocket)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except ValueError:
                await manager.send(websocket, "error", {"message": "Malformed frame"})
                continue
            event = message.get("event") if isinstance(message, dict) else None

            if event == "ping":
                await manager.send(websocket, "pong")
            elif event == "new_patient":
                try:
                    patient = crud.register_patient(db, PatientRegistration.model_validate(message.get("data") or {}))
                except (ValidationError, SQLAlchemyError) as e:
                    db.rollback()
                    logger.error("Socket sync error: %s", e)
                    await manager.send(websocket, "error", {"message": str(e)})
                    continue
                logger.info("Real-time sync: patient %s added & broadcasted", patient.patient_id)
                await notify_data_changed()
    except WebSocketDisconnect:
        logger.debug("Socket closed by client")
    finally:
        manager.disconnect(websocket)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=int(os.getenv("PORT", "5000")))

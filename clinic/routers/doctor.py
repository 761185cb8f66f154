from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import get_db, get_token_user_id, acting_user
from ..schemas import (
    AppointmentCreate,
    DiagnosisCreate,
    DiagnosisUpdate,
    ExaminationSave,
    ExaminationStart,
    PatientMedicationCreate,
    PatientSymptomCreate,
)
from ..services import examinations, queries, reference

router = APIRouter(prefix="/doctor", tags=["doctor"])

# --- Examination ---

@router.post("/examination/start")
def start_examination(
    payload: ExaminationStart,
    db: Session = Depends(get_db),
    token_user_id: Optional[int] = Depends(get_token_user_id),
):
    user_id = acting_user(payload.user_id, token_user_id)
    started = examinations.start_examination(db, payload.patient_id, user_id)
    return {
        "message": "Examination started" if started.created else "Examination already in progress",
        "examinationId": started.record.id,
        "created": started.created,
    }

@router.post("/examination/save")
def save_examination(
    payload: ExaminationSave,
    db: Session = Depends(get_db),
    token_user_id: Optional[int] = Depends(get_token_user_id),
):
    user_id = acting_user(payload.user_id, token_user_id)
    result = examinations.save_complete(db, payload, user_id)
    return {
        "message": "Examination saved successfully",
        "examinationId": result.examination_id,
        "patientId": result.patient_id,
    }

@router.get("/examination/patient/{patient_id}")
def get_patient_latest_examination(patient_id: int, db: Session = Depends(get_db)):
    return queries.get_patient_latest_examination(db, patient_id)

@router.get("/examination/{examination_id}")
def get_examination(examination_id: int, db: Session = Depends(get_db)):
    return queries.get_examination(db, examination_id)

# --- Symptoms ---

@router.get("/symptoms/categories")
def symptom_categories(db: Session = Depends(get_db)):
    return reference.list_symptom_categories(db)

@router.get("/symptoms/category/{category_id}")
def symptoms_by_category(category_id: int, db: Session = Depends(get_db)):
    return reference.list_symptoms_by_category(db, category_id)

@router.post("/symptoms/add")
def add_symptom(
    payload: PatientSymptomCreate,
    db: Session = Depends(get_db),
    token_user_id: Optional[int] = Depends(get_token_user_id),
):
    user_id = acting_user(payload.user_id, token_user_id)
    row = examinations.add_symptom(db, payload, user_id)
    return {
        "message": "Symptom added",
        "patientSymptomId": row.id,
        "patientId": row.patient_id,
        "symptomId": row.symptom_id,
        "examinationId": row.examination_id,
    }

@router.delete("/symptoms/{patient_symptom_id}")
def remove_symptom(
    patient_symptom_id: int,
    user_id: Optional[int] = Query(None, alias="userId", gt=0),
    db: Session = Depends(get_db),
    token_user_id: Optional[int] = Depends(get_token_user_id),
):
    acting_user(user_id, token_user_id)
    examinations.remove_symptom(db, patient_symptom_id)
    return {"message": "Symptom removed", "id": patient_symptom_id}

# --- Diagnosis ---

@router.post("/diagnosis/add")
def add_diagnosis(
    payload: DiagnosisCreate,
    db: Session = Depends(get_db),
    token_user_id: Optional[int] = Depends(get_token_user_id),
):
    user_id = acting_user(payload.user_id, token_user_id)
    upserted = examinations.add_diagnosis(db, payload, user_id)
    return {
        "message": "Diagnosis saved",
        "diagnosisId": upserted.record.id,
        "outcome": upserted.outcome.value,
    }

@router.put("/diagnosis/update/{diagnosis_id}")
def update_diagnosis(
    diagnosis_id: int,
    payload: DiagnosisUpdate,
    db: Session = Depends(get_db),
    token_user_id: Optional[int] = Depends(get_token_user_id),
):
    user_id = acting_user(payload.user_id, token_user_id)
    diagnosis = examinations.update_diagnosis(db, diagnosis_id, payload, user_id)
    return {"message": "Diagnosis updated", "diagnosisId": diagnosis.id, "outcome": "updated"}

# --- Prescriptions ---

@router.get("/medicines")
def medicines(search: Optional[str] = None, db: Session = Depends(get_db)):
    return reference.search_medicines(db, search)

@router.post("/prescription/add")
def add_medication(
    payload: PatientMedicationCreate,
    db: Session = Depends(get_db),
    token_user_id: Optional[int] = Depends(get_token_user_id),
):
    user_id = acting_user(payload.user_id, token_user_id)
    row = examinations.add_medication(db, payload, user_id)
    return {
        "message": "Medication prescribed",
        "patientMedicationId": row.id,
        "patientId": row.patient_id,
        "medicineId": row.medicine_id,
        "examinationId": row.examination_id,
    }

@router.delete("/prescription/{patient_medication_id}")
def remove_medication(
    patient_medication_id: int,
    user_id: Optional[int] = Query(None, alias="userId", gt=0),
    db: Session = Depends(get_db),
    token_user_id: Optional[int] = Depends(get_token_user_id),
):
    acting_user(user_id, token_user_id)
    examinations.remove_medication(db, patient_medication_id)
    return {"message": "Medication removed", "id": patient_medication_id}

# --- Appointments ---

@router.post("/appointment/schedule")
def schedule_appointment(
    payload: AppointmentCreate,
    db: Session = Depends(get_db),
    token_user_id: Optional[int] = Depends(get_token_user_id),
):
    user_id = acting_user(payload.user_id, token_user_id)
    patient = examinations.schedule_appointment(db, payload, user_id)
    return {
        "message": "Appointment scheduled",
        "patientId": patient.id,
        "nextAppointment": patient.next_appointment,
    }

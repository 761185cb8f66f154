"""Read-side projections: an examination with everything recorded during it."""

from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session, selectinload

from ..exceptions import NotFoundError
from ..models import Examination, Patient, PatientMedication, PatientSymptom, Symptom


def _examination_query(db: Session):
    return db.query(Examination).options(
        selectinload(Examination.diagnoses),
        selectinload(Examination.medications).selectinload(PatientMedication.medicine),
        selectinload(Examination.symptoms)
        .selectinload(PatientSymptom.symptom)
        .selectinload(Symptom.category),
        selectinload(Examination.patients),
    )


def _diagnosis(examination: Examination) -> Optional[Dict[str, Any]]:
    if not examination.diagnoses:
        return None
    d = examination.diagnoses[0]
    return {
        "diagnosisId": d.id,
        "clinicalDiagnosis": d.clinical_diagnosis,
        "requiredInvestigations": d.required_investigations,
    }


def _symptoms(examination: Examination) -> List[Dict[str, Any]]:
    items = []
    for ps in sorted(examination.symptoms, key=lambda r: r.id):
        symptom = ps.symptom
        category = symptom.category if symptom else None
        items.append({
            "patientSymptomId": ps.id,
            "symptomId": ps.symptom_id,
            "symptomName": symptom.name if symptom else None,
            "categoryId": category.id if category else None,
            "categoryName": category.name if category else None,
        })
    return items


def _medications(examination: Examination) -> List[Dict[str, Any]]:
    return [
        {
            "patientMedicationId": pm.id,
            "medicineId": pm.medicine_id,
            "medicineName": pm.medicine.name if pm.medicine else None,
            "dosage": pm.dosage,
            "frequency": pm.frequency,
        }
        for pm in sorted(examination.medications, key=lambda r: r.id)
    ]


def _examination_header(examination: Examination) -> Dict[str, Any]:
    return {
        "examinationId": examination.id,
        "startAt": examination.start_at,
        "endAt": examination.end_at,
        "completed": examination.is_completed,
    }


def get_examination(db: Session, examination_id: int) -> Dict[str, Any]:
    examination = _examination_query(db).filter(Examination.id == examination_id).first()
    if examination is None:
        raise NotFoundError("Examination not found")

    projection = _examination_header(examination)
    projection["patientId"] = examination.patients[0].id if examination.patients else None
    projection["diagnosis"] = _diagnosis(examination)
    projection["symptoms"] = _symptoms(examination)
    projection["medications"] = _medications(examination)
    return projection


def get_patient_latest_examination(db: Session, patient_id: int) -> Dict[str, Any]:
    """
    Patient demographics plus the most recently created examination.

    Ties on creation time go to the higher id. A patient without examinations
    gets ``examination``/``diagnosis`` of None and empty lists.
    """
    patient = db.get(Patient, patient_id)
    if patient is None:
        raise NotFoundError("Patient not found")

    latest = (
        _examination_query(db)
        .join(Examination.patients)
        .filter(Patient.id == patient_id)
        .order_by(Examination.created_at.desc(), Examination.id.desc())
        .first()
    )

    projection = {
        "patientId": patient.id,
        "name": patient.name,
        "age": patient.age,
        "gender": patient.gender,
        "chiefComplaint": patient.chief_complaint,
        "chronicDisease": patient.chronic_disease,
        "phone": patient.phone,
        "address": patient.address,
        "nextAppointment": patient.next_appointment,
        "examination": None,
        "diagnosis": None,
        "symptoms": [],
        "medications": [],
    }
    if latest is not None:
        projection["examination"] = _examination_header(latest)
        projection["diagnosis"] = _diagnosis(latest)
        projection["symptoms"] = _symptoms(latest)
        projection["medications"] = _medications(latest)
    return projection

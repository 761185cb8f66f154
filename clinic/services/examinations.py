"""
Examination write service.

Applies a clinician's edits to one examination and the rows that hang off it
(symptoms, diagnosis, medications, the patient's next appointment and queue
entry). ``save_complete`` stages every change on the session and commits once
inside ``transaction``; a failure at any step leaves the store untouched.

Rules kept here:
- one open examination per patient; ``start_examination`` re-enters it.
- at most one diagnosis per examination; a second write updates in place.
- symptom and medication lists are replaced wholesale when a non-empty list
  is supplied, and left alone when the list is missing or empty.
- queue bookkeeping is best effort: a missing entry is not an error.
"""

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy.orm import Session, selectinload

from ..database import transaction
from ..exceptions import DuplicateEntryError, NotFoundError
from ..models import (
    Diagnosis,
    Examination,
    Medicine,
    Patient,
    PatientMedication,
    PatientQueue,
    PatientSymptom,
    QueueStatus,
    Symptom,
)
from ..schemas import (
    AppointmentCreate,
    DiagnosisCreate,
    DiagnosisUpdate,
    ExaminationSave,
    MedicationLine,
    PatientMedicationCreate,
    PatientSymptomCreate,
)

log = logging.getLogger(__name__)


class Outcome(str, enum.Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


@dataclass
class Upserted:
    outcome: Outcome
    record: object

    @property
    def created(self) -> bool:
        return self.outcome is Outcome.CREATED


@dataclass
class SaveResult:
    examination_id: int
    patient_id: int
    diagnosis: Optional[Outcome] = None
    symptoms_replaced: int = 0
    medications_replaced: int = 0


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _has_text(value: Optional[str]) -> bool:
    return bool(value and value.strip())


def stamp(entity, user_id: int, now: datetime, created: bool = False) -> None:
    """Write the audit columns for a mutation by ``user_id``."""
    if created:
        entity.created_by_id = user_id
        entity.created_at = now
    entity.last_modified_by_id = user_id
    entity.last_modified_at = now


# --- Lookups ---

def _get_or_404(db: Session, model, ident: int, label: str):
    row = db.get(model, ident)
    if row is None:
        raise NotFoundError(f"{label} not found")
    return row


def load_examination(db: Session, examination_id: int) -> Optional[Examination]:
    """Examination with its diagnosis, symptoms, medications and patients loaded."""
    return (
        db.query(Examination)
        .options(
            selectinload(Examination.diagnoses),
            selectinload(Examination.symptoms),
            selectinload(Examination.medications),
            selectinload(Examination.patients),
        )
        .filter(Examination.id == examination_id)
        .first()
    )


def find_open_examination(db: Session, patient_id: int) -> Optional[Examination]:
    return (
        db.query(Examination)
        .join(Examination.patients)
        .filter(Patient.id == patient_id, Examination.end_at.is_(None))
        .order_by(Examination.created_at.desc(), Examination.id.desc())
        .first()
    )


# --- Building blocks ---

def advance_queue(db: Session, patient_id: int, from_status: QueueStatus,
                  to_status: QueueStatus) -> Optional[PatientQueue]:
    """Move the patient's newest queue entry in ``from_status`` to ``to_status``."""
    entry = (
        db.query(PatientQueue)
        .filter(PatientQueue.patient_id == patient_id, PatientQueue.status == from_status)
        .order_by(PatientQueue.id.desc())
        .first()
    )
    if entry is not None:
        entry.status = to_status
    return entry


def replace_symptoms(examination: Examination, patient_id: int, symptom_ids: Iterable[int],
                     user_id: int, now: datetime) -> int:
    examination.symptoms.clear()
    # one row per symptom per examination
    for symptom_id in dict.fromkeys(symptom_ids):
        row = PatientSymptom(patient_id=patient_id, symptom_id=symptom_id)
        stamp(row, user_id, now, created=True)
        examination.symptoms.append(row)
    return len(examination.symptoms)


def replace_medications(examination: Examination, patient_id: int, lines: Iterable[MedicationLine],
                        user_id: int, now: datetime) -> int:
    examination.medications.clear()
    seen = set()
    for line in lines:
        if line.medicine_id in seen:
            continue
        seen.add(line.medicine_id)
        row = PatientMedication(
            patient_id=patient_id,
            medicine_id=line.medicine_id,
            dosage=line.dosage,
            frequency=line.frequency,
        )
        stamp(row, user_id, now, created=True)
        examination.medications.append(row)
    return len(examination.medications)


def upsert_diagnosis(examination: Examination, patient_id: int, clinical_diagnosis: str,
                     required_investigations: Optional[str], user_id: int, now: datetime) -> Upserted:
    """Update the examination's diagnosis in place, or create the first one."""
    diagnosis = examination.diagnoses[0] if examination.diagnoses else None
    if diagnosis is not None:
        diagnosis.clinical_diagnosis = clinical_diagnosis
        diagnosis.required_investigations = required_investigations
        stamp(diagnosis, user_id, now)
        return Upserted(Outcome.UPDATED, diagnosis)

    diagnosis = Diagnosis(
        patient_id=patient_id,
        clinical_diagnosis=clinical_diagnosis,
        required_investigations=required_investigations,
    )
    stamp(diagnosis, user_id, now, created=True)
    examination.diagnoses.append(diagnosis)
    return Upserted(Outcome.CREATED, diagnosis)


# --- Examination lifecycle ---

def start_examination(db: Session, patient_id: int, user_id: int) -> Upserted:
    """
    Open an examination for the patient, or return the one already open.

    A new examination moves the patient's waiting queue entry to in-progress.
    """
    patient = _get_or_404(db, Patient, patient_id, "Patient")

    existing = find_open_examination(db, patient.id)
    if existing is not None:
        log.info("Examination %s already open for patient %s", existing.id, patient.id)
        return Upserted(Outcome.UNCHANGED, existing)

    now = _now()
    with transaction(db):
        examination = Examination(start_at=now, end_at=None)
        stamp(examination, user_id, now, created=True)
        examination.patients.append(patient)
        db.add(examination)
        advance_queue(db, patient.id, QueueStatus.WAITING, QueueStatus.IN_PROGRESS)

    log.info("Examination %s started for patient %s by user %s", examination.id, patient.id, user_id)
    return Upserted(Outcome.CREATED, examination)


def save_complete(db: Session, edits: ExaminationSave, user_id: int) -> SaveResult:
    """Merge the clinician's edits into the examination and complete it, atomically."""
    now = _now()
    with transaction(db):
        examination = load_examination(db, edits.examination_id)
        if examination is None:
            raise NotFoundError("Examination not found")
        if not examination.patients:
            raise NotFoundError("Examination has no linked patient")
        patient = examination.patients[0]
        result = SaveResult(examination_id=examination.id, patient_id=patient.id)

        if edits.symptoms:
            result.symptoms_replaced = replace_symptoms(examination, patient.id, edits.symptoms, user_id, now)

        if _has_text(edits.clinical_diagnosis):
            result.diagnosis = upsert_diagnosis(
                examination, patient.id, edits.clinical_diagnosis,
                edits.required_investigations, user_id, now,
            ).outcome

        if edits.medications:
            result.medications_replaced = replace_medications(
                examination, patient.id, edits.medications, user_id, now,
            )

        if edits.next_appointment_date is not None:
            patient.next_appointment = edits.next_appointment_date
            stamp(patient, user_id, now)

        was_open = examination.end_at is None
        examination.end_at = now
        stamp(examination, user_id, now)

        # re-saving a completed examination must not close the patient's current visit
        if was_open:
            advance_queue(db, patient.id, QueueStatus.IN_PROGRESS, QueueStatus.COMPLETED)

    log.info(
        "Examination %s completed (symptoms=%s, medications=%s, diagnosis=%s)",
        result.examination_id, result.symptoms_replaced, result.medications_replaced,
        result.diagnosis.value if result.diagnosis else "-",
    )
    return result


# --- Single-entity operations ---

def _check_triple(db: Session, patient_id: int, examination_id: int) -> Examination:
    examination = _get_or_404(db, Examination, examination_id, "Examination")
    _get_or_404(db, Patient, patient_id, "Patient")
    return examination


def add_symptom(db: Session, data: PatientSymptomCreate, user_id: int) -> PatientSymptom:
    _check_triple(db, data.patient_id, data.examination_id)
    _get_or_404(db, Symptom, data.symptom_id, "Symptom")

    duplicate = (
        db.query(PatientSymptom)
        .filter(
            PatientSymptom.patient_id == data.patient_id,
            PatientSymptom.symptom_id == data.symptom_id,
            PatientSymptom.examination_id == data.examination_id,
        )
        .first()
    )
    if duplicate is not None:
        log.warning("Duplicate symptom %s for examination %s", data.symptom_id, data.examination_id)
        raise DuplicateEntryError("Symptom already recorded for this patient and examination")

    row = PatientSymptom(
        patient_id=data.patient_id,
        symptom_id=data.symptom_id,
        examination_id=data.examination_id,
    )
    stamp(row, user_id, _now(), created=True)
    with transaction(db):
        db.add(row)
    return row


def remove_symptom(db: Session, patient_symptom_id: int) -> None:
    row = _get_or_404(db, PatientSymptom, patient_symptom_id, "Patient symptom")
    with transaction(db):
        db.delete(row)


def add_diagnosis(db: Session, data: DiagnosisCreate, user_id: int) -> Upserted:
    """Create the examination's diagnosis; an existing one is updated instead."""
    examination = load_examination(db, data.examination_id)
    if examination is None:
        raise NotFoundError("Examination not found")
    _get_or_404(db, Patient, data.patient_id, "Patient")

    with transaction(db):
        upserted = upsert_diagnosis(
            examination, data.patient_id, data.clinical_diagnosis,
            data.required_investigations, user_id, _now(),
        )
    return upserted


def update_diagnosis(db: Session, diagnosis_id: int, data: DiagnosisUpdate, user_id: int) -> Diagnosis:
    diagnosis = _get_or_404(db, Diagnosis, diagnosis_id, "Diagnosis")
    with transaction(db):
        diagnosis.clinical_diagnosis = data.clinical_diagnosis
        diagnosis.required_investigations = data.required_investigations
        stamp(diagnosis, user_id, _now())
    return diagnosis


def add_medication(db: Session, data: PatientMedicationCreate, user_id: int) -> PatientMedication:
    _check_triple(db, data.patient_id, data.examination_id)
    _get_or_404(db, Medicine, data.medicine_id, "Medicine")

    duplicate = (
        db.query(PatientMedication)
        .filter(
            PatientMedication.patient_id == data.patient_id,
            PatientMedication.medicine_id == data.medicine_id,
            PatientMedication.examination_id == data.examination_id,
        )
        .first()
    )
    if duplicate is not None:
        log.warning("Duplicate medicine %s for examination %s", data.medicine_id, data.examination_id)
        raise DuplicateEntryError("Medication already prescribed for this patient and examination")

    row = PatientMedication(
        patient_id=data.patient_id,
        medicine_id=data.medicine_id,
        examination_id=data.examination_id,
        dosage=data.dosage,
        frequency=data.frequency,
    )
    stamp(row, user_id, _now(), created=True)
    with transaction(db):
        db.add(row)
    return row


def remove_medication(db: Session, patient_medication_id: int) -> None:
    row = _get_or_404(db, PatientMedication, patient_medication_id, "Medication")
    with transaction(db):
        db.delete(row)


def schedule_appointment(db: Session, data: AppointmentCreate, user_id: int) -> Patient:
    patient = _get_or_404(db, Patient, data.patient_id, "Patient")
    with transaction(db):
        patient.next_appointment = data.appointment_date
        stamp(patient, user_id, _now())
    return patient

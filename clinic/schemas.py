"""Request bodies. Wire names are camelCase, Python names snake_case."""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # naive values are taken as already UTC
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc)
    return value


class LoginRequest(CamelModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class RegisterRequest(CamelModel):
    username: str = Field(..., min_length=1, max_length=50)
    password: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=120)


class ExaminationStart(CamelModel):
    patient_id: int
    user_id: Optional[PositiveInt] = None


class MedicationLine(CamelModel):
    medicine_id: int
    dosage: str = Field(..., min_length=1)
    frequency: str = Field(..., min_length=1)


class ExaminationSave(CamelModel):
    examination_id: int
    symptoms: Optional[List[int]] = None
    clinical_diagnosis: Optional[str] = None
    required_investigations: Optional[str] = None
    medications: Optional[List[MedicationLine]] = None
    next_appointment_date: Optional[datetime] = None
    user_id: Optional[PositiveInt] = None

    @field_validator("next_appointment_date")
    @classmethod
    def next_appointment_in_utc(cls, value):
        return _as_utc(value)


class PatientSymptomCreate(CamelModel):
    patient_id: int
    symptom_id: int
    examination_id: int
    user_id: Optional[PositiveInt] = None


class DiagnosisCreate(CamelModel):
    patient_id: int
    examination_id: int
    clinical_diagnosis: str = Field(..., min_length=1)
    required_investigations: Optional[str] = None
    user_id: Optional[PositiveInt] = None


class DiagnosisUpdate(CamelModel):
    clinical_diagnosis: str = Field(..., min_length=1)
    required_investigations: Optional[str] = None
    user_id: Optional[PositiveInt] = None


class PatientMedicationCreate(CamelModel):
    patient_id: int
    medicine_id: int
    examination_id: int
    dosage: str = Field(..., min_length=1)
    frequency: str = Field(..., min_length=1)
    user_id: Optional[PositiveInt] = None


class AppointmentCreate(CamelModel):
    patient_id: int
    appointment_date: datetime
    user_id: Optional[PositiveInt] = None

    @field_validator("appointment_date")
    @classmethod
    def appointment_in_utc(cls, value):
        return _as_utc(value)

import enum

from sqlalchemy import Column, Integer, String, Text, DateTime, Enum, ForeignKey, Table, func
from sqlalchemy.orm import relationship
from .database import Base


class Role(str, enum.Enum):
    ADMIN = "admin"
    ASSISTANT = "assistant"
    DOCTOR = "doctor"


class QueueStatus(str, enum.Enum):
    WAITING = "Waiting"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"


class AuditMixin:
    """Acting user id and timestamp of the first and the latest mutation."""
    created_by_id = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    last_modified_by_id = Column(Integer, nullable=True)
    last_modified_at = Column(DateTime(timezone=True), nullable=True)


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(120), nullable=False, default="")
    role = Column(Enum(Role), nullable=False, default=Role.ASSISTANT)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


# Join between examinations and patients; one active patient per examination in practice.
examination_patients = Table(
    "examination_patients",
    Base.metadata,
    Column("examination_id", Integer, ForeignKey("examinations.id", ondelete="CASCADE"), primary_key=True),
    Column("patient_id", Integer, ForeignKey("patients.id", ondelete="CASCADE"), primary_key=True),
)


class Patient(AuditMixin, Base):
    __tablename__ = "patients"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), nullable=False)
    age = Column(Integer, nullable=True)
    gender = Column(String(20), nullable=True)
    chief_complaint = Column(Text, nullable=True)
    chronic_disease = Column(Text, nullable=True)
    phone = Column(String(40), nullable=True)
    address = Column(Text, nullable=True)
    next_appointment = Column(DateTime(timezone=True), nullable=True)

    examinations = relationship("Examination", secondary=examination_patients, back_populates="patients")
    queue_entries = relationship("PatientQueue", back_populates="patient")


class Examination(AuditMixin, Base):
    __tablename__ = "examinations"
    id = Column(Integer, primary_key=True, index=True)
    start_at = Column(DateTime(timezone=True), nullable=False)
    end_at = Column(DateTime(timezone=True), nullable=True)  # null while in progress

    patients = relationship("Patient", secondary=examination_patients, back_populates="examinations")
    diagnoses = relationship("Diagnosis", back_populates="examination", cascade="all, delete-orphan")
    symptoms = relationship("PatientSymptom", back_populates="examination", cascade="all, delete-orphan")
    medications = relationship("PatientMedication", back_populates="examination", cascade="all, delete-orphan")

    @property
    def is_completed(self) -> bool:
        return self.end_at is not None


class Diagnosis(AuditMixin, Base):
    __tablename__ = "diagnoses"
    id = Column(Integer, primary_key=True, index=True)
    examination_id = Column(Integer, ForeignKey("examinations.id"), nullable=False, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False)
    clinical_diagnosis = Column(Text, nullable=True)
    required_investigations = Column(Text, nullable=True)

    examination = relationship("Examination", back_populates="diagnoses")


class SymptomCategory(Base):
    __tablename__ = "symptom_categories"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), nullable=False)

    symptoms = relationship("Symptom", back_populates="category")


class Symptom(Base):
    __tablename__ = "symptoms"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), nullable=False)
    category_id = Column(Integer, ForeignKey("symptom_categories.id"), nullable=False, index=True)

    category = relationship("SymptomCategory", back_populates="symptoms")


class PatientSymptom(AuditMixin, Base):
    __tablename__ = "patient_symptoms"
    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    symptom_id = Column(Integer, ForeignKey("symptoms.id"), nullable=False)
    examination_id = Column(Integer, ForeignKey("examinations.id"), nullable=False, index=True)

    symptom = relationship("Symptom")
    examination = relationship("Examination", back_populates="symptoms")


class Medicine(Base):
    __tablename__ = "medicines"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False, index=True)


class PatientMedication(AuditMixin, Base):
    __tablename__ = "patient_medications"
    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    medicine_id = Column(Integer, ForeignKey("medicines.id"), nullable=False)
    examination_id = Column(Integer, ForeignKey("examinations.id"), nullable=False, index=True)
    dosage = Column(String(120), nullable=False)
    frequency = Column(String(120), nullable=False)

    medicine = relationship("Medicine")
    examination = relationship("Examination", back_populates="medications")


class PatientQueue(Base):
    __tablename__ = "patient_queue"
    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    status = Column(Enum(QueueStatus), nullable=False, default=QueueStatus.WAITING)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    patient = relationship("Patient", back_populates="queue_entries")

"""
Shared fixtures: an in-memory SQLite store, a session on it, seeded
reference data and a TestClient whose ``get_db`` points at the same store.
"""

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from clinic.auth import get_db
from clinic.database import Base
from clinic.main import app
from clinic.models import (
    Examination,
    Medicine,
    Patient,
    PatientQueue,
    QueueStatus,
    Symptom,
    SymptomCategory,
)

from .factories import DOCTOR_ID


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client(db_session):
    # requests share the test's session so assertions see what the app wrote
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def reference_data(db_session):
    """Two symptom categories, symptoms 5-8 and medicines 1-3."""
    general = SymptomCategory(id=1, name="General")
    respiratory = SymptomCategory(id=2, name="Respiratory")
    db_session.add_all([general, respiratory])
    db_session.add_all([
        Symptom(id=5, name="Fever", category_id=1),
        Symptom(id=6, name="Cough", category_id=2),
        Symptom(id=7, name="Headache", category_id=1),
        Symptom(id=8, name="Fatigue", category_id=1),
    ])
    db_session.add_all([
        Medicine(id=1, name="Ibuprofen"),
        Medicine(id=2, name="Paracetamol"),
        Medicine(id=3, name="Amoxicillin"),
    ])
    db_session.commit()
    return {"symptoms": [5, 6, 7, 8], "medicines": [1, 2, 3]}


@pytest.fixture
def patient(db_session, reference_data):
    p = Patient(id=1, name="Siti Rahma", age=34, gender="female", chief_complaint="fever",
                phone="0812", address="Jl. Merdeka 1")
    db_session.add(p)
    db_session.commit()
    return p


@pytest.fixture
def waiting_patient(db_session, patient):
    db_session.add(PatientQueue(patient_id=patient.id, status=QueueStatus.WAITING))
    db_session.commit()
    return patient


@pytest.fixture
def open_examination(db_session, patient):
    exam = Examination(start_at=datetime.now(timezone.utc), end_at=None,
                       created_at=datetime.now(timezone.utc), created_by_id=DOCTOR_ID)
    exam.patients.append(patient)
    db_session.add(exam)
    db_session.commit()
    return exam

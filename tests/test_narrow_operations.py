from datetime import datetime

import pytest
from fastapi import status

from clinic.auth import create_access_token
from clinic.models import Diagnosis, Patient, PatientMedication, PatientSymptom

from .factories import DOCTOR_ID


def _symptom_body(patient, exam, symptom_id=5, **extra):
    return {"patientId": patient.id, "symptomId": symptom_id, "examinationId": exam.id,
            "userId": DOCTOR_ID, **extra}


def _medication_body(patient, exam, medicine_id=2, **extra):
    return {"patientId": patient.id, "medicineId": medicine_id, "examinationId": exam.id,
            "dosage": "500mg", "frequency": "2x daily", "userId": DOCTOR_ID, **extra}


class TestSymptoms:
    def test_add_symptom(self, client, db_session, patient, open_examination):
        response = client.post("/doctor/symptoms/add", json=_symptom_body(patient, open_examination))

        assert response.status_code == status.HTTP_200_OK
        row = db_session.get(PatientSymptom, response.json()["patientSymptomId"])
        assert (row.patient_id, row.symptom_id, row.examination_id) == (patient.id, 5, open_examination.id)
        assert row.created_by_id == DOCTOR_ID

    def test_duplicate_triple_is_rejected(self, client, db_session, patient, open_examination):
        first = client.post("/doctor/symptoms/add", json=_symptom_body(patient, open_examination))
        second = client.post("/doctor/symptoms/add", json=_symptom_body(patient, open_examination))

        assert first.status_code == status.HTTP_200_OK
        assert second.status_code == status.HTTP_400_BAD_REQUEST
        count = (
            db_session.query(PatientSymptom)
            .filter(PatientSymptom.patient_id == patient.id,
                    PatientSymptom.symptom_id == 5,
                    PatientSymptom.examination_id == open_examination.id)
            .count()
        )
        assert count == 1

    def test_unknown_symptom_is_404(self, client, patient, open_examination):
        response = client.post("/doctor/symptoms/add", json=_symptom_body(patient, open_examination, symptom_id=99))
        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["detail"] == "Symptom not found"

    def test_remove_symptom(self, client, db_session, patient, open_examination):
        added = client.post("/doctor/symptoms/add", json=_symptom_body(patient, open_examination)).json()

        response = client.delete(f"/doctor/symptoms/{added['patientSymptomId']}", params={"userId": DOCTOR_ID})

        assert response.status_code == status.HTTP_200_OK
        assert db_session.query(PatientSymptom).count() == 0

    def test_remove_with_bearer_token(self, client, db_session, patient, open_examination):
        added = client.post("/doctor/symptoms/add", json=_symptom_body(patient, open_examination)).json()
        token = create_access_token(DOCTOR_ID, "doctor", "doctor", "Doctor")

        response = client.delete(f"/doctor/symptoms/{added['patientSymptomId']}",
                                 headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == status.HTTP_200_OK

    def test_remove_without_user_is_401(self, client, db_session, patient, open_examination):
        added = client.post("/doctor/symptoms/add", json=_symptom_body(patient, open_examination)).json()

        response = client.delete(f"/doctor/symptoms/{added['patientSymptomId']}")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert db_session.query(PatientSymptom).count() == 1

    @pytest.mark.parametrize("user_id", [0, -1])
    def test_remove_with_non_positive_user_is_400(self, client, db_session, patient, open_examination, user_id):
        added = client.post("/doctor/symptoms/add", json=_symptom_body(patient, open_examination)).json()

        response = client.delete(f"/doctor/symptoms/{added['patientSymptomId']}", params={"userId": user_id})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert any(e["field"].endswith("userId") for e in response.json()["errors"])
        assert db_session.query(PatientSymptom).count() == 1

    def test_remove_unknown_is_404(self, client, reference_data):
        response = client.delete("/doctor/symptoms/555", params={"userId": DOCTOR_ID})
        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestDiagnosis:
    def test_add_twice_keeps_one_row(self, client, db_session, patient, open_examination):
        body = {"patientId": patient.id, "examinationId": open_examination.id,
                "clinicalDiagnosis": "flu", "requiredInvestigations": "CBC", "userId": DOCTOR_ID}
        first = client.post("/doctor/diagnosis/add", json=body)
        second = client.post("/doctor/diagnosis/add", json={**body, "clinicalDiagnosis": "dengue",
                                                             "requiredInvestigations": "NS1"})

        assert first.json()["outcome"] == "created"
        assert second.json()["outcome"] == "updated"
        assert first.json()["diagnosisId"] == second.json()["diagnosisId"]
        rows = db_session.query(Diagnosis).all()
        assert len(rows) == 1
        assert (rows[0].clinical_diagnosis, rows[0].required_investigations) == ("dengue", "NS1")

    def test_add_for_unknown_examination(self, client, patient):
        response = client.post("/doctor/diagnosis/add", json={
            "patientId": patient.id, "examinationId": 999, "clinicalDiagnosis": "flu", "userId": DOCTOR_ID,
        })
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_add_requires_diagnosis_text(self, client, patient, open_examination):
        response = client.post("/doctor/diagnosis/add", json={
            "patientId": patient.id, "examinationId": open_examination.id, "userId": DOCTOR_ID,
        })
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert any(e["field"] == "clinicalDiagnosis" for e in response.json()["errors"])

    def test_update(self, client, db_session, patient, open_examination):
        created = client.post("/doctor/diagnosis/add", json={
            "patientId": patient.id, "examinationId": open_examination.id,
            "clinicalDiagnosis": "flu", "userId": DOCTOR_ID,
        }).json()

        response = client.put(f"/doctor/diagnosis/update/{created['diagnosisId']}", json={
            "clinicalDiagnosis": "influenza A", "requiredInvestigations": "Rapid test", "userId": 8,
        })

        assert response.status_code == status.HTTP_200_OK
        diagnosis = db_session.get(Diagnosis, created["diagnosisId"])
        assert diagnosis.clinical_diagnosis == "influenza A"
        assert diagnosis.last_modified_by_id == 8
        assert diagnosis.created_by_id == DOCTOR_ID

    def test_update_unknown(self, client, reference_data):
        response = client.put("/doctor/diagnosis/update/404", json={
            "clinicalDiagnosis": "flu", "userId": DOCTOR_ID,
        })
        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestPrescriptions:
    def test_add_medication(self, client, db_session, patient, open_examination):
        response = client.post("/doctor/prescription/add", json=_medication_body(patient, open_examination))

        assert response.status_code == status.HTTP_200_OK
        row = db_session.get(PatientMedication, response.json()["patientMedicationId"])
        assert (row.dosage, row.frequency) == ("500mg", "2x daily")

    def test_duplicate_triple_is_rejected(self, client, db_session, patient, open_examination):
        client.post("/doctor/prescription/add", json=_medication_body(patient, open_examination))
        second = client.post("/doctor/prescription/add",
                             json=_medication_body(patient, open_examination, dosage="1g"))

        assert second.status_code == status.HTTP_400_BAD_REQUEST
        assert db_session.query(PatientMedication).count() == 1

    def test_unknown_medicine_is_404(self, client, patient, open_examination):
        response = client.post("/doctor/prescription/add",
                               json=_medication_body(patient, open_examination, medicine_id=404))
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_remove_medication(self, client, db_session, patient, open_examination):
        added = client.post("/doctor/prescription/add", json=_medication_body(patient, open_examination)).json()

        response = client.delete(f"/doctor/prescription/{added['patientMedicationId']}",
                                 params={"userId": DOCTOR_ID})

        assert response.status_code == status.HTTP_200_OK
        assert db_session.query(PatientMedication).count() == 0

    def test_remove_unknown_is_404(self, client, reference_data):
        response = client.delete("/doctor/prescription/12", params={"userId": DOCTOR_ID})
        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestAppointments:
    def test_schedule(self, client, db_session, patient):
        response = client.post("/doctor/appointment/schedule", json={
            "patientId": patient.id, "appointmentDate": "2030-02-01T10:00:00", "userId": DOCTOR_ID,
        })

        assert response.status_code == status.HTTP_200_OK
        stored = db_session.get(Patient, patient.id)
        assert stored.next_appointment.replace(tzinfo=None) == datetime(2030, 2, 1, 10, 0)
        assert stored.last_modified_by_id == DOCTOR_ID

    def test_offset_is_converted_to_utc(self, client, db_session, patient):
        response = client.post("/doctor/appointment/schedule", json={
            "patientId": patient.id, "appointmentDate": "2030-02-01T10:00:00+07:00", "userId": DOCTOR_ID,
        })

        assert response.status_code == status.HTTP_200_OK
        stored = db_session.get(Patient, patient.id)
        assert stored.next_appointment.replace(tzinfo=None) == datetime(2030, 2, 1, 3, 0)
        assert response.json()["nextAppointment"].startswith("2030-02-01T03:00:00")

    def test_unknown_patient(self, client, reference_data):
        response = client.post("/doctor/appointment/schedule", json={
            "patientId": 50, "appointmentDate": "2030-02-01T10:00:00", "userId": DOCTOR_ID,
        })
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_missing_user_is_401(self, client, patient):
        response = client.post("/doctor/appointment/schedule", json={
            "patientId": patient.id, "appointmentDate": "2030-02-01T10:00:00",
        })
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

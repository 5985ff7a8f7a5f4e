import logging
import sqlite3
from typing import Annotated

from fastapi import APIRouter, Depends, Path, Response

from auth import get_current_user, get_database, require_roles
from database import Database
from errors import NotFound, PermissionDenied, ValidationFailed
from models import (
    MAX_ID,
    Account,
    PatientCreate,
    PatientListResponse,
    PatientResponse,
    PatientUpdate,
    Role,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/patients", tags=["Patients"])

staff_only = require_roles(Role.ADMIN, Role.DOCTOR)
admin_only = require_roles(Role.ADMIN)
PatientId = Annotated[int, Path(ge=1, le=MAX_ID)]


def _get_patient_or_404(db: Database, patient_id: int):
    patient = db.get_patient(patient_id)
    if patient is None:
        raise NotFound("Patient not found")
    return patient


@router.get("", response_model=PatientListResponse)
def list_patients(
    current_user: Account = Depends(staff_only),
    db: Database = Depends(get_database),
):
    """List patient records (Administrator/Doctor only)"""
    return PatientListResponse(
        patients=[PatientResponse(**patient.model_dump()) for patient in db.list_patients()]
    )


@router.get("/{patient_id}", response_model=PatientResponse)
def get_patient(
    patient_id: PatientId,
    current_user: Account = Depends(get_current_user),
    db: Database = Depends(get_database),
):
    """View a patient record"""
    patient = _get_patient_or_404(db, patient_id)

    # Patients can only view their own record
    if current_user.role == Role.PATIENT and patient.user_id != current_user.id:
        raise PermissionDenied("Not authorized to view this patient")

    return PatientResponse(**patient.model_dump())


@router.post("", response_model=PatientResponse, status_code=201)
def create_patient(
    record: PatientCreate,
    current_user: Account = Depends(staff_only),
    db: Database = Depends(get_database),
):
    """Create a patient record for a patient account (Administrator/Doctor only)"""
    account = db.get_account(record.user_id)
    if account is None:
        raise NotFound("User not found")
    if account.role != Role.PATIENT:
        raise ValidationFailed("User is not a patient")

    try:
        patient = db.create_patient(
            user_id=record.user_id,
            date_of_birth=record.date_of_birth,
            gender=record.gender,
            phone_number=record.phone_number,
            notes=record.notes,
        )
    except sqlite3.IntegrityError:
        raise ValidationFailed("Patient record already exists for this user")

    logger.info("Account %s created patient record %s", current_user.id, patient.id)
    return PatientResponse(**patient.model_dump())


@router.put("/{patient_id}", response_model=PatientResponse)
def update_patient(
    patient_id: PatientId,
    changes: PatientUpdate,
    current_user: Account = Depends(staff_only),
    db: Database = Depends(get_database),
):
    """Update a patient record (Administrator/Doctor only)"""
    _get_patient_or_404(db, patient_id)
    fields = changes.model_dump(exclude_unset=True)
    if not fields:
        raise ValidationFailed("No changes provided")
    patient = db.update_patient(patient_id, fields)
    return PatientResponse(**patient.model_dump())


@router.delete("/{patient_id}", status_code=204)
def delete_patient(
    patient_id: PatientId,
    current_user: Account = Depends(admin_only),
    db: Database = Depends(get_database),
):
    """Delete a patient record (Administrator only)"""
    _get_patient_or_404(db, patient_id)
    db.delete_patient(patient_id)
    logger.info("Account %s deleted patient record %s", current_user.id, patient_id)
    return Response(status_code=204)

from datetime import datetime
from enum import Enum
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, model_validator
from sqlalchemy.orm import Session

from app.api.auth import get_current_user
from app.db.models import MedicalProfile, User
from app.db.session import get_db

router = APIRouter(prefix="/profile", tags=["profile"])


class DiabetesType(str, Enum):
    type1 = "type1"
    type2 = "type2"
    gestational = "gestational"
    prediabetes = "prediabetes"
    other = "other"


class MedicalProfilePayload(BaseModel):
    diabetes_type: Optional[DiabetesType] = None
    diagnosis_year: Optional[int] = Field(default=None, ge=1900, le=2100)
    height_cm: Optional[float] = Field(default=None, gt=50, le=272)
    weight_kg: Optional[float] = Field(default=None, ge=20, le=350)
    target_glucose_min: Optional[float] = Field(default=None, ge=40, le=200)
    target_glucose_max: Optional[float] = Field(default=None, ge=60, le=400)
    medications: Optional[str] = Field(default=None, max_length=2000)
    allergies: Optional[str] = Field(default=None, max_length=2000)
    comorbidities: Optional[str] = Field(default=None, max_length=2000)
    notes: Optional[str] = Field(default=None, max_length=4000)

    @model_validator(mode="after")
    def check_target_range(self) -> "MedicalProfilePayload":
        low, high = self.target_glucose_min, self.target_glucose_max
        if low is not None and high is not None and low >= high:
            raise ValueError("target_glucose_min must be below target_glucose_max")
        if self.diagnosis_year is not None and self.diagnosis_year > datetime.utcnow().year:
            raise ValueError("diagnosis_year cannot be in the future")
        return self


class MedicalProfileResponse(MedicalProfilePayload):
    bmi: Optional[float] = None
    updated_at: Optional[datetime] = None


def _to_response(profile: MedicalProfile) -> MedicalProfileResponse:
    return MedicalProfileResponse(
        diabetes_type=profile.diabetes_type,
        diagnosis_year=profile.diagnosis_year,
        height_cm=profile.height_cm,
        weight_kg=profile.weight_kg,
        target_glucose_min=profile.target_glucose_min,
        target_glucose_max=profile.target_glucose_max,
        medications=profile.medications,
        allergies=profile.allergies,
        comorbidities=profile.comorbidities,
        notes=profile.notes,
        bmi=profile.bmi,
        updated_at=profile.updated_at,
    )


@router.get("/medical", response_model=MedicalProfileResponse)
def get_medical_profile(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> MedicalProfileResponse:
    profile = db.query(MedicalProfile).filter(MedicalProfile.user_id == user.id).first()
    if not profile:
        raise HTTPException(status_code=404, detail="Medical profile not found")
    return _to_response(profile)


@router.put("/medical", response_model=MedicalProfileResponse)
def upsert_medical_profile(
    payload: MedicalProfilePayload,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> MedicalProfileResponse:
    profile = db.query(MedicalProfile).filter(MedicalProfile.user_id == user.id).first()
    if not profile:
        profile = MedicalProfile(user_id=user.id)
        db.add(profile)

    values = payload.model_dump()
    if payload.diabetes_type is not None:
        values["diabetes_type"] = payload.diabetes_type.value
    for key, value in values.items():
        if isinstance(value, str):
            value = value.strip() or None
        setattr(profile, key, value)
    profile.updated_at = datetime.utcnow()

    db.commit()
    db.refresh(profile)
    return _to_response(profile)

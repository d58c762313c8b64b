from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.models.doctor import Doctor
from backend.routes.dependencies import DATABASE_UNAVAILABLE_DETAIL, get_db

router = APIRouter(tags=['doctors'])


class DoctorResponse(BaseModel):
    id: str
    name: str
    specialty: str | None = None

    class Config:
        from_attributes = True


def list_doctors(db: Session) -> list[Doctor]:
    return db.query(Doctor).order_by(Doctor.name.asc()).all()


@router.get('', response_model=list[DoctorResponse])
def get_doctors(db: Session = Depends(get_db)):
    try:
        return list_doctors(db)
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List

from api.database import get_db
from api.models import Student
from api.schemas import StudentCreate, StudentRead

router = APIRouter(prefix="/students", tags=["students"])


@router.post("/", response_model=StudentRead)
def create_student(student: StudentCreate, db: Session = Depends(get_db)):
    db_student = Student(**student.model_dump())
    try:
        db.add(db_student)
        db.commit()
        db.refresh(db_student)
        return db_student
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Roll number already exists")


@router.get("/", response_model=List[StudentRead])
def read_students(skip: int = 0, limit: int = 100, db: Session = Depends(get_db)):
    return db.query(Student).order_by(Student.student_id).offset(skip).limit(limit).all()


@router.get("/{student_id}", response_model=StudentRead)
def read_student(student_id: int, db: Session = Depends(get_db)):
    db_student = db.query(Student).filter(Student.student_id == student_id).first()
    if db_student is None:
        raise HTTPException(status_code=404, detail="Student not found")
    return db_student

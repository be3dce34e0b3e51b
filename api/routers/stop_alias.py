# api/routers/stop_alias.py
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from typing import List

from ..database import get_db
from ..models import StopAlias
from ..schemas import StopAliasCreate, StopAliasRead

router = APIRouter(prefix="/stop-aliases", tags=["stop aliases"])


@router.post("/", response_model=StopAliasRead, status_code=status.HTTP_201_CREATED)
def create_stop_alias(alias: StopAliasCreate, db: Session = Depends(get_db)):
    """
    Register a name fragment as another spelling of a canonical stop.
    Takes effect on the next optimization run.
    """
    canonical = alias.canonical_name.strip().lower()
    pattern = alias.pattern.strip().lower()
    if not canonical or not pattern:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Both canonical_name and pattern are required.",
        )

    db_alias = StopAlias(canonical_name=canonical, pattern=pattern)
    try:
        db.add(db_alias)
        db.commit()
        db.refresh(db_alias)
        return db_alias
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="This alias pattern is already registered for the stop.",
        )


@router.get("/", response_model=List[StopAliasRead])
def read_stop_aliases(skip: int = 0, limit: int = 100, db: Session = Depends(get_db)):
    return (
        db.query(StopAlias)
        .order_by(StopAlias.canonical_name, StopAlias.alias_id)
        .offset(skip)
        .limit(limit)
        .all()
    )


@router.delete("/{alias_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_stop_alias(alias_id: int, db: Session = Depends(get_db)):
    db_alias = db.query(StopAlias).filter(StopAlias.alias_id == alias_id).first()
    if db_alias is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Stop alias not found"
        )
    db.delete(db_alias)
    db.commit()

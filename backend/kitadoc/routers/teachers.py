"""Teacher router — CRUD with encrypted names and a blind-indexed username."""
from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from kitadoc.db import get_session
from kitadoc.dependencies import get_encryption_key, get_sealing_engine
from kitadoc.models.teacher import (
    Teacher,
    TeacherCreate,
    TeacherRead,
    TeacherRow,
    TeacherUpdate,
)
from kitadoc.services.sealing import SealingEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/teachers", tags=["teachers"])


def _stripped(changes: dict) -> dict:
    """Strip text fields; a field that ends up empty is rejected."""
    cleaned = {}
    for name, value in changes.items():
        value = value.strip()
        if not value:
            raise HTTPException(status_code=422, detail=f"{name} cannot be empty")
        cleaned[name] = value
    return cleaned


def _commit(session: Session) -> None:
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise HTTPException(status_code=409, detail="Username already exists")


@router.post("", response_model=TeacherRead, status_code=201)
async def create_teacher(
    body: TeacherCreate,
    session: Session = Depends(get_session),
    engine: SealingEngine = Depends(get_sealing_engine),
    key: bytes = Depends(get_encryption_key),
) -> TeacherRead:
    now = datetime.now(timezone.utc)
    teacher = Teacher(**_stripped(body.model_dump()), created_at=now, updated_at=now)
    row = engine.seal(teacher, key, into=TeacherRow)
    session.add(row)
    _commit(session)
    session.refresh(row)
    return TeacherRead.model_validate(engine.open(row, key, into=Teacher))


@router.get("", response_model=list[TeacherRead])
async def list_teachers(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    session: Session = Depends(get_session),
    engine: SealingEngine = Depends(get_sealing_engine),
    key: bytes = Depends(get_encryption_key),
) -> list[TeacherRead]:
    rows = session.exec(select(TeacherRow).order_by(TeacherRow.id).offset(skip).limit(limit)).all()
    teachers = engine.open(list(rows), key, into=Teacher)
    return [TeacherRead.model_validate(t) for t in teachers]


@router.get("/lookup", response_model=TeacherRead)
async def lookup_teacher(
    username: str = Query(..., min_length=1),
    session: Session = Depends(get_session),
    engine: SealingEngine = Depends(get_sealing_engine),
    key: bytes = Depends(get_encryption_key),
) -> TeacherRead:
    token = engine.lookup_token(username, key)
    row = session.exec(select(TeacherRow).where(TeacherRow.username_hmac == token)).first()
    if row is None:
        raise HTTPException(status_code=404, detail="Teacher not found")
    return TeacherRead.model_validate(engine.open(row, key, into=Teacher))


@router.get("/{teacher_id}", response_model=TeacherRead)
async def get_teacher(
    teacher_id: int,
    session: Session = Depends(get_session),
    engine: SealingEngine = Depends(get_sealing_engine),
    key: bytes = Depends(get_encryption_key),
) -> TeacherRead:
    row = session.get(TeacherRow, teacher_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Teacher not found")
    return TeacherRead.model_validate(engine.open(row, key, into=Teacher))


@router.put("/{teacher_id}", response_model=TeacherRead)
async def update_teacher(
    teacher_id: int,
    body: TeacherUpdate,
    session: Session = Depends(get_session),
    engine: SealingEngine = Depends(get_sealing_engine),
    key: bytes = Depends(get_encryption_key),
) -> TeacherRead:
    row = session.get(TeacherRow, teacher_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Teacher not found")

    teacher = engine.open(row, key, into=Teacher)
    changes = _stripped(body.model_dump(exclude_unset=True, exclude_none=True))
    teacher = teacher.model_copy(update={**changes, "updated_at": datetime.now(timezone.utc)})

    # Re-seal every column: fresh nonces for unchanged fields are harmless.
    sealed = engine.seal(teacher, key, into=TeacherRow)
    for name, value in sealed.model_dump(exclude={"id", "created_at"}).items():
        setattr(row, name, value)
    session.add(row)
    _commit(session)
    session.refresh(row)
    logger.info("Updated teacher %s (%s)", teacher_id, ", ".join(sorted(changes)) or "no changes")
    return TeacherRead.model_validate(engine.open(row, key, into=Teacher))


@router.delete("/{teacher_id}", status_code=204)
async def delete_teacher(
    teacher_id: int,
    session: Session = Depends(get_session),
) -> None:
    row = session.get(TeacherRow, teacher_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Teacher not found")
    session.delete(row)
    session.commit()

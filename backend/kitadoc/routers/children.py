"""Child router — CRUD for children; names and birthdate are sealed at rest."""
from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlmodel import Session, select

from kitadoc.db import get_session
from kitadoc.dependencies import get_encryption_key, get_sealing_engine
from kitadoc.models.child import (
    Child,
    ChildCreate,
    ChildRead,
    ChildRow,
    ChildUpdate,
    check_child_dates,
)
from kitadoc.services.sealing import SealingEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/children", tags=["children"])


@router.post("", response_model=ChildRead, status_code=201)
async def create_child(
    body: ChildCreate,
    session: Session = Depends(get_session),
    engine: SealingEngine = Depends(get_sealing_engine),
    key: bytes = Depends(get_encryption_key),
) -> ChildRead:
    now = datetime.now(timezone.utc)
    child = Child(**body.model_dump(), created_at=now, updated_at=now)
    row = engine.seal(child, key, into=ChildRow)
    session.add(row)
    session.commit()
    session.refresh(row)
    return ChildRead.model_validate(engine.open(row, key, into=Child))


@router.get("", response_model=list[ChildRead])
async def list_children(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    session: Session = Depends(get_session),
    engine: SealingEngine = Depends(get_sealing_engine),
    key: bytes = Depends(get_encryption_key),
) -> list[ChildRead]:
    rows = session.exec(select(ChildRow).order_by(ChildRow.id).offset(skip).limit(limit)).all()
    children = engine.open(list(rows), key, into=Child)
    return [ChildRead.model_validate(c) for c in children]


@router.get("/{child_id}", response_model=ChildRead)
async def get_child(
    child_id: int,
    session: Session = Depends(get_session),
    engine: SealingEngine = Depends(get_sealing_engine),
    key: bytes = Depends(get_encryption_key),
) -> ChildRead:
    row = session.get(ChildRow, child_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Child not found")
    return ChildRead.model_validate(engine.open(row, key, into=Child))


@router.put("/{child_id}", response_model=ChildRead)
async def update_child(
    child_id: int,
    body: ChildUpdate,
    session: Session = Depends(get_session),
    engine: SealingEngine = Depends(get_sealing_engine),
    key: bytes = Depends(get_encryption_key),
) -> ChildRead:
    row = session.get(ChildRow, child_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Child not found")

    child = engine.open(row, key, into=Child)
    changes = body.model_dump(exclude_unset=True)
    for required in ("first_name", "last_name", "birthdate"):
        if required in changes and changes[required] is None:
            raise HTTPException(status_code=422, detail=f"{required} cannot be removed")
    child = child.model_copy(update={**changes, "updated_at": datetime.now(timezone.utc)})
    try:
        check_child_dates(child.birthdate, child.expected_school_enrollment)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from None

    sealed = engine.seal(child, key, into=ChildRow)
    for name, value in sealed.model_dump(exclude={"id", "created_at"}).items():
        setattr(row, name, value)
    session.add(row)
    session.commit()
    session.refresh(row)
    logger.info("Updated child %s (%s)", child_id, ", ".join(sorted(changes)) or "no changes")
    return ChildRead.model_validate(engine.open(row, key, into=Child))


@router.delete("/{child_id}", status_code=204)
async def delete_child(
    child_id: int,
    session: Session = Depends(get_session),
) -> None:
    row = session.get(ChildRow, child_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Child not found")
    session.delete(row)
    session.commit()

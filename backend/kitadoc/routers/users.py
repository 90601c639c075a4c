"""User router — registration and lookup by blind-indexed username."""
from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from kitadoc.config import get_settings
from kitadoc.db import get_session
from kitadoc.dependencies import get_encryption_key, get_sealing_engine
from kitadoc.models.user import User, UserCreate, UserRead, UserRow
from kitadoc.services.sealing import SealingEngine
from kitadoc.utils.crypto import hash_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


@router.post("", response_model=UserRead, status_code=201)
async def create_user(
    body: UserCreate,
    session: Session = Depends(get_session),
    engine: SealingEngine = Depends(get_sealing_engine),
    key: bytes = Depends(get_encryption_key),
) -> UserRead:
    username = body.username.strip()
    if len(username) < 3:
        raise HTTPException(status_code=422, detail="Username must be at least 3 characters")
    if len(body.password) < get_settings().min_password_length:
        raise HTTPException(status_code=422, detail="Password too short")

    token = engine.lookup_token(username, key)
    if session.exec(select(UserRow).where(UserRow.username_hmac == token)).first():
        raise HTTPException(status_code=409, detail="Username already exists")

    now = datetime.now(timezone.utc)
    user = User(
        username=username,
        password_hash=hash_password(body.password),
        role=body.role,
        created_at=now,
        updated_at=now,
    )
    row = engine.seal(user, key, into=UserRow)
    session.add(row)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise HTTPException(status_code=409, detail="Username already exists")
    session.refresh(row)
    logger.info("Registered user %s with role %s", row.id, row.role)
    return UserRead.model_validate(engine.open(row, key, into=User))


@router.get("", response_model=list[UserRead])
async def list_users(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    session: Session = Depends(get_session),
    engine: SealingEngine = Depends(get_sealing_engine),
    key: bytes = Depends(get_encryption_key),
) -> list[UserRead]:
    # Encrypted usernames cannot be ordered in SQL; id order is insertion order.
    rows = session.exec(select(UserRow).order_by(UserRow.id).offset(skip).limit(limit)).all()
    users = engine.open(list(rows), key, into=User)
    return [UserRead.model_validate(u) for u in users]


@router.get("/lookup", response_model=UserRead)
async def lookup_user(
    username: str = Query(..., min_length=1),
    session: Session = Depends(get_session),
    engine: SealingEngine = Depends(get_sealing_engine),
    key: bytes = Depends(get_encryption_key),
) -> UserRead:
    """Find a user by username (case and surrounding whitespace ignored)."""
    token = engine.lookup_token(username, key)
    row = session.exec(select(UserRow).where(UserRow.username_hmac == token)).first()
    if row is None:
        raise HTTPException(status_code=404, detail="User not found")
    return UserRead.model_validate(engine.open(row, key, into=User))


@router.get("/{user_id}", response_model=UserRead)
async def get_user(
    user_id: int,
    session: Session = Depends(get_session),
    engine: SealingEngine = Depends(get_sealing_engine),
    key: bytes = Depends(get_encryption_key),
) -> UserRead:
    row = session.get(UserRow, user_id)
    if row is None:
        raise HTTPException(status_code=404, detail="User not found")
    return UserRead.model_validate(engine.open(row, key, into=User))


@router.delete("/{user_id}", status_code=204)
async def delete_user(
    user_id: int,
    session: Session = Depends(get_session),
) -> None:
    row = session.get(UserRow, user_id)
    if row is None:
        raise HTTPException(status_code=404, detail="User not found")
    session.delete(row)
    session.commit()

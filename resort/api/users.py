from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import OAuth2PasswordRequestForm
from sqlmodel import Session, select

from ..auth import (
    KNOWN_ROLES,
    authenticate_user,
    create_access_token,
    get_current_user,
    get_password_hash,
    require_role,
)
from ..db import engine
from ..models import User
from ..schemas import UserCreate


router = APIRouter(prefix="/api", tags=["users"])


def _user_out(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "role": user.role,
        "full_name": user.full_name,
        "email": user.email,
    }


@router.post("/auth/token")
def login_for_access_token(form_data: OAuth2PasswordRequestForm = Depends()):
    user = authenticate_user(form_data.username, form_data.password)
    if not user:
        raise HTTPException(status_code=400, detail="Incorrect username or password")
    token = create_access_token(data={"sub": user.username, "role": user.role})
    return {"access_token": token, "token_type": "bearer", "role": user.role}


@router.get("/users/me")
def read_users_me(current_user: User = Depends(get_current_user)):
    return _user_out(current_user)


@router.post("/users", status_code=201)
def create_user(payload: UserCreate, current_user: User = Depends(require_role("admin"))):
    if payload.role not in KNOWN_ROLES:
        raise HTTPException(status_code=400, detail=f"Unknown role {payload.role}")
    with Session(engine) as session:
        if session.exec(select(User).where(User.username == payload.username)).first():
            raise HTTPException(status_code=400, detail="User exists")
        user = User(
            username=payload.username,
            password_hash=get_password_hash(payload.password),
            role=payload.role,
            full_name=payload.full_name,
            email=payload.email,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return _user_out(user)

from datetime import datetime, timedelta
import hmac
import os
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlmodel import Session, select

from .db import engine
from .models import User

SECRET_KEY = os.getenv("APP_SECRET_KEY", "dev-secret-change-this")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 12

ADMIN_ROLES = ("superadmin", "admin")
KNOWN_ROLES = ADMIN_ROLES + ("staff", "user")

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    now = datetime.utcnow()
    claims = dict(data)
    claims["iat"] = now
    claims["exp"] = now + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    return jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)


def _load_user(username: str) -> Optional[User]:
    with Session(engine) as session:
        return session.exec(select(User).where(User.username == username)).first()


def authenticate_user(username: str, password: str) -> Optional[User]:
    user = _load_user(username)
    if user is None or not verify_password(password, user.password_hash):
        return None
    return user


def get_current_user(token: str = Depends(oauth2_scheme)) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        username: str = payload.get("sub")
        if username is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception
    user = _load_user(username)
    if user is None:
        raise credentials_exception
    return user


def _is_admin(user: User) -> bool:
    return user.role in ADMIN_ROLES


def require_role(role: str):
    def _role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role != role and not _is_admin(current_user):
            raise HTTPException(status_code=403, detail="Insufficient privileges")
        return current_user

    return _role_checker


def require_any_role(*roles: str):
    def _checker(current_user: User = Depends(get_current_user)) -> User:
        if _is_admin(current_user):
            return current_user
        if current_user.role not in roles:
            raise HTTPException(status_code=403, detail="Insufficient privileges")
        return current_user

    return _checker


def is_cron_request(request: Request) -> bool:
    cron_secret = os.getenv("CRON_SECRET")
    if not cron_secret:
        return False
    header = request.headers.get("authorization", "")
    return hmac.compare_digest(header, f"Bearer {cron_secret}")


def require_staff_or_cron(request: Request) -> Optional[User]:
    """Allow the scheduler's shared secret, otherwise an admin or staff token.

    Returns None for the scheduler, the user otherwise.
    """
    if is_cron_request(request):
        return None
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return require_any_role("staff")(get_current_user(token))

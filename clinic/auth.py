import os
from datetime import datetime, timedelta, timezone
from typing import Optional
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import jwt, JWTError
from passlib.context import CryptContext
from sqlalchemy.orm import Session
from .database import SessionLocal
from .exceptions import UnauthenticatedError
from .models import User

SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME_SUPER_SECRET")
ALGORITHM = "HS256"
JWT_ISSUER = os.getenv("JWT_ISSUER", "clinic-api")
JWT_AUDIENCE = os.getenv("JWT_AUDIENCE", "clinic-clients")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 8)))  # 8 hours

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
bearer_scheme = HTTPBearer(auto_error=False)

def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)

def verify_password(plain_password: str, password_hash: str) -> bool:
    return pwd_context.verify(plain_password, password_hash)

def create_access_token(user_id: int, username: str, role: str, name: str,
                        expires_delta: Optional[timedelta] = None) -> str:
    """Issue a signed bearer credential for one user."""
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    claims = {
        "sub": str(user_id),
        "username": username,
        "role": role,
        "name": name,
        "iss": JWT_ISSUER,
        "aud": JWT_AUDIENCE,
        "iat": now,
        "exp": expire,
    }
    return jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)

def decode_access_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM], audience=JWT_AUDIENCE, issuer=JWT_ISSUER)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
    if payload.get("sub") is None:
        raise HTTPException(status_code=401, detail="Invalid token")
    return payload

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def get_token_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[int]:
    """User id carried by the bearer token, or None when no token was sent."""
    if credentials is None:
        return None
    payload = decode_access_token(credentials.credentials)
    try:
        return int(payload["sub"])
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid token")

def get_current_user(
    user_id: Optional[int] = Depends(get_token_user_id),
    db: Session = Depends(get_db),
) -> User:
    if user_id is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user

def acting_user(explicit_user_id: Optional[int], token_user_id: Optional[int]) -> int:
    """The user a mutation is recorded against: explicit id first, then the token's."""
    if explicit_user_id is not None:
        return explicit_user_id
    if token_user_id is not None:
        return token_user_id
    raise UnauthenticatedError("userId is required")

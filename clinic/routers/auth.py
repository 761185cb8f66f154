import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..auth import get_db, get_current_user, get_password_hash, verify_password, create_access_token
from ..exceptions import ConflictError
from ..models import Role, User
from ..schemas import LoginRequest, RegisterRequest

log = logging.getLogger(__name__)

router = APIRouter(prefix="/authentication", tags=["authentication"])

@router.post("")
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    try:
        user = db.query(User).filter(User.username == payload.username).first()
    except SQLAlchemyError:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                            detail="Database unavailable. Try again.")

    if not user or not verify_password(payload.password, user.password_hash):
        log.warning("Failed login for %r", payload.username)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid username or password")

    token = create_access_token(user.id, user.username, user.role.value, user.name)
    log.info("User %s logged in", user.id)
    return {
        "message": "Login successful",
        "userId": user.id,
        "role": user.role.value,
        "name": user.name,
        "token": token,
    }

@router.post("/register")
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    """New accounts are always assistants."""
    username = payload.username.strip()
    if db.query(User).filter(User.username == username).first():
        raise ConflictError("Username already exists")

    try:
        u = User(
            username=username,
            password_hash=get_password_hash(payload.password),
            name=payload.name.strip(),
            role=Role.ASSISTANT,
        )
        db.add(u)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Username already exists")
    except SQLAlchemyError:
        db.rollback()
        raise HTTPException(status_code=500, detail="Failed to create account. Try again.")

    log.info("Registered user %s (%s)", u.id, u.username)
    token = create_access_token(u.id, u.username, u.role.value, u.name)
    return {"message": "Registration successful", "userId": u.id, "token": token}

@router.get("/me")
def me(user: User = Depends(get_current_user)):
    return {"userId": user.id, "username": user.username, "role": user.role.value, "name": user.name}

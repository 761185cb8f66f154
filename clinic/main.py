import logging
import os
from fastapi import Depends, FastAPI, Request, HTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException
from .auth import get_db, get_password_hash
from .database import Base, engine, SessionLocal
from .exceptions import ClinicError
from .models import Role, User
from .routers import auth as auth_router
from .routers import doctor as doctor_router

# --- Logging ---
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
log = logging.getLogger("clinic-app")

app = FastAPI(title="Clinic API")

def error_response(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": message, **extra})

# --- Exception Handlers ---

@app.exception_handler(ClinicError)
async def clinic_error_handler(request: Request, exc: ClinicError):
    if exc.http_status >= 500:
        log.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return error_response(exc.http_status, exc.message)

@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return error_response(exc.status_code, str(exc.detail))

@app.exception_handler(StarletteHTTPException)
async def starlette_http_exception_handler(request: Request, exc: StarletteHTTPException):
    # 404/405 from routing
    return error_response(exc.status_code, str(exc.detail))

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    log.warning("Validation error: %s", exc.errors())
    errors = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg", ""),
        }
        for err in exc.errors()
    ]
    return error_response(400, "Invalid request body.", errors=errors)

@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    # keep stack traces out of responses
    log.exception("Unhandled error: %s", exc)
    return error_response(500, "Unexpected server error.")

# --- Startup: create tables & seed demo accounts ---
@app.on_event("startup")
def on_startup():
    Base.metadata.create_all(bind=engine)
    db: Session = SessionLocal()
    try:
        if not db.query(User).filter(User.username == "admin").first():
            db.add(User(username="admin", password_hash=get_password_hash("admin123"),
                        name="Administrator", role=Role.ADMIN))
        if not db.query(User).filter(User.username == "doctor").first():
            db.add(User(username="doctor", password_hash=get_password_hash("doctor123"),
                        name="Doctor", role=Role.DOCTOR))
        db.commit()
    finally:
        db.close()

@app.get("/health")
def health(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        log.error("Database connection failed: %s", exc)
        return JSONResponse(status_code=503, content={"status": "degraded", "database": "unavailable"})
    return {"status": "ok", "database": "ok"}

# --- Routers ---
app.include_router(auth_router.router)
app.include_router(doctor_router.router)

import logging
import os
from typing import Optional

from fastapi import FastAPI, APIRouter, HTTPException, Depends, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from svckit.db import make_engine, make_sessionmaker
from svckit.errors import install_error_handlers
from svckit.observability import allow_cross_origin, configure_logging, instrument

from .db import DATABASE_URL, get_session, init_db
from .models import User
from .schemas import LoginResult, UserEnvelope, UserList, UserLogin, UserPatch, UserRegister, UserSaved
from .security import create_access_token, hash_password, verify_password

APP_NAME = "users"
LISTEN_PORT = int(os.getenv("LISTEN_PORT", "3001"))

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users")

def _get_or_404(session: Session, uid: int) -> User:
    u = session.get(User, uid)
    if not u:
        raise HTTPException(status_code=404, detail="User not found")
    return u

def _find_by_email(session: Session, email: str) -> Optional[User]:
    return session.execute(select(User).where(User.email == email)).scalar_one_or_none()

@router.post("/register", response_model=UserSaved, status_code=status.HTTP_201_CREATED)
def register(payload: UserRegister, session: Session = Depends(get_session)):
    if _find_by_email(session, payload.email):
        raise HTTPException(status_code=409, detail="User already exists")

    u = User(email=payload.email, password=hash_password(payload.password), name=payload.name)
    session.add(u)
    try:
        session.flush()
    except IntegrityError:
        # lost a race with a concurrent registration of the same email
        session.rollback()
        raise HTTPException(status_code=409, detail="User already exists")
    session.refresh(u)
    log.info("registered user %d", u.id)
    return {"message": "User created successfully", "user": u}

@router.post("/login", response_model=LoginResult)
def login(payload: UserLogin, session: Session = Depends(get_session)):
    u = _find_by_email(session, payload.email)
    if not u or not verify_password(payload.password, u.password):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    token = create_access_token(u.id, u.email)
    return {"message": "Login successful", "token": token, "user": u}

@router.get("", response_model=UserList)
def list_users(session: Session = Depends(get_session)):
    rows = session.execute(
        select(User).order_by(User.created_at.desc(), User.id.desc())
    ).scalars().all()
    return {"users": rows}

@router.get("/{uid}", response_model=UserEnvelope)
def get_user(uid: int, session: Session = Depends(get_session)):
    return {"user": _get_or_404(session, uid)}

@router.put("/{uid}", response_model=UserSaved)
def update_user(uid: int, payload: UserPatch, session: Session = Depends(get_session)):
    changes = payload.changes()
    if not changes:
        raise HTTPException(status_code=400, detail="Name or email is required")
    u = _get_or_404(session, uid)
    for field, value in changes.items():
        setattr(u, field, value)
    try:
        session.flush()
    except IntegrityError:
        session.rollback()
        raise HTTPException(status_code=409, detail="Email already in use")
    session.refresh(u)
    return {"message": "User updated successfully", "user": u}

@router.delete("/{uid}")
def delete_user(uid: int, session: Session = Depends(get_session)):
    u = _get_or_404(session, uid)
    session.delete(u)
    log.info("deleted user %d", uid)
    return {"message": "User deleted successfully"}

def create_app(database_url: Optional[str] = None) -> FastAPI:
    app = FastAPI(title=APP_NAME)
    app.state.engine = make_engine(database_url or DATABASE_URL)
    app.state.sessionmaker = make_sessionmaker(app.state.engine)

    @app.on_event("startup")
    def on_startup():
        init_db(app.state.engine)

    @app.on_event("shutdown")
    def on_shutdown():
        app.state.engine.dispose()

    instrument(app, APP_NAME, "User Service")
    allow_cross_origin(app)
    install_error_handlers(app, APP_NAME)
    app.include_router(router)
    return app

if __name__ == "__main__":
    import uvicorn
    configure_logging()
    uvicorn.run(create_app(), host="0.0.0.0", port=LISTEN_PORT)

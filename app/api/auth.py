from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlmodel import Session, select

from app.core.database import get_db
from app.core.rate_limit import AUTH_LIMIT, limiter
from app.core.security import create_access_token, hash_password, verify_password
from app.api.deps import get_current_user
from app.models import User
from app.schemas import Token, UserCreate, UserLogin, UserResponse

router = APIRouter(prefix="/auth", tags=["auth"])


def _user_response(user: User) -> UserResponse:
    return UserResponse(id=user.id or 0, email=user.email, full_name=user.full_name or "")


@router.post("/register", response_model=UserResponse, status_code=201)
@limiter.limit(AUTH_LIMIT)
def register(request: Request, body: UserCreate, db: Session = Depends(get_db)):
    email = body.email.strip().lower()
    if db.exec(select(User).where(User.email == email)).first():
        raise HTTPException(status_code=400, detail="Email is already registered")
    user = User(
        email=email,
        hashed_password=hash_password(body.password),
        full_name=body.full_name.strip(),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return _user_response(user)


@router.post("/login", response_model=Token)
@limiter.limit(AUTH_LIMIT)
def login(request: Request, body: UserLogin, db: Session = Depends(get_db)):
    user = db.exec(select(User).where(User.email == body.email.strip().lower())).first()
    if not user or not verify_password(body.password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    token = create_access_token({"sub": str(user.id)})
    user.last_login_at = datetime.now(timezone.utc)
    db.add(user)
    db.commit()
    return Token(access_token=token)


@router.get("/me", response_model=UserResponse)
def me(user: User = Depends(get_current_user)):
    return _user_response(user)

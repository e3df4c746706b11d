import os
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt
from passlib.context import CryptContext

JWT_SECRET = os.getenv("JWT_SECRET", "your-secret-key")
JWT_ALGORITHM = "HS256"
JWT_EXPIRE_HOURS = int(os.getenv("JWT_EXPIRE_HOURS", "24"))

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    """Hash the plaintext password using bcrypt."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify plaintext password against stored hashed password."""
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(user_id: int, email: str, secret: Optional[str] = None,
                        expires_delta: Optional[timedelta] = None) -> str:
    """Signed HS256 token carrying userId and email."""
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(hours=JWT_EXPIRE_HOURS))
    claims = {"userId": user_id, "email": email, "exp": expire}
    return jwt.encode(claims, secret or JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str, secret: Optional[str] = None) -> dict:
    return jwt.decode(token, secret or JWT_SECRET, algorithms=[JWT_ALGORITHM])

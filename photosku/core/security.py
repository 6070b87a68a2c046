from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional
from jose import JWTError, jwt
from fastapi import HTTPException, status
from photosku.core.config import settings

# Password hashing context
# Lazy initialization
_pwd_context = None


def get_pwd_context():
    global _pwd_context
    if _pwd_context is None:
        from passlib.context import CryptContext
        _pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
    return _pwd_context


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return get_pwd_context().verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return get_pwd_context().hash(password)


@lru_cache()
def _operator_password_hash() -> str:
    # Hashed once per process; the plain password only lives in settings
    return get_password_hash(settings.TEST_USER_PASSWORD)


def authenticate_operator(username: str, password: str) -> bool:
    """
    Check credentials against the configured operator account

    Args:
        username: Submitted username
        password: Submitted plain password

    Returns:
        True when both match
    """
    if username != settings.TEST_USER_USERNAME:
        return False
    return verify_password(password, _operator_password_hash())


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token

    Args:
        data: Dictionary with user data to encode
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict:
    """
    Decode and verify a JWT token

    Raises:
        HTTPException: If token is invalid or expired
    """
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

from datetime import timedelta
from fastapi import APIRouter, HTTPException, status
from photosku.models.auth import LoginRequest, Token
from photosku.core.config import settings
from photosku.core.security import authenticate_operator, create_access_token
from photosku.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.post("/login", response_model=Token)
async def login(credentials: LoginRequest):
    """
    Authenticate the operator and return a JWT token

    **Returns:**
    - `access_token`: JWT token for authentication
    - `token_type`: Always "bearer"
    - `expires_in`: Token expiration time in seconds
    """
    logger.info(f"Login attempt for user: {credentials.username}")

    if not authenticate_operator(credentials.username, credentials.password):
        logger.warning(f"Failed login attempt for: {credentials.username}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token = create_access_token(
        data={"sub": credentials.username},
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )

    logger.info(f"Successful login for user: {credentials.username}")

    return Token(
        access_token=access_token,
        token_type="bearer",
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
    )

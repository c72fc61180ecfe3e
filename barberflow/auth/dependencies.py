import hmac

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from barberflow.auth import jwt_handler
from barberflow.core import config
from barberflow.database import SessionLocal
from barberflow.models.user import User
from barberflow.services.calendar import PROVIDER_ROLE

security = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> User:
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="The function must be called while authenticated.")

    try:
        payload = jwt_handler.decode_access_token(credentials.credentials)
    except Exception as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc

    email = payload.get("sub")
    if not email:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token subject")

    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email).first()
    finally:
        db.close()
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user


def get_current_provider(user: User = Depends(get_current_user)) -> User:
    if user.role != PROVIDER_ROLE:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only providers can perform this action.")
    return user


def require_task_secret(x_task_secret: str | None = Header(default=None)) -> None:
    """Guard for timer-driven endpoints; open when no secret is configured."""
    if not config.TASKS_SHARED_SECRET:
        return
    if not x_task_secret or not hmac.compare_digest(x_task_secret, config.TASKS_SHARED_SECRET):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid task secret.")

"""API dependencies - authentication, database session and import session store"""
from typing import Annotated, Callable
from fastapi import Depends, HTTPException, Header, Request
from sqlalchemy.orm import Session
from sqlalchemy import select

from src.inventory_tool.database import SessionLocal, get_db
from src.inventory_tool.models.user import User
from src.inventory_tool.services.import_session import ImportSessionRegistry


def get_current_user(
    db: Session = Depends(get_db),
    x_user_id: int = Header(default=1, description="User ID for simple auth")
) -> User:
    user = db.execute(
        select(User).where(User.id == x_user_id, User.is_active == True)
    ).scalar_one_or_none()

    if not user:
        raise HTTPException(status_code=401, detail="User not found or inactive")

    return user


def require_importer(current_user: User = Depends(get_current_user)) -> User:
    """Viewers can look at sessions but not write inventory"""
    if not current_user.can_import:
        raise HTTPException(status_code=403, detail="Import access required")
    return current_user


def get_session_registry(request: Request) -> ImportSessionRegistry:
    return request.app.state.import_sessions


def get_session_factory() -> Callable[[], Session]:
    """Session factory for work that outlives the request, such as background commits"""
    return SessionLocal


CurrentUser = Annotated[User, Depends(get_current_user)]
ImporterUser = Annotated[User, Depends(require_importer)]
DbSession = Annotated[Session, Depends(get_db)]
SessionRegistry = Annotated[ImportSessionRegistry, Depends(get_session_registry)]
SessionFactory = Annotated[Callable[[], Session], Depends(get_session_factory)]

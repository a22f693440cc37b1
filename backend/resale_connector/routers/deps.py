from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from resale_connector.database import get_db
from resale_connector.db_models import User


def get_current_user_id(
    x_user_id: str = Header(None, alias="X-User-Id"),
    db: Session = Depends(get_db),
) -> str:
    """Resolve the calling application user.

    Authentication of application users happens in front of this service;
    the gateway forwards the authenticated user id in ``X-User-Id``.
    """
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    user = db.query(User).filter(User.id == x_user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return user.id

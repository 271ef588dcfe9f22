# storefront/api/deps.py
"""
Wspolne zaleznosci FastAPI: zalogowany user, admin, singletony procesu.
Testy podmieniaja singletony przez app.dependency_overrides.
"""
from functools import lru_cache

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.data.models.user import UserModel
from storefront.services.auth_service import AuthService
from storefront.services.live_hub import LiveHub, live_hub
from storefront.services.notification_service import NotificationService
from storefront.services.payment_gateway import PaymentGateway
from storefront.utils.errors import AuthenticationError, ForbiddenError
from storefront.utils.security import decode_access_token

bearer_scheme = HTTPBearer(auto_error=False)


@lru_cache
def get_gateway() -> PaymentGateway:
    return PaymentGateway()


@lru_cache
def get_notifier() -> NotificationService:
    return NotificationService()


def get_live_hub() -> LiveHub:
    return live_hub


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> UserModel:
    if credentials is None:
        raise AuthenticationError("Not authorized, no token")

    user_id = decode_access_token(credentials.credentials)
    return AuthService(db).authenticate_token_user(user_id)


def require_admin(user: UserModel = Depends(get_current_user)) -> UserModel:
    if not user.is_admin:
        raise ForbiddenError("Not authorized as an admin")
    return user

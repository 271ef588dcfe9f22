# storefront/services/auth_service.py
from typing import Any, Dict

from sqlalchemy.orm import Session

from storefront.data.models.user import UserModel
from storefront.repos.user_repo import UserRepo
from storefront.services.notification_service import NotificationService
from storefront.utils.errors import AuthenticationError, ConflictError
from storefront.utils.security import create_access_token, hash_password, verify_password
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def user_to_dict(user: UserModel) -> Dict[str, Any]:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "is_active": user.is_active,
    }


class AuthService:
    def __init__(self, db: Session, notification_service: NotificationService | None = None):
        self.repo = UserRepo(db)
        self.notification_service = notification_service or NotificationService()

    def register(self, name: str, email: str, password: str) -> Dict[str, Any]:
        if self.repo.get_by_email(email):
            raise ConflictError("User already exists")

        user = self.repo.create_user(
            UserModel(name=name, email=email.lower(), password_hash=hash_password(password))
        )
        logger.info(f"Zarejestrowano usera {user.id} ({user.email})")

        self.notification_service.send_welcome(user.id)
        return {**user_to_dict(user), "token": create_access_token(user.id)}

    def login(self, email: str, password: str) -> Dict[str, Any]:
        user = self.repo.get_by_email(email)

        # ten sam komunikat dla zlego maila i hasla
        if not user or not verify_password(password, user.password_hash):
            raise AuthenticationError("Invalid credentials")

        if not user.is_active:
            raise AuthenticationError("Account is deactivated")

        logger.info(f"User {user.id} zalogowany")
        return {**user_to_dict(user), "token": create_access_token(user.id)}

    def authenticate_token_user(self, user_id: int) -> UserModel:
        user = self.repo.get_user(user_id)
        if not user:
            raise AuthenticationError("Not authorized, user not found")
        if not user.is_active:
            raise AuthenticationError("Account is deactivated")
        return user

# storefront/api/routers/auth.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.deps import get_current_user, get_notifier
from storefront.data.database import get_db
from storefront.data.models.user import UserModel
from storefront.domain.schemas import ApiResponse, AuthOut, LoginIn, RegisterIn, UserOut, ok
from storefront.services.auth_service import AuthService, user_to_dict
from storefront.services.notification_service import NotificationService

router = APIRouter(prefix="/auth", tags=["auth"])


def get_service(db: Session = Depends(get_db), notifier: NotificationService = Depends(get_notifier)):
    return AuthService(db, notification_service=notifier)


@router.post("/register", response_model=ApiResponse[AuthOut], status_code=201)
def register(payload: RegisterIn, svc: AuthService = Depends(get_service)):
    return ok(svc.register(payload.name, payload.email, payload.password), "User registered successfully")


@router.post("/login", response_model=ApiResponse[AuthOut])
def login(payload: LoginIn, svc: AuthService = Depends(get_service)):
    return ok(svc.login(payload.email, payload.password))


@router.get("/me", response_model=ApiResponse[UserOut])
def me(user: UserModel = Depends(get_current_user)):
    return ok(user_to_dict(user))

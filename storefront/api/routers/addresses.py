# storefront/api/routers/addresses.py
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.deps import get_current_user
from storefront.data.database import get_db
from storefront.data.models.user import UserModel
from storefront.domain.schemas import AddressIn, AddressOut, ApiResponse, ok
from storefront.services.address_service import AddressService

router = APIRouter(prefix="/addresses", tags=["addresses"])


def get_service(db: Session = Depends(get_db)):
    return AddressService(db)


@router.get("", response_model=ApiResponse[List[AddressOut]])
def list_addresses(user: UserModel = Depends(get_current_user), svc: AddressService = Depends(get_service)):
    return ok(svc.list_addresses(user.id))


@router.post("", response_model=ApiResponse[AddressOut], status_code=201)
def create_address(
    payload: AddressIn,
    user: UserModel = Depends(get_current_user),
    svc: AddressService = Depends(get_service),
):
    return ok(svc.create_address(user.id, payload.model_dump()), "Address added")


@router.delete("/{address_id}")
def delete_address(
    address_id: int,
    user: UserModel = Depends(get_current_user),
    svc: AddressService = Depends(get_service),
):
    svc.delete_address(user.id, address_id)
    return ok(message="Address deleted")

# storefront/services/address_service.py
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from storefront.data.models.address import AddressModel
from storefront.repos.address_repo import AddressRepo
from storefront.utils.errors import NotFoundError

ADDRESS_FIELDS = (
    "type", "is_default", "recipient_name", "phone", "street", "city", "state", "zip_code", "country",
)


def address_to_dict(address: AddressModel) -> Dict[str, Any]:
    return {"id": address.id, **{f: getattr(address, f) for f in ADDRESS_FIELDS}}


class AddressService:
    def __init__(self, db: Session):
        self.repo = AddressRepo(db)

    def list_addresses(self, user_id: int) -> List[Dict[str, Any]]:
        return [address_to_dict(a) for a in self.repo.list_addresses(user_id)]

    def create_address(self, user_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        # pierwszy adres zawsze domyslny, domyslny moze byc tylko jeden
        is_default = data.get("is_default") or not self.repo.list_addresses(user_id)
        try:
            if is_default:
                self.repo.clear_default(user_id)
            address = self.repo.add_address(AddressModel(user_id=user_id, **{**data, "is_default": is_default}))
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise
        return address_to_dict(address)

    def delete_address(self, user_id: int, address_id: int):
        address = self.repo.get_address(address_id)
        # cudzy adres = jak nieistniejacy
        if not address or address.user_id != user_id:
            raise NotFoundError("Address not found")
        try:
            self.repo.delete_address(address)
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

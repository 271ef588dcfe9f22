# storefront/data/seed.py
from sqlalchemy.orm import Session

from storefront.data.models.category import CategoryModel
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CATEGORIES = [
    ("electronics", "Electronic devices and gadgets"),
    ("clothing", "Apparel and fashion items"),
    ("books", "Books and publications"),
    ("home", "Home and furniture items"),
    ("sports", "Sports and fitness equipment"),
    ("other", "Other miscellaneous items"),
]


def seed_categories(db: Session) -> int:
    # tylko gdy tabela jest pusta
    if db.query(CategoryModel).first():
        return 0
    for name, description in DEFAULT_CATEGORIES:
        db.add(CategoryModel(name=name, description=description))
    db.commit()
    logger.info(f"Seeded {len(DEFAULT_CATEGORIES)} categories")
    return len(DEFAULT_CATEGORIES)

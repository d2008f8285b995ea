# registration_service/crud/crud_category.py
from typing import List

from sqlalchemy import func
from sqlalchemy.orm import Session

from .base import CRUDBase
from registration_service.models.category import Category
from registration_service.schemas.category import CategoryCreate, CategoryUpdate


class CRUDCategory(CRUDBase[Category, CategoryCreate, CategoryUpdate]):
    def get_by_name(self, db: Session, *, name: str) -> Category | None:
        return (
            db.query(self.model)
            .filter(func.lower(self.model.name) == name.strip().lower())
            .first()
        )

    def get_all(self, db: Session) -> List[Category]:
        return db.query(self.model).order_by(self.model.name).all()


category = CRUDCategory(Category)

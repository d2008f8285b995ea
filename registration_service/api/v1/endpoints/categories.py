# registration_service/api/v1/endpoints/categories.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from registration_service import crud
from registration_service.api import deps
from registration_service.db.session import get_db
from registration_service.schemas.category import Category, CategoryCreate
from registration_service.schemas.token import TokenPayload

router = APIRouter(tags=["Categories"])


@router.get("/categories", response_model=List[Category])
def list_categories(db: Session = Depends(get_db)):
    return crud.category.get_all(db)


@router.post("/admin/categories", response_model=Category, status_code=status.HTTP_201_CREATED)
def create_category(
    category_in: CategoryCreate,
    db: Session = Depends(get_db),
    current_admin: TokenPayload = Depends(deps.get_current_admin),
):
    if crud.category.get_by_name(db, name=category_in.name):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Category '{category_in.name}' already exists",
        )
    return crud.category.create(db, obj_in=category_in)

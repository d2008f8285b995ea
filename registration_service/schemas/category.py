# registration_service/schemas/category.py
from pydantic import BaseModel, Field
from typing import Optional


class CategoryBase(BaseModel):
    name: str = Field(..., min_length=1, json_schema_extra={"example": "Drawing"})
    fee: int = Field(..., ge=0, json_schema_extra={"example": 100000})
    max_participants: int = Field(..., gt=0, json_schema_extra={"example": 5})
    description: Optional[str] = None


class CategoryCreate(CategoryBase):
    pass


class CategoryUpdate(BaseModel):
    fee: Optional[int] = Field(None, ge=0)
    max_participants: Optional[int] = Field(None, gt=0)
    description: Optional[str] = None


class Category(CategoryBase):
    id: str

    model_config = {"from_attributes": True}

# registration_service/schemas/token.py
from pydantic import BaseModel
from typing import Optional


class TokenPayload(BaseModel):
    sub: str  # Operator identity, recorded as checked_in_by
    role: Optional[str] = None
    exp: int

    model_config = {"from_attributes": True}

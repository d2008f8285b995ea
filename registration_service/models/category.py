# registration_service/models/category.py
from sqlalchemy import Column, String, Integer, Text, DateTime, func
from sqlalchemy.orm import relationship
from registration_service.db.base_class import Base
import uuid


class Category(Base):
    """A competition track with its own fee and participant cap."""
    __tablename__ = "categories"

    id = Column(
        String, primary_key=True, default=lambda: f"cat_{uuid.uuid4().hex[:12]}"
    )
    name = Column(String(255), nullable=False, unique=True)
    fee = Column(Integer, nullable=False)  # Whole naira
    max_participants = Column(Integer, nullable=False)
    description = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    participants = relationship("Participant", back_populates="category")

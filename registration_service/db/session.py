from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from registration_service.core.config import settings

connect_args = {}
if settings.DATABASE_URL.startswith("sqlite"):
    # The sqlite driver refuses connections shared across request threads
    connect_args = {"check_same_thread": False}

engine = create_engine(
    settings.DATABASE_URL, pool_pre_ping=True, connect_args=connect_args
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        # Always closed, even when the endpoint raised
        db.close()
